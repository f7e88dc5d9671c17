"""cardreview - Review-cycle lifecycle and quality aggregation for kanban boards.

This package tracks peer-review cycles attached to task cards as they move
between board lists, collects per-dimension evaluations from evaluators, and
aggregates them into confidence-weighted quality summaries.
"""

__version__ = "0.1.0"
