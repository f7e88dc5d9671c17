"""Typer sub-applications mounted on the cardreview CLI."""
