"""Command-line tasks for the position registry."""
