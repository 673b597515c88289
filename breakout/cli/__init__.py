"""Command-line interface for breakout."""
