"""Kvinti: rules engine and minimax search for a 7x7 royal-capture board game."""

__version__ = "0.1.0"
