"""Resolve video ids to playable stream URLs."""

__version__ = "0.1.0"
