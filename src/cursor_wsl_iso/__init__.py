"""Isolated, numbered development environments for Cursor on WSL."""

__version__ = "0.1.0"
