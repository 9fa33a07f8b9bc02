"""Dependency license report for npm projects."""

__version__ = "1.1.0"
