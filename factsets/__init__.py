"""Factsets: a persistent knowledge store for coding agents."""

__version__ = "0.4.0"
