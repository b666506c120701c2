"""Bid-qualification requirement extraction from tender documents."""

__version__ = "0.1.0"
