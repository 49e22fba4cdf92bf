"""Batch ask/tell black-box optimization harness."""

__version__ = "0.1.0"
