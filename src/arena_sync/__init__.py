"""Incremental sync of Are.na channels into a Sanity dataset."""

__version__ = "0.3.1"
