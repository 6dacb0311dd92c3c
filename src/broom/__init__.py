"""Broom: a disk cleaner that scans, classifies and removes reclaimable files."""

__version__ = "0.4.0"
