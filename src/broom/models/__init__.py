"""Broom data models."""

from broom.models.category import Category, SafetyLevel
from broom.models.scan_result import CleanableItem, ScanOptions, ScanResult, ScanSummary
from broom.models.clean_result import CleanResult, CleanSummary, DeletionRecord
from broom.models.scanner import DirectoryEntriesScanner, MultiDirScanner, Scanner

__all__ = [
    "Category",
    "CleanResult",
    "CleanSummary",
    "CleanableItem",
    "DeletionRecord",
    "DirectoryEntriesScanner",
    "MultiDirScanner",
    "SafetyLevel",
    "ScanOptions",
    "ScanResult",
    "ScanSummary",
    "Scanner",
]
