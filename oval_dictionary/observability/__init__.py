"""
Observability layer for the OVAL dictionary.

This module provides load metrics and reporting for dictionary contents.

Main exports:
- InsertMetrics: Tracks what a single insert_root call wrote
- DictionaryReporter: Renders fetch metadata, counts and query results
"""
from .metrics import InsertMetrics
from .reporter import DictionaryReporter

__all__ = [
    "InsertMetrics",
    "DictionaryReporter",
]
