"""
Output Handler Module for the Card Invoice Extraction System.

This module provides functionality for:
    - JSON reports (one document per batch)
    - Excel workbooks with a summary and a transactions sheet
"""

from .handler import OutputHandler
from .excel_exporter import ExcelExporter

__all__ = ['OutputHandler', 'ExcelExporter']
