"""
Main Output Handler Module.

This module provides the OutputHandler class that coordinates all output
operations (JSON and Excel).
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from config import get_config
from src.pipeline.extraction_result import ExtractionResult
from src.utils.exceptions import ExportError
from src.utils.helpers import ensure_directory, generate_timestamp, safe_filename
from src.utils.logger import get_logger
from .excel_exporter import ExcelExporter

# Initialize module logger
logger = get_logger(__name__)


class OutputHandler:
    """
    Unified output handler for extraction results.

    Attributes:
        output_dir: Directory for every output file.
        json_enabled: Whether JSON output is written.
        excel_enabled: Whether the Excel workbook is written.

    Example:
        >>> handler = OutputHandler()
        >>> paths = handler.save(results, "batch_01")
        >>> print(paths['json_path'], paths['excel_path'])
    """

    def __init__(
        self,
        output_dir: Optional[Union[str, Path]] = None,
        json_enabled: Optional[bool] = None,
        excel_enabled: Optional[bool] = None
    ) -> None:
        self.output_dir = Path(output_dir or get_config("output.directory", "outputs"))
        self.json_enabled = bool(get_config("output.json.enabled", True) if json_enabled is None else json_enabled)
        self.excel_enabled = bool(get_config("output.excel.enabled", True) if excel_enabled is None else excel_enabled)
        self.json_indent = int(get_config("output.json.indent", 2))
        self._excel_exporter = None

        logger.info(
            f"OutputHandler initialized (dir={self.output_dir}, json={self.json_enabled}, "
            f"excel={self.excel_enabled})"
        )

    @property
    def excel_exporter(self) -> ExcelExporter:
        """Get or create the Excel exporter."""
        if self._excel_exporter is None:
            self._excel_exporter = ExcelExporter(self.output_dir)
        return self._excel_exporter

    def save(
        self,
        results: Union[ExtractionResult, List[ExtractionResult]],
        basename: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Save results to all enabled outputs.

        Args:
            results: Single result or list of results.
            basename: Filename without extension. Defaults to a timestamp.

        Returns:
            Dictionary with the written paths:
            {'json_path': '...', 'excel_path': '...'}

        Raises:
            ExportError: If an enabled output cannot be written.
        """
        if isinstance(results, ExtractionResult):
            results = [results]

        basename = safe_filename(basename or f"invoice_extractions_{generate_timestamp()}")
        output_info = {'json_path': None, 'excel_path': None}

        if self.json_enabled:
            output_info['json_path'] = self.to_json(results, f"{basename}.json")
        if self.excel_enabled:
            output_info['excel_path'] = self.excel_exporter.export(results, f"{basename}.xlsx")

        return output_info

    def to_json(self, results: List[ExtractionResult], filename: str) -> str:
        """
        Write results as a JSON document.

        Args:
            results: Results to write.
            filename: Output filename inside output_dir.

        Returns:
            Path to the created file.
        """
        ensure_directory(self.output_dir)
        filepath = self.output_dir / filename
        payload = {
            'count': len(results),
            'invoices': [result.to_dict() for result in results],
        }
        try:
            with open(filepath, 'w', encoding='utf-8') as handle:
                json.dump(payload, handle, indent=self.json_indent, ensure_ascii=False)
        except OSError as e:
            logger.error(f"JSON export failed: {e}")
            raise ExportError(str(filepath), str(e))

        logger.info(f"JSON file saved: {filepath} ({len(results)} invoices)")
        return str(filepath)


__all__ = ['OutputHandler']
