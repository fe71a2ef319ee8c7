"""
Excel Exporter Module.

This module writes extraction results to an Excel workbook with openpyxl.

Sheets:
    - Summary: one row per invoice (issuer, due date, total, score, ...)
    - Transactions: one row per transaction, keyed by source file
"""

from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple, Union

import openpyxl
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from config import get_config
from src.pipeline.extraction_result import ExtractionResult
from src.utils.exceptions import ExportError
from src.utils.helpers import ensure_directory, generate_timestamp
from src.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)

MAX_COLUMN_WIDTH = 50


class ExcelExporter:
    """
    Exports extraction results to Excel format.

    Attributes:
        output_dir: Directory for output files.
        summary_sheet: Title of the per-invoice sheet.
        transactions_sheet: Title of the per-transaction sheet.

    Example:
        >>> exporter = ExcelExporter()
        >>> filepath = exporter.export(results, "invoices.xlsx")
        >>> print(f"Saved to: {filepath}")
    """

    SUMMARY_COLUMNS = [
        ('Source File', 'source_file'),
        ('Bank', 'bank_name'),
        ('Parser', 'parser_name'),
        ('Due Date', 'due_date'),
        ('Total Amount', 'total_amount'),
        ('Card Final', 'card_last_four'),
        ('Transactions', 'transaction_count'),
        ('Quality Score', 'score'),
        ('Text Source', 'parse_source'),
        ('OCR Attempted', 'ocr_attempted'),
        ('Fallback Decision', 'fallback_decision'),
        ('Processing Time (s)', 'processing_time'),
    ]

    TRANSACTION_COLUMNS = [
        ('Source File', 'source_file'),
        ('Date', 'date'),
        ('Description', 'description'),
        ('Amount', 'amount'),
        ('Type', 'type'),
        ('Category', 'category'),
        ('Installment', 'installment'),
        ('Card', 'card_name'),
        ('Cardholder', 'cardholder_name'),
        ('Scope', 'scope'),
        ('Due Date', 'due_date'),
    ]

    def __init__(self, output_dir: Optional[Union[str, Path]] = None) -> None:
        self.output_dir = Path(output_dir or get_config("output.directory", "outputs"))
        self.summary_sheet = get_config("output.excel.summary_sheet", "Summary")
        self.transactions_sheet = get_config("output.excel.transactions_sheet", "Transactions")

        logger.debug(f"ExcelExporter initialized (output_dir: {self.output_dir})")

    def export(
        self,
        results: Union[ExtractionResult, List[ExtractionResult]],
        filename: Optional[str] = None,
        output_dir: Optional[Union[str, Path]] = None
    ) -> str:
        """
        Export extraction results to an Excel file.

        Args:
            results: Single result or list of results to export.
            filename: Output filename. If None, auto-generated.
            output_dir: Output directory. If None, uses configured dir.

        Returns:
            Path to the created Excel file.

        Raises:
            ExportError: If there is nothing to export or writing fails.
        """
        if isinstance(results, ExtractionResult):
            results = [results]

        out_dir = Path(output_dir) if output_dir else self.output_dir
        filename = filename or f"invoice_extractions_{generate_timestamp()}.xlsx"
        filepath = out_dir / filename

        if not results:
            raise ExportError(str(filepath), "No results to export")

        ensure_directory(out_dir)

        try:
            workbook = openpyxl.Workbook()
            summary = workbook.active
            summary.title = self.summary_sheet
            self._write_sheet(summary, self.SUMMARY_COLUMNS, [self._summary_row(r) for r in results], "4472C4")

            transactions = workbook.create_sheet(title=self.transactions_sheet)
            rows = [row for result in results for row in self._transaction_rows(result)]
            self._write_sheet(transactions, self.TRANSACTION_COLUMNS, rows, "548235")

            workbook.save(filepath)
        except OSError as e:
            logger.error(f"Excel export failed: {e}")
            raise ExportError(str(filepath), str(e))

        logger.info(f"Excel file saved: {filepath} ({len(results)} invoices, {len(rows)} transactions)")
        return str(filepath)

    @staticmethod
    def _summary_row(result: ExtractionResult) -> List[Any]:
        parse = result.parse.parse
        return [
            result.source_file or '',
            parse.bank_name or '',
            parse.parser_name or '',
            parse.due_date,
            float(parse.total_amount) if parse.total_amount is not None else None,
            parse.card_last_four or '',
            len(result.transactions),
            result.parse.score,
            result.parse.source,
            'yes' if result.ocr_attempted else 'no',
            result.fallback_decision.value if result.fallback_decision else '',
            round(result.processing_time, 2),
        ]

    @staticmethod
    def _transaction_rows(result: ExtractionResult) -> List[List[Any]]:
        rows = []
        for tx in result.transactions:
            rows.append([
                result.source_file or '',
                tx.date,
                tx.description or '',
                float(tx.amount) if tx.amount is not None else None,
                tx.type.value,
                tx.category or '',
                str(tx.installment) if tx.installment else '',
                tx.card_name or '',
                tx.cardholder_name or '',
                tx.scope.value,
                tx.due_date,
            ])
        return rows

    @staticmethod
    def _write_sheet(sheet, columns: Sequence[Tuple[str, str]], rows: List[List[Any]], color: str) -> None:
        """
        Write a header row and data rows, then size the columns.

        Args:
            sheet: openpyxl worksheet.
            columns: (header, key) pairs.
            rows: Cell values in column order.
            color: Header fill color.
        """
        header_font = Font(bold=True, color="FFFFFF")
        header_fill = PatternFill(start_color=color, end_color=color, fill_type="solid")
        thin = Side(style='thin')
        border = Border(left=thin, right=thin, top=thin, bottom=thin)

        for col, (header, _) in enumerate(columns, 1):
            cell = sheet.cell(row=1, column=col, value=header)
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = Alignment(horizontal="center", vertical="center")
            cell.border = border

        for row_num, values in enumerate(rows, 2):
            for col, value in enumerate(values, 1):
                cell = sheet.cell(row=row_num, column=col, value=value)
                cell.border = border
                if hasattr(value, 'isoformat'):
                    cell.number_format = 'DD/MM/YYYY'

        for col, (header, _) in enumerate(columns, 1):
            width = max([len(header)] + [len(str(r[col - 1])) for r in rows if r[col - 1] is not None])
            sheet.column_dimensions[get_column_letter(col)].width = min(width + 2, MAX_COLUMN_WIDTH)

        sheet.freeze_panes = 'A2'


__all__ = ['ExcelExporter']
