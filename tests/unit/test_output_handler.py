"""Unit tests for JSON and Excel output."""

import json
from dataclasses import replace
from datetime import datetime

import openpyxl
import pytest

from src.output_handler import OutputHandler
from src.output_handler.excel_exporter import ExcelExporter
from src.parsers.models import Installment, ScoredParse
from src.pipeline.extraction_result import ExtractionResult
from src.pipeline.state import FallbackDecision
from src.utils.exceptions import ExportError


@pytest.fixture
def result(complete_parse):
    rows = complete_parse.transactions[:4] + (
        replace(complete_parse.transactions[4], installment=Installment(3, 10), card_name="Visa final 4321"),
    )
    parse = replace(complete_parse, transactions=rows)
    return ExtractionResult(
        parse=ScoredParse(parse=parse, score=95, source="ocr"),
        text="texto",
        source="text-layer",
        ocr_attempted=True,
        fallback_decision=FallbackDecision.LOCAL,
        source_file="fatura.pdf",
        processing_time=1.234,
    )


class TestExtractionResult:
    """Tests for ExtractionResult serialization."""

    def test_to_dict(self, result):
        data = result.to_dict()
        assert data['invoice'] == {
            'bank_name': "Banco Exemplo",
            'parser': "generic",
            'due_date': "2025-11-21",
            'total_amount': "50.00",
            'card_last_four': "4321",
        }
        assert data['metadata']['parse_source'] == "ocr"
        assert data['metadata']['fallback_decision'] == "local"
        assert data['metadata']['transaction_count'] == 5
        assert data['transactions'][4]['installment'] == {'current': 3, 'total': 10}

    def test_expense_total(self, result):
        assert str(result.expense_total) == "50.00"

    def test_str(self, result):
        assert "Banco Exemplo" in str(result)


class TestOutputHandler:
    """Tests for OutputHandler."""

    def test_save_both(self, tmp_path, result):
        """Test JSON and Excel files are written side by side."""
        handler = OutputHandler(output_dir=tmp_path, json_enabled=True, excel_enabled=True)
        paths = handler.save(result, "batch")

        assert paths['json_path'] == str(tmp_path / "batch.json")
        assert paths['excel_path'] == str(tmp_path / "batch.xlsx")

        with open(paths['json_path'], encoding='utf-8') as handle:
            payload = json.load(handle)
        assert payload['count'] == 1
        assert payload['invoices'][0]['metadata']['source_file'] == "fatura.pdf"

    def test_disabled_outputs(self, tmp_path, result):
        """Test disabled outputs are skipped."""
        handler = OutputHandler(output_dir=tmp_path, json_enabled=False, excel_enabled=False)
        assert handler.save([result], "batch") == {'json_path': None, 'excel_path': None}
        assert list(tmp_path.iterdir()) == []

    def test_basename_sanitized(self, tmp_path, result):
        """Test characters invalid in filenames are replaced."""
        handler = OutputHandler(output_dir=tmp_path, excel_enabled=False)
        assert handler.save(result, "lote:11/2025")['json_path'] == str(tmp_path / "lote_11_2025.json")

    def test_creates_output_directory(self, tmp_path, result):
        handler = OutputHandler(output_dir=tmp_path / "nested" / "out", excel_enabled=False)
        path = handler.save([result], "batch")['json_path']
        assert (tmp_path / "nested" / "out" / "batch.json").exists()
        assert path.endswith("batch.json")


class TestExcelExporter:
    """Tests for ExcelExporter."""

    def test_workbook_layout(self, tmp_path, result):
        """Test the summary and transaction sheets."""
        path = ExcelExporter(tmp_path).export([result], "invoices.xlsx")
        workbook = openpyxl.load_workbook(path)

        assert workbook.sheetnames == ["Summary", "Transactions"]

        summary = workbook["Summary"]
        assert summary["A1"].value == "Source File"
        assert summary["A2"].value == "fatura.pdf"
        assert summary["B2"].value == "Banco Exemplo"
        assert summary["D2"].value == datetime(2025, 11, 21)
        assert summary["E2"].value == 50.0
        assert summary["J2"].value == "yes"
        assert summary["K2"].value == "local"

        transactions = workbook["Transactions"]
        assert transactions.max_row == 6
        assert transactions["C2"].value == "LOJA 0"
        assert transactions["G6"].value == "03/10"
        assert transactions["H6"].value == "Visa final 4321"

    def test_empty_results(self, tmp_path):
        """Test exporting nothing is an error."""
        with pytest.raises(ExportError):
            ExcelExporter(tmp_path).export([], "empty.xlsx")
