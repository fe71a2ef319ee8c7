#!/usr/bin/env python3
"""
Card Invoice Extraction System - Main Entry Point.

This is the main entry point for the credit-card invoice extraction
system. It provides both a command-line interface and programmatic access
to the extraction pipeline.

Usage:
    Command Line:
        python main.py --input fatura.pdf
        python main.py --input ./faturas/ --output ./results/ --password 1234
        python main.py --input fatura.pdf --due-date 2025-11-21 --no-excel

    Python:
        from main import run_extraction
        results = run_extraction("fatura.pdf")
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import ConfigurationManager
from src.utils.exceptions import InvoiceExtractionError
from src.utils.helpers import generate_timestamp
from src.utils.logger import APP_LOGGER_NAME, get_logger, setup_logger_from_config


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Args:
        argv: Argument list. Defaults to sys.argv[1:].

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        description="Credit-card invoice extraction for Brazilian issuers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    Process single invoice:
        python main.py --input fatura.pdf

    Process directory of encrypted invoices:
        python main.py --input ./faturas/ --password 1234 --output ./results/

    Provide the due date when the layout hides it:
        python main.py --input fatura.pdf --due-date 21/11/2025
        """
    )

    parser.add_argument(
        "--input", "-i",
        type=str,
        required=True,
        help="Input PDF or directory containing PDFs"
    )

    parser.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="Output directory (default: output.directory from settings)"
    )

    parser.add_argument(
        "--password", "-p",
        type=str,
        default=None,
        help="Password for encrypted PDFs"
    )

    parser.add_argument(
        "--due-date",
        type=str,
        default=None,
        help="Due date fallback (yyyy-mm-dd or dd/mm/yyyy)"
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to custom configuration file"
    )

    parser.add_argument(
        "--no-excel",
        action="store_true",
        help="Disable Excel output"
    )

    parser.add_argument(
        "--no-json",
        action="store_true",
        help="Disable JSON output"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    return parser.parse_args(argv)


def initialize_system(args: argparse.Namespace) -> ConfigurationManager:
    """
    Initialize the extraction system with configuration and logging.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Initialized configuration manager.
    """
    config = ConfigurationManager(args.config)
    logger = setup_logger_from_config()

    if args.debug:
        logging.getLogger(APP_LOGGER_NAME).setLevel(logging.DEBUG)
        for handler in logging.getLogger(APP_LOGGER_NAME).handlers:
            handler.setLevel(logging.DEBUG)

    logger.info("=" * 60)
    logger.info("CARD INVOICE EXTRACTION SYSTEM")
    logger.info("=" * 60)
    logger.info(f"Version: {config.get('project.version', '1.0.0')}")
    logger.info(f"Input: {args.input}")

    return config


def run_extraction(
    input_path: str,
    output_dir: Optional[str] = None,
    password: Optional[str] = None,
    due_date: Optional[str] = None,
    enable_excel: bool = True,
    enable_json: bool = True
) -> List[dict]:
    """
    Run the extraction pipeline over a file or a directory.

    A file that fails is logged and skipped; the rest of the batch
    is still processed.

    Args:
        input_path: PDF file or directory.
        output_dir: Output directory for JSON and Excel files.
        password: Password tried on every encrypted PDF.
        due_date: Due date fallback applied to every file.
        enable_excel: Whether to write the Excel workbook.
        enable_json: Whether to write the JSON report.

    Returns:
        List of extraction result dictionaries.

    Example:
        >>> results = run_extraction("faturas/", "outputs/")
        >>> for r in results:
        ...     print(r['invoice']['due_date'], r['metadata']['quality_score'])
    """
    logger = get_logger(__name__)

    from src.input_handler import InputHandler
    from src.output_handler import OutputHandler
    from src.pipeline import build_pipeline

    logger.info("Initializing pipeline components...")
    input_handler = InputHandler()
    pipeline = build_pipeline()

    files_to_process = input_handler.discover(input_path)
    logger.info(f"Processing {len(files_to_process)} files...")

    extraction_results = []
    failures = 0

    for file_path in files_to_process:
        logger.info(f"Processing: {file_path.name}")

        try:
            raw = input_handler.load(file_path, password=password)
            result = pipeline.extract(
                raw.data,
                password=raw.password,
                due_date_override=due_date,
                name=raw.name
            )
        except InvoiceExtractionError as e:
            failures += 1
            logger.error(f"Error processing {file_path.name}: {e.message}")
            continue

        extraction_results.append(result)
        logger.info(
            f"  Extracted: {len(result.transactions)} transactions, "
            f"due {result.parse.due_date}, score {result.score} ({result.parse.source})"
        )

    if extraction_results and (enable_excel or enable_json):
        logger.info("Generating outputs...")
        output_handler = OutputHandler(
            output_dir=output_dir,
            json_enabled=enable_json,
            excel_enabled=enable_excel
        )
        output_info = output_handler.save(extraction_results, f"invoice_extractions_{generate_timestamp()}")

        if output_info.get('json_path'):
            logger.info(f"JSON output: {output_info['json_path']}")
        if output_info.get('excel_path'):
            logger.info(f"Excel output: {output_info['excel_path']}")

    logger.info(f"Succeeded: {len(extraction_results)}, failed: {failures}")
    return [r.to_dict() for r in extraction_results]


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function - entry point for command-line execution.

    Returns:
        Exit code: 0 when at least one file was extracted, 1 otherwise,
        130 when interrupted.
    """
    try:
        args = parse_arguments(argv)
        initialize_system(args)
        logger = get_logger(__name__)

        results = run_extraction(
            input_path=args.input,
            output_dir=args.output,
            password=args.password,
            due_date=args.due_date,
            enable_excel=not args.no_excel,
            enable_json=not args.no_json
        )

        logger.info("=" * 60)
        logger.info(f"Extraction complete. Extracted {len(results)} invoices.")
        logger.info("=" * 60)

        return 0 if results else 1

    except InvoiceExtractionError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
