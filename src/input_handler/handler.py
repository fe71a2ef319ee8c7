"""
Main Input Handler Module.

This module provides the InputHandler class used by the command line to
turn paths on disk into RawDocument values for the extraction pipeline.
The pipeline itself only ever sees bytes.

Usage:
    from src.input_handler import InputHandler

    handler = InputHandler()
    document = handler.load("fatura.pdf", password="1234")

    # All PDFs in a directory
    paths = handler.discover("./faturas/")
"""

from pathlib import Path
from typing import List, Optional, Union

from config import get_config
from src.utils.logger import get_logger
from src.utils.helpers import format_file_size, get_file_extension
from src.utils.exceptions import (
    EmptyDocumentError,
    InputError,
    InputFileNotFoundError,
    UnsupportedFileTypeError,
)

from .pdf_processor import RawDocument


# Initialize module logger
logger = get_logger(__name__)


class InputHandler:
    """
    Input handler for invoice files.

    Attributes:
        supported_extensions: Set of accepted file extensions.
        max_file_size_mb: Largest accepted file size.

    Example:
        >>> handler = InputHandler()
        >>> raw = handler.load("fatura.pdf")
        >>> print(len(raw.data))
    """

    PDF_EXTENSIONS = {'.pdf'}

    def __init__(self, max_file_size_mb: Optional[float] = None) -> None:
        """
        Initialize the InputHandler.

        Args:
            max_file_size_mb: Size limit. Defaults to input.pdf.max_file_size_mb.
        """
        self.supported_extensions = set(self.PDF_EXTENSIONS)
        self.max_file_size_mb = (
            max_file_size_mb
            if max_file_size_mb is not None
            else float(get_config("input.pdf.max_file_size_mb", 25))
        )

        logger.debug(f"InputHandler initialized (max_file_size_mb={self.max_file_size_mb})")

    def validate_file(self, filepath: Union[str, Path]) -> Path:
        """
        Validate that a file exists, is a PDF and is within the size limit.

        Args:
            filepath: Path to the file to validate.

        Returns:
            Path object pointing to the validated file.

        Raises:
            InputFileNotFoundError: If file doesn't exist.
            UnsupportedFileTypeError: If file type is not supported.
            EmptyDocumentError: If the file has no bytes.
            InputError: If the path is not a file or is too large.
        """
        path = Path(filepath)

        if not path.exists():
            raise InputFileNotFoundError(str(filepath))

        if not path.is_file():
            raise InputError(f"Path is not a file: {filepath}")

        extension = get_file_extension(path)
        if extension not in self.supported_extensions:
            raise UnsupportedFileTypeError(extension, sorted(self.supported_extensions))

        size = path.stat().st_size
        if size == 0:
            raise EmptyDocumentError(str(filepath))

        if size > self.max_file_size_mb * 1024 * 1024:
            raise InputError(
                f"File too large: {filepath}",
                {"size_bytes": size, "max_file_size_mb": self.max_file_size_mb}
            )

        return path

    def load(self, filepath: Union[str, Path], password: Optional[str] = None) -> RawDocument:
        """
        Read a PDF from disk.

        Args:
            filepath: Path to the invoice file.
            password: Optional password for encrypted PDFs.

        Returns:
            RawDocument with the file bytes.
        """
        path = self.validate_file(filepath)
        data = path.read_bytes()
        logger.info(f"Loaded file: {path.name} ({format_file_size(len(data))})")
        return RawDocument(data=data, password=password, name=path.name)

    def discover(self, input_path: Union[str, Path]) -> List[Path]:
        """
        List the PDFs to process for a file or directory argument.

        Args:
            input_path: A PDF file or a directory containing PDFs.

        Returns:
            Sorted list of PDF paths.

        Raises:
            InputFileNotFoundError: If the path does not exist.
        """
        path = Path(input_path)

        if not path.exists():
            raise InputFileNotFoundError(str(input_path))

        if path.is_file():
            return [path]

        files = sorted(
            p for p in path.iterdir()
            if p.is_file() and get_file_extension(p) in self.supported_extensions
        )

        if not files:
            logger.warning(f"No PDF files found in: {path}")
        else:
            logger.info(f"Found {len(files)} files to process")

        return files
