"""
Delimited text reader yielding raw records one at a time.
"""

import csv
from pathlib import Path
from typing import Iterator, TextIO

from refine.observability.logger import get_logger

logger = get_logger(__name__)


class DelimitedReader:
    """
    Row iterator over a delimited text file.

    next_record() returns the next raw record as a list of strings, or None
    once the file is exhausted. The file handle stays open until close().
    """

    def __init__(
        self,
        file_path: str | Path,
        delimiter: str = ",",
        quote_char: str | None = '"',
        encoding: str = "utf-8",
        skip_rows: int = 1,
    ):
        """
        Initialize the reader.

        Args:
            file_path: Path to the source file
            delimiter: Field delimiter
            quote_char: Quote character, or None for unquoted files
            encoding: Source file encoding (e.g. utf-8, latin-1)
            skip_rows: Number of leading header rows to skip
        """
        self.file_path = Path(file_path)
        self.delimiter = delimiter
        self.quote_char = quote_char
        self.encoding = encoding
        self.skip_rows = skip_rows
        self._handle: TextIO | None = None
        self._rows: Iterator[list[str]] | None = None
        self.line = 0

    def open(self) -> "DelimitedReader":
        """Open the file and skip the header rows."""
        self._handle = open(self.file_path, "r", encoding=self.encoding, newline="")
        if self.quote_char is None:
            self._rows = csv.reader(self._handle, delimiter=self.delimiter, quoting=csv.QUOTE_NONE)
        else:
            self._rows = csv.reader(self._handle, delimiter=self.delimiter, quotechar=self.quote_char)
        for _ in range(self.skip_rows):
            if next(self._rows, None) is None:
                break
        logger.debug(f"Opened {self.file_path} ({self.encoding}, delimiter={self.delimiter!r})")
        return self

    def next_record(self) -> list[str] | None:
        """
        Read the next raw record.

        Returns:
            List of field values, or None at end of file
        """
        if self._rows is None:
            raise RuntimeError("DelimitedReader is not open")
        row = next(self._rows, None)
        if row is None:
            return None
        self.line += 1
        return row

    def __iter__(self) -> Iterator[list[str]]:
        while True:
            record = self.next_record()
            if record is None:
                return
            yield record

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
        self._handle = None
        self._rows = None

    def __enter__(self) -> "DelimitedReader":
        if self._handle is None:
            self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
