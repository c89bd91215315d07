"""
Star-format writer: events core file + occurrences extension file.
"""

from pathlib import Path
from typing import Sequence, TextIO

from refine.batch.dedup import EventDeduplicator
from refine.observability.logger import get_logger

from .row_codec import tab_row

logger = get_logger(__name__)

DEFAULT_CORE_FILE = "events.tab"
DEFAULT_EXTENSION_FILE = "occurrences.tab"


class StarFormatWriter:
    """
    Owns the two output streams of a dataset run.

    Both files are UTF-8 and start with the encoded header line. Every record
    goes to the occurrences file; a record goes to the events file only the
    first time its event key is seen. Use as a context manager so both files
    are closed on every exit path.

    Passing core_file_name=None produces an occurrence-only dataset.
    """

    def __init__(
        self,
        output_dir: str | Path,
        header: Sequence[str],
        deduplicator: EventDeduplicator,
        core_file_name: str | None = DEFAULT_CORE_FILE,
        extension_file_name: str = DEFAULT_EXTENSION_FILE,
    ):
        """
        Initialize the writer (files are not opened until open()).

        Args:
            output_dir: Directory receiving both files (created if missing)
            header: Column names written as the first line of each file
            deduplicator: Event deduplicator consulted by write_event_if_new
            core_file_name: Events file name, or None for no events file
            extension_file_name: Occurrences file name
        """
        self.output_dir = Path(output_dir)
        self.header = list(header)
        self.deduplicator = deduplicator
        self.core_path = self.output_dir / core_file_name if core_file_name else None
        self.extension_path = self.output_dir / extension_file_name
        self._core: TextIO | None = None
        self._extension: TextIO | None = None
        self.events_written = 0
        self.occurrences_written = 0

    @classmethod
    def open(
        cls,
        output_dir: str | Path,
        header: Sequence[str],
        deduplicator: EventDeduplicator,
        core_file_name: str | None = DEFAULT_CORE_FILE,
        extension_file_name: str = DEFAULT_EXTENSION_FILE,
    ) -> "StarFormatWriter":
        """Create a writer and open both files, writing the header to each."""
        writer = cls(output_dir, header, deduplicator, core_file_name, extension_file_name)
        writer._open_streams()
        return writer

    def _open_streams(self) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        header_line = tab_row(self.header)
        try:
            if self.core_path is not None:
                self._core = open(self.core_path, "w", encoding="utf-8", newline="")
                self._core.write(header_line)
            self._extension = open(self.extension_path, "w", encoding="utf-8", newline="")
            self._extension.write(header_line)
        except OSError:
            self.close()
            raise
        logger.debug(
            f"Opened star-format output in {self.output_dir}",
            extra={"output_dir": str(self.output_dir)},
        )

    def _ensure_open(self) -> None:
        if self._extension is None:
            raise RuntimeError("StarFormatWriter is not open")

    def write_occurrence(self, record: Sequence[str | None]) -> None:
        """Encode and append a record to the occurrences file."""
        self._ensure_open()
        self._extension.write(tab_row(record))
        self.occurrences_written += 1

    def write_event_if_new(self, record: Sequence[str | None], key: str) -> bool:
        """
        Encode and append a record to the events file if its event is new.

        Args:
            record: Canonical record
            key: Event key of the record

        Returns:
            True if a line was written to the events file
        """
        self._ensure_open()
        if self._core is None:
            return False
        if not self.deduplicator.should_emit(key, record):
            return False
        self._core.write(tab_row(record))
        self.events_written += 1
        return True

    def close(self) -> None:
        """Close both files; safe to call more than once."""
        streams, self._core, self._extension = (self._core, self._extension), None, None
        errors = []
        for stream in streams:
            if stream is None:
                continue
            try:
                stream.close()
            except OSError as e:
                errors.append(e)
        if errors:
            raise errors[0]

    def __enter__(self) -> "StarFormatWriter":
        if self._extension is None:
            self._open_streams()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
