"""Delimited dataset reader that parses off the event loop."""

import asyncio
import csv
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, TextIO

from datasifter.exceptions import MalformedRecordError, MissingHeaderError, ParseError
from datasifter.ingestion.schema import Schema


@dataclass(frozen=True)
class Row:
    """Raw fields of one data record and the line it ended on."""

    line: int
    fields: list[str]


class CsvSource:
    """
    Header-plus-records delimited text, parsed in worker threads.

    The csv module is CPU-bound; every read hops to a worker thread via
    `asyncio.to_thread` and hands a chunk of records back to the loop.
    Reads are strictly sequential, so the underlying reader is never
    touched by two threads at once.

    Usage:
        async with CsvSource(path) as source:
            schema = await source.read_header()
            async for row in source.records():
                ...
    """

    def __init__(self, path: Path, delimiter: str = ",", chunk_size: int = 1000):
        """
        Initialize source.

        Args:
            path: Dataset file
            delimiter: Field delimiter
            chunk_size: Records parsed per worker-thread hop
        """
        self.path = path
        self.delimiter = delimiter
        self.chunk_size = chunk_size
        self._file: TextIO | None = None
        self._reader = None

    async def open(self) -> None:
        self._file = await asyncio.to_thread(
            open, self.path, "r", newline="", encoding="utf-8"
        )
        self._reader = csv.reader(self._file, delimiter=self.delimiter)

    async def close(self) -> None:
        if self._file is not None:
            await asyncio.to_thread(self._file.close)
            self._file = None
            self._reader = None

    async def __aenter__(self) -> "CsvSource":
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def read_header(self) -> Schema:
        """
        Parse the first record into a Schema.

        Raises:
            MissingHeaderError: If the source holds no records at all
            MalformedRecordError: If the header is not valid delimited text
        """
        header = await asyncio.to_thread(self._next_record)
        if header is None:
            raise MissingHeaderError(str(self.path))
        return Schema.from_header(header)

    async def records(self) -> AsyncIterator[Row]:
        """
        Yield data records lazily, chunk by chunk.

        Records parsed before a malformed one are still yielded; the
        error is raised in place of the bad record.
        """
        while True:
            chunk, error = await asyncio.to_thread(self._read_chunk)
            for row in chunk:
                yield row
            if error is not None:
                raise error
            if len(chunk) < self.chunk_size:
                return

    def _next_record(self) -> list[str] | None:
        """Next non-blank record, or None at end of input (worker thread)."""
        if self._reader is None:
            raise RuntimeError("CsvSource is not open")
        try:
            for record in self._reader:
                if record:
                    return record
        except (csv.Error, UnicodeDecodeError) as e:
            raise MalformedRecordError(self._reader.line_num, str(e)) from e
        return None

    def _read_chunk(self) -> tuple[list[Row], ParseError | None]:
        """Parse up to chunk_size records (worker thread)."""
        chunk: list[Row] = []
        while len(chunk) < self.chunk_size:
            try:
                record = self._next_record()
            except ParseError as e:
                return chunk, e
            if record is None:
                break
            chunk.append(Row(line=self._reader.line_num, fields=record))
        return chunk, None
