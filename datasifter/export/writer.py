"""Stream a result cursor out as delimited text."""

import csv
import io
from typing import AsyncIterator, Sequence

from sqlalchemy.engine import Row as ResultRow

from datasifter.export.sinks import ExportSink
from datasifter.logging_config import get_logger
from datasifter.query.decoder import decode_row

logger = get_logger(__name__)

FLUSH_THRESHOLD_CHARS = 64 * 1024


class ExportWriter:
    """
    Write a header and decoded rows to a sink.

    Nothing is written for an empty result, not even the header. The
    header comes from the first row's own column names, which need not
    match the ingested schema.

    Usage:
        async with await FileSink.create(path) as sink:
            wrote_any = await ExportWriter(sink).write(cursor)
    """

    def __init__(self, sink: ExportSink, delimiter: str = ","):
        self.sink = sink
        self.delimiter = delimiter
        self.rows_written = 0
        self._buffer = io.StringIO()
        self._csv = csv.writer(self._buffer, delimiter=delimiter, lineterminator="\n")

    async def write(self, rows: AsyncIterator[ResultRow]) -> bool:
        """
        Drain `rows` into the sink.

        Args:
            rows: Result cursor (closed on return, success or not)

        Returns:
            True if at least one row was written

        Raises:
            DecodeError: If a cell has no text representation
            QueryExecutionError: If pulling rows from the store fails
        """
        try:
            try:
                first_row = await rows.__anext__()
            except StopAsyncIteration:
                logger.info("Empty result set")
                return False

            header = list(first_row._fields)
            self._csv.writerow(header)
            await self._write_row(first_row, header)

            async for row in rows:
                await self._write_row(row, header)

            await self._flush()
        finally:
            close = getattr(rows, "close", None)
            if close is not None:
                await close()

        logger.info("Export complete", rows=self.rows_written, columns=len(header))
        return True

    async def _write_row(self, row: ResultRow, header: Sequence[str]) -> None:
        self._csv.writerow(decode_row(row, header))
        self.rows_written += 1
        if self._buffer.tell() >= FLUSH_THRESHOLD_CHARS:
            await self._flush()

    async def _flush(self) -> None:
        data = self._buffer.getvalue()
        if data:
            await self.sink.write(data)
            self._buffer.seek(0)
            self._buffer.truncate()
