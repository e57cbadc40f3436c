"""Tests for export sinks and the CSV writer."""

import csv
import io
from collections import namedtuple
from decimal import Decimal

import pytest

from datasifter.exceptions import DecodeError, OutputExistsError
from datasifter.export.sinks import ConsoleSink, FileSink, derive_output_path
from datasifter.export.writer import FLUSH_THRESHOLD_CHARS, ExportWriter


class FakeCursor:
    """Async row source that records whether it was closed."""

    def __init__(self, rows):
        self._rows = iter(rows)
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        try:
            return next(self._rows)
        except StopIteration:
            raise StopAsyncIteration

    async def close(self):
        self.closed = True


class MemorySink(ConsoleSink):
    """Console sink over an in-memory stream that counts writes."""

    def __init__(self):
        super().__init__(io.StringIO())
        self.writes = 0

    async def write(self, data: str) -> None:
        self.writes += 1
        await super().write(data)

    @property
    def text(self) -> str:
        return self.stream.getvalue()


Person = namedtuple("Person", ["id", "name"])


class TestExportWriter:
    """Test header and row output."""

    async def test_header_then_rows(self):
        sink = MemorySink()
        cursor = FakeCursor([Person("1", "alice"), Person("2", "bob")])

        wrote = await ExportWriter(sink).write(cursor)

        assert wrote is True
        assert sink.text == "id,name\n1,alice\n2,bob\n"
        assert cursor.closed

    async def test_empty_result_writes_nothing(self):
        sink = MemorySink()
        cursor = FakeCursor([])

        wrote = await ExportWriter(sink).write(cursor)

        assert wrote is False
        assert sink.text == ""
        assert sink.writes == 0
        assert cursor.closed

    async def test_header_follows_result_columns(self):
        Summary = namedtuple("Summary", ["city", "total"])
        sink = MemorySink()

        await ExportWriter(sink).write(FakeCursor([Summary("Lisbon", 3)]))

        assert sink.text == "city,total\nLisbon,3\n"

    async def test_cells_are_decoded(self):
        Measure = namedtuple("Measure", ["n", "ratio", "price"])
        sink = MemorySink()

        await ExportWriter(sink).write(FakeCursor([Measure(42, 1e20, Decimal("1.50"))]))

        assert sink.text == "n,ratio,price\n42,100000000000000000000,1.50\n"

    async def test_delimiter(self):
        sink = MemorySink()

        await ExportWriter(sink, delimiter=";").write(FakeCursor([Person("1", "a;b")]))

        assert sink.text == 'id;name\n1;"a;b"\n'

    async def test_fields_needing_quotes_survive_reparse(self):
        sink = MemorySink()
        values = [Person("1", 'say "hi", ok'), Person("2", "two\nlines")]

        await ExportWriter(sink).write(FakeCursor(values))

        parsed = list(csv.reader(io.StringIO(sink.text)))
        assert parsed == [["id", "name"], ["1", 'say "hi", ok'], ["2", "two\nlines"]]

    async def test_decode_error_propagates_and_closes_cursor(self):
        sink = MemorySink()
        cursor = FakeCursor([Person("1", None)])

        with pytest.raises(DecodeError) as exc_info:
            await ExportWriter(sink).write(cursor)

        assert exc_info.value.context["column"] == "name"
        assert cursor.closed

    async def test_large_results_flush_in_pieces(self):
        sink = MemorySink()
        wide = "x" * 1024
        rows = [Person(str(i), wide) for i in range(200)]

        writer = ExportWriter(sink)
        await writer.write(FakeCursor(rows))

        assert writer.rows_written == 200
        assert sink.writes >= (200 * 1024) // FLUSH_THRESHOLD_CHARS
        assert sink.text.count("\n") == 201


class TestFileSink:
    """Test the file destination."""

    async def test_creates_file(self, tmp_path):
        path = tmp_path / "out.csv"

        async with await FileSink.create(path) as sink:
            await ExportWriter(sink).write(FakeCursor([Person("1", "alice")]))

        assert path.read_text() == "id,name\n1,alice\n"

    async def test_refuses_existing_file(self, tmp_path):
        path = tmp_path / "out.csv"
        path.write_text("keep me")

        with pytest.raises(OutputExistsError) as exc_info:
            await FileSink.create(path)

        assert "Delete existing file first" in exc_info.value.message
        assert path.read_text() == "keep me"


class TestConsoleSink:
    """Test the console destination."""

    async def test_defaults_to_stdout(self, capsys):
        async with ConsoleSink() as sink:
            await ExportWriter(sink).write(FakeCursor([Person("1", "alice")]))

        assert capsys.readouterr().out == "id,name\n1,alice\n"


def test_derive_output_path(tmp_path):
    source = tmp_path / "people.csv"
    assert derive_output_path(source, ".data-sifter-output.csv") == (
        tmp_path / "people.csv.data-sifter-output.csv"
    )
