"""Tests for the off-loop CSV reader."""

import pytest

from datasifter.exceptions import MalformedRecordError, MissingHeaderError, ParseError
from datasifter.ingestion.reader import CsvSource, Row


async def collect(source: CsvSource) -> list[Row]:
    return [row async for row in source.records()]


class TestReadHeader:
    """Test header extraction."""

    async def test_header_becomes_schema(self, write_csv):
        path = write_csv([["id", "name"], ["1", "alice"]])

        async with CsvSource(path) as source:
            schema = await source.read_header()

        assert schema.columns == ("id", "name")

    async def test_empty_file_has_no_header(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("")

        async with CsvSource(path) as source:
            with pytest.raises(MissingHeaderError):
                await source.read_header()

    async def test_blank_only_file_has_no_header(self, tmp_path):
        path = tmp_path / "blank.csv"
        path.write_text("\n\n\n")

        async with CsvSource(path) as source:
            with pytest.raises(MissingHeaderError):
                await source.read_header()

    async def test_custom_delimiter(self, tmp_path):
        path = tmp_path / "semi.csv"
        path.write_text("a;b\n1;2\n")

        async with CsvSource(path, delimiter=";") as source:
            schema = await source.read_header()
            rows = await collect(source)

        assert schema.columns == ("a", "b")
        assert rows[0].fields == ["1", "2"]


class TestRecords:
    """Test lazy record iteration."""

    async def test_records_after_header(self, write_csv):
        path = write_csv([["id", "name"], ["1", "alice"], ["2", "bob"]])

        async with CsvSource(path) as source:
            await source.read_header()
            rows = await collect(source)

        assert [row.fields for row in rows] == [["1", "alice"], ["2", "bob"]]
        assert [row.line for row in rows] == [2, 3]

    async def test_records_span_multiple_chunks(self, write_csv):
        data = [[str(i), f"name{i}"] for i in range(7)]
        path = write_csv([["id", "name"], *data])

        async with CsvSource(path, chunk_size=3) as source:
            await source.read_header()
            rows = await collect(source)

        assert [row.fields for row in rows] == data

    async def test_exact_chunk_multiple(self, write_csv):
        data = [[str(i)] for i in range(4)]
        path = write_csv([["id"], *data])

        async with CsvSource(path, chunk_size=2) as source:
            await source.read_header()
            rows = await collect(source)

        assert len(rows) == 4

    async def test_blank_lines_are_skipped(self, tmp_path):
        path = tmp_path / "gaps.csv"
        path.write_text("id\n1\n\n2\n")

        async with CsvSource(path) as source:
            await source.read_header()
            rows = await collect(source)

        assert [row.fields for row in rows] == [["1"], ["2"]]

    async def test_field_counts_are_not_checked_here(self, write_csv):
        path = write_csv([["a", "b"], ["1", "2", "3"]])

        async with CsvSource(path) as source:
            await source.read_header()
            rows = await collect(source)

        assert rows[0].fields == ["1", "2", "3"]

    async def test_quoted_fields(self, tmp_path):
        path = tmp_path / "quoted.csv"
        path.write_text('id,text\n1,"hello, world"\n')

        async with CsvSource(path) as source:
            await source.read_header()
            rows = await collect(source)

        assert rows[0].fields == ["1", "hello, world"]

    async def test_invalid_encoding_is_a_parse_error(self, tmp_path):
        path = tmp_path / "latin.csv"
        path.write_bytes(b"id,name\n1,\xff\xfe\n")

        with pytest.raises(ParseError):
            async with CsvSource(path) as source:
                await source.read_header()
                await collect(source)

    async def test_reading_closed_source_fails(self, write_csv):
        path = write_csv([["id"]])
        source = CsvSource(path)

        with pytest.raises(RuntimeError):
            await source.read_header()


def test_malformed_record_error_carries_line():
    error = MalformedRecordError(4, "unexpected end of data")
    assert error.context == {"line": 4, "details": "unexpected end of data"}
