"""Export of query results as delimited text."""

from datasifter.export.sinks import ConsoleSink, ExportSink, FileSink, derive_output_path
from datasifter.export.writer import ExportWriter

__all__ = [
    "ExportSink",
    "FileSink",
    "ConsoleSink",
    "ExportWriter",
    "derive_output_path",
]
