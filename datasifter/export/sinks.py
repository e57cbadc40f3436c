"""Destinations for exported query results."""

import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TextIO

import aiofiles

from datasifter.exceptions import OutputExistsError


def derive_output_path(input_path: Path, suffix: str = ".data-sifter-output.csv") -> Path:
    """Export path next to the dataset: the input path with `suffix` appended."""
    return input_path.with_name(input_path.name + suffix)


class ExportSink(ABC):
    """Writable text destination."""

    @abstractmethod
    async def write(self, data: str) -> None:
        """Append text to the destination."""

    @abstractmethod
    async def close(self) -> None:
        """Flush and release the destination."""

    async def __aenter__(self) -> "ExportSink":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


class FileSink(ExportSink):
    """A newly created file. Existing files are never opened."""

    def __init__(self, path: Path, handle) -> None:
        self.path = path
        self._handle = handle

    @classmethod
    async def create(cls, path: Path) -> "FileSink":
        """
        Create the output file.

        Raises:
            OutputExistsError: If anything already exists at `path`
        """
        if path.exists():
            raise OutputExistsError(path)
        try:
            handle = await aiofiles.open(path, "x", newline="", encoding="utf-8")
        except FileExistsError as e:
            raise OutputExistsError(path) from e
        return cls(path, handle)

    async def write(self, data: str) -> None:
        await self._handle.write(data)

    async def close(self) -> None:
        await self._handle.close()


class ConsoleSink(ExportSink):
    """Standard output, or any text stream."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream or sys.stdout

    async def write(self, data: str) -> None:
        self.stream.write(data)

    async def close(self) -> None:
        self.stream.flush()
