"""Library for formatting command output as a table, yaml or json."""

from abc import ABC, abstractmethod
from collections.abc import Generator
import json
import sys
from typing import Any, TextIO

import yaml

PADDING = 4


def column_format_string(rows: list[list[str]]) -> str:
    """Produce a format string padding each column to its widest value."""
    widths = [max(len(row[i]) for row in rows) for i in range(len(rows[0]))]
    return "".join(f"{{:{width + PADDING}}}" for width in widths).rstrip()


def format_columns(
    headers: list[str], rows: list[list[str]]
) -> Generator[str, None, None]:
    """Yield the header and rows aligned in columns."""
    data = [headers] + rows
    if not (format_string := column_format_string(data)):
        return
    for row in data:
        yield format_string.format(*row).rstrip()


def _cell(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, bool):
        return "pass" if value else "FAIL"
    return str(value)


class PrintFormatter:
    """Prints records as a human readable table."""

    def __init__(self, keys: list[str] | None = None) -> None:
        """Initialize PrintFormatter with the keys to print as columns."""
        self._keys = keys

    def format(self, data: list[dict[str, Any]]) -> Generator[str, None, None]:
        """Yield the table lines, with a header of upper case keys."""
        if not data:
            return
        keys = self._keys if self._keys is not None else list(data[0])
        rows = [[_cell(record.get(key)) for key in keys] for record in data]
        yield from format_columns([key.upper() for key in keys], rows)

    def print(self, data: list[dict[str, Any]], file: TextIO = sys.stdout) -> None:
        for line in self.format(data):
            print(line, file=file)


class StructFormatter(ABC):
    """Prints a structured document."""

    @abstractmethod
    def print(self, data: Any, file: TextIO = sys.stdout) -> None:
        """Print the document."""


class YamlFormatter(StructFormatter):
    """Prints a single yaml document, keeping key order."""

    def print(self, data: Any, file: TextIO = sys.stdout) -> None:
        yaml.dump(data, file, sort_keys=False, explicit_start=True)


class JsonFormatter(StructFormatter):
    """Prints indented json, keeping key order."""

    def print(self, data: Any, file: TextIO = sys.stdout) -> None:
        json.dump(data, file, indent=4)
        print(file=file)
