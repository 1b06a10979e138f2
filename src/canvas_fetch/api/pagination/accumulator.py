"""Merging of page results.

Two shapes are produced:

- full records, appended in arrival order
- ``{id: {field: value}}`` when a single field is extracted; merging by
  id makes the result independent of page arrival order
"""

from __future__ import annotations

from typing import Any


class ResultAccumulator:
    """Accumulates the records of a listing across pages."""

    def __init__(self, extract_field: str | None = None) -> None:
        self._extract_field = extract_field
        self._records: list[Any] = []
        self._fields: dict[Any, dict[str, Any]] = {}
        self._pages = 0

    @property
    def extract_field(self) -> str | None:
        return self._extract_field

    @property
    def pages(self) -> int:
        """Number of pages merged."""
        return self._pages

    def add(self, data: Any) -> int:
        """Merge one page body.

        A list body contributes its elements; any other non-null body
        counts as a single record.

        Returns:
            Number of records in the page
        """
        if data is None:
            records: list[Any] = []
        elif isinstance(data, list):
            records = data
        else:
            records = [data]

        self._pages += 1
        if self._extract_field is None:
            self._records.extend(records)
        else:
            self._merge_field(records, self._extract_field)
        return len(records)

    def _merge_field(self, records: list[Any], name: str) -> None:
        for record in records:
            if not isinstance(record, dict):
                continue
            record_id = record.get("id")
            if record_id is None or record.get(name) is None:
                continue
            self._fields.setdefault(record_id, {})[name] = record[name]

    @property
    def result(self) -> list[Any] | dict[Any, dict[str, Any]]:
        """Accumulated records, or the id-keyed field mapping."""
        if self._extract_field is None:
            return self._records
        return self._fields
