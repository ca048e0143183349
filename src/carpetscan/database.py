#!/usr/bin/env python3
"""Static reference database of known carpet profiles."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator, Mapping
from importlib import resources
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .models import ReferenceEntry

logger = logging.getLogger(__name__)

SAMPLE_REFERENCES = "sample_references.json"


class ReferenceDatabase:
    """Immutable, read-only table of reference entries.

    Built once from records produced offline and injected into the recognizer.
    Records that fail validation are skipped with a warning; duplicate ids keep
    the first occurrence.
    """

    def __init__(self, entries: Iterable[ReferenceEntry] = ()):
        unique: dict[str, ReferenceEntry] = {}
        for entry in entries:
            if entry.entry_id in unique:
                logger.warning(f"Duplicate reference id {entry.entry_id!r}, keeping first")
                continue
            unique[entry.entry_id] = entry
        self._entries: tuple[ReferenceEntry, ...] = tuple(unique.values())

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> ReferenceDatabase:
        """Validate raw records and build a database from the valid ones.

        Args:
            records: Mappings with ``entry_id``, ``display_name``,
                ``dominant_colors`` (hex strings or RGB triples), ``variance``
                and ``pattern`` (descriptor text).

        Returns:
            Database containing every record that validated.
        """
        entries = []
        for idx, record in enumerate(records):
            try:
                entries.append(ReferenceEntry.model_validate(record))
            except ValidationError as e:
                record_id = record.get("entry_id", idx) if isinstance(record, Mapping) else idx
                logger.warning(
                    f"Skipping invalid reference record {record_id!r}: "
                    f"{e.error_count()} validation error(s)"
                )
        return cls(entries)

    @classmethod
    def from_json(cls, path: str | Path) -> ReferenceDatabase:
        """Load records from a JSON file (a list, or an object with ``"references"``).

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the JSON has neither supported shape.
        """
        path = Path(path)
        with path.open() as f:
            data = json.load(f)
        if isinstance(data, dict):
            data = data.get("references")
        if not isinstance(data, list):
            msg = f"Expected a list of references in {path}"
            raise ValueError(msg)
        db = cls.from_records(data)
        logger.info(f"Loaded {len(db)} reference entries from {path}")
        return db

    @classmethod
    def sample(cls) -> ReferenceDatabase:
        """Load the sample reference set bundled with the package."""
        source = resources.files("carpetscan").joinpath("data", SAMPLE_REFERENCES)
        with resources.as_file(source) as path:
            return cls.from_json(path)

    @property
    def entries(self) -> tuple[ReferenceEntry, ...]:
        return self._entries

    def get(self, entry_id: str) -> ReferenceEntry | None:
        return next((e for e in self._entries if e.entry_id == entry_id), None)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ReferenceEntry]:
        return iter(self._entries)

    def __getitem__(self, index: int) -> ReferenceEntry:
        return self._entries[index]
