"""Flat CSV tables of pydantic records, rewritten whole on every change."""

from __future__ import annotations

import csv
import io
import logging
import os
from pathlib import Path
import tempfile
from typing import Generic, Iterable, List, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import VaultStorageError

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


def atomic_write_text(path: Path, text: str) -> None:
    """Write ``text`` to a temp file beside ``path`` and rename it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(text)
        os.replace(tmp_name, path)
    except OSError as exc:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise VaultStorageError("Failed to write file", str(path)) from exc


class CsvTable(Generic[RecordT]):
    """A CSV file whose header row is the model's field names."""

    def __init__(self, path: Path, model: Type[RecordT]) -> None:
        self.path = path
        self.model = model
        self.fieldnames: List[str] = list(model.model_fields)

    def ensure(self) -> None:
        """Create the file with only a header row if it is missing."""
        if not self.path.exists():
            self.write_all([])

    def read_all(self) -> List[RecordT]:
        if not self.path.exists():
            return []
        try:
            with self.path.open("r", encoding="utf-8", newline="") as handle:
                reader = csv.DictReader(handle)
                header = reader.fieldnames or []
                missing = [name for name in self.fieldnames if name not in header]
                if missing:
                    raise VaultStorageError(
                        f"Table {self.path.name} is missing columns",
                        ", ".join(missing),
                    )
                records: List[RecordT] = []
                for line_no, row in enumerate(reader, start=2):
                    values = {name: row.get(name) for name in self.fieldnames}
                    try:
                        records.append(self.model.model_validate(values))
                    except ValidationError as exc:
                        raise VaultStorageError(
                            f"Malformed row in {self.path.name}", f"line {line_no}"
                        ) from exc
        except OSError as exc:
            raise VaultStorageError("Failed to read table", str(self.path)) from exc
        return records

    def write_all(self, records: Iterable[RecordT]) -> None:
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=self.fieldnames, lineterminator="\n")
        writer.writeheader()
        count = 0
        for record in records:
            writer.writerow(record.model_dump(mode="json"))
            count += 1
        atomic_write_text(self.path, buffer.getvalue())
        logger.debug("Rewrote table", extra={"table": self.path.name, "rows": count})

    def append(self, record: RecordT) -> None:
        records = self.read_all()
        records.append(record)
        self.write_all(records)


__all__ = ["CsvTable", "atomic_write_text"]
