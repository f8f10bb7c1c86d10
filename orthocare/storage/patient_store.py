"""Patient record storage."""

import os
import re
import json
import uuid
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from ..errors import StoreError, RecordNotFound
from ..models.patient import PatientRecord

logger = logging.getLogger(__name__)

_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


class PatientRecordStore(ABC):
    """Persistence interface for patient records."""

    @abstractmethod
    def get_all(self) -> List[PatientRecord]:
        """All records, most recent clinical date first."""

    @abstractmethod
    def get_by_id(self, record_id: str) -> Optional[PatientRecord]:
        """The record with this id, or None."""

    @abstractmethod
    def create(self, record: PatientRecord) -> str:
        """Store a new record and return its generated id."""

    @abstractmethod
    def update(self, record_id: str, changes: Dict[str, Any]) -> PatientRecord:
        """Apply a partial update and return the updated record."""

    @abstractmethod
    def delete(self, record_id: str) -> None:
        """Remove a record."""

    def search(self, query: str) -> List[PatientRecord]:
        """Case-insensitive substring search; a blank query returns everything."""
        records = self.get_all()
        needle = (query or "").strip().lower()
        if not needle:
            return records
        return [record for record in records if needle in record.searchable_text()]


def sort_by_clinical_date(records: List[PatientRecord]) -> List[PatientRecord]:
    """Newest clinical date first; undated records keep their order after the dated ones."""
    dated = [r for r in records if r.date is not None]
    undated = [r for r in records if r.date is None]
    dated.sort(key=lambda r: r.date, reverse=True)
    return dated + undated


class JsonPatientStore(PatientRecordStore):
    """Stores one JSON document per patient under ``<data_dir>/patients``."""

    def __init__(self, data_dir: str = "./data"):
        """Initialize JSON patient store.

        Args:
            data_dir: Base directory for storing all data
        """
        self.data_dir = Path(data_dir)
        self.patients_dir = self.data_dir / "patients"
        try:
            self.patients_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError(f"Cannot create patient directory {self.patients_dir}: {e}") from e
        logger.info(f"JsonPatientStore initialized with data_dir: {self.data_dir}")

    def _path(self, record_id: str) -> Path:
        return self.patients_dir / f"{record_id}.json"

    def _read(self, path: Path) -> PatientRecord:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                doc = json.load(f)
            return PatientRecord.from_document(path.stem, doc)
        except (OSError, ValueError) as e:
            # json.JSONDecodeError and pydantic.ValidationError are ValueErrors
            raise StoreError(f"Failed to read patient record {path.stem}: {e}") from e

    def _write(self, record_id: str, record: PatientRecord) -> None:
        path = self._path(record_id)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(record.to_document(), f, indent=2)
            os.replace(tmp_path, path)
        except OSError as e:
            logger.error(f"Error saving patient record {record_id}: {e}")
            raise StoreError(f"Failed to save patient record: {e}") from e

    def get_all(self) -> List[PatientRecord]:
        records = [self._read(path) for path in self.patients_dir.glob("*.json")]
        # Newest entries first among records sharing a date (or lacking one)
        records.sort(key=lambda r: (r.created_at.timestamp() if r.created_at else 0.0, r.id), reverse=True)
        return sort_by_clinical_date(records)

    def get_by_id(self, record_id: str) -> Optional[PatientRecord]:
        if not _ID_PATTERN.match(record_id or ""):
            return None
        path = self._path(record_id)
        if not path.exists():
            logger.debug(f"Patient record not found: {record_id}")
            return None
        return self._read(path)

    def create(self, record: PatientRecord) -> str:
        record_id = uuid.uuid4().hex
        stored = record.model_copy(update={"id": record_id, "created_at": datetime.now()})
        self._write(record_id, stored)
        logger.info(f"Created patient record {record_id}")
        return record_id

    def update(self, record_id: str, changes: Dict[str, Any]) -> PatientRecord:
        current = self.get_by_id(record_id)
        if current is None:
            raise RecordNotFound(f"Patient record not found: {record_id}")

        doc = current.to_document()
        for key, value in changes.items():
            doc[to_camel(key) if "_" in key else key] = value
        try:
            updated = PatientRecord.model_validate({**doc, "id": record_id})
        except ValidationError as e:
            raise StoreError(f"Invalid update for patient record {record_id}: {e}") from e

        self._write(record_id, updated)
        logger.info(f"Updated patient record {record_id}: {sorted(changes)}")
        return updated

    def delete(self, record_id: str) -> None:
        if not _ID_PATTERN.match(record_id or ""):
            raise RecordNotFound(f"Patient record not found: {record_id}")
        path = self._path(record_id)
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise RecordNotFound(f"Patient record not found: {record_id}") from e
        except OSError as e:
            raise StoreError(f"Failed to delete patient record {record_id}: {e}") from e
        logger.info(f"Deleted patient record {record_id}")
