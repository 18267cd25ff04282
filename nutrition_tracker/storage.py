"""Persistence helpers for the nutrition tracker.

Each collection (food items, food entries, users) is a JSON object keyed by
document id and stored in its own file.
"""

from __future__ import annotations

import json
import logging
import shutil
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Generic, List, Optional, TypeVar

from .errors import BackendUnavailable, DuplicateUserError, NotFoundError
from .models import FoodEntry, FoodItem, User

logger = logging.getLogger(__name__)

T = TypeVar("T")


def new_document_id() -> str:
    return uuid.uuid4().hex


class JsonCollection(Generic[T]):
    """A collection of documents persisted to a single JSON file."""

    filename = "collection.json"

    def __init__(self, storage_path: Path | None = None) -> None:
        if storage_path is None:
            storage_path = Path.home() / ".nutrition_tracker" / self.filename
        self._storage_path = storage_path
        self._storage_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()

    # --- Serialisation hooks ---------------------------------------------
    def _to_record(self, document: T) -> dict:
        raise NotImplementedError

    def _from_record(self, record: dict) -> T:
        raise NotImplementedError

    # --- File access -----------------------------------------------------
    def _read_file(self, path: Path) -> Dict[str, dict]:
        with path.open("r", encoding="utf8") as handle:
            data = json.load(handle)
        if not isinstance(data, dict):
            raise json.JSONDecodeError("expected an object keyed by document id", "", 0)
        return data

    def _load_records(self) -> Dict[str, dict]:
        if not self._storage_path.exists():
            logger.debug(f"Storage file does not exist: {self._storage_path}")
            return {}

        try:
            return self._read_file(self._storage_path)
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in storage file {self._storage_path}: {e}")
            backup_path = self._storage_path.with_suffix(".json.bak")
            if not backup_path.exists():
                raise BackendUnavailable(f"Storage file is corrupted (invalid JSON): {e}") from e
            logger.warning(f"Attempting to load from backup: {backup_path}")
            try:
                records = self._read_file(backup_path)
            except (OSError, json.JSONDecodeError) as backup_error:
                logger.error(f"Failed to load from backup: {backup_error}")
                raise BackendUnavailable(
                    f"Storage file is corrupted and backup is also invalid: {e}"
                ) from e
            logger.info("Successfully loaded from backup")
            return records
        except PermissionError as e:
            logger.error(f"Permission denied reading {self._storage_path}: {e}")
            raise BackendUnavailable("Cannot read storage file: permission denied") from e
        except OSError as e:
            logger.error(f"OS error reading {self._storage_path}: {e}")
            raise BackendUnavailable(f"Failed to read storage file: {e}") from e

    def _save_records(self, records: Dict[str, dict]) -> None:
        if self._storage_path.exists():
            backup_path = self._storage_path.with_suffix(".json.bak")
            try:
                shutil.copy2(self._storage_path, backup_path)
                logger.debug(f"Created backup at {backup_path}")
            except OSError as e:
                logger.warning(f"Failed to create backup: {e}")

        temp_path = self._storage_path.with_suffix(".json.tmp")
        try:
            with temp_path.open("w", encoding="utf8") as handle:
                json.dump(records, handle, indent=2)
            temp_path.replace(self._storage_path)
        except PermissionError as e:
            logger.error(f"Permission denied writing to {self._storage_path}: {e}")
            raise BackendUnavailable("Cannot write to storage file: permission denied") from e
        except OSError as e:
            logger.error(f"OS error writing to {self._storage_path}: {e}")
            raise BackendUnavailable(f"Failed to write to storage file: {e}") from e
        logger.debug(f"Saved {len(records)} documents to {self._storage_path}")

    # --- Document operations ---------------------------------------------
    def _decode(self, doc_id: str, record: object) -> Optional[T]:
        if not isinstance(record, dict):
            logger.warning(f"Skipping invalid record {doc_id}: expected an object, got {type(record).__name__}")
            return None
        try:
            return self._from_record(record)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Skipping invalid record {doc_id}: {e}")
            return None

    def _documents(self) -> List[T]:
        documents: List[T] = []
        for doc_id, record in self._load_records().items():
            document = self._decode(doc_id, record)
            if document is not None:
                documents.append(document)
        return documents

    def _find(self, predicate: Callable[[T], bool]) -> List[T]:
        with self._lock:
            return [document for document in self._documents() if predicate(document)]

    def get(self, doc_id: str) -> Optional[T]:
        with self._lock:
            record = self._load_records().get(doc_id)
        if record is None:
            return None
        return self._decode(doc_id, record)

    def add(self, document: T) -> T:
        record = self._to_record(document)
        with self._lock:
            records = self._load_records()
            records[record["id"]] = record
            self._save_records(records)
        logger.info(f"Stored document {record['id']} in {self._storage_path.name}")
        return document

    def delete(self, doc_id: str) -> bool:
        """Remove a document; returns False when it did not exist."""

        with self._lock:
            records = self._load_records()
            if doc_id not in records:
                return False
            del records[doc_id]
            self._save_records(records)
        logger.info(f"Deleted document {doc_id} from {self._storage_path.name}")
        return True


class FoodItemRepository(JsonCollection[FoodItem]):
    """Food item definitions."""

    filename = "food_items.json"

    def _to_record(self, document: FoodItem) -> dict:
        return document.to_dict()

    def _from_record(self, record: dict) -> FoodItem:
        return FoodItem.from_dict(record)

    def list_for_user(self, user_id: str) -> List[FoodItem]:
        items = self._find(lambda item: item.created_by == user_id)
        return sorted(items, key=lambda item: item.name.lower())

    def update(self, item_id: str, fields: Dict[str, object]) -> FoodItem:
        with self._lock:
            records = self._load_records()
            if item_id not in records:
                raise NotFoundError("Food item not found")
            record = dict(records[item_id])
            record.update(fields)
            item = self._from_record(record)
            records[item_id] = self._to_record(item)
            self._save_records(records)
        logger.info(f"Updated food item {item_id}: {sorted(fields)}")
        return item


class FoodEntryRepository(JsonCollection[FoodEntry]):
    """Consumption records."""

    filename = "food_entries.json"

    def _to_record(self, document: FoodEntry) -> dict:
        return document.to_dict()

    def _from_record(self, record: dict) -> FoodEntry:
        return FoodEntry.from_dict(record)

    def list_for_user_between(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
        newest_first: bool = False,
    ) -> List[FoodEntry]:
        """Entries of *user_id* with a timestamp in the inclusive range."""

        entries = self._find(
            lambda entry: entry.user_id == user_id and start <= entry.timestamp <= end
        )
        return sorted(entries, key=lambda entry: entry.timestamp, reverse=newest_first)


class UserRepository(JsonCollection[User]):
    """Accounts of the identity provider."""

    filename = "users.json"

    def _to_record(self, document: User) -> dict:
        return document.to_dict()

    def _from_record(self, record: dict) -> User:
        return User.from_dict(record)

    def get_by_email(self, email: str) -> Optional[User]:
        normalised = email.strip().lower()
        matches = self._find(lambda user: user.email == normalised)
        return matches[0] if matches else None

    def add_unique(self, user: User) -> User:
        """Store *user* unless another account already uses the same email."""

        with self._lock:
            if self.get_by_email(user.email) is not None:
                raise DuplicateUserError("Email already registered")
            return self.add(user)
