"""
Transaction persistence.

Stores hold one document per transaction and check every document against
their own schema before writing it, independently of the validation done by
the API layer.
"""

import json
import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Literal, Protocol, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import SchemaViolationError, StoreUnavailableError
from .models import DESCRIPTION_MAX_LENGTH, NormalizedTransaction, StoredTransaction

logger = logging.getLogger(__name__)


class TransactionStore(Protocol):
    """Persistence contract for transactions."""

    def insert(self, transaction: NormalizedTransaction) -> StoredTransaction:
        """Persist one transaction and return it with its assigned identifiers."""
        ...

    def list_transactions(self) -> List[StoredTransaction]:
        """Return every stored transaction."""
        ...

    def recent(self, limit: int = 10) -> List[StoredTransaction]:
        """Return the latest transactions, newest date first."""
        ...


class TransactionDocument(BaseModel):
    """Schema every stored document must satisfy."""

    model_config = ConfigDict(strict=True)

    type: Literal["income", "expense"]
    amount: float = Field(ge=0, allow_inf_nan=False)
    category: str = Field(min_length=1)
    date: datetime
    description: str = Field(min_length=1, max_length=DESCRIPTION_MAX_LENGTH)


def _schema_message(exc: ValidationError) -> str:
    problems = [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]
    return "Transaction validation failed: " + "; ".join(problems)


def build_document(transaction: NormalizedTransaction) -> StoredTransaction:
    """
    Check a transaction against the store schema and assign identifiers.

    Raises:
        SchemaViolationError: if the transaction breaks a schema constraint
    """
    fields = {
        "type": transaction.type,
        "amount": transaction.amount,
        "category": transaction.category,
        "date": transaction.date,
        "description": transaction.description,
    }
    try:
        document = TransactionDocument.model_validate(fields)
    except ValidationError as exc:
        raise SchemaViolationError(_schema_message(exc))

    now = datetime.now(timezone.utc)
    return StoredTransaction(
        id=uuid4().hex,
        created_at=now,
        updated_at=now,
        **document.model_dump(),
    )


def _newest_first(transactions: List[StoredTransaction], limit: int) -> List[StoredTransaction]:
    ordered = sorted(transactions, key=lambda t: t.date, reverse=True)
    return ordered[:limit]


class InMemoryTransactionStore:
    """In-memory store for tests and local development."""

    def __init__(self) -> None:
        self._items: List[StoredTransaction] = []
        self._lock = threading.Lock()

    def insert(self, transaction: NormalizedTransaction) -> StoredTransaction:
        stored = build_document(transaction)
        with self._lock:
            self._items.append(stored)
        return stored

    def list_transactions(self) -> List[StoredTransaction]:
        with self._lock:
            return list(self._items)

    def recent(self, limit: int = 10) -> List[StoredTransaction]:
        return _newest_first(self.list_transactions(), limit)


class JsonFileTransactionStore:
    """
    Document store backed by a single JSON file.

    The file holds a list of transaction documents. It is loaded once by
    connect() and rewritten atomically after every insert.
    """

    def __init__(self, path: Path, documents: List[Dict]):
        self.path = path
        self._documents = documents
        self._lock = threading.Lock()

    @classmethod
    def connect(cls, path: Union[str, Path]) -> "JsonFileTransactionStore":
        """
        Open the store, creating an empty file if none exists.

        Raises:
            StoreUnavailableError: if the file cannot be read or is not a
                JSON list of documents
        """
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            if not path.exists():
                path.write_text("[]", encoding="utf-8")
            with open(path, "r", encoding="utf-8") as f:
                documents = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreUnavailableError(f"Cannot open transaction store at {path}: {exc}")

        if not isinstance(documents, list):
            raise StoreUnavailableError(
                f"Cannot open transaction store at {path}: expected a list of documents"
            )
        logger.info("Opened transaction store %s (%d documents)", path, len(documents))
        return cls(path, documents)

    def insert(self, transaction: NormalizedTransaction) -> StoredTransaction:
        stored = build_document(transaction)
        document = stored.model_dump(mode="json", by_alias=True)
        with self._lock:
            self._documents.append(document)
            try:
                self._save()
            except OSError as exc:
                self._documents.pop()
                raise StoreUnavailableError(f"Cannot write transaction store: {exc}")
        return stored

    def list_transactions(self) -> List[StoredTransaction]:
        with self._lock:
            documents = list(self._documents)
        return [StoredTransaction.model_validate(doc) for doc in documents]

    def recent(self, limit: int = 10) -> List[StoredTransaction]:
        return _newest_first(self.list_transactions(), limit)

    def _save(self) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(self._documents, f, indent=2)
        os.replace(tmp_path, self.path)
