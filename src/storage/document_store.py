# src/storage/document_store.py
"""Document store abstraction and a JSON-file backed implementation."""

import asyncio
import json
import logging
import operator
import uuid
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

import aiofiles

from src.core.exceptions import CollaboratorError

logger = logging.getLogger(__name__)

Filter = tuple[str, str, Any]
Mutator = Callable[[dict | None], dict]

_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "in": lambda value, options: value in options,
}


class DocumentStore(ABC):
    """Collection-of-documents store used by every service.

    Documents are plain JSON-compatible dicts. Returned documents are copies
    and carry their id under the ``"id"`` key.
    """

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> dict | None:
        """Return a document by id, or None if it does not exist."""

    @abstractmethod
    async def set(
        self, collection: str, doc_id: str, data: dict, merge: bool = False
    ) -> None:
        """Create or replace a document (or merge top-level fields)."""

    @abstractmethod
    async def query(
        self,
        collection: str,
        where: list[Filter] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict]:
        """Return documents matching all filters."""

    @abstractmethod
    async def batch_set(
        self, writes: list[tuple[str, str, dict]], merge: bool = True
    ) -> None:
        """Apply several writes together."""

    @abstractmethod
    async def increment(
        self,
        collection: str,
        doc_id: str,
        fields: dict[str, float],
        extra: dict | None = None,
    ) -> dict:
        """Atomically add to numeric fields, creating the document if needed."""

    @abstractmethod
    async def update(self, collection: str, doc_id: str, mutator: Mutator) -> dict:
        """Atomically read-modify-write a single document.

        The mutator receives the current document (None when missing) and
        returns the full replacement.
        """

    async def add(self, collection: str, data: dict) -> str:
        """Create a document under a generated id and return the id."""
        doc_id = uuid.uuid4().hex
        await self.set(collection, doc_id, data)
        return doc_id


def _matches(doc: dict, where: list[Filter]) -> bool:
    for field, op, expected in where:
        if op not in _OPERATORS:
            raise ValueError(f"Unsupported query operator: {op}")
        value = doc.get(field)
        if value is None:
            if op == "==" and expected is None:
                continue
            return False
        if isinstance(expected, datetime) and isinstance(value, str):
            value = datetime.fromisoformat(value)
            # Date-only and naive values are stored as UTC
            if value.tzinfo is None and expected.tzinfo is not None:
                value = value.replace(tzinfo=timezone.utc)
        if not _OPERATORS[op](value, expected):
            return False
    return True


class JsonDocumentStore(DocumentStore):
    """Stores each collection as one JSON file under ``data_dir``.

    Collections are cached in memory after first load. All writes to a
    collection go through a per-collection lock, which makes ``increment``
    and ``update`` atomic for concurrent coroutines in this process.
    """

    def __init__(self, data_dir: Path = Path("data/store")):
        """Initialize the store.

        Args:
            data_dir: Directory holding one ``{collection}.json`` per collection.
        """
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)
        self._cache: dict[str, dict[str, dict]] = {}
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def _get_file_path(self, collection: str) -> Path:
        return self._data_dir / f"{collection}.json"

    async def _load(self, collection: str) -> dict[str, dict]:
        if collection in self._cache:
            return self._cache[collection]

        file_path = self._get_file_path(collection)
        docs: dict[str, dict] = {}
        if file_path.exists():
            try:
                async with aiofiles.open(file_path, "r") as f:
                    content = await f.read()
                docs = json.loads(content) if content.strip() else {}
            except (OSError, json.JSONDecodeError) as e:
                raise CollaboratorError(
                    f"Failed to read collection {collection}: {e}"
                ) from e

        # A concurrent load may have populated the cache while this one read
        return self._cache.setdefault(collection, docs)

    async def _flush(self, collection: str) -> None:
        file_path = self._get_file_path(collection)
        try:
            async with aiofiles.open(file_path, "w") as f:
                await f.write(
                    json.dumps(self._cache[collection], indent=2, default=str)
                )
        except OSError as e:
            raise CollaboratorError(
                f"Failed to write collection {collection}: {e}"
            ) from e

    @staticmethod
    def _export(doc_id: str, doc: dict) -> dict:
        return {**json.loads(json.dumps(doc, default=str)), "id": doc_id}

    @staticmethod
    def _normalize(data: dict) -> dict:
        clean = {k: v for k, v in data.items() if k != "id"}
        return json.loads(json.dumps(clean, default=str))

    async def get(self, collection: str, doc_id: str) -> dict | None:
        docs = await self._load(collection)
        doc = docs.get(doc_id)
        return self._export(doc_id, doc) if doc is not None else None

    async def set(
        self, collection: str, doc_id: str, data: dict, merge: bool = False
    ) -> None:
        async with self._locks[collection]:
            docs = await self._load(collection)
            if merge and doc_id in docs:
                docs[doc_id] = {**docs[doc_id], **self._normalize(data)}
            else:
                docs[doc_id] = self._normalize(data)
            await self._flush(collection)

    async def query(
        self,
        collection: str,
        where: list[Filter] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict]:
        docs = await self._load(collection)
        results = [
            self._export(doc_id, doc)
            for doc_id, doc in docs.items()
            if _matches(doc, where or [])
        ]

        if order_by:
            with_key = [d for d in results if d.get(order_by) is not None]
            without_key = [d for d in results if d.get(order_by) is None]
            with_key.sort(key=lambda d: d[order_by], reverse=descending)
            results = with_key + without_key

        if limit is not None:
            results = results[:limit]
        return results

    async def batch_set(
        self, writes: list[tuple[str, str, dict]], merge: bool = True
    ) -> None:
        collections = sorted({collection for collection, _, _ in writes})
        for collection in collections:
            await self._locks[collection].acquire()
        try:
            for collection, doc_id, data in writes:
                docs = await self._load(collection)
                if merge and doc_id in docs:
                    docs[doc_id] = {**docs[doc_id], **self._normalize(data)}
                else:
                    docs[doc_id] = self._normalize(data)
            for collection in collections:
                await self._flush(collection)
        finally:
            for collection in collections:
                self._locks[collection].release()

    async def increment(
        self,
        collection: str,
        doc_id: str,
        fields: dict[str, float],
        extra: dict | None = None,
    ) -> dict:
        async with self._locks[collection]:
            docs = await self._load(collection)
            doc = dict(docs.get(doc_id, {}))
            for field, amount in fields.items():
                doc[field] = (doc.get(field) or 0) + amount
            if extra:
                doc.update(self._normalize(extra))
            docs[doc_id] = doc
            await self._flush(collection)
            return self._export(doc_id, doc)

    async def update(self, collection: str, doc_id: str, mutator: Mutator) -> dict:
        async with self._locks[collection]:
            docs = await self._load(collection)
            current = docs.get(doc_id)
            snapshot = self._export(doc_id, current) if current is not None else None
            updated = self._normalize(mutator(snapshot))
            docs[doc_id] = updated
            await self._flush(collection)
            return self._export(doc_id, updated)
