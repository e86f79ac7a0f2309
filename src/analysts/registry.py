# src/analysts/registry.py
"""Analyst identity and cumulative statistics over the document store."""

import asyncio
import logging
from typing import Callable

from src.analysts.models import Analyst, utc_now
from src.storage.document_store import DocumentStore

logger = logging.getLogger(__name__)

ANALYSTS_COLLECTION = "analysts"


class AnalystRegistry:
    """Reads and writes analyst records.

    All mutation of an existing analyst goes through ``apply``, which is an
    atomic read-modify-write on the store so concurrent evaluations of the
    same analyst never lose updates.
    """

    def __init__(self, store: DocumentStore, collection: str = ANALYSTS_COLLECTION):
        """Initialize the registry.

        Args:
            store: Document store holding analyst records.
            collection: Collection name for analyst documents.
        """
        self._store = store
        self._collection = collection

    async def get(self, analyst_id: str) -> Analyst | None:
        """Get an analyst by id.

        Args:
            analyst_id: Unique identifier for the analyst.

        Returns:
            Analyst if found, None otherwise.
        """
        doc = await self._store.get(self._collection, analyst_id)
        if doc is None:
            return None
        return Analyst.model_validate(doc)

    async def get_many(self, analyst_ids: list[str]) -> dict[str, Analyst]:
        """Fetch several analysts concurrently, skipping unknown ids."""
        unique_ids = list(dict.fromkeys(analyst_ids))
        analysts = await asyncio.gather(*[self.get(a) for a in unique_ids])
        return {a.analyst_id: a for a in analysts if a is not None}

    async def save(self, analyst: Analyst) -> Analyst:
        """Create or replace an analyst record."""
        await self._store.set(
            self._collection, analyst.analyst_id, analyst.model_dump(mode="json")
        )
        return analyst

    async def get_or_create(
        self, analyst_id: str, name: str | None = None, firm: str = "Unknown"
    ) -> Analyst:
        """Get an existing analyst or create one with neutral defaults.

        Args:
            analyst_id: Unique identifier for the analyst.
            name: Display name used only when creating.
            firm: Firm used only when creating.

        Returns:
            Existing or newly created Analyst.
        """
        analyst = await self.get(analyst_id)
        if analyst is None:
            analyst = Analyst.with_defaults(analyst_id, name=name, firm=firm)
            await self.save(analyst)
            logger.info(f"Created analyst {analyst_id} with default priors")
        return analyst

    async def apply(
        self, analyst_id: str, mutate: Callable[[Analyst], Analyst]
    ) -> Analyst:
        """Atomically apply a mutation to an analyst record.

        A missing analyst is initialized with defaults before the mutation
        runs, so updates never fail on partially set up data.

        Args:
            analyst_id: Analyst to update.
            mutate: Function receiving the current analyst and returning the
                updated one.

        Returns:
            The analyst as persisted.
        """

        def mutator(doc: dict | None) -> dict:
            if doc is None:
                logger.warning(
                    f"Analyst {analyst_id} not found, initializing defaults"
                )
                current = Analyst.with_defaults(analyst_id)
            else:
                current = Analyst.model_validate(doc)
            updated = mutate(current)
            updated.updated_at = utc_now()
            return updated.model_dump(mode="json")

        doc = await self._store.update(self._collection, analyst_id, mutator)
        return Analyst.model_validate(doc)

    async def top_analysts(self, limit: int = 50) -> list[Analyst]:
        """Return analysts ordered by credibility score, best first."""
        docs = await self._store.query(
            self._collection,
            order_by="credibility_score",
            descending=True,
            limit=limit,
        )
        return [Analyst.model_validate(d) for d in docs]
