# src/analysts/recommendation_book.py
"""Persistence for recommendations and their evaluations."""

from datetime import datetime

from src.analysts.models import (
    Evaluation,
    Recommendation,
    RecommendationStatus,
)
from src.storage.document_store import DocumentStore

RECOMMENDATIONS_COLLECTION = "recommendations"
EVALUATIONS_COLLECTION = "evaluations"


def _recommendation_from_doc(doc: dict) -> Recommendation:
    return Recommendation.model_validate({k: v for k, v in doc.items() if k != "id"})


class RecommendationBook:
    """Stores recommendations and the evaluation resolved for each.

    Evaluations are keyed by recommendation id, which is what enforces at
    most one outcome per recommendation.
    """

    def __init__(self, store: DocumentStore):
        self._store = store

    async def save(self, recommendation: Recommendation) -> Recommendation:
        """Persist a recommendation."""
        await self._store.set(
            RECOMMENDATIONS_COLLECTION,
            recommendation.recommendation_id,
            recommendation.model_dump(mode="json"),
        )
        return recommendation

    async def get(self, recommendation_id: str) -> Recommendation | None:
        doc = await self._store.get(RECOMMENDATIONS_COLLECTION, recommendation_id)
        return _recommendation_from_doc(doc) if doc else None

    async def open_recommendations(
        self,
        ticker: str | None = None,
        created_after: datetime | None = None,
    ) -> list[Recommendation]:
        """Return OPEN recommendations, oldest first.

        Args:
            ticker: Restrict to one ticker.
            created_after: Only recommendations created at or after this time.
        """
        where = [("status", "==", RecommendationStatus.OPEN.value)]
        if ticker:
            where.append(("ticker", "==", ticker.upper()))
        if created_after:
            where.append(("created_at", ">=", created_after))

        docs = await self._store.query(
            RECOMMENDATIONS_COLLECTION, where=where, order_by="created_at"
        )
        return [_recommendation_from_doc(d) for d in docs]

    async def recent_for_analyst(
        self, analyst_id: str, limit: int = 20
    ) -> list[Recommendation]:
        """Return an analyst's latest recommendations, newest first."""
        docs = await self._store.query(
            RECOMMENDATIONS_COLLECTION,
            where=[("analyst_id", "==", analyst_id)],
            order_by="created_at",
            descending=True,
            limit=limit,
        )
        return [_recommendation_from_doc(d) for d in docs]

    async def get_evaluation(self, recommendation_id: str) -> Evaluation | None:
        doc = await self._store.get(EVALUATIONS_COLLECTION, recommendation_id)
        return Evaluation.model_validate(doc) if doc else None

    async def evaluations_for_analyst(
        self, analyst_id: str, since: datetime | None = None
    ) -> list[Evaluation]:
        """Return an analyst's evaluations, optionally since a point in time."""
        where = [("analyst_id", "==", analyst_id)]
        if since:
            where.append(("evaluated_at", ">=", since))
        docs = await self._store.query(
            EVALUATIONS_COLLECTION, where=where, order_by="evaluated_at"
        )
        return [Evaluation.model_validate(d) for d in docs]


    async def close_with_evaluation(
        self, recommendation: Recommendation, evaluation: Evaluation
    ) -> tuple[Evaluation, bool]:
        """Claim a recommendation's single outcome and close it.

        The evaluation is written only if none exists yet, as one atomic
        step on the store. Concurrent callers racing on the same
        recommendation therefore see exactly one winner; the others get the
        stored evaluation back.

        Returns:
            Tuple of (stored evaluation, whether this call created it).
        """
        created = False

        def claim(doc: dict | None) -> dict:
            nonlocal created
            if doc is not None:
                return doc
            created = True
            return evaluation.model_dump(mode="json")

        stored = await self._store.update(
            EVALUATIONS_COLLECTION, recommendation.recommendation_id, claim
        )

        closed = recommendation.model_copy(
            update={"status": RecommendationStatus.CLOSED}
        )
        await self._store.set(
            RECOMMENDATIONS_COLLECTION,
            recommendation.recommendation_id,
            closed.model_dump(mode="json"),
            merge=True,
        )
        return Evaluation.model_validate(stored), created
