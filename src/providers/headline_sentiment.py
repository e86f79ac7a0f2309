# src/providers/headline_sentiment.py
import logging

from transformers import pipeline

logger = logging.getLogger(__name__)


class HeadlineSentimentAnalyzer:
    """Headline sentiment using the FinTwitBERT model."""

    DEFAULT_MODEL = "StephanAkkerman/FinTwitBERT-sentiment"

    def __init__(self, model_name: str | None = None, batch_size: int = 32):
        """Initialize the analyzer.

        The model is loaded on first use so that building the service graph
        does not download weights.

        Args:
            model_name: HuggingFace model name. Defaults to FinTwitBERT.
            batch_size: Batch size for inference.
        """
        self.model_name = model_name or self.DEFAULT_MODEL
        self.batch_size = batch_size
        self._pipeline = None

    def _get_pipeline(self):
        if self._pipeline is None:
            logger.info(f"Loading sentiment model {self.model_name}")
            self._pipeline = pipeline(
                "text-classification",
                model=self.model_name,
                top_k=None,  # Return all labels with scores
            )
        return self._pipeline

    def analyze_batch(self, texts: list[str]) -> list[float]:
        """Score each text from -1.0 (bearish) to 1.0 (bullish).

        Blank texts score 0.0 and are not sent to the model.
        """
        scores = [0.0 for _ in texts]
        valid_indices = [i for i, text in enumerate(texts) if text and text.strip()]
        if not valid_indices:
            return scores

        batch_results = self._get_pipeline()(
            [texts[i] for i in valid_indices], batch_size=self.batch_size
        )
        for idx, batch_result in zip(valid_indices, batch_results):
            parsed = batch_result if isinstance(batch_result, list) else [batch_result]
            scores[idx] = self._parse_result(parsed)
        return scores

    def score_headlines(self, titles: list[str]) -> tuple[float, str]:
        """Average headline sentiment.

        Returns:
            Tuple of (score from -1.0 to 1.0, label).
        """
        scores = self.analyze_batch(titles)
        if not scores:
            return 0.0, "neutral"

        score = sum(scores) / len(scores)
        if score > 0.2:
            label = "positive"
        elif score < -0.2:
            label = "negative"
        else:
            label = "neutral"
        return score, label

    @staticmethod
    def _parse_result(predictions: list[dict]) -> float:
        label_scores = {pred["label"].lower(): pred["score"] for pred in predictions}
        bullish = label_scores.get("bullish", label_scores.get("positive", 0.0))
        bearish = label_scores.get("bearish", label_scores.get("negative", 0.0))
        return bullish - bearish
