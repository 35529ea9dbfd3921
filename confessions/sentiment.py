"""
Amazon Comprehend sentiment client.

The sentiment service is an external collaborator: this module only turns
a DetectSentiment call into a SentimentAssessment. Deciding what counts as
toxic is left to the moderation policy.
"""

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from confessions.config import settings
from confessions.errors import SentimentServiceError

logger = logging.getLogger(__name__)


@dataclass
class SentimentAssessment:
    """Sentiment label plus per-class confidence scores."""

    label: str
    scores: Dict[str, float] = field(default_factory=dict)

    @property
    def negative(self) -> float:
        return float(self.scores.get("Negative", 0.0))


class ComprehendSentimentAnalyzer:
    """Sentiment analysis backed by Amazon Comprehend DetectSentiment."""

    def __init__(self, client=None, region_name: str = None, language_code: str = "en"):
        self.client = client or boto3.client(
            "comprehend", region_name=region_name or settings.AWS_REGION
        )
        self.language_code = language_code

    def analyze(self, text: str) -> SentimentAssessment:
        """
        Detect the sentiment of a text.

        Raises:
            SentimentServiceError: if Comprehend cannot be reached or rejects the call
        """
        logger.debug(f"Requesting sentiment for {len(text)} characters")
        try:
            response = self.client.detect_sentiment(
                Text=text, LanguageCode=self.language_code
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Comprehend error: {e}")
            raise SentimentServiceError(str(e)) from e

        assessment = SentimentAssessment(
            label=response.get("Sentiment", "NEUTRAL"),
            scores=response.get("SentimentScore", {}),
        )
        logger.debug(f"Sentiment: {assessment.label} (negative={assessment.negative:.3f})")
        return assessment


def get_sentiment_analyzer() -> Optional[ComprehendSentimentAnalyzer]:
    """
    Build the configured sentiment analyzer.

    Returns None when sentiment screening is disabled.
    """
    if not settings.SENTIMENT_ENABLED:
        return None
    return _comprehend_analyzer()


@lru_cache()
def _comprehend_analyzer() -> ComprehendSentimentAnalyzer:
    return ComprehendSentimentAnalyzer(
        region_name=settings.AWS_REGION,
        language_code=settings.SENTIMENT_LANGUAGE_CODE,
    )
