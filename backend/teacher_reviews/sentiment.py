from __future__ import annotations
from typing import Protocol

from .models import Sentiment


class SentimentClassifier(Protocol):
	def classify(self, comment: str) -> Sentiment: ...


class StaticSentiment:
	"""Placeholder classifier: every review gets the same label."""

	def __init__(self, label: Sentiment = Sentiment.NEUTRAL) -> None:
		self.label = label

	def classify(self, comment: str) -> Sentiment:
		return self.label


_classifier: SentimentClassifier = StaticSentiment()


def get_sentiment_classifier() -> SentimentClassifier:
	return _classifier
