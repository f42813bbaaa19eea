"""
Query Classifier deciding which retrieval strategy a free-text query should use.
"""

import re
from typing import Callable, List, Optional

from ..models.core import QueryIntent, QueryPreprocessing, QueryType
from ..utils.errors import ErrorCodes, ValidationError

WILDCARD_TOKENS = {'', '*', 'all'}

UUID_PATTERN = re.compile(r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$', re.IGNORECASE)
VERSION_PATTERN = re.compile(r'^v?\d+\.\d+\.\d+(?:\.\d+)*(?:[-+][0-9a-z.-]+)?$', re.IGNORECASE)
BASE64_PATTERN = re.compile(r'^[a-z0-9+/]+={0,2}$', re.IGNORECASE)
# Words glued to digits ("mixed123text", "abc123") are text, not encoded tokens
MIXED_TEXT_PATTERN = re.compile(r'^[a-z]+\d+[a-z]*$|^\d+[a-z]+\d*$', re.IGNORECASE)
LETTER_PATTERN = re.compile(r'[^\W\d_]')

BASE64_MIN_LENGTH = 8

WILDCARD_CONFIDENCE = 1.0
UUID_CONFIDENCE = 0.95
VERSION_CONFIDENCE = 0.9
BASE64_CONFIDENCE = 0.85
EXACT_CONFIDENCE = 0.9
SEMANTIC_CONFIDENCE = 0.8


def _uuid_confidence(query: str) -> Optional[float]:
    return UUID_CONFIDENCE if UUID_PATTERN.match(query) else None


def _version_confidence(query: str) -> Optional[float]:
    return VERSION_CONFIDENCE if VERSION_PATTERN.match(query) else None


def _base64_confidence(query: str) -> Optional[float]:
    if len(query) <= BASE64_MIN_LENGTH or not BASE64_PATTERN.match(query):
        return None
    if MIXED_TEXT_PATTERN.match(query):
        return None
    return BASE64_CONFIDENCE


# Evaluated in order, first match wins
TECHNICAL_IDENTIFIER_RULES: List[Callable[[str], Optional[float]]] = [
    _uuid_confidence,
    _version_confidence,
    _base64_confidence,
]


class QueryClassifier:
    """Pure classifier: query text in, QueryIntent out. No I/O."""

    def classify(self, query: str) -> QueryIntent:
        """
        Classify a query.

        Decision order: wildcard, technical identifier, exact (no letters), semantic.

        Args:
            query: Free-text query; empty or whitespace-only is a wildcard

        Returns:
            QueryIntent with type, fixed confidence and preprocessing flags

        Raises:
            ValidationError: If query is None or not a string
        """
        if query is None or not isinstance(query, str):
            raise ValidationError('Query must be a non-empty string',
                                  ErrorCodes.INVALID_QUERY,
                                  data={'queryType': type(query).__name__})

        trimmed = query.strip()
        normalized = trimmed.lower()

        if normalized in WILDCARD_TOKENS:
            return self._intent(QueryType.WILDCARD, WILDCARD_CONFIDENCE, normalized, special=False)

        confidence = self._technical_identifier_confidence(trimmed)
        if confidence is not None:
            return self._intent(QueryType.TECHNICAL_IDENTIFIER, confidence, normalized, special=True)

        if not LETTER_PATTERN.search(normalized):
            return self._intent(QueryType.EXACT_SEARCH, EXACT_CONFIDENCE, normalized, special=True)

        return self._intent(QueryType.SEMANTIC_SEARCH, SEMANTIC_CONFIDENCE, normalized, special=False)

    def _technical_identifier_confidence(self, query: str) -> Optional[float]:
        for rule in TECHNICAL_IDENTIFIER_RULES:
            confidence = rule(query)
            if confidence is not None:
                return confidence
        return None

    @staticmethod
    def _intent(query_type: QueryType, confidence: float, normalized: str, special: bool) -> QueryIntent:
        return QueryIntent(type=query_type,
                           confidence=confidence,
                           preprocessing=QueryPreprocessing(normalized=normalized,
                                                            is_special_pattern=special,
                                                            requires_exact_match=special))
