"""
Date Filter Processor translating ISO or relative time expressions into store predicates.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from ..utils.errors import ErrorCodes, ValidationError
from ..utils.logging_config import get_logger
from ..utils.timestamp_utils import parse_iso, subtract_relative, to_iso_string

logger = get_logger(__name__)

RELATIVE_PATTERN = re.compile(r'^(\d+)([hdmy])$', re.IGNORECASE)

# (option key, memory property, comparison), in predicate order
DATE_FILTER_FIELDS = (
    ('createdAfter', 'createdAt', '>='),
    ('createdBefore', 'createdAt', '<='),
    ('modifiedSince', 'modifiedAt', '>='),
    ('accessedSince', 'lastAccessed', '>='),
)
DATE_FILTER_KEYS = tuple(key for key, _, _ in DATE_FILTER_FIELDS)


@dataclass
class ProcessedDateFilter:
    """Conjunctive predicate over the ``m`` memory variable plus its bound parameters."""
    predicate: str = ''
    params: Dict[str, str] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return bool(self.predicate)


def extract_date_filters(request: Mapping[str, Any]) -> Dict[str, str]:
    """Pick the date filter keys present (and non-empty) in a request."""
    return {key: request[key] for key in DATE_FILTER_KEYS if request.get(key)}


class DateFilterProcessor:
    """Builds created/modified/accessed range predicates for memory queries."""

    def __init__(self, variable: str = 'm'):
        self.variable = variable

    def process_date_filters(self, options: Mapping[str, Any], now: Optional[datetime] = None) -> ProcessedDateFilter:
        """
        Translate date filter options into a predicate.

        Args:
            options: Mapping with any of createdAfter, createdBefore, modifiedSince, accessedSince
            now: Reference time for relative expressions (optional, uses current time if None)

        Returns:
            ProcessedDateFilter; empty predicate and params when no key is present

        Raises:
            ValidationError: If a value is neither ISO-8601 nor a relative expression
        """
        clauses: List[str] = []
        params: Dict[str, str] = {}

        for key, prop, operator in DATE_FILTER_FIELDS:
            value = options.get(key)
            if not value:
                continue
            params[key] = to_iso_string(self._parse_date(value, now))
            clauses.append(f'{self.variable}.{prop} {operator} ${key}')

        if clauses:
            logger.debug(f'Date filter predicate built from {list(params)}')
        return ProcessedDateFilter(predicate=' AND '.join(clauses), params=params)

    def validate_date_filters(self, options: Mapping[str, Any], now: Optional[datetime] = None) -> None:
        """
        Validate date filter options.

        Raises:
            ValidationError: If any value is malformed, or createdAfter is not earlier than createdBefore
        """
        parsed = {}
        for key in DATE_FILTER_KEYS:
            value = options.get(key)
            if not value:
                continue
            try:
                parsed[key] = self._parse_date(value, now)
            except ValidationError as e:
                raise ValidationError(f'Invalid {key}: {e.message}', ErrorCodes.INVALID_DATE_FILTER, data={key: value})

        if 'createdAfter' in parsed and 'createdBefore' in parsed and parsed['createdAfter'] >= parsed['createdBefore']:
            raise ValidationError('createdAfter must be earlier than createdBefore',
                                  ErrorCodes.INVALID_DATE_FILTER,
                                  data={
                                      'createdAfter': options['createdAfter'],
                                      'createdBefore': options['createdBefore']
                                  })

    def _parse_date(self, value: Any, now: Optional[datetime] = None) -> datetime:
        if not isinstance(value, str):
            raise ValidationError(f'Invalid date format: {value}', ErrorCodes.INVALID_DATE_FILTER, data={'value': value})

        text = value.strip()
        relative = RELATIVE_PATTERN.match(text)
        if relative:
            try:
                return subtract_relative(int(relative.group(1)), relative.group(2), now)
            except (ValueError, OverflowError):
                raise ValidationError(f'Invalid date format: {value}. Relative date is out of range',
                                      ErrorCodes.INVALID_DATE_FILTER,
                                      data={'value': value})

        try:
            return parse_iso(text)
        except (ValueError, OverflowError):
            raise ValidationError(
                f'Invalid date format: {value}. Use ISO format (2025-01-01) or relative format (1h, 24h, 7d, 30d, 3m, 1y)',
                ErrorCodes.INVALID_DATE_FILTER,
                data={'value': value})

    @staticmethod
    def get_supported_formats() -> List[str]:
        """Supported date formats for user guidance."""
        return [
            'ISO dates: "2025-01-01", "2025-01-01T10:00:00Z"',
            'Relative: "1h" (1 hour ago), "24h" (24 hours ago)',
            'Relative: "7d" (7 days ago), "30d" (30 days ago)',
            'Relative: "3m" (3 months ago), "1y" (1 year ago)',
        ]
