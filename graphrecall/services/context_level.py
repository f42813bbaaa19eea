"""
Context Level Processor controlling how much of each memory record is returned.
"""

from typing import Any, Dict, List

from ..models.core import ContextLevel
from ..utils.errors import ErrorCodes, ValidationError

IDENTITY_FIELDS = ('id', 'name', 'memoryType')

CONTEXT_LEVEL_DESCRIPTIONS = {
    ContextLevel.MINIMAL: 'Only id, name, memoryType, score (for lists and quick references)',
    ContextLevel.FULL: 'Complete memory data with observations and graph context (default)',
    ContextLevel.RELATIONS_ONLY: 'Only id, name, memoryType, and related context (graph analysis)',
}


def _identity(record: Dict[str, Any]) -> Dict[str, Any]:
    projected = {key: record.get(key) for key in IDENTITY_FIELDS}
    if record.get('score') is not None:
        projected['score'] = record['score']
    return projected


class ContextLevelProcessor:
    """Projects response records to the minimal, relations-only or full view."""

    def apply_context_level(self, results: List[Dict[str, Any]], level: str = ContextLevel.FULL) -> List[Dict[str, Any]]:
        """
        Project records to a context level.

        Args:
            results: Full response records
            level: minimal, relations-only or full

        Returns:
            Projected records; ``full`` returns the input unchanged

        Raises:
            ValidationError: If the level is unknown
        """
        level = self.validate_context_level(level)

        if level == ContextLevel.MINIMAL:
            return [_identity(record) for record in results]

        if level == ContextLevel.RELATIONS_ONLY:
            projected = []
            for record in results:
                item = _identity(record)
                if record.get('related'):
                    item['related'] = record['related']
                projected.append(item)
            return projected

        return results

    def validate_context_level(self, level: Any) -> ContextLevel:
        """
        Validate a context level value.

        Raises:
            ValidationError: If the value is not minimal, full or relations-only
        """
        try:
            return ContextLevel(level)
        except ValueError:
            valid = ', '.join(item.value for item in ContextLevel)
            raise ValidationError(f'Invalid context level: {level}. Valid options: {valid}',
                                  ErrorCodes.INVALID_CONTEXT_LEVEL,
                                  data={'contextLevel': level})

    @staticmethod
    def get_context_level_description(level: str) -> str:
        return CONTEXT_LEVEL_DESCRIPTIONS[ContextLevel(level)]
