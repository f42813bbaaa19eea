"""
Boundary normalization for rows returned by the graph store.

Rows arrive as loosely typed dicts. Everything the rest of the package touches goes through
these functions first so that numbers are native, metadata is a dict, observations are
well-formed and empty graph context collapses to None.
"""

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from ..models.core import GraphContext, Memory, Observation, RelatedNode
from .json_utils import parse_metadata
from .timestamp_utils import to_iso_string


def to_int(value: Any, default: int = 0) -> int:
    """Normalize a store integer to a native int.

    Handles native numbers, Decimal, wrapper objects exposing ``to_number``/``toNumber``,
    ``{low, high}`` 64-bit pairs and numeric strings. Missing or invalid values give ``default``.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        try:
            return int(value)
        except (ValueError, OverflowError):
            return default
    for method in ('to_number', 'toNumber'):
        converter = getattr(value, method, None)
        if callable(converter):
            return to_int(converter(), default)
    if isinstance(value, dict) and isinstance(value.get('low'), int) and isinstance(value.get('high'), int):
        return (value['high'] << 32) + (value['low'] & 0xFFFFFFFF)
    try:
        return int(str(value).strip(), 10)
    except ValueError:
        return default


def to_float(value: Any) -> Optional[float]:
    """Normalize an optional store number to a native float (None stays None)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def normalize_observations(raw: Any) -> List[Observation]:
    """Drop malformed observation entries and backfill missing timestamps."""
    if not isinstance(raw, list):
        return []

    observations = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        content = item.get('content')
        if not isinstance(content, str) or not content:
            continue
        observations.append(
            Observation(id=item.get('id'), content=content, created_at=item.get('createdAt') or to_iso_string()))
    return observations


def normalize_related_nodes(raw: Any) -> List[RelatedNode]:
    """Convert raw neighborhood entries to RelatedNode, skipping entries without an id."""
    if not isinstance(raw, list):
        return []

    nodes = []
    for item in raw:
        if not isinstance(item, dict) or item.get('id') is None:
            continue
        nodes.append(
            RelatedNode(id=item['id'],
                        name=item.get('name') or '',
                        type=item.get('type') or '',
                        relation=item.get('relation'),
                        distance=to_int(item.get('distance')),
                        strength=to_float(item.get('strength')),
                        source=item.get('source'),
                        created_at=item.get('createdAt')))
    return nodes


def build_graph_context(ancestors: Any, descendants: Any) -> Optional[GraphContext]:
    """Build a GraphContext, or None when both sides are empty."""
    ancestor_nodes = normalize_related_nodes(ancestors)
    descendant_nodes = normalize_related_nodes(descendants)
    if not ancestor_nodes and not descendant_nodes:
        return None
    return GraphContext(ancestors=ancestor_nodes, descendants=descendant_nodes)


def memory_from_row(row: Dict[str, Any]) -> Memory:
    """Map a memory row (id, name, type, metadata, observations, timestamps) to a Memory."""
    return Memory(id=row.get('id'),
                  name=row.get('name') or '',
                  type=row.get('type') or '',
                  metadata=parse_metadata(row.get('metadata')),
                  observations=normalize_observations(row.get('observations')),
                  created_at=row.get('createdAt'),
                  modified_at=row.get('modifiedAt'),
                  last_accessed=row.get('lastAccessed'))


def unique_ids(ids: Iterable[str]) -> List[str]:
    """Deduplicate ids preserving first-seen order."""
    seen = set()
    ordered = []
    for memory_id in ids:
        if memory_id and memory_id not in seen:
            seen.add(memory_id)
            ordered.append(memory_id)
    return ordered
