"""
JSON utilities for fields the graph store keeps as serialized text.
"""

import json
from numbers import Real
from typing import Any, Dict, List, Optional


def parse_metadata(raw: Any) -> Dict[str, Any]:
    """Parse store-serialized metadata into a dict.

    Unparsable or non-object metadata degrades to an empty dict instead of raising.

    Args:
        raw: Metadata as stored (JSON text, dict, or None)

    Returns:
        Metadata dict
    """
    if isinstance(raw, dict):
        return dict(raw)
    if not raw or not isinstance(raw, (str, bytes)):
        return {}
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return {}
    return parsed if isinstance(parsed, dict) else {}


def parse_vector(raw: Any) -> Optional[List[float]]:
    """Parse a stored embedding (JSON text or list) into a list of numbers.

    Returns None when nothing usable is stored. Non-numeric components are kept as-is;
    similarity computation skips them.
    """
    if raw is None:
        return None
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (TypeError, ValueError):
            return None
    if not isinstance(raw, (list, tuple)) or not raw:
        return None
    return [float(item) if isinstance(item, Real) and not isinstance(item, bool) else item for item in raw]
