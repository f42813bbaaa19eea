"""
Graph Traversal Processor for explicit, depth-bounded neighborhood requests.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from ..models.core import RelatedNode, TraversalDirection
from ..utils.config import SearchConfig, config as app_config
from ..utils.errors import ErrorCodes, ValidationError
from ..utils.logging_config import get_logger
from ..utils.neptune_client import NeptuneClient
from ..utils.record_utils import normalize_related_nodes

logger = get_logger(__name__)

DEFAULT_MAX_DEPTH = 2
DEFAULT_DIRECTION = TraversalDirection.BOTH

RETURN_FIELDS = """
    RETURN DISTINCT {node}.id AS id,
                    {node}.name AS name,
                    {node}.memoryType AS type,
                    distance,
                    {rel}.relationType AS relation,
                    {rel}.strength AS strength,
                    {rel}.source AS source,
                    {rel}.createdAt AS createdAt
    ORDER BY distance ASC, name ASC
    LIMIT $limit
"""


@dataclass
class ProcessedTraversal:
    """openCypher traversal request and its bound parameters."""
    query: str
    params: Dict[str, Any] = field(default_factory=dict)
    direction: TraversalDirection = DEFAULT_DIRECTION


def _relation_filter(relation_types: Optional[List[str]]) -> str:
    if not relation_types:
        return ''
    return 'ALL(rel IN relationships(path) WHERE rel.relationType IN $relationTypes) AND '


class GraphTraversalProcessor:
    """Builds traversal requests independent of query classification."""

    def __init__(self, config: Optional[SearchConfig] = None):
        self.config = config or app_config.search

    def process_traversal(self, options: Mapping[str, Any]) -> ProcessedTraversal:
        """
        Build a traversal request.

        Args:
            options: Mapping with traverseFrom, and optionally maxDepth, traverseDirection, traverseRelations

        Returns:
            ProcessedTraversal with query text and bound parameters

        Raises:
            ValidationError: If any option is out of contract; no request is built
        """
        self.validate_traversal_options(options)

        max_depth = int(options.get('maxDepth') or DEFAULT_MAX_DEPTH)
        direction = TraversalDirection(options.get('traverseDirection') or DEFAULT_DIRECTION)
        relation_types = options.get('traverseRelations')

        params: Dict[str, Any] = {
            'startId': options['traverseFrom'],
            'maxDepth': max_depth,
            'limit': int(self.config.traversal_result_limit)
        }
        if relation_types:
            params['relationTypes'] = list(relation_types)

        builders = {
            TraversalDirection.OUTBOUND: self._build_outbound,
            TraversalDirection.INBOUND: self._build_inbound,
            TraversalDirection.BOTH: self._build_bidirectional,
        }
        query = builders[direction](max_depth, relation_types)
        logger.debug(f'Traversal from {params["startId"]} ({direction.value}, depth {max_depth})')
        return ProcessedTraversal(query=query, params=params, direction=direction)

    def _build_outbound(self, max_depth: int, relation_types: Optional[List[str]]) -> str:
        return f"""
            MATCH (start:Memory {{id: $startId}})
            MATCH path = (start)-[:RELATES_TO*1..{max_depth}]->(target:Memory)
            WHERE {_relation_filter(relation_types)}target <> start AND target.id IS NOT NULL
            WITH target, length(path) AS distance, relationships(path)[0] AS firstRel
            {RETURN_FIELDS.format(node='target', rel='firstRel')}
        """

    def _build_inbound(self, max_depth: int, relation_types: Optional[List[str]]) -> str:
        return f"""
            MATCH (target:Memory {{id: $startId}})
            MATCH path = (origin:Memory)-[:RELATES_TO*1..{max_depth}]->(target)
            WHERE {_relation_filter(relation_types)}origin <> target AND origin.id IS NOT NULL
            WITH origin, length(path) AS distance, relationships(path)[-1] AS lastRel
            {RETURN_FIELDS.format(node='origin', rel='lastRel')}
        """

    def _build_bidirectional(self, max_depth: int, relation_types: Optional[List[str]]) -> str:
        return f"""
            MATCH (center:Memory {{id: $startId}})
            MATCH path = (center)-[:RELATES_TO*1..{max_depth}]-(connected:Memory)
            WHERE {_relation_filter(relation_types)}connected <> center AND connected.id IS NOT NULL
            WITH connected, length(path) AS distance,
                 CASE WHEN startNode(relationships(path)[0]) = center
                      THEN relationships(path)[0]
                      ELSE relationships(path)[-1] END AS relevantRel
            {RETURN_FIELDS.format(node='connected', rel='relevantRel')}
        """

    def validate_traversal_options(self, options: Mapping[str, Any]) -> None:
        """
        Validate traversal options.

        Raises:
            ValidationError: With INVALID_TRAVERSAL_OPTIONS naming the offending option
        """
        traverse_from = options.get('traverseFrom')
        if not isinstance(traverse_from, str) or not traverse_from.strip():
            raise ValidationError('traverseFrom memory ID is required for graph traversal',
                                  ErrorCodes.INVALID_TRAVERSAL_OPTIONS)

        ceiling = self.config.max_traversal_depth
        max_depth = options.get('maxDepth')
        if max_depth is not None:
            if isinstance(max_depth, bool) or not isinstance(max_depth, (int, float)) or not 1 <= max_depth <= ceiling:
                raise ValidationError(f'maxDepth must be between 1 and {ceiling}',
                                      ErrorCodes.INVALID_TRAVERSAL_OPTIONS,
                                      data={'maxDepth': max_depth})

        direction = options.get('traverseDirection')
        valid_directions = [item.value for item in TraversalDirection]
        if direction and direction not in valid_directions:
            raise ValidationError(f'Invalid traversal direction: {direction}. Valid options: {", ".join(valid_directions)}',
                                  ErrorCodes.INVALID_TRAVERSAL_OPTIONS,
                                  data={'traverseDirection': direction})

        relations = options.get('traverseRelations')
        if relations is not None:
            if not isinstance(relations, (list, tuple)):
                raise ValidationError('traverseRelations must be a list of relation types',
                                      ErrorCodes.INVALID_TRAVERSAL_OPTIONS)
            if len(relations) == 0:
                raise ValidationError('traverseRelations array cannot be empty if provided',
                                      ErrorCodes.INVALID_TRAVERSAL_OPTIONS)

    @staticmethod
    def process_traversal_results(rows: List[Dict[str, Any]]) -> List[RelatedNode]:
        """Normalize traversal rows; wrapped or invalid distances become native ints (0 when invalid)."""
        return normalize_related_nodes(rows)

    @staticmethod
    def get_supported_directions() -> List[str]:
        """Supported traversal directions for user guidance."""
        return [
            'outbound: What this memory influences',
            'inbound: What influences this memory',
            'both: All connected memories (default)',
        ]


class GraphTraversalService:
    """Runs processed traversals against the graph store in a pooled session."""

    def __init__(self, neptune_client: NeptuneClient, processor: Optional[GraphTraversalProcessor] = None):
        self.neptune_client = neptune_client
        self.processor = processor or GraphTraversalProcessor()

    def traverse(self, options: Mapping[str, Any]) -> List[RelatedNode]:
        """
        Traverse the neighborhood of a memory.

        Args:
            options: Traversal request (traverseFrom, maxDepth, traverseDirection, traverseRelations)

        Returns:
            Related memories ordered by distance, then name
        """
        traversal = self.processor.process_traversal(options)
        with self.neptune_client.session() as session:
            rows = session.run(traversal.query, traversal.params)
        nodes = self.processor.process_traversal_results(rows)
        logger.debug(f'Traversal from {traversal.params["startId"]} returned {len(nodes)} memories')
        return nodes
