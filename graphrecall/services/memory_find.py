"""
Unified memory find: one entry point routing between search, direct retrieval and graph traversal.
"""

import json
import time
from typing import Any, Dict, List, Mapping, Optional

from ..models.core import ContextLevel, GraphContext, Memory, RelatedNode, TraversalDirection
from ..utils.config import SearchConfig, config as app_config
from ..utils.errors import ErrorCodes, GraphRecallError, ValidationError, to_recall_error
from ..utils.logging_config import get_logger
from ..utils.neptune_client import NeptuneClient
from .context_level import ContextLevelProcessor
from .date_filter import DateFilterProcessor, extract_date_filters
from .embedding_manager import EmbeddingManager
from .graph_context import GraphContextService
from .graph_traversal import GraphTraversalProcessor
from .search_orchestrator import SearchOrchestrator
from .search_strategies import MemoryReader, native_limit

logger = get_logger(__name__)

ORDER_BY_FIELDS = {
    'relevance': None,
    'created': 'createdAt',
    'modified': 'modifiedAt',
    'accessed': 'lastAccessed',
}

TRAVERSAL_KEYS = ('traverseFrom', 'traverseRelations', 'maxDepth', 'traverseDirection')

STARTING_POINT_TYPE = 'starting_point'


def parse_id_list(query: Any) -> Optional[List[str]]:
    """Return the ids of a list query (a real list or a JSON-stringified list of strings), else None."""
    if isinstance(query, (list, tuple)):
        return [str(item) for item in query]
    if not isinstance(query, str):
        return None

    text = query.strip()
    if not (text.startswith('[') and text.endswith(']')):
        return None
    try:
        parsed = json.loads(text)
    except ValueError:
        return None
    if isinstance(parsed, list) and all(isinstance(item, str) for item in parsed):
        return parsed
    return None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class MemoryFindService:
    """Validates a find request, runs the matching pathway and shapes the response."""

    def __init__(self,
                 neptune_client: NeptuneClient,
                 embedding_manager: Optional[EmbeddingManager] = None,
                 config: Optional[SearchConfig] = None,
                 orchestrator: Optional[SearchOrchestrator] = None):
        """
        Initialize the find service.

        Args:
            neptune_client: Graph store client providing pooled sessions
            embedding_manager: Embedding lifecycle manager for semantic search
            config: SearchConfig (optional, uses global config if None)
            orchestrator: SearchOrchestrator (optional, built from the other arguments if None)
        """
        self.neptune_client = neptune_client
        self.config = config or app_config.search
        self.orchestrator = orchestrator or SearchOrchestrator(neptune_client, embedding_manager, self.config)
        self.context_processor = ContextLevelProcessor()
        self.date_processor = DateFilterProcessor()
        self.traversal_processor = GraphTraversalProcessor(self.config)
        self.graph_context = GraphContextService(self.config)

    def find(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Find memories.

        Args:
            request: Find request with query, and optionally limit, memoryTypes, includeContext,
                threshold, orderBy, date filter keys and traversal keys

        Returns:
            Dict with ``memories`` and ``_meta`` (total, query, queryTime in ms, contextLevel)

        Raises:
            ValidationError: If the request is malformed; raised before any store call
            GraphRecallError: If the store or embedding provider fails
        """
        start = time.monotonic()
        self.validate_find_request(request)
        context_level = ContextLevel(request.get('includeContext') or ContextLevel.FULL)
        include_graph_context = context_level != ContextLevel.MINIMAL

        try:
            if request.get('traverseFrom'):
                records = self._traverse(request)
            else:
                ids = parse_id_list(request.get('query'))
                if ids is not None:
                    records = self._retrieve(ids, request.get('memoryTypes'), include_graph_context)
                else:
                    records = self._search(request, include_graph_context)
        except GraphRecallError:
            raise
        except Exception as e:
            logger.error(f'Memory find failed: {e}')
            raise to_recall_error(e).with_data(query=request.get('query')) from e

        records = self._order(records, request.get('orderBy') or 'relevance')
        memories = self.context_processor.apply_context_level(records, context_level)

        return {
            'memories': memories,
            '_meta': {
                'total': len(memories),
                'query': request.get('query'),
                'queryTime': int((time.monotonic() - start) * 1000),
                'contextLevel': context_level.value
            }
        }

    def validate_find_request(self, request: Mapping[str, Any]) -> None:
        """
        Validate a find request.

        Raises:
            ValidationError: Naming the first offending parameter
        """
        query = request.get('query')
        if not request.get('traverseFrom'):
            if query is None or (isinstance(query, str) and not query.strip()):
                raise ValidationError('query parameter is required', ErrorCodes.VALIDATION_FAILED)
            if not isinstance(query, (str, list, tuple)):
                raise ValidationError('Query must be string for search operation',
                                      ErrorCodes.INVALID_QUERY,
                                      data={'queryType': type(query).__name__})

        limit = request.get('limit')
        if limit is not None:
            if not _is_number(limit):
                raise ValidationError('limit must be positive', ErrorCodes.INVALID_PARAMS, data={'limit': limit})
            native_limit(limit)

        threshold = request.get('threshold')
        if threshold is not None and (not _is_number(threshold) or not 0 <= threshold <= 1):
            raise ValidationError('threshold must be between 0.0 and 1.0',
                                  ErrorCodes.INVALID_PARAMS,
                                  data={'threshold': threshold})

        if request.get('includeContext'):
            self.context_processor.validate_context_level(request['includeContext'])

        order_by = request.get('orderBy')
        if order_by and order_by not in ORDER_BY_FIELDS:
            raise ValidationError(f'Invalid orderBy: {order_by}. Valid options: {", ".join(ORDER_BY_FIELDS)}',
                                  ErrorCodes.VALIDATION_FAILED,
                                  data={
                                      'providedOrderBy': order_by,
                                      'validOptions': list(ORDER_BY_FIELDS)
                                  })

        if any(request.get(key) is not None for key in TRAVERSAL_KEYS):
            if not request.get('traverseFrom'):
                raise ValidationError('traverseFrom is required when using graph traversal parameters',
                                      ErrorCodes.INVALID_TRAVERSAL_OPTIONS)
            self.traversal_processor.validate_traversal_options(request)

        date_filters = extract_date_filters(request)
        if date_filters:
            self.date_processor.validate_date_filters(date_filters)

    def _search(self, request: Mapping[str, Any], include_graph_context: bool) -> List[Dict[str, Any]]:
        date_filters = extract_date_filters(request)
        date_filter = self.date_processor.process_date_filters(date_filters) if date_filters else None

        limit = request.get('limit')
        threshold = request.get('threshold')
        results = self.orchestrator.search(request['query'],
                                           limit=limit if limit is not None else self.config.default_limit,
                                           include_graph_context=include_graph_context,
                                           memory_types=request.get('memoryTypes'),
                                           threshold=threshold if threshold is not None else self.config.default_threshold,
                                           date_filter=date_filter)
        return [result.to_dict() for result in results]

    def _retrieve(self, ids: List[str], memory_types: Optional[List[str]], include_graph_context: bool) -> List[Dict[str, Any]]:
        memories = self.retrieve_by_ids(ids, memory_types, include_graph_context)
        return [memory.to_dict() for memory in memories]

    def retrieve_by_ids(self,
                        ids: List[str],
                        memory_types: Optional[List[str]] = None,
                        include_graph_context: bool = True) -> List[Memory]:
        """
        Fetch full memory records by ID.

        Args:
            ids: Memory IDs, returned in this order
            memory_types: Optional memoryType allow-list
            include_graph_context: Attach ancestors/descendants

        Returns:
            Memories that exist (unknown IDs are dropped)
        """
        with self.neptune_client.session() as session:
            memories = MemoryReader(session).fetch_ordered(ids, memory_types)
            if include_graph_context and memories:
                contexts = self.graph_context.get_graph_context(session, [memory.id for memory in memories])
                for memory in memories:
                    memory.related = contexts.get(memory.id)
        logger.debug(f'Retrieved {len(memories)}/{len(ids)} memories by ID')
        return memories

    def _traverse(self, request: Mapping[str, Any]) -> List[Dict[str, Any]]:
        traversal = self.traversal_processor.process_traversal(request)
        start_id = traversal.params['startId']

        with self.neptune_client.session() as session:
            rows = session.run(traversal.query, traversal.params)
            nodes = self.traversal_processor.process_traversal_results(rows)
            if not nodes:
                return []
            found = MemoryReader(session).fetch([node.id for node in nodes])

        records = []
        for node in nodes:
            memory = found.get(node.id)
            if memory is None:
                continue
            memory.related = self._traversal_context(start_id, traversal.direction, node)
            records.append(memory.to_dict())
        return records

    @staticmethod
    def _traversal_context(start_id: str, direction: TraversalDirection, node: RelatedNode) -> GraphContext:
        """Relationship entry pointing from a traversal hit back at the starting memory."""
        entry = RelatedNode(id=start_id,
                            name=start_id,
                            type=STARTING_POINT_TYPE,
                            relation=node.relation,
                            distance=node.distance,
                            strength=node.strength,
                            source=node.source,
                            created_at=node.created_at)
        if direction == TraversalDirection.OUTBOUND:
            return GraphContext(ancestors=[entry])
        if direction == TraversalDirection.INBOUND:
            return GraphContext(descendants=[entry])
        return GraphContext(ancestors=[entry], descendants=[entry])

    @staticmethod
    def _order(records: List[Dict[str, Any]], order_by: str) -> List[Dict[str, Any]]:
        field_name = ORDER_BY_FIELDS[order_by]
        if field_name is None:
            return records
        # records missing the timestamp sort last
        dated = [record for record in records if record.get(field_name)]
        undated = [record for record in records if not record.get(field_name)]
        return sorted(dated, key=lambda record: record[field_name], reverse=True) + undated
