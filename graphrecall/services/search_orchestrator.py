"""
Search Orchestrator selecting and running the strategy chosen by the query classifier.
"""

from typing import Any, List, Optional

from ..models.core import SearchParams, SearchResult
from ..utils.config import SearchConfig, config as app_config
from ..utils.errors import ErrorCodes, GraphRecallError, ValidationError, to_recall_error
from ..utils.logging_config import get_logger
from ..utils.neptune_client import NeptuneClient
from .date_filter import ProcessedDateFilter
from .embedding_manager import EmbeddingManager
from .graph_context import GraphContextService
from .query_classifier import QueryClassifier
from .search_strategies import STRATEGIES, native_limit

logger = get_logger(__name__)


def validate_search_params(query: Any, limit: Any, threshold: Any) -> None:
    """
    Reject malformed caller input before any store or provider call.

    Raises:
        ValidationError: If query is not a string, limit is below 1 or threshold is outside [0, 1]
    """
    if query is None or not isinstance(query, str):
        raise ValidationError('Query must be a non-empty string', ErrorCodes.INVALID_QUERY)
    if isinstance(limit, bool) or not isinstance(limit, (int, float)):
        raise ValidationError('limit must be a positive number', ErrorCodes.INVALID_PARAMS, data={'limit': limit})
    native_limit(limit)
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)) or not 0 <= threshold <= 1:
        raise ValidationError('threshold must be between 0 and 1', ErrorCodes.INVALID_PARAMS, data={'threshold': threshold})


class SearchOrchestrator:
    """Classifies a query and hands it to exactly one strategy. No fallback, no fusion."""

    def __init__(self,
                 neptune_client: NeptuneClient,
                 embedding_manager: Optional[EmbeddingManager] = None,
                 config: Optional[SearchConfig] = None,
                 classifier: Optional[QueryClassifier] = None):
        """
        Initialize the search orchestrator.

        Args:
            neptune_client: Graph store client providing pooled sessions
            embedding_manager: Embedding lifecycle manager used by semantic search
            config: SearchConfig (optional, uses global config if None)
            classifier: QueryClassifier (optional)
        """
        self.neptune_client = neptune_client
        self.embedding_manager = embedding_manager
        self.config = config or app_config.search
        self.classifier = classifier or QueryClassifier()
        self.graph_context = GraphContextService(self.config)

    def search(self,
               query: str,
               limit: int = 10,
               include_graph_context: bool = True,
               memory_types: Optional[List[str]] = None,
               threshold: float = 0.1,
               date_filter: Optional[ProcessedDateFilter] = None) -> List[SearchResult]:
        """
        Search memories.

        Args:
            query: Free-text query
            limit: Maximum number of results
            include_graph_context: Attach ancestors/descendants to each result
            memory_types: Optional memoryType allow-list
            threshold: Minimum similarity for semantic results
            date_filter: Processed date predicate (optional)

        Returns:
            Results as produced by the selected strategy

        Raises:
            ValidationError: If the caller input is malformed
            GraphRecallError: Strategy failure, with the originating query in ``data['query']``
        """
        validate_search_params(query, limit, threshold)
        intent = self.classifier.classify(query)
        strategy_class = STRATEGIES[intent.type]
        logger.debug(f'Query classified as {intent.type.value} ({intent.confidence}), using {strategy_class.__name__}')

        params = SearchParams(intent=intent,
                              query=query,
                              limit=limit,
                              include_graph_context=include_graph_context,
                              memory_types=memory_types or None,
                              threshold=threshold,
                              date_predicate=date_filter.predicate if date_filter else '',
                              date_params=dict(date_filter.params) if date_filter else {})

        try:
            with self.neptune_client.session() as session:
                strategy = strategy_class(session, self.config, self.graph_context, self.embedding_manager)
                return strategy.execute(params)
        except GraphRecallError as e:
            logger.error(f'Search failed for query {query!r}: {e.message}')
            raise e.with_data(query=query)
        except Exception as e:
            logger.error(f'Search failed for query {query!r}: {e}')
            raise to_recall_error(e).with_data(query=query) from e
