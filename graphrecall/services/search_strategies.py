"""
Search strategies turning a classified query into graph store requests and uniform results.
"""

import math
from typing import Any, Dict, List, Optional

from ..models.core import Memory, MatchType, QueryType, SearchParams, SearchResult
from ..utils.config import SearchConfig
from ..utils.errors import ErrorCodes, GraphRecallError, OperationError, ValidationError, to_recall_error
from ..utils.json_utils import parse_vector
from ..utils.logging_config import get_logger
from ..utils.neptune_client import GraphSession
from ..utils.record_utils import memory_from_row, unique_ids
from .embedding_manager import EmbeddingManager, cosine_similarity
from .graph_context import GraphContextService

logger = get_logger(__name__)

MEMORY_COLUMNS = """
    m.id AS id,
    m.name AS name,
    m.memoryType AS type,
    m.metadata AS metadata,
    m.createdAt AS createdAt,
    m.modifiedAt AS modifiedAt,
    m.lastAccessed AS lastAccessed,
    observations
"""

OBSERVATIONS_CLAUSE = """
    OPTIONAL MATCH (m)-[:HAS_OBSERVATION]->(o:Observation)
    WITH m, o ORDER BY o.createdAt ASC
    WITH m, collect(DISTINCT {id: o.id, content: o.content, createdAt: o.createdAt}) AS observations
"""

EXACT_NAME_SCORE = 1.0
PARTIAL_NAME_BASE_SCORE = 0.75
PARTIAL_NAME_COVERAGE_WEIGHT = 0.2
METADATA_MATCH_SCORE = 0.7
CONTENT_MATCH_SCORE = 0.6


def native_limit(limit: Any) -> int:
    """Convert a caller limit to the integer the store expects for LIMIT."""
    try:
        value = int(math.floor(float(limit)))
    except (TypeError, ValueError, OverflowError):
        raise ValidationError('limit must be a positive integer', ErrorCodes.INVALID_PARAMS, data={'limit': limit})
    if value <= 0:
        raise ValidationError('limit must be positive', ErrorCodes.INVALID_PARAMS, data={'limit': limit})
    return value


def build_where(params: Optional[SearchParams], *conditions: str) -> str:
    """WHERE clause joining the given conditions with the type and date filters of ``params``."""
    clauses = [condition for condition in conditions if condition]
    if params is not None:
        if params.memory_types:
            clauses.append('m.memoryType IN $memoryTypes')
        if params.date_predicate:
            clauses.append(params.date_predicate)
    return f'WHERE {" AND ".join(clauses)}' if clauses else ''


def filter_params(params: Optional[SearchParams]) -> Dict[str, Any]:
    """Bound parameters backing the clauses added by ``build_where``."""
    bound: Dict[str, Any] = {}
    if params is not None:
        if params.memory_types:
            bound['memoryTypes'] = list(params.memory_types)
        bound.update(params.date_params)
    return bound


class MemoryReader:
    """Loads full memory records (observations, parsed metadata) by id."""

    def __init__(self, session: GraphSession):
        self.session = session

    def fetch(self, memory_ids: List[str], memory_types: Optional[List[str]] = None) -> Dict[str, Memory]:
        """
        Fetch memories by ID.

        Args:
            memory_ids: IDs to load
            memory_types: Optional memoryType allow-list

        Returns:
            Mapping of ID to Memory for the IDs that exist
        """
        memory_ids = unique_ids(memory_ids)
        if not memory_ids:
            return {}

        where = 'WHERE m.id IN $ids'
        bound: Dict[str, Any] = {'ids': memory_ids}
        if memory_types:
            where += ' AND m.memoryType IN $memoryTypes'
            bound['memoryTypes'] = list(memory_types)

        query = f"""
            MATCH (m:Memory)
            {where}
            {OBSERVATIONS_CLAUSE}
            RETURN {MEMORY_COLUMNS}
        """
        rows = self.session.run(query, bound)
        memories = {}
        for row in rows:
            memory = memory_from_row(row)
            if memory.id:
                memories[memory.id] = memory
        return memories

    def fetch_ordered(self, memory_ids: List[str], memory_types: Optional[List[str]] = None) -> List[Memory]:
        """Fetch memories by ID keeping the requested order and dropping unknown IDs."""
        found = self.fetch(memory_ids, memory_types)
        return [found[memory_id] for memory_id in unique_ids(memory_ids) if memory_id in found]


class SearchStrategy:
    """Base class for strategies. Subclasses implement ``_search``."""

    query_type: QueryType = None
    match_kind = 'exact'

    def __init__(self,
                 session: GraphSession,
                 config: SearchConfig,
                 graph_context: Optional[GraphContextService] = None,
                 embedding_manager: Optional[EmbeddingManager] = None):
        self.session = session
        self.config = config
        self.graph_context = graph_context or GraphContextService(config)
        self.embedding_manager = embedding_manager
        self.reader = MemoryReader(session)

    def execute(self, params: SearchParams) -> List[SearchResult]:
        """
        Run the strategy.

        Args:
            params: Classified query and caller filters

        Returns:
            Results in ranking order, at most ``params.limit`` of them

        Raises:
            GraphRecallError: Classified store or provider failure
        """
        try:
            results = self._search(params)
            if params.include_graph_context and results:
                self.graph_context.enrich(self.session, results)
        except GraphRecallError:
            raise
        except Exception as e:
            logger.error(f'{type(self).__name__} failed: {e}')
            raise to_recall_error(e) from e

        logger.debug(f'{type(self).__name__} returned {len(results)} results')
        return results

    def _search(self, params: SearchParams) -> List[SearchResult]:
        raise NotImplementedError

    def _result(self, memory: Memory, score: float) -> SearchResult:
        return SearchResult(memory=memory, score=score, match_type=MatchType.from_match_kind(self.match_kind))

    def _ranked(self, ranked_ids: List[str], scores: Dict[str, float], params: SearchParams) -> List[SearchResult]:
        """Load memories for ranked IDs and pair them with their scores."""
        memories = self.reader.fetch_ordered(ranked_ids, params.memory_types)
        return [self._result(memory, scores[memory.id]) for memory in memories]


class WildcardSearchStrategy(SearchStrategy):
    """Unfiltered enumeration, newest first. Every row scores 1.0."""

    query_type = QueryType.WILDCARD

    def _search(self, params: SearchParams) -> List[SearchResult]:
        query = f"""
            MATCH (m:Memory)
            {build_where(params)}
            WITH m ORDER BY m.createdAt DESC LIMIT $limit
            {OBSERVATIONS_CLAUSE}
            RETURN {MEMORY_COLUMNS}
            ORDER BY createdAt DESC
        """
        bound = filter_params(params)
        bound['limit'] = native_limit(params.limit)

        rows = self.session.run(query, bound)
        return [self._result(memory_from_row(row), 1.0) for row in rows]


class ExactSearchStrategy(SearchStrategy):
    """Literal substring match on name, metadata text and observation content."""

    query_type = QueryType.EXACT_SEARCH

    def _search(self, params: SearchParams) -> List[SearchResult]:
        term = params.intent.preprocessing.normalized
        query = f"""
            MATCH (m:Memory)
            {build_where(params)}
            OPTIONAL MATCH (m)-[:HAS_OBSERVATION]->(o:Observation)
            WITH m, sum(CASE WHEN o.content IS NOT NULL AND toLower(o.content) CONTAINS $term THEN 1 ELSE 0 END) AS contentHits
            WITH m, contentHits,
                 coalesce(toLower(m.name) = $term, false) AS exactName,
                 coalesce(toLower(m.name) CONTAINS $term, false) AS partialName,
                 coalesce(toLower(m.metadata) CONTAINS $term, false) AS metadataMatch
            WHERE partialName OR metadataMatch OR contentHits > 0
            RETURN m.id AS id, m.name AS name, exactName, partialName, metadataMatch, contentHits > 0 AS contentMatch
            ORDER BY exactName DESC, partialName DESC, CASE WHEN partialName THEN size(m.name) ELSE 0 END ASC,
                     metadataMatch DESC, m.name ASC
            LIMIT $limit
        """
        bound = filter_params(params)
        bound['term'] = term
        bound['limit'] = native_limit(params.limit)

        rows = self.session.run(query, bound)
        scores = {row['id']: self.score(term, row) for row in rows if row.get('id')}
        ranked_ids = sorted(scores, key=lambda memory_id: scores[memory_id], reverse=True)
        return self._ranked(ranked_ids, scores, params)

    @staticmethod
    def score(term: str, row: Dict[str, Any]) -> float:
        """Match completeness: full name equality scores highest, then name, metadata, content."""
        if row.get('exactName'):
            return EXACT_NAME_SCORE
        if row.get('partialName'):
            name = row.get('name') or ''
            coverage = len(term) / len(name) if name else 0.0
            return min(PARTIAL_NAME_BASE_SCORE + PARTIAL_NAME_COVERAGE_WEIGHT * coverage, 0.95)
        if row.get('metadataMatch'):
            return METADATA_MATCH_SCORE
        if row.get('contentMatch'):
            return CONTENT_MATCH_SCORE
        return 0.0


class TechnicalIdentifierStrategy(SearchStrategy):
    """Exact identifier lookup on id, name or verbatim metadata. No fuzzy scoring."""

    query_type = QueryType.TECHNICAL_IDENTIFIER

    def _search(self, params: SearchParams) -> List[SearchResult]:
        identifier = params.intent.preprocessing.normalized
        query = f"""
            MATCH (m:Memory)
            {build_where(params, '(toLower(m.id) = $identifier OR toLower(m.name) = $identifier OR m.metadata CONTAINS $token)')}
            RETURN m.id AS id,
                   toLower(m.id) = $identifier AS idMatch,
                   coalesce(toLower(m.name) = $identifier, false) AS nameMatch
            ORDER BY idMatch DESC, nameMatch DESC, m.name ASC
            LIMIT $limit
        """
        bound = filter_params(params)
        bound['identifier'] = identifier
        bound['token'] = params.query.strip()
        bound['limit'] = native_limit(params.limit)

        rows = self.session.run(query, bound)
        ranked_ids = unique_ids(row.get('id') for row in rows)
        return self._ranked(ranked_ids, {memory_id: 1.0 for memory_id in ranked_ids}, params)


class SemanticSearchStrategy(SearchStrategy):
    """Cosine similarity between the query embedding and each memory's stored name embedding."""

    query_type = QueryType.SEMANTIC_SEARCH
    match_kind = 'semantic'

    def _search(self, params: SearchParams) -> List[SearchResult]:
        if self.embedding_manager is None:
            raise OperationError('Semantic search requires an embedding manager', ErrorCodes.SERVICE_ERROR)

        query_vector = self.embedding_manager.calculate_embedding(params.intent.preprocessing.normalized)

        query = f"""
            MATCH (m:Memory)
            {build_where(params, 'm.nameEmbedding IS NOT NULL')}
            RETURN m.id AS id, m.nameEmbedding AS embedding
        """
        rows = self.session.run(query, filter_params(params))

        scores = {}
        for row in rows:
            memory_id = row.get('id')
            if not memory_id:
                continue
            similarity = cosine_similarity(query_vector, parse_vector(row.get('embedding')))
            if similarity >= params.threshold:
                scores[memory_id] = max(similarity, scores.get(memory_id, similarity))

        limit = native_limit(params.limit)
        ranked_ids = sorted(scores, key=lambda memory_id: scores[memory_id], reverse=True)[:limit]
        logger.debug(f'{len(scores)} of {len(rows)} candidates above threshold {params.threshold}')
        # cosine can drift a hair above 1.0 in floating point
        return self._ranked(ranked_ids, {memory_id: min(scores[memory_id], 1.0) for memory_id in ranked_ids}, params)


STRATEGIES = {
    strategy.query_type: strategy
    for strategy in (WildcardSearchStrategy, ExactSearchStrategy, TechnicalIdentifierStrategy, SemanticSearchStrategy)
}
