"""
Graph context enrichment: bounded ancestors/descendants for a set of memories.
"""

from typing import Dict, List

from ..models.core import GraphContext, SearchResult
from ..utils.config import SearchConfig
from ..utils.logging_config import get_logger
from ..utils.neptune_client import GraphSession
from ..utils.record_utils import build_graph_context, unique_ids

logger = get_logger(__name__)


def related_projection(node: str, rel: str) -> str:
    """Map projection describing a related memory reached through the edge ``rel``."""
    return (f'{{id: {node}.id, name: {node}.name, type: {node}.memoryType, relation: {rel}.relationType, '
            f'distance: length(path), strength: {rel}.strength, source: {rel}.source, createdAt: {rel}.createdAt}}')


class GraphContextService:
    """Fetches graph context for many memories in a single request."""

    def __init__(self, config: SearchConfig):
        self.config = config

    def build_query(self) -> str:
        """openCypher request returning ``memoryId, ancestors, descendants`` per id in ``$memoryIds``."""
        depth = int(self.config.max_graph_depth)
        items = int(self.config.max_related_items)
        return f"""
            MATCH (m:Memory)
            WHERE m.id IN $memoryIds
            OPTIONAL MATCH path = (ancestor:Memory)-[rels:RELATES_TO*1..{depth}]->(m)
            WHERE ancestor <> m AND ancestor.id IS NOT NULL
            WITH m, collect(DISTINCT {related_projection('ancestor', 'rels[-1]')})[0..{items}] AS rawAncestors
            OPTIONAL MATCH path = (m)-[rels:RELATES_TO*1..{depth}]->(descendant:Memory)
            WHERE descendant <> m AND descendant.id IS NOT NULL
            WITH m, rawAncestors,
                 collect(DISTINCT {related_projection('descendant', 'rels[0]')})[0..{items}] AS rawDescendants
            RETURN m.id AS memoryId,
                   [item IN rawAncestors WHERE item.id IS NOT NULL] AS ancestors,
                   [item IN rawDescendants WHERE item.id IS NOT NULL] AS descendants
        """

    def get_graph_context(self, session: GraphSession, memory_ids: List[str]) -> Dict[str, GraphContext]:
        """
        Fetch graph context for memories.

        Args:
            session: Request-scoped graph session
            memory_ids: Memory IDs to enrich

        Returns:
            Mapping of memory ID to GraphContext; memories without relations are absent
        """
        memory_ids = unique_ids(memory_ids)
        if not memory_ids:
            return {}

        rows = session.run(self.build_query(), {'memoryIds': memory_ids})

        contexts = {}
        for row in rows:
            context = build_graph_context(row.get('ancestors'), row.get('descendants'))
            if context is not None:
                contexts[row.get('memoryId')] = context

        logger.debug(f'Graph context found for {len(contexts)}/{len(memory_ids)} memories')
        return contexts

    def enrich(self, session: GraphSession, results: List[SearchResult]) -> List[SearchResult]:
        """Attach graph context to results in place; results without relations keep ``related=None``."""
        if not results:
            return results

        contexts = self.get_graph_context(session, [result.memory.id for result in results])
        for result in results:
            result.memory.related = contexts.get(result.memory.id)
        return results
