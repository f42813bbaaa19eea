"""
MCP Interface Layer using fastmcp for agent memory retrieval.
"""
from typing import Any, Dict, List, Optional, Union

from fastmcp import FastMCP

from graphrecall.services.embedding_manager import EmbeddingManager
from graphrecall.services.graph_traversal import GraphTraversalService
from graphrecall.services.memory_find import MemoryFindService
from graphrecall.utils.config import config
from graphrecall.utils.errors import to_recall_error
from graphrecall.utils.health_check import get_health_status
from graphrecall.utils.logging_config import get_logger
from graphrecall.utils.neptune_client import NeptuneClient

logger = get_logger(__name__)

# Initialize FastMCP application
mcp = FastMCP('Graph Recall')
neptune_client = NeptuneClient(config.neptune)
embedding_manager = EmbeddingManager(config.bedrock_embed)
find_service = MemoryFindService(neptune_client, embedding_manager, config.search)
traversal_service = GraphTraversalService(neptune_client, find_service.traversal_processor)


def _error_response(error: Exception) -> Dict[str, Any]:
    return {'error': to_recall_error(error).to_dict()}


@mcp.tool()
def memory_find(query: Optional[Union[str, List[str]]] = None,
                limit: Optional[int] = None,
                memoryTypes: Optional[List[str]] = None,
                includeContext: Optional[str] = None,
                threshold: Optional[float] = None,
                orderBy: Optional[str] = None,
                createdAfter: Optional[str] = None,
                createdBefore: Optional[str] = None,
                modifiedSince: Optional[str] = None,
                accessedSince: Optional[str] = None,
                traverseFrom: Optional[str] = None,
                traverseRelations: Optional[List[str]] = None,
                maxDepth: Optional[int] = None,
                traverseDirection: Optional[str] = None) -> Dict[str, Any]:
    """Find memories by search, by ID list, or by traversing from a memory.

    Args:
        query: Free text, "*" for all memories, or a list of memory IDs
        limit: Maximum number of results (default: 10)
        memoryTypes: Only return memories of these types
        includeContext: minimal, relations-only or full (default: full)
        threshold: Minimum similarity for semantic matches, 0.0 to 1.0 (default: 0.1)
        orderBy: relevance, created, modified or accessed
        createdAfter: ISO date or relative expression (24h, 7d, 3m, 1y)
        createdBefore: ISO date or relative expression
        modifiedSince: ISO date or relative expression
        accessedSince: ISO date or relative expression
        traverseFrom: Memory ID to traverse from
        traverseRelations: Only follow these relation types
        maxDepth: Traversal depth
        traverseDirection: outbound, inbound or both

    Returns:
        Dict with memories and _meta, or an error dict with code and message
    """
    request = {key: value for key, value in locals().items() if value is not None}
    try:
        response = find_service.find(request)
        logger.debug(f'MCP memory_find returned {response["_meta"]["total"]} memories')
        return response
    except Exception as e:
        logger.error(f'Error in MCP memory_find: {e}')
        return _error_response(e)


@mcp.tool()
def memory_traverse(traverseFrom: str,
                    maxDepth: int = 2,
                    traverseDirection: str = 'both',
                    traverseRelations: Optional[List[str]] = None) -> Dict[str, Any]:
    """List memories related to a memory.

    Args:
        traverseFrom: Memory ID to start from
        maxDepth: Number of hops to follow (default: 2)
        traverseDirection: outbound, inbound or both (default: both)
        traverseRelations: Only follow these relation types

    Returns:
        Dict with related nodes ordered by distance, or an error dict
    """
    request = {key: value for key, value in locals().items() if value is not None}
    try:
        nodes = traversal_service.traverse(request)
        return {'related': [node.to_dict() for node in nodes], 'total': len(nodes)}
    except Exception as e:
        logger.error(f'Error in MCP memory_traverse: {e}')
        return _error_response(e)


@mcp.tool()
def health() -> Dict[str, Any]:
    """Report graph store and embedding provider health."""
    return get_health_status(neptune_client, embedding_manager)


if __name__ == '__main__':
    transport = config.mcp.transport
    host = config.mcp.host
    port = config.mcp.port
    mcp.run(transport=transport, host=host, port=port)
