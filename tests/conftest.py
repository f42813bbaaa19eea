"""
Pytest fixtures and in-process fakes for GraphRecall tests.

No test talks to AWS: the graph store is replaced by ``FakeGraph`` (answers the openCypher
requests issued by the services from an in-memory list of memory rows and records every
request) and the embedding provider by ``FakeEmbedder``.
"""

from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import pytest

from graphrecall.services.embedding_manager import EmbeddingManager
from graphrecall.utils.config import BedrockEmbedConfig, NeptuneConfig, SearchConfig

UUID_ID = '123e4567-e89b-12d3-a456-426614174000'


def memory_row(memory_id: str,
               name: str,
               memory_type: str,
               created_at: str,
               embedding: Any = None,
               metadata: Any = '{}',
               observations: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    """A memory as the store returns it, plus its stored name embedding."""
    return {
        'id': memory_id,
        'name': name,
        'type': memory_type,
        'metadata': metadata,
        'observations': observations or [],
        'createdAt': created_at,
        'modifiedAt': created_at,
        'lastAccessed': created_at,
        'nameEmbedding': embedding,
    }


def sample_memories() -> List[Dict[str, Any]]:
    return [
        memory_row('m1',
                   'Machine Learning Basics',
                   'concept',
                   '2025-01-03T00:00:00.000Z',
                   embedding=[1.0, 0.0, 0.0],
                   metadata='{"tags": ["ml"]}',
                   observations=[{
                       'id': 'o1',
                       'content': 'Supervised learning needs labels',
                       'createdAt': '2025-01-03T00:00:00.000Z'
                   }, {
                       'id': 'o2',
                       'content': '',
                       'createdAt': '2025-01-03T00:00:00.000Z'
                   }]),
        memory_row('m2',
                   'Deep Learning',
                   'concept',
                   '2025-01-02T00:00:00.000Z',
                   embedding='[0.8, 0.6, 0.0]',
                   metadata='{"version": "v1.2.3"}'),
        memory_row('m3', 'Cooking Pasta', 'note', '2025-01-01T00:00:00.000Z', embedding=[0.0, 0.0, 1.0], metadata='not json'),
        memory_row(UUID_ID, 'Auth Service', 'service', '2024-12-31T00:00:00.000Z', metadata='{"port": 8080}'),
    ]


class FakeGraph:
    """In-memory stand-in for a graph session, keyed on the shape of each request."""

    def __init__(self, memories=None, contexts=None, traversal_rows=None, error: Optional[Exception] = None):
        self.memories = list(memories if memories is not None else sample_memories())
        self.contexts = contexts or {}
        self.traversal_rows = traversal_rows or []
        self.error = error
        self.calls = []

    def run(self, query: str, parameters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        params = parameters or {}
        self.calls.append((query, params))
        if self.error is not None:
            raise self.error

        if 'AS memoryId' in query:
            return [{'memoryId': memory_id, **self.contexts[memory_id]} for memory_id in params['memoryIds'] if memory_id in self.contexts]
        if '$startId' in query:
            return list(self.traversal_rows)
        if 'AS embedding' in query:
            return [{'id': m['id'], 'embedding': m['nameEmbedding']} for m in self._filtered(params) if m['nameEmbedding'] is not None]
        if 'exactName' in query:
            return self._exact(params)
        if 'idMatch' in query:
            return self._technical(params)
        if 'm.id IN $ids' in query:
            # store order deliberately differs from request order
            return [self._row(m) for m in reversed(self._filtered(params)) if m['id'] in params['ids']]
        if 'ORDER BY m.createdAt DESC' in query:
            ordered = sorted(self._filtered(params), key=lambda m: m['createdAt'], reverse=True)
            return [self._row(m) for m in ordered[:params['limit']]]
        return []

    def queries_containing(self, marker: str) -> List[Any]:
        return [call for call in self.calls if marker in call[0]]

    def _filtered(self, params):
        types = params.get('memoryTypes')
        return [m for m in self.memories if not types or m['type'] in types]

    @staticmethod
    def _row(memory):
        return {key: value for key, value in memory.items() if key != 'nameEmbedding'}

    def _exact(self, params):
        term = params['term']
        rows = []
        for m in self._filtered(params):
            name = m['name'].lower()
            content = any(term in (o.get('content') or '').lower() for o in m['observations'])
            row = {
                'id': m['id'],
                'name': m['name'],
                'exactName': name == term,
                'partialName': term in name,
                'metadataMatch': term in str(m['metadata']).lower(),
                'contentMatch': content
            }
            if row['partialName'] or row['metadataMatch'] or content:
                rows.append(row)
        # ORDER BY exactName DESC, partialName DESC, name length for partial matches ASC, metadataMatch DESC, name ASC
        rows.sort(key=lambda row: (not row['exactName'], not row['partialName'], len(row['name'])
                                   if row['partialName'] else 0, not row['metadataMatch'], row['name']))
        return rows[:params['limit']]

    def _technical(self, params):
        identifier = params['identifier']
        rows = []
        for m in self._filtered(params):
            id_match = m['id'].lower() == identifier
            name_match = m['name'].lower() == identifier
            if id_match or name_match or params['token'] in str(m['metadata']):
                rows.append({'id': m['id'], 'idMatch': id_match, 'nameMatch': name_match})
        return rows[:params['limit']]


class FakeNeptuneClient:
    """Hands out the same FakeGraph as a pooled session and counts acquire/release."""

    def __init__(self, graph: FakeGraph):
        self.graph = graph
        self.acquired = 0
        self.released = 0

    @contextmanager
    def session(self):
        self.acquired += 1
        try:
            yield self.graph
        finally:
            self.released += 1


class FakeEmbedder:
    """Embedding client returning scripted vectors and recording every call."""

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, default=None, error: Optional[Exception] = None):
        self.vectors = vectors or {}
        self.default = default or [1.0, 0.0, 0.0]
        self.error = error
        self.calls = []

    def embed_query(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return self.vectors.get(text, self.default)


@pytest.fixture
def search_config():
    return SearchConfig(default_limit=10,
                        default_threshold=0.1,
                        max_graph_depth=2,
                        max_related_items=3,
                        max_traversal_depth=5,
                        traversal_result_limit=50)


@pytest.fixture
def embed_config():
    return BedrockEmbedConfig(region='us-east-1',
                              model_id='amazon.titan-embed-text-v2:0',
                              dimension=3,
                              retry_attempts=1,
                              retry_delay=0.0,
                              idle_timeout=0,
                              preload=False)


@pytest.fixture
def neptune_config():
    return NeptuneConfig(endpoint='localhost',
                         port=8182,
                         region='us-east-1',
                         use_ssl=True,
                         max_sessions=1,
                         acquire_timeout=0.05)


@pytest.fixture
def graph():
    return FakeGraph()


@pytest.fixture
def neptune_client(graph):
    return FakeNeptuneClient(graph)


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def embedding_manager(embed_config, embedder):
    manager = EmbeddingManager(embed_config, factory=lambda config: embedder)
    yield manager
    manager.shutdown()
