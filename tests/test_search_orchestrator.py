"""End-to-end tests for SearchOrchestrator with an in-memory graph and embedder."""

import pytest

from conftest import UUID_ID, FakeEmbedder, FakeGraph, FakeNeptuneClient
from graphrecall.services.date_filter import ProcessedDateFilter
from graphrecall.services.embedding_manager import EmbeddingManager
from graphrecall.services.search_orchestrator import SearchOrchestrator
from graphrecall.utils.errors import ErrorCodes, GraphRecallError, ServiceError, ValidationError


@pytest.fixture
def orchestrator(neptune_client, embedding_manager, search_config):
    return SearchOrchestrator(neptune_client, embedding_manager, search_config)


class TestEndToEnd:

    def test_wildcard(self, orchestrator, neptune_client, embedder):
        results = orchestrator.search('*', limit=10)

        assert 0 < len(results) <= 10
        assert all(result.score == 1.0 for result in results)
        assert embedder.calls == []
        assert neptune_client.acquired == neptune_client.released == 1

    def test_uuid_uses_identifier_lookup_not_embedding(self, orchestrator, graph, embedder):
        results = orchestrator.search(UUID_ID)

        assert [result.memory.id for result in results] == [UUID_ID]
        assert embedder.calls == []
        assert graph.queries_containing('idMatch')
        assert graph.queries_containing('AS embedding') == []

    def test_semantic_embeds_once_and_ranks(self, orchestrator, embedder):
        results = orchestrator.search('machine learning', threshold=0.5)

        assert len(embedder.calls) == 1
        scores = [result.score for result in results]
        assert scores == sorted(scores, reverse=True)
        assert all(score >= 0.5 for score in scores)
        assert [result.memory.id for result in results] == ['m1', 'm2']

    def test_digits_use_exact_search(self, orchestrator, graph):
        results = orchestrator.search('8080', include_graph_context=False)
        assert [result.memory.id for result in results] == [UUID_ID]
        assert graph.queries_containing('exactName')

    def test_empty_type_list_means_no_filter(self, orchestrator, graph):
        orchestrator.search('*', memory_types=[], include_graph_context=False)
        assert 'memoryTypes' not in graph.calls[0][1]

    def test_date_filter_forwarded(self, orchestrator, graph):
        date_filter = ProcessedDateFilter(predicate='m.modifiedAt >= $modifiedSince',
                                          params={'modifiedSince': '2025-01-01T00:00:00.000Z'})
        orchestrator.search('*', include_graph_context=False, date_filter=date_filter)

        query, params = graph.calls[0]
        assert 'm.modifiedAt >= $modifiedSince' in query
        assert params['modifiedSince'] == '2025-01-01T00:00:00.000Z'

    def test_no_cross_strategy_fallback(self, orchestrator, graph, embedder):
        assert orchestrator.search('9.9.9') == []
        assert embedder.calls == []
        assert graph.queries_containing('exactName') == []


class TestValidation:

    @pytest.mark.parametrize('kwargs', [
        {'limit': 0},
        {'limit': -5},
        {'limit': 0.5},
        {'limit': True},
        {'threshold': 1.5},
        {'threshold': -0.1},
        {'threshold': 'high'},
    ])
    def test_rejected_before_any_store_call(self, orchestrator, neptune_client, embedder, kwargs):
        with pytest.raises(ValidationError):
            orchestrator.search('machine learning', **kwargs)
        assert neptune_client.acquired == 0
        assert embedder.calls == []

    def test_none_query(self, orchestrator, neptune_client):
        with pytest.raises(ValidationError) as exc_info:
            orchestrator.search(None)
        assert exc_info.value.code == ErrorCodes.INVALID_QUERY
        assert neptune_client.acquired == 0


class TestFailures:

    def test_store_failure_tagged_with_query_and_session_released(self, search_config, embedding_manager):
        client = FakeNeptuneClient(FakeGraph(error=ConnectionError('Connection refused')))
        orchestrator = SearchOrchestrator(client, embedding_manager, search_config)

        with pytest.raises(GraphRecallError) as exc_info:
            orchestrator.search('*')

        assert exc_info.value.code == ErrorCodes.DATABASE_UNAVAILABLE
        assert exc_info.value.data['query'] == '*'
        assert client.acquired == client.released == 1

    def test_embedding_failure_is_service_error(self, neptune_client, search_config, embed_config):
        manager = EmbeddingManager(embed_config, factory=lambda config: FakeEmbedder(error=RuntimeError('down')))
        orchestrator = SearchOrchestrator(neptune_client, manager, search_config)

        with pytest.raises(ServiceError) as exc_info:
            orchestrator.search('machine learning')

        assert exc_info.value.code == ErrorCodes.EMBEDDING_UNAVAILABLE
        assert exc_info.value.data['query'] == 'machine learning'
        assert neptune_client.released == 1
