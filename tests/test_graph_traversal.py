"""Tests for GraphTraversalProcessor and GraphTraversalService."""

from dataclasses import replace

import pytest

from conftest import FakeGraph, FakeNeptuneClient
from graphrecall.models.core import TraversalDirection
from graphrecall.services.graph_traversal import GraphTraversalProcessor, GraphTraversalService
from graphrecall.utils.errors import ErrorCodes, ValidationError


class WrappedInteger:
    """Store-native 64-bit integer wrapper."""

    def __init__(self, value):
        self.value = value

    def to_number(self):
        return self.value


@pytest.fixture
def processor(search_config):
    return GraphTraversalProcessor(search_config)


class TestValidation:

    @pytest.mark.parametrize('options', [{}, {'traverseFrom': ''}, {'traverseFrom': '   '}, {'traverseFrom': None}])
    def test_traverse_from_required(self, processor, options):
        with pytest.raises(ValidationError, match='traverseFrom memory ID is required') as exc_info:
            processor.process_traversal(options)
        assert exc_info.value.code == ErrorCodes.INVALID_TRAVERSAL_OPTIONS

    @pytest.mark.parametrize('depth', [0, -1, 6, 100])
    def test_depth_outside_range(self, processor, depth):
        with pytest.raises(ValidationError, match='maxDepth must be between 1 and 5'):
            processor.process_traversal({'traverseFrom': 'm1', 'maxDepth': depth})

    def test_ceiling_is_configurable(self, search_config):
        processor = GraphTraversalProcessor(replace(search_config, max_traversal_depth=8))
        assert processor.process_traversal({'traverseFrom': 'm1', 'maxDepth': 7}).params['maxDepth'] == 7
        with pytest.raises(ValidationError, match='between 1 and 8'):
            processor.process_traversal({'traverseFrom': 'm1', 'maxDepth': 9})

    def test_invalid_direction(self, processor):
        with pytest.raises(ValidationError) as exc_info:
            processor.process_traversal({'traverseFrom': 'm1', 'traverseDirection': 'sideways'})
        assert str(exc_info.value) == 'Invalid traversal direction: sideways. Valid options: outbound, inbound, both'

    def test_empty_relation_list(self, processor):
        with pytest.raises(ValidationError, match='cannot be empty if provided'):
            processor.process_traversal({'traverseFrom': 'm1', 'traverseRelations': []})


class TestQueryConstruction:

    def test_defaults_to_both_directions_depth_two(self, processor):
        traversal = processor.process_traversal({'traverseFrom': 'm1'})
        assert traversal.direction == TraversalDirection.BOTH
        assert traversal.params == {'startId': 'm1', 'maxDepth': 2, 'limit': 50}
        assert '(center)-[:RELATES_TO*1..2]-(connected:Memory)' in traversal.query
        assert 'startNode(relationships(path)[0]) = center' in traversal.query

    def test_outbound(self, processor):
        traversal = processor.process_traversal({'traverseFrom': 'm1', 'traverseDirection': 'outbound', 'maxDepth': 3})
        assert '(start)-[:RELATES_TO*1..3]->(target:Memory)' in traversal.query
        assert 'relationships(path)[0] AS firstRel' in traversal.query
        assert 'ORDER BY distance ASC, name ASC' in traversal.query

    def test_inbound(self, processor):
        traversal = processor.process_traversal({'traverseFrom': 'm1', 'traverseDirection': 'inbound'})
        assert '(origin:Memory)-[:RELATES_TO*1..2]->(target)' in traversal.query
        assert 'relationships(path)[-1] AS lastRel' in traversal.query

    def test_limit_bound_as_int(self, processor):
        traversal = processor.process_traversal({'traverseFrom': 'm1'})
        assert 'LIMIT $limit' in traversal.query
        assert isinstance(traversal.params['limit'], int)

    def test_relation_filter(self, processor):
        traversal = processor.process_traversal({'traverseFrom': 'm1', 'traverseRelations': ['DEPENDS_ON', 'EXTENDS']})
        assert traversal.params['relationTypes'] == ['DEPENDS_ON', 'EXTENDS']
        assert 'ALL(rel IN relationships(path) WHERE rel.relationType IN $relationTypes)' in traversal.query

    def test_no_relation_filter_when_absent(self, processor):
        traversal = processor.process_traversal({'traverseFrom': 'm1'})
        assert 'relationTypes' not in traversal.params
        assert '$relationTypes' not in traversal.query


class TestResults:

    def test_distance_normalization(self):
        rows = [
            {'id': 'a', 'name': 'A', 'type': 't', 'relation': 'R', 'distance': WrappedInteger(2)},
            {'id': 'b', 'name': 'B', 'type': 't', 'relation': 'R', 'distance': {'low': 3, 'high': 0}},
            {'id': 'c', 'name': 'C', 'type': 't', 'relation': 'R', 'distance': 'far'},
            {'id': 'd', 'name': 'D', 'type': 't', 'relation': 'R'},
            {'name': 'no id', 'distance': 1},
        ]
        nodes = GraphTraversalProcessor.process_traversal_results(rows)
        assert [(node.id, node.distance) for node in nodes] == [('a', 2), ('b', 3), ('c', 0), ('d', 0)]
        assert all(isinstance(node.distance, int) for node in nodes)

    def test_optional_fields_kept(self):
        nodes = GraphTraversalProcessor.process_traversal_results([{
            'id': 'a',
            'name': 'A',
            'type': 't',
            'relation': 'EXTENDS',
            'distance': 1,
            'strength': 0.9,
            'source': 'agent',
            'createdAt': '2025-01-01T00:00:00.000Z'
        }])
        assert nodes[0].to_dict() == {
            'id': 'a',
            'name': 'A',
            'type': 't',
            'relation': 'EXTENDS',
            'distance': 1,
            'strength': 0.9,
            'source': 'agent',
            'createdAt': '2025-01-01T00:00:00.000Z'
        }

    def test_supported_directions(self):
        directions = GraphTraversalProcessor.get_supported_directions()
        assert [line.split(':')[0] for line in directions] == ['outbound', 'inbound', 'both']


class TestGraphTraversalService:

    def test_traverse_runs_in_pooled_session(self, search_config):
        graph = FakeGraph(traversal_rows=[{'id': 'm2', 'name': 'Deep Learning', 'type': 'concept', 'relation': 'EXTENDS', 'distance': 1}])
        client = FakeNeptuneClient(graph)
        service = GraphTraversalService(client, GraphTraversalProcessor(search_config))

        nodes = service.traverse({'traverseFrom': 'm1', 'traverseDirection': 'outbound'})

        assert [node.id for node in nodes] == ['m2']
        assert graph.calls[0][1]['startId'] == 'm1'
        assert client.acquired == client.released == 1

    def test_invalid_options_never_reach_store(self, search_config):
        graph = FakeGraph()
        client = FakeNeptuneClient(graph)
        service = GraphTraversalService(client, GraphTraversalProcessor(search_config))

        with pytest.raises(ValidationError):
            service.traverse({'traverseFrom': 'm1', 'maxDepth': 0})
        assert graph.calls == []
        assert client.acquired == 0
