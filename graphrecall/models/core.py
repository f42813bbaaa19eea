"""
Core data models for graph memory retrieval.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class QueryType(str, Enum):
    """Retrieval strategy selected for a free-text query."""
    WILDCARD = 'wildcard'
    TECHNICAL_IDENTIFIER = 'technical_identifier'
    EXACT_SEARCH = 'exact_search'
    SEMANTIC_SEARCH = 'semantic_search'


class MatchType(str, Enum):
    """Caller-facing match kind, derived from the strategy that produced a result."""
    VECTOR = 'vector'
    METADATA = 'metadata'

    @classmethod
    def from_match_kind(cls, kind: str) -> 'MatchType':
        """Map an internal match kind ('semantic' or 'exact') to its caller-facing value."""
        return cls.VECTOR if kind == 'semantic' else cls.METADATA


class ContextLevel(str, Enum):
    """How much of each memory is returned to the caller."""
    MINIMAL = 'minimal'
    FULL = 'full'
    RELATIONS_ONLY = 'relations-only'


class TraversalDirection(str, Enum):
    """Edge direction followed by an explicit graph traversal."""
    OUTBOUND = 'outbound'
    INBOUND = 'inbound'
    BOTH = 'both'


@dataclass
class QueryPreprocessing:
    normalized: str
    is_special_pattern: bool
    requires_exact_match: bool


@dataclass
class QueryIntent:
    """Classifier decision for a single request. Never persisted."""
    type: QueryType
    confidence: float
    preprocessing: QueryPreprocessing


@dataclass
class Observation:
    """A single piece of content attached to a memory."""
    content: str
    created_at: str
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'content': self.content, 'createdAt': self.created_at}


@dataclass
class RelatedNode:
    """A memory reached from another memory through RELATES_TO edges."""
    id: str
    name: str
    type: str
    relation: Optional[str]
    distance: int
    strength: Optional[float] = None
    source: Optional[str] = None
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'name': self.name,
            'type': self.type,
            'relation': self.relation,
            'distance': self.distance,
        }
        if self.strength is not None:
            data['strength'] = self.strength
        if self.source is not None:
            data['source'] = self.source
        if self.created_at is not None:
            data['createdAt'] = self.created_at
        return data


@dataclass
class GraphContext:
    """Bounded-depth neighborhood of a memory.

    Only built when at least one side is non-empty; an empty neighborhood is represented
    by the absence of a GraphContext (``None``), not by an empty instance.
    """
    ancestors: List[RelatedNode] = field(default_factory=list)
    descendants: List[RelatedNode] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = {}
        if self.ancestors:
            data['ancestors'] = [node.to_dict() for node in self.ancestors]
        if self.descendants:
            data['descendants'] = [node.to_dict() for node in self.descendants]
        return data


@dataclass
class Memory:
    """A node of the graph store holding one unit of agent knowledge."""
    id: str
    name: str
    type: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    observations: List[Observation] = field(default_factory=list)
    created_at: Optional[str] = None
    modified_at: Optional[str] = None
    last_accessed: Optional[str] = None
    related: Optional[GraphContext] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the caller-facing record shape."""
        data = {
            'id': self.id,
            'name': self.name,
            'memoryType': self.type,
            'observations': [observation.to_dict() for observation in self.observations],
            'metadata': dict(self.metadata),
            'createdAt': self.created_at,
            'modifiedAt': self.modified_at,
            'lastAccessed': self.last_accessed,
        }
        if self.related is not None:
            data['related'] = self.related.to_dict()
        return data


@dataclass
class SearchResult:
    memory: Memory
    score: float
    match_type: MatchType

    def to_dict(self) -> Dict[str, Any]:
        data = self.memory.to_dict()
        data['score'] = self.score
        data['matchType'] = self.match_type.value
        return data


@dataclass
class SearchParams:
    """Caller parameters handed to a search strategy."""
    intent: QueryIntent
    query: str
    limit: int
    include_graph_context: bool = True
    memory_types: Optional[List[str]] = None
    threshold: float = 0.1
    date_predicate: str = ''
    date_params: Dict[str, str] = field(default_factory=dict)

