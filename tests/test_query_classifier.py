"""Tests for QueryClassifier decision order and confidences."""

import pytest

from graphrecall.models.core import QueryType
from graphrecall.services.query_classifier import QueryClassifier
from graphrecall.utils.errors import ErrorCodes, ValidationError


@pytest.fixture
def classifier():
    return QueryClassifier()


class TestWildcard:

    @pytest.mark.parametrize('query', ['', '   ', '*', 'all', 'ALL', ' All '])
    def test_wildcard_queries(self, classifier, query):
        intent = classifier.classify(query)
        assert intent.type == QueryType.WILDCARD
        assert intent.confidence == 1.0
        assert intent.preprocessing.is_special_pattern is False
        assert intent.preprocessing.requires_exact_match is False

    def test_normalized_form_is_trimmed_lowercase(self, classifier):
        assert classifier.classify('  ALL ').preprocessing.normalized == 'all'


class TestInvalidInput:

    @pytest.mark.parametrize('query', [None, 42, ['a'], {'q': 'x'}])
    def test_non_string_raises(self, classifier, query):
        with pytest.raises(ValidationError, match='Query must be a non-empty string') as exc_info:
            classifier.classify(query)
        assert exc_info.value.code == ErrorCodes.INVALID_QUERY


class TestTechnicalIdentifier:

    def test_uuid(self, classifier):
        intent = classifier.classify('123e4567-e89b-12d3-a456-426614174000')
        assert intent.type == QueryType.TECHNICAL_IDENTIFIER
        assert intent.confidence == 0.95
        assert intent.preprocessing.is_special_pattern is True
        assert intent.preprocessing.requires_exact_match is True

    def test_uppercase_uuid_matches_case_insensitively(self, classifier):
        intent = classifier.classify('123E4567-E89B-12D3-A456-426614174000')
        assert intent.type == QueryType.TECHNICAL_IDENTIFIER
        assert intent.confidence == 0.95
        assert intent.preprocessing.normalized == '123e4567-e89b-12d3-a456-426614174000'

    @pytest.mark.parametrize('query', ['1.2.3', 'v1.2.3', 'V2.0.10', '1.2.3-beta.1', '10.4.0.1'])
    def test_semantic_versions(self, classifier, query):
        intent = classifier.classify(query)
        assert intent.type == QueryType.TECHNICAL_IDENTIFIER
        assert intent.confidence == 0.9

    def test_base64_token(self, classifier):
        intent = classifier.classify('SGVsbG8gV29ybGQ=')
        assert intent.type == QueryType.TECHNICAL_IDENTIFIER
        assert intent.confidence == 0.85

    def test_nine_digits_exceed_base64_boundary(self, classifier):
        intent = classifier.classify('123456789')
        assert intent.type == QueryType.TECHNICAL_IDENTIFIER
        assert intent.confidence == 0.85

    def test_eight_digits_fall_through_to_exact(self, classifier):
        intent = classifier.classify('12345678')
        assert intent.type == QueryType.EXACT_SEARCH
        assert intent.confidence == 0.9

    @pytest.mark.parametrize('query', ['mixed123text', 'abcdef123', '123abcdef'])
    def test_words_glued_to_digits_are_not_identifiers(self, classifier, query):
        intent = classifier.classify(query)
        assert intent.type == QueryType.SEMANTIC_SEARCH
        assert intent.confidence == 0.8


class TestExactSearch:

    @pytest.mark.parametrize('query', ['42', '1.2', '3.14', '(1 + 2) * 3', '+', '7', '[]', '#!'])
    def test_no_letters_is_exact(self, classifier, query):
        intent = classifier.classify(query)
        assert intent.type == QueryType.EXACT_SEARCH
        assert intent.confidence == 0.9
        assert intent.preprocessing.is_special_pattern is True
        assert intent.preprocessing.requires_exact_match is True


class TestSemanticSearch:

    @pytest.mark.parametrize('query', ['machine learning', 'a', 'How do I deploy?', 'café au lait'])
    def test_letters_are_semantic(self, classifier, query):
        intent = classifier.classify(query)
        assert intent.type == QueryType.SEMANTIC_SEARCH
        assert intent.confidence == 0.8
        assert intent.preprocessing.is_special_pattern is False
        assert intent.preprocessing.requires_exact_match is False

    def test_normalized_lowercase(self, classifier):
        assert classifier.classify('  Machine Learning ').preprocessing.normalized == 'machine learning'


def test_confidence_order():
    classifier = QueryClassifier()
    confidences = [
        classifier.classify('*').confidence,
        classifier.classify('123e4567-e89b-12d3-a456-426614174000').confidence,
        classifier.classify('42').confidence,
        classifier.classify('machine learning').confidence,
    ]
    assert confidences == sorted(confidences, reverse=True)
