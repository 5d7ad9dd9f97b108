"""
Tests for Language and Topic Classification

Tests TopicClassifier detection, context-aware variants and the
append-to-existing decision.
"""

import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.config import EngineConfig
from core.models import CorpusSnapshot
from enrichment.classifier import TopicClassifier
from enrichment.naming import generate_file_name
from intelligence.similarity import SimilarityResult, SimilarMatch
from tests.fixtures.sample_corpus import (
    make_item, make_file, ADD_FUNCTION, PYTHON_LOADER, LOGIN_FORM
)


def match(item, score):
    """SimilarMatch with a fixed score."""
    return SimilarMatch(item=item, similarity=SimilarityResult(score=score, category='related'))


class TestLanguageDetection:
    """Tests for language detection."""

    @pytest.fixture
    def classifier(self):
        return TopicClassifier(EngineConfig())

    def test_javascript_function(self, classifier):
        result = classifier.detect_language(ADD_FUNCTION)

        assert result.language == 'javascript'
        assert result.confidence > 0
        assert generate_file_name(ADD_FUNCTION, result.language).startswith('javascript-')

    def test_python(self, classifier):
        assert classifier.detect_language(PYTHON_LOADER).language == 'python'

    def test_empty_is_unknown(self, classifier):
        result = classifier.detect_language('')

        assert result.language == 'unknown'
        assert result.confidence == 0.0

    def test_non_code_is_unknown(self, classifier):
        assert classifier.detect_language('hello there').language == 'unknown'

    def test_frameworks(self, classifier):
        result = classifier.detect_language(LOGIN_FORM)

        assert 'react' in result.frameworks
        assert result.frameworks.count('react') == 1

    def test_framework_names_match_whole_words(self, classifier):
        result = classifier.detect_language("const nodeList = document.querySelectorAll('li');")

        assert 'node' not in result.frameworks

    def test_context_boost(self, classifier):
        corpus = CorpusSnapshot.from_items([
            make_file('f1', 'javascript-a', language='javascript'),
            make_file('f2', 'javascript-b', language='javascript'),
        ])

        plain = classifier.detect_language(ADD_FUNCTION)
        boosted = classifier.detect_language_with_context(ADD_FUNCTION, corpus)

        assert boosted.language == 'javascript'
        assert boosted.confidence == pytest.approx(plain.confidence + 0.2)

    def test_context_without_files(self, classifier):
        plain = classifier.detect_language(ADD_FUNCTION)
        result = classifier.detect_language_with_context(ADD_FUNCTION, CorpusSnapshot())

        assert result.confidence == plain.confidence


class TestTopicClassification:
    """Tests for topic classification."""

    @pytest.fixture
    def classifier(self):
        return TopicClassifier(EngineConfig())

    def test_general_when_nothing_matches(self, classifier):
        result = classifier.classify_topic('')

        assert result.primary_topic == 'general'
        assert result.suggested_tags == []

    def test_authentication(self, classifier):
        result = classifier.classify_topic("const token = await login(password);")

        assert result.primary_topic == 'authentication'
        assert result.suggested_tags[0] == 'authentication'
        assert 'security' in result.suggested_tags
        assert 'api-integration' in result.suggested_tags

    def test_tags_capped_and_unique(self, classifier):
        text = "fetch api endpoint server database auth login component test sort"
        result = classifier.classify_topic(text)

        assert len(result.suggested_tags) <= 5
        assert len(set(result.suggested_tags)) == len(result.suggested_tags)

    def test_context_adds_user_tags(self, classifier):
        corpus = CorpusSnapshot.from_items([
            make_file('f1', 'javascript-login', tags=('auth',)),
            make_file('f2', 'javascript-signup', tags=('auth', 'forms')),
        ])

        result = classifier.classify_topic_with_context("function login(user) { return api.post(user); }", corpus)

        assert 'auth' in result.suggested_tags
        assert len(result.suggested_tags) <= 8


class TestAppendDecision:
    """Tests for should_append_to_existing."""

    @pytest.fixture
    def classifier(self):
        return TopicClassifier(EngineConfig())

    def test_no_candidates(self, classifier):
        assert classifier.should_append_to_existing(ADD_FUNCTION, 'javascript-add', []) is False

    def test_core_topic_match_ignores_similarity(self, classifier):
        existing = make_file('f1', 'javascript-fetch-user')

        decision = classifier.should_append_to_existing(
            'anything', 'javascript-fetch-user-2', [match(existing, 0.1)]
        )

        assert decision is True

    def test_snippet_uses_owning_file_title(self, classifier):
        owner = make_file('f1', 'python-fetch-user')
        snippet = make_item('s1', 'x = 1', file_id='f1')
        corpus = CorpusSnapshot.from_items([owner, snippet])

        decision = classifier.should_append_to_existing(
            'anything', 'javascript-fetch-user', [match(snippet, 0.1)], corpus
        )

        assert decision is True

    @pytest.mark.parametrize('score,expected', [
        (0.55, True),
        (0.45, True),
        (0.35, False),
    ])
    def test_similarity_thresholds(self, classifier, score, expected):
        existing = make_file('f1', 'javascript-widget')

        decision = classifier.should_append_to_existing(
            'anything', 'python-data-loader', [match(existing, score)]
        )

        assert decision is expected
