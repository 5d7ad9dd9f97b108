"""
Tests for Content Similarity

Tests SimilarityEngine scoring, categories and corpus search.
"""

import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.config import EngineConfig
from enrichment.signature import ContentSignature
from intelligence.similarity import SimilarityEngine, jaccard, shingles
from tests.fixtures.sample_corpus import make_item, FETCH_PROFILE, LOGIN_FORM

ADD = "function add(a, b) {\n  return a + b;\n}"
QUERY = "SELECT name FROM users WHERE id = 1"


class TestHelpers:
    """Tests for the set and sequence helpers."""

    def test_jaccard_empty_sets(self):
        assert jaccard(set(), set()) == 0.0

    def test_jaccard(self):
        assert jaccard({'a', 'b'}, {'b', 'c'}) == pytest.approx(1 / 3)

    def test_fingerprint_indentation_edit_distance(self):
        a = ContentSignature(indentation=[0, 1, 0], open_braces=1, close_braces=1, line_count=3)
        b = ContentSignature(indentation=[0], open_braces=1, close_braces=1, line_count=3)

        # Two edits over three depths, other parts equal
        assert SimilarityEngine.fingerprint_similarity(a, b) == pytest.approx(7 / 9)
        assert SimilarityEngine.fingerprint_similarity(b, a) == pytest.approx(7 / 9)

    def test_fingerprint_empty_indentation(self):
        a = ContentSignature(indentation=[])
        b = ContentSignature(indentation=[1, 2])

        assert SimilarityEngine.fingerprint_similarity(a, b) == pytest.approx(2 / 3)

    def test_fingerprint_identical(self):
        a = ContentSignature(indentation=[0, 2], open_braces=1, close_braces=1, line_count=2)

        assert SimilarityEngine.fingerprint_similarity(a, a) == 1.0

    def test_shingles(self):
        assert shingles('abcd') == {'abc', 'bcd'}
        assert shingles('ab') == set()


class TestSimilarityEngine:
    """Tests for pairwise similarity."""

    @pytest.fixture
    def engine(self):
        return SimilarityEngine(EngineConfig())

    def test_weights(self, engine):
        assert engine.weights == {
            'semantic': 0.35,
            'structural': 0.25,
            'lexical': 0.25,
            'contextual': 0.15,
        }
        assert sum(engine.weights.values()) == pytest.approx(1.0)

    def test_self_similarity(self, engine):
        result = engine.calculate_similarity(FETCH_PROFILE, FETCH_PROFILE)

        assert result.score == 1.0
        assert result.category == 'exact_match'
        assert result.confidence == 1.0

    def test_whitespace_only_difference_is_identical(self, engine):
        result = engine.calculate_similarity(ADD, '\n' + ADD + '\n  ')

        assert result.score == 1.0

    @pytest.mark.parametrize('score,category', [
        (1.0, 'exact_match'),
        (0.9, 'exact_match'),
        (0.89, 'high_similarity'),
        (0.7, 'high_similarity'),
        (0.69, 'related'),
        (0.4, 'related'),
        (0.39, 'unrelated'),
        (0.3, 'unrelated'),
        (0.0, 'unrelated'),
    ])
    def test_category_boundaries(self, engine, score, category):
        assert engine.categorize(score) == category

    def test_unrelated_texts(self, engine):
        result = engine.calculate_similarity(ADD, QUERY)

        assert result.score < 0.3
        assert result.category == 'unrelated'

    def test_empty_texts_do_not_raise(self, engine):
        result = engine.calculate_similarity('', '')

        assert 0.0 <= result.score < 0.3
        assert result.category == 'unrelated'

    def test_identical_whitespace_only_texts(self, engine):
        result = engine.calculate_similarity('   ', '   ')

        assert result.score == 1.0
        assert result.category == 'exact_match'

    def test_symmetric_score(self, engine):
        forward = engine.calculate_similarity(FETCH_PROFILE, LOGIN_FORM)
        backward = engine.calculate_similarity(LOGIN_FORM, FETCH_PROFILE)

        assert forward.score == pytest.approx(backward.score)
        assert forward.category == backward.category
        assert forward.confidence == pytest.approx(backward.confidence)

    def test_deterministic(self, engine):
        first = engine.calculate_similarity(FETCH_PROFILE, LOGIN_FORM)
        second = engine.calculate_similarity(FETCH_PROFILE, LOGIN_FORM)

        assert first.to_dict() == second.to_dict()

    def test_score_and_confidence_in_range(self, engine):
        result = engine.calculate_similarity(ADD, LOGIN_FORM)

        assert 0.0 <= result.score <= 1.0
        assert 0.0 <= result.confidence <= 1.0
        assert set(result.breakdown) == {'semantic', 'structural', 'lexical', 'contextual'}

    def test_same_language_reason(self, engine):
        result = engine.calculate_similarity(ADD, FETCH_PROFILE)

        assert 'Same programming language: javascript' in result.reasons

    def test_language_compatibility(self):
        assert SimilarityEngine.language_compatibility('python', 'python') == 1.0
        assert SimilarityEngine.language_compatibility('javascript', 'typescript') == 0.8
        assert SimilarityEngine.language_compatibility('typescript', 'javascript') == 0.8
        assert SimilarityEngine.language_compatibility('kotlin', 'java') == 0.7
        assert SimilarityEngine.language_compatibility('python', 'rust') == 0.0


class TestFindSimilarContent:
    """Tests for corpus search."""

    @pytest.fixture
    def engine(self):
        return SimilarityEngine(EngineConfig())

    def test_excludes_low_scores_and_sorts(self, engine):
        corpus = [
            make_item('query', QUERY),
            make_item('same', ADD),
            make_item('empty', ''),
        ]

        matches = engine.find_similar_content(ADD, corpus)

        assert [m.item.id for m in matches] == ['same']
        assert matches[0].score == 1.0

    def test_scores_descend(self, engine):
        corpus = [
            make_item('profile', FETCH_PROFILE),
            make_item('same', ADD),
            make_item('copy', ADD + '\n'),
        ]

        matches = engine.find_similar_content(ADD, corpus, threshold=0.0)
        scores = [m.score for m in matches]

        assert scores == sorted(scores, reverse=True)
        assert all(s > 0.0 for s in scores)

    def test_files_compared_by_search_text(self, engine):
        file_item = make_item('f1', 'Adds numbers', kind='file', title='add', tags=('math',))

        assert file_item.search_text == 'add Adds numbers math'
