"""
Tests for the Content Organizer

Tests process_and_classify end to end and batch processing.
"""

import json
import pytest
from datetime import datetime, timezone
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.config import EngineConfig, ClassifierSettings
from core.models import CorpusSnapshot
from intelligence.organizer import ContentOrganizer, ProcessOptions
from tests.fixtures.sample_corpus import make_item, make_file, sample_corpus, ADD_FUNCTION


@pytest.fixture
def organizer():
    return ContentOrganizer(EngineConfig())


@pytest.fixture
def add_corpus():
    """One saved file holding one snippet of the add function."""
    return CorpusSnapshot.from_items([
        make_file('f1', 'javascript-function-add', 'Adds two numbers', language='javascript'),
        make_item('s1', ADD_FUNCTION, 5, file_id='f1', language='javascript'),
    ])


class TestProcessAndClassify:
    """Tests for a single save event."""

    def test_empty_corpus(self, organizer):
        result = organizer.process_and_classify(ADD_FUNCTION, CorpusSnapshot())
        classification = result.classification

        assert classification.language.language == 'javascript'
        assert classification.suggested_name == 'javascript-function-add'
        assert classification.should_append is False
        assert classification.target_file_id is None
        assert result.suggestions.merge_candidates == []
        assert result.suggestions.group_suggestions == []
        assert len(result.suggestions.smart_names) > 0

    def test_append_to_matching_file(self, organizer, add_corpus):
        result = organizer.process_and_classify(ADD_FUNCTION, add_corpus)
        classification = result.classification

        assert classification.similar_items[0].item.id == 's1'
        assert classification.suggested_name == 'javascript-function-add-2'
        assert classification.should_append is True
        assert classification.target_file_id == 'f1'

    def test_force_new_file(self, organizer, add_corpus):
        result = organizer.process_and_classify(
            ADD_FUNCTION, add_corpus, options=ProcessOptions(force_new_file=True)
        )

        assert result.classification.should_append is False
        assert result.classification.target_file_id is None

    def test_classification_only(self, organizer, add_corpus):
        result = organizer.process_and_classify(
            ADD_FUNCTION, add_corpus, options=ProcessOptions(enable_organization=False)
        )

        assert result.suggestions is None
        assert result.auto_merge is None

    def test_suggestion_caps(self, organizer):
        result = organizer.process_and_classify(ADD_FUNCTION, sample_corpus())

        assert len(result.suggestions.merge_candidates) <= 3
        assert len(result.suggestions.group_suggestions) <= 2
        assert len(result.suggestions.smart_names) <= 5
        assert len(result.classification.similar_items) <= 10

    def test_auto_merge_needs_strong_candidate(self, organizer, add_corpus):
        result = organizer.process_and_classify(
            ADD_FUNCTION, add_corpus, options=ProcessOptions(auto_merge=True)
        )

        assert all(c.confidence <= 0.8 for c in result.suggestions.merge_candidates)
        assert result.auto_merge is None
        assert result.merge_result is None

    def test_should_auto_merge(self, organizer):
        assert organizer.should_auto_merge([]) is False

    def test_corpus_not_modified(self, organizer, add_corpus):
        before = [item.to_dict() for item in add_corpus.items()]

        organizer.process_and_classify(ADD_FUNCTION, add_corpus)

        assert [item.to_dict() for item in add_corpus.items()] == before

    def test_result_is_json_serializable(self, organizer):
        result = organizer.process_and_classify(ADD_FUNCTION, sample_corpus(), item_id='capture-1')
        payload = json.loads(json.dumps(result.to_dict()))

        assert payload['item_id'] == 'capture-1'
        assert payload['classification']['language']['language'] == 'javascript'

    def test_degenerate_text(self, organizer):
        result = organizer.process_and_classify('', CorpusSnapshot())

        assert result.classification.language.language == 'unknown'
        assert result.classification.topic.primary_topic == 'general'
        assert result.classification.suggested_name.startswith('code-snippet')

    def test_timezone_aware_timestamp(self, organizer, add_corpus):
        captured = datetime(2024, 3, 15, 9, 5, tzinfo=timezone.utc)

        result = organizer.process_and_classify(ADD_FUNCTION, add_corpus, timestamp=captured)

        assert result.classification.should_append is True
        assert result.classification.target_file_id == 'f1'

    def test_epoch_timestamp(self, organizer, add_corpus):
        result = organizer.process_and_classify(ADD_FUNCTION, add_corpus, timestamp=1710493500)

        assert result.classification.target_file_id == 'f1'

    def test_configured_name_length(self, add_corpus):
        config = EngineConfig(classifier=ClassifierSettings(max_name_length=12))
        result = ContentOrganizer(config).process_and_classify(ADD_FUNCTION, add_corpus)

        assert len(result.classification.suggested_name) <= 12
        assert all(len(n.name) <= 12 for n in result.suggestions.smart_names)


class TestProcessBatch:
    """Tests for process_batch."""

    def test_later_items_see_earlier_ones(self, organizer):
        batch = organizer.process_batch([ADD_FUNCTION, ADD_FUNCTION], CorpusSnapshot())

        assert len(batch.results) == 2
        assert batch.failures == []
        assert batch.results[0].classification.should_append is False
        assert batch.results[1].classification.should_append is True
        assert batch.results[1].classification.target_file_id == 'batch-0'

    def test_failures_are_isolated(self, organizer):
        batch = organizer.process_batch(['function a() {}', 42, 'function b() {}'], CorpusSnapshot())

        assert [r.item_id for r in batch.results] == ['batch-0', 'batch-2']
        assert len(batch.failures) == 1
        assert batch.failures[0]['error'] == 'organization_error'
        assert batch.failures[0]['details']['item_id'] == 'batch-1'
        assert batch.failures[0]['details']['entry_type'] == 'int'

    def test_input_corpus_untouched(self, organizer):
        corpus = CorpusSnapshot()

        organizer.process_batch([ADD_FUNCTION], corpus)

        assert len(corpus) == 0
