"""
Tests for Engine Configuration, Errors, Logging and Models

Tests YAML loading and validation, the global config instance, error
payloads, log formatters and the content item boundary.
"""

import json
import logging
import pytest
from datetime import datetime, timedelta, timezone
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from core import config as config_module
from core.config import EngineConfig, load_config, get_config, reset_config, DEFAULT_CONFIG_PATH
from core.errors import CodeShelfError, ConfigurationError, ValidationError, describe_failure
from core.logging_config import JSONFormatter, ColoredFormatter, log_operation
from core.models import ContentItem, CorpusSnapshot, parse_time, EPOCH
from tests.fixtures.sample_corpus import sample_records, FETCH_PROFILE


def make_record(message, **extra):
    record = logging.LogRecord('codeshelf.test', logging.INFO, __file__, 10, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLoadConfig:
    """Tests for load_config and validation."""

    def test_defaults(self):
        config = EngineConfig()

        assert config.similarity.semantic_weight == 0.35
        assert config.grouping.strategy_weights['semantic'] == 0.30
        assert config.organizer.auto_merge_threshold == 0.8

    def test_shipped_file_loads(self):
        config = load_config(DEFAULT_CONFIG_PATH)

        assert isinstance(config, EngineConfig)

    def test_override(self, tmp_path):
        path = tmp_path / 'engine.yaml'
        path.write_text(
            "merge:\n"
            "  min_confidence: 0.5\n"
            "grouping:\n"
            "  strategy_weights:\n"
            "    topic: 0.2\n"
        )

        config = load_config(path)

        assert config.merge.min_confidence == 0.5
        assert config.grouping.strategy_weights['topic'] == 0.2
        assert config.grouping.strategy_weights['semantic'] == 0.30
        assert config.merge.max_candidates == 5

    def test_engine_root_key(self, tmp_path):
        path = tmp_path / 'engine.yaml'
        path.write_text("engine:\n  organizer:\n    max_smart_names: 3\n")

        assert load_config(path).organizer.max_smart_names == 3

    def test_unknown_keys_ignored(self, tmp_path):
        path = tmp_path / 'engine.yaml'
        path.write_text("merge:\n  not_a_setting: 1\n")

        assert load_config(path).merge == EngineConfig().merge

    def test_weights_must_sum_to_one(self, tmp_path):
        path = tmp_path / 'engine.yaml'
        path.write_text("similarity:\n  semantic_weight: 0.9\n")

        with pytest.raises(ConfigurationError) as exc_info:
            load_config(path)

        assert exc_info.value.error_type == 'configuration_error'

    def test_threshold_range(self, tmp_path):
        path = tmp_path / 'engine.yaml'
        path.write_text("merge:\n  min_confidence: 1.5\n")

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_non_numeric_value(self, tmp_path):
        path = tmp_path / 'engine.yaml'
        path.write_text("merge:\n  max_candidates: lots\n")

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_name_length_must_be_positive(self, tmp_path):
        path = tmp_path / 'engine.yaml'
        path.write_text("classifier:\n  max_name_length: 0\n")

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_planning_section(self, tmp_path):
        path = tmp_path / 'engine.yaml'
        path.write_text("planning:\n  min_plan_confidence: 0.6\n")

        assert load_config(path).planning.min_plan_confidence == 0.6

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_config(tmp_path / 'missing.yaml')

    def test_to_dict(self):
        data = EngineConfig().to_dict()

        assert data['merge']['preview_length'] == 100
        assert set(data) == {
            'similarity', 'classifier', 'sequence', 'merge', 'grouping', 'organizer', 'planning'
        }


class TestGlobalConfig:
    """Tests for get_config and reset_config."""

    @pytest.fixture(autouse=True)
    def fresh_config(self):
        reset_config()
        yield
        reset_config()

    def test_env_path(self, tmp_path, monkeypatch):
        path = tmp_path / 'engine.yaml'
        path.write_text("organizer:\n  max_group_suggestions: 4\n")
        monkeypatch.setenv('CODESHELF_CONFIG', str(path))

        assert get_config().organizer.max_group_suggestions == 4

    def test_instance_is_shared(self, monkeypatch):
        monkeypatch.delenv('CODESHELF_CONFIG', raising=False)

        assert get_config() is get_config()

    def test_defaults_without_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv('CODESHELF_CONFIG', raising=False)
        monkeypatch.setattr(config_module, 'DEFAULT_CONFIG_PATH', tmp_path / 'absent.yaml')

        assert get_config() == EngineConfig()


class TestErrors:
    """Tests for error payloads."""

    def test_to_dict(self):
        error = ValidationError("Content record has no id", keys=['text'])

        assert error.to_dict() == {
            'error': 'validation_error',
            'message': 'Content record has no id',
            'details': {'keys': ['text']},
        }

    def test_default_message(self):
        assert str(ConfigurationError()) == 'Engine configuration error'
        assert isinstance(ConfigurationError(), CodeShelfError)

    def test_describe_engine_failure(self):
        payload = describe_failure(ValidationError("bad", field='id'), item_id='x', index=2)

        assert payload['error'] == 'validation_error'
        assert payload['details'] == {'field': 'id', 'item_id': 'x', 'index': 2}

    def test_describe_unexpected_failure(self):
        payload = describe_failure(TypeError('boom'), item_id='y')

        assert payload == {'error': 'internal_error', 'message': 'boom', 'details': {'item_id': 'y'}}


class TestFormatters:
    """Tests for the log formatters."""

    def test_json_includes_extras(self):
        output = JSONFormatter().format(make_record('Classified', item_id='abc', duration_ms=1.5))
        entry = json.loads(output)

        assert entry['message'] == 'Classified'
        assert entry['level'] == 'INFO'
        assert entry['item_id'] == 'abc'
        assert entry['duration_ms'] == 1.5
        assert 'lineno' not in entry

    def test_colored_includes_item_and_duration(self):
        output = ColoredFormatter().format(make_record('Classified', item_id='abcdefghijk', duration_ms=3))

        assert '[abcdefgh]' in output
        assert '(3ms)' in output
        assert output.endswith('(3ms)')


class TestLogOperation:
    """Tests for the timed operation context manager."""

    def test_success_logs_summary(self, caplog):
        logger = logging.getLogger('codeshelf.test')

        with caplog.at_level(logging.DEBUG, logger='codeshelf.test'):
            with log_operation(logger, 'group_content', logging.INFO, items=3) as op:
                op['summary'] = 'grouped 3 items'

        record = caplog.records[-1]
        assert record.getMessage() == 'group_content: grouped 3 items'
        assert record.levelno == logging.INFO
        assert record.items == 3
        assert record.duration_ms >= 0

    def test_failure_is_logged_and_raised(self, caplog):
        logger = logging.getLogger('codeshelf.test')

        with caplog.at_level(logging.DEBUG, logger='codeshelf.test'):
            with pytest.raises(ValueError):
                with log_operation(logger, 'merge'):
                    raise ValueError('bad input')

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert record.getMessage() == 'merge failed: bad input'
        assert record.error_type == 'ValueError'


class TestModels:
    """Tests for ContentItem and CorpusSnapshot."""

    def test_parse_time_formats(self):
        assert parse_time('2024-03-15T09:00:00.000Z') == datetime(2024, 3, 15, 9, 0)
        assert parse_time('2024-03-15T10:00:00+01:00') == datetime(2024, 3, 15, 9, 0)
        assert parse_time('not a date') is None
        assert parse_time(None) is None

    def test_record_without_id(self):
        with pytest.raises(ValidationError):
            ContentItem.from_dict({'extracted_text': 'x'})

    def test_unknown_kind(self):
        with pytest.raises(ValidationError):
            ContentItem.from_dict({'id': 'a', 'kind': 'folder'})

    def test_from_records(self):
        records = sample_records()
        corpus = CorpusSnapshot.from_items([ContentItem.from_dict(r) for r in records])

        assert len(corpus) == 2
        assert corpus.get('snip-profile-1').text == FETCH_PROFILE
        assert corpus.get('snip-profile-1').owner_id == 'file-profile'
        assert corpus.get('file-profile').metadata == {'snippet_count': 1}
        assert corpus.snippets_for_file('file-profile')[0].id == 'snip-profile-1'

    def test_missing_timestamp(self):
        item = ContentItem.from_dict({'id': 'a', 'extracted_text': 'x'})

        assert item.timestamp == EPOCH
        assert item.kind == 'snippet'

    def test_search_text(self):
        item = ContentItem.from_dict({'id': 'f', 'title': 'notes', 'description': 'misc', 'tags': 'a, b'})

        assert item.is_file
        assert item.search_text == 'notes misc a b'

    def test_with_item_returns_new_snapshot(self):
        corpus = CorpusSnapshot()
        grown = corpus.with_item(ContentItem(id='a', text='x'))

        assert len(corpus) == 0
        assert len(grown) == 1

    def test_parse_time_epoch_seconds_and_milliseconds(self):
        expected = datetime(2023, 11, 14, 22, 13, 20)

        assert parse_time(1700000000) == expected
        assert parse_time(1700000000000) == expected
        assert parse_time(1700000000000.0) == expected

    def test_parse_time_out_of_range(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_time(1e20)

        assert exc_info.value.details['value'] == 1e20

    def test_record_with_out_of_range_timestamp(self):
        with pytest.raises(ValidationError):
            ContentItem.from_dict({'id': 'a', 'extracted_text': 'x', 'created_at': 1e20})

    def test_aware_timestamp_normalized(self):
        local = timezone(timedelta(hours=1))
        item = ContentItem(id='a', text='x', timestamp=datetime(2024, 3, 15, 10, 0, tzinfo=local))

        assert item.timestamp == datetime(2024, 3, 15, 9, 0)
        assert item.timestamp.tzinfo is None

    def test_string_and_missing_timestamp_normalized(self):
        assert ContentItem(id='a', text='x', timestamp='2024-03-15T09:00:00Z').timestamp == datetime(2024, 3, 15, 9, 0)
        assert ContentItem(id='b', text='x', timestamp=None).timestamp == EPOCH
