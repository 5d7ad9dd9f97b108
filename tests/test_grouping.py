"""
Tests for Content Grouping

Tests ContentGrouper strategies, overlap merging and group suggestions.
"""

import logging
import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.config import EngineConfig
from core.models import CorpusSnapshot
from intelligence.grouping import ContentGrouper, ContentGroup, GroupMember, group_id
from tests.fixtures.sample_corpus import make_item, make_file


def make_group(name, items, confidence=0.6, tags=()):
    return ContentGroup(
        id=group_id(name, [i.id for i in items]),
        title=name,
        description='',
        group_type='component',
        confidence=confidence,
        strategy=name,
        items=[GroupMember(item, 0.8, index) for index, item in enumerate(items)],
        tags=list(tags),
    )


class TestOverlapMerging:
    """Tests for merge_overlapping_groups."""

    @pytest.fixture
    def grouper(self):
        return ContentGrouper(EngineConfig())

    @pytest.fixture
    def items(self):
        return [make_item(f'i{n}', f'const v{n} = {n};', n) for n in range(5)]

    def test_overlapping_groups_merge(self, grouper, items):
        first = make_group('semantic', items[:2], 0.8, ['a', 'b'])
        second = make_group('topic', items[:3], 0.4, ['b', 'c'])

        merged = grouper.merge_overlapping_groups([first, second])

        assert len(merged) == 1
        assert set(merged[0].item_ids) == {'i0', 'i1', 'i2'}
        assert merged[0].confidence == pytest.approx(0.6)
        assert merged[0].title == 'semantic (Merged)'
        assert merged[0].tags == ['a', 'b', 'c']
        assert merged[0].strategy == 'semantic+topic'
        assert merged[0].suggested_actions[-1].reason == 'Merged 2 related groups'

    def test_forty_percent_shared_members_merge(self, grouper, items):
        first = make_group('a', items[:3])
        second = make_group('b', items[1:3] + items[4:5])

        assert len(grouper.merge_overlapping_groups([first, second])) == 1

    def test_disjoint_groups_stay_apart(self, grouper, items):
        first = make_group('a', items[:2])
        second = make_group('b', items[2:4])

        assert len(grouper.merge_overlapping_groups([first, second])) == 2

    def test_merged_tags_capped(self, grouper, items):
        first = make_group('a', items[:2], tags=[f't{n}' for n in range(6)])
        second = make_group('b', items[:2], tags=[f'u{n}' for n in range(6)])

        merged = grouper.merge_overlapping_groups([first, second])

        assert len(merged[0].tags) == 8


class TestGroupContent:
    """Tests for group_content."""

    @pytest.fixture
    def grouper(self):
        return ContentGrouper(EngineConfig())

    def test_too_few_items(self, grouper):
        assert grouper.group_content(CorpusSnapshot()) == []
        assert grouper.group_content(CorpusSnapshot.from_items([make_item('a', 'const a = 1;')])) == []

    def test_dependency_and_session(self, grouper):
        corpus = CorpusSnapshot.from_items([
            make_item('decl', 'function foo() {}', 0),
            make_item('call', 'foo()', 5),
        ])

        groups = grouper.group_content(corpus)

        assert len(groups) == 1
        assert set(groups[0].item_ids) == {'decl', 'call'}
        assert set(groups[0].strategy.split('+')) == {'temporal', 'dependency'}
        assert groups[0].confidence == pytest.approx(0.375)

    def test_dependency_order(self, grouper):
        items = [make_item('call', 'foo()', 0), make_item('decl', 'function foo() {}', 60 * 24)]

        groups = grouper._group_by_dependencies(items, {})

        assert len(groups) == 1
        assert groups[0].item_ids == ['decl', 'call']
        assert groups[0].tags == ['foo']

    def test_project_group(self, grouper):
        corpus = CorpusSnapshot.from_items([
            make_item('h', "import React from 'react';\nexport const Header = () => null;", 0),
            make_item('f', "import { useMemo } from 'react';\nexport const Footer = () => null;", 60 * 24),
            make_item('s', "import { render } from 'react-dom';\nrender(1);", 60 * 48),
        ])

        groups = grouper.group_content(corpus)
        project_groups = [g for g in groups if 'project' in g.strategy.split('+')]

        assert len(project_groups) == 1
        assert {'h', 'f'} <= set(project_groups[0].item_ids)

    def test_sessions_split_on_gaps(self, grouper):
        items = [
            make_item('a', 'const a = 1;', 0),
            make_item('b', 'const b = 2;', 30),
            make_item('c', 'const c = 3;', 300),
            make_item('d', 'const d = 4;', 320),
        ]

        signatures = {item.id: grouper.extractor.extract(item.content) for item in items}

        groups = grouper._group_by_temporal_proximity(items, signatures)

        assert [g.item_ids for g in groups] == [['a', 'b'], ['c', 'd']]
        assert all(g.group_type == 'experiment' for g in groups)

    def test_deterministic_ids(self, grouper):
        corpus = CorpusSnapshot.from_items([
            make_item('decl', 'function foo() {}', 0),
            make_item('call', 'foo()', 5),
        ])

        first = [g.id for g in grouper.group_content(corpus)]
        second = [g.id for g in grouper.group_content(corpus)]

        assert first == second

    def test_groups_capped(self):
        config = EngineConfig()
        grouper = ContentGrouper(config)
        items = []
        for n in range(30):
            items.append(make_item(f'a{n}', f'const a{n} = {n};', n * 600))
            items.append(make_item(f'b{n}', f'const b{n} = {n};', n * 600 + 1))

        groups = grouper.group_content(CorpusSnapshot.from_items(items))

        assert len(groups) <= config.grouping.max_groups

    def test_failing_strategy_is_skipped(self, grouper, monkeypatch, caplog):
        def broken(items, signatures):
            raise RuntimeError('broken strategy')

        monkeypatch.setitem(grouper.strategies, 'semantic', broken)
        corpus = CorpusSnapshot.from_items([
            make_item('decl', 'function foo() {}', 0),
            make_item('call', 'foo()', 5),
        ])

        with caplog.at_level(logging.WARNING):
            groups = grouper.group_content(corpus)

        failures = [r for r in caplog.records if getattr(r, 'details', None) == {'strategy': 'semantic'}]
        assert len(groups) == 1
        assert set(groups[0].strategy.split('+')) == {'temporal', 'dependency'}
        assert groups[0].confidence == pytest.approx(0.375)
        assert failures[0].getMessage() == 'internal_error: broken strategy'

    def test_project_group_tags_technologies(self, grouper):
        items = [
            make_item('h', "import React from 'react';\nimport { connect } from 'redux';\nconnect(Header);", 0),
            make_item('f', "import React from 'react';\nimport { connect } from 'redux';\nconnect(Footer);", 5),
        ]

        groups = grouper._group_by_project(items, {})

        assert len(groups) == 1
        assert groups[0].tags[:2] == ['react', 'redux']



class TestGroupSuggestions:
    """Tests for suggest_groups."""

    @pytest.fixture
    def grouper(self):
        return ContentGrouper(EngineConfig())

    def test_topic_and_project_suggestions(self, grouper):
        corpus = CorpusSnapshot.from_items([
            make_file('f1', 'javascript-login', "Wraps '@acme/auth' helpers", language='javascript', tags=('auth',)),
            make_file('f2', 'python-report', 'Reports', language='python'),
        ])
        text = "import { signIn } from '@acme/auth';\nsignIn(user);"

        suggestions = grouper.suggest_groups(
            text, 'authentication', ['authentication', 'auth'], 'javascript', corpus
        )

        assert [s.group_name for s in suggestions] == ['Authentication Components', '@acme/auth Project']
        assert suggestions[0].confidence == 0.8
        assert suggestions[0].related_items == ['f1']
        assert suggestions[1].confidence == 0.7

    def test_no_files(self, grouper):
        assert grouper.suggest_groups('const a = 1;', 'general', [], 'javascript', CorpusSnapshot()) == []


class TestRelationships:
    """Tests for links between surviving groups."""

    @pytest.fixture
    def grouper(self):
        return ContentGrouper(EngineConfig())

    @staticmethod
    def links(group):
        return [(r.target_group_id, r.relationship_type, r.strength) for r in group.relationships]

    def test_depends_on(self, grouper):
        declarations = make_group('decl', [
            make_item('d1', 'function foo() {}'),
            make_item('d2', 'function bar() {}'),
        ])
        callers = make_group('use', [make_item('u1', 'foo();'), make_item('u2', 'bar();')])

        grouper._add_relationships([declarations, callers], {})

        assert self.links(callers) == [(declarations.id, 'depends_on', 0.7)]
        assert declarations.relationships == []

    def test_extends(self, grouper):
        bases = make_group('base', [make_item('b1', 'class Animal {}'), make_item('b2', 'class Plant {}')])
        children = make_group('child', [
            make_item('c1', 'class Dog extends Animal {}'),
            make_item('c2', 'class Cat extends Animal {}'),
        ])

        grouper._add_relationships([bases, children], {})

        assert self.links(children) == [(bases.id, 'extends', 0.6)]
        assert bases.relationships == []

    def test_refactors(self, grouper):
        subtract = 'function sub(a, b) {\n  return a - b;\n}'
        reworked = make_group('new', [
            make_item('r1', 'function add(a, b) {\n  return a + b; // refactor\n}'),
            make_item('r2', subtract),
        ])
        original = make_group('old', [
            make_item('o1', 'function add(a, b) {\n  return a + b;\n}'),
            make_item('o2', subtract),
        ])

        grouper._add_relationships([reworked, original], {})

        assert self.links(reworked) == [(original.id, 'refactors', 0.8)]
        assert original.relationships == []

    def test_relationships_capped(self, grouper):
        declarations = [
            make_group(f'decl{n}', [
                make_item(f'f{n}', f'function f{n}() {{}}'),
                make_item(f'g{n}', f'function g{n}() {{}}'),
            ])
            for n in range(6)
        ]
        callers = make_group('use', [
            make_item('u1', 'f0(); f1(); f2();'),
            make_item('u2', 'f3(); f4(); f5();'),
        ])

        grouper._add_relationships(declarations + [callers], {})

        assert len(callers.relationships) == 5
        assert {r.relationship_type for r in callers.relationships} == {'depends_on'}
        assert all(group.relationships == [] for group in declarations)
