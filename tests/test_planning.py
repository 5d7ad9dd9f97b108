"""
Tests for Organization Planning

Tests structure analysis, project structure detection, plan building and
plan selection.
"""

import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.config import EngineConfig, PlanningSettings
from core.errors import ValidationError
from core.models import CorpusSnapshot
from intelligence.grouping import ContentGroup, GroupMember, group_id
from intelligence.organizer import ContentOrganizer
from intelligence.planning import (
    OrganizationPlanner, OrganizationPlan, OrganizationAction, ExpectedOutcome
)
from tests.fixtures.sample_corpus import make_item, make_file, LOGIN_FORM

CART = """import React, { useState } from 'react';
import { api } from '@acme/shop';
export function Cart() {
  const [items] = useState([]);
  return <List items={items} />;
}"""

ORDERS = """import { api } from '@acme/shop';
export async function loadOrders() {
  return api.get('/orders');
}"""

CART_TEST = """import { render } from '@acme/shop';
describe('cart', () => {
  it('renders', () => render());
});"""

ENV = """module.exports = {
  apiUrl: process.env.API_URL,
};"""

FORMAT = "export const formatPrice = (cents) => (cents / 100).toFixed(2);"


def make_group(items, group_type='project', confidence=0.75, strategy='project'):
    return ContentGroup(
        id=group_id(strategy, [i.id for i in items]),
        title='Shop',
        description='',
        group_type=group_type,
        confidence=confidence,
        strategy=strategy,
        items=[GroupMember(item, 0.8, index) for index, item in enumerate(items)],
    )


def make_plan(plan_id, confidence, accuracy, auto_flags):
    actions = [
        OrganizationAction(id=f'{plan_id}-{n}', action_type='merge', priority='high',
                           description='', auto_executable=flag)
        for n, flag in enumerate(auto_flags)
    ]
    return OrganizationPlan(
        id=plan_id,
        name=plan_id,
        description='',
        confidence=confidence,
        actions=actions,
        expected_outcome=ExpectedOutcome(improved_accuracy=accuracy),
    )


@pytest.fixture
def planner():
    return OrganizationPlanner(EngineConfig())


@pytest.fixture
def shop_items():
    return [
        make_item('cart', CART, 0),
        make_item('orders', ORDERS, 60 * 24),
        make_item('cart-test', CART_TEST, 60 * 48),
        make_item('env', ENV, 60 * 72),
        make_item('format', FORMAT, 60 * 96),
    ]


@pytest.fixture
def duplicate_corpus():
    """Two auth files with the same description, each holding the same form."""
    return CorpusSnapshot.from_items([
        make_file('f1', 'login-form', 'Password login with JWT token', 0),
        make_file('f2', 'signup-flow', 'Password login with JWT token', 10),
        make_item('s1', LOGIN_FORM, 20, file_id='f1'),
        make_item('s2', LOGIN_FORM, 30, file_id='f2'),
    ])


class TestStructureSummary:
    """Tests for analyze_structure."""

    def test_scores_grouped_and_filed_shares(self, planner):
        items = [
            make_file('f1', 'notes', 'misc'),
            make_item('s1', 'const a = 1;', 1, file_id='f1'),
            make_item('s2', 'const b = 2;', 2),
            make_item('s3', 'const c = 3;', 3),
        ]
        corpus = CorpusSnapshot.from_items(items)

        summary = planner.analyze_structure(corpus, groups=[make_group(items[1:3])])

        assert summary.total_files == 1
        assert summary.total_snippets == 3
        assert summary.existing_groups == 1
        assert summary.avg_group_size == 2.0
        assert summary.ungrouped_items == 2
        assert summary.organization_score == pytest.approx((0.5 + 1 / 3) / 2)

    def test_empty_corpus(self, planner):
        summary = planner.analyze_structure(CorpusSnapshot(), groups=[])

        assert summary.organization_score == 0.0
        assert summary.avg_group_size == 0.0


class TestProjectStructures:
    """Tests for detect_project_structures."""

    def test_roles_technologies_and_patterns(self, planner, shop_items):
        corpus = CorpusSnapshot.from_items(shop_items)

        projects = planner.detect_project_structures(corpus, groups=[make_group(shop_items)])

        assert len(projects) == 1
        project = projects[0]
        assert project.name == '@acme/shop'
        assert project.project_type == 'web_app'
        assert project.confidence == pytest.approx(0.75)
        assert project.structure == {
            'components': ['cart'],
            'services': ['orders'],
            'utilities': ['format'],
            'configuration': ['env'],
            'tests': ['cart-test'],
        }
        assert 'react' in project.technologies
        assert project.dependencies == ['react']
        assert project.patterns == ['react-hooks', 'testing', 'async-patterns']

    def test_weak_project_is_dropped(self, planner):
        items = [make_item('a', 'const a = 1;'), make_item('b', 'const b = 2;', 1)]
        corpus = CorpusSnapshot.from_items(items)

        assert planner.detect_project_structures(corpus, groups=[make_group(items, confidence=0.5)]) == []

    def test_inferred_project_raises_confidence(self, planner):
        items = [
            make_item(f'x{n}', f"import {{ a }} from '@acme/shop';\nimport {{ b }} from '@acme/ui';\nconst v{n} = a(b);", n)
            for n in range(3)
        ]
        corpus = CorpusSnapshot.from_items(items)

        projects = planner.detect_project_structures(corpus, groups=[make_group(items, confidence=0.3)])

        # 0.2 for three items, 0.3 for scoped names, 0.2 for two shared indicators
        assert len(projects) == 1
        assert projects[0].confidence == pytest.approx(0.7)
        assert projects[0].name == '@acme/shop'
        assert projects[0].dependencies == ['@acme/ui']

    def test_small_non_project_group_is_not_a_candidate(self, planner, shop_items):
        corpus = CorpusSnapshot.from_items(shop_items)
        group = make_group(shop_items[:3], group_type='component', confidence=0.9, strategy='semantic')

        assert planner.detect_project_structures(corpus, groups=[group]) == []

    def test_large_confident_group_is_a_candidate(self, planner, shop_items):
        corpus = CorpusSnapshot.from_items(shop_items)
        group = make_group(shop_items[:4], group_type='component', confidence=0.8, strategy='semantic')

        projects = planner.detect_project_structures(corpus, groups=[group])

        assert [p.name for p in projects] == ['@acme/shop']

    def test_tutorial_type(self, planner):
        items = [
            make_file('t1', 'react-tutorial-step-1', 'const a = 1;'),
            make_file('t2', 'react-tutorial-step-2', 'const b = 2;', 1),
        ]
        corpus = CorpusSnapshot.from_items(items)

        projects = planner.detect_project_structures(corpus, groups=[make_group(items)])

        assert projects[0].project_type == 'tutorial'

    def test_mobile_type(self, planner):
        items = [
            make_item('m1', "import { View } from 'react-native';\nconst Screen = () => null;"),
            make_item('m2', "import { Text } from 'react-native';\nconst Label = () => null;", 1),
        ]
        corpus = CorpusSnapshot.from_items(items)

        projects = planner.detect_project_structures(corpus, groups=[make_group(items)])

        assert projects[0].project_type == 'mobile_app'
        assert projects[0].structure['components'] == ['m1']

    def test_library_and_experiment_types(self, planner):
        library = [
            make_item('l1', "export function slugify(text) {\n  return text.trim();\n}"),
            make_item('l2', "export function pad(text) {\n  return text + ' ';\n}", 1),
        ]
        session = [
            make_item('e1', "def add(a, b):\n    return a + b"),
            make_item('e2', "def sub(a, b):\n    return a - b", 1),
        ]
        corpus = CorpusSnapshot.from_items(library + session)
        groups = [make_group(library), make_group(session, strategy='temporal')]

        projects = planner.detect_project_structures(corpus, groups=groups)

        assert [p.project_type for p in projects] == ['library', 'experiment']


class TestOrganizationPlans:
    """Tests for analyze_organization."""

    def test_duplicate_corpus_plans(self, planner, duplicate_corpus):
        plans = {plan.name: plan for plan in planner.analyze_organization(duplicate_corpus)}

        assert {
            'Topic-Based Organization',
            'Time-Based Organization',
            'Similarity-Based Organization',
            'Intelligent Hybrid Organization',
        } <= set(plans)
        assert all(plan.confidence > 0.4 and plan.actions for plan in plans.values())

        similarity = plans['Similarity-Based Organization']
        assert [a.affected_items for a in similarity.actions] == [['f1', 'f2'], ['s1', 's2']]
        assert all(a.auto_executable for a in similarity.actions)
        assert similarity.expected_outcome.files_reduced == 1
        assert similarity.estimated_time_ms == 2400

        topic = plans['Topic-Based Organization']
        assert topic.actions[0].affected_items == ['f1', 'f2']
        assert topic.actions[0].priority == 'medium'

        time_plan = plans['Time-Based Organization']
        assert time_plan.actions[0].affected_items == ['f1', 'f2', 's1', 's2']
        assert time_plan.expected_outcome.files_reduced == 0

    def test_hybrid_topic_groups_wait_for_merges(self, planner, duplicate_corpus):
        plans = {plan.id: plan for plan in planner.analyze_organization(duplicate_corpus)}
        hybrid = plans['plan_hybrid']

        merges = [a for a in hybrid.actions if a.action_type == 'merge']
        topic_group = hybrid.actions[-1]

        assert all(a.priority == 'medium' for a in merges)
        assert topic_group.priority == 'low'
        assert topic_group.depends_on == ['hybrid-merge-1']

    def test_nothing_to_do(self, planner):
        corpus = CorpusSnapshot.from_items([make_item('a', 'const a = 1;')])

        assert planner.analyze_organization(corpus) == []

    def test_confidence_floor_from_config(self, duplicate_corpus):
        config = EngineConfig(planning=PlanningSettings(min_plan_confidence=0.75))

        names = [plan.name for plan in OrganizationPlanner(config).analyze_organization(duplicate_corpus)]

        assert 'Topic-Based Organization' not in names
        assert 'Time-Based Organization' not in names
        assert 'Intelligent Hybrid Organization' in names

    def test_pair_item_cap_from_config(self, duplicate_corpus):
        config = EngineConfig(planning=PlanningSettings(max_pair_items=2))

        pairs = OrganizationPlanner(config).find_similar_pairs(duplicate_corpus)

        assert pairs == [('f1', 'f2', 1.0)]


class TestPlanSelection:
    """Tests for select_plan and sort_actions_by_priority."""

    @pytest.fixture
    def plans(self):
        return [
            make_plan('cautious', 0.9, 0.6, [False, False]),
            make_plan('quick', 0.8, 0.5, [True]),
        ]

    def test_balanced(self, planner, plans):
        assert planner.select_plan(plans).id == 'quick'

    def test_aggressive(self, planner, plans):
        assert planner.select_plan(plans, strategy='aggressive').id == 'cautious'

    def test_conservative(self, planner, plans):
        assert planner.select_plan(plans, strategy='conservative').id == 'cautious'

    def test_plan_without_actions(self, planner):
        assert planner.select_plan([make_plan('empty', 0.5, 0.2, [])]).id == 'empty'

    def test_no_plans(self, planner):
        assert planner.select_plan([]) is None

    def test_unknown_strategy(self, planner, plans):
        with pytest.raises(ValidationError):
            planner.select_plan(plans, strategy='random')

    def test_sort_actions(self, planner):
        actions = [
            OrganizationAction(id='a', action_type='group', priority='low', description='', estimated_impact=0.9),
            OrganizationAction(id='b', action_type='merge', priority='high', description='', estimated_impact=0.5),
            OrganizationAction(id='c', action_type='merge', priority='high', description='', estimated_impact=0.7),
            OrganizationAction(id='d', action_type='group', priority='medium', description=''),
        ]

        assert [a.id for a in planner.sort_actions_by_priority(actions)] == ['c', 'b', 'd', 'a']


class TestOrganizerPlanning:
    """Tests for the ContentOrganizer planning entry points."""

    def test_analyze_organization(self, duplicate_corpus):
        organizer = ContentOrganizer(EngineConfig())

        plans = organizer.analyze_organization(duplicate_corpus)

        assert 'plan_similarity' in [p.id for p in plans]
        assert all(isinstance(p.to_dict()['expected_outcome'], dict) for p in plans)

    def test_detect_project_structures(self, shop_items):
        organizer = ContentOrganizer(EngineConfig())

        projects = organizer.detect_project_structures(CorpusSnapshot.from_items(shop_items))

        assert all(p.confidence > 0.6 for p in projects)
