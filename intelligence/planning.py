"""
CodeShelf Organization Planning

Corpus-wide view of how organized a user's shelf is, and concrete plans to
improve it. Nothing is executed here; each plan is a list of actions the
caller may apply.

Plans:
- Project-based: one group per detected project, plus near-duplicate merges
- Topic-based: files bucketed by their primary topic
- Time-based: busy months gathered into period groups
- Similarity-based: near-duplicate pairs merged
- Hybrid: projects first, then merges, then topic groups that wait on them

Plans at or below the configured confidence floor, and plans with nothing to
do, are dropped.

Usage:
    from intelligence.planning import OrganizationPlanner

    planner = OrganizationPlanner()
    plans = planner.analyze_organization(corpus)
    best = planner.select_plan(plans, strategy='balanced')

    for action in planner.sort_actions_by_priority(best.actions):
        print(action.priority, action.description)
"""

import re
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import List, Dict, Optional, Tuple

import numpy as np

from core.config import EngineConfig, get_config
from core.errors import ValidationError
from core.logging_config import log_operation
from core.models import ContentItem, CorpusSnapshot, EPOCH
from context.project_inference import Project, ProjectInferrer
from enrichment.classifier import TopicClassifier
from enrichment.naming import PATTERN_FAMILIES
from enrichment.signature import score_languages
from intelligence.grouping import ContentGroup, ContentGrouper, group_id
from intelligence.similarity import SimilarityEngine

logger = logging.getLogger(__name__)

PRIORITY_ORDER = {'high': 0, 'medium': 1, 'low': 2}

PROJECT_ROLES = ('components', 'services', 'utilities', 'configuration', 'tests')


@dataclass
class OrganizationAction:
    """One step of a plan."""
    id: str
    action_type: str  # merge, group, reorder, classify, archive, split
    priority: str  # high, medium, low
    description: str
    affected_items: List[str] = field(default_factory=list)
    estimated_impact: float = 0.0
    auto_executable: bool = False
    depends_on: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'type': self.action_type,
            'priority': self.priority,
            'description': self.description,
            'affected_items': self.affected_items,
            'estimated_impact': round(self.estimated_impact, 4),
            'auto_executable': self.auto_executable,
            'depends_on': self.depends_on,
        }


@dataclass
class ExpectedOutcome:
    files_reduced: int = 0
    snippets_consolidated: int = 0
    new_groups: int = 0
    improved_accuracy: float = 0.0

    def to_dict(self) -> dict:
        return {
            'files_reduced': self.files_reduced,
            'snippets_consolidated': self.snippets_consolidated,
            'new_groups': self.new_groups,
            'improved_accuracy': self.improved_accuracy,
        }


@dataclass
class OrganizationPlan:
    """A named set of actions with its expected payoff."""
    id: str
    name: str
    description: str
    confidence: float
    actions: List[OrganizationAction] = field(default_factory=list)
    expected_outcome: ExpectedOutcome = field(default_factory=ExpectedOutcome)
    estimated_time_ms: int = 0

    @property
    def auto_executable_ratio(self) -> float:
        if not self.actions:
            return 0.0
        return sum(1 for a in self.actions if a.auto_executable) / len(self.actions)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'confidence': self.confidence,
            'actions': [a.to_dict() for a in self.actions],
            'expected_outcome': self.expected_outcome.to_dict(),
            'estimated_time_ms': self.estimated_time_ms,
        }


@dataclass
class StructureSummary:
    """How organized the corpus is right now."""
    total_files: int
    total_snippets: int
    existing_groups: int
    avg_group_size: float
    ungrouped_items: int
    organization_score: float

    def to_dict(self) -> dict:
        return {
            'total_files': self.total_files,
            'total_snippets': self.total_snippets,
            'existing_groups': self.existing_groups,
            'avg_group_size': round(self.avg_group_size, 2),
            'ungrouped_items': self.ungrouped_items,
            'organization_score': round(self.organization_score, 4),
        }


@dataclass
class ProjectStructure:
    """A detected project and the role each of its items plays."""
    id: str
    name: str
    project_type: str  # web_app, mobile_app, library, utility, tutorial, experiment
    confidence: float
    structure: Dict[str, List[str]] = field(default_factory=dict)
    dependencies: List[str] = field(default_factory=list)
    technologies: List[str] = field(default_factory=list)
    patterns: List[str] = field(default_factory=list)

    @property
    def item_ids(self) -> List[str]:
        return [item_id for role in PROJECT_ROLES for item_id in self.structure.get(role, [])]

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'type': self.project_type,
            'confidence': round(self.confidence, 4),
            'structure': self.structure,
            'dependencies': self.dependencies,
            'technologies': self.technologies,
            'patterns': self.patterns,
        }


class OrganizationPlanner:
    """
    Build organization plans and detect project structures.

    Stateless between calls; every call regroups the corpus it is given.
    """

    # Checked in order; the first matching role wins
    ROLE_PATTERNS: List[Tuple[str, re.Pattern]] = [
        ('tests', re.compile(r'\b(?:describe|it|test)\(|\bdef test_|\bexpect\(|\bassert\b|@Test\b')),
        ('configuration', re.compile(
            r'\b(?:config|settings|environment)\b|process\.env|os\.environ|module\.exports\s*=\s*\{',
            re.I
        )),
        ('components', re.compile(
            r'<[A-Z]\w*[\s/>]|\bReact\.|\buse(?:State|Effect)\(|@Component\b|\bStyleSheet\.|\bView\b'
        )),
        ('services', re.compile(
            r'\bfetch\(|\baxios\b|\bapi\b|\b(?:router|app)\.(?:get|post|put|delete)\(|\bclass\s+\w*Service\b',
            re.I
        )),
    ]

    TUTORIAL_WORDS = re.compile(r'\b(?:tutorial|example|demo|lesson|exercise|step\s*\d+)\b', re.I)
    EXPORT_PATTERN = re.compile(r'^\s*export\s|module\.exports|^__all__\s*=', re.MULTILINE)

    MOBILE_TECHNOLOGIES = ProjectInferrer.TECH_STACKS['mobile'] | {'android', 'uikit', 'swiftui'}
    WEB_STACKS = {'react_frontend', 'vue_frontend', 'angular_frontend', 'python_backend', 'node_backend'}
    WEB_TOPICS = {'web-development', 'backend-development', 'ui-components', 'api-integration'}

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        grouper: Optional[ContentGrouper] = None,
        similarity_engine: Optional[SimilarityEngine] = None,
        classifier: Optional[TopicClassifier] = None,
        project_inferrer: Optional[ProjectInferrer] = None
    ):
        self.config = config or get_config()
        self.settings = self.config.planning
        self.projects = project_inferrer or ProjectInferrer()
        self.similarity = similarity_engine or SimilarityEngine(self.config)
        self.grouper = grouper or ContentGrouper(self.config, self.similarity, self.projects)
        self.classifier = classifier or TopicClassifier(self.config, project_inferrer=self.projects)

    # -------------------------------------------------------------------------
    # Current structure
    # -------------------------------------------------------------------------

    def analyze_structure(
        self,
        corpus: CorpusSnapshot,
        groups: Optional[List[ContentGroup]] = None
    ) -> StructureSummary:
        """
        Summarize how organized the corpus is.

        organization_score is the mean of the grouped share of items and the
        share of snippets filed under a file.
        """
        if groups is None:
            groups = self.grouper.group_content(corpus)

        total = len(corpus)
        grouped = {item_id for group in groups for item_id in group.item_ids}
        sizes = [len(group.items) for group in groups]

        grouped_ratio = len(grouped) / total if total else 0.0
        snippets = corpus.snippets
        filed_ratio = (
            sum(1 for s in snippets if s.file_id) / len(snippets) if snippets else float(bool(corpus.files))
        )

        return StructureSummary(
            total_files=len(corpus.files),
            total_snippets=len(snippets),
            existing_groups=len(groups),
            avg_group_size=float(np.mean(sizes)) if sizes else 0.0,
            ungrouped_items=total - len(grouped),
            organization_score=float(np.mean([grouped_ratio, filed_ratio])),
        )

    # -------------------------------------------------------------------------
    # Plans
    # -------------------------------------------------------------------------

    def analyze_organization(self, corpus: CorpusSnapshot) -> List[OrganizationPlan]:
        """
        Build every plan for the corpus.

        Returns:
            Plans above min_plan_confidence that have at least one action,
            in project, topic, time, similarity, hybrid order
        """
        with log_operation(logger, 'analyze_organization', logging.INFO, items=len(corpus)) as op:
            groups = self.grouper.group_content(corpus)
            projects = self.detect_project_structures(corpus, groups)
            pairs = self.find_similar_pairs(corpus)

            plans = [
                self._project_plan(corpus, projects, pairs),
                self._topic_plan(corpus),
                self._time_plan(corpus),
                self._similarity_plan(pairs),
                self._hybrid_plan(corpus, projects, pairs),
            ]

            kept = [
                plan for plan in plans
                if plan.confidence > self.settings.min_plan_confidence and plan.actions
            ]
            op['plans'] = len(kept)
            op['summary'] = f"{len(kept)} of {len(plans)} plans kept for {len(corpus)} items"

        return kept

    def _project_plan(
        self,
        corpus: CorpusSnapshot,
        projects: List[ProjectStructure],
        pairs: List[Tuple[str, str, float]]
    ) -> OrganizationPlan:
        actions = [
            OrganizationAction(
                id=f'project-group-{n}',
                action_type='group',
                priority='high',
                description=f"Group {project.name} ({project.project_type}) items",
                affected_items=project.item_ids,
                estimated_impact=0.8,
            )
            for n, project in enumerate(projects, 1)
        ]
        actions.extend(self._merge_actions(pairs, 'project'))

        return OrganizationPlan(
            id='plan_project',
            name='Project-Based Organization',
            description='Organize content by detected projects',
            confidence=0.8 if projects else 0.3,
            actions=actions,
            expected_outcome=ExpectedOutcome(
                files_reduced=int(len(corpus.files) * 0.2),
                snippets_consolidated=int(len(corpus.snippets) * 0.3),
                new_groups=len(projects),
                improved_accuracy=0.4,
            ),
            estimated_time_ms=len(actions) * 1000,
        )

    def _topic_plan(self, corpus: CorpusSnapshot) -> OrganizationPlan:
        actions = self._topic_actions(corpus, 'topic', 'medium')

        return OrganizationPlan(
            id='plan_topic',
            name='Topic-Based Organization',
            description='Organize content by programming topics and concepts',
            confidence=0.7,
            actions=actions,
            expected_outcome=ExpectedOutcome(
                files_reduced=int(len(corpus.files) * 0.1),
                snippets_consolidated=int(len(corpus.snippets) * 0.2),
                new_groups=len(actions),
                improved_accuracy=0.3,
            ),
            estimated_time_ms=len(actions) * 800,
        )

    def _time_plan(self, corpus: CorpusSnapshot) -> OrganizationPlan:
        periods: Dict[str, List[str]] = defaultdict(list)
        for item in corpus.items():
            if item.timestamp != EPOCH:
                periods[item.timestamp.strftime('%Y-%m')].append(item.id)

        actions = [
            OrganizationAction(
                id=f'time-group-{n}',
                action_type='group',
                priority='low',
                description=f"Group work from {period}",
                affected_items=item_ids,
                estimated_impact=0.4,
            )
            for n, (period, item_ids) in enumerate(sorted(
                (p, ids) for p, ids in periods.items() if len(ids) >= self.settings.min_period_items
            ), 1)
        ]

        return OrganizationPlan(
            id='plan_time',
            name='Time-Based Organization',
            description='Organize content by development periods',
            confidence=0.5,
            actions=actions,
            expected_outcome=ExpectedOutcome(
                files_reduced=0,
                snippets_consolidated=int(len(corpus.snippets) * 0.1),
                new_groups=len(actions),
                improved_accuracy=0.2,
            ),
            estimated_time_ms=len(actions) * 600,
        )

    def _similarity_plan(self, pairs: List[Tuple[str, str, float]]) -> OrganizationPlan:
        actions = self._merge_actions(pairs, 'similarity')

        return OrganizationPlan(
            id='plan_similarity',
            name='Similarity-Based Organization',
            description='Merge near-duplicate content',
            confidence=0.8,
            actions=actions,
            expected_outcome=ExpectedOutcome(
                files_reduced=int(len(actions) * 0.5),
                snippets_consolidated=int(len(actions) * 0.7),
                new_groups=0,
                improved_accuracy=0.5,
            ),
            estimated_time_ms=len(actions) * 1200,
        )

    def _hybrid_plan(
        self,
        corpus: CorpusSnapshot,
        projects: List[ProjectStructure],
        pairs: List[Tuple[str, str, float]]
    ) -> OrganizationPlan:
        actions = [
            OrganizationAction(
                id=f'hybrid-project-{n}',
                action_type='group',
                priority='high',
                description=f"Group {project.name} items",
                affected_items=project.item_ids,
                estimated_impact=0.9,
            )
            for n, project in enumerate(projects, 1)
        ]

        merges = self._merge_actions(pairs, 'hybrid')
        for action in merges:
            action.priority = 'medium'
        actions.extend(merges)

        topic_groups = self._topic_actions(corpus, 'hybrid', 'low')
        for action in topic_groups:
            # Grouping waits for merges that touch the same items
            action.depends_on = [
                merge.id for merge in merges
                if set(merge.affected_items) & set(action.affected_items)
            ]
        actions.extend(topic_groups)

        return OrganizationPlan(
            id='plan_hybrid',
            name='Intelligent Hybrid Organization',
            description='Combine project detection, merging and topic grouping',
            confidence=0.9,
            actions=actions,
            expected_outcome=ExpectedOutcome(
                files_reduced=int(len(corpus.files) * 0.3),
                snippets_consolidated=int(len(corpus.snippets) * 0.4),
                new_groups=len(projects) + int(len(topic_groups) * 0.7),
                improved_accuracy=0.6,
            ),
            estimated_time_ms=len(actions) * 1000,
        )

    def _topic_actions(self, corpus: CorpusSnapshot, prefix: str, priority: str) -> List[OrganizationAction]:
        """One group action per topic shared by more than one file."""
        buckets: Dict[str, List[str]] = defaultdict(list)
        for item in corpus.files:
            topic = self.classifier.classify_topic(f'{item.title} {item.text}').primary_topic
            if topic != 'general':
                buckets[topic].append(item.id)

        return [
            OrganizationAction(
                id=f'{prefix}-topic-{n}',
                action_type='group',
                priority=priority,
                description=f"Group {len(item_ids)} {topic} files",
                affected_items=item_ids,
                estimated_impact=0.6,
            )
            for n, (topic, item_ids) in enumerate(
                ((t, ids) for t, ids in buckets.items() if len(ids) > 1), 1
            )
        ]

    def _merge_actions(self, pairs: List[Tuple[str, str, float]], prefix: str) -> List[OrganizationAction]:
        return [
            OrganizationAction(
                id=f'{prefix}-merge-{n}',
                action_type='merge',
                priority='high',
                description=f"Merge {a} and {b} ({score:.0%} similar)",
                affected_items=[a, b],
                estimated_impact=0.7,
                auto_executable=score > self.settings.auto_merge_pair_threshold,
            )
            for n, (a, b, score) in enumerate(pairs, 1)
        ]

    def find_similar_pairs(self, corpus: CorpusSnapshot) -> List[Tuple[str, str, float]]:
        """
        Item pairs scoring at least similar_pair_threshold, strongest first.

        Only the first max_pair_items items with content are compared.
        """
        items = [item for item in corpus.items() if item.content.strip()]
        items = items[:self.settings.max_pair_items]
        signatures = {item.id: self.similarity.extractor.extract(item.content) for item in items}

        pairs = []
        for i, a in enumerate(items):
            for b in items[i + 1:]:
                result = self.similarity.calculate_similarity(
                    a.content, b.content, signature_a=signatures[a.id], signature_b=signatures[b.id]
                )
                if result.score >= self.settings.similar_pair_threshold:
                    pairs.append((a.id, b.id, result.score))

        pairs.sort(key=lambda p: p[2], reverse=True)
        return pairs

    # -------------------------------------------------------------------------
    # Plan selection
    # -------------------------------------------------------------------------

    def select_plan(self, plans: List[OrganizationPlan], strategy: str = 'balanced') -> Optional[OrganizationPlan]:
        """
        Pick one plan.

        Strategies:
            aggressive: highest expected accuracy gain
            conservative: highest confidence, then most auto-executable actions
            balanced: 0.4 confidence + 0.3 accuracy gain + 0.3 auto-executable share
        """
        if not plans:
            return None

        if strategy == 'aggressive':
            return max(plans, key=lambda p: p.expected_outcome.improved_accuracy)
        if strategy == 'conservative':
            return max(plans, key=lambda p: (p.confidence, sum(1 for a in p.actions if a.auto_executable)))
        if strategy == 'balanced':
            return max(plans, key=lambda p: (
                p.confidence * 0.4
                + p.expected_outcome.improved_accuracy * 0.3
                + p.auto_executable_ratio * 0.3
            ))

        raise ValidationError(f"Unknown plan strategy: {strategy}", strategy=strategy)

    @staticmethod
    def sort_actions_by_priority(actions: List[OrganizationAction]) -> List[OrganizationAction]:
        """High before medium before low, then larger impact first."""
        return sorted(actions, key=lambda a: (PRIORITY_ORDER.get(a.priority, 3), -a.estimated_impact))

    # -------------------------------------------------------------------------
    # Project structures
    # -------------------------------------------------------------------------

    def detect_project_structures(
        self,
        corpus: CorpusSnapshot,
        groups: Optional[List[ContentGroup]] = None
    ) -> List[ProjectStructure]:
        """
        Detect projects among the corpus groups.

        A group is a candidate when it is a project group, or when it is large
        and confident enough. Candidates at or below min_project_confidence
        are dropped.
        """
        if groups is None:
            groups = self.grouper.group_content(corpus)

        inferred = self.projects.infer_projects([i for i in corpus.items() if i.content.strip()])

        structures = []
        for group in groups:
            is_candidate = group.group_type == 'project' or (
                len(group.items) >= self.settings.project_group_size
                and group.confidence > self.settings.project_group_confidence
            )
            if not is_candidate:
                continue

            structure = self._analyze_project(group, inferred)
            if structure.confidence > self.settings.min_project_confidence:
                structures.append(structure)
            else:
                logger.debug(f"Project candidate {group.title} dropped at {structure.confidence:.2f}")

        return structures

    def _analyze_project(self, group: ContentGroup, inferred: List[Project]) -> ProjectStructure:
        members = [m.item for m in group.items]
        member_ids = set(group.item_ids)

        structure: Dict[str, List[str]] = {role: [] for role in PROJECT_ROLES}
        for item in members:
            structure[self.item_role(item)].append(item.id)

        indicators: List[str] = []
        for item in members:
            indicators.extend(i for i in self.projects.extract_indicators(item.content) if i not in indicators)

        overlapping = [p for p in inferred if member_ids & set(p.item_ids)]
        project = max(overlapping, key=lambda p: len(member_ids & set(p.item_ids)), default=None)

        technologies = self.projects.detect_technologies(indicators)
        _, frameworks = score_languages(group.content, include_frameworks=True)
        technologies.update(frameworks)
        if project is not None:
            technologies.update(project.technologies)

        name = project.name if project is not None else group.title
        confidence = max(group.confidence, project.confidence if project is not None else 0.0)

        return ProjectStructure(
            id=group_id('project', group.item_ids),
            name=name,
            project_type=self._project_type(group, structure, technologies),
            confidence=confidence,
            structure=structure,
            dependencies=[i for i in indicators if i != name],
            technologies=sorted(technologies),
            patterns=[family for family, pattern in PATTERN_FAMILIES if pattern.search(group.content)],
        )

    def item_role(self, item: ContentItem) -> str:
        """Role an item plays in its project; utilities when nothing matches."""
        text = f'{item.title}\n{item.content}' if item.is_file else item.content
        for role, pattern in self.ROLE_PATTERNS:
            if pattern.search(text):
                return role
        return 'utilities'

    def _project_type(self, group: ContentGroup, structure: Dict[str, List[str]], technologies) -> str:
        content = group.content
        titles = ' '.join(m.item.title for m in group.items)

        if self.TUTORIAL_WORDS.search(titles) or self.TUTORIAL_WORDS.search(content):
            return 'tutorial'

        technologies = set(technologies)
        topic = self.classifier.classify_topic(content).primary_topic
        # React Native code also reads as React, so any mobile technology wins
        if technologies & self.MOBILE_TECHNOLOGIES or topic == 'mobile-development':
            return 'mobile_app'

        stack = self.projects.primary_stack(technologies)
        if stack in self.WEB_STACKS or topic in self.WEB_TOPICS or structure['components']:
            return 'web_app'

        if group.strategy == 'temporal':
            return 'experiment'
        if self.EXPORT_PATTERN.search(content):
            return 'library'
        return 'utility'
