"""
CodeShelf Content Grouping

Clusters a user's whole corpus (files and snippets) into logical groups using
five strategies, then reconciles them:

Strategies (weight):
- Semantic (0.30): near-duplicate code
- Temporal (0.20): coding sessions separated by idle gaps
- Project (0.25): shared project-name indicators
- Dependency (0.15): items connected by declarations and their uses
- Topic (0.10): shared topic vocabulary

Each strategy starts its groups at a base confidence (semantic 0.8, temporal
0.6, project 0.9, dependency 0.7, topic 0.6) and scales it by its weight over
the largest weight, so the heaviest strategy keeps its base unchanged. A
strategy that raises is logged and skipped; the others still run.

Post-processing merges overlapping groups, filters weak or trivial ones, and
links the survivors with depends_on / extends / refactors relationships.

Usage:
    from intelligence.grouping import ContentGrouper

    grouper = ContentGrouper()
    groups = grouper.group_content(corpus)

    for group in groups:
        print(f"{group.title}: {len(group.items)} items ({group.confidence:.2f})")
"""

import re
import hashlib
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Dict, Set, Optional, Callable

import numpy as np

from core.config import EngineConfig, get_config
from core.errors import describe_failure
from core.logging_config import log_operation
from core.models import ContentItem, CorpusSnapshot
from context.project_inference import ProjectInferrer
from enrichment.naming import top_keywords
from enrichment.signature import ContentSignature, SignatureExtractor, declared_names, dependency_names
from intelligence.similarity import SimilarityEngine

logger = logging.getLogger(__name__)


@dataclass
class GroupMember:
    """An item inside a group."""
    item: ContentItem
    group_relevance: float
    suggested_position: int

    def to_dict(self) -> dict:
        return {
            'id': self.item.id,
            'kind': self.item.kind,
            'group_relevance': round(self.group_relevance, 4),
            'suggested_position': self.suggested_position,
        }


@dataclass
class GroupRelationship:
    """Directed link from one group to another."""
    target_group_id: str
    relationship_type: str  # depends_on, extends, implements, refactors, supersedes
    strength: float

    def to_dict(self) -> dict:
        return {
            'target_group_id': self.target_group_id,
            'type': self.relationship_type,
            'strength': self.strength,
        }


@dataclass
class SuggestedAction:
    action: str  # merge, split, reorder, archive, promote
    reason: str
    confidence: float

    def to_dict(self) -> dict:
        return {'action': self.action, 'reason': self.reason, 'confidence': self.confidence}


@dataclass
class ContentGroup:
    """A logical group of corpus items."""
    id: str
    title: str
    description: str
    group_type: str  # project, feature, component, utility, tutorial, experiment
    confidence: float
    strategy: str
    items: List[GroupMember] = field(default_factory=list)
    relationships: List[GroupRelationship] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    suggested_actions: List[SuggestedAction] = field(default_factory=list)

    @property
    def item_ids(self) -> List[str]:
        return [m.item.id for m in self.items]

    @property
    def content(self) -> str:
        return '\n'.join(m.item.content for m in self.items)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'type': self.group_type,
            'confidence': round(self.confidence, 4),
            'strategy': self.strategy,
            'items': [m.to_dict() for m in self.items],
            'relationships': [r.to_dict() for r in self.relationships],
            'tags': self.tags,
            'suggested_actions': [a.to_dict() for a in self.suggested_actions],
        }


@dataclass
class GroupSuggestion:
    """A group the new capture could join."""
    group_name: str
    confidence: float
    related_items: List[str] = field(default_factory=list)
    reason: str = ''

    def to_dict(self) -> dict:
        return {
            'group_name': self.group_name,
            'confidence': self.confidence,
            'related_items': self.related_items,
            'reason': self.reason,
        }


def group_id(prefix: str, item_ids: List[str]) -> str:
    """Stable id derived from the member ids."""
    digest = hashlib.sha1('|'.join(sorted(item_ids)).encode('utf-8')).hexdigest()[:10]
    return f"{prefix}_{digest}"


class ContentGrouper:
    """
    Group corpus items with multiple strategies.

    Every call recomputes signatures; nothing is cached between calls.
    """

    TOPIC_BUCKETS = {
        'authentication': re.compile(r'\b(?:auth|login|signup|password|token)', re.I),
        'database': re.compile(r'\b(?:database|sql|query|table|schema)', re.I),
        'api': re.compile(r'\b(?:api|endpoint|request|response|fetch)', re.I),
        'ui': re.compile(r'\b(?:component|button|input|form|style)', re.I),
        'testing': re.compile(r'\b(?:test|spec|mock|expect|describe)', re.I),
        'configuration': re.compile(r'\b(?:config|setting|environment|setup)', re.I),
    }

    TOPIC_TITLES = {
        'authentication': 'Authentication',
        'database': 'Database',
        'api': 'API',
        'ui': 'UI',
        'testing': 'Testing',
        'configuration': 'Configuration',
    }

    TOPIC_GROUP_TYPES = {
        'authentication': 'feature',
        'database': 'component',
        'api': 'component',
        'ui': 'component',
        'testing': 'utility',
        'configuration': 'utility',
    }

    EXTENDS_PATTERNS = [
        re.compile(r'\b(?:extends|implements)\s+([A-Z]\w*)'),
        re.compile(r'class\s+\w+\s*\(\s*([A-Z]\w*)'),
    ]
    REFACTOR_WORDS = re.compile(r'\b(?:refactor|restructure|reorganize|cleanup|simplify)', re.I)

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        similarity_engine: Optional[SimilarityEngine] = None,
        project_inferrer: Optional[ProjectInferrer] = None
    ):
        self.config = config or get_config()
        self.settings = self.config.grouping
        self.extractor = SignatureExtractor()
        self.similarity = similarity_engine or SimilarityEngine(self.config, self.extractor)
        self.projects = project_inferrer or ProjectInferrer()

        self.strategies: Dict[str, Callable] = {
            'semantic': self._group_by_semantic_similarity,
            'temporal': self._group_by_temporal_proximity,
            'project': self._group_by_project,
            'dependency': self._group_by_dependencies,
            'topic': self._group_by_topic,
        }

    def group_content(self, corpus: CorpusSnapshot) -> List[ContentGroup]:
        """
        Group every item in the corpus.

        Args:
            corpus: Snapshot of the user's files and snippets

        Returns:
            Up to max_groups groups, strongest (confidence x size) first
        """
        items = [item for item in corpus.items() if item.content.strip()]
        if len(items) > self.settings.max_items:
            logger.info(f"Grouping capped at {self.settings.max_items} of {len(items)} items")
            items = items[:self.settings.max_items]

        if len(items) < 2:
            return []

        with log_operation(logger, 'group_content', logging.INFO, items=len(items)) as op:
            signatures = {item.id: self.extractor.extract(item.content) for item in items}
            weights = self.settings.strategy_weights
            top_weight = max(weights.values())

            groups: List[ContentGroup] = []
            for name, strategy in self.strategies.items():
                weight = weights.get(name, 0.0)
                if weight <= 0:
                    continue

                try:
                    produced = strategy(items, signatures)
                except Exception as e:
                    op.setdefault('failed_strategies', []).append(name)
                    describe_failure(e, strategy=name)
                    continue

                for group in produced:
                    group.confidence *= weight / top_weight
                groups.extend(produced)
                logger.debug(f"Strategy {name} produced {len(produced)} groups")

            merged = self.merge_overlapping_groups(groups)
            optimized = self._optimize_groups(merged)
            self._add_relationships(optimized, signatures)

            op['groups'] = len(optimized)
            op['summary'] = f"grouped {len(items)} items into {len(optimized)} groups"

        return optimized

    # -------------------------------------------------------------------------
    # Strategies
    # -------------------------------------------------------------------------

    def _group_by_semantic_similarity(
        self,
        items: List[ContentItem],
        signatures: Dict[str, ContentSignature]
    ) -> List[ContentGroup]:
        groups = []
        processed: Set[str] = set()

        for i, item in enumerate(items):
            if item.id in processed:
                continue

            similar = []
            for other in items[i + 1:]:
                if other.id in processed:
                    continue
                result = self.similarity.calculate_similarity(
                    item.content, other.content,
                    signature_a=signatures[item.id], signature_b=signatures[other.id]
                )
                if result.score > self.settings.semantic_threshold:
                    similar.append(other)

            if not similar:
                continue

            members = [item] + similar
            processed.update(m.id for m in members)

            actions = []
            if len(members) > 3:
                actions.append(SuggestedAction('merge', 'Many near-identical items could be consolidated', 0.7))

            groups.append(ContentGroup(
                id=group_id('semantic', [m.id for m in members]),
                title=f"Similar to {self._label(item)}",
                description=f"{len(members)} items with similar code",
                group_type='component',
                confidence=self.settings.base_confidence['semantic'],
                strategy='semantic',
                items=[
                    GroupMember(m, max(0.1, 1.0 - index * 0.1), index)
                    for index, m in enumerate(members)
                ],
                tags=top_keywords(self._joined(members), 5),
                suggested_actions=actions,
            ))

        return groups

    def _group_by_temporal_proximity(
        self,
        items: List[ContentItem],
        signatures: Dict[str, ContentSignature]
    ) -> List[ContentGroup]:
        ordered = sorted(items, key=lambda i: i.timestamp)
        gap_seconds = self.settings.session_gap_hours * 3600

        windows: List[List[ContentItem]] = [[ordered[0]]]
        window_end = ordered[0].timestamp
        for item in ordered[1:]:
            if (item.timestamp - window_end).total_seconds() > gap_seconds:
                windows.append([item])
            else:
                windows[-1].append(item)
            window_end = max(window_end, item.timestamp)

        groups = []
        for window in windows:
            if len(window) < 2:
                continue

            start, end = window[0].timestamp, window[-1].timestamp
            duration_minutes = int((end - start).total_seconds() // 60)
            is_session = duration_minutes < 60

            languages = []
            for item in window:
                language = item.language or signatures[item.id].language
                if language and language != 'unknown' and language not in languages:
                    languages.append(language)

            actions = []
            if duration_minutes < 30 and len(window) > 2:
                actions.append(SuggestedAction('merge', 'Quick session could be combined into one file', 0.6))

            groups.append(ContentGroup(
                id=group_id('temporal', [i.id for i in window]),
                title=(
                    f"Coding Session - {self._format_time(start)}" if is_session
                    else f"Development Period - {start.strftime('%Y-%m-%d')}"
                ),
                description=f"Content created during {duration_minutes // 60}h {duration_minutes % 60}m",
                group_type='experiment' if is_session else 'project',
                confidence=self.settings.base_confidence['temporal'],
                strategy='temporal',
                items=[GroupMember(item, 0.8, index) for index, item in enumerate(window)],
                tags=languages + top_keywords(self._joined(window), 3),
                suggested_actions=actions,
            ))

        return groups

    def _group_by_project(
        self,
        items: List[ContentItem],
        signatures: Dict[str, ContentSignature]
    ) -> List[ContentGroup]:
        by_id = {item.id: item for item in items}
        groups = []

        for project in self.projects.infer_projects(items):
            members = [by_id[i] for i in project.item_ids if i in by_id]
            if len(members) < 2:
                continue

            actions = []
            if len(members) > 5:
                actions.append(SuggestedAction('promote', 'Large project could become its own collection', 0.8))

            groups.append(ContentGroup(
                id=group_id('project', [m.id for m in members]),
                title=f"Project: {project.name}",
                description=f"Code sharing {', '.join(sorted(project.indicators))}",
                group_type='project',
                confidence=self.settings.base_confidence['project'],
                strategy='project',
                items=[GroupMember(m, 0.9, index) for index, m in enumerate(members)],
                tags=[project.name] + sorted(project.technologies - {project.name}) +
                top_keywords(self._joined(members), 5),
                suggested_actions=actions,
            ))

        return groups

    def _group_by_dependencies(
        self,
        items: List[ContentItem],
        signatures: Dict[str, ContentSignature]
    ) -> List[ContentGroup]:
        declared = {item.id: declared_names(item.content) for item in items}
        uses = {item.id: dependency_names(item.content) for item in items}

        # Undirected adjacency: an edge wherever one item uses another's declaration
        adj: Dict[str, Set[str]] = defaultdict(set)
        for item in items:
            for other in items:
                if item.id != other.id and uses[item.id] & declared[other.id]:
                    adj[item.id].add(other.id)
                    adj[other.id].add(item.id)

        visited: Set[str] = set()
        components = []
        for item in items:
            if item.id in visited or item.id not in adj:
                continue

            component = []
            queue = [item.id]
            while queue:
                node = queue.pop(0)
                if node in visited:
                    continue
                visited.add(node)
                component.append(node)
                for neighbor in sorted(adj[node]):
                    if neighbor not in visited:
                        queue.append(neighbor)

            if len(component) > 1:
                components.append(component)

        by_id = {item.id: item for item in items}
        groups = []
        for component in components:
            component_declared = set().union(*(declared[i] for i in component))

            # Items relying on fewer in-group declarations come first
            order = sorted(component, key=lambda i: len(uses[i] & (component_declared - declared[i])))
            shared = sorted(set().union(*(uses[i] for i in component)) & component_declared)

            groups.append(ContentGroup(
                id=group_id('dependency', component),
                title='Related Components',
                description=f"{len(component)} items connected through shared declarations",
                group_type='component',
                confidence=self.settings.base_confidence['dependency'],
                strategy='dependency',
                items=[GroupMember(by_id[i], 0.8, index) for index, i in enumerate(order)],
                tags=shared[:5],
                suggested_actions=[
                    SuggestedAction('reorder', 'Order items so declarations precede their uses', 0.9)
                ],
            ))

        return groups

    def _group_by_topic(
        self,
        items: List[ContentItem],
        signatures: Dict[str, ContentSignature]
    ) -> List[ContentGroup]:
        buckets: Dict[str, List[ContentItem]] = defaultdict(list)
        for item in items:
            for topic, pattern in self.TOPIC_BUCKETS.items():
                if pattern.search(item.content):
                    buckets[topic].append(item)

        groups = []
        for topic in self.TOPIC_BUCKETS:
            members = buckets.get(topic, [])
            if len(members) < 2:
                continue

            actions = []
            if len(members) > 4:
                actions.append(SuggestedAction('split', 'Large topic group could be split by feature', 0.6))

            groups.append(ContentGroup(
                id=group_id(f'topic-{topic}', [m.id for m in members]),
                title=f"{self.TOPIC_TITLES[topic]} Code",
                description=f"{len(members)} items about {self.TOPIC_TITLES[topic].lower()}",
                group_type=self.TOPIC_GROUP_TYPES[topic],
                confidence=self.settings.base_confidence['topic'],
                strategy='topic',
                items=[GroupMember(m, 0.7, index) for index, m in enumerate(members)],
                tags=[topic] + top_keywords(self._joined(members), 3),
                suggested_actions=actions,
            ))

        return groups

    # -------------------------------------------------------------------------
    # Post-processing
    # -------------------------------------------------------------------------

    def merge_overlapping_groups(self, groups: List[ContentGroup]) -> List[ContentGroup]:
        """
        Merge groups whose member overlap (intersection over union) exceeds
        overlap_threshold into the first group of each overlapping set.
        """
        result = []
        processed: Set[int] = set()

        for i, group in enumerate(groups):
            if i in processed:
                continue
            processed.add(i)

            overlapping = [
                j for j in range(i + 1, len(groups))
                if j not in processed
                and self._overlap_ratio(group, groups[j]) > self.settings.overlap_threshold
            ]

            if not overlapping:
                result.append(group)
                continue

            processed.update(overlapping)
            result.append(self._combine_groups([group] + [groups[j] for j in overlapping]))

        return result

    def _combine_groups(self, groups: List[ContentGroup]) -> ContentGroup:
        primary = groups[0]
        for group in groups[1:]:
            if group.confidence > primary.confidence:
                primary = group

        members: List[GroupMember] = []
        seen: Set[str] = set()
        for group in groups:
            for member in group.items:
                if member.item.id not in seen:
                    seen.add(member.item.id)
                    members.append(member)
        members = [
            GroupMember(m.item, m.group_relevance, position)
            for position, m in enumerate(members)
        ]

        tags: List[str] = []
        for group in groups:
            for tag in group.tags:
                if tag not in tags:
                    tags.append(tag)

        strategies = []
        for group in groups:
            for name in group.strategy.split('+'):
                if name not in strategies:
                    strategies.append(name)

        return ContentGroup(
            id=group_id('merged', [m.item.id for m in members]),
            title=f"{primary.title} (Merged)",
            description=primary.description,
            group_type=primary.group_type,
            confidence=float(np.mean([g.confidence for g in groups])),
            strategy='+'.join(strategies),
            items=members,
            tags=tags[:self.settings.max_tags],
            suggested_actions=list(primary.suggested_actions) + [
                SuggestedAction('merge', f"Merged {len(groups)} related groups", 0.8)
            ],
        )

    @staticmethod
    def _overlap_ratio(a: ContentGroup, b: ContentGroup) -> float:
        ids_a, ids_b = set(a.item_ids), set(b.item_ids)
        union = ids_a | ids_b
        if not union:
            return 0.0
        return len(ids_a & ids_b) / len(union)

    def _optimize_groups(self, groups: List[ContentGroup]) -> List[ContentGroup]:
        kept = [
            g for g in groups
            if g.confidence > self.settings.min_confidence and len(g.items) > 1
        ]
        kept.sort(key=lambda g: g.confidence * len(g.items), reverse=True)
        return kept[:self.settings.max_groups]

    def _add_relationships(self, groups: List[ContentGroup], signatures: Dict[str, ContentSignature]):
        facts = {}
        for group in groups:
            content = group.content
            declared = declared_names(content)
            classes = set()
            for member in group.items:
                signature = signatures.get(member.item.id) or self.extractor.extract(member.item.content)
                classes.update(signature.classes)
            facts[group.id] = {
                'content': content,
                'declared': declared,
                'uses': dependency_names(content),
                'classes': classes,
                'bases': {name for p in self.EXTENDS_PATTERNS for name in p.findall(content)},
            }

        for group in groups:
            mine = facts[group.id]
            for other in groups:
                if other.id == group.id:
                    continue
                if len(group.relationships) >= self.settings.max_relationships:
                    break

                theirs = facts[other.id]
                relationship = None

                # Inheritance also reads as a use, so it is checked first
                if mine['bases'] & (theirs['classes'] - mine['classes']):
                    relationship = GroupRelationship(other.id, 'extends', 0.6)
                elif mine['uses'] & (theirs['declared'] - mine['declared']):
                    relationship = GroupRelationship(other.id, 'depends_on', 0.7)
                elif self.REFACTOR_WORDS.search(mine['content']):
                    similarity = self.similarity.calculate_similarity(mine['content'], theirs['content'])
                    if similarity.score > 0.5:
                        relationship = GroupRelationship(other.id, 'refactors', 0.8)

                if relationship:
                    group.relationships.append(relationship)

    # -------------------------------------------------------------------------
    # Suggestions for a new capture
    # -------------------------------------------------------------------------

    def suggest_groups(
        self,
        text: str,
        primary_topic: str,
        suggested_tags: List[str],
        language: str,
        corpus: CorpusSnapshot,
        limit: int = 2
    ) -> List[GroupSuggestion]:
        """
        Groups a new capture could join: files sharing its tags or language,
        and files sharing one of its project indicators.
        """
        suggestions = []
        files = list(corpus.files)
        tags = set(suggested_tags)

        related = [
            f for f in files
            if tags & set(f.tags) or (language != 'unknown' and f.language == language)
        ]
        if related:
            suggestions.append(GroupSuggestion(
                group_name=f"{primary_topic.replace('-', ' ').title()} Components",
                confidence=0.8,
                related_items=[f.id for f in related],
                reason='Files share tags or language with this code',
            ))

        for indicator in self.projects.extract_indicators(text or ''):
            project_files = [
                f for f in files if indicator in self.projects.extract_indicators(f.content)
            ]
            if project_files:
                suggestions.append(GroupSuggestion(
                    group_name=f"{indicator} Project",
                    confidence=0.7,
                    related_items=[f.id for f in project_files],
                    reason=f"Files reference {indicator}",
                ))
                break

        return suggestions[:limit]

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _label(item: ContentItem) -> str:
        if item.title:
            return item.title
        first_line = next((line.strip() for line in item.content.split('\n') if line.strip()), item.id)
        return first_line[:40]

    @staticmethod
    def _joined(items: List[ContentItem]) -> str:
        return '\n'.join(item.content for item in items)

    @staticmethod
    def _format_time(moment: datetime) -> str:
        return moment.strftime('%Y-%m-%d %H:%M')
