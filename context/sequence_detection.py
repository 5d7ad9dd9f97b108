"""
Code Sequence Detection for CodeShelf

Decides how a set of captured snippets relate over time and in what order
they belong:
- Continuations (a fragment cut off mid-function, finished by a later capture)
- Dependencies (one snippet uses what another declares)
- Evolution (a newer, improved version of the same code)
- Refactors (the same code reorganized)
- Feature additions (new capability layered on existing code)

Each item is scored by five detectors; the strongest wins and supplies a
local order hint. Items are then ordered by hint and capture time.

Usage:
    from context.sequence_detection import SequenceDetector

    detector = SequenceDetector()
    sequence = detector.analyze_sequence(items)

    for entry in sequence.items:
        print(entry.order, entry.item.id, entry.pattern.pattern_type)
"""

import re
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import List, Dict, Set, Optional

import numpy as np

from core.config import EngineConfig, get_config
from core.models import ContentItem
from enrichment.signature import declared_names, dependency_names

logger = logging.getLogger(__name__)

PATTERN_TYPES = ('continuation', 'dependency', 'evolution', 'refactor', 'feature_addition')


@dataclass
class SequencePattern:
    """How one item (or a whole set) relates to the others."""
    pattern_type: str  # one of PATTERN_TYPES
    confidence: float
    evidence: List[str] = field(default_factory=list)
    suggested_order: int = 0

    def to_dict(self) -> dict:
        return {
            'type': self.pattern_type,
            'confidence': round(self.confidence, 4),
            'evidence': self.evidence,
            'suggested_order': self.suggested_order,
        }


@dataclass
class SequencedItem:
    """An item with its detected pattern and final position."""
    item: ContentItem
    pattern: SequencePattern
    order: int

    def to_dict(self) -> dict:
        return {
            'id': self.item.id,
            'order': self.order,
            'timestamp': self.item.timestamp.isoformat(),
            'pattern': self.pattern.to_dict(),
        }


@dataclass
class CodeSequence:
    """Ordered items plus the set-level pattern and timeline shape."""
    items: List[SequencedItem]
    overall_pattern: SequencePattern
    timeline: str  # 'linear', 'branched', 'convergent'

    @property
    def ordered_ids(self) -> List[str]:
        return [entry.item.id for entry in self.items]

    def to_dict(self) -> dict:
        return {
            'items': [entry.to_dict() for entry in self.items],
            'overall_pattern': self.overall_pattern.to_dict(),
            'timeline': self.timeline,
        }


@dataclass
class _SetContext:
    """Per-call facts about the whole item set."""
    declarations: List[Set[str]]
    complexities: List[float]
    indent_variants: Set[str]

    @property
    def average_complexity(self) -> float:
        return float(np.mean(self.complexities)) if self.complexities else 0.0


class SequenceDetector:
    """
    Detect continuation/dependency/evolution/refactor/feature patterns.

    Stateless apart from configuration; every call recomputes from scratch.
    """

    # Continuation signals
    CONTINUATION_MARKERS = [
        re.compile(r'//.*continue', re.I),
        re.compile(r'//.*todo', re.I),
        re.compile(r'//.*more', re.I),
        re.compile(r'/\*.*continue.*\*/', re.I),
        re.compile(r'/\*.*todo.*\*/', re.I),
        re.compile(r'#.*\b(?:continue|todo|more)\b', re.I),
    ]
    FUNCTION_START = re.compile(r'function\s+\w+\s*\(')
    FUNCTION_WITH_BODY = re.compile(r'function\s+\w+\s*\([^)]*\)\s*\{')
    OPEN_BLOCK = re.compile(r'^\s*(?:def|class|if|elif|else|for|while|with|try|except|finally)\b.*:\s*$')
    COMPLETE_IMPORT = [
        re.compile(r'^import\s+[\'"][^\'"]+[\'"]\s*;?$'),
        re.compile(r'^import\s+[\w.]+(?:\s+as\s+\w+)?(?:\s*,\s*[\w.]+(?:\s+as\s+\w+)?)*\s*;?$'),
    ]

    # Dependency signals
    INTERFACE_REFS = [
        re.compile(r':[ \t]*([A-Z]\w*)'),
        re.compile(r'<([A-Z]\w*)>'),
    ]
    SETUP_WORDS = re.compile(
        r'\b(?:config|setup|init|configure|initialize|bootstrap|install|require|import)\b', re.I
    )

    # Evolution signals
    VERSION_MARKERS = [
        re.compile(r'v\d+\.\d+'),
        re.compile(r'version\s*[:=]\s*[\'"][\d.]+[\'"]', re.I),
        re.compile(r'(?://|#).*\bv\d'),
        re.compile(r'\bupdate', re.I),
        re.compile(r'\bupgrade', re.I),
    ]
    IMPROVEMENT_WORDS = re.compile(
        r'\b(?:improve|enhance|optimize|better|refine|streamline|simplify|cleanup)', re.I
    )
    OPTIMIZATION_WORDS = re.compile(r'\b(?:performance|optimiz|efficient|faster|cache|memoiz)', re.I)
    COMPLEXITY_INDICATORS = [
        re.compile(r'if\s*\('),
        re.compile(r'for\s*\('),
        re.compile(r'while\s*\('),
        re.compile(r'switch\s*\('),
        re.compile(r'catch\s*\('),
        re.compile(r'&&'),
        re.compile(r'\|\|'),
    ]

    # Refactor signals
    REFACTOR_WORDS = re.compile(
        r'\b(?:refactor|restructure|reorganize|cleanup|extract|inline|rename|move)', re.I
    )
    NAMING_PATTERNS = [
        re.compile(r'[a-z][A-Z]'),
        re.compile(r'[A-Z][a-z]'),
        re.compile(r'_[a-z]'),
        re.compile(r'\bis[A-Z]'),
        re.compile(r'\bget[A-Z]'),
        re.compile(r'\bset[A-Z]'),
    ]
    ORGANIZATION_MARKERS = [
        re.compile(r'//\s*#region'),
        re.compile(r'//\s*section', re.I),
        re.compile(r'/\*\*[\s\S]*?\*/'),
        re.compile(r'//\s*==='),
        re.compile(r'#\s*={3,}'),
        re.compile(r'export\s*\{'),
    ]

    # Feature signals
    FEATURE_WORDS = re.compile(
        r'\b(?:new|add|create|implement|feature|functionality|capability|support)\b', re.I
    )
    FEATURE_FLAGS = [
        re.compile(r'if\s*\(\s*feature', re.I),
        re.compile(r'feature.*flag', re.I),
        re.compile(r'enable.*feature', re.I),
        re.compile(r'\btoggle', re.I),
        re.compile(r'\bexperiment', re.I),
    ]
    ENDPOINT_PATTERNS = [
        re.compile(r'router\.'),
        re.compile(r'app\.(?:get|post|put|delete)'),
        re.compile(r'api/'),
        re.compile(r'\bendpoint', re.I),
        re.compile(r'\broute', re.I),
    ]
    COMPONENT_PATTERNS = [
        re.compile(r'export\s+(?:default\s+)?function\s+[A-Z]'),
        re.compile(r'export\s+(?:default\s+)?class\s+[A-Z]'),
        re.compile(r'const\s+[A-Z]\w*\s*=\s*\('),
        re.compile(r'\bcomponent\b', re.I),
        re.compile(r'\bmodule\b', re.I),
    ]

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or get_config()
        self.settings = self.config.sequence

    def analyze_sequence(self, items: List[ContentItem]) -> CodeSequence:
        """
        Order items and classify how they relate.

        Args:
            items: Content items with text and timestamps

        Returns:
            CodeSequence with items renumbered 0..n-1
        """
        if not items:
            return CodeSequence(
                items=[],
                overall_pattern=SequencePattern('continuation', 0.0),
                timeline='linear',
            )

        context = self._build_context(items)
        patterns = [self._detect_pattern(i, items, context) for i in range(len(items))]

        order = sorted(
            range(len(items)),
            key=lambda i: (patterns[i].suggested_order, items[i].timestamp, i)
        )
        sequenced = [
            SequencedItem(item=items[i], pattern=patterns[i], order=position)
            for position, i in enumerate(order)
        ]

        overall = self._aggregate(patterns)
        timeline = self._timeline(items, patterns)

        logger.debug(
            f"Sequence of {len(items)} items: {overall.pattern_type} "
            f"({overall.confidence:.2f}), timeline {timeline}"
        )
        return CodeSequence(items=sequenced, overall_pattern=overall, timeline=timeline)

    def detect_pattern(self, item: ContentItem, items: List[ContentItem]) -> SequencePattern:
        """Pattern of a single item relative to a set (the item is added if absent)."""
        pool = list(items)
        if not any(other.id == item.id for other in pool):
            pool.append(item)
        index = next(i for i, other in enumerate(pool) if other.id == item.id)
        return self._detect_pattern(index, pool, self._build_context(pool))

    # -------------------------------------------------------------------------
    # Detection
    # -------------------------------------------------------------------------

    def _build_context(self, items: List[ContentItem]) -> _SetContext:
        return _SetContext(
            declarations=[declared_names(item.content) for item in items],
            complexities=[self.complexity(item.content) for item in items],
            indent_variants={self._indent_variant(item.content) for item in items},
        )

    def _detect_pattern(self, index: int, items: List[ContentItem], context: _SetContext) -> SequencePattern:
        candidates = [
            self._detect_continuation(items[index].content),
            self._detect_dependency(index, items, context),
            self._detect_evolution(index, items, context),
            self._detect_refactor(items[index].content, context),
            self._detect_feature(items[index].content),
        ]

        best = candidates[0]
        for candidate in candidates[1:]:
            if candidate.confidence > best.confidence:
                best = candidate
        return best

    def _detect_continuation(self, content: str) -> SequencePattern:
        evidence = []
        confidence = 0.0
        opens, closes = content.count('{'), content.count('}')
        unbalanced = opens != closes

        if unbalanced:
            evidence.append(f'Unbalanced braces (open {opens}, close {closes})')
            confidence += 0.3

        lines = [line.strip() for line in content.split('\n') if line.strip()]
        last_line = lines[-1] if lines else ''

        unterminated_function = (
            len(self.FUNCTION_START.findall(content)) > len(self.FUNCTION_WITH_BODY.findall(content))
        )
        if unterminated_function or (last_line and self.OPEN_BLOCK.match(last_line)):
            evidence.append('Function or block opened without a body')
            confidence += 0.4

        if last_line and not last_line.endswith((';', '}')) \
                and not last_line.startswith(('//', '/*', '#')):
            evidence.append('Final statement is not terminated')
            confidence += 0.2

        if any(p.search(content) for p in self.CONTINUATION_MARKERS):
            evidence.append('Comment marks the code as unfinished')
            confidence += 0.5

        if any(self._is_dangling_import(line) for line in lines):
            evidence.append('Dangling import statement')
            confidence += 0.3

        return SequencePattern(
            'continuation',
            min(confidence, 1.0),
            evidence,
            suggested_order=1 if unbalanced else 0,
        )

    def _detect_dependency(self, index: int, items: List[ContentItem], context: _SetContext) -> SequencePattern:
        content = items[index].content
        evidence = []
        confidence = 0.0

        defined_elsewhere = set()
        for other_index, names in enumerate(context.declarations):
            if other_index != index:
                defined_elsewhere |= names
        satisfied = sorted(dependency_names(content) & defined_elsewhere)

        if satisfied:
            evidence.append(f"Uses names defined in other items: {', '.join(satisfied[:5])}")
            confidence += 0.6

        own = context.declarations[index]
        interface_refs = set()
        for pattern in self.INTERFACE_REFS:
            interface_refs.update(pattern.findall(content))
        if interface_refs - own:
            evidence.append('References external interfaces or types')
            confidence += 0.4

        if self.SETUP_WORDS.search(content):
            evidence.append('Contains setup or configuration code')
            confidence += 0.3

        return SequencePattern('dependency', min(confidence, 1.0), evidence, suggested_order=len(satisfied))

    def _detect_evolution(self, index: int, items: List[ContentItem], context: _SetContext) -> SequencePattern:
        content = items[index].content
        evidence = []
        confidence = 0.0

        if any(p.search(content) for p in self.VERSION_MARKERS):
            evidence.append('Version or update markers')
            confidence += 0.4

        if self.IMPROVEMENT_WORDS.search(content):
            evidence.append('Improvement vocabulary')
            confidence += 0.3

        if self.OPTIMIZATION_WORDS.search(content):
            evidence.append('Optimization vocabulary')
            confidence += 0.3

        complexity = context.complexities[index]
        average = context.average_complexity
        if complexity > average * self.settings.complexity_ratio:
            evidence.append('More complex than the rest of the set')
            confidence += 0.2

        return SequencePattern(
            'evolution',
            min(confidence, 1.0),
            evidence,
            suggested_order=1 if complexity > average else 0,
        )

    def _detect_refactor(self, content: str, context: _SetContext) -> SequencePattern:
        evidence = []
        confidence = 0.0
        has_keywords = bool(self.REFACTOR_WORDS.search(content))

        if has_keywords:
            evidence.append('Refactoring vocabulary')
            confidence += 0.5

        structural_changes = len(context.indent_variants) - 1
        if structural_changes > 0:
            evidence.append(f'{structural_changes} indentation variants across the set')
            confidence += 0.4

        if any(len(p.findall(content)) > 3 for p in self.NAMING_PATTERNS):
            evidence.append('Dense naming-convention usage')
            confidence += 0.3

        if any(p.search(content) for p in self.ORGANIZATION_MARKERS):
            evidence.append('Section or documentation markers')
            confidence += 0.2

        return SequencePattern('refactor', min(confidence, 1.0), evidence, suggested_order=1 if has_keywords else 0)

    def _detect_feature(self, content: str) -> SequencePattern:
        evidence = []
        confidence = 0.0
        has_new_functionality = bool(self.FEATURE_WORDS.search(content))

        if has_new_functionality:
            evidence.append('New functionality vocabulary')
            confidence += 0.4

        if any(p.search(content) for p in self.FEATURE_FLAGS):
            evidence.append('Feature flag or toggle')
            confidence += 0.3

        if any(p.search(content) for p in self.ENDPOINT_PATTERNS):
            evidence.append('API endpoint or route')
            confidence += 0.4

        if any(p.search(content) for p in self.COMPONENT_PATTERNS):
            evidence.append('Component or module definition')
            confidence += 0.3

        return SequencePattern(
            'feature_addition',
            min(confidence, 1.0),
            evidence,
            suggested_order=1 if has_new_functionality else 0,
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def complexity(self, content: str) -> float:
        """Branching indicators plus a tenth of the line count."""
        branches = sum(len(p.findall(content)) for p in self.COMPLEXITY_INDICATORS)
        return branches + len(content.split('\n')) * 0.1

    def _indent_variant(self, content: str) -> str:
        lines = content.split('\n')[:self.settings.indentation_sample_lines]
        return ','.join(str(len(line) - len(line.lstrip())) for line in lines)

    def _is_dangling_import(self, line: str) -> bool:
        if line.startswith('from ') and ' import' not in line:
            return True
        if not line.startswith('import'):
            return False
        if 'from' in line:
            return False
        return not any(p.match(line) for p in self.COMPLETE_IMPORT)

    def _aggregate(self, patterns: List[SequencePattern]) -> SequencePattern:
        counts = Counter(p.pattern_type for p in patterns)
        top = max(counts.values())
        majority = next(t for t in PATTERN_TYPES if counts.get(t, 0) == top)

        evidence = []
        for pattern in patterns:
            for entry in pattern.evidence:
                if entry not in evidence:
                    evidence.append(entry)

        return SequencePattern(
            majority,
            float(np.mean([p.confidence for p in patterns])),
            evidence,
            suggested_order=0,
        )

    def _timeline(self, items: List[ContentItem], patterns: List[SequencePattern]) -> str:
        timestamps = [item.timestamp for item in items]
        span_hours = (max(timestamps) - min(timestamps)).total_seconds() / 3600

        if span_hours < self.settings.linear_window_hours:
            return 'linear'

        types = {p.pattern_type for p in patterns}
        if len(types) >= self.settings.branched_type_count:
            return 'branched'

        evolution_share = sum(1 for p in patterns if p.pattern_type == 'evolution') / len(patterns)
        if evolution_share > self.settings.convergent_ratio:
            return 'convergent'

        return 'linear'
