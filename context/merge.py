"""
Merge Candidates and Conflicts for CodeShelf

Finds which saved items a new capture could be merged with, explains the
risks of doing so, and performs the merge when asked.

Strategies (first applicable by score, ties resolved in table order):
- sequence_continuation: fragments of one piece of code (append/prepend)
- semantic_consolidation: near-duplicates folded together (consolidate)
- dependency_integration: one item uses what the other declares (interleave)
- evolution_replacement: a newer, improved version (replace)
- feature_integration: new capability layered on shared code (append)

A merge with an unresolved manual conflict is refused, never partially applied.

Usage:
    from context.merge import MergeEngine

    engine = MergeEngine()
    candidates = engine.find_merge_candidates(new_item, saved_items)
    result = engine.execute_merge(candidates[0], new_item, target_item)
"""

import re
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from core.config import EngineConfig, get_config
from core.errors import describe_failure
from core.models import ContentItem
from context.sequence_detection import SequenceDetector, CodeSequence
from enrichment.signature import SignatureExtractor, declared_names, dependency_names
from intelligence.similarity import SimilarityEngine, SimilarityResult

logger = logging.getLogger(__name__)

MERGE_TYPES = ('append', 'prepend', 'replace', 'interleave', 'consolidate')


@dataclass
class MergeConflict:
    """A reason a merge may need attention."""
    conflict_type: str  # duplicate_content, conflicting_logic, different_style, version_mismatch
    severity: str  # low, medium, high
    location: str
    description: str
    resolution: str  # auto, manual, skip
    suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'type': self.conflict_type,
            'severity': self.severity,
            'location': self.location,
            'description': self.description,
            'resolution': self.resolution,
            'suggestions': self.suggestions,
        }


@dataclass
class MergeCandidate:
    """A proposed merge of source into target."""
    source_id: str
    target_id: str
    merge_type: str
    strategy: str
    confidence: float
    reason: str
    conflicts: List[MergeConflict] = field(default_factory=list)
    preview_content: str = ''

    @property
    def has_manual_conflicts(self) -> bool:
        return any(c.resolution == 'manual' for c in self.conflicts)

    def to_dict(self) -> dict:
        return {
            'source_id': self.source_id,
            'target_id': self.target_id,
            'merge_type': self.merge_type,
            'strategy': self.strategy,
            'confidence': round(self.confidence, 4),
            'reason': self.reason,
            'conflicts': [c.to_dict() for c in self.conflicts],
            'preview_content': self.preview_content,
        }


@dataclass
class AppliedResolution:
    conflict: MergeConflict
    resolution: str

    def to_dict(self) -> dict:
        return {'conflict': self.conflict.to_dict(), 'resolution': self.resolution}


@dataclass
class MergeResult:
    """Outcome of executing one merge."""
    success: bool
    merged_content: str = ''
    merged_metadata: Dict = field(default_factory=dict)
    applied_resolutions: List[AppliedResolution] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'success': self.success,
            'merged_content': self.merged_content,
            'merged_metadata': self.merged_metadata,
            'applied_resolutions': [r.to_dict() for r in self.applied_resolutions],
            'warnings': self.warnings,
        }


@dataclass
class MergedGroup:
    original_ids: List[str]
    merged_content: str
    metadata: Dict = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'original_ids': self.original_ids,
            'merged_content': self.merged_content,
            'metadata': self.metadata,
            'warnings': self.warnings,
        }


@dataclass
class UnmergedItem:
    id: str
    reason: str

    def to_dict(self) -> dict:
        return {'id': self.id, 'reason': self.reason}


@dataclass
class BatchMergeResult:
    merged_items: List[MergedGroup] = field(default_factory=list)
    unmerged_items: List[UnmergedItem] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'merged_items': [m.to_dict() for m in self.merged_items],
            'unmerged_items': [u.to_dict() for u in self.unmerged_items],
        }


@dataclass
class _PairContext:
    """Facts about one (source, target) pair, computed once."""
    similarity: SimilarityResult
    sequence: CodeSequence


@dataclass(frozen=True)
class MergeStrategy:
    """One row of the strategy table."""
    name: str
    merge_type: str
    reason: str
    evaluate: Callable[[ContentItem, ContentItem, _PairContext], float]
    execute: Callable[[ContentItem, ContentItem], Tuple[str, List[str]]]


class MergeEngine:
    """
    Score, explain and execute merges between content items.

    Pure with respect to its inputs: nothing is persisted or mutated.
    """

    EVOLUTION_WORDS = re.compile(
        r'\b(?:improve|optimize|enhance|refactor|cleanup|better|efficient|performance|fix|update)', re.I
    )
    FEATURE_WORDS = re.compile(r'\b(?:new|add|feature|implement|create|support|enable|introduce)', re.I)

    # Conflict detection
    LOGIC_CHECKS = [
        # (positive form with captured name, negated form template)
        (re.compile(r'if\s*\(\s*(\w+)\s*\)'), r'if\s*\(\s*!\s*{name}\s*\)'),
        (re.compile(r'if\s+(\w+)\s*:'), r'if\s+not\s+{name}\s*:'),
    ]
    OPPOSING_PAIRS = [
        (re.compile(r'return\s+true\b', re.I), re.compile(r'return\s+false\b', re.I), 'return true/false'),
        (re.compile(r'\benable', re.I), re.compile(r'\bdisable', re.I), 'enable/disable'),
    ]
    VERSION_PATTERNS = [
        re.compile(r'"version":\s*"([^"]+)"'),
        re.compile(r'version\s*[:=]\s*[\'"]([^\'"]+)[\'"]', re.I),
        re.compile(r'v(\d+\.\d+\.\d+)'),
    ]
    CAMEL_CASE = re.compile(r'\b[a-z]+[A-Z]\w*')
    SNAKE_CASE = re.compile(r'\b[a-z]+_[a-z]\w*')

    # Execution helpers
    TOP_LEVEL_DECLARATION = re.compile(
        r'^(?:export\s+(?:default\s+)?)?(?:async\s+)?(?:function|class|const|let|var|def)\b'
    )
    IMPORT_NAME = re.compile(r'import\s+(\w+)')

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        similarity_engine: Optional[SimilarityEngine] = None,
        sequence_detector: Optional[SequenceDetector] = None
    ):
        self.config = config or get_config()
        self.settings = self.config.merge
        self.extractor = SignatureExtractor()
        self.similarity = similarity_engine or SimilarityEngine(self.config, self.extractor)
        self.sequences = sequence_detector or SequenceDetector(self.config)

        self.strategies: List[MergeStrategy] = [
            MergeStrategy(
                'sequence_continuation', 'append',
                'Code appears to be a continuation sequence',
                self._evaluate_sequence, self._execute_sequence,
            ),
            MergeStrategy(
                'semantic_consolidation', 'consolidate',
                'High semantic similarity detected',
                self._evaluate_semantic, self._execute_consolidation,
            ),
            MergeStrategy(
                'dependency_integration', 'interleave',
                'Dependency relationship found',
                self._evaluate_dependency, self._execute_dependency,
            ),
            MergeStrategy(
                'evolution_replacement', 'replace',
                'Evolution of existing code detected',
                self._evaluate_evolution, self._execute_evolution,
            ),
            MergeStrategy(
                'feature_integration', 'append',
                'Feature integration opportunity',
                self._evaluate_feature, self._execute_feature,
            ),
        ]
        self._strategy_index = {s.name: s for s in self.strategies}

    # -------------------------------------------------------------------------
    # Candidates
    # -------------------------------------------------------------------------

    def find_merge_candidates(
        self,
        source: ContentItem,
        targets: List[ContentItem]
    ) -> List[MergeCandidate]:
        """
        Rank merge targets for source.

        Args:
            source: The new (or moving) item
            targets: Existing items to consider

        Returns:
            Up to max_candidates candidates, best first
        """
        candidates = []

        for target in targets:
            if target.id == source.id or not target.content.strip():
                continue

            candidate = self.evaluate_pair(source, target)
            if candidate is not None:
                candidates.append(candidate)

        candidates.sort(key=lambda c: c.confidence, reverse=True)
        return candidates[:self.settings.max_candidates]

    def evaluate_pair(self, source: ContentItem, target: ContentItem) -> Optional[MergeCandidate]:
        """Best strategy for one pair, or None when nothing clears the threshold."""
        pair = self._pair_context(source, target)

        best_strategy, best_score = None, 0.0
        for strategy in self.strategies:
            score = strategy.evaluate(source, target, pair)
            if score > best_score:
                best_strategy, best_score = strategy, score

        if best_strategy is None or best_score < self.settings.min_confidence:
            return None

        return self._build_candidate(best_strategy, best_score, source, target, pair)

    def _build_candidate(
        self,
        strategy: MergeStrategy,
        score: float,
        source: ContentItem,
        target: ContentItem,
        pair: _PairContext
    ) -> MergeCandidate:
        merge_type = strategy.merge_type
        if strategy.name == 'sequence_continuation' and pair.sequence.ordered_ids[0] == source.id:
            merge_type = 'prepend'

        content, _ = strategy.execute(source, target)
        limit = self.settings.preview_length
        preview = content[:limit] + ('...' if len(content) > limit else '')

        return MergeCandidate(
            source_id=source.id,
            target_id=target.id,
            merge_type=merge_type,
            strategy=strategy.name,
            confidence=score,
            reason=f"{strategy.reason} ({round(score * 100)}% confidence)",
            conflicts=self.analyze_conflicts(source.content, target.content),
            preview_content=preview,
        )

    def _pair_context(self, source: ContentItem, target: ContentItem) -> _PairContext:
        return _PairContext(
            similarity=self.similarity.calculate_similarity(source.content, target.content),
            sequence=self.sequences.analyze_sequence([source, target]),
        )

    # -------------------------------------------------------------------------
    # Strategy applicability
    # -------------------------------------------------------------------------

    def _evaluate_sequence(self, source, target, pair: _PairContext) -> float:
        overall = pair.sequence.overall_pattern
        if overall.pattern_type == 'continuation':
            return overall.confidence * 0.9
        return 0.0

    def _evaluate_semantic(self, source, target, pair: _PairContext) -> float:
        if pair.similarity.category in ('high_similarity', 'related'):
            return pair.similarity.score * 0.8
        return 0.0

    def _evaluate_dependency(self, source, target, pair: _PairContext) -> float:
        if self._depends_on(source.content, target.content) or self._depends_on(target.content, source.content):
            return 0.7
        return 0.0

    def _evaluate_evolution(self, source, target, pair: _PairContext) -> float:
        hours_apart = abs((source.timestamp - target.timestamp).total_seconds()) / 3600
        if hours_apart >= self.settings.evolution_window_hours:
            return 0.0
        if pair.similarity.score <= self.settings.evolution_similarity:
            return 0.0

        newer, _ = self._newer_older(source, target)
        return 0.8 if self.EVOLUTION_WORDS.search(newer.content) else 0.4

    def _evaluate_feature(self, source, target, pair: _PairContext) -> float:
        has_feature_words = (
            self.FEATURE_WORDS.search(source.content) or self.FEATURE_WORDS.search(target.content)
        )
        if has_feature_words and pair.similarity.score > self.settings.feature_similarity:
            return 0.6
        return 0.0

    # -------------------------------------------------------------------------
    # Conflicts
    # -------------------------------------------------------------------------

    def analyze_conflicts(self, content_a: str, content_b: str) -> List[MergeConflict]:
        """List the conflicts merging two texts would raise."""
        conflicts = []

        duplicate = self._check_duplicates(content_a, content_b)
        if duplicate:
            conflicts.append(duplicate)

        logic = self._check_logic(content_a, content_b)
        if logic:
            conflicts.append(logic)

        style = self._check_style(content_a, content_b)
        if style:
            conflicts.append(style)

        version = self._check_versions(content_a, content_b)
        if version:
            conflicts.append(version)

        return conflicts

    def _check_duplicates(self, content_a: str, content_b: str) -> Optional[MergeConflict]:
        lines_a = [line.strip() for line in content_a.split('\n') if line.strip()]
        lines_b = [line.strip() for line in content_b.split('\n') if line.strip()]
        if not lines_a or not lines_b:
            return None

        lookup = set(lines_b)
        duplicates = [line for line in lines_a if line in lookup]

        if len(duplicates) > min(len(lines_a), len(lines_b)) * self.settings.duplicate_line_ratio:
            return MergeConflict(
                conflict_type='duplicate_content',
                severity='medium',
                location='Multiple lines',
                description=f'{len(duplicates)} duplicate lines found',
                resolution='auto',
                suggestions=['Remove duplicate lines', 'Keep first occurrence'],
            )
        return None

    def _check_logic(self, content_a: str, content_b: str) -> Optional[MergeConflict]:
        found = []

        for first, second in ((content_a, content_b), (content_b, content_a)):
            for positive, negated in self.LOGIC_CHECKS:
                for name in positive.findall(first):
                    if re.search(negated.format(name=re.escape(name)), second):
                        label = f'if ({name}) vs if (!{name})'
                        if label not in found:
                            found.append(label)

        for left, right, label in self.OPPOSING_PAIRS:
            if (left.search(content_a) and right.search(content_b)) or \
                    (left.search(content_b) and right.search(content_a)):
                found.append(label)

        if not found:
            return None

        return MergeConflict(
            conflict_type='conflicting_logic',
            severity='high',
            location='Conditional logic',
            description=f"Potentially conflicting logic: {'; '.join(found)}",
            resolution='manual',
            suggestions=['Review logic manually', 'Keep both with clear separation'],
        )

    def _check_style(self, content_a: str, content_b: str) -> Optional[MergeConflict]:
        style_a, style_b = self._style(content_a), self._style(content_b)
        differing = [
            trait for trait in ('indentation', 'quotes', 'naming')
            if style_a[trait] is not None and style_b[trait] is not None
            and style_a[trait] != style_b[trait]
        ]
        if not differing:
            return None

        return MergeConflict(
            conflict_type='different_style',
            severity='low',
            location='Code formatting',
            description=f"Different coding styles: {', '.join(differing)}",
            resolution='auto',
            suggestions=['Apply consistent formatting', 'Use project style guide'],
        )

    def _style(self, content: str) -> Dict[str, Optional[object]]:
        indents = [
            len(line) - len(line.lstrip(' '))
            for line in content.split('\n')
            if line.strip() and line.startswith(' ')
        ]

        singles, doubles = content.count("'"), content.count('"')
        quotes = None
        if singles or doubles:
            quotes = 'single' if singles > doubles else 'double'

        camel, snake = len(self.CAMEL_CASE.findall(content)), len(self.SNAKE_CASE.findall(content))
        naming = None
        if camel or snake:
            naming = 'camel' if camel > snake else 'snake'

        return {
            'indentation': min(indents) if indents else None,
            'quotes': quotes,
            'naming': naming,
        }

    def _check_versions(self, content_a: str, content_b: str) -> Optional[MergeConflict]:
        version_a, version_b = self._version(content_a), self._version(content_b)
        if version_a and version_b and version_a != version_b:
            return MergeConflict(
                conflict_type='version_mismatch',
                severity='medium',
                location='Version declarations',
                description=f'Version mismatch: {version_a} vs {version_b}',
                resolution='manual',
                suggestions=['Use latest version', 'Review compatibility'],
            )
        return None

    def _version(self, content: str) -> Optional[str]:
        for pattern in self.VERSION_PATTERNS:
            match = pattern.search(content)
            if match:
                return match.group(1)
        return None

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def execute_merge(
        self,
        candidate: MergeCandidate,
        source: ContentItem,
        target: ContentItem,
        manual_resolutions: Optional[Dict[str, str]] = None
    ) -> MergeResult:
        """
        Perform a merge.

        Args:
            candidate: Candidate naming the strategy to run
            source: Item the candidate was computed for
            target: Item to merge with
            manual_resolutions: Conflict type -> chosen resolution, for
                conflicts the user has settled by hand

        Returns:
            MergeResult; success is False when refused or invalid
        """
        manual_resolutions = manual_resolutions or {}
        strategy = self._strategy_index.get(candidate.strategy)
        if strategy is None:
            return MergeResult(success=False, warnings=[f'Unknown merge strategy: {candidate.strategy}'])

        conflicts = self.analyze_conflicts(source.content, target.content)
        unresolved = [
            c for c in conflicts
            if c.resolution == 'manual' and c.conflict_type not in manual_resolutions
        ]
        if unresolved:
            logger.info(
                f"Refusing merge of {source.id} into {target.id}: {len(unresolved)} manual conflicts",
                extra={'item_id': source.id}
            )
            return MergeResult(
                success=False,
                warnings=[f'Manual intervention required for {len(unresolved)} conflicts'],
            )

        content, warnings = strategy.execute(source, target)

        errors = self.validate_merge(content)
        if errors:
            return MergeResult(success=False, warnings=errors + warnings)

        applied = []
        for conflict in conflicts:
            if conflict.resolution == 'manual':
                applied.append(AppliedResolution(conflict, manual_resolutions[conflict.conflict_type]))
            elif conflict.resolution == 'auto':
                applied.append(AppliedResolution(conflict, conflict.suggestions[0]))

        return MergeResult(
            success=True,
            merged_content=content,
            merged_metadata=self._merge_metadata(source, target),
            applied_resolutions=applied,
            warnings=warnings,
        )

    def validate_merge(self, content: str) -> List[str]:
        """Post-merge checks; returns error messages (empty when valid)."""
        errors = []
        code_lines = [
            line for line in content.split('\n')
            if not line.strip().startswith(('//', '# '))
        ]
        code = '\n'.join(code_lines)

        if code.count('{') != code.count('}'):
            errors.append('Mismatched braces in merged content')

        import_lines = [line for line in code_lines if line.strip().startswith(('import ', 'from '))]
        body = '\n'.join(line for line in code_lines if line not in import_lines)
        for line in import_lines:
            for name in self.IMPORT_NAME.findall(line):
                if not re.search(r'\b' + re.escape(name) + r'\b', body):
                    errors.append(f'Unused import: {name}')

        return errors

    def _execute_sequence(self, source: ContentItem, target: ContentItem) -> Tuple[str, List[str]]:
        sequence = self.sequences.analyze_sequence([source, target])
        ordered = [entry.item.content for entry in sequence.items]
        return '\n\n'.join(ordered), []

    def _execute_consolidation(self, source: ContentItem, target: ContentItem) -> Tuple[str, List[str]]:
        source_lines = source.content.split('\n')
        seen = {self._normalize(line) for line in source_lines}
        seen.discard('')

        merged = list(source_lines)
        skipped = 0
        for line in target.content.split('\n'):
            if not line.strip():
                continue
            normalized = self._normalize(line)
            # Punctuation-only lines carry structure; keep them
            if normalized and normalized in seen:
                skipped += 1
                continue
            if normalized:
                seen.add(normalized)
            merged.append(line)

        warnings = [f'Skipped {skipped} equivalent lines'] if skipped else []
        return '\n'.join(merged), warnings

    def _execute_dependency(self, source: ContentItem, target: ContentItem) -> Tuple[str, List[str]]:
        if self._depends_on(source.content, target.content):
            first, second = target, source
        elif self._depends_on(target.content, source.content):
            first, second = source, target
        else:
            first, second = sorted((target, source), key=lambda i: i.timestamp)
        return f'{first.content}\n\n{second.content}', [f'Placed {first.id} before its dependents']

    def _execute_evolution(self, source: ContentItem, target: ContentItem) -> Tuple[str, List[str]]:
        newer, older = self._newer_older(source, target)
        marker = '#' if self.extractor.extract(newer.content).language == 'python' else '//'

        commented = '\n'.join(f'{marker} {line}' for line in older.content.split('\n'))
        content = (
            f'{marker} Evolved from previous version\n{newer.content}\n\n'
            f'{marker} Previous version:\n{commented}'
        )
        return content, ['Replaced older version with evolved content']

    def _execute_feature(self, source: ContentItem, target: ContentItem) -> Tuple[str, List[str]]:
        lines_a = target.content.split('\n')
        lines_b = source.content.split('\n')

        shared = 0
        while shared < min(len(lines_a), len(lines_b)) and \
                self._normalize(lines_a[shared]) == self._normalize(lines_b[shared]):
            shared += 1
        base = lines_a[:shared]

        blocks, seen = [], {self._normalize('\n'.join(base))} if base else set()
        for remainder in (lines_a[shared:], lines_b[shared:]):
            side_blocks = self._declaration_blocks(remainder)
            if not side_blocks and any(line.strip() for line in remainder):
                side_blocks = ['\n'.join(remainder).strip('\n')]
            for block in side_blocks:
                key = self._normalize(block)
                if key and key not in seen:
                    seen.add(key)
                    blocks.append(block)

        parts = ['\n'.join(base).strip('\n')] if base else []
        parts.extend(blocks)
        return '\n\n'.join(p for p in parts if p), [f'Integrated {len(blocks)} declarations']

    def _declaration_blocks(self, lines: List[str]) -> List[str]:
        """Top-level declarations with their bodies."""
        blocks = []
        i = 0
        while i < len(lines):
            line = lines[i]
            if not self.TOP_LEVEL_DECLARATION.match(line):
                i += 1
                continue

            j = i + 1
            depth = line.count('{') - line.count('}')
            if depth > 0:
                while j < len(lines) and depth > 0:
                    depth += lines[j].count('{') - lines[j].count('}')
                    j += 1
            elif line.rstrip().endswith(':'):
                while j < len(lines) and (not lines[j].strip() or lines[j][0] in ' \t'):
                    j += 1

            blocks.append('\n'.join(lines[i:j]).rstrip())
            i = j
        return blocks

    # -------------------------------------------------------------------------
    # Batch
    # -------------------------------------------------------------------------

    def batch_merge(self, items: List[ContentItem]) -> BatchMergeResult:
        """
        Partition items into mergeable runs and fold each run together.

        Args:
            items: Items to merge (order does not matter)

        Returns:
            BatchMergeResult with merged groups and items left alone
        """
        result = BatchMergeResult()
        if not items:
            return result

        sequence = self.sequences.analyze_sequence(items)
        groups: List[List] = []

        for entry in sequence.items:
            if groups:
                previous = groups[-1][-1]
                similarity = self.similarity.calculate_similarity(
                    previous.item.content, entry.item.content
                ).score
                same_type = previous.pattern.pattern_type == entry.pattern.pattern_type
                if similarity > self.settings.batch_group_similarity or same_type:
                    groups[-1].append(entry)
                    continue
            groups.append([entry])

        for index, group in enumerate(groups):
            group_items = [entry.item for entry in group]
            if len(group_items) == 1:
                result.unmerged_items.append(UnmergedItem(group_items[0].id, 'No suitable merge candidates'))
                continue

            try:
                merged, failure = self._fold_group(group_items)
            except Exception as e:
                failure = f"Merge failed: {describe_failure(e, group_index=index)['message']}"
                merged = None

            if merged is None:
                for item in group_items:
                    result.unmerged_items.append(UnmergedItem(item.id, failure))
            else:
                result.merged_items.append(merged)

        logger.info(
            f"Batch merge: {len(result.merged_items)} groups merged, "
            f"{len(result.unmerged_items)} items left unmerged"
        )
        return result

    def _fold_group(self, items: List[ContentItem]) -> Tuple[Optional[MergedGroup], str]:
        accumulated = items[0]
        warnings: List[str] = []

        for item in items[1:]:
            candidate = self.evaluate_pair(item, accumulated)
            if candidate is None:
                candidate = MergeCandidate(
                    source_id=item.id,
                    target_id=accumulated.id,
                    merge_type='consolidate',
                    strategy='semantic_consolidation',
                    confidence=0.0,
                    reason='Group merge',
                )

            outcome = self.execute_merge(candidate, item, accumulated)
            if not outcome.success:
                return None, '; '.join(outcome.warnings)

            warnings.extend(outcome.warnings)
            accumulated = accumulated.with_text(
                outcome.merged_content,
                timestamp=max(accumulated.timestamp, item.timestamp),
                metadata=outcome.merged_metadata,
            )

        return MergedGroup(
            original_ids=[item.id for item in items],
            merged_content=accumulated.content,
            metadata=dict(accumulated.metadata),
            warnings=warnings,
        ), ''

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _depends_on(content: str, other: str) -> bool:
        """True when content uses a name that other declares."""
        return bool(dependency_names(content) & declared_names(other))

    @staticmethod
    def _newer_older(source: ContentItem, target: ContentItem) -> Tuple[ContentItem, ContentItem]:
        if target.timestamp > source.timestamp:
            return target, source
        return source, target

    @staticmethod
    def _normalize(line: str) -> str:
        return re.sub(r'[\s\W]+', '', line)

    @staticmethod
    def _merge_metadata(source: ContentItem, target: ContentItem) -> Dict:
        originals = []
        for item in (target, source):
            for item_id in item.metadata.get('original_items', [item.id]):
                if item_id not in originals:
                    originals.append(item_id)

        return {
            **target.metadata,
            **source.metadata,
            'original_items': originals,
            'merged_at': max(source.timestamp, target.timestamp).isoformat(),
        }
