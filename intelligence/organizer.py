"""
CodeShelf Content Organizer

Single entry point for a save event: classify a captured block of code
against the user's corpus and suggest how to organize it.

Pipeline:
1. Language and topic (context-aware)
2. Similar files and snippets
3. Suggested file name
4. Append-or-new-file decision
5. Optional suggestions: merge candidates, groups to join, alternative names

Nothing is written anywhere; the caller persists whatever it accepts.

Usage:
    from intelligence.organizer import ContentOrganizer

    organizer = ContentOrganizer()
    result = organizer.process_and_classify(text, corpus)

    if result.classification.should_append:
        print("Append to", result.classification.target_file_id)
    else:
        print("New file", result.classification.suggested_name)
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Union

from core.config import EngineConfig, get_config
from core.errors import OrganizationError, describe_failure
from core.logging_config import log_operation
from core.models import ContentItem, CorpusSnapshot, EPOCH, parse_time
from context.merge import MergeEngine, MergeCandidate, MergeResult
from context.project_inference import ProjectInferrer
from context.sequence_detection import SequenceDetector
from enrichment.classifier import TopicClassifier, LanguageResult, TopicResult
from enrichment.naming import NameSuggestion, generate_intelligent_file_name, generate_smart_file_names
from enrichment.signature import SignatureExtractor
from intelligence.grouping import ContentGrouper, GroupSuggestion
from intelligence.planning import OrganizationPlan, OrganizationPlanner, ProjectStructure
from intelligence.similarity import SimilarityEngine, SimilarMatch

logger = logging.getLogger(__name__)


@dataclass
class ProcessOptions:
    """Switches for one process_and_classify call."""
    enable_organization: bool = True
    auto_merge: bool = False
    force_new_file: bool = False
    similarity_threshold: Optional[float] = None


@dataclass
class Classification:
    language: LanguageResult
    topic: TopicResult
    similar_items: List[SimilarMatch] = field(default_factory=list)
    suggested_name: str = ''
    should_append: bool = False
    target_file_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'language': self.language.to_dict(),
            'topic': self.topic.to_dict(),
            'similar_items': [m.to_dict() for m in self.similar_items],
            'suggested_name': self.suggested_name,
            'should_append': self.should_append,
            'target_file_id': self.target_file_id,
        }


@dataclass
class OrganizationSuggestions:
    merge_candidates: List[MergeCandidate] = field(default_factory=list)
    group_suggestions: List[GroupSuggestion] = field(default_factory=list)
    smart_names: List[NameSuggestion] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'merge_candidates': [c.to_dict() for c in self.merge_candidates],
            'group_suggestions': [g.to_dict() for g in self.group_suggestions],
            'smart_names': [n.to_dict() for n in self.smart_names],
        }


@dataclass
class OrganizeResult:
    """Everything decided for one captured text."""
    item_id: str
    classification: Classification
    suggestions: Optional[OrganizationSuggestions] = None
    auto_merge: Optional[MergeCandidate] = None
    merge_result: Optional[MergeResult] = None

    def to_dict(self) -> dict:
        return {
            'item_id': self.item_id,
            'classification': self.classification.to_dict(),
            'suggestions': self.suggestions.to_dict() if self.suggestions else None,
            'auto_merge': self.auto_merge.to_dict() if self.auto_merge else None,
            'merge_result': self.merge_result.to_dict() if self.merge_result else None,
        }


@dataclass
class BatchOrganizeResult:
    results: List[OrganizeResult] = field(default_factory=list)
    failures: List[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'results': [r.to_dict() for r in self.results],
            'failures': self.failures,
        }


class ContentOrganizer:
    """
    Classify new captures and suggest where they belong.

    All collaborators share one configuration; none of them keeps state
    between calls.
    """

    INCOMING_ID = 'incoming'

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or get_config()
        self.settings = self.config.organizer

        extractor = SignatureExtractor()
        sequences = SequenceDetector(self.config)
        projects = ProjectInferrer()

        self.similarity = SimilarityEngine(self.config, extractor)
        self.classifier = TopicClassifier(self.config, sequences, projects)
        self.merger = MergeEngine(self.config, self.similarity, sequences)
        self.grouper = ContentGrouper(self.config, self.similarity, projects)
        self.planner = OrganizationPlanner(self.config, self.grouper, self.similarity, self.classifier, projects)

    def process_and_classify(
        self,
        text: str,
        corpus: CorpusSnapshot,
        timestamp: Optional[datetime] = None,
        options: Optional[ProcessOptions] = None,
        item_id: Optional[str] = None
    ) -> OrganizeResult:
        """
        Classify text and build organization suggestions.

        Args:
            text: Captured code
            corpus: The user's saved files and snippets
            timestamp: Capture time, datetime or epoch (defaults to the newest
                corpus timestamp)
            options: Processing switches
            item_id: Id to give the captured text in results

        Returns:
            OrganizeResult
        """
        options = options or ProcessOptions()
        item_id = item_id or self.INCOMING_ID
        timestamp = parse_time(timestamp)
        if timestamp is None:
            timestamp = self._latest_timestamp(corpus)

        with log_operation(logger, 'process_and_classify', logging.INFO, item_id=item_id) as op:
            result = self._organize(text or '', corpus, timestamp, options, item_id)
            classification = result.classification
            op['summary'] = (
                f"{item_id} is {classification.language.language}/{classification.topic.primary_topic} "
                f"({'append' if classification.should_append else 'new file'})"
            )

        return result

    def _organize(
        self,
        text: str,
        corpus: CorpusSnapshot,
        timestamp: datetime,
        options: ProcessOptions,
        item_id: str
    ) -> OrganizeResult:
        """Classification, then the optional organization suggestions."""
        language = self.classifier.detect_language_with_context(text, corpus)
        topic = self.classifier.classify_topic_with_context(text, corpus)

        threshold = options.similarity_threshold
        if threshold is None:
            threshold = self.config.classifier.similar_file_threshold
        similar = self.similarity.find_similar_content(text, corpus.items(), threshold=threshold)
        similar = similar[:self.config.classifier.max_similar_files]

        titles = [f.title for f in corpus.files if f.title]
        suggested_name = generate_intelligent_file_name(
            text, language.language, topic.primary_topic, titles, timestamp,
            max_length=self.config.classifier.max_name_length
        )

        should_append = False
        if not options.force_new_file:
            should_append = self.classifier.should_append_to_existing(
                text, suggested_name, similar, corpus, timestamp
            )

        classification = Classification(
            language=language,
            topic=topic,
            similar_items=similar,
            suggested_name=suggested_name,
            should_append=should_append,
        )
        result = OrganizeResult(item_id=item_id, classification=classification)

        candidates: List[MergeCandidate] = []
        if options.enable_organization:
            incoming = ContentItem(id=item_id, text=text, timestamp=timestamp, language=language.language)
            candidates = self.merger.find_merge_candidates(incoming, corpus.items())
            candidates = candidates[:self.settings.max_merge_candidates]

            result.suggestions = OrganizationSuggestions(
                merge_candidates=candidates,
                group_suggestions=self.grouper.suggest_groups(
                    text, topic.primary_topic, topic.suggested_tags, language.language, corpus,
                    limit=self.settings.max_group_suggestions
                ),
                smart_names=generate_smart_file_names(
                    text, language.language, topic.primary_topic, titles,
                    limit=self.settings.max_smart_names,
                    max_length=self.config.classifier.max_name_length
                ),
            )

            if options.auto_merge and self.should_auto_merge(candidates):
                best = candidates[0]
                target = corpus.get(best.target_id)
                if target is not None:
                    result.auto_merge = best
                    result.merge_result = self.merger.execute_merge(best, incoming, target)

        if should_append:
            classification.target_file_id = self.select_best_target(candidates, similar, corpus)

        return result

    def should_auto_merge(self, candidates: List[MergeCandidate]) -> bool:
        return bool(candidates) and candidates[0].confidence > self.settings.auto_merge_threshold

    def select_best_target(
        self,
        candidates: List[MergeCandidate],
        similar: List[SimilarMatch],
        corpus: CorpusSnapshot
    ) -> Optional[str]:
        """
        File to append to: the first merge candidate that lives in one of the
        similar files, else the file owning the top similar item.
        """
        if not similar:
            return None

        similar_files = [m.item.owner_id for m in similar]
        for candidate in candidates:
            target = corpus.get(candidate.target_id)
            owner = target.owner_id if target is not None else candidate.target_id
            if owner in similar_files:
                return owner

        return similar_files[0]

    def process_batch(
        self,
        entries: Iterable[Union[str, ContentItem]],
        corpus: CorpusSnapshot,
        options: Optional[ProcessOptions] = None
    ) -> BatchOrganizeResult:
        """
        Process captures in order; each one sees the earlier ones.

        A failing entry is recorded in failures and the batch continues.
        """
        batch = BatchOrganizeResult()
        working = corpus

        for index, entry in enumerate(entries):
            item_id = entry.id if isinstance(entry, ContentItem) else f'batch-{index}'
            try:
                item = self._batch_item(entry, item_id)
                timestamp = item.timestamp if item.timestamp != EPOCH else None
                result = self.process_and_classify(item.text, working, timestamp, options, item_id=item.id)
            except Exception as e:
                batch.failures.append(describe_failure(e, item_id=item_id, index=index))
                continue

            batch.results.append(result)
            saved = ContentItem(
                id=item.id,
                text=item.text,
                timestamp=timestamp or self._latest_timestamp(working),
                file_id=result.classification.target_file_id,
                language=result.classification.language.language,
                tags=tuple(result.classification.topic.suggested_tags),
            )
            working = working.with_item(saved)

        logger.info(f"Batch processed: {len(batch.results)} ok, {len(batch.failures)} failed")
        return batch

    def analyze_organization(self, corpus: CorpusSnapshot) -> List[OrganizationPlan]:
        """Corpus-wide organization plans (see intelligence.planning)."""
        return self.planner.analyze_organization(corpus)

    def detect_project_structures(self, corpus: CorpusSnapshot) -> List[ProjectStructure]:
        return self.planner.detect_project_structures(corpus)

    @staticmethod
    def _batch_item(entry: Union[str, ContentItem, None], item_id: str) -> ContentItem:
        if isinstance(entry, ContentItem):
            return entry
        if entry is None or isinstance(entry, str):
            return ContentItem(id=item_id, text=entry or '')
        raise OrganizationError(
            f"Unsupported batch entry: {type(entry).__name__}",
            entry_type=type(entry).__name__
        )

    @staticmethod
    def _latest_timestamp(corpus: CorpusSnapshot) -> datetime:
        stamps = [item.timestamp for item in corpus.items()]
        return max(stamps) if stamps else EPOCH
