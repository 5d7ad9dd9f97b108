"""
Language and Topic Classification for CodeShelf

Weighted regex scoring over the language and topic catalogs, plus variants
that lean on the user's existing corpus:
- Language boost from how often the user saves that language
- Framework hints carried over from recently saved files
- Frequent user tags that fit the new text
- Project context shared with several saved files

Also decides whether a new capture belongs in an existing file.

Usage:
    from enrichment.classifier import TopicClassifier

    classifier = TopicClassifier()
    language = classifier.detect_language(text)
    topic = classifier.classify_topic(text)
    print(language.language, topic.primary_topic, topic.suggested_tags)
"""

import re
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Dict, Optional

from core.config import EngineConfig, get_config
from core.models import ContentItem, CorpusSnapshot, EPOCH
from context.project_inference import ProjectInferrer
from context.sequence_detection import SequenceDetector
from enrichment.catalogs import TOPIC_PROFILES
from enrichment.naming import core_topic
from enrichment.signature import score_languages, best_language
from intelligence.similarity import SimilarMatch

logger = logging.getLogger(__name__)


@dataclass
class LanguageResult:
    """Detected language with its raw score."""
    language: str
    confidence: float
    all_scores: Dict[str, float] = field(default_factory=dict)
    frameworks: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'language': self.language,
            'confidence': round(self.confidence, 4),
            'all_scores': self.all_scores,
            'frameworks': self.frameworks,
        }


@dataclass
class TopicResult:
    """Primary topic, all topic scores and suggested tags."""
    primary_topic: str
    confidence: float
    all_topics: Dict[str, float] = field(default_factory=dict)
    suggested_tags: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'primary_topic': self.primary_topic,
            'confidence': round(self.confidence, 4),
            'all_topics': self.all_topics,
            'suggested_tags': self.suggested_tags,
        }


class TopicClassifier:
    """
    Classify captured code by language and topic.

    Stateless apart from configuration.
    """

    # Framework hints looked for in recently saved files
    CONTEXT_FRAMEWORKS = {
        'react': re.compile(r'\breact\b|useState|useEffect|jsx', re.I),
        'vue': re.compile(r'\bvue\b|v-if|v-for', re.I),
        'angular': re.compile(r'\bangular\b|@Component|ngOnInit', re.I),
        'express': re.compile(r'\bexpress\b|app\.get|app\.post', re.I),
        'nestjs': re.compile(r'@nestjs|@Controller|@Injectable', re.I),
        'nextjs': re.compile(r'\bnext\.js\b|\bnextjs\b|getServerSideProps|getStaticProps', re.I),
    }

    # Tags that count as relevant when any of the group's words appear
    SEMANTIC_GROUPS = {
        'auth': ['auth', 'login', 'signup', 'authentication', 'user'],
        'api': ['api', 'fetch', 'request', 'endpoint', 'http'],
        'ui': ['component', 'button', 'form', 'ui', 'interface'],
        'database': ['database', 'db', 'sql', 'query', 'data'],
    }

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        sequence_detector: Optional[SequenceDetector] = None,
        project_inferrer: Optional[ProjectInferrer] = None
    ):
        self.config = config or get_config()
        self.settings = self.config.classifier
        self.sequences = sequence_detector or SequenceDetector(self.config)
        self.projects = project_inferrer or ProjectInferrer()

    # -------------------------------------------------------------------------
    # Language
    # -------------------------------------------------------------------------

    def detect_language(self, text: str) -> LanguageResult:
        """
        Detect the programming language of text.

        Returns:
            LanguageResult; 'unknown' with confidence 0 when nothing scores
        """
        scores, frameworks = score_languages(text or '', include_frameworks=True)
        language, confidence = best_language(scores)

        return LanguageResult(
            language=language,
            confidence=confidence,
            all_scores=scores,
            frameworks=frameworks,
        )

    def detect_language_with_context(self, text: str, corpus: CorpusSnapshot) -> LanguageResult:
        """Language detection boosted by the user's saved files."""
        result = self.detect_language(text)
        files = list(corpus.files)
        if not files:
            return result

        if result.language != 'unknown':
            frequency = sum(1 for f in files if f.language == result.language)
            result.confidence += min(self.settings.language_boost_cap, frequency / len(files))

        recent = sorted(files, key=lambda f: f.timestamp, reverse=True)[:self.settings.recent_files]
        for name, pattern in self.CONTEXT_FRAMEWORKS.items():
            if name in result.frameworks:
                continue
            seen_recently = any(pattern.search(f'{f.title} {f.text}') for f in recent)
            if seen_recently and pattern.search(text or ''):
                result.frameworks.append(name)

        return result

    # -------------------------------------------------------------------------
    # Topic
    # -------------------------------------------------------------------------

    def classify_topic(self, text: str) -> TopicResult:
        """
        Score text against the topic catalog.

        Returns:
            TopicResult; 'general' when no topic scores
        """
        text = text or ''
        scores = {}
        for profile in TOPIC_PROFILES:
            hits = sum(len(p.findall(text)) for p in profile.patterns)
            if hits:
                scores[profile.name] = float(hits * profile.weight)

        if not scores:
            return TopicResult(primary_topic='general', confidence=0.0, all_topics={}, suggested_tags=[])

        ranked = sorted(scores.items(), key=lambda kv: kv[1], reverse=True)
        primary, confidence = ranked[0]
        profile = next(p for p in TOPIC_PROFILES if p.name == primary)

        tags = [primary]
        for related in profile.related:
            if related not in tags:
                tags.append(related)
        for name, _ in ranked[1:3]:
            if name not in tags:
                tags.append(name)

        return TopicResult(
            primary_topic=primary,
            confidence=confidence,
            all_topics=scores,
            suggested_tags=tags[:self.settings.max_suggested_tags],
        )

    def classify_topic_with_context(self, text: str, corpus: CorpusSnapshot) -> TopicResult:
        """Topic classification enriched with the user's tags and project context."""
        result = self.classify_topic(text)
        files = list(corpus.files)
        if not files:
            return result

        lowered = (text or '').lower()
        tag_counts = Counter(tag for f in files for tag in f.tags)
        frequent = [tag for tag, _ in tag_counts.most_common(self.settings.frequent_user_tags)]
        contextual = [
            tag for tag in frequent
            if tag.lower() in lowered or self._is_semantically_related(tag, lowered)
        ][:self.settings.contextual_tag_limit]

        tags = list(result.suggested_tags)
        for tag in contextual:
            if tag not in tags:
                tags.append(tag)

        project = self._project_context(text, files)
        if project:
            tags = [project] + [t for t in tags if t != project]

        result.suggested_tags = tags[:self.settings.max_context_tags]
        return result

    def _is_semantically_related(self, tag: str, lowered_text: str) -> bool:
        tag = tag.lower()
        for words in self.SEMANTIC_GROUPS.values():
            if tag in words and any(w in lowered_text for w in words):
                return True
        return False

    def _project_context(self, text: str, files: List[ContentItem]) -> Optional[str]:
        """First project indicator of text that more than one saved file also shows."""
        for indicator in self.projects.extract_indicators(text or ''):
            matches = sum(1 for f in files if indicator in self.projects.extract_indicators(f.content))
            if matches > 1:
                return indicator
        return None

    # -------------------------------------------------------------------------
    # Append decision
    # -------------------------------------------------------------------------

    def should_append_to_existing(
        self,
        text: str,
        suggested_name: str,
        similar: List[SimilarMatch],
        corpus: Optional[CorpusSnapshot] = None,
        timestamp: Optional[datetime] = None
    ) -> bool:
        """
        Decide whether text belongs in the top similar file.

        Checked in order, first hit wins:
        1. Same core topic as the top candidate's title
        2. Top similarity above append_similarity
        3. Text continues the candidate file's snippets
        4. Top similarity above append_fallback_similarity
        """
        if not similar:
            return False

        corpus = corpus or CorpusSnapshot()
        top = similar[0]
        title = self._candidate_title(top.item, corpus)

        new_topic = core_topic(suggested_name)
        if new_topic and title and core_topic(title) == new_topic:
            logger.debug(f"Append: core topic '{new_topic}' matches '{title}'")
            return True

        if top.score > self.settings.append_similarity:
            logger.debug(f"Append: similarity {top.score:.2f} to {top.item.id}")
            return True

        related = corpus.snippets_for_file(top.item.owner_id)
        if related:
            incoming = ContentItem(id='__incoming__', text=text or '', timestamp=timestamp or EPOCH)
            sequence = self.sequences.analyze_sequence([incoming] + related)
            overall = sequence.overall_pattern
            if overall.pattern_type == 'continuation' and \
                    overall.confidence > self.settings.append_continuation_confidence:
                logger.debug(f"Append: continues snippets of {top.item.owner_id}")
                return True

        return top.score > self.settings.append_fallback_similarity

    @staticmethod
    def _candidate_title(item: ContentItem, corpus: CorpusSnapshot) -> str:
        if item.is_file:
            return item.title
        owner = corpus.get(item.owner_id)
        return owner.title if owner is not None else item.title
