"""
CodeShelf Content Similarity

Multi-dimensional similarity between two blocks of code, built on
ContentSignatures. Zero external calls.

Dimensions:
- Semantic (0.35): shared keywords, functions/classes, imports
- Structural (0.25): shared motifs, fingerprint, language compatibility
- Lexical (0.25): overlap of 3-character shingles
- Contextual (0.15): shared variables, functions, classes

Categories:
- exact_match (>= 0.9), high_similarity (>= 0.7), related (>= 0.4), unrelated

Usage:
    from intelligence.similarity import SimilarityEngine

    engine = SimilarityEngine()
    result = engine.calculate_similarity(text_a, text_b)
    print(result.score, result.category, result.reasons)
"""

import re
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

import numpy as np
from rapidfuzz.distance import Levenshtein

from core.config import EngineConfig, get_config
from core.models import ContentItem
from enrichment.catalogs import LANGUAGE_AFFINITY
from enrichment.signature import ContentSignature, SignatureExtractor

logger = logging.getLogger(__name__)

WHITESPACE = re.compile(r'\s+')


def jaccard(a: Iterable, b: Iterable) -> float:
    """Jaccard index of two collections; two empty sets score 0."""
    set_a, set_b = set(a), set(b)
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)


def shingles(text: str, size: int = 3) -> Set[str]:
    normalized = WHITESPACE.sub(' ', text.lower())
    return {normalized[i:i + size] for i in range(len(normalized) - size + 1)}


@dataclass
class SimilarityResult:
    """Similarity between two texts."""
    score: float  # 0.0-1.0
    category: str  # exact_match, high_similarity, related, unrelated
    reasons: List[str] = field(default_factory=list)
    confidence: float = 0.0
    breakdown: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            'score': round(self.score, 4),
            'category': self.category,
            'reasons': self.reasons,
            'confidence': round(self.confidence, 4),
            'breakdown': {k: round(v, 4) for k, v in self.breakdown.items()},
        }


@dataclass
class SimilarMatch:
    """A corpus item that resembles the search target."""
    item: ContentItem
    similarity: SimilarityResult

    @property
    def score(self) -> float:
        return self.similarity.score

    def to_dict(self) -> dict:
        return {
            'id': self.item.id,
            'kind': self.item.kind,
            'title': self.item.title,
            'similarity': self.similarity.to_dict(),
        }


class SimilarityEngine:
    """
    Score how alike two pieces of code are.

    Scores are symmetric: calculate_similarity(a, b).score equals
    calculate_similarity(b, a).score. Reasons are explanatory only.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        extractor: Optional[SignatureExtractor] = None
    ):
        self.config = config or get_config()
        self.settings = self.config.similarity
        self.extractor = extractor or SignatureExtractor()

    @property
    def weights(self) -> Dict[str, float]:
        return {
            'semantic': self.settings.semantic_weight,
            'structural': self.settings.structural_weight,
            'lexical': self.settings.lexical_weight,
            'contextual': self.settings.contextual_weight,
        }

    def calculate_similarity(
        self,
        text_a: str,
        text_b: str,
        signature_a: Optional[ContentSignature] = None,
        signature_b: Optional[ContentSignature] = None
    ) -> SimilarityResult:
        """
        Compare two texts.

        Args:
            text_a: First text
            text_b: Second text
            signature_a: Precomputed signature of text_a (same call only)
            signature_b: Precomputed signature of text_b

        Returns:
            SimilarityResult
        """
        text_a = text_a or ''
        text_b = text_b or ''

        # Exact duplicates, whitespace-only ones included
        if (text_a and text_a == text_b) or (text_a.strip() and text_a.strip() == text_b.strip()):
            breakdown = {name: 1.0 for name in self.weights}
            return SimilarityResult(
                score=1.0,
                category='exact_match',
                reasons=['Identical content'],
                confidence=1.0,
                breakdown=breakdown,
            )

        sig_a = signature_a or self.extractor.extract(text_a)
        sig_b = signature_b or self.extractor.extract(text_b)

        breakdown = {
            'semantic': self._semantic_similarity(sig_a, sig_b),
            'structural': self._structural_similarity(sig_a, sig_b),
            'lexical': self._lexical_similarity(text_a, text_b),
            'contextual': self._contextual_similarity(sig_a, sig_b),
        }

        weights = self.weights
        score = sum(breakdown[name] * weights[name] for name in weights)
        score = min(1.0, max(0.0, score))

        return SimilarityResult(
            score=score,
            category=self.categorize(score),
            reasons=self._generate_reasons(sig_a, sig_b, breakdown),
            confidence=self._confidence(list(breakdown.values())),
            breakdown=breakdown,
        )

    def categorize(self, score: float) -> str:
        """Map a score onto its similarity category."""
        if score >= self.settings.exact_match_threshold:
            return 'exact_match'
        if score >= self.settings.high_similarity_threshold:
            return 'high_similarity'
        if score >= self.settings.related_threshold:
            return 'related'
        return 'unrelated'

    def find_similar_content(
        self,
        target: str,
        corpus: Iterable[ContentItem],
        threshold: Optional[float] = None
    ) -> List[SimilarMatch]:
        """
        Find corpus items resembling target.

        Files are compared by title + description + tags, snippets by text.

        Args:
            target: Text to search for
            corpus: Items to compare against
            threshold: Keep scores strictly above this (default 0.3)

        Returns:
            Matches sorted by descending score
        """
        if threshold is None:
            threshold = self.settings.search_threshold

        target_signature = self.extractor.extract(target)
        matches = []

        for item in corpus:
            text = item.search_text
            if not text:
                continue
            result = self.calculate_similarity(target, text, signature_a=target_signature)
            if result.score > threshold:
                matches.append(SimilarMatch(item=item, similarity=result))

        matches.sort(key=lambda m: m.score, reverse=True)
        logger.debug(f"Similarity search kept {len(matches)} matches above {threshold}")
        return matches

    # -------------------------------------------------------------------------
    # Dimensions
    # -------------------------------------------------------------------------

    def _semantic_similarity(self, a: ContentSignature, b: ContentSignature) -> float:
        keyword_sim = jaccard(a.keywords, b.keywords)
        element_sim = (jaccard(a.functions, b.functions) + jaccard(a.classes, b.classes)) / 2
        import_sim = jaccard(a.imports, b.imports)
        return keyword_sim * 0.5 + element_sim * 0.3 + import_sim * 0.2

    def _structural_similarity(self, a: ContentSignature, b: ContentSignature) -> float:
        pattern_sim = jaccard(a.code_patterns, b.code_patterns)
        structure_sim = self.fingerprint_similarity(a, b)
        language_sim = self.language_compatibility(a.language, b.language)
        return pattern_sim * 0.4 + structure_sim * 0.4 + language_sim * 0.2

    def _lexical_similarity(self, text_a: str, text_b: str) -> float:
        size = self.settings.shingle_size
        return jaccard(shingles(text_a, size), shingles(text_b, size))

    def _contextual_similarity(self, a: ContentSignature, b: ContentSignature) -> float:
        variable_sim = jaccard(a.variables, b.variables)
        function_sim = jaccard(a.functions, b.functions)
        class_sim = jaccard(a.classes, b.classes)
        return variable_sim * 0.4 + function_sim * 0.4 + class_sim * 0.2

    @staticmethod
    def fingerprint_similarity(a: ContentSignature, b: ContentSignature) -> float:
        """Part-wise fingerprint comparison; indentation parts use edit distance."""
        if a.structure == b.structure:
            return 1.0

        parts = [
            (a.indentation, b.indentation, True),
            ((a.open_braces, a.close_braces), (b.open_braces, b.close_braces), False),
            (a.line_count, b.line_count, False),
        ]

        total = 0.0
        for part_a, part_b, is_indent in parts:
            if part_a == part_b:
                total += 1.0
            elif is_indent:
                total += Levenshtein.normalized_similarity(part_a, part_b)
        return total / len(parts)

    @staticmethod
    def language_compatibility(lang_a: str, lang_b: str) -> float:
        if lang_a == lang_b:
            return 1.0
        return LANGUAGE_AFFINITY.get(frozenset([lang_a, lang_b]), 0.0)

    @staticmethod
    def _confidence(scores: List[float]) -> float:
        """1 - standard deviation of the dimension scores; agreement, not magnitude."""
        deviation = float(np.sqrt(np.var(scores)))
        return max(0.0, 1.0 - deviation)

    def _generate_reasons(
        self,
        a: ContentSignature,
        b: ContentSignature,
        breakdown: Dict[str, float]
    ) -> List[str]:
        reasons = []

        if breakdown['semantic'] > 0.7:
            reasons.append('High semantic similarity - similar purpose and functionality')
        if breakdown['structural'] > 0.7:
            reasons.append('Similar code structure and patterns')
        if breakdown['lexical'] > 0.5:
            reasons.append('Shared code snippets or similar implementation')

        if a.language == b.language and a.language != 'unknown':
            reasons.append(f'Same programming language: {a.language}')

        common_functions = [f for f in a.functions if f in set(b.functions)]
        if common_functions:
            reasons.append(f"Shared functions: {', '.join(common_functions[:3])}")

        common_imports = [i for i in a.imports if i in set(b.imports)]
        if common_imports:
            reasons.append(f"Common imports: {', '.join(common_imports[:3])}")

        return reasons
