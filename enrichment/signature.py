"""
Content Signature Extraction

Reduces a block of (possibly OCR'd) code to a comparable feature bundle.
Everything is local regex work; identical text always yields an identical
signature and nothing is cached between calls.

Features extracted:
- Keyword set (stop words, short and numeric tokens removed)
- Code motif multiset (conditionals, loops, declarations, hooks, async)
- Structural fingerprint (indentation depths, brace counts, line count)
- Guessed language
- Imports, functions, classes, variables

Usage:
    from enrichment.signature import SignatureExtractor

    extractor = SignatureExtractor()
    signature = extractor.extract(text)
    print(signature.language, signature.functions)
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Set, Tuple, Any

from enrichment.catalogs import (
    CODE_MOTIFS,
    LANGUAGE_PROFILES,
    STOP_WORDS,
    framework_pattern,
)

WORD_SPLIT = re.compile(r'\W+')


def count_keyword_hits(text: str, keywords) -> int:
    """Count words of text (lowercased, split on non-word runs) found in keywords."""
    return sum(1 for word in WORD_SPLIT.split(text.lower()) if word in keywords)


def score_languages(text: str, include_frameworks: bool = False) -> Tuple[Dict[str, float], List[str]]:
    """
    Score every catalog language against text.

    score = weight * (3 * motif hits + 2 * keyword hits + 5 * extension hits
    [+ 3 * framework hits])

    Args:
        text: Source text
        include_frameworks: Add the framework-name term (classifier only)

    Returns:
        (scores by language in catalog order, deduplicated frameworks seen)
    """
    scores: Dict[str, float] = {}
    frameworks: List[str] = []
    words = WORD_SPLIT.split(text.lower())

    for profile in LANGUAGE_PROFILES:
        score = 0.0

        for pattern in profile.patterns:
            score += len(pattern.findall(text)) * 3 * profile.weight

        keyword_hits = sum(1 for word in words if word in profile.keywords)
        score += keyword_hits * 2 * profile.weight

        for ext in profile.extensions:
            if ext in text:
                score += 5 * profile.weight

        if include_frameworks:
            for name in profile.frameworks:
                if framework_pattern(name).search(text):
                    score += 3 * profile.weight
                    if name not in frameworks:
                        frameworks.append(name)

        scores[profile.name] = score

    return scores, frameworks


DECLARATION_PATTERNS = [
    re.compile(r'function\s+(\w+)\s*\('),
    re.compile(r'(?:const|let|var)\s+(\w+)\s*='),
    re.compile(r'class\s+(\w+)\b'),
    re.compile(r'interface\s+(\w+)\b'),
    re.compile(r'type\s+(\w+)\s*='),
    re.compile(r'def\s+(\w+)\s*\('),
    re.compile(r'func\s+(\w+)\s*\('),
    re.compile(r'fn\s+(\w+)\s*\('),
]

CALL_PATTERN = re.compile(r'(\w+)\s*\(')
IDENTIFIER_PATTERN = re.compile(r'(?:^|[^.\w])([a-zA-Z_]\w*)')
IMPORT_SOURCE_PATTERN = re.compile(r'import\s+.*?from\s+[\'"]([^\'"]+)[\'"]')


def declared_names(text: str) -> Set[str]:
    """Names a block of code declares (functions, classes, bindings)."""
    names = set()
    for pattern in DECLARATION_PATTERNS:
        names.update(pattern.findall(text))
    return names


def dependency_names(text: str) -> Set[str]:
    """Names a block of code uses without declaring: calls, identifiers, import sources."""
    used = set(CALL_PATTERN.findall(text))
    used.update(IDENTIFIER_PATTERN.findall(text))
    used.update(IMPORT_SOURCE_PATTERN.findall(text))
    return used - declared_names(text)


def best_language(scores: Dict[str, float]) -> Tuple[str, float]:
    """Arg-max over scores; first entry wins ties, all-zero means unknown."""
    best, best_score = 'unknown', 0.0
    for name, score in scores.items():
        if score > best_score:
            best, best_score = name, score
    return best, best_score


@dataclass
class ContentSignature:
    """Comparable features of one block of code."""

    keywords: Set[str] = field(default_factory=set)
    code_patterns: List[str] = field(default_factory=list)

    # Structural fingerprint parts
    indentation: List[int] = field(default_factory=list)
    open_braces: int = 0
    close_braces: int = 0
    line_count: int = 0

    language: str = 'unknown'

    # Semantic elements
    imports: List[str] = field(default_factory=list)
    functions: List[str] = field(default_factory=list)
    classes: List[str] = field(default_factory=list)
    variables: List[str] = field(default_factory=list)

    @property
    def structure(self) -> str:
        """Fingerprint string: indent:<depths>|braces:<open>-<close>|lines:<n>."""
        indent = ','.join(str(d) for d in self.indentation)
        return f"indent:{indent}|braces:{self.open_braces}-{self.close_braces}|lines:{self.line_count}"

    @property
    def declared_names(self) -> Set[str]:
        return set(self.functions) | set(self.classes) | set(self.variables)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'keywords': sorted(self.keywords),
            'code_patterns': list(self.code_patterns),
            'structure': self.structure,
            'language': self.language,
            'imports': list(self.imports),
            'functions': list(self.functions),
            'classes': list(self.classes),
            'variables': list(self.variables),
        }


class SignatureExtractor:
    """
    Extract ContentSignatures from code text.

    Pure and stateless: safe to share between threads.
    """

    MAX_KEYWORDS = 50
    MAX_VARIABLES = 30
    INDENT_SAMPLE_LINES = 20

    IMPORT_PATTERNS = [
        re.compile(r'import\s+.*?from\s+[\'"]([^\'"]+)[\'"]'),
        re.compile(r'import\s+[\'"]([^\'"]+)[\'"]'),
        re.compile(r'#include\s*<([^>]+)>'),
        re.compile(r'using\s+([^;\n]+);'),
        re.compile(r'^\s*from\s+([\w.]+)\s+import\b', re.M),
        re.compile(r'^\s*import\s+([\w.]+)\s*(?:as\s+\w+)?\s*$', re.M),
        re.compile(r'require\(\s*[\'"]([^\'"]+)[\'"]\s*\)'),
    ]

    FUNCTION_PATTERNS = [
        re.compile(r'function\s+(\w+)'),
        re.compile(r'const\s+(\w+)\s*=\s*\('),
        re.compile(r'let\s+(\w+)\s*=\s*\('),
        re.compile(r'(\w+)\s*:\s*\('),
        re.compile(r'def\s+(\w+)'),
        re.compile(r'func\s+(\w+)'),
    ]

    CLASS_PATTERNS = [
        re.compile(r'class\s+(\w+)'),
        re.compile(r'interface\s+(\w+)'),
        re.compile(r'type\s+(\w+)'),
    ]

    VARIABLE_PATTERNS = [
        re.compile(r'(?:const|let|var)\s+(\w+)'),
        re.compile(r'(\w+)\s*:'),
    ]

    def extract(self, text: str) -> ContentSignature:
        """
        Extract a signature from text.

        Args:
            text: Code text (any language, may be noisy)

        Returns:
            ContentSignature
        """
        signature = ContentSignature()
        if not text:
            return signature

        self._extract_keywords(text, signature)
        self._extract_code_patterns(text, signature)
        self._extract_structure(text, signature)

        scores, _ = score_languages(text)
        signature.language, _ = best_language(scores)

        self._extract_semantic_elements(text, signature)

        return signature

    def _extract_keywords(self, text: str, signature: ContentSignature):
        """First MAX_KEYWORDS meaningful tokens, as a set."""
        cleaned = re.sub(r'[^\w\s]', ' ', text.lower())
        tokens = [
            word for word in cleaned.split()
            if len(word) > 2 and word not in STOP_WORDS and not word.isdigit()
        ]
        signature.keywords = set(tokens[:self.MAX_KEYWORDS])

    def _extract_code_patterns(self, text: str, signature: ContentSignature):
        patterns = []
        for motif in CODE_MOTIFS:
            patterns.extend(motif.findall(text))
        signature.code_patterns = patterns

    def _extract_structure(self, text: str, signature: ContentSignature):
        """Indentation depth of the first non-blank lines, braces, line count."""
        lines = text.split('\n')

        depths = []
        for line in lines:
            if not line.strip():
                continue
            leading = len(line) - len(line.lstrip())
            depths.append(leading // 2)
            if len(depths) >= self.INDENT_SAMPLE_LINES:
                break

        signature.indentation = depths
        signature.open_braces = text.count('{')
        signature.close_braces = text.count('}')
        signature.line_count = len(lines)

    def _extract_semantic_elements(self, text: str, signature: ContentSignature):
        signature.imports = self._collect(text, self.IMPORT_PATTERNS)
        signature.functions = self._collect(text, self.FUNCTION_PATTERNS)
        signature.classes = self._collect(text, self.CLASS_PATTERNS)
        signature.variables = self._collect(text, self.VARIABLE_PATTERNS)[:self.MAX_VARIABLES]

    @staticmethod
    def _collect(text: str, patterns: List[re.Pattern]) -> List[str]:
        """Run patterns in order, keeping first occurrences only."""
        seen = []
        for pattern in patterns:
            for match in pattern.findall(text):
                value = match.strip()
                if value and value not in seen:
                    seen.append(value)
        return seen
