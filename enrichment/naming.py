"""
File Name Generation for CodeShelf

Builds language-prefixed, filesystem-safe titles for captured code:
- Keyword names ('javascript-fetch-user-profile')
- Topic names ('python-data-processing')
- Sequential suffixes when near-duplicate titles exist ('...-3')
- Ranked alternative names for the user to pick from

Usage:
    from enrichment.naming import generate_file_name, generate_smart_file_names

    name = generate_file_name(text, 'javascript')
    options = generate_smart_file_names(text, 'javascript', 'api-integration', titles)
"""

import re
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from enrichment.catalogs import LANGUAGE_NAMES, NAME_STOP_WORDS
from enrichment.signature import SignatureExtractor

MAX_NAME_LENGTH = 50

LANGUAGE_PREFIX = re.compile(r'^(?:%s|code)-' % '|'.join(LANGUAGE_NAMES))
SEQUENCE_SUFFIX = re.compile(r'-(\d+)$')

PATTERN_FAMILIES = [
    ('react-hooks', re.compile(r'\buse(?:State|Effect|Callback|Memo|Ref|Context)\(')),
    ('api-routes', re.compile(r'\b(?:router|app)\.(?:get|post|put|delete|patch)\(')),
    ('api-calls', re.compile(r'\bfetch\(|\baxios\.|\brequests\.(?:get|post)\(')),
    ('testing', re.compile(r'\b(?:describe|it|test)\(|\bdef test_|\bassert\b')),
    ('async-patterns', re.compile(r'\basync\b|\bawait\b')),
]


@dataclass
class NameSuggestion:
    """An alternative file name with its ranking."""
    name: str
    score: float
    reason: str
    uniqueness: float = 1.0
    relevance: float = 0.0

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'score': round(self.score, 4),
            'reason': self.reason,
            'uniqueness': round(self.uniqueness, 4),
            'relevance': round(self.relevance, 4),
        }


def sanitize_name(name: str, max_length: int = MAX_NAME_LENGTH) -> str:
    """Restrict to [A-Za-z0-9_-], collapse dashes, trim, truncate."""
    cleaned = re.sub(r'[^a-zA-Z0-9\-_]', '-', name)
    cleaned = re.sub(r'-+', '-', cleaned).strip('-')
    return cleaned[:max_length].rstrip('-')


def core_topic(name: str) -> str:
    """Title with its language prefix and trailing sequence number removed."""
    lowered = (name or '').strip().lower()
    lowered = LANGUAGE_PREFIX.sub('', lowered)
    return SEQUENCE_SUFFIX.sub('', lowered)


def sequence_number(title: str) -> int:
    """Trailing '-N' of a title; unnumbered titles count as 1."""
    match = SEQUENCE_SUFFIX.search(title or '')
    return int(match.group(1)) if match else 1


def next_sequence_number(name: str, existing_titles: Iterable[str]) -> Optional[int]:
    """Next free suffix among titles sharing name's core topic, or None when unique."""
    topic = core_topic(name)
    numbers = [sequence_number(t) for t in existing_titles if t and core_topic(t) == topic]
    if not numbers:
        return None
    return max(numbers) + 1


def top_keywords(text: str, limit: int = 3) -> List[str]:
    """Most frequent meaningful words; first occurrence breaks ties."""
    cleaned = re.sub(r'[^\w\s]', ' ', (text or '').lower())
    words = [
        w for w in cleaned.split()
        if len(w) > 2 and w not in NAME_STOP_WORDS and not w.isdigit()
    ]
    return [word for word, _ in Counter(words).most_common(limit)]


def language_prefix(language: Optional[str]) -> str:
    if not language or language == 'unknown':
        return 'code'
    return language


def kebab(identifier: str) -> str:
    """fetchUserProfile / fetch_user_profile -> fetch-user-profile."""
    spaced = re.sub(r'([a-z0-9])([A-Z])', r'\1-\2', identifier)
    return spaced.replace('_', '-').lower()


def generate_file_name(
    text: str,
    language: Optional[str],
    timestamp: Optional[datetime] = None,
    max_length: int = MAX_NAME_LENGTH
) -> str:
    """
    Keyword-based file name.

    Args:
        text: Captured code
        language: Detected language ('unknown' becomes 'code')
        timestamp: Capture time, used in the fallback name
        max_length: Longest name to return

    Returns:
        Sanitized name such as 'javascript-fetch-user-profile'
    """
    prefix = language_prefix(language)
    keywords = top_keywords(text, 3)

    if keywords:
        return sanitize_name(f"{prefix}-{'-'.join(keywords)}", max_length)

    fallback = f'{prefix}-snippet'
    if timestamp is not None:
        fallback += f"-{timestamp.strftime('%Y-%m-%d')}"
    return sanitize_name(fallback, max_length)


def generate_intelligent_file_name(
    text: str,
    language: Optional[str],
    primary_topic: Optional[str] = None,
    existing_titles: Iterable[str] = (),
    timestamp: Optional[datetime] = None,
    max_length: int = MAX_NAME_LENGTH
) -> str:
    """
    Keyword name (topic name when the text has no usable keywords), numbered
    after the highest existing title with the same core topic.
    """
    prefix = language_prefix(language)

    if top_keywords(text, 1):
        base = generate_file_name(text, language, timestamp, max_length)
    elif primary_topic and primary_topic != 'general':
        base = sanitize_name(f'{prefix}-{primary_topic}', max_length)
    else:
        base = generate_file_name(text, language, timestamp, max_length)

    number = next_sequence_number(base, list(existing_titles))
    if number is None:
        return base

    stem = SEQUENCE_SUFFIX.sub('', base)
    suffix = f'-{number}'
    return sanitize_name(stem[:max_length - len(suffix)].rstrip('-') + suffix, max_length)


def generate_smart_file_names(
    text: str,
    language: Optional[str],
    primary_topic: Optional[str] = None,
    existing_titles: Iterable[str] = (),
    limit: int = 5,
    extractor: Optional[SignatureExtractor] = None,
    max_length: int = MAX_NAME_LENGTH
) -> List[NameSuggestion]:
    """
    Ranked alternative names built from different aspects of the code.

    Each name scores the mean of its uniqueness (no existing title shares its
    core topic) and relevance (share of its words found in the text).
    """
    prefix = language_prefix(language)
    signature = (extractor or SignatureExtractor()).extract(text or '')
    titles = [t for t in existing_titles if t]

    variants = []
    if signature.functions:
        variants.append((f'{prefix}-{kebab(signature.functions[0])}', 'Named after main function'))
    if signature.classes:
        variants.append((f'{prefix}-{kebab(signature.classes[0])}', 'Named after key type'))
    for family, pattern in PATTERN_FAMILIES:
        if pattern.search(text or ''):
            variants.append((f'{prefix}-{family}', 'Named after code pattern'))
            break
    if primary_topic and primary_topic != 'general':
        variants.append((f'{prefix}-{primary_topic}', 'Named after topic'))
    keyword_name = generate_file_name(text, language, max_length=max_length)
    variants.append((keyword_name, 'Named after frequent keywords'))

    lowered = (text or '').lower()
    suggestions = []
    seen = set()

    for raw_name, reason in variants:
        name = sanitize_name(raw_name, max_length)
        if not name or name in seen:
            continue
        seen.add(name)

        topic = core_topic(name)
        uniqueness = 0.5 if any(core_topic(t) == topic for t in titles) else 1.0

        words = [w for w in LANGUAGE_PREFIX.sub('', name.lower()).split('-') if len(w) > 1]
        relevance = sum(1 for w in words if w in lowered) / len(words) if words else 0.0

        suggestions.append(NameSuggestion(
            name=name,
            score=(uniqueness + relevance) / 2,
            reason=reason,
            uniqueness=uniqueness,
            relevance=relevance,
        ))

    suggestions.sort(key=lambda s: s.score, reverse=True)
    return suggestions[:limit]
