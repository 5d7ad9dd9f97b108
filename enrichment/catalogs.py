"""
Heuristic Catalogs for CodeShelf

Read-only pattern tables shared by the signature extractor, the classifier
and the naming helpers:
- Language profiles (motif regexes, keywords, extensions, frameworks)
- Topic profiles (weighted regexes, related topics)
- Code motif catalog used by content signatures
- Stop words and the language affinity table

Catalog order matters: arg-max ties resolve to the earlier entry.
"""

import re
from dataclasses import dataclass
from typing import Tuple, Pattern, FrozenSet, Dict


@dataclass(frozen=True)
class LanguageProfile:
    """Detection profile for one programming language."""
    name: str
    patterns: Tuple[Pattern, ...]
    keywords: FrozenSet[str]
    extensions: Tuple[str, ...]
    frameworks: Tuple[str, ...]
    weight: float = 1.0


@dataclass(frozen=True)
class TopicProfile:
    """Detection profile for one content topic."""
    name: str
    patterns: Tuple[Pattern, ...]
    weight: int
    related: Tuple[str, ...] = ()


def _compile(*patterns: str) -> Tuple[Pattern, ...]:
    return tuple(re.compile(p, re.I) for p in patterns)


# =============================================================================
# Languages
# =============================================================================

LANGUAGE_PROFILES: Tuple[LanguageProfile, ...] = (
    LanguageProfile(
        name='javascript',
        patterns=_compile(
            r'\b(?:function|const|let|var)\b|=>',
            r'\b(?:console\.log|document\.|window\.)',
            r'\b(?:npm|yarn)\b|package\.json',
            r'\bimport\b.*\bfrom\b|\bexport\b',
        ),
        keywords=frozenset(['function', 'const', 'let', 'var', 'console', 'document', 'window', 'import', 'export']),
        extensions=('.js', '.jsx', '.mjs'),
        frameworks=('react', 'vue', 'angular', 'node', 'express'),
    ),
    LanguageProfile(
        name='typescript',
        patterns=_compile(
            r'\b(?:interface|type|enum)\b',
            r':[ \t]*\w+|\bas\s+\w+',
            r'\bimport\b.*\bfrom\b.*[\'"].*\.ts',
            r'\b(?:public|private|protected)\s+',
        ),
        keywords=frozenset(['interface', 'type', 'enum', 'implements', 'extends', 'public', 'private']),
        extensions=('.ts', '.tsx'),
        frameworks=('angular', 'nest', 'typeorm'),
    ),
    LanguageProfile(
        name='python',
        patterns=_compile(
            r'\b(?:def|import|from|print)\b',
            r'\bif __name__\b|\.py\b',
            r'\bclass\s+\w+.*:',
            r'\bpip install\b|requirements\.txt',
        ),
        keywords=frozenset(['def', 'import', 'from', 'print', 'class', 'if', 'elif', 'else']),
        extensions=('.py', '.pyw'),
        frameworks=('django', 'flask', 'fastapi', 'pandas', 'numpy'),
    ),
    LanguageProfile(
        name='swift',
        patterns=_compile(
            r'\b(?:func|var|let)\b|\bimport UIKit\b',
            r'@IBOutlet|@IBAction',
            r'\b(?:override|extension)\b',
            r'\bclass\s+\w+:\s*UIViewController\b',
        ),
        keywords=frozenset(['func', 'var', 'let', 'override', 'extension', 'class', 'struct']),
        extensions=('.swift',),
        frameworks=('uikit', 'swiftui', 'combine', 'core data'),
    ),
    LanguageProfile(
        name='java',
        patterns=_compile(
            r'\bpublic class\b|\bpublic static void\b',
            r'\bSystem\.out\b|\bimport java\b',
            r'@Override\b|\bextends\b|\bimplements\b',
            r'\b(?:ArrayList|HashMap)\b',
        ),
        keywords=frozenset(['public', 'class', 'static', 'void', 'extends', 'implements']),
        extensions=('.java',),
        frameworks=('spring', 'hibernate', 'android'),
    ),
    LanguageProfile(
        name='kotlin',
        patterns=_compile(
            r'\b(?:fun|val|var|class)\b',
            r'\bimport\b.*\bkotlin\b',
            r'\boverride\b|\bcompanion object\b',
            r'\bdata class\b',
        ),
        keywords=frozenset(['fun', 'val', 'var', 'class', 'override', 'companion']),
        extensions=('.kt', '.kts'),
        frameworks=('android', 'spring boot'),
    ),
    LanguageProfile(
        name='go',
        patterns=_compile(
            r'\b(?:func|package|import)\b',
            r'\bfmt\.Print|\bgo mod\b',
            r'interface\{\}|struct\{',
            r'\b(?:goroutine|channel)\b',
        ),
        keywords=frozenset(['func', 'package', 'import', 'var', 'const', 'type']),
        extensions=('.go',),
        frameworks=('gin', 'echo', 'fiber'),
    ),
    LanguageProfile(
        name='rust',
        patterns=_compile(
            r'\b(?:fn|let|mut|struct)\b',
            r'\bcargo\b|Cargo\.toml',
            r'\b(?:impl|trait|enum)\b',
            r'println!|vec!',
        ),
        keywords=frozenset(['fn', 'let', 'mut', 'struct', 'impl', 'trait', 'enum']),
        extensions=('.rs',),
        frameworks=('actix', 'tokio', 'serde'),
    ),
    LanguageProfile(
        name='cpp',
        patterns=_compile(
            r'#include\b|\busing namespace\b',
            r'\b(?:int main|cout|cin)\b',
            r'\bclass\b|\bpublic:|\bprivate:',
            r'std::|\bvector<',
        ),
        keywords=frozenset(['include', 'using', 'namespace', 'class', 'public', 'private']),
        extensions=('.cpp', '.cc', '.cxx'),
        frameworks=('qt', 'boost'),
    ),
    LanguageProfile(
        name='csharp',
        patterns=_compile(
            r'\busing System\b|\bnamespace\b',
            r'\bpublic class\b|\bstatic void Main\b',
            r'\bConsole\.WriteLine\b',
            r'\b(?:var|string|int|bool)\b',
        ),
        keywords=frozenset(['using', 'namespace', 'public', 'class', 'static', 'void']),
        extensions=('.cs',),
        frameworks=('.net', 'asp.net', 'blazor'),
    ),
)

LANGUAGE_NAMES: Tuple[str, ...] = tuple(p.name for p in LANGUAGE_PROFILES)

# Symmetric cross-language affinity; identical languages score 1.0
LANGUAGE_AFFINITY: Dict[FrozenSet[str], float] = {
    frozenset(['javascript', 'typescript']): 0.8,
    frozenset(['java', 'kotlin']): 0.7,
}


def framework_pattern(name: str) -> Pattern:
    """Whole-word matcher for a framework name such as 'asp.net'."""
    return re.compile(r'(?<!\w)' + re.escape(name) + r'(?!\w)', re.I)


# =============================================================================
# Topics
# =============================================================================

TOPIC_PROFILES: Tuple[TopicProfile, ...] = (
    TopicProfile(
        name='mobile-development',
        patterns=_compile(
            r'\b(?:React Native|Expo|iOS|Android)\b',
            r'\b(?:UIKit|SwiftUI|Kotlin|Flutter)\b',
            r'@react-navigation|\bexpo-|\breact-native-',
        ),
        weight=5,
        related=('ui-components', 'navigation'),
    ),
    TopicProfile(
        name='web-development',
        patterns=_compile(
            r'\b(?:HTML|CSS|DOM|fetch|axios)\b',
            r'\b(?:addEventListener|querySelector|getElementById)\b',
            r'\b(?:http|api|endpoint|rest)\b',
        ),
        weight=4,
        related=('api-integration', 'frontend'),
    ),
    TopicProfile(
        name='backend-development',
        patterns=_compile(
            r'\b(?:server|express|api|route)\b',
            r'\b(?:database|sql|mongodb|postgres)\b',
            r'\b(?:middleware|auth|jwt)\b',
        ),
        weight=4,
        related=('database', 'api-integration', 'authentication'),
    ),
    TopicProfile(
        name='database',
        patterns=_compile(
            r'\b(?:SELECT|INSERT|UPDATE|DELETE|CREATE TABLE)\b',
            r'\b(?:database|table|query|schema|migration)\b',
            r'\b(?:supabase|postgres|mysql|mongodb)\b',
        ),
        weight=4,
        related=('backend-development',),
    ),
    TopicProfile(
        name='authentication',
        patterns=_compile(
            r'\b(?:auth|login|signup|password|token)',
            r'\b(?:JWT|session|cookie|oauth)',
            r'\b(?:signIn|signUp|signOut|authenticate)',
        ),
        weight=4,
        related=('security', 'backend-development'),
    ),
    TopicProfile(
        name='ui-components',
        patterns=_compile(
            r'\b(?:component|props|useState|useEffect)',
            r'\b(?:button|input|form|modal|card)',
            r'\b(?:styling|css|tailwind|styled)',
        ),
        weight=3,
        related=('frontend', 'mobile-development'),
    ),
    TopicProfile(
        name='data-processing',
        patterns=_compile(
            r'\b(?:map|filter|reduce|forEach|sort)\b',
            r'\b(?:JSON|parse|stringify|transform)\b',
            r'\b(?:array|object|data|algorithm)\b',
        ),
        weight=3,
        related=('algorithms',),
    ),
    TopicProfile(
        name='api-integration',
        patterns=_compile(
            r'\b(?:fetch|axios|api|endpoint|rest)\b',
            r'\b(?:GET|POST|PUT|DELETE|PATCH)\b',
            r'\b(?:async|await|promise|response)\b',
        ),
        weight=4,
        related=('web-development', 'backend-development'),
    ),
    TopicProfile(
        name='testing',
        patterns=_compile(
            r'\b(?:test|spec|jest|mocha|cypress)',
            r'\b(?:expect|describe|it|should|mock)\b',
            r'\b(?:unit test|integration test|e2e)\b',
        ),
        weight=3,
        related=('quality-assurance',),
    ),
    TopicProfile(
        name='algorithms',
        patterns=_compile(
            r'\b(?:sort|search|binary|recursion)\b',
            r'\b(?:big o|complexity|optimize)\b',
            r'\b(?:data structure|linked list|tree|graph)\b',
        ),
        weight=3,
        related=('data-processing',),
    ),
)

TOPIC_NAMES: Tuple[str, ...] = tuple(p.name for p in TOPIC_PROFILES)


# =============================================================================
# Code motifs and stop words
# =============================================================================

# Syntactic motifs recorded (with repeats) in a content signature
CODE_MOTIFS: Tuple[Pattern, ...] = tuple(re.compile(p) for p in (
    r'if\s*\(',
    r'for\s*\(',
    r'while\s*\(',
    r'switch\s*\(',
    r'function\s+\w+',
    r'const\s+\w+\s*=',
    r'let\s+\w+\s*=',
    r'var\s+\w+\s*=',
    r'class\s+\w+',
    r'interface\s+\w+',
    r'type\s+\w+',
    r'useState\(',
    r'useEffect\(',
    r'useCallback\(',
    r'useMemo\(',
    r'fetch\(',
    r'axios\.',
    r'async\s+function',
    r'await\s+',
))

STOP_WORDS: FrozenSet[str] = frozenset([
    'the', 'and', 'or', 'but', 'in', 'on', 'at', 'to', 'for', 'of', 'with',
    'by', 'a', 'an', 'is', 'are', 'was', 'were', 'be', 'been', 'being',
    'have', 'has',
])

# Extra words that make poor file names
NAME_STOP_WORDS: FrozenSet[str] = STOP_WORDS | frozenset([
    'not', 'you', 'all', 'can', 'had', 'her', 'one', 'our', 'out', 'day',
    'get', 'him', 'his', 'how', 'new', 'now', 'old', 'see', 'two', 'way',
    'who', 'did', 'its', 'let', 'put', 'say', 'she', 'too', 'use', 'this',
    'that', 'return', 'const', 'var', 'true', 'false', 'null', 'none', 'self',
])
