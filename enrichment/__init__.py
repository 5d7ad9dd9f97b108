"""
Enrichment for CodeShelf

Local, zero-cost analysis of captured code:
1. Catalogs: language motifs, topic vocabularies, stop words
2. Signatures: keywords, motifs, fingerprint, declared names
3. Naming: language-prefixed titles and alternatives
4. Classification: language, topic and the append decision

Usage:
    from enrichment import SignatureExtractor, generate_file_name
    from enrichment.classifier import TopicClassifier

    signature = SignatureExtractor().extract(text)
    name = generate_file_name(text, signature.language)
"""

from typing import TYPE_CHECKING

from .signature import ContentSignature, SignatureExtractor
from .naming import NameSuggestion, generate_file_name, generate_intelligent_file_name, generate_smart_file_names

# The classifier depends on context and intelligence; import it from its module
if TYPE_CHECKING:
    from .classifier import TopicClassifier, LanguageResult, TopicResult

__all__ = [
    'ContentSignature',
    'SignatureExtractor',
    'NameSuggestion',
    'generate_file_name',
    'generate_intelligent_file_name',
    'generate_smart_file_names',
]
