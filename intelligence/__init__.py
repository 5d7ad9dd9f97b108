"""
CodeShelf Intelligence Layer

Corpus-level analysis built on the enrichment and context packages:
- Multi-dimensional similarity between pieces of code
- Grouping of the whole corpus into projects, sessions and components
- The organizer that classifies each new capture
- Corpus-wide organization plans and project structures

Import from the submodules; nothing is loaded eagerly here.
"""

from typing import TYPE_CHECKING

# Lazy imports
if TYPE_CHECKING:
    from .similarity import SimilarityEngine
    from .grouping import ContentGrouper
    from .organizer import ContentOrganizer
    from .planning import OrganizationPlanner

__all__ = [
    'SimilarityEngine',
    'ContentGrouper',
    'ContentOrganizer',
    'OrganizationPlanner',
]
