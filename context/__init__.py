"""
Context Analysis for CodeShelf

This module provides:
- Sequence detection: ordering related captures and naming how they relate
- Merge analysis: candidates, conflicts and merge execution
- Project inference: project-name indicators shared across saved code

Usage:
    from context import SequenceDetector, MergeEngine

    # Order a set of captures
    detector = SequenceDetector()
    sequence = detector.analyze_sequence(items)

    # Find what a new capture could merge with
    engine = MergeEngine()
    candidates = engine.find_merge_candidates(new_item, saved_items)
"""

from .sequence_detection import SequenceDetector, SequencePattern, SequencedItem, CodeSequence
from .merge import MergeEngine, MergeCandidate, MergeConflict, MergeResult, BatchMergeResult
from .project_inference import ProjectInferrer, Project

__all__ = [
    'SequenceDetector',
    'SequencePattern',
    'SequencedItem',
    'CodeSequence',
    'MergeEngine',
    'MergeCandidate',
    'MergeConflict',
    'MergeResult',
    'BatchMergeResult',
    'ProjectInferrer',
    'Project',
]
