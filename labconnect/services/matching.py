"""Merge parsed scores into the fetched labs and rank them."""
from __future__ import annotations

from typing import Dict, Iterable, List, Sequence

from labconnect.services.types import LabAnalysis, LabRecord, LabScore


def merge_analysis(labs: Sequence[LabRecord], scores: Iterable[LabScore]) -> List[LabAnalysis]:
    """Attach each lab's score and reason, looked up by lab id.

    Lookup runs lab -> score: scores whose id matches no lab are dropped and
    labs without a score keep both fields unset. When the model repeats an
    id, the first block for it is used.
    """
    by_id: Dict[int, LabScore] = {}
    for s in scores:
        by_id.setdefault(s.id, s)
    merged: List[LabAnalysis] = []
    for lab in labs:
        s = by_id.get(lab.id)
        merged.append(LabAnalysis(
            **lab.model_dump(),
            similarity_score=s.similarity_score if s else None,
            match_reason=s.match_reason if s else None,
        ))
    return merged


def rank_labs(labs: Iterable[LabAnalysis]) -> List[LabAnalysis]:
    # Unscored labs count as 0
    return sorted(labs, key=lambda lab: lab.similarity_score or 0, reverse=True)


def merge_and_rank(labs: Sequence[LabRecord], scores: Iterable[LabScore]) -> List[LabAnalysis]:
    return rank_labs(merge_analysis(labs, scores))
