"""Turn the model's free-text replies into typed records.

Both calls ask the model for a fixed plain-text layout instead of a
structured schema, so the layouts are kept here as constants next to the
patterns that read them back:

Extraction reply::

    Major: <major>
    Keywords: <comma-separated keywords>

Comparison reply, one block per lab, each closed by a delimiter line::

    Lab ID: <id>
    Similarity Score: <score>
    Match Reason: <reason>
    ---

Swapping the textual protocol for a structured one means writing another
``ResponseAdapter`` subclass; callers only see ``ResumeDetails`` and
``LabScore`` objects.
"""
from __future__ import annotations

import logging
import re
from typing import List, Optional

from labconnect.services.errors import ResponseFormatError
from labconnect.services.types import LabScore, ResumeDetails

logger = logging.getLogger(__name__)

RESUME_FORMAT = "Major: <major>\nKeywords: <comma-separated keywords>"
LAB_BLOCK_FORMAT = "Lab ID: <id>\nSimilarity Score: <score>\nMatch Reason: <reason>"
BLOCK_DELIMITER = "---"

MAJOR_RE = re.compile(r"Major:\s*(.+)")
KEYWORDS_RE = re.compile(r"Keywords:\s*(.+)")
LAB_ID_RE = re.compile(r"Lab ID:\s*(\d+)")
SCORE_RE = re.compile(r"Similarity Score:\s*(\d+)")
# Reason runs to the end of its block, across lines
REASON_RE = re.compile(r"Match Reason:\s*([\s\S]+)")


class ResponseAdapter:
    name = "base"

    def resume_details(self, text: str) -> ResumeDetails:
        raise NotImplementedError

    def lab_scores(self, text: str) -> List[LabScore]:
        raise NotImplementedError


class TextResponseAdapter(ResponseAdapter):
    name = "text"

    def resume_details(self, text: str) -> ResumeDetails:
        return parse_resume_details(text)

    def lab_scores(self, text: str) -> List[LabScore]:
        return parse_lab_scores(text)


def parse_resume_details(text: str) -> ResumeDetails:
    """Read major and keywords from an extraction reply.

    Both markers must be present; otherwise ``ResponseFormatError`` is raised.
    """
    major_m = MAJOR_RE.search(text or "")
    keywords_m = KEYWORDS_RE.search(text or "")
    if not major_m or not keywords_m:
        logger.debug("Extraction reply missing markers: %r", text)
        raise ResponseFormatError("Failed to parse resume details")
    return ResumeDetails(major=major_m.group(1).strip(), keywords=keywords_m.group(1).strip())


def _parse_block(block: str) -> Optional[LabScore]:
    id_m = LAB_ID_RE.search(block)
    score_m = SCORE_RE.search(block)
    reason_m = REASON_RE.search(block)
    if not id_m or not score_m or not reason_m:
        return None
    return LabScore(
        id=int(id_m.group(1)),
        similarity_score=int(score_m.group(1)),
        match_reason=reason_m.group(1).strip(),
    )


def parse_lab_scores(text: str) -> List[LabScore]:
    """Split a comparison reply into blocks and keep the complete ones.

    A block missing any of id, score or reason is skipped; it never fails
    the whole parse.
    """
    scores: List[LabScore] = []
    skipped = 0
    for block in (text or "").split(BLOCK_DELIMITER):
        parsed = _parse_block(block)
        if parsed is None:
            if block.strip():
                skipped += 1
            continue
        scores.append(parsed)
    if skipped:
        logger.debug("Skipped %d incomplete analysis block(s)", skipped)
    return scores
