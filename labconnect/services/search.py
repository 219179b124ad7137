from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from labconnect.services.db import LabStore
from labconnect.services.errors import LabConnectError, NoLabsError, ValidationError
from labconnect.services.image_preproc import read_upload
from labconnect.services.llm import LlmClient, compare_labs, extract_resume_details
from labconnect.services.matching import merge_and_rank
from labconnect.services.parsing import ResponseAdapter, TextResponseAdapter
from labconnect.services.types import LabAnalysis, ResumeDetails

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Failed to process image. Please try again."


class SearchState(str, Enum):
    IDLE = "idle"
    IMAGE_SELECTED = "image_selected"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class SearchSession:
    """State of one search interaction.

    Build instances through the classmethods; each one only sets the fields
    its state allows, so an error never travels together with results.

    The server renders idle, success and error. image_selected and loading
    are the states the page script holds between a file choice and the
    response; they exist so the template renders the same button for them.
    """
    state: SearchState = SearchState.IDLE
    filename: str = ""
    details: Optional[ResumeDetails] = None
    labs: List[LabAnalysis] = field(default_factory=list)
    error: Optional[str] = None
    elapsed_sec: Optional[float] = None

    @classmethod
    def idle(cls) -> "SearchSession":
        return cls()

    @classmethod
    def image_selected(cls, filename: str) -> "SearchSession":
        return cls(state=SearchState.IMAGE_SELECTED, filename=filename)

    @classmethod
    def loading(cls, filename: str) -> "SearchSession":
        return cls(state=SearchState.LOADING, filename=filename)

    @classmethod
    def success(
        cls,
        filename: str,
        labs: List[LabAnalysis],
        elapsed_sec: float,
        details: Optional[ResumeDetails] = None,
    ) -> "SearchSession":
        return cls(state=SearchState.SUCCESS, filename=filename, details=details, labs=list(labs), elapsed_sec=elapsed_sec)

    @classmethod
    def failed(cls, filename: str, message: str) -> "SearchSession":
        return cls(state=SearchState.ERROR, filename=filename, error=message)

    @property
    def is_loading(self) -> bool:
        return self.state is SearchState.LOADING

    # The page's trigger stays disabled while loading or before an image is chosen
    @property
    def can_submit(self) -> bool:
        return self.state not in (SearchState.IDLE, SearchState.LOADING)


def run_search(
    content: Optional[bytes],
    filename: Optional[str] = None,
    content_type: Optional[str] = None,
    client: Optional[LlmClient] = None,
    store: Optional[LabStore] = None,
    adapter: Optional[ResponseAdapter] = None,
) -> SearchSession:
    """Run the whole match workflow for one uploaded resume image.

    Steps run strictly in order: image read, extraction call, lab table read,
    comparison call, then merge and rank. Any failure ends the interaction in
    the ERROR state with no partial results.
    """
    name = filename or ""
    if not content and not name:
        # Nothing chosen: report inline without touching the network
        return SearchSession.failed(name, "Please upload an image")

    logger.info("Search started for %r", name)
    t0 = time.perf_counter()
    try:
        image_b64 = read_upload(content, content_type, name)

        client = client or LlmClient()
        store = store or LabStore()
        adapter = adapter or TextResponseAdapter()

        details = extract_resume_details(client, image_b64, adapter=adapter)

        labs = store.fetch_all()
        if not labs:
            raise NoLabsError()

        scores = compare_labs(client, details, labs, image_b64, adapter=adapter)
        ranked = merge_and_rank(labs, scores)
    except ValidationError as e:
        logger.info("Search rejected for %r: %s", name, e)
        return SearchSession.failed(name, str(e))
    except LabConnectError as e:
        logger.error("Search failed for %r: %s", name, e)
        return SearchSession.failed(name, str(e) or GENERIC_ERROR)
    except Exception as e:
        logger.exception("Error processing image %r: %s", name, e)
        return SearchSession.failed(name, GENERIC_ERROR)

    elapsed = max(0.0, time.perf_counter() - t0)
    scored = sum(1 for lab in ranked if lab.similarity_score is not None)
    logger.info("Search finished for %r: %d lab(s), %d scored, %.2fs", name, len(ranked), scored, elapsed)
    return SearchSession.success(name, ranked, elapsed, details=details)


def list_all_labs(store: Optional[LabStore] = None) -> SearchSession:
    """Plain fetch of every lab with no matching."""
    store = store or LabStore()
    try:
        labs = store.fetch_all()
    except LabConnectError as e:
        logger.error("Lab listing failed: %s", e)
        return SearchSession.failed("", str(e))
    return SearchSession.success("", [LabAnalysis(**lab.model_dump()) for lab in labs], 0.0)
