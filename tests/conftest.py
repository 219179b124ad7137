"""Shared fixtures: sample labs, a real image upload, and upstream fakes."""

from typing import Any, Dict, List, Optional

import cv2
import numpy as np
import pytest

from labconnect.services.errors import DatabaseError
from labconnect.services.types import LabRecord

EXTRACTION_REPLY = "Major: Computer Science\nKeywords: machine learning, robotics"
COMPARISON_REPLY = (
    "Lab ID: 3\nSimilarity Score: 5\nMatch Reason: strong ML overlap\n---\n"
    "Lab ID: 7\nSimilarity Score: 2\nMatch Reason: partial overlap\n---"
)


def make_row(lab_id: int, **overrides: Any) -> Dict[str, Any]:
    row = {
        "id": lab_id,
        "Department": "Engineering",
        "Professor Name": f"Prof. {lab_id}",
        "Contact": f"prof{lab_id}@example.edu",
        "Lab Name": f"Lab {lab_id}",
        "Major": "Computer Science",
        "How to apply": "Email the professor with your resume.",
        "Description": f"Research group number {lab_id}.",
    }
    row.update(overrides)
    return row


@pytest.fixture
def lab_rows() -> List[Dict[str, Any]]:
    return [make_row(3), make_row(7), make_row(9)]


@pytest.fixture
def labs(lab_rows) -> List[LabRecord]:
    return [LabRecord.model_validate(r) for r in lab_rows]


@pytest.fixture
def png_bytes() -> bytes:
    """A small real PNG so decoding goes through OpenCV."""
    img = np.full((40, 60, 3), 255, dtype=np.uint8)
    cv2.rectangle(img, (5, 5), (30, 20), (0, 0, 0), -1)
    ok, buf = cv2.imencode(".png", img)
    assert ok
    return buf.tobytes()


class FakeLlmClient:
    """Stands in for LlmClient: returns scripted replies in order."""

    def __init__(self, replies: List[str]):
        self.replies = list(replies)
        self.calls: List[Dict[str, Any]] = []

    def chat(self, messages, max_tokens):
        self.calls.append({"messages": messages, "max_tokens": max_tokens})
        if not self.replies:
            raise AssertionError("unexpected model call")
        return self.replies.pop(0), {}


class FakeLabStore:
    def __init__(self, labs: Optional[List[LabRecord]] = None, error: Optional[str] = None):
        self.labs = labs or []
        self.error = error
        self.calls = 0

    def fetch_all(self) -> List[LabRecord]:
        self.calls += 1
        if self.error:
            raise DatabaseError(self.error)
        return list(self.labs)


@pytest.fixture
def fake_client_factory():
    return FakeLlmClient


@pytest.fixture
def fake_store_factory():
    return FakeLabStore


@pytest.fixture
def extraction_reply() -> str:
    return EXTRACTION_REPLY


@pytest.fixture
def comparison_reply() -> str:
    return COMPARISON_REPLY
