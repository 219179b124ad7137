import json
import time
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests

from labconnect.config import settings
from labconnect.services.errors import ModelError, ResponseFormatError
from labconnect.services.parsing import (
    BLOCK_DELIMITER,
    LAB_BLOCK_FORMAT,
    RESUME_FORMAT,
    ResponseAdapter,
    TextResponseAdapter,
)
from labconnect.services.types import LabRecord, LabScore, ResumeDetails

logger = logging.getLogger(__name__)

# Prompt file loader (file-only; no inline defaults)
_PROMPTS_DIR = Path(__file__).resolve().parent / "prompts"


def _read_prompt(filename: str) -> str:
    """Read a prompt file; raise if missing or unreadable (file-only prompts)."""
    p = _PROMPTS_DIR / filename
    if not p.exists():
        raise FileNotFoundError(f"Prompt file not found: {p}")
    try:
        return p.read_text().strip()
    except OSError as e:
        raise IOError(f"Failed to read prompt file {p}: {e}")


# Pull the provider's error message out of a failed response, if it sent one.
def _error_detail(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str):
            return err
    return resp.text[:200]


def image_part(image_b64: str, detail: str) -> Dict[str, Any]:
    return {
        "type": "image_url",
        "image_url": {"url": f"data:image/jpeg;base64,{image_b64}", "detail": detail},
    }


# ---- LLM client wrapper ----

class LlmClient:
    """Minimal client for an OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        model: Optional[str] = None,
        endpoint: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[int] = None,
    ) -> None:
        self.model = model or settings.OPENAI_MODEL
        self.endpoint = (endpoint or settings.OPENAI_BASE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else (settings.OPENAI_API_KEY or "")
        self.timeout = timeout or settings.OPENAI_TIMEOUT

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    # True if a key is present and API calls can be attempted.
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def chat(self, messages: List[Dict[str, Any]], max_tokens: int) -> Tuple[str, dict]:
        """Send one chat request and return (reply text, raw response JSON).

        Transport and HTTP failures are raised as ``ModelError``.
        """
        if not self.is_configured():
            raise ModelError("OpenAI API key is not configured (OPENAI_API_KEY)")
        url = f"{self.endpoint}/chat/completions"
        payload = {"model": self.model, "messages": messages, "max_tokens": int(max_tokens)}
        t0 = time.perf_counter()
        try:
            resp = requests.post(url, json=payload, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("Model request failed: %s", e)
            raise ModelError(f"Model request failed: {e}") from e
        if not resp.ok:
            detail = _error_detail(resp)
            logger.error("Model API returned %s: %s", resp.status_code, detail)
            raise ModelError(f"Model API error ({resp.status_code}): {detail}")
        try:
            data = resp.json()
        except ValueError as e:
            raise ModelError("Model API returned a non-JSON response") from e
        data["_client_wall_sec"] = max(0.0, time.perf_counter() - t0)
        logger.debug(
            "Model %s replied in %.2fs (usage=%s)",
            self.model, data["_client_wall_sec"], data.get("usage"),
        )
        return (_reply_text(data), data)


def _reply_text(data: dict) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return ""
    return str(content or "").strip()


# ---- Calls ----

def extract_resume_details(
    client: LlmClient,
    image_b64: str,
    adapter: Optional[ResponseAdapter] = None,
) -> ResumeDetails:
    """First call: read the academic major and keywords off the resume image."""
    adapter = adapter or TextResponseAdapter()
    system = _read_prompt("resume_system.txt").format(resume_format=RESUME_FORMAT)
    messages = [
        {"role": "system", "content": system},
        {
            "role": "user",
            "content": [
                {"type": "text", "text": _read_prompt("resume_user.txt")},
                image_part(image_b64, settings.EXTRACT_IMAGE_DETAIL),
            ],
        },
    ]
    text, _ = client.chat(messages, max_tokens=settings.EXTRACT_MAX_TOKENS)
    if not text:
        raise ResponseFormatError("Failed to extract resume details")
    details = adapter.resume_details(text)
    logger.info("Extracted major=%r keywords=%r", details.major, details.keywords)
    return details


def compare_labs(
    client: LlmClient,
    details: ResumeDetails,
    labs: Sequence[LabRecord],
    image_b64: str,
    adapter: Optional[ResponseAdapter] = None,
) -> List[LabScore]:
    """Second call: score every lab against the resume.

    All labs go into a single prompt; the upstream input limit is the only bound.
    """
    adapter = adapter or TextResponseAdapter()
    system = _read_prompt("compare_system.txt").format(
        major=details.major,
        keywords=details.keywords,
        block_format=LAB_BLOCK_FORMAT,
        delimiter=BLOCK_DELIMITER,
    )
    labs_json = json.dumps([lab.to_row() for lab in labs], indent=2, ensure_ascii=False)
    user_text = _read_prompt("compare_user.txt").format(
        major=details.major,
        keywords=details.keywords,
        labs_json=labs_json,
    )
    messages = [
        {"role": "system", "content": system},
        {
            "role": "user",
            "content": [
                {"type": "text", "text": user_text},
                image_part(image_b64, settings.COMPARE_IMAGE_DETAIL),
            ],
        },
    ]
    text, _ = client.chat(messages, max_tokens=settings.COMPARE_MAX_TOKENS)
    if not text:
        raise ResponseFormatError("Failed to get lab analysis from LLM")
    scores = adapter.lab_scores(text)
    logger.info("Parsed %d lab score(s) for %d lab(s)", len(scores), len(labs))
    return scores


# ---- Health ----
# Check the model endpoint and return a status summary dict.
def model_health(client: Optional[LlmClient] = None) -> Dict[str, object]:
    """Check model endpoint reachability and whether the configured model is listed.

    Returns a dict with keys: ok, endpoint, model, configured, endpoint_ok, model_ok, error(optional)
    """
    client = client or LlmClient()
    info: Dict[str, object] = {
        "ok": False,
        "endpoint": client.endpoint,
        "model": client.model,
        "configured": client.is_configured(),
        "endpoint_ok": False,
        "model_ok": False,
    }
    if not client.is_configured():
        info["error"] = "OPENAI_API_KEY not set"
        return info
    try:
        r = requests.get(f"{client.endpoint}/models", headers=client._headers(), timeout=min(client.timeout, 10))
        r.raise_for_status()
        info["endpoint_ok"] = True
        names = {m.get("id") for m in (r.json().get("data") or []) if isinstance(m, dict)}
        info["model_ok"] = client.model in names
        info["ok"] = bool(info["endpoint_ok"] and info["model_ok"])
    except (requests.RequestException, ValueError) as e:
        info["error"] = str(e)
    return info
