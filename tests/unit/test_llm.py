"""
Unit tests for the model client and the two model calls.
"""

import json
from unittest.mock import Mock

import pytest
import requests

from labconnect.services import llm
from labconnect.services.errors import ModelError, ResponseFormatError
from labconnect.services.llm import LlmClient, compare_labs, extract_resume_details, model_health
from labconnect.services.types import ResumeDetails


def _response(status=200, body=None, text=""):
    resp = Mock()
    resp.status_code = status
    resp.ok = 200 <= status < 300
    resp.text = text or (json.dumps(body) if body is not None else "")
    if body is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = body
    return resp


def _completion(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}], "usage": {"total_tokens": 10}}


@pytest.fixture
def client():
    return LlmClient(model="gpt-test", endpoint="https://llm.example/v1/", api_key="sk-test", timeout=5)


class TestLlmClient:
    def test_chat_posts_payload_and_returns_text(self, client, monkeypatch):
        post = Mock(return_value=_response(body=_completion("  hello  ")))
        monkeypatch.setattr(llm.requests, "post", post)

        text, data = client.chat([{"role": "user", "content": "hi"}], max_tokens=12)

        assert text == "hello"
        assert "_client_wall_sec" in data
        args, kwargs = post.call_args
        assert args[0] == "https://llm.example/v1/chat/completions"
        assert kwargs["json"] == {
            "model": "gpt-test",
            "messages": [{"role": "user", "content": "hi"}],
            "max_tokens": 12,
        }
        assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
        assert kwargs["timeout"] == 5

    def test_missing_key_fails_without_request(self, monkeypatch):
        post = Mock()
        monkeypatch.setattr(llm.requests, "post", post)

        with pytest.raises(ModelError, match="OPENAI_API_KEY"):
            LlmClient(api_key="").chat([], max_tokens=1)
        post.assert_not_called()

    def test_http_error_carries_provider_message(self, client, monkeypatch):
        body = {"error": {"message": "Incorrect API key provided"}}
        monkeypatch.setattr(llm.requests, "post", Mock(return_value=_response(401, body)))

        with pytest.raises(ModelError, match="Incorrect API key provided"):
            client.chat([], max_tokens=1)

    def test_transport_error_is_wrapped(self, client, monkeypatch):
        monkeypatch.setattr(llm.requests, "post", Mock(side_effect=requests.ConnectionError("refused")))

        with pytest.raises(ModelError, match="refused"):
            client.chat([], max_tokens=1)

    def test_missing_choices_gives_empty_text(self, client, monkeypatch):
        monkeypatch.setattr(llm.requests, "post", Mock(return_value=_response(body={"choices": []})))

        text, _ = client.chat([], max_tokens=1)

        assert text == ""


class TestExtractResumeDetails:
    def test_builds_request_and_parses(self, fake_client_factory, extraction_reply):
        fake = fake_client_factory([extraction_reply])

        details = extract_resume_details(fake, "QUJD")

        assert details == ResumeDetails(major="Computer Science", keywords="machine learning, robotics")
        call = fake.calls[0]
        assert call["max_tokens"] == 150
        system, user = call["messages"]
        assert system["role"] == "system"
        assert "Major: <major>\nKeywords: <comma-separated keywords>" in system["content"]
        image = user["content"][1]
        assert image["image_url"]["url"] == "data:image/jpeg;base64,QUJD"
        assert image["image_url"]["detail"] == "auto"

    def test_empty_reply(self, fake_client_factory):
        with pytest.raises(ResponseFormatError, match="Failed to extract resume details"):
            extract_resume_details(fake_client_factory([""]), "QUJD")

    def test_unparseable_reply(self, fake_client_factory):
        with pytest.raises(ResponseFormatError, match="Failed to parse resume details"):
            extract_resume_details(fake_client_factory(["Major: Math"]), "QUJD")


class TestCompareLabs:
    def test_embeds_labs_and_details(self, fake_client_factory, labs, comparison_reply):
        fake = fake_client_factory([comparison_reply])
        details = ResumeDetails(major="Computer Science", keywords="machine learning, robotics")

        scores = compare_labs(fake, details, labs, "QUJD")

        assert [s.id for s in scores] == [3, 7]
        call = fake.calls[0]
        assert call["max_tokens"] == 1000
        system, user = call["messages"]
        assert '("Computer Science")' in system["content"]
        assert '("machine learning, robotics")' in system["content"]
        assert "Lab ID: <id>" in system["content"]
        assert system["content"].rstrip().endswith("---")
        text = user["content"][0]["text"]
        assert "Major: Computer Science" in text
        embedded = json.loads(text.split("Lab Descriptions:\n", 1)[1])
        assert [row["id"] for row in embedded] == [3, 7, 9]
        assert embedded[0]["Professor Name"] == "Prof. 3"
        assert user["content"][1]["image_url"]["detail"] == "high"

    def test_empty_reply(self, fake_client_factory, labs):
        details = ResumeDetails(major="CS", keywords="ml")

        with pytest.raises(ResponseFormatError, match="Failed to get lab analysis from LLM"):
            compare_labs(fake_client_factory([""]), details, labs, "QUJD")


class TestModelHealth:
    def test_unconfigured(self):
        info = model_health(LlmClient(api_key=""))

        assert info["ok"] is False
        assert info["configured"] is False

    def test_model_listed(self, client, monkeypatch):
        body = {"data": [{"id": "gpt-test"}, {"id": "other"}]}
        monkeypatch.setattr(llm.requests, "get", Mock(return_value=Mock(raise_for_status=Mock(), json=Mock(return_value=body))))

        info = model_health(client)

        assert info["ok"] is True
        assert info["model_ok"] is True

    def test_unreachable(self, client, monkeypatch):
        monkeypatch.setattr(llm.requests, "get", Mock(side_effect=requests.Timeout("slow")))

        info = model_health(client)

        assert info["ok"] is False
        assert "slow" in info["error"]
