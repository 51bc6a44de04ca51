"""
Tests for GenerativeClient using httpx.MockTransport (no network).
"""

from __future__ import annotations

import json

import httpx
import pytest

from gw_forecaster.ai.client import (
    GENERATE_RECIPE_PATH,
    PROMPT_PATH,
    GenerativeClient,
    extract_candidate_text,
)
from gw_forecaster.exceptions import GenerativeResponseError


def candidate(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def make_client(handler) -> GenerativeClient:
    return GenerativeClient(
        base_url="https://example.test/",
        client_key="secret",
        timeout_s=5.0,
        transport=httpx.MockTransport(handler),
    )


class TestFixtureMode:
    def test_no_credentials_means_fixture(self) -> None:
        assert GenerativeClient().is_fixture
        assert GenerativeClient(base_url="https://x").is_fixture
        assert not GenerativeClient(base_url="https://x", client_key="k").is_fixture

    def test_fixture_recipe_is_valid_json(self) -> None:
        result = GenerativeClient().post(GENERATE_RECIPE_PATH, {}, purpose="recipe")
        assert result.is_fixture
        assert json.loads(result.text)["recipe"]["method"] == "linear_trend"

    def test_unknown_purpose_returns_empty_text(self) -> None:
        assert GenerativeClient().post(PROMPT_PATH, {}, purpose="unknown").text == ""

    def test_from_config(self, generative_config) -> None:
        client = GenerativeClient.from_config(generative_config)
        assert client.base_url == "https://example.test"
        assert not client.is_fixture


class TestPost:
    def test_sends_key_header_and_json_body(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["key"] = request.headers.get("X-Client-Key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=candidate("hello"))

        result = make_client(handler).post(PROMPT_PATH, {"promptForFunction": "hi"})

        assert result.text == "hello"
        assert not result.is_fixture
        assert result.endpoint == PROMPT_PATH
        assert seen["url"] == "https://example.test/api/v1/ai_fetch/raw_text"
        assert seen["key"] == "secret"
        assert seen["body"] == {"promptForFunction": "hi"}

    def test_http_error_status(self) -> None:
        client = make_client(lambda request: httpx.Response(500, text="boom"))
        with pytest.raises(GenerativeResponseError, match="failed"):
            client.post(PROMPT_PATH, {})

    def test_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        with pytest.raises(GenerativeResponseError):
            make_client(handler).post(PROMPT_PATH, {})

    def test_non_json_body(self) -> None:
        client = make_client(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(GenerativeResponseError, match="not JSON"):
            client.post(PROMPT_PATH, {})

    def test_missing_candidate(self) -> None:
        client = make_client(lambda request: httpx.Response(200, json={"candidates": []}))
        with pytest.raises(GenerativeResponseError, match="no candidate"):
            client.post(PROMPT_PATH, {})


class TestExtractCandidateText:
    def test_happy_path(self) -> None:
        assert extract_candidate_text(candidate("x")) == "x"

    @pytest.mark.parametrize("body", [{}, None, {"candidates": [{"content": {}}]}])
    def test_missing_levels(self, body) -> None:
        with pytest.raises(GenerativeResponseError):
            extract_candidate_text(body)

    def test_non_string_text(self) -> None:
        with pytest.raises(GenerativeResponseError, match="not a string"):
            extract_candidate_text({"candidates": [{"content": {"parts": [{"text": 5}]}}]})
