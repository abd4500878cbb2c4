"""Tests for LLMClient provider abstraction."""

import json
import pytest
from unittest.mock import MagicMock

from adrbot.common.llm_client import LLMClient, _to_gemini_schema


class TestLLMClientInit:
    def test_missing_anthropic_key_logs_info(self, caplog):
        import logging
        with caplog.at_level(logging.INFO, logger="adrbot.common.llm_client"):
            client = LLMClient(provider="anthropic")
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_missing_openai_key_logs_info(self, caplog):
        import logging
        with caplog.at_level(logging.INFO, logger="adrbot.common.llm_client"):
            client = LLMClient(provider="openai")
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_missing_google_key_logs_info(self, caplog):
        import logging
        with caplog.at_level(logging.INFO, logger="adrbot.common.llm_client"):
            client = LLMClient(provider="google")
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_unsupported_provider_logs_warning(self, caplog):
        import logging
        with caplog.at_level(logging.WARNING, logger="adrbot.common.llm_client"):
            client = LLMClient(provider="unsupported_xyz")
        assert not client.is_available
        assert "Unsupported" in caplog.text


class TestFromConfig:
    def test_channel_key_replaces_process_key(self, monkeypatch):
        from adrbot.common.config import LLMConfig
        captured = {}

        def fake_init(self, provider="google", model="", **keys):
            captured.update(keys, provider=provider, model=model)
            self.provider = provider
            self.model = model
            self._client = None

        monkeypatch.setattr(LLMClient, "__init__", fake_init)
        LLMClient.from_config(LLMConfig(provider="google", google_api_key="process"), api_key="channel")

        assert captured["provider"] == "google"
        assert captured["model"] == "gemini-2.0-flash"
        assert captured["google_api_key"] == "channel"

    def test_process_key_used_without_channel_key(self, monkeypatch):
        from adrbot.common.config import LLMConfig
        captured = {}

        def fake_init(self, provider="google", model="", **keys):
            captured.update(keys)
            self._client = None

        monkeypatch.setattr(LLMClient, "__init__", fake_init)
        LLMClient.from_config(LLMConfig(provider="openai", openai_api_key="sk-process"))

        assert captured["openai_api_key"] == "sk-process"

    def test_no_key_means_unavailable(self):
        from adrbot.common.config import LLMConfig
        client = LLMClient.from_config(LLMConfig(provider="google"))
        assert not client.is_available


class TestLLMClientGenerate:
    def test_generate_raises_when_unavailable(self):
        client = LLMClient(provider="anthropic")
        with pytest.raises(RuntimeError, match="not available"):
            client.generate("test")

    def test_generate_json_raises_when_unavailable(self):
        client = LLMClient(provider="google")
        with pytest.raises(RuntimeError, match="not available"):
            client.generate_json("test", schema={"type": "object"})

    def test_generate_json_google_passes_schema(self):
        client = LLMClient(provider="google", model="gemini-2.0-flash")
        genai = MagicMock()
        genai.GenerativeModel.return_value.generate_content.return_value.text = ' {"title": "x"} '
        client._client = genai

        schema = {"type": "object", "properties": {"title": {"type": "string"}}}
        raw = client.generate_json("prompt", schema=schema)

        assert raw == '{"title": "x"}'
        config = genai.GenerativeModel.return_value.generate_content.call_args.kwargs["generation_config"]
        assert config["response_mime_type"] == "application/json"
        assert config["response_schema"]["type"] == "OBJECT"
        assert config["response_schema"]["properties"]["title"]["type"] == "STRING"

    def test_generate_json_openai_uses_json_schema_format(self):
        client = LLMClient(provider="openai", model="gpt-4o-mini")
        openai = MagicMock()
        openai.chat.completions.create.return_value.choices = [
            MagicMock(message=MagicMock(content='{"title": "x"}'))
        ]
        client._client = openai

        raw = client.generate_json("prompt", schema={"type": "object"}, system="sys")

        assert raw == '{"title": "x"}'
        kwargs = openai.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"]["type"] == "json_schema"
        assert kwargs["response_format"]["json_schema"]["schema"] == {"type": "object"}
        assert kwargs["messages"][0] == {"role": "system", "content": "sys"}

    def test_generate_json_anthropic_appends_schema(self):
        client = LLMClient(provider="anthropic", model="claude")
        anthropic = MagicMock()
        anthropic.messages.create.return_value.content = [MagicMock(text='{"title": "x"}')]
        client._client = anthropic

        schema = {"type": "object", "required": ["title"]}
        raw = client.generate_json("prompt", schema=schema)

        assert raw == '{"title": "x"}'
        system = anthropic.messages.create.call_args.kwargs["system"]
        assert json.dumps(schema, indent=2) in system


class TestGeminiSchema:
    def test_nested_types_upper_cased(self):
        schema = {
            "type": "object",
            "properties": {
                "tags": {"type": "array", "items": {"type": "string"}},
            },
            "required": ["tags"],
        }
        converted = _to_gemini_schema(schema)
        assert converted["type"] == "OBJECT"
        assert converted["properties"]["tags"]["type"] == "ARRAY"
        assert converted["properties"]["tags"]["items"]["type"] == "STRING"
        assert converted["required"] == ["tags"]
