"""
Provider-agnostic LLM client for adrbot.

Supports Anthropic, OpenAI, and Google Gemini with a shared text-generation
interface, plus schema-constrained JSON generation.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

logger = logging.getLogger("adrbot.common.llm_client")


def _to_gemini_schema(schema: dict) -> dict:
    """Gemini expects upper-case OpenAPI type names"""
    converted = {}
    for key, value in schema.items():
        if key == "type" and isinstance(value, str):
            converted[key] = value.upper()
        elif isinstance(value, dict):
            converted[key] = _to_gemini_schema(value)
        else:
            converted[key] = value
    return converted


class LLMClient:
    """Unified text generation client across LLM providers."""

    def __init__(
        self,
        provider: str = "google",
        model: str = "",
        anthropic_api_key: Optional[str] = None,
        openai_api_key: Optional[str] = None,
        google_api_key: Optional[str] = None,
    ) -> None:
        self.provider = (provider or "google").lower()
        self.model = model
        self._client = None

        if self.provider == "anthropic":
            if not anthropic_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                import anthropic

                self._client = anthropic.Anthropic(api_key=anthropic_api_key)
            except ImportError:
                logger.warning("anthropic package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Anthropic client: %s", e)
            return

        if self.provider == "openai":
            if not openai_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                from openai import OpenAI

                self._client = OpenAI(api_key=openai_api_key)
            except ImportError:
                logger.warning("openai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize OpenAI client: %s", e)
            return

        if self.provider == "google":
            if not google_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                import google.generativeai as genai

                genai.configure(api_key=google_api_key)
                self._client = genai  # Store the module, not a model instance
            except ImportError:
                logger.warning("google-generativeai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Gemini client: %s", e)
            return

        logger.warning("Unsupported LLM provider: %s", self.provider)

    @classmethod
    def from_config(cls, llm_config, api_key: Optional[str] = None) -> "LLMClient":
        """Build a client for the configured provider.

        ``api_key`` (a per-channel key) replaces the process key of the
        configured provider when given.
        """
        provider = (llm_config.provider or "google").lower()
        keys = {
            "anthropic_api_key": llm_config.anthropic_api_key,
            "openai_api_key": llm_config.openai_api_key,
            "google_api_key": llm_config.google_api_key,
        }
        if api_key:
            keys[f"{provider}_api_key"] = api_key
        models = {
            "anthropic": llm_config.anthropic_model,
            "openai": llm_config.openai_model,
            "google": llm_config.google_model,
        }
        return cls(provider=provider, model=models.get(provider, ""), **keys)

    @property
    def is_available(self) -> bool:
        return self._client is not None

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        max_tokens: int = 512,
        timeout: float = 30.0,
    ) -> str:
        if not self.is_available:
            raise RuntimeError("LLM client is not available")

        if self.provider == "anthropic":
            response = self._client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                system=system,
                messages=[{"role": "user", "content": prompt}],
                timeout=timeout,
            )
            return response.content[0].text.strip()

        if self.provider == "openai":
            response = self._client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=self._openai_messages(prompt, system),
                timeout=timeout,
            )
            return (response.choices[0].message.content or "").strip()

        if self.provider == "google":
            model = self._gemini_model(system)
            response = model.generate_content(
                prompt,
                generation_config={"max_output_tokens": max_tokens},
                request_options={"timeout": timeout},
            )
            return response.text.strip()

        raise RuntimeError(f"Unsupported LLM provider: {self.provider}")

    def generate_json(
        self,
        prompt: str,
        *,
        schema: dict,
        system: Optional[str] = None,
        max_tokens: int = 4096,
        timeout: float = 60.0,
    ) -> str:
        """Generate a JSON document constrained by ``schema``.

        Gemini and OpenAI enforce the schema natively; Anthropic gets it
        appended to the system prompt. Returns the raw response text.
        """
        if not self.is_available:
            raise RuntimeError("LLM client is not available")

        if self.provider == "google":
            model = self._gemini_model(system)
            response = model.generate_content(
                prompt,
                generation_config={
                    "max_output_tokens": max_tokens,
                    "response_mime_type": "application/json",
                    "response_schema": _to_gemini_schema(schema),
                },
                request_options={"timeout": timeout},
            )
            return (response.text or "").strip()

        if self.provider == "openai":
            response = self._client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=self._openai_messages(prompt, system),
                response_format={
                    "type": "json_schema",
                    "json_schema": {"name": "decision_record", "schema": schema},
                },
                timeout=timeout,
            )
            return (response.choices[0].message.content or "").strip()

        if self.provider == "anthropic":
            schema_text = json.dumps(schema, indent=2)
            constrained = f"{system or ''}\n\nRespond with JSON matching this schema:\n{schema_text}".strip()
            return self.generate(prompt, system=constrained, max_tokens=max_tokens, timeout=timeout)

        raise RuntimeError(f"Unsupported LLM provider: {self.provider}")

    @staticmethod
    def _openai_messages(prompt: str, system: Optional[str]) -> list:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return messages

    def _gemini_model(self, system: Optional[str]):
        kwargs = {"model_name": self.model}
        if system:
            kwargs["system_instruction"] = system
        return self._client.GenerativeModel(**kwargs)
