"""
LLM Service — vendor-neutral chat client.

One ``LLMClient`` is constructed by the application factory and handed to
the services that need it. It wraps LangChain chat models for:
  - claude  → langchain-anthropic ``ChatAnthropic``
  - gemini  → langchain-google-genai ``ChatGoogleGenerativeAI``
  - groq    → langchain-groq ``ChatGroq``

``generate()`` sends a system + user prompt and returns the text of the
first content block of the reply.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

from langchain_core.messages import HumanMessage, SystemMessage

from migration_assist.config import Settings
from migration_assist.models.enums import LLMProvider

logger = logging.getLogger(__name__)

ModelFactory = Callable[[LLMProvider, float, int], Any]


class LLMServiceError(RuntimeError):
    """The vendor call failed or returned something unusable."""


class LLMConfigurationError(LLMServiceError):
    """The requested provider is not configured (e.g. missing API key)."""


def resolve_provider(value: LLMProvider | str | None, default: LLMProvider | str) -> LLMProvider:
    """Parse a provider name, raising ValueError for unknown names."""
    raw = value or default
    if isinstance(raw, LLMProvider):
        return raw
    try:
        return LLMProvider(str(raw).strip().lower())
    except ValueError:
        valid = ", ".join(p.value for p in LLMProvider)
        raise ValueError(f"Unknown LLM provider {raw!r} (expected one of: {valid})")


class LLMClient:
    """Chat client shared by the generation services."""

    def __init__(self, settings: Settings, model_factory: Optional[ModelFactory] = None):
        self.settings = settings
        self.default_provider = resolve_provider(None, settings.default_llm_provider)
        self._model_factory = model_factory or self._build_model
        self._models: dict[tuple[LLMProvider, float, int], Any] = {}

    # ── Model construction ───────────────────────────────

    def _build_model(self, provider: LLMProvider, temperature: float, max_tokens: int) -> Any:
        s = self.settings
        if provider is LLMProvider.CLAUDE:
            if not s.anthropic_api_key:
                raise LLMConfigurationError("ANTHROPIC_API_KEY is not set in environment / .env file")
            from langchain_anthropic import ChatAnthropic

            return ChatAnthropic(
                model=s.claude_model,
                api_key=s.anthropic_api_key,
                temperature=temperature,
                max_tokens=max_tokens,
            )

        if provider is LLMProvider.GEMINI:
            if not s.google_api_key:
                raise LLMConfigurationError("GOOGLE_API_KEY is not set in environment / .env file")
            from langchain_google_genai import ChatGoogleGenerativeAI

            return ChatGoogleGenerativeAI(
                model=s.gemini_model,
                google_api_key=s.google_api_key,
                temperature=temperature,
                max_output_tokens=max_tokens,
            )

        if not s.groq_api_key:
            raise LLMConfigurationError("GROQ_API_KEY is not set in environment / .env file")
        from langchain_groq import ChatGroq

        return ChatGroq(
            api_key=s.groq_api_key,
            model=s.groq_model,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    def get_model(
        self,
        provider: LLMProvider | str | None = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Any:
        """Return a cached chat model for the given provider and sampling settings."""
        resolved = resolve_provider(provider, self.default_provider)
        key = (
            resolved,
            self.settings.llm_temperature if temperature is None else temperature,
            self.settings.llm_max_tokens if max_tokens is None else max_tokens,
        )
        if key not in self._models:
            self._models[key] = self._model_factory(*key)
            logger.info(
                f"Initialized {resolved.value} chat model "
                f"(temperature={key[1]}, max_tokens={key[2]})"
            )
        return self._models[key]

    # ── Calls ────────────────────────────────────────────

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        provider: LLMProvider | str | None = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Call the model and return the raw text response.
        Retries up to ``llm_empty_retries`` times on empty responses.
        """
        model = self.get_model(provider, temperature, max_tokens)
        messages = [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]

        logger.debug(f"[LLM-TEXT] Prompt length: {len(user_prompt)} chars")
        logger.debug(f"[LLM-TEXT] Prompt preview:\n{user_prompt[:500]}{'…' if len(user_prompt) > 500 else ''}")

        attempts = self.settings.llm_empty_retries + 1
        content = ""
        for attempt in range(1, attempts + 1):
            t0 = time.perf_counter()
            try:
                response = model.invoke(messages)
            except LLMServiceError:
                raise
            except Exception as exc:
                logger.error(f"[LLM-TEXT] Vendor call failed: {exc}")
                raise LLMServiceError(f"LLM request failed: {exc}") from exc
            elapsed = time.perf_counter() - t0

            content = first_text_block(getattr(response, "content", response))
            meta = getattr(response, "response_metadata", {}) or {}
            finish_reason = meta.get("finish_reason") or meta.get("stop_reason") or "unknown"
            logger.info(
                f"[LLM-TEXT] Response received in {elapsed:.2f}s | "
                f"Response length: {len(content)} chars | "
                f"finish_reason={finish_reason}"
            )
            logger.debug(f"[LLM-TEXT] Full response:\n{content}")

            if content.strip():
                return content

            logger.warning(
                f"[LLM-TEXT] Empty response on attempt {attempt}/{attempts} "
                f"(finish_reason={finish_reason}). "
                f"{'Retrying…' if attempt < attempts else 'No retries left.'}"
            )

        return content  # return whatever we got (empty string)


def first_text_block(content: Any) -> str:
    """Text of the first text block in a chat message's content."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        for block in content:
            if isinstance(block, str):
                return block
            if isinstance(block, dict) and block.get("type", "text") == "text" and "text" in block:
                return str(block["text"])
        return ""
    return str(content)
