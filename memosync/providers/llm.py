"""
AI backends for memo enrichment.

Four shapes behind one interface: a cloud chat model (OpenAI, Anthropic),
a cloud generative model (Gemini), a local model server (Ollama), and a
disabled backend that returns empty results.
"""

import logging
import os

from .base import (
    build_digest_prompt,
    build_summary_prompt,
    build_tags_prompt,
    get_registry,
    parse_tags,
)

logger = logging.getLogger(__name__)

SUMMARY_MAX_TOKENS = 500
TAGS_MAX_TOKENS = 100
DIGEST_MAX_TOKENS = 1000
TEMPERATURE = 0.7


class _PromptBackend:
    """Shared prompt plumbing: subclasses implement ``complete``."""

    def complete(self, prompt: str, *, max_tokens: int) -> str:
        raise NotImplementedError

    def generate_summary(self, text: str, language: str = "zh") -> str:
        return self.complete(
            build_summary_prompt(text, language), max_tokens=SUMMARY_MAX_TOKENS
        ).strip()

    def generate_tags(self, text: str) -> list[str]:
        return parse_tags(self.complete(build_tags_prompt(text), max_tokens=TAGS_MAX_TOKENS))

    def generate_weekly_digest(self, texts: list[str]) -> str:
        return self.complete(
            build_digest_prompt(texts), max_tokens=DIGEST_MAX_TOKENS
        ).strip()


class OpenAIBackend(_PromptBackend):
    """
    Backend using OpenAI's chat completions API.

    Requires: api_key parameter or OPENAI_API_KEY environment variable.
    ``base_url`` allows any OpenAI-compatible endpoint.
    """

    def __init__(
        self,
        model: str = "gpt-4o",
        api_key: str | None = None,
        base_url: str | None = None,
    ):
        try:
            from openai import OpenAI
        except ImportError:
            raise RuntimeError("OpenAIBackend requires 'openai' library")

        self.model = model

        key = api_key or os.environ.get("OPENAI_API_KEY")
        if not key:
            raise ValueError("OpenAI API key required. Set api_key or OPENAI_API_KEY")

        self._client = OpenAI(api_key=key, base_url=base_url or None)

        # GPT-5+ and reasoning models use a different API surface:
        # - max_completion_tokens instead of max_tokens
        # - temperature must be omitted (only default=1 supported)
        self._new_api = self.model.startswith(("gpt-5", "o1", "o3", "o4"))

    def _completion_kwargs(self, max_tokens: int) -> dict:
        """Return model-appropriate kwargs for token limit and temperature."""
        if self._new_api:
            return {"max_completion_tokens": max_tokens}
        return {"max_tokens": max_tokens, "temperature": TEMPERATURE}

    def complete(self, prompt: str, *, max_tokens: int) -> str:
        response = self._client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            **self._completion_kwargs(max_tokens),
        )
        if response.choices:
            return response.choices[0].message.content or ""
        return ""


class AnthropicBackend(_PromptBackend):
    """
    Backend using Anthropic's messages API.

    Requires: api_key parameter or ANTHROPIC_API_KEY environment variable.
    """

    def __init__(
        self,
        model: str = "claude-3-5-haiku-20241022",
        api_key: str | None = None,
    ):
        try:
            from anthropic import Anthropic
        except ImportError:
            raise RuntimeError("AnthropicBackend requires 'anthropic' library")

        self.model = model

        key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        if not key:
            raise ValueError("Anthropic API key required. Set api_key or ANTHROPIC_API_KEY")

        self._client = Anthropic(api_key=key)

    def complete(self, prompt: str, *, max_tokens: int) -> str:
        response = self._client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=TEMPERATURE,
            messages=[{"role": "user", "content": prompt}],
        )
        if response.content:
            return response.content[0].text
        return ""


class GeminiBackend(_PromptBackend):
    """
    Backend using Google's Gemini API (google-genai SDK).

    Authentication: api_key parameter, else GEMINI_API_KEY or GOOGLE_API_KEY.
    """

    def __init__(
        self,
        model: str = "gemini-1.5-flash",
        api_key: str | None = None,
    ):
        try:
            from google import genai
        except ImportError:
            raise RuntimeError("GeminiBackend requires 'google-genai' library")

        self.model = model

        key = api_key or os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY")
        if not key:
            raise ValueError(
                "Gemini API key required. Set api_key, GEMINI_API_KEY or GOOGLE_API_KEY"
            )

        self._client = genai.Client(api_key=key)

    def complete(self, prompt: str, *, max_tokens: int) -> str:
        # Let errors propagate so the retry policy can see them
        response = self._client.models.generate_content(
            model=self.model,
            contents=prompt,
            config={"max_output_tokens": max_tokens, "temperature": TEMPERATURE},
        )
        return response.text or ""


class OllamaBackend(_PromptBackend):
    """
    Backend using Ollama's local API.

    Respects OLLAMA_HOST env var (default: http://localhost:11434).
    """

    def __init__(
        self,
        model: str = "llama2",
        base_url: str | None = None,
        check_model: bool = True,
    ):
        self.model = model
        from .ollama_utils import ollama_base_url, ollama_check_model
        self.base_url = ollama_base_url(base_url)
        if check_model:
            ollama_check_model(self.base_url, self.model)

    def complete(self, prompt: str, *, max_tokens: int) -> str:
        import requests

        response = requests.post(
            f"{self.base_url}/api/chat",
            json={
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "stream": False,
                "options": {
                    "temperature": TEMPERATURE,
                    "top_p": 0.9,
                    "num_predict": max_tokens,
                },
            },
            timeout=(10, 300),  # (connect, read)
        )
        if not response.ok:
            detail = response.text[:200] if response.text else ""
            # Status code stays in the message so rate limits are recognizable
            raise RuntimeError(
                f"Ollama request failed (model={self.model}): "
                f"HTTP {response.status_code} from {self.base_url}. {detail}"
            )
        return response.json()["message"]["content"]


class NoopBackend:
    """
    Backend used when AI is disabled or could not be configured.

    Returns empty results immediately.
    """

    def __init__(self, **_ignored):
        pass

    def generate_summary(self, text: str, language: str = "zh") -> str:
        logger.debug("AI disabled; no summary")
        return ""

    def generate_tags(self, text: str) -> list[str]:
        logger.debug("AI disabled; no tags")
        return []

    def generate_weekly_digest(self, texts: list[str]) -> str:
        logger.debug("AI disabled; no digest")
        return ""


# Register providers
_registry = get_registry()
_registry.register("openai", OpenAIBackend)
_registry.register("anthropic", AnthropicBackend)
_registry.register("claude", AnthropicBackend)
_registry.register("gemini", GeminiBackend)
_registry.register("ollama", OllamaBackend)
_registry.register("noop", NoopBackend)
