"""
Base provider protocol for AI enrichment.

Defines the capability interface every backend implements, the shared
prompts, and the registry that maps a configured provider name to a
backend class. Using Protocol for structural subtyping - no explicit
inheritance required.
"""

import re
from typing import Protocol, runtime_checkable


# -----------------------------------------------------------------------------
# Capability interface
# -----------------------------------------------------------------------------

@runtime_checkable
class AIBackend(Protocol):
    """
    Generates summaries, tags and weekly digests for memo text.

    Implementations raise on failure; callers wrap each call in a
    RetryPolicy and decide how far a final failure propagates.

    Example implementation:
        class EchoBackend:
            def generate_summary(self, text: str, language: str = "zh") -> str:
                return text[:100]

            def generate_tags(self, text: str) -> list[str]:
                return ["memo"]

            def generate_weekly_digest(self, texts: list[str]) -> str:
                return "\\n".join(texts)
    """

    def generate_summary(self, text: str, language: str = "zh") -> str:
        """
        Summarize the key points of ``text``.

        Args:
            text: Memo content
            language: Summary language code (zh, en, ja, ko)

        Returns:
            Summary text, possibly empty
        """
        ...

    def generate_tags(self, text: str) -> list[str]:
        """Return 3-5 short tags without the '#' prefix."""
        ...

    def generate_weekly_digest(self, texts: list[str]) -> str:
        """Write a narrative review of one week of memos."""
        ...


# -----------------------------------------------------------------------------
# Prompts
# -----------------------------------------------------------------------------

LANGUAGE_NAMES = {
    "zh": "中文",
    "en": "English",
    "ja": "日本語",
    "ko": "한국어",
}

DIGEST_SEPARATOR = "\n---\n"

# Cap on text sent per request
MAX_CONTENT_CHARS = 50000


def _truncate(text: str) -> str:
    return text[:MAX_CONTENT_CHARS] if len(text) > MAX_CONTENT_CHARS else text


def build_summary_prompt(text: str, language: str = "zh") -> str:
    lang = LANGUAGE_NAMES.get(language, "English")
    return f"请用{lang}总结以下内容的要点：\n\n{_truncate(text)}"


def build_tags_prompt(text: str) -> str:
    return f"请为以下内容生成3-5个相关标签（不要带#号）：\n\n{_truncate(text)}"


def build_digest_prompt(texts: list[str]) -> str:
    combined = DIGEST_SEPARATOR.join(texts)
    return (
        "请对以下一周的内容进行总结和分析，生成一份周报。要求：\n"
        "1. 主要工作内容和成果\n"
        "2. 重要事项和进展\n"
        "3. 问题和解决方案\n"
        "4. 下周计划和展望\n\n"
        f"内容：\n{_truncate(combined)}"
    )


# Commas (ASCII and full-width), enumeration comma, whitespace
_TAG_SPLIT_RE = re.compile(r"[,，、\s]+")

MAX_TAGS = 5


def parse_tags(text: str) -> list[str]:
    """Split a model's tag answer into clean, unique tags."""
    tags: list[str] = []
    for raw in _TAG_SPLIT_RE.split(text or ""):
        tag = raw.strip().lstrip("#").strip("\"'`.;:：；。")
        if tag and tag not in tags:
            tags.append(tag)
        if len(tags) >= MAX_TAGS:
            break
    return tags


# -----------------------------------------------------------------------------
# Provider Registry
# -----------------------------------------------------------------------------

class ProviderRegistry:
    """
    Registry for discovering and instantiating AI backends.

    Backends are registered by name so the config file can select one
    ("openai", "gemini", "anthropic", "ollama", "noop") without callers
    branching on provider type.

    Example:
        registry = ProviderRegistry()
        registry.register("openai", OpenAIBackend)

        # Later, from config:
        backend = registry.create("openai", {"model": "gpt-4o-mini"})
    """

    def __init__(self):
        self._providers: dict[str, type] = {}
        self._lazy_loaded = False

    def _ensure_providers_loaded(self) -> None:
        """Lazily load provider modules so they register themselves."""
        if self._lazy_loaded:
            return
        self._lazy_loaded = True
        from . import llm  # noqa: F401

    def register(self, name: str, provider_class: type) -> None:
        """Register a backend class under ``name``."""
        self._providers[name] = provider_class

    def create(self, name: str, params: dict | None = None) -> AIBackend:
        """
        Instantiate the backend registered under ``name``.

        Raises:
            ValueError: If no backend has that name
            RuntimeError: If the backend cannot be constructed
                (missing library, missing API key, unreachable server)
        """
        self._ensure_providers_loaded()
        if name not in self._providers:
            available = ", ".join(self._providers.keys()) or "none"
            raise ValueError(
                f"Unknown AI provider: '{name}'. "
                f"Available providers: {available}."
            )
        try:
            return self._providers[name](**(params or {}))
        except ImportError as e:
            raise RuntimeError(
                f"Failed to create AI provider '{name}': {e}\n"
                f"Install required dependencies."
            ) from e
        except Exception as e:
            raise RuntimeError(
                f"Failed to create AI provider '{name}': {e}"
            ) from e

    def list_providers(self) -> list[str]:
        """List registered backend names."""
        self._ensure_providers_loaded()
        return list(self._providers.keys())


# Global registry instance
# Concrete providers register themselves on import
_registry = ProviderRegistry()


def get_registry() -> ProviderRegistry:
    """Get the global provider registry."""
    return _registry


def create_backend(name: str, params: dict | None = None) -> AIBackend:
    """Factory used by the orchestrator: config name + params -> backend."""
    return get_registry().create(name, params)
