"""
Content enrichment: title extraction, AI summary and AI tag callouts.

A memo goes to the AI backend only when it is "suitable": at least
MIN_AI_CHARS characters remain after stripping links, images and code
fences. A backend failure that survives the retry policy downgrades
that one memo to unenriched content; it never aborts the run.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from .providers.base import AIBackend
from .retry import RetryPolicy
from .types import EnrichedContent, RemoteRecord

MIN_AI_CHARS = 10

_IMAGE_RE = re.compile(r"!\[[^\]]*\]\([^)]*\)")
_LINK_RE = re.compile(r"\[[^\]]*\]\([^)]*\)")
_CODE_FENCE_RE = re.compile(r"```[\s\S]*?```")

CALLOUT_LABELS = {
    "zh": {"summary": "内容摘要", "tags": "相关标签"},
    "en": {"summary": "Summary", "tags": "Related Tags"},
}


def clean_for_ai(content: str) -> str:
    """Strip markup that carries no prose: images, links, fenced code."""
    text = _IMAGE_RE.sub("", content or "")
    text = _LINK_RE.sub("", text)
    text = _CODE_FENCE_RE.sub("", text)
    return text.strip()


def is_suitable_for_ai(content: str) -> bool:
    return len(clean_for_ai(content)) >= MIN_AI_CHARS


def extract_title(content: str) -> tuple[Optional[str], str]:
    """Split a leading '# ' heading off the content.

    Returns:
        (title or None, remaining body)
    """
    lines = (content or "").split("\n")
    first = lines[0].strip()
    if first.startswith("# "):
        title = first[2:].strip()
        if title:
            return title, "\n".join(lines[1:]).strip()
    return None, (content or "").strip()


def quote_block(text: str) -> str:
    """Prefix every line with '> ' for use inside a callout."""
    return "\n".join(f"> {line}" if line else ">" for line in text.strip().split("\n"))


def summary_callout(summary: str, language: str = "zh") -> str:
    label = CALLOUT_LABELS.get(language, CALLOUT_LABELS["en"])["summary"]
    return f"> [!abstract]+ {label}\n{quote_block(summary)}"


def tags_callout(tags: list[str], language: str = "zh") -> str:
    label = CALLOUT_LABELS.get(language, CALLOUT_LABELS["en"])["tags"]
    return f"> [!info]- {label}\n> " + " ".join(f"#{tag}" for tag in tags)


def compose_body(title: Optional[str], callouts: list[str], main: str) -> str:
    parts = []
    if title:
        parts.append(f"# {title}")
    parts.extend(callouts)
    if main:
        parts.append(main)
    return "\n\n".join(parts).strip()


class ContentEnricher:
    """Turns a RemoteRecord into EnrichedContent."""

    def __init__(
        self,
        backend: AIBackend,
        *,
        ai_enabled: bool = False,
        summary: bool = True,
        tags: bool = True,
        language: str = "zh",
        retry: Optional[RetryPolicy] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.backend = backend
        self.ai_enabled = ai_enabled
        self.summary = summary
        self.tags = tags
        self.language = language
        self._log = logger or logging.getLogger(__name__)
        self.retry = retry or RetryPolicy(logger=self._log)

    def _request_enrichment(self, record: RemoteRecord) -> tuple[str, list[str]]:
        """Call the backend for summary and tags. May raise."""
        summary = ""
        tags: list[str] = []
        if self.summary:
            summary = self.retry.call(
                self.backend.generate_summary, record.content, self.language,
                label=f"summary {record.name}",
            ) or ""
        if self.tags:
            tags = list(self.retry.call(
                self.backend.generate_tags, record.content,
                label=f"tags {record.name}",
            ) or [])
        return summary.strip(), [t for t in tags if t]

    def enrich(self, record: RemoteRecord) -> EnrichedContent:
        title, main = extract_title(record.content)

        summary, tags = "", []
        if self.ai_enabled and (self.summary or self.tags):
            if is_suitable_for_ai(record.content):
                try:
                    summary, tags = self._request_enrichment(record)
                except Exception as e:
                    self._log.warning(
                        "AI enrichment failed for %s, keeping original content: %s",
                        record.name, e,
                    )
                    summary, tags = "", []
            else:
                self._log.debug("%s too short for AI enrichment", record.name)

        callouts = []
        if summary:
            callouts.append(summary_callout(summary, self.language))
        if tags:
            callouts.append(tags_callout(tags, self.language))

        return EnrichedContent(
            body=compose_body(title, callouts, main),
            title=title,
            summary=summary or None,
            tags=tags,
        )
