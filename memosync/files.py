"""
Write enriched memos into the sync tree.

Layout::

    {sync_root}/{year}/{month}/{title}.md
    {sync_root}/{year}/{month}/resources/{resource_id}_{filename}

Images are embedded inline, other attachments listed as links, both
relative to the note. A property block after a horizontal rule records
timestamps, tags, visibility, and the memo identity that dedup relies on.
"""

from __future__ import annotations

import logging
import re
from datetime import tzinfo
from typing import Callable, Optional

from .dedup import identity_marker, recorded_identity
from .errors import TransportError
from .storage import StorageProtocol, join
from .types import EnrichedContent, RemoteRecord, ResourceRef, format_display, to_local

NOTE_EXTENSION = ".md"
RESOURCE_DIR = "resources"
UNTITLED = "untitled"

IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp"})

_LEADING_JUNK_RE = re.compile(r'^[\\/:*?"<>|#\s\x00-\x1f]+')
_WHITESPACE_RE = re.compile(r"\s+")
_FORBIDDEN_RE = re.compile(r'[\\/:*?"<>|#\x00-\x1f]')

# Memos writes tags as "#tag#" in some clients; notes use "#tag"
_CLOSED_TAG_RE = re.compile(r"#([^#\s]+)#")
# A tag starts a line or follows whitespace; "https://x/#anchor" is not a tag
_HASH_TAG_RE = re.compile(r"(?<!\S)#([^#\s]+)(?=#|\s|$)")
_CODE_FENCE_RE = re.compile(r"```[\s\S]*?```")


def sanitize_filename(name: str) -> str:
    """Make ``name`` safe as a file name.

    Drops leading path/control/hash characters, collapses whitespace,
    removes characters forbidden on common filesystems, and falls back
    to "untitled".
    """
    sanitized = _LEADING_JUNK_RE.sub("", name or "")
    sanitized = _WHITESPACE_RE.sub(" ", sanitized)
    sanitized = _FORBIDDEN_RE.sub("", sanitized).strip()
    return sanitized or UNTITLED


def relative_path(from_file: str, to_file: str) -> str:
    """Path of ``to_file`` relative to the directory containing ``from_file``.

    >>> relative_path("2024/05/note.md", "2024/05/resources/img.png")
    'resources/img.png'
    """
    from_parts = from_file.split("/")[:-1]
    to_parts = to_file.split("/")

    i = 0
    while i < len(from_parts) and i < len(to_parts) and from_parts[i] == to_parts[i]:
        i += 1

    return "/".join([".."] * (len(from_parts) - i) + to_parts[i:])


def is_image(filename: str) -> bool:
    dot = filename.rfind(".")
    return dot != -1 and filename[dot:].lower() in IMAGE_EXTENSIONS


def normalize_tags(content: str) -> str:
    """Rewrite "#tag#" as "#tag"."""
    return _CLOSED_TAG_RE.sub(r"#\1", content)


def extract_hash_tags(content: str) -> list[str]:
    """Tags written in the memo itself ("#tag" or "#tag#"), in order, unique.

    Fenced code is ignored.
    """
    tags: list[str] = []
    text = _CODE_FENCE_RE.sub("", content or "")
    for match in _HASH_TAG_RE.finditer(text):
        tag = match.group(1).strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def build_properties(record: RemoteRecord, tz: Optional[tzinfo] = None) -> str:
    """The property block appended to every note."""
    lines = [
        "---",
        "> [!note]- Memo Properties",
        f"> - Created: {format_display(to_local(record.created, tz))}",
        f"> - Updated: {format_display(to_local(record.updated, tz))}",
        "> - Type: memo",
    ]
    tags = extract_hash_tags(record.content)
    if tags:
        lines.append(f"> - Tags: [{', '.join(tags)}]")
    lines.append(identity_marker(record.name))
    lines.append(f"> - Visibility: {record.visibility.lower()}")
    return "\n".join(lines) + "\n"


class Materializer:
    """Creates or updates the note for one memo."""

    def __init__(
        self,
        storage: StorageProtocol,
        sync_root: str,
        download: Callable[[ResourceRef], bytes],
        *,
        tz: Optional[tzinfo] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Args:
            storage: Target store
            sync_root: Storage path of the sync root, e.g. "memos"
            download: Fetches a resource's bytes; raises on failure
            tz: Timezone for directory names and displayed times
                (machine local time when None)
        """
        self.storage = storage
        self.sync_root = sync_root
        self.download = download
        self.tz = tz
        self._log = logger or logging.getLogger(__name__)

    def ensure_dir(self, path: str) -> None:
        if not self.storage.exists(path):
            self.storage.mkdir(path)

    def month_dir(self, record: RemoteRecord) -> str:
        created = to_local(record.created, self.tz)
        return join(self.sync_root, str(created.year), f"{created.month:02d}")

    def note_path(self, record: RemoteRecord, enriched: EnrichedContent) -> str:
        """Path of the note for ``record``.

        Named after the title, else after the memo id. If a note with that
        name already belongs to another memo, the memo id is appended in
        parentheses so every memo keeps a file of its own.
        """
        memo_id = sanitize_filename(record.name.removeprefix("memos/"))
        stem = sanitize_filename(enriched.title) if enriched.title else memo_id
        month_dir = self.month_dir(record)
        path = join(month_dir, f"{stem}{NOTE_EXTENSION}")
        owner = self._owner(path)
        if owner is not None and owner != record.name:
            self._log.debug("%s belongs to %s; naming note after %s", path, owner, record.name)
            path = join(month_dir, f"{stem} ({memo_id}){NOTE_EXTENSION}")
        return path

    def _owner(self, path: str) -> Optional[str]:
        """Identity recorded in the note at ``path``, None if absent or unmarked."""
        if not self.storage.exists(path):
            return None
        return recorded_identity(self.storage.read(path))

    def _localize(self, resource: ResourceRef, month_dir: str) -> Optional[str]:
        """Download one resource into resources/; None if it failed."""
        try:
            data = self.download(resource)
        except (TransportError, OSError) as e:
            self._log.error("Failed to download resource %s: %s", resource.name, e)
            return None
        resource_dir = join(month_dir, RESOURCE_DIR)
        self.ensure_dir(resource_dir)
        local = join(resource_dir, f"{resource.resource_id}_{sanitize_filename(resource.filename)}")
        self.storage.write_binary(local, data)
        return local

    def render_resources(self, record: RemoteRecord, note_path: str) -> str:
        """Markdown for the memo's attachments (images first, then files)."""
        if not record.resources:
            return ""
        month_dir = note_path.rsplit("/", 1)[0]
        images = [r for r in record.resources if is_image(r.filename)]
        others = [r for r in record.resources if not is_image(r.filename)]

        embeds = []
        for image in images:
            local = self._localize(image, month_dir)
            if local:
                embeds.append(f"![{image.filename}]({relative_path(note_path, local)})")

        links = []
        for other in others:
            local = self._localize(other, month_dir)
            if local:
                links.append(f"- [{other.filename}]({relative_path(note_path, local)})")

        out = ""
        if embeds:
            out += "\n\n" + "\n".join(embeds) + "\n"
        if links:
            out += "\n\n### Attachments\n" + "\n".join(links) + "\n"
        return out

    def render(self, record: RemoteRecord, enriched: EnrichedContent, note_path: str) -> str:
        body = normalize_tags(enriched.body)
        body += self.render_resources(record, note_path)
        body += "\n\n" + build_properties(record, self.tz)
        return body

    def materialize(self, record: RemoteRecord, enriched: EnrichedContent) -> str:
        """
        Write the note for ``record`` and return its path.

        Raises:
            OSError: If the note cannot be created or modified
        """
        note_path = self.note_path(record, enriched)
        month_dir = note_path.rsplit("/", 1)[0]
        self.ensure_dir(month_dir)

        content = self.render(record, enriched, note_path)

        if self.storage.exists(note_path):
            self._log.debug("Updating existing note %s", note_path)
            self.storage.modify(note_path, content)
        else:
            self.storage.create(note_path, content)

        set_mtime = getattr(self.storage, "set_mtime", None)
        if set_mtime is None:
            self._log.debug("Storage cannot set timestamps; leaving mtime of %s", note_path)
        else:
            try:
                set_mtime(note_path, record.created)
            except OSError as e:
                self._log.debug("Failed to set timestamp on %s: %s", note_path, e)

        return note_path
