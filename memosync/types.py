"""
Data types for memo synchronization.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from typing import Any, Optional


def parse_timestamp(ts: str) -> datetime:
    """Parse a Memos API timestamp to a timezone-aware datetime.

    The API emits RFC 3339 strings, usually with a 'Z' suffix and
    sometimes with fractional seconds. Naive values are taken as UTC.
    """
    ts = ts.strip().replace("Z", "+00:00")
    # fromisoformat only accepts up to 6 fractional digits
    if "." in ts:
        head, _, rest = ts.partition(".")
        digits = ""
        for ch in rest:
            if not ch.isdigit():
                break
            digits += ch
        ts = f"{head}.{digits[:6].ljust(6, '0')}{rest[len(digits):]}"
    dt = datetime.fromisoformat(ts)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def to_local(dt: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Convert to ``tz``, or to the machine's local timezone when None."""
    return dt.astimezone(tz) if tz is not None else dt.astimezone()


def format_display(dt: datetime) -> str:
    """Human-readable timestamp used in the property block."""
    return dt.strftime("%Y-%m-%d %H:%M:%S")


@dataclass(frozen=True)
class ResourceRef:
    """
    An attachment belonging to exactly one memo.

    Attributes:
        name: Resource path name, e.g. "resources/42"
        filename: Original filename as uploaded
        type: MIME type reported by the server
        size: Size in bytes (the API sends this as a string)
        create_time: Creation timestamp string
        uid: Stable resource uid
    """
    name: str
    filename: str
    type: str = ""
    size: str = "0"
    create_time: str = ""
    uid: str = ""

    @property
    def resource_id(self) -> str:
        """Trailing identity segment of the resource name."""
        return self.name.rsplit("/", 1)[-1] or self.name

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ResourceRef":
        return cls(
            name=str(data.get("name", "")),
            filename=str(data.get("filename", "")),
            type=str(data.get("type", "") or ""),
            size=str(data.get("size", "0") or "0"),
            create_time=str(data.get("createTime", "") or ""),
            uid=str(data.get("uid", "") or ""),
        )


@dataclass(frozen=True)
class RemoteRecord:
    """
    A memo as returned by the Memos API.

    Immutable once fetched. ``name`` ("memos/123") is the durable identity
    written into each materialized file.
    """
    name: str
    content: str
    create_time: str
    update_time: str = ""
    uid: str = ""
    visibility: str = "PRIVATE"
    display_time: str = ""
    creator: str = ""
    row_status: str = "NORMAL"
    pinned: bool = False
    resources: tuple[ResourceRef, ...] = ()
    tags: tuple[str, ...] = ()

    @property
    def created(self) -> datetime:
        return parse_timestamp(self.create_time)

    @property
    def updated(self) -> datetime:
        return parse_timestamp(self.update_time or self.create_time)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RemoteRecord":
        """Build a record from one element of the API's ``memos`` array.

        Raises:
            ValueError: If the element has no name, or its creation or
                update time is missing or unparseable
        """
        if not isinstance(data, dict):
            raise ValueError(f"Memo entry is not an object: {data!r}")
        name = data.get("name")
        create_time = data.get("createTime")
        if not name or not create_time:
            raise ValueError(f"Memo entry missing name or createTime: {data!r}")
        for key in ("createTime", "updateTime"):
            value = data.get(key)
            if value:
                try:
                    parse_timestamp(str(value))
                except ValueError as e:
                    raise ValueError(f"Memo {name} has invalid {key} {value!r}: {e}") from e
        return cls(
            name=str(name),
            content=str(data.get("content") or ""),
            create_time=str(create_time),
            update_time=str(data.get("updateTime") or ""),
            uid=str(data.get("uid") or ""),
            visibility=str(data.get("visibility") or "PRIVATE"),
            display_time=str(data.get("displayTime") or ""),
            creator=str(data.get("creator") or ""),
            row_status=str(data.get("rowStatus") or data.get("state") or "NORMAL"),
            pinned=bool(data.get("pinned", False)),
            resources=tuple(
                ResourceRef.from_dict(r) for r in (data.get("resources") or [])
            ),
            tags=tuple(str(t) for t in (data.get("tags") or [])),
        )


@dataclass
class EnrichedContent:
    """Output of the enrichment step, consumed once by materialization."""
    body: str
    title: Optional[str] = None
    summary: Optional[str] = None
    tags: list[str] = field(default_factory=list)

    @property
    def enriched(self) -> bool:
        return bool(self.summary or self.tags)


@dataclass
class SyncSession:
    """Progress counters for one sync run. Single writer: the orchestrator."""
    discovered: int = 0
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def elapsed_seconds(self) -> float:
        return (datetime.now(timezone.utc) - self.started_at).total_seconds()
