"""
Weekly digests: one AI-written review per ISO week.

Suitable memos are grouped by ISO-8601 week (weeks start on Monday;
week 1 holds the year's first Thursday). Each week's digest goes to
``{sync_root}/{iso_year}/weekly/第{week:02d}周总结.md`` and is written at
most once: if that file exists the week is skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, tzinfo
from typing import Callable, Iterable, Mapping, Optional

from .content import is_suitable_for_ai
from .providers.base import AIBackend
from .retry import RetryPolicy
from .storage import StorageProtocol, join
from .types import RemoteRecord, to_local

WEEKLY_DIR = "weekly"


@dataclass(frozen=True, order=True)
class WeekKey:
    """(ISO year, ISO week number)."""
    year: int
    week: int

    def __str__(self) -> str:
        return f"{self.year}-W{self.week:02d}"


@dataclass
class WeekGroup:
    key: WeekKey
    records: list[RemoteRecord] = field(default_factory=list)


def week_key(dt: datetime) -> WeekKey:
    iso = dt.isocalendar()
    return WeekKey(iso.year, iso.week)


def group_by_week(
    records: Iterable[RemoteRecord], tz: Optional[tzinfo] = None
) -> list[WeekGroup]:
    """Group records by the ISO week of their creation time, oldest week first."""
    groups: dict[WeekKey, WeekGroup] = {}
    for record in records:
        key = week_key(to_local(record.created, tz))
        groups.setdefault(key, WeekGroup(key)).records.append(record)
    return [groups[k] for k in sorted(groups)]


def week_date_range(key: WeekKey) -> tuple[date, date]:
    """Monday and Sunday of an ISO week."""
    monday = date.fromisocalendar(key.year, key.week, 1)
    return monday, monday + timedelta(days=6)


def format_week_range(key: WeekKey) -> str:
    start, end = week_date_range(key)
    return f"{start.month}月{start.day}日 - {end.month}月{end.day}日"


def digest_path(sync_root: str, key: WeekKey) -> str:
    return join(sync_root, str(key.year), WEEKLY_DIR, f"第{key.week:02d}周总结.md")


def format_digest(digest: str, key: WeekKey, count: int, generated_at: datetime) -> str:
    week_range = format_week_range(key)
    return (
        f"# 📅 第 {key.week:02d} 周回顾 ({week_range})\n"
        "\n"
        "## 🌟 本周亮点\n"
        "\n"
        f"{digest.strip()}\n"
        "\n"
        "## 📊 统计数据\n"
        "\n"
        f"- 📝 记录数量：{count} 条\n"
        f"- 📅 时间范围：{week_range}\n"
        "\n"
        "## 💪 下周展望\n"
        "\n"
        "> [!quote] 激励语录\n"
        "> 每一个当下都是未来的起点，让我们继续前行，创造更多精彩！\n"
        "\n"
        "---\n"
        f"*生成时间：{generated_at.strftime('%Y/%m/%d %H:%M:%S')}*\n"
    )


class DigestAggregator:
    """Produces missing weekly digests for a batch of memos."""

    def __init__(
        self,
        storage: StorageProtocol,
        sync_root: str,
        backend: AIBackend,
        *,
        retry: Optional[RetryPolicy] = None,
        tz: Optional[tzinfo] = None,
        clock: Callable[[], datetime] = datetime.now,
        logger: Optional[logging.Logger] = None,
    ):
        self.storage = storage
        self.sync_root = sync_root
        self.backend = backend
        self.tz = tz
        self.clock = clock
        self._log = logger or logging.getLogger(__name__)
        self.retry = retry or RetryPolicy(logger=self._log)

    def exists(self, key: WeekKey) -> bool:
        return self.storage.exists(digest_path(self.sync_root, key))

    def generate_digests(
        self,
        records: Iterable[RemoteRecord],
        bodies: Optional[Mapping[str, str]] = None,
    ) -> list[str]:
        """
        Write a digest for every week that has suitable memos and no digest yet.

        Args:
            records: Memos from this run
            bodies: Enriched bodies by memo name; raw content is used for
                memos missing from the mapping (e.g. skipped as duplicates)

        Returns:
            Paths of the digests written
        """
        bodies = bodies or {}
        suitable = [r for r in records if is_suitable_for_ai(r.content)]
        written: list[str] = []

        for group in group_by_week(suitable, self.tz):
            if self.exists(group.key):
                self._log.debug("Digest for %s already exists", group.key)
                continue

            path = digest_path(self.sync_root, group.key)
            weekly_dir = path.rsplit("/", 1)[0]
            try:
                if not self.storage.exists(weekly_dir):
                    self.storage.mkdir(weekly_dir)
            except OSError as e:
                self._log.error("Failed to create %s: %s", weekly_dir, e)
                continue

            texts = [bodies.get(r.name, r.content) for r in group.records]
            try:
                digest = self.retry.call(
                    self.backend.generate_weekly_digest, texts,
                    label=f"digest {group.key}",
                ) or ""
            except Exception as e:
                self._log.warning("Digest generation failed for %s: %s", group.key, e)
                continue

            if not digest.strip():
                continue

            content = format_digest(digest, group.key, len(group.records), self.clock())
            try:
                self.storage.create(path, content)
            except OSError as e:
                self._log.error("Failed to write digest %s: %s", path, e)
                continue
            self._log.info("Wrote weekly digest %s", path)
            written.append(path)

        return written
