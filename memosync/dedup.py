"""
Detect memos that were already written to the sync tree.

There is no index file. Every materialized note carries an identity line
in its property block (``> - ID: memos/123``); ``DedupIndex.exists``
walks the sync root and looks for that line. The scan is linear in the
number of notes, which keeps the tree itself the only source of truth:
deleting a note makes its memo sync again on the next run.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from .storage import StorageProtocol

NOTE_EXTENSION = ".md"
ID_MARKER_PREFIX = "> - ID: "


def identity_marker(identity: str) -> str:
    """The property-block line that records a memo's identity."""
    return f"{ID_MARKER_PREFIX}{identity}"


def _marker_pattern(identity: str) -> re.Pattern:
    # Whole-line match so "memos/12" does not match "memos/123"
    return re.compile(rf"^{re.escape(identity_marker(identity))}[ \t]*$", re.MULTILINE)


_ANY_MARKER_RE = re.compile(rf"^{re.escape(ID_MARKER_PREFIX)}(\S.*?)[ \t]*$", re.MULTILINE)


def recorded_identity(text: str) -> Optional[str]:
    """The identity in a note's property block, or None if it has none.

    The property block is last in a note, so the last marker line wins.
    """
    found = _ANY_MARKER_RE.findall(text)
    return found[-1] if found else None


class DedupIndex:
    """Answers "is this memo already in the sync tree?" by scanning notes."""

    def __init__(
        self,
        storage: StorageProtocol,
        sync_root: str,
        *,
        logger: Optional[logging.Logger] = None,
    ):
        self.storage = storage
        self.sync_root = sync_root
        self._log = logger or logging.getLogger(__name__)

    def note_files(self) -> list[str]:
        """All note files under the sync root, depth first."""
        if not self.storage.exists(self.sync_root):
            return []
        files: list[str] = []
        pending = [self.sync_root]
        while pending:
            directory = pending.pop()
            dir_files, folders = self.storage.list(directory)
            files.extend(f for f in dir_files if f.endswith(NOTE_EXTENSION))
            pending.extend(reversed(folders))
        return files

    def find(self, identity: str) -> Optional[str]:
        """Path of the note that carries ``identity``, or None.

        Enumeration or read failures are logged and reported as not found,
        so a broken tree causes reprocessing rather than silent skips.
        """
        pattern = _marker_pattern(identity)
        try:
            for path in self.note_files():
                if pattern.search(self.storage.read(path)):
                    return path
        except (OSError, UnicodeDecodeError, ValueError) as e:
            self._log.error("Error while checking whether %s exists: %s", identity, e)
            return None
        return None

    def exists(self, identity: str) -> bool:
        return self.find(identity) is not None
