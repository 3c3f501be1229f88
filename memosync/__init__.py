"""
memosync - mirror Memos notes into a local Markdown tree.

Fetches memos from a Memos server, optionally enriches them with
AI-generated summaries and tags, and writes one Markdown file per memo
under ``{sync_root}/{year}/{month}/``.
"""

__version__ = "0.3.0"

from .config import SyncConfig, load_config, load_or_create_config
from .storage import LocalStorage
from .sync import MemoSync, SyncResult
from .types import RemoteRecord, ResourceRef

__all__ = [
    "__version__",
    "LocalStorage",
    "MemoSync",
    "RemoteRecord",
    "ResourceRef",
    "SyncConfig",
    "SyncResult",
    "load_config",
    "load_or_create_config",
]
