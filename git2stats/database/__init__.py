"""
Database package for git2stats.
Provides the store handle, schema and upsert operations.
"""

from git2stats.database.connection import Store, build_db_url, open_store
from git2stats.database.model import (
    create_tables,
    reset_tables,
    Author,
    Commit,
    DailyStat,
    FileChange,
    PullRequest,
    Repository,
    Tag,
)
from git2stats.database.operation import (
    WriteResult,
    insert_file_changes,
    recompute_author_totals,
    upsert_authors,
    upsert_commits,
    upsert_daily_stats,
    upsert_repository_metadata,
    upsert_tags,
)

__all__ = [
    "Store",
    "build_db_url",
    "open_store",
    "Author",
    "Commit",
    "DailyStat",
    "FileChange",
    "PullRequest",
    "Repository",
    "Tag",
    "create_tables",
    "reset_tables",
    "WriteResult",
    "insert_file_changes",
    "recompute_author_totals",
    "upsert_authors",
    "upsert_commits",
    "upsert_daily_stats",
    "upsert_repository_metadata",
    "upsert_tags",
]
