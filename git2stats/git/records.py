from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime


@dataclass
class FileChange:
    file_path: str
    additions: int
    deletions: int


@dataclass
class GitCommit:
    sha: str
    author_email: str
    author_name: str
    committed_at: datetime
    message: str
    additions: int
    deletions: int
    files_changed: int
    is_merge: bool
    branch: str
    file_changes: list[FileChange] = field(default_factory=list)


@dataclass
class GitTag:
    tag_name: str
    sha: str
    tagger_name: str | None
    tagger_email: str | None
    tag_date: datetime | None
    message: str | None
    is_annotated: bool


@dataclass
class Author:
    email: str
    name: str
    first_commit_at: datetime
    last_commit_at: datetime
    total_commits: int


@dataclass
class DailyStat:
    date: date
    repo_name: str
    author_email: str
    commits_count: int = 0
    additions: int = 0
    deletions: int = 0
    files_changed: int = 0


@dataclass
class DateRange:
    date_from: str
    date_to: str


@dataclass
class SummaryStats:
    total_commits: int
    total_additions: int
    total_deletions: int
    total_files_changed: int
    merge_commits_count: int
    unique_authors_count: int
    date_range: DateRange


@dataclass
class RepoInfo:
    name: str
    path: str
    current_branch: str


@dataclass
class SkippedBlock:
    """A commit block that could not be turned into a commit."""

    index: int
    reason: str
    preview: str


@dataclass
class ParseResult:
    commits: list[GitCommit] = field(default_factory=list)
    skipped: list[SkippedBlock] = field(default_factory=list)
