from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import case, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from tqdm import tqdm

from git2stats.config import LOGGER_GIT2STATS, get_logger
from git2stats.database.model import Author, Commit, DailyStat, FileChange, Repository, Tag
from git2stats.git import records

logger = get_logger(LOGGER_GIT2STATS)

DEFAULT_BATCH_SIZE = 1000


@dataclass
class WriteResult:
    """Outcome counters of one upsert call.

    ``skipped`` covers expected conflicts (duplicates), ``failed`` any other
    engine error; neither stops the loop.
    """

    written: int = 0
    skipped: int = 0
    failed: int = 0

    def __iadd__(self, other: "WriteResult") -> "WriteResult":
        self.written += other.written
        self.skipped += other.skipped
        self.failed += other.failed
        return self


def _insert_for_dialect(session: Session, model):
    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        return sqlite_insert(model.__table__)
    if dialect in ("postgres", "postgresql"):
        return pg_insert(model.__table__)
    raise ValueError(f"Unsupported SQL dialect for upserts: {dialect}")


def _to_utc(value: datetime | None) -> datetime | None:
    """Naive UTC datetime, the form every DateTime column stores."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _upsert_statement(session: Session, model, conflict_columns: list[str], update_columns: list[str]):
    stmt = _insert_for_dialect(session, model)
    return stmt.on_conflict_do_update(
        index_elements=conflict_columns,
        set_={col: getattr(stmt.excluded, col) for col in update_columns},
    )


def _execute_each(session: Session, stmt, rows: list[dict], label: str) -> WriteResult:
    """Execute ``stmt`` once per row, each inside its own savepoint."""
    result = WriteResult()
    for row in rows:
        try:
            with session.begin_nested():
                session.execute(stmt, row)
            result.written += 1
        except IntegrityError:
            result.skipped += 1
        except SQLAlchemyError as e:
            result.failed += 1
            logger.error(f"Error writing {label} {_describe(row)}: {e}")
    return result


def _describe(row: dict) -> str:
    for key in ("sha", "email", "tag_name", "name", "author_email"):
        if key in row:
            return str(row[key])
    return str(row)


def upsert_commits(session: Session, repo_name: str, commits: Iterable[records.GitCommit]) -> WriteResult:
    """Insert commits, overwriting the mutable fields of ones already stored."""
    stmt = _upsert_statement(
        session,
        Commit,
        ["repo_name", "sha"],
        [
            "author_email",
            "author_name",
            "committed_at",
            "message",
            "additions",
            "deletions",
            "files_changed",
            "is_merge",
            "branch",
        ],
    )
    rows = [
        {
            "repo_name": repo_name,
            "sha": c.sha,
            "author_email": c.author_email,
            "author_name": c.author_name,
            "committed_at": _to_utc(c.committed_at),
            "message": c.message,
            "additions": c.additions,
            "deletions": c.deletions,
            "files_changed": c.files_changed,
            "is_merge": c.is_merge,
            "branch": c.branch,
        }
        for c in commits
    ]
    return _execute_each(session, stmt, rows, "commit")


def insert_file_changes(
    session: Session,
    repo_name: str,
    commits: Iterable[records.GitCommit],
    batch_size: int = DEFAULT_BATCH_SIZE,
    show_progress: bool = False,
) -> WriteResult:
    """Insert file changes in batches; rows already stored are left as they are.

    A failing batch is retried row by row so one bad row only costs itself.
    """
    result = WriteResult()
    seen = set()
    rows = []
    for commit in commits:
        for change in commit.file_changes:
            key = (commit.sha, change.file_path)
            if key in seen:
                result.skipped += 1
                continue
            seen.add(key)
            rows.append(
                {
                    "repo_name": repo_name,
                    "sha": commit.sha,
                    "file_path": change.file_path,
                    "additions": change.additions,
                    "deletions": change.deletions,
                }
            )

    stmt = _insert_for_dialect(session, FileChange).on_conflict_do_nothing(
        index_elements=["repo_name", "sha", "file_path"]
    )

    batches = range(0, len(rows), batch_size)
    with tqdm(
        total=len(rows),
        desc="Writing file changes",
        unit="row",
        disable=not show_progress,
    ) as pbar:
        for start in batches:
            batch = rows[start : start + batch_size]
            try:
                with session.begin_nested():
                    session.execute(stmt, batch)
                result.written += len(batch)
            except SQLAlchemyError as e:
                logger.warning(
                    f"File change batch at offset {start} failed, retrying row by row: {e}"
                )
                result += _execute_each(session, stmt, batch, "file change")
            logger.debug(f"File change batch {start // batch_size + 1}: {len(batch)} rows")
            pbar.update(len(batch))

    return result


def upsert_authors(session: Session, authors: Iterable[records.Author]) -> WriteResult:
    """Merge authors into the stored ones.

    The name is replaced, the first/last commit dates widen, and the commit
    count is added to the stored count rather than replacing it.
    """
    table = Author.__table__
    stmt = _insert_for_dialect(session, Author)
    excluded = stmt.excluded
    stmt = stmt.on_conflict_do_update(
        index_elements=["email"],
        set_={
            "name": excluded.name,
            "first_commit_at": case(
                (excluded.first_commit_at < table.c.first_commit_at, excluded.first_commit_at),
                else_=table.c.first_commit_at,
            ),
            "last_commit_at": case(
                (excluded.last_commit_at > table.c.last_commit_at, excluded.last_commit_at),
                else_=table.c.last_commit_at,
            ),
            "total_commits": table.c.total_commits + excluded.total_commits,
        },
    )
    rows = [
        {
            "email": a.email,
            "name": a.name,
            "first_commit_at": _to_utc(a.first_commit_at),
            "last_commit_at": _to_utc(a.last_commit_at),
            "total_commits": a.total_commits,
        }
        for a in authors
    ]
    return _execute_each(session, stmt, rows, "author")


def recompute_author_totals(session: Session, emails: Iterable[str]) -> int:
    """Set total_commits of the given authors to their stored commit row count."""
    emails = list(emails)
    if not emails:
        return 0

    commit_count = (
        select(func.count(Commit.commit_id))
        .where(Commit.author_email == Author.email)
        .scalar_subquery()
    )
    result = session.execute(
        update(Author)
        .where(Author.email.in_(emails))
        .values(total_commits=commit_count)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def upsert_tags(session: Session, repo_name: str, tags: Iterable[records.GitTag]) -> WriteResult:
    stmt = _upsert_statement(
        session,
        Tag,
        ["repo_name", "tag_name"],
        ["sha", "tagger_name", "tagger_email", "tag_date", "message", "is_annotated"],
    )
    rows = [
        {
            "repo_name": repo_name,
            "tag_name": t.tag_name,
            "sha": t.sha,
            "tagger_name": t.tagger_name,
            "tagger_email": t.tagger_email,
            "tag_date": _to_utc(t.tag_date),
            "message": t.message,
            "is_annotated": t.is_annotated,
        }
        for t in tags
    ]
    return _execute_each(session, stmt, rows, "tag")


def upsert_daily_stats(session: Session, stats: Iterable[records.DailyStat]) -> WriteResult:
    """Write daily stats, replacing the counters of existing rows."""
    stmt = _upsert_statement(
        session,
        DailyStat,
        ["date", "repo_name", "author_email"],
        ["commits_count", "additions", "deletions", "files_changed"],
    )
    rows = [
        {
            "date": s.date,
            "repo_name": s.repo_name,
            "author_email": s.author_email,
            "commits_count": s.commits_count,
            "additions": s.additions,
            "deletions": s.deletions,
            "files_changed": s.files_changed,
        }
        for s in stats
    ]
    return _execute_each(session, stmt, rows, "daily stat")


def upsert_repository_metadata(
    session: Session,
    repo_name: str,
    language: str | None,
    commits: list[records.GitCommit],
) -> WriteResult:
    """Record language, latest commit time and commit count of a repository.

    ``is_archived`` is only set on first insert; git has no notion of it.
    """
    stmt = _upsert_statement(
        session,
        Repository,
        ["name"],
        ["language", "last_commit_at", "total_commits"],
    )
    row = {
        "name": repo_name,
        "language": language,
        "is_archived": False,
        "last_commit_at": _to_utc(commits[0].committed_at) if commits else None,
        "total_commits": len(commits),
    }
    return _execute_each(session, stmt, [row], "repository")
