from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    Integer,
    String,
    Text,
    Index,
    UniqueConstraint,
    inspect,
    text,
)
from sqlalchemy.orm import declarative_base

from git2stats.config import LOGGER_GIT2STATS, get_logger

logger = get_logger(LOGGER_GIT2STATS)

# SQLAlchemy setup
Base = declarative_base()


def create_tables(engine):
    """Create missing tables and indexes; existing ones are left untouched."""
    if engine is None:
        raise RuntimeError(
            "Database engine is not initialized. Please open a Store first."
        )

    existing_tables = set(inspect(engine).get_table_names())
    missing = [t for t in Base.metadata.sorted_tables if t.name not in existing_tables]
    if not missing:
        logger.debug(f"Tables already exist: {sorted(existing_tables)}. Skipping table creation.")
        return
    Base.metadata.create_all(engine, tables=missing)
    logger.info(f"Tables created: {[t.name for t in missing]}")


def reset_tables(engine):
    """Reset database by dropping and recreating all tables"""
    if engine is None:
        raise RuntimeError(
            "Database engine is not initialized. Please open a Store first."
        )

    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            logger.debug(f"DROP TABLE IF EXISTS {table.name};")
            conn.execute(text(f"DROP TABLE IF EXISTS {table.name}"))
    create_tables(engine)


class Commit(Base):
    __tablename__ = "commits"
    __table_args__ = (
        UniqueConstraint("repo_name", "sha", name="uq_commits_repo_sha"),
        Index("idx_commits_repo", "repo_name"),
        Index("idx_commits_author", "author_email"),
        Index("idx_commits_date", "committed_at"),
        Index("idx_commits_sha", "sha"),
    )
    commit_id = Column(Integer, primary_key=True)
    repo_name = Column(String(255), nullable=False)
    sha = Column(String(40), nullable=False)
    author_email = Column(String(255), nullable=False)
    author_name = Column(String(255), nullable=False)
    committed_at = Column(DateTime, nullable=False)
    message = Column(Text, nullable=False)
    additions = Column(Integer, nullable=False, default=0)
    deletions = Column(Integer, nullable=False, default=0)
    files_changed = Column(Integer, nullable=False, default=0)
    is_merge = Column(Boolean, nullable=False, default=False)
    branch = Column(String(255), nullable=False)


class FileChange(Base):
    __tablename__ = "file_changes"
    __table_args__ = (
        UniqueConstraint("repo_name", "sha", "file_path", name="uq_file_changes_repo_sha_path"),
        Index("idx_file_changes_commit", "repo_name", "sha"),
    )
    file_change_id = Column(Integer, primary_key=True)
    repo_name = Column(String(255), nullable=False)
    sha = Column(String(40), nullable=False)
    file_path = Column(Text, nullable=False)
    additions = Column(Integer, nullable=False, default=0)
    deletions = Column(Integer, nullable=False, default=0)


class Author(Base):
    __tablename__ = "authors"
    author_id = Column(Integer, primary_key=True)
    email = Column(String(255), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    first_commit_at = Column(DateTime, nullable=False)
    last_commit_at = Column(DateTime, nullable=False)
    total_commits = Column(Integer, nullable=False, default=0)


class Tag(Base):
    __tablename__ = "tags"
    __table_args__ = (
        UniqueConstraint("repo_name", "tag_name", name="uq_tags_repo_tag"),
    )
    tag_id = Column(Integer, primary_key=True)
    repo_name = Column(String(255), nullable=False)
    tag_name = Column(String(255), nullable=False)
    sha = Column(String(40), nullable=False)
    tagger_name = Column(String(255))
    tagger_email = Column(String(255))
    tag_date = Column(DateTime)
    message = Column(Text)
    is_annotated = Column(Boolean, nullable=False, default=False)


class DailyStat(Base):
    __tablename__ = "daily_stats"
    __table_args__ = (
        UniqueConstraint("date", "repo_name", "author_email", name="uq_daily_stats_key"),
        Index("idx_daily_stats_date", "date"),
        Index("idx_daily_stats_repo", "repo_name"),
        Index("idx_daily_stats_author", "author_email"),
    )
    stat_id = Column(Integer, primary_key=True)
    date = Column(Date, nullable=False)
    repo_name = Column(String(255), nullable=False)
    author_email = Column(String(255), nullable=False)
    commits_count = Column(Integer, nullable=False, default=0)
    additions = Column(Integer, nullable=False, default=0)
    deletions = Column(Integer, nullable=False, default=0)
    files_changed = Column(Integer, nullable=False, default=0)
    # pull request / issue activity is not collected from git
    prs_opened = Column(Integer, nullable=False, default=0)
    prs_merged = Column(Integer, nullable=False, default=0)
    issues_closed = Column(Integer, nullable=False, default=0)


class PullRequest(Base):
    __tablename__ = "pull_requests"
    __table_args__ = (
        UniqueConstraint("repo_name", "pr_number", name="uq_pull_requests_repo_number"),
        Index("idx_prs_repo", "repo_name"),
        Index("idx_prs_author", "author_email"),
        Index("idx_prs_state", "state"),
    )
    pr_id = Column(Integer, primary_key=True)
    repo_name = Column(String(255), nullable=False)
    pr_number = Column(Integer, nullable=False)
    title = Column(Text, nullable=False)
    author_email = Column(String(255))
    state = Column(String(30), nullable=False)
    created_at = Column(DateTime)
    merged_at = Column(DateTime)
    closed_at = Column(DateTime)
    additions = Column(Integer)
    deletions = Column(Integer)
    time_to_merge_hours = Column(Float)
    review_comments = Column(Integer)


class Repository(Base):
    __tablename__ = "repos"
    repo_id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, unique=True)
    language = Column(String(64))
    is_archived = Column(Boolean, nullable=False, default=False)
    last_commit_at = Column(DateTime)
    total_commits = Column(Integer, nullable=False, default=0)
