import argparse
import os
import sys
from dataclasses import dataclass, field
from typing import Callable

from tqdm import tqdm

from git2stats.config import (
    AUTHOR_TOTALS_ACCUMULATE,
    AUTHOR_TOTALS_RECOMPUTE,
    LOGGER_GIT2STATS,
    LOGGER_VALIDATION,
    ConfigError,
    get_logger,
    load_batch_config,
    load_etl_config,
    load_output_config,
    setup_logging,
)
from git2stats.database import (
    Store,
    WriteResult,
    insert_file_changes,
    open_store,
    recompute_author_totals,
    upsert_authors,
    upsert_commits,
    upsert_daily_stats,
    upsert_repository_metadata,
    upsert_tags,
)
from git2stats.git import (
    GitCommands,
    get_repo_info,
    get_repo_language,
    load_commits,
    load_tags,
)
from git2stats.git.records import GitCommit, SummaryStats
from git2stats.scanner import discover_repositories
from git2stats.transforms import (
    aggregate_authors,
    aggregate_daily_stats,
    build_author_filter,
    calculate_summary_stats,
    format_summary_report,
)
from git2stats.validation import validate_author, validate_commit, validate_repo_name, validate_tag

logger = get_logger(LOGGER_GIT2STATS)
validation_logger = get_logger(LOGGER_VALIDATION)

DEFAULT_OPTIONS = {
    "file_change_batch_size": 1000,
    "strict_parsing": False,
    "strict_validation": False,
    "author_totals": AUTHOR_TOTALS_ACCUMULATE,
    "show_progress": False,
}


@dataclass
class EtlReport:
    """Counters of one repository's run, returned to the caller for reporting."""

    repo_name: str
    branch: str
    language: str | None = None
    commits_parsed: int = 0
    blocks_skipped: int = 0
    commits_filtered: int = 0
    invalid_commits: int = 0
    invalid_authors: int = 0
    invalid_tags: int = 0
    commits: WriteResult = field(default_factory=WriteResult)
    file_changes: WriteResult = field(default_factory=WriteResult)
    authors: WriteResult = field(default_factory=WriteResult)
    tags: WriteResult = field(default_factory=WriteResult)
    daily_stats: WriteResult = field(default_factory=WriteResult)
    repository: WriteResult = field(default_factory=WriteResult)
    summary: SummaryStats | None = None


@dataclass
class BatchResult:
    reports: list[EtlReport] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)


def _check_records(records, validator, label: str, drop_invalid: bool):
    """Log validation problems; return (records to keep, number of invalid ones)."""
    kept = []
    invalid = 0
    for record in records:
        errors = validator(record)
        if errors:
            invalid += 1
            validation_logger.warning(f"Invalid {label} {_record_key(record)}: {'; '.join(errors)}")
            if drop_invalid:
                continue
        kept.append(record)
    return kept, invalid


def _record_key(record) -> str:
    for attr in ("sha", "tag_name", "email"):
        if hasattr(record, attr):
            return str(getattr(record, attr))
    return repr(record)


def etl_repository(
    store: Store,
    vcs,
    repo_path: str,
    options: dict | None = None,
    commit_filter: Callable[[GitCommit], bool] | None = None,
) -> EtlReport:
    """Extract one repository's history and load it in a single transaction.

    Raises:
        GitCommandError: If the branch cannot be resolved or the log cannot be read
        LogParseError: If ``strict_parsing`` is set and a commit block is malformed
        ValueError: If the repository name is empty or too long
    """
    options = {**DEFAULT_OPTIONS, **(options or {})}
    drop_invalid = options["strict_validation"]

    logger.info(f"Starting ETL for repository: {repo_path}")

    repo_info = get_repo_info(vcs, repo_path)
    name_check = validate_repo_name(repo_info.name)
    if not name_check.valid:
        raise ValueError(f"{repo_path}: {name_check.error}")

    language = get_repo_language(vcs, repo_path)
    report = EtlReport(repo_name=repo_info.name, branch=repo_info.current_branch, language=language)

    logger.info(f"Parsing git commits of {repo_info.name}@{repo_info.current_branch}")
    parsed = load_commits(vcs, repo_path, repo_info.current_branch, strict=options["strict_parsing"])
    for skipped in parsed.skipped:
        logger.warning(f"Skipped commit block {skipped.index} ({skipped.reason}): {skipped.preview!r}")
    report.commits_parsed = len(parsed.commits)
    report.blocks_skipped = len(parsed.skipped)
    logger.info(f"Found {report.commits_parsed} commits ({report.blocks_skipped} blocks skipped)")

    commits = parsed.commits
    if commit_filter is not None:
        commits = [c for c in commits if commit_filter(c)]
        report.commits_filtered = report.commits_parsed - len(commits)
        if report.commits_filtered:
            logger.info(f"Filtered out {report.commits_filtered} commits by author")

    commits, report.invalid_commits = _check_records(commits, validate_commit, "commit", drop_invalid)

    if not commits:
        logger.warning(f"No commits to load for {repo_info.name}.")
        report.summary = calculate_summary_stats(commits)
        return report

    tags, report.invalid_tags = _check_records(load_tags(vcs, repo_path), validate_tag, "tag", drop_invalid)
    authors, report.invalid_authors = _check_records(
        aggregate_authors(commits), validate_author, "author", drop_invalid
    )
    daily_stats = aggregate_daily_stats(commits, repo_info.name)

    def load(session):
        report.commits = upsert_commits(session, repo_info.name, commits)
        report.file_changes = insert_file_changes(
            session,
            repo_info.name,
            commits,
            batch_size=options["file_change_batch_size"],
            show_progress=options["show_progress"],
        )
        report.authors = upsert_authors(session, authors)
        if options["author_totals"] == AUTHOR_TOTALS_RECOMPUTE:
            recompute_author_totals(session, [a.email for a in authors])
        report.tags = upsert_tags(session, repo_info.name, tags)
        report.daily_stats = upsert_daily_stats(session, daily_stats)
        report.repository = upsert_repository_metadata(session, repo_info.name, language, commits)

    store.run_in_transaction(load)

    logger.info(
        f"Loaded {report.commits.written} commits ({report.commits.skipped} skipped, "
        f"{report.commits.failed} failed), {report.file_changes.written} file changes, "
        f"{report.authors.written} authors, {report.tags.written} tags, "
        f"{report.daily_stats.written} daily stat rows"
    )

    report.summary = calculate_summary_stats(commits)
    logger.info(
        "\n" + format_summary_report(report.summary, repo_info.name, language, repo_info.current_branch)
    )
    logger.info(f"ETL completed for {repo_info.name}")
    return report


def run_batch(
    store: Store,
    vcs,
    repo_paths: list[str],
    options: dict | None = None,
    commit_filter: Callable[[GitCommit], bool] | None = None,
) -> BatchResult:
    """Run etl_repository over repo_paths in order; a failing repository does not stop the rest."""
    result = BatchResult()
    show_progress = (options or {}).get("show_progress", False)

    for repo_path in tqdm(repo_paths, desc="Repositories", unit="repo", disable=not show_progress):
        try:
            result.reports.append(etl_repository(store, vcs, repo_path, options, commit_filter))
        except Exception as e:
            logger.error(f"ETL failed for {repo_path}: {e}")
            result.failures[repo_path] = str(e)

    logger.info(
        f"Batch finished: {len(result.reports)} succeeded, {len(result.failures)} failed"
    )
    return result


def collect_repository_paths(batch_config: dict) -> list[str]:
    """Explicit repositories first, then discovered ones; duplicates and ignored paths removed."""
    ignore = batch_config.get("ignore", [])
    ignored = {os.path.abspath(os.path.expanduser(p)) for p in ignore}

    paths = []
    for repo_path in batch_config.get("repositories", []):
        repo_path = os.path.abspath(os.path.expanduser(repo_path))
        if repo_path in ignored or os.path.basename(repo_path) in ignore:
            continue
        if not os.path.isdir(repo_path):
            logger.warning(f"Repository path is not a directory, skipping: {repo_path}")
            continue
        paths.append(repo_path)

    paths.extend(discover_repositories(batch_config.get("scan_directories", []), ignore))

    unique = []
    for p in paths:
        if p not in unique:
            unique.append(p)
    return unique


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Load git commit history into a SQL database")
    parser.add_argument("repo", nargs="?", help="Path of a single git repository to load")
    parser.add_argument(
        "--config",
        type=str,
        help="YAML file listing repositories / scan directories for batch mode",
    )
    parser.add_argument("--reset-db", action="store_true", help="Reset the database")

    if argv is None and len(sys.argv) == 1:
        parser.print_help()
        return 1
    args = parser.parse_args(argv)

    setup_logging()

    if args.repo and args.config:
        logger.error("Error: Cannot specify both a repository path and --config.")
        return 1

    batch_config = None
    if args.config:
        try:
            batch_config = load_batch_config(args.config)
        except ConfigError as e:
            logger.error(f"Error: {e}")
            return 1
    elif args.repo:
        if not os.path.exists(args.repo):
            logger.error(f"Error: Path does not exist: {args.repo}")
            return 1
        if not os.path.isdir(args.repo):
            logger.error(f"Error: {args.repo} is not a directory")
            return 1
    elif not args.reset_db:
        logger.error("Error: Please provide a repository path or --config")
        return 1

    try:
        options = load_etl_config()
        store = open_store(load_output_config())
    except (ValueError, RuntimeError) as e:
        logger.error(f"Error: {e}")
        return 1

    try:
        if args.reset_db:
            store.reset_tables()
            logger.info("Database reset")
            if not args.repo and not batch_config:
                return 0

        options["show_progress"] = True
        vcs = GitCommands()

        if batch_config is not None:
            repo_paths = collect_repository_paths(batch_config)
            if not repo_paths:
                logger.error("Error: No repositories found")
                return 1
            commit_filter = build_author_filter(batch_config["author_exclude"])
            result = run_batch(store, vcs, repo_paths, options, commit_filter)
            for repo_path, error in result.failures.items():
                logger.error(f"Failed: {repo_path}: {error}")
            return 1 if not result.reports else 0

        try:
            etl_repository(store, vcs, os.path.abspath(args.repo), options)
        except Exception as e:
            logger.error(f"ETL failed: {e}")
            return 1
        return 0
    finally:
        store.close()
