from typing import Callable, Iterable

from git2stats.git.records import Author, DailyStat, DateRange, GitCommit, SummaryStats


def aggregate_authors(commits: Iterable[GitCommit]) -> list[Author]:
    """Fold commits into one Author per email.

    The most recently folded commit's name wins; first/last commit dates
    widen to cover every commit of that email.
    """
    authors: dict[str, Author] = {}

    for commit in commits:
        existing = authors.get(commit.author_email)
        if existing is None:
            authors[commit.author_email] = Author(
                email=commit.author_email,
                name=commit.author_name,
                first_commit_at=commit.committed_at,
                last_commit_at=commit.committed_at,
                total_commits=1,
            )
            continue

        existing.total_commits += 1
        existing.name = commit.author_name
        if commit.committed_at < existing.first_commit_at:
            existing.first_commit_at = commit.committed_at
        if commit.committed_at > existing.last_commit_at:
            existing.last_commit_at = commit.committed_at

    return list(authors.values())


def aggregate_daily_stats(commits: Iterable[GitCommit], repo_name: str) -> list[DailyStat]:
    """Sum commit activity per (UTC date, repository, author email)."""
    stats: dict[tuple, DailyStat] = {}

    for commit in commits:
        day = commit.committed_at.date()
        key = (day, repo_name, commit.author_email)
        stat = stats.get(key)
        if stat is None:
            stat = stats[key] = DailyStat(
                date=day, repo_name=repo_name, author_email=commit.author_email
            )
        stat.commits_count += 1
        stat.additions += commit.additions
        stat.deletions += commit.deletions
        stat.files_changed += commit.files_changed

    return list(stats.values())


def calculate_summary_stats(commits: list[GitCommit]) -> SummaryStats:
    # log order is most recent first
    date_from = commits[-1].committed_at.date().isoformat() if commits else ""
    date_to = commits[0].committed_at.date().isoformat() if commits else ""

    return SummaryStats(
        total_commits=len(commits),
        total_additions=sum(c.additions for c in commits),
        total_deletions=sum(c.deletions for c in commits),
        total_files_changed=sum(c.files_changed for c in commits),
        merge_commits_count=sum(1 for c in commits if c.is_merge),
        unique_authors_count=len({c.author_email for c in commits}),
        date_range=DateRange(date_from=date_from, date_to=date_to),
    )


def format_summary_report(
    stats: SummaryStats, repo_name: str, language: str | None, current_branch: str
) -> str:
    lines = [
        f"Repository: {repo_name}",
        f"Current branch: {current_branch}",
        f"Primary language: {language or 'Unknown'}",
        "",
        "Summary Statistics:",
        f"   Total commits: {stats.total_commits:,}",
        f"   Total additions: {stats.total_additions:,}",
        f"   Total deletions: {stats.total_deletions:,}",
        f"   Files changed: {stats.total_files_changed:,}",
        f"   Merge commits: {stats.merge_commits_count}",
        f"   Unique authors: {stats.unique_authors_count}",
        f"   Date range: {stats.date_range.date_from} to {stats.date_range.date_to}",
    ]
    return "\n".join(lines)


def build_author_filter(patterns: Iterable[str]) -> Callable[[GitCommit], bool] | None:
    """Predicate keeping commits whose author name/email contains none of patterns.

    Matching is case-insensitive. Returns None when there is nothing to exclude.
    """
    needles = [p.lower() for p in patterns if p]
    if not needles:
        return None

    def keep(commit: GitCommit) -> bool:
        haystack = f"{commit.author_name}\n{commit.author_email}".lower()
        return not any(n in haystack for n in needles)

    return keep
