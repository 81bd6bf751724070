import os
from datetime import datetime, timezone

from git2stats.config import LOGGER_GIT2STATS, get_logger
from git2stats.git.command import (
    COMMIT_MSG_END,
    COMMIT_START,
    TAG_FIELD_SEP,
    TAG_RECORD_SEP,
    GitCommandError,
)
from git2stats.git.records import (
    FileChange,
    GitCommit,
    GitTag,
    ParseResult,
    RepoInfo,
    SkippedBlock,
)
from git2stats.git.utils import detect_language, parse_int

logger = get_logger(LOGGER_GIT2STATS)

# hash, author email, author name, timestamp, parents, subject
MIN_BLOCK_LINES = 6


class LogParseError(ValueError):
    """Raised in strict mode when a commit block cannot be parsed."""


def get_repo_info(vcs, repo_path: str) -> RepoInfo:
    """Resolve the repository name and checked-out branch.

    Raises:
        GitCommandError: If the current branch cannot be determined
    """
    name = os.path.basename(os.path.normpath(repo_path))
    current_branch = vcs.resolve_current_branch(repo_path)
    return RepoInfo(name=name, path=repo_path, current_branch=current_branch)


def parse_numstat_line(line: str) -> FileChange | None:
    """Parse ``additions<TAB>deletions<TAB>path``; binary markers count as 0."""
    parts = line.split("\t", 2)
    if len(parts) < 3:
        return None
    file_path = parts[2]

    return FileChange(
        file_path=file_path,
        additions=parse_int(parts[0], 0),
        deletions=parse_int(parts[1], 0),
    )


def _skip(result: ParseResult, index: int, reason: str, block: str, strict: bool):
    preview = block.strip().splitlines()[0][:80] if block.strip() else ""
    if strict:
        raise LogParseError(f"Commit block {index}: {reason} ({preview})")
    result.skipped.append(SkippedBlock(index=index, reason=reason, preview=preview))


def parse_git_log(log_output: str, branch: str, strict: bool = False) -> ParseResult:
    """Split ``git log`` output into commits, most recent first.

    Blocks that cannot be parsed are reported in ``ParseResult.skipped``, or
    raise LogParseError when ``strict`` is set.
    """
    result = ParseResult()
    blocks = [b for b in log_output.split(f"{COMMIT_START}\n") if b.strip()]

    for index, block in enumerate(blocks):
        lines = block.split("\n")

        if len(lines) < MIN_BLOCK_LINES:
            _skip(result, index, f"expected at least {MIN_BLOCK_LINES} lines, got {len(lines)}", block, strict)
            continue

        msg_end_index = next(
            (i for i in range(MIN_BLOCK_LINES, len(lines)) if lines[i].strip() == COMMIT_MSG_END),
            None,
        )
        if msg_end_index is None:
            _skip(result, index, f"missing {COMMIT_MSG_END} marker", block, strict)
            continue

        timestamp = parse_int(lines[3])
        if timestamp is None:
            _skip(result, index, f"invalid timestamp {lines[3].strip()!r}", block, strict)
            continue

        parents = lines[4].split()

        additions = 0
        deletions = 0
        file_changes = []
        for line in lines[msg_end_index + 1 :]:
            line = line.strip("\r\n")
            if not line.strip():
                continue
            change = parse_numstat_line(line)
            if change is None:
                continue
            additions += change.additions
            deletions += change.deletions
            file_changes.append(change)

        result.commits.append(
            GitCommit(
                sha=lines[0].strip(),
                author_email=lines[1].strip(),
                author_name=lines[2].strip(),
                committed_at=datetime.fromtimestamp(timestamp, tz=timezone.utc),
                message=lines[5].strip(),
                additions=additions,
                deletions=deletions,
                files_changed=len(file_changes),
                is_merge=len(parents) > 1,
                branch=branch,
                file_changes=file_changes,
            )
        )

    return result


def parse_git_tags(output: str) -> list[GitTag]:
    """Parse ``git for-each-ref refs/tags`` output written with TAG_FORMAT."""
    tags = []

    for record in output.split(TAG_RECORD_SEP):
        record = record.strip("\r\n")
        if not record.strip():
            continue

        parts = record.split(TAG_FIELD_SEP)
        if len(parts) < 8:
            logger.debug(f"Skipping malformed tag record: {record[:80]!r}")
            continue

        tag_name, object_type, sha, tagger_name, tagger_email, tagger_date, subject, body = parts[:8]
        peeled = parts[8].strip() if len(parts) > 8 else ""

        # "tag" for annotated tags, "commit" for lightweight ones
        is_annotated = object_type.strip() == "tag"

        timestamp = parse_int(tagger_date)
        tag_date = (
            datetime.fromtimestamp(timestamp, tz=timezone.utc)
            if timestamp is not None and timestamp > 0
            else None
        )

        message = None
        if is_annotated:
            if body.strip():
                message = f"{subject}\n\n{body.strip()}"
            elif subject:
                message = subject

        tagger_email = tagger_email.strip()
        if tagger_email.startswith("<"):
            tagger_email = tagger_email[1:]
        if tagger_email.endswith(">"):
            tagger_email = tagger_email[:-1]

        tags.append(
            GitTag(
                tag_name=tag_name.strip(),
                sha=peeled if is_annotated and peeled else sha.strip(),
                tagger_name=(tagger_name.strip() or None) if is_annotated else None,
                tagger_email=(tagger_email or None) if is_annotated else None,
                tag_date=tag_date,
                message=message,
                is_annotated=is_annotated,
            )
        )

    return tags


def load_commits(vcs, repo_path: str, branch: str, strict: bool = False) -> ParseResult:
    """Read and parse the log of ``branch``. Git failures propagate."""
    log_output = vcs.read_log(repo_path, branch)
    return parse_git_log(log_output, branch, strict=strict)


def load_tags(vcs, repo_path: str) -> list[GitTag]:
    try:
        return parse_git_tags(vcs.list_tag_refs(repo_path))
    except GitCommandError as e:
        logger.warning(f"Tag parsing failed for {repo_path}: {e}")
        return []


def get_repo_language(vcs, repo_path: str) -> str | None:
    try:
        return detect_language(vcs.list_tracked_files(repo_path))
    except GitCommandError as e:
        logger.warning(f"Language detection failed for {repo_path}: {e}")
        return None
