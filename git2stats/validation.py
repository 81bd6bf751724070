import re
from datetime import datetime
from typing import NamedTuple

from git2stats.git.records import Author, GitCommit, GitTag

MAX_NAME_LENGTH = 255
MAX_EMAIL_LENGTH = 255
MAX_MESSAGE_LENGTH = 65535
MAX_FILE_PATH_LENGTH = 4096

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_SHA_RE = re.compile(r"^[a-f0-9]+$", re.IGNORECASE)


class ValidationResult(NamedTuple):
    valid: bool
    error: str | None = None


_OK = ValidationResult(True)


def validate_email(email: str) -> ValidationResult:
    """Basic local@domain.tld check, not RFC 5322."""
    if not email or not email.strip():
        return ValidationResult(False, "Email cannot be empty")
    if not _EMAIL_RE.match(email):
        return ValidationResult(False, f"Invalid email format: {email}")
    if len(email) > MAX_EMAIL_LENGTH:
        return ValidationResult(False, f"Email exceeds {MAX_EMAIL_LENGTH} characters")
    return _OK


def validate_sha(sha: str) -> ValidationResult:
    if not sha or not sha.strip():
        return ValidationResult(False, "SHA cannot be empty")
    # full hashes are 40 characters, abbreviated ones at least 7
    if len(sha) < 7 or len(sha) > 40:
        return ValidationResult(False, f"Invalid SHA length: {sha}")
    if not _SHA_RE.match(sha):
        return ValidationResult(False, f"Invalid SHA format (must be hex): {sha}")
    return _OK


def validate_repo_name(repo_name: str) -> ValidationResult:
    if not repo_name or not repo_name.strip():
        return ValidationResult(False, "Repository name cannot be empty")
    if len(repo_name) > MAX_NAME_LENGTH:
        return ValidationResult(False, f"Repository name exceeds {MAX_NAME_LENGTH} characters")
    return _OK


def validate_file_path(file_path: str) -> ValidationResult:
    if not file_path or not file_path.strip():
        return ValidationResult(False, "File path cannot be empty")
    if len(file_path) > MAX_FILE_PATH_LENGTH:
        return ValidationResult(False, f"File path exceeds {MAX_FILE_PATH_LENGTH} characters")
    return _OK


def _check_name(errors: list[str], name: str | None, label: str):
    if not name or not name.strip():
        errors.append(f"{label} cannot be empty")
    elif len(name) > MAX_NAME_LENGTH:
        errors.append(f"{label} exceeds {MAX_NAME_LENGTH} characters")


def validate_commit(commit: GitCommit) -> list[str]:
    """Return the constraint violations of a parsed commit (empty if valid)."""
    errors = []

    for result in (validate_sha(commit.sha), validate_email(commit.author_email)):
        if not result.valid:
            errors.append(result.error)

    _check_name(errors, commit.author_name, "Author name")

    if not isinstance(commit.committed_at, datetime):
        errors.append("Committed date is invalid")

    if commit.message is not None and len(commit.message) > MAX_MESSAGE_LENGTH:
        errors.append("Commit message exceeds maximum length")

    if commit.additions < 0 or commit.deletions < 0 or commit.files_changed < 0:
        errors.append("Addition/deletion/file counts cannot be negative")

    for change in commit.file_changes:
        result = validate_file_path(change.file_path)
        if not result.valid:
            errors.append(result.error)

    return errors


def validate_author(author: Author) -> list[str]:
    errors = []

    result = validate_email(author.email)
    if not result.valid:
        errors.append(result.error)

    _check_name(errors, author.name, "Author name")

    if author.total_commits < 1:
        errors.append("Author must have at least 1 commit")

    if author.first_commit_at > author.last_commit_at:
        errors.append("First commit date cannot be after last commit date")

    return errors


def validate_tag(tag: GitTag) -> list[str]:
    errors = []

    _check_name(errors, tag.tag_name, "Tag name")

    result = validate_sha(tag.sha)
    if not result.valid:
        errors.append(result.error)

    # tagger details only exist on annotated tags and are optional there
    if tag.is_annotated:
        if tag.tagger_email:
            result = validate_email(tag.tagger_email)
            if not result.valid:
                errors.append(result.error)
        if tag.tagger_name and len(tag.tagger_name) > MAX_NAME_LENGTH:
            errors.append(f"Tagger name exceeds {MAX_NAME_LENGTH} characters")
        if tag.message and len(tag.message) > MAX_MESSAGE_LENGTH:
            errors.append("Tag message exceeds maximum length")

    return errors
