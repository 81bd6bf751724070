from .command import GitCommands, GitCommandError
from .parser import (
    LogParseError,
    get_repo_info,
    get_repo_language,
    load_commits,
    load_tags,
    parse_git_log,
    parse_git_tags,
)
from .utils import detect_language

__all__ = [
    "GitCommands",
    "GitCommandError",
    "LogParseError",
    "detect_language",
    "get_repo_info",
    "get_repo_language",
    "load_commits",
    "load_tags",
    "parse_git_log",
    "parse_git_tags",
]
