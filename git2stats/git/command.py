import subprocess

import pygit2
from pygit2.repository import Repository

from git2stats.config import LOGGER_GIT2STATS, get_logger

logger = get_logger(LOGGER_GIT2STATS)

COMMIT_START = "COMMIT_START"
COMMIT_MSG_END = "COMMIT_MSG_END"

LOG_FORMAT = f"--pretty=format:{COMMIT_START}%n%H%n%ae%n%an%n%ct%n%P%n%s%n{COMMIT_MSG_END}"

# Fields are separated by 0x1f and records terminated by 0x1e so that
# multi-line tag bodies stay inside one record.
TAG_FIELD_SEP = "\x1f"
TAG_RECORD_SEP = "\x1e"
TAG_FORMAT = "--format=" + "%1f".join(
    [
        "%(refname:short)",
        "%(objecttype)",
        "%(objectname)",
        "%(taggername)",
        "%(taggeremail)",
        "%(taggerdate:unix)",
        "%(subject)",
        "%(contents:body)",
        "%(*objectname)",
    ]
) + "%1e"


class GitCommandError(RuntimeError):
    """Raised when a git query fails; carries the stderr text when there is one."""

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(f"{message}: {stderr.strip()}" if stderr.strip() else message)
        self.stderr = stderr


class GitCommands:
    """Synchronous access to a local repository.

    Branch and index queries go through pygit2, the textual log and tag
    listings through the git executable.
    """

    def __init__(self, git_executable: str = "git"):
        self.git_executable = git_executable

    def _open(self, repo_path: str) -> Repository:
        try:
            return Repository(repo_path)
        except (pygit2.GitError, KeyError) as e:
            raise GitCommandError(f"Failed to open repository {repo_path}", str(e))

    def _run(self, repo_path: str, args: list[str], what: str) -> str:
        cmd = [self.git_executable, "-C", repo_path, *args]
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as e:
            raise GitCommandError(f"Failed to {what}", str(e))

        if result.returncode != 0:
            raise GitCommandError(f"Failed to {what}", result.stderr)
        return result.stdout

    def resolve_current_branch(self, repo_path: str) -> str:
        repo = self._open(repo_path)
        try:
            return repo.head.shorthand
        except pygit2.GitError as e:
            raise GitCommandError("Failed to get branch", str(e))

    def read_log(self, repo_path: str, branch: str) -> str:
        # "--" keeps a branch that shares a name with a file from being read as a path
        return self._run(repo_path, ["log", branch, LOG_FORMAT, "--numstat", "--"], "run git log")

    def list_tracked_files(self, repo_path: str) -> list[str]:
        repo = self._open(repo_path)
        return [entry.path for entry in repo.index]

    def list_tag_refs(self, repo_path: str) -> str:
        return self._run(
            repo_path, ["for-each-ref", "refs/tags", TAG_FORMAT], "parse tags"
        )
