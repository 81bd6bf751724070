import os

from git2stats.config import LOGGER_GIT2STATS, get_logger

logger = get_logger(LOGGER_GIT2STATS)


def _is_ignored(path: str, name: str, ignore: list[str]) -> bool:
    abs_path = os.path.abspath(path)
    for pattern in ignore:
        if name == pattern or abs_path == os.path.abspath(os.path.expanduser(pattern)):
            return True
    return False


def discover_repositories(scan_dirs: list[str], ignore: list[str] | None = None) -> list[str]:
    """Find git working trees below each of scan_dirs.

    A directory holding a ``.git`` entry is reported and not descended into.
    Entries of ``ignore`` match a directory name or an absolute/relative path.
    """
    ignore = ignore or []
    found = []

    for scan_dir in scan_dirs:
        scan_dir = os.path.expanduser(scan_dir)
        if not os.path.isdir(scan_dir):
            logger.warning(f"Scan directory does not exist: {scan_dir}")
            continue

        for root, dirs, files in os.walk(scan_dir):
            if ".git" in dirs or ".git" in files:
                if not _is_ignored(root, os.path.basename(root), ignore):
                    found.append(os.path.abspath(root))
                dirs[:] = []
                continue

            dirs[:] = sorted(
                d for d in dirs
                if not d.startswith(".") and not _is_ignored(os.path.join(root, d), d, ignore)
            )

    logger.debug(f"Discovered {len(found)} repositories under {scan_dirs}")
    return found
