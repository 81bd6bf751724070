from collections import Counter


LANGUAGE_MAP = {
    "ts": "TypeScript",
    "js": "JavaScript",
    "tsx": "TypeScript",
    "jsx": "JavaScript",
    "py": "Python",
    "go": "Go",
    "rs": "Rust",
    "java": "Java",
    "c": "C",
    "cpp": "C++",
    "cs": "C#",
    "rb": "Ruby",
    "php": "PHP",
    "swift": "Swift",
    "kt": "Kotlin",
    "scala": "Scala",
    "sh": "Shell",
}


def get_file_type(file_path):
    """Lower-cased text after the last dot, or None for names without one."""
    file_ext = file_path.split(".")[-1].lower() if "." in file_path else ""
    return file_ext or None


def detect_language(file_paths):
    """Return the language whose extensions are most common among file_paths.

    Ties go to the extension seen first. Returns None when no path maps to a
    known language.
    """
    ext_counts = Counter()
    for path in file_paths:
        ext = get_file_type(path)
        if ext:
            ext_counts[ext] += 1

    max_count = 0
    primary_ext = None
    for ext, count in ext_counts.items():
        if count > max_count and ext in LANGUAGE_MAP:
            max_count = count
            primary_ext = ext

    return LANGUAGE_MAP.get(primary_ext) if primary_ext else None


def parse_int(value, default=None):
    try:
        return int(value.strip())
    except (AttributeError, ValueError):
        return default
