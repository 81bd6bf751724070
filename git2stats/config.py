import sys
import threading
import yaml
import os
import logging
import logging.config


# config.yaml is re-read only when its mtime changes
_config_cache = None
_config_last_modified = 0
_config_lock = threading.Lock()
_logger_config_loaded = False

# Logger names used throughout the project
LOGGER_GIT2STATS = "git2stats"
LOGGER_VALIDATION = "git2stats.validation"

AUTHOR_TOTALS_ACCUMULATE = "accumulate"
AUTHOR_TOTALS_RECOMPUTE = "recompute"

_ETL_DEFAULTS = {
    "file_change_batch_size": 1000,
    "strict_parsing": False,
    "strict_validation": False,
    "author_totals": AUTHOR_TOTALS_ACCUMULATE,
}


class ConfigError(ValueError):
    """Raised when a batch configuration document is missing or malformed."""


def get_executable_dir():
    return os.path.dirname(os.path.abspath(sys.argv[0]))


def get_default_config_paths():
    """Paths of config.yaml and logger.yaml under <executable dir>/config."""
    base_dir = get_executable_dir()
    config_path = os.path.join(base_dir, "config", "config.yaml")
    logger_config_path = os.path.join(base_dir, "config", "logger.yaml")
    return config_path, logger_config_path


def _make_dir(path: str):
    path_dir = os.path.dirname(path)
    if path_dir and not os.path.exists(path_dir):
        os.makedirs(path_dir, exist_ok=True)


def _write_template(path: str, template: str, kind: str):
    _make_dir(path)
    try:
        with open(path, "w", encoding="utf-8") as f:
            f.write(template.strip() + "\n")
    except OSError as e:
        raise RuntimeError(f"Failed to create {kind} file: {str(e)}")
    logging.warning(
        f"No {kind} yaml found - created new {kind} file from template at: {path}"
    )


def setup_logging():
    """Apply logger.yaml through dictConfig, creating it from the template if absent."""
    global _logger_config_loaded

    if _logger_config_loaded:
        return

    _, logger_config_path = get_default_config_paths()
    if not os.path.exists(logger_config_path):
        _write_template(logger_config_path, _LOGGING_CONFIG_TEMPLATE, "logging config")

    logging_config = _read_yaml(logger_config_path)

    # file handlers need their log directory to exist
    for handler in logging_config.get("handlers", {}).values():
        if handler.get("class") == "logging.FileHandler":
            log_file = handler.get("filename")
            if log_file:
                _make_dir(log_file)

    logging.config.dictConfig(logging_config)
    _logger_config_loaded = True


def _read_yaml(path: str, error_cls=ValueError):
    """Parse one YAML document; the top level must be a mapping."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise error_cls(f"Invalid YAML in {path}: {e}")
    except OSError as e:
        raise RuntimeError(f"Cannot read {path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise error_cls(f"{path} must contain a mapping at the top level")
    return data


def _load_config():
    """Return the application config, re-reading it when the file changes.

    Raises:
        RuntimeError: If the file cannot be created, stat'ed or read
        ValueError: If the YAML is invalid or the ``output`` section is missing
    """
    global _config_cache, _config_last_modified

    config_path, _ = get_default_config_paths()
    if not os.path.exists(config_path):
        _write_template(config_path, _CONFIG_TEMPLATE, "config")

    try:
        mtime = os.path.getmtime(config_path)
    except OSError as e:
        raise RuntimeError(f"Cannot stat {config_path}: {e}")

    with _config_lock:
        if _config_cache is not None and mtime <= _config_last_modified:
            return _config_cache

        config = _read_yaml(config_path)
        if "output" not in config:
            raise ValueError(f"{config_path} has no 'output' section")
        if "etl" not in config:
            logging.warning(f"No 'etl' section in {config_path}; using default ETL options")

        _config_cache, _config_last_modified = config, mtime
        return config


def load_output_config():
    return _load_config()["output"]


def load_etl_config():
    """ETL options from the ``etl`` section merged over the built-in defaults."""
    options = {**_ETL_DEFAULTS, **(_load_config().get("etl") or {})}

    if options["author_totals"] not in (AUTHOR_TOTALS_ACCUMULATE, AUTHOR_TOTALS_RECOMPUTE):
        raise ValueError(
            f"Invalid etl.author_totals: {options['author_totals']} "
            f"(expected '{AUTHOR_TOTALS_ACCUMULATE}' or '{AUTHOR_TOTALS_RECOMPUTE}')"
        )
    try:
        batch_size = int(options["file_change_batch_size"])
    except (TypeError, ValueError):
        batch_size = 0
    if batch_size < 1:
        raise ValueError("etl.file_change_batch_size must be a positive integer")

    options["file_change_batch_size"] = batch_size
    options["strict_parsing"] = bool(options["strict_parsing"])
    options["strict_validation"] = bool(options["strict_validation"])
    return options


def load_batch_config(path: str) -> dict:
    """Load the document that lists repositories for batch mode.

    Returns:
        dict with keys ``repositories``, ``scan_directories``, ``ignore`` and
        ``author_exclude``, each a list of strings.

    Raises:
        ConfigError: If the file is missing, malformed or lists nothing to process
    """
    if not os.path.isfile(path):
        raise ConfigError(f"Config file not found: {path}")

    data = _read_yaml(path, ConfigError)

    batch = {}
    for key in ("repositories", "scan_directories", "ignore", "author_exclude"):
        value = data.get(key) or []
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ConfigError(f"'{key}' must be a list of strings")
        batch[key] = [v.strip() for v in value if v.strip()]

    if not batch["repositories"] and not batch["scan_directories"]:
        raise ConfigError(
            "Config must define at least one of 'repositories' or 'scan_directories'"
        )

    return batch


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


_CONFIG_TEMPLATE = """# git2stats configuration template
output:
  type: "sqlite"  # sqlite or postgresql
  postgresql:
    host: "localhost"
    port: 5432
    database: "git_analytics"
    user: "gituser"
    password: "gituser"
  sqlite:
    database: "data/git-analytics.db"  # relative to the working directory

etl:
  file_change_batch_size: 1000
  strict_parsing: false  # true aborts a repository on a malformed commit block
  strict_validation: false  # true drops commits/tags that fail validation
  author_totals: "accumulate"  # accumulate or recompute
"""

_LOGGING_CONFIG_TEMPLATE = """
version: 1
disable_existing_loggers: False

formatters:
  simple:
    format: "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

handlers:
  console:
    class: logging.StreamHandler
    level: INFO
    formatter: simple
    stream: ext://sys.stdout

  git2stats:
    class: logging.FileHandler
    level: DEBUG
    formatter: simple
    filename: logs/git2stats.log
    encoding: utf-8

loggers:
  git2stats:
    level: DEBUG
    handlers: [console, git2stats]
    propagate: false

root:
  level: WARNING
  handlers: [console]
"""
