import logging, json, sys, time, os

ROOT_LOGGER = "keyshare"


def _json_formatter() -> logging.Formatter:
    formatter = logging.Formatter(
        fmt=json.dumps({
            "ts": "%(asctime)s",
            "level": "%(levelname)s",
            "component": "%(name)s",
            "msg": "%(message)s"
        }),
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )
    formatter.converter = time.gmtime  # UTC timestamps
    return formatter


def configure(level=None, to_file=None) -> logging.Logger:
    """
    Install the JSON-line handlers on the package logger, once.

    Level comes from KEYSHARE_LOG_LEVEL and an extra file sink from
    KEYSHARE_LOG_FILE unless given explicitly. Component loggers propagate
    here, so calling this again only updates the level.
    """
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel((level or os.getenv("KEYSHARE_LOG_LEVEL", "INFO")).upper())
    if root.handlers:
        return root

    formatter = _json_formatter()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root.addHandler(handler)

    to_file = to_file or os.getenv("KEYSHARE_LOG_FILE")
    if to_file:
        os.makedirs(os.path.dirname(to_file) or ".", exist_ok=True)
        file_handler = logging.FileHandler(to_file)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
    return root


def get_logger(component: str) -> logging.Logger:
    """Logger for one keyshare component, e.g. get_logger("acl") -> "keyshare.acl"."""
    configure()
    return logging.getLogger(f"{ROOT_LOGGER}.{component}")
