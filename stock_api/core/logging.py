import logging, sys

UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def setup_logging(level: str = "INFO"):
    root = logging.getLogger()
    for name in UVICORN_LOGGERS:
        logging.getLogger(name).setLevel(level.upper())
    if root.handlers:
        return
    root.setLevel(level.upper())
    h = logging.StreamHandler(sys.stdout)
    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s [%(threadName)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )
    h.setFormatter(fmt)
    root.addHandler(h)


def mask_url(url: str) -> str:
    """Hide the password of a DSN before logging it."""
    if "://" not in url:
        return url
    scheme, rest = url.split("://", 1)
    if "@" not in rest or ":" not in rest.split("@", 1)[0]:
        return url
    creds, tail = rest.split("@", 1)
    user = creds.split(":", 1)[0]
    return f"{scheme}://{user}:***@{tail}"
