import logging

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """
    Configure the root logger once.
    uvicorn installs its own handlers; we only add ours when nothing is configured yet.
    """
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level.upper(), format=_FORMAT)
    else:
        root.setLevel(level.upper())

    # httpx logs every request at INFO, which drowns provider polling
    logging.getLogger("httpx").setLevel(logging.WARNING)
