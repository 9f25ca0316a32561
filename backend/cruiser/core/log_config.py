import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """
    Installs the root handler once. Calling it again only changes the level.
    """
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format=LOG_FORMAT)
    root.setLevel(level.upper())


def token_preview(token: str | None) -> str:
    # never log a full credential
    if not token:
        return "none"
    return token[:12] + "..."
