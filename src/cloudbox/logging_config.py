import logging
import sys

NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "docker", "httpx", "httpcore", "alembic")


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger once at CLI startup."""

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - [%(levelname)s] - %(message)s",
        stream=sys.stdout,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
