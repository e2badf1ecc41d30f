"""Logging setup."""

import sys

from loguru import logger

# The transport's signal session layer reports these constantly after
# reconnects; they are not program errors.
TRANSPORT_NOISE = ("Bad MAC", "Failed to decrypt", "Session error")


def is_transport_noise(value: object) -> bool:
    text = str(value) if value is not None else ""
    return any(marker in text for marker in TRANSPORT_NOISE)


def _drop_transport_noise(record) -> bool:
    if is_transport_noise(record["message"]):
        return False
    exc = record["exception"]
    if exc is not None and is_transport_noise(exc.value):
        return False
    return True


def setup_logging(level: str = "INFO") -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> - <level>{message}</level>",
        filter=_drop_transport_noise,
    )
