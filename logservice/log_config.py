"""
Loguru sink configuration.
"""

import sys

from loguru import logger


def configure_logging(level: str = "info", serialize: bool = True) -> None:
    """
    Replace loguru's default sink with a single stdout sink.

    With serialize=True every record is written as one JSON object per line,
    including bound fields such as correlation_id and attempt.
    """
    logger.remove()
    logger.add(
        sys.stdout,
        level=level.upper(),
        serialize=serialize,
        backtrace=False,
        diagnose=False,
    )
    logger.debug(f"Logging configured (level={level.upper()}, json={serialize})")
