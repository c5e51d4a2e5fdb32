"""
log-service main entry point
"""

import uvicorn
from loguru import logger

from logservice.log_config import configure_logging
from logservice.settings import global_settings


def main() -> None:
    """Run the log-service with uvicorn."""
    configure_logging(global_settings.log_level, serialize=global_settings.log_json)
    logger.info(
        f"Starting log-service (dependency: {global_settings.dependency_url}, "
        f"max_attempts={global_settings.max_attempts}, "
        f"per_attempt_timeout={global_settings.per_attempt_timeout}s)"
    )

    uvicorn.run(
        "logservice.app:get_app",
        factory=True,
        host=global_settings.host,
        port=global_settings.port,
        log_level=global_settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
