"""Main entry point for the CDN operator."""

import logging
import sys

import kopf

from cdn_operator.config import get_config
from cdn_operator.handlers import distribution_handler  # noqa: F401  (registers handlers)

# Configure logging
logging.basicConfig(
    level=get_config().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
)

logger = logging.getLogger(__name__)


def main() -> None:
    """Run the CDN operator."""
    config = get_config()
    logger.info("Starting CDN Operator")
    logger.info(f"Watching {config.distribution_plural}.{config.api_group} in all namespaces")

    kopf.run(
        clusterwide=True,
        liveness_endpoint=f"http://0.0.0.0:{config.liveness_port}/healthz",
    )


if __name__ == "__main__":
    main()
