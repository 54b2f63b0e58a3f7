"""Main application entry point."""

import logging
import sys

from motophoto.config.environment import load_settings
from motophoto.db import ConfigError
from motophoto.lifecycle import LifecycleManager
from motophoto.utils.logging_config import setup_logging


def main() -> int:
    try:
        settings = load_settings()
    except ConfigError as e:
        setup_logging()
        logging.getLogger(__name__).error(f"Invalid configuration: {e}")
        return 1

    return LifecycleManager(settings).run()


if __name__ == "__main__":
    sys.exit(main())
