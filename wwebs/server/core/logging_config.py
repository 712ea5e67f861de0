from wwebs.common.core.logging_config import setup_logging as common_setup_logging

from ..config import config


def setup_logging():
    """
    Load the YAML config and initialize logging.
    """
    common_setup_logging(config.LOG_CONFIG_PATH, log_level=config.LOG_LEVEL)
