import os
import logging
from logging.config import dictConfig
import json

import sentry_sdk

from rainbow.sdk.config import Settings


def configure_logging():
    logging_config_file = os.getenv("LOGGING_CONFIG_FILE", "")

    if len(logging_config_file) > 0:
        with open(logging_config_file) as fl:
            dictConfig(json.load(fl))
        return

    logging.basicConfig()
    logging.getLogger().setLevel(logging.DEBUG)


def configure_sentry(settings: Settings) -> bool:
    if not settings.sentry_dsn:
        return False

    sentry_sdk.init(dsn=settings.sentry_dsn, debug=settings.debug)
    return True
