import logging

__version__ = "0.1.0"

# request level failures (domain errors, unhandled exceptions) are reported here
logger = logging.getLogger("bazaar.app")
