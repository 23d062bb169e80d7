import logging
import sys
from pathlib import Path

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <5}</level> | "
    "<cyan>{extra[module_name]}</cyan> - {message}"
)


# Configure Loguru with a format that separates module name from message
def add_module_name(record):
    """Ensure every record has module_name in extra."""
    if "module_name" not in record["extra"]:
        record["extra"]["module_name"] = f"{record['name']}:{record['line']}"
    return True


# Intercept standard logging
class InterceptHandler(logging.Handler):
    def emit(self, record):
        # Get corresponding Loguru level if it exists
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        if record.name == "root":
            module_name = record.module
        elif "." in record.name:
            module_name = record.name
        else:
            module_name = Path(record.pathname).stem

        module_with_line = f"{module_name}:{record.lineno}"
        logger.bind(module_name=module_with_line).opt(
            exception=record.exc_info
        ).log(level, record.getMessage())


def setup_logging(level: str = "INFO", colorize: bool = True) -> None:
    """Route all logging through Loguru with a single stderr sink.

    Library modules log through the standard logging module; this is only
    called by command-line entry points.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        format=LOG_FORMAT,
        level=level,
        colorize=colorize,
        filter=add_module_name,
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    # Let package loggers propagate to the intercepting root handler
    for name in logging.root.manager.loggerDict.keys():
        if name.startswith("core.dispatch"):
            logging.getLogger(name).handlers = []
            logging.getLogger(name).propagate = True
