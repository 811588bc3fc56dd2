import logging
from typing import Optional


def setup_logging(
    log_file: Optional[str] = None,
    *,
    quiet: bool = False,
    debug: bool = False,
) -> logging.Logger:
    """Configure and return the shared `werner_gravity` logger.

    By default, no file is written. Pass `log_file` to enable file logging.
    """
    logger = logging.getLogger("werner_gravity")
    # Keep propagation enabled so test harnesses (e.g. pytest caplog) can capture
    # records even when we suppress console output.
    logger.propagate = True

    level = logging.DEBUG if debug else logging.INFO
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, mode="w")
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as exc:
            logger.warning("Could not open log file '%s': %s", log_file, exc)

    if not quiet:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger
