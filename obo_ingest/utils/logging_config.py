# obo_ingest/utils/logging_config.py
import logging
import sys
import re

# Import the config variables needed for the filename and settings
from obo_ingest import config

def sanitize_filename(name: str) -> str:
    """Sanitizes a string to be a valid filename."""
    # Replace slashes/colons in graph URIs or ontology names with a hyphen
    name = name.replace("/", "-").replace(":", "_")
    # Remove any other characters that are invalid in filenames
    name = re.sub(r'[\\*?:"<>|]', "", name)
    # Replace spaces with underscores
    name = name.replace(" ", "_")
    # Truncate to a reasonable length to avoid OS limits
    return name[:100]

def setup_run_logging(run_name: str, level: str = None, log_to_file: bool = True):
    """
    Sets up logging for one ingestion run.

    - Creates a log file `logs/run_<run_name>.log` (fresh per run).
    - Continues to print logs to the console.
    """
    level = level or config.LOG_LEVEL
    logger = logging.getLogger()
    logger.setLevel(level)

    # Clear any existing handlers to avoid duplicate logging
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(module)s.%(funcName)s:%(lineno)d - %(message)s'
    )

    log_filepath = None
    if log_to_file:
        config.LOGS_DIR.mkdir(exist_ok=True)
        log_filepath = config.LOGS_DIR / f"run_{sanitize_filename(run_name)}.log"

        # Use 'w' mode to create a fresh log for each run
        file_handler = logging.FileHandler(log_filepath, mode='w', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setLevel(level)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    # Quiet down noisy libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("whoosh.index").setLevel(logging.WARNING)

    logging.info(f"Logging configured to level {level}. Console output enabled.")
    if log_filepath:
        logging.info(f"Saving run-specific log to: {log_filepath}")
