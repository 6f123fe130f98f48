import logging
import sys

# Configure logging format
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

def setup_logger(name: str, level=logging.INFO) -> logging.Logger:
    """
    Sets up a logger with consistent formatting.
    
    Args:
        name: Name of the logger (typically __name__ from the calling module)
        level: Logging level (default: INFO)
    
    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    
    # Avoid adding handlers multiple times
    if not logger.handlers:
        # Console handler
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        
        # Formatter
        formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
        console_handler.setFormatter(formatter)
        
        logger.addHandler(console_handler)
    
    return logger

def log_sync_status(logger: logging.Logger, syncing: bool, last_sync, error):
    """
    Logs a sync status transition.
    
    Args:
        logger: Logger instance to use
        syncing: Whether a sync run is in progress
        last_sync: Millisecond timestamp of the last successful run, or None
        error: Error message of the last run, or None
    """
    if syncing:
        logger.info("🔄 Sync started")
    elif error:
        logger.error(f"❌ Sync failed: {error}")
    else:
        logger.info(f"✅ Sync finished - last sync at {last_sync}")

def log_row_failure(logger: logging.Logger, entity: str, row_id: str, error: Exception):
    """
    Logs a single row that could not be synced and was skipped.
    
    Args:
        logger: Logger instance to use
        entity: Entity type (e.g. "review", "study log")
        row_id: Identifier of the skipped row
        error: The exception raised while handling the row
    """
    logger.warning(f"Skipping {entity} {row_id}: {error}")
