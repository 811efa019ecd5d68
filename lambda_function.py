"""AWS Lambda handler for the scheduled event listing refresh."""
import json
import logging
import os
import time
from typing import Dict, Any

from config import ConfigError, SyncConfig
from pipeline.refresh import build_pipeline


# Configure JSON logging
_RESERVED_ATTRS = frozenset(
    logging.LogRecord('', 0, '', 0, '', None, None).__dict__
) | {'message', 'asctime'}


class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON, including fields passed via extra=."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Run one refresh cycle per EventBridge schedule firing.

    Args:
        event: EventBridge event payload (unused)
        context: Lambda context object

    Returns:
        Response dict with statusCode and cycle statistics
    """
    setup_logging(os.environ.get('LOG_LEVEL', 'INFO'))
    logger = logging.getLogger(__name__)

    start_time = time.time()
    logger.info("Lambda execution started")

    try:
        config = SyncConfig.from_env()
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}", exc_info=True)
        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Invalid configuration',
                'error': str(e),
                'error_type': type(e).__name__
            })
        }

    try:
        pipeline = build_pipeline(config)
        result = pipeline.refresh()
    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Refresh failed',
                'error': str(e),
                'error_type': type(e).__name__,
                'duration_seconds': round(duration, 2)
            })
        }

    duration = time.time() - start_time

    if not result.success:
        logger.warning(
            f"Refresh cycle aborted: {result.reason}",
            extra={'duration_seconds': round(duration, 2)}
        )
        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Refresh aborted',
                'reason': result.reason,
                'errors': result.errors,
                'note': 'Previous events remain published',
                'duration_seconds': round(duration, 2)
            })
        }

    logger.info(
        "Lambda execution completed successfully",
        extra={
            'duration_seconds': round(duration, 2),
            'events_written': result.count
        }
    )
    return {
        'statusCode': 200,
        'body': json.dumps({
            'message': 'Refresh completed successfully',
            'statistics': {
                'events_written': result.count,
                'duration_seconds': round(duration, 2)
            }
        })
    }
