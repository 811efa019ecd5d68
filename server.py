"""Long-running local process: refresh on an interval and serve public/."""
import logging
import os
from datetime import datetime
from functools import partial
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from dotenv import load_dotenv

from config import SyncConfig
from lambda_function import setup_logging
from pipeline.refresh import RefreshPipeline, build_pipeline

logger = logging.getLogger(__name__)


def setup_scheduler(pipeline: RefreshPipeline, interval_seconds: int) -> BackgroundScheduler:
    """
    Schedule refresh cycles: one immediately, then on a fixed interval.

    max_instances=1 makes APScheduler skip a firing while the previous cycle
    is still running; coalesce folds missed firings into one.

    Args:
        pipeline: Pipeline whose refresh() is the job
        interval_seconds: Seconds between firings

    Returns:
        Started BackgroundScheduler
    """
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        pipeline.refresh,
        IntervalTrigger(seconds=interval_seconds),
        id='refresh',
        max_instances=1,
        coalesce=True,
        next_run_time=datetime.now()
    )
    scheduler.start()
    logger.info(f"Scheduled refresh every {interval_seconds} seconds")
    return scheduler


def make_server(directory: str, port: int) -> ThreadingHTTPServer:
    """
    Build a static file server for the directory holding the artifact.

    Args:
        directory: Directory to serve
        port: TCP port

    Returns:
        ThreadingHTTPServer (not yet serving)
    """
    handler = partial(SimpleHTTPRequestHandler, directory=directory)
    return ThreadingHTTPServer(('', port), handler)


def main() -> None:
    load_dotenv()
    config = SyncConfig.from_env()
    setup_logging(config.log_level)

    pipeline = build_pipeline(config)

    # Bound before the first cycle starts
    public_dir = os.path.dirname(os.path.abspath(config.artifact_path))
    os.makedirs(public_dir, exist_ok=True)
    server = make_server(public_dir, config.port)
    logger.info(f"Serving {public_dir} on port {config.port}")

    scheduler = setup_scheduler(pipeline, config.refresh_interval_seconds)

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        server.server_close()
        scheduler.shutdown(wait=False)


if __name__ == '__main__':
    main()
