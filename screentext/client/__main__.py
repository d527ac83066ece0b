"""ScreenText capture daemon entry point.

Launch with: python -m screentext.client

The daemon handles:
- Text capture on app switches and idle ticks (CaptureWorker)
- The rolling screenshot buffer (FrameBufferWorker)
- Record retention and the store size cap (RetentionWorker)

It is the only writer of the record store in its data directory.
``--capture-once`` and ``--ingest TEXT`` run a single capture instead and
exit; do not run them against a store a daemon is writing.
"""

import argparse
import signal
import sys
import threading

from screentext.shared.config import CaptureConfig, settings
from screentext.shared.logging_config import configure_logging

logger = configure_logging("screentext.client")

from screentext.client.extractors import build_extractor
from screentext.client.frame_buffer import FrameBufferStore
from screentext.client.ingest import capture_once, ingest_text
from screentext.client.pipeline import CapturePipeline
from screentext.client.recorder import CaptureWorker, FrameBufferWorker
from screentext.client.retention import RetentionWorker
from screentext.server.database import SQLStore
from screentext.shared import permissions
from screentext.shared.errors import ConfigurationError, InitializationError, WriteError
from screentext.shared.models import CaptureTrigger, TextSource


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="python -m screentext.client",
        description="ScreenText capture daemon.",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--capture-once",
        action="store_true",
        help="Capture the focused window once and exit.",
    )
    mode.add_argument(
        "--ingest",
        metavar="TEXT",
        help="Store TEXT as one capture and exit.",
    )
    parser.add_argument("--app", default="Manual", help="Application name for --ingest.")
    parser.add_argument("--window", default=None, help="Window title for --ingest.")
    parser.add_argument("--bundle-id", default=None, help="Bundle identifier for --ingest.")
    parser.add_argument("--display-id", default=None, help="Display identifier for --ingest.")
    parser.add_argument(
        "--source",
        choices=[s.value for s in TextSource],
        default=TextSource.SYNTHETIC.value,
        help="Text source tag for --ingest.",
    )
    parser.add_argument(
        "--trigger",
        choices=[t.value for t in CaptureTrigger],
        default=CaptureTrigger.MANUAL.value,
        help="Trigger tag for --ingest.",
    )
    return parser.parse_args(argv)


def _open_store() -> SQLStore:
    try:
        return SQLStore(settings.db_path)
    except InitializationError as e:
        logger.error(f"Cannot open record store: {e}")
        sys.exit(1)


def _run_once(args: argparse.Namespace, config: CaptureConfig) -> None:
    store = _open_store()
    try:
        if args.capture_once:
            capture_once(store, config)
        else:
            ingest_text(
                store,
                args.ingest,
                app_name=args.app,
                window_title=args.window,
                bundle_id=args.bundle_id,
                display_id=args.display_id,
                source=TextSource(args.source),
                trigger=CaptureTrigger(args.trigger),
            )
    except WriteError as e:
        logger.error(f"Capture failed: {e}")
        sys.exit(1)


def main(argv=None):
    """Start the capture daemon and block until a shutdown signal."""
    args = parse_args(argv)
    try:
        config = settings.load_capture_config()
    except ConfigurationError as e:
        logger.error(f"Cannot load configuration: {e}")
        sys.exit(1)

    if args.capture_once or args.ingest is not None:
        _run_once(args, config)
        return

    logger.info("=" * 50)
    logger.info("ScreenText Capture Daemon Starting")
    logger.info("=" * 50)
    logger.info(f"Debug mode: {'ON' if settings.debug else 'OFF'}")
    logger.info(f"Data folder: {settings.data_dir}")
    logger.info(f"Database: {settings.db_path}")
    logger.info(f"Idle gap: {config.idle_gap_seconds}s | Active gap: {config.active_gap_seconds}s")
    logger.info(f"Duplicate window: {config.duplicate_window_seconds}s")
    logger.info(f"OCR fallback: {'ON' if config.ocr_enabled else 'OFF'}")
    logger.info(
        f"Frame buffer: {'ON' if config.frame_buffer_enabled else 'OFF'} "
        f"(every {config.frame_buffer_interval_seconds}s, keep {config.frame_buffer_retention_seconds}s / "
        f"{config.frame_buffer_max_frames} frames)"
    )
    logger.info(f"Retention: {config.retention_days} days, cap {config.max_db_size_mb} MB")
    logger.info("=" * 50)

    snapshot = permissions.snapshot()
    if not snapshot.accessibility_granted:
        logger.warning("Accessibility access not granted; text capture relies on OCR only")
    if not snapshot.screen_recording_granted:
        logger.warning("Screen recording not available; OCR and frame buffer will yield nothing")

    store = _open_store()
    pipeline = CapturePipeline(store, build_extractor(config), config.duplicate_window_seconds)

    workers = [
        CaptureWorker(pipeline, config),
        RetentionWorker(store, config, settings.retention_check_interval),
    ]
    if config.frame_buffer_enabled:
        frame_buffer = FrameBufferStore(
            settings.frame_buffer_path,
            retention_seconds=config.frame_buffer_retention_seconds,
            max_frames=config.frame_buffer_max_frames,
        )
        workers.append(FrameBufferWorker(frame_buffer, config.frame_buffer_interval_seconds))

    for worker in workers:
        worker.start()

    stop_event = threading.Event()

    def shutdown_handler(signum, frame):
        if stop_event.is_set():
            return
        logger.info("Received shutdown signal, stopping daemon...")
        stop_event.set()

    signal.signal(signal.SIGINT, shutdown_handler)
    signal.signal(signal.SIGTERM, shutdown_handler)

    try:
        while not stop_event.wait(1.0):
            pass
    except KeyboardInterrupt:
        pass
    finally:
        for worker in workers:
            worker.stop()
        for worker in workers:
            worker.join(timeout=5)
        logger.info("Daemon shutdown complete")


if __name__ == "__main__":
    main()
