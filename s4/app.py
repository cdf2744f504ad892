from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable, Optional

from textual import events
from textual.app import App, ComposeResult
from textual.message import Message
from textual.widgets import Static

from .commands import Command, Quit, Result
from .config import (
    DEFAULT_DATE_DEADLINE,
    DEFAULT_SIZE_DEADLINE,
    S3Config,
    Settings,
    candidate_config_paths,
    default_log_path,
    find_config_path,
    interactive_setup,
    load_s3_config,
)
from .dispatcher import CommandDispatcher
from .errors import ConfigError, StoreError
from .navigation import KeyPress, handle_key, handle_resize, handle_result, start
from .render import render
from .s3 import S3Service
from .state import NavigationState
from .stats import StatisticsAggregator

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


class CommandFinished(Message):
    def __init__(self, result: Result) -> None:
        super().__init__()
        self.result = result


class S4Browser(App):
    ENABLE_COMMAND_PALETTE = False

    CSS = """
    Screen {
        background: $surface;
    }

    #view {
        height: 1fr;
        padding: 0 1;
        color: $text;
    }
    """

    def __init__(
        self,
        service,
        bucket: str,
        settings: Optional[Settings] = None,
    ) -> None:
        super().__init__()
        settings = settings or Settings()
        self.service = service
        self.state = NavigationState(bucket=bucket, local_path=settings.upload_start_dir)
        self.aggregator = StatisticsAggregator(
            service,
            bucket,
            size_deadline=settings.size_deadline,
            date_deadline=settings.date_deadline,
        )
        self.dispatcher = CommandDispatcher(
            service, bucket, self.aggregator, download_dir=settings.download_dir
        )

    def compose(self) -> ComposeResult:
        yield Static(id="view")

    def on_mount(self) -> None:
        handle_resize(self.state, self.size.width, self.size.height)
        self._dispatch_all(start(self.state))
        self._refresh_view()

    def on_resize(self, event: events.Resize) -> None:
        handle_resize(self.state, event.size.width, event.size.height)
        self._refresh_view()

    def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        press = KeyPress(key=event.key, character=event.character)
        self._dispatch_all(handle_key(self.state, press))
        self._refresh_view()

    def on_command_finished(self, message: CommandFinished) -> None:
        self._dispatch_all(handle_result(self.state, message.result))
        self._refresh_view()

    def action_help_quit(self) -> None:
        self.exit()

    def _dispatch_all(self, commands: Iterable[Command]) -> None:
        for command in commands:
            if isinstance(command, Quit):
                self.exit()
                return
            logger.debug("Dispatching %r", command)
            self.run_worker(self._execute(command), group="commands")

    async def _execute(self, command: Command) -> None:
        result = await self.dispatcher.execute(command)
        self.post_message(CommandFinished(result))

    def _refresh_view(self) -> None:
        self.query_one("#view", Static).update(render(self.state))


def configure_logging(log_file: Optional[str] = None, debug: bool = False) -> Path:
    path = Path(log_file).expanduser() if log_file else default_log_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=str(path),
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
    for noisy in ("botocore", "boto3", "urllib3", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    return path


def _print_config_help(error: Exception) -> None:
    print(f"Error: {error}", file=sys.stderr)
    print("", file=sys.stderr)
    print("Create an .s3cfg file in one of these locations:", file=sys.stderr)
    for path in candidate_config_paths():
        print(f"  - {path}", file=sys.stderr)
    print("", file=sys.stderr)
    print("It needs a [default] section with access_key and secret_key.", file=sys.stderr)


def _print_bucket_help(bucket: str, error: Exception) -> None:
    print(f"Error: {error}", file=sys.stderr)
    print("", file=sys.stderr)
    print("Please check:", file=sys.stderr)
    print(f"  - the bucket '{bucket}' exists", file=sys.stderr)
    print("  - your credentials in .s3cfg are correct", file=sys.stderr)
    print("  - you have permission to access the bucket", file=sys.stderr)
    print("  - host_base points at the right endpoint", file=sys.stderr)


def _load_config(config_path: Optional[str]) -> S3Config:
    if config_path:
        return load_s3_config(Path(config_path).expanduser())
    found = find_config_path()
    if found is not None:
        return load_s3_config(found)
    if not sys.stdin.isatty():
        raise ConfigError(".s3cfg file not found in any of the standard locations")
    return interactive_setup()


def _run_browser_command(config: S3Config, bucket: str, settings: Settings) -> int:
    service = S3Service(config)
    try:
        service.bucket_accessible(bucket)
    except StoreError as exc:
        logger.error("Bucket pre-flight failed for %s: %s", bucket, exc)
        _print_bucket_help(bucket, exc)
        return 1
    logger.info("Browsing s3://%s via %s", bucket, config.endpoint_url)
    app = S4Browser(service, bucket, settings)
    try:
        app.run()
    finally:
        service.close()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="s4", description="Terminal browser for a single S3 bucket"
    )
    parser.add_argument("bucket", nargs="?", help="Bucket to browse")
    parser.add_argument("--config", help="Path to an .s3cfg file")
    parser.add_argument(
        "--download-dir",
        default=".",
        help="Directory downloads are written to (default: current directory)",
    )
    parser.add_argument(
        "--size-timeout",
        type=float,
        default=DEFAULT_SIZE_DEADLINE,
        help="Seconds to wait for a directory's total size",
    )
    parser.add_argument(
        "--date-timeout",
        type=float,
        default=DEFAULT_DATE_DEADLINE,
        help="Seconds to wait for a directory's last modification time",
    )
    parser.add_argument("--log-file", help="Log file path")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.bucket:
        parser.print_usage(sys.stderr)
        return 1

    configure_logging(args.log_file, args.debug)

    try:
        config = _load_config(args.config)
    except ConfigError as exc:
        logger.error("Configuration failed: %s", exc)
        _print_config_help(exc)
        return 1

    settings = Settings(
        size_deadline=args.size_timeout,
        date_deadline=args.date_timeout,
        download_dir=args.download_dir,
    )
    return _run_browser_command(config, args.bucket, settings)


if __name__ == "__main__":
    raise SystemExit(main())
