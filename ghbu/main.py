#!/usr/bin/env python3
"""
Back up every GitHub repository of a user or organization to local disk
"""

import argparse
import signal
import sys
import threading
import time
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv
from loguru import logger
from rich_argparse import ArgumentDefaultsRichHelpFormatter

from . import __version__
from .base import Account, AccountKind, RepositoryDescriptor, RepositoryManager
from .config import BackupConfig, get_env_default, load_config
from .errors import ConfigError, RemoteAPIError
from .github_manager import GitHubManager
from .local_backup import LocalBackup
from .scheduler import ScheduleResult, WorkScheduler

ERROR_LEVEL = 40


def setup_logging(verbose: bool = False, log_file: str = "ghbu.log"):
    """Setup console and file logging with loguru"""

    # Remove default loguru handler
    logger.remove()

    # Create logs directory
    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)
    log_file_path = log_dir / log_file

    # Set log level
    log_level = "DEBUG" if verbose else "INFO"

    console_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<level>{message}</level>"
    )

    # Progress to stdout, errors to stderr
    logger.add(
        sys.stdout,
        format=console_format,
        level=log_level,
        colorize=True,
        filter=lambda record: record["level"].no < ERROR_LEVEL,
    )
    logger.add(sys.stderr, format=console_format, level="ERROR", colorize=True)

    file_format = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}"

    logger.add(
        log_file_path,
        format=file_format,
        level=log_level,
        rotation="10 MB",
        retention="30 days",
        compression="zip",
        encoding="utf-8",
    )

    logger.info("[CONFIG] Logging configured")
    logger.debug(f"Log file: {log_file_path}")

    return logger


def install_signal_handlers(cancel_event: threading.Event) -> Dict[int, object]:
    """Set ``cancel_event`` on SIGINT/SIGTERM, returning the handlers replaced"""

    def handler(signum, frame):
        logger.warning(f"[CANCEL] Signal caught: {signal.Signals(signum).name}")
        cancel_event.set()

    previous = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        previous[sig] = signal.signal(sig, handler)
    return previous


def restore_signal_handlers(previous: Dict[int, object]):
    for sig, handler in previous.items():
        signal.signal(sig, handler)


class BackupOrchestrator:
    def __init__(
        self,
        config: BackupConfig,
        manager: Optional[RepositoryManager] = None,
        local_backup: Optional[LocalBackup] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.config = config
        self.manager = manager or GitHubManager(token=config.token)
        self.local_backup = local_backup or LocalBackup(
            backup_path=config.backup_dir,
            replace=config.replace,
            prefer_ssh=config.prefer_ssh,
        )
        self.cancel_event = cancel_event or threading.Event()

    def resolve_target(self) -> Account:
        """Look up the organization or user to back up"""
        return self.manager.get_account(
            self.config.account_kind, self.config.account_name
        )

    def get_repositories(self, account: Account) -> List[RepositoryDescriptor]:
        repos = self.manager.list_repositories(account)
        for repo in repos:
            logger.debug(f"  - {repo.full_name} ({repo.clone_url(self.config.prefer_ssh)})")
        return repos

    def run_backup(self) -> ScheduleResult:
        """Run the backup process"""
        start = time.monotonic()

        account = self.resolve_target()
        kind = (
            "organization" if account.kind is AccountKind.ORGANIZATION else "user"
        )
        logger.info(f"[START] Backing up {kind} {account.login}...")

        repos = self.get_repositories(account)
        logger.info(
            f"[TOTAL] Backing up {len(repos)} repositories to {self.config.backup_dir}..."
        )

        scheduler = WorkScheduler(
            worker=self.local_backup.backup_repository,
            concurrency=self.config.parallel,
            cancel_event=self.cancel_event,
            show_progress=self.config.show_progress and bool(repos),
        )
        result = scheduler.run(repos)

        elapsed = time.monotonic() - start
        if result.failed:
            logger.warning(
                f"[WARN] {result.failed} of {result.dispatched} repositories failed to back up - check logs for details"
            )
        if result.cancelled:
            logger.warning(
                f"[CANCEL] Backup cancelled, {result.total - result.dispatched} repositories not attempted"
            )
        logger.info(f"[COMPLETE] Backup finished. Took {elapsed:.2f}s")
        return result


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ghbu",
        description="[bold blue]GitHub Backup[/bold blue] - Back up all repositories of a GitHub user or organization",
        epilog="""
[bold green]Examples:[/bold green]
  [dim]# Back up the authenticated user's repositories[/dim]
  [yellow]%(prog)s[/yellow] [cyan]--dir[/cyan] [magenta]/backups[/magenta]

  [dim]# Back up an organization, 4 repositories at a time[/dim]
  [yellow]%(prog)s[/yellow] [cyan]--org[/cyan] my-org [cyan]--dir[/cyan] [magenta]/backups[/magenta] [cyan]--parallel[/cyan] 4

  [dim]# Re-clone everything from scratch over HTTPS[/dim]
  [yellow]%(prog)s[/yellow] [cyan]--user[/cyan] octocat [cyan]--dir[/cyan] [magenta]/backups[/magenta] [cyan]--replace --https[/cyan]
        """,
        formatter_class=ArgumentDefaultsRichHelpFormatter,
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    target_group = parser.add_argument_group("Target")
    target_group.add_argument(
        "-o",
        "--org",
        metavar="NAME",
        help="GitHub organization to back up, takes precedence over --user (env: GITHUB_ORG)",
    )
    target_group.add_argument(
        "-u",
        "--user",
        metavar="NAME",
        help="GitHub user to back up, the authenticated user if omitted (env: GITHUB_USER)",
    )
    target_group.add_argument(
        "-t",
        "--token",
        metavar="TOKEN",
        help="GitHub auth token (env: GITHUB_TOKEN or GH_TOKEN, or `gh auth token`)",
    )

    backup_group = parser.add_argument_group("Backup Options")
    backup_group.add_argument(
        "-d",
        "--dir",
        metavar="DIR",
        help="Existing directory where repositories are backed up (env: BACKUP_DIR)",
    )
    backup_group.add_argument(
        "-r",
        "--replace",
        action="store_true",
        help="Replace existing repositories instead of updating them (env: REPLACE_EXISTING)",
    )
    backup_group.add_argument(
        "--https",
        action="store_true",
        help="Clone over HTTPS instead of SSH (env: CLONE_PROTOCOL)",
    )
    backup_group.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        help="YAML configuration file (env: GHBU_CONFIG)",
    )

    perf_group = parser.add_argument_group("Performance Options")
    perf_group.add_argument(
        "-p",
        "--parallel",
        type=int,
        metavar="N",
        help="Number of repositories to back up in parallel (env: PARALLEL_WORKERS, default: 2)",
    )
    perf_group.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable the progress bar",
    )

    log_group = parser.add_argument_group("Logging Options")
    log_group.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )
    log_group.add_argument(
        "--log-file",
        default=get_env_default("LOG_FILE", "ghbu.log"),
        metavar="FILE",
        help="Log file name under logs/ (env: LOG_FILE)",
    )
    return parser


def main(argv: Optional[List[str]] = None):
    # Load environment variables first (before parsing args)
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(verbose=args.verbose, log_file=args.log_file)

    try:
        config = load_config(args)
    except ConfigError as e:
        parser.print_usage(sys.stderr)
        logger.error(f"[ERROR] {e}")
        sys.exit(1)

    cancel_event = threading.Event()
    previous_handlers = install_signal_handlers(cancel_event)
    try:
        orchestrator = BackupOrchestrator(config, cancel_event=cancel_event)
        orchestrator.run_backup()
    except (RemoteAPIError, ConfigError) as e:
        logger.error(f"[ERROR] {e}")
        sys.exit(1)
    finally:
        restore_signal_handlers(previous_handlers)


if __name__ == "__main__":
    main()
