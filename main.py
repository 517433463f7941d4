r"""
MacClean - Complete macOS Application Uninstaller

Entry point: select an application -> remove it and everything it left behind.

Usage:
    python main.py                           Pick an installed app and remove it
    python main.py /Applications/Foo.app     Remove a specific app
    python main.py Foo.app --dry-run         Show what would be removed (no deletion)
    python main.py Foo.app --auto            Remove everything found without prompting
    python main.py --list                    List user-installed applications
    python main.py --unused 30               Apps not opened in 30 days
    python main.py --check-broken            Bundles with missing or corrupt parts
    python main.py Foo.app --exclude ~/Keep  Never touch ~/Keep
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import tempfile

from rich.logging import RichHandler
from rich.panel import Panel

from apps import check_broken_apps, find_unused_apps, list_installed_apps
from cleaner import write_session_log
from config import DEFAULT_LOG_FILE, Locations, load_config, load_exclusions, save_exclusions
from errors import BundleNotFound
from models import ExecutionContext
from ui import ConsolePrompter, console, show_app_list, show_session_report
from uninstaller import remove_application

logger = logging.getLogger("macclean")

BANNER = r"""
   __  __             ____ _
  |  \/  | __ _  ___ / ___| | ___  __ _ _ __
  | |\/| |/ _` |/ __| |   | |/ _ \/ _` | '_ \
  | |  | | (_| | (__| |___| |  __/ (_| | | | |
  |_|  |_|\__,_|\___|\____|_|\___|\__,_|_| |_|

  Complete macOS Application Uninstaller v1.0
"""


def setup_logging(verbose: bool = False, log_file: str = DEFAULT_LOG_FILE) -> str:
    """Rich console output plus a plain log file; returns the log file used."""
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    console_handler = RichHandler(console=console, show_path=False, markup=False)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.addHandler(console_handler)

    try:
        os.makedirs(os.path.dirname(log_file), exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
    except OSError:
        log_file = os.path.join(tempfile.gettempdir(), "macclean.log")
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter("%(asctime)s - [%(levelname)s] %(name)s: %(message)s"))
    root.addHandler(file_handler)
    return log_file


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="MacClean - Complete macOS Application Uninstaller",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "app",
        nargs="?",
        default=None,
        help="Path to the .app bundle to remove (prompted for if omitted)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be removed without changing anything",
    )
    parser.add_argument(
        "--auto",
        action="store_true",
        help="Remove everything found without interactive prompts",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List user-installed applications and exit",
    )
    parser.add_argument(
        "--unused",
        type=int,
        default=None,
        metavar="DAYS",
        help="List applications not accessed in DAYS days and exit",
    )
    parser.add_argument(
        "--check-broken",
        action="store_true",
        help="List application bundles with missing or corrupt parts and exit",
    )
    parser.add_argument(
        "--backup-dir",
        type=str,
        default=None,
        help="Base directory for session backups",
    )
    parser.add_argument(
        "--log-dir",
        type=str,
        default=None,
        help="Directory to save the removal log CSV",
    )
    parser.add_argument(
        "--no-elevation",
        action="store_true",
        help="Never use sudo; items that need it are skipped",
    )
    parser.add_argument(
        "--allow-unbacked-delete",
        action="store_true",
        help="Delete items even when their backup failed",
    )
    parser.add_argument(
        "--exclude",
        type=str,
        nargs="*",
        default=[],
        metavar="PATH",
        help="Paths never to back up or delete",
    )
    parser.add_argument(
        "--save-exclusions",
        action="store_true",
        help="Remember the --exclude paths for later runs",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Show debug output",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    try:
        return run(argv)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted. Stages already completed are not rolled back.[/]")
        return 130


def run(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose)

    console.print(f"[bold cyan]{BANNER}[/]")

    config = load_config()
    if args.backup_dir:
        config.backup_base = os.path.abspath(os.path.expanduser(args.backup_dir))
    if args.log_dir:
        config.log_dir = os.path.abspath(os.path.expanduser(args.log_dir))
    if args.dry_run:
        config.dry_run = True
    if args.no_elevation:
        config.allow_elevation = False
    if args.allow_unbacked_delete:
        config.proceed_on_backup_failure = True

    locations = Locations()
    exclusions = load_exclusions()
    for excl_path in args.exclude:
        exclusions.paths.add(os.path.abspath(os.path.expanduser(excl_path)))
    if args.save_exclusions:
        save_exclusions(exclusions)
        logger.info("Saved %d excluded path(s).", len(exclusions.paths))

    # -- REPORTS --
    if args.list:
        apps = list_installed_apps(locations)
        show_app_list("Installed Applications", [(os.path.basename(p), p) for p in apps],
                      ["Name", "Location"])
        return 0

    if args.unused is not None:
        unused = find_unused_apps(locations, args.unused)
        if not unused:
            console.print("[green]No unused applications found.[/]")
            return 0
        show_app_list(f"Applications not accessed in {args.unused} days",
                      [(a.name, a.size_human, a.last_accessed_str) for a in unused],
                      ["Name", "Size", "Last accessed"])
        return 0

    if args.check_broken:
        broken = check_broken_apps(locations)
        if not broken:
            console.print("[green]No broken application bundles found.[/]")
            return 0
        show_app_list("Potentially broken applications",
                      [(os.path.basename(p), reason) for p, reason in broken],
                      ["Name", "Problem"])
        return 0

    # -- REMOVAL --
    ctx = ExecutionContext(
        dry_run=config.dry_run,
        interactive=not args.auto,
        allow_elevation=config.allow_elevation,
        proceed_on_backup_failure=config.proceed_on_backup_failure,
    )

    if ctx.dry_run:
        console.print(Panel(
            "[bold yellow]DRY-RUN MODE[/] - Nothing will be backed up, unloaded or deleted.",
            border_style="yellow",
        ))

    bundle_path = args.app
    if bundle_path is None:
        if args.auto:
            console.print("[red]--auto needs an application path.[/]")
            return 2
        bundle_path = ConsolePrompter().select_application(list_installed_apps(locations))
        if not bundle_path:
            console.print("[yellow]No application selected.[/]")
            return 0

    try:
        session = remove_application(
            os.path.abspath(os.path.expanduser(bundle_path)),
            ctx,
            config=config,
            locations=locations,
            exclusions=exclusions,
        )
    except BundleNotFound as exc:
        logger.error("%s", exc)
        return 1

    log_path = write_session_log(session, config.log_dir)
    if log_path:
        logger.info("Removal log saved to: %s", log_path)
    show_session_report(session, log_path)
    return 0 if not session.failures else 3


if __name__ == "__main__":
    sys.exit(main())
