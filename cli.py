#!/usr/bin/env python3
"""
TrackFix CLI

Fixes tags of an audio library in parallel: looks every track up on
MusicBrainz, writes album/date/genre, optionally embeds cover art and
renames files. Runs are resumable.

Usage:
    trackfix <command> [options]

Commands:
    run [folder]      Process the library (live dashboard in the terminal)
    status [folder]   Show how many files the state file records
    reset [folder]    Forget processed files (delete the state file)
"""

import argparse
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

# Add project root to path
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from orchestrator.config import ConfigManager
from orchestrator.log import setup_logging
from orchestrator.state import ProcessedSet

console = Console()

# argparse dest -> config key
FLAG_KEYS = {
    'folder': 'library.root',
    'threads': 'workers.threads',
    'dry_run': 'run.dry_run',
    'rename': 'features.auto_rename',
    'embed_cover': 'features.embed_cover',
    'genre_year': 'features.fetch_genre_year',
    'fix_perms': 'features.fix_perms',
    'delete_failed': 'features.delete_failed',
    'auto_dry_real': 'features.auto_dry_real',
    'resume': 'features.resumable',
    'web': 'web.enabled',
    'host': 'web.host',
    'port': 'web.port',
    'log_file': 'output.log_file',
    'state_file': 'output.state_file',
}


def load_config(args) -> ConfigManager:
    """Load YAML/env config and apply command-line flags on top"""
    config = ConfigManager(args.config)
    for dest, key in FLAG_KEYS.items():
        value = getattr(args, dest, None)
        if value is not None:
            config.set(key, value)
    return config


def print_settings(config: ConfigManager) -> None:
    table = Table(title="Settings", show_header=False)
    table.add_column("Setting")
    table.add_column("Value")
    table.add_row("Music folder", str(config.library_root))
    table.add_row("Threads", str(config.threads))
    table.add_row("Dry run", str(config.dry_run))
    table.add_row("Fix perms", str(config.fix_perms))
    table.add_row("Delete failed originals", str(config.delete_failed))
    table.add_row("Auto rename", str(config.auto_rename))
    table.add_row("Embed cover art", str(config.embed_cover))
    table.add_row("Fetch genre/year", str(config.fetch_genre_year))
    table.add_row("Auto dry->real switch", str(config.auto_dry_real))
    table.add_row("Resumable", str(config.resumable))
    table.add_row("State file", str(config.state_file))
    table.add_row("Log file", str(config.log_file))
    console.print(table)


def print_summary(summary: dict) -> None:
    table = Table(title="Run Summary")
    table.add_column("Outcome")
    table.add_column("Files", justify="right")
    for outcome, count in summary['counts'].items():
        table.add_row(outcome, str(count))
    table.add_row("processed", str(summary['processed']), style="bold")
    console.print(table)
    console.print(
        f"Phase: {summary['phase']} | mode: {summary['mode']} | "
        f"discovered: {summary['discovered']} | pending: {summary['pending']} | "
        f"state: {summary['state_size']} paths in {summary['state_file']}"
    )


def cmd_run(args):
    """Process the library."""
    from orchestrator.orchestrator import TrackFixOrchestrator
    from orchestrator.queue import RunStats
    from dashboard import TerminalDashboard, create_app, start_background

    config = load_config(args)
    show_dashboard = not args.no_dashboard

    logger = setup_logging(config.log_file, console=None if show_dashboard else console)
    for warning in config.warnings:
        logger.warning(f"[Config] {warning}")

    print_settings(config)

    stats = RunStats(config.threads)
    orchestrator = TrackFixOrchestrator(config, stats=stats)

    web = None
    if config.web_enabled:
        web = start_background(create_app(stats), config.web_host, config.web_port)
        console.print(f"[*] Web UI available at {web.url}")

    try:
        if show_dashboard:
            with TerminalDashboard(stats, console):
                summary = orchestrator.run()
        else:
            summary = orchestrator.run()
    except KeyboardInterrupt:
        if orchestrator.state_saved:
            console.print(f"\nState saved to {config.state_file}")
        raise
    finally:
        if web is not None:
            web.stop()

    print_summary(summary)
    console.print(f"[*] TrackFix finished. Logs: {config.log_file}")


def cmd_status(args):
    """Show processing status."""
    config = load_config(args)
    processed = ProcessedSet(config.state_file)

    if not processed.state_file.exists():
        console.print(f"No state file at {processed.state_file}")
        return

    count = processed.load()
    console.print(f"State file: {processed.state_file}")
    console.print(f"Files processed: {count}")


def cmd_reset(args):
    """Delete the state file."""
    config = load_config(args)
    processed = ProcessedSet(config.state_file)

    if processed.clear_file():
        console.print(f"Removed {processed.state_file}")
    else:
        console.print(f"No state file at {processed.state_file}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='trackfix',
        description='Parallel, resumable audio tag fixer',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument('--config', default='trackfix.yaml', help='YAML config file (default: trackfix.yaml)')

    # Accept --config after the command too, without clobbering a global one
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('--config', default=argparse.SUPPRESS, help='YAML config file')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # run command
    run_parser = subparsers.add_parser('run', parents=[common], help='Process the library')
    run_parser.add_argument('folder', nargs='?', help='Music folder (default from config)')
    run_parser.add_argument('--threads', type=int, help='Worker threads (recommended 6-12, default 8)')
    run_parser.add_argument('--dry-run', action='store_true', default=None, help='Look up only, change nothing')
    run_parser.add_argument('--rename', action=argparse.BooleanOptionalAction, default=None,
                            help="Rename files to 'Title - Album - Artist'")
    run_parser.add_argument('--embed-cover', action=argparse.BooleanOptionalAction, default=None,
                            help='Download and embed cover art')
    run_parser.add_argument('--genre-year', action=argparse.BooleanOptionalAction, default=None,
                            help='Write genre and date from MusicBrainz')
    run_parser.add_argument('--fix-perms', action=argparse.BooleanOptionalAction, default=None,
                            help='Fix permissions under the folder before starting')
    run_parser.add_argument('--delete-failed', action=argparse.BooleanOptionalAction, default=None,
                            help='Delete files that could not be read or written')
    run_parser.add_argument('--auto-dry-real', action=argparse.BooleanOptionalAction, default=None,
                            help='Dry-run a sample first, then switch to real mode if it looks good')
    run_parser.add_argument('--resume', action=argparse.BooleanOptionalAction, default=None,
                            help='Skip files recorded in the state file (default: on)')
    run_parser.add_argument('--web', action=argparse.BooleanOptionalAction, default=None,
                            help='Serve the web dashboard')
    run_parser.add_argument('--host', help='Web dashboard host')
    run_parser.add_argument('--port', type=int, help='Web dashboard port')
    run_parser.add_argument('--log-file', help='Append-only log file')
    run_parser.add_argument('--state-file', help='State file (default: <folder>/.trackfix_state.json)')
    run_parser.add_argument('--no-dashboard', action='store_true', help='Plain log output instead of the live view')
    run_parser.set_defaults(func=cmd_run)

    # status command
    status_parser = subparsers.add_parser('status', parents=[common], help='Show processing status')
    status_parser.add_argument('folder', nargs='?', help='Music folder (default from config)')
    status_parser.add_argument('--state-file', help='State file')
    status_parser.set_defaults(func=cmd_status)

    # reset command
    reset_parser = subparsers.add_parser('reset', parents=[common], help='Delete the state file')
    reset_parser.add_argument('folder', nargs='?', help='Music folder (default from config)')
    reset_parser.add_argument('--state-file', help='State file')
    reset_parser.set_defaults(func=cmd_reset)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    try:
        args.func(args)
        return 0
    except KeyboardInterrupt:
        console.print("\nOperation cancelled.")
        return 130
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
