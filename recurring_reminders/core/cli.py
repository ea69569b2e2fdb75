# recurring_reminders/core/cli.py
"""
CLI for the recurring reminder scheduler: run, serve, and check commands.

Configuration comes from the environment. A .env file in the working
directory (or the one named by --env-file) is loaded first and never
overrides variables that are already set.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

from dotenv import load_dotenv

from recurring_reminders.core.database import ReminderDatabase
from recurring_reminders.core.errors import ReminderError
from recurring_reminders.core.logging import get_logger, parse_level, set_default_level
from recurring_reminders.core.models.config import ReminderConfig
from recurring_reminders.core.runtime import ReminderRuntime
from recurring_reminders.core.types.result import is_err

LOGLEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def setup_logging(loglevel: str) -> None:
    """Configure logging level globally."""
    level = parse_level(loglevel)
    set_default_level(level)

    root_logger = logging.getLogger('recurring_reminders')
    root_logger.setLevel(level)
    for handler in root_logger.handlers:
        handler.setLevel(level)


def _load_config(logger: logging.Logger, env_file: Optional[str]) -> ReminderConfig:
    load_dotenv(env_file, override=False)
    try:
        return ReminderConfig.from_env()
    except ReminderError as e:
        logger.error(f'Invalid configuration:\n{e}')
        sys.exit(1)


def run_command(args: argparse.Namespace) -> None:
    """Handle run command: one reminder pass, result printed as JSON."""
    logger = get_logger('cli')
    setup_logging(args.loglevel)
    config = _load_config(logger, args.env_file)

    async def run_pass() -> dict:
        runtime = ReminderRuntime(config)
        try:
            result = await runtime.run_once(args.now_ms)
            return result.to_response()
        finally:
            await runtime.close()

    try:
        response = asyncio.run(run_pass())
    except KeyboardInterrupt:
        logger.info('Reminder pass interrupted by user')
        sys.exit(130)
    except Exception as e:
        logger.error(f'Reminder pass failed: {e}')
        print(json.dumps({'error': str(e)}))
        sys.exit(1)

    print(json.dumps(response))


def serve_command(args: argparse.Namespace) -> None:
    """Handle serve command: expose the HTTP trigger with uvicorn."""
    import uvicorn

    from recurring_reminders.core.api import create_app

    logger = get_logger('cli')
    setup_logging(args.loglevel)
    load_dotenv(args.env_file, override=False)

    logger.info(f'Serving reminder endpoint on {args.host}:{args.port}')
    uvicorn.run(
        create_app(),
        host=args.host,
        port=args.port,
        log_level=args.loglevel.lower(),
    )


def check_command(args: argparse.Namespace) -> None:
    """Handle check command: validate configuration without sending anything."""
    logger = get_logger('cli')
    setup_logging(args.loglevel)
    load_dotenv(args.env_file, override=False)

    try:
        config = ReminderConfig.from_env()
    except ReminderError as e:
        print(e.format_rust_style(), file=sys.stderr)
        sys.exit(1)

    if args.live:

        async def ping() -> Optional[str]:
            database = ReminderDatabase(config.database)
            try:
                checked = await database.check_connection()
                return checked.err_value.message if is_err(checked) else None
            finally:
                await database.close()

        failure = asyncio.run(ping())
        if failure is not None:
            logger.error(failure)
            print(f'error: database unreachable\n  {failure}', file=sys.stderr)
            sys.exit(1)

    print('ok: configuration is valid')
    print(config.format_for_logging())
    sys.exit(0)


def main(argv: Optional[list[str]] = None) -> None:
    """Main CLI entry point."""
    try:
        parser = argparse.ArgumentParser(
            prog='recurring-reminders',
            description='Recurring task reminders - batch pass, HTTP trigger, config check',
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  # One pass now (e.g. from cron)
  recurring-reminders run

  # Replay a pass at a fixed time
  recurring-reminders run --now-ms 1735689600000

  # HTTP trigger for an external scheduler
  recurring-reminders serve --port 8080

  # Validate configuration (and database connectivity)
  recurring-reminders check --live
""",
        )
        parser.add_argument(
            '--env-file',
            default=None,
            help='Path to a .env file (default: search from the working directory)',
        )
        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        # Run command
        run_parser = subparsers.add_parser('run', help='Run one reminder pass')
        run_parser.add_argument(
            '--now-ms',
            type=int,
            default=None,
            help='Pass time in epoch ms (default: current time)',
        )
        run_parser.add_argument(
            '--loglevel',
            choices=LOGLEVELS,
            default='INFO',
            type=str.upper,
            help='Logging level (default: INFO)',
        )

        # Serve command
        serve_parser = subparsers.add_parser(
            'serve', help='Serve POST /send-recurring-reminders'
        )
        serve_parser.add_argument('--host', default='0.0.0.0', help='Bind host')
        serve_parser.add_argument('--port', type=int, default=8000, help='Bind port')
        serve_parser.add_argument(
            '--loglevel',
            choices=LOGLEVELS,
            default='INFO',
            type=str.upper,
            help='Logging level (default: INFO)',
        )

        # Check command
        check_parser = subparsers.add_parser(
            'check', help='Validate configuration without sending reminders'
        )
        check_parser.add_argument(
            '--loglevel',
            choices=LOGLEVELS,
            default='WARNING',
            type=str.upper,
            help='Logging level (default: WARNING)',
        )
        check_parser.add_argument(
            '--live',
            action='store_true',
            default=False,
            help='Also check database connectivity (SELECT 1)',
        )

        args = parser.parse_args(argv)

        match args.command:
            case 'run':
                run_command(args)
            case 'serve':
                serve_command(args)
            case 'check':
                check_command(args)
            case _:
                parser.print_help()
                sys.exit(1)
    except KeyboardInterrupt:
        print('\nInterrupted by user')
        sys.exit(0)


if __name__ == '__main__':
    main()
