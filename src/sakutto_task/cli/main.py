# src/sakutto_task/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs one subcommand
(add, list, show, edit, delete, done, search, settings,
subscribe, unsubscribe, dispatch, run).
"""

from __future__ import annotations

import logging
import sys

from ..cli.bootstrap import create_initial_state
from ..cli.commands import build_parser, run_command
from ..config import get_settings
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_dir = getattr(settings, "data_dir", ".local/sakutto")
    setup_logging(log_dir=log_dir, console_level=console_level)

    logger.debug("Starting %s command=%s", getattr(settings, "app_name", "sakutto-task"), args.command)

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)
    return run_command(state, args)


if __name__ == "__main__":
    sys.exit(main())
