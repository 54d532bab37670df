"""Main CLI entry point"""

import logging
import os

from xgrep.cli.search import search_command


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level_name: str | None = None) -> None:
    """Send log records to stderr at XGREP_LOG_LEVEL (WARNING by default)"""
    level_name = (level_name or os.getenv('XGREP_LOG_LEVEL', 'WARNING')).upper()
    level = getattr(logging, level_name, logging.WARNING)
    logging.basicConfig(level=level, format=LOG_FORMAT)


def main():
    """Entry point for the CLI"""
    configure_logging()
    search_command(prog_name='xgrep')


if __name__ == '__main__':
    main()
