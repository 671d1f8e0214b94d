#!/usr/bin/env python
"""
Skillbox Plugin Playground - interactive CLI

Usage:
    python -m cli.main
    python -m cli.main -u alice -a writer-assistant
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables FIRST (before importing project modules)
load_dotenv('.env')

from cli.repl import REPLRunner

# Configure logging
log_dir = Path(__file__).parent.parent / "log"
log_dir.mkdir(exist_ok=True)

root_logger = logging.getLogger()
root_logger.setLevel(logging.INFO)

# File handler records INFO and above
file_handler = logging.FileHandler(
    log_dir / "cli.log",
    encoding='utf-8'
)
file_handler.setLevel(logging.INFO)
file_formatter = logging.Formatter(
    '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
file_handler.setFormatter(file_formatter)

# Console handler only shows warnings, so INFO logs do not clutter the REPL
console_handler = logging.StreamHandler()
console_handler.setLevel(logging.WARNING)
console_formatter = logging.Formatter('%(levelname)s: %(message)s')
console_handler.setFormatter(console_formatter)

root_logger.addHandler(file_handler)
root_logger.addHandler(console_handler)


def parse_args():
    parser = argparse.ArgumentParser(
        description='Skillbox Plugin Playground - interactive CLI',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        '-u', '--user',
        type=str,
        default='cli-debug',
        help='User id used for plugin config resolution (default: cli-debug)'
    )
    parser.add_argument(
        '-a', '--assistant',
        type=str,
        default=None,
        help='Assistant id whose plugin assignments are used (default: public plugins)'
    )
    return parser.parse_args()


def main():
    try:
        args = parse_args()
        repl = REPLRunner(user_id=args.user, assistant_id=args.assistant)
        asyncio.run(repl.run())
    except KeyboardInterrupt:
        print("\n\033[33minterrupted\033[0m")
        sys.exit(0)


if __name__ == "__main__":
    main()
