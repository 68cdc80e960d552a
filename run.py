#!/usr/bin/env python3
"""
Entry point for the game server fleet starter.

Usage:
    python run.py                    # Supervise the fleet in the current directory
    python run.py --dir /srv/fleet   # Use another work directory
    python run.py --verbose          # Debug logging

Environment Variables:
    STARTER_ENV: development, production or testing (default: production)
    STARTER_DIR: Work directory holding starter.json (default: cwd)
    TICK_INTERVAL, QUERY_TIMEOUT, GRACE_CYCLES, OUTAGE_TOLERANCE: loop tuning
"""
import argparse
import os
import signal
import sys


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Supervise dedicated game servers')
    parser.add_argument('--dir', default=None, help='work directory holding starter.json')
    parser.add_argument('--verbose', action='store_true', help='log debug messages')
    return parser.parse_args(argv)


def run_starter(argv=None) -> int:
    """Run the supervisor until shutdown or escalation; returns the exit code."""
    from starter.app import Starter
    from starter.config import get_config
    from starter.log import setup_logging
    from starter.starter_config import ConfigError

    args = parse_args(argv)
    cfg = get_config()
    work_dir = os.path.abspath(args.dir or cfg.STARTER_DIR)

    log_dir = os.path.join(work_dir, 'starterData', 'logs') if cfg.LOG_TO_FILE else None
    setup_logging(log_dir=log_dir, level=cfg.LOG_LEVEL, verbose=args.verbose)

    try:
        starter = Starter(work_dir, cfg=cfg)
    except ConfigError as e:
        print(str(e), file=sys.stderr)
        # a freshly written default config is not an error, the operator has to edit it
        return 0 if e.created else 2

    if not starter.start():
        return 0

    signal.signal(signal.SIGINT, lambda signum, frame: starter.shutdown())
    signal.signal(signal.SIGTERM, lambda signum, frame: starter.shutdown())

    return starter.run_forever()


def main():
    sys.exit(run_starter())


if __name__ == '__main__':
    main()
