#!/usr/bin/env python3
"""
Android Emulator Boot - CLI Entry Point
"""

import argparse
import os
import sys

from cli.app import EXIT_INVALID_CONFIG, run_cli
from cli.logging_setup import setup_logging
from emuboot.config import DEFAULT_GPU, DEFAULT_TIMEOUT, BootSettings, parse_flags, resolve_android_home


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        raise SystemExit(f"{name} must be a number, got {value!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Boot an Android emulator for CI and wait until it is ready",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --avd pixel_api_34
  %(prog)s --avd pixel_api_34 --timeout 600 --max-attempts 3
  %(prog)s --avd pixel_api_34 --start-flags "-memory 4096 -cores 4"
        """
    )

    parser.add_argument(
        '--avd',
        default=os.environ.get('EMULATOR_ID'),
        help='Name of the AVD to boot (env: EMULATOR_ID)'
    )

    parser.add_argument(
        '--android-home',
        default=None,
        help='Android SDK root (default: ANDROID_HOME, then ANDROID_SDK_ROOT, then PATH)'
    )

    parser.add_argument(
        '--timeout',
        type=float,
        default=_env_float('EMULATOR_TIMEOUT', DEFAULT_TIMEOUT),
        help='Overall boot deadline in seconds, across all attempts (env: EMULATOR_TIMEOUT)'
    )

    parser.add_argument(
        '--max-attempts',
        type=int,
        default=int(_env_float('EMULATOR_MAX_ATTEMPTS', 5)),
        help='Maximum emulator launches before giving up (env: EMULATOR_MAX_ATTEMPTS)'
    )

    parser.add_argument(
        '--poll-interval',
        type=float,
        default=_env_float('EMULATOR_POLL_INTERVAL', 5.0),
        help='Seconds between device list polls (env: EMULATOR_POLL_INTERVAL)'
    )

    parser.add_argument(
        '--start-flags',
        default=os.environ.get('EMULATOR_START_FLAGS', ''),
        help='Extra emulator flags, shell-quoted (env: EMULATOR_START_FLAGS)'
    )

    parser.add_argument(
        '--gpu',
        default=os.environ.get('EMULATOR_GPU', DEFAULT_GPU),
        help='GPU backend passed to -gpu; empty lets the emulator decide (env: EMULATOR_GPU)'
    )

    parser.add_argument(
        '--window',
        action='store_true',
        help='Show the emulator window, audio and boot animation'
    )

    parser.add_argument(
        '--keep-data',
        action='store_true',
        help='Do not pass -wipe-data'
    )

    parser.add_argument(
        '--snapshot',
        action='store_true',
        help='Allow quick-boot snapshots (omit -no-snapshot)'
    )

    parser.add_argument(
        '--output-file',
        default=os.environ.get('EMULATOR_OUTPUT_FILE'),
        help='File to append EMULATOR_SERIAL=<serial> to on success (env: EMULATOR_OUTPUT_FILE)'
    )

    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable debug logging'
    )

    parser.add_argument(
        '-v', '--version',
        action='version',
        version='%(prog)s 1.0.0'
    )

    return parser


def settings_from_args(args: argparse.Namespace) -> BootSettings:
    return BootSettings(
        avd_name=args.avd or "",
        android_home=resolve_android_home(args.android_home),
        timeout=args.timeout,
        max_attempts=args.max_attempts,
        poll_interval=args.poll_interval,
        start_flags=parse_flags(args.start_flags),
        gpu=args.gpu or None,
        headless=not args.window,
        wipe_data=not args.keep_data,
        snapshot=args.snapshot,
        output_file=args.output_file
    )


def main():
    parser = build_parser()
    args = parser.parse_args()
    setup_logging(verbose=args.verbose)

    try:
        settings = settings_from_args(args)
    except ValueError as e:
        parser.print_usage(sys.stderr)
        print(f"Invalid start flags: {e}", file=sys.stderr)
        sys.exit(EXIT_INVALID_CONFIG)

    try:
        sys.exit(run_cli(settings))
    except KeyboardInterrupt:
        print("\n\nInterrupted by user.")
        sys.exit(130)


if __name__ == '__main__':
    main()
