# wireflow/cli/common.py
"""
Shared CLI plumbing: argument parser with wireflow exit codes and the
top-level error handler.
"""
import argparse
import asyncio
import sys
from typing import Awaitable, Callable, NoReturn

from wireflow.core.exceptions import WireflowError
from wireflow.orchestration.scheduler import ExitCode


class WireflowArgumentParser(argparse.ArgumentParser):
    """argparse exits 2 on bad usage; 2 means "pending input" here."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        print(f"! {message}", file=sys.stderr)
        sys.exit(ExitCode.USAGE_ERROR)


def run_cli(entry: Callable[[], Awaitable[int]], label: str) -> NoReturn:
    """Run an async entry point and exit with its code; wireflow errors exit 1."""
    try:
        code = asyncio.run(entry())
    except KeyboardInterrupt:
        print(f"\n! {label} interrupted", file=sys.stderr)
        sys.exit(130)
    except WireflowError as e:
        print(f"! {label} failed: {e.message}", file=sys.stderr)
        sys.exit(ExitCode.USAGE_ERROR)
    sys.exit(int(code))
