#!/usr/bin/env python3
"""
Campus Connect test runner.

Usage:
    python run_tests.py                        # whole suite
    python run_tests.py --unit                 # pure logic (time slots, game engines, broker, seeds)
    python run_tests.py --integration          # HTTP and websocket flows
    python run_tests.py -k mutual_free_time    # keyword filter
    python run_tests.py tests/test_chat.py     # selected files
    python run_tests.py --cov
"""

import argparse
import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).parent


def build_command(options: argparse.Namespace) -> list:
    cmd = [sys.executable, "-m", "pytest", *(options.paths or ["tests"]), "--tb=short"]
    cmd.append("-vv" if options.verbose else "-v")

    if options.keyword:
        cmd += ["-k", options.keyword]
    markers = [name for name in ("unit", "integration") if getattr(options, name)]
    if markers:
        cmd += ["-m", " or ".join(markers)]
    if options.cov:
        cmd += ["--cov=campus_connect", "--cov-report=term-missing", "--cov-report=html"]
    if options.pdb:
        cmd.append("--pdb")
    return cmd


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the Campus Connect test suite")
    parser.add_argument("paths", nargs="*", help="Test files or directories")
    parser.add_argument("-k", "--keyword", help="Only tests matching this expression")
    parser.add_argument("--unit", action="store_true", help="Tests marked unit")
    parser.add_argument("--integration", action="store_true", help="Tests marked integration")
    parser.add_argument("--cov", action="store_true", help="Collect coverage for campus_connect")
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("--pdb", action="store_true", help="Debugger on first failure")

    cmd = build_command(parser.parse_args())
    print(f"Running: {' '.join(cmd)}")
    return subprocess.run(cmd, cwd=ROOT).returncode


if __name__ == "__main__":
    sys.exit(main())
