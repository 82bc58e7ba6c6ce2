from __future__ import annotations

import argparse

DEFAULT_CONFIG = "lintforge.yml"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lintforge")

    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--config",
        default=None,
        help=f"Path to job config file (default: {DEFAULT_CONFIG})",
    )
    source.add_argument(
        "--preset",
        default=None,
        help="Use a built-in job instead of a config file (e.g. rust-lints)",
    )

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug output",
    )
    verbosity.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only log warnings and errors",
    )

    packages = argparse.ArgumentParser(add_help=False)
    packages.add_argument(
        "--packages",
        default=None,
        help="Whitespace-separated OS packages to install before the job",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        required=True,
    )

    # run
    run = subparsers.add_parser("run", parents=[packages], help="Run the job")
    run.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Abort the whole job after this many seconds",
    )
    run.add_argument(
        "--workdir",
        default=".",
        help="Directory the job runs in",
    )
    run.add_argument(
        "--json",
        action="store_true",
        help="Print the job result as JSON",
    )
    run.add_argument(
        "--no-toolchain",
        action="store_true",
        help="Skip toolchain installation",
    )
    run.add_argument(
        "--no-cache",
        action="store_true",
        help="Do not restore or save the dependency cache",
    )

    # steps
    subparsers.add_parser("steps", help="List steps")

    # plan
    subparsers.add_parser(
        "plan", parents=[packages], help="Show what a run would do"
    )

    return parser
