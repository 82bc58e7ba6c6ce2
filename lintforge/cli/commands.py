from __future__ import annotations

import argparse
import logging
import sys

from lintforge.config import (
    ConfigError,
    JobConfig,
    load_job,
    load_preset,
    packages_from_env,
    split_packages,
)
from lintforge.executor import describe_condition
from lintforge.job import Job, build_steps
from lintforge.provision import ProvisionError, install_commands
from lintforge.report import exit_code_for, render_json, render_text
from lintforge.toolchain import ToolchainError, rustup_commands

from .args import DEFAULT_CONFIG, build_parser

EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


def run_cli(argv: list[str] | None = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
        _configure_logging(args)

        match args.command:
            case "run":
                return cmd_run(args)
            case "steps":
                return cmd_steps(args)
            case "plan":
                return cmd_plan(args)
            case _:
                return EXIT_USAGE

    except (ConfigError, ProvisionError, ToolchainError, FileNotFoundError) as exc:
        print(str(exc), file=sys.stderr)
        output = getattr(exc, "output", b"")
        if output:
            print(output.decode("utf-8", errors="replace"), file=sys.stderr)
        return EXIT_USAGE

    except KeyboardInterrupt:
        return EXIT_INTERRUPTED


def cmd_run(args: argparse.Namespace) -> int:
    config = _load(args).with_overrides(
        timeout_s=args.timeout,
        toolchain=not args.no_toolchain,
        cache=not args.no_cache,
    )
    job_result = Job(config, workdir=args.workdir).run()

    if args.json:
        print(render_json(job_result))
    else:
        for line in render_text(job_result):
            print(line)

    return exit_code_for(job_result)


def cmd_steps(args: argparse.Namespace) -> int:
    config = _load(args)
    for name in config.step_names():
        print(name)
    return 0


def cmd_plan(args: argparse.Namespace) -> int:
    config = _load(args)

    if config.packages:
        for command in install_commands(config.package_manager, config.packages):
            print(f"provision: {command}")

    if config.toolchain is not None:
        for command in rustup_commands(config.toolchain):
            print(f"toolchain: {command}")

    if config.cache is not None and config.cache.enabled and config.cache.paths:
        paths = " ".join(config.cache.paths)
        keys = " ".join(config.cache.key_files) or "-"
        print(f"cache: {paths} (key: {keys})")

    for step in build_steps(config):
        print(f"step: {step.name} [{describe_condition(step.run_condition)}]")

    return 0


def _load(args: argparse.Namespace) -> JobConfig:
    if args.preset is not None:
        config = load_preset(args.preset)
    else:
        config = load_job(args.config or DEFAULT_CONFIG)

    packages = getattr(args, "packages", None)
    if packages is not None:
        return config.with_overrides(packages=split_packages(packages))
    if config.packages is None:
        return config.with_overrides(packages=packages_from_env())
    return config


def _configure_logging(args: argparse.Namespace) -> None:
    level = logging.INFO
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )
