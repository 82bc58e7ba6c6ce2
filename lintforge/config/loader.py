import json
import os
import tomllib
from pathlib import Path
from typing import Any, Mapping

import yaml

from .types import (
    CacheConfig,
    ConfigError,
    JobConfig,
    StepConfig,
    ToolchainConfig,
    UnsupportedConfigFormatError,
)

PACKAGES_ENV_VAR = "LINTFORGE_PACKAGES"

_JOB_KEYS = {
    "name",
    "packages",
    "package_manager",
    "toolchain",
    "steps",
    "timeout",
    "cache",
}
_STEP_KEYS = {"name", "run", "when", "when_input", "env", "working_dir"}
_TOOLCHAIN_KEYS = {"channel", "components", "profile"}
_CACHE_KEYS = {"enabled", "directory", "paths", "key_files", "keep"}


def load_job(path: str | Path) -> JobConfig:
    pure_path = Path(path).expanduser().resolve()

    if not pure_path.exists():
        raise ConfigError(f"Config file not found: {pure_path}")

    if not pure_path.is_file():
        raise ConfigError(f"Config path is not a file: {pure_path}")

    fmt = _detect_format(pure_path)
    raw_file = _parse_file(pure_path, fmt)
    job = build_job_config(raw_file, default_name=pure_path.stem)
    return job


def split_packages(raw: str | None) -> tuple[str, ...]:
    """Turn a whitespace-separated package string into unique names, in order."""
    if raw is None:
        return ()
    return tuple(dict.fromkeys(raw.split()))


def packages_from_env(environ: Mapping[str, str] | None = None) -> tuple[str, ...]:
    environ = os.environ if environ is None else environ
    return split_packages(environ.get(PACKAGES_ENV_VAR))


def _detect_format(path: Path) -> str:
    fmt = path.suffix
    match fmt:
        case ".yaml" | ".yml":
            return "yaml"
        case ".toml":
            return "toml"
        case ".json":
            return "json"
        case _:
            raise UnsupportedConfigFormatError(
                f"Non supported file extension: {fmt}\n Expected format: .yml/.yaml, .toml, .json"
            )


def _parse_file(path: Path, fmt: str) -> Mapping[str, Any]:
    match fmt:
        case "yaml":
            return _parse_yaml(path)
        case "toml":
            return _parse_toml(path)
        case "json":
            return _parse_json(path)
        case _:
            raise AssertionError("Unreachable")


def _parse_yaml(path: Path) -> Mapping[str, Any]:
    try:
        raw_file = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"{path}: invalid YAML") from exc

    if not isinstance(raw_file, Mapping):
        raise ConfigError(
            f"{path}: YAML parsed successfully but top-level value is not an object: {type(raw_file)}"
        )

    return raw_file


def _parse_toml(path: Path) -> Mapping[str, Any]:
    try:
        raw_file = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"{path}: invalid TOML") from exc

    return raw_file


def _parse_json(path: Path) -> Mapping[str, Any]:
    try:
        raw_file = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"{path}: invalid JSON") from exc

    if not isinstance(raw_file, Mapping):
        raise ConfigError(
            f"{path}: JSON parsed successfully but top-level value is not an object: {type(raw_file)}"
        )

    return raw_file


def build_job_config(raw: Mapping[str, Any], *, default_name: str = "job") -> JobConfig:
    _reject_unknown("job", raw, _JOB_KEYS)

    name = default_name
    if "name" in raw:
        name = _non_empty_str("job", "name", raw["name"])

    if "steps" not in raw:
        raise ConfigError("Missing 'steps' field")

    if not isinstance(raw["steps"], list):
        raise ConfigError(f"'steps' must be a list, got {type(raw['steps'])}")

    if len(raw["steps"]) < 1:
        raise ConfigError("There must be at least one step in the config file")

    steps: list[StepConfig] = []
    seen: set[str] = set()
    for index, fields in enumerate(raw["steps"]):
        if not isinstance(fields, Mapping):
            raise ConfigError(f"steps[{index}] must be a mapping")

        step = _build_step_config(index, fields)
        if step.name in seen:
            raise ConfigError(f"Duplicate step name after normalization: {step.name}")
        seen.add(step.name)
        steps.append(step)

    packages: tuple[str, ...] | None = None
    if raw.get("packages") is not None:
        packages = _build_packages(raw["packages"])

    package_manager = "apt"
    if "package_manager" in raw:
        package_manager = _non_empty_str("job", "package_manager", raw["package_manager"])

    toolchain = None
    if raw.get("toolchain") is not None:
        toolchain = _build_toolchain_config(raw["toolchain"])

    timeout_s = None
    if raw.get("timeout") is not None:
        timeout_s = _build_timeout(raw["timeout"])

    cache = None
    if raw.get("cache") is not None:
        cache = _build_cache_config(raw["cache"])

    return JobConfig(
        name=name,
        steps=steps,
        packages=packages,
        package_manager=package_manager,
        toolchain=toolchain,
        timeout_s=timeout_s,
        cache=cache,
    )


def _build_step_config(index: int, fields: Mapping[str, Any]) -> StepConfig:
    where = f"steps[{index}]"
    _reject_unknown(where, fields, _STEP_KEYS)

    if "name" not in fields:
        raise ConfigError(f"{where}: missing 'name'")
    name = _non_empty_str(where, "name", fields["name"])
    where = f"step '{name}'"

    if "run" not in fields:
        raise ConfigError(f"{where}: missing 'run'")
    run = _non_empty_str(where, "run", fields["run"])

    when = None
    if fields.get("when") is not None:
        when = _non_empty_str(where, "when", fields["when"])

    when_input = None
    if fields.get("when_input") is not None:
        when_input = _non_empty_str(where, "when_input", fields["when_input"])

    env = {}
    if "env" in fields:
        if not isinstance(fields["env"], Mapping):
            raise ConfigError(f"{where}: Env should be a mapping")

        for key, item in fields["env"].items():
            if not isinstance(key, str):
                raise ConfigError(f"{where}: {key} should be a string")

            if len(key.strip()) < 1:
                raise ConfigError(f"{where}: A key can't be empty")

            if not isinstance(item, str):
                raise ConfigError(f"{where}: {item} should be a string")

            env[key.strip()] = item

    working_dir = None
    if "working_dir" in fields:
        working_dir = _non_empty_str(where, "working_dir", fields["working_dir"])

    return StepConfig(name, run, when, when_input, env, working_dir)


def _build_packages(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        return split_packages(value)

    if not isinstance(value, list):
        raise ConfigError("'packages' must be a string or a list of strings")

    for item in value:
        if not isinstance(item, str):
            raise ConfigError(f"{item} should be a string in the package list")

    return split_packages(" ".join(value))


def _build_toolchain_config(value: Any) -> ToolchainConfig:
    if isinstance(value, str):
        return ToolchainConfig(channel=_non_empty_str("toolchain", "channel", value))

    if not isinstance(value, Mapping):
        raise ConfigError("'toolchain' must be a mapping or a channel name")

    _reject_unknown("toolchain", value, _TOOLCHAIN_KEYS)
    toolchain = ToolchainConfig()

    if "channel" in value:
        toolchain.channel = _non_empty_str("toolchain", "channel", value["channel"])

    if "components" in value:
        toolchain.components = _str_list("toolchain", "components", value["components"])

    if "profile" in value:
        toolchain.profile = _non_empty_str("toolchain", "profile", value["profile"])

    return toolchain


def _build_cache_config(value: Any) -> CacheConfig:
    if not isinstance(value, Mapping):
        raise ConfigError("'cache' must be a mapping")

    _reject_unknown("cache", value, _CACHE_KEYS)
    cache = CacheConfig()

    if "enabled" in value:
        if not isinstance(value["enabled"], bool):
            raise ConfigError("cache: 'enabled' should be a boolean")
        cache.enabled = value["enabled"]

    if "directory" in value:
        cache.directory = _non_empty_str("cache", "directory", value["directory"])

    if "paths" in value:
        cache.paths = _str_list("cache", "paths", value["paths"])

    if "key_files" in value:
        cache.key_files = _str_list("cache", "key_files", value["key_files"])

    if "keep" in value:
        keep = value["keep"]
        if isinstance(keep, bool) or not isinstance(keep, int) or keep < 1:
            raise ConfigError("cache: 'keep' should be a positive integer")
        cache.keep = keep

    return cache


def _build_timeout(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"'timeout' should be a number of seconds, got {type(value)}")

    if value <= 0:
        raise ConfigError("'timeout' should be greater than zero")

    return float(value)


def _reject_unknown(where: str, fields: Mapping[str, Any], allowed: set[str]) -> None:
    for field in fields.keys():
        if field not in allowed:
            raise ConfigError(f"{where}: Can't process: {field}")


def _non_empty_str(where: str, key: str, value: Any) -> str:
    if not isinstance(value, str):
        raise ConfigError(f"{where}: The {key} should be a string")

    if len(value.strip()) < 1:
        raise ConfigError(f"{where}: '{key}' can't be empty")

    return value.strip()


def _str_list(where: str, key: str, value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        value = value.replace(",", " ").split()

    if not isinstance(value, list):
        raise ConfigError(f"{where}: '{key}' should be a list of strings")

    items: list[str] = []
    for item in value:
        items.append(_non_empty_str(where, key, item))

    return tuple(dict.fromkeys(items))
