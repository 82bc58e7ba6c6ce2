from .loader import build_job_config, load_job, packages_from_env, split_packages
from .presets import PRESETS, load_preset
from .types import (
    CacheConfig,
    ConfigError,
    JobConfig,
    StepConfig,
    ToolchainConfig,
    UnsupportedConfigFormatError,
)

__all__ = [
    "load_job",
    "build_job_config",
    "split_packages",
    "packages_from_env",
    "load_preset",
    "PRESETS",
    "JobConfig",
    "StepConfig",
    "ToolchainConfig",
    "CacheConfig",
    "ConfigError",
    "UnsupportedConfigFormatError",
]
