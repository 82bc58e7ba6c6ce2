from .types import CacheConfig, ConfigError, JobConfig, StepConfig, ToolchainConfig

CLIPPY = """\
if cargo --list | grep -q xclippy; then
  cargo xclippy -Dwarnings
else
  cargo clippy -Dwarnings
fi"""


def rust_lints(packages: tuple[str, ...] | None = None) -> JobConfig:
    """Rustfmt, clippy and doctests."""
    return JobConfig(
        name="lints",
        packages=packages,
        toolchain=ToolchainConfig(
            channel="stable",
            components=("rustfmt", "clippy"),
        ),
        cache=CacheConfig(
            paths=("target",),
            key_files=("Cargo.lock", "rust-toolchain.toml"),
        ),
        steps=[
            StepConfig("Check Rustfmt Code Style", "cargo fmt --all -- --check"),
            StepConfig("Check clippy warnings", CLIPPY),
            StepConfig("Doctests", "cargo test --doc --workspace"),
        ],
    )


PRESETS = {
    "rust-lints": rust_lints,
}


def load_preset(name: str) -> JobConfig:
    if name not in PRESETS:
        known = ", ".join(sorted(PRESETS))
        raise ConfigError(f"Unknown preset '{name}', expected one of: {known}")
    return PRESETS[name]()
