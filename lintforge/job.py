from __future__ import annotations

import logging
import tarfile
from pathlib import Path
from typing import Mapping

from lintforge.cache import DirectoryCache, JobCache, NullCache
from lintforge.config import JobConfig
from lintforge.executor import (
    SKIP_ABORTED,
    TIMEOUT_EXIT_CODE,
    CommandRunner,
    Deadline,
    JobContext,
    JobTimeoutError,
    RunResult,
    ShellRunner,
    Step,
    StepExecutor,
    condition_for,
)
from lintforge.provision import Provisioner
from lintforge.provision.provisioner import STEP_NAME as PROVISION_STEP
from lintforge.report import JobResult, build_job_result
from lintforge.toolchain import ToolchainInstaller
from lintforge.toolchain.installer import STEP_NAME as TOOLCHAIN_STEP

logger = logging.getLogger(__name__)


def build_steps(config: JobConfig) -> list[Step]:
    return [
        Step(
            name=step.name,
            command=step.run,
            run_condition=condition_for(step),
            env=dict(step.env),
            working_dir=step.working_dir,
        )
        for step in config.steps
    ]


def default_cache(config: JobConfig) -> JobCache:
    if config.cache is None or not config.cache.enabled:
        return NullCache()
    salt = config.toolchain.channel if config.toolchain is not None else ""
    return DirectoryCache(config.cache, job_name=config.name, salt=salt)


class Job:
    """
    One run of a job: provision, install the toolchain, restore the cache,
    run the steps, and save the cache when everything passed.

    Every collaborator is owned by this job instance. ProvisionError and
    ToolchainError propagate from run() before any step has started.
    """

    def __init__(
        self,
        config: JobConfig,
        *,
        workdir: str | Path = ".",
        runner: CommandRunner | None = None,
        provisioner: Provisioner | None = None,
        installer: ToolchainInstaller | None = None,
        cache: JobCache | None = None,
        inputs: Mapping[str, str] | None = None,
        env: Mapping[str, str] | None = None,
    ):
        self.config = config
        self.workdir = Path(workdir).expanduser().resolve()
        self.runner = runner or ShellRunner()
        self.provisioner = provisioner or Provisioner(self.runner, config.package_manager)
        self.installer = installer or ToolchainInstaller(self.runner)
        self.cache = cache if cache is not None else default_cache(config)
        self.packages = tuple(config.packages or ())
        self.inputs = {"packages": " ".join(self.packages), **(inputs or {})}
        self.env = dict(env or {})

    def steps(self) -> list[Step]:
        return build_steps(self.config)

    def run(self) -> JobResult:
        if not self.workdir.is_dir():
            raise FileNotFoundError(f"Working directory not found: {self.workdir}")

        deadline = Deadline(self.config.timeout_s)
        context = JobContext(
            workdir=self.workdir,
            runner=self.runner,
            inputs=self.inputs,
            env=self.env,
            deadline=deadline,
        )
        logger.info("job %s: %d step(s) in %s", self.config.name, len(self.config), self.workdir)

        setup: list[RunResult] = []
        phase = PROVISION_STEP
        try:
            if self.packages:
                provisioned = self.provisioner.provision(
                    self.packages, workdir=self.workdir, deadline=deadline
                )
                if provisioned is not None:
                    setup.append(provisioned)

            if self.config.toolchain is not None:
                phase = TOOLCHAIN_STEP
                setup.append(
                    self.installer.install(
                        self.config.toolchain, workdir=self.workdir, deadline=deadline
                    )
                )
        except JobTimeoutError as exc:
            logger.error("%s", exc)
            setup.append(RunResult(phase, TIMEOUT_EXIT_CODE, exc.stdout, exc.stderr))
            setup.extend(RunResult.skip(step.name, SKIP_ABORTED) for step in self.config)
            return build_job_result(self.config.name, setup, timeout=exc)

        self._restore_cache()

        execution = StepExecutor(context).run(self.steps())
        job_result = build_job_result(
            self.config.name,
            setup + execution.results,
            failure=execution.failure,
            timeout=execution.timeout,
        )

        if job_result.success:
            self._save_cache()

        logger.info("job %s: %s", self.config.name, job_result.outcome.value)
        return job_result

    def _restore_cache(self) -> None:
        try:
            hit = self.cache.restore(self.workdir)
        except (OSError, tarfile.TarError, ValueError) as exc:
            logger.warning("cache restore failed: %s", exc)
            return
        logger.info("cache: %s", hit.reason)

    def _save_cache(self) -> None:
        try:
            key = self.cache.save(self.workdir)
        except (OSError, tarfile.TarError, ValueError) as exc:
            logger.warning("cache save failed: %s", exc)
            return
        if key is not None:
            logger.info("cache: saved (%s)", key[:12])
