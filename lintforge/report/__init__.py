from .reporter import build_job_result, exit_code_for, render_json, render_text
from .types import JobResult, Outcome

__all__ = [
    "JobResult",
    "Outcome",
    "build_job_result",
    "exit_code_for",
    "render_json",
    "render_text",
]
