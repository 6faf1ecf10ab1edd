"""
Data models for a post-install run.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class PveVersion(BaseModel):
    """
    Proxmox VE release as reported by ``pveversion``.
    """

    major: int
    minor: int = 0
    raw: str = ""

    def __str__(self) -> str:
        return self.raw or f"{self.major}.{self.minor}"


class StepStatus(str, Enum):
    """
    Outcome of a single pipeline step.
    """

    SUCCESS = "success"
    RECOVERED = "recovered"
    FATAL = "fatal"
    SKIPPED = "skipped"


class PipelineState(str, Enum):
    """
    Position of the run in the pipeline.
    """

    START = "start"
    VERSION_DETECTED = "version_detected"
    UNSUPPORTED = "unsupported"
    ABORT = "abort"
    V8_RECONCILED = "v8_reconciled"
    V9_RECONCILED = "v9_reconciled"
    NAG_INSTALLED = "nag_installed"
    SERVICES_ENABLED = "services_enabled"
    UPDATED = "updated"
    DONE = "done"


class StepResult(BaseModel):
    """
    Result of one pipeline step.
    """

    title: str
    status: StepStatus
    message: str
    changed: list[str] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status in (StepStatus.SUCCESS, StepStatus.SKIPPED)


class RunReport(BaseModel):
    """
    Aggregated results of a post-install run.
    """

    version: Optional[PveVersion] = None
    state: PipelineState = PipelineState.START
    steps: list[StepResult] = Field(default_factory=list)
    history: list[PipelineState] = Field(default_factory=lambda: [PipelineState.START])

    def advance(self, state: PipelineState) -> None:
        """
        Move to the next pipeline state, keeping the states passed through.
        """
        self.state = state
        self.history.append(state)

    def add(self, result: StepResult) -> StepResult:
        self.steps.append(result)
        return result

    @property
    def recovered(self) -> list[StepResult]:
        return [s for s in self.steps if s.status == StepStatus.RECOVERED]

    @property
    def fatal(self) -> Optional[StepResult]:
        for step in self.steps:
            if step.status == StepStatus.FATAL:
                return step
        return None

    @property
    def changed_files(self) -> list[str]:
        return [path for step in self.steps for path in step.changed]

    @property
    def exit_code(self) -> int:
        return 1 if self.fatal is not None else 0
