"""Value types shared across the publish pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field


class Step(str, Enum):
    RESET = "reset-workspace"
    STAGE = "materialize-build-dir"
    FETCH = "fetch-inputs"
    RENDER = "render"
    PUBLISH = "publish-outputs"
    CLEANUP = "cleanup-workspace"


class State(str, Enum):
    START = "start"
    CLEANED = "cleaned"
    STAGED = "staged"
    FETCHED = "fetched"
    RENDERED = "rendered"
    PUBLISHED = "published"
    FINISHED = "finished"


# State reached once each step completes.
STEP_TRANSITIONS: dict[Step, State] = {
    Step.RESET: State.CLEANED,
    Step.STAGE: State.STAGED,
    Step.FETCH: State.FETCHED,
    Step.RENDER: State.RENDERED,
    Step.PUBLISH: State.PUBLISHED,
    Step.CLEANUP: State.FINISHED,
}


@dataclass(frozen=True)
class BuildLayout:
    workspace: Path
    build: Path
    data: Path
    cache: Path


@dataclass(frozen=True)
class StorageLocation:
    bucket: str
    prefix: str

    @property
    def uri(self) -> str:
        prefix = self.prefix.strip("/")
        return f"s3://{self.bucket}/{prefix}/" if prefix else f"s3://{self.bucket}/"


class BookConfig(BaseModel):
    """The parts of a bookdown project configuration the pipeline relies on."""

    book_filename: str | None = Field(default=None, description="Output basename")
    output_dir: str = Field(default="_book", description="Rendered site directory")
    rmd_files: list[str] = Field(
        default_factory=list, description="Documents in render order"
    )


class StepResult(BaseModel):
    step: Step
    duration_seconds: float
    ok: bool
    skipped: bool = False
    detail: str = ""


class RunReport(BaseModel):
    """What happened during one pipeline run."""

    states: list[State] = Field(default_factory=lambda: [State.START])
    steps: list[StepResult] = Field(default_factory=list)
    failed_step: Step | None = None

    @property
    def state(self) -> State:
        return self.states[-1]

    @property
    def succeeded(self) -> bool:
        return self.failed_step is None and self.state == State.FINISHED
