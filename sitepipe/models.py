"""Core data models shared across sitepipe components."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional


class DocumentKind(str, Enum):
    """Classification of a collected input file."""

    EXAMPLE = "example"
    DOCUMENTATION = "documentation"


@dataclass(frozen=True)
class SourceDocument:
    """A resolved input file handed to the documentation generator."""

    path: Path
    display_path: str
    kind: DocumentKind


class StageName(str, Enum):
    GENERATE = "generate"
    DEPLOY = "deploy"


class StageStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class StageError(RuntimeError):
    """Raised when a pipeline stage's collaborator reports failure."""

    stage: StageName

    def __init__(self, message: str, *, cause: str | None = None) -> None:
        super().__init__(message)
        self.cause = cause or message

    def summary(self) -> str:
        return f"{self.stage.value} failed: {self.cause}"


class GenerationFailed(StageError):
    stage = StageName.GENERATE


class DeploymentFailed(StageError):
    stage = StageName.DEPLOY


@dataclass(frozen=True)
class TriggerContext:
    """Runtime condition that decides whether the deploy stage runs."""

    branch: Optional[str] = None

    def matches(self, trigger_branch: str) -> bool:
        return bool(self.branch) and self.branch == trigger_branch


@dataclass
class PipelineRun:
    """Ephemeral record of one generate/deploy execution.

    Owned by the orchestrator for the lifetime of a single run; nothing here is
    persisted.
    """

    trigger: TriggerContext
    stages: List[StageName] = field(
        default_factory=lambda: [StageName.GENERATE, StageName.DEPLOY]
    )
    outcomes: Dict[StageName, StageStatus] = field(default_factory=dict)
    current_stage: Optional[StageName] = None
    error: Optional[StageError] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        for stage in self.stages:
            self.outcomes.setdefault(stage, StageStatus.PENDING)

    def begin(self, stage: StageName) -> None:
        self.current_stage = stage
        self.outcomes[stage] = StageStatus.RUNNING

    def succeed(self, stage: StageName) -> None:
        self.outcomes[stage] = StageStatus.SUCCEEDED

    def fail(self, stage: StageName, error: StageError) -> None:
        self.outcomes[stage] = StageStatus.FAILED
        self.error = error

    def skip(self, stage: StageName) -> None:
        self.outcomes[stage] = StageStatus.SKIPPED

    def finish(self) -> None:
        """Mark the run complete.

        Stages that never started are recorded as skipped; a stage left running
        was aborted and counts as failed.
        """
        for stage in self.stages:
            if self.outcomes[stage] is StageStatus.PENDING:
                self.outcomes[stage] = StageStatus.SKIPPED
            elif self.outcomes[stage] is StageStatus.RUNNING:
                self.outcomes[stage] = StageStatus.FAILED
        self.current_stage = None
        self.finished_at = datetime.now(UTC)

    @property
    def succeeded(self) -> bool:
        return self.error is None and all(
            status in (StageStatus.SUCCEEDED, StageStatus.SKIPPED)
            for status in self.outcomes.values()
        )

    @property
    def deployed(self) -> bool:
        return self.outcomes.get(StageName.DEPLOY) is StageStatus.SUCCEEDED
