"""Pipeline orchestration for the generate/deploy publishing flow."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional, Protocol

from .config import PublishConfig, SiteConfig
from .generator import Generator, PoxyGenerator
from .git.publisher import PagesPublisher
from .logging import get_logger
from .models import (
    DeploymentFailed,
    GenerationFailed,
    PipelineRun,
    SourceDocument,
    StageError,
    StageName,
    TriggerContext,
)


class Deployer(Protocol):
    """Contract for tools that publish an artifact directory."""

    def deploy(
        self,
        output_dir: Path,
        publish: PublishConfig,
        *,
        repo_root: Path,
        github: Optional[str] = None,
        credential: Optional[str] = None,
    ) -> None:
        """Publish ``output_dir`` to the configured target."""


class Orchestrator:
    """Runs ``generate`` then, when the trigger matches, ``deploy``.

    The two stages form a strict sequence: deploy has a single predecessor and
    never starts unless generation succeeded. Stage failures are recorded on
    the returned :class:`PipelineRun` rather than raised; an interrupt marks
    the active stage failed and propagates.
    """

    def __init__(
        self,
        generator: Generator | None = None,
        deployer: Deployer | None = None,
    ) -> None:
        self.generator = generator or PoxyGenerator()
        self.deployer = deployer or PagesPublisher()
        self.logger = get_logger("orchestrator")

    def run(
        self,
        documents: Iterable[SourceDocument],
        config: SiteConfig,
        trigger: TriggerContext,
        *,
        credential: Optional[str] = None,
    ) -> PipelineRun:
        run = PipelineRun(trigger=trigger)
        self.logger.info(
            "Starting pipeline for %s (branch: %s)", config.name, trigger.branch or "unknown"
        )
        try:
            output_dir = self._generate(run, documents, config)
            if output_dir is None:
                return run

            if not trigger.matches(config.publish.trigger_branch):
                self.logger.info(
                    "Branch %s does not match publish trigger %s; skipping deploy",
                    trigger.branch or "unknown",
                    config.publish.trigger_branch,
                )
                run.skip(StageName.DEPLOY)
                return run

            self._deploy(run, output_dir, config, credential)
            return run
        finally:
            run.finish()
            self._log_outcome(run)

    def _generate(
        self, run: PipelineRun, documents: Iterable[SourceDocument], config: SiteConfig
    ) -> Path | None:
        run.begin(StageName.GENERATE)
        self.logger.info("Stage %s: running", StageName.GENERATE.value)
        try:
            output_dir = self.generator.generate(documents, config, config.output_path)
        except KeyboardInterrupt:
            run.fail(StageName.GENERATE, GenerationFailed("interrupted", cause="interrupted"))
            raise
        except StageError as exc:
            run.fail(StageName.GENERATE, self._as_stage_error(exc, GenerationFailed))
            return None
        run.succeed(StageName.GENERATE)
        self.logger.info("Stage %s: succeeded", StageName.GENERATE.value)
        return output_dir

    def _deploy(
        self,
        run: PipelineRun,
        output_dir: Path,
        config: SiteConfig,
        credential: Optional[str],
    ) -> None:
        run.begin(StageName.DEPLOY)
        self.logger.info("Stage %s: running", StageName.DEPLOY.value)
        try:
            self.deployer.deploy(
                output_dir,
                config.publish,
                repo_root=config.root,
                github=config.github,
                credential=credential,
            )
        except KeyboardInterrupt:
            run.fail(StageName.DEPLOY, DeploymentFailed("interrupted", cause="interrupted"))
            raise
        except StageError as exc:
            run.fail(StageName.DEPLOY, self._as_stage_error(exc, DeploymentFailed))
            return
        run.succeed(StageName.DEPLOY)
        self.logger.info("Stage %s: succeeded", StageName.DEPLOY.value)

    @staticmethod
    def _as_stage_error(exc: StageError, expected: type[StageError]) -> StageError:
        if isinstance(exc, expected):
            return exc
        wrapped = expected(str(exc), cause=exc.cause)
        wrapped.__cause__ = exc
        return wrapped

    def _log_outcome(self, run: PipelineRun) -> None:
        summary = ", ".join(f"{stage.value}={run.outcomes[stage].value}" for stage in run.stages)
        self.logger.info("Pipeline %s: %s", "finished" if run.succeeded else "failed", summary)


__all__ = ["Deployer", "Orchestrator"]
