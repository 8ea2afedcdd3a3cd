"""Documentation generator collaborator."""

from __future__ import annotations

import subprocess
from collections import Counter
from pathlib import Path
from typing import Iterable, Protocol

from .config import SiteConfig
from .logging import get_logger
from .models import GenerationFailed, SourceDocument
from .process import CommandRunner, failure_detail, run_command


class Generator(Protocol):
    """Contract for tools that turn collected documents into an artifact tree."""

    def generate(
        self, documents: Iterable[SourceDocument], config: SiteConfig, output_dir: Path
    ) -> Path:
        """Build the site into ``output_dir`` and return it."""


class PoxyGenerator:
    """Runs the ``poxy`` documentation generator against the site root."""

    def __init__(
        self,
        runner: CommandRunner | None = None,
        *,
        executable: str = "poxy",
        verbose: bool = False,
    ) -> None:
        self._runner = runner or run_command
        self.executable = executable
        self.verbose = verbose
        self.logger = get_logger("generator")

    def generate(
        self, documents: Iterable[SourceDocument], config: SiteConfig, output_dir: Path
    ) -> Path:
        document_list = list(documents)
        kinds = Counter(document.kind.value for document in document_list)
        self.logger.info(
            "Generating %s from %d documents (%s)",
            config.name,
            len(document_list),
            ", ".join(f"{count} {kind}" for kind, count in sorted(kinds.items())) or "none",
        )
        if not document_list:
            self.logger.warning(
                "No documents matched the configured source or example patterns for %s",
                config.name,
            )
        for document in document_list:
            self.logger.debug("  %s [%s]", document.display_path, document.kind.value)

        args = [self.executable, str(config.root)]
        if self.verbose:
            args.append("--verbose")

        try:
            output = self._runner(args, cwd=config.root, env=None, capture_output=True)
        except FileNotFoundError as exc:
            raise GenerationFailed(
                f"{self.executable} not found", cause=f"{self.executable} executable not found"
            ) from exc
        except subprocess.CalledProcessError as exc:
            detail = failure_detail(exc)
            raise GenerationFailed(f"{self.executable} failed: {detail}", cause=detail) from exc

        for line in (output or "").splitlines():
            self.logger.debug("poxy: %s", line)

        if not output_dir.is_dir():
            cause = f"no output directory at {output_dir}"
            raise GenerationFailed(f"{self.executable} produced {cause}", cause=cause)
        return output_dir


__all__ = ["Generator", "PoxyGenerator"]
