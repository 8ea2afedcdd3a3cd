"""Subprocess runner shared by the external collaborators."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Callable, Iterable, Mapping

CommandRunner = Callable[..., str]


def run_command(
    args: Iterable[str],
    *,
    cwd: Path,
    env: Mapping[str, str] | None = None,
    capture_output: bool = False,
) -> str:
    """Run ``args`` to completion, raising ``CalledProcessError`` on a non-zero exit."""
    completed = subprocess.run(
        list(args),
        cwd=str(cwd),
        env=dict(env) if env is not None else None,
        check=True,
        text=True,
        capture_output=capture_output,
    )
    if capture_output:
        return completed.stdout
    return ""


def failure_detail(exc: subprocess.CalledProcessError) -> str:
    """Return a one-line description of a failed command."""
    output = (exc.stderr or exc.stdout or "").strip()
    last_line = output.splitlines()[-1] if output else ""
    detail = f"exit code {exc.returncode}"
    if last_line:
        detail += f" ({last_line})"
    return detail


__all__ = ["CommandRunner", "failure_detail", "run_command"]
