from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from .utils import ComposeBuildError, Runner, run_command

logger = logging.getLogger(__name__)


class PullFailure(ComposeBuildError):
    """Raised when an image cannot be pulled from its registry."""


class DockerRuntime:
    """Container runtime operations: inspect, build and pull."""

    def __init__(self, command: Sequence[str] = ("docker",), runner: Runner = run_command) -> None:
        self.command = list(command)
        self.runner = runner

    def image_exists(self, reference: str) -> bool:
        result = self.runner([*self.command, "inspect", reference], check=False)
        return result.returncode == 0

    def build(self, path: Path, reference: str) -> int:
        result = self.runner([*self.command, "build", "-t", reference, "."], cwd=path, check=False)
        return result.returncode

    def pull(self, reference: str) -> None:
        result = self.runner([*self.command, "pull", reference], check=False)
        if result.returncode != 0:
            raise PullFailure(f"docker pull {reference} failed: {result.stderr.strip()}")


class ComposeEngine:
    """Brings a composition up using the base and override manifests in ``project_dir``."""

    def __init__(self, command: Sequence[str] = ("docker-compose",), runner: Runner = run_command) -> None:
        self.command = list(command)
        self.runner = runner

    def up(self, project_dir: Path, *, detach: bool = True) -> None:
        args = [*self.command, "up"]
        if detach:
            args.append("-d")
        logger.info("bringing stack up in %s", project_dir)
        self.runner(args, cwd=project_dir)
