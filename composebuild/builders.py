"""Build strategies for services with a source tree.

The first strategy whose ``applies`` check matches the source directory wins:

* ``build.sh`` at the root of the tree, run with the orchestration flag set;
* a ``Makefile``, run with ``make`` and the same flag;
* ``docker build`` against the default ``Dockerfile``.

Whatever ran, the expected ``image:tag`` must exist afterwards or the build
counts as failed.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping, Optional, Sequence

from .models import BuildOutcome, ServiceDescriptor
from .runtime import DockerRuntime
from .utils import ComposeBuildError, Runner, run_command

logger = logging.getLogger(__name__)

# Sub-builds see this so they can skip prompting for a nested orchestration.
GLUE_ENV = {"BUILD_SH_GLUE": "true"}


class BuildFailure(ComposeBuildError):
    """Raised when a build strategy fails or does not produce the expected tag."""


class BuildStrategy:
    name = "abstract"

    def applies(self, path: Path) -> bool:
        raise NotImplementedError

    def run(self, path: Path, image: str, tag: str) -> int:
        raise NotImplementedError


class ScriptStrategy(BuildStrategy):
    name = "build.sh"

    def __init__(self, runner: Runner = run_command, context: Mapping[str, str] = GLUE_ENV) -> None:
        self.runner = runner
        self.context = dict(context)

    def applies(self, path: Path) -> bool:
        return (path / "build.sh").is_file()

    def run(self, path: Path, image: str, tag: str) -> int:
        return self.runner(["./build.sh"], cwd=path, env=self.context, check=False).returncode


class MakeStrategy(BuildStrategy):
    name = "make"

    def __init__(
        self,
        runner: Runner = run_command,
        context: Mapping[str, str] = GLUE_ENV,
        command: Sequence[str] = ("make",),
    ) -> None:
        self.runner = runner
        self.context = dict(context)
        self.command = list(command)

    def applies(self, path: Path) -> bool:
        return (path / "Makefile").is_file()

    def run(self, path: Path, image: str, tag: str) -> int:
        return self.runner(self.command, cwd=path, env=self.context, check=False).returncode


class DockerfileStrategy(BuildStrategy):
    name = "docker build"

    def __init__(self, runtime: DockerRuntime) -> None:
        self.runtime = runtime

    def applies(self, path: Path) -> bool:
        return True

    def run(self, path: Path, image: str, tag: str) -> int:
        return self.runtime.build(path, f"{image}:{tag}")


class StrategySelector:
    """Picks a build strategy for a source tree, runs it and verifies the artifact."""

    def __init__(self, runtime: DockerRuntime, runner: Optional[Runner] = None) -> None:
        runner = runner or runtime.runner
        self.runtime = runtime
        self.strategies = [
            ScriptStrategy(runner),
            MakeStrategy(runner),
            DockerfileStrategy(runtime),
        ]

    def select(self, path: Path) -> BuildStrategy:
        return next(strategy for strategy in self.strategies if strategy.applies(path))

    def build(self, service: ServiceDescriptor, path: Path, tag: str) -> BuildOutcome:
        reference = service.tagged(tag)
        strategy = self.select(path)
        logger.info("%s: building %s with %s", service.name, reference, strategy.name)
        try:
            returncode = strategy.run(path, service.image, tag)
            if returncode != 0:
                raise BuildFailure(f"{strategy.name} exited with status {returncode}")
            if not self.runtime.image_exists(reference):
                raise BuildFailure(f"{strategy.name} did not produce {reference}")
        except (BuildFailure, OSError) as exc:
            logger.error("%s: %s", service.name, exc)
            return BuildOutcome.failed(service, reference, str(exc))
        return BuildOutcome(service, True, reference, action="built")
