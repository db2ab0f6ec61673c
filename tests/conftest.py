from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Set

import pytest

from composebuild.config import Settings
from composebuild.pipeline import ComposePipeline, PipelineContext
from composebuild.runtime import ComposeEngine, DockerRuntime
from composebuild.utils import CommandError
from composebuild.vcs import GitClient

MANIFEST = """
services:
  web:
    image: acme/web
    src: ./web
  cache:
    image: redis
"""


class FakeRunner:
    """Stands in for git, docker, make and build scripts."""

    def __init__(self) -> None:
        self.calls: List[dict] = []
        self.images: Set[str] = set()
        self.revisions: Dict[str, str] = {}
        self.build_exit: Dict[str, int] = {}
        self.produces: Dict[str, str] = {}
        self.pull_failures: Set[str] = set()
        self.outputs: Dict[tuple, str] = {}

    def commands(self) -> List[List[str]]:
        return [call["command"] for call in self.calls]

    def __call__(self, command, *, cwd=None, env=None, check=True):
        command = list(command)
        key = str(Path(cwd)) if cwd else None
        self.calls.append({"command": command, "cwd": key, "env": dict(env or {})})
        returncode, stdout, stderr = self._dispatch(command, key)
        if check and returncode != 0:
            raise CommandError(command, returncode, stdout, stderr)
        return subprocess.CompletedProcess(command, returncode, stdout, stderr)

    def _dispatch(self, command: List[str], cwd: Optional[str]):
        if command[:4] == ["git", "rev-parse", "--short", "HEAD"]:
            tag = self.revisions.get(cwd or "")
            if tag is None:
                return 128, "", "fatal: not a git repository"
            return 0, tag + "\n", ""
        if command[:2] == ["docker", "inspect"]:
            return (0 if command[2] in self.images else 1), "", ""
        if command[:2] == ["docker", "pull"]:
            if command[2] in self.pull_failures:
                return 1, "", "manifest unknown"
            self.images.add(command[2])
            return 0, "", ""
        if command[:2] == ["docker", "build"]:
            returncode = self.build_exit.get(cwd or "", 0)
            if returncode == 0:
                self.images.add(command[3])
            return returncode, "", ""
        if command in (["./build.sh"], ["make"]):
            returncode = self.build_exit.get(cwd or "", 0)
            if returncode == 0 and cwd in self.produces:
                self.images.add(self.produces[cwd])
            return returncode, "", ""
        return 0, self.outputs.get(tuple(command), ""), ""


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    (tmp_path / "services.yml").write_text(MANIFEST)
    (tmp_path / "web").mkdir()
    return Settings(root=tmp_path)


@pytest.fixture
def pipeline(settings: Settings, runner: FakeRunner) -> ComposePipeline:
    context = PipelineContext(
        settings=settings,
        git=GitClient(runner=runner),
        runtime=DockerRuntime(runner=runner),
        engine=ComposeEngine(runner=runner),
    )
    return ComposePipeline(context)
