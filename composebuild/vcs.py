"""Git plumbing used to tag images and to maintain the submodule tree."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence

from .utils import CommandError, ComposeBuildError, Runner, run_command

logger = logging.getLogger(__name__)


class ResolutionError(ComposeBuildError):
    """Raised when a source path has no resolvable tip revision."""


class GitClient:
    """Thin wrapper over the ``git`` binary; every call takes an explicit directory."""

    def __init__(self, command: Sequence[str] = ("git",), runner: Runner = run_command) -> None:
        self.command = list(command)
        self.runner = runner

    def _git(self, *args: str, cwd: Path, check: bool = True):
        return self.runner([*self.command, *args], cwd=cwd, check=check)

    def short_revision(self, path: str | Path) -> str:
        path = Path(path)
        if not path.is_dir():
            raise ResolutionError(f"Source path {path} does not exist")
        try:
            result = self._git("rev-parse", "--short", "HEAD", cwd=path, check=False)
        except OSError as exc:
            raise ResolutionError(f"Cannot resolve revision of {path}: {exc}") from exc
        tag = result.stdout.strip()
        if result.returncode != 0 or not tag:
            raise ResolutionError(
                f"Cannot resolve revision of {path}: {result.stderr.strip() or 'no commits'}"
            )
        return tag

    def pull_ff_only(self, root: Path) -> None:
        self._git("pull", "--ff-only", cwd=root)

    def submodule_update(self, root: Path) -> None:
        self._git("submodule", "update", cwd=root)

    def update(self, root: Path) -> None:
        self.pull_ff_only(root)
        self.submodule_update(root)
        logger.info("ok")

    def status(self, root: Path) -> str:
        return self._git("status", "--porcelain", cwd=root).stdout

    def changed_submodules(self, root: Path) -> List[str]:
        """Paths whose working tree column in ``git status --porcelain`` is ``M``."""

        changed = []
        for line in self.status(root).splitlines():
            if len(line) > 3 and line[1] == "M":
                changed.append(line[3:])
        return changed

    def promote(self, root: Path, modules: Optional[Sequence[str]] = None) -> List[str]:
        """Commit the checked out revision of ``modules`` (default: all dirty ones)."""

        modules = list(modules) if modules else self.changed_submodules(root)
        if not modules:
            logger.info("nothing to promote")
            return []
        for module in modules:
            self._git("add", module, cwd=root)
        message = f"Bump {', '.join(modules)}..."
        for module in modules:
            diff = self._git("diff", "--submodule=log", "HEAD", "--", module, cwd=root).stdout
            message += f"\n{diff.rstrip()}"
        self._git("commit", "-m", message, cwd=root)
        logger.info("promoted %s", ", ".join(modules))
        return modules

    def push(self, root: Path, args: Sequence[str] = ()) -> None:
        """Push every submodule, then the superproject."""

        try:
            self._git("submodule", "foreach", "git", "push", *args, cwd=root)
            self._git("push", *args, cwd=root)
        except CommandError:
            logger.error("push failed")
            raise
