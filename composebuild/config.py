from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Mapping, Optional

from .utils import ComposeBuildError

ENV_PREFIX = "COMPOSEBUILD_"
_ENV_KEYS = (
    "root",
    "source_root",
    "manifest",
    "overrides",
    "compose_dir",
    "git",
    "docker",
    "compose",
    "jobs",
)


def _command(value: Any, default: List[str]) -> List[str]:
    if value is None or value == "":
        return list(default)
    if isinstance(value, str):
        return shlex.split(value)
    return [str(part) for part in value]


def _jobs(value: Any) -> int:
    if value is None or value == "":
        return 1
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ComposeBuildError(f"jobs must be an integer, got {value!r}") from exc


@dataclass
class Settings:
    """Paths and tool commands for one run.

    Relative paths resolve against ``root``. Service sources resolve against
    ``source_root``, which defaults to ``root``.
    """

    root: Path = field(default_factory=Path.cwd)
    source_root: Optional[Path] = None
    manifest: Path = Path("services.yml")
    overrides: Path = Path("docker-compose.override.yml")
    compose_dir: Optional[Path] = None
    git: List[str] = field(default_factory=lambda: ["git"])
    docker: List[str] = field(default_factory=lambda: ["docker"])
    compose: List[str] = field(default_factory=lambda: ["docker-compose"])
    editor: str = "vi"
    jobs: int = 1

    def __post_init__(self) -> None:
        self.root = Path(self.root).resolve()
        self.source_root = self._resolve(self.source_root).resolve() if self.source_root else self.root
        self.manifest = self._resolve(self.manifest)
        self.overrides = self._resolve(self.overrides)
        self.compose_dir = self._resolve(self.compose_dir) if self.compose_dir else self.overrides.parent
        if self.jobs < 1:
            raise ComposeBuildError(f"jobs must be at least 1, got {self.jobs}")

    def _resolve(self, path: str | Path) -> Path:
        path = Path(path)
        return path if path.is_absolute() else self.root / path

    def source_path(self, src: str) -> Path:
        path = Path(src)
        return path if path.is_absolute() else self.source_root / path

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Settings":
        return cls(
            root=Path(data.get("root") or Path.cwd()),
            source_root=Path(data["source_root"]) if data.get("source_root") else None,
            manifest=Path(data.get("manifest") or "services.yml"),
            overrides=Path(data.get("overrides") or "docker-compose.override.yml"),
            compose_dir=Path(data["compose_dir"]) if data.get("compose_dir") else None,
            git=_command(data.get("git"), ["git"]),
            docker=_command(data.get("docker"), ["docker"]),
            compose=_command(data.get("compose"), ["docker-compose"]),
            editor=data.get("editor") or "vi",
            jobs=_jobs(data.get("jobs")),
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any) -> "Settings":
        """Build settings from ``COMPOSEBUILD_*`` variables; non-empty keyword overrides win."""

        environ = os.environ if environ is None else environ
        data: dict = {
            key: environ.get(ENV_PREFIX + key.upper())
            for key in _ENV_KEYS
        }
        data["editor"] = environ.get("EDITOR")
        data.update({key: value for key, value in overrides.items() if value is not None})
        return cls.from_dict(data)
