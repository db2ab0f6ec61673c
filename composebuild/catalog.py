from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import yaml

from .models import ServiceDescriptor
from .utils import ComposeBuildError


class MalformedManifest(ComposeBuildError):
    """Raised when the services manifest cannot be parsed."""


@dataclass
class ServiceCatalog:
    """Loader for the ``services.yml`` manifest."""

    path: Path
    _cache: Optional[Dict[str, ServiceDescriptor]] = None

    @classmethod
    def from_file(cls, path: str | Path) -> "ServiceCatalog":
        return cls(path=Path(path))

    def text(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise MalformedManifest(f"Cannot read services manifest {self.path}: {exc}") from exc

    def _load(self) -> Dict[str, ServiceDescriptor]:
        if self._cache is not None:
            return self._cache

        try:
            raw_data = yaml.safe_load(self.text())
        except yaml.YAMLError as exc:
            raise MalformedManifest(f"Invalid YAML in {self.path}: {exc}") from exc

        if not isinstance(raw_data, dict) or not isinstance(raw_data.get("services"), dict):
            raise MalformedManifest("Manifest must contain a top-level 'services' mapping")

        services: Dict[str, ServiceDescriptor] = {}
        for name, entry in raw_data["services"].items():
            image = entry.get("image") if isinstance(entry, dict) else None
            if not isinstance(image, str) or not image.strip():
                raise MalformedManifest(f"Service {name!r} has no 'image' field")
            services[str(name)] = ServiceDescriptor.from_dict(str(name), entry)
        self._cache = services
        return services

    def load(self) -> List[ServiceDescriptor]:
        return list(self._load().values())

    def iter_services(self) -> Iterable[ServiceDescriptor]:
        return self._load().values()

    def get(self, name: str) -> ServiceDescriptor:
        try:
            return self._load()[name]
        except KeyError as exc:
            raise MalformedManifest(f"Unknown service: {name}") from exc

    def table(self) -> str:
        """Tab-separated view of the services, header row first."""

        rows = ["service\timage\tsrc"]
        rows.extend(
            f"{service.name}\t{service.image}\t{service.src or ''}"
            for service in self.iter_services()
        )
        return "\n".join(rows) + "\n"

    def __len__(self) -> int:
        return len(self._load())

    def __contains__(self, name: str) -> bool:
        return name in self._load()
