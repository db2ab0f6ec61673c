from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable

import yaml

from .models import BuildOutcome
from .utils import atomic_write_text

COMPOSE_VERSION = "2"


@dataclass
class OverrideDocument:
    """Compose override pinning each service to a resolved image reference."""

    services: Dict[str, str] = field(default_factory=dict)
    version: str = COMPOSE_VERSION

    def to_dict(self) -> Dict[str, object]:
        return {
            "version": self.version,
            "services": {name: {"image": image} for name, image in self.services.items()},
        }


def generate(outcomes: Iterable[BuildOutcome]) -> OverrideDocument:
    """Map every outcome to its override entry, in outcome order."""

    services: Dict[str, str] = {}
    for outcome in outcomes:
        service = outcome.service
        services[service.name] = outcome.reference if service.has_source else service.image
    return OverrideDocument(services=services)


def render(document: OverrideDocument) -> str:
    body = yaml.safe_dump(document.to_dict(), sort_keys=False, default_flow_style=False)
    return "---\n" + body


def write(document: OverrideDocument, path: str | Path) -> Path:
    return atomic_write_text(path, render(document))
