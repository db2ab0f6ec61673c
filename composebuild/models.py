from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class ServiceDescriptor:
    """A service entry sourced from the services manifest."""

    name: str
    image: str
    src: Optional[str] = None

    @property
    def has_source(self) -> bool:
        return bool(self.src)

    def tagged(self, tag: str) -> str:
        return f"{self.image}:{tag}"

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "ServiceDescriptor":
        src = data.get("src")
        return cls(
            name=name,
            image=data["image"],
            src=str(src) if src else None,
        )


@dataclass
class BuildOutcome:
    """Result of resolving, building or pulling one service."""

    service: ServiceDescriptor
    success: bool
    reference: str
    action: str = "built"
    message: str = ""

    @classmethod
    def failed(cls, service: ServiceDescriptor, reference: str, message: str) -> "BuildOutcome":
        return cls(service, False, reference, action="failed", message=message)


@dataclass
class RunResult:
    """Aggregate of every outcome produced by one pipeline run."""

    outcomes: List[BuildOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(outcome.success for outcome in self.outcomes)

    @property
    def failed(self) -> List[BuildOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.success]
