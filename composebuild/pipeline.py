from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path
from typing import List, Sequence

from . import overrides as compose_overrides
from .builders import StrategySelector
from .catalog import ServiceCatalog
from .config import Settings
from .models import BuildOutcome, RunResult, ServiceDescriptor
from .runtime import ComposeEngine, DockerRuntime, PullFailure
from .utils import CommandError, ComposeBuildError
from .vcs import GitClient, ResolutionError

logger = logging.getLogger(__name__)


class Stage(Enum):
    START = auto()
    CATALOG_LOADED = auto()
    OUTCOMES_AGGREGATED = auto()
    OVERRIDES_WRITTEN = auto()
    STACK_ACTIVATED = auto()
    DONE = auto()


class AggregateFailure(ComposeBuildError):
    """Raised at the end of a run in which one or more services failed."""

    def __init__(self, result: RunResult) -> None:
        self.result = result
        names = ", ".join(outcome.service.name for outcome in result.failed)
        super().__init__(f"build failed: {names}")


@dataclass
class PipelineContext:
    settings: Settings
    git: GitClient
    runtime: DockerRuntime
    engine: ComposeEngine
    selector: StrategySelector = field(init=False)

    def __post_init__(self) -> None:
        self.selector = StrategySelector(self.runtime)

    @classmethod
    def from_settings(cls, settings: Settings) -> "PipelineContext":
        return cls(
            settings=settings,
            git=GitClient(settings.git),
            runtime=DockerRuntime(settings.docker),
            engine=ComposeEngine(settings.compose),
        )

    @property
    def catalog(self) -> ServiceCatalog:
        return ServiceCatalog.from_file(self.settings.manifest)


class ComposePipeline:
    """Builds or pulls every service, then pins the results in the override file."""

    def __init__(self, context: PipelineContext) -> None:
        self.context = context
        self.stage = Stage.START

    def _advance(self, stage: Stage) -> None:
        logger.debug("stage %s -> %s", self.stage.name, stage.name)
        self.stage = stage

    def load_services(self) -> List[ServiceDescriptor]:
        services = self.context.catalog.load()
        self._advance(Stage.CATALOG_LOADED)
        return services

    def process(self, service: ServiceDescriptor) -> BuildOutcome:
        """Resolve, probe and build or pull one service. Never raises for per-service errors."""

        runtime = self.context.runtime
        reference = service.image
        try:
            if not service.has_source:
                if runtime.image_exists(reference):
                    return BuildOutcome(service, True, reference, action="present")
                logger.info("%s: pulling %s", service.name, reference)
                runtime.pull(reference)
                return BuildOutcome(service, True, reference, action="pulled")

            path = self.context.settings.source_path(service.src)
            tag = self.context.git.short_revision(path)
            reference = service.tagged(tag)
            if runtime.image_exists(reference):
                logger.info("%s: %s already built", service.name, reference)
                return BuildOutcome(service, True, reference, action="cached")
            return self.context.selector.build(service, path, tag)
        except (ResolutionError, PullFailure, CommandError, OSError) as exc:
            logger.error("%s: %s", service.name, exc)
            return BuildOutcome.failed(service, reference, str(exc))

    def _process_all(self, services: Sequence[ServiceDescriptor]) -> List[BuildOutcome]:
        jobs = self.context.settings.jobs
        if jobs <= 1 or len(services) <= 1:
            return [self.process(service) for service in services]
        with ThreadPoolExecutor(max_workers=jobs) as executor:
            return list(executor.map(self.process, services))

    def build(self) -> RunResult:
        services = self.load_services()
        result = RunResult(self._process_all(services))
        self._advance(Stage.OUTCOMES_AGGREGATED)
        if not result.ok:
            logger.error("build failed")
            raise AggregateFailure(result)
        logger.info("ok")
        return result

    def overrides(self) -> compose_overrides.OverrideDocument:
        """Override document for the checked out sources, without building anything."""

        outcomes = []
        for service in self.load_services():
            reference = service.image
            if service.has_source:
                path = self.context.settings.source_path(service.src)
                reference = service.tagged(self.context.git.short_revision(path))
            outcomes.append(BuildOutcome(service, True, reference, action="resolved"))
        return compose_overrides.generate(outcomes)

    def update_overrides(self) -> Path:
        result = self.build()
        document = compose_overrides.generate(result.outcomes)
        path = compose_overrides.write(document, self.context.settings.overrides)
        self._advance(Stage.OVERRIDES_WRITTEN)
        logger.info("wrote %s", path)
        return path

    def deploy(self) -> Path:
        path = self.update_overrides()
        self.context.engine.up(self.context.settings.compose_dir)
        self._advance(Stage.STACK_ACTIVATED)
        self._advance(Stage.DONE)
        return path

    def run(self, deploy: bool = False) -> Path:
        if deploy:
            return self.deploy()
        path = self.update_overrides()
        self._advance(Stage.DONE)
        return path
