from __future__ import annotations

import os
import stat
from pathlib import Path

import yaml

from composebuild import overrides
from composebuild.models import BuildOutcome, ServiceDescriptor

WEB = ServiceDescriptor("web", "acme/web", "./web")
CACHE = ServiceDescriptor("cache", "redis")


def _outcomes():
    return [
        BuildOutcome(WEB, True, "acme/web:a1b2c3d"),
        BuildOutcome(CACHE, True, "redis", action="pulled"),
    ]


def test_generate_pins_sourced_services_and_keeps_bare_images() -> None:
    document = overrides.generate(_outcomes())
    assert document.services == {"web": "acme/web:a1b2c3d", "cache": "redis"}
    assert document.version == "2"


def test_sourceless_service_keeps_manifest_image() -> None:
    tagged_elsewhere = BuildOutcome(CACHE, True, "redis:7")
    assert overrides.generate([tagged_elsewhere]).services["cache"] == "redis"


def test_render_is_deterministic() -> None:
    first = overrides.render(overrides.generate(_outcomes()))
    second = overrides.render(overrides.generate(_outcomes()))
    assert first == second
    assert first == (
        "---\n"
        "version: '2'\n"
        "services:\n"
        "  web:\n"
        "    image: acme/web:a1b2c3d\n"
        "  cache:\n"
        "    image: redis\n"
    )


def test_rendered_document_parses_as_compose_override() -> None:
    data = yaml.safe_load(overrides.render(overrides.generate(_outcomes())))
    assert data == {
        "version": "2",
        "services": {"web": {"image": "acme/web:a1b2c3d"}, "cache": {"image": "redis"}},
    }


def test_write_replaces_existing_file(tmp_path: Path) -> None:
    target = tmp_path / "docker-compose.override.yml"
    target.write_text("stale\n")
    overrides.write(overrides.generate(_outcomes()), target)
    assert target.read_text().startswith("---\nversion: '2'\n")
    assert sorted(path.name for path in tmp_path.iterdir()) == ["docker-compose.override.yml"]


def test_write_keeps_existing_file_mode(tmp_path: Path) -> None:
    target = tmp_path / "docker-compose.override.yml"
    target.write_text("prior\n")
    target.chmod(0o644)

    overrides.write(overrides.generate(_outcomes()), target)

    assert stat.S_IMODE(target.stat().st_mode) == 0o644


def test_write_new_file_uses_umask_default(tmp_path: Path) -> None:
    target = tmp_path / "docker-compose.override.yml"
    previous = os.umask(0o022)
    try:
        overrides.write(overrides.generate(_outcomes()), target)
    finally:
        os.umask(previous)

    assert stat.S_IMODE(target.stat().st_mode) == 0o644
