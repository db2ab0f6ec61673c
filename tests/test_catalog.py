from pathlib import Path

import pytest

from composebuild.catalog import MalformedManifest, ServiceCatalog


def _catalog(tmp_path: Path, text: str) -> ServiceCatalog:
    path = tmp_path / "services.yml"
    path.write_text(text)
    return ServiceCatalog.from_file(path)


def test_catalog_loads_every_service_in_order(tmp_path: Path) -> None:
    catalog = _catalog(
        tmp_path,
        """
services:
  static:
    image: wildduck/static
    src: wildduck-static
  blog:
    image: wildduck/blog
  haproxy:
    image: wildduck/haproxy
    src: wildduck-haproxy
""",
    )
    services = catalog.load()
    assert [service.name for service in services] == ["static", "blog", "haproxy"]
    assert all(service.image for service in services)
    assert len(catalog) == 3
    assert "blog" in catalog
    blog = catalog.get("blog")
    assert blog.src is None
    assert not blog.has_source
    assert catalog.get("static").src == "wildduck-static"


def test_catalog_accepts_json_subset(tmp_path: Path) -> None:
    catalog = _catalog(tmp_path, '{"services": {"web": {"image": "acme/web", "src": "./web"}}}')
    web = catalog.get("web")
    assert web.image == "acme/web"
    assert web.tagged("a1b2c3d") == "acme/web:a1b2c3d"


def test_catalog_rejects_entry_without_image(tmp_path: Path) -> None:
    catalog = _catalog(tmp_path, "services:\n  web:\n    src: ./web\n")
    with pytest.raises(MalformedManifest, match="web"):
        catalog.load()


def test_catalog_rejects_empty_image(tmp_path: Path) -> None:
    catalog = _catalog(tmp_path, "services:\n  web:\n    image: ''\n")
    with pytest.raises(MalformedManifest):
        catalog.load()


def test_catalog_requires_services_mapping(tmp_path: Path) -> None:
    with pytest.raises(MalformedManifest, match="services"):
        _catalog(tmp_path, "version: '2'\n").load()


def test_catalog_reports_invalid_yaml(tmp_path: Path) -> None:
    with pytest.raises(MalformedManifest, match="Invalid YAML"):
        _catalog(tmp_path, "services: [unterminated\n").load()


def test_catalog_reports_missing_file(tmp_path: Path) -> None:
    with pytest.raises(MalformedManifest):
        ServiceCatalog.from_file(tmp_path / "absent.yml").load()


def test_catalog_unknown_service(tmp_path: Path) -> None:
    catalog = _catalog(tmp_path, "services:\n  web:\n    image: acme/web\n")
    with pytest.raises(MalformedManifest, match="Unknown service"):
        catalog.get("db")


def test_services_table(tmp_path: Path) -> None:
    catalog = _catalog(
        tmp_path,
        "services:\n  web:\n    image: acme/web\n    src: ./web\n  cache:\n    image: redis\n",
    )
    assert catalog.table() == "service\timage\tsrc\nweb\tacme/web\t./web\ncache\tredis\t\n"


def test_catalog_reports_undecodable_manifest(tmp_path: Path) -> None:
    path = tmp_path / "services.yml"
    path.write_bytes(b"services:\n  web:\n    image: acme/\xff\n")
    with pytest.raises(MalformedManifest, match="Cannot read"):
        ServiceCatalog.from_file(path).load()
