from __future__ import annotations

import argparse
import logging
import shlex
import shutil
import subprocess
import sys
from typing import List

from .catalog import ServiceCatalog
from .config import Settings
from .overrides import render
from .pipeline import ComposePipeline, PipelineContext
from .utils import ComposeBuildError
from .vcs import GitClient

logger = logging.getLogger(__name__)


def _settings(args: argparse.Namespace) -> Settings:
    return Settings.from_env(
        root=args.root,
        source_root=args.source_root,
        manifest=args.manifest,
        overrides=args.overrides,
        jobs=args.jobs,
    )


def _pipeline(args: argparse.Namespace) -> ComposePipeline:
    return ComposePipeline(PipelineContext.from_settings(_settings(args)))


def cmd_require(args: argparse.Namespace) -> None:
    settings = _settings(args)
    for command in (settings.git, settings.docker, settings.compose):
        if shutil.which(command[0]) is None:
            raise ComposeBuildError(f"fatal: missing software pre-requisite: {command[0]}")


def cmd_services(args: argparse.Namespace) -> None:
    print(ServiceCatalog.from_file(_settings(args).manifest).text(), end="")


def cmd_services_table(args: argparse.Namespace) -> None:
    print(ServiceCatalog.from_file(_settings(args).manifest).table(), end="")


def cmd_overrides(args: argparse.Namespace) -> None:
    print(render(_pipeline(args).overrides()), end="")


def cmd_build(args: argparse.Namespace) -> None:
    cmd_require(args)
    _pipeline(args).build()


def cmd_update_overrides(args: argparse.Namespace) -> None:
    cmd_require(args)
    _pipeline(args).update_overrides()


def cmd_deploy(args: argparse.Namespace) -> None:
    cmd_require(args)
    _pipeline(args).deploy()


def cmd_edit(args: argparse.Namespace) -> None:
    settings = _settings(args)
    subprocess.run([*shlex.split(settings.editor), str(settings.manifest)], check=False)


def cmd_update(args: argparse.Namespace) -> None:
    settings = _settings(args)
    GitClient(settings.git).update(settings.source_root)


def cmd_status(args: argparse.Namespace) -> None:
    settings = _settings(args)
    print(GitClient(settings.git).status(settings.source_root), end="")


def cmd_promote(args: argparse.Namespace) -> None:
    settings = _settings(args)
    GitClient(settings.git).promote(settings.source_root, args.modules)


def cmd_push(args: argparse.Namespace) -> None:
    settings = _settings(args)
    GitClient(settings.git).push(settings.source_root, args.push_args)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="composebuild",
        description="Build revision-tagged images for compose services and pin them in an override file",
    )
    parser.add_argument("--root", help="Directory holding the manifest and override files.")
    parser.add_argument("--source-root", help="Directory that service 'src' paths are relative to.")
    parser.add_argument("--manifest", help="Services manifest (default: services.yml).")
    parser.add_argument("--overrides", help="Override file to write (default: docker-compose.override.yml).")
    parser.add_argument("--jobs", type=int, help="Number of services processed concurrently.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log subprocess commands.")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    for command, func, help_text in (
        ("services", cmd_services, "Print the services manifest"),
        ("services-table", cmd_services_table, "Tab-separated view of the services table"),
        ("overrides", cmd_overrides, "Print the overrides matching the checked out source"),
        ("update-overrides", cmd_update_overrides, "Build, then rewrite the override file"),
        ("build", cmd_build, "Pull and/or build every service image"),
        ("deploy", cmd_deploy, "Update the overrides, then bring the stack up"),
        ("edit", cmd_edit, "Open the services manifest in $EDITOR"),
        ("update", cmd_update, "Fast-forward the tree from origin and update submodules"),
        ("status", cmd_status, "Show the porcelain status of the tree"),
        ("require", cmd_require, "Check that git, docker and the compose engine are installed"),
    ):
        sub = subparsers.add_parser(command, help=help_text)
        sub.set_defaults(func=func)

    promote_parser = subparsers.add_parser("promote", help="Commit the checked out submodule revisions")
    promote_parser.add_argument("modules", nargs="*", help="Submodules to promote (default: all modified).")
    promote_parser.set_defaults(func=cmd_promote)

    push_parser = subparsers.add_parser("push", help="Push the submodules, then the superproject")
    push_parser.add_argument("push_args", nargs=argparse.REMAINDER, help="Extra arguments for git push.")
    push_parser.set_defaults(func=cmd_push)

    return parser


def configure_logging(verbose: bool = False, quiet: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose, args.quiet)
    try:
        args.func(args)
    except ComposeBuildError as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
