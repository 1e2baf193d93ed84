# src/podcast_deploy/scripts/deploy_cli.py
"""Operator CLI for managing destinations and running deploys.

Feed rendering and episode listing belong to the host application; here they
are stood in for by a feed template file (``string.Template`` with
``$public_base_url`` and ``$podcast_id``) and an episodes JSON manifest::

    {"artwork_path": "data/artwork/cover.png",
     "episodes": [{"id": "ep1", "audio_final_path": "...", "publish_at": "..."}]}
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence
from datetime import datetime, timedelta
from pathlib import Path
from string import Template
from typing import Any

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from podcast_deploy.core.logging import setup_logging
from podcast_deploy.db.session import SessionLocal, create_tables
from podcast_deploy.schemas.deploy import DeployEpisode
from podcast_deploy.services.destinations import DestinationService
from podcast_deploy.services.errors import DeployError
from podcast_deploy.services.ledger import LedgerError, RunLedger
from podcast_deploy.services.orchestrator import DeployOrchestrator
from podcast_deploy.services.vault import VaultError

logger = logging.getLogger(__name__)

_EPISODES = TypeAdapter(list[DeployEpisode])


class TemplateFeedGenerator:
    """Render a feed document from a ``string.Template`` file."""

    def __init__(self, template: str) -> None:
        self.template = Template(template)

    @classmethod
    def from_file(cls, path: Path) -> TemplateFeedGenerator:
        return cls(path.read_text(encoding="utf-8"))

    def __call__(self, podcast_id: str, public_base_url: str | None) -> str:
        base = (public_base_url or "").rstrip("/")
        return self.template.safe_substitute(
            podcast_id=podcast_id,
            public_base_url=f"{base}/" if base else "",
        )


class ManifestEpisodeSource:
    """Episodes and podcast artwork read from a JSON manifest."""

    def __init__(self, episodes: Sequence[DeployEpisode], artwork_path: str | None = None) -> None:
        self.episodes = list(episodes)
        self.artwork_path = artwork_path

    @classmethod
    def from_file(cls, path: Path | None) -> ManifestEpisodeSource:
        if path is None:
            return cls([])
        payload = json.loads(path.read_text(encoding="utf-8"))
        if isinstance(payload, list):
            return cls(_EPISODES.validate_python(payload))
        return cls(
            _EPISODES.validate_python(payload.get("episodes", [])),
            payload.get("artwork_path"),
        )

    def list_published(self, podcast_id: str, now: datetime) -> list[DeployEpisode]:
        return list(self.episodes)

    def podcast_artwork_path(self, podcast_id: str) -> str | None:
        return self.artwork_path


def _parse_assignments(pairs: Sequence[str] | None) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for pair in pairs or ():
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Expected key=value, got {pair!r}")
        values[key.strip()] = value
    return values


def _load_payload(args: argparse.Namespace) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    if getattr(args, "config_file", None):
        payload.update(json.loads(Path(args.config_file).read_text(encoding="utf-8")))
    payload.update(_parse_assignments(args.set))
    for field in ("mode", "name", "public_base_url"):
        value = getattr(args, field, None)
        if value is not None:
            payload[field] = value
    return payload


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _orchestrator(db: Session, args: argparse.Namespace) -> DeployOrchestrator:
    feed = TemplateFeedGenerator.from_file(Path(args.feed_template))
    episodes = ManifestEpisodeSource.from_file(Path(args.episodes) if args.episodes else None)
    return DeployOrchestrator(db, feed, episodes)


def cmd_init_db(db: Session, args: argparse.Namespace) -> int:
    if args.migrate:
        from podcast_deploy.scripts.migrate import run_upgrade_head

        run_upgrade_head()
    else:
        create_tables()
    reconciled = RunLedger(db).reconcile_stale()
    print(f"Database ready; reconciled {reconciled} stale run(s)")
    return 0


def cmd_add(db: Session, args: argparse.Namespace) -> int:
    service = DestinationService(db)
    destination = service.create(args.podcast_id, _load_payload(args))
    _print_json(service.to_read(destination).model_dump(mode="json"))
    return 0


def cmd_list(db: Session, args: argparse.Namespace) -> int:
    service = DestinationService(db)
    rows = []
    for destination in service.list_for_podcast(args.podcast_id):
        view = service.to_read(destination).model_dump(mode="json")
        view["public_feed_url"] = (
            service.public_feed_url(destination) if view["has_credentials"] else None
        )
        rows.append(view)
    _print_json(rows)
    return 0


def cmd_update(db: Session, args: argparse.Namespace) -> int:
    service = DestinationService(db)
    destination = service.update(args.destination_id, _load_payload(args))
    _print_json(service.to_read(destination).model_dump(mode="json"))
    return 0


def cmd_remove(db: Session, args: argparse.Namespace) -> int:
    DestinationService(db).delete(args.destination_id)
    print(f"Removed destination {args.destination_id}")
    return 0


def cmd_test(db: Session, args: argparse.Namespace) -> int:
    orchestrator = DeployOrchestrator(db, TemplateFeedGenerator(""), ManifestEpisodeSource([]))
    result = orchestrator.test_destination(args.destination_id)
    _print_json(result.model_dump(mode="json"))
    return 0 if result.ok else 1


def cmd_deploy(db: Session, args: argparse.Namespace) -> int:
    result = _orchestrator(db, args).deploy_one(args.destination_id)
    _print_json(result.model_dump(mode="json"))
    return 0 if result.status.value == "success" else 1


def cmd_deploy_all(db: Session, args: argparse.Namespace) -> int:
    results = _orchestrator(db, args).deploy_all(args.podcast_id)
    _print_json([result.model_dump(mode="json") for result in results])
    return 0 if all(result.status.value == "success" for result in results) else 1


def cmd_runs(db: Session, args: argparse.Namespace) -> int:
    runs = RunLedger(db).list_for_destination(args.destination_id, limit=args.limit)
    _print_json([run.model_dump(mode="json") for run in runs])
    return 0


def cmd_run(db: Session, args: argparse.Namespace) -> int:
    _print_json(RunLedger(db).get(args.run_id).model_dump(mode="json"))
    return 0


def cmd_reconcile(db: Session, args: argparse.Namespace) -> int:
    max_age = timedelta(minutes=args.minutes) if args.minutes is not None else None
    count = RunLedger(db).reconcile_stale(max_age)
    print(f"Marked {count} stale run(s) as failed")
    return 0


def _add_payload_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--name", help="Display label")
    parser.add_argument("--public-base-url", dest="public_base_url", help="Public base URL")
    parser.add_argument(
        "--set",
        action="append",
        metavar="KEY=VALUE",
        help="Config field, e.g. --set host=ftp.example.com (repeatable)",
    )
    parser.add_argument("--config-file", help="JSON file with config fields")


def _add_deploy_inputs(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--feed-template", required=True, help="Feed template file")
    parser.add_argument("--episodes", help="Episodes JSON manifest")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="podcast-deploy",
        description="Manage podcast deploy destinations and run deploys",
    )
    parser.add_argument("--log-level", help="Override LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    init_db = sub.add_parser("init-db", help="Create tables and reconcile stale runs")
    init_db.add_argument("--migrate", action="store_true", help="Use Alembic migrations")
    init_db.set_defaults(handler=cmd_init_db)

    add = sub.add_parser("add", help="Add a destination")
    add.add_argument("podcast_id")
    add.add_argument("--mode", required=True, help="S3, FTP, SFTP, WebDAV, IPFS or SMB")
    _add_payload_options(add)
    add.set_defaults(handler=cmd_add)

    list_cmd = sub.add_parser("list", help="List a podcast's destinations")
    list_cmd.add_argument("podcast_id")
    list_cmd.set_defaults(handler=cmd_list)

    update = sub.add_parser("update", help="Update a destination")
    update.add_argument("destination_id")
    _add_payload_options(update)
    update.set_defaults(handler=cmd_update)

    remove = sub.add_parser("remove", help="Delete a destination and its runs")
    remove.add_argument("destination_id")
    remove.set_defaults(handler=cmd_remove)

    test = sub.add_parser("test", help="Test destination connectivity")
    test.add_argument("destination_id")
    test.set_defaults(handler=cmd_test)

    deploy = sub.add_parser("deploy", help="Deploy to one destination")
    deploy.add_argument("destination_id")
    _add_deploy_inputs(deploy)
    deploy.set_defaults(handler=cmd_deploy)

    deploy_all = sub.add_parser("deploy-all", help="Deploy to every destination of a podcast")
    deploy_all.add_argument("podcast_id")
    _add_deploy_inputs(deploy_all)
    deploy_all.set_defaults(handler=cmd_deploy_all)

    runs = sub.add_parser("runs", help="Show a destination's run history")
    runs.add_argument("destination_id")
    runs.add_argument("--limit", type=int, default=20)
    runs.set_defaults(handler=cmd_runs)

    run = sub.add_parser("run", help="Show one run")
    run.add_argument("run_id")
    run.set_defaults(handler=cmd_run)

    reconcile = sub.add_parser("reconcile", help="Fail runs stuck in running")
    reconcile.add_argument("--minutes", type=int, help="Override STALE_RUN_MINUTES")
    reconcile.set_defaults(handler=cmd_reconcile)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    db = SessionLocal()
    try:
        return args.handler(db, args)
    except ValidationError as exc:
        print(f"Invalid input:\n{exc}", file=sys.stderr)
        return 2
    except (DeployError, LedgerError, VaultError, ValueError, OSError) as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
