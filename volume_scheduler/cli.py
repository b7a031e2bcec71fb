"""
Command line entry point.

    volume-scheduler run                 poll and apply schedules until interrupted
    volume-scheduler serve               same, plus the status API
    volume-scheduler check [--apply]     show what every zone should be at right now
    volume-scheduler set-volume Z V      set one zone directly
    volume-scheduler zones [--account]   list sound zones of an account
    volume-scheduler init-db             create the schedules table
    volume-scheduler import-schedule F   load a schedule.json file into the database
    volume-scheduler schedules ACTION    list, enable, disable or delete stored schedules
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence
import argparse
import asyncio
import logging
import signal
import sys

from . import __version__, config, repositories
from .audio import BaseVolumeController, MockVolumeController, SoundtrackClient
from .config import CONTROLLER_MOCK, SOURCE_DATABASE, Settings
from .database import init_db
from .exceptions import (
    ConfigurationError,
    ScheduleSourceError,
    VolumeApplyError,
    VolumeSchedulerError,
)
from .schemas import MAX_VOLUME, MIN_VOLUME
from .services import (
    DatabaseScheduleSource,
    FileScheduleSource,
    PollingScheduler,
    ReconciliationService,
    ScheduleSource,
    select_active_rule,
    time_to_minutes,
)
from .timezones import utc_now

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)


def build_source(settings: Settings, *, create_schema: bool = False) -> ScheduleSource:
    if settings.source == SOURCE_DATABASE:
        if create_schema:
            # Fails fast (and fatally) when the database cannot be reached.
            init_db()
        return DatabaseScheduleSource()
    return FileScheduleSource(settings.schedule_file)


def build_controller(settings: Settings) -> BaseVolumeController:
    if settings.controller == CONTROLLER_MOCK:
        logger.warning("controller.mock volumes are not sent to Soundtrack")
        return MockVolumeController()
    return SoundtrackClient(settings.api_url, settings.api_token, timeout=settings.http_timeout)


def build_service(settings: Settings) -> ReconciliationService:
    source = build_source(settings, create_schema=True)
    return ReconciliationService(source=source, controller=build_controller(settings))


def _log_startup(settings: Settings) -> None:
    logger.info("startup version=%s now=%s", __version__, utc_now().isoformat(timespec="seconds"))
    if settings.source == SOURCE_DATABASE:
        logger.info("startup source=database url=%s", settings.redacted_database_url)
    else:
        logger.info("startup source=file path=%s", settings.schedule_file)
    logger.info(
        "startup controller=%s api=%s interval=%.0fs",
        settings.controller,
        settings.api_url,
        settings.tick_seconds,
    )


async def _run_until_signal(poller: PollingScheduler) -> None:
    loop = asyncio.get_running_loop()
    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, poller.request_stop)
    else:
        signal.signal(signal.SIGINT, lambda *_: loop.call_soon_threadsafe(poller.request_stop))
    await poller.run()


def cmd_run(args: argparse.Namespace, settings: Settings) -> int:
    settings.validate()
    _log_startup(settings)
    service = build_service(settings)
    poller = PollingScheduler(service, interval=settings.tick_seconds)
    asyncio.run(_run_until_signal(poller))
    return 0


def cmd_serve(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn

    from .api import create_app

    settings.validate()
    _log_startup(settings)
    app = create_app(build_service(settings), interval=settings.tick_seconds)
    uvicorn.run(app, host=args.host, port=args.port, log_level=settings.log_level.lower())
    return 0


def _print_at(service: ReconciliationService, at: str) -> None:
    """Evaluate every active schedule as if its local clock showed ``at``."""
    minutes = time_to_minutes(at)
    moment = datetime(2000, 1, 1, minutes // 60, minutes % 60)
    for schedule in service.source.fetch_active():
        rule = select_active_rule(schedule.rules, moment)
        target = rule.volume if rule else schedule.baseline_volume
        print(
            f"{schedule.label}: {at} ({schedule.time_zone}) -> volume {target} "
            f"[{rule.describe() if rule else 'baseline'}]"
        )


def cmd_check(args: argparse.Namespace, settings: Settings) -> int:
    settings.validate(require_api=args.apply)
    source = build_source(settings)
    controller: BaseVolumeController = (
        build_controller(settings) if args.apply else MockVolumeController()
    )
    service = ReconciliationService(source=source, controller=controller)
    try:
        if args.at:
            _print_at(service, args.at)
            return 0
        if not args.apply:
            previews = service.preview()
            if not previews:
                print("No active schedules found")
            for preview in previews:
                print(
                    f"{preview.zone_name or preview.zone_id}: {preview.local_time} "
                    f"({preview.time_zone}) -> volume {preview.target_volume} "
                    f"[{preview.rule or 'baseline'}]"
                )
            return 0

        report = service.run_once()
        if report.aborted:
            print(f"Tick aborted: {report.aborted}")
            return 1
        for outcome in report.outcomes:
            detail = f"applied {outcome.applied_volume}" if outcome.status == "applied" else outcome.status
            if outcome.error:
                detail = f"{detail}: {outcome.error}"
            print(
                f"{outcome.zone_name or outcome.zone_id}: target {outcome.target_volume} "
                f"[{outcome.rule or 'baseline'}] -> {detail}"
            )
        return 1 if report.count("failed") else 0
    except ScheduleSourceError as exc:
        print(f"Failed to load schedules: {exc}")
        return 1
    finally:
        service.close()


def _volume_arg(value: str) -> int:
    try:
        volume = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"volume must be an integer, got {value!r}")
    if not MIN_VOLUME <= volume <= MAX_VOLUME:
        raise argparse.ArgumentTypeError(f"volume must be between {MIN_VOLUME} and {MAX_VOLUME}")
    return volume


def _time_arg(value: str) -> str:
    try:
        time_to_minutes(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc))
    return value


def cmd_set_volume(args: argparse.Namespace, settings: Settings) -> int:
    settings.validate(require_source=False)
    controller = build_controller(settings)
    try:
        acknowledged = controller.set_volume(args.zone, args.volume)
    except VolumeApplyError as exc:
        print(f"Failed to set volume: {exc}")
        return 1
    finally:
        controller.close()
    print(f"Volume for {args.zone} set to {acknowledged}")
    return 0


def cmd_zones(args: argparse.Namespace, settings: Settings) -> int:
    settings.validate(require_source=False)
    account_id = args.account or settings.account_id
    if not account_id:
        raise ConfigurationError(["pass --account or set SOUNDTRACK_ACCOUNT_ID"])
    controller = build_controller(settings)
    if not isinstance(controller, SoundtrackClient):
        controller.close()
        raise ConfigurationError(["zone listing needs VOLUME_SCHEDULER_CONTROLLER=soundtrack"])
    try:
        account = controller.get_account(account_id)
        if account is None:
            print(f"Account {account_id} not found")
            return 1
        print(f"Account: {account.business_name or account.id}")
        zones = controller.list_zones(account_id)
    except VolumeApplyError as exc:
        print(f"Soundtrack API request failed: {exc}")
        return 1
    finally:
        controller.close()
    if not zones:
        print("No sound zones found")
    for zone in zones:
        paired = "paired" if zone.is_paired else "not paired"
        print(f"{zone.id}\t{zone.name}\t{paired}")
    return 0


def cmd_init_db(args: argparse.Namespace, settings: Settings) -> int:
    problems = settings.database_problems()
    if problems:
        raise ConfigurationError(problems)
    init_db()
    print(f"Database initialized at {settings.redacted_database_url}")
    return 0


def cmd_import_schedule(args: argparse.Namespace, settings: Settings) -> int:
    problems = settings.database_problems()
    if problems:
        raise ConfigurationError(problems)
    try:
        schedules = FileScheduleSource(args.file).load()
    except ScheduleSourceError as exc:
        print(f"Cannot import: {exc}")
        return 1
    init_db()
    for schedule in schedules:
        repositories.save_schedule(schedule)
        print(f"Imported schedule for {schedule.label} ({len(schedule.rules)} rules)")
    return 0


def cmd_schedules(args: argparse.Namespace, settings: Settings) -> int:
    """Manage stored schedules: list, enable, disable or delete one zone's schedule."""
    problems = settings.database_problems()
    if problems:
        raise ConfigurationError(problems)

    if args.action == "list":
        rows = repositories.list_schedules()
        if not rows:
            print("No schedules stored")
        for row in rows:
            payload = repositories.row_to_payload(row)
            rules = payload["rules"] if isinstance(payload["rules"], list) else []
            state = "active" if payload["isActive"] else "inactive"
            print(
                f"{payload['soundZoneId']}\t{payload['zoneName'] or '-'}\t{payload['timeZone']}\t"
                f"baseline {payload['baselineVolume']}\t{len(rules)} rules\t{state}"
            )
        return 0

    if args.action == "delete":
        changed = repositories.delete_schedule(args.zone)
        verb = "Deleted"
    else:
        changed = repositories.set_schedule_active(args.zone, args.action == "enable")
        verb = "Enabled" if args.action == "enable" else "Disabled"
    if not changed:
        print(f"No schedule stored for zone {args.zone}")
        return 1
    print(f"{verb} schedule for zone {args.zone}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="volume-scheduler",
        description="Keep sound zone volumes in line with their time-of-day schedules.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("run", help="poll schedules and apply volumes until interrupted").set_defaults(func=cmd_run)

    serve = sub.add_parser("serve", help="run the poller together with the status API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.set_defaults(func=cmd_serve)

    check = sub.add_parser("check", help="show the target volume of every active schedule")
    mode = check.add_mutually_exclusive_group()
    mode.add_argument("--at", type=_time_arg, metavar="HH:MM", help="evaluate at this local time instead of now")
    mode.add_argument("--apply", action="store_true", help="push the targets once")
    check.set_defaults(func=cmd_check)

    set_volume = sub.add_parser("set-volume", help="set the volume of one zone")
    set_volume.add_argument("zone", help="sound zone id")
    set_volume.add_argument("volume", type=_volume_arg)
    set_volume.set_defaults(func=cmd_set_volume)

    zones = sub.add_parser("zones", help="list the sound zones of an account")
    zones.add_argument("--account", help="account id (defaults to SOUNDTRACK_ACCOUNT_ID)")
    zones.set_defaults(func=cmd_zones)

    sub.add_parser("init-db", help="create the schedules table").set_defaults(func=cmd_init_db)

    import_schedule = sub.add_parser("import-schedule", help="store a schedule JSON file in the database")
    import_schedule.add_argument("file", type=Path)
    import_schedule.set_defaults(func=cmd_import_schedule)

    schedules = sub.add_parser("schedules", help="list or change schedules stored in the database")
    actions = schedules.add_subparsers(dest="action", required=True)
    actions.add_parser("list", help="show every stored schedule")
    for action, help_text in (
        ("enable", "resume applying a zone's schedule"),
        ("disable", "stop applying a zone's schedule without deleting it"),
        ("delete", "remove a zone's schedule"),
    ):
        actions.add_parser(action, help=help_text).add_argument("zone", help="sound zone id")
    schedules.set_defaults(func=cmd_schedules)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = config.settings
    configure_logging(settings.log_level)
    try:
        return args.func(args, settings)
    except ConfigurationError as exc:
        for problem in exc.problems:
            logger.error("config.error %s", problem)
        return 1
    except VolumeSchedulerError as exc:
        logger.error("fatal error=%s", exc)
        return 1
    except Exception as exc:
        logger.exception("fatal error=%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
