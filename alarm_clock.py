import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from alarms import AlarmManager, CancellationUnsupportedError, CreateAlarmParams, NotFoundError, SchedulingError
from alarms.formatting import format_time, format_weekdays, parse_weekdays
from alarms.notifications import LocalNotificationCenter
from alarms.resolver import upcoming_clock_time
from alarms.registry import TriggerRegistry
from alarms.ringing import RingingSession
from alarms.scheduler import TriggerScheduler
from alarms.snooze import SnoozeHandler
from alarms.sounds import DesktopAlarmSounds
from alarms.storage import JsonAlarmStorage
from alarms.store import AlarmStore
from config import Config, load_config, setup_logging
from time_utils import format_tz_offset, now_in_tz, resolve_timezone

logger = logging.getLogger("alarm_clock")

RUN_HELP = "Commands: [d]ismiss, [s]nooze [minutes], [l]ist, [r]efresh triggers, [q]uit"


class AlarmClockApp:
    def __init__(self, config: Config):
        self.config = config
        self.tzinfo = resolve_timezone(config.timezone_name)
        self.sounds = DesktopAlarmSounds(volume=config.sound_volume)
        self.notifications = LocalNotificationCenter(clock=lambda: now_in_tz(self.tzinfo))
        self.registry = TriggerRegistry()
        self.manager = AlarmManager(
            store=AlarmStore(JsonAlarmStorage(config.alarms_path), tzinfo=self.tzinfo),
            scheduler=TriggerScheduler(self.notifications),
            registry=self.registry,
            session=RingingSession(
                self.sounds,
                config.alarm_sound_path,
                haptic_interval_ms=config.haptic_interval_ms,
            ),
            snooze_handler=SnoozeHandler(config.alarm_default_snooze_min),
            clock=lambda: now_in_tz(self.tzinfo),
        )

    async def start(self) -> None:
        await self.manager.start()
        logger.info(
            "Alarm clock started (storage=%s, tz=%s %s)",
            self.config.alarms_path,
            getattr(self.tzinfo, "key", self.tzinfo),
            format_tz_offset(self.tzinfo),
        )

    async def shutdown(self) -> None:
        await self.manager.shutdown()
        self.sounds.close()

    def describe(self) -> List[str]:
        lines = []
        for alarm in self.manager.list_alarms():
            fire_at = self.manager.next_fire_time(alarm)
            handle = self.registry.get(alarm.id)
            lines.append(
                "{id}  {time:>8}  {days:<28} {state:<3}  next={next}  {trigger}  {label}".format(
                    id=alarm.id,
                    time=format_time(alarm.time.astimezone(self.tzinfo)),
                    days=format_weekdays(alarm.days),
                    state="on" if alarm.enabled else "off",
                    next=fire_at.strftime("%a %d %b %H:%M") if fire_at else "-",
                    trigger=handle.kind.value if handle else "none",
                    label=alarm.label,
                )
            )
        return lines or ["No alarms set"]

    async def run_forever(self) -> None:
        loop = asyncio.get_running_loop()
        print(RUN_HELP)
        while True:
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                return
            parts = line.strip().lower().split()
            if not parts:
                continue
            command = parts[0]
            if command in {"q", "quit", "exit"}:
                return
            if command in {"d", "dismiss"}:
                alarm = await self.manager.dismiss()
                print(f"Dismissed {alarm.label or alarm.id}" if alarm else "Nothing is ringing")
            elif command in {"s", "snooze"}:
                try:
                    minutes = _parse_snooze_minutes(parts[1:])
                except ValueError as exc:
                    print(f"{exc}\n{RUN_HELP}")
                    continue
                snoozed = await self.manager.snooze(minutes)
                print(f"Snoozed until {format_time(snoozed.time)}" if snoozed else "Nothing is ringing")
            elif command in {"l", "list"}:
                print("\n".join(self.describe()))
            elif command in {"r", "refresh"}:
                await self.manager.on_foreground()
                count = await self.manager.reconcile()
                print(f"Rescheduled {count} alarms")
            else:
                print(RUN_HELP)


def _parse_snooze_minutes(args: List[str]) -> Optional[int]:
    if not args:
        return None
    if not args[0].isdigit() or int(args[0]) < 1:
        raise ValueError(f"Snooze minutes must be a positive number, got {args[0]!r}")
    return int(args[0])


def _parse_clock(value: str) -> tuple:
    try:
        hours, minutes = value.split(":")
        return int(hours), int(minutes)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Expected HH:MM, got {value!r}") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="alarm-clock", description="Personal alarm clock")
    parser.add_argument("--env", default=None, help="Path to .env file")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("list", help="Show alarms")
    sub.add_parser("run", help="Run the alarm clock until interrupted")

    add = sub.add_parser("add", help="Add an alarm")
    add.add_argument("time", type=_parse_clock, help="HH:MM (24-hour)")
    add.add_argument("--days", default="", help="e.g. mon,wed,fri / weekdays / daily")
    add.add_argument("--label", default="")
    add.add_argument("--disabled", action="store_true")

    edit = sub.add_parser("edit", help="Edit an alarm")
    edit.add_argument("id")
    edit.add_argument("--time", type=_parse_clock)
    edit.add_argument("--days")
    edit.add_argument("--label")

    for name in ("toggle", "delete"):
        cmd = sub.add_parser(name, help=f"{name.capitalize()} an alarm")
        cmd.add_argument("id")
    return parser


async def _execute(app: AlarmClockApp, args: argparse.Namespace) -> int:
    manager = app.manager
    if args.command == "add":
        hours, minutes = args.time
        alarm = await manager.add_alarm(
            CreateAlarmParams(
                hours=hours,
                minutes=minutes,
                label=args.label,
                days=parse_weekdays(args.days),
                enabled=not args.disabled,
            )
        )
        print(f"Added {alarm.id}")
    elif args.command == "edit":
        changes = {}
        current = manager.get_alarm(args.id)
        if current is None:
            raise NotFoundError(args.id)
        if args.time:
            hours, minutes = args.time
            changes["time"] = upcoming_clock_time(manager.clock(), hours, minutes)
        if args.days is not None:
            changes["days"] = parse_weekdays(args.days)
        if args.label is not None:
            changes["label"] = args.label
        await manager.edit_alarm(args.id, **changes)
        print(f"Updated {args.id}")
    elif args.command == "toggle":
        alarm = await manager.toggle_alarm(args.id)
        print(f"{alarm.id} {'enabled' if alarm.enabled else 'disabled'}")
    elif args.command == "delete":
        await manager.delete_alarm(args.id)
        print(f"Deleted {args.id}")
    elif args.command == "run":
        await app.run_forever()
        return 0
    print("\n".join(app.describe()))
    return 0


async def _main_async(config: Config, args: argparse.Namespace) -> int:
    app = AlarmClockApp(config)
    await app.start()
    try:
        return await _execute(app, args)
    except CancellationUnsupportedError as exc:
        print(str(exc))
        return 0
    except (NotFoundError, SchedulingError, ValueError) as exc:
        logger.error("%s", exc)
        return 1
    finally:
        await app.shutdown()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if not args.command:
        args.command = "list"
    config = load_config(Path(args.env) if args.env else None)
    setup_logging(config.log_level, config.log_dir)
    try:
        return asyncio.run(_main_async(config, args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
