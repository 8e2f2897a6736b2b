"""Entry point: python -m cronos"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys

import structlog
from pydantic import ValidationError

from cronos.errors import CronosError
from cronos.infrastructure.logger import logger
from cronos.jobs.schedule import display_string, next_run
from cronos.jobs.types import WEEKDAY_NAMES, DailySchedule, JobDraft, WeeklySchedule, format_duration


async def serve() -> None:
    from cronos.app import Orchestrator

    structlog.contextvars.bind_contextvars(mode="serve")

    orchestrator = Orchestrator()

    # Handle graceful shutdown
    shutdown_event = asyncio.Event()

    def signal_handler() -> None:
        logger.info("Received shutdown signal")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await orchestrator.start()
        await shutdown_event.wait()
    finally:
        await orchestrator.shutdown()


def _parse_time(value: str) -> tuple[int, int]:
    hour_str, sep, minute_str = value.partition(":")
    if not sep:
        raise argparse.ArgumentTypeError(f"Expected HH:MM, got {value!r}")
    try:
        return int(hour_str), int(minute_str)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected HH:MM, got {value!r}") from None


def _parse_weekday(value: str) -> int:
    if value.isdigit():
        return int(value)
    for index, name in enumerate(WEEKDAY_NAMES):
        if name and name.lower().startswith(value.lower()[:3]):
            return index
    raise argparse.ArgumentTypeError(f"Unknown weekday: {value!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cronos", description="Run recurring local jobs on a schedule")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve", help="Run the scheduler until interrupted")
    sub.add_parser("list", help="List jobs")

    add = sub.add_parser("add", help="Create a job")
    add.add_argument("--name", required=True)
    payload = add.add_mutually_exclusive_group(required=True)
    payload.add_argument("--command", help="Shell command to run")
    payload.add_argument("--prompt", help="Prompt for the Claude CLI")
    add.add_argument("--context-dir", help="Context directory passed to the Claude CLI")
    add.add_argument("--dir", default="~", help="Working directory (default: ~)")
    when = add.add_mutually_exclusive_group(required=True)
    when.add_argument("--daily", metavar="HH:MM", type=_parse_time)
    when.add_argument("--weekly", nargs=2, metavar=("DAY", "HH:MM"))
    add.add_argument("--disabled", action="store_true", help="Create the job disabled")

    for name, help_text in (
        ("toggle", "Enable or disable a job"),
        ("delete", "Delete a job and its run history"),
        ("run", "Run a job now and wait for it"),
        ("runs", "Show a job's run history"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("job_id")

    logs = sub.add_parser("logs", help="Print the captured output of a run")
    logs.add_argument("run_id")
    return parser


def _draft_from_args(args: argparse.Namespace) -> JobDraft:
    if args.daily:
        hour, minute = args.daily
        schedule: DailySchedule | WeeklySchedule = DailySchedule(hour=hour, minute=minute)
    else:
        day, at = args.weekly
        hour, minute = _parse_time(at)
        schedule = WeeklySchedule(weekday=_parse_weekday(day), hour=hour, minute=minute)

    return JobDraft(
        name=args.name,
        job_type="claude" if args.prompt else "customCommand",
        command=args.command or "",
        claude_prompt=args.prompt,
        context_directory=args.context_dir,
        working_directory=args.dir,
        schedule=schedule,
        is_enabled=not args.disabled,
    )


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "serve":
        try:
            asyncio.run(serve())
        except KeyboardInterrupt:
            pass
        except CronosError as err:
            logger.error("Cronos failed to start", error=str(err))
            return 1
        return 0

    from cronos.app import Orchestrator

    orchestrator = Orchestrator()
    try:
        orchestrator.load()

        if args.command == "list":
            for job in orchestrator.list():
                state = "on " if job.is_enabled else "off"
                last = "never"
                if job.last_run:
                    last = f"{job.last_run.astimezone():%Y-%m-%d %H:%M} {'ok' if job.last_run_successful else 'failed'}"
                upcoming = f"next {next_run(job.schedule):%Y-%m-%d %H:%M}" if job.is_enabled else ""
                print(f"{job.id}  [{state}]  {job.name}  ({display_string(job.schedule)})  last: {last}  {upcoming}".rstrip())
        elif args.command == "add":
            job = orchestrator.create(_draft_from_args(args))
            print(job.id)
        elif args.command == "toggle":
            job = orchestrator.toggle(args.job_id)
            print(f"{job.name}: {'enabled' if job.is_enabled else 'disabled'}")
        elif args.command == "delete":
            orchestrator.delete(args.job_id)
        elif args.command == "run":
            run = asyncio.run(orchestrator.run_now(args.job_id))
            print(f"run {run.id}: exit {run.exit_code} ({'success' if run.success else 'failed'})")
            return 0 if run.success else 1
        elif args.command == "runs":
            for run in orchestrator.list_runs(args.job_id):
                if run.in_flight:
                    status, took = "running", ""
                else:
                    status = "ok" if run.success else f"failed ({run.exit_code})"
                    took = format_duration(run.duration.total_seconds()) if run.duration else ""
                print(f"{run.id}  {run.started_at.astimezone():%Y-%m-%d %H:%M:%S}  {status}  {took}".rstrip())
        elif args.command == "logs":
            content = orchestrator.read_run_log(args.run_id)
            sys.stdout.write(content.stdout)
            sys.stderr.write(content.stderr)
    except (ValidationError, argparse.ArgumentTypeError) as err:
        logger.error("Invalid job", error=str(err))
        return 1
    except CronosError as err:
        logger.error("Command failed", command=args.command, error=str(err))
        return 1
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
