from __future__ import annotations

import argparse
import re
import sys
from pathlib import Path

from argos.command import CommandExecutor, KillStatus, ProcessTerminator
from argos.config import ConfigError, Settings, load_config
from argos.log import LoggingSink, configure_logging
from argos.tasks import BatchResult, TaskOrchestrator

from .args import build_parser

_TASK_NAME_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


def run_cli(argv: list[str] | None = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)

        if args.command == "version":
            return cmd_version(args)

        settings = _settings(args)
        configure_logging(args.log_level or settings.log_level)

        match args.command:
            case "exec":
                return cmd_exec(args, settings)
            case "exec-raw":
                return cmd_exec_raw(args, settings)
            case "exec-sudo":
                return cmd_exec(args, settings)
            case "parallel":
                return cmd_parallel(args, settings)
            case "run":
                return cmd_run(args, settings)
            case "list":
                return cmd_list(args)
            case "kill":
                return cmd_kill(args, settings)
            case "ps":
                return cmd_ps(settings)
            case "log":
                return cmd_log(args)
            case _:
                return 2

    except (ConfigError, KeyError) as exc:
        print(str(exc), file=sys.stderr)
        return 2

    except KeyboardInterrupt:
        return 130


def cmd_exec(args: argparse.Namespace, settings: Settings) -> int:
    executor = CommandExecutor(settings)
    timeout_ms = _positive(args.timeout, "--timeout")
    command = " ".join(args.words)

    if args.sudo:
        result = executor.sudo(command, timeout_ms=timeout_ms)
    else:
        result = executor.run(command, timeout_ms=timeout_ms)

    if not args.quiet and result.output:
        print(result.output, end="" if result.output.endswith("\n") else "\n")
    if result.error:
        print(result.error, file=sys.stderr)
    return result.exit_code


def cmd_exec_raw(args: argparse.Namespace, settings: Settings) -> int:
    executor = CommandExecutor(settings)
    output, code = executor.raw(" ".join(args.words), timeout_ms=_positive(args.timeout, "--timeout"))
    print(output, end="")
    return code


def cmd_parallel(args: argparse.Namespace, settings: Settings) -> int:
    tasks = [_parse_item(index, item) for index, item in enumerate(args.items, start=1)]
    batch = _run_batch(tasks, args, settings)
    _print_batch(batch)
    return 0 if batch.all_success else 1


def cmd_run(args: argparse.Namespace, settings: Settings) -> int:
    config = load_config(args.config)
    targets: list[str] = args.targets

    if targets:
        tasks = [(name, config.get_task(name)) for name in targets]
    else:
        tasks = list(config)

    if not tasks:
        raise ConfigError(f"{args.config}: no tasks to run")

    batch = _run_batch(tasks, args, settings)
    _print_batch(batch)
    return 0 if batch.all_success else 1


def cmd_list(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    for name in config.task_names():
        print(name)
    return 0


def cmd_kill(args: argparse.Namespace, settings: Settings) -> int:
    grace_ms = None if args.grace is None else max(0, args.grace)
    terminator = ProcessTerminator(CommandExecutor(settings), grace_period_ms=grace_ms)

    failed = False
    for outcome in terminator.kill_by_name(args.names):
        match outcome.status:
            case KillStatus.KILLED:
                print(f"KILLED {outcome.name}")
            case KillStatus.NOT_FOUND:
                print(f"NOT FOUND {outcome.name}")
            case KillStatus.ERROR:
                failed = True
                print(f"ERROR {outcome.name}: {outcome.reason}")
    return 1 if failed else 0


def cmd_ps(settings: Settings) -> int:
    result = CommandExecutor(settings).run("ps aux")
    if not result.success:
        print(f"Error listing processes: {result.output.strip()}", file=sys.stderr)
        return 1
    print(result.output, end="")
    return 0


def cmd_log(args: argparse.Namespace) -> int:
    LoggingSink().log(args.level, " ".join(args.words), _parse_metadata(args.metadata))
    return 0


def cmd_version(args: argparse.Namespace) -> int:
    from argos import __version__

    print(f"argos {__version__}")
    return 0


def _settings(args: argparse.Namespace) -> Settings:
    # Only run and list require the config file to exist
    path = Path(args.config)
    base = load_config(path).settings if path.is_file() else None
    return Settings.from_env(base)


def _run_batch(
    tasks: list[tuple[str, str]], args: argparse.Namespace, settings: Settings
) -> BatchResult:
    orchestrator = TaskOrchestrator(settings=settings)
    return orchestrator.run_parallel(
        tasks,
        timeout_ms=_positive(args.timeout, "--timeout"),
        max_concurrency=_positive(args.max_concurrency, "--max-concurrency"),
    )


def _parse_item(index: int, item: str) -> tuple[str, str]:
    name, sep, command = item.partition(":")
    if sep and _TASK_NAME_RE.fullmatch(name) and command.strip():
        return name, command.strip()
    return f"task_{index}", item


def _parse_metadata(value: str | None) -> dict[str, str]:
    metadata: dict[str, str] = {}
    for pair in filter(None, (value or "").split(",")):
        key, sep, item = pair.partition(":")
        if not sep or not key.strip():
            raise ConfigError(f"--metadata: expected key:value, got {pair!r}")
        metadata[key.strip()] = item.strip()
    return metadata


def _positive(value: int | None, option: str) -> int | None:
    if value is not None and value < 1:
        raise ConfigError(f"{option} must be positive, got {value}")
    return value


def _print_batch(batch: BatchResult) -> None:
    for result in batch.results:
        if result.success:
            print(f"OK {result.task_name}, {result.duration}ms")
        else:
            error = (result.error_message or "").strip()
            print(f"FAIL {result.task_name}, {result.duration}ms: {error}")
