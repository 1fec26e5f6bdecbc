from __future__ import annotations

import argparse


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="argos")

    parser.add_argument(
        "--config",
        default="argos.yml",
        help="Path to config file",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override the configured log level",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        required=True,
    )

    # exec
    exec_ = subparsers.add_parser("exec", help="Run a shell command")
    exec_.add_argument("words", nargs="+", help="Command line (use -- before dashed words)")
    exec_.add_argument("--sudo", action="store_true", help="Run through sudo -A")
    _add_timeout(exec_)
    exec_.add_argument(
        "--quiet",
        action="store_true",
        help="Do not print the command output",
    )

    # exec-raw
    raw = subparsers.add_parser("exec-raw", help="Run a command, print output, no logging")
    raw.add_argument("words", nargs="+", help="Command line")
    _add_timeout(raw)

    # exec-sudo
    sudo = subparsers.add_parser("exec-sudo", help="Run a command through sudo -A")
    sudo.add_argument("words", nargs="+", help="Command line")
    _add_timeout(sudo)
    sudo.set_defaults(sudo=True, quiet=False)

    # parallel
    parallel = subparsers.add_parser("parallel", help="Run commands concurrently")
    parallel.add_argument(
        "items",
        nargs="+",
        help="Commands, optionally prefixed with 'name:'",
    )
    _add_batch_options(parallel)

    # run
    run = subparsers.add_parser("run", help="Run tasks from the config file")
    run.add_argument(
        "targets",
        nargs="*",
        help="Task names (default: every task)",
    )
    _add_batch_options(run)

    # list
    subparsers.add_parser("list", help="List tasks")

    # kill
    kill = subparsers.add_parser("kill", help="Terminate processes by name")
    kill.add_argument("names", nargs="+", help="Process names")
    kill.add_argument(
        "--grace",
        type=int,
        default=None,
        metavar="MS",
        help="Wait between SIGTERM and SIGKILL",
    )

    # ps
    subparsers.add_parser("ps", help="List running processes")

    # log
    log = subparsers.add_parser("log", help="Write a message to the event log")
    log.add_argument("words", nargs="+", help="Message")
    log.add_argument(
        "--level",
        default="info",
        choices=["debug", "info", "success", "notice", "warning", "error", "critical"],
    )
    log.add_argument(
        "--metadata",
        default=None,
        metavar="KEY:VALUE,...",
        help="Comma separated key:value pairs",
    )

    # version
    subparsers.add_parser("version", help="Show version")

    return parser


def _add_timeout(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--timeout",
        type=int,
        default=None,
        metavar="MS",
        help="Timeout in milliseconds",
    )


def _add_batch_options(parser: argparse.ArgumentParser) -> None:
    _add_timeout(parser)
    parser.add_argument(
        "--max-concurrency",
        type=int,
        default=None,
        metavar="N",
        help="Number of tasks running at once",
    )
