from .args import build_parser
from .commands import run_cli


def main() -> None:
    raise SystemExit(run_cli())


__all__ = ["build_parser", "run_cli", "main"]
