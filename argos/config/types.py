import os
from dataclasses import dataclass, field, replace


def _default_concurrency() -> int:
    return os.cpu_count() or 1


@dataclass(frozen=True)
class Settings:
    shell: str = "/bin/sh"
    command_timeout_ms: int = 30_000
    task_timeout_ms: int = 300_000
    single_task_timeout_ms: int = 30_000
    grace_period_ms: int = 2_000
    max_concurrency: int = field(default_factory=_default_concurrency)
    sudo_askpass: str = "/usr/bin/ssh-askpass"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, base: "Settings | None" = None) -> "Settings":
        settings = base or cls()
        overrides: dict[str, object] = {}

        shell = os.getenv("ARGOS_SHELL")
        if shell:
            overrides["shell"] = shell

        concurrency = os.getenv("ARGOS_MAX_CONCURRENCY")
        if concurrency:
            try:
                value = int(concurrency)
            except ValueError as exc:
                raise ConfigError(
                    f"ARGOS_MAX_CONCURRENCY must be an integer, got {concurrency!r}"
                ) from exc
            if value < 1:
                raise ConfigError("ARGOS_MAX_CONCURRENCY must be positive")
            overrides["max_concurrency"] = value

        level = os.getenv("ARGOS_LOG_LEVEL")
        if level:
            overrides["log_level"] = level.upper()

        return replace(settings, **overrides)


@dataclass
class ArgosConfig:
    settings: Settings
    tasks: dict[str, str]

    def __iter__(self):
        for name, command in self.tasks.items():
            yield name, command

    def __len__(self):
        return len(self.tasks)

    def has_task(self, name: str) -> bool:
        return name in self.tasks

    def get_task(self, name: str) -> str:
        if not self.has_task(name):
            raise KeyError(name)

        return self.tasks[name]

    def task_names(self) -> list[str]:
        return list(self.tasks.keys())


class ConfigError(Exception):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class UnsupportedConfigFormatError(ConfigError):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)
