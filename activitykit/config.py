"""YAML-backed configuration for graph runs."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterable

import yaml

from activitykit.artifact_store import ArtifactSettings, FileSetDefaults

if TYPE_CHECKING:
    from activitykit.activity import Activity
    from activitykit.engine.interceptors import AroundActivity
    from activitykit.engine.node import ActivityNode

DEFAULT_ENV_VAR = "ACTIVITYKIT_CONFIG"

_TRUE_WORDS = frozenset({"true", "yes", "on", "1"})
_FALSE_WORDS = frozenset({"false", "no", "off", "0"})


def read_config_file(path: str | os.PathLike[str]) -> dict[str, Any]:
    """Read one YAML config file. An empty file reads as an empty mapping."""

    resolved = os.path.abspath(os.path.expandvars(os.path.expanduser(os.fspath(path))))
    if not os.path.isfile(resolved):
        raise FileNotFoundError(f"Config file not found: {resolved}")
    with open(resolved, "r", encoding="utf-8") as handle:
        try:
            payload = yaml.safe_load(handle)
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {resolved}: {exc}") from exc

    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise ValueError(
            f"Config file {resolved} must hold a mapping (got {type(payload).__name__})"
        )
    return dict(payload)


def parse_bool(value: Any, path: str) -> bool:
    """Parse a flag without Python truthiness: `bool("false")` must not be True."""

    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return value == 1
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    raise ValueError(f"Invalid boolean for {path}: {value!r}")


def parse_int(value: Any, path: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"Invalid config type for {path}: expected int, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("+-").isdigit():
        return int(value.strip())
    raise ValueError(f"Invalid config value for {path}: must be an int (got {value!r})")


def parse_patterns(value: Any, path: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,) if value.strip() else ()
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"Invalid config type for {path}: expected list of strings")
    patterns: list[str] = []
    for idx, item in enumerate(value):
        if not isinstance(item, str) or not item.strip():
            raise ValueError(f"Invalid config value for {path}[{idx}]: must be a non-empty string")
        patterns.append(item.strip())
    return tuple(patterns)


_KNOWN_KEYS: dict[str, tuple[str, ...]] = {
    "": ("runner", "archive", "stash", "logging", "strict"),
    "runner": ("max_workers", "raise_on_failure", "failure_prefix"),
    "archive": ("includes", "excludes", "use_default_excludes", "allow_empty"),
    "stash": ("includes", "excludes", "use_default_excludes", "allow_empty"),
    "logging": ("log_dir",),
}


@dataclass(frozen=True)
class RunnerSettings:
    max_workers: int = 1
    raise_on_failure: bool = True
    failure_prefix: str = "Activities"


@dataclass(frozen=True)
class ActivityGraphConfig:
    runner: RunnerSettings = field(default_factory=RunnerSettings)
    artifacts: ArtifactSettings = field(default_factory=ArtifactSettings)
    log_dir: str | None = None

    @staticmethod
    def from_dict(cfg: Mapping[str, Any]) -> tuple["ActivityGraphConfig", list[str]]:
        """
        Parse and validate configuration, returning (ActivityGraphConfig, warnings).

        Raises:
            ValueError: if a value is invalid, or unknown keys are present with strict: true.
        """

        if not isinstance(cfg, Mapping):
            raise ValueError("Config must be a mapping")

        def section(name: str) -> Mapping[str, Any]:
            raw = cfg.get(name)
            if raw is None:
                return {}
            if not isinstance(raw, Mapping):
                raise ValueError(f"Invalid config type for {name}: expected mapping")
            return raw

        unknown: list[str] = []
        for section_name, known in _KNOWN_KEYS.items():
            mapping = cfg if not section_name else section(section_name)
            for key in mapping.keys():
                if key not in known:
                    unknown.append(f"{section_name}.{key}" if section_name else str(key))

        strict = parse_bool(cfg.get("strict", False), "strict")
        if unknown and strict:
            raise ValueError(f"Unknown config keys: {', '.join(unknown)}")
        warnings = [f"Unknown config key: {key}" for key in unknown]

        runner_cfg = section("runner")
        max_workers = parse_int(runner_cfg.get("max_workers", 1), "runner.max_workers")
        if max_workers < 1:
            raise ValueError(f"Invalid config value for runner.max_workers: must be >= 1 (got {max_workers})")
        failure_prefix = runner_cfg.get("failure_prefix", "Activities")
        if not isinstance(failure_prefix, str) or not failure_prefix.strip():
            raise ValueError("Invalid config value for runner.failure_prefix: must be a non-empty string")
        runner = RunnerSettings(
            max_workers=max_workers,
            raise_on_failure=parse_bool(
                runner_cfg.get("raise_on_failure", True), "runner.raise_on_failure"
            ),
            failure_prefix=failure_prefix.strip(),
        )

        def file_set(name: str) -> FileSetDefaults:
            raw = section(name)
            defaults = FileSetDefaults()
            return FileSetDefaults(
                includes=(
                    parse_patterns(raw["includes"], f"{name}.includes")
                    if "includes" in raw
                    else defaults.includes
                ),
                excludes=(
                    parse_patterns(raw["excludes"], f"{name}.excludes")
                    if "excludes" in raw
                    else defaults.excludes
                ),
                use_default_excludes=parse_bool(
                    raw.get("use_default_excludes", defaults.use_default_excludes),
                    f"{name}.use_default_excludes",
                ),
                allow_empty=parse_bool(
                    raw.get("allow_empty", defaults.allow_empty), f"{name}.allow_empty"
                ),
            )

        log_dir = section("logging").get("log_dir")
        if log_dir is not None:
            if not isinstance(log_dir, str):
                raise ValueError("Invalid config type for logging.log_dir: expected string")
            if log_dir.strip():
                log_dir = os.path.abspath(os.path.expandvars(os.path.expanduser(log_dir.strip())))
            else:
                log_dir = None

        return (
            ActivityGraphConfig(
                runner=runner,
                artifacts=ArtifactSettings(archive=file_set("archive"), stash=file_set("stash")),
                log_dir=log_dir,
            ),
            warnings,
        )

    @classmethod
    def load(
        cls,
        path: str | os.PathLike[str] | None = None,
        *,
        env_var: str | None = DEFAULT_ENV_VAR,
    ) -> tuple["ActivityGraphConfig", list[str]]:
        """Load configuration from `path`, else from the file named by `env_var`.

        With neither set, the built-in defaults apply and no file is read.
        """

        if path is None and env_var:
            path = os.environ.get(env_var, "").strip() or None
        if path is None:
            return cls(), []
        return cls.from_dict(read_config_file(path))

    def create_node(
        self,
        activity: "Activity",
        around_activities: Iterable["AroundActivity"] = (),
        **kwargs: Any,
    ) -> "ActivityNode":
        """Build a node that archives and stashes with this config's file-set defaults."""

        from activitykit.engine.node import ActivityNode

        kwargs.setdefault("artifact_settings", self.artifacts)
        return ActivityNode(activity, around_activities, **kwargs)
