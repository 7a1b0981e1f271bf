from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from activitykit.published import Published


class ArtifactStore(Protocol):
    """Archival and stash/unstash collaborator; activitykit never touches files itself."""

    def archive_files(
        self,
        includes: tuple[str, ...],
        excludes: tuple[str, ...],
        use_default_excludes: bool,
        allow_empty: bool,
    ) -> None:
        ...

    def stash(
        self,
        stash_id: str,
        includes: tuple[str, ...],
        excludes: tuple[str, ...],
        use_default_excludes: bool,
        allow_empty: bool,
    ) -> None:
        ...

    def unstash(self, stash_id: str) -> None:
        ...

    def archive_file(self, path: str) -> Published:
        ...


@dataclass(frozen=True)
class FileSetDefaults:
    includes: tuple[str, ...] = ("**",)
    excludes: tuple[str, ...] = ()
    use_default_excludes: bool = True
    allow_empty: bool = False

    def __post_init__(self) -> None:
        for label in ("includes", "excludes"):
            value = getattr(self, label)
            if isinstance(value, str) or not all(isinstance(item, str) for item in value):
                raise TypeError(f"FileSetDefaults.{label} must be a sequence of strings")
            object.__setattr__(self, label, tuple(value))

    def resolve(
        self,
        includes: tuple[str, ...] | list[str] | set[str] | None,
        excludes: tuple[str, ...] | list[str] | set[str] | None,
        use_default_excludes: bool | None,
        allow_empty: bool | None,
    ) -> tuple[tuple[str, ...], tuple[str, ...], bool, bool]:
        return (
            self.includes if includes is None else tuple(includes),
            self.excludes if excludes is None else tuple(excludes),
            self.use_default_excludes if use_default_excludes is None else bool(use_default_excludes),
            self.allow_empty if allow_empty is None else bool(allow_empty),
        )


@dataclass(frozen=True)
class ArtifactSettings:
    archive: FileSetDefaults = field(default_factory=FileSetDefaults)
    stash: FileSetDefaults = field(default_factory=FileSetDefaults)
