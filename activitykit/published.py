from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


def _validate_title(title: str | None, owner: str) -> None:
    if title is not None and not isinstance(title, str):
        raise TypeError(f"{owner}.title must be a string or None (type={type(title).__name__})")


class Published(ABC):
    """Something an activity made available to readers of the build (a file or a link)."""

    title: str | None

    @property
    @abstractmethod
    def locator(self) -> str:
        """Path or URL that readers follow to reach the item."""


@dataclass(frozen=True)
class PublishedFile(Published):
    path: str
    title: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.path, str) or not self.path.strip():
            raise ValueError("PublishedFile.path must be a non-empty string")
        _validate_title(self.title, "PublishedFile")

    @property
    def locator(self) -> str:
        return self.path


@dataclass(frozen=True)
class PublishedLink(Published):
    url: str
    title: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.url, str) or not self.url.strip():
            raise ValueError("PublishedLink.url must be a non-empty string")
        _validate_title(self.title, "PublishedLink")

    @property
    def locator(self) -> str:
        return self.url
