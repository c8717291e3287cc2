from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class GraphError(Exception):
    """Base error envelope. Prefer returning/printing these rather than raising raw exceptions."""

    code: str
    message: str
    file: Optional[str] = None
    path: Optional[str] = None

    def __str__(self) -> str:
        parts: list[str] = []
        if self.file:
            parts.append(self.file)
        if self.path:
            parts.append(self.path)
        loc = ":".join(parts) if parts else "<graph>"
        return f"{loc}: {self.code}: {self.message}"


class SnapshotLoadError(GraphError):
    pass


class ConfigError(GraphError):
    pass


# Edge insertion outcomes. Returned inside LinkResult, never raised.


class EdgeError(GraphError):
    pass


class SelfLoopError(EdgeError):
    pass


class DuplicateEdgeError(EdgeError):
    pass


class CycleError(EdgeError):
    pass


class UnknownMilestoneError(EdgeError):
    pass


@dataclass(frozen=True)
class LinkResult:
    ok: bool
    error: Optional[EdgeError] = None


LINK_OK = LinkResult(ok=True)


# Defensive corrections. Collected and logged, never surfaced as failures.


@dataclass(frozen=True)
class GraphWarning:
    code: str
    message: str
    path: Optional[str] = None

    def __str__(self) -> str:
        loc = self.path or "<snapshot>"
        return f"{loc}: {self.code}: {self.message}"


class DanglingReferenceWarning(GraphWarning):
    pass


class InvalidDurationWarning(GraphWarning):
    pass


class ShapeWarning(GraphWarning):
    pass
