"""Failure taxonomy and the outcome values returned across component boundaries."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from zona9.models import Snapshot


class DataUnavailable(Exception):
    """A read against a required collection failed; no partial snapshot exists."""

    def __init__(self, message: str, collection: str = ""):
        super().__init__(message)
        self.collection = collection


class SaveFailed(Exception):
    """A bulk-save write failed. Collections listed in `applied` stay written."""

    def __init__(self, message: str, collection: str, applied: tuple[str, ...] = ()):
        super().__init__(message)
        self.collection = collection
        self.applied = tuple(applied)


class RenderFailed(Exception):
    """The capture driver could not produce an image or document for a request."""

    def __init__(self, message: str, stage: str = "capture"):
        super().__init__(message)
        self.stage = stage


class LoadStatus(str, Enum):
    LOADED = "loaded"
    NO_DATA = "no_data"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class LoadOutcome:
    status: LoadStatus
    snapshot: Snapshot | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status == LoadStatus.LOADED


@dataclass(frozen=True)
class SaveOutcome:
    ok: bool
    applied: tuple[str, ...] = field(default_factory=tuple)
    failed_collection: str = ""
    message: str = ""


@dataclass(frozen=True)
class CaptureResult:
    content: bytes
    mime_type: str
    filename: str
    width: int
    height: int
