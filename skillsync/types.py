from dataclasses import dataclass
import enum
import io
from typing import Self

type ExitCode = int

type PyFile = io.TextIOWrapper


class SyncStatus(enum.StrEnum):
    SYNCED = "synced"
    NOT_SYNCED = "not synced"
    TARGET_MISSING = "target missing"


class SourceKind(enum.StrEnum):
    REMOTE = "remote"
    LOCAL = "local"


@dataclass(frozen=True, slots=True)
class Outcome:
    name: str
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, name: str, e: BaseException) -> Self:
        return cls(name, f"{type(e).__name__}: {e}")
