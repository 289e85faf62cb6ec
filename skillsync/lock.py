from __future__ import annotations

from dataclasses import dataclass
import errno
import fcntl
import time
from types import TracebackType
from typing import ClassVar, Self

from .typed_path import AbsFile
from .types import PyFile


@dataclass
class RegistryLockedError(Exception):
    filepath: AbsFile
    timeout: float

    def __str__(self) -> str:
        return (
            f"{self.filepath} has been locked by another process for over {self.timeout:g}s. "
            "Wait for it to finish then try again."
        )


@dataclass(frozen=True)
class FileSystemLock:
    file: PyFile
    TIMEOUT_SECONDS: ClassVar[float] = 10.0
    POLL_SECONDS: ClassVar[float] = 0.01

    def __del__(self) -> None:
        self.release()

    @classmethod
    def acquire(cls, filepath: AbsFile, *, timeout: float | None = None) -> Self:
        if timeout is None:
            timeout = cls.TIMEOUT_SECONDS
        filepath.parent.path.mkdir(parents=True, exist_ok=True)
        file = open(filepath, "a+")  # noqa: SIM115
        start_time = time.monotonic()
        while (lock := cls.acquire_non_blocking(file)) is None:
            if time.monotonic() > start_time + timeout:
                file.close()
                raise RegistryLockedError(filepath, timeout)
            time.sleep(cls.POLL_SECONDS)
        return lock

    @classmethod
    def acquire_non_blocking(cls, file: PyFile) -> Self | None:
        try:
            fcntl.flock(file, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as e:
            if e.errno == errno.EWOULDBLOCK:
                return None
            raise e
        return cls(file)

    def release(self) -> None:
        self.file.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        type_: type[BaseException] | None,
        value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.release()
