from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
import os.path
from pathlib import Path
from typing import Self, overload


@dataclass(frozen=True, slots=True)
class TypedPath:
    path: Path

    def __init__(self, path: Path | str | Self) -> None:
        if type(self) is TypedPath:
            raise TypeError()
        object.__setattr__(self, "path", Path(path))

    def _join[T: TypedPath](self, other: TypedPath, type_: type[T]) -> T:
        return type_(self.path / other.path)

    def exists(self) -> bool:
        return self.path.exists()

    def is_file(self) -> bool:
        return self.path.is_file()

    def is_folder(self) -> bool:
        return self.path.is_dir()

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def canonical(self) -> str:
        # pathlib.Path.resolve uses the filesystem, which could have unwanted links.
        return os.path.normpath(self)

    def __fspath__(self) -> str:
        return self.path.__fspath__()

    def __str__(self) -> str:
        return repr(str(self.path))

    def __lt__(self, other: Self) -> bool:
        if not isinstance(other, type(self)):
            return NotImplemented
        return os.fspath(self) < os.fspath(other)


@dataclass(frozen=True, slots=True, init=False)
class RelFile(TypedPath):
    @property
    def posix(self) -> str:
        return self.path.as_posix()


@dataclass(frozen=True, slots=True, init=False)
class AbsFile(TypedPath):
    @property
    def parent(self) -> AbsDir:
        return AbsDir(self.path.parent)

    def relative_to(self, root: AbsDir) -> RelFile:
        return RelFile(self.path.relative_to(root.path))


@dataclass(frozen=True, slots=True, init=False)
class RelDir(TypedPath):
    @overload
    def __truediv__(self, other: RelFile) -> RelFile: ...
    @overload
    def __truediv__(self, other: RelDir) -> RelDir: ...
    def __truediv__(self, other: TypedPath) -> TypedPath:
        match other:
            case RelFile():
                ret_type: type[TypedPath] = RelFile
            case RelDir():
                ret_type = RelDir
            case _:
                raise TypeError()
        return self._join(other, ret_type)


@dataclass(frozen=True, slots=True, init=False)
class AbsDir(TypedPath):
    @overload
    def __truediv__(self, other: RelFile) -> AbsFile: ...
    @overload
    def __truediv__(self, other: RelDir) -> AbsDir: ...
    def __truediv__(self, other: TypedPath) -> TypedPath:
        match other:
            case RelFile():
                ret_type: type[TypedPath] = AbsFile
            case RelDir():
                ret_type = AbsDir
            case _:
                raise TypeError()
        return self._join(other, ret_type)

    @property
    def parent(self) -> AbsDir:
        return AbsDir(self.path.parent)

    def children(self) -> list[AbsFile | AbsDir]:
        if not self.is_folder():
            return []
        return sorted(
            (AbsDir(child) if child.is_dir() else AbsFile(child) for child in self.path.iterdir()),
            key=os.fspath,
        )

    def files(self) -> Iterator[AbsFile]:
        """Yield every regular file beneath this folder, at any depth."""
        for folder, _, filenames in self.path.walk():
            for filename in filenames:
                filepath = folder / filename
                if filepath.is_file():
                    yield AbsFile(filepath)

    @classmethod
    def cwd(cls) -> Self:
        return cls(Path.cwd())

    @classmethod
    def resolve(cls, path: str | os.PathLike[str]) -> Self:
        return cls(Path(os.path.abspath(Path(path).expanduser())))
