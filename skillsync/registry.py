from __future__ import annotations

from collections.abc import Callable, Iterator
import contextlib
import copy
import dataclasses
from dataclasses import dataclass, field
import enum
import json
import os
import shutil
import tempfile
from typing import Any, Literal, Self

from loguru import logger

from .lock import FileSystemLock
from .typed_path import AbsDir, AbsFile, RelDir
from .types import SourceKind

CURRENT_VERSION = 2
LEGACY_VERSION = 1

type Kind = Literal["source", "target"]
type RawConfig = dict[str, Any]
type Migration = Callable[[RawConfig, AbsDir], RawConfig]


@dataclass
class NameCollisionError(Exception):
    kind: Kind
    name: str

    def __str__(self) -> str:
        return (
            f"A {self.kind} named {self.name!r} already exists. "
            "Remove it first or choose another name."
        )


@dataclass
class NotFoundError(Exception):
    kind: Kind
    name: str

    def __str__(self) -> str:
        return f"No {self.kind} named {self.name!r} is registered."


@dataclass
class RegistryCorruptError(Exception):
    filepath: AbsFile
    reason: str

    def __str__(self) -> str:
        return f"{self.filepath} could not be read ({self.reason})."


@dataclass(frozen=True, slots=True, kw_only=True)
class Source:
    kind: SourceKind
    name: str
    url: str | None = None
    path: str | None = None
    branch: str | None = None

    @classmethod
    def remote(cls, url: str, name: str, *, branch: str | None = None) -> Self:
        return cls(kind=SourceKind.REMOTE, name=name, url=url, branch=branch)

    @classmethod
    def local(cls, path: AbsDir, name: str) -> Self:
        return cls(kind=SourceKind.LOCAL, name=name, path=path.canonical)

    @property
    def origin(self) -> str | None:
        return self.url if self.kind == SourceKind.REMOTE else self.path

    @classmethod
    def construct(cls, raw: Any) -> Self:
        source = cls(
            kind=SourceKind(_field(raw, "kind", str)),
            name=_field(raw, "name", str),
            url=_field(raw, "url", str, optional=True),
            path=_field(raw, "path", str, optional=True),
            branch=_field(raw, "branch", str, optional=True),
        )
        if source.origin is None:
            raise ValueError(f"{source.kind} source {source.name!r} has no origin")
        return source


@dataclass(frozen=True, slots=True, kw_only=True)
class Target:
    name: str
    path: str

    @property
    def folder(self) -> AbsDir:
        return AbsDir(self.path)

    @classmethod
    def construct(cls, raw: Any) -> Self:
        return cls(name=_field(raw, "name", str), path=_field(raw, "path", str))


@dataclass(kw_only=True)
class Config:
    sources: list[Source] = field(default_factory=list)
    targets: list[Target] = field(default_factory=list)
    version: int = CURRENT_VERSION

    def source(self, name: str) -> Source | None:
        return next((source for source in self.sources if source.name == name), None)

    def target(self, name: str) -> Target | None:
        return next((target for target in self.targets if target.name == name), None)

    @property
    def representation(self) -> RawConfig:
        return represent(self)

    @classmethod
    def construct(cls, raw: Any) -> Self:
        version = _field(raw, "version", int, optional=True)
        return cls(
            sources=[Source.construct(source) for source in _field(raw, "sources", list)],
            targets=[Target.construct(target) for target in _field(raw, "targets", list)],
            version=CURRENT_VERSION if version is None else version,
        )


def represent(obj: Any) -> Any:
    match obj:
        case _ if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
            return {
                field.name: represent(getattr(obj, field.name))
                for field in dataclasses.fields(obj)
                if getattr(obj, field.name) is not None
            }
        case enum.Enum():
            return obj.value
        case list() | tuple():
            return [represent(sub_obj) for sub_obj in obj]
        case str() | int():
            return obj
    raise TypeError()


def _field(raw: Any, key: str, type_: type, *, optional: bool = False) -> Any:
    if not isinstance(raw, dict):
        raise TypeError(f"expected an object, found {type(raw).__name__}")
    if key not in raw or raw[key] is None:
        if optional:
            return None
        raise KeyError(key)
    value = raw[key]
    # bool is a subclass of int.
    if not isinstance(value, type_) or isinstance(value, bool):
        raise TypeError(f"{key!r} should be {type_.__name__}, found {type(value).__name__}")
    return value


MIGRATIONS: dict[int, Migration] = {}


def migration(from_version: int) -> Callable[[Migration], Migration]:
    def register(fn: Migration) -> Migration:
        MIGRATIONS[from_version] = fn
        return fn

    return register


@migration(from_version=LEGACY_VERSION)
def flatten_namespaces(raw: RawConfig, store: AbsDir) -> RawConfig:
    """Replace `owner/name` namespaces with flat names and move their store folders."""
    sources = raw.get("sources")
    if not isinstance(sources, list):
        return raw
    taken = {
        source["name"]
        for source in sources
        if isinstance(source, dict) and isinstance(source.get("name"), str)
    }
    for source in sources:
        if not isinstance(source, dict):
            continue
        if "type" in source and "kind" not in source:
            source["kind"] = source.pop("type")
        namespace = source.pop("namespace", None)
        if not isinstance(namespace, str) or "name" in source:
            continue
        parts = [part for part in namespace.split("/") if part]
        name = parts[-1] if parts else namespace
        if name in taken:
            name = "-".join(parts)
            logger.warning(f"{namespace!r} clashes with an existing name, renaming to {name!r}.")
        taken.add(name)
        source["name"] = name
        move_store_folder(store, RelDir(namespace), RelDir(name))
    return raw


def move_store_folder(store: AbsDir, old: RelDir, new: RelDir) -> None:
    old_folder, new_folder = store / old, store / new
    if old_folder.canonical == new_folder.canonical:
        return
    if not old_folder.is_folder() or new_folder.exists():
        logger.warning(f"Unable to move {old_folder} to {new_folder}.")
        return
    try:
        shutil.move(old_folder, new_folder)
    except OSError as e:
        logger.warning(f"Unable to move {old_folder} to {new_folder}: {e}")
        return
    # Prune legacy owner folders that are now empty.
    with contextlib.suppress(OSError):
        if old_folder.parent.canonical != store.canonical:
            old_folder.parent.path.rmdir()


@dataclass(frozen=True)
class Registry:
    """Persisted sources and targets, re-read on every access."""

    filepath: AbsFile
    store: AbsDir

    @property
    def lock_file(self) -> AbsFile:
        return AbsFile(self.filepath.path.with_name(f"{self.filepath.name}.lock"))

    def lock(self) -> FileSystemLock:
        return FileSystemLock.acquire(self.lock_file)

    def load(self) -> Config:
        raw = self._read()
        if self.schema_version(raw) >= CURRENT_VERSION:
            return self._decode(raw)
        with self.lock():
            return self._load()

    def _load(self) -> Config:
        """Read, upgrade and decode the registry. The lock must be held."""
        raw = self._read()
        if self.schema_version(raw) < CURRENT_VERSION:
            raw = self._upgrade(raw)
        return self._decode(raw)

    def save(self, config: Config) -> None:
        self._write(config.representation)

    @contextlib.contextmanager
    def edit(self) -> Iterator[Config]:
        """Yield the config for modification and save it afterwards if it changed."""
        with self.lock():
            config = self._load()
            original = copy.deepcopy(config)
            yield config
            if config != original:
                self.save(config)

    def _read(self) -> RawConfig:
        if not self.filepath.exists():
            return self._reset()
        try:
            with open(self.filepath, encoding="utf-8") as f:
                raw = json.load(f)
            if not isinstance(raw, dict):
                raise RegistryCorruptError(self.filepath, "expected a JSON object")
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(RegistryCorruptError(self.filepath, str(e)))
            return self._reset()
        except RegistryCorruptError as e:
            logger.warning(e)
            return self._reset()
        return raw

    def _decode(self, raw: RawConfig) -> Config:
        try:
            return Config.construct(raw)
        except (KeyError, TypeError, ValueError) as e:
            if (version := self.schema_version(raw)) > CURRENT_VERSION:
                # Leave files from newer releases untouched.
                raise RegistryCorruptError(
                    self.filepath, f"unsupported version {version}: {type(e).__name__}: {e}"
                ) from e
            logger.warning(RegistryCorruptError(self.filepath, f"{type(e).__name__}: {e}"))
            return Config.construct(self._reset())

    def _reset(self) -> RawConfig:
        logger.debug(f"Creating empty registry at {self.filepath}")
        raw = Config().representation
        self._write(raw)
        return raw

    def _write(self, raw: RawConfig) -> None:
        folder = self.filepath.parent
        folder.path.mkdir(parents=True, exist_ok=True)
        f = tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=folder.path,
            prefix=f".{self.filepath.name}.",
            suffix=".tmp",
            delete=False,
        )
        try:
            with f:
                json.dump(raw, f, indent=2)
                f.write("\n")
            os.replace(f.name, self.filepath)
        except BaseException:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(f.name)
            raise

    @classmethod
    def schema_version(cls, raw: RawConfig) -> int:
        version = raw.get("version", LEGACY_VERSION)
        return version if isinstance(version, int) else LEGACY_VERSION

    def _upgrade(self, raw: RawConfig) -> RawConfig:
        start = version = self.schema_version(raw)
        while version < CURRENT_VERSION:
            if (step := MIGRATIONS.get(version)) is not None:
                raw = step(raw, self.store)
            version += 1
        raw["version"] = CURRENT_VERSION
        self._write(raw)
        logger.info(f"Migrated registry from version {start} to {CURRENT_VERSION}.")
        return raw

    def add_source(self, source: Source) -> None:
        with self.edit() as config:
            if config.source(source.name) is not None:
                raise NameCollisionError("source", source.name)
            config.sources.append(source)

    def remove_source(self, name: str) -> Source | None:
        with self.edit() as config:
            source = config.source(name)
            if source is not None:
                config.sources.remove(source)
        return source

    def add_target(self, target: Target) -> None:
        with self.edit() as config:
            if config.target(target.name) is not None:
                raise NameCollisionError("target", target.name)
            config.targets.append(target)

    def remove_target(self, name: str) -> Target | None:
        with self.edit() as config:
            target = config.target(name)
            if target is not None:
                config.targets.remove(target)
        return target

    def sources(self) -> list[Source]:
        return self.load().sources

    def targets(self) -> list[Target]:
        return self.load().targets
