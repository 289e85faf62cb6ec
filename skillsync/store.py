from __future__ import annotations

from dataclasses import dataclass, field
import functools
import os

from loguru import logger

from .constants import SKILLS_CONFIG, SKILLS_STORE
from .hasher import compare
from .ingestion import GitIngestion, LocalIngestion, remove_folder
from .known_targets import UnknownTargetError, known_target
from .logger import describe
from .reference import GitReference
from .registry import NameCollisionError, NotFoundError, Registry, Source, Target
from .syncer import SyncEngine
from .typed_path import AbsDir, RelDir
from .types import Outcome, SyncStatus
from .updater import UpdateEngine


@dataclass
class InvalidNameError(Exception):
    name: str

    def __str__(self) -> str:
        return (
            f"{self.name!r} is not a valid name. "
            "Names must be a single, non-empty path segment."
        )


def validate_name(name: str) -> str:
    if not name or name in (".", "..") or "/" in name or os.sep in name or name != name.strip():
        raise InvalidNameError(name)
    return name


@dataclass(frozen=True)
class SkillStore:
    """The root folder: a registry of sources and targets plus the store they are mirrored from."""

    root: AbsDir
    git: GitIngestion = field(default_factory=GitIngestion)
    local: LocalIngestion = field(default_factory=LocalIngestion)

    @property
    def store(self) -> AbsDir:
        return self.root / SKILLS_STORE

    @functools.cached_property
    def registry(self) -> Registry:
        return Registry(self.root / SKILLS_CONFIG, self.store)

    @functools.cached_property
    def syncer(self) -> SyncEngine:
        return SyncEngine(self.store)

    @functools.cached_property
    def updater(self) -> UpdateEngine:
        return UpdateEngine(self.store, git=self.git, local=self.local)

    def skill_folder(self, name: str) -> AbsDir:
        return self.store / RelDir(validate_name(name))

    def ensure_directories(self) -> None:
        self.store.path.mkdir(parents=True, exist_ok=True)

    def add_remote_source(
        self, url: str, *, name: str | None = None, branch: str | None = None
    ) -> Source:
        reference = GitReference.strict_parse(url)
        source = Source.remote(
            url, reference.default_name if name is None else name, branch=branch
        )
        destination = self._claim(source.name)
        with describe(f"Adding {source.name!r} from {url!r}", level="INFO"):
            if reference.subdir is not None:
                logger.debug(f"Subdirectory: {reference.subdir!r}")
            self.git.ingest(reference, destination, branch=branch)
            self._register(source, destination)
        return source

    def add_local_source(
        self, path: str | os.PathLike[str], *, name: str | None = None
    ) -> Source:
        folder = self.local.resolve(path)
        source = Source.local(folder, self.local.default_name(folder) if name is None else name)
        destination = self._claim(source.name)
        with describe(f"Adding {source.name!r} from {folder}", level="INFO"):
            self.local.ingest(folder, destination)
            self._register(source, destination)
        return source

    def _claim(self, name: str) -> AbsDir:
        """Return the store folder for a new source, checking nothing is using it yet."""
        destination = self.skill_folder(name)
        self.ensure_directories()
        if self.registry.load().source(name) is not None or destination.exists():
            raise NameCollisionError("source", name)
        return destination

    def _register(self, source: Source, destination: AbsDir) -> None:
        try:
            self.registry.add_source(source)
        except BaseException:
            remove_folder(destination)
            raise

    def remove_source(self, name: str) -> Source:
        source = self.registry.remove_source(name)
        if source is None:
            raise NotFoundError("source", name)
        remove_folder(self.skill_folder(name))
        logger.info(f"Removed source {name!r}.")
        return source

    def add_target(
        self, name: str, path: str | os.PathLike[str] | None = None, *, sync: bool = True
    ) -> Target:
        validate_name(name)
        if path is None:
            known = known_target(name)
            if known is None:
                raise UnknownTargetError(name)
            folder = known.folder
        else:
            folder = AbsDir.resolve(path)
        self.syncer.check_overlap(folder)
        target = Target(name=name, path=folder.canonical)
        self.registry.add_target(target)
        folder.path.mkdir(parents=True, exist_ok=True)
        logger.info(f"Registered target {name!r} at {folder}.")
        if sync:
            self.syncer.sync_one(target)
        return target

    def remove_target(self, name: str) -> Target:
        target = self.registry.remove_target(name)
        if target is None:
            raise NotFoundError("target", name)
        logger.info(f"Removed target {name!r}. Files at {target.folder} were not deleted.")
        return target

    @describe("Syncing all targets", level="INFO")
    def sync(self) -> list[Outcome]:
        return self.syncer.sync_all(self.registry.targets())

    @describe("Updating all sources", level="INFO")
    def update(self) -> list[Outcome]:
        return self.updater.update_all(self.registry.sources())

    def sync_status(self, target: Target) -> SyncStatus:
        return compare(self.store, target.folder)

    def source_statuses(self) -> list[tuple[Source, bool]]:
        return [
            (source, (self.store / RelDir(source.name)).is_folder())
            for source in self.registry.sources()
        ]

    def target_statuses(self) -> list[tuple[Target, SyncStatus]]:
        return [(target, self.sync_status(target)) for target in self.registry.targets()]
