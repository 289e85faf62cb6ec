from collections.abc import Iterable
from dataclasses import dataclass
import shutil

from loguru import logger

from .ingestion import remove_folder
from .logger import describe
from .registry import Target
from .typed_path import AbsDir, AbsFile
from .types import Outcome


@dataclass
class OverlappingTargetError(Exception):
    target: AbsDir
    store: AbsDir

    def __str__(self) -> str:
        return f"{self.target} overlaps with the store at {self.store}."


@dataclass(frozen=True)
class SyncEngine:
    store: AbsDir

    def sync_one(self, target: Target) -> None:
        """Replace the contents of `target` with a copy of the whole store."""
        folder = target.folder
        self.check_overlap(folder)
        with describe(f"Syncing {target.name!r} at {folder}", level="DEBUG"):
            folder.path.mkdir(parents=True, exist_ok=True)
            if not self.store.children():
                logger.info(f"{target.name}: Store is empty, nothing to sync.")
                return
            self.clear(folder)
            shutil.copytree(self.store, folder, symlinks=True, dirs_exist_ok=True)
        logger.info(f"{target.name}: Synced")

    def check_overlap(self, folder: AbsDir) -> None:
        target_path, store_path = folder.path.resolve(), self.store.path.resolve()
        if target_path.is_relative_to(store_path) or store_path.is_relative_to(target_path):
            raise OverlappingTargetError(folder, self.store)

    def clear(self, folder: AbsDir) -> None:
        """Empty `folder` without removing the folder itself."""
        managed = {child.name for child in self.store.children()}
        for child in folder.children():
            if child.name not in managed:
                logger.warning(f"Removing {child} as it is not in the store.")
            match child:
                case AbsDir() if not child.path.is_symlink():
                    remove_folder(child)
                case AbsDir() | AbsFile():
                    child.path.unlink()

    def sync_all(self, targets: Iterable[Target]) -> list[Outcome]:
        outcomes = []
        for target in targets:
            try:
                self.sync_one(target)
            except Exception as e:
                logger.error(f"{target.name}: Failed - {type(e).__name__}: {e}")
                outcomes.append(Outcome.failure(target.name, e))
            else:
                outcomes.append(Outcome(target.name))
        return outcomes
