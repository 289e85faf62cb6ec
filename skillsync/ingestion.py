from collections.abc import Iterator
import contextlib
from dataclasses import dataclass, field
import os
import shutil
import tempfile

from loguru import logger

from .constants import SKILLS_CACHE
from .githelper import GitHelper
from .logger import describe
from .reference import GitReference
from .typed_path import AbsDir, RelDir


@dataclass
class CloneError(Exception):
    url: str
    cause: BaseException

    def __str__(self) -> str:
        return f"Unable to clone {self.url!r}. ({type(self.cause).__name__}: {self.cause})"


@dataclass
class SourceUnavailableError(Exception):
    path: AbsDir

    def __str__(self) -> str:
        return f"{self.path} does not exist or is not a folder."


def remove_folder(folder: AbsDir) -> None:
    if folder.is_folder():
        shutil.rmtree(folder)
    elif folder.exists():
        os.remove(folder)


@contextlib.contextmanager
def staging(destination: AbsDir) -> Iterator[AbsDir]:
    """Remove anything created at `destination` if the body fails."""
    if destination.exists():
        raise FileExistsError(f"{destination} already exists.")
    try:
        yield destination
    except BaseException:
        logger.debug(f"Cleaning up {destination}")
        with contextlib.suppress(OSError):
            remove_folder(destination)
        raise


@contextlib.contextmanager
def temporary_folder(parent: AbsDir) -> Iterator[AbsDir]:
    parent.path.mkdir(parents=True, exist_ok=True)
    folder = AbsDir(tempfile.mkdtemp(prefix="clone-", dir=parent))
    try:
        yield folder
    finally:
        shutil.rmtree(folder, ignore_errors=True)


@dataclass(frozen=True)
class GitIngestion:
    git: type[GitHelper] = GitHelper
    cache: AbsDir = field(default=SKILLS_CACHE)

    def ingest(
        self, reference: GitReference, destination: AbsDir, *, branch: str | None = None
    ) -> None:
        """Write the files of `reference` (or just its subdir) into `destination`.

        `destination` must not exist beforehand and is removed again on failure.
        """
        branch = branch or reference.resolved_branch
        destination.parent.path.mkdir(parents=True, exist_ok=True)
        if destination.exists():
            raise FileExistsError(f"{destination} already exists.")
        try:
            with staging(destination):
                if reference.subdir is None:
                    self._ingest_repo(reference, destination, branch)
                else:
                    self._ingest_subdir(reference, destination, branch)
        except Exception as e:
            raise CloneError(reference.clone_url, e) from e

    def _ingest_repo(self, reference: GitReference, destination: AbsDir, branch: str) -> None:
        self.git.shallow_clone(reference.clone_url, destination, branch=branch)
        # The store holds plain files, not nested repositories.
        shutil.rmtree(destination / RelDir(".git"), ignore_errors=True)

    def _ingest_subdir(self, reference: GitReference, destination: AbsDir, branch: str) -> None:
        assert reference.subdir is not None
        with temporary_folder(self.cache) as tmp:
            clone = tmp / RelDir("repo")
            self.git.shallow_clone(reference.clone_url, clone, branch=branch, sparse=True)
            with describe(f"Checking out {reference.subdir!r}", error_level="DEBUG"):
                self.git.sparse_checkout_init(clone)
                self.git.sparse_checkout_set(clone, reference.subdir)
                self.git.checkout(clone)
            subfolder = clone / RelDir(reference.subdir)
            if not subfolder.is_folder():
                raise FileNotFoundError(
                    f"{reference.subdir!r} is not a folder on branch {branch!r}."
                )
            shutil.move(subfolder, destination)


@dataclass(frozen=True)
class LocalIngestion:
    def resolve(self, path: str | os.PathLike[str]) -> AbsDir:
        folder = AbsDir.resolve(path)
        if not folder.is_folder():
            raise SourceUnavailableError(folder)
        return folder

    def ingest(self, path: str | os.PathLike[str], destination: AbsDir) -> AbsDir:
        """Copy the folder at `path` into `destination` and return its absolute path."""
        folder = self.resolve(path)
        destination.parent.path.mkdir(parents=True, exist_ok=True)
        with staging(destination), describe(f"Copying {folder} into {destination}", level="DEBUG"):
            shutil.copytree(folder, destination, symlinks=True)
        return folder

    @classmethod
    def default_name(cls, folder: AbsDir) -> str:
        return folder.name or "unnamed"
