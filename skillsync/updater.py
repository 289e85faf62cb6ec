from collections.abc import Iterable
from dataclasses import dataclass, field

from loguru import logger

from .ingestion import GitIngestion, LocalIngestion, remove_folder
from .logger import describe
from .reference import GitReference
from .registry import Source
from .typed_path import AbsDir, RelDir
from .types import Outcome, SourceKind
from .utils import strict_not_none


@dataclass(frozen=True)
class UpdateEngine:
    store: AbsDir
    git: GitIngestion = field(default_factory=GitIngestion)
    local: LocalIngestion = field(default_factory=LocalIngestion)

    def update_one(self, source: Source) -> None:
        """Re-ingest `source` from its origin, replacing its folder in the store."""
        destination = self.store / RelDir(source.name)
        with describe(f"Updating {source.name!r} from {source.origin!r}", level="DEBUG"):
            match source.kind:
                case SourceKind.REMOTE:
                    self._update_remote(source, destination)
                case SourceKind.LOCAL:
                    self._update_local(source, destination)
        logger.info(f"{source.name}: Updated")

    def _update_remote(self, source: Source, destination: AbsDir) -> None:
        reference = GitReference.strict_parse(strict_not_none(source.url))
        remove_folder(destination)
        self.git.ingest(reference, destination, branch=source.branch)

    def _update_local(self, source: Source, destination: AbsDir) -> None:
        # Check the origin before touching the existing copy.
        folder = self.local.resolve(strict_not_none(source.path))
        remove_folder(destination)
        self.local.ingest(folder, destination)

    def update_all(self, sources: Iterable[Source]) -> list[Outcome]:
        outcomes = []
        for source in sources:
            try:
                self.update_one(source)
            except Exception as e:
                logger.error(f"{source.name}: Failed - {type(e).__name__}: {e}")
                outcomes.append(Outcome.failure(source.name, e))
            else:
                outcomes.append(Outcome(source.name))
        return outcomes
