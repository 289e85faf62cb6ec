from collections.abc import Sequence
from dataclasses import dataclass
import enum
import json

from git import GitCommandError

from .githelper import GitHelper
from .registry import CURRENT_VERSION, Config, Registry
from .store import SkillStore
from .typed_path import RelDir
from .utils import all_unique, plural


class Health(enum.StrEnum):
    OK = "ok"
    WARN = "warn"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class Diagnostic:
    name: str
    health: Health
    message: str


def check_git(git: type[GitHelper] = GitHelper) -> Diagnostic:
    try:
        version = git.version()
    except (GitCommandError, OSError):
        return Diagnostic("Git", Health.ERROR, "Git is not installed. Required for remote sources.")
    return Diagnostic("Git", Health.OK, version)


def check_root(skills: SkillStore) -> Diagnostic:
    if skills.root.is_folder():
        return Diagnostic("Skills Directory", Health.OK, skills.root.canonical)
    return Diagnostic(
        "Skills Directory",
        Health.WARN,
        f"Not found: {skills.root.canonical}. Will be created on first use.",
    )


def read_registry(skills: SkillStore) -> tuple[Diagnostic, Config | None]:
    """Check the registry file as it is on disk, without repairing it."""
    filepath = skills.registry.filepath
    if not filepath.exists():
        return (
            Diagnostic(
                "Config File",
                Health.WARN,
                f"Not found: {filepath.canonical}. Will be created on first use.",
            ),
            Config(),
        )
    try:
        with open(filepath, encoding="utf-8") as f:
            raw = json.load(f)
        version = Registry.schema_version(raw)
        if version < CURRENT_VERSION:
            message = f"{filepath.canonical} uses version {version}. It will be migrated on use."
            return Diagnostic("Config File", Health.WARN, message), None
        config = Config.construct(raw)
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        message = f"Invalid: {filepath.canonical} ({e})"
        return Diagnostic("Config File", Health.ERROR, message), None
    for kind, names in (
        ("source", [source.name for source in config.sources]),
        ("target", [target.name for target in config.targets]),
    ):
        if not all_unique(names):
            message = f"Duplicate {kind} names in {filepath.canonical}"
            return Diagnostic("Config File", Health.ERROR, message), config
    return Diagnostic("Config File", Health.OK, filepath.canonical), config


def check_store(skills: SkillStore) -> Diagnostic:
    if skills.store.is_folder():
        count = len(skills.store.children())
        return Diagnostic(
            "Store Directory", Health.OK, f"{skills.store.canonical} ({plural(count, 'item')})"
        )
    return Diagnostic(
        "Store Directory",
        Health.WARN,
        f"Not found: {skills.store.canonical}. Will be created on first use.",
    )


def check_sources(skills: SkillStore, config: Config) -> list[Diagnostic]:
    if not config.sources:
        return [
            Diagnostic(
                "Sources",
                Health.WARN,
                "No sources registered. Add one with: skills source add <url> --remote",
            )
        ]
    diagnostics = []
    for source in config.sources:
        folder = skills.store / RelDir(source.name)
        if folder.is_folder():
            message = f"{source.kind} -> {folder.canonical}"
            diagnostics.append(Diagnostic(f"Source: {source.name}", Health.OK, message))
        else:
            diagnostics.append(
                Diagnostic(
                    f"Source: {source.name}",
                    Health.ERROR,
                    f"Missing directory: {folder.canonical}. Run: skills update",
                )
            )
    return diagnostics


def check_targets(config: Config) -> list[Diagnostic]:
    if not config.targets:
        return [
            Diagnostic(
                "Targets",
                Health.WARN,
                "No targets registered. Add one with: skills target add <name> <path>",
            )
        ]
    diagnostics = []
    for target in config.targets:
        if target.folder.is_folder():
            diagnostics.append(Diagnostic(f"Target: {target.name}", Health.OK, target.path))
        else:
            diagnostics.append(
                Diagnostic(
                    f"Target: {target.name}",
                    Health.WARN,
                    f"Directory missing: {target.path}. Will be created on sync.",
                )
            )
    return diagnostics


def diagnose(skills: SkillStore, git: type[GitHelper] = GitHelper) -> Sequence[Diagnostic]:
    registry_diagnostic, config = read_registry(skills)
    diagnostics = [check_git(git), check_root(skills), registry_diagnostic, check_store(skills)]
    if config is not None:
        diagnostics.extend(check_sources(skills, config))
        diagnostics.extend(check_targets(config))
    return diagnostics
