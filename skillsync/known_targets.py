from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from .typed_path import AbsDir


@dataclass(frozen=True, slots=True)
class KnownTarget:
    name: str
    description: str
    relative_path: str

    @property
    def folder(self) -> AbsDir:
        return AbsDir(Path.home() / self.relative_path)


KNOWN_TARGETS: Sequence[KnownTarget] = (
    KnownTarget("cursor", "Cursor IDE", ".cursor/skills"),
    KnownTarget("claude", "Claude Code / Claude Desktop", ".claude/skills"),
    KnownTarget("gemini", "Gemini CLI", ".gemini/skills"),
    KnownTarget("vscode", "GitHub Copilot / VS Code", ".copilot/skills"),
    KnownTarget("opencode", "OpenCode CLI", ".config/opencode/skills"),
    KnownTarget("windsurf", "Windsurf IDE", ".windsurf/skills"),
    KnownTarget("antigravity", "Antigravity", ".gemini/antigravity/skills"),
)


def known_target(name: str) -> KnownTarget | None:
    return next(
        (target for target in KNOWN_TARGETS if target.name.lower() == name.lower()), None
    )


@dataclass
class UnknownTargetError(Exception):
    name: str

    def __str__(self) -> str:
        names = ", ".join(target.name for target in KNOWN_TARGETS)
        return (
            f"{self.name!r} is not a known target, so a path is required. "
            f"(Known targets: {names}.)"
        )
