from collections.abc import Sequence
import json

from git import GitCommandError
import pytest

from .doctor import Diagnostic, Health, check_git, diagnose
from .githelper import GitHelper
from .registry import Target
from .store import SkillStore
from .test_utils import normalize_message, write_tree
from .typed_path import AbsDir, RelDir


class MissingGitHelper(GitHelper):
    @classmethod
    def version(cls) -> str:
        raise FileNotFoundError("git")


class BrokenGitHelper(GitHelper):
    @classmethod
    def version(cls) -> str:
        raise GitCommandError(("git", "--version"), status=1)


def summary(diagnostics: Sequence[Diagnostic], root: AbsDir) -> list[str]:
    return [
        normalize_message(f"[{d.health}] {d.name}: {d.message}", root=root) for d in diagnostics
    ]


def test_check_git() -> None:
    diagnostic = check_git()
    assert diagnostic.health == Health.OK
    assert diagnostic.message.startswith("git version")


@pytest.mark.parametrize("git", [MissingGitHelper, BrokenGitHelper])
def test_check_git_missing(git: type[GitHelper]) -> None:
    assert check_git(git).health == Health.ERROR


def test_diagnose_fresh(skills: SkillStore, typed_tmp_path: AbsDir) -> None:
    assert summary(diagnose(skills, MissingGitHelper)[1:], typed_tmp_path) == [
        "[warn] Skills Directory: Not found: ROOT/.skills. Will be created on first use.",
        "[warn] Config File: Not found: ROOT/.skills/config.json. Will be created on first use.",
        "[warn] Store Directory: Not found: ROOT/.skills/store. Will be created on first use.",
        "[warn] Sources: No sources registered. Add one with: skills source add <url> --remote",
        "[warn] Targets: No targets registered. Add one with: skills target add <name> <path>",
    ]
    assert not skills.root.exists()


def test_diagnose_healthy(
    skills: SkillStore, local_skills: AbsDir, typed_tmp_path: AbsDir
) -> None:
    skills.add_local_source(local_skills)
    skills.add_target("custom", typed_tmp_path / RelDir("custom"))
    assert summary(diagnose(skills)[1:], typed_tmp_path) == [
        "[ok] Skills Directory: ROOT/.skills",
        "[ok] Config File: ROOT/.skills/config.json",
        "[ok] Store Directory: ROOT/.skills/store (1 item)",
        "[ok] Source: my-skills: local -> ROOT/.skills/store/my-skills",
        "[ok] Target: custom: ROOT/custom",
    ]


def test_diagnose_missing_folders(
    skills: SkillStore, local_skills: AbsDir, typed_tmp_path: AbsDir
) -> None:
    skills.add_local_source(local_skills)
    skills.remove_source("my-skills")
    skills.add_local_source(local_skills, name="gone")
    skills.skill_folder("gone").path.rename(typed_tmp_path / RelDir("moved"))
    later = typed_tmp_path / RelDir("later")
    skills.registry.add_target(Target(name="later", path=later.canonical))
    assert summary(diagnose(skills)[3:], typed_tmp_path) == [
        "[ok] Store Directory: ROOT/.skills/store (0 items)",
        "[error] Source: gone: Missing directory: ROOT/.skills/store/gone. Run: skills update",
        "[warn] Target: later: Directory missing: ROOT/later. Will be created on sync.",
    ]


@pytest.mark.parametrize(
    "contents, health",
    [
        # invalid json
        ("{", Health.ERROR),
        # wrong shape
        ('{"version": 2, "sources": 3, "targets": []}', Health.ERROR),
        # not an object
        ("[]", Health.ERROR),
        # legacy
        ('{"sources": [], "targets": []}', Health.WARN),
        # duplicate names
        (
            json.dumps(
                {
                    "version": 2,
                    "sources": [
                        {"kind": "local", "name": "a", "path": "/a"},
                        {"kind": "local", "name": "a", "path": "/b"},
                    ],
                    "targets": [],
                }
            ),
            Health.ERROR,
        ),
    ],
)
def test_diagnose_config_file(contents: str, health: Health, skills: SkillStore) -> None:
    write_tree(skills.root, {"config.json": contents})
    diagnostics = diagnose(skills)
    config_diagnostic = next(d for d in diagnostics if d.name == "Config File")
    assert config_diagnostic.health == health
    with open(skills.registry.filepath) as f:
        assert f.read() == contents
