from pathlib import Path
import sys

from loguru import logger
import pytest
from pytest import LogCaptureFixture

from .githelper import GitHelper
from .ingestion import GitIngestion
from .registry import Registry
from .store import SkillStore
from .test_utils import add_commit, write_tree
from .typed_path import AbsDir, RelDir

REMOTE_URL = "https://github.com/owner/skills"


@pytest.fixture
def typed_tmp_path(tmp_path: Path) -> AbsDir:
    return AbsDir(tmp_path)


@pytest.fixture
def remotes() -> dict[str, AbsDir]:
    return {}


@pytest.fixture
def git_helper(remotes: dict[str, AbsDir]) -> type[GitHelper]:
    class RedirectingGitHelper(GitHelper):
        """Clone from local repositories in place of the urls in `remotes`."""

        @classmethod
        def shallow_clone(
            cls, remote: str, local: AbsDir, *, branch: str, sparse: bool = False
        ) -> None:
            if remote in remotes:
                remote = remotes[remote].path.as_uri()
            super().shallow_clone(remote, local, branch=branch, sparse=sparse)

    return RedirectingGitHelper


@pytest.fixture
def git_ingestion(git_helper: type[GitHelper], typed_tmp_path: AbsDir) -> GitIngestion:
    return GitIngestion(git=git_helper, cache=typed_tmp_path / RelDir("cache"))


@pytest.fixture
def skills_root(typed_tmp_path: AbsDir) -> AbsDir:
    return typed_tmp_path / RelDir(".skills")


@pytest.fixture
def skills(skills_root: AbsDir, git_ingestion: GitIngestion) -> SkillStore:
    return SkillStore(skills_root, git=git_ingestion)


@pytest.fixture
def registry(skills: SkillStore) -> Registry:
    return skills.registry


@pytest.fixture
def remote_repo(typed_tmp_path: AbsDir) -> AbsDir:
    repo = typed_tmp_path / RelDir("remote")
    add_commit(
        repo,
        {
            "README.md": "# skills",
            "skills/react/SKILL.md": "react",
            "skills/vue/SKILL.md": "vue",
            "skills/vue/examples/app.vue": "<template />",
        },
    )
    return repo


@pytest.fixture
def remote_url(remote_repo: AbsDir, remotes: dict[str, AbsDir]) -> str:
    remotes[f"{REMOTE_URL}.git"] = remote_repo
    return REMOTE_URL


@pytest.fixture
def local_skills(typed_tmp_path: AbsDir) -> AbsDir:
    folder = typed_tmp_path / RelDir("my-skills")
    write_tree(folder, {"SKILL.md": "mine", "scripts/run.sh": "echo mine"})
    return folder


@pytest.fixture(autouse=True)
def log_everything() -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level="TRACE",
        format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{file.path}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    )


@pytest.fixture
def log_level() -> str:
    return "INFO"


@pytest.fixture
def log_cleanly(caplog: LogCaptureFixture, log_level: str) -> None:
    logger.remove()
    logger.add(caplog.handler, level=log_level, colorize=False, format="{message}")
