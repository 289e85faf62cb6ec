import git
from git import GitCommandError
import pytest

from .githelper import GitHelper
from .test_utils import add_commit, snapshot_of_dir
from .typed_path import AbsDir, RelDir, RelFile


@pytest.fixture
def clone(typed_tmp_path: AbsDir) -> AbsDir:
    return typed_tmp_path / RelDir("clone")


def test_shallow_clone_local(remote_repo: AbsDir, clone: AbsDir) -> None:
    add_commit(remote_repo, {"SKILL.md": "second"})
    GitHelper.shallow_clone(remote_repo.path.as_uri(), clone, branch="main")
    assert not (clone / RelDir("skills")).exists()
    assert (clone / RelFile("SKILL.md")).is_file()
    assert len(list(git.Repo(clone).iter_commits())) == 1


def test_shallow_clone_other_branch(remote_repo: AbsDir, clone: AbsDir) -> None:
    repo = git.Repo(remote_repo)
    repo.create_head("dev").checkout()
    add_commit(remote_repo, {"dev.md": "dev"})
    repo.heads["main"].checkout()
    GitHelper.shallow_clone(remote_repo.path.as_uri(), clone, branch="dev")
    assert (clone / RelFile("dev.md")).is_file()
    assert not (clone / RelFile("README.md")).exists()


def test_shallow_clone_missing_branch(remote_repo: AbsDir, clone: AbsDir) -> None:
    with pytest.raises(GitCommandError):
        GitHelper.shallow_clone(remote_repo.path.as_uri(), clone, branch="missing")


def test_shallow_clone_missing_remote(typed_tmp_path: AbsDir, clone: AbsDir) -> None:
    missing = typed_tmp_path / RelDir("missing")
    with pytest.raises(GitCommandError):
        GitHelper.shallow_clone(missing.path.as_uri(), clone, branch="main")


def test_sparse_checkout(remote_repo: AbsDir, clone: AbsDir) -> None:
    GitHelper.shallow_clone(remote_repo.path.as_uri(), clone, branch="main", sparse=True)
    GitHelper.sparse_checkout_init(clone)
    GitHelper.sparse_checkout_set(clone, "skills/vue")
    GitHelper.checkout(clone)
    assert snapshot_of_dir(clone / RelDir("skills")) == {
        "vue/SKILL.md": "vue",
        "vue/examples/app.vue": "<template />",
    }


def test_run_command_failure(typed_tmp_path: AbsDir) -> None:
    with pytest.raises(GitCommandError) as e:
        GitHelper.run_command(typed_tmp_path, "not-a-command")
    assert e.value.status != 0


def test_run_command_ignores_git_environment(
    remote_repo: AbsDir, typed_tmp_path: AbsDir, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("GIT_DIR", str(typed_tmp_path / RelDir("elsewhere")))
    result = GitHelper.run_command(remote_repo, "rev-parse", "--abbrev-ref", "HEAD")
    assert result.stdout.strip() == "main"


def test_version() -> None:
    assert GitHelper.version().startswith("git version")


@pytest.mark.slow
def test_shallow_clone_https(clone: AbsDir) -> None:
    GitHelper.shallow_clone("https://github.com/octocat/Hello-World.git", clone, branch="master")
    assert (clone / RelFile("README")).is_file()


def test_run_command_without_stdin(remote_repo: AbsDir) -> None:
    result = GitHelper.run_command(remote_repo, "status", "--porcelain")
    assert result.returncode == 0
    assert result.stdout == ""
