from collections.abc import Sequence
from dataclasses import dataclass
import os
from os import PathLike
from subprocess import DEVNULL, PIPE, Popen
from typing import Any, cast

import git
from git import GitCommandError
from git import Repo as GitRepo
from loguru import logger

from .logger import describe
from .typed_path import AbsDir
from .utils import strict_not_none


@dataclass(frozen=True, slots=True, kw_only=True)
class ProcessResult:
    stdout: str
    stderr: str
    returncode: int
    args: Sequence[str]

    def log(self, level: str) -> None:
        logger.log(level, f"Running: {self.args}")
        logger.log(level, f"stdout:\n{self.stdout}")
        logger.log(level, f"stderr:\n{self.stderr}")
        logger.log(level, f"returncode = {self.returncode}")


class GitHelper:
    """Git operations needed to ingest remote sources.

    Every command is run from an argument vector, never a shell string.
    """

    @classmethod
    def env(cls) -> dict[str, str]:
        return {key: value for key, value in os.environ.items() if not key.startswith("GIT_")}

    @classmethod
    def run_command(
        cls, local: AbsDir | None, command: str, *args: str | PathLike[str]
    ) -> ProcessResult:
        kwargs: dict[str, Any] = {}
        if local is not None:
            kwargs["cwd"] = local
        process = Popen(
            ["git", command, *args],
            env=cls.env(),
            stdout=PIPE,
            stderr=PIPE,
            stdin=DEVNULL,
            text=False,
            **kwargs,
        )
        return cls.wait(process)

    @classmethod
    def wait(cls, process: Popen[bytes]) -> ProcessResult:
        stdout, stderr = process.communicate()
        result = ProcessResult(
            stdout=strict_not_none(git.safe_decode(stdout)),
            stderr=strict_not_none(git.safe_decode(stderr)),
            returncode=process.returncode,
            args=tuple(os.fspath(arg) for arg in cast(Sequence[str], process.args)),
        )
        if result.returncode == 0:
            result.log(level="TRACE")
        else:
            result.log(level="DEBUG")
            raise GitCommandError(
                tuple(result.args),
                status=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        return result

    @classmethod
    def shallow_clone(
        cls, remote: str, local: AbsDir, *, branch: str, sparse: bool = False
    ) -> None:
        """Clone the tip of `branch` only.

        A sparse clone fetches no blobs and checks nothing out until `checkout` is called.
        """
        options: dict[str, Any] = dict(depth=1, branch=branch)
        if sparse:
            options.update(filter="blob:none", no_checkout=True)
        with describe(f"Cloning {remote!r} ({branch}) into {local}", error_level="DEBUG"):
            # Convert to string explicitly to gitpython-developers/GitPython#2085
            GitRepo.clone_from(remote, os.fspath(local), env=cls.env(), **options)

    @classmethod
    def sparse_checkout_init(cls, local: AbsDir) -> None:
        cls.run_command(local, "sparse-checkout", "init", "--cone")

    @classmethod
    def sparse_checkout_set(cls, local: AbsDir, *folders: str) -> None:
        cls.run_command(local, "sparse-checkout", "set", *folders)

    @classmethod
    def checkout(cls, local: AbsDir) -> None:
        cls.run_command(local, "checkout")

    @classmethod
    def version(cls) -> str:
        return cls.run_command(None, "--version").stdout.strip()
