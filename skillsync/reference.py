from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
import enum
import re
from typing import Self

from .constants import DEFAULT_BRANCH


@dataclass
class InvalidGitUrlError(Exception):
    url: str

    def __str__(self) -> str:
        return (
            f"{self.url!r} is not a recognised Git URL. Expected one of "
            "https://github.com/owner/repo, https://gitlab.com/owner/repo, "
            "https://bitbucket.org/owner/repo, https://host/owner/repo.git "
            "or git@host:owner/repo.git."
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class GitReference:
    host: str
    owner: str
    repo: str
    clone_url: str
    branch: str | None = None
    subdir: str | None = None

    @property
    def default_name(self) -> str:
        if self.subdir:
            return self.subdir.rstrip("/").rsplit("/", 1)[-1]
        return self.repo

    @property
    def resolved_branch(self) -> str:
        return self.branch or DEFAULT_BRANCH

    @classmethod
    def parse(cls, url: str) -> Self | None:
        url = url.strip()
        for matcher in MATCHERS:
            if (reference := matcher.match(url)) is not None:
                return reference
        return None

    @classmethod
    def strict_parse(cls, url: str) -> Self:
        reference = cls.parse(url)
        if reference is None:
            raise InvalidGitUrlError(url)
        return reference


class Transport(enum.Enum):
    HTTPS = enum.auto()
    SSH = enum.auto()


_SEGMENT = r"[^/\s]+"
_REPO = r"(?P<repo>[^/\s]+?)(?:\.git)?"
_END = r"/?$"
_HTTPS_PREFIX = r"^(?:(?P<scheme>https?)://)?(?:www\.)?"


@dataclass(frozen=True, slots=True)
class Matcher:
    pattern: re.Pattern[str]
    transport: Transport
    host: str | None = None

    @classmethod
    def https(cls, host: str, tree: str | None = None) -> Self:
        """Match `host/owner/repo`, optionally followed by `/<tree>/<branch>[/<subdir>]`."""
        suffix = (
            ""
            if tree is None
            else rf"/{tree}/(?P<branch>{_SEGMENT})(?:/(?P<subdir>.+?))?"
        )
        pattern = rf"{_HTTPS_PREFIX}{re.escape(host)}/(?P<owner>{_SEGMENT})/{_REPO}{suffix}{_END}"
        return cls(re.compile(pattern), Transport.HTTPS, host)

    @classmethod
    def ssh(cls, host: str) -> Self:
        return cls(
            re.compile(rf"^git@{re.escape(host)}:(?P<owner>{_SEGMENT})/{_REPO}{_END}"),
            Transport.SSH,
            host,
        )

    def match(self, url: str) -> GitReference | None:
        match = self.pattern.match(url)
        if match is None:
            return None
        groups = match.groupdict()
        host = self.host or groups["host"]
        owner, repo = groups["owner"], groups["repo"].removesuffix(".git")
        if not repo:
            return None
        return GitReference(
            host=host,
            owner=owner,
            repo=repo,
            clone_url=self.clone_url(host, owner, repo, groups.get("scheme")),
            branch=groups.get("branch"),
            subdir=groups.get("subdir"),
        )

    def clone_url(self, host: str, owner: str, repo: str, scheme: str | None) -> str:
        match self.transport:
            case Transport.SSH:
                return f"git@{host}:{owner}/{repo}.git"
            case Transport.HTTPS:
                # Known providers are always cloned over https.
                if self.host is not None:
                    scheme = "https"
                return f"{scheme or 'https'}://{host}/{owner}/{repo}.git"


GENERIC_HTTPS = Matcher(
    re.compile(
        rf"^(?P<scheme>https?)://(?P<host>[^/\s@]+)/(?P<owner>{_SEGMENT})/{_REPO}{_END}"
    ),
    Transport.HTTPS,
)
GENERIC_SSH = Matcher(
    re.compile(rf"^git@(?P<host>[^:/\s]+):(?P<owner>{_SEGMENT})/{_REPO}{_END}"),
    Transport.SSH,
)

MATCHERS: Sequence[Matcher] = (
    Matcher.https("github.com", tree=r"(?:tree|blob)"),
    Matcher.https("github.com"),
    Matcher.ssh("github.com"),
    Matcher.https("gitlab.com", tree=r"-/(?:tree|blob)"),
    Matcher.https("gitlab.com"),
    Matcher.ssh("gitlab.com"),
    Matcher.https("bitbucket.org", tree=r"src"),
    Matcher.https("bitbucket.org"),
    Matcher.ssh("bitbucket.org"),
    GENERIC_SSH,
    GENERIC_HTTPS,
)
