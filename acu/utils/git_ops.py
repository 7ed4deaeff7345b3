"""Git operations — clone and pull the catalog mirror."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo

from acu.errors import MirrorError


@dataclass
class GitFetcher:
    """Fetches the upstream catalog with GitPython.

    The mirror manager only needs ``clone`` and ``refresh``; tests swap in
    an object with the same two methods.
    """

    depth: int = 1

    def clone(self, url: str, dest: Path, branch: str = "") -> None:
        """Shallow-clone ``url`` into ``dest``."""
        kwargs = {"depth": self.depth}
        if branch:
            kwargs["branch"] = branch
            kwargs["single_branch"] = True
        try:
            Repo.clone_from(url, dest, **kwargs)
        except GitCommandError as e:
            raise MirrorError(f"git clone of {url} failed: {e.stderr.strip() or e}") from e

    def refresh(self, path: Path) -> None:
        """Pull the latest upstream state into an existing clone."""
        try:
            repo = Repo(path)
            repo.git.pull("-q")
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise MirrorError(f"Not a git repository: {path}") from e
        except GitCommandError as e:
            raise MirrorError(f"git pull in {path} failed: {e.stderr.strip() or e}") from e

