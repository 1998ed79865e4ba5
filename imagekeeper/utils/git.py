"""Git utilities.

Thin wrappers around ``git`` subprocess calls. Every failure raises
:class:`GitCommandFailed`; nothing here retries or rolls back.
"""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import List, Optional

from imagekeeper.exceptions import GitCommandFailed
from imagekeeper.utils.logger import get_logger

logger = get_logger("git")


def git(*args: str, cwd: Optional[Path] = None) -> str:
    """Run a git command and return its stripped stdout.

    Args:
        *args: Arguments to pass to git (e.g., "status", "--short").
        cwd: Working directory; defaults to the current directory.

    Raises:
        GitCommandFailed: git exited with a non-zero status or is missing.
    """
    command = " ".join(args)
    logger.debug("git %s", command)

    try:
        result = subprocess.run(
            ["git", *args],
            capture_output=True,
            text=True,
            check=False,
            cwd=cwd,
        )
    except FileNotFoundError as exc:
        raise GitCommandFailed(command, 127, str(exc)) from exc

    if result.returncode != 0:
        raise GitCommandFailed(command, result.returncode, result.stderr)
    return result.stdout.strip()


def current_branch(cwd: Optional[Path] = None) -> str:
    """Return the checked out branch, or ``""`` in detached HEAD state."""
    return git("branch", "--show-current", cwd=cwd)


def tags_at_head(cwd: Optional[Path] = None) -> List[str]:
    """Return all tags pointing at the current commit."""
    return git("tag", "--points-at", cwd=cwd).split()


def ls_remote_tags(url: str) -> List[str]:
    """List tag names of a remote repository.

    Peeled entries (``refs/tags/v1.0^{}``) are folded into their tag.
    """
    output = git("ls-remote", "--tags", url)
    tags: List[str] = []
    for line in output.splitlines():
        _, _, ref = line.partition("\t")
        if not ref.startswith("refs/tags/"):
            continue
        name = ref[len("refs/tags/"):]
        if name.endswith("^{}"):
            continue
        tags.append(name)
    return tags


def add(path: Path, cwd: Optional[Path] = None) -> None:
    git("add", str(path), cwd=cwd)


def commit(message: str, cwd: Optional[Path] = None, *, allow_empty: bool = False) -> None:
    args = ["commit", "-m", message]
    if allow_empty:
        args.append("--allow-empty")
    git(*args, cwd=cwd)


def tag(name: str, cwd: Optional[Path] = None) -> None:
    git("tag", name, cwd=cwd)


def push(cwd: Optional[Path] = None) -> None:
    git("push", cwd=cwd)


def push_tag(name: str, remote: str = "origin", cwd: Optional[Path] = None) -> None:
    git("push", remote, name, cwd=cwd)
