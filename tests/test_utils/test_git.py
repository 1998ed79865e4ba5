from __future__ import annotations

import subprocess
from pathlib import Path
from typing import List
from unittest.mock import MagicMock, patch

import pytest

from imagekeeper.exceptions import GitCommandFailed
from imagekeeper.utils import git


def completed(stdout: str = "", returncode: int = 0, stderr: str = "") -> MagicMock:
    return MagicMock(
        spec=subprocess.CompletedProcess,
        stdout=stdout,
        stderr=stderr,
        returncode=returncode,
    )


@pytest.fixture
def run() -> MagicMock:
    with patch("imagekeeper.utils.git.subprocess.run") as mock_run:
        mock_run.return_value = completed()
        yield mock_run


def argv(mock_run: MagicMock) -> List[List[str]]:
    return [call.args[0] for call in mock_run.call_args_list]


@pytest.mark.unit
class TestGit:
    """Tests for the git() wrapper."""

    def test_returns_stripped_stdout(self, run: MagicMock) -> None:
        run.return_value = completed("main\n")

        assert git.git("branch", "--show-current") == "main"
        run.assert_called_once_with(
            ["git", "branch", "--show-current"],
            capture_output=True,
            text=True,
            check=False,
            cwd=None,
        )

    def test_passes_cwd(self, run: MagicMock, tmp_path: Path) -> None:
        git.git("status", cwd=tmp_path)

        assert run.call_args.kwargs["cwd"] == tmp_path

    def test_non_zero_exit_raises(self, run: MagicMock) -> None:
        run.return_value = completed(returncode=128, stderr="fatal: not a git repository\n")

        with pytest.raises(GitCommandFailed) as exc_info:
            git.git("tag", "v1")

        assert exc_info.value.command == "tag v1"
        assert exc_info.value.returncode == 128
        assert exc_info.value.exit_code == 109
        assert "not a git repository" in str(exc_info.value)

    def test_missing_binary(self, run: MagicMock) -> None:
        run.side_effect = FileNotFoundError("git")

        with pytest.raises(GitCommandFailed) as exc_info:
            git.git("status")

        assert exc_info.value.returncode == 127


@pytest.mark.unit
class TestHelpers:
    """Tests for the command helpers."""

    def test_current_branch_detached(self, run: MagicMock) -> None:
        run.return_value = completed("")

        assert git.current_branch() == ""

    def test_tags_at_head(self, run: MagicMock) -> None:
        run.return_value = completed("3.19.1-4\nrelease/3.19\n")

        assert git.tags_at_head() == ["3.19.1-4", "release/3.19"]
        assert argv(run) == [["git", "tag", "--points-at"]]

    def test_ls_remote_tags_skips_peeled(self, run: MagicMock) -> None:
        run.return_value = completed(
            "aaa\trefs/tags/v1.0\n"
            "bbb\trefs/tags/v1.0^{}\n"
            "ccc\trefs/tags/v1.1\n"
            "ddd\tHEAD\n"
        )

        assert git.ls_remote_tags("https://example.org/repo.git") == ["v1.0", "v1.1"]
        assert argv(run) == [["git", "ls-remote", "--tags", "https://example.org/repo.git"]]

    def test_release_sequence(self, run: MagicMock) -> None:
        git.add(Path("Dockerfile"))
        git.commit("curl 8.5.0 -> 8.6.0")
        git.tag("3.19.1-5")
        git.push()
        git.push_tag("3.19.1-5")

        assert argv(run) == [
            ["git", "add", "Dockerfile"],
            ["git", "commit", "-m", "curl 8.5.0 -> 8.6.0"],
            ["git", "tag", "3.19.1-5"],
            ["git", "push"],
            ["git", "push", "origin", "3.19.1-5"],
        ]

    def test_commit_allow_empty(self, run: MagicMock) -> None:
        git.commit("rebuild", allow_empty=True)

        assert argv(run) == [["git", "commit", "-m", "rebuild", "--allow-empty"]]
