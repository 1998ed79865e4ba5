from __future__ import annotations

from pathlib import Path

import pytest

from imagekeeper.core.ledger import Ledger, classify
from imagekeeper.core.manifest import Manifest
from imagekeeper.exceptions import ScrapeFailed
from imagekeeper.models import UpdateKind


@pytest.fixture
def manifest() -> Manifest:
    return Manifest(
        Path("Dockerfile"),
        text=(
            "FROM alpine:3.19.1\n"
            "ARG CURL_VERSION=8.5.0\n"
            "ARG LAST_UPGRADE=2024-01-01T00:00:00+00:00\n"
            "RUN apk upgrade\n"
        ),
    )


@pytest.mark.unit
class TestClassify:
    """Tests for classify."""

    def test_explicit(self, manifest: Manifest) -> None:
        update = classify(manifest, "CURL_VERSION", "8.5.0", "8.6.0")

        assert update is not None
        assert update.kind is UpdateKind.EXPLICIT
        assert update.name == "CURL_VERSION"
        assert update.current_version == "8.5.0"
        assert update.new_version == "8.6.0"

    def test_implicit(self, manifest: Manifest) -> None:
        update = classify(manifest, "busybox", "1.36.1-r15", "1.36.1-r16")

        assert update is not None
        assert update.kind is UpdateKind.IMPLICIT

    def test_hidden(self, manifest: Manifest) -> None:
        update = classify(
            manifest,
            "ARG LAST_UPGRADE",
            "2024-01-01T00:00:00+00:00",
            "2024-02-01T00:00:00+00:00",
            separator="=",
            hidden=True,
        )

        assert update is not None
        assert update.kind is UpdateKind.HIDDEN
        assert update.separator == "="

    def test_equal_values_are_not_drift(self, manifest: Manifest) -> None:
        assert classify(manifest, "CURL_VERSION", "8.5.0", "8.5.0") is None

    def test_empty_item_skipped_with_warning(
        self, manifest: Manifest, capsys: pytest.CaptureFixture
    ) -> None:
        assert classify(manifest, "", "1", "2") is None
        assert "Skipping empty ITEM!" in capsys.readouterr().out

    @pytest.mark.parametrize(
        "current,new,field",
        [
            ("", "8.6.0", "current value"),
            ("8.5.0", "", "new value"),
            ("8.5.0", None, "new value"),
        ],
    )
    def test_missing_values(self, manifest: Manifest, current, new, field: str) -> None:
        with pytest.raises(ScrapeFailed) as exc_info:
            classify(manifest, "CURL_VERSION", current, new)

        assert exc_info.value.field == field
        assert str(exc_info.value) == f"Failed to scrape CURL_VERSION {field}!"

    def test_empty_version_label(self, manifest: Manifest) -> None:
        with pytest.raises(ScrapeFailed) as exc_info:
            classify(manifest, "CURL_VERSION", "8.5.0", "8.6.0", new_version="")

        assert exc_info.value.field == "new version"

    def test_separate_labels(self, manifest: Manifest) -> None:
        update = classify(
            manifest,
            "CURL_VERSION",
            "8.5.0",
            "8.6.0",
            name="curl",
            current_version="8.5",
            new_version="8.6",
        )

        assert update is not None
        assert update.changelog_entry == "curl 8.5 -> 8.6"

    def test_explicit_respects_separator(self, manifest: Manifest) -> None:
        update = classify(manifest, "alpine", "3.19.1", "3.19.2", separator=":")

        assert update is not None
        assert update.kind is UpdateKind.EXPLICIT

    def test_explicit_with_blank_after_default_separator(self, tmp_path: Path) -> None:
        manifest = Manifest(tmp_path / "Dockerfile", text="BAR: 0.9\n")
        current = manifest.extract("BAR")

        update = classify(manifest, "BAR", current, "1.0")

        assert current == "0.9"
        assert update is not None
        assert update.kind is UpdateKind.EXPLICIT

    def test_explicit_when_value_has_suffix(self, tmp_path: Path) -> None:
        manifest = Manifest(
            tmp_path / "Dockerfile", text="ENV NODE_VERSION=20.11.0-alpine\n"
        )
        current = manifest.extract("NODE_VERSION", r"[\d.]+")

        update = classify(manifest, "NODE_VERSION", current, "20.12.0")

        assert current == "20.11.0"
        assert update is not None
        assert update.kind is UpdateKind.EXPLICIT


@pytest.mark.unit
class TestLedger:
    """Tests for Ledger."""

    def test_empty(self) -> None:
        ledger = Ledger()

        assert len(ledger) == 0
        assert not ledger
        assert ledger.changelog == ""
        assert ledger.commit_message == ""

    def test_process_records_in_order(
        self, manifest: Manifest, capsys: pytest.CaptureFixture
    ) -> None:
        ledger = Ledger()

        ledger.process(manifest, "CURL_VERSION", "8.5.0", "8.6.0", name="curl")
        ledger.process(manifest, "busybox", "1.36.1-r15", "1.36.1-r16")
        ledger.process(manifest, "CURL_VERSION", "8.5.0", "8.5.0")

        assert [update.item for update in ledger] == ["CURL_VERSION", "busybox"]
        out = capsys.readouterr().out
        assert "curl 8.6.0 is available!" in out
        assert "busybox 1.36.1-r16 is available!" in out

    def test_hidden_updates_are_silent(
        self, manifest: Manifest, capsys: pytest.CaptureFixture
    ) -> None:
        ledger = Ledger()

        ledger.process(manifest, "ARG LAST_UPGRADE", "a", "b", hidden=True)

        assert len(ledger) == 1
        assert capsys.readouterr().out == ""

    def test_changelog(self, manifest: Manifest) -> None:
        ledger = Ledger()
        ledger.process(manifest, "CURL_VERSION", "8.5.0", "8.6.0", name="curl")
        ledger.process(manifest, "busybox", "1.36.1-r15", "1.36.1-r16")
        ledger.process(manifest, "ARG LAST_UPGRADE", "a", "b", hidden=True)

        assert ledger.changelog == "curl 8.5.0 -> 8.6.0, busybox 1.36.1-r15 -> 1.36.1-r16, "
        assert ledger.commit_message == "curl 8.5.0 -> 8.6.0, busybox 1.36.1-r15 -> 1.36.1-r16"

    def test_find_returns_last(self, manifest: Manifest) -> None:
        ledger = Ledger()
        ledger.process(manifest, "CURL_VERSION", "8.5.0", "8.6.0")
        ledger.process(manifest, "CURL_VERSION", "8.5.0", "8.7.0")

        found = ledger.find("CURL_VERSION")

        assert found is not None
        assert found.new_value == "8.7.0"
        assert ledger.find("wget") is None

    def test_updates_is_a_copy(self, manifest: Manifest) -> None:
        ledger = Ledger()
        ledger.process(manifest, "CURL_VERSION", "8.5.0", "8.6.0")

        ledger.updates.clear()

        assert len(ledger) == 1
