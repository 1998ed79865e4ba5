from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from imagekeeper.config import (
    CheckConfig,
    ImageKeeperConfig,
    discover_config_file,
    load_config,
    require,
    _parse_section,
    _pyproject_has_section,
    _read_toml,
)
from imagekeeper.exceptions import ConfigError, VariableNotSet


FULL_CONFIG = """
[imagekeeper]
image_name = "acme/curl"
main_item = "alpine"
release_version = "3.19.1-4"
timeout = 10

[[imagekeeper.checks]]
kind = "registry"
regex = '\\d+\\.\\d+\\.\\d+'

[[imagekeeper.checks]]
kind = "packages"

[[imagekeeper.checks]]
kind = "github"
repo = "curl/curl"
item = "CURL_VERSION"
regex = '[\\d_]+'
prefix = "curl-"
"""


@pytest.mark.unit
class TestImageKeeperConfig:
    """Tests for ImageKeeperConfig dataclass."""

    def test_default_initialization(self) -> None:
        """Test ImageKeeperConfig initializes with correct defaults."""
        config = ImageKeeperConfig()

        assert config.image_name is None
        assert config.main_item is None
        assert config.release_version is None
        assert config.manifest == "Dockerfile"
        assert config.separator == "[ =:]"
        assert config.timeout == 30
        assert config.max_retries == 3
        assert config.checks == []
        assert config.source_path is None

    def test_manifest_path_relative_to_config_file(self, tmp_path: Path) -> None:
        """Test manifest is resolved next to the config file."""
        config = ImageKeeperConfig(source_path=tmp_path / "imagekeeper.toml")

        assert config.manifest_path == tmp_path / "Dockerfile"

    def test_manifest_path_defaults_to_cwd(self, tmp_path: Path) -> None:
        """Test manifest is resolved in the working directory without a file."""
        with patch("imagekeeper.config.Path.cwd", return_value=tmp_path):
            assert ImageKeeperConfig(manifest="Containerfile").manifest_path == (
                tmp_path / "Containerfile"
            )

    def test_uses_docker(self) -> None:
        """Test uses_docker is true only with a packages check."""
        assert not ImageKeeperConfig(checks=[CheckConfig(kind="web")]).uses_docker()
        assert ImageKeeperConfig(checks=[CheckConfig(kind="packages")]).uses_docker()

    def test_to_log_dict(self) -> None:
        """Test to_log_dict lists checks by label and omits metadata."""
        config = ImageKeeperConfig(
            image_name="acme/curl",
            checks=[CheckConfig(kind="pypi", package="requests", regex=".+")],
            source_path=Path("/test/imagekeeper.toml"),
        )

        result = config.to_log_dict()

        assert result["image_name"] == "acme/curl"
        assert result["checks"] == ["pypi:requests"]
        assert "source_path" not in result


@pytest.mark.unit
class TestCheckConfig:
    """Tests for CheckConfig."""

    def test_label_prefers_item(self) -> None:
        check = CheckConfig(kind="github", item="CURL_VERSION", repo="curl/curl")

        assert check.label == "github:CURL_VERSION"

    def test_label_without_target(self) -> None:
        assert CheckConfig(kind="packages").label == "packages"


@pytest.mark.unit
class TestRequire:
    """Tests for require helper."""

    def test_missing_option_raises(self) -> None:
        """Test VariableNotSet names the missing option."""
        with pytest.raises(VariableNotSet) as exc_info:
            require(ImageKeeperConfig(release_version="1.0-1"), "main_item")

        assert str(exc_info.value) == '"main_item" is not set!'
        assert exc_info.value.exit_code == 106

    def test_empty_string_counts_as_set(self) -> None:
        """Test an empty main_item is accepted."""
        require(ImageKeeperConfig(main_item="", release_version="1.0-1"), "main_item")


@pytest.mark.unit
class TestDiscoverConfigFile:
    """Tests for discover_config_file function."""

    def test_explicit_path_priority(self, tmp_path: Path) -> None:
        """Test explicit path is used when provided and exists."""
        config_file = tmp_path / "custom.toml"
        config_file.write_text("[imagekeeper]\n", encoding="utf-8")
        (tmp_path / "imagekeeper.toml").write_text("[imagekeeper]\n", encoding="utf-8")

        with patch("imagekeeper.config.Path.cwd", return_value=tmp_path):
            result = discover_config_file(config_file)

        assert result == config_file.resolve()

    def test_explicit_path_not_found_raises_error(self, tmp_path: Path) -> None:
        """Test ConfigError raised when explicit path doesn't exist."""
        with pytest.raises(ConfigError) as exc_info:
            discover_config_file(tmp_path / "nonexistent.toml")

        assert "not found" in str(exc_info.value).lower()

    def test_discovers_imagekeeper_toml(self, tmp_path: Path) -> None:
        """Test discovers imagekeeper.toml in current directory."""
        config_file = tmp_path / "imagekeeper.toml"
        config_file.write_text("[imagekeeper]\n", encoding="utf-8")

        with patch("imagekeeper.config.Path.cwd", return_value=tmp_path):
            assert discover_config_file() == config_file

    def test_discovers_pyproject_toml_with_section(self, tmp_path: Path) -> None:
        """Test discovers pyproject.toml with [tool.imagekeeper] section."""
        config_file = tmp_path / "pyproject.toml"
        config_file.write_text('[tool.imagekeeper]\nmain_item = ""\n', encoding="utf-8")

        with patch("imagekeeper.config.Path.cwd", return_value=tmp_path):
            assert discover_config_file() == config_file

    def test_ignores_pyproject_toml_without_section(self, tmp_path: Path) -> None:
        """Test ignores pyproject.toml without [tool.imagekeeper] section."""
        (tmp_path / "pyproject.toml").write_text("[tool.other]\nkey = 'v'\n", encoding="utf-8")

        with patch("imagekeeper.config.Path.cwd", return_value=tmp_path):
            assert discover_config_file() is None

    def test_imagekeeper_toml_takes_precedence(self, tmp_path: Path) -> None:
        """Test imagekeeper.toml wins over pyproject.toml."""
        (tmp_path / "imagekeeper.toml").write_text("[imagekeeper]\n", encoding="utf-8")
        (tmp_path / "pyproject.toml").write_text("[tool.imagekeeper]\n", encoding="utf-8")

        with patch("imagekeeper.config.Path.cwd", return_value=tmp_path):
            assert discover_config_file() == tmp_path / "imagekeeper.toml"


@pytest.mark.unit
class TestPyprojectHasSection:
    """Tests for _pyproject_has_section."""

    def test_invalid_toml_is_ignored(self, tmp_path: Path) -> None:
        """Test a broken pyproject.toml counts as having no section."""
        path = tmp_path / "pyproject.toml"
        path.write_text("[tool.imagekeeper\n", encoding="utf-8")

        assert _pyproject_has_section(path) is False


@pytest.mark.unit
class TestReadToml:
    """Tests for _read_toml."""

    def test_invalid_toml_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.toml"
        path.write_text("key = = 1\n", encoding="utf-8")

        with pytest.raises(ConfigError) as exc_info:
            _read_toml(path)

        assert "Invalid TOML" in str(exc_info.value)

    def test_reads_nested_tables(self, tmp_path: Path) -> None:
        path = tmp_path / "ok.toml"
        path.write_text("[a.b]\nc = 1\n", encoding="utf-8")

        assert _read_toml(path) == {"a": {"b": {"c": 1}}}


@pytest.mark.unit
class TestLoadConfig:
    """Tests for load_config."""

    def test_no_file_returns_defaults(self, tmp_path: Path) -> None:
        with patch("imagekeeper.config.Path.cwd", return_value=tmp_path):
            config = load_config()

        assert config == ImageKeeperConfig()

    def test_empty_section_keeps_source_path(self, tmp_path: Path) -> None:
        path = tmp_path / "imagekeeper.toml"
        path.write_text("[other]\nx = 1\n", encoding="utf-8")

        config = load_config(path)

        assert config.source_path == path.resolve()
        assert config.checks == []

    def test_loads_full_config(self, tmp_path: Path) -> None:
        """Test all options and checks are parsed in order."""
        path = tmp_path / "imagekeeper.toml"
        path.write_text(FULL_CONFIG, encoding="utf-8")

        config = load_config(path)

        assert config.image_name == "acme/curl"
        assert config.main_item == "alpine"
        assert config.release_version == "3.19.1-4"
        assert config.timeout == 10
        assert [check.kind for check in config.checks] == ["registry", "packages", "github"]
        assert config.checks[0].regex == r"\d+\.\d+\.\d+"
        assert config.checks[2].prefix == "curl-"
        assert config.checks[2].separator is None
        assert config.source_path == path.resolve()

    def test_loads_from_pyproject(self, tmp_path: Path) -> None:
        path = tmp_path / "pyproject.toml"
        path.write_text(
            '[project]\nname = "x"\n\n[tool.imagekeeper]\nmain_item = "debian"\n',
            encoding="utf-8",
        )

        assert load_config(path).main_item == "debian"


@pytest.mark.unit
class TestParseSection:
    """Tests for _parse_section validation."""

    def test_unknown_key_rejected(self) -> None:
        with pytest.raises(ConfigError) as exc_info:
            _parse_section({"image": "x"}, config_path="test.toml")

        assert "Unknown configuration keys: image" in str(exc_info.value)

    @pytest.mark.parametrize(
        "key,value",
        [
            ("main_item", 1),
            ("timeout", "10"),
            ("timeout", True),
            ("checks", {"kind": "web"}),
        ],
    )
    def test_wrong_type_rejected(self, key: str, value: object) -> None:
        with pytest.raises(ConfigError) as exc_info:
            _parse_section({key: value}, config_path="test.toml")

        assert exc_info.value.option == key

    def test_negative_timeout_rejected(self) -> None:
        with pytest.raises(ConfigError):
            _parse_section({"timeout": -1}, config_path="test.toml")

    @pytest.mark.parametrize("release", ["3.19.1", "3.19.1-", "-4", "3.19.1-r0"])
    def test_release_version_needs_counter(self, release: str) -> None:
        with pytest.raises(ConfigError) as exc_info:
            _parse_section({"release_version": release}, config_path="test.toml")

        assert exc_info.value.option == "release_version"

    @pytest.mark.parametrize("release", ["3.19.1-4", "bookworm-20240110-1"])
    def test_release_version_accepted(self, release: str) -> None:
        assert _parse_section(
            {"release_version": release}, config_path="test.toml"
        ).release_version == release

    def test_unknown_check_kind(self) -> None:
        with pytest.raises(ConfigError) as exc_info:
            _parse_section({"checks": [{"kind": "npm"}]}, config_path="test.toml")

        assert "checks[0].kind" in str(exc_info.value)

    def test_check_missing_parameters(self) -> None:
        with pytest.raises(ConfigError) as exc_info:
            _parse_section(
                {"checks": [{"kind": "web", "url": "https://example.org"}]},
                config_path="test.toml",
            )

        assert "missing: item, regex" in str(exc_info.value)
        assert exc_info.value.option == "item"

    def test_check_unknown_key(self) -> None:
        with pytest.raises(ConfigError):
            _parse_section(
                {"checks": [{"kind": "packages", "distro": "alpine"}]},
                config_path="test.toml",
            )

    def test_check_must_be_table(self) -> None:
        with pytest.raises(ConfigError):
            _parse_section({"checks": ["registry"]}, config_path="test.toml")

    def test_check_page_size_positive(self) -> None:
        with pytest.raises(ConfigError):
            _parse_section(
                {"checks": [{"kind": "registry", "regex": ".+", "page_size": 0}]},
                config_path="test.toml",
            )
