"""Tests for configuration management."""

from pathlib import Path

import pytest

from .lib import (
    EnvConfig,
    EnvVar,
    get_docs_dir,
    get_environment,
    get_environment_info,
    get_exclusions,
    get_mermaid_cli,
    list_environment_variables,
)

# =============================================================================
# Tests for get_environment (main interface)
# =============================================================================


class TestGetEnvironment:
    """Tests for the unified get_environment interface."""

    @pytest.mark.unit
    def test_returns_default_when_not_set(self, monkeypatch):
        """Returns default value when env var is not set."""
        monkeypatch.delenv("MDRENDER_MAX_WIDTH", raising=False)
        assert get_environment(EnvVar.MDRENDER_MAX_WIDTH) == 2048

    @pytest.mark.unit
    def test_override_takes_priority(self, monkeypatch):
        """Override parameter takes highest priority."""
        monkeypatch.setenv("MDRENDER_MAX_WIDTH", "4096")
        assert get_environment(EnvVar.MDRENDER_MAX_WIDTH, override=512) == 512

    @pytest.mark.unit
    def test_int_type_conversion(self, monkeypatch):
        """Integer type conversion from string."""
        monkeypatch.setenv("MDRENDER_MIN_LENGTH", "25")
        result = get_environment(EnvVar.MDRENDER_MIN_LENGTH)
        assert result == 25
        assert isinstance(result, int)

    @pytest.mark.unit
    def test_invalid_int_returns_default(self, monkeypatch):
        """Unparseable integers fall back to the default."""
        monkeypatch.setenv("MDRENDER_WORKERS", "many")
        assert get_environment(EnvVar.MDRENDER_WORKERS) == 1

    @pytest.mark.unit
    def test_float_type_conversion(self, monkeypatch):
        """Timeouts are parsed as floats."""
        monkeypatch.setenv("MDRENDER_TIMEOUT", "12.5")
        assert get_environment(EnvVar.MDRENDER_TIMEOUT) == 12.5

    @pytest.mark.unit
    def test_timeout_unset_is_none(self, monkeypatch):
        """No timeout unless configured."""
        monkeypatch.delenv("MDRENDER_TIMEOUT", raising=False)
        assert get_environment(EnvVar.MDRENDER_TIMEOUT) is None

    @pytest.mark.unit
    def test_path_type_conversion(self, monkeypatch, tmp_path):
        """Path variables come back as Path objects."""
        monkeypatch.setenv("MDRENDER_OUTPUT_DIR", str(tmp_path))
        assert get_environment(EnvVar.MDRENDER_OUTPUT_DIR) == tmp_path

    @pytest.mark.unit
    def test_list_type_conversion(self, monkeypatch):
        """Comma-separated lists are split and stripped."""
        monkeypatch.setenv("MDRENDER_EXCLUDE", "README.md, index.md,,")
        assert get_environment(EnvVar.MDRENDER_EXCLUDE) == ("README.md", "index.md")


class TestEnvironmentInfo:
    """Tests for introspection helpers."""

    @pytest.mark.unit
    def test_returns_env_config(self):
        """Info lookup returns the EnvConfig metadata."""
        info = get_environment_info(EnvVar.MERMAID_CLI)
        assert isinstance(info, EnvConfig)
        assert info.name == "MERMAID_CLI"
        assert info.category == "renderer"

    @pytest.mark.unit
    def test_description_present(self):
        """Every variable is documented."""
        for var in EnvVar:
            assert var.value.description, f"{var.name} missing description"

    @pytest.mark.unit
    def test_names_match_members(self):
        """Enum member names match the environment variable names."""
        for var in EnvVar:
            assert var.name == var.value.name

    @pytest.mark.unit
    def test_types_are_convertible(self):
        """Every variable uses a type the converter handles."""
        for var in EnvVar:
            assert var.value.var_type in (str, int, float, Path, tuple), var.name

    @pytest.mark.unit
    def test_filter_by_category(self):
        """Category filter returns only matching variables."""
        render_vars = list_environment_variables("render")
        assert EnvVar.MDRENDER_MAX_HEIGHT in render_vars
        assert EnvVar.MERMAID_CLI not in render_vars
        assert len(list_environment_variables()) == len(EnvVar)


class TestConvenienceFunctions:
    """Tests for the resolved-value helpers."""

    @pytest.mark.unit
    def test_mermaid_cli_split(self, monkeypatch):
        """Multi-word commands are split into argv."""
        monkeypatch.setenv("MERMAID_CLI", "npx --yes @mermaid-js/mermaid-cli")
        assert get_mermaid_cli() == ["npx", "--yes", "@mermaid-js/mermaid-cli"]

    @pytest.mark.unit
    def test_mermaid_cli_quoted_path(self, monkeypatch):
        """Quoted paths with spaces survive splitting."""
        monkeypatch.setenv("MERMAID_CLI", '"/opt/mermaid cli/mmdc"')
        assert get_mermaid_cli() == ["/opt/mermaid cli/mmdc"]

    @pytest.mark.unit
    def test_mermaid_cli_unset(self, monkeypatch):
        """Unset command resolves to None."""
        monkeypatch.delenv("MERMAID_CLI", raising=False)
        assert get_mermaid_cli() is None

    @pytest.mark.unit
    def test_mermaid_cli_override(self, monkeypatch):
        """Override beats the environment."""
        monkeypatch.setenv("MERMAID_CLI", "mmdc")
        assert get_mermaid_cli("/usr/local/bin/mmdc") == ["/usr/local/bin/mmdc"]

    @pytest.mark.unit
    def test_docs_dir_defaults_to_cwd(self, monkeypatch, tmp_path):
        """Documents directory falls back to the working directory."""
        monkeypatch.delenv("MDRENDER_DOCS_DIR", raising=False)
        monkeypatch.chdir(tmp_path)
        assert get_docs_dir() == Path.cwd()

    @pytest.mark.unit
    def test_docs_dir_override(self, tmp_path):
        """String overrides are converted to Path."""
        assert get_docs_dir(str(tmp_path)) == tmp_path

    @pytest.mark.unit
    def test_exclusions_default(self, monkeypatch):
        """README.md is excluded by default."""
        monkeypatch.delenv("MDRENDER_EXCLUDE", raising=False)
        assert get_exclusions() == frozenset({"README.md"})

    @pytest.mark.unit
    def test_exclusions_override_adds_to_index(self, monkeypatch):
        """An explicit override replaces the environment but keeps README.md."""
        monkeypatch.setenv("MDRENDER_EXCLUDE", "drafts.md")
        assert get_exclusions(["CHANGELOG.md"]) == frozenset({"README.md", "CHANGELOG.md"})
        assert get_exclusions([]) == frozenset({"README.md"})

    @pytest.mark.unit
    def test_exclusions_from_environment_keep_index(self, monkeypatch):
        """Environment names are added to README.md."""
        monkeypatch.setenv("MDRENDER_EXCLUDE", "drafts.md, notes.md")
        assert get_exclusions() == frozenset({"README.md", "drafts.md", "notes.md"})
