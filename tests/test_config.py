"""
Tests for configuration module.

Tests settings defaults, validation, YAML loading and environment
variable overrides.
"""

from pathlib import Path

import pytest
import yaml

from ui_explorer.config import (
    APILLMSettings,
    BudgetSettings,
    ExplorerSettings,
    NavigatorSettings,
    Settings,
    get_settings,
    load_config,
)
from ui_explorer.core.exceptions import ConfigurationError


class TestSettings:
    """Tests for Settings model."""

    def test_default_settings_valid(self):
        """Default settings should be valid."""
        settings = Settings()

        assert settings.browser.headless is True
        assert settings.explorer.strategy == "coverage_guided"
        assert settings.explorer.beam_width == 3
        assert settings.budget.max_total_steps == 500
        assert settings.budget.max_unique_states == 100
        assert settings.budget.stagnation_threshold == 15
        assert settings.budget.max_time_ms == 600000
        assert settings.navigator.heuristic_confidence_threshold == 75

    def test_scoring_weights_default(self):
        """Scoring weights should sum to one by default."""
        selector = Settings().action_selector

        total = (
            selector.novelty_weight
            + selector.business_criticality_weight
            + selector.risk_weight
            + selector.branch_factor_weight
        )
        assert total == pytest.approx(1.0)
        assert selector.decay_rate == 0.7
        assert selector.max_retries == 2

    def test_explorer_settings_validation(self):
        """Explorer settings should validate constraints."""
        explorer = ExplorerSettings(beam_width=5, strategy="random")
        assert explorer.beam_width == 5

        with pytest.raises(ValueError):
            ExplorerSettings(beam_width=0)

        with pytest.raises(ValueError):
            ExplorerSettings(strategy="greedy")

    def test_screenshot_dir_converted_to_path(self):
        """String screenshot directories become Path objects."""
        explorer = ExplorerSettings(screenshot_dir="shots")
        assert explorer.screenshot_dir == Path("shots")

    def test_budget_time_limit_can_be_disabled(self):
        """A None time limit means unlimited."""
        budget = BudgetSettings(max_time_ms=None)
        assert budget.max_time_ms is None

    def test_explorer_depth_cannot_exceed_budget_depth(self):
        """The explorer may not be configured deeper than the budget."""
        with pytest.raises(ValueError):
            Settings(explorer={"max_depth": 20}, budget={"max_depth": 10})

    def test_unknown_section_rejected(self):
        """Unknown top-level keys are rejected."""
        with pytest.raises(ValueError):
            Settings(crawler={"max_pages": 10})

    def test_settings_nested_override(self):
        """Nested settings can be overridden."""
        settings = Settings(
            navigator={"enabled": False},
            api_llm={"model_name": "openai/gpt-4o"},
        )

        assert settings.navigator.enabled is False
        assert settings.api_llm.model_name == "openai/gpt-4o"
        # Non-overridden should keep defaults
        assert settings.api_llm.max_ai_retries == 1


class TestConfigLoader:
    """Tests for configuration loading."""

    def test_load_defaults_without_file(self):
        """Loading without a file gives default settings."""
        settings = load_config()
        assert settings == Settings()

    def test_load_from_yaml(self, tmp_path: Path):
        """Values from YAML override defaults."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            yaml.dump(
                {
                    "explorer": {"beam_width": 7, "strategy": "breadth_first"},
                    "budget": {"max_total_steps": 42},
                }
            )
        )

        settings = load_config(config_file)

        assert settings.explorer.beam_width == 7
        assert settings.explorer.strategy == "breadth_first"
        assert settings.budget.max_total_steps == 42
        assert settings.budget.max_unique_states == 100

    def test_empty_yaml_gives_defaults(self, tmp_path: Path):
        """An empty file is the same as no file."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("")

        assert load_config(config_file) == Settings()

    def test_env_overrides_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        """Environment variables take precedence over YAML values."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.dump({"budget": {"max_total_steps": 42}}))
        monkeypatch.setenv("UI_EXPLORER__BUDGET__MAX_TOTAL_STEPS", "99")
        monkeypatch.setenv("UI_EXPLORER__NAVIGATOR__ENABLED", "false")
        monkeypatch.setenv("UI_EXPLORER__BUDGET__MAX_TIME_MS", "none")

        settings = load_config(config_file)

        assert settings.budget.max_total_steps == 99
        assert settings.navigator.enabled is False
        assert settings.budget.max_time_ms is None

    def test_missing_file_raises(self, tmp_path: Path):
        """A missing explicit config file is an error."""
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")

    def test_invalid_yaml_raises(self, tmp_path: Path):
        """Malformed YAML raises ConfigurationError."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("explorer: [unclosed")

        with pytest.raises(ConfigurationError):
            load_config(config_file)

    def test_non_mapping_yaml_raises(self, tmp_path: Path):
        """A YAML list at top level is rejected."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("- one\n- two\n")

        with pytest.raises(ConfigurationError, match="mapping"):
            load_config(config_file)

    def test_invalid_values_raise_configuration_error(self, tmp_path: Path):
        """Values that fail validation are reported as ConfigurationError."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.dump({"explorer": {"beam_width": 0}}))

        with pytest.raises(ConfigurationError) as exc_info:
            load_config(config_file)

        assert exc_info.value.details["errors"] == 1

    def test_get_settings_is_cached(self, tmp_path: Path):
        """get_settings returns the same instance until reloaded."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.dump({"budget": {"max_total_steps": 12}}))

        first = get_settings(config_file)
        second = get_settings()

        assert first is second
        assert second.budget.max_total_steps == 12

        reloaded = get_settings(config_file, reload=True)
        assert reloaded is not first


class TestSectionDefaults:
    """Defaults of the decision layer sections."""

    def test_navigator_defaults(self):
        """Heuristic-first decisions are on by default."""
        navigator = NavigatorSettings()

        assert navigator.enable_heuristic_first is True
        assert navigator.dominant_score_ratio == 2.0
        assert navigator.max_ai_candidates == 5

    def test_api_llm_defaults(self):
        """Compact escalation uses a shorter timeout than full requests."""
        api = APILLMSettings()

        assert api.ai_timeout_seconds < api.timeout_seconds
        assert api.api_key_env_var == "OPENROUTER_API_KEY"
