"""Unit tests for configuration loading and the ConfigManager."""

from pathlib import Path

import pytest

from agenthub.config.loader import ConfigLoadError, load_config, load_config_from_string
from agenthub.config.manager import CONFIG_ENV_VAR, ConfigManager
from agenthub.config.models import SessionConfig, SummaryConfig
from agenthub.utils.errors import ErrorCode

MINIMAL_YAML = """
models:
  - name: primary
    provider: bailian
    base_url: https://dashscope.aliyuncs.com/compatible-mode/v1
    api_key: ${TEST_DASHSCOPE_KEY}
    model_id: ${TEST_MODEL_ID:-qwen-plus}
    is_primary: true
"""


@pytest.fixture(autouse=True)
def fresh_manager():
    ConfigManager.reset()
    yield
    ConfigManager.reset()


class TestLoader:
    """Tests for the YAML loader."""

    def test_env_references_expanded(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TEST_DASHSCOPE_KEY", "sk-from-env")
        monkeypatch.delenv("TEST_MODEL_ID", raising=False)

        config = load_config_from_string(MINIMAL_YAML)

        primary = config.get_primary_model()
        assert primary.api_key.get_secret_value() == "sk-from-env"
        assert primary.model_id == "qwen-plus"

    def test_defaults_for_omitted_sections(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TEST_DASHSCOPE_KEY", "sk")

        config = load_config_from_string(MINIMAL_YAML)

        assert config.session.max_conversation_messages == 40
        assert config.session.max_tool_rounds == 8
        assert config.guard.max_searches_per_conversation == 3
        assert config.guard.guarded_tools == ["search_web"]
        assert config.summary.trigger_min_messages == 12

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigLoadError) as exc_info:
            load_config(tmp_path / "missing.yaml")

        assert exc_info.value.code == ErrorCode.CONFIG_NOT_FOUND

    def test_invalid_yaml(self) -> None:
        with pytest.raises(ConfigLoadError, match="Invalid YAML"):
            load_config_from_string("models: [unclosed")

    def test_non_mapping_rejected(self) -> None:
        with pytest.raises(ConfigLoadError, match="YAML object"):
            load_config_from_string("- a\n- b\n")

    def test_validation_errors_list_locations(self) -> None:
        yaml_content = MINIMAL_YAML.replace("is_primary: true", "is_primary: false")

        with pytest.raises(ConfigLoadError) as exc_info:
            load_config_from_string(yaml_content)

        assert "models" in exc_info.value.message
        assert exc_info.value.code == ErrorCode.CONFIG_INVALID


class TestSectionValidation:
    """Tests for cross-field validators."""

    def test_retention_above_ceiling_rejected(self) -> None:
        with pytest.raises(ValueError):
            SessionConfig(max_conversation_messages=10, retained_conversation_messages=20)

    def test_summary_offset_must_fit_interval(self) -> None:
        with pytest.raises(ValueError):
            SummaryConfig(trigger_interval=10, trigger_offset=10)


class TestConfigManager:
    """Tests for ConfigManager."""

    def write(self, path: Path, model_id: str) -> None:
        path.write_text(
            MINIMAL_YAML.replace("${TEST_MODEL_ID:-qwen-plus}", model_id).replace(
                "${TEST_DASHSCOPE_KEY}", "sk-test"
            ),
            encoding="utf-8",
        )

    def test_singleton(self, tmp_path: Path) -> None:
        assert ConfigManager(tmp_path / "a.yaml") is ConfigManager(tmp_path / "b.yaml")
        assert ConfigManager().config_path == tmp_path / "a.yaml"

    def test_path_from_environment(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "custom.yaml"
        self.write(path, "qwen-max")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

        assert ConfigManager().config.get_primary_model().model_id == "qwen-max"

    def test_reload_notifies_callbacks(self, tmp_path: Path) -> None:
        path = tmp_path / "agenthub.yaml"
        self.write(path, "qwen-plus")
        manager = ConfigManager(path)
        seen: list[str] = []
        manager.on_change(lambda config: seen.append(config.get_primary_model().model_id))
        assert manager.config.get_primary_model().model_id == "qwen-plus"

        self.write(path, "qwen-max")
        manager.reload()

        assert seen == ["qwen-max"]
        assert manager.config.get_primary_model().model_id == "qwen-max"

    def test_invalid_reload_keeps_previous_config(self, tmp_path: Path) -> None:
        path = tmp_path / "agenthub.yaml"
        self.write(path, "qwen-plus")
        manager = ConfigManager(path)
        previous = manager.config
        callback_calls = []
        manager.on_change(callback_calls.append)

        path.write_text("models: []\n", encoding="utf-8")
        manager.reload()

        assert manager.config is previous
        assert callback_calls == []

    def test_failing_callback_does_not_block_others(self, tmp_path: Path) -> None:
        path = tmp_path / "agenthub.yaml"
        self.write(path, "qwen-plus")
        manager = ConfigManager(path)
        seen = []

        def broken(config) -> None:
            raise RuntimeError("boom")

        manager.on_change(broken)
        manager.on_change(seen.append)
        manager.reload()

        assert len(seen) == 1
        manager.remove_callback(broken)
        manager.remove_callback(broken)
