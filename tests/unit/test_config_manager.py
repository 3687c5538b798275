from pathlib import Path

import pytest
import yaml

from lexsimple.services.config_manager import ConfigManager, ConfigValidationError
from lexsimple.services.llm.providers.anthropic import AnthropicAdapter
from lexsimple.services.llm.providers.fake import FakeAdapter
from lexsimple.services.prompt.manager import PromptManager


def write_config(tmp_path, content):
    config_file = tmp_path / "lexsimple.yaml"
    if isinstance(content, str):
        config_file.write_text(content, encoding="utf-8")
    else:
        config_file.write_text(yaml.dump(content, allow_unicode=True), encoding="utf-8")
    return config_file


@pytest.fixture
def valid_config_file(tmp_path):
    return write_config(
        tmp_path,
        {
            "llm": {
                "default_provider": "fake",
                "providers": {"claude": {"api_key": "${TEST_LEXSIMPLE_KEY}"}},
                "rate_limits": {"fake": {"requests_per_minute": 5}},
                "batch": {"fail_fast": True, "max_concurrency": 2},
            },
            "prompts": {
                "translation": {
                    "system_prompt": "Переводи просто",
                    "default_template": "basic",
                    "templates": {"basic": {"body": "{{ document }}", "required_variables": ["document"]}},
                }
            },
            "execution_history_limit": 5,
            "logging": {"level": "DEBUG"},
        },
    )


def test_load_valid_config(valid_config_file, monkeypatch):
    monkeypatch.setenv("TEST_LEXSIMPLE_KEY", "sk-from-env")
    manager = ConfigManager(config_path=str(valid_config_file))

    config = manager.load_config()

    assert config.llm.default_provider == "fake"
    assert config.llm.providers["claude"].api_key == "sk-from-env"
    assert config.llm.rate_limit_for("fake").requests_per_minute == 5
    assert config.llm.batch.fail_fast is True
    assert config.prompts["translation"].templates["basic"].required_variables == ["document"]
    assert config.execution_history_limit == 5
    assert config.logging.level == "DEBUG"


def test_config_is_cached(valid_config_file, monkeypatch):
    monkeypatch.setenv("TEST_LEXSIMPLE_KEY", "sk-from-env")
    manager = ConfigManager(config_path=str(valid_config_file))

    assert manager.load_config() is manager.load_config()


def test_unresolved_placeholder_is_invalid(valid_config_file, monkeypatch):
    monkeypatch.delenv("TEST_LEXSIMPLE_KEY", raising=False)
    manager = ConfigManager(config_path=str(valid_config_file))

    with pytest.raises(ConfigValidationError, match="placeholder was not resolved"):
        manager.load_config()


def test_load_missing_config():
    manager = ConfigManager(config_path="nonexistent.yaml")
    with pytest.raises(FileNotFoundError):
        manager.load_config()


def test_invalid_yaml(tmp_path):
    config_file = write_config(tmp_path, "llm: [unclosed")
    with pytest.raises(ConfigValidationError, match="Failed to parse YAML"):
        ConfigManager(config_path=str(config_file)).load_config()


def test_non_mapping_root(tmp_path):
    config_file = write_config(tmp_path, "- just\n- a list\n")
    with pytest.raises(ConfigValidationError, match="root must be a mapping"):
        ConfigManager(config_path=str(config_file)).load_config()


def test_empty_file_uses_defaults(tmp_path):
    config_file = write_config(tmp_path, "")
    config = ConfigManager(config_path=str(config_file)).load_config()
    assert config.llm.default_provider == "claude"
    assert config.prompts == {}


@pytest.mark.parametrize(
    "content",
    [
        {"llm": {"default_provider": "openai"}},
        {"llm": {"retry": {"max_attempts": 0}}},
        {"llm": {"providers": {"claude": {"default_model": "unknown-model"}}}},
        {"prompts": {"t": {"templates": {"a": {"body": "x"}}, "default_template": "b"}}},
        {"logging": {"level": "VERBOSE"}},
        {"execution_history_limit": 0},
    ],
)
def test_invalid_values(tmp_path, content):
    config_file = write_config(tmp_path, content)
    with pytest.raises(ConfigValidationError, match="Invalid configuration"):
        ConfigManager(config_path=str(config_file)).load_config()


def test_build_prompt_manager(valid_config_file, monkeypatch):
    monkeypatch.setenv("TEST_LEXSIMPLE_KEY", "sk-from-env")
    manager = ConfigManager(config_path=str(valid_config_file))

    prompt_manager = manager.build_prompt_manager()

    assert isinstance(prompt_manager, PromptManager)
    assert isinstance(prompt_manager.llm_service.adapter, FakeAdapter)
    assert prompt_manager.repository.list_systems() == ["translation"]
    assert prompt_manager._history.maxlen == 5


def test_build_llm_service_for_claude(valid_config_file, monkeypatch):
    monkeypatch.setenv("TEST_LEXSIMPLE_KEY", "sk-from-env")
    manager = ConfigManager(config_path=str(valid_config_file))

    service = manager.build_llm_service(provider="claude", client=object())

    assert isinstance(service.adapter, AnthropicAdapter)


def test_bundled_config_is_valid(monkeypatch):
    """The sample configuration shipped in config/ should load once the key is set."""
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    config_path = Path(__file__).parents[2] / "config" / "lexsimple.yaml"
    config = ConfigManager(config_path=str(config_path)).load_config()

    assert config.prompts["translation"].default_template == "basic_translation"
    assert config.llm.rate_limit_for("claude").requests_per_minute == 50
