import pytest

from multiform.config import Config, _default_config
from multiform.exceptions import ConfigurationError


class TestLoadFromDict:
    def test_defaults(self):
        config = Config.load_from_dict()

        assert config == _default_config()
        assert config["placeholder_key"] == "__id__"
        assert config.pending_key_prefix == "new"

    def test_values_are_deep_merged_with_defaults(self):
        config = Config.load_from_dict(
            {"databases": {"reports": {"provider": "memory"}}, "debug": True}
        )

        assert config["databases"] == {
            "default": {"provider": "memory"},
            "reports": {"provider": "memory"},
        }
        assert config["debug"] is True
        assert config["logging"]["level"] == "INFO"

    def test_unknown_keys_are_ignored(self):
        config = Config.load_from_dict({"colour": "blue"})
        assert "colour" not in config

    def test_default_database_is_required(self):
        with pytest.raises(ConfigurationError):
            Config.load_from_dict({"databases": None})

    def test_environment_section_overrides_base_values(self, monkeypatch):
        monkeypatch.setenv("MULTIFORM_ENV", "staging")

        config = Config.load_from_dict(
            {
                "placeholder_key": "__template__",
                "staging": {"databases": {"default": {"provider": "sqlite"}}},
            }
        )

        assert config["env"] == "staging"
        assert config["databases"]["default"]["provider"] == "sqlite"
        assert config["placeholder_key"] == "__template__"

    def test_missing_attribute(self):
        with pytest.raises(AttributeError):
            Config.load_from_dict().colour


class TestEnvironmentVariables:
    def test_variables_are_substituted(self, monkeypatch):
        monkeypatch.setenv("DB_NAME", "orders")

        config = Config.load_from_dict(
            {
                "databases": {
                    "default": {
                        "provider": "sqlite",
                        "database_uri": "sqlite:///${DB_NAME}.db",
                    }
                }
            }
        )

        assert config["databases"]["default"]["database_uri"] == "sqlite:///orders.db"

    def test_default_values_are_used_for_unset_variables(self, monkeypatch):
        monkeypatch.delenv("MULTIFORM_TEST_PREFIX", raising=False)

        config = Config.load_from_dict(
            {"pending_key_prefix": "${MULTIFORM_TEST_PREFIX|row}"}
        )

        assert config["pending_key_prefix"] == "row"

    def test_unset_variables_without_default_fail(self, monkeypatch):
        monkeypatch.delenv("MULTIFORM_TEST_PREFIX", raising=False)

        with pytest.raises(ConfigurationError) as exc:
            Config.load_from_dict({"pending_key_prefix": "${MULTIFORM_TEST_PREFIX}"})

        assert "MULTIFORM_TEST_PREFIX" in str(exc.value)

    def test_multiple_variables_in_one_value(self, monkeypatch):
        monkeypatch.setenv("HOST", "db")
        monkeypatch.delenv("PORT", raising=False)

        assert Config._replace_env_var("${HOST}:${PORT|5432}") == "db:5432"


class TestLoadFromPath:
    def test_multiform_toml(self, tmp_path):
        (tmp_path / "multiform.toml").write_text('placeholder_key = "__row__"\n')

        config = Config.load_from_path(str(tmp_path))

        assert config["placeholder_key"] == "__row__"

    def test_hidden_file_takes_precedence(self, tmp_path):
        (tmp_path / ".multiform.toml").write_text('placeholder_key = "__hidden__"\n')
        (tmp_path / "multiform.toml").write_text('placeholder_key = "__row__"\n')

        assert Config.load_from_path(str(tmp_path))["placeholder_key"] == "__hidden__"

    def test_pyproject_tool_section(self, tmp_path):
        (tmp_path / "pyproject.toml").write_text(
            '[project]\nname = "shop"\n\n[tool.multiform]\npending_key_prefix = "tmp"\n'
        )

        assert Config.load_from_path(str(tmp_path))["pending_key_prefix"] == "tmp"

    def test_parent_directories_are_searched(self, tmp_path):
        (tmp_path / "multiform.toml").write_text('placeholder_key = "__row__"\n')
        nested = tmp_path / "app" / "forms"
        nested.mkdir(parents=True)

        assert Config.load_from_path(str(nested))["placeholder_key"] == "__row__"

    def test_file_paths_start_from_their_directory(self, tmp_path):
        (tmp_path / "multiform.toml").write_text('placeholder_key = "__row__"\n')
        payload = tmp_path / "payload.json"
        payload.write_text("{}")

        assert Config.load_from_path(str(payload))["placeholder_key"] == "__row__"

    def test_missing_configuration_file(self, tmp_path):
        nested = tmp_path / "a" / "b" / "c"
        nested.mkdir(parents=True)

        with pytest.raises(ConfigurationError):
            Config.load_from_path(str(nested))

    def test_invalid_toml(self, tmp_path):
        (tmp_path / "multiform.toml").write_text("placeholder_key = \n")

        with pytest.raises(ConfigurationError):
            Config.load_from_path(str(tmp_path))
