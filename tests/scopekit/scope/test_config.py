"""Tests for engine configuration loading."""

import logging

from scopekit.scope.catalog import DEFAULT_FAMILY_ORDER, CatalogFamily, CollisionPolicy
from scopekit.scope.config import EngineConfig, config_path, load_engine_config
from scopekit.scope.models import FailureMode
from scopekit.scope.strictness import ResolutionPolicy


def write_config(tmp_path, text):
    path = config_path(tmp_path)
    path.parent.mkdir(parents=True)
    path.write_text(text)
    return path


class TestLoadEngineConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_engine_config(tmp_path)
        assert config == EngineConfig()
        assert config.policy == ResolutionPolicy.STRICT
        assert config.family_order == DEFAULT_FAMILY_ORDER

    def test_empty_file_gives_defaults(self, tmp_path):
        write_config(tmp_path, "")
        assert load_engine_config(tmp_path) == EngineConfig()

    def test_full_config(self, tmp_path):
        write_config(
            tmp_path,
            "resolution:\n"
            "  strict: false\n"
            "  default_failure_mode: skip\n"
            "  allow_interactive: true\n"
            "catalog:\n"
            "  collision_policy: last_wins\n"
            "  family_order: [module, standard]\n",
        )
        config = load_engine_config(tmp_path)
        assert config.policy == ResolutionPolicy.LENIENT
        assert config.default_failure_mode == FailureMode.SKIP
        assert config.allow_interactive is True
        assert config.collision_policy == CollisionPolicy.LAST_WINS
        assert config.family_order == (CatalogFamily.MODULE, CatalogFamily.STANDARD)

    def test_partial_config_keeps_other_defaults(self, tmp_path):
        write_config(tmp_path, "resolution:\n  strict: false\n")
        config = load_engine_config(tmp_path)
        assert config.strict is False
        assert config.collision_policy == CollisionPolicy.FIRST_WINS


class TestInvalidConfig:
    def test_invalid_yaml(self, tmp_path, caplog):
        path = write_config(tmp_path, "resolution: [unclosed\n")
        with caplog.at_level(logging.WARNING, logger="scopekit.scope.config"):
            config = load_engine_config(tmp_path)
        assert config == EngineConfig()
        assert str(path) in caplog.text

    def test_unknown_failure_mode(self, tmp_path, caplog):
        write_config(tmp_path, "resolution:\n  default_failure_mode: explode\n")
        with caplog.at_level(logging.WARNING, logger="scopekit.scope.config"):
            assert load_engine_config(tmp_path) == EngineConfig()
        assert "Ignoring invalid scope config" in caplog.text

    def test_duplicate_family(self, tmp_path, caplog):
        write_config(tmp_path, "catalog:\n  family_order: [named, named]\n")
        with caplog.at_level(logging.WARNING, logger="scopekit.scope.config"):
            assert load_engine_config(tmp_path) == EngineConfig()
        assert "more than once" in caplog.text

    def test_top_level_list(self, tmp_path, caplog):
        write_config(tmp_path, "- strict\n")
        with caplog.at_level(logging.WARNING, logger="scopekit.scope.config"):
            assert load_engine_config(tmp_path) == EngineConfig()
        assert "top level must be a mapping" in caplog.text

    def test_section_not_mapping(self, tmp_path, caplog):
        write_config(tmp_path, "resolution: strict\n")
        with caplog.at_level(logging.WARNING, logger="scopekit.scope.config"):
            assert load_engine_config(tmp_path) == EngineConfig()
        assert "must be mappings" in caplog.text
