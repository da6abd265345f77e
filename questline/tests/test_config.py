"""
Unit tests for questline configuration.
"""

import os

import pytest

from questline.config import Settings


class TestSettings:
    """Test the Settings configuration class"""

    def test_default_values(self):
        """Test that default values are set correctly"""
        settings = Settings(_env_file=None)
        assert settings.model_provider in ["openai", "generic"]
        assert isinstance(settings.model_name, str)
        assert settings.database_path.endswith("questline.db")
        assert settings.active_content_ceiling == 3
        assert settings.stat_imbalance_threshold == 5
        assert settings.consistency_threshold == 0.85
        assert settings.lorekeeper_weight == 0.3
        assert settings.max_generation_attempts == 2
        assert settings.compression_min_batch == 10
        assert settings.compression_max_batch == 50

    def test_environment_variables(self):
        """Test that environment variables override defaults"""
        original_env = os.environ.copy()

        try:
            os.environ["MODEL_NAME"] = "test-model"
            os.environ["CONSISTENCY_THRESHOLD"] = "0.9"
            os.environ["COMPRESSION_MIN_BATCH"] = "4"

            settings = Settings(_env_file=None)
            assert settings.model_name == "test-model"
            assert settings.consistency_threshold == 0.9
            assert settings.compression_min_batch == 4
        finally:
            os.environ.clear()
            os.environ.update(original_env)

    def test_model_for_uses_override(self):
        """Per-agent overrides win; other agents use model_name"""
        settings = Settings(
            _env_file=None, model_name="base-model", lorekeeper_model="judge-model"
        )
        assert settings.model_for("lorekeeper") == "judge-model"
        assert settings.model_for("creator") == "base-model"

    @pytest.mark.parametrize(
        "provider,key,expected",
        [("none", "sk-test", False), ("openai", "", False), ("openai", "sk-test", True)],
    )
    def test_semantic_search_enabled(self, provider, key, expected):
        settings = Settings(
            _env_file=None, embedding_provider=provider, openai_api_key=key
        )
        assert settings.semantic_search_enabled() is expected
