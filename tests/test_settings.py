import pytest

from cv_intelligence.models.settings import PipelineSettings, Provider, load_settings
from cv_intelligence.utils.exceptions import ConfigurationError

ENV_KEYS = (
    "LLM_PROVIDER", "EMBED_PROVIDER", "OPENAI_BASE_URL", "OLLAMA_BASE_URL", "LLM_MODEL", "EMBED_MODEL",
    "OPENAI_API_KEY", "LLM_TEMPERATURE", "LLM_TIMEOUT_S", "EMBEDDINGS_ENABLED", "MAX_CONCURRENT",
    "RESUME_TIMEOUT_S", "RETRY_ATTEMPTS", "SCORE_WEIGHT_MUST_HAVE", "SCORE_WEIGHT_SEMANTIC",
    "SCORE_WEIGHT_RECENCY", "SCORE_WEIGHT_IMPACT", "SELECT_MIN", "REJECT_MAX",
)


@pytest.fixture
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


class TestLoadSettings:
    """Test cases for environment-driven configuration"""

    def test_defaults(self, clean_env):
        settings = load_settings()
        assert settings.llm_settings.provider == Provider.OLLAMA
        assert settings.llm_settings.base_url == "http://localhost:11434"
        assert settings.embedding_settings.enabled is True
        assert settings.processing_settings.max_concurrent == 5
        assert settings.processing_settings.resume_timeout_s == 60
        weights = settings.scoring.weights
        assert (weights.must_have, weights.semantic, weights.recency, weights.impact) == (0.4, 0.3, 0.2, 0.1)

    def test_openai_provider(self, clean_env):
        clean_env.setenv("LLM_PROVIDER", "OpenAI")
        clean_env.setenv("OPENAI_API_KEY", "sk-test")
        settings = load_settings()
        assert settings.llm_settings.provider == Provider.OPENAI
        assert settings.llm_settings.model_name == "gpt-4o-mini"
        assert settings.llm_settings.base_url == "https://api.openai.com/v1"
        assert settings.embedding_settings.provider == Provider.OPENAI
        assert settings.embedding_settings.model_name == "text-embedding-3-small"

    def test_overrides(self, clean_env):
        clean_env.setenv("MAX_CONCURRENT", "3")
        clean_env.setenv("RESUME_TIMEOUT_S", "12.5")
        clean_env.setenv("EMBEDDINGS_ENABLED", "false")
        clean_env.setenv("SCORE_WEIGHT_MUST_HAVE", "0.5")
        clean_env.setenv("SCORE_WEIGHT_SEMANTIC", "0.2")
        settings = load_settings()
        assert settings.processing_settings.max_concurrent == 3
        assert settings.processing_settings.resume_timeout_s == 12.5
        assert settings.embedding_settings.enabled is False
        assert settings.scoring.weights.must_have == 0.5

    def test_blank_values_use_defaults(self, clean_env):
        clean_env.setenv("MAX_CONCURRENT", "  ")
        assert load_settings().processing_settings.max_concurrent == 5

    def test_weights_not_summing_to_one(self, clean_env):
        clean_env.setenv("SCORE_WEIGHT_MUST_HAVE", "0.9")
        with pytest.raises(ConfigurationError) as exc_info:
            load_settings()
        assert exc_info.value.error_code == "CONFIGURATION_ERROR"
        assert "weights" in exc_info.value.details["config_key"]

    def test_unknown_provider(self, clean_env):
        clean_env.setenv("LLM_PROVIDER", "mystery")
        with pytest.raises(ConfigurationError):
            load_settings()

    def test_invalid_number(self, clean_env):
        clean_env.setenv("MAX_CONCURRENT", "many")
        with pytest.raises(ConfigurationError) as exc_info:
            load_settings()
        assert exc_info.value.details["config_key"] == "processing_settings.max_concurrent"


class TestPipelineSettings:
    def test_secrets_not_in_repr(self):
        settings = PipelineSettings.model_validate({"llm_settings": {"api_key": "sk-secret"}})
        assert "sk-secret" not in repr(settings)
