"""
Pipeline Settings Models for Configuration Management
"""
import os
from enum import Enum
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from cv_intelligence.utils.exceptions import ConfigurationError


class Provider(str, Enum):
    """Supported backend providers"""
    OLLAMA = "ollama"
    OPENAI = "openai"


class LLMSettings(BaseModel):
    """Structured-extraction LLM settings"""
    provider: Provider = Field(default=Provider.OLLAMA, description="Backend provider")
    model_name: str = Field(default="llama3.1:8b", description="LLM model name")
    base_url: str = Field(default="http://localhost:11434", description="Provider base URL")
    api_key: Optional[str] = Field(default=None, description="API key for hosted providers", repr=False)
    temperature: float = Field(default=0.1, ge=0.0, le=2.0, description="Generation temperature")
    max_tokens: Optional[int] = Field(default=2000, ge=1, description="Maximum tokens to generate")
    timeout: int = Field(default=30, ge=1, le=300, description="Request timeout in seconds")
    max_input_chars: int = Field(default=12000, ge=500, description="Document characters sent to the model")


class EmbeddingSettings(BaseModel):
    """Embedding Model Configuration"""
    enabled: bool = Field(default=True, description="Compute semantic similarity from embeddings")
    provider: Provider = Field(default=Provider.OLLAMA, description="Backend provider")
    model_name: str = Field(default="nomic-embed-text:latest", description="Embedding model name")
    base_url: str = Field(default="http://localhost:11434", description="Provider base URL")
    api_key: Optional[str] = Field(default=None, description="API key for hosted providers", repr=False)
    timeout: int = Field(default=30, ge=1, le=300, description="Request timeout in seconds")
    max_chars: int = Field(default=8000, ge=100, description="Text characters sent for embedding")


class ScoringWeights(BaseModel):
    """Composite score weights; must sum to 1.0"""
    must_have: float = Field(default=0.4, ge=0.0, le=1.0)
    semantic: float = Field(default=0.3, ge=0.0, le=1.0)
    recency: float = Field(default=0.2, ge=0.0, le=1.0)
    impact: float = Field(default=0.1, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def validate_total_weights(self):
        total = self.must_have + self.semantic + self.recency + self.impact
        if abs(total - 1.0) > 0.01:  # Allow small floating point errors
            raise ValueError(f"Scoring weights must sum to 1.0 (got {total:.3f})")
        return self


class ScoringThresholds(BaseModel):
    """Recommendation thresholds on the overall score"""
    select_min: float = Field(default=0.72, ge=0.0, le=1.0, description="Minimum score for SELECT")
    reject_max: float = Field(default=0.48, ge=0.0, le=1.0, description="Maximum score for REJECT")

    @model_validator(mode="after")
    def validate_thresholds(self):
        if self.reject_max >= self.select_min:
            raise ValueError("reject_max must be less than select_min")
        return self


class ScoringSettings(BaseModel):
    weights: ScoringWeights = Field(default_factory=ScoringWeights)
    thresholds: ScoringThresholds = Field(default_factory=ScoringThresholds)
    impact_saturation: int = Field(default=5, ge=1, description="Impact-verb count that maps to a full impact score")
    recent_years: int = Field(default=5, ge=0, description="End dates this recent get full recency weight")
    mid_years: int = Field(default=10, ge=0, description="End dates this recent get half recency weight")
    default_duration_months: int = Field(default=12, ge=1, description="Duration assumed when a start date is unparseable")

    @field_validator("mid_years")
    @classmethod
    def validate_bands(cls, v, info):
        recent = info.data.get("recent_years")
        if recent is not None and v < recent:
            raise ValueError("mid_years must be >= recent_years")
        return v


class ProcessingSettings(BaseModel):
    """Processing and Performance Configuration"""
    max_concurrent: int = Field(default=5, ge=1, le=50, description="Maximum résumés processed concurrently")
    resume_timeout_s: float = Field(default=60.0, gt=0, description="Hard timeout for one résumé run")
    retry_attempts: int = Field(default=2, ge=1, le=10, description="Attempts per backend call")
    retry_backoff: float = Field(default=0.5, ge=0.0, le=60.0, description="Backoff factor between retries in seconds")
    role_mismatch_threshold: float = Field(default=0.5, ge=0.0, le=1.0,
                                           description="Share of off-role skills that rejects a model requirement set")
    slow_resume_ms: float = Field(default=10000, gt=0, description="Warn when a résumé run exceeds this")


class PipelineSettings(BaseModel):
    """Complete pipeline configuration"""
    llm_settings: LLMSettings = Field(default_factory=LLMSettings)
    embedding_settings: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    processing_settings: ProcessingSettings = Field(default_factory=ProcessingSettings)


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(key)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_bool(key: str, default: bool) -> bool:
    value = _env(key)
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes", "on")


def load_settings() -> PipelineSettings:
    """Build settings from environment variables (and .env when present)."""
    load_dotenv()

    provider = (_env("LLM_PROVIDER", "ollama") or "ollama").lower()
    embed_provider = (_env("EMBED_PROVIDER", provider) or provider).lower()
    openai_url = _env("OPENAI_BASE_URL", "https://api.openai.com/v1")
    ollama_url = _env("OLLAMA_BASE_URL", "http://localhost:11434")

    raw = {
        "llm_settings": {
            "provider": provider,
            "model_name": _env("LLM_MODEL", "gpt-4o-mini" if provider == "openai" else "llama3.1:8b"),
            "base_url": openai_url if provider == "openai" else ollama_url,
            "api_key": _env("OPENAI_API_KEY"),
            "temperature": _env("LLM_TEMPERATURE", "0.1"),
            "timeout": _env("LLM_TIMEOUT_S", "30"),
        },
        "embedding_settings": {
            "enabled": _env_bool("EMBEDDINGS_ENABLED", True),
            "provider": embed_provider,
            "model_name": _env("EMBED_MODEL",
                               "text-embedding-3-small" if embed_provider == "openai" else "nomic-embed-text:latest"),
            "base_url": openai_url if embed_provider == "openai" else ollama_url,
            "api_key": _env("OPENAI_API_KEY"),
        },
        "scoring": {
            "weights": {
                "must_have": _env("SCORE_WEIGHT_MUST_HAVE", "0.4"),
                "semantic": _env("SCORE_WEIGHT_SEMANTIC", "0.3"),
                "recency": _env("SCORE_WEIGHT_RECENCY", "0.2"),
                "impact": _env("SCORE_WEIGHT_IMPACT", "0.1"),
            },
            "thresholds": {
                "select_min": _env("SELECT_MIN", "0.72"),
                "reject_max": _env("REJECT_MAX", "0.48"),
            },
        },
        "processing_settings": {
            "max_concurrent": _env("MAX_CONCURRENT", "5"),
            "resume_timeout_s": _env("RESUME_TIMEOUT_S", "60"),
            "retry_attempts": _env("RETRY_ATTEMPTS", "2"),
        },
    }

    try:
        return PipelineSettings.model_validate(raw)
    except ValidationError as e:
        first = e.errors()[0]
        key = ".".join(str(p) for p in first.get("loc", ()))
        raise ConfigurationError(f"Invalid pipeline settings: {first.get('msg')}", config_key=key, cause=e) from e
