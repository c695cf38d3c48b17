"""
External intelligence backends: structured JSON extraction and text embeddings.

Two providers are supported over plain HTTP: a local Ollama server and any
OpenAI-compatible API. Calls are blocking; the pipeline runs them in worker
threads.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar, Union

import requests
from pydantic import BaseModel, ValidationError

from cv_intelligence.models.settings import EmbeddingSettings, LLMSettings, Provider
from cv_intelligence.utils.exceptions import ConfigurationError, EmbeddingError, ExtractionError, retry_with_logging
from cv_intelligence.utils.logging_config import get_logger
from cv_intelligence.utils.utils import parse_json_object

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)

# where a structured result came from
SOURCE_MODEL = "model"
SOURCE_HEURISTIC = "heuristic"


class StructuredExtractionBackend:
    """Turns a prompt plus a JSON schema into a JSON string reply."""

    provider = "unknown"

    def complete_json(self, prompt: str, schema: Dict[str, Any]) -> str:
        raise NotImplementedError


class EmbeddingBackend:
    provider = "unknown"

    def embed(self, text: str) -> List[float]:
        raise NotImplementedError


# Tagged extraction outcome
@dataclass
class ExtractionOk(Generic[T]):
    value: T
    raw: str = ""


@dataclass
class SchemaViolation:
    reason: str
    raw: str = ""
    errors: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class TransportError:
    reason: str
    error: Optional[Exception] = None


ExtractionOutcome = Union[ExtractionOk, SchemaViolation, TransportError]


def structured_extract(backend: StructuredExtractionBackend, prompt: str, schema_model: Type[T]) -> ExtractionOutcome:
    """Call the backend and strictly validate its reply against schema_model.

    Never raises for backend or reply problems; the outcome says what went wrong.
    """
    try:
        raw = backend.complete_json(prompt, schema_model.model_json_schema(by_alias=True))
    except ExtractionError as e:
        return TransportError(reason=e.message, error=e)
    except Exception as e:
        logger.error(f"Unexpected failure from {backend.provider} extraction backend: {e!r}")
        return TransportError(reason=f"unexpected backend failure: {e}", error=e)

    try:
        data = parse_json_object(raw)
    except ValueError as e:
        return SchemaViolation(reason=f"invalid JSON: {e}", raw=raw or "")

    try:
        return ExtractionOk(value=schema_model.model_validate(data), raw=raw)
    except ValidationError as e:
        errors = e.errors(include_url=False)
        first = errors[0] if errors else {}
        loc = ".".join(str(p) for p in first.get("loc", ()))
        return SchemaViolation(reason=f"schema violation at {loc or 'root'}: {first.get('msg', e)}",
                               raw=raw, errors=errors)


class _RetryableStatus(Exception):
    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {body}")


class _HTTPBackend:
    """Shared POST with retries on transient transport failures."""

    provider = "unknown"

    def __init__(self, base_url: str, timeout: float, api_key: Optional[str] = None,
                 retry_attempts: int = 2, retry_backoff: float = 0.5, session: requests.Session = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.api_key = api_key
        self.session = session or requests.Session()
        self._post = retry_with_logging(
            max_attempts=retry_attempts,
            backoff_factor=retry_backoff,
            exceptions=(requests.ConnectionError, requests.Timeout, _RetryableStatus),
            logger=logger,
        )(self._post_once)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _post_once(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        resp = self.session.post(f"{self.base_url}{path}", json=payload, headers=self._headers(), timeout=self.timeout)
        if resp.status_code == 429 or resp.status_code >= 500:
            raise _RetryableStatus(resp.status_code, resp.text[:200])
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object from {path}, got {type(data).__name__}")
        return data


class OllamaExtractionBackend(_HTTPBackend, StructuredExtractionBackend):
    """Ollama /api/generate; the schema goes in `format` to constrain decoding."""

    provider = Provider.OLLAMA.value

    def __init__(self, settings: LLMSettings, timeout: Optional[float] = None, **kwargs):
        super().__init__(settings.base_url, timeout or settings.timeout, **kwargs)
        self.settings = settings

    def complete_json(self, prompt: str, schema: Dict[str, Any]) -> str:
        options = {"temperature": self.settings.temperature}
        if self.settings.max_tokens:
            options["num_predict"] = self.settings.max_tokens
        payload = {
            "model": self.settings.model_name,
            "prompt": prompt,
            "format": schema or "json",
            "stream": False,
            "options": options,
        }
        try:
            data = self._post("/api/generate", payload)
            return data.get("response", "") or ""
        except Exception as e:
            raise _as_extraction_error(e, self.provider) from e


class OpenAIExtractionBackend(_HTTPBackend, StructuredExtractionBackend):
    provider = Provider.OPENAI.value

    def __init__(self, settings: LLMSettings, timeout: Optional[float] = None, **kwargs):
        super().__init__(settings.base_url, timeout or settings.timeout, api_key=settings.api_key, **kwargs)
        self.settings = settings

    def complete_json(self, prompt: str, schema: Dict[str, Any]) -> str:
        payload = {
            "model": self.settings.model_name,
            "messages": [
                {"role": "system", "content": "Return only a JSON object. No prose, no markdown."},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.settings.temperature,
            "response_format": _response_format(schema),
        }
        if self.settings.max_tokens:
            payload["max_tokens"] = self.settings.max_tokens
        try:
            data = self._post("/chat/completions", payload)
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise ExtractionError(f"Unexpected chat completion payload: {e}", provider=self.provider, cause=e) from e
        except Exception as e:
            raise _as_extraction_error(e, self.provider) from e


class OllamaEmbeddingBackend(_HTTPBackend, EmbeddingBackend):
    provider = Provider.OLLAMA.value

    def __init__(self, settings: EmbeddingSettings, timeout: Optional[float] = None, **kwargs):
        super().__init__(settings.base_url, timeout or settings.timeout, **kwargs)
        self.settings = settings

    def embed(self, text: str) -> List[float]:
        payload = {"model": self.settings.model_name, "input": text[:self.settings.max_chars]}
        try:
            data = self._post("/api/embed", payload)
            vector = data["embeddings"][0]
        except (KeyError, IndexError, TypeError) as e:
            raise EmbeddingError(f"Unexpected embedding payload: {e}", provider=self.provider,
                                 model_name=self.settings.model_name, cause=e) from e
        except Exception as e:
            raise EmbeddingError(f"Embedding request failed: {e}", provider=self.provider,
                                 model_name=self.settings.model_name, cause=e) from e
        return [float(x) for x in vector]


class OpenAIEmbeddingBackend(_HTTPBackend, EmbeddingBackend):
    provider = Provider.OPENAI.value

    def __init__(self, settings: EmbeddingSettings, timeout: Optional[float] = None, **kwargs):
        super().__init__(settings.base_url, timeout or settings.timeout, api_key=settings.api_key, **kwargs)
        self.settings = settings

    def embed(self, text: str) -> List[float]:
        payload = {"model": self.settings.model_name, "input": text[:self.settings.max_chars]}
        try:
            data = self._post("/embeddings", payload)
            vector = data["data"][0]["embedding"]
        except (KeyError, IndexError, TypeError) as e:
            raise EmbeddingError(f"Unexpected embedding payload: {e}", provider=self.provider,
                                 model_name=self.settings.model_name, cause=e) from e
        except Exception as e:
            raise EmbeddingError(f"Embedding request failed: {e}", provider=self.provider,
                                 model_name=self.settings.model_name, cause=e) from e
        return [float(x) for x in vector]


def _response_format(schema: Dict[str, Any]) -> Dict[str, Any]:
    if not schema:
        return {"type": "json_object"}
    return {
        "type": "json_schema",
        "json_schema": {"name": schema.get("title", "extraction"), "schema": schema, "strict": False},
    }


def _as_extraction_error(e: Exception, provider: str) -> ExtractionError:
    status = getattr(e, "status_code", None)
    if status is None and isinstance(e, requests.HTTPError) and e.response is not None:
        status = e.response.status_code
    return ExtractionError(f"Extraction request failed: {e}", provider=provider, status_code=status, cause=e)


def build_extraction_backend(settings: LLMSettings, retry_attempts: int = 2, retry_backoff: float = 0.5,
                             timeout: Optional[float] = None) -> StructuredExtractionBackend:
    """Backend for the configured provider; timeout overrides the per-request HTTP timeout."""
    kwargs = dict(timeout=timeout, retry_attempts=retry_attempts, retry_backoff=retry_backoff)
    if settings.provider == Provider.OLLAMA:
        return OllamaExtractionBackend(settings, **kwargs)
    if settings.provider == Provider.OPENAI:
        if not settings.api_key:
            raise ConfigurationError("OpenAI provider requires an API key", config_key="OPENAI_API_KEY")
        return OpenAIExtractionBackend(settings, **kwargs)
    raise ConfigurationError(f"Unknown LLM provider: {settings.provider}", config_key="LLM_PROVIDER",
                             config_value=settings.provider)


def build_embedding_backend(settings: EmbeddingSettings, retry_attempts: int = 2, retry_backoff: float = 0.5,
                            timeout: Optional[float] = None) -> Optional[EmbeddingBackend]:
    if not settings.enabled:
        return None
    kwargs = dict(timeout=timeout, retry_attempts=retry_attempts, retry_backoff=retry_backoff)
    if settings.provider == Provider.OLLAMA:
        return OllamaEmbeddingBackend(settings, **kwargs)
    if settings.provider == Provider.OPENAI:
        if not settings.api_key:
            raise ConfigurationError("OpenAI provider requires an API key", config_key="OPENAI_API_KEY")
        return OpenAIEmbeddingBackend(settings, **kwargs)
    raise ConfigurationError(f"Unknown embedding provider: {settings.provider}", config_key="EMBED_PROVIDER",
                             config_value=settings.provider)
