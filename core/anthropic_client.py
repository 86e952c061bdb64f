# core/anthropic_client.py
import json
from typing import Any, Dict, List, Optional, Sequence
import httpx
from pydantic import BaseModel, Field, ValidationError
from config.settings import settings
from core.entities import ModelOutput
from model.attempt import Alternative, AttemptStatus, Evidence, NextQuestion
from model.registry import DocumentRef
from util.errors import ParseError, QuotaError, TransportError
from util.types import AnthropicTextBlock, QuestionType
import logging
from util.timing import timed

logger = logging.getLogger(__name__)

MAX_ALTERNATIVES = 3


class _RawAlternative(BaseModel):
    code: str
    reason: str = ""
    confidence: Optional[float] = None


class _RawEvidence(BaseModel):
    source: str
    doc_id: str
    ref: str
    excerpt: str = ""


class _RawOption(BaseModel):
    value: str
    label: str


class _RawQuestion(BaseModel):
    id: str
    label: str
    type: QuestionType = "text"
    options: List[_RawOption] = Field(default_factory=list)
    required: bool = True


class RawModelOutput(BaseModel):
    """Shape the model is asked to return (snake_case, confidence 0-100)."""

    status: AttemptStatus
    recommended_code: Optional[str] = None
    confidence: Optional[float] = None
    justification: Optional[str] = None
    alternatives: List[_RawAlternative] = Field(default_factory=list)
    evidence: List[_RawEvidence] = Field(default_factory=list)
    next_question: Optional[_RawQuestion] = None


def _first_text(data: Dict[str, Any]) -> str:
    content = data.get("content") or []
    if not isinstance(content, list):
        return ""
    for node in content:
        if isinstance(node, dict) and node.get("type") == "text":
            block: AnthropicTextBlock = node  # type: ignore[assignment]
            return block.get("text") or ""
    return ""


def _strip_fences(text: str) -> str:
    raw = (text or "").strip()
    if raw.startswith("```"):
        raw = raw.strip("`")
        if raw.startswith("json"):
            raw = raw[4:]
        raw = raw.strip()
    return raw


def parse_model_output(text: str) -> ModelOutput:
    """
    Turn the model's text into a ModelOutput. Anything that is not the JSON
    object we asked for raises ParseError; nothing is guessed or defaulted.
    """
    raw = _strip_fences(text)
    if not raw:
        raise ParseError("empty model output")
    try:
        parsed = RawModelOutput.model_validate(json.loads(raw))
    except json.JSONDecodeError as e:
        raise ParseError(f"model output is not JSON: {e.msg}") from e
    except ValidationError as e:
        raise ParseError(f"model output does not match schema: {e.error_count()} error(s)") from e

    if parsed.status in (AttemptStatus.ERROR, AttemptStatus.HALLUCINATION_DETECTED):
        # reserved for the pipeline itself
        raise ParseError(f"model returned reserved status {parsed.status.value}")

    nq = parsed.next_question
    return ModelOutput(
        status=parsed.status,
        recommended_code=(parsed.recommended_code or "").strip() or None,
        confidence=parsed.confidence,
        justification=parsed.justification,
        alternatives=[
            Alternative(code=a.code, reason=a.reason, confidence=a.confidence)
            for a in parsed.alternatives[:MAX_ALTERNATIVES]
        ],
        evidence=[
            Evidence(source=e.source, docId=e.doc_id, ref=e.ref, excerpt=e.excerpt)
            for e in parsed.evidence
        ],
        next_question=(
            NextQuestion.model_validate(nq.model_dump()) if nq is not None else None
        ),
    )


class AnthropicClassifier:
    """
    Classifier port backed by the Anthropic Messages API.

    One request per call, no retries: failures surface as typed ClassifierError
    subclasses and the caller decides what an attempt looks like.
    """

    def __init__(
        self,
        *,
        api_key: str = settings.ANTHROPIC_API_KEY,
        model: str = settings.ANTHROPIC_MODEL,
        api_url: str = settings.ANTHROPIC_API_URL,
        timeout: float = settings.CLASSIFY_TIMEOUT_SECONDS,
        max_tokens: int = settings.CLASSIFY_MAX_TOKENS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._api_url = api_url
        self._timeout = timeout
        self._max_tokens = max_tokens
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self._api_key,
            "anthropic-version": settings.ANTHROPIC_VERSION,
            "content-type": "application/json",
        }

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                r = await client.post(self._api_url, headers=self._headers(), json=payload)
        except httpx.TimeoutException as e:
            raise TransportError(f"model call timed out after {self._timeout:.0f}s") from e
        except httpx.RequestError as e:
            raise TransportError(f"model call failed: {e.__class__.__name__}") from e

        if r.status_code == 429:
            raise QuotaError("model provider rate limit reached")
        if r.status_code >= 400:
            raise TransportError(f"model provider answered HTTP {r.status_code}")
        try:
            data = r.json()
        except ValueError as e:
            raise ParseError("model provider returned a non-JSON envelope") from e
        if not isinstance(data, dict):
            raise ParseError("model provider returned an unexpected envelope")
        return data

    async def infer(
        self,
        system_prompt: str,
        user_prompt: str,
        document_refs: Sequence[DocumentRef],
    ) -> ModelOutput:
        payload = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "system": system_prompt,
            "messages": [{"role": "user", "content": user_prompt}],
            "temperature": 0.0,
        }
        with timed(logger, "ai.classify", model=self._model, docs=len(document_refs)):
            data = await self._post(payload)

        out = parse_model_output(_first_text(data))
        logger.info(
            "ai.classify.result status=%s code=%s evidence=%d",
            out.status.value,
            out.recommended_code,
            len(out.evidence),
        )
        return out
