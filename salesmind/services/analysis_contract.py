"""Pydantic contract for the JSON returned by the call-analysis prompt.

The model is asked for a fixed set of Portuguese keys. Its output is never
trusted wholesale: every field degrades to a default on its own, so a single
malformed value does not discard the rest of the analysis.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

from salesmind.models.feedback import SentimentCategory

logger = logging.getLogger(__name__)

MAX_LIST_ITEMS = 5
DEFAULT_SCORE = 50
MISSING_SUMMARY = "Análise não disponível"
PENDING_SUMMARY = "Análise pendente"

_TIMESTAMP_PREFIX = re.compile(r"^(\d{1,2}):(\d{2})")


def normalize_timestamp(moment: str) -> str:
    """Zero-pad the minutes of a leading ``m:ss`` timestamp."""

    match = _TIMESTAMP_PREFIX.match(moment)
    if not match:
        return moment
    minutes, seconds = match.groups()
    return f"{int(minutes):02d}:{seconds}{moment[match.end():]}"


def _clamp(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        number = int(round(float(value)))
    except (TypeError, ValueError):
        return None
    return max(0, min(100, number))


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    items = [str(item).strip() for item in value if item is not None]
    return [item for item in items if item][:MAX_LIST_ITEMS]


class AnalysisResult(BaseModel):
    summary: str = Field(default=PENDING_SUMMARY, alias="resumo")
    strengths: List[str] = Field(default_factory=list, alias="pontosFortes")
    weaknesses: List[str] = Field(default_factory=list, alias="pontosFracos")
    suggestions: List[str] = Field(default_factory=list, alias="sugestoes")
    sentiment_score: int = Field(default=DEFAULT_SCORE, alias="sentimentScore")
    closing_probability: int = Field(default=DEFAULT_SCORE, alias="probabilidadeFechamento")
    sentiment_category: SentimentCategory = Field(
        default=SentimentCategory.NEUTRO, alias="categoriaAmbiental"
    )
    service_quality: Optional[int] = Field(default=None, alias="qualidadeAtendimento")
    script_adherence: Optional[int] = Field(default=None, alias="aderenciaScript")
    objection_handling: Optional[int] = Field(default=None, alias="gestaoObjecoes")
    objections: List[str] = Field(default_factory=list, alias="objecoesIdentificadas")
    key_moments: List[str] = Field(default_factory=list, alias="momentosChave")

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("summary", mode="before")
    @classmethod
    def _coerce_summary(cls, value: Any) -> str:
        if isinstance(value, str) and value.strip():
            return value.strip()
        return MISSING_SUMMARY

    @field_validator(
        "strengths", "weaknesses", "suggestions", "objections", mode="before"
    )
    @classmethod
    def _coerce_list(cls, value: Any) -> list[str]:
        return _string_list(value)

    @field_validator("key_moments", mode="before")
    @classmethod
    def _coerce_key_moments(cls, value: Any) -> list[str]:
        return [normalize_timestamp(moment) for moment in _string_list(value)]

    @field_validator("sentiment_score", "closing_probability", mode="before")
    @classmethod
    def _coerce_score(cls, value: Any) -> int:
        clamped = _clamp(value)
        return DEFAULT_SCORE if clamped is None else clamped

    @field_validator("service_quality", "script_adherence", "objection_handling", mode="before")
    @classmethod
    def _coerce_sub_score(cls, value: Any) -> Optional[int]:
        return _clamp(value)

    @field_validator("sentiment_category", mode="before")
    @classmethod
    def _coerce_category(cls, value: Any) -> SentimentCategory:
        if isinstance(value, str):
            try:
                return SentimentCategory(value.strip().upper())
            except ValueError:
                pass
        return SentimentCategory.NEUTRO


def _clean_json_payload(payload: str) -> str:
    """Strip Markdown code fences and keep the outermost ``{...}`` block."""

    if not payload:
        return ""

    cleaned = payload.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    cleaned = cleaned.strip()

    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start != -1 and end > start:
        return cleaned[start : end + 1]
    return cleaned


def parse_analysis(raw: str | None) -> AnalysisResult:
    """Build an ``AnalysisResult`` from raw model output, never raising."""

    cleaned = _clean_json_payload(raw or "")
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        logger.warning("Analysis response is not valid JSON, using defaults: %s", exc)
        return AnalysisResult()

    if not isinstance(data, dict):
        logger.warning("Analysis response is not a JSON object, using defaults")
        return AnalysisResult()

    data.setdefault("resumo", MISSING_SUMMARY)
    return AnalysisResult.model_validate(data)


__all__ = [
    "AnalysisResult",
    "MAX_LIST_ITEMS",
    "MISSING_SUMMARY",
    "PENDING_SUMMARY",
    "normalize_timestamp",
    "parse_analysis",
]
