"""Gemini call for blueprint analysis.

The model is reached through Google's OpenAI-compatible endpoint, so the
request is a plain chat completion with an inline image and a JSON-schema
response format.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Mapping

from openai import OpenAI, OpenAIError
from pydantic import ValidationError

from estimator.config import load_settings
from estimator.errors import (
    AnalysisError,
    ApiKeyMissingError,
    PdfConversionError,
    UnsupportedFileError,
)
from estimator.models import AnalysisConfig, EstimationResult
from estimator.prompts import RESPONSE_SCHEMA, USER_PROMPT, build_system_instruction

logger = logging.getLogger(__name__)

API_KEY_ENV_ORDER = ("GEMINI_API_KEY", "API_KEY")

MSG_API_KEY_MISSING = "API_KEY_MISSING: 請設定環境變數 GEMINI_API_KEY，或在表單下方直接輸入 API Key。"
MSG_API_KEY_INVALID = "⚠️ API Key 設定無效。請檢查環境變數 GEMINI_API_KEY，或直接在表單下方輸入 API Key。"
MSG_OVERLOADED = "服務暫時繁忙 (Model Overloaded)，請稍後再試。"
MSG_PDF_FAILED = "PDF 處理失敗 (請確認檔案是否加密或損壞)。"
MSG_GENERIC = "分析圖片失敗。請確認圖片清晰度並重試。"
MSG_EMPTY_REPLY = "Gemini 沒有回傳資料"


def resolve_api_key(explicit: str | None, settings: Mapping[str, Any]) -> str:
    """Key typed into the form wins over the configured ones."""
    key = (explicit or "").strip()
    if key:
        return key
    for name in API_KEY_ENV_ORDER:
        key = (settings.get(name) or "").strip()
        if key:
            return key
    raise ApiKeyMissingError(MSG_API_KEY_MISSING)


def parse_model_json(text: str) -> dict:
    """JSON body of a model reply, tolerating ```json fences."""
    cleaned = re.sub(r"\A```(?:json)?|```\Z", "", text.strip(), flags=re.IGNORECASE).strip()
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise AnalysisError(f"模型回傳的 JSON 無法解析: {e}") from e
    if not isinstance(data, dict):
        raise AnalysisError("模型回傳的 JSON 格式不正確")
    return data


def analyze_blueprint(
    image_b64: str,
    mime_type: str,
    config: AnalysisConfig,
    settings: Mapping[str, Any] | None = None,
) -> EstimationResult:
    settings = settings if settings is not None else load_settings()
    api_key = resolve_api_key(config.api_key, settings)

    # New client per request so a key typed into the form is always used
    client = OpenAI(
        api_key=api_key,
        base_url=settings["GEMINI_BASE_URL"],
        timeout=settings["REQUEST_TIMEOUT"],
    )

    messages = [
        {"role": "system", "content": build_system_instruction(config)},
        {
            "role": "user",
            "content": [
                {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{image_b64}"}},
                {"type": "text", "text": USER_PROMPT},
            ],
        },
    ]

    try:
        resp = client.chat.completions.create(
            model=settings["GEMINI_MODEL"],
            messages=messages,
            response_format={
                "type": "json_schema",
                "json_schema": {"name": "estimation_result", "schema": RESPONSE_SCHEMA},
            },
        )
    except OpenAIError as e:
        logger.error("Error calling Gemini API: %s", e)
        raise

    content = resp.choices[0].message.content if resp.choices else None
    if not content:
        raise AnalysisError(MSG_EMPTY_REPLY)

    data = parse_model_json(content)
    try:
        result = EstimationResult.model_validate(data)
    except ValidationError as e:
        logger.error("Model reply failed validation: %s", e)
        raise AnalysisError("模型回傳資料缺少必要欄位") from e

    logger.info(
        "Analyzed %r: %d operations, %.1f s",
        result.part_name, len(result.operations), result.total_time_seconds,
    )
    return result.model_copy(update={"side_mode": config.sides})


def classify_error(exc: BaseException) -> str:
    """User-facing message for a failed analysis."""
    if isinstance(exc, UnsupportedFileError):
        return str(exc)

    message = str(exc)
    status = getattr(exc, "status_code", None)

    if (
        isinstance(exc, ApiKeyMissingError)
        or "API key" in message
        or "API_KEY" in message
        or status in (400, 401, 403)
        or "400" in message
        or "403" in message
    ):
        return MSG_API_KEY_INVALID
    if status == 503 or "503" in message or "Overloaded" in message:
        return MSG_OVERLOADED
    if isinstance(exc, PdfConversionError) or "PDF" in message:
        return MSG_PDF_FAILED
    return MSG_GENERIC
