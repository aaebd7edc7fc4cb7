"""
core/ai_engine.py – drivetube Gemini client
===========================================
Single interface for the JSON-producing model calls used by metadata
generation. Text prompts and multimodal prompts (prompt + JPEG frames) share
one entry point, `generate_json`, which retries transient failures and
parses the first JSON object out of the model's reply.
"""
from __future__ import annotations

import json
import re
from typing import Any

from loguru import logger
from tenacity import retry, stop_after_attempt, wait_exponential


_JSON_RE = re.compile(r"\{[\s\S]*\}")


class AIError(RuntimeError):
    pass


def _extract_json(text: str) -> dict[str, Any]:
    if not text:
        raise AIError("Empty model response")
    text = text.strip()

    if text.startswith("```"):
        text = re.sub(r"^```[a-zA-Z0-9_-]*\s*", "", text)
        text = re.sub(r"\s*```$", "", text)

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        m = _JSON_RE.search(text)
        if not m:
            raise AIError(f"No JSON object in model response: {text[:120]!r}")
        try:
            data = json.loads(m.group(0))
        except json.JSONDecodeError as exc:
            raise AIError(f"Malformed JSON in model response: {exc}") from exc

    if not isinstance(data, dict):
        raise AIError("Model response is not a JSON object")
    return data


class GeminiClient:

    def __init__(self, api_key: str, model: str = "gemini-1.5-flash") -> None:
        self._api_key = api_key
        self._model = model

    @property
    def available(self) -> bool:
        return bool(self._api_key)

    @retry(stop=stop_after_attempt(3), wait=wait_exponential(multiplier=1, min=2, max=15), reraise=True)
    def _call(self, parts: list[Any]) -> str:
        import google.generativeai as genai

        genai.configure(api_key=self._api_key)
        model = genai.GenerativeModel(self._model)
        resp = model.generate_content(
            parts,
            generation_config={"temperature": 0.8, "max_output_tokens": 1024},
        )
        return (getattr(resp, "text", "") or "").strip()

    def generate_json(self, prompt: str, images: list[bytes] | None = None) -> dict[str, Any]:
        """
        Send *prompt* (plus optional JPEG frames) and return the parsed JSON object.

        Raises:
            AIError: No API key, the call failed after retries, or the reply
                     held no usable JSON.
        """
        if not self._api_key:
            raise AIError("GEMINI_API_KEY not configured")

        parts: list[Any] = [prompt]
        for frame in images or []:
            parts.append({"mime_type": "image/jpeg", "data": frame})

        try:
            text = self._call(parts)
        except AIError:
            raise
        except Exception as exc:
            logger.warning(f"[AIEngine] Gemini call failed: {exc}")
            raise AIError(f"Gemini call failed: {exc}") from exc

        logger.debug(f"[AIEngine] Gemini replied with {len(text)} chars ({len(images or [])} image(s))")
        return _extract_json(text)
