from __future__ import annotations

import logging
import os
import time
from typing import Any, Mapping, Optional

from openai import AsyncOpenAI, OpenAIError

from profile_analyzer.ai.types import PreparedSection
from profile_analyzer.analysis.parsing import parse_json_object
from profile_analyzer.analysis.prompt import build_analysis_messages
from profile_analyzer.core.errors import TransientIOError

logger = logging.getLogger(__name__)


class OpenAIAnalyzer:
    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_s: float = 30.0,
        max_retries: int = 0,
        temperature: float = 0.2,
        max_output_tokens: int = 900,
    ):
        self._model = model
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens
        key = (api_key or os.getenv("OPENAI_API_KEY") or "").strip()
        if not key:
            raise RuntimeError("OPENAI_API_KEY is missing")

        # retries are handled by the orchestrator's backoff
        self._client = AsyncOpenAI(
            api_key=key,
            base_url=(base_url or os.getenv("OPENAI_BASE_URL") or None),
            timeout=float(os.getenv("OPENAI_TIMEOUT_S", str(timeout_s))),
            max_retries=int(os.getenv("OPENAI_MAX_RETRIES", str(max_retries))),
        )

    async def analyze(self, prompt: str, sections: Mapping[str, PreparedSection]) -> Mapping[str, Any]:
        messages = build_analysis_messages(prompt, sections)
        started = time.perf_counter()
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[{"role": m.role, "content": m.content} for m in messages],
                temperature=self._temperature,
                response_format={"type": "json_object"},
                max_tokens=self._max_output_tokens,
            )
        except OpenAIError as exc:
            logger.warning("analyzer_request_failed model=%s sections=%s: %s", self._model, ",".join(sections), exc)
            raise TransientIOError(f"Analyzer request failed: {exc}") from exc

        content = response.choices[0].message.content if response.choices else ""
        parsed = parse_json_object(content)
        logger.info(
            "analyzer_reply model=%s sections=%s latency_ms=%s",
            self._model,
            ",".join(sections),
            int((time.perf_counter() - started) * 1000),
        )
        return parsed
