"""Image analyzer interface with OpenAI and Anthropic vision adapters."""

from __future__ import annotations

import base64
import json
import logging
from abc import ABC, abstractmethod

from pydantic import ValidationError

from riskaudit.config import Settings, get_settings
from riskaudit.errors import AnalyzerError
from riskaudit.schemas.finding import AnalyzerResponse, FindingData

logger = logging.getLogger(__name__)


class ImageAnalyzer(ABC):
    """Turns one photo plus a prompt into a list of safety findings."""

    @abstractmethod
    async def analyze(self, image_bytes: bytes, prompt: str) -> list[FindingData]:
        """Analyze ``image_bytes``. Raises AnalyzerError on bad input or unusable output."""
        ...


def _media_type(data: bytes) -> str:
    if data.startswith(b"\x89PNG"):
        return "image/png"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    if data.startswith(b"GIF8"):
        return "image/gif"
    return "image/jpeg"


def _encode(data: bytes) -> str:
    return base64.standard_b64encode(data).decode("utf-8")


def parse_findings_response(response: str | None) -> list[FindingData]:
    """Parse the model's JSON answer into findings.

    Accepts a bare ``{"findings": [...]}`` object, a bare list of findings, or
    either one wrapped in a markdown code block.
    """
    if not response or not response.strip():
        raise AnalyzerError("Analyzer returned an empty response")
    try:
        text = response.strip()
        if "```json" in text:
            text = text.split("```json")[1].split("```")[0]
        elif "```" in text:
            text = text.split("```")[1].split("```")[0]
        data = json.loads(text)
    except (json.JSONDecodeError, IndexError) as e:
        raise AnalyzerError(f"Analyzer response is not valid JSON: {response[:200]}") from e

    if isinstance(data, list):
        data = {"findings": data}
    try:
        return AnalyzerResponse.model_validate(data).findings
    except ValidationError as e:
        raise AnalyzerError(f"Analyzer response has an unexpected shape: {e}") from e


class OpenAIImageAnalyzer(ImageAnalyzer):
    """OpenAI GPT-4o vision analyzer."""

    def __init__(self, api_key: str, model: str = "gpt-4o", max_tokens: int = 8192):
        from openai import AsyncOpenAI
        self.client = AsyncOpenAI(api_key=api_key)
        self.model = model
        self.max_tokens = max_tokens

    async def analyze(self, image_bytes: bytes, prompt: str) -> list[FindingData]:
        if not image_bytes:
            raise AnalyzerError("No image data")
        mt = _media_type(image_bytes)
        try:
            resp = await self.client.chat.completions.create(
                model=self.model,
                messages=[{
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {"type": "image_url", "image_url": {"url": f"data:{mt};base64,{_encode(image_bytes)}"}},
                    ],
                }],
                max_tokens=self.max_tokens,
                response_format={"type": "json_object"},
            )
        except Exception as e:
            raise AnalyzerError(f"OpenAI request failed: {e}") from e
        return parse_findings_response(resp.choices[0].message.content)


class AnthropicImageAnalyzer(ImageAnalyzer):
    """Anthropic Claude vision analyzer."""

    def __init__(self, api_key: str, model: str = "claude-sonnet-4-20250514", max_tokens: int = 8192):
        from anthropic import AsyncAnthropic
        self.client = AsyncAnthropic(api_key=api_key)
        self.model = model
        self.max_tokens = max_tokens

    async def analyze(self, image_bytes: bytes, prompt: str) -> list[FindingData]:
        if not image_bytes:
            raise AnalyzerError("No image data")
        mt = _media_type(image_bytes)
        try:
            resp = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[{
                    "role": "user",
                    "content": [
                        {"type": "image", "source": {"type": "base64", "media_type": mt, "data": _encode(image_bytes)}},
                        {"type": "text", "text": prompt},
                    ],
                }],
            )
        except Exception as e:
            raise AnalyzerError(f"Anthropic request failed: {e}") from e
        text = "".join(block.text for block in resp.content if getattr(block, "type", "") == "text")
        return parse_findings_response(text)


def get_image_analyzer(settings: Settings | None = None) -> ImageAnalyzer:
    """Factory: the configured provider if its key is set, else whichever key is available."""
    settings = settings or get_settings()
    cfg = settings.analyzer
    if cfg.provider == "anthropic" and settings.anthropic_api_key:
        return AnthropicImageAnalyzer(settings.anthropic_api_key, cfg.anthropic_model, cfg.max_tokens)
    if settings.openai_api_key:
        return OpenAIImageAnalyzer(settings.openai_api_key, cfg.openai_model, cfg.max_tokens)
    if settings.anthropic_api_key:
        return AnthropicImageAnalyzer(settings.anthropic_api_key, cfg.anthropic_model, cfg.max_tokens)
    raise RuntimeError("No analyzer API key configured. Set OPENAI_API_KEY or ANTHROPIC_API_KEY.")
