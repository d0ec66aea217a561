"""Test doubles and builders shared across test modules."""

from __future__ import annotations

import io

from PIL import Image

from riskaudit.analysis.analyzer import ImageAnalyzer
from riskaudit.schemas.finding import FindingData
from riskaudit.services.email import Notifier


def make_jpeg(width: int = 800, height: int = 600, color=(70, 130, 180)) -> bytes:
    img = Image.new("RGB", (width, height), color=color)
    buf = io.BytesIO()
    img.save(buf, format="JPEG")
    return buf.getvalue()


def finding(description: str = "Exposed wiring", risk_level: str = "high") -> FindingData:
    return FindingData(
        description=description, risk_level=risk_level,
        corrective_action="Isolate the area", preventive_action="Monthly checks",
    )


class ScriptedAnalyzer(ImageAnalyzer):
    """Returns (or raises) the next scripted outcome on each call."""

    def __init__(self, outcomes=None, default=None):
        self.outcomes = list(outcomes or [])
        self.default = default if default is not None else []
        self.calls: list[tuple[int, str]] = []
        self.on_call = None

    async def analyze(self, image_bytes: bytes, prompt: str) -> list[FindingData]:
        self.calls.append((len(image_bytes), prompt))
        if self.on_call is not None:
            await self.on_call()
        outcome = self.outcomes.pop(0) if self.outcomes else self.default
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class RecordingNotifier(Notifier):
    def __init__(self, result: bool = True, error: Exception | None = None):
        self.result = result
        self.error = error
        self.sent: list[dict] = []

    async def send(self, recipient, subject, body, attachments=None) -> bool:
        if self.error is not None:
            raise self.error
        self.sent.append({
            "recipient": recipient, "subject": subject, "body": body, "attachments": attachments or {},
        })
        return self.result
