import resend

from riskaudit.config import EmailConfig
from riskaudit.services.email import EmailNotifier
from riskaudit.services.email_templates import analysis_complete_email


async def test_send_without_api_key_is_skipped():
    notifier = EmailNotifier(EmailConfig(resend_api_key=""))
    assert await notifier.send("a@b.test", "Hi", "<p>x</p>") is False


async def test_send_passes_attachments_to_resend(monkeypatch):
    captured = {}

    def fake_send(params):
        captured.update(params)
        return {"id": "email_123"}

    monkeypatch.setattr(resend.Emails, "send", fake_send)
    notifier = EmailNotifier(EmailConfig(resend_api_key="re_test", from_address="Audit <a@b.test>"))

    ok = await notifier.send("owner@acme.test", "Subject", "<p>body</p>", {"report.pdf": b"%PDF"})

    assert ok is True
    assert captured["to"] == ["owner@acme.test"]
    assert captured["from"] == "Audit <a@b.test>"
    assert captured["attachments"] == [{"filename": "report.pdf", "content": list(b"%PDF")}]


async def test_send_failure_returns_false(monkeypatch):
    def broken_send(params):
        raise ConnectionError("resend unreachable")

    monkeypatch.setattr(resend.Emails, "send", broken_send)
    notifier = EmailNotifier(EmailConfig(resend_api_key="re_test"))

    assert await notifier.send("owner@acme.test", "Subject", "<p>body</p>") is False


def test_analysis_complete_email():
    subject, html = analysis_complete_email("Smith & Sons", "01INSPECTION", "https://audit.test/")
    assert subject == "Analysis complete - Smith & Sons"
    assert "Smith &amp; Sons" in html
    assert "01INSPECTION" in html
    assert "https://audit.test/inspections/01INSPECTION" in html
