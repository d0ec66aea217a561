"""HTML bodies for outgoing notification emails."""

from __future__ import annotations

from html import escape


def analysis_complete_email(company_name: str, inspection_id: str, app_url: str = "") -> tuple[str, str]:
    """Return (subject, html) for the analysis-complete notification."""
    company = escape(company_name)
    link = ""
    if app_url:
        url = f"{app_url.rstrip('/')}/inspections/{escape(inspection_id)}"
        link = (
            f'<p><a href="{url}" style="display:inline-block;padding:12px 24px;background:#1f6feb;'
            'color:#ffffff;text-decoration:none;border-radius:6px;font-weight:600;">View Inspection</a></p>'
        )
    html = f"""
    <h2>Inspection analysis complete</h2>
    <p>The safety analysis for <strong>{company}</strong> has finished.</p>
    <p>Inspection ID: <code>{escape(inspection_id)}</code></p>
    <p>The full report is attached as a PDF.</p>
    {link}
    <p style="color:#888;font-size:12px;">This is an automated message from Site Risk Audit.</p>
    """
    return f"Analysis complete - {company_name}", html
