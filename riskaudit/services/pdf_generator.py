"""PDF inspection report rendered from a Jinja2 template with xhtml2pdf."""

from __future__ import annotations

import asyncio
import base64
import io
import logging
from datetime import datetime, timezone
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from riskaudit.models import Inspection, InspectionStatus, normalize_risk_level
from riskaudit.services.image_store import LocalImageStore

logger = logging.getLogger(__name__)

_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

RISK_COLORS = {"high": "#d32f2f", "medium": "#f57c00", "low": "#388e3c", "unknown": "#757575"}
RISK_LABELS = {"high": "High", "medium": "Medium", "low": "Low", "unknown": "Unknown"}
STATUS_COLORS = {
    InspectionStatus.COMPLETED.value: "#388e3c",
    InspectionStatus.FAILED.value: "#d32f2f",
    InspectionStatus.ANALYZING.value: "#1976d2",
}


def risk_color(level: str | None) -> str:
    return RISK_COLORS[normalize_risk_level(level)]


def status_color(status: str) -> str:
    return STATUS_COLORS.get(status, "#757575")


def _fmt(dt: datetime | None) -> str:
    return dt.strftime("%Y-%m-%d %H:%M") if dt else ""


async def build_report_context(inspection: Inspection, image_store: LocalImageStore) -> dict:
    """Collect everything the template needs, with images inlined as base64."""
    photos = []
    for photo in inspection.photos:
        if not photo.is_analyzed:
            continue
        data = await image_store.read_image(photo.image_ref)
        photos.append({
            "image_b64": base64.standard_b64encode(data).decode("utf-8") if data else "",
            "captured_at": _fmt(photo.captured_at),
            "description": photo.description or "",
            "findings": [
                {
                    "description": f.description,
                    "risk_level": RISK_LABELS[normalize_risk_level(f.risk_level)],
                    "risk_color": risk_color(f.risk_level),
                    "corrective_action": f.corrective_action,
                    "preventive_action": f.preventive_action,
                }
                for f in photo.findings
            ],
        })

    company = inspection.affiliated_company
    user = inspection.user
    return {
        "inspection_id": inspection.id,
        "company_name": company.name if company else "",
        "inspector_name": user.full_name if user else "",
        "started_at": _fmt(inspection.started_at),
        "completed_at": _fmt(inspection.completed_at),
        "status": inspection.status,
        "status_color": status_color(inspection.status),
        "total_photos": len(inspection.photos),
        "total_findings": inspection.total_findings,
        "photos": photos,
        "report_date": datetime.now(timezone.utc).strftime("%B %d, %Y"),
    }


def render_report_html(context: dict) -> str:
    env = Environment(
        loader=FileSystemLoader(str(_TEMPLATE_DIR)),
        autoescape=select_autoescape(["html", "j2"]),
    )
    return env.get_template("inspection_report.html.j2").render(**context)


def _html_to_pdf(html: str) -> bytes:
    from xhtml2pdf import pisa

    pdf_buffer = io.BytesIO()
    pisa_status = pisa.CreatePDF(io.StringIO(html), dest=pdf_buffer)
    if pisa_status.err:
        raise RuntimeError(f"PDF generation failed with {pisa_status.err} errors")
    return pdf_buffer.getvalue()


async def generate_inspection_report(inspection: Inspection, image_store: LocalImageStore) -> bytes:
    """Generate the PDF report for a loaded inspection. Returns PDF bytes."""
    context = await build_report_context(inspection, image_store)
    html = render_report_html(context)
    pdf = await asyncio.to_thread(_html_to_pdf, html)
    logger.info("Report generated for inspection %s (%d bytes)", inspection.id, len(pdf))
    return pdf


def report_filename(inspection: Inspection) -> str:
    return f"inspection_report_{inspection.started_at.strftime('%Y%m%d')}.pdf"
