import pytest

from riskaudit.db import crud
from riskaudit.models import InspectionStatus
from riskaudit.schemas.finding import FindingData
from riskaudit.services import pdf_generator

from tests.helpers import finding


@pytest.mark.parametrize("level,color", [
    ("high", "#d32f2f"), ("Alto", "#d32f2f"), ("crítico", "#d32f2f"),
    ("medium", "#f57c00"), ("medio", "#f57c00"),
    ("low", "#388e3c"), ("BAJO", "#388e3c"),
    ("whatever", "#757575"), (None, "#757575"),
])
def test_risk_color(level, color):
    assert pdf_generator.risk_color(level) == color


def test_status_color():
    assert pdf_generator.status_color(InspectionStatus.COMPLETED.value) == "#388e3c"
    assert pdf_generator.status_color(InspectionStatus.FAILED.value) == "#d32f2f"
    assert pdf_generator.status_color("Draft") == "#757575"


async def _analyzed_inspection(db, make_inspection):
    inspection = await make_inspection(3)
    await crud.record_photo_findings(db, inspection.photos[0], [
        finding("Unguarded machine", "high"),
        FindingData(description="Wet floor", risk_level="bajo", corrective_action="Mop"),
    ])
    await crud.record_photo_findings(db, inspection.photos[1], [])
    return await crud.load_inspection_with_photos(db, inspection.id, refresh=True)


async def test_report_context_includes_only_analyzed_photos(db, make_inspection, image_store):
    inspection = await _analyzed_inspection(db, make_inspection)

    ctx = await pdf_generator.build_report_context(inspection, image_store)

    assert ctx["company_name"] == "Northwind Foundry"
    assert ctx["inspector_name"] == "Ines Pector"
    assert ctx["total_photos"] == 3
    assert ctx["total_findings"] == 2
    assert len(ctx["photos"]) == 2
    first, second = ctx["photos"]
    assert first["image_b64"]
    assert [f["risk_level"] for f in first["findings"]] == ["High", "Low"]
    assert [f["risk_color"] for f in first["findings"]] == ["#d32f2f", "#388e3c"]
    assert second["findings"] == []


async def test_rendered_html_marks_clean_photos(db, make_inspection, image_store):
    inspection = await _analyzed_inspection(db, make_inspection)
    ctx = await pdf_generator.build_report_context(inspection, image_store)

    html = pdf_generator.render_report_html(ctx)

    assert "Safety Inspection Report" in html
    assert "Northwind Foundry" in html
    assert "Unguarded machine" in html
    assert "No risks detected" in html
    assert "<pdf:pagenumber>" in html


async def test_report_without_analyzed_photos(make_inspection, image_store):
    inspection = await make_inspection(1)
    ctx = await pdf_generator.build_report_context(inspection, image_store)
    html = pdf_generator.render_report_html(ctx)
    assert ctx["photos"] == []
    assert "No photos were analyzed" in html


async def test_generate_pdf_bytes(db, make_inspection, image_store):
    inspection = await _analyzed_inspection(db, make_inspection)

    pdf = await pdf_generator.generate_inspection_report(inspection, image_store)

    assert pdf.startswith(b"%PDF")


async def test_report_filename_uses_start_date(make_inspection):
    inspection = await make_inspection(1)
    expected = inspection.started_at.strftime("%Y%m%d")
    assert pdf_generator.report_filename(inspection) == f"inspection_report_{expected}.pdf"
