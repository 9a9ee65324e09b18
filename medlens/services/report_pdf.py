"""
AI analysis report PDF: AIAnalysis + Patient -> context -> Jinja2 -> WeasyPrint -> PDF bytes.
"""
import re
from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from medlens.core.clock import utcnow
from medlens.models import AIAnalysis, Patient, User

# medlens/templates
_TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
_ENV = Environment(loader=FileSystemLoader(str(_TEMPLATES_DIR)), autoescape=True)

TEMPLATE_NAME = "analysis_report.html"

_BOLD = re.compile(r"\*\*([^*]+)\*\*")
_HEADING = re.compile(r"^#{1,6}\s*")


def _paragraphs(text: str) -> list[str]:
    """Model replies are loose markdown: drop heading marks and bold markers, keep non-empty lines."""
    out = []
    for line in (text or "").splitlines():
        line = _BOLD.sub(r"\1", _HEADING.sub("", line.strip()))
        if line:
            out.append(line)
    return out


def _fmt(dt) -> str:
    return dt.strftime("%Y-%m-%d %H:%M UTC") if dt else "-"


def build_report_context(analysis: AIAnalysis, patient: Patient, requester: User | None = None) -> dict:
    return {
        "title": "AI Document Analysis Report",
        "analysis_id": analysis.analysis_id,
        "file_name": analysis.file_name,
        "analysis_type": analysis.analysis_type.replace("_", " ").title(),
        "model_name": analysis.model_name or "-",
        "confidence_pct": round((analysis.confidence or 0) * 100),
        "processing_time_ms": analysis.processing_time_ms,
        "completed_at": _fmt(analysis.completed_at),
        "report_date": _fmt(utcnow()),
        "patient": {
            "name": patient.full_name,
            "code": patient.patient_code,
            "mrn": patient.mrn or "-",
            "date_of_birth": patient.date_of_birth.isoformat() if patient.date_of_birth else "-",
            "age": patient.age,
            "gender": patient.gender.value if hasattr(patient.gender, "value") else patient.gender,
        },
        "requested_by": requester.full_name if requester else None,
        "summary_paragraphs": _paragraphs(analysis.summary or ""),
        "key_findings": list(analysis.key_findings or []),
        "recommendations": list(analysis.recommendations or []),
    }


def render_analysis_report(context: dict) -> bytes:
    """WeasyPrint is imported lazily: its system libraries are not needed to start the server."""
    from weasyprint import HTML

    template = _ENV.get_template(TEMPLATE_NAME)
    html_str = template.render(**context)
    return HTML(string=html_str, base_url=str(_TEMPLATES_DIR)).write_pdf()


class ReportRenderer:
    """Injected into the analysis lifecycle so tests can swap in a fake."""

    def render(self, analysis: AIAnalysis, patient: Patient, requester: User | None = None) -> bytes:
        return render_analysis_report(build_report_context(analysis, patient, requester))
