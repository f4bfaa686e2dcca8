import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from .config import resolve_report_dir
from .model import Subject

if TYPE_CHECKING:  # pragma: no cover
    from .pdf import RenderedReport

logger = logging.getLogger(__name__)


class ReportExportError(RuntimeError):
    """The finished report could not be serialized or written."""


def save_report_pdf(
    report: "RenderedReport",
    subject: Subject,
    report_dir: Optional[Path] = None,
) -> Path:
    """
    Persist a rendered PDF and a small metadata sidecar under the report
    directory. Returns the PDF path. A PDF that cannot be written completely
    is removed and reported as ReportExportError.
    """
    report_dir = Path(report_dir) if report_dir is not None else resolve_report_dir()
    pdf_path = report_dir / report.filename
    meta_path = pdf_path.with_suffix(".json")

    try:
        report_dir.mkdir(parents=True, exist_ok=True)
        pdf_path.write_bytes(report.pdf_bytes)
    except OSError as exc:
        if pdf_path.is_file():
            pdf_path.unlink()
        raise ReportExportError(f"Could not write report to {pdf_path}: {exc}") from exc

    metadata = {
        "filename": report.filename,
        "employee_name": subject.name,
        "department": subject.department,
        "page_count": report.page_count,
        "rendering_notes": list(report.errors),
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "path": str(pdf_path),
    }
    try:
        meta_path.write_text(json.dumps(metadata, indent=2))
    except OSError:
        # Metadata failures should not block PDF saving.
        logger.warning("Could not write report metadata to %s", meta_path, exc_info=True)
    logger.info("Saved report %s (%d pages)", pdf_path, report.page_count)
    return pdf_path
