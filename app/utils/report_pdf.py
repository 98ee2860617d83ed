# app/utils/report_pdf.py
"""
Dental report PDF rendering using reportlab.
"""

import logging
from collections import Counter
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.platypus import (
    Image,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from app.core.errors import RenderError
from app.schemas.submission import ReportPayload
from app.utils.file_storage import LocalBlobStore, generate_blob_filename

logger = logging.getLogger(__name__)

BRAND_COLOR = colors.HexColor("#399918")
IMAGE_BOX = (80 * mm, 65 * mm)

DISCLAIMER = (
    "This report is generated by OralVis Healthcare system and should be reviewed "
    "by a qualified healthcare professional."
)


def _text(value: str) -> str:
    return escape(value).replace("\n", "<br/>")


def summarize_annotations(annotation_data: dict | None) -> list[tuple[str, int]]:
    """
    Count annotation shapes per type, e.g. ``[("arrow", 1), ("rectangle", 2)]``.

    Canvas exports store shapes under ``objects`` instead of ``annotations``.
    """
    if not isinstance(annotation_data, dict):
        return []
    shapes = annotation_data.get("annotations")
    if shapes is None:
        shapes = annotation_data.get("objects")
    if not isinstance(shapes, list):
        return []
    counts = Counter(
        str(shape.get("type", "unknown")).lower()
        for shape in shapes
        if isinstance(shape, dict)
    )
    return sorted(counts.items())


class PdfReportRenderer:
    """
    Renders a :class:`ReportPayload` into a PDF inside the blob store's
    reports directory. Holds no state besides the store it writes into.
    """

    def __init__(self, blob_store: LocalBlobStore):
        self.blob_store = blob_store

        styles = getSampleStyleSheet()
        self.title_style = ParagraphStyle(
            "ReportTitle",
            parent=styles["Heading1"],
            fontSize=22,
            textColor=colors.white,
            fontName="Helvetica-Bold",
        )
        self.subtitle_style = ParagraphStyle(
            "ReportSubtitle",
            parent=styles["Normal"],
            fontSize=11,
            textColor=colors.white,
        )
        self.heading_style = ParagraphStyle(
            "ReportHeading",
            parent=styles["Heading2"],
            fontSize=14,
            textColor=colors.black,
            spaceAfter=6,
            fontName="Helvetica-Bold",
        )
        self.normal_style = ParagraphStyle(
            "ReportNormal",
            parent=styles["Normal"],
            fontSize=10,
            textColor=colors.black,
            spaceAfter=6,
        )
        self.small_style = ParagraphStyle(
            "ReportSmall",
            parent=styles["Normal"],
            fontSize=8,
            textColor=colors.grey,
            alignment=1,
        )

    def render(self, payload: ReportPayload) -> str:
        """
        Build the PDF and return the stored report filename.
        Raises RenderError if anything goes wrong; no partial file is left behind.
        """
        filename = generate_blob_filename(f"report_{payload.submission_id}", ".pdf")
        full_path = self.blob_store.path_for(filename, "report")

        doc = SimpleDocTemplate(
            str(full_path),
            pagesize=A4,
            rightMargin=18 * mm,
            leftMargin=18 * mm,
            topMargin=15 * mm,
            bottomMargin=15 * mm,
            title=f"Dental report {payload.submission_id}",
        )
        try:
            doc.build(self._elements(payload))
        except Exception as exc:
            logger.error(
                "Report rendering failed for submission %s",
                payload.submission_id,
                exc_info=True,
            )
            full_path.unlink(missing_ok=True)
            raise RenderError("Error generating report") from exc

        return filename

    def _elements(self, payload: ReportPayload) -> list:
        elements = []
        elements.extend(self._header())
        elements.extend(self._patient_info(payload))
        elements.extend(self._images(payload))
        elements.extend(self._annotations(payload))
        elements.extend(self._findings(payload))
        elements.extend(self._footer(payload))
        return elements

    def _header(self) -> list:
        header = Table(
            [
                [Paragraph("OralVis Healthcare", self.title_style)],
                [Paragraph("Dental Image Analysis Report", self.subtitle_style)],
            ],
            colWidths=[174 * mm],
        )
        header.setStyle(
            TableStyle(
                [
                    ("BACKGROUND", (0, 0), (-1, -1), BRAND_COLOR),
                    ("LEFTPADDING", (0, 0), (-1, -1), 8),
                    ("TOPPADDING", (0, 0), (-1, 0), 10),
                    ("BOTTOMPADDING", (0, -1), (-1, -1), 10),
                ]
            )
        )
        return [header, Spacer(1, 6 * mm)]

    def _patient_info(self, payload: ReportPayload) -> list:
        details = payload.patient_details
        rows = [
            ["Patient Name:", details.name],
            ["Patient ID:", details.patient_id],
            ["Email:", str(details.email)],
            ["Report Date:", payload.report_date.strftime("%d/%m/%Y")],
            ["Submission ID:", payload.submission_id],
        ]
        table = Table(rows, colWidths=[40 * mm, 134 * mm])
        table.setStyle(
            TableStyle(
                [
                    ("FONTNAME", (0, 0), (-1, -1), "Helvetica"),
                    ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
                    ("FONTSIZE", (0, 0), (-1, -1), 10),
                    ("ALIGN", (0, 0), (-1, -1), "LEFT"),
                    ("VALIGN", (0, 0), (-1, -1), "TOP"),
                    ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
                    ("TOPPADDING", (0, 0), (-1, -1), 4),
                ]
            )
        )
        elements = [Paragraph("Patient Information", self.heading_style), table]
        if details.note:
            elements.append(Spacer(1, 3 * mm))
            elements.append(Paragraph(f"<b>Patient Note:</b> {_text(details.note)}", self.normal_style))
        elements.append(Spacer(1, 5 * mm))
        return elements

    def _image_cell(self, filename: str | None, missing_text: str):
        if not filename or not self.blob_store.exists(filename, "image"):
            return Paragraph(missing_text, self.normal_style)
        path = self.blob_store.path_for(filename, "image")
        try:
            width, height = ImageReader(str(path)).getSize()
        except Exception:
            logger.warning("Could not load image %s into report", filename, exc_info=True)
            return Paragraph(missing_text, self.normal_style)
        scale = min(IMAGE_BOX[0] / width, IMAGE_BOX[1] / height)
        return Image(str(path), width=width * scale, height=height * scale)

    def _images(self, payload: ReportPayload) -> list:
        headers = [Paragraph("<b>Original Image:</b>", self.normal_style)]
        cells = [self._image_cell(payload.original_image_path, "Image could not be loaded")]
        if payload.annotated_image_path:
            headers.append(Paragraph("<b>Annotated Image:</b>", self.normal_style))
            cells.append(
                self._image_cell(payload.annotated_image_path, "Annotated image could not be loaded")
            )

        table = Table([headers, cells], colWidths=[87 * mm] * len(headers))
        table.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP")]))
        return [Paragraph("Image Analysis", self.heading_style), table, Spacer(1, 5 * mm)]

    def _annotations(self, payload: ReportPayload) -> list:
        summary = summarize_annotations(payload.annotation_data)
        if not summary:
            return []

        rows = [["Annotation", "Count"]] + [[kind.capitalize(), str(count)] for kind, count in summary]
        table = Table(rows, colWidths=[60 * mm, 25 * mm])
        table.setStyle(
            TableStyle(
                [
                    ("BACKGROUND", (0, 0), (-1, 0), colors.grey),
                    ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
                    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                    ("FONTNAME", (0, 1), (-1, -1), "Helvetica"),
                    ("FONTSIZE", (0, 0), (-1, -1), 9),
                    ("GRID", (0, 0), (-1, -1), 0.5, colors.black),
                    ("ALIGN", (1, 0), (1, -1), "RIGHT"),
                ]
            )
        )
        return [Paragraph("Annotations", self.heading_style), table, Spacer(1, 5 * mm)]

    def _findings(self, payload: ReportPayload) -> list:
        elements = []
        if payload.review_text:
            elements.append(Paragraph("Review Notes", self.heading_style))
            elements.append(Paragraph(_text(payload.review_text), self.normal_style))
            elements.append(Spacer(1, 3 * mm))

        elements.append(Paragraph("Clinical Findings", self.heading_style))
        elements.append(Paragraph(_text(payload.findings), self.normal_style))
        elements.append(Spacer(1, 3 * mm))
        elements.append(Paragraph("Recommendations", self.heading_style))
        elements.append(Paragraph(_text(payload.recommendations), self.normal_style))
        return elements

    def _footer(self, payload: ReportPayload) -> list:
        return [
            Spacer(1, 12 * mm),
            Paragraph("<b>Reviewed by:</b>", self.normal_style),
            Paragraph(_text(payload.doctor_name), self.normal_style),
            Paragraph("Digital Signature", self.normal_style),
            Spacer(1, 8 * mm),
            Paragraph(DISCLAIMER, self.small_style),
        ]
