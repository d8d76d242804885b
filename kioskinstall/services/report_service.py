"""
Installation report export.

Builds a 16:9 slide-style PDF with ReportLab: one title slide, then the
photos of each category in groups of three, each captioned with its
capture timestamp and coordinates.
"""
import logging
import os
from dataclasses import dataclass
from io import BytesIO
from typing import Callable, List, Optional, Tuple
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.lib.utils import ImageReader
from reportlab.platypus import Image, PageBreak, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from werkzeug.utils import secure_filename

from kioskinstall.domain.project import CapturedImage, ImageCategory, Project
from kioskinstall.domain.store import Store
from kioskinstall.utils.image_utils import decode_data_url
from kioskinstall.utils.timezone_utils import display_date_stamp, format_display_date, utc_now

logger = logging.getLogger(__name__)

SLIDE_SIZE = (10 * inch, 5.625 * inch)
SLIDE_MARGIN = 0.4 * inch
IMAGES_PER_SLIDE = 3
REPORT_TITLE = "Kiosk Installation Report"

SECTION_TITLES = {
    ImageCategory.BEFORE: "Before Installation",
    ImageCategory.AFTER: "After Execution",
    ImageCategory.RECEIVING: "Receiving / Handover Documents",
}

# Before/after slides are always numbered; receiving only when it spills over
ALWAYS_NUMBERED = {ImageCategory.BEFORE, ImageCategory.AFTER}


class ReportExportError(Exception):
    def __init__(self, message):
        super().__init__(message)
        self.message = message


@dataclass(frozen=True)
class ReportSection:
    category: ImageCategory
    title: str
    images: Tuple[CapturedImage, ...]


@dataclass(frozen=True)
class ReportResult:
    filename: str
    path: str
    section_count: int


def report_filename(store: Store, export_date: str) -> str:
    return secure_filename(f"Kiosk_Report_{store.store_number}_{export_date}.pdf")


def plan_sections(project: Project) -> List[ReportSection]:
    """Group each category's images into slides of three; empty categories are left out."""
    sections = []
    for category in ImageCategory:
        images = project.images.for_category(category)
        chunks = [images[i:i + IMAGES_PER_SLIDE] for i in range(0, len(images), IMAGES_PER_SLIDE)]
        for part, chunk in enumerate(chunks, start=1):
            title = SECTION_TITLES[category]
            if category in ALWAYS_NUMBERED or len(chunks) > 1:
                title = f"{title} (Part {part})"
            sections.append(ReportSection(category=category, title=title, images=tuple(chunk)))
    return sections


class ReportExporter:

    def __init__(self, output_dir: str, clock: Callable = utc_now, tz_name: Optional[str] = None):
        self.output_dir = output_dir
        self.clock = clock
        self.tz_name = tz_name
        styles = getSampleStyleSheet()
        self.title_style = ParagraphStyle(
            'SlideTitle',
            parent=styles['Heading1'],
            fontSize=28,
            leading=34,
            alignment=TA_CENTER,
            textColor=colors.HexColor('#1E3A8A'),
            fontName='Helvetica-Bold',
        )
        self.heading_style = ParagraphStyle(
            'SlideHeading',
            parent=styles['Heading2'],
            fontSize=20,
            leading=24,
            spaceAfter=10,
            fontName='Helvetica-Bold',
        )
        self.body_style = ParagraphStyle(
            'SlideBody',
            parent=styles['Normal'],
            fontSize=14,
            leading=20,
            alignment=TA_CENTER,
            fontName='Helvetica',
        )
        self.caption_style = ParagraphStyle(
            'Caption',
            parent=styles['Normal'],
            fontSize=9,
            leading=11,
            alignment=TA_CENTER,
            textColor=colors.HexColor('#4B5563'),
            fontName='Helvetica',
        )

    def export(self, project: Project, store: Store) -> ReportResult:
        """
        Write the report for a project and return where it landed.

        Raises:
            ReportExportError: the document could not be rendered or written
        """
        filename = report_filename(store, display_date_stamp(self.clock(), self.tz_name))
        sections = plan_sections(project)
        try:
            os.makedirs(self.output_dir, exist_ok=True)
            path = os.path.join(self.output_dir, filename)
            doc = SimpleDocTemplate(
                path,
                pagesize=SLIDE_SIZE,
                leftMargin=SLIDE_MARGIN,
                rightMargin=SLIDE_MARGIN,
                topMargin=SLIDE_MARGIN,
                bottomMargin=SLIDE_MARGIN,
                title=f"{REPORT_TITLE} - {store.store_name}",
            )
            story = self._title_slide(project, store)
            for section in sections:
                story.append(PageBreak())
                story.extend(self._section_slide(section, doc.width, doc.height))
            doc.build(story)
        except Exception as e:
            logger.error(f"Report export failed for project {project.id}: {e}", exc_info=True)
            raise ReportExportError(f"Report generation failed: {e}") from e

        logger.info(f"Report written: {path} ({len(sections)} image slides)")
        return ReportResult(filename=filename, path=path, section_count=len(sections))

    def _title_slide(self, project: Project, store: Store) -> list:
        lines = [
            f"Store Name: {store.store_name}",
            f"Store #: {store.store_number}",
            f"Address: {store.address}",
            f"Date: {format_display_date(project.started_at, self.tz_name)}",
        ]
        story = [Spacer(1, 0.9 * inch), Paragraph(REPORT_TITLE, self.title_style), Spacer(1, 0.3 * inch)]
        story.extend(Paragraph(escape(line), self.body_style) for line in lines)
        return story

    def _section_slide(self, section: ReportSection, frame_width: float, frame_height: float) -> list:
        column_width = frame_width / IMAGES_PER_SLIDE
        image_box = (column_width - 0.2 * inch, frame_height - 1.4 * inch)
        cells = []
        for image in section.images:
            caption = f"{escape(image.timestamp)}<br/>{escape(image.location.as_caption_text())}"
            cells.append([self._image_flowable(image, *image_box), Paragraph(caption, self.caption_style)])
        while len(cells) < IMAGES_PER_SLIDE:
            cells.append('')

        grid = Table([cells], colWidths=[column_width] * IMAGES_PER_SLIDE)
        grid.setStyle(TableStyle([
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
            ('ALIGN', (0, 0), (-1, -1), 'CENTER'),
            ('LEFTPADDING', (0, 0), (-1, -1), 4),
            ('RIGHTPADDING', (0, 0), (-1, -1), 4),
        ]))
        return [Paragraph(escape(section.title), self.heading_style), grid]

    @staticmethod
    def _image_flowable(image: CapturedImage, max_width: float, max_height: float) -> Image:
        raw = decode_data_url(image.data_url)
        width, height = ImageReader(BytesIO(raw)).getSize()
        scale = min(max_width / width, max_height / height)
        return Image(BytesIO(raw), width=width * scale, height=height * scale)
