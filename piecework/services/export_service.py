from __future__ import annotations

import csv
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from io import BytesIO, StringIO

from PIL import Image, ImageDraw, ImageFont
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from piecework.services.report_service import ProductionOrderReport, WorkerReport
from piecework.services.salary_math_service import (
    AdjustmentLine,
    WorkerSummary,
    adjustment_breakdown,
    format_money,
)

logger = logging.getLogger(__name__)

IMAGE_FORMATS = {'png': 'PNG', 'jpg': 'JPEG', 'jpeg': 'JPEG'}
MEDIA_TYPES = {
    'csv': 'text/csv',
    'pdf': 'application/pdf',
    'png': 'image/png',
    'jpg': 'image/jpeg',
    'jpeg': 'image/jpeg',
}

PDF_MARGIN = 40
PDF_ROW_HEIGHT = 16
IMAGE_PADDING = 24
IMAGE_CELL_PADDING = 12


class ExportError(RuntimeError):
    pass


@dataclass
class TableDocument:
    title: str
    header: list[str]
    rows: list[list[str]] = field(default_factory=list)
    subtitle: str = ''
    footer: list[str] = field(default_factory=list)


def export_filename(identifier: str, extension: str, now: datetime) -> str:
    slug = re.sub(r'[^A-Za-z0-9]+', '-', identifier).strip('-') or 'export'
    return f"{slug}-{now.strftime('%Y%m%d-%H%M%S')}.{extension}"


def worker_summary_document(report: WorkerReport) -> TableDocument:
    week = report.selected_week
    doc = TableDocument(
        title='Worker Salary Summary',
        subtitle=f'{week.label}: {week.describe()}',
        header=['Worker', 'Works', 'Salary', 'Advance', 'ESI/BF', 'Carry-over', 'Extra', 'Payable'],
    )
    for summary in report.summaries:
        doc.rows.append(
            [
                summary.worker_name,
                str(summary.work_count),
                format_money(summary.total_salary),
                format_money(summary.advance),
                format_money(summary.benefit_fund_deduction),
                format_money(summary.carry_over_balance),
                format_money(summary.extra_amount),
                format_money(summary.final_payable),
            ]
        )
    totals = report.totals
    doc.footer = [
        f'Workers: {totals.worker_count}    Works: {totals.work_count}',
        f'Total salary: {format_money(totals.total_salary)}    Total advance: {format_money(totals.total_advance)}',
        f'Total payout: {format_money(totals.total_payout)}',
    ]
    return doc


def adjustment_text(line: AdjustmentLine) -> str:
    if line.sign == '-':
        return f'- {format_money(line.amount)}'
    sign = '-' if line.amount < 0 else '+'
    return f'{sign} {format_money(abs(line.amount))}'


def worker_detail_document(summary: WorkerSummary, week_label: str) -> TableDocument:
    doc = TableDocument(
        title=summary.worker_name,
        subtitle=week_label + (f'    Phone: {summary.phone_number}' if summary.phone_number else ''),
        header=['IO No', 'Work Type', 'Pieces', 'Rate', 'Total'],
    )
    for record in summary.entries:
        doc.rows.append(
            [
                record.production_order_id,
                record.work_type,
                str(record.piece_count),
                format_money(record.rate_per_piece),
                format_money(record.line_total),
            ]
        )
    doc.footer.append(f'Total salary: {format_money(summary.total_salary)}')
    for line in adjustment_breakdown(summary):
        doc.footer.append(f'{line.label}: {adjustment_text(line)}')
    doc.footer.append(f'Final payable: {format_money(summary.final_payable)}')
    return doc


def production_order_document(report: ProductionOrderReport) -> TableDocument:
    subtitle = 'All weeks' if report.week is None else f'{report.week.label}: {report.week.describe()}'
    if report.query:
        subtitle += f'    Search: {report.query}'
    doc = TableDocument(title='IO Report', subtitle=subtitle, header=['IO No', 'Worker', 'Work Type', 'Pieces'])
    for order in report.orders:
        for contribution in order.contributions:
            doc.rows.append(
                [order.production_order_id, contribution.worker_name, contribution.work_type, str(contribution.piece_count)]
            )
        doc.rows.append([order.production_order_id, 'Total', '', str(order.total_quantity)])
    doc.footer = [
        f'IOs: {report.totals.order_count}    Entries: {report.totals.contribution_count}',
        f'Total quantity: {report.totals.total_quantity}',
    ]
    return doc


def render_csv(doc: TableDocument) -> str:
    sio = StringIO()
    writer = csv.writer(sio)
    writer.writerow(doc.header)
    writer.writerows(doc.rows)
    return sio.getvalue()


def _pdf_columns(doc: TableDocument, width: float) -> list[float]:
    weights = [len(text) for text in doc.header]
    for row in doc.rows:
        weights = [max(weight, len(text)) for weight, text in zip(weights, row)]
    total = sum(weights) or 1
    offsets: list[float] = []
    cursor = float(PDF_MARGIN)
    for weight in weights:
        offsets.append(cursor)
        cursor += width * weight / total
    return offsets


def render_pdf(doc: TableDocument) -> bytes:
    try:
        buffer = BytesIO()
        page_width, page_height = A4
        pdf = canvas.Canvas(buffer, pagesize=A4)
        pdf.setTitle(doc.title)
        offsets = _pdf_columns(doc, page_width - 2 * PDF_MARGIN)

        def start_page() -> float:
            y = page_height - PDF_MARGIN
            pdf.setFont('Helvetica-Bold', 14)
            pdf.drawString(PDF_MARGIN, y, doc.title)
            y -= PDF_ROW_HEIGHT
            if doc.subtitle:
                pdf.setFont('Helvetica', 9)
                pdf.drawString(PDF_MARGIN, y, doc.subtitle)
                y -= PDF_ROW_HEIGHT
            pdf.setFont('Helvetica-Bold', 9)
            for offset, text in zip(offsets, doc.header):
                pdf.drawString(offset, y, text)
            pdf.line(PDF_MARGIN, y - 4, page_width - PDF_MARGIN, y - 4)
            pdf.setFont('Helvetica', 9)
            return y - PDF_ROW_HEIGHT

        y = start_page()
        for row in doc.rows:
            if y < PDF_MARGIN + PDF_ROW_HEIGHT:
                pdf.showPage()
                y = start_page()
            for offset, text in zip(offsets, row):
                pdf.drawString(offset, y, text)
            y -= PDF_ROW_HEIGHT

        pdf.setFont('Helvetica-Bold', 10)
        for line in doc.footer:
            if y < PDF_MARGIN:
                pdf.showPage()
                pdf.setFont('Helvetica-Bold', 10)
                y = page_height - PDF_MARGIN
            y -= 4
            pdf.drawString(PDF_MARGIN, y, line)
            y -= PDF_ROW_HEIGHT
        pdf.save()
        return buffer.getvalue()
    except Exception as exc:
        logger.exception('PDF export failed for %s', doc.title)
        raise ExportError('Failed to generate PDF') from exc


def render_image(doc: TableDocument, extension: str = 'png') -> bytes:
    image_format = IMAGE_FORMATS.get(extension.lower())
    if image_format is None:
        raise ExportError(f'Unsupported image format: {extension}')
    try:
        font = ImageFont.load_default()
        measure = ImageDraw.Draw(Image.new('RGB', (1, 1)))
        left, top, right, bottom = font.getbbox('Ag')
        line_height = (bottom - top) + 10

        table = [doc.header, *doc.rows]
        widths = [
            int(max(measure.textlength(row[i], font=font) for row in table)) + IMAGE_CELL_PADDING
            for i in range(len(doc.header))
        ]
        text_lines = [doc.title, doc.subtitle, *doc.footer]
        width = max(sum(widths), *(int(measure.textlength(line, font=font)) for line in text_lines)) + 2 * IMAGE_PADDING
        height = (len(table) + len(doc.footer) + 3) * line_height + 2 * IMAGE_PADDING

        image = Image.new('RGB', (width, height), 'white')
        draw = ImageDraw.Draw(image)
        y = IMAGE_PADDING
        draw.text((IMAGE_PADDING, y), doc.title, fill='black', font=font)
        y += line_height
        if doc.subtitle:
            draw.text((IMAGE_PADDING, y), doc.subtitle, fill='#555555', font=font)
        y += line_height
        for index, row in enumerate(table):
            x = IMAGE_PADDING
            fill = '#1a1a1a' if index else '#0b5394'
            for cell_width, text in zip(widths, row):
                draw.text((x, y), text, fill=fill, font=font)
                x += cell_width
            y += line_height
            draw.line((IMAGE_PADDING, y - 4, width - IMAGE_PADDING, y - 4), fill='#d1d5db')
        y += line_height
        for line in doc.footer:
            draw.text((IMAGE_PADDING, y), line, fill='#16a34a', font=font)
            y += line_height

        buffer = BytesIO()
        if image_format == 'JPEG':
            image.save(buffer, format=image_format, quality=95)
        else:
            image.save(buffer, format=image_format)
        return buffer.getvalue()
    except Exception as exc:
        logger.exception('Image export failed for %s', doc.title)
        raise ExportError('Failed to generate image') from exc


def render(doc: TableDocument, extension: str) -> bytes:
    extension = extension.lower()
    if extension == 'csv':
        return render_csv(doc).encode('utf-8')
    if extension == 'pdf':
        return render_pdf(doc)
    return render_image(doc, extension)
