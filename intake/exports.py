"""
intake/exports.py

Report exports:
- detailed CSV (one row per report item)
- per-product summary CSV with a TOTAL row
- PDF weigh ticket for a single report (reportlab)

CSV files start with a UTF-8 BOM so spreadsheet software picks the encoding.
"""

from __future__ import annotations

import csv
import io
import logging
from decimal import Decimal
from io import BytesIO
from typing import Iterable

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .models import Report
from .pricing.calculator import surcharge_for
from .pricing.lifecycle import ReportState
from .pricing.units import round_money, round_weight, to_decimal, unit_label

logger = logging.getLogger(__name__)

BOM = "\ufeff"

DETAILED_HEADERS = [
    "Fecha",
    "No. Ticket",
    "Estado",
    "Proveedor",
    "Producto",
    "Placa",
    "Piloto",
    "Peso",
    "Unidad",
    "Peso (Quintales)",
    "Precio/Quintal",
    "Precio Base",
    "% Adicional",
    "Precio Adicional",
    "Precio Total",
]

SUMMARY_HEADERS = ["Producto", "Peso Total (Quintales)", "Monto Total"]

STATE_LABELS = {
    ReportState.PENDING.value: "Pendiente",
    ReportState.APPROVED.value: "Aprobado",
    ReportState.CANCELLED.value: "Cancelado",
}


def _money(value) -> str:
    return f"{round_money(value):.2f}"


def _weight(value) -> str:
    return f"{round_weight(value):.4f}"


def _to_csv(rows: Iterable[list]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerows(rows)
    return BOM + buffer.getvalue()


# ---------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------
def detailed_rows(reports: Iterable[Report]) -> list[list]:
    """
    One row per item. The surcharge of each line uses the percentage frozen on
    the report (0 while the report is still PENDING).
    """
    rows = []
    for report in reports:
        pct = to_decimal(report.extra_percentage)
        for line in report.items:
            surcharge = surcharge_for(line.base_price, pct)
            rows.append([
                report.report_date.isoformat() if report.report_date else "",
                report.ticket_number or "",
                STATE_LABELS.get(report.state, report.state),
                report.supplier.name if report.supplier else "-",
                line.product.name if line.product else "-",
                report.plate_number,
                report.driver_name,
                _weight(line.weight),
                unit_label(line.weight_unit),
                _weight(line.weight_in_quintals),
                _money(line.price_per_quintal),
                _money(line.base_price),
                f"{round_money(pct):.2f}%",
                _money(surcharge),
                _money(to_decimal(line.base_price) + surcharge),
            ])
    return rows


def detailed_csv(reports: Iterable[Report]) -> str:
    reports = list(reports)
    logger.info("Exporting %d reports to detailed CSV", len(reports))
    return _to_csv([DETAILED_HEADERS, *detailed_rows(reports)])


def summary_rows(reports: Iterable[Report]) -> list[list]:
    """Per-product weight and amount over APPROVED reports, plus a TOTAL row."""
    totals: dict[str, list[Decimal]] = {}
    for report in reports:
        if report.state != ReportState.APPROVED.value:
            continue
        pct = to_decimal(report.extra_percentage)
        for line in report.items:
            name = line.product.name if line.product else "Otros"
            bucket = totals.setdefault(name, [Decimal("0"), Decimal("0")])
            bucket[0] += to_decimal(line.weight_in_quintals)
            bucket[1] += to_decimal(line.base_price) + surcharge_for(line.base_price, pct)

    rows = [[name, _weight(weight), _money(amount)] for name, (weight, amount) in sorted(totals.items())]
    total_weight = sum((w for w, _ in totals.values()), Decimal("0"))
    total_amount = sum((a for _, a in totals.values()), Decimal("0"))
    rows.append(["TOTAL", _weight(total_weight), _money(total_amount)])
    return rows


def summary_csv(reports: Iterable[Report]) -> str:
    return _to_csv([SUMMARY_HEADERS, *summary_rows(reports)])


# ---------------------------------------------------------------------
# PDF ticket
# ---------------------------------------------------------------------
_LABEL_GRID = TableStyle([
    ('BACKGROUND', (0, 0), (0, -1), colors.lightgrey),
    ('BACKGROUND', (2, 0), (2, -1), colors.lightgrey),
    ('FONTNAME', (0, 0), (-1, -1), 'Helvetica'),
    ('FONTSIZE', (0, 0), (-1, -1), 9),
    ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
    ('PADDING', (0, 0), (-1, -1), 6),
])

_HEADER_GRID = TableStyle([
    ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#009421')),
    ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
    ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
    ('FONTNAME', (0, 1), (-1, -1), 'Helvetica'),
    ('FONTSIZE', (0, 0), (-1, -1), 9),
    ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
    ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
    ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
    ('PADDING', (0, 0), (-1, -1), 6),
])


def report_ticket_pdf(report: Report, app_name: str = "Recycling Intake") -> BytesIO:
    """Generate the weigh ticket PDF of a report."""
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, topMargin=1 * cm, bottomMargin=1 * cm, leftMargin=1 * cm, rightMargin=1 * cm)
    styles = getSampleStyleSheet()
    elements = []

    title_style = ParagraphStyle('TicketTitle', parent=styles['Title'], fontSize=16, alignment=TA_CENTER)
    elements.append(Paragraph(app_name, styles['Normal']))
    elements.append(Paragraph(f"TICKET DE INGRESO {report.ticket_number or ''}", title_style))
    elements.append(Spacer(1, 10))

    header_data = [
        ["Fecha:", report.report_date.isoformat() if report.report_date else "", "Estado:", STATE_LABELS.get(report.state, report.state)],
        ["Proveedor:", report.supplier.name if report.supplier else "-", "Placa:", report.plate_number],
        ["Piloto:", report.driver_name, "Operador:", report.user.full_name() if report.user else "-"],
    ]
    header_table = Table(header_data, colWidths=[3 * cm, 6 * cm, 3 * cm, 6 * cm])
    header_table.setStyle(_LABEL_GRID)
    elements.append(header_table)
    elements.append(Spacer(1, 15))

    weight_data = [
        ["Descripción", "Peso (qq)"],
        ["Peso Bruto", _weight(report.gross_weight)],
        ["Peso Tara", _weight(report.tare_weight)],
        ["Peso Neto", _weight(report.net_weight)],
    ]
    weight_table = Table(weight_data, colWidths=[12 * cm, 6 * cm])
    weight_table.setStyle(_HEADER_GRID)
    elements.append(weight_table)
    elements.append(Spacer(1, 15))

    item_data = [["Producto", "Peso", "Unidad", "Quintales", "Precio/qq", "Precio Base"]]
    for line in report.items:
        item_data.append([
            line.product.name if line.product else "-",
            _weight(line.weight),
            unit_label(line.weight_unit),
            _weight(line.weight_in_quintals),
            _money(line.price_per_quintal),
            _money(line.base_price),
        ])
    item_table = Table(item_data, colWidths=[5 * cm, 2.5 * cm, 2.5 * cm, 2.5 * cm, 2.5 * cm, 3 * cm])
    item_table.setStyle(_HEADER_GRID)
    elements.append(item_table)
    elements.append(Spacer(1, 15))

    surcharge = to_decimal(report.total_price) - to_decimal(report.base_price)
    totals_data = [
        ["Precio Base", _money(report.base_price)],
        [f"Adicional ({round_money(report.extra_percentage):.2f}%)", _money(surcharge)],
        ["PRECIO TOTAL", _money(report.total_price)],
    ]
    totals_table = Table(totals_data, colWidths=[12 * cm, 6 * cm])
    totals_table.setStyle(TableStyle([
        ('FONTNAME', (0, 0), (-1, -2), 'Helvetica'),
        ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ('ALIGN', (1, 0), (1, -1), 'RIGHT'),
        ('PADDING', (0, 0), (-1, -1), 6),
    ]))
    elements.append(totals_table)

    footer_style = ParagraphStyle('Footer', parent=styles['Normal'], fontSize=8, alignment=TA_CENTER)
    elements.append(Spacer(1, 10))
    elements.append(Paragraph("Documento generado por el sistema.", footer_style))

    doc.build(elements)
    buffer.seek(0)
    logger.info("Generated PDF ticket for report %s", report.ticket_number)
    return buffer
