"""Spreadsheet exports of the person/invoice collection.

Two layouts are produced from successfully parsed invoices only:

- detail: one row per invoice with person, category label, amount, date
  and description
- summary: the travel reimbursement template, one row per invoice with the
  amount placed in its category column, a subtotal row and the trip
  metadata underneath

Row builders return plain lists so layouts can be checked without a
workbook; ``write_workbook`` turns rows into ``.xlsx`` bytes with openpyxl.
"""

import io
import logging
from collections.abc import Iterable, Iterator, Sequence
from decimal import Decimal
from typing import Any

from openpyxl import Workbook
from openpyxl.utils import get_column_letter
from pydantic import BaseModel

from invoice_organizer.extraction.schema import INVOICE_TYPE_LABELS, InvoiceType
from invoice_organizer.state.models import InvoiceRecord, InvoiceStatus, PersonRecord, TripInfo

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

DETAIL_HEADER = ["姓名", "工号/学号", "发票类型", "金额", "日期", "描述"]
DETAIL_SHEET = "发票汇总"
DETAIL_WIDTHS = [10, 15, 15, 12, 12, 30]

SUMMARY_HEADER = ["姓名", "学号", "城市间交通费", "住宿费", "市内交通费", "报名费"]
SUMMARY_SHEET = "Sheet1"
SUMMARY_WIDTHS = [12, 15, 14, 12, 14, 12, 5, 12, 12]

# Column order of the summary template (differs from the enum order)
SUMMARY_TYPE_ORDER = [
    InvoiceType.INTERCITY_TRANSPORT,
    InvoiceType.ACCOMMODATION,
    InvoiceType.INTRACITY_TRANSPORT,
    InvoiceType.REGISTRATION_FEE,
]
SUMMARY_FIRST_AMOUNT_COLUMN = 2
# Header plus at least five data rows before the subtotal
SUMMARY_MIN_ROWS = 6

Row = list[Any]


class ExportStats(BaseModel):
    """Counters shown next to the person list."""

    person_count: int
    invoice_count: int
    success_count: int
    total_amount: Decimal


def exportable_invoices(
    invoices: Iterable[InvoiceRecord],
) -> Iterator[tuple[InvoiceRecord, InvoiceType]]:
    """Yield successfully parsed invoices with a known category, paired with it."""
    for invoice in invoices:
        if invoice.status == InvoiceStatus.SUCCESS and invoice.type is not None:
            yield invoice, invoice.type


def has_exportable_invoices(persons: Iterable[PersonRecord]) -> bool:
    return any(True for p in persons for _ in exportable_invoices(p.invoices))


def build_detail_rows(persons: Sequence[PersonRecord]) -> list[Row]:
    """Build the detail layout: header plus one row per exportable invoice.

    Args:
        persons: Persons with their invoices

    Returns:
        Rows including the header row
    """
    rows: list[Row] = [list(DETAIL_HEADER)]
    for person in persons:
        for invoice, invoice_type in exportable_invoices(person.invoices):
            rows.append(
                [
                    person.name,
                    person.employee_id,
                    INVOICE_TYPE_LABELS[invoice_type],
                    invoice.amount or 0,
                    invoice.date or "",
                    invoice.description or "",
                ]
            )
    return rows


def build_summary_rows(persons: Sequence[PersonRecord], trip: TripInfo) -> list[Row]:
    """Build the travel reimbursement summary layout.

    Persons sharing name and employee id are merged. Each invoice with a
    non-zero amount gets its own row, ordered by the template's category
    columns; only a person's first row carries name and id.

    Args:
        persons: Persons with their invoices
        trip: Trip metadata echoed below the table

    Returns:
        Rows including header, subtotal and metadata lines
    """
    grouped: dict[tuple[str, str], dict[InvoiceType, list[Decimal]]] = {}
    for person in persons:
        amounts = grouped.setdefault(
            (person.name, person.employee_id), {t: [] for t in SUMMARY_TYPE_ORDER}
        )
        for invoice, invoice_type in exportable_invoices(person.invoices):
            if invoice.amount:
                amounts[invoice_type].append(invoice.amount)

    subtotals = {t: Decimal(0) for t in SUMMARY_TYPE_ORDER}
    for amounts in grouped.values():
        for invoice_type, values in amounts.items():
            subtotals[invoice_type] += sum(values, Decimal(0))
    grand_total = sum(subtotals.values(), Decimal(0))

    rows: list[Row] = [list(SUMMARY_HEADER)]
    for (name, employee_id), amounts in grouped.items():
        first = True
        for offset, invoice_type in enumerate(SUMMARY_TYPE_ORDER):
            for amount in amounts[invoice_type]:
                row: Row = [name if first else None, employee_id if first else None]
                row += [None] * len(SUMMARY_TYPE_ORDER)
                row[SUMMARY_FIRST_AMOUNT_COLUMN + offset] = amount
                rows.append(row)
                first = False
        if first:
            # Person without any exportable invoice still shows up
            rows.append([name, employee_id, None, None, None, None])

    while len(rows) < SUMMARY_MIN_ROWS:
        rows.append([])

    rows.append(
        ["小计", None]
        + [subtotals[t] or None for t in SUMMARY_TYPE_ORDER]
        + [None, "报销总额", grand_total]
    )
    rows.append([])
    rows.append([f"竞赛名称：{trip.competition_name}"])
    rows.append([f"时间：{trip.time}"])
    rows.append([f"地点：{trip.location}"])
    rows.append([f"队伍名称：{trip.team_name}"])
    rows.append([f"备注（问题反馈等）{'：' + trip.remarks if trip.remarks else ''}"])
    return rows


def write_workbook(rows: Iterable[Row], sheet_name: str, widths: Sequence[int]) -> bytes:
    """Write rows into a single-sheet workbook.

    Args:
        rows: Cell values row by row (empty lists become blank rows)
        sheet_name: Worksheet title
        widths: Column widths in characters, from column A

    Returns:
        ``.xlsx`` file content
    """
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_name
    for row in rows:
        sheet.append(row)
    for index, width in enumerate(widths, start=1):
        sheet.column_dimensions[get_column_letter(index)].width = width

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def export_detail(persons: Sequence[PersonRecord]) -> bytes:
    """Render the detail export as ``.xlsx`` bytes."""
    rows = build_detail_rows(persons)
    logger.info(f"Exporting detail sheet with {len(rows) - 1} invoice row(s)")
    return write_workbook(rows, DETAIL_SHEET, DETAIL_WIDTHS)


def export_summary(persons: Sequence[PersonRecord], trip: TripInfo) -> bytes:
    """Render the summary export as ``.xlsx`` bytes."""
    rows = build_summary_rows(persons, trip)
    logger.info(f"Exporting summary sheet for {len(persons)} person(s)")
    return write_workbook(rows, SUMMARY_SHEET, SUMMARY_WIDTHS)


def collect_stats(persons: Sequence[PersonRecord]) -> ExportStats:
    """Count persons and invoices and total the successful amounts."""
    invoices = [inv for p in persons for inv in p.invoices]
    succeeded = [inv for inv in invoices if inv.status == InvoiceStatus.SUCCESS]
    return ExportStats(
        person_count=len(persons),
        invoice_count=len(invoices),
        success_count=len(succeeded),
        total_amount=sum((inv.amount or Decimal(0) for inv in succeeded), Decimal(0)),
    )
