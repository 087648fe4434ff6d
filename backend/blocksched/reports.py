from __future__ import annotations

import csv
import io
from typing import Iterable

from openpyxl import Workbook
from openpyxl.styles import Font

from .identity import TBA
from .schemas import ASSIGNMENT_HEADERS, ScheduleEntry, TeachingAssignment
from .time_utils import WEEK_DAYS, format_clock, parse_clock


def build_assignment_rows(records: Iterable[TeachingAssignment]) -> list[list[str]]:
    rows = [ASSIGNMENT_HEADERS]
    for record in records:
        rows.append([
            record.academic_year,
            record.semester,
            record.block,
            record.subject_code,
            record.subject_description,
            record.instructor_name,
            record.instructor_email or "",
        ])
    return rows


def write_csv(rows: list[list[str]]) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerows(rows)
    return buffer.getvalue().encode("utf-8")


def write_xlsx(rows: list[list[str]], title: str = "Report") -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = title
    for row in rows:
        ws.append(row)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()


def build_timetable_grid(
    entries: Iterable[ScheduleEntry], start_hour: int = 7, end_hour: int = 21, interval: int = 30
) -> list[list[str]]:
    slots = list(range(start_hour * 60, end_hour * 60, interval))
    grid = {day: {slot: "" for slot in slots} for day in WEEK_DAYS}

    for entry in entries:
        start, end = parse_clock(entry.start_time), parse_clock(entry.end_time)
        instructor = entry.instructor_name or TBA
        description = f"{entry.subject_code} | {entry.block_name or ''} | {entry.room or TBA} | {instructor}"
        for slot in slots:
            if start <= slot < end:
                grid[entry.day][slot] = description

    rows = [["Time", *(day.value for day in WEEK_DAYS)]]
    for slot in slots:
        row = [format_clock(slot)]
        for day in WEEK_DAYS:
            row.append(grid[day][slot])
        rows.append(row)
    return rows
