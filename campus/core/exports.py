"""Excel exports with openpyxl"""
import io

import openpyxl
from django.http import HttpResponse
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

XLSX_CONTENT_TYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

_HEADER_FILL = PatternFill(start_color='1F4E78', end_color='1F4E78', fill_type='solid')
_HEADER_FONT = Font(bold=True, color='FFFFFF')
_THIN = Side(style='thin', color='D9D9D9')


def build_workbook(title, headers, rows):
    """One-sheet workbook with a styled header row and fitted columns"""
    rows = [list(row) for row in rows]
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = title[:31]
    ws.append(headers)
    for row in rows:
        ws.append(row)

    for cell in ws[1]:
        cell.fill = _HEADER_FILL
        cell.font = _HEADER_FONT
        cell.alignment = Alignment(horizontal='center', vertical='center')
    for row in ws.iter_rows(min_row=1, max_row=ws.max_row):
        for cell in row:
            cell.border = Border(top=_THIN, bottom=_THIN, left=_THIN, right=_THIN)

    for index, header in enumerate(headers, start=1):
        values = [str(header)] + [str(row[index - 1]) for row in rows if row[index - 1] is not None]
        width = min(max(len(value) for value in values) + 2, 60)
        ws.column_dimensions[get_column_letter(index)].width = width
    ws.freeze_panes = 'A2'
    return wb


def xlsx_response(wb, filename):
    """Serialize a workbook into a download response"""
    buffer = io.BytesIO()
    wb.save(buffer)
    response = HttpResponse(buffer.getvalue(), content_type=XLSX_CONTENT_TYPE)
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    return response
