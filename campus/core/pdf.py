"""
PDF rendering of commercial documents with reportlab
"""
import io

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import cm
from reportlab.pdfgen import canvas

PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN = 2 * cm


class NumberedCanvas(canvas.Canvas):
    """Canvas that writes 'Page n / total' once the page count is known"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._saved_page_states = []

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        num_pages = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            self._draw_page_number(num_pages)
            canvas.Canvas.showPage(self)
        canvas.Canvas.save(self)

    def _draw_page_number(self, page_count):
        self.setFont('Helvetica', 8)
        self.setFillColorRGB(0.45, 0.45, 0.45)
        self.drawRightString(PAGE_WIDTH - MARGIN, 1.2 * cm, f"Page {self._pageNumber} / {page_count}")


def format_amount(value):
    """1234.5 -> '1 234,50 €'"""
    formatted = f"{float(value or 0):,.2f}".replace(',', ' ').replace('.', ',')
    return f"{formatted} €"


def _truncate(c, text, font, size, max_width):
    text = str(text or '')
    if c.stringWidth(text, font, size) <= max_width:
        return text
    while text and c.stringWidth(text + '…', font, size) > max_width:
        text = text[:-1]
    return text + '…'


def render_document_pdf(title, number, organization_lines, recipient_lines, meta_rows,
                        columns, rows, totals, notes=None):
    """
    Render a one-table document (quote, invoice, expense) and return PDF bytes.

    Args:
        title: document title, e.g. "DEVIS"
        number: document number shown under the title
        organization_lines: issuer block lines (top left)
        recipient_lines: recipient block lines (top right)
        meta_rows: (label, value) pairs such as issue date and due date
        columns: (header, width_in_cm, align) tuples, align is 'left' or 'right'
        rows: table rows, one value per column
        totals: (label, value) pairs printed under the table
        notes: optional free text lines printed at the bottom
    """
    buffer = io.BytesIO()
    c = NumberedCanvas(buffer, pagesize=A4)
    c.setTitle(f"{title} {number}")

    y = PAGE_HEIGHT - MARGIN
    c.setFont('Helvetica-Bold', 11)
    for index, line in enumerate(line for line in organization_lines if line):
        if index == 1:
            c.setFont('Helvetica', 9)
        c.drawString(MARGIN, y, str(line))
        y -= 12

    right_y = PAGE_HEIGHT - MARGIN
    c.setFont('Helvetica-Bold', 18)
    c.drawRightString(PAGE_WIDTH - MARGIN, right_y, title)
    right_y -= 18
    c.setFont('Helvetica', 10)
    c.drawRightString(PAGE_WIDTH - MARGIN, right_y, number)
    right_y -= 14
    for label, value in meta_rows:
        c.drawRightString(PAGE_WIDTH - MARGIN, right_y, f"{label} : {value}")
        right_y -= 12

    y = min(y, right_y) - 20
    box_x = PAGE_WIDTH / 2
    c.setFont('Helvetica-Bold', 10)
    for index, line in enumerate(line for line in recipient_lines if line):
        if index == 1:
            c.setFont('Helvetica', 9)
        c.drawString(box_x, y, str(line))
        y -= 12

    y -= 20
    column_x = [MARGIN]
    for _, width, _ in columns:
        column_x.append(column_x[-1] + width * cm)

    def draw_header(at_y):
        c.setFillColorRGB(0.12, 0.31, 0.47)
        c.rect(MARGIN, at_y - 4, column_x[-1] - MARGIN, 16, fill=1, stroke=0)
        c.setFillColorRGB(1, 1, 1)
        c.setFont('Helvetica-Bold', 9)
        for (header, width, align), x in zip(columns, column_x):
            if align == 'right':
                c.drawRightString(x + width * cm - 4, at_y, header)
            else:
                c.drawString(x + 4, at_y, header)
        c.setFillColorRGB(0, 0, 0)
        return at_y - 18

    y = draw_header(y)
    c.setFont('Helvetica', 9)
    for row in rows:
        if y < MARGIN + 3 * cm:
            c.showPage()
            y = draw_header(PAGE_HEIGHT - MARGIN)
            c.setFont('Helvetica', 9)
        for value, (_, width, align), x in zip(row, columns, column_x):
            text = _truncate(c, value, 'Helvetica', 9, width * cm - 8)
            if align == 'right':
                c.drawRightString(x + width * cm - 4, y, text)
            else:
                c.drawString(x + 4, y, text)
        y -= 14

    y -= 10
    for index, (label, value) in enumerate(totals):
        if y < MARGIN + 2 * cm:
            c.showPage()
            y = PAGE_HEIGHT - MARGIN
        bold = index == len(totals) - 1
        c.setFont('Helvetica-Bold' if bold else 'Helvetica', 10)
        c.drawRightString(column_x[-1] - 3.5 * cm, y, label)
        c.drawRightString(column_x[-1] - 4, y, str(value))
        y -= 14

    if notes:
        y -= 16
        c.setFont('Helvetica', 8)
        for line in notes:
            for chunk in str(line).splitlines():
                if y < MARGIN:
                    c.showPage()
                    y = PAGE_HEIGHT - MARGIN
                    c.setFont('Helvetica', 8)
                c.drawString(MARGIN, y, _truncate(c, chunk, 'Helvetica', 8, PAGE_WIDTH - 2 * MARGIN))
                y -= 10

    c.showPage()
    c.save()
    return buffer.getvalue()
