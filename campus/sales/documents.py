"""
Rendering and delivery of quotes and invoices: PDF, e-mail and Excel
"""
import logging

from django.conf import settings
from django.core.mail import EmailMessage

from campus.core.exports import build_workbook
from campus.core.pdf import format_amount, render_document_pdf

logger = logging.getLogger('campus.sales')

LINE_COLUMNS = [
    ('Désignation', 7.0, 'left'),
    ('Qté', 1.5, 'right'),
    ('PU HT', 2.5, 'right'),
    ('TVA', 1.5, 'right'),
    ('Total HT', 2.5, 'right'),
    ('Total TTC', 2.0, 'right'),
]


def organization_info(organization):
    """Issuer details printed on documents and returned with invoice details"""
    return {
        'name': organization.name,
        'address': organization.address,
        'postal_code': organization.postal_code,
        'city': organization.city,
        'country': organization.country,
        'email': organization.email,
        'phone': organization.phone,
        'siret': organization.siret,
        'tva_number': organization.tva_number,
        'iban': organization.iban,
        'logo': organization.logo.url if organization.logo else None,
    }


def _organization_lines(organization):
    return [
        organization.name,
        organization.address,
        f"{organization.postal_code} {organization.city}".strip(),
        organization.email,
        organization.phone,
        f"SIRET : {organization.siret}" if organization.siret else None,
        f"TVA : {organization.tva_number}" if organization.tva_number else None,
    ]


def _client_lines(client):
    return [
        client.display_name,
        client.address,
        f"{client.postal_code} {client.city}".strip(),
        client.email,
        f"SIRET : {client.siret}" if client.siret else None,
        f"TVA : {client.tva_number}" if client.tva_number else None,
    ]


def _line_rows(document):
    return [
        [
            line.designation,
            line.quantity,
            format_amount(line.price_ht),
            f"{line.tva_rate:g} %",
            format_amount(line.total_ht),
            format_amount(line.total_ttc),
        ]
        for line in document.items.all()
    ]


def _totals(document):
    return [
        ('Total HT', format_amount(document.total_ht)),
        ('TVA', format_amount(document.total_tva)),
        ('Total TTC', format_amount(document.total_ttc)),
    ]


def render_quote_pdf(quote):
    meta = [('Date', quote.issue_date.strftime('%d/%m/%Y'))]
    if quote.valid_until:
        meta.append(('Valable jusqu\'au', quote.valid_until.strftime('%d/%m/%Y')))
    notes = [text for text in (quote.title, quote.payment_conditions, quote.notes, quote.terms) if text]
    return render_document_pdf(
        'DEVIS', quote.quote_number,
        _organization_lines(quote.organization), _client_lines(quote.client),
        meta, LINE_COLUMNS, _line_rows(quote), _totals(quote), notes=notes,
    )


def render_invoice_pdf(invoice):
    meta = [('Date', invoice.issue_date.strftime('%d/%m/%Y'))]
    if invoice.due_date:
        meta.append(('Échéance', invoice.due_date.strftime('%d/%m/%Y')))
    if invoice.quote_id:
        meta.append(('Devis', invoice.quote.quote_number))
    totals = _totals(invoice)
    if invoice.amount_paid:
        totals = totals[:2] + [
            ('Déjà réglé', format_amount(invoice.amount_paid)),
            ('Total TTC', format_amount(invoice.total_ttc)),
            ('Reste à payer', format_amount(invoice.amount_due)),
        ]
    notes = [text for text in (invoice.title, invoice.payment_conditions, invoice.notes, invoice.terms) if text]
    if invoice.organization.iban:
        notes.append(f"IBAN : {invoice.organization.iban}")
    return render_document_pdf(
        'FACTURE', invoice.invoice_number,
        _organization_lines(invoice.organization), _client_lines(invoice.client),
        meta, LINE_COLUMNS, _line_rows(invoice), totals, notes=notes,
    )


def send_document_email(to, subject, message, pdf_bytes, filename, cc=None, bcc=None, reply_to=None):
    """Send a document as a PDF attachment; SMTP errors propagate to the caller"""
    email = EmailMessage(
        subject=subject,
        body=message,
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=to,
        cc=cc or [],
        bcc=bcc or [],
        reply_to=[reply_to] if reply_to else None,
    )
    email.attach(filename, pdf_bytes, 'application/pdf')
    email.send(fail_silently=False)
    logger.info(f"Sent {filename} to {', '.join(to)}")


QUOTE_EXPORT_HEADERS = [
    'Numéro', 'Date', 'Valable jusqu\'au', 'Client', 'Statut', 'Objet',
    'Total HT', 'TVA', 'Total TTC', 'Accepté le',
]
INVOICE_EXPORT_HEADERS = [
    'Numéro', 'Date', 'Échéance', 'Client', 'Statut', 'Devis',
    'Total HT', 'TVA', 'Total TTC', 'Payé', 'Reste dû',
]


def quotes_workbook(quotes):
    rows = [
        [
            quote.quote_number,
            quote.issue_date,
            quote.valid_until,
            quote.client.display_name,
            quote.get_status_display(),
            quote.title,
            float(quote.total_ht),
            float(quote.total_tva),
            float(quote.total_ttc),
            quote.accepted_date.strftime('%d/%m/%Y') if quote.accepted_date else '',
        ]
        for quote in quotes
    ]
    return build_workbook('Devis', QUOTE_EXPORT_HEADERS, rows)


def invoices_workbook(invoices):
    rows = [
        [
            invoice.invoice_number,
            invoice.issue_date,
            invoice.due_date,
            invoice.client.display_name,
            invoice.get_status_display(),
            invoice.quote.quote_number if invoice.quote_id else '',
            float(invoice.total_ht),
            float(invoice.total_tva),
            float(invoice.total_ttc),
            float(invoice.amount_paid),
            float(invoice.amount_due),
        ]
        for invoice in invoices
    ]
    return build_workbook('Factures', INVOICE_EXPORT_HEADERS, rows)
