"""
Turn raw OCR text into invoice or quote data.

The extraction is heuristic: regular expressions for the number, dates,
client block and item lines, then confidence scores and French warnings
for the fields that could not be read.
"""
import re
from datetime import datetime, timedelta
from decimal import Decimal

from django.utils import timezone

from campus.sales.utils import money

DEFAULT_DELAY_DAYS = 30
DEFAULT_PAYMENT_TERMS = 'Net 30 jours'
DEFAULT_TAX_RATE = 20.0
FALLBACK_ITEM_DESCRIPTION = 'Prestation de service'

DATE = r'(\d{4}[/\-.]\d{1,2}[/\-.]\d{1,2}|\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4})'
DATE_FORMATS = ['%d/%m/%Y', '%d-%m-%Y', '%d.%m.%Y', '%Y-%m-%d', '%Y/%m/%d', '%d/%m/%y', '%d-%m-%y']

NUMBER_PATTERNS = {
    'invoice': [
        re.compile(r'(?:facture|invoice|n°|numéro|number)[\s:]*([A-Z0-9\-/]+)', re.I),
        re.compile(r'FAC[:\-\s]*([0-9\-/]+)', re.I),
    ],
    'quote': [
        re.compile(r'(?:devis|quote|n°|numéro|number)[\s:]*([A-Z0-9\-/]+)', re.I),
        re.compile(r'DEV[:\-\s]*([0-9\-/]+)', re.I),
    ],
}
ISSUE_DATE_PATTERNS = [
    re.compile(r'(?:date|du)[\s:]*' + DATE, re.I),
    re.compile(DATE),
]
DUE_DATE_PATTERNS = [
    re.compile(r'(?:échéance|due date)[\s:]*' + DATE, re.I),
    re.compile(r'(?:paiement avant|pay before)[\s:]*' + DATE, re.I),
]
VALID_UNTIL_PATTERNS = [
    re.compile(r"(?:valable jusqu'au|valid until)[\s:]*" + DATE, re.I),
    re.compile(r'(?:validité|validity)[\s:]*' + DATE, re.I),
]
PAYMENT_TERMS_PATTERNS = [
    re.compile(r'(?:paiement|payment)[\s:]*([^\n]+)', re.I),
    re.compile(r'(?:conditions|terms)[\s:]*([^\n]+)', re.I),
]
NOTES_PATTERNS = [
    re.compile(r'(?:notes?|remarques?)[\s:]*([^\n]+)', re.I),
    re.compile(r'commentaires?[\s:]*([^\n]+)', re.I),
]

EMAIL_RE = re.compile(r'[\w.\-]+@[\w.\-]+\.\w+')
PHONE_RE = re.compile(r'(?:\+33|0)[1-9](?:[\s.\-]?\d{2}){4}')
SIRET_RE = re.compile(r'(?:SIRET|Siret)[\s:]*(\d{14})')
TVA_RE = re.compile(r'(?:TVA|tva)[\s:]*([A-Z]{2}\d{11})')
CITY_RE = re.compile(r'(\d{5})[^\S\n]+([A-Z][a-zàâäéèêëïîôùûüÿæœç \t\-]+)', re.I)
ADDRESS_RE = re.compile(
    r'^\d{1,4}(?:\s?(?:bis|ter))?[,\s]+'
    r'(?:rue|avenue|av\.|boulevard|bd|chemin|allée|place|impasse|route|quai|cours)\b.*',
    re.I,
)
NAME_EXCLUDE_RE = re.compile(r'facture|invoice|devis|quote|date|total|tva', re.I)
NAME_RE = re.compile(r'^[A-Z][a-zA-Z\s.\-]+')
ITEM_LINE_RE = re.compile(r'(.+?)\s+(\d+)\s+(\d+[,.]\d{2})\s+(\d+)%?\s+(\d+[,.]\d{2})')


def _first_match(patterns, text):
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return match.group(1).strip()
    return None


def _to_float(raw):
    return float(raw.replace(',', '.'))


def normalize_date(raw):
    """ISO date for the first format that parses, today otherwise"""
    for date_format in DATE_FORMATS:
        try:
            parsed = datetime.strptime(raw, date_format).date()
        except ValueError:
            continue
        if 1900 <= parsed.year <= 2100:
            return parsed.isoformat()
    return timezone.localdate().isoformat()


def _date_or_default(patterns, text, default_days=None):
    raw = _first_match(patterns, text)
    if raw:
        return normalize_date(raw)
    default = timezone.localdate()
    if default_days:
        default += timedelta(days=default_days)
    return default.isoformat()


def extract_number(text, document_type):
    """Document number; candidates without any digit (e.g. the word after 'Facture') are skipped"""
    for pattern in NUMBER_PATTERNS[document_type]:
        for match in pattern.finditer(text):
            candidate = match.group(1).strip()
            if any(char.isdigit() for char in candidate):
                return candidate
    return None


def extract_client(text):
    client = {
        'name': None,
        'address': None,
        'postal_code': None,
        'city': None,
        'email': None,
        'phone': None,
        'siret': None,
        'tva_number': None,
    }

    match = EMAIL_RE.search(text)
    if match:
        client['email'] = match.group(0)

    match = PHONE_RE.search(text)
    if match:
        client['phone'] = re.sub(r'\s+', '', match.group(0))

    match = SIRET_RE.search(text)
    if match:
        client['siret'] = match.group(1)

    match = TVA_RE.search(text)
    if match:
        client['tva_number'] = match.group(1)

    match = CITY_RE.search(text)
    if match:
        client['postal_code'] = match.group(1)
        client['city'] = match.group(2).strip()

    for line in text.splitlines():
        line = line.strip()
        if client['address'] is None and ADDRESS_RE.match(line):
            client['address'] = line
        if (client['name'] is None and 3 < len(line) < 100
                and not NAME_EXCLUDE_RE.search(line) and NAME_RE.match(line)):
            client['name'] = line

    return client


def extract_items(text):
    """Item lines shaped ``description qty unit_price rate% total_ttc``; returns (items, detected)"""
    items = []
    for line in text.splitlines():
        match = ITEM_LINE_RE.search(line)
        if not match:
            continue
        quantity = int(match.group(2))
        unit_price = _to_float(match.group(3))
        items.append({
            'description': match.group(1).strip(),
            'quantity': quantity,
            'unit_price': unit_price,
            'tax_rate': float(match.group(4)),
            'total_ht': float(money(Decimal(str(unit_price)) * quantity)),
            'total_ttc': _to_float(match.group(5)),
        })

    if items:
        return items, True
    return [{
        'description': FALLBACK_ITEM_DESCRIPTION,
        'quantity': 1,
        'unit_price': 0.0,
        'tax_rate': DEFAULT_TAX_RATE,
        'total_ht': 0.0,
        'total_ttc': 0.0,
    }], False


def compute_totals(items):
    subtotal_ht = Decimal('0')
    total_tva = Decimal('0')
    for item in items:
        line_ht = Decimal(str(item['unit_price'])) * item['quantity']
        subtotal_ht += line_ht
        total_tva += line_ht * Decimal(str(item['tax_rate'])) / Decimal('100')
    return {
        'subtotal_ht': float(money(subtotal_ht)),
        'total_tva': float(money(total_tva)),
        'total_ttc': float(money(subtotal_ht) + money(total_tva)),
    }


def client_confidence(client):
    fields = ('name', 'email', 'phone', 'address', 'postal_code', 'city', 'siret')
    found = sum(1 for field in fields if client.get(field))
    return round(found / len(fields), 2)


def overall_confidence(data, number):
    scores = []
    if number:
        scores.append(0.95)
    if data['client']['name']:
        scores.append(0.90)
    if data['client']['email'] or data['client']['phone']:
        scores.append(0.85)
    if data['items']:
        scores.append(0.90)
    if data['total_ttc'] > 0:
        scores.append(0.95)
    return round(sum(scores) / len(scores), 2) if scores else 0.5


def build_warnings(data, document_type, items_detected):
    warnings = []
    number_field = f'{document_type}_number'
    if not data[number_field]:
        label = 'facture' if document_type == 'invoice' else 'devis'
        warnings.append(f"Numéro de {label} non détecté")

    client = data['client']
    if not client['name']:
        warnings.append("Nom du client non détecté")
    if not client['email'] and not client['phone']:
        warnings.append("Aucun contact client détecté (email ou téléphone)")
    if not client['address'] or not client['city']:
        warnings.append("Adresse client partiellement illisible")

    if not items_detected:
        warnings.append("Aucun article détecté dans le document")
    for index, item in enumerate(data['items'], start=1):
        if item['tax_rate'] <= 0:
            warnings.append(f"Article {index}: TVA non détectée (valeur par défaut utilisée)")

    if data['total_ttc'] <= 0:
        warnings.append("Total non détecté ou invalide")
    return warnings


def parse_document(text, document_type='invoice'):
    """
    Parse OCR text of an invoice or a quote.

    Returns:
        dict with ``extracted_data``, ``confidence_scores`` and ``warnings``
    """
    number_field = f'{document_type}_number'
    number = extract_number(text, document_type)
    items, items_detected = extract_items(text)

    data = {number_field: number}
    if document_type == 'invoice':
        data['invoice_date'] = _date_or_default(ISSUE_DATE_PATTERNS, text)
        data['due_date'] = _date_or_default(DUE_DATE_PATTERNS, text, DEFAULT_DELAY_DAYS)
    else:
        data['quote_date'] = _date_or_default(ISSUE_DATE_PATTERNS, text)
        data['valid_until'] = _date_or_default(VALID_UNTIL_PATTERNS, text, DEFAULT_DELAY_DAYS)
    data['client'] = extract_client(text)
    data['items'] = items
    data.update(compute_totals(items))
    data['payment_terms'] = _first_match(PAYMENT_TERMS_PATTERNS, text) or DEFAULT_PAYMENT_TERMS
    if document_type == 'quote':
        data['validity_days'] = DEFAULT_DELAY_DAYS
    data['notes'] = _first_match(NOTES_PATTERNS, text)

    confidence_scores = {
        'overall': overall_confidence(data, number),
        number_field: 0.95 if number else 0.0,
        'client_info': client_confidence(data['client']),
        'items': 0.90 if items else 0.0,
        'totals': 0.95 if data['total_ttc'] > 0 else 0.0,
    }
    return {
        'extracted_data': data,
        'confidence_scores': confidence_scores,
        'warnings': build_warnings(data, document_type, items_detected),
    }
