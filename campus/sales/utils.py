"""
Helpers shared by quotes and invoices: line normalization, totals and numbering
"""
from decimal import Decimal, ROUND_HALF_UP

from django.utils import timezone
from rest_framework import serializers

from campus.catalog.models import Item
from campus.clients.models import Client

CENT = Decimal('0.01')
DEFAULT_TVA_RATE = Decimal('20')
QUOTE_PREFIX = 'DEV'
INVOICE_PREFIX = 'FAC'


def money(value) -> Decimal:
    """Round to cents, half up"""
    return Decimal(str(value or 0)).quantize(CENT, rounding=ROUND_HALF_UP)


class LineItemInputSerializer(serializers.Serializer):
    """
    One incoming document line.

    ``unit_price`` and ``tax_rate`` are accepted as aliases of ``price_ht``
    and ``tva_rate``.
    """
    item = serializers.IntegerField(required=False, allow_null=True)
    reference = serializers.CharField(required=False, allow_blank=True, max_length=50)
    designation = serializers.CharField(required=False, allow_blank=True, max_length=255)
    description = serializers.CharField(required=False, allow_blank=True)
    quantity = serializers.IntegerField(required=False, default=1, min_value=1)
    price_ht = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True, min_value=Decimal('0'))
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True, min_value=Decimal('0'))
    tva_rate = serializers.DecimalField(max_digits=5, decimal_places=2, required=False, allow_null=True,
                                        min_value=Decimal('0'), max_value=Decimal('100'))
    tax_rate = serializers.DecimalField(max_digits=5, decimal_places=2, required=False, allow_null=True,
                                        min_value=Decimal('0'), max_value=Decimal('100'))


def _first(*values):
    for value in values:
        if value is not None:
            return value
    return None


def normalize_line(organization, data, position=0):
    """Fill a validated line from the catalog and the fallbacks, compute its amounts"""
    catalog_item = None
    if data.get('item'):
        catalog_item = Item.objects.filter(organization=organization, pk=data['item']).first()
        if catalog_item is None:
            raise serializers.ValidationError({'item': [f"Item {data['item']} does not exist."]})
    elif data.get('reference') and not data.get('designation'):
        catalog_item = Item.objects.filter(organization=organization, reference=data['reference']).first()

    price_ht = _first(data.get('price_ht'), data.get('unit_price'))
    tva_rate = _first(data.get('tva_rate'), data.get('tax_rate'))
    reference = data.get('reference') or ''
    designation = data.get('designation') or ''
    description = data.get('description') or ''
    if catalog_item is not None:
        price_ht = _first(price_ht, catalog_item.price_ht)
        tva_rate = _first(tva_rate, catalog_item.tva_rate)
        reference = reference or catalog_item.reference
        designation = designation or catalog_item.designation
        description = description or catalog_item.description

    quantity = data.get('quantity') or 1
    price_ht = money(price_ht if price_ht is not None else 0)
    tva_rate = Decimal(str(tva_rate if tva_rate is not None else DEFAULT_TVA_RATE))
    total_ht = money(price_ht * quantity)
    total_tva = money(total_ht * tva_rate / Decimal('100'))

    return {
        'item': catalog_item,
        'reference': reference,
        'designation': designation or reference or description[:255] or 'Item',
        'description': description,
        'quantity': quantity,
        'price_ht': price_ht,
        'tva_rate': tva_rate,
        'total_ht': total_ht,
        'total_tva': total_tva,
        'total_ttc': total_ht + total_tva,
        'position': position,
    }


def validate_line_items(organization, items_data):
    """
    Validate raw ``items`` payload and return normalized lines.

    Raises ValidationError (422) when there is no line or a line is invalid.
    """
    if not items_data:
        raise serializers.ValidationError({'items': ['At least one item is required.']})
    if not isinstance(items_data, (list, tuple)):
        raise serializers.ValidationError({'items': ['Items must be a list.']})

    lines = []
    errors = {}
    for index, raw in enumerate(items_data):
        line_serializer = LineItemInputSerializer(data=raw)
        if not line_serializer.is_valid():
            errors[str(index)] = line_serializer.errors
            continue
        lines.append(normalize_line(organization, line_serializer.validated_data, position=index))
    if errors:
        raise serializers.ValidationError({'items': errors})
    return lines


def compute_totals(lines):
    """Document totals from normalized lines"""
    total_ht = sum((line['total_ht'] for line in lines), Decimal('0.00'))
    total_tva = sum((line['total_tva'] for line in lines), Decimal('0.00'))
    return {
        'total_ht': money(total_ht),
        'total_tva': money(total_tva),
        'total_ttc': money(total_ht) + money(total_tva),
    }


def format_document_number(prefix, year, sequence):
    return f"{prefix}-{year}-{sequence:04d}"


def next_document_number(model, organization, prefix, field, year=None):
    """
    Next free number for a prefix and year, e.g. DEV-2024-0007.

    The sequence counts the organization's documents of that year and is
    bumped while the candidate is already taken.
    """
    year = year or timezone.localdate().year
    pattern = f"{prefix}-{year}-"
    existing = model.objects.filter(organization=organization, **{f'{field}__startswith': pattern})
    sequence = existing.count() + 1
    candidate = format_document_number(prefix, year, sequence)
    while existing.filter(**{field: candidate}).exists():
        sequence += 1
        candidate = format_document_number(prefix, year, sequence)
    return candidate


def resolve_client(organization, user, client_name=None, company_name=None, email=None, phone=None, address=None):
    """Create a client from a bare name when a document names no existing client"""
    if company_name:
        return Client.objects.create(
            organization=organization,
            client_type='professional',
            company_name=company_name,
            last_name='-',
            email=email or '',
            phone=phone or '',
            address=address or '',
            created_by=user,
        )
    name = (client_name or '').strip()
    if not name:
        return None
    first_name, _, last_name = name.partition(' ')
    if not last_name:
        first_name, last_name = '', first_name
    return Client.objects.create(
        organization=organization,
        client_type='private',
        first_name=first_name,
        last_name=last_name,
        email=email or '',
        phone=phone or '',
        address=address or '',
        created_by=user,
    )


def save_lines(document, lines, line_model, parent_field):
    """Replace a document's lines and store its totals"""
    document.items.all().delete()
    line_model.objects.bulk_create([
        line_model(**{parent_field: document}, **line) for line in lines
    ])
    for key, value in compute_totals(lines).items():
        setattr(document, key, value)
    document.save(update_fields=['total_ht', 'total_tva', 'total_ttc', 'updated_at'])


def copy_lines(source, target, line_model, parent_field):
    """Copy stored lines from one document to another, amounts included"""
    line_model.objects.bulk_create([
        line_model(
            **{parent_field: target},
            item=line.item,
            reference=line.reference,
            designation=line.designation,
            description=line.description,
            quantity=line.quantity,
            price_ht=line.price_ht,
            tva_rate=line.tva_rate,
            total_ht=line.total_ht,
            total_tva=line.total_tva,
            total_ttc=line.total_ttc,
            position=line.position,
        )
        for line in source.items.all()
    ])
