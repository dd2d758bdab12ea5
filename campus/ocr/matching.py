"""
Match OCR-extracted clients and articles against the organization's records,
creating new rows when nothing is close enough.
"""
import logging
from decimal import Decimal
from difflib import SequenceMatcher

from django.db import transaction

from campus.catalog.models import Item
from campus.catalog.utils import generate_item_reference
from campus.clients.models import Client

logger = logging.getLogger(__name__)

CLIENT_NAME_THRESHOLD = 0.85
CLIENT_ADDRESS_THRESHOLD = 0.75
ARTICLE_NAME_THRESHOLD = 0.80
ARTICLE_PRICE_TOLERANCE = 0.20
ARTICLE_SCORE_THRESHOLD = 0.75
ARTICLE_DEFAULT_CATEGORY = 'Service'
COMPANY_INDICATORS = ['SARL', 'SAS', 'SA', 'EURL', 'SNC', 'Ltd', 'Inc', 'Corp', 'GmbH', 'AG']


def similarity(a, b):
    """Ratio in [0, 1] between two strings, compared lowercased and trimmed"""
    a = (a or '').strip().lower()
    b = (b or '').strip().lower()
    if not a or not b:
        return 0.0
    return SequenceMatcher(None, a, b).ratio()


def price_difference(a, b):
    """Relative difference of two prices; 0 when both are zero"""
    a = float(a or 0)
    b = float(b or 0)
    highest = max(a, b)
    if highest <= 0:
        return 0.0
    return abs(a - b) / highest


def looks_like_company_name(name):
    name = (name or '').lower()
    return any(indicator.lower() in name for indicator in COMPANY_INDICATORS)


def fuzzy_match_client(organization, client_data):
    name = client_data.get('name') or ''
    address = client_data.get('address') or ''
    for client in Client.objects.filter(organization=organization):
        name_score = similarity(name, client.company_name or client.full_name)
        address_score = similarity(address, client.address)
        if name_score > CLIENT_NAME_THRESHOLD and address_score > CLIENT_ADDRESS_THRESHOLD:
            return client
    return None


def find_client(organization, client_data):
    """Existing client by SIRET, then e-mail, then name and address similarity"""
    clients = Client.objects.filter(organization=organization)
    if client_data.get('siret'):
        client = clients.filter(siret=client_data['siret']).first()
        if client:
            return client
    if client_data.get('email'):
        client = clients.filter(email__iexact=client_data['email']).first()
        if client:
            return client
    if client_data.get('name') and client_data.get('address'):
        return fuzzy_match_client(organization, client_data)
    return None


def create_client(organization, client_data, user=None):
    name = client_data['name'].strip()
    is_company = bool(client_data.get('siret') or client_data.get('tva_number') or looks_like_company_name(name))
    client = Client(
        organization=organization,
        client_type='professional' if is_company else 'private',
        email=client_data.get('email') or '',
        phone=client_data.get('phone') or '',
        address=client_data.get('address') or '',
        postal_code=client_data.get('postal_code') or '',
        city=client_data.get('city') or '',
        siret=client_data.get('siret') or '',
        tva_number=client_data.get('tva_number') or '',
        created_by=user,
    )
    if is_company:
        client.company_name = name
    else:
        first_name, _, last_name = name.partition(' ')
        client.first_name = first_name
        client.last_name = last_name
    client.save()
    logger.info(f"Created {client.client_type} client '{name}' from OCR data")
    return client


def match_or_create_client(organization, client_data, user=None):
    """Returns (client, existing)"""
    client = find_client(organization, client_data)
    if client is not None:
        return client, True
    return create_client(organization, client_data, user=user), False


def fuzzy_match_article(organization, article_data):
    """
    Best catalog item for an extracted line.

    Candidates need a designation similarity above 0.80 and a price within
    20%; the score weighs similarity 0.7 and price proximity 0.3 and the
    best one must exceed 0.75.
    """
    best_item = None
    best_score = 0.0
    for item in Item.objects.filter(organization=organization):
        name_score = similarity(article_data['description'], item.designation)
        difference = price_difference(article_data['unit_price'], item.price_ht)
        if name_score > ARTICLE_NAME_THRESHOLD and difference < ARTICLE_PRICE_TOLERANCE:
            score = name_score * 0.7 + (1 - difference) * 0.3
            if score > best_score:
                best_item, best_score = item, score
    if best_score > ARTICLE_SCORE_THRESHOLD:
        return best_item
    return None


def create_article(organization, article_data, user=None):
    return Item.objects.create(
        organization=organization,
        reference=generate_item_reference(organization),
        designation=article_data['description'][:255],
        category=ARTICLE_DEFAULT_CATEGORY,
        price_ht=Decimal(str(article_data['unit_price'])),
        tva_rate=Decimal(str(article_data['tax_rate'])),
        created_by=user,
    )


def match_or_create_articles(organization, articles_data, user=None):
    """Returns a list of (item, existing) in input order"""
    results = []
    with transaction.atomic():
        for article_data in articles_data:
            item = fuzzy_match_article(organization, article_data)
            if item is not None:
                results.append((item, True))
            else:
                results.append((create_article(organization, article_data, user=user), False))
    return results
