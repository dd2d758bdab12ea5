import random
import string

from .models import Item

REFERENCE_PREFIX = 'ART-'
REFERENCE_ALPHABET = string.ascii_uppercase + string.digits


def generate_item_reference(organization, length=8):
    """Random ``ART-XXXXXXXX`` reference, unique inside the organization"""
    while True:
        reference = REFERENCE_PREFIX + ''.join(random.choices(REFERENCE_ALPHABET, k=length))
        if not Item.objects.filter(organization=organization, reference=reference).exists():
            return reference
