"""
Checks for French business registration identifiers (SIRET, SIREN, TVA)
"""
import re

_WHITESPACE = re.compile(r'\s+')


def clean_identifier(value) -> str:
    """Strip whitespace from a SIRET/SIREN typed with spaces"""
    if value is None:
        return ''
    return _WHITESPACE.sub('', str(value))


def luhn_checksum_ok(digits: str) -> bool:
    """Luhn check: every second digit from the right is doubled"""
    total = 0
    for index, char in enumerate(reversed(digits)):
        digit = int(char)
        if index % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def is_valid_siret(siret) -> bool:
    """A SIRET is 14 digits passing the Luhn check"""
    siret = clean_identifier(siret)
    if len(siret) != 14 or not siret.isdigit():
        return False
    return luhn_checksum_ok(siret)


def is_valid_siren(siren) -> bool:
    """A SIREN is 9 digits passing the Luhn check"""
    siren = clean_identifier(siren)
    if len(siren) != 9 or not siren.isdigit():
        return False
    return luhn_checksum_ok(siren)


def compute_tva_number(siren):
    """
    Intracommunity VAT number for a French SIREN.
    Format: FR + key (2 digits) + SIREN, key = (12 + 3 * (siren % 97)) % 97
    """
    siren = clean_identifier(siren)
    if len(siren) != 9 or not siren.isdigit():
        return None
    key = (12 + 3 * (int(siren) % 97)) % 97
    return f"FR{key:02d}{siren}"
