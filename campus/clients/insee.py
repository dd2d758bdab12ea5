"""
Client for the INSEE Sirene registry (company lookup by SIRET, SIREN or name)
"""
import logging

import requests
from django.conf import settings
from django.core.cache import cache

from campus.core.cache_utils import INSEE_NAME_CACHE_TTL, INSEE_SIRET_CACHE_TTL, make_cache_key
from .validators import clean_identifier, compute_tva_number

logger = logging.getLogger('campus.clients')


class InseeClient:
    """
    Thin wrapper around the Sirene V3 REST API.

    Lookups return formatted dicts, ``None`` when nothing is found and on
    transport errors (which are logged), and results are cached.
    """

    def __init__(self, base_url=None, token=None, timeout=None, session=None):
        self.base_url = (base_url or settings.INSEE_API_BASE_URL).rstrip('/')
        self.token = token if token is not None else settings.INSEE_API_TOKEN
        self.timeout = timeout or settings.INSEE_API_TIMEOUT
        self.session = session or requests.Session()

    def _headers(self):
        headers = {'Accept': 'application/json'}
        if self.token:
            headers['Authorization'] = f'Bearer {self.token}'
        return headers

    def _get(self, path, params=None):
        """GET a Sirene resource; returns parsed JSON, or None on 404 and errors"""
        try:
            response = self.session.get(
                f"{self.base_url}{path}",
                headers=self._headers(),
                params=params,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"INSEE API exception on {path}: {e}")
            return None

        if response.status_code == 404:
            return None
        if not response.ok:
            logger.error(f"INSEE API error on {path}: status={response.status_code} body={response.text[:500]}")
            return None
        try:
            return response.json()
        except ValueError:
            logger.error(f"INSEE API returned invalid JSON on {path}")
            return None

    def search_by_siret(self, siret):
        siret = clean_identifier(siret)
        if len(siret) != 14:
            raise ValueError('Le SIRET doit contenir 14 chiffres')

        cache_key = make_cache_key('insee_siret', siret)
        cached = cache.get(cache_key)
        if cached is not None:
            return cached

        data = self._get(f"/siret/{siret}")
        result = format_establishment(data.get('etablissement')) if data else None
        if result is not None:
            cache.set(cache_key, result, INSEE_SIRET_CACHE_TTL)
        return result

    def search_by_siren(self, siren):
        siren = clean_identifier(siren)
        if len(siren) != 9:
            raise ValueError('Le SIREN doit contenir 9 chiffres')

        cache_key = make_cache_key('insee_siren', siren)
        cached = cache.get(cache_key)
        if cached is not None:
            return cached

        data = self._get(f"/siren/{siren}")
        result = format_legal_unit(data.get('uniteLegale')) if data else None
        if result is not None:
            cache.set(cache_key, result, INSEE_SIRET_CACHE_TTL)
        return result

    def search_by_name(self, name, limit=10):
        cache_key = make_cache_key('insee_name', name, limit)
        cached = cache.get(cache_key)
        if cached is not None:
            return cached

        data = self._get('/siret', params={'q': f'denominationUniteLegale:{name}*', 'nombre': limit})
        if data is None:
            return []
        results = []
        for establishment in data.get('etablissements', []):
            formatted = format_establishment(establishment)
            if formatted:
                results.append(formatted)
        cache.set(cache_key, results, INSEE_NAME_CACHE_TTL)
        return results


def _company_name(unit):
    if unit.get('denominationUniteLegale'):
        return unit['denominationUniteLegale']
    if unit.get('prenomUsuelUniteLegale') and unit.get('nomUniteLegale'):
        return f"{unit['prenomUsuelUniteLegale']} {unit['nomUniteLegale']}".strip()
    return None


def format_establishment(data):
    """Flatten a Sirene 'etablissement' payload"""
    if not data:
        return None

    unit = data.get('uniteLegale') or {}
    address_data = data.get('adresseEtablissement') or {}
    periods = data.get('periodesEtablissement') or [{}]
    period = periods[0] if periods else {}

    street = ' '.join(filter(None, [
        address_data.get('numeroVoieEtablissement'),
        address_data.get('indiceRepetitionEtablissement'),
        address_data.get('typeVoieEtablissement'),
        address_data.get('libelleVoieEtablissement'),
    ])).strip()
    complement = ' '.join(filter(None, [
        address_data.get('complementAdresseEtablissement'),
        address_data.get('distributionSpecialeEtablissement'),
    ])).strip()
    if complement:
        street = f"{complement}, {street}" if street else complement

    siren = data.get('siren') or ''
    return {
        'siret': data.get('siret'),
        'siren': siren,
        'company_name': _company_name(unit),
        'enseigne': period.get('enseigne1Etablissement'),
        'address': street or None,
        'postal_code': address_data.get('codePostalEtablissement'),
        'city': address_data.get('libelleCommuneEtablissement'),
        'country': 'France',
        'tva_number': compute_tva_number(siren),
        'legal_form': unit.get('categorieJuridiqueUniteLegale'),
        'activity_code': period.get('activitePrincipaleEtablissement'),
        'is_active': data.get('etatAdministratifEtablissement') == 'A',
        'creation_date': data.get('dateCreationEtablissement'),
    }


def format_legal_unit(data):
    """Flatten a Sirene 'uniteLegale' payload"""
    if not data:
        return None

    periods = data.get('periodesUniteLegale') or [{}]
    period = periods[0] if periods else {}
    return {
        'siren': data.get('siren'),
        'company_name': _company_name(data),
        'tva_number': compute_tva_number(data.get('siren') or ''),
        'legal_form': period.get('categorieJuridiqueUniteLegale'),
        'activity_code': period.get('activitePrincipaleUniteLegale'),
        'is_active': data.get('etatAdministratifUniteLegale') == 'A',
        'creation_date': data.get('dateCreationUniteLegale'),
    }
