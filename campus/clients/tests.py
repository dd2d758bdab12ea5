"""
Tests for clients, identifier checks and the INSEE registry lookups
"""
from unittest.mock import patch, MagicMock
from django.core.cache import cache
from django.test import TestCase
from rest_framework import status
import requests
from campus.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from campus.clients.insee import InseeClient, format_establishment
from campus.clients.models import Client
from campus.clients.validators import compute_tva_number, is_valid_siren, is_valid_siret

VALID_SIREN = '732829320'
VALID_SIRET = '73282932000074'

ESTABLISHMENT = {
    'siret': VALID_SIRET,
    'siren': VALID_SIREN,
    'etatAdministratifEtablissement': 'A',
    'dateCreationEtablissement': '2002-01-01',
    'uniteLegale': {'denominationUniteLegale': 'ACME FORMATION', 'categorieJuridiqueUniteLegale': '5710'},
    'adresseEtablissement': {
        'numeroVoieEtablissement': '8',
        'typeVoieEtablissement': 'RUE',
        'libelleVoieEtablissement': 'DE LONDRES',
        'codePostalEtablissement': '75009',
        'libelleCommuneEtablissement': 'PARIS',
    },
    'periodesEtablissement': [{'activitePrincipaleEtablissement': '85.59A'}],
}


class ValidatorTests(TestCase):
    """Test SIRET/SIREN checks and VAT number computation"""

    def test_valid_identifiers(self):
        self.assertTrue(is_valid_siren(VALID_SIREN))
        self.assertTrue(is_valid_siret(VALID_SIRET))
        self.assertTrue(is_valid_siret('732 829 320 00074'))

    def test_invalid_identifiers(self):
        self.assertFalse(is_valid_siren('732829321'))
        self.assertFalse(is_valid_siret('1234'))
        self.assertFalse(is_valid_siret('7328293200007A'))

    def test_tva_number(self):
        self.assertEqual(compute_tva_number(VALID_SIREN), 'FR44732829320')
        self.assertIsNone(compute_tva_number('123'))


class InseeClientTests(TestCase):
    """Test the Sirene client with a mocked HTTP session"""

    def setUp(self):
        cache.clear()
        self.session = MagicMock()

    def _response(self, status_code=200, payload=None):
        response = MagicMock()
        response.status_code = status_code
        response.ok = status_code < 400
        response.json.return_value = payload
        response.text = ''
        return response

    def test_search_by_siret_formats_and_caches(self):
        self.session.get.return_value = self._response(payload={'etablissement': ESTABLISHMENT})
        client = InseeClient(token='token', session=self.session)
        result = client.search_by_siret(VALID_SIRET)
        self.assertEqual(result['company_name'], 'ACME FORMATION')
        self.assertEqual(result['address'], '8 RUE DE LONDRES')
        self.assertEqual(result['tva_number'], 'FR44732829320')
        self.assertTrue(result['is_active'])

        client.search_by_siret(VALID_SIRET)
        self.assertEqual(self.session.get.call_count, 1)
        headers = self.session.get.call_args.kwargs['headers']
        self.assertEqual(headers['Authorization'], 'Bearer token')

    def test_not_found_returns_none(self):
        self.session.get.return_value = self._response(status_code=404)
        self.assertIsNone(InseeClient(session=self.session).search_by_siret(VALID_SIRET))

    def test_transport_error_returns_none(self):
        self.session.get.side_effect = requests.ConnectionError('down')
        self.assertIsNone(InseeClient(session=self.session).search_by_siren(VALID_SIREN))
        self.assertEqual(InseeClient(session=self.session).search_by_name('acme'), [])

    def test_bad_siret_length_raises(self):
        with self.assertRaises(ValueError):
            InseeClient(session=self.session).search_by_siret('123')

    def test_format_establishment_handles_empty(self):
        self.assertIsNone(format_establishment(None))


class ClientAPITests(TestCase):
    """Test the client endpoints"""

    def setUp(self):
        cache.clear()
        self.organization = TestDataFactory.create_organization()
        self.user = TestDataFactory.create_user(organization=self.organization)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_professional_client(self):
        data = {'client_type': 'professional', 'company_name': 'ACME', 'email': 'contact@acme.fr', 'siret': VALID_SIRET}
        response = self.client.post('/api/v1/clients/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['display_name'], 'ACME')
        self.assertEqual(Client.objects.get().organization, self.organization)

    def test_professional_client_requires_company_name(self):
        response = self.client.post('/api/v1/clients/', {'client_type': 'professional'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertIn('company_name', response.data)

    def test_invalid_siret_is_422(self):
        data = {'client_type': 'professional', 'company_name': 'ACME', 'siret': '12345678901234'}
        response = self.client.post('/api/v1/clients/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertIn('siret', response.data)

    def test_search_filter(self):
        TestDataFactory.create_client(self.organization, company_name='Alpha Conseil')
        TestDataFactory.create_client(self.organization, company_name='Beta')
        response = self.client.get('/api/v1/clients/', {'search': 'alpha'})
        self.assertEqual(response.data['count'], 1)

    def test_clients_of_other_organization_are_hidden(self):
        other = TestDataFactory.create_client(TestDataFactory.create_organization())
        response = self.client.get(f'/api/v1/clients/{other.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_delete_client_with_documents_is_refused(self):
        client = TestDataFactory.create_client(self.organization)
        TestDataFactory.create_quote(self.organization, client=client)
        response = self.client.delete(f'/api/v1/clients/{client.id}/')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.data['code'], 'client_has_documents')

    def test_delete_client(self):
        client = TestDataFactory.create_client(self.organization)
        response = self.client.delete(f'/api/v1/clients/{client.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Client.objects.filter(pk=client.id).exists())

    def test_statistics(self):
        TestDataFactory.create_client(self.organization)
        TestDataFactory.create_client(self.organization, client_type='private', last_name='Durand')
        response = self.client.get('/api/v1/clients/statistics/')
        self.assertEqual(response.data['total'], 2)
        self.assertEqual(response.data['professional'], 1)
        self.assertEqual(response.data['private'], 1)

    @patch('campus.clients.views.InseeClient')
    def test_insee_search_dispatches_on_siret(self, insee_class):
        insee_class.return_value.search_by_siret.return_value = {'siret': VALID_SIRET}
        response = self.client.get('/api/v1/insee/search/', {'q': '732 829 320 00074'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['type'], 'siret')
        insee_class.return_value.search_by_siret.assert_called_once_with(VALID_SIRET)

    @patch('campus.clients.views.InseeClient')
    def test_insee_search_siret_not_found(self, insee_class):
        insee_class.return_value.search_by_siret.return_value = None
        response = self.client.get('/api/v1/insee/search-siret/', {'siret': VALID_SIRET})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_insee_search_siret_bad_format(self):
        response = self.client.get('/api/v1/insee/search-siret/', {'siret': '123'})
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

    def test_validate_siren(self):
        response = self.client.get('/api/v1/insee/validate-siren/', {'siren': VALID_SIREN})
        self.assertTrue(response.data['valid'])
        self.assertEqual(response.data['tva_number'], 'FR44732829320')
