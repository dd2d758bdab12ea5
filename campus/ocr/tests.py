"""
Tests for OCR text extraction, parsing and record matching
"""
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

import pytesseract
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from campus.core.exceptions import OcrError
from campus.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from campus.catalog.models import Item
from campus.clients.models import Client
from campus.ocr.engine import read_document
from campus.ocr.matching import match_or_create_articles, match_or_create_client, price_difference, similarity
from campus.ocr.models import OcrDocument
from campus.ocr.parser import normalize_date, parse_document

SCANNED_INVOICE = """ACME Formation SARL
12 rue de la Paix
75002 Paris
contact@acme.fr
01 23 45 67 89
SIRET: 73282932000074
Facture: FAC-2026-0042
Date: 15/03/2026
Échéance: 14/04/2026
Formation Excel 2 150,00 20% 360,00
Support de cours 1 25,00 20% 30,00
Paiement: virement à réception
Notes: merci de votre confiance
"""


class ParserTests(TestCase):
    """Test the text heuristics"""

    def test_full_invoice(self):
        result = parse_document(SCANNED_INVOICE, 'invoice')
        data = result['extracted_data']
        self.assertEqual(data['invoice_number'], 'FAC-2026-0042')
        self.assertEqual(data['invoice_date'], '2026-03-15')
        self.assertEqual(data['due_date'], '2026-04-14')
        self.assertEqual(data['client'], {
            'name': 'ACME Formation SARL',
            'address': '12 rue de la Paix',
            'postal_code': '75002',
            'city': 'Paris',
            'email': 'contact@acme.fr',
            'phone': '0123456789',
            'siret': '73282932000074',
            'tva_number': None,
        })
        self.assertEqual(len(data['items']), 2)
        self.assertEqual(data['items'][0]['description'], 'Formation Excel')
        self.assertEqual(data['items'][0]['quantity'], 2)
        self.assertEqual(data['items'][0]['total_ht'], 300.0)
        self.assertEqual(data['subtotal_ht'], 325.0)
        self.assertEqual(data['total_tva'], 65.0)
        self.assertEqual(data['total_ttc'], 390.0)
        self.assertEqual(data['payment_terms'], 'virement à réception')
        self.assertEqual(data['notes'], 'merci de votre confiance')
        self.assertEqual(result['warnings'], [])
        self.assertEqual(result['confidence_scores']['overall'], 0.91)
        self.assertEqual(result['confidence_scores']['client_info'], 1.0)

    def test_word_after_invoice_keyword_is_not_a_number(self):
        result = parse_document('FACTURE\nRéférence interne', 'invoice')
        self.assertIsNone(result['extracted_data']['invoice_number'])

    def test_unreadable_quote_uses_defaults_and_warns(self):
        result = parse_document('Devis', 'quote')
        data = result['extracted_data']
        today = timezone.localdate()
        self.assertIsNone(data['quote_number'])
        self.assertEqual(data['quote_date'], today.isoformat())
        self.assertEqual(data['valid_until'], (today + timedelta(days=30)).isoformat())
        self.assertEqual(data['validity_days'], 30)
        self.assertEqual(data['payment_terms'], 'Net 30 jours')
        self.assertEqual(data['items'][0]['description'], 'Prestation de service')
        self.assertIn('Numéro de devis non détecté', result['warnings'])
        self.assertIn('Aucun article détecté dans le document', result['warnings'])
        self.assertIn('Total non détecté ou invalide', result['warnings'])
        self.assertEqual(result['confidence_scores']['quote_number'], 0.0)

    def test_normalize_date(self):
        self.assertEqual(normalize_date('2026-03-05'), '2026-03-05')
        self.assertEqual(normalize_date('05.03.2026'), '2026-03-05')
        self.assertEqual(normalize_date('31/02/2026'), timezone.localdate().isoformat())

    def test_normalize_date_rejects_out_of_range_years(self):
        self.assertEqual(normalize_date('05/03/2150'), timezone.localdate().isoformat())
        self.assertEqual(normalize_date('1850-01-01'), timezone.localdate().isoformat())
        self.assertEqual(normalize_date('01/01/2100'), '2100-01-01')


@override_settings(OCR_MAX_RETRIES=3, OCR_RETRY_DELAY=0)
class EngineTests(TestCase):
    """Test the retry policy around the OCR engine"""

    @patch('campus.ocr.engine.extract_text')
    def test_engine_failure_is_retried(self, extract_text):
        extract_text.side_effect = [pytesseract.TesseractError(1, 'boom'), 'Texte lu']
        self.assertEqual(read_document('/tmp/scan.png'), 'Texte lu')
        self.assertEqual(extract_text.call_count, 2)

    @patch('campus.ocr.engine.extract_text')
    def test_gives_up_after_max_retries(self, extract_text):
        extract_text.side_effect = OSError('tesseract crashed')
        with self.assertRaises(OcrError) as context:
            read_document('/tmp/scan.png')
        self.assertEqual(context.exception.detail.code, 'OCR_005')
        self.assertEqual(extract_text.call_count, 3)

    @patch('campus.ocr.engine.extract_text')
    def test_empty_text_is_not_retried(self, extract_text):
        extract_text.return_value = '   '
        with self.assertRaises(OcrError) as context:
            read_document('/tmp/scan.png')
        self.assertEqual(context.exception.detail.code, 'OCR_001')
        self.assertEqual(extract_text.call_count, 1)

    def test_unknown_engine(self):
        with self.assertRaises(OcrError) as context:
            read_document('/tmp/scan.png', engine='cloud')
        self.assertEqual(context.exception.detail.code, 'OCR_004')


class MatchingTests(TestCase):
    """Test client and article matching"""

    def setUp(self):
        self.organization = TestDataFactory.create_organization()

    def test_similarity_and_price_difference(self):
        self.assertEqual(similarity(' ACME ', 'acme'), 1.0)
        self.assertEqual(similarity('', 'acme'), 0.0)
        self.assertAlmostEqual(price_difference(100, 90), 0.1)
        self.assertEqual(price_difference(0, 0), 0.0)

    def test_client_found_by_siret(self):
        existing = TestDataFactory.create_client(self.organization, siret='73282932000074')
        client, found = match_or_create_client(self.organization, {'name': 'Autre nom', 'siret': '73282932000074'})
        self.assertTrue(found)
        self.assertEqual(client, existing)

    def test_client_found_by_name_and_address(self):
        existing = TestDataFactory.create_client(self.organization, company_name='ACME Formation', email='',
                                                 address='12 rue de la Paix')
        client, found = match_or_create_client(
            self.organization, {'name': 'ACME Formations', 'address': '12 rue de la Paix'}
        )
        self.assertTrue(found)
        self.assertEqual(client, existing)

    def test_client_with_matching_name_but_other_address_is_created(self):
        TestDataFactory.create_client(self.organization, company_name='ACME Formation', email='',
                                      address='12 rue de la Paix')
        client, found = match_or_create_client(
            self.organization, {'name': 'ACME Formation', 'address': '45 avenue Victor Hugo'}
        )
        self.assertFalse(found)
        self.assertEqual(client.address, '45 avenue Victor Hugo')
        self.assertEqual(Client.objects.filter(organization=self.organization).count(), 2)

    def test_name_similarity_at_threshold_does_not_match(self):
        existing = TestDataFactory.create_client(self.organization, company_name='ACME Formation Paris', email='',
                                                 address='12 rue de la Paix')
        self.assertAlmostEqual(similarity('ACME Formation Paxyz', existing.company_name), 0.85)
        client, found = match_or_create_client(
            self.organization, {'name': 'ACME Formation Paxyz', 'address': '12 rue de la Paix'}
        )
        self.assertFalse(found)
        self.assertNotEqual(client, existing)

    def test_company_and_private_clients_are_created(self):
        client, found = match_or_create_client(self.organization, {'name': 'Dupont Conseil SARL'})
        self.assertFalse(found)
        self.assertEqual(client.client_type, 'professional')
        client, found = match_or_create_client(self.organization, {'name': 'Marie Curie'})
        self.assertEqual(client.client_type, 'private')
        self.assertEqual((client.first_name, client.last_name), ('Marie', 'Curie'))

    def test_articles_are_matched_or_created(self):
        existing = TestDataFactory.create_item(self.organization, designation='Formation Excel', price_ht=150)
        results = match_or_create_articles(self.organization, [
            {'description': 'Formation Excel', 'unit_price': 145, 'tax_rate': 20},
            {'description': 'Support de cours', 'unit_price': 25, 'tax_rate': 5.5},
        ])
        self.assertEqual(results[0], (existing, True))
        created, found = results[1]
        self.assertFalse(found)
        self.assertEqual(created.category, 'Service')
        self.assertEqual(created.tva_rate, Decimal('5.5'))

    def test_price_outside_tolerance_creates_article(self):
        TestDataFactory.create_item(self.organization, designation='Formation Excel', price_ht=150)
        results = match_or_create_articles(self.organization, [
            {'description': 'Formation Excel', 'unit_price': 300, 'tax_rate': 20},
        ])
        self.assertFalse(results[0][1])
        self.assertEqual(Item.objects.filter(organization=self.organization).count(), 2)

    def test_close_price_with_different_designation_creates_article(self):
        TestDataFactory.create_item(self.organization, designation='Formation Excel', price_ht=150)
        self.assertLessEqual(similarity('Formation Word', 'Formation Excel'), 0.80)
        results = match_or_create_articles(self.organization, [
            {'description': 'Formation Word', 'unit_price': 150, 'tax_rate': 20},
        ])
        self.assertFalse(results[0][1])
        self.assertEqual(results[0][0].designation, 'Formation Word')

    def test_article_description_is_not_used_for_matching(self):
        TestDataFactory.create_item(self.organization, designation='XYZ-42', price_ht=100,
                                    description='Formation Excel avancee')
        results = match_or_create_articles(self.organization, [
            {'description': 'Formation Excel avancee', 'unit_price': 100, 'tax_rate': 20},
        ])
        self.assertFalse(results[0][1])
        self.assertEqual(results[0][0].designation, 'Formation Excel avancee')


class OcrAPITests(TestCase):
    """Test the OCR import and matching endpoints"""

    def setUp(self):
        self.organization = TestDataFactory.create_organization()
        self.user = TestDataFactory.create_user(organization=self.organization)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def _upload(self, name='scan.png'):
        return SimpleUploadedFile(name, b'not really an image', content_type='image/png')

    @patch('campus.ocr.views.read_document', return_value=SCANNED_INVOICE)
    def test_import_invoice(self, read_document):
        response = self.client.post('/api/v1/invoices/import-ocr/', {'document': self._upload()}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['extracted_data']['invoice_number'], 'FAC-2026-0042')
        document = OcrDocument.objects.get(pk=response.data['document_id'])
        self.assertEqual(document.status, 'completed')
        self.assertEqual(document.extracted_data['total_ttc'], 390.0)

        response = self.client.get(f"/api/v1/ocr-documents/{document.id}/")
        self.assertEqual(response.data['status'], 'completed')

    @patch('campus.ocr.views.read_document', return_value='Devis: DEV-2026-0007')
    def test_import_quote(self, read_document):
        response = self.client.post('/api/v1/quotes/import-ocr/', {'document': self._upload('devis.pdf')},
                                    format='multipart')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['extracted_data']['quote_number'], 'DEV-2026-0007')

    def test_missing_document_is_422(self):
        response = self.client.post('/api/v1/invoices/import-ocr/', {}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.data['code'], 'OCR_003')

    def test_unsupported_format_is_422(self):
        upload = SimpleUploadedFile('scan.gif', b'GIF89a', content_type='image/gif')
        response = self.client.post('/api/v1/invoices/import-ocr/', {'document': upload}, format='multipart')
        self.assertEqual(response.data['code'], 'OCR_003')

    @patch('campus.ocr.views.read_document')
    def test_failure_is_recorded(self, read_document):
        read_document.side_effect = OcrError('OCR_001: Document illisible ou qualité insuffisante', code='OCR_001')
        response = self.client.post('/api/v1/invoices/import-ocr/', {'document': self._upload()}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.data['code'], 'OCR_001')
        document = OcrDocument.objects.get()
        self.assertEqual(document.status, 'failed')
        self.assertIn('OCR_001', document.error_message)

    def test_match_or_create_client(self):
        data = {'client_data': {'name': 'Dupont Conseil SARL', 'email': 'contact@dupont.fr'}}
        response = self.client.post('/api/v1/clients/match-or-create/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertFalse(response.data['existing'])

        response = self.client.post('/api/v1/clients/match-or-create/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['existing'])
        self.assertEqual(Client.objects.count(), 1)

    def test_match_or_create_client_requires_name(self):
        response = self.client.post('/api/v1/clients/match-or-create/', {'client_data': {}}, format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

    def test_match_or_create_articles(self):
        data = {'articles': [{'description': 'Audit qualité', 'unit_price': '800.00', 'tax_rate': '20'}]}
        response = self.client.post('/api/v1/articles/match-or-create/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        article = response.data['articles'][0]
        self.assertFalse(article['existing'])
        self.assertEqual(article['article']['unit_price'], 800.0)
