"""
Tests for the article catalog
"""
from decimal import Decimal
from django.test import TestCase
from rest_framework import status
from campus.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from campus.catalog.models import Item
from campus.catalog.utils import generate_item_reference


class ItemModelTests(TestCase):
    """Test Item price computation"""

    def setUp(self):
        self.organization = TestDataFactory.create_organization()

    def test_price_ttc_is_computed_on_save(self):
        item = TestDataFactory.create_item(self.organization, price_ht=Decimal('99.99'), tva_rate=Decimal('20'))
        self.assertEqual(item.price_ttc, Decimal('119.99'))

    def test_zero_rate(self):
        item = TestDataFactory.create_item(self.organization, price_ht=Decimal('10.00'), tva_rate=Decimal('0'))
        self.assertEqual(item.price_ttc, Decimal('10.00'))

    def test_generated_reference_format(self):
        reference = generate_item_reference(self.organization)
        self.assertTrue(reference.startswith('ART-'))
        self.assertEqual(len(reference), 12)


class ItemAPITests(TestCase):
    """Test the article endpoints"""

    def setUp(self):
        self.organization = TestDataFactory.create_organization()
        self.user = TestDataFactory.create_user(organization=self.organization)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_item_generates_reference(self):
        data = {'designation': 'Formation Excel', 'price_ht': '450.00', 'tva_rate': '20.00'}
        response = self.client.post('/api/v1/items/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['reference'].startswith('ART-'))
        self.assertEqual(response.data['price_ttc'], '540.00')

    def test_create_item_negative_price_is_422(self):
        data = {'designation': 'Broken', 'price_ht': '-1.00'}
        response = self.client.post('/api/v1/items/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertIn('price_ht', response.data)

    def test_duplicate_reference_is_422(self):
        TestDataFactory.create_item(self.organization, reference='ART-DUP')
        data = {'reference': 'ART-DUP', 'designation': 'Other', 'price_ht': '10.00'}
        response = self.client.post('/api/v1/articles/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

    def test_same_reference_allowed_in_other_organization(self):
        TestDataFactory.create_item(TestDataFactory.create_organization(), reference='ART-SHARED')
        data = {'reference': 'ART-SHARED', 'designation': 'Mine', 'price_ht': '10.00'}
        response = self.client.post('/api/v1/items/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_list_search_and_price_filter(self):
        TestDataFactory.create_item(self.organization, designation='Python avancé', price_ht=Decimal('800'))
        TestDataFactory.create_item(self.organization, designation='Python débutant', price_ht=Decimal('200'))
        TestDataFactory.create_item(self.organization, designation='Word', price_ht=Decimal('100'))
        response = self.client.get('/api/v1/items/', {'search': 'python', 'price_min': '300'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['designation'], 'Python avancé')

    def test_items_of_other_organization_are_hidden(self):
        other = TestDataFactory.create_item(TestDataFactory.create_organization())
        response = self.client.get(f'/api/v1/items/{other.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_patch_item_recomputes_ttc(self):
        item = TestDataFactory.create_item(self.organization, price_ht=Decimal('100'))
        response = self.client.patch(f'/api/v1/items/{item.id}/', {'tva_rate': '5.50'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['price_ttc'], '105.50')

    def test_bulk_delete_only_touches_own_items(self):
        mine = [TestDataFactory.create_item(self.organization) for _ in range(2)]
        foreign = TestDataFactory.create_item(TestDataFactory.create_organization())
        ids = [item.id for item in mine] + [foreign.id]
        response = self.client.post('/api/v1/items/bulk-delete/', {'ids': ids}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['deleted_count'], 2)
        self.assertTrue(Item.objects.filter(pk=foreign.id).exists())

    def test_bulk_delete_requires_ids(self):
        response = self.client.post('/api/v1/items/bulk-delete/', {'ids': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
