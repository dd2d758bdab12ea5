"""
Tests for expenses, their documents and statistics
"""
from datetime import date
from decimal import Decimal

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from rest_framework import status
from campus.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from campus.expenses.models import HR_CATEGORY, Expense, ExpenseDocument


def pdf_upload(name='facture.pdf'):
    return SimpleUploadedFile(name, b'%PDF-1.4 test document', content_type='application/pdf')


class ExpenseAPITests(TestCase):
    """Test the expense endpoints"""

    def setUp(self):
        self.organization = TestDataFactory.create_organization()
        self.user = TestDataFactory.create_user(organization=self.organization)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_expense(self):
        data = {'label': 'Loyer mars', 'amount': '1200.00', 'category': 'Locaux', 'expense_date': '2026-03-01'}
        response = self.client.post('/api/v1/expenses/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        expense = Expense.objects.get()
        self.assertEqual(expense.organization, self.organization)
        self.assertEqual(expense.created_by, self.user)
        self.assertEqual(expense.expense_date, date(2026, 3, 1))

    def test_legacy_field_names_fill_label_and_date(self):
        data = {'description': 'Papeterie', 'amount': '35', 'payment_date': '2026-02-10'}
        response = self.client.post('/api/v1/expenses/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['label'], 'Papeterie')
        self.assertEqual(response.data['expense_date'], '2026-02-10')
        self.assertEqual(response.data['category'], 'Other')

    def test_hr_expense_requires_role_and_contract(self):
        data = {'label': 'Formateur', 'amount': '900', 'category': HR_CATEGORY}
        response = self.client.post('/api/v1/expenses/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertIn('role', response.data)
        self.assertIn('contract_type', response.data)

    def test_negative_amount_is_422(self):
        response = self.client.post('/api/v1/expenses/', {'label': 'X', 'amount': '-1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

    def test_create_with_document(self):
        data = {'label': 'Matériel', 'amount': '250', 'documents': [pdf_upload()]}
        response = self.client.post('/api/v1/expenses/', data, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(response.data['documents']), 1)
        self.assertEqual(response.data['documents'][0]['original_name'], 'facture.pdf')

    def test_document_with_bad_extension_is_422(self):
        upload = SimpleUploadedFile('script.exe', b'MZ', content_type='application/octet-stream')
        response = self.client.post('/api/v1/expenses/', {'label': 'X', 'amount': '1', 'documents': [upload]},
                                    format='multipart')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertFalse(Expense.objects.exists())

    def test_upload_and_delete_document(self):
        expense = TestDataFactory.create_expense(self.organization)
        response = self.client.post(f'/api/v1/expenses/{expense.id}/documents/', {'documents': [pdf_upload()]},
                                    format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        document = ExpenseDocument.objects.get()

        response = self.client.delete(f'/api/v1/expenses/{expense.id}/documents/{document.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(ExpenseDocument.objects.exists())

    def test_list_filters(self):
        TestDataFactory.create_expense(self.organization, label='Loyer', amount=Decimal('800'), expense_date=date(2026, 1, 5))
        TestDataFactory.create_expense(self.organization, label='Café', amount=Decimal('12'), expense_date=date(2026, 2, 5))
        TestDataFactory.create_expense(TestDataFactory.create_organization(), label='Loyer')

        response = self.client.get('/api/v1/expenses/', {'search': 'loyer'})
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/expenses/', {'amount_min': '100'})
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/expenses/', {'date_from': '2026-02-01'})
        self.assertEqual(response.data['results'][0]['label'], 'Café')

    def test_bad_filter_date_is_422(self):
        response = self.client.get('/api/v1/expenses/', {'date_from': '01/02/2026'})
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

    def test_statistics_split_hr_from_other_expenses(self):
        TestDataFactory.create_expense(self.organization, amount=Decimal('100'))
        TestDataFactory.create_expense(self.organization, amount=Decimal('400'), category=HR_CATEGORY,
                                       role='Formateur', contract_type='CDD')
        response = self.client.get('/api/v1/expenses/statistics/')
        self.assertEqual(response.data, {'total': 500.0, 'human_resources': 400.0, 'environmental': 100.0, 'count': 2})

    def test_bulk_delete_only_touches_own_organization(self):
        mine = TestDataFactory.create_expense(self.organization)
        other = TestDataFactory.create_expense(TestDataFactory.create_organization())
        response = self.client.post('/api/v1/expenses/bulk-delete/', {'ids': [mine.id, other.id]}, format='json')
        self.assertEqual(response.data['deleted_ids'], [mine.id])
        self.assertTrue(Expense.objects.filter(pk=other.id).exists())

    def test_patch_expense(self):
        expense = TestDataFactory.create_expense(self.organization)
        response = self.client.patch(f'/api/v1/expenses/{expense.id}/', {'amount': '75.50'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        expense.refresh_from_db()
        self.assertEqual(expense.amount, Decimal('75.50'))

    def test_pdf_and_excel(self):
        expense = TestDataFactory.create_expense(self.organization)
        response = self.client.get(f'/api/v1/expenses/{expense.id}/pdf/')
        self.assertTrue(response.content.startswith(b'%PDF'))
        response = self.client.get('/api/v1/expenses/export-excel/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('attachment', response['Content-Disposition'])
