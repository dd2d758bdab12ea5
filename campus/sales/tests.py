"""
Tests for quotes, invoices, payments and document delivery
"""
from datetime import timedelta
from decimal import Decimal
import io

import openpyxl
from django.core import mail
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from campus.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from campus.clients.models import Client
from campus.notifications.models import Notification
from campus.sales.models import Invoice, Quote
from campus.sales.utils import compute_totals, next_document_number, normalize_line


class LineComputationTests(TestCase):
    """Test line normalization, totals and numbering"""

    def setUp(self):
        self.organization = TestDataFactory.create_organization()

    def test_line_amounts_are_rounded_half_up(self):
        line = normalize_line(self.organization, {'designation': 'Atelier', 'quantity': 3, 'price_ht': Decimal('33.335')})
        self.assertEqual(line['price_ht'], Decimal('33.34'))
        self.assertEqual(line['total_ht'], Decimal('100.02'))
        self.assertEqual(line['total_tva'], Decimal('20.00'))
        self.assertEqual(line['total_ttc'], Decimal('120.02'))

    def test_line_falls_back_to_catalog_item(self):
        item = TestDataFactory.create_item(self.organization, designation='Module Excel', price_ht=Decimal('250'),
                                           tva_rate=Decimal('5.5'))
        line = normalize_line(self.organization, {'item': item.id, 'quantity': 2})
        self.assertEqual(line['designation'], 'Module Excel')
        self.assertEqual(line['total_ht'], Decimal('500.00'))
        self.assertEqual(line['total_tva'], Decimal('27.50'))

    def test_totals(self):
        lines = [
            normalize_line(self.organization, {'designation': 'A', 'quantity': 1, 'price_ht': Decimal('100')}),
            normalize_line(self.organization, {'designation': 'B', 'quantity': 2, 'price_ht': Decimal('10'),
                                               'tva_rate': Decimal('0')}),
        ]
        self.assertEqual(compute_totals(lines), {
            'total_ht': Decimal('120.00'), 'total_tva': Decimal('20.00'), 'total_ttc': Decimal('140.00'),
        })

    def test_next_number_skips_taken_sequence(self):
        year = timezone.localdate().year
        TestDataFactory.create_quote(self.organization, quote_number=f'DEV-{year}-0002')
        self.assertEqual(next_document_number(Quote, self.organization, 'DEV', 'quote_number'), f'DEV-{year}-0003')


class QuoteAPITests(TestCase):
    """Test the quote endpoints"""

    def setUp(self):
        self.organization = TestDataFactory.create_organization(name='Campus Formation')
        self.user = TestDataFactory.create_user(organization=self.organization)
        self.customer = TestDataFactory.create_client(self.organization, company_name='ACME', email='achats@acme.fr')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def _create(self, **extra):
        data = {
            'client': self.customer.id,
            'title': 'Formation bureautique',
            'items': [{'designation': 'Journée', 'quantity': 2, 'price_ht': '100.00', 'tva_rate': '20'}],
        }
        data.update(extra)
        data = {key: value for key, value in data.items() if value is not None}
        return self.client.post('/api/v1/quotes/', data, format='json')

    def test_create_quote_numbers_and_totals(self):
        response = self._create()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        year = timezone.localdate().year
        self.assertEqual(response.data['quote_number'], f'DEV-{year}-0001')
        self.assertEqual(response.data['status'], 'draft')
        self.assertEqual(response.data['total_ht'], '200.00')
        self.assertEqual(response.data['total_ttc'], '240.00')
        quote = Quote.objects.get()
        self.assertEqual(quote.valid_until, quote.issue_date + timedelta(days=30))

    def test_create_quote_with_client_name_creates_client(self):
        response = self._create(client=None, client_name='Paul Durand')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        client = Client.objects.get(last_name='Durand')
        self.assertEqual(client.client_type, 'private')
        self.assertEqual(client.first_name, 'Paul')

    def test_create_quote_without_items_is_422(self):
        response = self._create(items=[])
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertIn('items', response.data)

    def test_create_quote_without_client_is_422(self):
        response = self._create(client=None)
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

    def test_list_filters_by_status(self):
        TestDataFactory.create_quote(self.organization, client=self.customer, status='sent')
        TestDataFactory.create_quote(self.organization, client=self.customer, status='draft')
        response = self.client.get('/api/v1/quotes/', {'status': 'sent'})
        self.assertEqual(response.data['count'], 1)

    def test_accepting_a_quote_stamps_the_date(self):
        quote = TestDataFactory.create_quote(self.organization, client=self.customer, status='sent')
        response = self.client.patch(f'/api/v1/quotes/{quote.id}/status/', {'status': 'accepted'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        quote.refresh_from_db()
        self.assertEqual(quote.status, 'accepted')
        self.assertIsNotNone(quote.accepted_date)

    def test_convert_sent_quote(self):
        quote = TestDataFactory.create_quote(self.organization, client=self.customer, status='sent')
        response = self.client.post(f'/api/v1/quotes/{quote.id}/convert-to-invoice/')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'draft')
        self.assertEqual(response.data['total_ttc'], '120.00')
        self.assertEqual(len(response.data['items']), 1)
        quote.refresh_from_db()
        self.assertEqual(quote.status, 'invoiced')
        self.assertIsNotNone(quote.accepted_date)

        again = self.client.post(f'/api/v1/quotes/{quote.id}/convert-to-invoice/')
        self.assertEqual(again.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(again.data['code'], 'quote_already_converted')
        self.assertEqual(Invoice.objects.count(), 1)

    def test_draft_quote_cannot_be_converted(self):
        quote = TestDataFactory.create_quote(self.organization, client=self.customer)
        response = self.client.post(f'/api/v1/quotes/{quote.id}/convert-to-invoice/')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.data['code'], 'quote_not_convertible')

    def test_pdf(self):
        quote = TestDataFactory.create_quote(self.organization, client=self.customer)
        response = self.client.get(f'/api/v1/quotes/{quote.id}/pdf/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'application/pdf')
        self.assertTrue(response.content.startswith(b'%PDF'))

    def test_send_email_marks_draft_as_sent(self):
        quote = TestDataFactory.create_quote(self.organization, client=self.customer)
        response = self.client.post(f'/api/v1/quotes/{quote.id}/send-email/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['achats@acme.fr'])
        self.assertEqual(mail.outbox[0].attachments[0][0], f'{quote.quote_number}.pdf')
        quote.refresh_from_db()
        self.assertEqual(quote.status, 'sent')
        self.assertIsNotNone(quote.sent_at)

    def test_send_email_without_recipient_is_422(self):
        customer = TestDataFactory.create_client(self.organization, email='')
        quote = TestDataFactory.create_quote(self.organization, client=customer)
        response = self.client.post(f'/api/v1/quotes/{quote.id}/send-email/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.data['code'], 'missing_recipient')
        self.assertEqual(len(mail.outbox), 0)

    def test_export_excel(self):
        TestDataFactory.create_quote(self.organization, client=self.customer)
        response = self.client.get('/api/v1/quotes/export-excel/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        workbook = openpyxl.load_workbook(io.BytesIO(response.content))
        sheet = workbook.active
        self.assertEqual(sheet.title, 'Devis')
        self.assertEqual(sheet.max_row, 2)


class InvoiceAPITests(TestCase):
    """Test the invoice endpoints and payments"""

    def setUp(self):
        self.organization = TestDataFactory.create_organization()
        self.user = TestDataFactory.create_user(organization=self.organization)
        self.customer = TestDataFactory.create_client(self.organization)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_invoice_is_draft_with_due_date(self):
        data = {
            'client': self.customer.id,
            'status': 'paid',
            'items': [{'designation': 'Coaching', 'quantity': 1, 'unit_price': '80', 'tax_rate': '20'}],
        }
        response = self.client.post('/api/v1/invoices/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'draft')
        self.assertEqual(response.data['total_ttc'], '96.00')
        invoice = Invoice.objects.get()
        self.assertEqual(invoice.due_date, invoice.issue_date + timedelta(days=30))
        self.assertTrue(invoice.invoice_number.startswith('FAC-'))

    def test_list_returns_totals(self):
        invoice = TestDataFactory.create_invoice(self.organization, client=self.customer, status='sent')
        invoice.amount_paid = Decimal('20.00')
        invoice.save()
        response = self.client.get('/api/v1/invoices/')
        self.assertEqual(response.data['totals'], {'total_ttc': 120.0, 'total_paid': 20.0, 'total_due': 100.0})

    def test_partial_then_full_payment(self):
        invoice = TestDataFactory.create_invoice(self.organization, client=self.customer, status='sent')
        url = f'/api/v1/invoices/{invoice.id}/payments/'

        response = self.client.post(url, {'amount': '20.00', 'payment_method': 'transfer'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['invoice']['status'], 'partially_paid')

        response = self.client.post(url, {'amount': '100.00', 'payment_method': 'card'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, 'paid')
        self.assertEqual(invoice.amount_paid, Decimal('120.00'))
        self.assertIsNotNone(invoice.paid_at)

        response = self.client.get(url)
        self.assertEqual(len(response.data), 2)

    def test_overpayment_is_422(self):
        invoice = TestDataFactory.create_invoice(self.organization, client=self.customer, status='sent')
        response = self.client.post(f'/api/v1/invoices/{invoice.id}/payments/', {'amount': '500'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertIn('amount', response.data)

    def test_cancelled_invoice_refuses_payment(self):
        invoice = TestDataFactory.create_invoice(self.organization, client=self.customer, status='cancelled')
        response = self.client.post(f'/api/v1/invoices/{invoice.id}/payments/', {'amount': '10'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.data['code'], 'invoice_cancelled')

    def test_lines_of_paid_invoice_cannot_change(self):
        invoice = TestDataFactory.create_invoice(self.organization, client=self.customer, status='sent')
        self.client.post(f'/api/v1/invoices/{invoice.id}/payments/', {'amount': '20.00'}, format='json')

        items = [{'designation': 'Formation', 'quantity': 1, 'price_ht': '10', 'tva_rate': '20'}]
        response = self.client.patch(f'/api/v1/invoices/{invoice.id}/', {'items': items}, format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertIn('items', response.data)
        invoice.refresh_from_db()
        self.assertEqual(invoice.total_ttc, Decimal('120.00'))

        response = self.client.patch(f'/api/v1/invoices/{invoice.id}/', {'notes': 'Acompte reçu'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_invoice_with_payments_cannot_be_deleted(self):
        invoice = TestDataFactory.create_invoice(self.organization, client=self.customer, status='partially_paid')
        invoice.amount_paid = Decimal('10.00')
        invoice.save()
        response = self.client.delete(f'/api/v1/invoices/{invoice.id}/')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.data['code'], 'invoice_has_payments')

    def test_detail_includes_organization_info(self):
        invoice = TestDataFactory.create_invoice(self.organization, client=self.customer)
        response = self.client.get(f'/api/v1/invoices/{invoice.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('organization_info', response.data)

    def test_remind_unpaid_flags_overdue_and_notifies_owner(self):
        owner = TestDataFactory.create_user(organization=self.organization)
        late = TestDataFactory.create_invoice(
            self.organization, client=self.customer, user=owner, status='sent',
            due_date=timezone.localdate() - timedelta(days=3),
        )
        TestDataFactory.create_invoice(
            self.organization, client=self.customer, status='sent',
            due_date=timezone.localdate() + timedelta(days=3),
        )
        response = self.client.post('/api/v1/invoices/remind-unpaid/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['reminders_sent'], 1)
        late.refresh_from_db()
        self.assertEqual(late.status, 'overdue')
        self.assertIsNotNone(late.last_reminder_at)
        self.assertTrue(Notification.objects.filter(user=owner, text__contains=late.invoice_number).exists())

    def test_send_email_to_explicit_recipients(self):
        invoice = TestDataFactory.create_invoice(self.organization, client=self.customer)
        response = self.client.post(
            f'/api/v1/invoices/{invoice.id}/send-email/',
            {'to': 'compta@client.fr, direction@client.fr', 'subject': 'Votre facture'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(mail.outbox[0].to, ['compta@client.fr', 'direction@client.fr'])
        self.assertEqual(mail.outbox[0].subject, 'Votre facture')
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, 'sent')

    def test_invoice_of_other_organization_is_404(self):
        invoice = TestDataFactory.create_invoice(TestDataFactory.create_organization())
        response = self.client.get(f'/api/v1/invoices/{invoice.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
