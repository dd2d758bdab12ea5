"""
Tests for the commercial and expense dashboards
"""
from datetime import date
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase
from rest_framework import status
from campus.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from campus.expenses.models import HR_CATEGORY


class CommercialDashboardTests(TestCase):
    """Test the commercial KPIs and their cache"""

    def setUp(self):
        cache.clear()
        self.organization = TestDataFactory.create_organization()
        self.user = TestDataFactory.create_user(organization=self.organization)
        self.customer = TestDataFactory.create_client(self.organization, company_name='ACME')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_summary(self):
        TestDataFactory.create_invoice(self.organization, client=self.customer, status='sent')
        TestDataFactory.create_invoice(self.organization, client=self.customer, status='draft')
        TestDataFactory.create_quote(self.organization, client=self.customer, status='accepted')
        TestDataFactory.create_quote(self.organization, client=self.customer, status='draft')
        TestDataFactory.create_expense(self.organization, amount=Decimal('50'))

        response = self.client.get('/api/v1/dashboard/commercial/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        summary = response.data['summary']
        self.assertEqual(summary['revenue'], 120.0)
        self.assertEqual(summary['pending_amount'], 120.0)
        self.assertEqual(summary['expenses_total'], 50.0)
        self.assertEqual(summary['margin'], 70.0)
        self.assertEqual(summary['invoices_count'], 2)
        self.assertEqual(summary['conversion_rate'], 50.0)
        self.assertEqual(summary['clients_count'], 1)
        self.assertEqual(response.data['quotes_by_status']['accepted'], 1)
        self.assertEqual(response.data['top_clients'][0]['name'], 'ACME')

    def test_other_organizations_are_excluded(self):
        TestDataFactory.create_invoice(TestDataFactory.create_organization(), status='paid')
        response = self.client.get('/api/v1/dashboard/commercial/')
        self.assertEqual(response.data['summary']['revenue'], 0.0)

    def test_period_filter(self):
        TestDataFactory.create_invoice(self.organization, client=self.customer, status='paid', issue_date=date(2025, 1, 10))
        TestDataFactory.create_invoice(self.organization, client=self.customer, status='paid', issue_date=date(2026, 1, 10))
        response = self.client.get('/api/v1/dashboard/commercial/', {'date_from': '2026-01-01', 'date_to': '2026-12-31'})
        self.assertEqual(response.data['summary']['invoices_count'], 1)
        self.assertEqual(response.data['period'], {'from': '2026-01-01', 'to': '2026-12-31'})

    def test_invalid_period_is_422(self):
        response = self.client.get('/api/v1/dashboard/commercial/', {'date_from': 'hier'})
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

    def test_cached_until_a_commercial_write_commits(self):
        self.client.get('/api/v1/dashboard/commercial/')

        # without a commit the cached figures are served
        TestDataFactory.create_invoice(self.organization, client=self.customer, status='sent')
        response = self.client.get('/api/v1/dashboard/commercial/')
        self.assertEqual(response.data['summary']['revenue'], 0.0)

        with self.captureOnCommitCallbacks(execute=True):
            TestDataFactory.create_invoice(self.organization, client=self.customer, status='sent')
        response = self.client.get('/api/v1/dashboard/commercial/')
        self.assertEqual(response.data['summary']['revenue'], 240.0)

    def test_learner_is_forbidden(self):
        learner = TestDataFactory.create_user(organization=self.organization, role='learner')
        self.client.authenticate_user(learner)
        response = self.client.get('/api/v1/dashboard/commercial/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ExpenseDashboardTests(TestCase):
    """Test the expense charts"""

    def setUp(self):
        cache.clear()
        self.organization = TestDataFactory.create_organization()
        self.user = TestDataFactory.create_user(organization=self.organization)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_charts_and_summary(self):
        TestDataFactory.create_expense(self.organization, amount=Decimal('100'), category='Locaux',
                                       expense_date=date(2026, 1, 15))
        TestDataFactory.create_expense(self.organization, amount=Decimal('300'), category=HR_CATEGORY,
                                       role='Formateur', contract_type='CDD', expense_date=date(2026, 2, 15))

        response = self.client.get('/api/v1/dashboard/expenses/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        charts = response.data['charts']
        self.assertEqual(charts['by_category'][0], {'name': HR_CATEGORY, 'value': 300.0})
        self.assertEqual(charts['monthly_evolution'], [
            {'month': '2026-01', 'value': 100.0},
            {'month': '2026-02', 'value': 300.0},
        ])
        self.assertEqual(charts['by_contract_type'], [{'name': 'CDD', 'value': 300.0}])
        self.assertEqual(response.data['summary'], {'total_expenses': 400.0, 'total_count': 2, 'average_expense': 200.0})
        self.assertEqual(response.data['top_expenses'][0]['amount'], 300.0)

    def test_category_filter_and_alias_route(self):
        TestDataFactory.create_expense(self.organization, category='Locaux')
        TestDataFactory.create_expense(self.organization, category='Transport')
        response = self.client.get('/api/v1/expenses/dashboard/', {'category': 'Transport'})
        self.assertEqual(response.data['summary']['total_count'], 1)
