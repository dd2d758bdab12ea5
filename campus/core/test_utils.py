"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from campus.core.models import Organization
from campus.clients.models import Client
from campus.catalog.models import Item
from campus.sales.models import Invoice, InvoiceItem, Quote, QuoteItem
from campus.sales.utils import normalize_line, save_lines
from campus.expenses.models import Expense
from campus.learning.models import Course, Student, TrainingSession
from decimal import Decimal
from django.utils import timezone
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_organization(name=None, **extra):
        """Create a test organization"""
        if not name:
            name = f'Org_{TestDataFactory.random_string(6)}'
        defaults = {
            'slug': f'org-{TestDataFactory.random_string(8).lower()}',
            'email': 'contact@campus.test',
            'address': '1 rue de la Paix',
            'postal_code': '75001',
            'city': 'Paris',
        }
        defaults.update(extra)
        return Organization.objects.create(name=name, **defaults)

    @staticmethod
    def create_user(organization=None, role='manager', username=None, email=None, password='testpass123',
                    first_name='', last_name='', is_superuser=False):
        """Create a test user; pass organization=False for a user without tenant"""
        if organization is None:
            organization = TestDataFactory.create_organization()
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            role=role,
            organization=organization or None,
            is_superuser=is_superuser,
        )

    @staticmethod
    def create_client(organization, company_name=None, email=None, siret='', client_type='professional', **extra):
        """Create a test client"""
        if client_type == 'professional' and not company_name:
            company_name = f'Company_{TestDataFactory.random_string(6)}'
        return Client.objects.create(
            organization=organization,
            client_type=client_type,
            company_name=company_name or '',
            email=email if email is not None else f'{TestDataFactory.random_string(6).lower()}@client.test',
            siret=siret,
            **extra
        )

    @staticmethod
    def create_item(organization, designation=None, price_ht=None, tva_rate=None, reference=None, **extra):
        """Create a test catalog item"""
        if not designation:
            designation = f'Item_{TestDataFactory.random_string(6)}'
        if not reference:
            reference = f'ART-{TestDataFactory.random_string(8).upper()}'
        return Item.objects.create(
            organization=organization,
            reference=reference,
            designation=designation,
            price_ht=price_ht if price_ht is not None else Decimal('100.00'),
            tva_rate=tva_rate if tva_rate is not None else Decimal('20.00'),
            **extra
        )

    @staticmethod
    def _lines(organization, lines):
        if lines is None:
            lines = [{'designation': 'Formation', 'quantity': 1, 'price_ht': Decimal('100.00'), 'tva_rate': Decimal('20')}]
        return [normalize_line(organization, line, position=index) for index, line in enumerate(lines)]

    @staticmethod
    def create_quote(organization, client=None, user=None, status='draft', lines=None, quote_number=None, **extra):
        """Create a test quote with computed lines"""
        if client is None:
            client = TestDataFactory.create_client(organization)
        normalized = TestDataFactory._lines(organization, lines)
        quote = Quote.objects.create(
            organization=organization,
            client=client,
            quote_number=quote_number or f'DEV-{timezone.localdate().year}-{random.randint(1000, 9999)}',
            status=status,
            created_by=user,
            **extra
        )
        save_lines(quote, normalized, QuoteItem, 'quote')
        return quote

    @staticmethod
    def create_invoice(organization, client=None, user=None, status='draft', lines=None, invoice_number=None, **extra):
        """Create a test invoice with computed lines"""
        if client is None:
            client = TestDataFactory.create_client(organization)
        normalized = TestDataFactory._lines(organization, lines)
        invoice = Invoice.objects.create(
            organization=organization,
            client=client,
            invoice_number=invoice_number or f'FAC-{timezone.localdate().year}-{random.randint(1000, 9999)}',
            status=status,
            created_by=user,
            **extra
        )
        save_lines(invoice, normalized, InvoiceItem, 'invoice')
        return invoice

    @staticmethod
    def create_expense(organization, label=None, amount=None, category='Locaux', expense_date=None, **extra):
        """Create a test expense"""
        return Expense.objects.create(
            organization=organization,
            label=label or f'Expense_{TestDataFactory.random_string(6)}',
            amount=amount if amount is not None else Decimal('50.00'),
            category=category,
            expense_date=expense_date or timezone.localdate(),
            **extra
        )

    @staticmethod
    def create_course(organization, title=None, **extra):
        """Create a test course"""
        return Course.objects.create(
            organization=organization,
            title=title or f'Course_{TestDataFactory.random_string(6)}',
            **extra
        )

    @staticmethod
    def create_student(organization, first_name='Jeanne', last_name='Martin', email=None, status='active'):
        """Create a learner account with its student profile"""
        user = TestDataFactory.create_user(
            organization=organization, role='learner', email=email,
            first_name=first_name, last_name=last_name,
        )
        return Student.objects.create(
            user=user,
            organization=organization,
            first_name=first_name,
            last_name=last_name,
            status=status,
        )

    @staticmethod
    def create_training_session(organization, course=None, trainer=None, title=None):
        """Create a test training session"""
        return TrainingSession.objects.create(
            organization=organization,
            course=course,
            trainer=trainer,
            title=title or f'Session_{TestDataFactory.random_string(6)}',
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
