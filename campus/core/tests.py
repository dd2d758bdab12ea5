"""
Tests for authentication, tenant resolution, audit logs and the shared helpers
"""
from django.test import TestCase, RequestFactory
from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.request import Request
from campus.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from campus.core.models import AuditLog, Organization, User
from campus.core.permissions import is_commercial_user
from campus.core.utils import create_audit_log, paginate_queryset, parse_date_param, parse_id_list
from campus.core.serializers import AuditLogSerializer


class RegistrationTests(TestCase):
    """Test the registration and login endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_register_with_organization_creates_admin(self):
        data = {
            'username': 'alice',
            'email': 'alice@example.com',
            'password': 'Sup3r-secret-pass',
            'password_confirm': 'Sup3r-secret-pass',
            'organization_name': 'Formations Alice',
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('access', response.data)
        user = User.objects.get(username='alice')
        self.assertEqual(user.role, 'admin')
        self.assertEqual(user.organization.slug, 'formations-alice')

    def test_register_duplicate_organization_slug_gets_suffix(self):
        Organization.objects.create(name='Acme', slug='acme')
        data = {
            'username': 'bob',
            'email': 'bob@example.com',
            'password': 'Sup3r-secret-pass',
            'password_confirm': 'Sup3r-secret-pass',
            'organization_name': 'Acme',
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(User.objects.get(username='bob').organization.slug, 'acme-2')

    def test_register_password_mismatch(self):
        data = {
            'username': 'carol',
            'email': 'carol@example.com',
            'password': 'Sup3r-secret-pass',
            'password_confirm': 'other-pass-123',
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertIn('password', response.data)

    def test_login_returns_tokens(self):
        TestDataFactory.create_user(username='dave', password='testpass123')
        response = self.client.post('/api/v1/auth/login/', {'username': 'dave', 'password': 'testpass123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)


class UserMeTests(TestCase):
    """Test the current user endpoint and access flags"""

    def setUp(self):
        self.organization = TestDataFactory.create_organization()
        self.client = AuthenticatedAPIClient()

    def test_manager_flags(self):
        user = TestDataFactory.create_user(organization=self.organization, role='manager')
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['can_access_commercial'])
        self.assertFalse(response.data['can_access_learning'])

    def test_learner_flags(self):
        user = TestDataFactory.create_user(organization=self.organization, role='learner')
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertFalse(response.data['can_access_commercial'])
        self.assertTrue(response.data['can_access_learning'])

    def test_unauthenticated_request_is_rejected(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class OrganizationTests(TestCase):
    """Test tenant resolution and organization updates"""

    def setUp(self):
        self.organization = TestDataFactory.create_organization(name='Campus One')
        self.client = AuthenticatedAPIClient()

    def test_get_organization(self):
        user = TestDataFactory.create_user(organization=self.organization, role='trainer')
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/organization/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], 'Campus One')

    def test_trainer_cannot_update_organization(self):
        user = TestDataFactory.create_user(organization=self.organization, role='trainer')
        self.client.authenticate_user(user)
        response = self.client.patch('/api/v1/organization/', {'name': 'Hacked'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_user_without_organization_gets_403(self):
        user = TestDataFactory.create_user(organization=False, role='manager')
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/organization/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['code'], 'organization_required')

    def test_learner_is_refused_commercial_endpoints(self):
        user = TestDataFactory.create_user(organization=self.organization, role='learner')
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/clients/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertIn('error', response.data)


class AuditLogTests(TestCase):
    """Test audit log creation and listing"""

    def setUp(self):
        self.organization = TestDataFactory.create_organization()
        self.user = TestDataFactory.create_user(organization=self.organization)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_audit_log_uses_user_organization(self):
        log = create_audit_log(user=self.user, action='create', model_name='Client', object_id=1, object_name='ACME')
        self.assertEqual(log.organization, self.organization)
        self.assertEqual(log.object_id, '1')

    def test_create_audit_log_skips_missing_fields(self):
        self.assertIsNone(create_audit_log(user=self.user, action='create', model_name=None, object_id=1))
        self.assertIsNone(create_audit_log(user=self.user, action='create', model_name='Client', object_id=None))
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_create_audit_log_accepts_zero_id(self):
        log = create_audit_log(user=self.user, action='create', model_name='Item', object_id=0)
        self.assertIsNotNone(log)
        self.assertEqual(log.object_id, '0')

    def test_audit_logs_are_scoped_to_organization(self):
        other = TestDataFactory.create_user()
        create_audit_log(user=self.user, action='create', model_name='Client', object_id=1)
        create_audit_log(user=other, action='create', model_name='Client', object_id=2)
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['object_id'], '1')

    def test_audit_log_action_filter(self):
        create_audit_log(user=self.user, action='create', model_name='Client', object_id=1)
        create_audit_log(user=self.user, action='delete', model_name='Client', object_id=1)
        response = self.client.get('/api/v1/audit-logs/', {'action': 'delete'})
        self.assertEqual(response.data['count'], 1)

    def test_audit_log_bad_date_is_422(self):
        response = self.client.get('/api/v1/audit-logs/', {'date_from': '31/12/2024'})
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)


class HelperTests(TestCase):
    """Test query parsing and pagination helpers"""

    def test_parse_id_list_accepts_string_and_list(self):
        self.assertEqual(parse_id_list('1, 2,3'), [1, 2, 3])
        self.assertEqual(parse_id_list([4, '5']), [4, 5])
        self.assertEqual(parse_id_list(None), [])

    def test_parse_id_list_rejects_garbage(self):
        with self.assertRaises(ValidationError):
            parse_id_list('a,b')

    def test_parse_date_param(self):
        self.assertEqual(parse_date_param('2024-03-05', 'date').isoformat(), '2024-03-05')
        self.assertIsNone(parse_date_param('', 'date'))

    def test_paginate_queryset_metadata(self):
        user = TestDataFactory.create_user()
        for index in range(5):
            create_audit_log(user=user, action='create', model_name='Item', object_id=index)
        request = Request(RequestFactory().get('/', {'page': 2, 'per_page': 2}))
        data = paginate_queryset(request, AuditLog.objects.order_by('id'), AuditLogSerializer)
        self.assertEqual(data['count'], 5)
        self.assertEqual(data['page'], 2)
        self.assertEqual(data['total_pages'], 3)
        self.assertEqual(data['next'], 3)
        self.assertEqual(data['previous'], 1)
        self.assertEqual(len(data['results']), 2)

    def test_is_commercial_user(self):
        self.assertTrue(is_commercial_user(TestDataFactory.create_user(role='admin')))
        self.assertFalse(is_commercial_user(TestDataFactory.create_user(role='trainer')))
        self.assertTrue(is_commercial_user(TestDataFactory.create_user(role='learner', is_superuser=True)))
