"""
Tests for user notifications
"""
from django.test import TestCase
from rest_framework import status
from campus.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from campus.notifications.models import Notification
from campus.notifications.utils import notify_user, notify_users


class NotifyTests(TestCase):
    """Test the notification helpers"""

    def setUp(self):
        self.organization = TestDataFactory.create_organization()
        self.sender = TestDataFactory.create_user(organization=self.organization)
        self.recipient = TestDataFactory.create_user(organization=self.organization, role='learner')

    def test_notify_user_defaults_organization(self):
        notification = notify_user(self.recipient, 'Bienvenue', sender=self.sender)
        self.assertEqual(notification.organization, self.organization)
        self.assertFalse(notification.is_seen)
        self.assertEqual(notification.target_url, '')

    def test_notify_users_skips_sender(self):
        notify_users([self.sender, self.recipient], 'Nouvelle session', sender=self.sender)
        self.assertEqual(list(Notification.objects.values_list('user', flat=True)), [self.recipient.id])


class NotificationAPITests(TestCase):
    """Test the notification endpoints"""

    def setUp(self):
        self.organization = TestDataFactory.create_organization()
        self.user = TestDataFactory.create_user(organization=self.organization, role='learner')
        self.other = TestDataFactory.create_user(organization=self.organization)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_list_only_own_notifications(self):
        notify_user(self.user, 'Pour moi')
        notify_user(self.other, 'Pas pour moi')
        response = self.client.get('/api/v1/notifications/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['text'], 'Pour moi')

    def test_unread_filter_and_count(self):
        seen = notify_user(self.user, 'Lu')
        seen.is_seen = True
        seen.save()
        notify_user(self.user, 'Non lu')
        response = self.client.get('/api/v1/notifications/', {'unread': 'true'})
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/notifications/count/')
        self.assertEqual(response.data, {'unread': 1, 'total': 2})

    def test_mark_read_by_id_and_uuid(self):
        first = notify_user(self.user, 'Un')
        second = notify_user(self.user, 'Deux')
        response = self.client.post(f'/api/v1/notifications/{first.id}/read/')
        self.assertTrue(response.data['is_seen'])
        response = self.client.post(f'/api/v1/notifications/{second.uuid}/read/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Notification.objects.filter(is_seen=False).exists())

    def test_bad_identifier_is_404(self):
        response = self.client.get('/api/v1/notifications/pas-un-uuid/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_other_users_notification_is_404(self):
        notification = notify_user(self.other, 'Privé')
        response = self.client.delete(f'/api/v1/notifications/{notification.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertTrue(Notification.objects.filter(pk=notification.id).exists())

    def test_mark_list_and_all_read(self):
        first = notify_user(self.user, 'Un')
        notify_user(self.user, 'Deux')
        response = self.client.post('/api/v1/notifications/mark-read/', {'ids': [first.id]}, format='json')
        self.assertEqual(response.data, {'updated_count': 1})
        response = self.client.post('/api/v1/notifications/mark-all-read/')
        self.assertEqual(response.data, {'updated_count': 1})

    def test_delete_list_requires_ids(self):
        response = self.client.post('/api/v1/notifications/delete/', {'ids': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

    def test_delete_list(self):
        mine = notify_user(self.user, 'Un')
        theirs = notify_user(self.other, 'Deux')
        response = self.client.post('/api/v1/notifications/delete/', {'ids': [mine.id, theirs.id]}, format='json')
        self.assertEqual(response.data, {'deleted_count': 1})
        self.assertTrue(Notification.objects.filter(pk=theirs.id).exists())
