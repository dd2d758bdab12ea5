"""
Tests for conversations, messages and group management
"""
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from rest_framework import status
from campus.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from campus.messaging.models import ChatMessage, Conversation
from campus.notifications.models import Notification


class MessagingTestCase(TestCase):

    def setUp(self):
        self.organization = TestDataFactory.create_organization()
        self.alice = TestDataFactory.create_user(organization=self.organization, first_name='Alice', last_name='Martin')
        self.bob = TestDataFactory.create_user(organization=self.organization, role='learner', first_name='Bob')
        self.carol = TestDataFactory.create_user(organization=self.organization, role='learner', first_name='Carol')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.alice)

    def create_group(self, name='Promo 2026', members=None):
        conversation = Conversation.objects.create(
            organization=self.organization, type='group', name=name, created_by=self.alice
        )
        conversation.add_participant(self.alice, role='admin')
        for member in members if members is not None else [self.bob, self.carol]:
            conversation.add_participant(member)
        return conversation

    def create_individual(self, other=None):
        conversation = Conversation.objects.create(organization=self.organization, type='individual',
                                                   created_by=self.alice)
        conversation.add_participant(self.alice, role='admin')
        conversation.add_participant(other or self.bob)
        return conversation


class ConversationTests(MessagingTestCase):
    """Test conversation creation and listing"""

    def test_create_individual_conversation_is_idempotent(self):
        data = {'type': 'individual', 'participant_id': self.bob.id, 'initial_message': 'Bonjour'}
        response = self.client.post('/api/v1/conversations/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['conversation']['participant']['id'], self.bob.id)
        self.assertEqual(response.data['conversation']['total_messages'], 1)

        response = self.client.post('/api/v1/conversations/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Conversation already exists')
        self.assertEqual(Conversation.objects.count(), 1)

    def test_cannot_talk_to_yourself(self):
        response = self.client.post('/api/v1/conversations/', {'type': 'individual', 'participant_id': self.alice.id},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.data['code'], 'self_conversation')

    def test_participant_must_belong_to_organization(self):
        outsider = TestDataFactory.create_user()
        response = self.client.post('/api/v1/conversations/', {'type': 'individual', 'participant_id': outsider.id},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.data['code'], 'participant_not_in_organization')

    def test_create_group_notifies_members(self):
        data = {'type': 'group', 'group_name': 'Promo 2026', 'participant_ids': [self.bob.id, self.carol.id]}
        response = self.client.post('/api/v1/conversations/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['conversation']['group']['participants_count'], 3)
        self.assertEqual(Notification.objects.filter(user__in=[self.bob, self.carol]).count(), 2)

    def test_group_needs_two_participants(self):
        data = {'type': 'group', 'group_name': 'Solo', 'participant_ids': [self.bob.id]}
        response = self.client.post('/api/v1/conversations/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertIn('participant_ids', response.data)

    def test_list_with_stats_and_filters(self):
        self.create_individual()
        self.create_group()
        Conversation.objects.create(organization=self.organization, type='group', name='Sans moi')

        response = self.client.get('/api/v1/conversations/')
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['stats']['individual_count'], 1)
        self.assertEqual(response.data['stats']['group_count'], 1)

        response = self.client.get('/api/v1/conversations/', {'type': 'group'})
        self.assertEqual(response.data['results'][0]['name'], 'Promo 2026')
        response = self.client.get('/api/v1/conversations/', {'search': 'Bob'})
        self.assertEqual(response.data['count'], 2)

    def test_total_unread_counts_every_page(self):
        for conversation in (self.create_individual(), self.create_group()):
            ChatMessage.objects.create(conversation=conversation, sender=self.bob, content='Bonjour')

        response = self.client.get('/api/v1/conversations/', {'per_page': 1})
        self.assertEqual(len(response.data['results']), 1)
        self.assertEqual(response.data['stats']['total_unread'], 2)

    def test_conversation_of_others_is_404(self):
        conversation = self.create_group(members=[self.bob])
        conversation.memberships.filter(user=self.alice).delete()
        response = self.client.get(f'/api/v1/conversations/{conversation.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_user_without_organization_is_forbidden(self):
        self.client.authenticate_user(TestDataFactory.create_user(organization=False))
        response = self.client.get('/api/v1/conversations/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class MessageTests(MessagingTestCase):
    """Test sending and reading messages"""

    def test_send_message_notifies_the_other_participant(self):
        conversation = self.create_individual()
        response = self.client.post(f'/api/v1/conversations/{conversation.id}/messages/', {'message': 'Salut'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['message']['is_from_me'])
        notification = Notification.objects.get(user=self.bob)
        self.assertTrue(notification.text.startswith('Nouveau message de Alice Martin'))
        self.assertEqual(notification.target_url, f'/conversations/{conversation.id}')

    def test_reply_must_target_same_conversation(self):
        conversation = self.create_individual()
        elsewhere = self.create_group()
        foreign = ChatMessage.objects.create(conversation=elsewhere, sender=self.bob, content='Ailleurs')
        response = self.client.post(f'/api/v1/conversations/{conversation.id}/messages/',
                                    {'message': 'Réponse', 'reply_to': foreign.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

    def test_empty_message_is_422(self):
        conversation = self.create_individual()
        response = self.client.post(f'/api/v1/conversations/{conversation.id}/messages/', {'message': ''},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

    def test_messages_page_is_chronological(self):
        conversation = self.create_individual()
        for index in range(3):
            ChatMessage.objects.create(conversation=conversation, sender=self.bob, content=f'Message {index}')
        response = self.client.get(f'/api/v1/conversations/{conversation.id}/messages/', {'per_page': 2})
        self.assertEqual([m['content'] for m in response.data['results']], ['Message 1', 'Message 2'])
        self.assertTrue(response.data['has_more'])

    def test_unread_count_and_mark_read(self):
        conversation = self.create_individual()
        ChatMessage.objects.create(conversation=conversation, sender=self.bob, content='Un')
        ChatMessage.objects.create(conversation=conversation, sender=self.bob, content='Deux')
        ChatMessage.objects.create(conversation=conversation, sender=self.alice, content='Trois')

        response = self.client.get('/api/v1/chat/unread-count/')
        self.assertEqual(response.data, {'unread_count': 2})
        response = self.client.post(f'/api/v1/conversations/{conversation.id}/mark-read/')
        self.assertEqual(response.data, {'unread_count': 0})

    def test_attachments_are_listed_in_files(self):
        conversation = self.create_group()
        upload = SimpleUploadedFile('programme.pdf', b'%PDF-1.4', content_type='application/pdf')
        response = self.client.post(f'/api/v1/conversations/{conversation.id}/messages/',
                                    {'message': 'Le programme', 'attachments': [upload]}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        response = self.client.get(f'/api/v1/conversations/{conversation.id}/files/')
        self.assertEqual(response.data['total_files'], 1)
        self.assertEqual(response.data['files'][0]['filename'], 'programme.pdf')
        self.assertEqual(response.data['files'][0]['message_content'], 'Le programme')


class GroupManagementTests(MessagingTestCase):
    """Test group renaming, membership changes and leaving"""

    def test_admin_renames_group(self):
        conversation = self.create_group()
        response = self.client.patch(f'/api/v1/conversations/{conversation.id}/', {'name': 'Promo B'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['conversation']['name'], 'Promo B')

    def test_member_cannot_rename_group(self):
        conversation = self.create_group()
        self.client.authenticate_user(self.bob)
        response = self.client.patch(f'/api/v1/conversations/{conversation.id}/', {'name': 'Promo B'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_add_participants(self):
        conversation = self.create_group(members=[self.bob])
        response = self.client.post(f'/api/v1/conversations/{conversation.id}/participants/',
                                    {'participant_ids': [self.bob.id, self.carol.id]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['added_participants'], [self.carol.id])
        response = self.client.get(f'/api/v1/conversations/{conversation.id}/participants/')
        self.assertEqual(response.data['total'], 3)

    def test_admin_removes_participant(self):
        conversation = self.create_group()
        response = self.client.delete(f'/api/v1/conversations/{conversation.id}/participants/{self.bob.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(conversation.memberships.filter(user=self.bob).exists())
        self.assertTrue(Notification.objects.filter(user=self.bob, text__startswith='Vous avez été retiré').exists())

    def test_last_admin_cannot_leave(self):
        conversation = self.create_group()
        response = self.client.post(f'/api/v1/conversations/{conversation.id}/leave/')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.data['code'], 'last_admin')

    def test_sole_member_leaving_deletes_group(self):
        conversation = self.create_group(members=[])
        response = self.client.post(f'/api/v1/conversations/{conversation.id}/leave/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['deleted'])
        self.assertFalse(Conversation.objects.filter(pk=conversation.pk).exists())

    def test_last_admin_may_leave_after_members_are_gone(self):
        conversation = self.create_group(members=[self.bob])
        self.client.authenticate_user(self.bob)
        self.client.post(f'/api/v1/conversations/{conversation.id}/leave/')
        self.client.authenticate_user(self.alice)
        response = self.client.post(f'/api/v1/conversations/{conversation.id}/leave/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Conversation.objects.filter(pk=conversation.pk).exists())

    def test_member_leaves_group(self):
        conversation = self.create_group()
        self.client.authenticate_user(self.bob)
        response = self.client.post(f'/api/v1/conversations/{conversation.id}/leave/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(conversation.memberships.count(), 2)

    def test_individual_conversation_cannot_be_left(self):
        conversation = self.create_individual()
        response = self.client.post(f'/api/v1/conversations/{conversation.id}/leave/')
        self.assertEqual(response.data['code'], 'not_a_group')

    def test_available_users(self):
        response = self.client.get('/api/v1/chat/users/', {'role': 'learners'})
        self.assertEqual(response.data['total'], 2)
        self.assertEqual(response.data['by_role']['learner'], 2)
