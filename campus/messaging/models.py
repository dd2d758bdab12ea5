import os
import uuid

from django.db import models
from django.utils import timezone
from campus.core.models import Organization, User


class Conversation(models.Model):
    """Individual (two people) or group conversation inside an organization"""
    TYPE_CHOICES = [
        ('individual', 'Individual'),
        ('group', 'Group'),
    ]

    uuid = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='conversations')
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='individual')
    name = models.CharField(max_length=255, blank=True)
    avatar = models.ImageField(upload_to='conversations/avatars/', blank=True, null=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='created_conversations')
    participants = models.ManyToManyField(User, through='ConversationParticipant', related_name='conversations')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def add_participant(self, user, role='member'):
        participant, _ = ConversationParticipant.objects.get_or_create(
            conversation=self, user=user, defaults={'role': role}
        )
        return participant

    def unread_count_for(self, user):
        """Messages from other people posted after the user's last read"""
        participant = self.memberships.filter(user=user).first()
        messages = self.messages.exclude(sender=user)
        if participant is not None and participant.last_read_at:
            messages = messages.filter(created_at__gt=participant.last_read_at)
        return messages.count()

    def mark_read_for(self, user):
        return self.memberships.filter(user=user).update(last_read_at=timezone.now())

    def other_participant(self, user):
        return self.participants.exclude(pk=user.pk).first()

    def touch(self):
        self.updated_at = timezone.now()
        Conversation.objects.filter(pk=self.pk).update(updated_at=self.updated_at)

    def __str__(self):
        return self.name or f"Conversation {self.uuid}"

    class Meta:
        db_table = 'conversations'
        ordering = ['-updated_at']


class ConversationParticipant(models.Model):
    ROLE_CHOICES = [
        ('member', 'Member'),
        ('admin', 'Admin'),
    ]

    conversation = models.ForeignKey(Conversation, on_delete=models.CASCADE, related_name='memberships')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='conversation_memberships')
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='member')
    is_muted = models.BooleanField(default=False)
    last_read_at = models.DateTimeField(null=True, blank=True)
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'conversation_participants'
        constraints = [
            models.UniqueConstraint(fields=['conversation', 'user'], name='uniq_conversation_participant'),
        ]


class ChatMessage(models.Model):
    uuid = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    conversation = models.ForeignKey(Conversation, on_delete=models.CASCADE, related_name='messages')
    sender = models.ForeignKey(User, on_delete=models.CASCADE, related_name='chat_messages')
    content = models.TextField()
    reply_to = models.ForeignKey('self', on_delete=models.SET_NULL, null=True, blank=True, related_name='replies')
    edited_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.sender_id}: {self.content[:50]}"

    class Meta:
        db_table = 'chat_messages'
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['conversation', 'created_at'], name='idx_message_conv_created'),
        ]


class ChatAttachment(models.Model):
    IMAGE_EXTENSIONS = ('.jpg', '.jpeg', '.png', '.gif', '.webp')
    DOCUMENT_EXTENSIONS = ('.pdf', '.doc', '.docx', '.xls', '.xlsx', '.txt', '.csv')

    message = models.ForeignKey(ChatMessage, on_delete=models.CASCADE, related_name='attachments')
    file = models.FileField(upload_to='chat/attachments/')
    original_filename = models.CharField(max_length=255)
    mime_type = models.CharField(max_length=100, blank=True)
    size = models.PositiveIntegerField(default=0)
    uploaded_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)

    @property
    def extension(self):
        return os.path.splitext(self.original_filename)[1].lower()

    @property
    def is_image(self):
        return self.mime_type.startswith('image/') or self.extension in self.IMAGE_EXTENSIONS

    @property
    def is_document(self):
        return self.extension in self.DOCUMENT_EXTENSIONS

    class Meta:
        db_table = 'chat_attachments'
