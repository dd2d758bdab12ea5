from rest_framework import serializers
from campus.core.models import User
from .models import ChatAttachment, ChatMessage, Conversation, ConversationParticipant

MESSAGE_MAX_LENGTH = 5000
REPLY_PREVIEW_LENGTH = 100


def formatted_size(size):
    for unit in ('B', 'KB', 'MB'):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == 'B' else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


class ChatUserSerializer(serializers.ModelSerializer):
    name = serializers.CharField(source='display_name', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'name', 'email', 'role', 'avatar']
        read_only_fields = fields


class ChatAttachmentSerializer(serializers.ModelSerializer):
    filename = serializers.CharField(source='original_filename', read_only=True)
    url = serializers.FileField(source='file', read_only=True)
    formatted_size = serializers.SerializerMethodField()
    is_image = serializers.BooleanField(read_only=True)
    is_document = serializers.BooleanField(read_only=True)

    class Meta:
        model = ChatAttachment
        fields = ['id', 'filename', 'url', 'size', 'mime_type', 'formatted_size', 'is_image', 'is_document', 'created_at']
        read_only_fields = fields

    def get_formatted_size(self, obj):
        return formatted_size(obj.size)


class ChatMessageSerializer(serializers.ModelSerializer):
    sender = ChatUserSerializer(read_only=True)
    attachments = ChatAttachmentSerializer(many=True, read_only=True)
    is_from_me = serializers.SerializerMethodField()
    reply_to = serializers.SerializerMethodField()

    class Meta:
        model = ChatMessage
        fields = ['id', 'uuid', 'content', 'sender', 'is_from_me', 'reply_to', 'attachments', 'edited_at', 'created_at']
        read_only_fields = fields

    def get_is_from_me(self, obj):
        user = self.context.get('user')
        return user is not None and obj.sender_id == user.pk

    def get_reply_to(self, obj):
        if not obj.reply_to_id:
            return None
        return {'id': obj.reply_to_id, 'content': obj.reply_to.content[:REPLY_PREVIEW_LENGTH]}


class ConversationSerializer(serializers.ModelSerializer):
    """
    Conversation as seen by ``context['user']``: the other person for an
    individual conversation, the group block otherwise.
    """
    participant = serializers.SerializerMethodField()
    group = serializers.SerializerMethodField()
    last_message = serializers.SerializerMethodField()
    unread_count = serializers.SerializerMethodField()
    total_messages = serializers.SerializerMethodField()

    class Meta:
        model = Conversation
        fields = [
            'id', 'uuid', 'type', 'name', 'participant', 'group', 'last_message',
            'unread_count', 'total_messages', 'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_participant(self, obj):
        if obj.type != 'individual':
            return None
        other = obj.other_participant(self.context['user'])
        return ChatUserSerializer(other, context=self.context).data if other else None

    def get_group(self, obj):
        if obj.type != 'group':
            return None
        return {
            'id': obj.id,
            'name': obj.name,
            'avatar': obj.avatar.url if obj.avatar else None,
            'participants_count': obj.memberships.count(),
        }

    def get_last_message(self, obj):
        message = obj.messages.select_related('sender').order_by('-created_at', '-id').first()
        if message is None:
            return None
        return {
            'id': message.id,
            'content': message.content,
            'sender': {'id': message.sender_id, 'name': message.sender.display_name},
            'created_at': message.created_at,
        }

    def get_unread_count(self, obj):
        return obj.unread_count_for(self.context['user'])

    def get_total_messages(self, obj):
        return obj.messages.count()


class ParticipantSerializer(serializers.ModelSerializer):
    id = serializers.IntegerField(source='user.id', read_only=True)
    name = serializers.CharField(source='user.display_name', read_only=True)
    email = serializers.EmailField(source='user.email', read_only=True)
    avatar = serializers.ImageField(source='user.avatar', read_only=True)

    class Meta:
        model = ConversationParticipant
        fields = ['id', 'name', 'email', 'avatar', 'role', 'is_muted', 'last_read_at', 'joined_at']
        read_only_fields = fields


class ConversationCreateSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=Conversation.TYPE_CHOICES)
    participant_id = serializers.IntegerField(required=False)
    group_name = serializers.CharField(required=False, allow_blank=True, max_length=255)
    participant_ids = serializers.ListField(child=serializers.IntegerField(), required=False)
    initial_message = serializers.CharField(required=False, allow_blank=True, max_length=MESSAGE_MAX_LENGTH)

    def validate(self, attrs):
        if attrs['type'] == 'individual':
            if not attrs.get('participant_id'):
                raise serializers.ValidationError({'participant_id': ['This field is required for an individual conversation.']})
        else:
            if not attrs.get('group_name'):
                raise serializers.ValidationError({'group_name': ['A group needs a name.']})
            if len(set(attrs.get('participant_ids') or [])) < 2:
                raise serializers.ValidationError({'participant_ids': ['A group needs at least 2 participants.']})
        return attrs


class ConversationUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(required=False, max_length=255)
    avatar = serializers.ImageField(required=False)


class SendMessageSerializer(serializers.Serializer):
    message = serializers.CharField(max_length=MESSAGE_MAX_LENGTH)
    reply_to = serializers.IntegerField(required=False, allow_null=True)


class ParticipantIdsSerializer(serializers.Serializer):
    participant_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)
