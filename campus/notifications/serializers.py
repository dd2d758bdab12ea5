from rest_framework import serializers
from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    sender_name = serializers.SerializerMethodField()

    class Meta:
        model = Notification
        fields = ['id', 'uuid', 'text', 'target_url', 'is_seen', 'sender', 'sender_name', 'created_at']
        read_only_fields = fields

    def get_sender_name(self, obj):
        return obj.sender.display_name if obj.sender_id else None


class NotificationIdsSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)
