from django.contrib import admin
from .models import ChatAttachment, ChatMessage, Conversation, ConversationParticipant


class ConversationParticipantInline(admin.TabularInline):
    model = ConversationParticipant
    extra = 0


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'type', 'organization', 'created_by', 'updated_at']
    list_filter = ['type']
    search_fields = ['name']
    inlines = [ConversationParticipantInline]


class ChatAttachmentInline(admin.TabularInline):
    model = ChatAttachment
    extra = 0


@admin.register(ChatMessage)
class ChatMessageAdmin(admin.ModelAdmin):
    list_display = ['id', 'conversation', 'sender', 'created_at']
    search_fields = ['content']
    inlines = [ChatAttachmentInline]
