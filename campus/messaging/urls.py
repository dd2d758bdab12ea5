from django.urls import path
from .views import (
    conversation_list_create, conversation_detail, conversation_messages, conversation_mark_read,
    conversation_files, conversation_participants, conversation_remove_participant, conversation_leave,
    chat_available_users, chat_unread_total
)

urlpatterns = [
    path('conversations/', conversation_list_create, name='conversation-list-create'),
    path('conversations/<int:pk>/', conversation_detail, name='conversation-detail'),
    path('conversations/<int:pk>/messages/', conversation_messages, name='conversation-messages'),
    path('conversations/<int:pk>/mark-read/', conversation_mark_read, name='conversation-mark-read'),
    path('conversations/<int:pk>/files/', conversation_files, name='conversation-files'),
    path('conversations/<int:pk>/participants/', conversation_participants, name='conversation-participants'),
    path('conversations/<int:pk>/participants/<int:user_id>/', conversation_remove_participant,
         name='conversation-remove-participant'),
    path('conversations/<int:pk>/leave/', conversation_leave, name='conversation-leave'),
    path('chat/users/', chat_available_users, name='chat-available-users'),
    path('chat/unread-count/', chat_unread_total, name='chat-unread-count'),
]
