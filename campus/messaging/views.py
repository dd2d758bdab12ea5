import logging

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from campus.core.exceptions import BusinessRuleViolation
from campus.core.models import User
from campus.core.permissions import IsOrganizationMember
from campus.core.utils import get_request_organization, paginate_queryset
from campus.notifications.utils import notify_user, notify_users
from .models import ChatAttachment, ChatMessage, Conversation, ConversationParticipant
from .serializers import (
    ChatAttachmentSerializer, ChatMessageSerializer, ChatUserSerializer, ConversationCreateSerializer,
    ConversationSerializer, ConversationUpdateSerializer, ParticipantIdsSerializer, ParticipantSerializer,
    SendMessageSerializer,
)

logger = logging.getLogger('campus.messaging')

PREVIEW_LENGTH = 100


def conversation_url(conversation):
    return f"/conversations/{conversation.id}"


def user_conversations(request):
    """Conversations of the current organization the user takes part in"""
    organization = get_request_organization(request)
    return Conversation.objects.filter(organization=organization, memberships__user=request.user).distinct()


def get_conversation(request, pk):
    return get_object_or_404(user_conversations(request), pk=pk)


def _membership(conversation, user):
    return conversation.memberships.filter(user=user).first()


def _require_group_admin(conversation, user, action):
    if conversation.type != 'group':
        raise BusinessRuleViolation('This action is only available for group conversations.', code='not_a_group')
    membership = _membership(conversation, user)
    if membership is None or membership.role != 'admin':
        raise PermissionDenied(f'Only group admins can {action}.')
    return membership


def _organization_users(organization, ids):
    """Active users of the organization for the given ids; 422 when one is missing"""
    ids = set(ids)
    users = list(User.objects.filter(organization=organization, is_active=True, pk__in=ids))
    missing = ids - {user.pk for user in users}
    if missing:
        raise BusinessRuleViolation(
            f"Users not found in this organization: {', '.join(str(i) for i in sorted(missing))}",
            code='participant_not_in_organization',
        )
    return users


def _conversation_data(conversation, user):
    return ConversationSerializer(conversation, context={'user': user}).data


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsOrganizationMember])
def conversation_list_create(request):
    """
    GET: the user's conversations, most recently active first, with unread
    counts. Filters: ``type``, ``search`` (name, other participants, message
    content). POST: create an individual or group conversation.
    """
    user = request.user
    organization = get_request_organization(request)

    if request.method == 'GET':
        queryset = user_conversations(request)
        conversation_type = request.query_params.get('type')
        if conversation_type in ('individual', 'group'):
            queryset = queryset.filter(type=conversation_type)

        search = request.query_params.get('search', '').strip()
        if search:
            others = ConversationParticipant.objects.exclude(user=user).filter(
                Q(user__first_name__icontains=search) |
                Q(user__last_name__icontains=search) |
                Q(user__username__icontains=search) |
                Q(user__email__icontains=search)
            ).values('conversation_id')
            queryset = queryset.filter(
                Q(name__icontains=search) |
                Q(id__in=others) |
                Q(messages__content__icontains=search)
            ).distinct()

        queryset = queryset.order_by('-updated_at', '-id')
        data = paginate_queryset(
            request, queryset, ConversationSerializer, default_page_size=20, context={'user': user}
        )
        all_conversations = user_conversations(request)
        data['stats'] = {
            'total_conversations': all_conversations.count(),
            'individual_count': all_conversations.filter(type='individual').count(),
            'group_count': all_conversations.filter(type='group').count(),
            'total_unread': sum(conversation.unread_count_for(user) for conversation in all_conversations),
        }
        return Response(data)

    serializer = ConversationCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)
    data = serializer.validated_data

    if data['type'] == 'individual':
        if data['participant_id'] == user.pk:
            raise BusinessRuleViolation('You cannot start a conversation with yourself.', code='self_conversation')
        other = _organization_users(organization, [data['participant_id']])[0]
        existing = (
            Conversation.objects.filter(organization=organization, type='individual', memberships__user=user)
            .filter(memberships__user=other)
            .first()
        )
        if existing is not None:
            return Response({
                'conversation': _conversation_data(existing, user),
                'message': 'Conversation already exists',
            })
        with transaction.atomic():
            conversation = Conversation.objects.create(organization=organization, type='individual', created_by=user)
            conversation.add_participant(user, role='admin')
            conversation.add_participant(other)
    else:
        members = _organization_users(organization, [pk for pk in data['participant_ids'] if pk != user.pk])
        with transaction.atomic():
            conversation = Conversation.objects.create(
                organization=organization, type='group', name=data['group_name'], created_by=user
            )
            conversation.add_participant(user, role='admin')
            for member in members:
                conversation.add_participant(member)
        notify_users(
            members,
            f'Vous avez été ajouté au groupe "{conversation.name}" par {user.display_name}',
            target_url=conversation_url(conversation),
            sender=user,
            organization=organization,
        )

    if data.get('initial_message'):
        ChatMessage.objects.create(conversation=conversation, sender=user, content=data['initial_message'])

    logger.info(f"Conversation {conversation.uuid} ({conversation.type}) created by user {user.pk}")
    return Response({'conversation': _conversation_data(conversation, user)}, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'PUT'])
@permission_classes([IsAuthenticated, IsOrganizationMember])
def conversation_detail(request, pk):
    """Retrieve a conversation; group admins may rename it or change its avatar"""
    conversation = get_conversation(request, pk)
    if request.method == 'GET':
        return Response({'conversation': _conversation_data(conversation, request.user)})

    _require_group_admin(conversation, request.user, 'update the group')
    serializer = ConversationUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)
    if 'name' in serializer.validated_data:
        conversation.name = serializer.validated_data['name']
    if 'avatar' in serializer.validated_data:
        conversation.avatar = serializer.validated_data['avatar']
    conversation.save()
    return Response({'conversation': _conversation_data(conversation, request.user)})


def _uploaded_attachments(request):
    files = request.FILES.getlist('attachments') + request.FILES.getlist('attachments[]')
    too_large = [upload.name for upload in files if upload.size > settings.CHAT_ATTACHMENT_MAX_SIZE]
    if too_large:
        max_mb = settings.CHAT_ATTACHMENT_MAX_SIZE // (1024 * 1024)
        raise BusinessRuleViolation(
            f"Attachments must not exceed {max_mb} MB: {', '.join(too_large)}", code='attachment_too_large'
        )
    return files


def _notify_new_message(conversation, message, sender):
    preview = message.content
    if len(preview) > PREVIEW_LENGTH:
        preview = preview[:PREVIEW_LENGTH] + '...'
    if conversation.type == 'individual':
        text = f"Nouveau message de {sender.display_name}\n{sender.display_name}: {preview}"
    else:
        text = f"Nouveau message dans {conversation.name}\n{sender.display_name} dans \"{conversation.name}\": {preview}"
    recipients = [member for member in conversation.participants.all() if member.pk != sender.pk]
    notify_users(recipients, text, target_url=conversation_url(conversation), sender=sender,
                 organization=conversation.organization)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsOrganizationMember])
def conversation_messages(request, pk):
    """
    GET: messages, newest page first (``per_page`` 50, ``before`` message id
    cursor, ``search``); each page is returned oldest to newest.
    POST: send ``message`` with optional ``reply_to`` and ``attachments``.
    """
    conversation = get_conversation(request, pk)
    user = request.user

    if request.method == 'GET':
        queryset = conversation.messages.select_related('sender', 'reply_to').prefetch_related('attachments')
        before = request.query_params.get('before') or request.query_params.get('before_id')
        if before:
            if not str(before).isdigit():
                return Response({'before': ['Must be a message id.']}, status=status.HTTP_422_UNPROCESSABLE_ENTITY)
            queryset = queryset.filter(id__lt=int(before))
        search = request.query_params.get('search', '').strip()
        if search:
            queryset = queryset.filter(content__icontains=search)

        data = paginate_queryset(
            request, queryset.order_by('-created_at', '-id'), ChatMessageSerializer,
            default_page_size=50, context={'user': user}
        )
        data['results'] = list(reversed(data['results']))
        data['has_more'] = data['next'] is not None
        return Response(data)

    serializer = SendMessageSerializer(data={
        'message': request.data.get('message', request.data.get('content')),
        'reply_to': request.data.get('reply_to') or None,
    })
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)

    reply_to = None
    reply_to_id = serializer.validated_data.get('reply_to')
    if reply_to_id:
        reply_to = conversation.messages.filter(pk=reply_to_id).first()
        if reply_to is None:
            return Response(
                {'reply_to': ['The replied message does not belong to this conversation.']},
                status=status.HTTP_422_UNPROCESSABLE_ENTITY,
            )

    files = _uploaded_attachments(request)
    with transaction.atomic():
        message = ChatMessage.objects.create(
            conversation=conversation,
            sender=user,
            content=serializer.validated_data['message'],
            reply_to=reply_to,
        )
        for upload in files:
            ChatAttachment.objects.create(
                message=message,
                file=upload,
                original_filename=upload.name,
                mime_type=getattr(upload, 'content_type', '') or '',
                size=upload.size,
                uploaded_by=user,
            )
        conversation.touch()
        conversation.mark_read_for(user)

    _notify_new_message(conversation, message, user)
    return Response(
        {'message': ChatMessageSerializer(message, context={'user': user}).data},
        status=status.HTTP_201_CREATED,
    )


@api_view(['POST', 'PUT'])
@permission_classes([IsAuthenticated, IsOrganizationMember])
def conversation_mark_read(request, pk):
    conversation = get_conversation(request, pk)
    conversation.mark_read_for(request.user)
    return Response({'unread_count': conversation.unread_count_for(request.user)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsOrganizationMember])
def conversation_files(request, pk):
    """Every attachment shared in the conversation, newest first"""
    conversation = get_conversation(request, pk)
    attachments = (
        ChatAttachment.objects.filter(message__conversation=conversation)
        .select_related('message', 'message__sender')
        .order_by('-created_at', '-id')
    )
    files = []
    for attachment in attachments:
        item = ChatAttachmentSerializer(attachment, context={'request': request}).data
        item['uploaded_by'] = ChatUserSerializer(attachment.message.sender, context={'request': request}).data
        item['message_id'] = attachment.message_id
        item['message_content'] = attachment.message.content
        files.append(item)
    return Response({'files': files, 'total_files': len(files)})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsOrganizationMember])
def conversation_participants(request, pk):
    """List participants, or (group admins) add some"""
    conversation = get_conversation(request, pk)

    if request.method == 'GET':
        memberships = conversation.memberships.select_related('user').order_by('joined_at', 'id')
        data = ParticipantSerializer(memberships, many=True, context={'request': request}).data
        return Response({'participants': data, 'total': len(data)})

    _require_group_admin(conversation, request.user, 'add participants')
    serializer = ParticipantIdsSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)

    users = _organization_users(conversation.organization, serializer.validated_data['participant_ids'])
    current = set(conversation.memberships.values_list('user_id', flat=True))
    added = [user for user in users if user.pk not in current]
    with transaction.atomic():
        for user in added:
            conversation.add_participant(user)

    if added:
        sender = request.user
        notify_users(
            added,
            f'Vous avez été ajouté au groupe\n{sender.display_name} vous a ajouté au groupe "{conversation.name}"',
            target_url=conversation_url(conversation), sender=sender, organization=conversation.organization,
        )
        others = conversation.participants.exclude(pk__in=[user.pk for user in added])
        notify_users(
            others,
            f'Nouveau membre dans le groupe\n{sender.display_name} a ajouté {len(added)} membre(s) au groupe "{conversation.name}"',
            target_url=conversation_url(conversation), sender=sender, organization=conversation.organization,
        )
    return Response({
        'conversation': _conversation_data(conversation, request.user),
        'added_participants': [user.pk for user in added],
    })


def _remove_member(conversation, membership):
    """
    Remove a participant, refusing to leave other members without an admin.
    A group whose last member leaves is deleted; returns True in that case.
    """
    if conversation.memberships.count() == 1:
        conversation.delete()
        return True
    if membership.role == 'admin' and conversation.memberships.filter(role='admin').count() == 1:
        raise BusinessRuleViolation('Cannot remove the last admin from the group.', code='last_admin')
    membership.delete()
    return False


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsOrganizationMember])
def conversation_remove_participant(request, pk, user_id):
    conversation = get_conversation(request, pk)
    user = request.user
    if conversation.type != 'group':
        raise BusinessRuleViolation('Only group conversations can have participants removed.', code='not_a_group')
    if user_id != user.pk:
        _require_group_admin(conversation, user, 'remove other participants')

    membership = get_object_or_404(conversation.memberships.select_related('user'), user_id=user_id)
    removed = membership.user
    if _remove_member(conversation, membership):
        return Response({'conversation': None, 'deleted': True})

    if removed.pk != user.pk:
        notify_user(
            removed,
            f'Vous avez été retiré du groupe\n{user.display_name} vous a retiré du groupe "{conversation.name}"',
            target_url='/conversations', sender=user, organization=conversation.organization,
        )
    notify_users(
        conversation.participants.all(),
        f'Membre retiré du groupe\n{user.display_name} a retiré {removed.display_name} du groupe "{conversation.name}"',
        target_url=conversation_url(conversation), sender=user, organization=conversation.organization,
    )
    return Response({'conversation': _conversation_data(conversation, user)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsOrganizationMember])
def conversation_leave(request, pk):
    conversation = get_conversation(request, pk)
    user = request.user
    if conversation.type != 'group':
        raise BusinessRuleViolation('Only group conversations can be left.', code='not_a_group')
    if _remove_member(conversation, _membership(conversation, user)):
        return Response({'message': 'You left the group.', 'deleted': True})
    notify_users(
        conversation.participants.all(),
        f'Membre a quitté le groupe\n{user.display_name} a quitté le groupe "{conversation.name}"',
        target_url=conversation_url(conversation), sender=user, organization=conversation.organization,
    )
    return Response({'message': 'You left the group.', 'deleted': False})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsOrganizationMember])
def chat_available_users(request):
    """Active users of the organization the current user can talk to; ``search`` and ``role`` filters"""
    organization = get_request_organization(request)
    queryset = User.objects.filter(organization=organization, is_active=True).exclude(pk=request.user.pk)

    role = request.query_params.get('role') or request.query_params.get('type')
    if role and role != 'all':
        queryset = queryset.filter(role=role[:-1] if role.endswith('s') else role)

    search = request.query_params.get('search', '').strip()
    if search:
        queryset = queryset.filter(
            Q(first_name__icontains=search) |
            Q(last_name__icontains=search) |
            Q(username__icontains=search) |
            Q(email__icontains=search)
        )

    users = ChatUserSerializer(queryset.order_by('first_name', 'last_name', 'username'), many=True,
                               context={'request': request}).data
    counts = {key: 0 for key, _ in User.ROLE_CHOICES}
    for item in users:
        counts[item['role']] = counts.get(item['role'], 0) + 1
    return Response({'users': users, 'total': len(users), 'by_role': counts})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsOrganizationMember])
def chat_unread_total(request):
    conversations = user_conversations(request)
    total = sum(conversation.unread_count_for(request.user) for conversation in conversations)
    return Response({'unread_count': total})
