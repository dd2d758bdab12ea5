import uuid

from django.http import Http404
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from campus.core.utils import paginate_queryset
from .models import Notification
from .serializers import NotificationIdsSerializer, NotificationSerializer


def _get_notification(request, identifier):
    """Look a notification up by numeric id or by uuid, for the current user only"""
    queryset = Notification.objects.filter(user=request.user)
    if identifier.isdigit():
        return get_object_or_404(queryset, pk=int(identifier))
    try:
        value = uuid.UUID(identifier)
    except ValueError:
        raise Http404('No notification matches the given query.')
    return get_object_or_404(queryset, uuid=value)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def notification_list(request):
    """The current user's notifications, newest first; ?unread=true keeps unseen ones"""
    queryset = Notification.objects.filter(user=request.user).select_related('sender')
    unread = request.query_params.get('unread')
    if unread and unread.lower() in ('1', 'true', 'yes'):
        queryset = queryset.filter(is_seen=False)
    return Response(paginate_queryset(request, queryset, NotificationSerializer, default_page_size=15))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def notification_count(request):
    queryset = Notification.objects.filter(user=request.user)
    return Response({
        'unread': queryset.filter(is_seen=False).count(),
        'total': queryset.count(),
    })


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated])
def notification_detail(request, identifier):
    notification = _get_notification(request, identifier)
    if request.method == 'GET':
        return Response(NotificationSerializer(notification).data)
    notification.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def notification_mark_read(request, identifier):
    notification = _get_notification(request, identifier)
    if not notification.is_seen:
        notification.is_seen = True
        notification.save(update_fields=['is_seen'])
    return Response(NotificationSerializer(notification).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def notification_mark_list_read(request):
    serializer = NotificationIdsSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)
    updated = Notification.objects.filter(
        user=request.user, id__in=serializer.validated_data['ids'], is_seen=False
    ).update(is_seen=True)
    return Response({'updated_count': updated})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def notification_mark_all_read(request):
    updated = Notification.objects.filter(user=request.user, is_seen=False).update(is_seen=True)
    return Response({'updated_count': updated})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def notification_delete_list(request):
    serializer = NotificationIdsSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)
    deleted, _ = Notification.objects.filter(
        user=request.user, id__in=serializer.validated_data['ids']
    ).delete()
    return Response({'deleted_count': deleted})
