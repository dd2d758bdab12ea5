import logging

from .models import Notification

logger = logging.getLogger('campus.notifications')


def notify_user(user, text, target_url='', sender=None, organization=None):
    """Create a notification for one user; returns the Notification"""
    notification = Notification.objects.create(
        user=user,
        organization=organization or getattr(user, 'organization', None),
        sender=sender,
        text=text,
        target_url=target_url or '',
    )
    logger.debug(f"Notification {notification.uuid} created for user {user.pk}")
    return notification


def notify_users(users, text, target_url='', sender=None, organization=None):
    """Notify several users at once, skipping the sender"""
    notifications = [
        Notification(
            user=user,
            organization=organization or getattr(user, 'organization', None),
            sender=sender,
            text=text,
            target_url=target_url or '',
        )
        for user in users
        if sender is None or user.pk != sender.pk
    ]
    return Notification.objects.bulk_create(notifications)
