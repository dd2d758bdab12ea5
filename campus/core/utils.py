"""Shared helpers: audit logging, tenant resolution, pagination and query parsing"""
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation

from django.core.paginator import Paginator
from rest_framework.exceptions import ValidationError

from .exceptions import OrganizationRequired
from .models import AuditLog

logger = logging.getLogger(__name__)


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def get_request_organization(request):
    """Return the organization of the authenticated user or raise a 403"""
    user = getattr(request, 'user', None)
    organization = getattr(user, 'organization', None) if user is not None else None
    if organization is None:
        raise OrganizationRequired()
    return organization


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, object_name=None, object_reference=None,
                     organization=None):
    """
    Create an audit log entry

    Args:
        request: Django request object (for user, organization and IP) - optional if user is provided
        action: Action type (create, update, delete, status_change, etc.)
        model_name: Name of the model being acted upon
        object_id: ID of the object (as string)
        changes: Dictionary of changes made
        user: Optional user override (defaults to request.user if request provided)
        object_name: Human-readable name of the object (e.g., client name, quote number)
        object_reference: Reference identifier (e.g., quote or invoice number)
        organization: Optional organization override (defaults to the user's organization)
    """
    try:
        audit_user = None
        if user:
            audit_user = user
        elif request and hasattr(request, 'user'):
            audit_user = request.user

        if organization is None and audit_user is not None:
            organization = getattr(audit_user, 'organization', None)

        ip_address = get_client_ip(request) if request else None

        if not action or not model_name or object_id is None or object_id == '':
            logger.warning(f"Audit log creation skipped: missing required fields (action={action}, model_name={model_name}, object_id={object_id})")
            return None

        return AuditLog.objects.create(
            user=audit_user if audit_user and audit_user.is_authenticated else None,
            organization=organization,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            object_reference=object_reference,
            changes=changes or {},
            ip_address=ip_address
        )
    except Exception as e:
        # Auditing never breaks the main operation
        logger.error(f"Failed to create audit log: {str(e)}")
        return None


def paginate_queryset(request, queryset, serializer_class, default_page_size=15,
                      max_page_size=100, context=None):
    """
    Paginate a queryset with django's Paginator and serialize the page.

    Reads ``page`` and ``per_page`` (``limit`` is accepted as an alias).
    """
    try:
        page = int(request.query_params.get('page', 1))
        page_size = int(request.query_params.get('per_page', request.query_params.get('limit', default_page_size)))
    except (TypeError, ValueError):
        raise ValidationError({'page': ['page and per_page must be integers.']})
    page_size = max(1, min(page_size, max_page_size))

    paginator = Paginator(queryset, page_size)
    page_obj = paginator.get_page(page)
    serializer = serializer_class(page_obj, many=True, context=context or {'request': request})
    return {
        'results': serializer.data,
        'count': paginator.count,
        'next': page_obj.next_page_number() if page_obj.has_next() else None,
        'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
        'page': page_obj.number,
        'page_size': page_size,
        'total_pages': paginator.num_pages,
    }


def parse_date_param(value, field_name):
    """Parse a YYYY-MM-DD query parameter, 422 on bad input"""
    if not value:
        return None
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except (TypeError, ValueError):
        raise ValidationError({field_name: [f'Invalid date "{value}", expected YYYY-MM-DD.']})


def parse_decimal_param(value, field_name):
    """Parse a numeric query parameter, 422 on bad input"""
    if value in (None, ''):
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError({field_name: [f'Invalid number "{value}".']})


def parse_id_list(raw, field_name='ids'):
    """Accept a list of ids or a comma separated string"""
    if raw in (None, ''):
        return []
    if isinstance(raw, str):
        raw = [part for part in raw.split(',') if part.strip()]
    try:
        return [int(value) for value in raw]
    except (TypeError, ValueError):
        raise ValidationError({field_name: ['Must be a list of integer ids.']})
