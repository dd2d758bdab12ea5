"""
Expense filters, document handling and dashboard aggregation
"""
import logging
import mimetypes
import os
from decimal import Decimal

from django.conf import settings
from django.db.models import Avg, Count, Q, Sum
from django.db.models.functions import TruncMonth

from campus.core.utils import parse_date_param, parse_decimal_param
from .models import HR_CATEGORY, ExpenseDocument

logger = logging.getLogger('campus.expenses')

ALLOWED_DOCUMENT_EXTENSIONS = ('.pdf', '.jpg', '.jpeg', '.png', '.doc', '.docx', '.xlsx')


def filter_expenses(queryset, params, with_search=True, with_amounts=True):
    """Apply the expense list filters; bad dates or numbers raise a 422"""
    search = params.get('search')
    if with_search and search:
        queryset = queryset.filter(
            Q(label__icontains=search) | Q(vendor__icontains=search) | Q(description__icontains=search)
        )
    date_from = parse_date_param(params.get('date_from'), 'date_from')
    date_to = parse_date_param(params.get('date_to'), 'date_to')
    if date_from:
        queryset = queryset.filter(expense_date__gte=date_from)
    if date_to:
        queryset = queryset.filter(expense_date__lte=date_to)
    if params.get('category'):
        queryset = queryset.filter(category=params['category'])
    if with_amounts:
        amount_min = parse_decimal_param(params.get('amount_min'), 'amount_min')
        amount_max = parse_decimal_param(params.get('amount_max'), 'amount_max')
        if amount_min is not None:
            queryset = queryset.filter(amount__gte=amount_min)
        if amount_max is not None:
            queryset = queryset.filter(amount__lte=amount_max)
    if params.get('role'):
        queryset = queryset.filter(role=params['role'])
    if params.get('contract_type'):
        queryset = queryset.filter(contract_type=params['contract_type'])
    return queryset


def validate_documents(files, field_name='documents'):
    """Returns a list of error messages for uploads with a bad extension or size"""
    errors = []
    max_size = settings.EXPENSE_DOCUMENT_MAX_SIZE
    for upload in files:
        extension = os.path.splitext(upload.name)[1].lower()
        if extension not in ALLOWED_DOCUMENT_EXTENSIONS:
            errors.append(f'{upload.name}: allowed formats are pdf, jpg, jpeg, png, doc, docx, xlsx.')
        elif upload.size > max_size:
            errors.append(f'{upload.name}: the file must not exceed {max_size // (1024 * 1024)} MB.')
    return errors


def attach_documents(expense, files, user=None):
    documents = []
    for upload in files:
        documents.append(ExpenseDocument.objects.create(
            expense=expense,
            file=upload,
            original_name=upload.name,
            mime_type=getattr(upload, 'content_type', None) or mimetypes.guess_type(upload.name)[0] or '',
            size=upload.size,
            uploaded_by=user,
        ))
    return documents


def delete_documents(documents):
    """Remove stored files along with their rows"""
    count = 0
    for document in documents:
        if document.file:
            document.file.delete(save=False)
        document.delete()
        count += 1
    return count


def expense_statistics(queryset):
    """Total, HR expenses and everything else"""
    total = queryset.aggregate(total=Sum('amount'))['total'] or Decimal('0.00')
    human_resources = queryset.filter(category=HR_CATEGORY).aggregate(total=Sum('amount'))['total'] or Decimal('0.00')
    return {
        'total': float(total),
        'human_resources': float(human_resources),
        'environmental': float(total - human_resources),
        'count': queryset.count(),
    }


def expense_dashboard(queryset):
    """Charts and summary for the expense dashboard"""
    by_category = [
        {'name': row['category'], 'value': float(row['total'] or 0)}
        for row in queryset.values('category').annotate(total=Sum('amount')).order_by('-total')
    ]
    monthly = [
        {'month': row['month'].strftime('%Y-%m'), 'value': float(row['total'] or 0)}
        for row in queryset.exclude(expense_date__isnull=True)
        .annotate(month=TruncMonth('expense_date'))
        .values('month')
        .annotate(total=Sum('amount'))
        .order_by('month')
    ]
    by_contract_type = [
        {'name': row['contract_type'], 'value': float(row['total'] or 0)}
        for row in queryset.exclude(contract_type__isnull=True).exclude(contract_type='')
        .values('contract_type').annotate(total=Sum('amount')).order_by('-total')
    ]
    summary = queryset.aggregate(total=Sum('amount'), count=Count('id'), average=Avg('amount'))
    return {
        'charts': {
            'by_category': by_category,
            'monthly_evolution': monthly,
            'by_contract_type': by_contract_type,
        },
        'summary': {
            'total_expenses': float(summary['total'] or 0),
            'total_count': summary['count'],
            'average_expense': round(float(summary['average'] or 0), 2),
        },
    }
