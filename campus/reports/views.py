import logging
from datetime import timedelta
from decimal import Decimal

from django.db.models import Count, F, Sum
from django.db.models.functions import TruncMonth
from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from campus.core.cache_utils import cache_dashboard, get_cached_dashboard
from campus.core.permissions import IsCommercialManager
from campus.core.utils import get_request_organization, parse_date_param
from campus.expenses.models import Expense
from campus.expenses.utils import expense_dashboard as build_expense_dashboard
from campus.expenses.utils import filter_expenses
from campus.sales.models import Invoice, Quote

logger = logging.getLogger('campus.reports')

REVENUE_STATUSES = ['paid', 'partially_paid', 'sent', 'overdue']
CONVERTED_QUOTE_STATUSES = ['accepted', 'invoiced']


def _period(request):
    date_from = parse_date_param(request.query_params.get('date_from'), 'date_from')
    date_to = parse_date_param(request.query_params.get('date_to'), 'date_to')
    return date_from, date_to


def _in_period(queryset, field, date_from, date_to):
    if date_from:
        queryset = queryset.filter(**{f'{field}__gte': date_from})
    if date_to:
        queryset = queryset.filter(**{f'{field}__lte': date_to})
    return queryset


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def commercial_dashboard(request):
    """
    Commercial KPIs of the organization: revenue, pending amounts, quote
    conversion, expenses and margin, monthly revenue and top clients.

    Cached per organization and period; any commercial write invalidates it.
    """
    organization = get_request_organization(request)
    date_from, date_to = _period(request)

    cached, cache_key = get_cached_dashboard(
        organization.id, 'commercial', date_from=str(date_from), date_to=str(date_to)
    )
    if cached is not None:
        return Response(cached)

    invoices = _in_period(Invoice.objects.filter(organization=organization), 'issue_date', date_from, date_to)
    quotes = _in_period(Quote.objects.filter(organization=organization), 'issue_date', date_from, date_to)
    expenses = _in_period(Expense.objects.filter(organization=organization), 'expense_date', date_from, date_to)

    revenue_invoices = invoices.filter(status__in=REVENUE_STATUSES)
    revenue = revenue_invoices.aggregate(total=Sum('total_ttc'))['total'] or Decimal('0.00')
    collected = invoices.aggregate(total=Sum('amount_paid'))['total'] or Decimal('0.00')
    pending = invoices.filter(status__in=Invoice.UNPAID_STATUSES).aggregate(
        total=Sum(F('total_ttc') - F('amount_paid'))
    )['total'] or Decimal('0.00')
    overdue_count = invoices.filter(status='overdue').count()
    expenses_total = expenses.aggregate(total=Sum('amount'))['total'] or Decimal('0.00')

    quotes_by_status = {choice: 0 for choice, _ in Quote.STATUS_CHOICES}
    for row in quotes.values('status').annotate(count=Count('id')):
        quotes_by_status[row['status']] = row['count']
    total_quotes = sum(quotes_by_status.values())
    converted = sum(quotes_by_status[key] for key in CONVERTED_QUOTE_STATUSES)
    conversion_rate = round(converted / total_quotes * 100, 1) if total_quotes else 0

    monthly_source = revenue_invoices
    if not date_from:
        monthly_source = monthly_source.filter(issue_date__gte=timezone.localdate() - timedelta(days=365))
    monthly_revenue = [
        {'month': row['month'].strftime('%Y-%m'), 'revenue': float(row['total'] or 0), 'count': row['count']}
        for row in monthly_source.annotate(month=TruncMonth('issue_date'))
        .values('month')
        .annotate(total=Sum('total_ttc'), count=Count('id'))
        .order_by('month')
    ]

    top_clients = [
        {
            'client_id': row['client'],
            'name': row['client__company_name'] or f"{row['client__first_name']} {row['client__last_name']}".strip(),
            'revenue': float(row['total'] or 0),
            'invoices': row['count'],
        }
        for row in revenue_invoices.values(
            'client', 'client__company_name', 'client__first_name', 'client__last_name'
        ).annotate(total=Sum('total_ttc'), count=Count('id')).order_by('-total')[:5]
    ]

    data = {
        'period': {
            'from': date_from.isoformat() if date_from else None,
            'to': date_to.isoformat() if date_to else None,
        },
        'summary': {
            'revenue': float(revenue),
            'collected': float(collected),
            'pending_amount': float(pending),
            'overdue_invoices': overdue_count,
            'expenses_total': float(expenses_total),
            'margin': float(revenue - expenses_total),
            'invoices_count': invoices.count(),
            'quotes_count': total_quotes,
            'conversion_rate': conversion_rate,
            'clients_count': organization.clients.count(),
        },
        'quotes_by_status': quotes_by_status,
        'monthly_revenue': monthly_revenue,
        'top_clients': top_clients,
    }
    cache_dashboard(cache_key, data)
    return Response(data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def expense_dashboard(request):
    """Expense charts (by category, by month, by contract type) with the list filters"""
    organization = get_request_organization(request)
    params = request.query_params
    filter_keys = ('date_from', 'date_to', 'category', 'role', 'contract_type')

    cached, cache_key = get_cached_dashboard(
        organization.id, 'expenses', **{key: params.get(key, '') for key in filter_keys}
    )
    if cached is not None:
        return Response(cached)

    queryset = filter_expenses(
        Expense.objects.filter(organization=organization), params, with_search=False, with_amounts=False
    )
    data = build_expense_dashboard(queryset)
    data['top_expenses'] = [
        {'id': expense.id, 'label': expense.label, 'category': expense.category,
         'amount': float(expense.amount), 'expense_date': expense.expense_date.isoformat()}
        for expense in queryset.order_by('-amount')[:5]
    ]
    data['recent_expenses'] = [
        {'id': expense.id, 'label': expense.label, 'category': expense.category,
         'amount': float(expense.amount), 'expense_date': expense.expense_date.isoformat()}
        for expense in queryset.order_by('-expense_date', '-id')[:10]
    ]
    cache_dashboard(cache_key, data)
    return Response(data)
