import json
import logging
import os
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.db.models import Q, Sum
from django.http import FileResponse, HttpResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from campus.core.exceptions import BusinessRuleViolation
from campus.core.exports import xlsx_response
from campus.core.permissions import IsCommercialManager
from campus.core.utils import (
    create_audit_log, get_request_organization, paginate_queryset, parse_date_param, parse_decimal_param,
    parse_id_list,
)
from campus.notifications.utils import notify_user
from .documents import (
    invoices_workbook, organization_info, quotes_workbook, render_invoice_pdf, render_quote_pdf,
    send_document_email,
)
from .models import Invoice, InvoiceItem, Quote
from .serializers import (
    DEFAULT_PAYMENT_DAYS, InvoicePaymentSerializer, InvoiceSerializer, QuoteSerializer, QuoteStatusSerializer,
    SendEmailSerializer,
)
from .utils import INVOICE_PREFIX, QUOTE_PREFIX, copy_lines, money, next_document_number

logger = logging.getLogger('campus.sales')

SIGNED_DOCUMENT_EXTENSIONS = ('.pdf', '.jpg', '.jpeg', '.png')
CLIENT_TYPE_ALIASES = {
    'particulier': 'private',
    'private': 'private',
    'company': 'professional',
    'entreprise': 'professional',
    'professional': 'professional',
}


def _request_payload(request):
    """Mutable copy of the request body with the ``items`` list split off"""
    data = request.data.dict() if hasattr(request.data, 'dict') else dict(request.data)
    items_data = data.pop('items', None)
    if isinstance(items_data, str):
        # multipart forms send the items as a JSON string
        try:
            items_data = json.loads(items_data)
        except ValueError:
            raise ValidationError({'items': ['Items must be a JSON list.']})
    return data, items_data


def _amount_range(request):
    """min/max amount filters; price_from/price_to are aliases"""
    params = request.query_params
    minimum = parse_decimal_param(params.get('min_amount', params.get('price_from')), 'min_amount')
    maximum = parse_decimal_param(params.get('max_amount', params.get('price_to')), 'max_amount')
    if minimum is not None and maximum is not None and minimum > maximum:
        return None, None, {'min_amount': ['Minimum amount must be lower than or equal to the maximum amount.']}
    return minimum, maximum, None


def _date_range(request):
    date_from = parse_date_param(request.query_params.get('date_from'), 'date_from')
    date_to = parse_date_param(request.query_params.get('date_to'), 'date_to')
    if date_from and date_to and date_from > date_to:
        return None, None, {'date_from': ['Start date must be before or equal to the end date.']}
    return date_from, date_to, None


def _client_search(prefix, search):
    return (
        Q(**{f'{prefix}company_name__icontains': search}) |
        Q(**{f'{prefix}first_name__icontains': search}) |
        Q(**{f'{prefix}last_name__icontains': search}) |
        Q(**{f'{prefix}email__icontains': search})
    )


def _pdf_response(pdf_bytes, filename, download=False):
    response = HttpResponse(pdf_bytes, content_type='application/pdf')
    disposition = 'attachment' if download else 'inline'
    response['Content-Disposition'] = f'{disposition}; filename="{filename}"'
    return response


def _send_email(request, document, number, kind, pdf_bytes):
    """Validate recipients and mail the PDF; returns the list of recipients"""
    serializer = SendEmailSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    payload = serializer.validated_data

    recipients = payload.get('to') or ([document.client.email] if document.client.email else [])
    if not recipients:
        raise BusinessRuleViolation('No recipient e-mail address: the client has no e-mail.', code='missing_recipient')

    organization = document.organization
    subject = payload.get('subject') or f"{kind} {number} - {organization.name}"
    message = payload.get('message') or (
        f"Bonjour,\n\nVeuillez trouver ci-joint {kind.lower()} {number}.\n\nCordialement,\n{organization.name}"
    )
    send_document_email(
        recipients, subject, message, pdf_bytes, f"{number}.pdf",
        cc=payload.get('cc'), bcc=payload.get('bcc'), reply_to=organization.email or None,
    )
    return recipients


# Quotes

def quote_queryset(organization):
    return Quote.objects.filter(organization=organization).select_related('client', 'organization')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def quote_list_create(request):
    """List quotes with filters, or create a quote with its items"""
    organization = get_request_organization(request)

    if request.method == 'GET':
        queryset = quote_queryset(organization).prefetch_related('items')
        params = request.query_params

        minimum, maximum, error = _amount_range(request)
        if error:
            return Response(error, status=status.HTTP_422_UNPROCESSABLE_ENTITY)
        date_from, date_to, error = _date_range(request)
        if error:
            return Response(error, status=status.HTTP_422_UNPROCESSABLE_ENTITY)

        search = params.get('search')
        if search:
            queryset = queryset.filter(
                Q(quote_number__icontains=search) | Q(title__icontains=search) | _client_search('client__', search)
            )
        if params.get('status'):
            queryset = queryset.filter(status=params['status'])
        if params.get('client'):
            queryset = queryset.filter(client_id=params['client'])
        client_type = CLIENT_TYPE_ALIASES.get((params.get('client_type') or '').lower())
        if client_type:
            queryset = queryset.filter(client__client_type=client_type)
        if minimum is not None:
            queryset = queryset.filter(total_ttc__gte=minimum)
        if maximum is not None:
            queryset = queryset.filter(total_ttc__lte=maximum)
        if date_from:
            queryset = queryset.filter(issue_date__gte=date_from)
        if date_to:
            queryset = queryset.filter(issue_date__lte=date_to)

        queryset = queryset.order_by('-issue_date', '-id')
        return Response(paginate_queryset(request, queryset, QuoteSerializer, default_page_size=12, max_page_size=100))

    data, items_data = _request_payload(request)
    serializer = QuoteSerializer(data=data, context={
        'request': request, 'organization': organization, 'items_data': items_data,
    })
    if serializer.is_valid():
        quote = serializer.save(organization=organization, created_by=request.user)
        create_audit_log(
            request=request,
            action='create',
            model_name='Quote',
            object_id=quote.id,
            object_name=quote.client.display_name,
            object_reference=quote.quote_number,
            changes={'total_ttc': str(quote.total_ttc), 'items': quote.items.count()},
        )
        return Response(QuoteSerializer(quote).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def quote_next_number(request):
    organization = get_request_organization(request)
    return Response({'quote_number': next_document_number(Quote, organization, QUOTE_PREFIX, 'quote_number')})


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def quote_detail(request, pk):
    """Retrieve, update or delete a quote"""
    organization = get_request_organization(request)
    quote = get_object_or_404(quote_queryset(organization), pk=pk)

    if request.method == 'GET':
        return Response(QuoteSerializer(quote).data)
    elif request.method in ('PUT', 'PATCH'):
        data, items_data = _request_payload(request)
        serializer = QuoteSerializer(quote, data=data, partial=True, context={
            'request': request, 'organization': organization, 'items_data': items_data,
        })
        if serializer.is_valid():
            quote = serializer.save()
            create_audit_log(
                request=request,
                action='update',
                model_name='Quote',
                object_id=quote.id,
                object_name=quote.client.display_name,
                object_reference=quote.quote_number,
                changes={key: str(value) for key, value in serializer.validated_data.items() if key != 'lines'},
            )
            return Response(QuoteSerializer(quote).data)
        return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)
    else:  # DELETE
        create_audit_log(
            request=request,
            action='delete',
            model_name='Quote',
            object_id=quote.id,
            object_name=quote.client.display_name,
            object_reference=quote.quote_number,
        )
        if quote.signed_document:
            quote.signed_document.delete(save=False)
        quote.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['PATCH', 'POST'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def quote_update_status(request, pk):
    """Change the status of a quote; accepting it records the acceptance date"""
    organization = get_request_organization(request)
    quote = get_object_or_404(quote_queryset(organization), pk=pk)

    serializer = QuoteStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)
    if quote.status == 'invoiced':
        raise BusinessRuleViolation('An invoiced quote cannot change status.', code='quote_invoiced')

    old_status = quote.status
    quote.set_status(serializer.validated_data['status'])
    quote.save(update_fields=['status', 'accepted_date', 'updated_at'])
    create_audit_log(
        request=request,
        action='status_change',
        model_name='Quote',
        object_id=quote.id,
        object_reference=quote.quote_number,
        changes={'status': {'old': old_status, 'new': quote.status}},
    )
    return Response(QuoteSerializer(quote).data)


@api_view(['GET', 'POST', 'DELETE'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def quote_signed_document(request, pk):
    """
    Signed copy of a quote.

    POST uploads it (pdf/jpg/png) and marks the quote accepted, GET downloads
    it, DELETE removes it and puts the quote back to 'sent'.
    """
    organization = get_request_organization(request)
    quote = get_object_or_404(quote_queryset(organization), pk=pk)

    if request.method == 'GET':
        if not quote.signed_document:
            return Response({'error': 'No signed document for this quote.'}, status=status.HTTP_404_NOT_FOUND)
        return FileResponse(
            quote.signed_document.open('rb'),
            as_attachment=True,
            filename=quote.signed_document_name or os.path.basename(quote.signed_document.name),
        )

    if request.method == 'DELETE':
        if not quote.signed_document:
            return Response({'error': 'No signed document for this quote.'}, status=status.HTTP_404_NOT_FOUND)
        document_name = quote.signed_document_name
        quote.signed_document.delete(save=False)
        quote.signed_document = None
        quote.signed_document_name = ''
        quote.signed_at = None
        if quote.status != 'invoiced':
            quote.set_status('sent')
        quote.save()
        create_audit_log(
            request=request,
            action='document_delete',
            model_name='Quote',
            object_id=quote.id,
            object_reference=quote.quote_number,
            changes={'signed_document': document_name},
        )
        return Response(QuoteSerializer(quote).data)

    upload = request.FILES.get('signed_document') or request.FILES.get('file')
    if upload is None:
        return Response({'signed_document': ['A file is required.']}, status=status.HTTP_422_UNPROCESSABLE_ENTITY)
    extension = os.path.splitext(upload.name)[1].lower()
    if extension not in SIGNED_DOCUMENT_EXTENSIONS:
        return Response(
            {'signed_document': ['Allowed formats: pdf, jpg, jpeg, png.']},
            status=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )
    if upload.size > settings.SIGNED_DOCUMENT_MAX_SIZE:
        return Response(
            {'signed_document': ['The file must not exceed 5 MB.']},
            status=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )

    with transaction.atomic():
        if quote.signed_document:
            quote.signed_document.delete(save=False)
        quote.signed_document = upload
        quote.signed_document_name = upload.name
        quote.signed_at = timezone.now()
        if quote.status != 'invoiced':
            quote.set_status('accepted')
        quote.save()

    create_audit_log(
        request=request,
        action='document_upload',
        model_name='Quote',
        object_id=quote.id,
        object_reference=quote.quote_number,
        changes={'signed_document': upload.name, 'size': upload.size},
    )
    return Response(QuoteSerializer(quote).data)


def convert_quote_to_invoice(quote, user):
    """
    Create a draft invoice carrying the quote's lines and totals.

    Only sent or accepted quotes convert, once; a sent quote is accepted on the
    way and the quote ends up 'invoiced'.
    """
    with transaction.atomic():
        quote = Quote.objects.select_for_update().get(pk=quote.pk)
        if quote.status == 'invoiced' or quote.is_converted():
            raise BusinessRuleViolation('This quote has already been converted to an invoice.', code='quote_already_converted')
        if quote.status not in Quote.CONVERTIBLE_STATUSES:
            raise BusinessRuleViolation('Only sent or accepted quotes can be converted to an invoice.', code='quote_not_convertible')

        today = timezone.localdate()
        invoice = Invoice.objects.create(
            organization=quote.organization,
            client=quote.client,
            quote=quote,
            invoice_number=next_document_number(Invoice, quote.organization, INVOICE_PREFIX, 'invoice_number'),
            status='draft',
            title=quote.title,
            issue_date=today,
            due_date=today + timedelta(days=DEFAULT_PAYMENT_DAYS),
            payment_conditions=quote.payment_conditions,
            notes=quote.notes,
            terms=quote.terms,
            total_ht=quote.total_ht,
            total_tva=quote.total_tva,
            total_ttc=quote.total_ttc,
            created_by=user,
        )
        copy_lines(quote, invoice, InvoiceItem, 'invoice')
        if quote.status == 'sent':
            quote.set_status('accepted')
        quote.status = 'invoiced'
        quote.save(update_fields=['status', 'accepted_date', 'updated_at'])
    logger.info(f"Quote {quote.quote_number} converted to invoice {invoice.invoice_number}")
    return invoice


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def quote_convert_to_invoice(request, pk):
    organization = get_request_organization(request)
    quote = get_object_or_404(quote_queryset(organization), pk=pk)
    invoice = convert_quote_to_invoice(quote, request.user)
    create_audit_log(
        request=request,
        action='quote_convert',
        model_name='Quote',
        object_id=quote.id,
        object_reference=quote.quote_number,
        changes={'invoice_id': invoice.id, 'invoice_number': invoice.invoice_number},
    )
    return Response(InvoiceSerializer(invoice).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def quote_pdf(request, pk):
    organization = get_request_organization(request)
    quote = get_object_or_404(quote_queryset(organization), pk=pk)
    download = request.query_params.get('download') in ('1', 'true')
    return _pdf_response(render_quote_pdf(quote), f"{quote.quote_number}.pdf", download=download)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def quote_send_email(request, pk):
    """Mail the quote PDF to the client (or the given recipients); a draft becomes sent"""
    organization = get_request_organization(request)
    quote = get_object_or_404(quote_queryset(organization), pk=pk)

    recipients = _send_email(request, quote, quote.quote_number, 'Devis', render_quote_pdf(quote))
    quote.sent_at = timezone.now()
    if quote.status == 'draft':
        quote.set_status('sent')
    quote.save(update_fields=['sent_at', 'status', 'accepted_date', 'updated_at'])
    create_audit_log(
        request=request,
        action='email_send',
        model_name='Quote',
        object_id=quote.id,
        object_reference=quote.quote_number,
        changes={'to': recipients},
    )
    return Response({'message': 'Quote sent successfully.', 'recipients': recipients, 'quote': QuoteSerializer(quote).data})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def quote_export_excel(request):
    """Excel export of all quotes, or of the ones listed in quote_ids"""
    organization = get_request_organization(request)
    queryset = quote_queryset(organization).order_by('-issue_date', '-id')
    raw_ids = request.data.get('quote_ids') if request.method == 'POST' else request.query_params.get('quote_ids')
    ids = parse_id_list(raw_ids, 'quote_ids')
    if ids:
        queryset = queryset.filter(id__in=ids)
    filename = f"devis_{timezone.localdate().strftime('%Y%m%d')}.xlsx"
    return xlsx_response(quotes_workbook(queryset), filename)


# Invoices

def invoice_queryset(organization):
    return Invoice.objects.filter(organization=organization).select_related('client', 'quote', 'organization')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def invoice_list_create(request):
    """List invoices with filters and aggregated totals, or create a draft invoice"""
    organization = get_request_organization(request)

    if request.method == 'GET':
        queryset = invoice_queryset(organization).prefetch_related('items', 'payments')
        params = request.query_params

        minimum, maximum, error = _amount_range(request)
        if error:
            return Response(error, status=status.HTTP_422_UNPROCESSABLE_ENTITY)
        date_from, date_to, error = _date_range(request)
        if error:
            return Response(error, status=status.HTTP_422_UNPROCESSABLE_ENTITY)

        search = params.get('search')
        if search:
            queryset = queryset.filter(
                Q(invoice_number__icontains=search) | Q(title__icontains=search) | _client_search('client__', search)
            )
        if params.get('status'):
            queryset = queryset.filter(status=params['status'])
        if params.get('client'):
            queryset = queryset.filter(client_id=params['client'])
        if minimum is not None:
            queryset = queryset.filter(total_ttc__gte=minimum)
        if maximum is not None:
            queryset = queryset.filter(total_ttc__lte=maximum)
        if date_from:
            queryset = queryset.filter(issue_date__gte=date_from)
        if date_to:
            queryset = queryset.filter(issue_date__lte=date_to)

        sums = queryset.aggregate(total_ttc=Sum('total_ttc'), total_paid=Sum('amount_paid'))
        total_ttc = sums['total_ttc'] or Decimal('0.00')
        total_paid = sums['total_paid'] or Decimal('0.00')

        queryset = queryset.order_by('-issue_date', '-id')
        data = paginate_queryset(request, queryset, InvoiceSerializer, default_page_size=15)
        data['totals'] = {
            'total_ttc': float(total_ttc),
            'total_paid': float(total_paid),
            'total_due': float(total_ttc - total_paid),
        }
        return Response(data)

    data, items_data = _request_payload(request)
    serializer = InvoiceSerializer(data=data, context={
        'request': request, 'organization': organization, 'items_data': items_data,
    })
    if serializer.is_valid():
        invoice = serializer.save(organization=organization, created_by=request.user)
        create_audit_log(
            request=request,
            action='create',
            model_name='Invoice',
            object_id=invoice.id,
            object_name=invoice.client.display_name,
            object_reference=invoice.invoice_number,
            changes={'total_ttc': str(invoice.total_ttc), 'items': invoice.items.count()},
        )
        return Response(InvoiceSerializer(invoice).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def invoice_next_number(request):
    organization = get_request_organization(request)
    return Response({'invoice_number': next_document_number(Invoice, organization, INVOICE_PREFIX, 'invoice_number')})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def invoice_from_quote(request, quote_id):
    organization = get_request_organization(request)
    quote = get_object_or_404(quote_queryset(organization), pk=quote_id)
    invoice = convert_quote_to_invoice(quote, request.user)
    create_audit_log(
        request=request,
        action='create',
        model_name='Invoice',
        object_id=invoice.id,
        object_name=invoice.client.display_name,
        object_reference=invoice.invoice_number,
        changes={'quote': quote.quote_number},
    )
    return Response(InvoiceSerializer(invoice).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def invoice_detail(request, pk):
    """Retrieve (with the issuer details), update or delete an invoice"""
    organization = get_request_organization(request)
    invoice = get_object_or_404(invoice_queryset(organization), pk=pk)

    if request.method == 'GET':
        data = InvoiceSerializer(invoice).data
        data['organization_info'] = organization_info(organization)
        return Response(data)
    elif request.method in ('PUT', 'PATCH'):
        data, items_data = _request_payload(request)
        serializer = InvoiceSerializer(invoice, data=data, partial=True, context={
            'request': request, 'organization': organization, 'items_data': items_data,
        })
        if serializer.is_valid():
            invoice = serializer.save()
            create_audit_log(
                request=request,
                action='update',
                model_name='Invoice',
                object_id=invoice.id,
                object_name=invoice.client.display_name,
                object_reference=invoice.invoice_number,
                changes={key: str(value) for key, value in serializer.validated_data.items() if key != 'lines'},
            )
            return Response(InvoiceSerializer(invoice).data)
        return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)
    else:  # DELETE
        if invoice.amount_paid > 0:
            raise BusinessRuleViolation('An invoice with recorded payments cannot be deleted.', code='invoice_has_payments')
        create_audit_log(
            request=request,
            action='delete',
            model_name='Invoice',
            object_id=invoice.id,
            object_name=invoice.client.display_name,
            object_reference=invoice.invoice_number,
        )
        invoice.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def invoice_payments(request, pk):
    """List payments of an invoice or record a new one"""
    organization = get_request_organization(request)
    invoice = get_object_or_404(invoice_queryset(organization), pk=pk)

    if request.method == 'GET':
        return Response(InvoicePaymentSerializer(invoice.payments.all(), many=True).data)

    if invoice.status == 'cancelled':
        raise BusinessRuleViolation('A cancelled invoice cannot receive payments.', code='invoice_cancelled')
    serializer = InvoicePaymentSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)

    amount = money(serializer.validated_data['amount'])
    if amount > invoice.amount_due:
        return Response(
            {'amount': [f'Amount exceeds the remaining balance ({invoice.amount_due}).']},
            status=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )

    with transaction.atomic():
        payment = serializer.save(invoice=invoice, created_by=request.user)
        invoice.amount_paid = money(invoice.amount_paid + amount)
        if invoice.amount_paid >= invoice.total_ttc:
            invoice.status = 'paid'
            invoice.paid_at = timezone.now()
        else:
            invoice.status = 'partially_paid'
        invoice.save(update_fields=['amount_paid', 'status', 'paid_at', 'updated_at'])

    create_audit_log(
        request=request,
        action='payment_add',
        model_name='Invoice',
        object_id=invoice.id,
        object_reference=invoice.invoice_number,
        changes={'amount': str(amount), 'method': payment.payment_method, 'status': invoice.status},
    )
    return Response({
        'payment': InvoicePaymentSerializer(payment).data,
        'invoice': InvoiceSerializer(invoice).data,
    }, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def invoice_remind_unpaid(request):
    """Flag sent/overdue invoices past their due date as overdue and notify their owners"""
    organization = get_request_organization(request)
    today = timezone.localdate()
    invoices = list(
        invoice_queryset(organization)
        .filter(status__in=['sent', 'overdue'], due_date__lt=today)
        .select_related('created_by')
    )

    now = timezone.now()
    for invoice in invoices:
        invoice.status = 'overdue'
        invoice.last_reminder_at = now
        invoice.save(update_fields=['status', 'last_reminder_at', 'updated_at'])
        notify_user(
            invoice.created_by or request.user,
            f"Facture {invoice.invoice_number} impayée ({invoice.client.display_name}, "
            f"échéance {invoice.due_date.strftime('%d/%m/%Y')})",
            target_url=f"/invoices/{invoice.id}",
            sender=request.user,
            organization=organization,
        )

    logger.info(f"Unpaid invoice reminders for organization {organization.id}: {len(invoices)}")
    return Response({
        'reminders_sent': len(invoices),
        'invoices': [invoice.invoice_number for invoice in invoices],
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def invoice_pdf(request, pk):
    organization = get_request_organization(request)
    invoice = get_object_or_404(invoice_queryset(organization), pk=pk)
    download = request.query_params.get('download') in ('1', 'true')
    return _pdf_response(render_invoice_pdf(invoice), f"{invoice.invoice_number}.pdf", download=download)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def invoice_send_email(request, pk):
    """Mail the invoice PDF; a draft invoice becomes sent"""
    organization = get_request_organization(request)
    invoice = get_object_or_404(invoice_queryset(organization), pk=pk)

    recipients = _send_email(request, invoice, invoice.invoice_number, 'Facture', render_invoice_pdf(invoice))
    invoice.sent_at = timezone.now()
    if invoice.status == 'draft':
        invoice.status = 'sent'
    invoice.save(update_fields=['sent_at', 'status', 'updated_at'])
    create_audit_log(
        request=request,
        action='email_send',
        model_name='Invoice',
        object_id=invoice.id,
        object_reference=invoice.invoice_number,
        changes={'to': recipients},
    )
    return Response({'message': 'Invoice sent successfully.', 'recipients': recipients, 'invoice': InvoiceSerializer(invoice).data})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def invoice_export_excel(request):
    organization = get_request_organization(request)
    queryset = invoice_queryset(organization).order_by('-issue_date', '-id')
    raw_ids = request.data.get('invoice_ids') if request.method == 'POST' else request.query_params.get('invoice_ids')
    ids = parse_id_list(raw_ids, 'invoice_ids')
    if ids:
        queryset = queryset.filter(id__in=ids)
    if request.query_params.get('status'):
        queryset = queryset.filter(status=request.query_params['status'])
    filename = f"factures_{timezone.localdate().strftime('%Y%m%d')}.xlsx"
    return xlsx_response(invoices_workbook(queryset), filename)
