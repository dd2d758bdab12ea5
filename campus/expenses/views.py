import logging

from django.db import transaction
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from campus.core.exports import build_workbook, xlsx_response
from campus.core.pdf import format_amount, render_document_pdf
from campus.core.permissions import IsCommercialManager
from campus.core.utils import create_audit_log, get_request_organization, paginate_queryset, parse_id_list
from .models import Expense, ExpenseDocument
from .serializers import ExpenseDocumentSerializer, ExpenseSerializer
from .utils import attach_documents, delete_documents, expense_statistics, filter_expenses, validate_documents

logger = logging.getLogger('campus.expenses')


def expense_queryset(organization):
    return Expense.objects.filter(organization=organization).select_related('course').prefetch_related('documents')


def _uploaded_files(request, *names):
    files = []
    for name in names:
        files.extend(request.FILES.getlist(name))
    return files


def _payload(request):
    """Request body without the uploaded files"""
    data = request.data
    if not hasattr(data, 'getlist'):
        return dict(data)
    payload = {key: data.get(key) for key in data.keys() if key not in request.FILES}
    ids = data.getlist('documents_to_delete') or data.getlist('documents_to_delete[]')
    payload.pop('documents_to_delete[]', None)
    if ids:
        payload['documents_to_delete'] = ids
    return payload


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def expense_list_create(request):
    """List expenses with filters, or create one (optionally with documents)"""
    organization = get_request_organization(request)

    if request.method == 'GET':
        queryset = filter_expenses(expense_queryset(organization), request.query_params)
        queryset = queryset.order_by('-expense_date', '-id')
        return Response(paginate_queryset(request, queryset, ExpenseSerializer, default_page_size=15))

    files = _uploaded_files(request, 'documents', 'documents[]')
    errors = validate_documents(files)
    if errors:
        return Response({'documents': errors}, status=status.HTTP_422_UNPROCESSABLE_ENTITY)

    serializer = ExpenseSerializer(data=_payload(request), context={'request': request, 'organization': organization})
    if serializer.is_valid():
        with transaction.atomic():
            expense = serializer.save(organization=organization, created_by=request.user)
            attach_documents(expense, files, request.user)
        create_audit_log(
            request=request,
            action='create',
            model_name='Expense',
            object_id=expense.id,
            object_name=expense.label,
            changes={'amount': str(expense.amount), 'category': expense.category, 'documents': len(files)},
        )
        return Response(
            ExpenseSerializer(expense, context={'request': request}).data, status=status.HTTP_201_CREATED
        )
    return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def expense_statistics_view(request):
    organization = get_request_organization(request)
    return Response(expense_statistics(Expense.objects.filter(organization=organization)))


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def expense_detail(request, pk):
    """
    Retrieve, update or delete an expense.

    Updates may carry ``documents_to_delete`` (ids) and new files under
    ``documents_to_add`` or ``documents``.
    """
    organization = get_request_organization(request)
    expense = get_object_or_404(expense_queryset(organization), pk=pk)

    if request.method == 'GET':
        return Response(ExpenseSerializer(expense, context={'request': request}).data)

    if request.method == 'DELETE':
        create_audit_log(
            request=request,
            action='delete',
            model_name='Expense',
            object_id=expense.id,
            object_name=expense.label,
        )
        with transaction.atomic():
            delete_documents(expense.documents.all())
            expense.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    files = _uploaded_files(request, 'documents_to_add', 'documents_to_add[]', 'documents', 'documents[]')
    errors = validate_documents(files)
    if errors:
        return Response({'documents_to_add': errors}, status=status.HTTP_422_UNPROCESSABLE_ENTITY)

    data = _payload(request)
    to_delete = parse_id_list(data.pop('documents_to_delete', None), 'documents_to_delete')

    serializer = ExpenseSerializer(
        expense, data=data, partial=request.method == 'PATCH',
        context={'request': request, 'organization': organization}
    )
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)

    with transaction.atomic():
        expense = serializer.save()
        deleted = delete_documents(ExpenseDocument.objects.filter(expense=expense, id__in=to_delete)) if to_delete else 0
        attach_documents(expense, files, request.user)

    create_audit_log(
        request=request,
        action='update',
        model_name='Expense',
        object_id=expense.id,
        object_name=expense.label,
        changes={
            **{key: str(value) for key, value in serializer.validated_data.items()},
            'documents_added': len(files),
            'documents_deleted': deleted,
        },
    )
    expense = expense_queryset(organization).get(pk=expense.pk)
    return Response(ExpenseSerializer(expense, context={'request': request}).data)


@api_view(['POST', 'DELETE'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def expense_bulk_delete(request):
    organization = get_request_organization(request)
    ids = parse_id_list(request.data.get('ids'))
    if not ids:
        return Response({'ids': ['An array of ids is required.']}, status=status.HTTP_422_UNPROCESSABLE_ENTITY)

    with transaction.atomic():
        expenses = list(expense_queryset(organization).filter(id__in=ids))
        deleted_ids = [expense.id for expense in expenses]
        for expense in expenses:
            delete_documents(expense.documents.all())
            expense.delete()

    create_audit_log(
        request=request,
        action='bulk_delete',
        model_name='Expense',
        object_id=','.join(str(i) for i in deleted_ids) or '-',
        changes={'requested': ids, 'deleted': deleted_ids},
    )
    return Response({
        'message': f'{len(deleted_ids)} expenses deleted successfully.',
        'deleted_count': len(deleted_ids),
        'deleted_ids': deleted_ids,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def expense_upload_documents(request, pk):
    organization = get_request_organization(request)
    expense = get_object_or_404(Expense, pk=pk, organization=organization)

    files = _uploaded_files(request, 'documents', 'documents[]', 'file')
    if not files:
        return Response({'documents': ['At least one file is required.']}, status=status.HTTP_422_UNPROCESSABLE_ENTITY)
    errors = validate_documents(files)
    if errors:
        return Response({'documents': errors}, status=status.HTTP_422_UNPROCESSABLE_ENTITY)

    with transaction.atomic():
        documents = attach_documents(expense, files, request.user)
    create_audit_log(
        request=request,
        action='document_upload',
        model_name='Expense',
        object_id=expense.id,
        object_name=expense.label,
        changes={'documents': [document.original_name for document in documents]},
    )
    return Response({
        'uploaded': ExpenseDocumentSerializer(documents, many=True, context={'request': request}).data,
        'total': len(documents),
    }, status=status.HTTP_201_CREATED)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def expense_delete_document(request, pk, document_id):
    organization = get_request_organization(request)
    expense = get_object_or_404(Expense, pk=pk, organization=organization)
    document = get_object_or_404(ExpenseDocument, pk=document_id, expense=expense)
    name = document.original_name
    delete_documents([document])
    create_audit_log(
        request=request,
        action='document_delete',
        model_name='Expense',
        object_id=expense.id,
        object_name=expense.label,
        changes={'document': name},
    )
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def expense_pdf(request, pk):
    organization = get_request_organization(request)
    expense = get_object_or_404(expense_queryset(organization), pk=pk)

    meta = [('Date', expense.expense_date.strftime('%d/%m/%Y')), ('Catégorie', expense.category)]
    if expense.role:
        meta.append(('Poste', expense.role))
    if expense.contract_type:
        meta.append(('Contrat', expense.contract_type))
    notes = [text for text in (expense.description, expense.notes) if text]
    documents = [document.original_name for document in expense.documents.all()]
    if documents:
        notes.append('Justificatifs : ' + ', '.join(documents))

    pdf_bytes = render_document_pdf(
        'DÉPENSE', f"#{expense.id}",
        [organization.name, organization.address, f"{organization.postal_code} {organization.city}".strip()],
        [expense.vendor] if expense.vendor else [],
        meta,
        [('Libellé', 12.0, 'left'), ('Montant', 5.0, 'right')],
        [[expense.label, format_amount(expense.amount)]],
        [('Total', format_amount(expense.amount))],
        notes=notes,
    )
    filename = f"expense_{expense.id}_{timezone.localdate().isoformat()}.pdf"
    response = HttpResponse(pdf_bytes, content_type='application/pdf')
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    return response


EXPORT_HEADERS = ['Date', 'Libellé', 'Catégorie', 'Montant', 'Fournisseur', 'Poste', 'Contrat', 'Formation', 'Justificatifs', 'Notes']


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def expense_export_excel(request):
    """Excel export with the same filters as the list"""
    organization = get_request_organization(request)
    queryset = filter_expenses(expense_queryset(organization), request.query_params).order_by('-expense_date', '-id')
    rows = [
        [
            expense.expense_date,
            expense.label,
            expense.category,
            float(expense.amount),
            expense.vendor,
            expense.role or '',
            expense.contract_type or '',
            expense.course.title if expense.course_id else '',
            len(expense.documents.all()),
            expense.notes,
        ]
        for expense in queryset
    ]
    filename = f"expenses_{timezone.now().strftime('%Y-%m-%d_%H%M%S')}.xlsx"
    return xlsx_response(build_workbook('Dépenses', EXPORT_HEADERS, rows), filename)
