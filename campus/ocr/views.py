import logging
import os

from django.conf import settings
from django.db import DatabaseError
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from campus.clients.serializers import ClientSerializer
from campus.core.exceptions import MatchingError, OcrError
from campus.core.permissions import IsCommercialManager
from campus.core.utils import create_audit_log, get_request_organization
from .engine import read_document
from .matching import match_or_create_articles as match_articles
from .matching import match_or_create_client as match_client
from .models import OcrDocument
from .parser import parse_document
from .serializers import MatchArticlesSerializer, MatchClientSerializer, OcrDocumentSerializer

logger = logging.getLogger('campus.ocr')

OCR_EXTENSIONS = ('.pdf', '.png', '.jpg', '.jpeg')


def validate_upload(upload):
    if upload is None:
        raise OcrError('OCR_003: Aucun document fourni', code='OCR_003')
    if os.path.splitext(upload.name)[1].lower() not in OCR_EXTENSIONS:
        raise OcrError('OCR_003: Format non supporté (pdf, png, jpg, jpeg)', code='OCR_003')
    if upload.size > settings.OCR_DOCUMENT_MAX_SIZE:
        max_mb = settings.OCR_DOCUMENT_MAX_SIZE // (1024 * 1024)
        raise OcrError(f'OCR_003: Document trop volumineux (max {max_mb}MB)', code='OCR_003')


def process_upload(request, document_type):
    """
    Store the upload, run OCR and parse the text.

    The OcrDocument row keeps the outcome: 'completed' with the extracted
    data, or 'failed' with the error message before the error propagates.
    """
    organization = get_request_organization(request)
    upload = request.FILES.get('document')
    validate_upload(upload)

    document = OcrDocument.objects.create(
        organization=organization,
        original_filename=upload.name,
        file=upload,
        file_type=getattr(upload, 'content_type', '') or '',
        file_size=upload.size,
        document_type=document_type,
        ocr_engine=settings.OCR_ENGINE,
        status='processing',
        created_by=request.user,
    )

    try:
        text = read_document(document.file.path)
        result = parse_document(text, document_type)
    except Exception as e:
        document.status = 'failed'
        document.error_message = str(e.detail) if isinstance(e, OcrError) else str(e)
        document.processed_at = timezone.now()
        document.save(update_fields=['status', 'error_message', 'processed_at'])
        logger.error(f"OCR processing failed for {document.id}: {document.error_message}")
        raise

    document.status = 'completed'
    document.extracted_data = result['extracted_data']
    document.confidence_scores = result['confidence_scores']
    document.processed_at = timezone.now()
    document.save(update_fields=['status', 'extracted_data', 'confidence_scores', 'processed_at'])

    create_audit_log(
        request=request,
        action='ocr_import',
        model_name='OcrDocument',
        object_id=document.id,
        object_name=document.original_filename,
        changes={'document_type': document_type, 'overall_confidence': result['confidence_scores']['overall']},
    )
    return Response({
        'document_id': str(document.id),
        'extracted_data': result['extracted_data'],
        'confidence_scores': result['confidence_scores'],
        'warnings': result['warnings'],
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def import_invoice_ocr(request):
    """Upload a scanned invoice (field ``document``) and return the extracted data"""
    return process_upload(request, 'invoice')


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def import_quote_ocr(request):
    """Upload a scanned quote (field ``document``) and return the extracted data"""
    return process_upload(request, 'quote')


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def match_or_create_client(request):
    organization = get_request_organization(request)
    serializer = MatchClientSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)

    client_data = serializer.validated_data['client_data']
    try:
        client, existing = match_client(organization, client_data, user=request.user)
    except DatabaseError as e:
        logger.error(f"CLIENT_001: {e}")
        raise MatchingError(f'CLIENT_001: Impossible de matcher ou créer le client: {e}', code='CLIENT_001')

    if not existing:
        create_audit_log(
            request=request,
            action='create',
            model_name='Client',
            object_id=client.id,
            object_name=client.display_name,
            changes={'source': 'ocr'},
        )
    return Response(
        {'client_id': client.id, 'existing': existing, 'client': ClientSerializer(client).data},
        status=status.HTTP_200_OK if existing else status.HTTP_201_CREATED,
    )


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def match_or_create_articles(request):
    organization = get_request_organization(request)
    serializer = MatchArticlesSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)

    try:
        matches = match_articles(organization, serializer.validated_data['articles'], user=request.user)
    except DatabaseError as e:
        logger.error(f"ARTICLE_001: {e}")
        raise MatchingError(f"ARTICLE_001: Impossible de créer l'article: {e}", code='ARTICLE_001')

    created = [item for item, existing in matches if not existing]
    if created:
        create_audit_log(
            request=request,
            action='create',
            model_name='Item',
            object_id=','.join(str(item.id) for item in created),
            changes={'source': 'ocr', 'references': [item.reference for item in created]},
        )

    articles = [
        {
            'article_id': item.id,
            'existing': existing,
            'article': {
                'id': item.id,
                'name': item.designation,
                'description': item.description or item.designation,
                'unit_price': float(item.price_ht),
                'tax_rate': float(item.tva_rate),
            },
        }
        for item, existing in matches
    ]
    return Response({'articles': articles})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def ocr_document_detail(request, pk):
    organization = get_request_organization(request)
    document = get_object_or_404(OcrDocument, pk=pk, organization=organization)
    return Response(OcrDocumentSerializer(document).data)
