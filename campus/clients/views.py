import logging

from django.db.models import Count, Q, Sum
from django.shortcuts import get_object_or_404
from django.utils import timezone
from decimal import Decimal
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from campus.core.exceptions import BusinessRuleViolation
from campus.core.permissions import IsCommercialManager
from campus.core.utils import create_audit_log, get_request_organization, paginate_queryset
from .insee import InseeClient
from .models import Client
from .serializers import ClientSerializer
from .validators import clean_identifier, compute_tva_number, is_valid_siren, is_valid_siret

logger = logging.getLogger('campus.clients')


def client_queryset(organization):
    return Client.objects.filter(organization=organization).annotate(
        quotes_total=Count('quotes', distinct=True),
        invoices_total=Count('invoices', distinct=True),
    )


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def client_list_create(request):
    """List the organization's clients or create a new client"""
    organization = get_request_organization(request)

    if request.method == 'GET':
        queryset = client_queryset(organization)
        search = request.query_params.get('search', None)
        client_type = request.query_params.get('client_type', None)
        city = request.query_params.get('city', None)

        if search:
            queryset = queryset.filter(
                Q(company_name__icontains=search) |
                Q(first_name__icontains=search) |
                Q(last_name__icontains=search) |
                Q(email__icontains=search) |
                Q(siret__icontains=search)
            )
        if client_type:
            queryset = queryset.filter(client_type=client_type)
        if city:
            queryset = queryset.filter(city__icontains=city)

        queryset = queryset.order_by('-created_at')
        return Response(paginate_queryset(request, queryset, ClientSerializer, default_page_size=15))

    serializer = ClientSerializer(data=request.data)
    if serializer.is_valid():
        client = serializer.save(organization=organization, created_by=request.user)
        create_audit_log(
            request=request,
            action='create',
            model_name='Client',
            object_id=client.id,
            object_name=client.display_name,
            changes={'client_type': client.client_type, 'email': client.email, 'siret': client.siret},
        )
        return Response(ClientSerializer(client).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def client_detail(request, pk):
    """Retrieve, update or delete a client"""
    organization = get_request_organization(request)
    client = get_object_or_404(client_queryset(organization), pk=pk)

    if request.method == 'GET':
        return Response(ClientSerializer(client).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = ClientSerializer(client, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(
                request=request,
                action='update',
                model_name='Client',
                object_id=client.id,
                object_name=client.display_name,
                changes={key: str(value) for key, value in serializer.validated_data.items()},
            )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)
    else:  # DELETE
        if client.has_commercial_documents():
            raise BusinessRuleViolation(
                'This client cannot be deleted because it has quotes or invoices.',
                code='client_has_documents',
            )
        client_id, client_name = client.id, client.display_name
        client.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='Client',
            object_id=client_id,
            object_name=client_name,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def client_statistics(request):
    """Client counts by type plus commercial activity"""
    from campus.sales.models import Invoice

    organization = get_request_organization(request)
    clients = Client.objects.filter(organization=organization)
    month_start = timezone.now().replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    by_type = {row['client_type']: row['count'] for row in clients.values('client_type').annotate(count=Count('id'))}
    revenue = Invoice.objects.filter(
        organization=organization, status__in=['paid', 'partially_paid']
    ).aggregate(total=Sum('amount_paid'))['total'] or Decimal('0.00')

    return Response({
        'total': clients.count(),
        'professional': by_type.get('professional', 0),
        'private': by_type.get('private', 0),
        'new_this_month': clients.filter(created_at__gte=month_start).count(),
        'with_quotes': clients.filter(quotes__isnull=False).distinct().count(),
        'with_invoices': clients.filter(invoices__isnull=False).distinct().count(),
        'revenue_collected': float(revenue),
    })


# INSEE registry lookups
def _parse_limit(request, default=10, maximum=50):
    try:
        limit = int(request.query_params.get('limit', default))
    except (TypeError, ValueError):
        limit = default
    return max(1, min(limit, maximum))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def insee_search(request):
    """Dispatch on the query: 14 digits -> SIRET, 9 digits -> SIREN, otherwise company name"""
    query = (request.query_params.get('q') or '').strip()
    if len(query) < 2:
        return Response({'q': ['Query must contain at least 2 characters.']}, status=status.HTTP_422_UNPROCESSABLE_ENTITY)

    client = InseeClient()
    digits = clean_identifier(query)
    if digits.isdigit() and len(digits) == 14:
        result = client.search_by_siret(digits)
        return Response({'type': 'siret', 'results': [result] if result else []})
    if digits.isdigit() and len(digits) == 9:
        result = client.search_by_siren(digits)
        return Response({'type': 'siren', 'results': [result] if result else []})
    limit = _parse_limit(request)
    return Response({'type': 'name', 'results': client.search_by_name(query, limit=limit)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def insee_search_siret(request):
    siret = clean_identifier(request.query_params.get('siret'))
    if len(siret) != 14 or not siret.isdigit():
        return Response({'siret': ['Le SIRET doit contenir 14 chiffres']}, status=status.HTTP_422_UNPROCESSABLE_ENTITY)
    result = InseeClient().search_by_siret(siret)
    if result is None:
        return Response({'error': 'Aucun établissement trouvé pour ce SIRET'}, status=status.HTTP_404_NOT_FOUND)
    return Response(result)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def insee_search_siren(request):
    siren = clean_identifier(request.query_params.get('siren'))
    if len(siren) != 9 or not siren.isdigit():
        return Response({'siren': ['Le SIREN doit contenir 9 chiffres']}, status=status.HTTP_422_UNPROCESSABLE_ENTITY)
    result = InseeClient().search_by_siren(siren)
    if result is None:
        return Response({'error': 'Aucune entreprise trouvée pour ce SIREN'}, status=status.HTTP_404_NOT_FOUND)
    return Response(result)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def insee_search_name(request):
    name = (request.query_params.get('name') or '').strip()
    if len(name) < 2:
        return Response({'name': ['Name must contain at least 2 characters.']}, status=status.HTTP_422_UNPROCESSABLE_ENTITY)
    limit = _parse_limit(request)
    return Response({'results': InseeClient().search_by_name(name, limit=limit)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def insee_validate_siret(request):
    siret = clean_identifier(request.query_params.get('siret'))
    return Response({'siret': siret, 'valid': is_valid_siret(siret)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def insee_validate_siren(request):
    siren = clean_identifier(request.query_params.get('siren'))
    valid = is_valid_siren(siren)
    return Response({
        'siren': siren,
        'valid': valid,
        'tva_number': compute_tva_number(siren) if valid else None,
    })
