from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from campus.core.permissions import IsCommercialManager
from campus.core.utils import create_audit_log, get_request_organization, paginate_queryset, parse_id_list
from .filters import ItemFilter
from .models import Item
from .serializers import ItemSerializer
from .utils import generate_item_reference


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def item_list_create(request):
    """List the article catalog or create an article"""
    organization = get_request_organization(request)

    if request.method == 'GET':
        queryset = Item.objects.filter(organization=organization)
        filterset = ItemFilter(request.query_params, queryset=queryset)
        queryset = filterset.qs.order_by('designation', 'id')
        return Response(paginate_queryset(request, queryset, ItemSerializer, default_page_size=20))

    data = request.data.copy()
    if not data.get('reference'):
        data['reference'] = generate_item_reference(organization)
    serializer = ItemSerializer(data=data, context={'organization': organization})
    if serializer.is_valid():
        item = serializer.save(organization=organization, created_by=request.user)
        create_audit_log(
            request=request,
            action='create',
            model_name='Item',
            object_id=item.id,
            object_name=item.designation,
            object_reference=item.reference,
            changes={'price_ht': str(item.price_ht), 'tva_rate': str(item.tva_rate)},
        )
        return Response(ItemSerializer(item).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def item_detail(request, pk):
    """Retrieve, update or delete an article"""
    organization = get_request_organization(request)
    item = get_object_or_404(Item, pk=pk, organization=organization)

    if request.method == 'GET':
        return Response(ItemSerializer(item).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = ItemSerializer(
            item, data=request.data, partial=request.method == 'PATCH',
            context={'organization': organization}
        )
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)
    else:  # DELETE
        create_audit_log(
            request=request,
            action='delete',
            model_name='Item',
            object_id=item.id,
            object_name=item.designation,
            object_reference=item.reference,
        )
        item.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsCommercialManager])
def item_bulk_delete(request):
    """Delete several articles of the organization at once"""
    organization = get_request_organization(request)
    ids = parse_id_list(request.data.get('ids'))
    if not ids:
        return Response({'ids': ['At least one id is required.']}, status=status.HTTP_422_UNPROCESSABLE_ENTITY)

    with transaction.atomic():
        queryset = Item.objects.filter(organization=organization, id__in=ids)
        deleted_ids = list(queryset.values_list('id', flat=True))
        queryset.delete()

    create_audit_log(
        request=request,
        action='bulk_delete',
        model_name='Item',
        object_id=','.join(str(i) for i in deleted_ids) or '-',
        changes={'requested': ids, 'deleted': deleted_ids},
    )
    return Response({'deleted_count': len(deleted_ids), 'deleted_ids': deleted_ids})
