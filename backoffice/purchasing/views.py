from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from backoffice.core.serializers import StatusChangeSerializer, VersionSerializer
from backoffice.sales.serializers import LineItemsUpdateSerializer
from . import services
from .models import PurchaseOrder
from .filters import PurchaseOrderFilter
from .serializers import (
    PurchaseOrderSerializer, PurchaseOrderListSerializer, PurchaseOrderCreateSerializer,
    ReceiveStockSerializer, StockReceivingSerializer
)


def _po_response(po, status_code=status.HTTP_200_OK):
    po = PurchaseOrder.objects.select_related('supplier').prefetch_related(
        'items', 'receivings__items'
    ).get(pk=po.pk)
    return Response(PurchaseOrderSerializer(po).data, status=status_code)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def purchase_order_list_create(request):
    """List purchase orders or create a new one"""
    if request.method == 'GET':
        queryset = PurchaseOrder.objects.select_related('supplier').order_by('-order_date', '-created_at')
        filterset = PurchaseOrderFilter(request.query_params, queryset=queryset)
        serializer = PurchaseOrderListSerializer(filterset.qs, many=True)
        return Response(serializer.data)

    serializer = PurchaseOrderCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = dict(serializer.validated_data)
    po = services.create_purchase_order(
        data.pop('supplier'),
        [dict(item) for item in data.pop('items')],
        user=request.user,
        **data
    )
    return _po_response(po, status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def purchase_order_detail(request, pk):
    """Retrieve a purchase order with its lines and receivings"""
    po = get_object_or_404(PurchaseOrder, pk=pk)
    return _po_response(po)


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def purchase_order_items(request, pk):
    """Replace the lines of a draft purchase order"""
    po = get_object_or_404(PurchaseOrder, pk=pk)
    serializer = LineItemsUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    po = services.update_purchase_order_items(
        po.pk,
        [dict(item) for item in serializer.validated_data['items']],
        discount=serializer.validated_data.get('discount'),
        user=request.user,
        version=serializer.validated_data.get('version'),
    )
    return _po_response(po)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def purchase_order_status(request, pk):
    """Send, confirm or cancel a purchase order"""
    po = get_object_or_404(PurchaseOrder, pk=pk)
    serializer = StatusChangeSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    po = services.transition_po_status(
        po.pk,
        serializer.validated_data['status'].upper(),
        notes=serializer.validated_data.get('notes', ''),
        user=request.user,
        version=serializer.validated_data.get('version'),
    )
    return _po_response(po)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def purchase_order_receive(request, pk):
    """Book a delivery against a purchase order"""
    po = get_object_or_404(PurchaseOrder, pk=pk)
    serializer = ReceiveStockSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    receiving = services.receive_stock(
        po.pk,
        [dict(record) for record in serializer.validated_data['items']],
        notes=serializer.validated_data.get('notes', ''),
        user=request.user,
        version=serializer.validated_data.get('version'),
    )
    return Response(StockReceivingSerializer(receiving).data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def purchase_order_receive_all(request, pk):
    """Receive every outstanding unit of a purchase order"""
    po = get_object_or_404(PurchaseOrder, pk=pk)
    serializer = VersionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    receiving = services.receive_all_remaining(
        po.pk,
        notes=serializer.validated_data.get('notes', ''),
        user=request.user,
        version=serializer.validated_data.get('version'),
    )
    return Response(StockReceivingSerializer(receiving).data, status=status.HTTP_201_CREATED)
