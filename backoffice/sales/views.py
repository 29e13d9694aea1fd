import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, IsAdminUser, AllowAny
from django.core.files.storage import default_storage
from django.shortcuts import get_object_or_404
from backoffice.core.serializers import StatusChangeSerializer, ReasonSerializer, VersionSerializer
from . import services
from .models import Order, Quote
from .filters import OrderFilter, QuoteFilter
from .serializers import (
    OrderSerializer, OrderListSerializer, OrderCreateSerializer, OrderDetailsSerializer,
    LineItemsUpdateSerializer, POPUploadSerializer,
    QuoteSerializer, QuoteCreateSerializer, QuoteUpdateSerializer, QuoteRequestSerializer
)

logger = logging.getLogger(__name__)


def _order_response(order, status_code=status.HTTP_200_OK):
    order = Order.objects.select_related('customer').prefetch_related('items', 'status_history').get(pk=order.pk)
    return Response(OrderSerializer(order).data, status=status_code)


def _quote_response(quote, status_code=status.HTTP_200_OK):
    quote = Quote.objects.select_related('order').prefetch_related('items').get(pk=quote.pk)
    return Response(QuoteSerializer(quote).data, status=status_code)


# Order views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def order_list_create(request):
    """List orders or create a new order"""
    if request.method == 'GET':
        queryset = Order.objects.select_related('customer').order_by('-created_at')
        filterset = OrderFilter(request.query_params, queryset=queryset)
        serializer = OrderListSerializer(filterset.qs, many=True)
        return Response(serializer.data)

    serializer = OrderCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = dict(serializer.validated_data)
    data.pop('version', None)
    order = services.create_order(
        data.pop('customer'),
        [dict(item) for item in data.pop('items')],
        user=request.user,
        discount=data.pop('discount', 0),
        source=data.pop('source', 'ADMIN'),
        **data
    )
    return _order_response(order, status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def order_detail(request, pk):
    """Retrieve an order or edit its delivery details and notes"""
    order = get_object_or_404(Order, pk=pk)
    if request.method == 'GET':
        return _order_response(order)

    serializer = OrderDetailsSerializer(data=request.data, partial=True)
    serializer.is_valid(raise_exception=True)
    data = dict(serializer.validated_data)
    version = data.pop('version', None)
    order = services.update_order_details(order.pk, user=request.user, version=version, **data)
    return _order_response(order)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def order_status(request, pk):
    """Move an order through its lifecycle"""
    order = get_object_or_404(Order, pk=pk)
    serializer = StatusChangeSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    order = services.transition_order_status(
        order.pk,
        serializer.validated_data['status'].upper(),
        notes=serializer.validated_data.get('notes', ''),
        user=request.user,
        version=serializer.validated_data.get('version'),
    )
    return _order_response(order)


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def order_items(request, pk):
    """Replace the order's line items"""
    order = get_object_or_404(Order, pk=pk)
    serializer = LineItemsUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    order = services.update_order_items(
        order.pk,
        [dict(item) for item in serializer.validated_data['items']],
        discount=serializer.validated_data.get('discount'),
        user=request.user,
        version=serializer.validated_data.get('version'),
    )
    return _order_response(order)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def order_pop_upload(request, pk):
    """Upload a proof of payment for an order"""
    order = get_object_or_404(Order, pk=pk)
    serializer = POPUploadSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    upload = serializer.validated_data.get('file')
    if upload is not None:
        file_ref = default_storage.save(f'pop/{order.order_number}/{upload.name}', upload)
        file_name = serializer.validated_data.get('file_name') or upload.name
    else:
        file_ref = serializer.validated_data['file_ref']
        file_name = serializer.validated_data.get('file_name', '')

    order = services.upload_pop(
        order.pk, file_ref, file_name,
        user=request.user,
        version=serializer.validated_data.get('version'),
    )
    return _order_response(order)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminUser])
def order_pop_approve(request, pk):
    """Approve the uploaded proof of payment (admin only)"""
    order = get_object_or_404(Order, pk=pk)
    serializer = VersionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    order = services.approve_pop(
        order.pk,
        notes=serializer.validated_data.get('notes', ''),
        user=request.user,
        version=serializer.validated_data.get('version'),
    )
    return _order_response(order)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminUser])
def order_pop_reject(request, pk):
    """Reject the uploaded proof of payment (admin only)"""
    order = get_object_or_404(Order, pk=pk)
    serializer = ReasonSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    order = services.reject_pop(
        order.pk,
        serializer.validated_data.get('reason', ''),
        user=request.user,
        version=serializer.validated_data.get('version'),
    )
    return _order_response(order)


# Quote views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def quote_list_create(request):
    """List quotes or create a new quote"""
    if request.method == 'GET':
        filterset = QuoteFilter(request.query_params, queryset=Quote.objects.all().order_by('-created_at'))
        serializer = QuoteSerializer(filterset.qs.prefetch_related('items'), many=True)
        return Response(serializer.data)

    serializer = QuoteCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = dict(serializer.validated_data)
    contact = {
        'name': data.pop('customer_name', ''),
        'email': data.pop('customer_email', ''),
        'phone': data.pop('customer_phone', ''),
        'company': data.pop('customer_company', ''),
    }
    quote = services.create_quote(
        [dict(item) for item in data.pop('items')],
        customer=data.pop('customer', None),
        contact=contact,
        valid_until=data.pop('valid_until', None),
        valid_days=data.pop('valid_days', None),
        discount=data.pop('discount', 0),
        user=request.user,
        **data
    )
    return _quote_response(quote, status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([AllowAny])
def quote_request(request):
    """Public quote request from the website"""
    serializer = QuoteRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    quote = services.submit_quote_request(
        {
            'name': data['name'],
            'email': data['email'],
            'phone': data['phone'],
            'company': data.get('company', ''),
        },
        [dict(item) for item in data['items']],
        notes=data.get('notes', ''),
        delivery_address=data.get('delivery_address'),
        delivery_city=data.get('delivery_city'),
    )
    logger.info(f"Quote request {quote.quote_number} received from {data['email']}")
    return Response(
        {'quote_number': quote.quote_number, 'status': quote.status, 'valid_until': quote.valid_until},
        status=status.HTTP_201_CREATED
    )


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def quote_detail(request, pk):
    """Retrieve a quote or edit one that is still open"""
    quote = get_object_or_404(Quote, pk=pk)
    if request.method == 'GET':
        return _quote_response(quote)

    serializer = QuoteUpdateSerializer(data=request.data, partial=True)
    serializer.is_valid(raise_exception=True)
    data = dict(serializer.validated_data)
    items = data.pop('items', None)
    quote = services.update_quote(
        quote.pk,
        items=[dict(item) for item in items] if items is not None else None,
        discount=data.pop('discount', None),
        valid_until=data.pop('valid_until', None),
        user=request.user,
        version=data.pop('version', None),
        **data
    )
    return _quote_response(quote)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def quote_status(request, pk):
    """Move a quote through its lifecycle"""
    quote = get_object_or_404(Quote, pk=pk)
    serializer = StatusChangeSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    quote = services.transition_quote_status(
        quote.pk,
        serializer.validated_data['status'].upper(),
        user=request.user,
        version=serializer.validated_data.get('version'),
    )
    return _quote_response(quote)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def quote_reject(request, pk):
    """Reject a quote with a reason"""
    quote = get_object_or_404(Quote, pk=pk)
    serializer = ReasonSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    quote = services.reject_quote(
        quote.pk,
        serializer.validated_data.get('reason', ''),
        user=request.user,
        version=serializer.validated_data.get('version'),
    )
    return _quote_response(quote)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def quote_convert(request, pk):
    """Convert a quote into an order"""
    quote = get_object_or_404(Quote, pk=pk)
    serializer = VersionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    order = services.convert_quote_to_order(
        quote.pk,
        user=request.user,
        version=serializer.validated_data.get('version'),
    )
    return _order_response(order, status.HTTP_201_CREATED)
