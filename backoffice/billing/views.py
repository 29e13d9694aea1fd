from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, IsAdminUser
from django.shortcuts import get_object_or_404
from backoffice.core.serializers import ReasonSerializer, VersionSerializer
from . import services
from .models import Invoice
from .filters import InvoiceFilter
from .serializers import (
    InvoiceSerializer, InvoiceListSerializer, OverdueInvoiceSerializer,
    InvoiceCreateSerializer, PaymentCreateSerializer, PaymentSerializer
)


def _invoice_response(invoice, status_code=status.HTTP_200_OK):
    invoice = Invoice.objects.select_related('customer', 'order').prefetch_related('items', 'payments').get(pk=invoice.pk)
    return Response(InvoiceSerializer(invoice).data, status=status_code)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def invoice_list_create(request):
    """List invoices or generate one from an order"""
    if request.method == 'GET':
        queryset = Invoice.objects.select_related('customer').order_by('-created_at')
        filterset = InvoiceFilter(request.query_params, queryset=queryset)
        serializer = InvoiceListSerializer(filterset.qs, many=True)
        return Response(serializer.data)

    serializer = InvoiceCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    invoice = services.generate_invoice_from_order(
        serializer.validated_data['order'],
        due_date=serializer.validated_data.get('due_date'),
        notes=serializer.validated_data.get('notes', ''),
        user=request.user,
    )
    return _invoice_response(invoice, status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def invoice_detail(request, pk):
    """Retrieve an invoice with its items and payments"""
    invoice = get_object_or_404(Invoice, pk=pk)
    return _invoice_response(invoice)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def invoice_send(request, pk):
    """Mark a draft invoice as sent"""
    invoice = get_object_or_404(Invoice, pk=pk)
    serializer = VersionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    invoice = services.send_invoice(invoice.pk, user=request.user, version=serializer.validated_data.get('version'))
    return _invoice_response(invoice)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def invoice_payments(request, pk):
    """List or record payments against an invoice"""
    invoice = get_object_or_404(Invoice, pk=pk)
    if request.method == 'GET':
        serializer = PaymentSerializer(invoice.payments.all(), many=True)
        return Response(serializer.data)

    serializer = PaymentCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    services.apply_payment(
        invoice.pk,
        data['amount'],
        method=data.get('method', 'EFT'),
        reference=data.get('reference', ''),
        notes=data.get('notes', ''),
        received_at=data.get('received_at'),
        user=request.user,
        version=data.get('version'),
    )
    return _invoice_response(invoice, status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminUser])
def invoice_cancel(request, pk):
    """Cancel an unpaid invoice (admin only)"""
    invoice = get_object_or_404(Invoice, pk=pk)
    serializer = ReasonSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    invoice = services.cancel_invoice(
        invoice.pk,
        reason=serializer.validated_data.get('reason', ''),
        user=request.user,
        version=serializer.validated_data.get('version'),
    )
    return _invoice_response(invoice)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def invoice_overdue_list(request):
    """Unpaid invoices past their due date"""
    serializer = OverdueInvoiceSerializer(services.overdue_invoices(), many=True)
    return Response(serializer.data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminUser])
def invoice_mark_overdue(request):
    """Run the overdue sweep now (admin only)"""
    updated = services.mark_overdue_invoices()
    return Response({
        'updated': len(updated),
        'invoices': [invoice.invoice_number for invoice in updated],
    })
