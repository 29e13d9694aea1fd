import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from .services import get_report, invoice_stats

logger = logging.getLogger('backoffice.reports')


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def sales_report(request):
    """Sales summary for the last ``period`` days (default 30)"""
    period = request.query_params.get('period', '30')
    try:
        period_days = int(period)
        if period_days < 1:
            raise ValueError(period)
    except (TypeError, ValueError):
        return Response(
            {'error': 'invalid_period', 'detail': 'period must be a positive number of days.'},
            status=status.HTTP_400_BAD_REQUEST
        )
    return Response(get_report(period_days))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def invoice_statistics(request):
    """Billed, collected and outstanding totals"""
    return Response(invoice_stats())
