"""Read-only status and availability lookups for the chat assistant.

Nothing here writes; the assistant is only ever given these functions.
"""
from django.db.models import Q

from .exceptions import NotFound


def document_status(number):
    """Status summary for an order, quote or invoice number"""
    from backoffice.billing.models import Invoice
    from backoffice.sales.models import Order, Quote

    number = (number or '').strip()
    if not number:
        raise NotFound('A document number is required.')

    order = Order.objects.filter(order_number__iexact=number).first()
    if order is not None:
        return {
            'type': 'order',
            'number': order.order_number,
            'status': order.status,
            'payment_status': order.payment_status,
            'total': str(order.total),
            'created_at': order.created_at.isoformat(),
        }

    quote = Quote.objects.filter(quote_number__iexact=number).first()
    if quote is not None:
        return {
            'type': 'quote',
            'number': quote.quote_number,
            'status': quote.status,
            'total': str(quote.total),
            'valid_until': quote.valid_until.isoformat(),
        }

    invoice = Invoice.objects.filter(invoice_number__iexact=number).first()
    if invoice is not None:
        return {
            'type': 'invoice',
            'number': invoice.invoice_number,
            'status': invoice.status,
            'total': str(invoice.total),
            'amount_due': str(invoice.amount_due),
            'due_date': invoice.due_date.isoformat(),
        }

    raise NotFound(f'No order, quote or invoice numbered {number}.', number=number)


def product_availability(query, limit=10):
    """Price and stock for active products matching ``query`` by name or sku"""
    from backoffice.catalog.models import Product

    query = (query or '').strip()
    if not query:
        return []
    products = Product.objects.filter(
        Q(name__icontains=query) | Q(sku__iexact=query),
        is_active=True,
    ).order_by('name')[:limit]
    return [
        {
            'id': product.id,
            'name': product.name,
            'sku': product.sku,
            'price': str(product.price),
            'stock_quantity': product.stock_quantity,
            'in_stock': product.in_stock,
        }
        for product in products
    ]
