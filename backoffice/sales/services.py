"""
Order and quote lifecycle: creation, status transitions, proof-of-payment
review and quote -> order conversion.

Every mutating function runs in one transaction, locks the document row and
validates before writing.
"""
import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction

from backoffice.core import clock as clocks
from backoffice.core.exceptions import (
    AlreadyConverted, DocumentLocked, InvalidAmount, InvalidTransition, MissingReason, NotFound, QuoteExpired
)
from backoffice.core.money import ZERO
from backoffice.core.state_machine import StateMachine
from backoffice.core.utils import (
    bump_version, check_discount, create_audit_log, create_numbered, lock_document, prepare_line_items
)
from backoffice.parties.models import Customer
from .models import Order, OrderItem, OrderStatusHistory, Quote, QuoteItem

logger = logging.getLogger(__name__)

ORDER_MACHINE = StateMachine(
    'Order',
    {
        Order.STATUS_PENDING: {Order.STATUS_CONFIRMED, Order.STATUS_CANCELLED, Order.STATUS_ON_HOLD},
        Order.STATUS_CONFIRMED: {Order.STATUS_AWAITING_PAYMENT, Order.STATUS_CANCELLED, Order.STATUS_ON_HOLD},
        Order.STATUS_AWAITING_PAYMENT: {Order.STATUS_PAYMENT_RECEIVED, Order.STATUS_CANCELLED, Order.STATUS_ON_HOLD},
        Order.STATUS_PAYMENT_RECEIVED: {Order.STATUS_PROCESSING, Order.STATUS_CANCELLED, Order.STATUS_ON_HOLD},
        Order.STATUS_PROCESSING: {Order.STATUS_READY_FOR_DISPATCH, Order.STATUS_CANCELLED, Order.STATUS_ON_HOLD},
        Order.STATUS_READY_FOR_DISPATCH: {Order.STATUS_DISPATCHED, Order.STATUS_CANCELLED, Order.STATUS_ON_HOLD},
        Order.STATUS_DISPATCHED: {Order.STATUS_DELIVERED},
        # Resuming goes back to status_before_hold, see _check_order_transition
        Order.STATUS_ON_HOLD: {Order.STATUS_CANCELLED},
    },
    locked=[Order.STATUS_DISPATCHED, Order.STATUS_DELIVERED, Order.STATUS_CANCELLED],
)

QUOTE_MACHINE = StateMachine(
    'Quote',
    {
        Quote.STATUS_DRAFT: {Quote.STATUS_SENT},
        Quote.STATUS_PENDING: {
            Quote.STATUS_SENT, Quote.STATUS_ACCEPTED, Quote.STATUS_REJECTED,
            Quote.STATUS_EXPIRED, Quote.STATUS_CONVERTED,
        },
        Quote.STATUS_SENT: {Quote.STATUS_VIEWED, Quote.STATUS_REJECTED, Quote.STATUS_EXPIRED},
        Quote.STATUS_VIEWED: {Quote.STATUS_ACCEPTED, Quote.STATUS_REJECTED, Quote.STATUS_EXPIRED},
        Quote.STATUS_ACCEPTED: {Quote.STATUS_CONVERTED},
    },
    locked=[Quote.STATUS_ACCEPTED, Quote.STATUS_REJECTED, Quote.STATUS_EXPIRED, Quote.STATUS_CONVERTED],
)

ORDER_DETAIL_FIELDS = [
    'delivery_address', 'delivery_city', 'delivery_province', 'delivery_postal_code',
    'delivery_notes', 'priority', 'notes', 'internal_notes', 'payment_method',
]


def _resolve_customer(customer):
    if customer is None or isinstance(customer, Customer):
        return customer
    found = Customer.objects.filter(pk=customer).first()
    if found is None:
        raise NotFound(f'Customer {customer} does not exist.')
    return found


def _require_items(items):
    if not items:
        raise InvalidAmount('At least one line item is required.')


# ---------------------------------------------------------------- orders

def _record_status(order, from_status, to_status, notes='', user=None):
    OrderStatusHistory.objects.create(
        order=order,
        from_status=from_status or '',
        to_status=to_status,
        notes=notes or '',
        changed_by=user if user is not None and user.is_authenticated else None,
    )


def _check_order_transition(order, new_status):
    if order.status == Order.STATUS_ON_HOLD and new_status != Order.STATUS_CANCELLED:
        if new_status != order.status_before_hold:
            raise InvalidTransition(order.status, new_status)
        return
    ORDER_MACHINE.check(order.status, new_status)


def _apply_order_status(order, new_status, notes='', user=None, clock=None):
    """Move ``order`` (already locked) to ``new_status``; caller saves"""
    now = clocks.resolve(clock).now()
    _check_order_transition(order, new_status)
    old_status = order.status

    if new_status == Order.STATUS_ON_HOLD:
        order.status_before_hold = old_status
    elif old_status == Order.STATUS_ON_HOLD:
        order.status_before_hold = ''

    if new_status == Order.STATUS_DISPATCHED:
        order.dispatched_at = now
    elif new_status == Order.STATUS_DELIVERED:
        order.delivered_at = now
    elif new_status == Order.STATUS_CANCELLED:
        order.cancelled_at = now

    order.status = new_status
    bump_version(order)
    _record_status(order, old_status, new_status, notes, user)
    return old_status


def create_order(customer, items, user=None, discount=0, source='ADMIN', clock=None, **details):
    """Create an order in PENDING with totals computed from ``items``"""
    _require_items(items)
    customer = _resolve_customer(customer)
    if customer is None:
        raise NotFound('An order needs a customer.')
    prepared = prepare_line_items(items)
    totals = check_discount(prepared, discount)
    fields = {key: value for key, value in details.items() if key in ORDER_DETAIL_FIELDS and value is not None}

    with transaction.atomic():
        prefix = f'ORD-{clocks.resolve(clock).today().year}-'
        order = create_numbered(
            Order, 'order_number', prefix,
            customer=customer,
            subtotal=totals.subtotal,
            vat_amount=totals.vat_amount,
            discount=totals.discount,
            total=totals.total,
            source=source,
            created_by=user if user is not None and user.is_authenticated else None,
            **fields
        )
        OrderItem.objects.bulk_create([OrderItem(order=order, **line) for line in prepared])
        order.check_totals()
        _record_status(order, '', Order.STATUS_PENDING, 'Order created', user)

        create_audit_log(
            action='order_create',
            model_name='Order',
            object_id=order.id,
            object_reference=order.order_number,
            user=user,
            changes={
                'customer_id': customer.id,
                'items_count': len(prepared),
                'total': str(order.total),
                'source': source,
            }
        )
    logger.info(f"Order {order.order_number} created for customer {customer.id} total={order.total}")
    return order


def transition_order_status(order_id, new_status, notes='', user=None, version=None, clock=None):
    with transaction.atomic():
        order = lock_document(Order, order_id, version)
        old_status = _apply_order_status(order, new_status, notes, user, clock)
        order.save()
        create_audit_log(
            action='order_status',
            model_name='Order',
            object_id=order.id,
            object_reference=order.order_number,
            user=user,
            changes={'status': {'old': old_status, 'new': new_status}, 'notes': notes},
        )
    logger.info(f"Order {order.order_number} {old_status} -> {new_status}")
    return order


def update_order_items(order_id, items, discount=None, user=None, version=None):
    """Replace the order's line items and recompute totals"""
    _require_items(items)
    with transaction.atomic():
        order = lock_document(Order, order_id, version)
        ORDER_MACHINE.check_editable(order.status)
        prepared = prepare_line_items(items)
        totals = check_discount(prepared, order.discount if discount is None else discount)

        order.items.all().delete()
        OrderItem.objects.bulk_create([OrderItem(order=order, **line) for line in prepared])
        order.discount = totals.discount
        order.recalculate_totals()
        bump_version(order)
        order.save()
        order.check_totals()

        create_audit_log(
            action='order_update',
            model_name='Order',
            object_id=order.id,
            object_reference=order.order_number,
            user=user,
            changes={'items_count': len(prepared), 'total': str(order.total)},
        )
    return order


def update_order_details(order_id, user=None, version=None, **details):
    """Edit delivery snapshot, priority and notes"""
    fields = {key: value for key, value in details.items() if key in ORDER_DETAIL_FIELDS and value is not None}
    with transaction.atomic():
        order = lock_document(Order, order_id, version)
        ORDER_MACHINE.check_editable(order.status)
        for key, value in fields.items():
            setattr(order, key, value)
        bump_version(order)
        order.save()
        create_audit_log(
            action='order_update',
            model_name='Order',
            object_id=order.id,
            object_reference=order.order_number,
            user=user,
            changes={key: str(value) for key, value in fields.items()},
        )
    return order


def upload_pop(order_id, file_ref, file_name='', user=None, version=None, clock=None):
    """Attach a proof of payment; a CONFIRMED order moves to AWAITING_PAYMENT"""
    if not file_ref:
        raise MissingReason('A proof-of-payment file is required.')
    now = clocks.resolve(clock).now()
    with transaction.atomic():
        order = lock_document(Order, order_id, version)
        ORDER_MACHINE.check_editable(order.status)
        if order.payment_status == Order.PAYMENT_PAID:
            raise InvalidTransition(order.payment_status, Order.STATUS_AWAITING_PAYMENT, 'Order is already paid.')

        order.pop_file = file_ref
        order.pop_file_name = file_name or ''
        order.pop_uploaded_at = now
        order.pop_verified = False
        order.pop_rejection_reason = ''
        if order.status == Order.STATUS_CONFIRMED:
            _apply_order_status(order, Order.STATUS_AWAITING_PAYMENT, 'Proof of payment uploaded', user, clock)
        else:
            bump_version(order)
        order.save()

        create_audit_log(
            action='pop_upload',
            model_name='Order',
            object_id=order.id,
            object_reference=order.order_number,
            user=user,
            changes={'pop_file': file_ref, 'pop_file_name': file_name},
        )
    logger.info(f"POP uploaded for order {order.order_number}")
    return order


def approve_pop(order_id, notes='', user=None, version=None, clock=None):
    """Mark the uploaded POP verified and the order paid"""
    now = clocks.resolve(clock).now()
    with transaction.atomic():
        order = lock_document(Order, order_id, version)
        ORDER_MACHINE.check_editable(order.status)
        if not order.pop_file:
            raise InvalidTransition(order.status, Order.STATUS_PAYMENT_RECEIVED, 'No proof of payment to approve.')

        order.pop_verified = True
        order.pop_verified_by = user if user is not None and user.is_authenticated else None
        order.pop_verified_at = now
        order.payment_status = Order.PAYMENT_PAID
        order.paid_at = now
        if order.status == Order.STATUS_AWAITING_PAYMENT:
            _apply_order_status(
                order, Order.STATUS_PAYMENT_RECEIVED, notes or 'Payment approved - POP verified', user, clock
            )
        else:
            bump_version(order)
        order.save()

        create_audit_log(
            action='pop_approve',
            model_name='Order',
            object_id=order.id,
            object_reference=order.order_number,
            user=user,
            changes={'payment_status': order.payment_status, 'status': order.status, 'notes': notes},
        )
    logger.info(f"POP approved for order {order.order_number}")
    return order


def reject_pop(order_id, reason, user=None, version=None):
    """Reject the uploaded POP; the order keeps waiting for a new upload"""
    if not reason or not str(reason).strip():
        raise MissingReason('A reason is required to reject a proof of payment.')
    with transaction.atomic():
        order = lock_document(Order, order_id, version)
        ORDER_MACHINE.check_editable(order.status)
        if not order.pop_file:
            raise InvalidTransition(order.status, order.status, 'No proof of payment to reject.')

        order.pop_verified = False
        order.pop_rejection_reason = reason
        order.pop_file = ''
        order.pop_file_name = ''
        order.pop_uploaded_at = None
        bump_version(order)
        order.save()
        _record_status(order, order.status, order.status, f'POP rejected: {reason}', user)

        create_audit_log(
            action='pop_reject',
            model_name='Order',
            object_id=order.id,
            object_reference=order.order_number,
            user=user,
            changes={'reason': reason},
        )
    logger.info(f"POP rejected for order {order.order_number}: {reason}")
    return order


def sync_payment_status(order_id, amount_paid, total, clock=None):
    """Mirror invoice payments onto the source order's payment_status.

    An order already PAID (for instance through an approved proof of payment)
    is never downgraded by a smaller invoice balance.
    """
    order = Order.objects.select_for_update().get(pk=order_id)
    if order.payment_status == Order.PAYMENT_PAID:
        return order
    if amount_paid <= 0:
        payment_status = Order.PAYMENT_UNPAID
    elif amount_paid >= total:
        payment_status = Order.PAYMENT_PAID
    else:
        payment_status = Order.PAYMENT_PARTIAL
    if payment_status == order.payment_status:
        return order
    order.payment_status = payment_status
    if payment_status == Order.PAYMENT_PAID and order.paid_at is None:
        order.paid_at = clocks.resolve(clock).now()
    bump_version(order)
    order.save(update_fields=['payment_status', 'paid_at', 'version', 'updated_at'])
    return order


# ---------------------------------------------------------------- quotes

def _quote_valid_until(valid_until, valid_days, clock):
    if valid_until is not None:
        return valid_until
    days = valid_days or settings.BACKOFFICE.get('QUOTE_VALID_DAYS', 30)
    return clocks.resolve(clock).today() + timedelta(days=int(days))


def create_quote(items, customer=None, contact=None, valid_until=None, valid_days=None, discount=0,
                 user=None, status=Quote.STATUS_DRAFT, clock=None, **details):
    """Create a quote for a customer or for a prospect's contact snapshot"""
    _require_items(items)
    customer = _resolve_customer(customer)
    contact = contact or {}
    prepared = prepare_line_items(items)
    totals = check_discount(prepared, discount)

    snapshot = {
        'customer_name': contact.get('name') or (
            f'{customer.first_name} {customer.last_name}'.strip() if customer else 'Unknown'
        ),
        'customer_email': contact.get('email') or (customer.email if customer else ''),
        'customer_phone': contact.get('phone') or (customer.phone if customer else ''),
        'customer_company': contact.get('company') or (customer.company if customer else ''),
    }
    fields = {
        key: details[key]
        for key in ('delivery_address', 'delivery_city', 'delivery_notes', 'notes', 'internal_notes')
        if details.get(key) is not None
    }

    with transaction.atomic():
        prefix = f'QUO-{clocks.resolve(clock).today().year}-'
        quote = create_numbered(
            Quote, 'quote_number', prefix,
            customer=customer,
            status=status,
            valid_until=_quote_valid_until(valid_until, valid_days, clock),
            subtotal=totals.subtotal,
            vat_amount=totals.vat_amount,
            discount=totals.discount,
            total=totals.total,
            created_by=user if user is not None and user.is_authenticated else None,
            **snapshot,
            **fields
        )
        QuoteItem.objects.bulk_create([QuoteItem(quote=quote, **line) for line in prepared])
        quote.check_totals()

        create_audit_log(
            action='quote_create',
            model_name='Quote',
            object_id=quote.id,
            object_reference=quote.quote_number,
            user=user,
            changes={
                'customer_id': customer.id if customer else None,
                'items_count': len(prepared),
                'total': str(quote.total),
                'status': status,
            }
        )
    logger.info(f"Quote {quote.quote_number} created ({status}) total={quote.total}")
    return quote


def submit_quote_request(contact, items, notes='', clock=None, **details):
    """Public website request: unpriced lines, PENDING until an admin prices it"""
    missing = [key for key in ('name', 'email', 'phone') if not contact.get(key)]
    if missing:
        raise MissingReason(f"Contact {', '.join(missing)} required.", missing=missing)
    _require_items(items)
    lines = [
        {
            'description': item.get('description') or 'Product',
            'quantity': item.get('quantity') or 1,
            'unit_price': 0,
            'notes': item.get('notes') or '',
        }
        for item in items
    ]
    return create_quote(
        lines,
        contact=contact,
        status=Quote.STATUS_PENDING,
        clock=clock,
        notes=notes,
        delivery_notes=notes,
        **details
    )


def update_quote(quote_id, items=None, discount=None, valid_until=None, user=None, version=None, **details):
    """Edit lines, discount, validity or notes of a quote that is still open"""
    with transaction.atomic():
        quote = lock_document(Quote, quote_id, version)
        QUOTE_MACHINE.check_editable(quote.status)
        if valid_until is not None and valid_until != quote.valid_until:
            if quote.status not in (Quote.STATUS_DRAFT, Quote.STATUS_PENDING):
                raise DocumentLocked('Validity date is fixed once the quote has been sent.', status=quote.status)
            quote.valid_until = valid_until

        if items is not None:
            _require_items(items)
            prepared = prepare_line_items(items)
        else:
            prepared = [line.snapshot() for line in quote.items.all()]
        totals = check_discount(prepared, quote.discount if discount is None else discount)

        if items is not None:
            quote.items.all().delete()
            QuoteItem.objects.bulk_create([QuoteItem(quote=quote, **line) for line in prepared])
        quote.discount = totals.discount
        for key in ('delivery_address', 'delivery_city', 'delivery_notes', 'notes', 'internal_notes'):
            if details.get(key) is not None:
                setattr(quote, key, details[key])
        quote.recalculate_totals()
        bump_version(quote)
        quote.save()
        quote.check_totals()

        create_audit_log(
            action='quote_update',
            model_name='Quote',
            object_id=quote.id,
            object_reference=quote.quote_number,
            user=user,
            changes={'total': str(quote.total), 'valid_until': str(quote.valid_until)},
        )
    return quote

def _apply_quote_status(quote, new_status, clock):
    """Move ``quote`` (already locked) to ``new_status``; caller saves"""
    clock = clocks.resolve(clock)
    QUOTE_MACHINE.check(quote.status, new_status)
    if new_status == Quote.STATUS_ACCEPTED and quote.is_expired(clock.today()):
        raise QuoteExpired(valid_until=quote.valid_until.isoformat())

    now = clock.now()
    if new_status == Quote.STATUS_SENT:
        quote.sent_at = now
    elif new_status == Quote.STATUS_VIEWED:
        quote.viewed_at = now
    elif new_status == Quote.STATUS_ACCEPTED:
        quote.accepted_at = now

    old_status = quote.status
    quote.status = new_status
    bump_version(quote)
    return old_status


def transition_quote_status(quote_id, new_status, user=None, version=None, clock=None):
    if new_status == Quote.STATUS_CONVERTED:
        # Only convert_quote_to_order may set CONVERTED
        with transaction.atomic():
            quote = lock_document(Quote, quote_id, version)
        raise InvalidTransition(quote.status, new_status, 'Quotes are converted through the conversion operation.')

    with transaction.atomic():
        quote = lock_document(Quote, quote_id, version)
        old_status = _apply_quote_status(quote, new_status, clock)
        quote.save()
        create_audit_log(
            action='quote_status',
            model_name='Quote',
            object_id=quote.id,
            object_reference=quote.quote_number,
            user=user,
            changes={'status': {'old': old_status, 'new': new_status}},
        )
    logger.info(f"Quote {quote.quote_number} {old_status} -> {new_status}")
    return quote


def reject_quote(quote_id, reason, user=None, version=None, clock=None):
    if not reason or not str(reason).strip():
        raise MissingReason('A reason is required to reject a quote.')
    with transaction.atomic():
        quote = lock_document(Quote, quote_id, version)
        old_status = _apply_quote_status(quote, Quote.STATUS_REJECTED, clock)
        quote.rejection_reason = reason
        quote.save()
        create_audit_log(
            action='quote_status',
            model_name='Quote',
            object_id=quote.id,
            object_reference=quote.quote_number,
            user=user,
            changes={'status': {'old': old_status, 'new': quote.status}, 'reason': reason},
        )
    return quote


def expire_quotes(clock=None):
    """Flip open quotes past valid_until to EXPIRED; safe to re-run"""
    clock = clocks.resolve(clock)
    expirable = [
        status for status, _ in Quote.STATUS_CHOICES
        if QUOTE_MACHINE.can(status, Quote.STATUS_EXPIRED)
    ]
    expired = []
    candidates = Quote.objects.filter(status__in=expirable, valid_until__lt=clock.today()).values_list('id', flat=True)
    for quote_id in list(candidates):
        with transaction.atomic():
            quote = lock_document(Quote, quote_id)
            if quote.status not in expirable or not quote.is_expired(clock.today()):
                continue
            old_status = _apply_quote_status(quote, Quote.STATUS_EXPIRED, clock)
            quote.save()
            create_audit_log(
                action='quote_status',
                model_name='Quote',
                object_id=quote.id,
                object_reference=quote.quote_number,
                changes={'status': {'old': old_status, 'new': quote.status}, 'reason': 'validity lapsed'},
            )
            expired.append(quote)
    if expired:
        logger.info(f"Expired {len(expired)} quote(s)")
    return expired


def _customer_for_quote(quote):
    if quote.customer_id:
        return quote.customer
    if quote.customer_email:
        existing = Customer.objects.filter(email__iexact=quote.customer_email).first()
        if existing:
            return existing
    name_parts = (quote.customer_name or 'Unknown Customer').split(' ')
    return Customer.objects.create(
        first_name=name_parts[0] or 'Unknown',
        last_name=' '.join(name_parts[1:]) or 'Customer',
        email=quote.customer_email or f'{quote.quote_number.lower()}@customers.invalid',
        phone=quote.customer_phone or '',
        company=quote.customer_company or '',
        address=quote.delivery_address or '',
        city=quote.delivery_city or '',
        source='QUOTE',
    )


def convert_quote_to_order(quote_id, user=None, version=None, clock=None):
    """Promote a PENDING or ACCEPTED quote into a new order with copied lines"""
    clock = clocks.resolve(clock)
    with transaction.atomic():
        quote = lock_document(Quote, quote_id, version)
        if quote.order_id is not None:
            raise AlreadyConverted(order_id=quote.order_id)
        QUOTE_MACHINE.check(quote.status, Quote.STATUS_CONVERTED)
        if quote.is_expired(clock.today()):
            raise QuoteExpired(valid_until=quote.valid_until.isoformat())

        lines = [line.snapshot() for line in quote.items.all()]
        _require_items(lines)
        unpriced = [line['description'] or line['sku'] for line in lines if line['unit_price'] <= ZERO]
        if unpriced or quote.total <= ZERO:
            raise InvalidAmount(
                'Quote must be priced before it can be converted.',
                quote_number=quote.quote_number, unpriced_items=unpriced, total=str(quote.total),
            )
        customer = _customer_for_quote(quote)
        if quote.customer_id is None:
            quote.customer = customer

        order = create_numbered(
            Order, 'order_number', f'ORD-{clock.today().year}-',
            customer=customer,
            subtotal=quote.subtotal,
            vat_amount=quote.vat_amount,
            discount=quote.discount,
            total=quote.total,
            delivery_address=quote.delivery_address or '',
            delivery_city=quote.delivery_city or '',
            delivery_notes=quote.delivery_notes or '',
            notes=quote.notes or '',
            source='QUOTE',
            created_by=user if user is not None and user.is_authenticated else None,
        )
        OrderItem.objects.bulk_create([OrderItem(order=order, **line) for line in lines])
        order.check_totals()
        _record_status(order, '', Order.STATUS_PENDING, f'Converted from quote {quote.quote_number}', user)

        quote.status = Quote.STATUS_CONVERTED
        quote.converted_at = clock.now()
        quote.order = order
        bump_version(quote)
        quote.save()

        create_audit_log(
            action='quote_convert',
            model_name='Quote',
            object_id=quote.id,
            object_reference=quote.quote_number,
            user=user,
            changes={'order_id': order.id, 'order_number': order.order_number, 'total': str(order.total)},
        )
    logger.info(f"Quote {quote.quote_number} converted to order {order.order_number}")
    return order
