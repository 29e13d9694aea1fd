"""
Purchase orders and stock receiving.

Receiving is the only path that changes ``Product.stock_quantity``.
PARTIAL and RECEIVED are derived from the lines' ``quantity_received`` and
can't be requested directly.
"""
import logging
from collections import defaultdict

from django.db import transaction
from django.db.models import F

from backoffice.catalog.models import Product
from backoffice.core import clock as clocks
from backoffice.core.exceptions import (
    DocumentLocked, EmptyReceipt, InvalidAmount, InvalidTransition, MissingReason, NotFound,
    OverReceipt, SplitMismatch
)
from backoffice.core.state_machine import StateMachine
from backoffice.core.utils import (
    bump_version, check_discount, create_audit_log, create_numbered, lock_document, prepare_line_items
)
from backoffice.parties.models import Supplier
from .models import PurchaseOrder, PurchaseOrderItem, StockReceiving, StockReceivingItem

logger = logging.getLogger(__name__)

PO_MACHINE = StateMachine(
    'Purchase order',
    {
        PurchaseOrder.STATUS_DRAFT: {PurchaseOrder.STATUS_SENT, PurchaseOrder.STATUS_CANCELLED},
        PurchaseOrder.STATUS_SENT: {PurchaseOrder.STATUS_CONFIRMED, PurchaseOrder.STATUS_CANCELLED},
        PurchaseOrder.STATUS_CONFIRMED: {PurchaseOrder.STATUS_CANCELLED},
        PurchaseOrder.STATUS_PARTIAL: {PurchaseOrder.STATUS_CANCELLED},
    },
    # Lines can only be edited while the PO is a draft
    locked=[
        PurchaseOrder.STATUS_SENT, PurchaseOrder.STATUS_CONFIRMED, PurchaseOrder.STATUS_PARTIAL,
        PurchaseOrder.STATUS_RECEIVED, PurchaseOrder.STATUS_CANCELLED,
    ],
)

RECEIVABLE = (PurchaseOrder.STATUS_SENT, PurchaseOrder.STATUS_CONFIRMED, PurchaseOrder.STATUS_PARTIAL)
TERMINAL = (PurchaseOrder.STATUS_RECEIVED, PurchaseOrder.STATUS_CANCELLED)


def _resolve_supplier(supplier):
    if isinstance(supplier, Supplier):
        return supplier
    found = Supplier.objects.filter(pk=supplier).first() if supplier is not None else None
    if found is None:
        raise NotFound(f'Supplier {supplier} does not exist.')
    return found


def create_purchase_order(supplier, items, order_date=None, expected_date=None, discount=0,
                          notes='', internal_notes='', user=None, clock=None):
    if not items:
        raise InvalidAmount('At least one line item is required.')
    supplier = _resolve_supplier(supplier)
    prepared = prepare_line_items(items)
    totals = check_discount(prepared, discount)

    with transaction.atomic():
        po = create_numbered(
            PurchaseOrder, 'po_number', 'PO-', width=6,
            supplier=supplier,
            order_date=order_date or clocks.resolve(clock).today(),
            expected_date=expected_date,
            subtotal=totals.subtotal,
            vat_amount=totals.vat_amount,
            discount=totals.discount,
            total=totals.total,
            notes=notes or '',
            internal_notes=internal_notes or '',
            created_by=user if user is not None and user.is_authenticated else None,
        )
        PurchaseOrderItem.objects.bulk_create([PurchaseOrderItem(purchase_order=po, **line) for line in prepared])
        po.check_totals()

        create_audit_log(
            action='po_create',
            model_name='PurchaseOrder',
            object_id=po.id,
            object_reference=po.po_number,
            user=user,
            changes={'supplier_id': supplier.id, 'items_count': len(prepared), 'total': str(po.total)},
        )
    logger.info(f"Purchase order {po.po_number} created for supplier {supplier.id}")
    return po


def update_purchase_order_items(po_id, items, discount=None, user=None, version=None):
    if not items:
        raise InvalidAmount('At least one line item is required.')
    with transaction.atomic():
        po = lock_document(PurchaseOrder, po_id, version)
        PO_MACHINE.check_editable(po.status)
        prepared = prepare_line_items(items)
        totals = check_discount(prepared, po.discount if discount is None else discount)

        po.items.all().delete()
        PurchaseOrderItem.objects.bulk_create([PurchaseOrderItem(purchase_order=po, **line) for line in prepared])
        po.discount = totals.discount
        po.recalculate_totals()
        bump_version(po)
        po.save()
        po.check_totals()

        create_audit_log(
            action='po_update',
            model_name='PurchaseOrder',
            object_id=po.id,
            object_reference=po.po_number,
            user=user,
            changes={'items_count': len(prepared), 'total': str(po.total)},
        )
    return po


def transition_po_status(po_id, new_status, notes='', user=None, version=None, clock=None):
    now = clocks.resolve(clock).now()
    with transaction.atomic():
        po = lock_document(PurchaseOrder, po_id, version)
        PO_MACHINE.check(po.status, new_status)
        old_status = po.status
        if new_status == PurchaseOrder.STATUS_SENT:
            po.sent_at = now
        elif new_status == PurchaseOrder.STATUS_CONFIRMED:
            po.confirmed_at = now
        elif new_status == PurchaseOrder.STATUS_CANCELLED:
            po.cancelled_at = now
        po.status = new_status
        bump_version(po)
        po.save()

        create_audit_log(
            action='po_status',
            model_name='PurchaseOrder',
            object_id=po.id,
            object_reference=po.po_number,
            user=user,
            changes={'status': {'old': old_status, 'new': new_status}, 'notes': notes},
        )
    logger.info(f"Purchase order {po.po_number} {old_status} -> {new_status}")
    return po


def _quantity(record, key, default=0):
    value = record.get(key, default)
    if value is None:
        value = default
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidAmount(f'{key} must be a whole number.', **{key: str(value)})
    if value < 0:
        raise InvalidAmount(f'{key} cannot be negative.', **{key: value})
    return value


def _validate_records(po, records):
    """Check every record against the locked PO; returns (line, received, accepted, rejected, reason) tuples"""
    lines = {line.id: line for line in po.items.all()}
    validated = []
    received_per_line = defaultdict(int)

    for record in records:
        item_id = record.get('item_id')
        line = lines.get(item_id)
        if line is None:
            raise NotFound(f'Line {item_id} is not on purchase order {po.po_number}.', item_id=item_id)

        received = _quantity(record, 'quantity_received')
        rejected = _quantity(record, 'quantity_rejected')
        if record.get('quantity_accepted') is None:
            accepted = received - rejected
        else:
            accepted = _quantity(record, 'quantity_accepted')
        if accepted < 0 or accepted + rejected != received:
            raise SplitMismatch(
                item_id=item_id, quantity_received=received,
                quantity_accepted=accepted, quantity_rejected=rejected,
            )
        reason = (record.get('rejection_reason') or '').strip()
        if rejected > 0 and not reason:
            raise MissingReason('Rejected units need a rejection reason.', item_id=item_id)

        received_per_line[item_id] += received
        if received_per_line[item_id] > line.quantity_remaining:
            raise OverReceipt(
                item_id=item_id,
                quantity_received=received_per_line[item_id],
                quantity_remaining=line.quantity_remaining,
            )
        validated.append((line, received, accepted, rejected, reason))

    if not any(received for _, received, _, _, _ in validated):
        raise EmptyReceipt()
    return validated


def _derive_po_status(po):
    lines = list(po.items.all())
    if lines and all(line.quantity_received >= line.quantity for line in lines):
        return PurchaseOrder.STATUS_RECEIVED
    if any(line.quantity_received > 0 for line in lines):
        return PurchaseOrder.STATUS_PARTIAL
    return po.status


def receive_stock(po_id, records, notes='', user=None, version=None, clock=None):
    """
    Book a delivery against a purchase order.

    ``records`` is a list of dicts with ``item_id``, ``quantity_received``,
    ``quantity_accepted``, ``quantity_rejected`` and ``rejection_reason``.
    Accepted units go into stock; rejected units are only recorded.
    """
    now = clocks.resolve(clock).now()
    with transaction.atomic():
        po = lock_document(PurchaseOrder, po_id, version)
        if po.status in TERMINAL:
            raise DocumentLocked(f'Purchase order is {po.status}.', status=po.status)
        if po.status not in RECEIVABLE:
            raise InvalidTransition(po.status, PurchaseOrder.STATUS_PARTIAL, 'Send the purchase order before receiving stock.')

        validated = _validate_records(po, records or [])

        product_ids = sorted({line.product_id for line, *_ in validated if line.product_id})
        # Lock in id order so concurrent receivings can't deadlock
        list(Product.objects.select_for_update().filter(id__in=product_ids).order_by('id'))

        receiving = StockReceiving.objects.create(
            purchase_order=po,
            received_by=user if user is not None and user.is_authenticated else None,
            received_at=now,
            notes=notes or '',
        )
        stock_changes = {}
        for line, received, accepted, rejected, reason in validated:
            if received == 0:
                continue
            StockReceivingItem.objects.create(
                receiving=receiving,
                po_item=line,
                product_id=line.product_id,
                description=line.description,
                quantity_received=received,
                quantity_accepted=accepted,
                quantity_rejected=rejected,
                rejection_reason=reason,
            )
            PurchaseOrderItem.objects.filter(pk=line.pk).update(quantity_received=F('quantity_received') + received)
            if line.product_id and accepted:
                Product.objects.filter(pk=line.product_id).update(stock_quantity=F('stock_quantity') + accepted)
                stock_changes[line.product_id] = stock_changes.get(line.product_id, 0) + accepted

        old_status = po.status
        po.status = _derive_po_status(po)
        po.received_date = now
        bump_version(po)
        po.save()

        create_audit_log(
            action='stock_receive',
            model_name='PurchaseOrder',
            object_id=po.id,
            object_reference=po.po_number,
            user=user,
            changes={
                'receiving_id': receiving.id,
                'status': {'old': old_status, 'new': po.status},
                'stock': {str(product_id): quantity for product_id, quantity in stock_changes.items()},
            }
        )
    logger.info(f"Stock received on {po.po_number}: {len(stock_changes)} product(s), status {old_status} -> {po.status}")
    return receiving


def receive_all_remaining(po_id, notes='', user=None, version=None, clock=None):
    """Receive every outstanding unit as accepted"""
    records = [
        {
            'item_id': line.id,
            'quantity_received': line.quantity_remaining,
            'quantity_accepted': line.quantity_remaining,
            'quantity_rejected': 0,
        }
        for line in PurchaseOrderItem.objects.filter(purchase_order_id=po_id)
        if line.quantity_remaining > 0
    ]
    return receive_stock(po_id, records, notes=notes or 'Received all remaining', user=user, version=version, clock=clock)
