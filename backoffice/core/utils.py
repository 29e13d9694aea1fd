"""Helpers shared by the document services: audit logging, numbering, row locking"""
import logging

from django.db import IntegrityError, transaction

from .exceptions import ConcurrentModification, InvalidAmount, NotFound
from .models import AuditLog
from .money import compute_totals, to_money

logger = logging.getLogger(__name__)


def create_audit_log(action=None, model_name=None, object_id=None, changes=None,
                     user=None, object_reference=None):
    """
    Create an audit log entry

    Args:
        action: Action type (order_create, payment_add, stock_receive, etc.)
        model_name: Name of the model being acted upon
        object_id: ID of the object (as string)
        changes: Dictionary of changes made
        user: User performing the action, if any
        object_reference: Document number (e.g., invoice number, PO number)

    Runs in its own savepoint so a failed write never breaks the caller's
    transaction.
    """
    if not action or not model_name or object_id is None:
        logger.warning(
            f"Audit log creation skipped: missing required fields "
            f"(action={action}, model_name={model_name}, object_id={object_id})"
        )
        return None
    try:
        with transaction.atomic():
            return AuditLog.objects.create(
                user=user if user is not None and user.is_authenticated else None,
                action=action,
                model_name=model_name,
                object_id=str(object_id),
                object_reference=object_reference,
                changes=changes or {},
            )
    except Exception as e:
        # Don't fail the main operation if audit logging fails
        logger.error(f"Failed to create audit log: {str(e)}")
        return None


def next_document_number(model, field, prefix, width=5):
    """Next sequential number for ``prefix``, e.g. ``ORD-2026-00042``"""
    last = (
        model.objects.filter(**{f'{field}__startswith': prefix})
        .order_by(f'-{field}')
        .values_list(field, flat=True)
        .first()
    )
    number = 1
    if last:
        try:
            number = int(last[len(prefix):]) + 1
        except ValueError:
            logger.warning(f"Unparseable {model.__name__}.{field} '{last}', restarting sequence")
    return f'{prefix}{str(number).zfill(width)}'


def create_numbered(model, field, prefix, width=5, attempts=5, **fields):
    """Create a ``model`` row under the next free number for ``prefix``.

    Two writers can read the same last number; the loser hits the unique
    constraint inside its savepoint and tries the following number.
    """
    for attempt in range(1, attempts + 1):
        number = next_document_number(model, field, prefix, width)
        try:
            with transaction.atomic():
                return model.objects.create(**{field: number}, **fields)
        except IntegrityError:
            if not model.objects.filter(**{field: number}).exists():
                raise
            logger.warning(f"{model.__name__} number {number} already taken (attempt {attempt}/{attempts})")
    raise ConcurrentModification(
        f"Could not allocate a {model.__name__} number, retry the request.", prefix=prefix
    )


def lock_document(model, pk, version=None):
    """Fetch ``model`` row ``pk`` with a row lock; must run inside ``transaction.atomic``.

    When the caller passes the ``version`` it last read, a mismatch means the
    document changed underneath it.
    """
    try:
        document = model.objects.select_for_update().get(pk=pk)
    except model.DoesNotExist:
        raise NotFound(f'{model.__name__} {pk} does not exist.')
    if version is not None and int(version) != document.version:
        raise ConcurrentModification(expected_version=int(version), current_version=document.version)
    return document


def prepare_line_items(items_data):
    """Validate raw line dicts and resolve product references.

    Each dict may carry ``product`` (id or instance), ``description``,
    ``sku``, ``quantity``, ``unit_price`` and ``notes``. Price, description
    and sku fall back to the product's own values.
    """
    from backoffice.catalog.models import Product

    prepared = []
    for data in items_data:
        product = data.get('product')
        if product is not None and not isinstance(product, Product):
            product = Product.objects.filter(pk=product).first()
            if product is None:
                raise NotFound(f"Product {data.get('product')} does not exist.")

        quantity = data.get('quantity')
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
            raise InvalidAmount('Quantity must be a positive whole number.', quantity=str(quantity))

        unit_price = data.get('unit_price')
        if unit_price is None:
            unit_price = product.price if product else None
        if unit_price is None:
            raise InvalidAmount('Unit price is required for custom items.')
        unit_price = to_money(unit_price)
        if unit_price < 0:
            raise InvalidAmount('Unit price cannot be negative.', unit_price=str(unit_price))

        prepared.append({
            'product': product,
            'description': data.get('description') or (product.name if product else 'Custom Item'),
            'sku': data.get('sku') or (product.sku if product and product.sku else ''),
            'quantity': quantity,
            'unit_price': unit_price,
            'notes': data.get('notes') or '',
        })
    return prepared


def check_discount(prepared_items, discount):
    """Totals for prepared lines, refusing discounts below zero or above the gross total"""
    try:
        discount = to_money(discount)
    except ValueError:
        raise InvalidAmount('Discount is not a valid amount.', discount=str(discount))
    totals = compute_totals(((line['quantity'], line['unit_price']) for line in prepared_items), discount)
    if totals.discount < 0 or totals.total < 0:
        raise InvalidAmount('Discount must be between zero and the document total.', discount=str(totals.discount))
    return totals


def bump_version(document):
    document.version += 1
