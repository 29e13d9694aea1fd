"""Money arithmetic shared by every document type.

All amounts are ``Decimal`` rounded half-up to cents. Nothing in here
touches the database.
"""
from collections import namedtuple
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

from django.conf import settings

CENT = Decimal('0.01')
ZERO = Decimal('0.00')

Totals = namedtuple('Totals', ['subtotal', 'vat_amount', 'discount', 'total'])


def vat_rate():
    """Configured VAT rate as a fraction (0.15 for 15%)"""
    return Decimal(str(settings.BACKOFFICE.get('VAT_RATE', '0.15')))


def to_money(value):
    """Coerce a number or numeric string to a cent-rounded Decimal.

    Floats are converted through ``str`` so 0.1 stays 0.10 instead of
    picking up binary noise.
    """
    if value is None:
        return ZERO
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f'Not a money amount: {value!r}')
    if not amount.is_finite():
        raise ValueError(f'Not a money amount: {value!r}')
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(quantity, unit_price):
    return to_money(Decimal(quantity) * to_money(unit_price))


def vat_for(subtotal):
    return to_money(to_money(subtotal) * vat_rate())


def compute_totals(lines, discount=ZERO):
    """Totals for an iterable of ``(quantity, unit_price)`` pairs.

    VAT is charged on the subtotal; the discount comes off after VAT.
    """
    subtotal = sum((line_total(qty, price) for qty, price in lines), ZERO)
    vat_amount = vat_for(subtotal)
    discount = to_money(discount)
    return Totals(
        subtotal=subtotal,
        vat_amount=vat_amount,
        discount=discount,
        total=subtotal + vat_amount - discount,
    )
