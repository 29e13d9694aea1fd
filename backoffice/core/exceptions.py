"""Engine error kinds and the DRF exception handler that renders them"""
import logging

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class EngineError(APIException):
    """Base for user-facing engine failures.

    ``context`` carries structured details (statuses, quantities) that end up
    next to the error code in the response body.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Operation rejected.'
    default_code = 'engine_error'

    def __init__(self, detail=None, **context):
        super().__init__(detail=detail)
        self.context = context

    @property
    def code(self):
        return self.default_code


class InvalidTransition(EngineError):
    status_code = status.HTTP_409_CONFLICT
    default_code = 'invalid_transition'

    def __init__(self, from_status, to_status, detail=None):
        super().__init__(
            detail or f'Cannot move from {from_status} to {to_status}.',
            from_status=from_status,
            to_status=to_status,
        )
        self.from_status = from_status
        self.to_status = to_status


class DocumentLocked(EngineError):
    status_code = status.HTTP_409_CONFLICT
    default_code = 'document_locked'
    default_detail = 'Document can no longer be changed.'


class InvalidAmount(EngineError):
    default_code = 'invalid_amount'
    default_detail = 'Amount must be greater than zero.'


class OverApplication(EngineError):
    default_code = 'over_application'
    default_detail = 'Payment exceeds the amount due.'


class InvoiceLocked(EngineError):
    status_code = status.HTTP_409_CONFLICT
    default_code = 'invoice_locked'
    default_detail = 'Invoice is cancelled.'


class OverReceipt(EngineError):
    default_code = 'over_receipt'
    default_detail = 'Received quantity exceeds the quantity still outstanding.'


class SplitMismatch(EngineError):
    default_code = 'split_mismatch'
    default_detail = 'Accepted plus rejected must equal the quantity received.'


class MissingReason(EngineError):
    default_code = 'missing_reason'
    default_detail = 'A reason is required.'


class EmptyReceipt(EngineError):
    default_code = 'empty_receipt'
    default_detail = 'Nothing to receive.'


class QuoteExpired(EngineError):
    status_code = status.HTTP_409_CONFLICT
    default_code = 'quote_expired'
    default_detail = 'Quote is past its validity date.'


class AlreadyConverted(EngineError):
    status_code = status.HTTP_409_CONFLICT
    default_code = 'already_converted'
    default_detail = 'Quote has already been converted to an order.'


class AlreadyInvoiced(EngineError):
    status_code = status.HTTP_409_CONFLICT
    default_code = 'already_invoiced'
    default_detail = 'An invoice already exists for this order.'


class ConcurrentModification(EngineError):
    status_code = status.HTTP_409_CONFLICT
    default_code = 'concurrent_modification'
    default_detail = 'Document was changed by someone else; reload and retry.'


class NotFound(EngineError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = 'not_found'
    default_detail = 'Referenced record does not exist.'


class InvariantViolation(Exception):
    """Internal consistency failure (e.g. totals disagreeing with line items).

    Never shown to the caller as-is: the exception handler turns it into a
    generic 500.
    """


def engine_exception_handler(exc, context):
    if isinstance(exc, InvariantViolation):
        logger.exception('Invariant violation in %s', context.get('view'), exc_info=exc)
        return Response(
            {'error': 'internal_error', 'detail': 'Internal error.'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if isinstance(exc, EngineError):
        logger.info('Engine refused request: %s (%s)', exc.code, exc.detail)
        body = {'error': exc.code, 'detail': str(exc.detail)}
        body.update(exc.context)
        return Response(body, status=exc.status_code)

    return exception_handler(exc, context)
