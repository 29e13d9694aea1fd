"""
Comprehensive test suite for Purchasing module
Tests: Purchase orders, status workflow, stock receiving, API endpoints
"""
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from backoffice.core.exceptions import (
    ConcurrentModification, DocumentLocked, EmptyReceipt, InvalidAmount, InvalidTransition, MissingReason,
    NotFound, OverReceipt, SplitMismatch
)
from backoffice.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from . import services
from .models import PurchaseOrder, PurchaseOrderItem, StockReceiving


class PurchaseOrderTests(TestCase):
    """Test purchase order creation and status rules"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.supplier = TestDataFactory.create_supplier()
        self.product = TestDataFactory.create_product(price=Decimal('80.00'))

    def test_create_purchase_order(self):
        po = services.create_purchase_order(
            self.supplier,
            [{'product': self.product.id, 'quantity': 50, 'unit_price': Decimal('20.00')}],
            user=self.user,
        )
        self.assertEqual(po.status, PurchaseOrder.STATUS_DRAFT)
        self.assertEqual(po.po_number, 'PO-000001')
        self.assertEqual(po.subtotal, Decimal('1000.00'))
        self.assertEqual(po.total, Decimal('1150.00'))
        self.assertIsNotNone(po.order_date)
        self.assertEqual(po.created_by, self.user)

    def test_unknown_supplier(self):
        with self.assertRaises(NotFound):
            services.create_purchase_order(999999, [{'description': 'x', 'quantity': 1, 'unit_price': 1}])

    def test_status_workflow(self):
        po = TestDataFactory.create_purchase_order(supplier=self.supplier)
        po = services.transition_po_status(po.id, PurchaseOrder.STATUS_SENT)
        self.assertIsNotNone(po.sent_at)
        po = services.transition_po_status(po.id, PurchaseOrder.STATUS_CONFIRMED)
        self.assertIsNotNone(po.confirmed_at)
        with self.assertRaises(InvalidTransition):
            services.transition_po_status(po.id, PurchaseOrder.STATUS_DRAFT)

    def test_received_cannot_be_requested(self):
        po = TestDataFactory.create_purchase_order(supplier=self.supplier)
        services.transition_po_status(po.id, PurchaseOrder.STATUS_SENT)
        with self.assertRaises(InvalidTransition):
            services.transition_po_status(po.id, PurchaseOrder.STATUS_RECEIVED)

    def test_lines_editable_only_in_draft(self):
        po = TestDataFactory.create_purchase_order(supplier=self.supplier)
        po = services.update_purchase_order_items(
            po.id, [{'product': self.product.id, 'quantity': 5, 'unit_price': Decimal('10.00')}]
        )
        self.assertEqual(po.total, Decimal('57.50'))
        services.transition_po_status(po.id, PurchaseOrder.STATUS_SENT)
        with self.assertRaises(DocumentLocked):
            services.update_purchase_order_items(
                po.id, [{'product': self.product.id, 'quantity': 6, 'unit_price': Decimal('10.00')}]
            )


class StockReceivingTests(TestCase):
    """Test receiving deliveries against purchase orders"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product(stock_quantity=5)
        self.po = TestDataFactory.create_purchase_order(
            items=[{'product': self.product.id, 'quantity': 50, 'unit_price': Decimal('20.00')}]
        )
        services.transition_po_status(self.po.id, PurchaseOrder.STATUS_SENT)
        self.line = self.po.items.get()

    def _record(self, received, accepted=None, rejected=0, reason=''):
        record = {'item_id': self.line.id, 'quantity_received': received, 'quantity_rejected': rejected}
        if accepted is not None:
            record['quantity_accepted'] = accepted
        if reason:
            record['rejection_reason'] = reason
        return record

    def test_partial_then_full_receipt(self):
        """50 ordered: 30 arrive with 2 damaged, then the last 20"""
        receiving = services.receive_stock(self.po.id, [self._record(30, 28, 2, 'damaged')], user=self.user)
        self.line.refresh_from_db()
        self.product.refresh_from_db()
        self.po.refresh_from_db()
        self.assertEqual(self.line.quantity_received, 30)
        self.assertEqual(self.po.status, PurchaseOrder.STATUS_PARTIAL)
        self.assertEqual(self.product.stock_quantity, 5 + 28)
        receiving_item = receiving.items.get()
        self.assertEqual(receiving_item.quantity_rejected, 2)
        self.assertEqual(receiving_item.rejection_reason, 'damaged')

        services.receive_stock(self.po.id, [self._record(20, 20, 0)])
        self.line.refresh_from_db()
        self.product.refresh_from_db()
        self.po.refresh_from_db()
        self.assertEqual(self.line.quantity_received, 50)
        self.assertEqual(self.po.status, PurchaseOrder.STATUS_RECEIVED)
        self.assertEqual(self.product.stock_quantity, 5 + 48)
        self.assertEqual(self.po.receivings.count(), 2)

    def test_split_mismatch_changes_nothing(self):
        self.po.refresh_from_db()
        version = self.po.version
        with self.assertRaises(SplitMismatch):
            services.receive_stock(self.po.id, [self._record(10, 7, 2, 'damaged')])
        self.po.refresh_from_db()
        self.line.refresh_from_db()
        self.product.refresh_from_db()
        self.assertEqual(self.po.status, PurchaseOrder.STATUS_SENT)
        self.assertEqual(self.po.version, version)
        self.assertEqual(self.line.quantity_received, 0)
        self.assertEqual(self.product.stock_quantity, 5)
        self.assertEqual(StockReceiving.objects.count(), 0)

    def test_accepted_defaults_to_received_minus_rejected(self):
        services.receive_stock(self.po.id, [self._record(10, rejected=1, reason='cracked')])
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 5 + 9)

    def test_more_rejected_than_received_is_a_split_mismatch(self):
        with self.assertRaises(SplitMismatch) as ctx:
            services.receive_stock(self.po.id, [self._record(2, rejected=5, reason='broken')])
        self.assertEqual(ctx.exception.context['quantity_rejected'], 5)
        self.assertEqual(ctx.exception.context['quantity_accepted'], -3)
        self.line.refresh_from_db()
        self.assertEqual(self.line.quantity_received, 0)

    def test_stale_version_refuses_receipt(self):
        self.po.refresh_from_db()
        stale = self.po.version
        services.receive_stock(self.po.id, [self._record(10, 10)], version=stale)
        with self.assertRaises(ConcurrentModification):
            services.receive_stock(self.po.id, [self._record(5, 5)], version=stale)
        with self.assertRaises(ConcurrentModification):
            services.receive_all_remaining(self.po.id, version=stale)
        self.line.refresh_from_db()
        self.product.refresh_from_db()
        self.assertEqual(self.line.quantity_received, 10)
        self.assertEqual(self.product.stock_quantity, 5 + 10)
        self.assertEqual(StockReceiving.objects.count(), 1)

    def test_rejection_needs_reason(self):
        with self.assertRaises(MissingReason):
            services.receive_stock(self.po.id, [self._record(10, 8, 2)])

    def test_over_receipt(self):
        services.receive_stock(self.po.id, [self._record(45, 45)])
        with self.assertRaises(OverReceipt):
            services.receive_stock(self.po.id, [self._record(6, 6)])

    def test_over_receipt_across_records_for_same_line(self):
        with self.assertRaises(OverReceipt):
            services.receive_stock(self.po.id, [self._record(30, 30), self._record(30, 30)])
        self.line.refresh_from_db()
        self.assertEqual(self.line.quantity_received, 0)

    def test_empty_receipt(self):
        with self.assertRaises(EmptyReceipt):
            services.receive_stock(self.po.id, [])
        with self.assertRaises(EmptyReceipt):
            services.receive_stock(self.po.id, [self._record(0, 0)])

    def test_negative_quantity(self):
        with self.assertRaises(InvalidAmount):
            services.receive_stock(self.po.id, [self._record(-1)])

    def test_unknown_line(self):
        other = TestDataFactory.create_purchase_order()
        foreign_line = other.items.get()
        with self.assertRaises(NotFound):
            services.receive_stock(self.po.id, [{'item_id': foreign_line.id, 'quantity_received': 1}])

    def test_draft_cannot_receive(self):
        draft = TestDataFactory.create_purchase_order()
        line = draft.items.get()
        with self.assertRaises(InvalidTransition):
            services.receive_stock(draft.id, [{'item_id': line.id, 'quantity_received': 1}])

    def test_received_and_cancelled_are_locked(self):
        services.receive_all_remaining(self.po.id)
        with self.assertRaises(DocumentLocked):
            services.receive_stock(self.po.id, [self._record(1, 1)])

        cancelled = TestDataFactory.create_purchase_order()
        services.transition_po_status(cancelled.id, PurchaseOrder.STATUS_CANCELLED)
        with self.assertRaises(DocumentLocked):
            services.receive_all_remaining(cancelled.id)

    def test_receive_all_remaining(self):
        services.receive_stock(self.po.id, [self._record(12, 12)])
        services.receive_all_remaining(self.po.id, user=self.user)
        self.po.refresh_from_db()
        self.product.refresh_from_db()
        self.assertEqual(self.po.status, PurchaseOrder.STATUS_RECEIVED)
        self.assertEqual(self.product.stock_quantity, 55)

    def test_partial_po_can_be_cancelled(self):
        services.receive_stock(self.po.id, [self._record(10, 10)])
        po = services.transition_po_status(self.po.id, PurchaseOrder.STATUS_CANCELLED)
        self.assertEqual(po.status, PurchaseOrder.STATUS_CANCELLED)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 15)

    def test_custom_line_does_not_touch_stock(self):
        po = TestDataFactory.create_purchase_order(
            items=[{'description': 'Freight', 'quantity': 1, 'unit_price': Decimal('300.00')}]
        )
        services.transition_po_status(po.id, PurchaseOrder.STATUS_SENT)
        services.receive_all_remaining(po.id)
        po.refresh_from_db()
        self.assertEqual(po.status, PurchaseOrder.STATUS_RECEIVED)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 5)


class PurchaseOrderAPITests(TestCase):
    """Test purchase order API endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient().authenticate_user(self.user)
        self.supplier = TestDataFactory.create_supplier()
        self.product = TestDataFactory.create_product()

    def _create(self):
        data = {
            'supplier': self.supplier.id,
            'items': [{'product': self.product.id, 'quantity': 50, 'unit_price': '20.00'}],
        }
        response = self.client.post('/api/v1/purchase-orders/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        return response.data

    def test_create_and_receive(self):
        po = self._create()
        self.assertEqual(po['status'], PurchaseOrder.STATUS_DRAFT)
        response = self.client.post(f"/api/v1/purchase-orders/{po['id']}/status/", {'status': 'SENT'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        line_id = PurchaseOrderItem.objects.get(purchase_order_id=po['id']).id
        data = {'items': [{
            'item_id': line_id, 'quantity_received': 30, 'quantity_accepted': 28,
            'quantity_rejected': 2, 'rejection_reason': 'damaged',
        }]}
        response = self.client.post(f"/api/v1/purchase-orders/{po['id']}/receive/", data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['items'][0]['quantity_accepted'], 28)

        response = self.client.get(f"/api/v1/purchase-orders/{po['id']}/")
        self.assertEqual(response.data['status'], PurchaseOrder.STATUS_PARTIAL)

        response = self.client.post(f"/api/v1/purchase-orders/{po['id']}/receive-all/", {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 48)

    def test_split_mismatch_response(self):
        po = self._create()
        self.client.post(f"/api/v1/purchase-orders/{po['id']}/status/", {'status': 'SENT'}, format='json')
        line_id = PurchaseOrderItem.objects.get(purchase_order_id=po['id']).id
        data = {'items': [{
            'item_id': line_id, 'quantity_received': 10, 'quantity_accepted': 7,
            'quantity_rejected': 2, 'rejection_reason': 'damaged',
        }]}
        response = self.client.post(f"/api/v1/purchase-orders/{po['id']}/receive/", data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'split_mismatch')
        self.assertEqual(response.data['quantity_received'], 10)

    def test_receive_with_stale_version_conflicts(self):
        po = self._create()
        self.client.post(f"/api/v1/purchase-orders/{po['id']}/status/", {'status': 'SENT'}, format='json')
        line_id = PurchaseOrderItem.objects.get(purchase_order_id=po['id']).id
        data = {'version': po['version'], 'items': [{'item_id': line_id, 'quantity_received': 10}]}
        response = self.client.post(f"/api/v1/purchase-orders/{po['id']}/receive/", data, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'concurrent_modification')
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 0)
        self.assertFalse(StockReceiving.objects.exists())

    def test_list_by_status(self):
        po = self._create()
        TestDataFactory.create_purchase_order(supplier=self.supplier)
        services.transition_po_status(po['id'], PurchaseOrder.STATUS_SENT)
        response = self.client.get('/api/v1/purchase-orders/', {'status': 'SENT'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['id'] for row in response.data], [po['id']])
