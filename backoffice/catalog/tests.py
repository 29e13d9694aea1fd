"""
Test suite for Catalog module
Tests: Product CRUD, stock filters, read-only stock quantity
"""
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from backoffice.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from .models import Product


class ProductModelTests(TestCase):
    def test_in_stock(self):
        self.assertFalse(TestDataFactory.create_product(stock_quantity=0).in_stock)
        self.assertTrue(TestDataFactory.create_product(stock_quantity=3).in_stock)


class ProductAPITests(TestCase):
    """Test product API endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient().authenticate_user(self.user)

    def test_create_product(self):
        data = {'name': 'Ball Valve 20mm', 'sku': 'BV-20', 'price': '65.00', 'low_stock_threshold': 5}
        response = self.client.post('/api/v1/products/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['price'], '65.00')
        self.assertEqual(response.data['stock_quantity'], 0)
        self.assertFalse(response.data['in_stock'])

    def test_stock_quantity_is_read_only(self):
        """Stock only changes through receiving"""
        product = TestDataFactory.create_product(stock_quantity=4)
        response = self.client.patch(
            f'/api/v1/products/{product.id}/', {'stock_quantity': 999, 'price': '12.00'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        product.refresh_from_db()
        self.assertEqual(product.stock_quantity, 4)
        self.assertEqual(product.price, Decimal('12.00'))

    def test_products_cannot_be_deleted(self):
        product = TestDataFactory.create_product()
        response = self.client.delete(f'/api/v1/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_405_METHOD_NOT_ALLOWED)
        self.assertTrue(Product.objects.filter(pk=product.pk).exists())

    def test_stock_filters(self):
        empty = TestDataFactory.create_product(name='Empty', stock_quantity=0)
        low = TestDataFactory.create_product(name='Low', stock_quantity=5)
        plenty = TestDataFactory.create_product(name='Plenty', stock_quantity=50)

        response = self.client.get('/api/v1/products/', {'in_stock': 'true'})
        self.assertEqual({row['id'] for row in response.data}, {low.id, plenty.id})

        response = self.client.get('/api/v1/products/', {'low_stock': 'true'})
        self.assertEqual({row['id'] for row in response.data}, {empty.id, low.id})

    def test_search_by_sku(self):
        product = TestDataFactory.create_product(sku='GEY-150')
        TestDataFactory.create_product()
        response = self.client.get('/api/v1/products/', {'search': 'gey-1'})
        self.assertEqual([row['id'] for row in response.data], [product.id])
