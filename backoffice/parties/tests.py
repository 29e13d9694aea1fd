"""
Test suite for Parties module
Tests: Customer and Supplier CRUD, filtering, protected deletes
"""
from django.test import TestCase
from rest_framework import status

from backoffice.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from .models import Customer, Supplier


class CustomerAPITests(TestCase):
    """Test customer API endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient().authenticate_user(self.user)

    def test_create_customer(self):
        data = {
            'first_name': 'Lerato',
            'last_name': 'Mokoena',
            'email': 'lerato@example.com',
            'phone': '0825550000',
            'payment_terms': 14,
        }
        response = self.client.post('/api/v1/customers/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['display_name'], 'Lerato Mokoena')
        self.assertEqual(Customer.objects.get().payment_terms, 14)

    def test_duplicate_email_rejected(self):
        TestDataFactory.create_customer(email='dup@example.com')
        response = self.client.post(
            '/api/v1/customers/', {'first_name': 'Other', 'email': 'dup@example.com'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)

    def test_company_is_display_name(self):
        customer = TestDataFactory.create_customer(company='Acme Plumbing')
        response = self.client.get(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.data['display_name'], 'Acme Plumbing')

    def test_search(self):
        TestDataFactory.create_customer(first_name='Zanele')
        TestDataFactory.create_customer(first_name='Pieter')
        response = self.client.get('/api/v1/customers/', {'search': 'zane'})
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['first_name'], 'Zanele')

    def test_update_customer(self):
        customer = TestDataFactory.create_customer()
        response = self.client.patch(f'/api/v1/customers/{customer.id}/', {'city': 'Cape Town'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        customer.refresh_from_db()
        self.assertEqual(customer.city, 'Cape Town')

    def test_delete_unused_customer(self):
        customer = TestDataFactory.create_customer()
        response = self.client.delete(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Customer.objects.filter(pk=customer.pk).exists())

    def test_delete_customer_with_orders_deactivates(self):
        customer = TestDataFactory.create_customer()
        TestDataFactory.create_order(customer=customer)
        response = self.client.delete(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'in_use')
        customer.refresh_from_db()
        self.assertFalse(customer.is_active)

    def test_filter_active(self):
        TestDataFactory.create_customer(is_active=False)
        active = TestDataFactory.create_customer()
        response = self.client.get('/api/v1/customers/', {'active': 'true'})
        self.assertEqual([row['id'] for row in response.data], [active.id])


class SupplierAPITests(TestCase):
    """Test supplier API endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient().authenticate_user(self.user)

    def test_create_supplier(self):
        data = {'name': 'Coastal Pipes', 'code': 'CP01', 'email': 'orders@coastal.example', 'payment_terms': 45}
        response = self.client.post('/api/v1/suppliers/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Supplier.objects.get().payment_terms, 45)

    def test_delete_supplier_with_purchase_orders_deactivates(self):
        supplier = TestDataFactory.create_supplier()
        TestDataFactory.create_purchase_order(supplier=supplier)
        response = self.client.delete(f'/api/v1/suppliers/{supplier.id}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        supplier.refresh_from_db()
        self.assertFalse(supplier.is_active)

    def test_requires_authentication(self):
        response = AuthenticatedAPIClient().get('/api/v1/suppliers/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
