"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from backoffice.catalog.models import Product
from backoffice.parties.models import Customer, Supplier
from decimal import Decimal
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', is_staff=False, is_superuser=False):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            is_staff=is_staff,
            is_superuser=is_superuser
        )

    @staticmethod
    def create_admin(username=None):
        return TestDataFactory.create_user(username=username, is_staff=True)

    @staticmethod
    def create_customer(first_name=None, email=None, payment_terms=None, **kwargs):
        """Create a test customer"""
        if not first_name:
            first_name = f'Customer_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{first_name.lower()}@test.com'
        return Customer.objects.create(
            first_name=first_name,
            last_name=kwargs.pop('last_name', 'Tester'),
            email=email,
            phone=kwargs.pop('phone', f'0{random.randint(100000000, 999999999)}'),
            payment_terms=payment_terms,
            **kwargs
        )

    @staticmethod
    def create_supplier(name=None, code=None, email=None):
        """Create a test supplier"""
        if not name:
            name = f'Supplier_{TestDataFactory.random_string(6)}'
        if not code:
            code = f'SUP_{TestDataFactory.random_string(6).upper()}'
        return Supplier.objects.create(
            name=name,
            code=code,
            email=email or f'{name.lower()}@test.com',
            phone='0211234567',
        )

    @staticmethod
    def create_product(name=None, sku=None, price=None, stock_quantity=0):
        """Create a test product"""
        if not name:
            name = f'Product_{TestDataFactory.random_string(6)}'
        if not sku:
            sku = f'SKU_{TestDataFactory.random_string(8)}'
        return Product.objects.create(
            name=name,
            sku=sku,
            price=price if price is not None else Decimal('100.00'),
            stock_quantity=stock_quantity,
            low_stock_threshold=10
        )

    @staticmethod
    def create_order(customer=None, items=None, user=None, **kwargs):
        """Create a PENDING order through the sales services"""
        from backoffice.sales.services import create_order
        if customer is None:
            customer = TestDataFactory.create_customer()
        if items is None:
            items = [{'description': 'Widget', 'quantity': 2, 'unit_price': Decimal('100.00')}]
        return create_order(customer, items, user=user, **kwargs)

    @staticmethod
    def create_quote(customer=None, items=None, user=None, **kwargs):
        """Create a DRAFT quote through the sales services"""
        from backoffice.sales.services import create_quote
        if items is None:
            items = [{'description': 'Widget', 'quantity': 10, 'unit_price': Decimal('100.00')}]
        return create_quote(items, customer=customer, user=user, **kwargs)

    @staticmethod
    def create_invoice(order=None, user=None, clock=None, **kwargs):
        """Generate an invoice from an order (a fresh one when not given)"""
        from backoffice.billing.services import generate_invoice_from_order
        if order is None:
            order = TestDataFactory.create_order(user=user)
        return generate_invoice_from_order(order.id, user=user, clock=clock, **kwargs)

    @staticmethod
    def create_purchase_order(supplier=None, items=None, user=None, **kwargs):
        """Create a DRAFT purchase order through the purchasing services"""
        from backoffice.purchasing.services import create_purchase_order
        if supplier is None:
            supplier = TestDataFactory.create_supplier()
        if items is None:
            product = TestDataFactory.create_product()
            items = [{'product': product.id, 'quantity': 10, 'unit_price': Decimal('50.00')}]
        return create_purchase_order(supplier, items, user=user, **kwargs)


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
