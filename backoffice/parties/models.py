from django.db import models
from decimal import Decimal


class Customer(models.Model):
    """Customers"""
    SOURCE_CHOICES = [
        ('WEBSITE', 'Website'),
        ('ADMIN', 'Admin'),
        ('QUOTE', 'Quote'),
        ('PHONE', 'Phone'),
    ]

    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100, blank=True)
    company = models.CharField(max_length=200, blank=True)
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=20, blank=True)
    address = models.TextField(blank=True)
    city = models.CharField(max_length=100, blank=True)
    # Days until an invoice falls due; null means the configured default
    payment_terms = models.PositiveIntegerField(null=True, blank=True)
    credit_limit = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    source = models.CharField(max_length=20, choices=SOURCE_CHOICES, default='ADMIN')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.display_name

    @property
    def display_name(self):
        full_name = f'{self.first_name} {self.last_name}'.strip()
        return self.company or full_name

    class Meta:
        db_table = 'customers'
        ordering = ['company', 'first_name']


class Supplier(models.Model):
    """Suppliers"""
    name = models.CharField(max_length=200)
    code = models.CharField(max_length=50, unique=True, blank=True, null=True)
    phone = models.CharField(max_length=20, blank=True)
    email = models.EmailField(blank=True)
    address = models.TextField(blank=True)
    contact_person = models.CharField(max_length=200, blank=True)
    payment_terms = models.PositiveIntegerField(default=30)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'suppliers'
