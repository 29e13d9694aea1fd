from django.urls import path
from .views import (
    invoice_list_create, invoice_detail, invoice_send, invoice_payments, invoice_cancel,
    invoice_overdue_list, invoice_mark_overdue
)

urlpatterns = [
    path('invoices/', invoice_list_create, name='invoice-list-create'),
    path('invoices/overdue/', invoice_overdue_list, name='invoice-overdue-list'),
    path('invoices/mark-overdue/', invoice_mark_overdue, name='invoice-mark-overdue'),
    path('invoices/<int:pk>/', invoice_detail, name='invoice-detail'),
    path('invoices/<int:pk>/send/', invoice_send, name='invoice-send'),
    path('invoices/<int:pk>/payments/', invoice_payments, name='invoice-payments'),
    path('invoices/<int:pk>/cancel/', invoice_cancel, name='invoice-cancel'),
]
