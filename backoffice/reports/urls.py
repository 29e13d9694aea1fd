from django.urls import path
from .views import sales_report, invoice_statistics

urlpatterns = [
    path('reports/', sales_report, name='sales-report'),
    path('reports/invoice-stats/', invoice_statistics, name='invoice-stats'),
]
