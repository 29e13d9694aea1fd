from django.urls import path
from .views import (
    order_list_create, order_detail, order_status, order_items,
    order_pop_upload, order_pop_approve, order_pop_reject,
    quote_list_create, quote_request, quote_detail, quote_status, quote_reject, quote_convert
)

urlpatterns = [
    # Order endpoints
    path('orders/', order_list_create, name='order-list-create'),
    path('orders/<int:pk>/', order_detail, name='order-detail'),
    path('orders/<int:pk>/status/', order_status, name='order-status'),
    path('orders/<int:pk>/items/', order_items, name='order-items'),
    path('orders/<int:pk>/pop/', order_pop_upload, name='order-pop-upload'),
    path('orders/<int:pk>/pop/approve/', order_pop_approve, name='order-pop-approve'),
    path('orders/<int:pk>/pop/reject/', order_pop_reject, name='order-pop-reject'),

    # Quote endpoints
    path('quotes/', quote_list_create, name='quote-list-create'),
    path('quotes/request/', quote_request, name='quote-request'),
    path('quotes/<int:pk>/', quote_detail, name='quote-detail'),
    path('quotes/<int:pk>/status/', quote_status, name='quote-status'),
    path('quotes/<int:pk>/reject/', quote_reject, name='quote-reject'),
    path('quotes/<int:pk>/convert/', quote_convert, name='quote-convert'),
]
