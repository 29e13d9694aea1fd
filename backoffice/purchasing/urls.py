from django.urls import path
from .views import (
    purchase_order_list_create, purchase_order_detail, purchase_order_items, purchase_order_status,
    purchase_order_receive, purchase_order_receive_all
)

urlpatterns = [
    path('purchase-orders/', purchase_order_list_create, name='purchase-order-list-create'),
    path('purchase-orders/<int:pk>/', purchase_order_detail, name='purchase-order-detail'),
    path('purchase-orders/<int:pk>/items/', purchase_order_items, name='purchase-order-items'),
    path('purchase-orders/<int:pk>/status/', purchase_order_status, name='purchase-order-status'),
    path('purchase-orders/<int:pk>/receive/', purchase_order_receive, name='purchase-order-receive'),
    path('purchase-orders/<int:pk>/receive-all/', purchase_order_receive_all, name='purchase-order-receive-all'),
]
