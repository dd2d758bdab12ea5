from django.urls import path
from .views import item_list_create, item_detail, item_bulk_delete

urlpatterns = [
    # Article endpoints ('items' and 'articles' are both used by clients)
    path('items/', item_list_create, name='item-list-create'),
    path('items/bulk-delete/', item_bulk_delete, name='item-bulk-delete'),
    path('items/<int:pk>/', item_detail, name='item-detail'),
    path('articles/', item_list_create, name='article-list-create'),
    path('articles/bulk-delete/', item_bulk_delete, name='article-bulk-delete'),
    path('articles/<int:pk>/', item_detail, name='article-detail'),
]
