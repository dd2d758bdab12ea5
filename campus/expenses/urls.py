from django.urls import path
from campus.reports.views import expense_dashboard
from . import views

urlpatterns = [
    path('expenses/', views.expense_list_create, name='expense-list-create'),
    path('expenses/statistics/', views.expense_statistics_view, name='expense-statistics'),
    path('expenses/dashboard/', expense_dashboard, name='expense-dashboard'),
    path('expenses/bulk-delete/', views.expense_bulk_delete, name='expense-bulk-delete'),
    path('expenses/export-excel/', views.expense_export_excel, name='expense-export-excel'),
    path('expenses/<int:pk>/', views.expense_detail, name='expense-detail'),
    path('expenses/<int:pk>/documents/', views.expense_upload_documents, name='expense-upload-documents'),
    path('expenses/<int:pk>/documents/<int:document_id>/', views.expense_delete_document, name='expense-delete-document'),
    path('expenses/<int:pk>/pdf/', views.expense_pdf, name='expense-pdf'),
]
