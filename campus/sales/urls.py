from django.urls import path
from . import views

urlpatterns = [
    # Quotes
    path('quotes/', views.quote_list_create, name='quote-list-create'),
    path('quotes/next-number/', views.quote_next_number, name='quote-next-number'),
    path('quotes/export-excel/', views.quote_export_excel, name='quote-export-excel'),
    path('quotes/<int:pk>/', views.quote_detail, name='quote-detail'),
    path('quotes/<int:pk>/status/', views.quote_update_status, name='quote-status'),
    path('quotes/<int:pk>/signed-document/', views.quote_signed_document, name='quote-signed-document'),
    path('quotes/<int:pk>/convert-to-invoice/', views.quote_convert_to_invoice, name='quote-convert-to-invoice'),
    path('quotes/<int:pk>/pdf/', views.quote_pdf, name='quote-pdf'),
    path('quotes/<int:pk>/send-email/', views.quote_send_email, name='quote-send-email'),

    # Invoices
    path('invoices/', views.invoice_list_create, name='invoice-list-create'),
    path('invoices/next-number/', views.invoice_next_number, name='invoice-next-number'),
    path('invoices/export-excel/', views.invoice_export_excel, name='invoice-export-excel'),
    path('invoices/remind-unpaid/', views.invoice_remind_unpaid, name='invoice-remind-unpaid'),
    path('invoices/from-quote/<int:quote_id>/', views.invoice_from_quote, name='invoice-from-quote'),
    path('invoices/<int:pk>/', views.invoice_detail, name='invoice-detail'),
    path('invoices/<int:pk>/payments/', views.invoice_payments, name='invoice-payments'),
    path('invoices/<int:pk>/pdf/', views.invoice_pdf, name='invoice-pdf'),
    path('invoices/<int:pk>/send-email/', views.invoice_send_email, name='invoice-send-email'),
]
