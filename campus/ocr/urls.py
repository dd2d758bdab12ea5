from django.urls import path
from .views import (
    import_invoice_ocr, import_quote_ocr, match_or_create_client, match_or_create_articles,
    ocr_document_detail
)

urlpatterns = [
    path('invoices/import-ocr/', import_invoice_ocr, name='invoice-import-ocr'),
    path('quotes/import-ocr/', import_quote_ocr, name='quote-import-ocr'),
    path('clients/match-or-create/', match_or_create_client, name='client-match-or-create'),
    path('articles/match-or-create/', match_or_create_articles, name='article-match-or-create'),
    path('ocr-documents/<uuid:pk>/', ocr_document_detail, name='ocr-document-detail'),
]
