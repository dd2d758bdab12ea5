from django.contrib import admin
from .models import OcrDocument


@admin.register(OcrDocument)
class OcrDocumentAdmin(admin.ModelAdmin):
    list_display = ['original_filename', 'organization', 'document_type', 'status', 'ocr_engine', 'created_at']
    list_filter = ['document_type', 'status', 'ocr_engine']
    search_fields = ['original_filename']
    readonly_fields = ['id', 'extracted_data', 'confidence_scores', 'processed_at', 'created_at']
