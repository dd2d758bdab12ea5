import uuid

from django.db import models
from campus.core.models import Organization, User


class OcrDocument(models.Model):
    """Uploaded invoice or quote scan and the data extracted from it"""
    DOCUMENT_TYPE_CHOICES = [
        ('invoice', 'Invoice'),
        ('quote', 'Quote'),
    ]
    STATUS_CHOICES = [
        ('processing', 'Processing'),
        ('completed', 'Completed'),
        ('failed', 'Failed'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='ocr_documents')
    original_filename = models.CharField(max_length=255)
    file = models.FileField(upload_to='ocr_uploads/')
    file_type = models.CharField(max_length=100, blank=True)
    file_size = models.PositiveIntegerField(default=0)
    document_type = models.CharField(max_length=20, choices=DOCUMENT_TYPE_CHOICES)
    ocr_engine = models.CharField(max_length=50, default='tesseract')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='processing')
    extracted_data = models.JSONField(null=True, blank=True)
    confidence_scores = models.JSONField(null=True, blank=True)
    error_message = models.TextField(blank=True)
    processed_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='ocr_documents')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.document_type} {self.original_filename} ({self.status})"

    class Meta:
        db_table = 'ocr_documents'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['organization', 'status'], name='idx_ocr_org_status'),
        ]
