from django.db import models
from campus.core.models import Organization, User


class Client(models.Model):
    """Commercial clients (companies or private persons) of an organization"""
    CLIENT_TYPE_CHOICES = [
        ('professional', 'Professional'),
        ('private', 'Private'),
    ]

    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='clients')
    client_type = models.CharField(max_length=20, choices=CLIENT_TYPE_CHOICES, default='professional')
    company_name = models.CharField(max_length=255, blank=True)
    first_name = models.CharField(max_length=150, blank=True)
    last_name = models.CharField(max_length=150, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    address = models.TextField(blank=True)
    postal_code = models.CharField(max_length=10, blank=True)
    city = models.CharField(max_length=100, blank=True)
    country = models.CharField(max_length=100, default='France')
    siret = models.CharField(max_length=14, blank=True)
    tva_number = models.CharField(max_length=20, blank=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='clients')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def display_name(self):
        if self.company_name:
            return self.company_name
        return self.full_name or self.email or f"Client #{self.pk}"

    def has_commercial_documents(self):
        return self.quotes.exists() or self.invoices.exists()

    def __str__(self):
        return self.display_name

    class Meta:
        db_table = 'clients'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['organization', 'siret'], name='idx_client_org_siret'),
            models.Index(fields=['organization', 'email'], name='idx_client_org_email'),
        ]
