import os
from decimal import Decimal

from django.db import models
from django.utils import timezone

from campus.core.models import Organization, User

HR_CATEGORY = 'Dépense RH'


class Expense(models.Model):
    """Expenses and charges of an organization (HR costs, premises, equipment...)"""
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='expenses')
    label = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    category = models.CharField(max_length=255, default='Other')
    expense_date = models.DateField(default=timezone.localdate)
    vendor = models.CharField(max_length=255, blank=True)
    role = models.CharField(max_length=255, blank=True, null=True)
    contract_type = models.CharField(max_length=255, blank=True, null=True)
    course = models.ForeignKey('learning.Course', on_delete=models.SET_NULL, null=True, blank=True, related_name='expenses')
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='expenses')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def is_human_resources(self):
        return self.category == HR_CATEGORY

    def __str__(self):
        return f"{self.label} - {self.amount}"

    class Meta:
        db_table = 'expenses'
        ordering = ['-expense_date', '-created_at']
        indexes = [
            models.Index(fields=['organization', 'expense_date'], name='idx_expense_org_date'),
            models.Index(fields=['organization', 'category'], name='idx_expense_org_category'),
        ]


class ExpenseDocument(models.Model):
    """Receipts and supporting files attached to an expense"""
    expense = models.ForeignKey(Expense, on_delete=models.CASCADE, related_name='documents')
    file = models.FileField(upload_to='expense_documents/')
    original_name = models.CharField(max_length=255)
    mime_type = models.CharField(max_length=100, blank=True)
    size = models.PositiveIntegerField(default=0)
    uploaded_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)

    @property
    def extension(self):
        return os.path.splitext(self.original_name)[1].lower().lstrip('.')

    def __str__(self):
        return self.original_name

    class Meta:
        db_table = 'expense_documents'
        ordering = ['created_at', 'id']
