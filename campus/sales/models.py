from decimal import Decimal

from django.db import models
from django.utils import timezone

from campus.catalog.models import Item
from campus.clients.models import Client
from campus.core.models import Organization, User


class CommercialDocument(models.Model):
    """Fields shared by quotes and invoices"""
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='%(class)ss')
    title = models.CharField(max_length=255, blank=True)
    issue_date = models.DateField(default=timezone.localdate)
    total_ht = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total_tva = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total_ttc = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    payment_conditions = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    terms = models.TextField(blank=True)
    sent_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Quote(CommercialDocument):
    """Quotes (devis)"""
    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('sent', 'Sent'),
        ('accepted', 'Accepted'),
        ('rejected', 'Rejected'),
        ('expired', 'Expired'),
        ('cancelled', 'Cancelled'),
        ('invoiced', 'Invoiced'),
    ]
    # Statuses a user may set directly; 'invoiced' only comes from a conversion
    EDITABLE_STATUSES = ['draft', 'sent', 'accepted', 'rejected', 'expired', 'cancelled']
    CONVERTIBLE_STATUSES = ['sent', 'accepted']

    client = models.ForeignKey(Client, on_delete=models.PROTECT, related_name='quotes')
    quote_number = models.CharField(max_length=50)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft')
    valid_until = models.DateField(null=True, blank=True)
    accepted_date = models.DateTimeField(null=True, blank=True)
    signed_document = models.FileField(upload_to='signed_quotes/', blank=True, null=True)
    signed_document_name = models.CharField(max_length=255, blank=True)
    signed_at = models.DateTimeField(null=True, blank=True)

    def set_status(self, new_status):
        """Change the status; moving to 'accepted' stamps accepted_date"""
        if new_status == 'accepted' and self.status != 'accepted':
            self.accepted_date = timezone.now()
        self.status = new_status

    def is_converted(self):
        return self.invoices.exists()

    def __str__(self):
        return self.quote_number

    class Meta:
        db_table = 'quotes'
        ordering = ['-issue_date', '-created_at']
        constraints = [
            models.UniqueConstraint(fields=['organization', 'quote_number'], name='uniq_quote_org_number'),
        ]
        indexes = [
            models.Index(fields=['organization', 'status'], name='idx_quote_org_status'),
        ]


class Invoice(CommercialDocument):
    """Invoices (factures)"""
    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('sent', 'Sent'),
        ('partially_paid', 'Partially Paid'),
        ('paid', 'Paid'),
        ('overdue', 'Overdue'),
        ('cancelled', 'Cancelled'),
    ]
    UNPAID_STATUSES = ['sent', 'overdue', 'partially_paid']

    client = models.ForeignKey(Client, on_delete=models.PROTECT, related_name='invoices')
    quote = models.ForeignKey(Quote, on_delete=models.SET_NULL, null=True, blank=True, related_name='invoices')
    invoice_number = models.CharField(max_length=50)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft')
    due_date = models.DateField(null=True, blank=True)
    amount_paid = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    paid_at = models.DateTimeField(null=True, blank=True)
    last_reminder_at = models.DateTimeField(null=True, blank=True)

    @property
    def amount_due(self):
        return self.total_ttc - self.amount_paid

    def __str__(self):
        return self.invoice_number

    class Meta:
        db_table = 'invoices'
        ordering = ['-issue_date', '-created_at']
        constraints = [
            models.UniqueConstraint(fields=['organization', 'invoice_number'], name='uniq_invoice_org_number'),
        ]
        indexes = [
            models.Index(fields=['organization', 'status'], name='idx_invoice_org_status'),
            models.Index(fields=['organization', 'due_date'], name='idx_invoice_org_due'),
        ]


class LineItem(models.Model):
    """Document line; amounts are stored so PDFs and exports never recompute"""
    item = models.ForeignKey(Item, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    reference = models.CharField(max_length=50, blank=True)
    designation = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    quantity = models.PositiveIntegerField(default=1)
    price_ht = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    tva_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('20.00'))
    total_ht = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total_tva = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total_ttc = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    position = models.PositiveIntegerField(default=0)

    class Meta:
        abstract = True


class QuoteItem(LineItem):
    quote = models.ForeignKey(Quote, on_delete=models.CASCADE, related_name='items')

    class Meta:
        db_table = 'quote_items'
        ordering = ['position', 'id']


class InvoiceItem(LineItem):
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='items')

    class Meta:
        db_table = 'invoice_items'
        ordering = ['position', 'id']


class InvoicePayment(models.Model):
    """Payments received against an invoice"""
    PAYMENT_METHOD_CHOICES = [
        ('transfer', 'Bank Transfer'),
        ('card', 'Card'),
        ('cash', 'Cash'),
        ('check', 'Check'),
        ('other', 'Other'),
    ]

    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='payments')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    payment_date = models.DateField(default=timezone.localdate)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, default='transfer')
    reference = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='invoice_payments')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.invoice.invoice_number} - {self.amount}"

    class Meta:
        db_table = 'invoice_payments'
        ordering = ['-payment_date', '-created_at']
