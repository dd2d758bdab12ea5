from decimal import Decimal, ROUND_HALF_UP

from django.db import models
from campus.core.models import Organization, User


class Item(models.Model):
    """Articles and services sold by an organization"""
    UNIT_CHOICES = [
        ('unit', 'Unit'),
        ('hour', 'Hour'),
        ('day', 'Day'),
        ('session', 'Session'),
        ('package', 'Package'),
    ]

    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='items')
    reference = models.CharField(max_length=50)
    designation = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=100, blank=True)
    unit = models.CharField(max_length=20, choices=UNIT_CHOICES, default='unit')
    price_ht = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    tva_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('20.00'))
    price_ttc = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='items')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def compute_price_ttc(self):
        """TTC price derived from the HT price and the VAT rate"""
        price_ht = Decimal(str(self.price_ht or 0))
        rate = Decimal(str(self.tva_rate or 0))
        return (price_ht * (Decimal('1') + rate / Decimal('100'))).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)

    def save(self, *args, **kwargs):
        self.price_ttc = self.compute_price_ttc()
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.reference} - {self.designation}"

    class Meta:
        db_table = 'items'
        ordering = ['designation']
        constraints = [
            models.UniqueConstraint(fields=['organization', 'reference'], name='uniq_item_org_reference'),
        ]
