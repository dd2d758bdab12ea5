from decimal import Decimal

from rest_framework import serializers
from .models import Item


class ItemSerializer(serializers.ModelSerializer):
    price_ht = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.00'))
    tva_rate = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=Decimal('0.00'),
                                        max_value=Decimal('100.00'), required=False)

    class Meta:
        model = Item
        fields = [
            'id', 'reference', 'designation', 'description', 'category', 'unit',
            'price_ht', 'tva_rate', 'price_ttc', 'is_active', 'created_at', 'updated_at'
        ]
        read_only_fields = ['price_ttc', 'created_at', 'updated_at']

    def validate_reference(self, value):
        organization = self.context.get('organization')
        if organization is None:
            return value
        queryset = Item.objects.filter(organization=organization, reference=value)
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError('An item with this reference already exists.')
        return value
