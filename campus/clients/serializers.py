from rest_framework import serializers
from .models import Client
from .validators import clean_identifier, is_valid_siret


class ClientSerializer(serializers.ModelSerializer):
    display_name = serializers.CharField(read_only=True)
    quotes_count = serializers.SerializerMethodField()
    invoices_count = serializers.SerializerMethodField()

    class Meta:
        model = Client
        fields = [
            'id', 'client_type', 'company_name', 'first_name', 'last_name', 'display_name',
            'email', 'phone', 'address', 'postal_code', 'city', 'country', 'siret', 'tva_number',
            'notes', 'quotes_count', 'invoices_count', 'created_at', 'updated_at'
        ]
        read_only_fields = ['created_at', 'updated_at']

    def get_quotes_count(self, obj):
        annotated = getattr(obj, 'quotes_total', None)
        return annotated if annotated is not None else obj.quotes.count()

    def get_invoices_count(self, obj):
        annotated = getattr(obj, 'invoices_total', None)
        return annotated if annotated is not None else obj.invoices.count()

    def validate_siret(self, value):
        value = clean_identifier(value)
        if value and not is_valid_siret(value):
            raise serializers.ValidationError('Invalid SIRET number.')
        return value

    def validate(self, attrs):
        client_type = attrs.get('client_type', getattr(self.instance, 'client_type', 'professional'))
        company_name = attrs.get('company_name', getattr(self.instance, 'company_name', ''))
        first_name = attrs.get('first_name', getattr(self.instance, 'first_name', ''))
        last_name = attrs.get('last_name', getattr(self.instance, 'last_name', ''))

        if client_type == 'professional' and not company_name:
            raise serializers.ValidationError({'company_name': 'Company name is required for professional clients.'})
        if client_type == 'private' and not (first_name or last_name):
            raise serializers.ValidationError({'last_name': 'A name is required for private clients.'})
        return attrs
