from decimal import Decimal

from rest_framework import serializers
from .models import OcrDocument


class OcrDocumentSerializer(serializers.ModelSerializer):
    class Meta:
        model = OcrDocument
        fields = [
            'id', 'original_filename', 'file_type', 'file_size', 'document_type', 'ocr_engine',
            'status', 'extracted_data', 'confidence_scores', 'error_message', 'processed_at', 'created_at'
        ]
        read_only_fields = fields


class ClientDataSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    email = serializers.EmailField(required=False, allow_blank=True, allow_null=True)
    phone = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=20)
    address = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    postal_code = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=10)
    city = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=100)
    siret = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=14)
    tva_number = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=20)


class MatchClientSerializer(serializers.Serializer):
    client_data = ClientDataSerializer()


class ArticleDataSerializer(serializers.Serializer):
    description = serializers.CharField()
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'))
    tax_rate = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=Decimal('0'))
    quantity = serializers.IntegerField(required=False, min_value=1)


class MatchArticlesSerializer(serializers.Serializer):
    articles = ArticleDataSerializer(many=True, allow_empty=False)
