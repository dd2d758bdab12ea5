from decimal import Decimal

from django.utils import timezone
from rest_framework import serializers

from .models import HR_CATEGORY, Expense, ExpenseDocument


class ExpenseDocumentSerializer(serializers.ModelSerializer):
    url = serializers.SerializerMethodField()

    class Meta:
        model = ExpenseDocument
        fields = ['id', 'original_name', 'mime_type', 'size', 'url', 'created_at']
        read_only_fields = fields

    def get_url(self, obj):
        if not obj.file:
            return None
        request = self.context.get('request')
        return request.build_absolute_uri(obj.file.url) if request else obj.file.url


class ExpenseSerializer(serializers.ModelSerializer):
    """
    Expense payloads accept a few legacy field names:
    label falls back to description then expense_type, and expense_date
    falls back to payment_date, both only when creating.
    """
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'))
    category = serializers.CharField(max_length=255, required=False, default='Other')
    documents = ExpenseDocumentSerializer(many=True, read_only=True)
    course_title = serializers.CharField(source='course.title', read_only=True, default=None)

    class Meta:
        model = Expense
        fields = [
            'id', 'label', 'description', 'amount', 'category', 'expense_date', 'vendor',
            'role', 'contract_type', 'course', 'course_title', 'notes', 'documents',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['created_at', 'updated_at']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        organization = self.context.get('organization')
        if organization is not None:
            from campus.learning.models import Course
            self.fields['course'].queryset = Course.objects.filter(organization=organization)

    def to_internal_value(self, data):
        if self.instance is None:
            data = data.copy() if hasattr(data, 'copy') else dict(data)
            if not data.get('label'):
                data['label'] = data.get('description') or data.get('expense_type') or 'Expense'
            if not data.get('expense_date'):
                data['expense_date'] = data.get('payment_date') or timezone.localdate().isoformat()
            if not data.get('category'):
                data['category'] = 'Other'
        return super().to_internal_value(data)

    def validate(self, attrs):
        category = attrs.get('category', getattr(self.instance, 'category', None))
        if category == HR_CATEGORY:
            errors = {}
            for field in ('role', 'contract_type'):
                if not attrs.get(field, getattr(self.instance, field, None)):
                    errors[field] = [f'This field is required for the category "{HR_CATEGORY}".']
            if errors:
                raise serializers.ValidationError(errors)
        return attrs
