from datetime import timedelta
from decimal import Decimal

from django.db import transaction
from django.utils import timezone
from rest_framework import serializers

from campus.clients.models import Client
from campus.clients.serializers import ClientSerializer
from .models import Invoice, InvoiceItem, InvoicePayment, Quote, QuoteItem
from .utils import (
    INVOICE_PREFIX, QUOTE_PREFIX, next_document_number, resolve_client, save_lines, validate_line_items,
)

DEFAULT_VALIDITY_DAYS = 30
DEFAULT_PAYMENT_DAYS = 30

LINE_FIELDS = [
    'id', 'item', 'reference', 'designation', 'description', 'quantity',
    'price_ht', 'tva_rate', 'total_ht', 'total_tva', 'total_ttc', 'position'
]


class QuoteItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = QuoteItem
        fields = LINE_FIELDS
        read_only_fields = LINE_FIELDS


class InvoiceItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = InvoiceItem
        fields = LINE_FIELDS
        read_only_fields = LINE_FIELDS


class InvoicePaymentSerializer(serializers.ModelSerializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))

    class Meta:
        model = InvoicePayment
        fields = ['id', 'amount', 'payment_date', 'payment_method', 'reference', 'notes', 'created_at']
        read_only_fields = ['created_at']


class CommercialDocumentSerializer(serializers.ModelSerializer):
    """
    Base for quotes and invoices.

    Lines arrive through ``context['items_data']`` (the raw ``items`` list) and
    are validated into ``attrs['lines']``. When no ``client`` id is given,
    ``client_name`` or ``company_name`` create the client on the fly.
    """
    client = serializers.PrimaryKeyRelatedField(queryset=Client.objects.none(), required=False)
    client_name = serializers.CharField(write_only=True, required=False, allow_blank=True)
    company_name = serializers.CharField(write_only=True, required=False, allow_blank=True)
    client_email = serializers.EmailField(write_only=True, required=False, allow_blank=True)
    client_phone = serializers.CharField(write_only=True, required=False, allow_blank=True)
    client_address = serializers.CharField(write_only=True, required=False, allow_blank=True)
    client_display_name = serializers.CharField(source='client.display_name', read_only=True)
    client_details = ClientSerializer(source='client', read_only=True)

    number_field = None
    number_prefix = None
    line_model = None
    parent_field = None

    CLIENT_INPUT_FIELDS = ['client_name', 'company_name', 'client_email', 'client_phone', 'client_address']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        organization = self.context.get('organization')
        if organization is not None:
            self.fields['client'].queryset = Client.objects.filter(organization=organization)

    def _check_number_unique(self, value):
        if not value:
            return value
        organization = self.context['organization']
        queryset = self.Meta.model.objects.filter(organization=organization, **{self.number_field: value})
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError({self.number_field: ['This number is already used.']})
        return value

    def validate(self, attrs):
        organization = self.context['organization']
        self._check_number_unique(attrs.get(self.number_field))

        if self.instance is None and not attrs.get('client'):
            if not (attrs.get('client_name') or attrs.get('company_name')):
                raise serializers.ValidationError({'client': ['A client or a client name is required.']})

        items_data = self.context.get('items_data')
        if self.instance is None or items_data is not None:
            attrs['lines'] = validate_line_items(organization, items_data)
        return attrs

    def _pop_client_input(self, validated_data):
        return {field: validated_data.pop(field, None) for field in self.CLIENT_INPUT_FIELDS}

    def _resolve_client(self, validated_data, client_input):
        if validated_data.get('client'):
            return validated_data['client']
        return resolve_client(
            validated_data['organization'],
            validated_data.get('created_by'),
            client_name=client_input['client_name'],
            company_name=client_input['company_name'],
            email=client_input['client_email'],
            phone=client_input['client_phone'],
            address=client_input['client_address'],
        )

    def create(self, validated_data):
        lines = validated_data.pop('lines')
        client_input = self._pop_client_input(validated_data)
        validated_data.setdefault('issue_date', timezone.localdate())
        with transaction.atomic():
            validated_data['client'] = self._resolve_client(validated_data, client_input)
            if not validated_data.get(self.number_field):
                validated_data[self.number_field] = next_document_number(
                    self.Meta.model, validated_data['organization'], self.number_prefix, self.number_field,
                    year=validated_data['issue_date'].year,
                )
            self.apply_defaults(validated_data)
            document = self.Meta.model.objects.create(**validated_data)
            save_lines(document, lines, self.line_model, self.parent_field)
        return document

    def update(self, instance, validated_data):
        lines = validated_data.pop('lines', None)
        self._pop_client_input(validated_data)
        if not validated_data.get(self.number_field, True):
            validated_data.pop(self.number_field)
        with transaction.atomic():
            self.apply_update(instance, validated_data)
            instance = super().update(instance, validated_data)
            if lines is not None:
                save_lines(instance, lines, self.line_model, self.parent_field)
        return instance

    def apply_defaults(self, validated_data):
        pass

    def apply_update(self, instance, validated_data):
        pass


class QuoteSerializer(CommercialDocumentSerializer):
    items = QuoteItemSerializer(many=True, read_only=True)
    quote_number = serializers.CharField(required=False, allow_blank=True, max_length=50)
    status = serializers.ChoiceField(choices=Quote.EDITABLE_STATUSES, required=False)
    has_signed_document = serializers.SerializerMethodField()
    is_converted = serializers.SerializerMethodField()

    number_field = 'quote_number'
    number_prefix = QUOTE_PREFIX
    line_model = QuoteItem
    parent_field = 'quote'

    class Meta:
        model = Quote
        fields = [
            'id', 'quote_number', 'client', 'client_display_name', 'client_details',
            'client_name', 'company_name', 'client_email', 'client_phone', 'client_address',
            'status', 'title', 'issue_date', 'valid_until', 'accepted_date',
            'payment_conditions', 'notes', 'terms', 'total_ht', 'total_tva', 'total_ttc',
            'has_signed_document', 'signed_document_name', 'signed_at', 'sent_at',
            'is_converted', 'items', 'created_at', 'updated_at'
        ]
        read_only_fields = [
            'accepted_date', 'total_ht', 'total_tva', 'total_ttc', 'signed_document_name',
            'signed_at', 'sent_at', 'created_at', 'updated_at'
        ]

    def get_has_signed_document(self, obj):
        return bool(obj.signed_document)

    def get_is_converted(self, obj):
        return obj.status == 'invoiced' or obj.is_converted()

    def validate(self, attrs):
        attrs = super().validate(attrs)
        issue_date = attrs.get('issue_date', getattr(self.instance, 'issue_date', None))
        valid_until = attrs.get('valid_until', getattr(self.instance, 'valid_until', None))
        if issue_date and valid_until and valid_until < issue_date:
            raise serializers.ValidationError({'valid_until': ['Validity date must be on or after the issue date.']})
        if self.instance is not None and self.instance.status == 'invoiced' and 'status' in attrs:
            raise serializers.ValidationError({'status': ['An invoiced quote cannot change status.']})
        return attrs

    def apply_defaults(self, validated_data):
        validated_data.setdefault('status', 'draft')
        if validated_data['status'] == 'accepted':
            validated_data['accepted_date'] = timezone.now()
        if not validated_data.get('valid_until'):
            validated_data['valid_until'] = validated_data['issue_date'] + timedelta(days=DEFAULT_VALIDITY_DAYS)

    def apply_update(self, instance, validated_data):
        if 'status' in validated_data:
            instance.set_status(validated_data.pop('status'))


class InvoiceSerializer(CommercialDocumentSerializer):
    items = InvoiceItemSerializer(many=True, read_only=True)
    payments = InvoicePaymentSerializer(many=True, read_only=True)
    invoice_number = serializers.CharField(required=False, allow_blank=True, max_length=50)
    quote = serializers.PrimaryKeyRelatedField(read_only=True)
    quote_number = serializers.SerializerMethodField()
    amount_due = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    number_field = 'invoice_number'
    number_prefix = INVOICE_PREFIX
    line_model = InvoiceItem
    parent_field = 'invoice'

    class Meta:
        model = Invoice
        fields = [
            'id', 'invoice_number', 'client', 'client_display_name', 'client_details',
            'client_name', 'company_name', 'client_email', 'client_phone', 'client_address',
            'quote', 'quote_number', 'status', 'title', 'issue_date', 'due_date',
            'payment_conditions', 'notes', 'terms', 'total_ht', 'total_tva', 'total_ttc',
            'amount_paid', 'amount_due', 'paid_at', 'sent_at', 'last_reminder_at',
            'items', 'payments', 'created_at', 'updated_at'
        ]
        read_only_fields = [
            'status', 'total_ht', 'total_tva', 'total_ttc', 'amount_paid', 'paid_at',
            'sent_at', 'last_reminder_at', 'created_at', 'updated_at'
        ]

    def get_quote_number(self, obj):
        return obj.quote.quote_number if obj.quote_id else None

    def validate(self, attrs):
        attrs = super().validate(attrs)
        if self.instance is not None and 'lines' in attrs and self.instance.amount_paid > 0:
            raise serializers.ValidationError({'items': ['Lines of an invoice with payments cannot be changed.']})
        issue_date = attrs.get('issue_date', getattr(self.instance, 'issue_date', None))
        due_date = attrs.get('due_date', getattr(self.instance, 'due_date', None))
        if issue_date and due_date and due_date < issue_date:
            raise serializers.ValidationError({'due_date': ['Due date must be on or after the issue date.']})
        return attrs

    def apply_defaults(self, validated_data):
        validated_data['status'] = 'draft'
        if not validated_data.get('due_date'):
            validated_data['due_date'] = validated_data['issue_date'] + timedelta(days=DEFAULT_PAYMENT_DAYS)


class QuoteStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Quote.EDITABLE_STATUSES)


class SendEmailSerializer(serializers.Serializer):
    """Recipients may be given as a list or a comma separated string"""
    to = serializers.ListField(child=serializers.EmailField(), required=False)
    cc = serializers.ListField(child=serializers.EmailField(), required=False, default=list)
    bcc = serializers.ListField(child=serializers.EmailField(), required=False, default=list)
    subject = serializers.CharField(required=False, allow_blank=True, max_length=255)
    message = serializers.CharField(required=False, allow_blank=True)

    def to_internal_value(self, data):
        data = {key: data.get(key) for key in ('to', 'cc', 'bcc', 'subject', 'message') if data.get(key) is not None}
        for key in ('to', 'cc', 'bcc'):
            if isinstance(data.get(key), str):
                data[key] = [part.strip() for part in data[key].split(',') if part.strip()]
        return super().to_internal_value(data)
