from django.contrib import admin
from .models import Invoice, InvoiceItem, InvoicePayment, Quote, QuoteItem


class QuoteItemInline(admin.TabularInline):
    model = QuoteItem
    extra = 0


class InvoiceItemInline(admin.TabularInline):
    model = InvoiceItem
    extra = 0


class InvoicePaymentInline(admin.TabularInline):
    model = InvoicePayment
    extra = 0


@admin.register(Quote)
class QuoteAdmin(admin.ModelAdmin):
    list_display = ['quote_number', 'organization', 'client', 'status', 'issue_date', 'total_ttc']
    list_filter = ['status', 'organization', 'issue_date']
    search_fields = ['quote_number', 'title', 'client__company_name', 'client__last_name']
    readonly_fields = ['accepted_date', 'created_at', 'updated_at']
    inlines = [QuoteItemInline]


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ['invoice_number', 'organization', 'client', 'status', 'issue_date', 'due_date', 'total_ttc', 'amount_paid']
    list_filter = ['status', 'organization', 'issue_date']
    search_fields = ['invoice_number', 'title', 'client__company_name', 'client__last_name']
    readonly_fields = ['created_at', 'updated_at']
    inlines = [InvoiceItemInline, InvoicePaymentInline]
