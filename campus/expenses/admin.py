from django.contrib import admin
from .models import Expense, ExpenseDocument


class ExpenseDocumentInline(admin.TabularInline):
    model = ExpenseDocument
    extra = 0
    readonly_fields = ['original_name', 'mime_type', 'size', 'created_at']


@admin.register(Expense)
class ExpenseAdmin(admin.ModelAdmin):
    list_display = ['label', 'organization', 'category', 'amount', 'expense_date', 'role', 'contract_type']
    list_filter = ['category', 'organization', 'expense_date']
    search_fields = ['label', 'vendor', 'notes']
    inlines = [ExpenseDocumentInline]
