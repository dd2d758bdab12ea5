from django.contrib import admin
from .models import Item


@admin.register(Item)
class ItemAdmin(admin.ModelAdmin):
    list_display = ['reference', 'designation', 'category', 'price_ht', 'tva_rate', 'price_ttc', 'is_active', 'organization']
    list_filter = ['category', 'is_active', 'organization']
    search_fields = ['reference', 'designation', 'description']
    readonly_fields = ['price_ttc', 'created_at', 'updated_at']
