from django.contrib import admin
from .models import Client


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ['__str__', 'client_type', 'email', 'phone', 'city', 'siret', 'organization', 'created_at']
    list_filter = ['client_type', 'organization']
    search_fields = ['company_name', 'first_name', 'last_name', 'email', 'siret']
    readonly_fields = ['created_at', 'updated_at']
