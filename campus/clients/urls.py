from django.urls import path
from .views import (
    client_list_create, client_detail, client_statistics,
    insee_search, insee_search_siret, insee_search_siren, insee_search_name,
    insee_validate_siret, insee_validate_siren
)

urlpatterns = [
    # Client endpoints
    path('clients/', client_list_create, name='client-list-create'),
    path('clients/statistics/', client_statistics, name='client-statistics'),
    path('clients/<int:pk>/', client_detail, name='client-detail'),

    # INSEE registry endpoints
    path('insee/search/', insee_search, name='insee-search'),
    path('insee/search-siret/', insee_search_siret, name='insee-search-siret'),
    path('insee/search-siren/', insee_search_siren, name='insee-search-siren'),
    path('insee/search-name/', insee_search_name, name='insee-search-name'),
    path('insee/validate-siret/', insee_validate_siret, name='insee-validate-siret'),
    path('insee/validate-siren/', insee_validate_siren, name='insee-validate-siren'),
]
