from django.urls import path
from . import views

urlpatterns = [
    path('dashboard/commercial/', views.commercial_dashboard, name='dashboard-commercial'),
    path('dashboard/expenses/', views.expense_dashboard, name='dashboard-expenses'),
]
