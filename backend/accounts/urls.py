from django.urls import path
from . import views

urlpatterns = [
    path('auth/login/', views.login_view, name='login'),
    path('auth/register/', views.register_view, name='register'),
    path('reconcile/', views.ReconcileView.as_view(), name='account-reconcile'),
]
