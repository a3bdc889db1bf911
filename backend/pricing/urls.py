from django.urls import path
from rest_framework.routers import DefaultRouter

from .views import CountryDistanceViewSet, EstimateView, PricingConfigView

router = DefaultRouter()
router.register(r'distances', CountryDistanceViewSet, basename='country-distances')

urlpatterns = [
    path('estimate/', EstimateView.as_view(), name='pricing-estimate'),
    path('config/', PricingConfigView.as_view(), name='pricing-config'),
]
urlpatterns += router.urls
