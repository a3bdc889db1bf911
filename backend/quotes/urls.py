from django.urls import path
from rest_framework.routers import SimpleRouter

from .views import QuoteViewSet, TrackingView

router = SimpleRouter()
router.register(r'', QuoteViewSet, basename='quotes')

urlpatterns = [
    path('track/<str:token>/', TrackingView.as_view(), name='quote-track'),
]
urlpatterns += router.urls
