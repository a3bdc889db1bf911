from django.urls import path

from .views import InvitationView, QuoteRequestView

urlpatterns = [
    path('quote-requests/', QuoteRequestView.as_view(), name='prospect-quote-request'),
    path('invitations/<str:token>/', InvitationView.as_view(), name='prospect-invitation'),
]
