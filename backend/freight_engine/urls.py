from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/accounts/', include('accounts.urls')),
    path('api/pricing/', include('pricing.urls')),
    path('api/quotes/', include('quotes.urls')),
    path('api/prospects/', include('prospects.urls')),
]
