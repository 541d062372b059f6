from django.urls import path, include

urlpatterns = [
    path('api/', include('finance.urls.api_urls')),
]
