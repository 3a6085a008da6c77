"""Root URL configuration for crosslinker_tool."""

from django.urls import include, path

urlpatterns = [
    path('', include('crosslinker.urls')),
]
