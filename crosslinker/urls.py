"""URL configuration for the crosslinker app.

This module defines the URL patterns for the app's views. It also
specifies the ``app_name`` to allow namespacing from the project URL
configuration.
"""

from django.urls import path

from . import views

app_name = 'crosslinker'

urlpatterns = [
    path('api/interlinking/suggestions', views.interlinking_suggestions, name='suggestions'),
    path('api/interlinking/bidirectional', views.bidirectional_suggestions, name='bidirectional'),
]
