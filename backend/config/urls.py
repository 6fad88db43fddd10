"""
URL configuration for the DeciGenie backend.
"""
from django.urls import path, include
from django.http import JsonResponse

from apps.docs.views import list_documents
from apps.rag.views import QueryView
from config.health import healthz, readyz


def health_check(request):
    """Simple health check endpoint for Docker healthcheck."""
    return JsonResponse({'status': 'ok'})


urlpatterns = [
    # Health check endpoints (no identity required)
    path('healthz', healthz, name='healthz'),
    path('readyz', readyz, name='readyz'),
    path('api/health/', health_check, name='health_check'),

    # API routes
    path('api/docs', list_documents, name='docs-list'),
    path('api/docs/', include('apps.docs.urls')),
    path('api/queries', QueryView.as_view(), name='queries'),
    path('api/queries/', include('apps.rag.urls')),
]
