"""
Health check endpoints for container probes.

- /healthz - Liveness (is process running?)
- /readyz - Readiness (can we serve traffic?)
"""
import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from django.conf import settings
from django.db import DatabaseError, connection
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET

logger = logging.getLogger(__name__)


def get_timestamp() -> str:
    """Get current UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()


@csrf_exempt
@require_GET
def healthz(request):
    """
    Liveness probe endpoint.

    Returns 200 if the Django process is running.
    Does NOT check dependencies - that's for readiness.
    """
    return JsonResponse({
        'status': 'healthy',
        'timestamp': get_timestamp()
    })


def check_database() -> tuple[str, bool]:
    """Check database connectivity."""
    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
            cursor.fetchone()
        return 'ok', True
    except DatabaseError as e:
        logger.error(f"Database health check failed: {e}")
        return f'error: {str(e)[:50]}', False


def check_upload_root() -> tuple[str, bool]:
    """Check that uploads can be staged."""
    root = Path(settings.UPLOAD_ROOT)
    if not root.exists():
        # Created on first upload
        return 'missing', True
    if not os.access(root, os.W_OK):
        logger.error(f"Upload root {root} is not writable")
        return 'not writable', False
    return 'ok', True


def check_completion_provider() -> tuple[str, bool]:
    """
    Check the completion provider is configured (optional, degrades gracefully).

    A missing provider only affects queries; documents can still be managed.
    """
    provider = getattr(settings, 'LLM_PROVIDER', 'gemini').lower()
    if provider == 'gemini' and not getattr(settings, 'GEMINI_API_KEY', ''):
        return 'degraded: GEMINI_API_KEY not configured', True
    if provider not in ('gemini', 'ollama'):
        return f'degraded: unknown provider {provider}', True
    return f'ok ({provider})', True


@csrf_exempt
@require_GET
def readyz(request):
    """
    Readiness probe endpoint.

    Returns 200 only if all critical dependencies are reachable.
    """
    checks = {}
    all_ok = True

    status, ok = check_database()
    checks['database'] = status
    if not ok:
        all_ok = False

    status, ok = check_upload_root()
    checks['uploads'] = status
    if not ok:
        all_ok = False

    # Does not block readiness
    status, _ = check_completion_provider()
    checks['completion'] = status

    response_data = {
        'status': 'ready' if all_ok else 'not_ready',
        'timestamp': get_timestamp(),
        'checks': checks
    }

    return JsonResponse(response_data, status=200 if all_ok else 503)
