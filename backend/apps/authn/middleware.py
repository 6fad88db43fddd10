"""
Owner identity for API views.

Authentication happens upstream; this module only reads the identity
the auth proxy asserts and refuses requests that carry none.
"""
import logging
from functools import wraps
from typing import Callable, Optional

from django.conf import settings
from django.http import HttpRequest, JsonResponse

logger = logging.getLogger(__name__)


def get_owner_from_request(request: HttpRequest) -> Optional[str]:
    """
    Extract the owner identity from the configured header.

    Returns:
        The identity string if present and non-blank, None otherwise
    """
    header = getattr(settings, 'OWNER_ID_HEADER', 'X-User-Id')
    owner = request.headers.get(header, '')
    owner = owner.strip()
    return owner or None


def owner_required(view_func: Callable) -> Callable:
    """
    Decorator that requires an explicit owner identity.

    Attaches the identity to request.owner_user_id.

    Usage:
        @owner_required
        def my_view(request):
            owner = request.owner_user_id
            ...
    """
    @wraps(view_func)
    def wrapper(request: HttpRequest, *args, **kwargs):
        owner = get_owner_from_request(request)

        if not owner:
            logger.warning(f"Rejected {request.method} {request.path}: no owner identity")
            return JsonResponse(
                {'error': 'Owner identity missing', 'code': 'UNAUTHENTICATED'},
                status=401
            )

        request.owner_user_id = owner
        return view_func(request, *args, **kwargs)

    return wrapper
