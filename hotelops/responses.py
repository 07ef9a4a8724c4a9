"""
JSON envelope helpers shared by every API view.

Each response has the shape ``{success, data, message, status}``; list
endpoints put a page of results in ``data``.
"""

import json
import logging
from functools import wraps

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.paginator import Paginator
from django.http import Http404, JsonResponse

logger = logging.getLogger(__name__)

ERROR_MESSAGES = {
    400: 'Bad request. Please check your input.',
    401: 'Unauthorized. Please login again.',
    403: 'Access denied. You do not have permission.',
    404: 'Resource not found.',
    405: 'Method not allowed.',
    500: 'Server error. Please try again later.',
}


def get_error_message(status):
    return ERROR_MESSAGES.get(status, 'An unexpected error occurred.')


def api_response(data=None, message='', status=200):
    return JsonResponse({
        'success': 200 <= status < 300,
        'data': data,
        'message': message,
        'status': status,
    }, status=status)


def api_error(status, message=None, data=None):
    return api_response(data=data, message=message or get_error_message(status), status=status)


def form_errors(form):
    return {field: [str(error) for error in errors] for field, errors in form.errors.items()}


def validation_error_messages(error):
    if hasattr(error, 'message_dict'):
        return error.message_dict
    return {'__all__': error.messages}


def read_payload(request):
    """Request body as a dict: JSON when sent as JSON, form data otherwise."""
    if request.content_type == 'application/json':
        if not request.body:
            return {}
        payload = json.loads(request.body)
        if not isinstance(payload, dict):
            raise ValueError("Request body must be a JSON object.")
        return payload
    return request.POST.dict()


def paginate(request, queryset, serializer=None):
    """Page of ``queryset`` in the list-response shape."""
    page_size = request.GET.get('page_size') or settings.HOTELOPS_PAGE_SIZE
    try:
        page_size = max(1, min(int(page_size), 100))
    except ValueError:
        page_size = settings.HOTELOPS_PAGE_SIZE

    paginator = Paginator(queryset, page_size)
    page_obj = paginator.get_page(request.GET.get('page'))
    serialize = serializer or (lambda obj: obj.as_dict())

    return {
        'items': [serialize(obj) for obj in page_obj],
        'total_items': paginator.count,
        'total_pages': paginator.num_pages,
        'current_page': page_obj.number,
        'page_size': page_size,
    }


def api_view(*methods):
    """
    Wrap a view as an API endpoint.

    Rejects anonymous users with 401 and unlisted verbs with 405, and turns
    missing objects, validation errors and malformed bodies into envelopes.
    """
    allowed = {method.upper() for method in methods}

    def decorator(view):
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            if not request.user.is_authenticated:
                return api_error(401)
            if request.method not in allowed:
                response = api_error(405)
                response['Allow'] = ', '.join(sorted(allowed))
                return response

            try:
                return view(request, *args, **kwargs)
            except Http404:
                return api_error(404)
            except ValidationError as e:
                return api_error(400, data=validation_error_messages(e))
            except ValueError as e:
                logger.warning("Rejected %s %s: %s", request.method, request.path, e)
                return api_error(400, message=str(e))

        return wrapper

    return decorator
