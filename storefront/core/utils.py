"""Utility functions for audit logging and list pagination"""
import logging

from django.core.paginator import Paginator, EmptyPage
from .models import AuditLog

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, object_name=None, object_reference=None):
    """
    Create an audit log entry

    Args:
        request: Django request object (for user and IP) - optional if user is provided
        action: Action type (create, update, delete, order_create, etc.)
        model_name: Name of the model being acted upon
        object_id: ID of the object (as string)
        changes: Dictionary of changes made
        user: Optional user override (defaults to request.user if request provided)
        object_name: Human-readable name of the object (e.g., product name)
        object_reference: Reference identifier (e.g., checkout session id)
    """
    try:
        audit_user = None
        if user:
            audit_user = user
        elif request and hasattr(request, 'user'):
            audit_user = request.user

        ip_address = get_client_ip(request) if request else None

        if not action or not model_name or not object_id:
            logger.warning(f"Audit log creation skipped: missing required fields (action={action}, model_name={model_name}, object_id={object_id})")
            return None

        return AuditLog.objects.create(
            user=audit_user if audit_user and audit_user.is_authenticated else None,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            object_reference=object_reference,
            changes=changes or {},
            ip_address=ip_address
        )
    except Exception as e:
        # Don't fail the main operation if audit logging fails
        logger.error(f"Failed to create audit log: {str(e)}")
        return None


def parse_positive_int(value, default):
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def paginate(queryset, request, serializer_class, default_limit=10, context=None):
    """
    Paginate a queryset the way every list endpoint answers:
    {results, count, page, page_size, total_pages, next, previous}

    Bad page/limit values fall back to the defaults; limit is capped at MAX_PAGE_SIZE.
    """
    page = parse_positive_int(request.query_params.get('page'), 1)
    limit = min(parse_positive_int(request.query_params.get('limit'), default_limit), MAX_PAGE_SIZE)

    paginator = Paginator(queryset, limit)
    try:
        page_obj = paginator.page(page)
    except EmptyPage:
        page_obj = None

    if page_obj is None:
        results = []
        has_next = False
        has_previous = page > 1
    else:
        results = serializer_class(page_obj.object_list, many=True, context=context or {'request': request}).data
        has_next = page_obj.has_next()
        has_previous = page_obj.has_previous()

    return {
        'results': results,
        'count': paginator.count,
        'page': page,
        'page_size': limit,
        'total_pages': paginator.num_pages,
        'next': page + 1 if has_next else None,
        'previous': page - 1 if has_previous else None,
    }
