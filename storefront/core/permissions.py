from rest_framework.permissions import BasePermission


class IsStoreAdmin(BasePermission):
    """Back-office access: staff users or accounts listed in STORE_ADMIN_EMAILS"""
    message = 'Admin access required.'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.is_store_admin)
