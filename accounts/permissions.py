from rest_framework.permissions import BasePermission


def restrict_to(*roles):
    """Construit une permission n'autorisant que les rôles donnés"""

    class RolePermission(BasePermission):
        message = 'You do not have permission to perform this action.'
        allowed_roles = roles

        def has_permission(self, request, view):
            user = request.user
            return bool(user and user.is_authenticated and user.role in self.allowed_roles)

    RolePermission.__name__ = 'RestrictTo' + ''.join(role.title() for role in roles)
    return RolePermission


IsAdmin = restrict_to('admin')
IsAdminOrModerator = restrict_to('admin', 'moderator')


class IsOwnerOrAdmin(BasePermission):
    """Propriétaire de la ressource (author, created_by ou user) ou administrateur"""
    message = 'You can only modify your own resources.'
    owner_fields = ('author', 'created_by', 'user')

    def has_object_permission(self, request, view, obj):
        user = request.user
        if not (user and user.is_authenticated):
            return False
        if user.role == 'admin':
            return True
        for field in self.owner_fields:
            owner_id = getattr(obj, f'{field}_id', None)
            if owner_id is not None:
                return owner_id == user.id
        return False
