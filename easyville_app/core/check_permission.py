import uuid

from models.enums import LISTER_ROLES

from .errors import AuthorizationError


class CheckRolePermission:
    async def check_admin(self, current_user):
        if not current_user.is_admin:
            raise AuthorizationError("Only reviewers can perform this action")

    async def check_lister(self, current_user):
        if current_user.role not in LISTER_ROLES:
            raise AuthorizationError("Only agents, owners and admins can manage listings")

    async def check_owner_or_admin(self, current_user, owner_id: uuid.UUID):
        if current_user.is_admin:
            return
        if current_user.id != owner_id:
            raise AuthorizationError("You do not have access to this resource")
