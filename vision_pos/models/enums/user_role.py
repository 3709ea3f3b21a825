# vision_pos/models/enums/user_role.py
import enum


class UserRole(str, enum.Enum):
    SALES_ASSOCIATE = "SALES_ASSOCIATE"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"
    FULFILLMENT_SPECIALIST = "FULFILLMENT_SPECIALIST"


APPROVER_ROLES = frozenset({UserRole.MANAGER, UserRole.ADMIN})
COMPLETION_ROLES = frozenset({UserRole.MANAGER, UserRole.ADMIN, UserRole.FULFILLMENT_SPECIALIST})
