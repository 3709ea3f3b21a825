# vision_pos/constants/error_codes.py

from enum import Enum


class ErrorCode(str, Enum):
    # ---------------- GENERIC ----------------
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # ---------------- QUOTES ----------------
    QUOTE_NOT_FOUND = "QUOTE_NOT_FOUND"
    QUOTE_INVALID_STATE = "QUOTE_INVALID_STATE"
    QUOTE_TRANSITION_BLOCKED = "QUOTE_TRANSITION_BLOCKED"
    QUOTE_VERSION_CONFLICT = "QUOTE_VERSION_CONFLICT"
    QUOTE_STALE_STATE = "QUOTE_STALE_STATE"

    # ---------------- APPROVALS ----------------
    APPROVAL_NOT_FOUND = "APPROVAL_NOT_FOUND"
    APPROVAL_INVALID = "APPROVAL_INVALID"
