# vision_pos/constants/activity_codes.py

from enum import Enum


class ActivityCode(str, Enum):
    # ---------------- AUTH ----------------
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"

    # ---------------- QUOTES ----------------
    CREATE_QUOTE = "CREATE_QUOTE"
    UPDATE_QUOTE = "UPDATE_QUOTE"
    UPDATE_QUOTE_PROGRESS = "UPDATE_QUOTE_PROGRESS"
    CHANGE_QUOTE_STATUS = "CHANGE_QUOTE_STATUS"
    EXPIRE_QUOTE = "EXPIRE_QUOTE"
    WARN_QUOTE_EXPIRATION = "WARN_QUOTE_EXPIRATION"

    # ---------------- APPROVALS ----------------
    REQUEST_QUOTE_APPROVAL = "REQUEST_QUOTE_APPROVAL"
    APPROVE_QUOTE_APPROVAL = "APPROVE_QUOTE_APPROVAL"
    REJECT_QUOTE_APPROVAL = "REJECT_QUOTE_APPROVAL"
