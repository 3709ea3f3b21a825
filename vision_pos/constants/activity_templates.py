from vision_pos.constants.activity_codes import ActivityCode


ACTIVITY_TEMPLATES = {
    # ---------------- AUTH ----------------
    ActivityCode.LOGIN:
        "{actor_role} ({actor_email}) logged in",

    ActivityCode.LOGOUT:
        "{actor_role} ({actor_email}) logged out",

    # ---------------- QUOTES ----------------
    ActivityCode.CREATE_QUOTE:
        "{actor_role} ({actor_email}) created quote {target_name}",

    ActivityCode.UPDATE_QUOTE:
        "{actor_role} ({actor_email}) updated quote {target_name}: {changes}",

    ActivityCode.UPDATE_QUOTE_PROGRESS:
        "{actor_role} ({actor_email}) recorded progress on quote {target_name}: {changes}",

    ActivityCode.CHANGE_QUOTE_STATUS:
        "{actor_role} ({actor_email}) moved quote {target_name} "
        "from {old_status} → {new_status}: {reason}",

    ActivityCode.EXPIRE_QUOTE:
        "{actor_role} ({actor_email}) expired quote {target_name}: {changes}",

    ActivityCode.WARN_QUOTE_EXPIRATION:
        "{actor_role} ({actor_email}) sent expiration warning for quote {target_name} "
        "({days_left} days left)",

    # ---------------- APPROVALS ----------------
    ActivityCode.REQUEST_QUOTE_APPROVAL:
        "{actor_role} ({actor_email}) requested approval to move quote {target_name} "
        "from {old_status} → {new_status}",

    ActivityCode.APPROVE_QUOTE_APPROVAL:
        "{actor_role} ({actor_email}) approved request #{target_id} for quote {target_name}",

    ActivityCode.REJECT_QUOTE_APPROVAL:
        "{actor_role} ({actor_email}) rejected request #{target_id} for quote {target_name}: {reason}",
}
