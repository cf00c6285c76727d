# ============================================
# FEATURE CATALOGUE + DEFAULT ROLE MATRIX
# ============================================
# The live source of truth is the role_permissions table.
# DEFAULT_ROLE_PERMISSIONS is only used to (re)seed it.

FEATURES = {
    "calendar_view": "View Calendar",
    "calendar_edit": "Edit Calendar Events",
    "tasks_view": "View Tasks",
    "tasks_edit": "Create/Edit Tasks",
    "manual_view": "View Manual",
    "manual_edit": "Edit Manual",
    "checklists_view": "View Checklists",
    "checklists_edit": "Edit Checklists",
    "inventory_view": "View Inventory",
    "inventory_edit": "Edit Inventory",
    "contacts_view": "View Contacts",
    "contacts_edit": "Edit Contacts",
    "users_manage": "Manage Users",
}


# =====================================================
# ROLE FLOOR: the hierarchy alternative in route gates
# =====================================================
# A route guarded by feature F admits the caller when the matrix
# allows F for one of their roles OR their highest role reaches
# FEATURE_ROLE_FLOOR[F].
FEATURE_ROLE_FLOOR = {
    "calendar_view": "family",
    "calendar_edit": "manager",
    "tasks_view": "family",
    "tasks_edit": "manager",
    "manual_view": "friend",
    "manual_edit": "manager",
    "checklists_view": "family",
    "checklists_edit": "manager",
    "inventory_view": "family",
    "inventory_edit": "manager",
    "contacts_view": "friend",
    "contacts_edit": "manager",
    "users_manage": "owner",
}


DEFAULT_ROLE_PERMISSIONS = {

    # =====================================================
    # OWNER: everything
    # =====================================================
    "owner": list(FEATURES),

    # =====================================================
    # MANAGER: runs the house, cannot manage users
    # =====================================================
    "manager": [
        "calendar_view", "calendar_edit",
        "tasks_view", "tasks_edit",
        "manual_view", "manual_edit",
        "checklists_view", "checklists_edit",
        "inventory_view", "inventory_edit",
        "contacts_view", "contacts_edit",
    ],

    # =====================================================
    # FAMILY: books stays, helps with chores
    # =====================================================
    "family": [
        "calendar_view",
        "tasks_view",
        "manual_view",
        "checklists_view",
        "inventory_view",
        "contacts_view",
    ],

    # =====================================================
    # FRIEND: guest access
    # =====================================================
    "friend": [
        "manual_view",
        "contacts_view",
    ],
}


def is_valid_feature(feature) -> bool:
    return isinstance(feature, str) and feature in FEATURES


def default_matrix_rows() -> list:
    """Full (role, feature, allowed) grid; unlisted cells are explicit denials."""
    rows = []
    for role in ("friend", "family", "manager", "owner"):
        allowed = set(DEFAULT_ROLE_PERMISSIONS.get(role, []))
        for feature in FEATURES:
            rows.append({"role": role, "feature": feature, "allowed": feature in allowed})
    return rows
