# --- Redis Keys ---
REDIS_PREFIX_SESSION = "session:"
REDIS_PREFIX_USER_SESSION = "user_session:"
REDIS_PREFIX_CONTEXT_RATE_LIMIT = "rl:context:"

REDIS_KEY_SEASONS_ALL = "seasons:all"
REDIS_PREFIX_SEASON = "seasons:id:"
REDIS_PREFIX_SCHOOL_SEASONS = "seasons:school:"
REDIS_SEASON_NAMESPACE = "seasons:*"

# --- Context ---
CONTEXT_SCHOOL_KEY = "school_id"
CONTEXT_SEASON_KEY = "season_id"

# Context mutations: 30 requests per minute, per principal (or client address)
CONTEXT_RATE_LIMIT_TIMES = 30
CONTEXT_RATE_LIMIT_SECONDS = 60

# --- Token scopes ---
SEASON_SCOPE_PREFIX = "season:"

# --- Permissions ---
PERMISSION_SEASONS_VIEW = "seasons.view"
PERMISSION_SEASONS_MANAGE = "seasons.manage"
PERMISSION_SEASONS_CLOSE = "seasons.close"
PERMISSION_ROLES_MANAGE = "roles.manage"
PERMISSION_SNAPSHOTS_VIEW = "snapshots.view"
PERMISSION_SNAPSHOTS_CREATE = "snapshots.create"

# Catalog seeded by create_roles.py
DEFAULT_ROLE_CATALOG = {
    "admin": [
        PERMISSION_SEASONS_VIEW,
        PERMISSION_SEASONS_MANAGE,
        PERMISSION_SEASONS_CLOSE,
        PERMISSION_ROLES_MANAGE,
        PERMISSION_SNAPSHOTS_VIEW,
        PERMISSION_SNAPSHOTS_CREATE,
    ],
    "manager": [
        PERMISSION_SEASONS_VIEW,
        PERMISSION_SEASONS_MANAGE,
        PERMISSION_SNAPSHOTS_VIEW,
    ],
    "monitor": [
        PERMISSION_SEASONS_VIEW,
    ],
}

# --- Snapshot types ---
SNAPSHOT_TYPE_SEASON_CLOSE = "season_close"
SNAPSHOT_TYPE_SEASON_REOPEN = "season_reopen"

# --- Audit events ---
AUDIT_SEASON_CREATED = "season.created"
AUDIT_SEASON_UPDATED = "season.updated"
AUDIT_SEASON_DELETED = "season.deleted"
AUDIT_SEASON_ACTIVATED = "season.activated"
AUDIT_SEASON_DEACTIVATED = "season.deactivated"
AUDIT_SEASON_CLOSED = "season.closed"
AUDIT_SEASON_REOPENED = "season.reopened"
AUDIT_ROLE_ASSIGNED = "season_role.assigned"
AUDIT_ROLE_REVOKED = "season_role.revoked"
