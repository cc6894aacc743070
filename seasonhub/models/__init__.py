# seasonhub/models/__init__.py
from .user import User
from .season import Season
from .role import Role, Permission, role_permissions
from .user_season_role import UserSeasonRole
from .season_snapshot import SeasonSnapshot
from seasonhub.core.database import Base


# Must be importable from here for create_all to see every table
__all__ = [
    "Base",
    "User",
    "Season",
    "Role", "Permission", "role_permissions",
    "UserSeasonRole",
    "SeasonSnapshot",
]
