from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from seasonhub.models.role import Permission, Role


@dataclass(frozen=True)
class KnownRole:
    name: str
    permissions: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class UnknownRole:
    """Either no assignment (name is None) or a role missing from the catalog."""
    name: Optional[str] = None

    @property
    def permissions(self) -> List[str]:
        return []


RoleResolution = Union[KnownRole, UnknownRole]


class RoleCatalogRepository:
    async def lookup(self, db: AsyncSession, name: str) -> RoleResolution:
        result = await db.execute(select(Role).where(Role.name == name))
        role = result.scalars().first()
        if role is None:
            return UnknownRole(name=name)
        return KnownRole(name=role.name, permissions=[p.name for p in role.permissions])

    async def exists(self, db: AsyncSession, name: str) -> bool:
        result = await db.execute(select(Role.id).where(Role.name == name))
        return result.scalar_one_or_none() is not None

    async def seed(self, db: AsyncSession, catalog: Dict[str, List[str]]) -> None:
        """Create missing roles/permissions; existing rows are left untouched."""
        existing_perms = {p.name: p for p in (await db.execute(select(Permission))).scalars().all()}
        for perm_names in catalog.values():
            for perm_name in perm_names:
                if perm_name not in existing_perms:
                    perm = Permission(name=perm_name)
                    db.add(perm)
                    existing_perms[perm_name] = perm

        existing_roles = {r.name for r in (await db.execute(select(Role))).scalars().all()}
        for role_name, perm_names in catalog.items():
            if role_name in existing_roles:
                continue
            db.add(Role(name=role_name, permissions=[existing_perms[n] for n in perm_names]))
        await db.commit()

role_catalog_repo = RoleCatalogRepository()
