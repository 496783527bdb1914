import uuid
from typing import Dict, Iterable, Optional, Tuple

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import contains_eager

from models.models import Property, Unit


def unit_lookup_key(property_name: str, unit_name: str) -> Tuple[str, str]:
    return property_name.strip().lower(), unit_name.strip().lower()


class PropertyRepo:
    def __init__(self, db):
        self.db = db

    async def get_unit_for_organization(
        self, unit_id: uuid.UUID, organization_id: uuid.UUID
    ) -> Optional[Unit]:
        stmt = (
            select(Unit)
            .join(Property, Property.id == Unit.property_id)
            .options(contains_eager(Unit.property))
            .where(Unit.id == unit_id, Property.organization_id == organization_id)
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def get_units_by_names(
        self,
        organization_id: uuid.UUID,
        pairs: Iterable[Tuple[str, str]],
    ) -> Dict[Tuple[str, str], Unit]:
        """Resolve (property name, unit name) pairs in a single query."""
        keys = {unit_lookup_key(p, u) for p, u in pairs if p and u}
        if not keys:
            return {}

        property_names = {p for p, _ in keys}
        unit_names = {u for _, u in keys}

        stmt = (
            select(Unit)
            .join(Property, Property.id == Unit.property_id)
            .options(contains_eager(Unit.property))
            .where(
                Property.organization_id == organization_id,
                and_(
                    or_(*[Property.name.ilike(name) for name in property_names]),
                    or_(*[Unit.name.ilike(name) for name in unit_names]),
                ),
            )
        )
        result = await self.db.execute(stmt)

        found: Dict[Tuple[str, str], Unit] = {}
        for unit in result.scalars().unique().all():
            key = unit_lookup_key(unit.property.name, unit.name)
            if key in keys:
                found[key] = unit
        return found
