"""Colonnes SQLAlchemy réutilisées par les modèles SQLModel."""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Type

from sqlalchemy import Column, DateTime, JSON
from sqlalchemy import Enum as SAEnum
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator):
    """Horodatage toujours en UTC avec fuseau, quel que soit le moteur.

    SQLite ne conserve pas le fuseau: la valeur relue est rattachée à UTC.
    """
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def enum_column(enum_cls: Type[Enum], *, index: bool = True, nullable: bool = False) -> Column:
    """Statut stocké par sa valeur ('paid') et non par le nom du membre ('PAID')."""
    return Column(
        SAEnum(
            enum_cls,
            name=enum_cls.__name__.lower(),
            values_callable=lambda members: [m.value for m in members],
            native_enum=False,
            length=20,
        ),
        index=index,
        nullable=nullable,
    )


def json_column(nullable: bool = True) -> Column:
    return Column(JSON, nullable=nullable)


def datetime_column(*, index: bool = False, nullable: bool = True) -> Column:
    return Column(UTCDateTime(), index=index, nullable=nullable)
