"""Allow-list of externally addressable entities.

The generic sync routes accept an entity name from the URL; only names in
``Entity`` ever reach storage.
"""

from dataclasses import dataclass
from enum import Enum

from backend.app.errors import BadRequest


class Entity(str, Enum):
    """Syncable entity names as used in URLs."""

    habits = "habits"
    dsa = "dsa"
    health = "health"
    journal = "journal"
    tasks = "tasks"
    goals = "goals"
    notifications = "notifications"


@dataclass(frozen=True)
class EntityDescriptor:
    """Mapping of an entity name onto its storage collection."""

    name: str
    storage_collection: str


class UnknownEntityError(BadRequest):
    """Entity name outside the allow-list."""

    def __init__(self, name: str) -> None:
        allowed = ", ".join(e.value for e in Entity)
        super().__init__(f'Invalid entity "{name}". Allowed: {allowed}')
        self.name = name


ENTITY_DESCRIPTORS: dict[Entity, EntityDescriptor] = {
    entity: EntityDescriptor(name=entity.value, storage_collection=entity.value)
    for entity in Entity
}

# Entities that also get a dedicated /api/<name> REST surface.
REST_ENTITIES: tuple[Entity, ...] = (
    Entity.habits,
    Entity.tasks,
    Entity.goals,
    Entity.health,
    Entity.journal,
)


def resolve(name: str) -> EntityDescriptor:
    """Resolve an external entity name.

    Raises:
        UnknownEntityError: If ``name`` is not allow-listed
    """
    try:
        entity = Entity(name)
    except ValueError as e:
        raise UnknownEntityError(name) from e
    return ENTITY_DESCRIPTORS[entity]
