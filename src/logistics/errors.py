"""Error taxonomy for the delivery lifecycle.

All errors carry Protean's ``{field: [messages]}`` payload so callers can
render them uniformly. Missing or out-of-tenant records raise
``protean.exceptions.ObjectNotFoundError``; malformed input raises
``protean.exceptions.ValidationError``.
"""

from protean.exceptions import ValidationError


class ConflictError(ValidationError):
    """An illegal state transition, or one that lost a race to another writer."""


class ConfigurationError(ValidationError):
    """Tenant configuration required by the selected freight strategy is missing."""


class UnsupportedConfigurationError(ConfigurationError):
    """The tenant's freight type is missing or not a known strategy."""


def transition_conflict(entity: str, entity_id, current: str, requested: str) -> ConflictError:
    return ConflictError(
        {
            "status": [f"{entity} {entity_id} não pode passar de {current} para {requested}."],
        }
    )
