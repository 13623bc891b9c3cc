"""Tenant-scoped repository helpers."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain


def get_for_tenant(aggregate_cls, identifier, tenant_id):
    """Load an aggregate, treating records of another tenant as absent."""
    record = current_domain.repository_for(aggregate_cls).get(str(identifier))
    if str(record.tenant_id) != str(tenant_id):
        raise ObjectNotFoundError(
            f"`{aggregate_cls.__name__}` object with identifier {identifier} does not exist in tenant {tenant_id}."
        )
    return record
