"""Direction aggregate: a tenant's postal-code range with a freight surcharge."""

from protean.fields import Float, Identifier, String

from logistics.domain import logistics


def postal_code_key(postal_code: str | None) -> int | None:
    """Numeric key for a postal code ("01310-100" -> 1310100), None if it has no digits."""
    digits = "".join(ch for ch in str(postal_code or "") if ch.isdigit())
    return int(digits) if digits else None


@logistics.aggregate
class Direction:
    tenant_id = Identifier(required=True)
    range_start = String(required=True, max_length=20)
    range_end = String(required=True, max_length=20)
    value = Float(required=True, min_value=0.0)
    region = String(max_length=100)

    def covers(self, postal_code: str | None) -> bool:
        key = postal_code_key(postal_code)
        start = postal_code_key(self.range_start)
        end = postal_code_key(self.range_end)
        if key is None or start is None or end is None:
            return False
        return start <= key <= end
