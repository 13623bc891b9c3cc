"""Bulk order import: command and handler.

Rows are validated one at a time. A bad row is reported and skipped; the
rest of the batch is still created. The import fails as a whole only when no
row could be created.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Text
from protean.utils.globals import current_domain

from logistics.domain import logistics
from logistics.order.order import Order
from logistics.tenant.tenant import Tenant

logger = structlog.get_logger(__name__)


@logistics.command(part_of="Order")
class ImportOrders:
    """Import a batch of unassigned orders for a tenant."""

    tenant_id = Identifier(required=True)
    orders = Text(required=True)  # JSON list of order rows


def parse_decimal(raw, field_name: str) -> float:
    """Accept numbers or strings using either ',' or '.' as decimal mark."""
    if raw is None or raw == "":
        return 0.0
    if isinstance(raw, (int, float)):
        return float(raw)
    text = str(raw).strip().replace(" ", "")
    if "," in text:
        text = text.replace(".", "").replace(",", ".")
    try:
        return float(text)
    except ValueError:
        raise ValidationError({field_name: [f"Valor inválido para {field_name}: '{raw}'."]}) from None


def _error_text(exc: ValidationError) -> str:
    messages = exc.messages if isinstance(exc.messages, dict) else {"_": exc.messages}
    return "; ".join(f"{field}: {', '.join(str(m) for m in errs)}" for field, errs in messages.items())


def _number_taken(tenant_id: str, number: str) -> bool:
    existing = (
        current_domain.repository_for(Order)._dao.query.filter(tenant_id=tenant_id, number=number).all().items
    )
    return bool(existing)


def _build_order(tenant_id: str, row: dict, seen: set[str]) -> Order:
    number = str(row.get("number") or "").strip()
    if not number:
        raise ValidationError({"number": ["Número do pedido é obrigatório."]})
    if number in seen:
        raise ValidationError({"number": [f"Pedido {number} repetido no lote."]})
    if _number_taken(tenant_id, number):
        raise ValidationError({"number": [f"Pedido {number} já existe."]})

    sorting = row.get("sorting")
    return Order.create(
        tenant_id=tenant_id,
        number=number,
        customer_name=row.get("customer_name"),
        address=row.get("address"),
        postal_code=row.get("postal_code"),
        weight=parse_decimal(row.get("weight"), "weight"),
        value=parse_decimal(row.get("value"), "value"),
        sorting=int(sorting) if sorting not in (None, "") else None,
    )


@logistics.command_handler(part_of=Order)
class ImportOrdersHandler:
    @handle(ImportOrders)
    def import_orders(self, command):
        tenant_id = str(command.tenant_id)
        current_domain.repository_for(Tenant).get(tenant_id)

        rows = json.loads(command.orders) if isinstance(command.orders, str) else command.orders
        if not rows:
            raise ValidationError({"orders": ["Nenhum pedido informado."]})

        repo = current_domain.repository_for(Order)
        created, errors, seen = [], [], set()
        for row in rows:
            number = str(row.get("number") or "")
            try:
                order = _build_order(tenant_id, row, seen)
            except ValidationError as exc:
                errors.append({"number": number, "error": _error_text(exc)})
                continue
            repo.add(order)
            seen.add(order.number)
            created.append(str(order.id))

        logger.info("Orders imported", tenant_id=tenant_id, created=len(created), failed=len(errors))
        if not created:
            raise ValidationError({"orders": [f"{e['number']}: {e['error']}" for e in errors]})
        return {"created": created, "errors": errors}
