"""Delivery rules validator: decides whether a delivery needs manager approval.

Every tenant threshold is checked independently and each violation adds a
human-readable reason. A threshold left as None is not enforced. The check is
a pure function of its context.
"""

from typing import NamedTuple

from protean.fields import Float, Integer

from logistics.domain import logistics


@logistics.value_object
class RulesContext:
    """Aggregate metrics of a proposed delivery plus the tenant thresholds."""

    total_value = Float(required=True, min_value=0.0)
    total_weight = Float(required=True, min_value=0.0)
    order_count = Integer(required=True, min_value=0)
    freight_value = Float(required=True, min_value=0.0)

    min_delivery_percentage = Float(min_value=0.0)
    min_value = Float(min_value=0.0)
    min_weight = Float(min_value=0.0)
    min_orders = Integer(min_value=0)

    @classmethod
    def for_tenant(cls, tenant, total_value, total_weight, order_count, freight_value):
        return cls(
            total_value=float(total_value),
            total_weight=float(total_weight),
            order_count=order_count,
            freight_value=float(freight_value),
            min_delivery_percentage=tenant.min_delivery_percentage,
            min_value=tenant.min_value,
            min_weight=tenant.min_weight,
            min_orders=tenant.min_orders,
        )


class RulesResult(NamedTuple):
    needs_approval: bool
    reasons: list[str]


def _plain(number) -> str:
    """Render a threshold the way it was configured: 10.0 -> "10", 12.5 -> "12.5"."""
    number = float(number)
    return str(int(number)) if number.is_integer() else str(number)


def validate(context: RulesContext) -> RulesResult:
    reasons = []

    if context.min_delivery_percentage is not None and context.total_value > 0:
        freight_percentage = context.freight_value / context.total_value * 100
        if freight_percentage > context.min_delivery_percentage:
            reasons.append(
                f"Percentual de frete ({freight_percentage:.2f}%) acima do máximo "
                f"({_plain(context.min_delivery_percentage)}%)."
            )

    if context.min_value is not None and context.total_value < context.min_value:
        reasons.append(f"Valor total (R$ {context.total_value:.2f}) abaixo do mínimo (R$ {context.min_value:.2f}).")

    if context.min_weight is not None and context.total_weight < context.min_weight:
        reasons.append(f"Peso total ({context.total_weight:.2f} kg) abaixo do mínimo ({context.min_weight:.2f} kg).")

    if context.min_orders is not None and context.order_count < context.min_orders:
        reasons.append(f"Quantidade de pedidos ({context.order_count}) abaixo do mínimo ({context.min_orders}).")

    return RulesResult(needs_approval=bool(reasons), reasons=reasons)
