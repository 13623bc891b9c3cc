"""Application tests for delivery creation via domain.process()."""

import json

import pytest
from logistics.delivery.delivery import Delivery, DeliveryStatus
from logistics.errors import ConflictError, ConfigurationError, UnsupportedConfigurationError
from logistics.order.order import Order, OrderStatus
from logistics.tenant.tenant import FreightType, Tenant
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError


def _reload(cls, identifier):
    return current_domain.repository_for(cls).get(str(identifier))


def _set_thresholds(tenant, **thresholds):
    for name, value in thresholds.items():
        setattr(tenant, name, value)
    current_domain.repository_for(Tenant).add(tenant)


class TestCreateDeliveryWithoutApproval:
    def test_returns_delivery_id(self, seed, fleet, create_delivery):
        order = seed.order(fleet["tenant"], "PED-001")
        assert create_delivery([order]) is not None

    def test_delivery_starts_active(self, seed, fleet, create_delivery):
        order = seed.order(fleet["tenant"], "PED-001")
        delivery = _reload(Delivery, create_delivery([order]))
        assert delivery.status == DeliveryStatus.INICIADO.value
        assert delivery.reasons == []

    def test_orders_move_to_route(self, seed, fleet, create_delivery):
        orders = [seed.order(fleet["tenant"], "PED-001"), seed.order(fleet["tenant"], "PED-002")]
        delivery_id = create_delivery(orders)
        for order in orders:
            reloaded = _reload(Order, order.id)
            assert reloaded.status == OrderStatus.EM_ROTA.value
            assert str(reloaded.delivery_id) == delivery_id

    def test_sorting_is_taken_from_request(self, seed, fleet, create_delivery):
        orders = [seed.order(fleet["tenant"], "PED-001"), seed.order(fleet["tenant"], "PED-002")]
        create_delivery(orders)
        assert _reload(Order, orders[1].id).sorting == 2

    def test_totals_and_freight(self, seed, fleet, create_delivery):
        seed.direction(fleet["tenant"], "01000-000", "01999-999", 45.0)
        orders = [
            seed.order(fleet["tenant"], "PED-001", value=200.0, weight=5.0),
            seed.order(fleet["tenant"], "PED-002", value=300.0, weight=7.5),
        ]
        delivery = _reload(Delivery, create_delivery(orders))
        assert delivery.freight_value == 145.0
        assert delivery.total_value == 500.0
        assert delivery.total_weight == 12.5
        assert delivery.manifest == [str(o.id) for o in orders]

    def test_observation_is_kept(self, seed, fleet, create_delivery):
        order = seed.order(fleet["tenant"], "PED-001")
        delivery = _reload(Delivery, create_delivery([order], observation="Entregar pela manhã"))
        assert delivery.observation == "Entregar pela manhã"


class TestCreateDeliveryNeedingApproval:
    def test_minimum_value_holds_delivery(self, seed, fleet, create_delivery):
        _set_thresholds(fleet["tenant"], min_value=500.0)
        orders = [
            seed.order(fleet["tenant"], "PED-001", value=100.0),
            seed.order(fleet["tenant"], "PED-002", value=200.0),
        ]
        delivery = _reload(Delivery, create_delivery(orders))
        assert delivery.status == DeliveryStatus.A_LIBERAR.value
        assert delivery.reasons == ["Valor total (R$ 300.00) abaixo do mínimo (R$ 500.00)."]
        assert delivery.released_at is None

    def test_orders_await_release(self, seed, fleet, create_delivery):
        _set_thresholds(fleet["tenant"], min_orders=3)
        orders = [seed.order(fleet["tenant"], "PED-001"), seed.order(fleet["tenant"], "PED-002")]
        create_delivery(orders)
        for order in orders:
            assert _reload(Order, order.id).status == OrderStatus.EM_ROTA_AGUARDANDO_LIBERACAO.value

    def test_freight_percentage_uses_computed_freight(self, seed, fleet, create_delivery):
        _set_thresholds(fleet["tenant"], min_delivery_percentage=10.0)
        order = seed.order(fleet["tenant"], "PED-001", value=500.0)
        delivery = _reload(Delivery, create_delivery([order]))
        assert delivery.reasons == ["Percentual de frete (20.00%) acima do máximo (10%)."]


class TestCreateDeliveryRejections:
    def test_empty_order_list(self, fleet, create_delivery):
        with pytest.raises(ValidationError) as exc:
            create_delivery([])
        assert "orders" in exc.value.messages

    def test_repeated_orders(self, seed, fleet, create_delivery):
        order = seed.order(fleet["tenant"], "PED-001")
        with pytest.raises(ValidationError) as exc:
            create_delivery([order, order])
        assert "orders" in exc.value.messages

    def test_unknown_order(self, seed, fleet, create_delivery):
        order = seed.order(fleet["tenant"], "PED-001")
        with pytest.raises(ObjectNotFoundError) as exc:
            create_delivery([order], orders=json.dumps([{"id": str(order.id)}, {"id": "missing-order"}]))
        assert "missing-order" in str(exc.value)
        assert _reload(Order, order.id).status == OrderStatus.SEM_ROTA.value

    def test_order_of_another_tenant(self, seed, fleet, create_delivery):
        other = seed.tenant(name="Outra")
        order = seed.order(other, "PED-001")
        with pytest.raises(ObjectNotFoundError):
            create_delivery([order])

    def test_order_already_on_a_route(self, seed, fleet, create_delivery):
        order = seed.order(fleet["tenant"], "PED-001")
        create_delivery([order])
        second_driver = seed.driver(fleet["tenant"], name="Marcos Lima")
        with pytest.raises(ConflictError) as exc:
            create_delivery([order], driver=second_driver)
        assert "PED-001" in str(exc.value)

    def test_driver_with_active_delivery(self, seed, fleet, create_delivery):
        create_delivery([seed.order(fleet["tenant"], "PED-001")])
        with pytest.raises(ConflictError) as exc:
            create_delivery([seed.order(fleet["tenant"], "PED-002")])
        assert "driver_id" in exc.value.messages

    def test_driver_of_another_tenant(self, seed, fleet, create_delivery):
        other_driver = seed.driver(seed.tenant(name="Outra"))
        order = seed.order(fleet["tenant"], "PED-001")
        with pytest.raises(ObjectNotFoundError):
            create_delivery([order], driver=other_driver)

    def test_unknown_vehicle(self, seed, fleet, create_delivery):
        order = seed.order(fleet["tenant"], "PED-001")
        with pytest.raises(ObjectNotFoundError):
            create_delivery([order], vehicle_id="missing-vehicle")

    def test_missing_fee_configuration(self, seed, fleet, create_delivery):
        _set_thresholds(fleet["tenant"], freight_type=FreightType.DIRECTION_AND_DELIVERY_FEE.value)
        order = seed.order(fleet["tenant"], "PED-001")
        with pytest.raises(ConfigurationError):
            create_delivery([order])

    def test_unsupported_freight_type(self, seed, fleet, create_delivery):
        _set_thresholds(fleet["tenant"], freight_type=None)
        order = seed.order(fleet["tenant"], "PED-001")
        with pytest.raises(UnsupportedConfigurationError):
            create_delivery([order])

    def test_failed_creation_leaves_orders_unassigned(self, seed, fleet, create_delivery):
        _set_thresholds(fleet["tenant"], freight_type=None)
        order = seed.order(fleet["tenant"], "PED-001")
        with pytest.raises(UnsupportedConfigurationError):
            create_delivery([order])
        assert _reload(Order, order.id).status == OrderStatus.SEM_ROTA.value
