"""Application tests for bulk order import."""

import json

import pytest
from logistics.order.importing import ImportOrders, parse_decimal
from logistics.order.order import Order, OrderStatus
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError


def _import(tenant, rows):
    command = ImportOrders(tenant_id=str(tenant.id), orders=json.dumps(rows))
    return current_domain.process(command, asynchronous=False)


def _row(number, **overrides):
    row = {
        "number": number,
        "customer_name": "Maria Silva",
        "address": "Rua Augusta, 500",
        "postal_code": "01305-000",
        "weight": "12,5",
        "value": "1.250,90",
    }
    row.update(overrides)
    return row


class TestParseDecimal:
    def test_comma_decimal(self):
        assert parse_decimal("12,5", "weight") == 12.5

    def test_thousands_separator_with_comma_decimal(self):
        assert parse_decimal("1.250,90", "value") == 1250.90

    def test_dot_decimal(self):
        assert parse_decimal("99.9", "value") == 99.9

    def test_numbers_pass_through(self):
        assert parse_decimal(3, "weight") == 3.0

    def test_blank_is_zero(self):
        assert parse_decimal("", "weight") == 0.0
        assert parse_decimal(None, "weight") == 0.0

    def test_malformed(self):
        with pytest.raises(ValidationError) as exc:
            parse_decimal("doze", "weight")
        assert "weight" in exc.value.messages


class TestImportOrders:
    def test_creates_unassigned_orders(self, fleet):
        result = _import(fleet["tenant"], [_row("PED-001"), _row("PED-002")])
        assert len(result["created"]) == 2
        assert result["errors"] == []

        order = current_domain.repository_for(Order).get(result["created"][0])
        assert order.status == OrderStatus.SEM_ROTA.value
        assert order.weight == 12.5
        assert order.value == 1250.90

    def test_bad_rows_are_reported_and_skipped(self, fleet):
        result = _import(
            fleet["tenant"],
            [_row("PED-001"), _row(""), _row("PED-002", weight="muito"), _row("PED-003", value="-5")],
        )
        assert len(result["created"]) == 1
        assert [e["number"] for e in result["errors"]] == ["", "PED-002", "PED-003"]
        assert "weight" in result["errors"][1]["error"]

    def test_duplicate_number_within_batch(self, fleet):
        result = _import(fleet["tenant"], [_row("PED-001"), _row("PED-001")])
        assert len(result["created"]) == 1
        assert result["errors"][0]["error"] == "number: Pedido PED-001 repetido no lote."

    def test_duplicate_number_in_tenant(self, seed, fleet):
        seed.order(fleet["tenant"], "PED-001")
        result = _import(fleet["tenant"], [_row("PED-001"), _row("PED-002")])
        assert result["errors"] == [{"number": "PED-001", "error": "number: Pedido PED-001 já existe."}]

    def test_same_number_in_another_tenant_is_fine(self, seed, fleet):
        seed.order(seed.tenant(name="Outra"), "PED-001")
        result = _import(fleet["tenant"], [_row("PED-001")])
        assert len(result["created"]) == 1

    def test_all_rows_invalid(self, fleet):
        with pytest.raises(ValidationError) as exc:
            _import(fleet["tenant"], [_row(""), _row("PED-002", weight="x")])
        assert "orders" in exc.value.messages

    def test_empty_batch(self, fleet):
        with pytest.raises(ValidationError):
            _import(fleet["tenant"], [])

    def test_unknown_tenant(self):
        command = ImportOrders(tenant_id="no-such-tenant", orders=json.dumps([_row("PED-001")]))
        with pytest.raises(ObjectNotFoundError):
            current_domain.process(command, asynchronous=False)
