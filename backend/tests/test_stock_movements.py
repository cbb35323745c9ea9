"""Tests for the stock movement ledger."""

import pytest
from decimal import Decimal

from cozinha.core.exceptions import InvalidReferenceError, NotFoundError
from cozinha.models.ingredient import Ingredient
from cozinha.models.stock import MovementType, StockMovement
from cozinha.services.stock_service import StockService, movement_delta


@pytest.fixture
def sugar(db_session, test_account):
    ingredient = Ingredient(
        account_id=test_account.id, name="Sugar", unit="kg",
        cost_per_unit=Decimal("4.50"), stock_quantity=Decimal("0"),
    )
    db_session.add(ingredient)
    db_session.commit()
    db_session.refresh(ingredient)
    return ingredient


# ============== movement_delta ==============

class TestMovementDelta:
    def test_in_adds(self):
        assert movement_delta(MovementType.IN, Decimal("3"), Decimal("1")) == Decimal("3")

    @pytest.mark.parametrize("movement_type", [MovementType.OUT, MovementType.LOSS, MovementType.SALE])
    def test_outbound_subtracts(self, movement_type):
        assert movement_delta(movement_type, Decimal("2"), Decimal("1")) == Decimal("-2")

    def test_adjustment_sets_absolute_level(self):
        assert movement_delta(MovementType.ADJUSTMENT, Decimal("10"), Decimal("-1.5")) == Decimal("11.5")
        assert movement_delta(MovementType.ADJUSTMENT, Decimal("2"), Decimal("5")) == Decimal("-3")


# ============== StockService.record_movement ==============

class TestRecordMovement:
    def test_sequence_of_movements(self, db_session, test_account, sugar):
        svc = StockService(db_session)
        steps = [
            (MovementType.IN, "3", "3"),
            (MovementType.OUT, "1", "2"),
            (MovementType.LOSS, "0.5", "1.5"),
            (MovementType.SALE, "3", "-1.5"),
            (MovementType.ADJUSTMENT, "10", "10"),
        ]
        for movement_type, quantity, expected in steps:
            svc.record_movement(test_account.id, sugar.id, movement_type, Decimal(quantity))
            db_session.refresh(sugar)
            assert sugar.stock_quantity == Decimal(expected)

    def test_ledger_sums_to_stock(self, db_session, test_account, sugar):
        svc = StockService(db_session)
        svc.record_movement(test_account.id, sugar.id, MovementType.IN, Decimal("5"))
        svc.record_movement(test_account.id, sugar.id, MovementType.SALE, Decimal("7.25"))
        svc.record_movement(test_account.id, sugar.id, MovementType.ADJUSTMENT, Decimal("4"))
        svc.record_movement(test_account.id, sugar.id, MovementType.LOSS, Decimal("0.75"))

        movements = db_session.query(StockMovement).filter(StockMovement.ingredient_id == sugar.id).all()
        db_session.refresh(sugar)
        assert sum((m.qty_delta for m in movements), Decimal("0")) == sugar.stock_quantity
        assert sugar.stock_quantity == Decimal("3.25")

    def test_movement_keeps_entered_quantity(self, db_session, test_account, sugar):
        movement = StockService(db_session).record_movement(
            test_account.id, sugar.id, MovementType.ADJUSTMENT, Decimal("8"), reason="Monthly count"
        )
        assert movement.quantity == Decimal("8")
        assert movement.qty_delta == Decimal("8")
        assert movement.reason == "Monthly count"
        assert movement.type == "adjustment"

    def test_negative_quantity_rejected(self, db_session, test_account, sugar):
        with pytest.raises(ValueError):
            StockService(db_session).record_movement(
                test_account.id, sugar.id, MovementType.IN, Decimal("-1")
            )

    def test_other_account_ingredient(self, db_session, other_account, sugar):
        with pytest.raises(NotFoundError):
            StockService(db_session).record_movement(
                other_account.id, sugar.id, MovementType.IN, Decimal("1")
            )

    def test_unknown_order_reference(self, db_session, test_account, sugar):
        with pytest.raises(InvalidReferenceError):
            StockService(db_session).record_movement(
                test_account.id, sugar.id, MovementType.IN, Decimal("1"), order_id=9999
            )

    def test_list_movements_newest_first(self, db_session, test_account, sugar):
        svc = StockService(db_session)
        first = svc.record_movement(test_account.id, sugar.id, MovementType.IN, Decimal("1"))
        second = svc.record_movement(test_account.id, sugar.id, MovementType.OUT, Decimal("1"))

        movements, total = svc.list_movements(test_account.id, ingredient_id=sugar.id)
        assert total == 2
        assert [m.id for m in movements] == [second.id, first.id]

        ins, total = svc.list_movements(test_account.id, movement_type=MovementType.IN)
        assert total == 1
        assert ins[0].id == first.id


# ============== API ==============

class TestStockApi:
    def test_create_movement(self, client, auth_headers, sugar):
        response = client.post(
            "/api/v1/stock/movements",
            json={"ingredient_id": sugar.id, "type": "in", "quantity": "2.5", "reason": "Purchase"},
            headers=auth_headers,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["type"] == "in"
        assert Decimal(str(data["qty_delta"])) == Decimal("2.5")

        ingredient = client.get(f"/api/v1/ingredients/{sugar.id}", headers=auth_headers).json()
        assert Decimal(str(ingredient["stock_quantity"])) == Decimal("2.5")

    def test_create_movement_invalid_type(self, client, auth_headers, sugar):
        response = client.post(
            "/api/v1/stock/movements",
            json={"ingredient_id": sugar.id, "type": "gift", "quantity": "1"},
            headers=auth_headers,
        )
        assert response.status_code == 422

    def test_create_movement_other_account_ingredient(self, client, other_headers, sugar):
        response = client.post(
            "/api/v1/stock/movements",
            json={"ingredient_id": sugar.id, "type": "in", "quantity": "1"},
            headers=other_headers,
        )
        assert response.status_code == 404

    def test_list_movements_filter_by_type(self, client, auth_headers, sugar):
        for movement_type in ("in", "out", "in"):
            client.post(
                "/api/v1/stock/movements",
                json={"ingredient_id": sugar.id, "type": movement_type, "quantity": "1"},
                headers=auth_headers,
            )
        response = client.get("/api/v1/stock/movements?type=in", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["total"] == 2

    def test_check_stock(self, client, auth_headers, brownie):
        # Egg stock is 12
        response = client.post(
            "/api/v1/stock/check",
            json={"items": [{"product_id": brownie.id, "quantity": "13"}]},
            headers=auth_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["is_valid"] is False
        assert len(data["missing"]) == 1
        assert data["missing"][0]["name"] == "Egg"
        assert Decimal(str(data["missing"][0]["missing"])) == Decimal("1")

    def test_check_stock_covered(self, client, auth_headers, brownie):
        response = client.post(
            "/api/v1/stock/check",
            json={"items": [{"product_id": brownie.id, "quantity": "2"}]},
            headers=auth_headers,
        )
        assert response.json() == {"is_valid": True, "missing": []}

    def test_analysis_lists_every_ingredient(self, client, auth_headers, brownie):
        response = client.get("/api/v1/stock/analysis", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert {item["status"] for item in data["items"]} == {"unused"}

    def test_requires_auth(self, client):
        assert client.get("/api/v1/stock/movements").status_code == 401
