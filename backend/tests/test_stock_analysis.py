"""Tests for stock-vs-demand analysis and the missing stock check."""

import pytest
from datetime import date
from decimal import Decimal

from cozinha.models.ingredient import Ingredient
from cozinha.models.order import Order, OrderItem, OrderStatus
from cozinha.models.product import Product, ProductIngredient
from cozinha.services.stock_analysis_service import (
    StockDemandPolicy,
    StockStatus,
    analyze_stock_demand,
    compute_demand,
    find_missing_stock,
    in_period,
)


def make_ingredient(id, name, stock, unit="kg"):
    return Ingredient(id=id, name=name, unit=unit, stock_quantity=Decimal(str(stock)))


def make_product(id, name, lines):
    product = Product(id=id, name=name, selling_price=Decimal("10"))
    product.product_ingredients = [
        ProductIngredient(ingredient=ingredient, ingredient_id=ingredient.id, quantity=Decimal(str(qty)))
        for ingredient, qty in lines
    ]
    return product


def make_order(id, status, items, delivery_date=None):
    order = Order(id=id, display_id=id, status=status.value, delivery_date=delivery_date)
    order.items = [
        OrderItem(product_id=product.id, product_name=product.name, quantity=Decimal(str(qty)),
                  unit_price=Decimal("10"), subtotal=Decimal("10") * Decimal(str(qty)))
        for product, qty in items
    ]
    return order


@pytest.fixture
def kitchen():
    """Chocolate cake: 0.5 kg chocolate + 0.2 kg sugar. Sugar also goes in cookies."""
    chocolate = make_ingredient(1, "Chocolate", 2)
    sugar = make_ingredient(2, "sugar", 1)
    butter = make_ingredient(3, "Butter", 1)
    cake = make_product(10, "Chocolate cake", [(chocolate, "0.5"), (sugar, "0.2")])
    cookies = make_product(11, "Cookies", [(sugar, "0.1")])
    return {
        "chocolate": chocolate,
        "sugar": sugar,
        "butter": butter,
        "cake": cake,
        "cookies": cookies,
        "ingredients": [chocolate, sugar, butter],
        "products": [cake, cookies],
    }


# ============== Classification ==============

class TestStockDemandPolicy:
    @pytest.mark.parametrize(
        "stock,demand,expected",
        [
            ("10", "0", StockStatus.UNUSED),
            ("-3", "0", StockStatus.UNUSED),
            ("10", "10", StockStatus.SUFFICIENT),
            ("12", "10", StockStatus.SUFFICIENT),
            ("6", "10", StockStatus.LOW),
            ("5", "10", StockStatus.CRITICAL),
            ("0", "10", StockStatus.CRITICAL),
            ("-1", "10", StockStatus.CRITICAL),
        ],
    )
    def test_bands(self, stock, demand, expected):
        policy = StockDemandPolicy(Decimal("0.5"))
        assert policy.classify(Decimal(stock), Decimal(demand)) == expected

    def test_ratio_moves_the_critical_band(self):
        strict = StockDemandPolicy(Decimal("0.2"))
        assert strict.classify(Decimal("7"), Decimal("10")) == StockStatus.CRITICAL
        assert strict.classify(Decimal("9"), Decimal("10")) == StockStatus.LOW

    def test_default_ratio_from_settings(self):
        assert StockDemandPolicy().critical_shortfall_ratio == Decimal("0.5")


# ============== Demand ==============

class TestComputeDemand:
    def test_open_orders_multiply_recipe_by_quantity(self, kitchen):
        orders = [
            make_order(1, OrderStatus.PENDING, [(kitchen["cake"], 2)]),
            make_order(2, OrderStatus.READY, [(kitchen["cookies"], 3)]),
        ]
        demand = compute_demand(kitchen["products"], orders)
        assert demand[1] == Decimal("1.0")
        # 2 x 0.2 + 3 x 0.1
        assert demand[2] == Decimal("0.7")
        assert 3 not in demand

    def test_delivered_and_cancelled_orders_contribute_zero(self, kitchen):
        orders = [
            make_order(1, OrderStatus.DELIVERED, [(kitchen["cake"], 5)]),
            make_order(2, OrderStatus.CANCELLED, [(kitchen["cake"], 5)]),
        ]
        assert compute_demand(kitchen["products"], orders) == {}

    def test_unknown_product_is_skipped(self, kitchen):
        ghost = Product(id=99, name="Ghost", selling_price=Decimal("1"))
        orders = [make_order(1, OrderStatus.PENDING, [(ghost, 1), (kitchen["cookies"], 1)])]
        assert compute_demand(kitchen["products"], orders) == {2: Decimal("0.1")}

    def test_unresolved_bom_line_is_skipped(self, kitchen):
        kitchen["cookies"].product_ingredients.append(
            ProductIngredient(ingredient_id=None, quantity=Decimal("1"))
        )
        orders = [make_order(1, OrderStatus.PENDING, [(kitchen["cookies"], 1)])]
        assert compute_demand(kitchen["products"], orders) == {2: Decimal("0.1")}

    def test_window_uses_delivery_date(self, kitchen):
        orders = [
            make_order(1, OrderStatus.PENDING, [(kitchen["cake"], 1)], date(2026, 5, 10)),
            make_order(2, OrderStatus.PENDING, [(kitchen["cake"], 1)], date(2026, 6, 10)),
        ]
        demand = compute_demand(kitchen["products"], orders, date(2026, 5, 1), date(2026, 5, 31))
        assert demand[1] == Decimal("0.5")


class TestInPeriod:
    def test_no_window_includes_everything(self):
        assert in_period(Order(status="pending"))

    def test_bounds_are_inclusive(self):
        order = Order(status="pending", delivery_date=date(2026, 5, 10))
        assert in_period(order, date(2026, 5, 10), date(2026, 5, 10))
        assert not in_period(order, date(2026, 5, 11))
        assert not in_period(order, None, date(2026, 5, 9))

    def test_undated_order_is_outside_any_window(self):
        assert not in_period(Order(status="pending"), date(2026, 1, 1))


# ============== Analysis ==============

class TestAnalyzeStockDemand:
    def test_classifies_and_sorts_by_urgency(self, kitchen):
        # Chocolate: stock 2, demand 3 -> shortfall 1 < 1.5 -> low
        # Sugar: stock 1, demand 1.2 + 0.9 = 2.1 -> shortfall 1.1 >= 1.05 -> critical
        orders = [
            make_order(1, OrderStatus.PENDING, [(kitchen["cake"], 6)]),
            make_order(2, OrderStatus.PREPARING, [(kitchen["cookies"], 9)]),
        ]
        results = analyze_stock_demand(
            kitchen["ingredients"], kitchen["products"], orders, policy=StockDemandPolicy(Decimal("0.5"))
        )

        assert [(r.ingredient_name, r.status) for r in results] == [
            ("sugar", StockStatus.CRITICAL),
            ("Chocolate", StockStatus.LOW),
            ("Butter", StockStatus.UNUSED),
        ]
        sugar = results[0]
        assert sugar.demand == Decimal("2.1")
        assert sugar.balance == Decimal("-1.1")

    def test_ties_sorted_by_name_ignoring_case(self, kitchen):
        results = analyze_stock_demand(kitchen["ingredients"], kitchen["products"], [])
        assert [r.ingredient_name for r in results] == ["Butter", "Chocolate", "sugar"]
        assert all(r.status == StockStatus.UNUSED for r in results)

    def test_as_dict_serializes_status(self, kitchen):
        result = analyze_stock_demand([kitchen["butter"]], [], [])[0]
        assert result.as_dict()["status"] == "unused"


# ============== Missing stock ==============

class TestFindMissingStock:
    def test_reports_only_uncovered_ingredients(self, kitchen):
        # 5 cakes need 2.5 chocolate (stock 2) and 1.0 sugar (stock 1)
        missing = find_missing_stock([(10, Decimal("5"))], kitchen["products"])
        assert len(missing) == 1
        assert missing[0].name == "Chocolate"
        assert missing[0].needed == Decimal("2.5")
        assert missing[0].missing == Decimal("0.5")

    def test_aggregates_across_items(self, kitchen):
        missing = find_missing_stock([(10, Decimal("5")), (11, Decimal("1"))], kitchen["products"])
        by_name = {m.name: m for m in missing}
        assert by_name["sugar"].needed == Decimal("1.1")
        assert by_name["sugar"].missing == Decimal("0.1")

    def test_everything_covered(self, kitchen):
        assert find_missing_stock([(10, Decimal("1"))], kitchen["products"]) == []

    def test_negative_stock_counts_in_full(self, kitchen):
        kitchen["chocolate"].stock_quantity = Decimal("-2.5")
        missing = find_missing_stock([(10, Decimal("1"))], kitchen["products"])
        assert missing[0].missing == Decimal("3.0")
