from decimal import Decimal

import pytest

from retail_ledger.common.exceptions import RecordNotFoundError
from retail_ledger.models.enums import Currency
from retail_ledger.models.product import StockMovement, StockMovementType
from retail_ledger.models.supplier import ProductSupplier
from retail_ledger.services.product_service import (
    adjust_stock,
    get_all_products,
    get_low_stock_products,
    get_product_by_barcode,
)
from retail_ledger.services.supplier_service import (
    compare_supplier_prices,
    create_supplier,
    get_all_suppliers,
    link_product_price,
    unlink_product_price,
)


# ==================== products ====================

def test_initial_stock_recorded_as_purchase(db, make_product):
    product = make_product(stock_quantity=12, purchase_price=Decimal("8.50"))

    movement = db.query(StockMovement).filter_by(product_id=product.id).one()
    assert movement.type == StockMovementType.purchase
    assert movement.change_qty == 12
    assert movement.unit_cost == Decimal("8.50")


def test_product_without_stock_has_no_movement(db, make_product):
    product = make_product(stock_quantity=0)
    assert db.query(StockMovement).filter_by(product_id=product.id).count() == 0


def test_duplicate_sku_rejected(make_product):
    make_product(sku="SKU-1")
    with pytest.raises(ValueError):
        make_product(sku="SKU-1")


def test_adjust_stock(db, actor, make_product):
    product = make_product(stock_quantity=10)

    adjust_stock(db, actor, product.id, -3, note="Count correction")
    adjust_stock(db, actor, product.id, 5, movement_type=StockMovementType.purchase, unit_cost=Decimal("7"))

    db.refresh(product)
    assert product.stock_quantity == 12
    types = [m.type for m in db.query(StockMovement).order_by(StockMovement.id).all()]
    assert types == [StockMovementType.purchase, StockMovementType.adjustment, StockMovementType.purchase]


@pytest.mark.parametrize("change_qty, movement_type", [
    (0, StockMovementType.adjustment),
    (-1, StockMovementType.purchase),
    (-1, StockMovementType.sale),
    (-11, StockMovementType.adjustment),
])
def test_invalid_stock_adjustments(db, actor, make_product, change_qty, movement_type):
    product = make_product(stock_quantity=10)

    with pytest.raises(ValueError):
        adjust_stock(db, actor, product.id, change_qty, movement_type=movement_type)
    db.refresh(product)
    assert product.stock_quantity == 10


def test_low_stock_and_search(db, make_product):
    make_product(name="Cable", stock_quantity=2, min_stock_level=5)
    make_product(name="Socket", stock_quantity=50, min_stock_level=5, sku="SOC-9")

    assert [p.name for p in get_low_stock_products(db)] == ["Cable"]
    products, total = get_all_products(db, search="soc")
    assert total == 1
    assert products[0].name == "Socket"


def test_barcode_lookup_falls_back_to_sku(db, make_product):
    product = make_product(barcode="8690000000011", sku="LMP-01")

    assert get_product_by_barcode(db, "8690000000011").id == product.id
    assert get_product_by_barcode(db, " LMP-01 ").id == product.id
    with pytest.raises(RecordNotFoundError):
        get_product_by_barcode(db, "0000")
    with pytest.raises(ValueError):
        get_product_by_barcode(db, "  ")


# ==================== suppliers ====================

def test_supplier_name_required(db):
    with pytest.raises(ValueError):
        create_supplier(db, name=" ")


def test_link_price_is_an_upsert(db, rates, make_product):
    supplier = create_supplier(db, name="Anadolu Toptan")
    product = make_product()

    link_product_price(db, rates, supplier.id, product.id, Decimal("10"), Currency.USD)
    link = link_product_price(db, rates, supplier.id, product.id, Decimal("12"), Currency.USD)

    assert db.query(ProductSupplier).count() == 1
    assert link.unit_price == Decimal("12.00")
    assert link.fx_rate_at_purchase == Decimal("34.50")


def test_compare_supplier_prices_in_home_currency(db, rates, make_product):
    product = make_product()
    usd = create_supplier(db, name="Dollar Supply")
    eur = create_supplier(db, name="Euro Supply")
    local = create_supplier(db, name="Yerel Tedarik")

    link_product_price(db, rates, usd.id, product.id, Decimal("10"), Currency.USD)
    link_product_price(db, rates, eur.id, product.id, Decimal("9"), Currency.EUR)
    link_product_price(db, rates, local.id, product.id, Decimal("300"), Currency.TRY)

    offers = compare_supplier_prices(db, rates, product.id)

    assert [o.supplier_name for o in offers] == ["Yerel Tedarik", "Euro Supply", "Dollar Supply"]
    assert [o.unit_price_home for o in offers] == [Decimal("300.00"), Decimal("338.40"), Decimal("345.00")]


def test_unlink_price(db, rates, make_product):
    supplier = create_supplier(db, name="Anadolu Toptan")
    product = make_product()
    link_product_price(db, rates, supplier.id, product.id, Decimal("10"))

    assert unlink_product_price(db, supplier.id, product.id) is True
    assert unlink_product_price(db, supplier.id, product.id) is False


def test_supplier_search(db):
    create_supplier(db, name="Anadolu Toptan", contact_person="Hasan")
    create_supplier(db, name="Ege Dağıtım")

    suppliers, total = get_all_suppliers(db, search="hasan")
    assert total == 1
    assert suppliers[0].name == "Anadolu Toptan"


def test_link_requires_existing_records(db, rates, make_product):
    supplier = create_supplier(db, name="Anadolu Toptan")
    with pytest.raises(RecordNotFoundError):
        link_product_price(db, rates, supplier.id, "PRD-NOPE", Decimal("1"))
    with pytest.raises(RecordNotFoundError):
        link_product_price(db, rates, "SUP-NOPE", make_product().id, Decimal("1"))
