from typing import List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from retail_ledger.common.exceptions import RecordNotFoundError
from retail_ledger.core.context import ActorContext
from retail_ledger.logger_config import logger
from retail_ledger.models.enums import Currency
from retail_ledger.models.product import Product, ProductUnit, StockMovement, StockMovementType
from retail_ledger.services.ledger_engine import money, non_negative, to_decimal


def get_product_by_id(db: Session, product_id: str) -> Optional[Product]:
    return db.query(Product).filter(Product.id == product_id).first()


def require_product(db: Session, product_id: str) -> Product:
    product = get_product_by_id(db, product_id)
    if not product:
        raise RecordNotFoundError("Product", product_id)
    return product


def get_all_products(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    search: Optional[str] = None,
) -> Tuple[List[Product], int]:
    """Get all products with optional search on name, sku, barcode or id."""
    query = db.query(Product)

    if search:
        search_term = f"%{search}%"
        query = query.filter(
            or_(
                Product.name.ilike(search_term),
                Product.sku.ilike(search_term),
                Product.barcode.ilike(search_term),
                Product.id.ilike(search_term),
            )
        )

    total = query.count()
    products = query.order_by(Product.name.asc()).offset(skip).limit(limit).all()
    return products, total


def get_low_stock_products(db: Session) -> List[Product]:
    """Products at or below their minimum stock level."""
    return (
        db.query(Product)
        .filter(Product.stock_quantity <= Product.min_stock_level)
        .order_by(Product.stock_quantity.asc(), Product.name.asc())
        .all()
    )


def create_product(
    db: Session,
    actor: ActorContext,
    name: str,
    sale_price,
    purchase_price=0,
    purchase_currency: Currency = Currency.TRY,
    purchase_fx_rate=1,
    stock_quantity: int = 0,
    min_stock_level: int = 0,
    unit: ProductUnit = ProductUnit.PIECE,
    sku: Optional[str] = None,
    barcode: Optional[str] = None,
    description: Optional[str] = None,
) -> Product:
    """Create a product. Initial stock is recorded as a purchase movement."""
    if not name or not name.strip():
        raise ValueError("Product name is required")
    if stock_quantity < 0 or min_stock_level < 0:
        raise ValueError("Stock quantities cannot be negative")

    fx_rate = to_decimal(purchase_fx_rate, "purchase_fx_rate")
    if fx_rate <= 0:
        raise ValueError("purchase_fx_rate must be positive")

    product = Product(
        name=name.strip(),
        description=description,
        sku=sku,
        barcode=barcode,
        unit=ProductUnit(unit),
        stock_quantity=stock_quantity,
        min_stock_level=min_stock_level,
        purchase_price=money(non_negative(purchase_price, "purchase_price")),
        purchase_currency=Currency(purchase_currency),
        purchase_fx_rate=fx_rate,
        sale_price=money(non_negative(sale_price, "sale_price")),
    )
    db.add(product)

    try:
        db.flush()
        if stock_quantity:
            db.add(StockMovement(
                product_id=product.id,
                change_qty=stock_quantity,
                type=StockMovementType.purchase,
                ref_type="product",
                ref_id=product.id,
                unit_cost=product.purchase_price,
                fx_rate=fx_rate,
                note="Initial stock",
                created_by=actor.actor_id,
            ))
        db.commit()
        db.refresh(product)
        logger.info(f"Product {product.id} created with stock {stock_quantity}")
        return product
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Error creating product: {str(e)}")
        raise ValueError("Failed to create product. SKU or barcode may already exist.")


def move_stock(
    db: Session,
    product: Product,
    change_qty: int,
    movement_type: StockMovementType,
    actor: ActorContext,
    ref_type: Optional[str] = None,
    ref_id: Optional[str] = None,
    unit_cost=None,
    fx_rate=None,
    note: Optional[str] = None,
) -> StockMovement:
    """
    Apply a signed stock change and record the movement.
    Does not commit; callers own the transaction.
    """
    new_quantity = product.stock_quantity + change_qty
    if new_quantity < 0:
        raise ValueError(
            f"Insufficient stock for {product.name}: available {product.stock_quantity}, requested {-change_qty}"
        )
    product.stock_quantity = new_quantity

    movement = StockMovement(
        product_id=product.id,
        change_qty=change_qty,
        type=movement_type,
        ref_type=ref_type,
        ref_id=ref_id,
        unit_cost=unit_cost,
        fx_rate=fx_rate,
        note=note,
        created_by=actor.actor_id,
    )
    db.add(movement)
    return movement


def adjust_stock(
    db: Session,
    actor: ActorContext,
    product_id: str,
    change_qty: int,
    movement_type: StockMovementType = StockMovementType.adjustment,
    unit_cost=None,
    note: Optional[str] = None,
) -> Product:
    """Manual stock change: a purchase (receiving goods) or a count adjustment."""
    movement_type = StockMovementType(movement_type)
    if movement_type not in (StockMovementType.adjustment, StockMovementType.purchase):
        raise ValueError("Only purchase or adjustment movements can be recorded manually")
    if change_qty == 0:
        raise ValueError("change_qty cannot be zero")
    if movement_type == StockMovementType.purchase and change_qty < 0:
        raise ValueError("Purchase quantity must be positive")

    product = require_product(db, product_id)
    if unit_cost is not None:
        unit_cost = money(non_negative(unit_cost, "unit_cost"))

    try:
        move_stock(
            db,
            product,
            change_qty,
            movement_type,
            actor,
            ref_type="manual",
            unit_cost=unit_cost,
            note=note,
        )
        db.commit()
        db.refresh(product)
    except ValueError:
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Error adjusting stock: {str(e)}")
        raise ValueError("Failed to adjust stock.")

    logger.info(f"Stock {movement_type.value} {change_qty:+d} on {product.id}, now {product.stock_quantity}")
    return product


def get_product_by_barcode(db: Session, barcode: str) -> Product:
    """Scanner lookup; falls back to SKU when no barcode matches."""
    code = (barcode or "").strip()
    if not code:
        raise ValueError("Barcode is required")
    product = (
        db.query(Product).filter(Product.barcode == code).first()
        or db.query(Product).filter(Product.sku == code).first()
    )
    if not product:
        raise RecordNotFoundError("Product with barcode", code)
    return product
