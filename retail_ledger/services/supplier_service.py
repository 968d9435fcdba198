from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from retail_ledger.common.exceptions import RecordNotFoundError
from retail_ledger.logger_config import logger
from retail_ledger.models.enums import Currency
from retail_ledger.models.supplier import ProductSupplier, Supplier
from retail_ledger.services.exchange_rate_service import ExchangeRateService
from retail_ledger.services.ledger_engine import money, non_negative, to_home
from retail_ledger.services.product_service import require_product
from retail_ledger.utils.dates import utc_now


def get_supplier_by_id(db: Session, supplier_id: str) -> Optional[Supplier]:
    return db.query(Supplier).filter(Supplier.id == supplier_id).first()


def require_supplier(db: Session, supplier_id: str) -> Supplier:
    supplier = get_supplier_by_id(db, supplier_id)
    if not supplier:
        raise RecordNotFoundError("Supplier", supplier_id)
    return supplier


def get_all_suppliers(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    search: Optional[str] = None,
) -> Tuple[List[Supplier], int]:
    """Get all suppliers with optional search filtering."""
    query = db.query(Supplier)

    if search:
        search_term = f"%{search}%"
        query = query.filter(
            or_(
                Supplier.name.ilike(search_term),
                Supplier.contact_person.ilike(search_term),
                Supplier.phone.ilike(search_term),
                Supplier.id.ilike(search_term),
            )
        )

    total = query.count()
    suppliers = query.order_by(Supplier.name.asc()).offset(skip).limit(limit).all()
    return suppliers, total


def create_supplier(
    db: Session,
    name: str,
    contact_person: Optional[str] = None,
    phone: Optional[str] = None,
    email: Optional[str] = None,
    address: Optional[str] = None,
) -> Supplier:
    """Create a new supplier."""
    if not name or not name.strip():
        raise ValueError("Supplier name is required")

    supplier = Supplier(
        name=name.strip(),
        contact_person=contact_person,
        phone=phone,
        email=email,
        address=address,
    )
    db.add(supplier)

    try:
        db.commit()
        db.refresh(supplier)
        return supplier
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Error creating supplier: {str(e)}")
        raise ValueError("Failed to create supplier.")


def link_product_price(
    db: Session,
    rates: ExchangeRateService,
    supplier_id: str,
    product_id: str,
    unit_price,
    currency: Currency = Currency.TRY,
    fx_rate_at_purchase=None,
    last_purchase_date: Optional[datetime] = None,
) -> ProductSupplier:
    """Add or update the price a supplier charges for a product."""
    supplier = require_supplier(db, supplier_id)
    product = require_product(db, product_id)
    currency = Currency(currency)
    unit_price = money(non_negative(unit_price, "unit_price"))
    fx_rate = rates.resolve_rate(currency, fx_rate_at_purchase)

    link = (
        db.query(ProductSupplier)
        .filter(ProductSupplier.product_id == product.id, ProductSupplier.supplier_id == supplier.id)
        .first()
    )
    if link is None:
        link = ProductSupplier(product_id=product.id, supplier_id=supplier.id)
        db.add(link)

    link.unit_price = unit_price
    link.currency = currency
    link.fx_rate_at_purchase = fx_rate
    link.last_purchase_date = last_purchase_date or utc_now()

    try:
        db.commit()
        db.refresh(link)
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Error linking supplier price: {str(e)}")
        raise ValueError("Failed to save supplier price.")

    logger.info(f"Supplier {supplier.id} price for {product.id}: {unit_price} {currency.value}")
    return link


def unlink_product_price(db: Session, supplier_id: str, product_id: str) -> bool:
    link = (
        db.query(ProductSupplier)
        .filter(ProductSupplier.product_id == product_id, ProductSupplier.supplier_id == supplier_id)
        .first()
    )
    if not link:
        return False
    db.delete(link)
    db.commit()
    logger.info(f"Supplier {supplier_id} price for {product_id} removed")
    return True


@dataclass
class SupplierOffer:
    supplier_id: str
    supplier_name: str
    unit_price: Decimal
    currency: Currency
    fx_rate: Decimal
    unit_price_home: Decimal
    last_purchase_date: Optional[datetime] = None


def compare_supplier_prices(db: Session, rates: ExchangeRateService, product_id: str) -> List[SupplierOffer]:
    """All offers for a product in home currency at today's rates, cheapest first."""
    product = require_product(db, product_id)
    rate_table = rates.rate_table()

    links = (
        db.query(ProductSupplier)
        .options(joinedload(ProductSupplier.supplier))
        .filter(ProductSupplier.product_id == product.id)
        .all()
    )

    offers = []
    for link in links:
        currency = Currency(link.currency)
        rate = rate_table.rate_for(currency)
        offers.append(SupplierOffer(
            supplier_id=link.supplier_id,
            supplier_name=link.supplier.name,
            unit_price=money(link.unit_price),
            currency=currency,
            fx_rate=rate,
            unit_price_home=to_home(link.unit_price, rate),
            last_purchase_date=link.last_purchase_date,
        ))

    offers.sort(key=lambda o: (o.unit_price_home, o.supplier_name))
    return offers
