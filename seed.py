import random
from decimal import Decimal

from faker import Faker
from sqlalchemy.orm import Session

from retail_ledger.core.context import ActorContext
from retail_ledger.core.database import Base, SessionLocal, engine
from retail_ledger.models.customer import RiskLevel
from retail_ledger.models.enums import Currency, PaymentMethod
from retail_ledger.models.product import ProductUnit
from retail_ledger.services.customer_service import create_customer
from retail_ledger.services.exchange_rate_service import ExchangeRateService
from retail_ledger.services.payment_service import PaymentService
from retail_ledger.services.product_service import create_product
from retail_ledger.services.sale_service import SaleLine, SaleService
from retail_ledger.services.supplier_service import create_supplier, link_product_price

fake = Faker()


def _phone() -> str:
    return ''.join(filter(str.isdigit, fake.phone_number()))[:20]


def _price(low: float, high: float) -> Decimal:
    return Decimal(str(round(random.uniform(low, high), 2)))


def seed(db: Session, customers: int = 20, products: int = 25, suppliers: int = 8, sales: int = 40):
    """Fill an empty database with demo data. Every balance goes through the ledger."""
    actor = ActorContext(actor_id="seed", source="system")
    rates = ExchangeRateService()

    print("🔄 Creating customers...")
    customer_rows = []
    for _ in range(customers):
        customer_rows.append(create_customer(
            db,
            actor,
            name=fake.name(),
            phone=_phone(),
            email=fake.email(),
            address=fake.address().replace('\n', ', '),
            opening_balance=random.choice([Decimal("0"), _price(100, 5000)]),
            credit_limit=random.choice([None, Decimal("10000"), Decimal("25000")]),
            risk_level=random.choice(list(RiskLevel)),
        ))
    print(f"✅ Seeded {len(customer_rows)} customers")

    print("🔄 Creating products...")
    product_rows = []
    for i in range(products):
        purchase_currency = random.choice(list(Currency))
        product_rows.append(create_product(
            db,
            actor,
            name=f"{fake.word().capitalize()} {fake.word()}",
            sale_price=_price(50, 2500),
            purchase_price=_price(10, 60) if purchase_currency != Currency.TRY else _price(30, 1500),
            purchase_currency=purchase_currency,
            purchase_fx_rate=rates.rate_for(purchase_currency),
            stock_quantity=random.randint(20, 200),
            min_stock_level=random.randint(0, 15),
            unit=random.choice(list(ProductUnit)),
            sku=f"SKU-{i + 1:05d}",
            barcode=fake.ean13(),
        ))
    print(f"✅ Seeded {len(product_rows)} products")

    print("🔄 Creating suppliers and price links...")
    for _ in range(suppliers):
        supplier = create_supplier(
            db,
            name=fake.company(),
            contact_person=fake.name(),
            phone=_phone(),
            email=fake.company_email(),
            address=fake.address().replace('\n', ', '),
        )
        for product in random.sample(product_rows, k=min(5, len(product_rows))):
            currency = random.choice(list(Currency))
            link_product_price(
                db, rates, supplier.id, product.id,
                unit_price=_price(5, 60) if currency != Currency.TRY else _price(20, 1500),
                currency=currency,
            )
    print(f"✅ Seeded {suppliers} suppliers")

    print("🔄 Creating sales and payments...")
    sale_service = SaleService(db, actor, rates)
    payment_service = PaymentService(db, actor, rates)
    created = 0
    for _ in range(sales):
        customer = random.choice(customer_rows + [None])
        lines = [
            SaleLine(product.id, random.randint(1, 3))
            for product in random.sample(product_rows, k=random.randint(1, 3))
        ]
        try:
            result = sale_service.create_sale(
                lines,
                customer_id=customer.id if customer else None,
                payment_method=random.choice(list(PaymentMethod)),
            )
        except ValueError as e:
            print(f"⚠️ Sale skipped: {e}")
            continue
        created += 1

        sale = result.sale
        if customer and random.choice([True, False]):
            payment_service.record_payment(
                customer.id,
                amount=(sale.total_amount / 2).quantize(Decimal("0.01")),
                currency=sale.currency,
                sale_id=sale.id,
            )
    print(f"✅ Seeded {created} sales")


if __name__ == '__main__':
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        seed(session)
    finally:
        session.close()
