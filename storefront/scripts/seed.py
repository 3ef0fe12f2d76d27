"""Load the starter catalog and shipping rates.

Idempotent: products are matched by name and rates by carrier/service, so
re-running only inserts what is missing. ``--products-csv`` loads extra
products from a CSV file with the same column names as the products table.
"""
import argparse
import csv
import sys
from pathlib import Path
from typing import Optional

from storefront.core_settings import get_settings
from storefront.domain.models import Category, Product, ShippingRate
from storefront.domain.repository import Repository
from storefront.infrastructure.storage import Storage

SEED_PRODUCTS = [
    {"name": "SR17018 - 1 Gram", "weight_grams": 1, "price_cents": 4900},
    {"name": "SR17018 - 3 Grams", "weight_grams": 3, "price_cents": 12900},
    {"name": "SR17018 - 5 Grams", "weight_grams": 5, "price_cents": 19900},
    {"name": "SR17018 - 10 Grams", "weight_grams": 10, "price_cents": 34900},
]

SEED_SHIPPING_RATES = [
    ("USPS", "First Class Mail", "Economical shipping for lightweight packages", "2-5 business days", 500),
    ("USPS", "Priority Mail", "Fast and reliable service with tracking", "1-3 business days", 900),
    ("USPS", "Priority Mail Express", "Overnight to 2-day delivery with guarantee", "1-2 business days", 2500),
    ("UPS", "UPS Ground", "Reliable ground delivery service", "1-5 business days", 1200),
    ("UPS", "UPS 3 Day Select", "Guaranteed 3-day delivery", "3 business days", 1800),
    ("UPS", "UPS 2nd Day Air", "Second business day delivery", "2 business days", 2800),
    ("UPS", "UPS Next Day Air", "Next business day delivery", "1 business day", 4500),
]

INT_COLUMNS = {"weight_grams", "price_cents", "quantity_per_unit", "stock_quantity", "low_stock_threshold"}
DEFAULT_STOCK = 100


def seed_shipping_rates(repo: Repository) -> int:
    existing = {(r.carrier, r.service_name) for r in repo.list_active_rates()}
    added = 0
    with repo.transaction():
        for order, (carrier, service, description, days, base_rate) in enumerate(SEED_SHIPPING_RATES, start=1):
            if (carrier, service) in existing:
                continue
            repo.add_rate(ShippingRate(
                carrier=carrier,
                service_name=service,
                description=description,
                estimated_days=days,
                base_rate=base_rate,
                active=True,
                display_order=order,
            ))
            added += 1
    return added


def add_products(repo: Repository, rows: list[dict]) -> int:
    existing = {p.name for p in repo.list_products()}
    added = 0
    with repo.transaction():
        for row in rows:
            if row["name"] in existing:
                continue
            stock = row.get("stock_quantity", DEFAULT_STOCK)
            repo.add_product(Product(**{**row, "stock_quantity": stock, "in_stock": stock > 0}))
            existing.add(row["name"])
            added += 1
    return added


def seed_catalog(repo: Repository) -> int:
    rows = [
        {
            **item,
            "description": f"{item['name']}. For research purposes only.",
            "category": Category.CHEMICALS.value,
        }
        for item in SEED_PRODUCTS
    ]
    return add_products(repo, rows)


def read_products_csv(path: Path) -> list[dict]:
    rows = []
    with open(path, newline="", encoding="utf-8") as f:
        for raw in csv.DictReader(f):
            row = {k: v for k, v in raw.items() if v not in (None, "")}
            for column in INT_COLUMNS & row.keys():
                row[column] = int(row[column])
            if "category" in row:
                row["category"] = Category(row["category"]).value
            rows.append(row)
    return rows


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Seed the storefront catalog and shipping rates")
    parser.add_argument("--products-csv", type=Path, help="extra products to load")
    parser.add_argument("--skip-catalog", action="store_true", help="only seed shipping rates")
    args = parser.parse_args(argv)

    settings = get_settings()
    storage = Storage.from_settings(settings)
    storage.init()
    try:
        with storage.repository() as repo:
            rates = seed_shipping_rates(repo)
            products = 0 if args.skip_catalog else seed_catalog(repo)
            if args.products_csv:
                products += add_products(repo, read_products_csv(args.products_csv))
    finally:
        storage.close()

    print(f"Seeded {products} product(s) and {rates} shipping rate(s).")
    return 0


if __name__ == "__main__":
    sys.exit(main())
