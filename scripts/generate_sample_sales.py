"""
Synthetic POS Export Generator
Writes brand sales exports plus membership/users exports with the real
Japanese header set (seeded, vectorized where it matters).
"""

import sys
from datetime import date, timedelta
from pathlib import Path

import numpy as np
import polars as pl
from faker import Faker

from sales_snapshot.ingestion import SALES_HEADERS, SalesColumns

SEED = 42
fake = Faker("ja_JP")
Faker.seed(SEED)
rng = np.random.default_rng(SEED)

OUTPUT_DIR = Path(__file__).parent.parent / "data" / "raw"

# export suffix -> (store brand code, store brand abbreviation)
BRANDS = {
    "md": ("00", "MD"),
    "EL": ("51", "EL"),
    "LM": ("03", "LM"),
}

MEMBER_PREFIXES = ["10", "20", "30", "40", "50", "60"]
PRODUCT_WORDS = [
    "フレアスカート", "ニットワンピース", "ロングコート", "テーラードジャケット", "ワイドパンツ",
    "ショートブーツ", "カーディガン", "ブラウス", "Tシャツ", "トートバッグ", "SK プリーツ", "KNIT VEST",
]
COLORS = [("01", "ホワイト"), ("09", "ブラック"), ("15", "ベージュ"), ("52", "ネイビー"), ("71", "レッド")]
SIZES = [("1", "S"), ("2", "M"), ("3", "L"), ("0", "F")]


# ==========================================
# MEMBERS
# ==========================================
def generate_members(n=2000):
    print(f"📊 Generating {n:,} members...")
    prefixes = rng.choice(MEMBER_PREFIXES, n)
    suffixes = rng.integers(0, 10**8, n)
    return [f"{p}{s:08d}" for p, s in zip(prefixes, suffixes)]


def write_membership(member_ids, output_dir):
    # roughly 80% of buyers are registered members
    registered = [m for m in member_ids if rng.random() < 0.8]
    pl.DataFrame({SalesColumns.MEMBER_ID: registered}).write_csv(output_dir / "mark_membership.csv")
    print(f"   ✅ mark_membership.csv: {len(registered):,} rows")


def write_users(member_ids, output_dir):
    today = date.today()
    ages = rng.integers(16, 75, len(member_ids))
    offsets = rng.integers(0, 365, len(member_ids))
    birthdates = [
        (today - timedelta(days=int(a) * 365 + int(o))).strftime("%Y/%m/%d")
        for a, o in zip(ages, offsets)
    ]
    df = pl.DataFrame({
        SalesColumns.MEMBER_ID: member_ids,
        "生年月日": birthdates,
        "性別": rng.choice(["1", "2", "0"], len(member_ids), p=[0.7, 0.25, 0.05]).tolist(),
    })
    df.write_csv(output_dir / "mark_users.csv")
    print(f"   ✅ mark_users.csv: {len(member_ids):,} rows")


# ==========================================
# SALES
# ==========================================
def generate_sales(suffix, member_ids, n=20000, days=400):
    store_code, brand_abbr = BRANDS[suffix]
    print(f"📊 Generating {n:,} {brand_abbr} sales rows...")

    stores = [f"{brand_abbr} {fake.city()}店" for _ in range(12)] + [f"{brand_abbr} WEB通販"]
    associates = [fake.name() for _ in range(40)]
    start = date.today() - timedelta(days=days)

    member_idx = rng.integers(0, len(member_ids), n)
    day_offsets = rng.integers(0, days, n)
    product_idx = rng.integers(0, len(PRODUCT_WORDS), n)
    color_idx = rng.integers(0, len(COLORS), n)
    size_idx = rng.integers(0, len(SIZES), n)
    store_idx = rng.integers(0, len(stores), n)
    associate_idx = rng.integers(0, len(associates), n)
    quantities = rng.choice([1, 1, 1, 2, 3], n)
    prices = rng.choice([2900, 4900, 7900, 12900, 19900, 29900], n)
    # a few returns and zero-amount adjustments
    signs = rng.choice([1, 1, 1, 1, 1, 1, 1, 1, 1, -1], n)

    rows = {header: [] for header in SALES_HEADERS}
    for i in range(n):
        store = stores[store_idx[i]]
        color_code, color_name = COLORS[color_idx[i]]
        size_code, size_name = SIZES[size_idx[i]]
        product_no = int(product_idx[i])
        online = "WEB" in store

        rows[SalesColumns.MEMBER_ID].append(member_ids[member_idx[i]])
        rows[SalesColumns.PURCHASE_DATE].append((start + timedelta(days=int(day_offsets[i]))).isoformat())
        rows[SalesColumns.PRODUCT_ID].append(f"{brand_abbr}{product_no:03d}{color_code}")
        rows[SalesColumns.PRODUCT_NAME].append(PRODUCT_WORDS[product_no])
        rows[SalesColumns.COLOR_CODE].append(color_code)
        rows[SalesColumns.COLOR_NAME].append(color_name)
        rows[SalesColumns.SIZE_CODE].append(size_code)
        rows[SalesColumns.SIZE_NAME].append(size_name)
        rows[SalesColumns.STORE_BRAND_CODE].append(store_code)
        rows[SalesColumns.STORE_BRAND_NAME].append(brand_abbr)
        rows[SalesColumns.PRODUCT_BRAND_CODE].append(store_code)
        rows[SalesColumns.PRODUCT_BRAND_NAME].append(brand_abbr)
        rows[SalesColumns.QUANTITY].append(str(int(quantities[i])))
        rows[SalesColumns.AMOUNT].append(str(int(prices[i] * quantities[i] * signs[i])))
        rows[SalesColumns.VS_STORE_ID].append(f"{store_idx[i]:04d}")
        rows[SalesColumns.STORE_NAME].append(store)
        rows[SalesColumns.MS_STORE_ID].append(f"{store_code}{store_idx[i]:04d}")
        rows[SalesColumns.ASSOCIATE_NAME].append("" if online else associates[associate_idx[i]])
        rows[SalesColumns.ASSOCIATE_CODE].append("" if online else f"{associate_idx[i]:05d}")
        rows[SalesColumns.SALE_ID].append(f"{suffix}{i:09d}")
        rows[SalesColumns.LIST_PRICE].append(str(int(prices[i])))

    return pl.DataFrame(rows)


# ==========================================
# MAIN
# ==========================================
def main(output_dir=OUTPUT_DIR, rows_per_brand=20000):
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    print("=" * 60)
    print("🛍  Synthetic POS Export Generator")
    print("=" * 60 + "\n")

    member_ids = generate_members()
    for suffix in BRANDS:
        df = generate_sales(suffix, member_ids, rows_per_brand)
        path = output_dir / f"mark_sales_{suffix}.csv"
        df.write_csv(path)
        print(f"   ✅ {path.name}: {df.height:,} rows")

    write_membership(member_ids, output_dir)
    write_users(member_ids, output_dir)

    print(f"\n📁 Output: {output_dir}\n")


if __name__ == "__main__":
    main(sys.argv[1] if len(sys.argv) > 1 else OUTPUT_DIR)
