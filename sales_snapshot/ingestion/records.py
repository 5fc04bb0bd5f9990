"""
Sales Record Model

Canonical row shape for POS sales exports and the header mapping used to
decode them.
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional


class SalesColumns:
    """Column headers of the POS sales export"""
    MEMBER_ID = "会員ID"
    PURCHASE_DATE = "購買日"
    PRODUCT_ID = "品番"
    PRODUCT_NAME = "商品名"
    COLOR_CODE = "カラーコード"
    COLOR_NAME = "カラー名"
    SIZE_CODE = "サイズコード"
    SIZE_NAME = "サイズ名"
    STORE_BRAND_CODE = "店舗ブランドコード"
    STORE_BRAND_NAME = "店舗ブランド略称"
    PRODUCT_BRAND_CODE = "商品ブランドコード"
    PRODUCT_BRAND_NAME = "商品ブランド略称"
    QUANTITY = "購買点数"
    AMOUNT = "税抜金額"
    VS_STORE_ID = "VS店舗ID"
    STORE_NAME = "店舗名"
    MS_STORE_ID = "MS店舗ID"
    ASSOCIATE_NAME = "販売担当者"
    ASSOCIATE_CODE = "担当者コード"
    SALE_ID = "売上ID"
    LIST_PRICE = "標準小売単価"


SALES_HEADERS = [
    SalesColumns.MEMBER_ID,
    SalesColumns.PURCHASE_DATE,
    SalesColumns.PRODUCT_ID,
    SalesColumns.PRODUCT_NAME,
    SalesColumns.COLOR_CODE,
    SalesColumns.COLOR_NAME,
    SalesColumns.SIZE_CODE,
    SalesColumns.SIZE_NAME,
    SalesColumns.STORE_BRAND_CODE,
    SalesColumns.STORE_BRAND_NAME,
    SalesColumns.PRODUCT_BRAND_CODE,
    SalesColumns.PRODUCT_BRAND_NAME,
    SalesColumns.QUANTITY,
    SalesColumns.AMOUNT,
    SalesColumns.VS_STORE_ID,
    SalesColumns.STORE_NAME,
    SalesColumns.MS_STORE_ID,
    SalesColumns.ASSOCIATE_NAME,
    SalesColumns.ASSOCIATE_CODE,
    SalesColumns.SALE_ID,
    SalesColumns.LIST_PRICE,
]


@dataclass(frozen=True)
class SalesRecord:
    """One decoded sales line item"""
    member_id: str
    purchase_date: str
    product_id: str = ""
    product_name: str = ""
    color: str = ""
    size: str = ""
    brand_code: str = ""
    brand_name: str = ""
    quantity: float = 1.0
    amount: float = 0.0
    store_name: str = ""
    associate: str = ""

    @property
    def is_qualifying(self) -> bool:
        """Identity fields present and a positive tax-excluded amount"""
        return bool(self.member_id and self.purchase_date) and self.amount > 0

    def to_purchase(self) -> Dict[str, Any]:
        """Row without the member id, keyed the way the front end reads it"""
        return {
            "purchaseDate": self.purchase_date,
            "productId": self.product_id,
            "productName": self.product_name,
            "color": self.color,
            "size": self.size,
            "brandCode": self.brand_code,
            "brandName": self.brand_name,
            "quantity": self.quantity,
            "totalCost": self.amount,
            "storeName": self.store_name,
            "salesAssociate": self.associate,
        }


def _text(row: Mapping[str, Any], column: str) -> str:
    value = row.get(column)
    if value is None:
        return ""
    return str(value).strip()


def parse_number(value: str, default: float) -> float:
    """Parse a numeric cell, falling back to ``default`` instead of failing the row"""
    text = (value or "").replace(",", "").strip()
    if not text:
        return default
    try:
        number = float(text)
    except ValueError:
        return default
    if number != number or number in (float("inf"), float("-inf")):
        return default
    return number


def parse_sales_row(row: Mapping[str, Any]) -> Optional[SalesRecord]:
    """
    Decode one raw export row.

    Returns None when the member id or purchase date is missing; such rows
    never take part in any aggregate.
    """
    member_id = _text(row, SalesColumns.MEMBER_ID)
    purchase_date = _text(row, SalesColumns.PURCHASE_DATE)
    if not member_id or not purchase_date:
        return None

    return SalesRecord(
        member_id=member_id,
        purchase_date=purchase_date,
        product_id=_text(row, SalesColumns.PRODUCT_ID),
        product_name=_text(row, SalesColumns.PRODUCT_NAME),
        color=_text(row, SalesColumns.COLOR_NAME),
        size=_text(row, SalesColumns.SIZE_NAME),
        brand_code=(
            _text(row, SalesColumns.STORE_BRAND_CODE)
            or _text(row, SalesColumns.PRODUCT_BRAND_CODE)
        ),
        brand_name=(
            _text(row, SalesColumns.STORE_BRAND_NAME)
            or _text(row, SalesColumns.PRODUCT_BRAND_NAME)
        ),
        quantity=parse_number(_text(row, SalesColumns.QUANTITY), 1.0),
        amount=parse_number(_text(row, SalesColumns.AMOUNT), 0.0),
        store_name=_text(row, SalesColumns.STORE_NAME),
        associate=_text(row, SalesColumns.ASSOCIATE_NAME),
    )
