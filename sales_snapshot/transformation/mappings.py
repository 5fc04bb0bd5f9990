"""
Pseudonymization Lookup Tables

Fixed pools and keyword rules used to build the deterministic mappings.
Pool order is part of the contract: reordering changes every pseudonym.
"""

import re
from typing import Dict, List, NamedTuple, Optional, Pattern


class BrandIdentity(NamedTuple):
    code: str
    name: str


# Raw brand code or abbreviation -> canonical brand
BRAND_MAP: Dict[str, BrandIdentity] = {
    "00": BrandIdentity("SA", "SAKURA"),
    "MD": BrandIdentity("SA", "SAKURA"),
    "51": BrandIdentity("KA", "KAEDE"),
    "EL": BrandIdentity("KA", "KAEDE"),
    "03": BrandIdentity("WA", "WAKABA"),
    "LM": BrandIdentity("WA", "WAKABA"),
}

# Case-insensitive for ASCII; plain substring for the Japanese tokens
ONLINE_STORE_KEYWORDS = ["WEB", "ONLINE", "ZOZOBASE", "通販", "ウェブ", "オンライン"]

ANONYMIZED_ONLINE_STORE_NAME = "オンライン"

PHYSICAL_STORE_NAME_POOL = [
    "駅前店", "モール店", "デパート店", "プラザ店", "グランド店", "シティ店",
    "パーク店", "駅ビル店", "アネックス店", "名古屋店", "横浜店", "新宿店",
    "池袋店", "梅田店", "渋谷店", "心斎橋店", "博多店", "広島店",
    "天王寺店", "岡山店", "福岡店", "なんば店", "神戸店", "恵比寿店",
    "立川店", "北千住店", "有楽町店", "高崎店", "大宮店", "川崎店",
    "千葉店", "船橋店", "柏店", "吉祥寺店", "町田店", "横須賀店",
    "静岡店", "浜松店", "岐阜店", "京都店", "大阪店", "堺店",
    "奈良店", "姫路店", "岡崎店", "豊田店", "金沢店", "長野店",
    "仙台店", "札幌店", "旭川店", "那覇店", "熊本店", "鹿児島店",
    "大分店", "松山店", "高松店", "徳島店",
]

FAMILY_NAMES = [
    "佐藤", "鈴木", "高橋", "田中", "渡辺", "伊藤", "中村", "小林", "山本", "加藤",
    "吉田", "山田", "佐々木", "松本", "井上", "木村", "林", "斎藤", "清水", "山口",
    "森", "阿部", "池田", "橋本", "山崎", "石川", "前田", "藤田", "岡田", "後藤",
    "長谷川", "石井", "村上", "遠藤", "青木", "坂本", "福田", "太田", "西村", "藤井",
    "藤原", "本田", "久保", "横山", "松田", "中川", "中野", "原田", "小川", "竹内",
]

GIVEN_NAMES = [
    "陽子", "美咲", "翔太", "優子", "健一", "真由美", "大輔", "恵子", "直樹", "香織",
    "拓也", "裕子", "浩二", "智子", "誠", "明美", "淳", "京子", "剛", "由美",
    "健太郎", "麻衣", "和也", "千尋", "慎一", "綾", "雄大", "彩", "亮", "愛",
    "大樹", "美穂", "翔", "奈々", "陸", "花", "蓮", "結衣", "蒼", "凛",
    "楓", "陽菜", "颯", "結菜", "樹", "心", "湊", "咲", "陽", "芽衣",
]

# Assigned in order to the sorted distinct original prefixes
MEMBER_ID_REPLACEMENT_PREFIXES = ["A1", "B2", "C3", "D4", "E5", "F6", "G7", "H8", "J9", "K0"]


class CategoryRule(NamedTuple):
    pattern: Pattern[str]
    category: str


def _rule(pattern: str, category: str) -> CategoryRule:
    # ASCII word boundaries so "SK" before a kana still matches
    return CategoryRule(re.compile(pattern, re.IGNORECASE | re.ASCII), category)


# First match wins; more specific rules come first
PRODUCT_CATEGORY_RULES: List[CategoryRule] = [
    _rule(r"スカート", "スカート"),
    _rule(r"SK(?:IRT)?\b", "スカート"),
    _rule(r"ワンピース|ワンシー|OP|WCD|ONEPIECE", "ワンピース"),
    _rule(r"ドレス", "ドレス"),
    _rule(r"ブーツ", "ブーツ"),
    _rule(r"ニット|KNIT|KT\b", "ニット"),
    _rule(r"コート|COAT|CT\b", "コート"),
    _rule(r"ジャケット|JACKET|JKT", "ジャケット"),
    _rule(r"カーディガン|CARDIGAN", "カーディガン"),
    _rule(r"ブルゾン|BLAZER|BLZ", "ブルゾン"),
    _rule(r"パンツ|PANTS|PT\b", "パンツ"),
    _rule(r"ショートパンツ|SHORTS", "ショートパンツ"),
    _rule(r"シャツ|SHIRT|SL\b", "シャツ"),
    _rule(r"ブラウス|BLOUSE|BL\b", "ブラウス"),
    _rule(r"トップス|TOPS|TP\b", "トップス"),
    _rule(r"Tシャツ|T-SHIRT|TKT", "Tシャツ"),
    _rule(r"セーター|SWEATER", "セーター"),
    _rule(r"ベスト|VEST", "ベスト"),
    _rule(r"キャミソール|CAMISOLE", "キャミソール"),
    _rule(r"スニーカー|SNEAKER", "スニーカー"),
    _rule(r"サンダル|SANDAL", "サンダル"),
    _rule(r"バッグ|BAG", "バッグ"),
    _rule(r"アクセサリー|ACCESSORY", "アクセサリー"),
    _rule(r"ベルト|BELT", "ベルト"),
    _rule(r"ストール|STOLE|SCARF", "ストール"),
]

PRODUCT_FALLBACK_CATEGORY = "その他"


def is_online_store(store_name: str) -> bool:
    """True when the store name carries any online indicator keyword"""
    name = (store_name or "").strip()
    upper = name.upper()
    return any(kw.upper() in upper or kw in name for kw in ONLINE_STORE_KEYWORDS)


def generalize_product_name(product_name: str) -> str:
    """Replace a product name with its generic category"""
    name = (product_name or "").strip()
    if not name:
        return PRODUCT_FALLBACK_CATEGORY
    for rule in PRODUCT_CATEGORY_RULES:
        if rule.pattern.search(name):
            return rule.category
    return PRODUCT_FALLBACK_CATEGORY


def resolve_brand(code_or_name: str) -> Optional[BrandIdentity]:
    """Canonical brand for a raw code or abbreviation, None when unknown"""
    return BRAND_MAP.get((code_or_name or "").strip())
