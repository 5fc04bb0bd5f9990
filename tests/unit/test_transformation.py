"""
Unit Tests - Pseudonymization and Demographics
"""
from datetime import date

import pandas as pd
import pytest

from sales_snapshot.exceptions import MissingInputError
from sales_snapshot.ingestion import SALES_HEADERS, SalesColumns, load_sales
from sales_snapshot.storage import read_json, write_json
from sales_snapshot.transformation import (
    PseudonymizationTables,
    SalesAnonymizer,
    build_member_demographics,
    collect_distinct_values,
    generalize_product_name,
    is_online_store,
    load_demographics,
    load_prefix_map,
    pseudonymize_member_id,
    resolve_brand,
)
from sales_snapshot.transformation.anonymizer import (
    DistinctValues,
    build_associate_map,
    build_member_prefix_map,
    build_store_map,
)
from sales_snapshot.transformation.demographics import MemberDemographics, parse_birthdate
from sales_snapshot.transformation.mappings import (
    ANONYMIZED_ONLINE_STORE_NAME,
    FAMILY_NAMES,
    GIVEN_NAMES,
    MEMBER_ID_REPLACEMENT_PREFIXES,
    PHYSICAL_STORE_NAME_POOL,
    PRODUCT_FALLBACK_CATEGORY,
)


class TestMappings:
    """Tests for fixed lookup tables"""

    def test_skirt_rule_wins(self):
        """Test スカート maps to スカート even with other keywords present"""
        assert generalize_product_name("ニットスカート") == "スカート"
        assert generalize_product_name("スカート付きワンピース") == "スカート"

    def test_fallback_category(self):
        """Test unmatched and empty names fall back"""
        assert generalize_product_name("謎のアイテム") == PRODUCT_FALLBACK_CATEGORY
        assert generalize_product_name("") == PRODUCT_FALLBACK_CATEGORY

    def test_ascii_rules_are_case_insensitive(self):
        """Test ASCII abbreviations match regardless of case"""
        assert generalize_product_name("knit vest") == "ニット"
        assert generalize_product_name("SK プリーツ") == "スカート"

    @pytest.mark.parametrize("name", ["EL WEB通販", "online store", "ZOZOBASE", "オンラインショップ", "公式ウェブ"])
    def test_online_store_detection(self, name):
        """Test online indicator keywords"""
        assert is_online_store(name)

    def test_physical_store_detection(self):
        """Test physical stores are not flagged online"""
        assert not is_online_store("MD 新宿店")
        assert not is_online_store("")

    def test_resolve_brand(self):
        """Test raw codes and abbreviations resolve; unknown pass as None"""
        assert resolve_brand("00").code == "SA"
        assert resolve_brand("EL").name == "KAEDE"
        assert resolve_brand(" LM ").code == "WA"
        assert resolve_brand("ZZ") is None


class TestMappingTables:
    """Tests for the mapping table builders"""

    def test_member_prefixes_take_pool_in_sorted_order(self):
        """Test sorted prefixes are assigned pool entries in order"""
        prefix_map = build_member_prefix_map(["30", "10", "20", "10"])

        assert prefix_map == {"10": "A1", "20": "B2", "30": "C3"}

    def test_member_prefix_overflow(self):
        """Test prefixes beyond the pool get X<index>"""
        prefixes = [f"{i:02d}" for i in range(12)]
        prefix_map = build_member_prefix_map(prefixes)

        assert [prefix_map[p] for p in prefixes[:10]] == MEMBER_ID_REPLACEMENT_PREFIXES
        assert prefix_map["10"] == "X10"
        assert prefix_map["11"] == "X11"

    def test_pseudonymization_is_stable(self):
        """Test same id maps the same way; shared prefixes share the replacement"""
        prefix_map = build_member_prefix_map(["10", "20"])

        first = pseudonymize_member_id("10000001", prefix_map)
        assert first == "A1000001"
        assert pseudonymize_member_id("10000001", prefix_map) == first
        assert pseudonymize_member_id("10999999", prefix_map)[:2] == first[:2]
        assert pseudonymize_member_id("99000001", prefix_map) == "99000001"

    def test_store_pool_wraparound(self):
        """Test physical stores cycle through the pool and the map stays a function"""
        names = [f"店舗{i:03d}" for i in range(len(PHYSICAL_STORE_NAME_POOL) + 5)]
        store_map = build_store_map(names + ["EL WEB通販"])

        assert store_map["EL WEB通販"] == ANONYMIZED_ONLINE_STORE_NAME
        assert set(PHYSICAL_STORE_NAME_POOL) <= set(store_map.values())
        ordered = sorted(names)
        for i, name in enumerate(ordered):
            assert store_map[name] == PHYSICAL_STORE_NAME_POOL[i % len(PHYSICAL_STORE_NAME_POOL)]
        assert store_map[ordered[0]] == store_map[ordered[len(PHYSICAL_STORE_NAME_POOL)]]

    def test_associate_names_combine_pools(self):
        """Test family cycles fastest and given advances every family-pool lap"""
        names = [f"担当{i:04d}" for i in range(len(FAMILY_NAMES) + 2)]
        associate_map = build_associate_map(names)

        assert associate_map["担当0000"] == f"{FAMILY_NAMES[0]} {GIVEN_NAMES[0]}"
        assert associate_map["担当0001"] == f"{FAMILY_NAMES[1]} {GIVEN_NAMES[0]}"
        assert associate_map[f"担当{len(FAMILY_NAMES):04d}"] == f"{FAMILY_NAMES[0]} {GIVEN_NAMES[1]}"
        assert len(set(associate_map.values())) == len(names)

    def test_tables_are_independent(self):
        """Test two builds never share state"""
        first = PseudonymizationTables.build(DistinctValues(member_prefixes={"10"}))
        second = PseudonymizationTables.build(DistinctValues(member_prefixes={"10", "05"}))

        assert first.pseudonymize_member_id("10000001") == "A1000001"
        assert second.pseudonymize_member_id("10000001") == "B2000001"


class TestRewriteRow:
    """Tests for pass-2 row rewriting"""

    @pytest.fixture
    def tables(self, write_sales_csv, raw_sales_rows):
        path = write_sales_csv("mark_sales_md.csv", raw_sales_rows)
        return PseudonymizationTables.build(collect_distinct_values([path]))

    def test_collect_pass(self, write_sales_csv, raw_sales_rows):
        """Test distinct values are gathered across all rows"""
        values = collect_distinct_values([write_sales_csv("mark_sales_md.csv", raw_sales_rows)])

        assert values.rows == 5
        assert values.member_prefixes == {"10", "20"}
        assert values.store_names == {"MD 新宿店", "EL WEB通販", "LM 梅田店"}
        assert values.associate_names == {"山田 花子", "田中 一郎"}

    def test_rewrites_identifiers(self, tables, raw_sales_rows):
        """Test member, store, associate, brand and product are rewritten"""
        out = tables.rewrite_row(raw_sales_rows[0])

        assert list(out) == SALES_HEADERS
        assert out[SalesColumns.MEMBER_ID] == "A1000001"
        assert out[SalesColumns.STORE_NAME] == PHYSICAL_STORE_NAME_POOL[1]
        assert out[SalesColumns.ASSOCIATE_NAME] == f"{FAMILY_NAMES[0]} {GIVEN_NAMES[0]}"
        assert out[SalesColumns.PRODUCT_NAME] == "スカート"
        assert out[SalesColumns.STORE_BRAND_CODE] == "SA"
        assert out[SalesColumns.PRODUCT_BRAND_NAME] == "SAKURA"
        assert out[SalesColumns.AMOUNT] == "12,000"

    def test_online_store_and_brand_from_product(self, tables, raw_sales_rows):
        """Test online stores collapse and product brand resolves a blank store brand"""
        online = tables.rewrite_row(raw_sales_rows[1])
        fallback = tables.rewrite_row(raw_sales_rows[4])

        assert online[SalesColumns.STORE_NAME] == ANONYMIZED_ONLINE_STORE_NAME
        assert online[SalesColumns.STORE_BRAND_CODE] == "KA"
        assert fallback[SalesColumns.STORE_BRAND_CODE] == "WA"
        assert fallback[SalesColumns.PRODUCT_BRAND_CODE] == "WA"
        assert fallback[SalesColumns.STORE_NAME] == PHYSICAL_STORE_NAME_POOL[0]
        assert fallback[SalesColumns.PRODUCT_NAME] == PRODUCT_FALLBACK_CATEGORY


class TestSalesAnonymizer:
    """Tests for the two-pass anonymizer"""

    def test_run_writes_csv_and_prefix_map(self, tmp_path, write_sales_csv, raw_sales_rows):
        """Test the anonymized CSV and prefix map are produced"""
        source = write_sales_csv("mark_sales_md.csv", raw_sales_rows)
        output = tmp_path / "out" / "mark_sales_anonymized.csv"
        prefix_path = tmp_path / "out" / "member_prefix_map.json"

        result = SalesAnonymizer(chunk_size=2).run([source], output, prefix_path)

        assert result.rows_written == 5
        assert read_json(prefix_path) == {"10": "A1", "20": "B2"}

        df = pd.read_csv(output, dtype=str, keep_default_na=False)
        assert list(df.columns) == SALES_HEADERS
        assert df[SalesColumns.MEMBER_ID].tolist()[:2] == ["A1000001", "B2000002"]
        assert "山田 花子" not in set(df[SalesColumns.ASSOCIATE_NAME])

        records = load_sales([output])
        assert [r.member_id for r in records] == ["A1000001", "B2000002", "A1000001"]

    def test_discover_inputs_skips_anonymized_output(self, tmp_path, write_sales_csv, raw_sales_rows):
        """Test discovery globs brand exports but not the anonymized file"""
        write_sales_csv("mark_sales_md.csv", raw_sales_rows)
        write_sales_csv("mark_sales_anonymized.csv", raw_sales_rows)

        found = SalesAnonymizer().discover_inputs(tmp_path)

        assert [p.name for p in found] == ["mark_sales_md.csv"]

    def test_missing_inputs_abort_without_output(self, tmp_path):
        """Test a missing export raises before anything is written"""
        output = tmp_path / "anonymized.csv"
        prefix_path = tmp_path / "prefix.json"

        with pytest.raises(MissingInputError):
            SalesAnonymizer().run([tmp_path / "mark_sales_md.csv"], output, prefix_path)

        assert not output.exists()
        assert not prefix_path.exists()

    def test_no_inputs_is_fatal(self, tmp_path):
        """Test an empty input list is a precondition failure"""
        with pytest.raises(MissingInputError):
            SalesAnonymizer().run([], tmp_path / "anonymized.csv", tmp_path / "prefix.json")


class TestDemographics:
    """Tests for the demographic join"""

    def test_parse_birthdate(self):
        """Test dash and slash separated dates parse"""
        assert parse_birthdate("1990-07-02") == date(1990, 7, 2)
        assert parse_birthdate("1990/07/02") == date(1990, 7, 2)
        assert parse_birthdate("1990-02-30") is None
        assert parse_birthdate("") is None

    def test_age_and_gender(self):
        """Test completed years and gender codes"""
        demo = MemberDemographics(birthdate="1990-07-02", gender_code="1")

        assert demo.age_on(date(2024, 7, 1)) == 33
        assert demo.age_on(date(2024, 7, 2)) == 34
        assert demo.gender == "Female"
        assert MemberDemographics(gender_code="2").gender == "Male"
        assert MemberDemographics(gender_code="9").gender == "Unknown"
        assert MemberDemographics(birthdate="2030-01-01").age_on(date(2024, 7, 1)) is None

    def _write_exports(self, tmp_path):
        pd.DataFrame({SalesColumns.MEMBER_ID: ["10000001", "20000002"]}).to_csv(
            tmp_path / "membership.csv", index=False
        )
        pd.DataFrame({
            SalesColumns.MEMBER_ID: ["10000001", "20000002", "30000003"],
            "生年月日": ["1990/07/02", "1985-01-15", "2000-01-01"],
            "性別": ["1", "2", "1"],
        }).to_csv(tmp_path / "users.csv", index=False)

    def test_build_member_demographics(self, tmp_path):
        """Test users in the membership set are keyed by pseudonymized id"""
        self._write_exports(tmp_path)
        write_json(tmp_path / "prefix.json", {"10": "A1", "20": "B2"})

        path = build_member_demographics(
            tmp_path / "membership.csv",
            tmp_path / "users.csv",
            tmp_path / "prefix.json",
            tmp_path / "demographics.json",
        )

        assert read_json(path) == {
            "A1000001": {"birthdate": "1990/07/02", "genderCode": "1"},
            "B2000002": {"birthdate": "1985-01-15", "genderCode": "2"},
        }
        lookup = load_demographics(path)
        assert lookup["A1000001"].gender == "Female"

    def test_missing_prefix_map_is_fatal(self, tmp_path):
        """Test the join refuses to run before the anonymizer"""
        self._write_exports(tmp_path)

        with pytest.raises(MissingInputError) as exc:
            build_member_demographics(
                tmp_path / "membership.csv",
                tmp_path / "users.csv",
                tmp_path / "prefix.json",
                tmp_path / "demographics.json",
            )

        assert "anonymizer" in str(exc.value)
        assert not (tmp_path / "demographics.json").exists()

    def test_missing_demographics_file_yields_empty_lookup(self, tmp_path):
        """Test demographics are optional for the snapshot"""
        assert load_demographics(tmp_path / "none.json") == {}

    def test_load_prefix_map_missing(self, tmp_path):
        """Test loading an absent prefix map raises"""
        with pytest.raises(MissingInputError):
            load_prefix_map(tmp_path / "prefix.json")
