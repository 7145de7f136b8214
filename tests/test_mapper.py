import json
from decimal import Decimal

from stocksync.ingest.mapper import description_html, map_record
from stocksync.ingest.models import FeedRecord


def _record(**overrides):
    values = dict(
        sku="SKU-1",
        title="Dome camera",
        price=Decimal("1250.5"),
        stock_quantity=4,
        brand="Axis",
        expected_delivery_date="01-05-2024",
        category_id="100",
        category_name="Cameras",
        image_url="https://img.example/1.jpg",
        description2="IP66",
        description3="PoE <class 3>",
        barcode="5701234567890",
        gross_weight_kg=Decimal("1.25"),
        manufacturer_part_no="M3045",
    )
    values.update(overrides)
    return FeedRecord(**values)


def test_map_record_fields():
    draft = map_record(_record())

    assert draft.sku == "SKU-1"
    assert draft.title == "Dome camera"
    assert draft.vendor == "Axis"
    assert draft.product_type == "Cameras"
    assert draft.price == Decimal("1250.50")
    assert draft.barcode == "5701234567890"
    assert draft.inventory_quantity == 4
    assert draft.tags == ["Axis", "Cameras", "SKU-1"]
    assert draft.weight == Decimal("1.25")
    assert draft.weight_unit == "KILOGRAMS"
    assert [(i.src, i.alt_text) for i in draft.images] == [("https://img.example/1.jpg", "Dome camera")]


def test_description_lists_extra_descriptions_escaped():
    assert description_html(_record()) == "<ul><li>IP66</li><li>PoE &lt;class 3&gt;</li></ul>"
    assert description_html(_record(description2="", description3="")) == ""


def test_metafields_carry_supplier_attributes():
    draft = map_record(_record(), namespace="eet")

    fields = {m.key: m for m in draft.metafields}
    assert set(fields) == {"brand", "mpn", "incoming_date", "category_id"}
    assert fields["incoming_date"].value == "2024-05-01"
    assert fields["incoming_date"].type == "date"
    assert all(m.namespace == "eet" for m in draft.metafields)


def test_empty_values_are_left_out():
    draft = map_record(
        _record(brand="", category_name="", image_url="", expected_delivery_date="", gross_weight_kg=Decimal("0"))
    )

    assert draft.tags == ["SKU-1"]
    assert draft.images == []
    assert draft.weight is None
    assert {m.key for m in draft.metafields} == {"mpn", "category_id"}


def test_zero_price_maps_to_zero():
    assert map_record(_record(price=Decimal("0"))).price == Decimal("0.00")


def test_document_urls_become_list_metafield():
    draft = map_record(_record(), document_urls=["https://docs.example/a.pdf", "https://docs.example/b.pdf"])

    docs = next(m for m in draft.metafields if m.key == "docs")
    assert docs.type == "list.url"
    assert json.loads(docs.value) == ["https://docs.example/a.pdf", "https://docs.example/b.pdf"]
