from decimal import Decimal

import pytest

from stocksync.errors import ParseError
from stocksync.ingest.feed import COLUMNS, parse_decimal, parse_feed, parse_row

from conftest import feed_line


def test_parse_feed_reads_positional_columns(write_feed):
    path = write_feed(
        [
            feed_line(
                "SKU-1",
                title="Dome camera",
                price="1250,50",
                stock="25",
                brand="Axis",
                delivery="01-05-2024",
                image="https://img.example/1.jpg",
                barcode="5701234567890",
                gross="1,25",
                mpn="M3045",
            )
        ]
    )

    [record] = parse_feed(path)

    assert record.sku == "SKU-1"
    assert record.title == "Dome camera"
    assert record.description1 == "Dome camera"
    assert record.price == Decimal("1250.50")
    assert record.stock_quantity == 25
    assert record.brand == "Axis"
    assert record.expected_delivery_date == "01-05-2024"
    assert record.category_name == "Cameras"
    assert record.image_url == "https://img.example/1.jpg"
    assert record.barcode == "5701234567890"
    assert record.gross_weight_kg == Decimal("1.25")
    assert record.manufacturer_part_no == "M3045"


def test_rows_without_sku_or_title_are_dropped(write_feed):
    path = write_feed(
        [
            feed_line("SKU-1"),
            feed_line("", title="No sku"),
            feed_line("SKU-3", title=""),
            "",
            feed_line("SKU-5"),
        ]
    )

    assert [r.sku for r in parse_feed(path)] == ["SKU-1", "SKU-5"]


def test_short_rows_are_padded_and_numbers_default_to_zero(write_feed):
    path = write_feed(["SKU-1;Cable;;abc"])

    [record] = parse_feed(path)

    assert record.price == Decimal("0")
    assert record.stock_quantity == 0
    assert record.brand == ""
    assert record.manufacturer_part_no == ""


def test_header_row_is_skipped(write_feed):
    path = write_feed([";".join(["Varenr", "Beskrivelse", "Pris"]), feed_line("SKU-1")])

    assert [r.sku for r in parse_feed(path)] == ["SKU-1"]


def test_quoted_cells_are_unwrapped(write_feed):
    path = write_feed(['"SKU-1";"Switch, 8 port";"99,95";"3"'])

    [record] = parse_feed(path)

    assert record.title == "Switch, 8 port"
    assert record.price == Decimal("99.95")


def test_negative_stock_is_clamped(write_feed):
    path = write_feed([feed_line("SKU-1", stock="-4")])

    assert parse_feed(path)[0].stock_quantity == 0


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        parse_feed(tmp_path / "missing.txt")


def test_undecodable_file_raises_parse_error(tmp_path):
    path = tmp_path / "broken.txt"
    path.write_bytes(b"SKU-1;\xff\xfe\xfa;1;1\n")

    with pytest.raises(ParseError):
        parse_feed(path)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("1250,50", Decimal("1250.50")),
        ("25", Decimal("25")),
        ("  7,5 ", Decimal("7.5")),
        ("", Decimal("0")),
        ("n/a", Decimal("0")),
        ("NaN", Decimal("0")),
        ("99999999999999999999999999999", Decimal("0")),
        ("1e40", Decimal("0")),
        (None, Decimal("0")),
    ],
)
def test_parse_decimal(raw, expected):
    assert parse_decimal(raw) == expected


def test_parse_row_ignores_extra_columns():
    row = ["SKU-1", "Title"] + ["x"] * (len(COLUMNS) + 3)

    record = parse_row(row)

    assert record is not None
    assert record.manufacturer_part_no == "x"


def test_out_of_range_price_becomes_zero(write_feed):
    path = write_feed(
        [
            feed_line("HUGE", price="99999999999999999999999999999"),
            feed_line("SKU-2", price="10,00"),
        ]
    )

    records = parse_feed(path)

    assert [r.sku for r in records] == ["HUGE", "SKU-2"]
    assert records[0].price == Decimal("0")
    assert records[1].price == Decimal("10.00")
