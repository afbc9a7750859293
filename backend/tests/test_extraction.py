"""
Unit tests for the extraction engine — one class per field, plus
whole-receipt properties.
"""
from datetime import date

import pytest

from receipt_ocr.extraction import ExtractedData, ExtractionConfig, LineItem, Word, extract_receipt_data
from receipt_ocr.extraction.dates import find_date_in_line, normalize_year
from receipt_ocr.extraction.document import ReceiptDocument
from receipt_ocr.extraction.extractor import resolve_field
from receipt_ocr.extraction.items import parse_item_line, parse_loose
from receipt_ocr.extraction.layout import cluster_lines, top_region_lines
from receipt_ocr.extraction.patterns import is_item_header, parse_amount

TODAY = date(2026, 1, 15)


def _extract(text, words=None):
    return extract_receipt_data(text, words, today=TODAY)


def _word(text, left, top, confidence=95.0, width=40.0, height=12.0):
    return Word(text=text, left=left, top=top, width=width, height=height, confidence=confidence)


# =====================================================================
# Store name
# =====================================================================
class TestStoreName:
    def test_line_after_tax_marker(self):
        text = "TIN: 123-456-789\nFRESH MART GROCERS\n12/03/2024\nTOTAL 10.00"
        assert _extract(text).store_name == "FRESH MART GROCERS"

    def test_tax_marker_skips_date_candidate(self):
        text = "TIN 123456\n12/03/2024\nCorner Market\nTOTAL 10.00"
        # The date line after the marker is rejected; the keyword fallback finds the store
        assert _extract(text).store_name == "Corner Market"

    def test_keyword_line_without_geometry(self):
        text = "Receipt #0042\nCorner Market\n12/03/2024 14:22\nMilk 2 3.99\nTOTAL 7.98"
        assert _extract(text).store_name == "Corner Market"

    def test_plain_first_line_without_geometry(self):
        text = "Joe's Diner\n12/03/2024\nBurger 1 9.99\nTOTAL 9.99"
        assert _extract(text).store_name == "Joe's Diner"

    def test_punctuation_is_stripped(self):
        text = "*** Sunny Side Cafe! ***\nTOTAL 4.00"
        assert _extract(text).store_name == "Sunny Side Cafe"

    def test_top_region_words(self):
        words = [
            _word("BEST", 10, 10),
            _word("BUY", 60, 12),
            _word("12/03/2024", 10, 40),
            _word("Milk", 10, 300),
            _word("3.99", 200, 300),
            _word("TOTAL", 10, 480),
            _word("3.99", 200, 480),
        ]
        text = "Receipt #0042\nBEST BUY\n12/03/2024\nMilk 3.99\nTOTAL 3.99"
        assert _extract(text, words).store_name == "BEST BUY"

    def test_top_region_marker(self):
        words = [
            _word("TIN:", 10, 10),
            _word("123456", 60, 10),
            _word("Harbor", 10, 30),
            _word("Books", 70, 31),
            _word("TOTAL", 10, 480),
            _word("12.00", 200, 480),
        ]
        assert _extract("garbled\nTOTAL 12.00", words).store_name == "Harbor Books"

    def test_geometry_disables_text_fallback(self):
        words = [_word("12/03/2024", 10, 10), _word("TOTAL", 10, 480), _word("5.00", 200, 480)]
        assert _extract("Corner Market\nTOTAL 5.00", words).store_name is None

    def test_item_header_is_not_a_store_name(self):
        data = _extract("Description Qty Price Amount\nMilk 2 3.99")
        assert data.store_name is None
        assert data.items == [LineItem("Milk", 2, 3.99)]

    def test_name_above_item_header(self):
        text = "Corner Market\nItem Qty Price\nMilk 2 3.99\nTOTAL 7.98"
        assert _extract(text).store_name == "Corner Market"

    def test_only_excluded_lines(self):
        text = "Tel: 555-123-4567\n12/03/2024\nTOTAL 5.00\nThank you"
        assert _extract(text).store_name is None


# =====================================================================
# Purchase date
# =====================================================================
class TestPurchaseDate:
    @pytest.mark.parametrize(
        "line, expected",
        [
            ("Date: 15/03/2024 14:35", date(2024, 3, 15)),
            ("15-03-2024", date(2024, 3, 15)),
            ("2024-03-15", date(2024, 3, 15)),
            ("2024/03/15 09:10", date(2024, 3, 15)),
            ("March 15, 2024", date(2024, 3, 15)),
            ("15 Mar 2024", date(2024, 3, 15)),
            ("15/03/24", date(2024, 3, 15)),
        ],
    )
    def test_supported_shapes(self, line, expected):
        assert find_date_in_line(line, TODAY) == expected

    def test_day_first(self):
        assert find_date_in_line("05/04/2024", TODAY) == date(2024, 4, 5)

    def test_two_digit_year_window(self):
        assert normalize_year(24) == 2024
        assert normalize_year(49) == 2049
        assert normalize_year(50) == 1950

    def test_out_of_range_year_keeps_scanning(self):
        text = "Shop\n01/01/1999\nDate: 02/02/2024\nTOTAL 1.00"
        assert _extract(text).purchase_date == date(2024, 2, 2)

    def test_invalid_calendar_date(self):
        assert _extract("Shop\n31/02/2024\nTOTAL 1.00").purchase_date is None

    def test_future_year_rejected(self):
        assert find_date_in_line("01/01/2028", TODAY) is None
        assert find_date_in_line("01/01/2027", TODAY) == date(2027, 1, 1)

    def test_first_date_in_document_order(self):
        text = "Shop\n10/01/2024\n11/01/2024\nTOTAL 1.00"
        assert _extract(text).purchase_date == date(2024, 1, 10)


# =====================================================================
# Total amount
# =====================================================================
class TestTotalAmount:
    def test_labelled_total_bottom_up(self):
        text = "Shop\nSubtotal 10.00\nTax 0.80\nTOTAL 10.80\nCash 20.00\nChange 9.20"
        assert _extract(text).total_amount == pytest.approx(10.80)

    def test_thousands_and_currency(self):
        assert _extract("Shop\nTOTAL: $1,234.56").total_amount == pytest.approx(1234.56)

    def test_amount_due_label(self):
        assert _extract("Shop\nAmount Due 42.10").total_amount == pytest.approx(42.10)

    def test_standalone_fallback(self):
        assert _extract("Shop\nMilk 3.99\n12.50").total_amount == pytest.approx(12.50)

    def test_item_count_after_total_label(self):
        assert _extract("Corner Market\nTotal 2 items 45.67").total_amount == pytest.approx(45.67)
        assert _extract("Corner Market\nTotal 3 pcs 12.00").total_amount == pytest.approx(12.00)

    def test_fallback_upper_bound(self):
        assert _extract("Shop\n123456.78").total_amount is None

    def test_no_amount(self):
        assert _extract("hello\nworld").total_amount is None

    def test_parse_amount_forms(self):
        assert parse_amount("1,234.56") == pytest.approx(1234.56)
        assert parse_amount("$3.99") == pytest.approx(3.99)
        assert parse_amount("3,99") == pytest.approx(3.99)
        assert parse_amount("abc") is None


# =====================================================================
# Line items
# =====================================================================
TABLE_RECEIPT = (
    "FRESH MART\n"
    "Description   Qty   Price\n"
    "Milk          2     3.99\n"
    "Bread         1     2.50\n"
    "TOTAL               10.48\n"
    "Gum           1     0.99\n"
)


class TestLineItems:
    def test_table_until_terminator(self):
        items = _extract(TABLE_RECEIPT).items
        assert items == [LineItem("Milk", 2, 3.99), LineItem("Bread", 1, 2.50)]

    @pytest.mark.parametrize(
        "line",
        ["Description Qty Price", "Descr  Oty  Amount", "ITEM   QTY   AMT", "Product Qtv Rate"],
    )
    def test_tolerant_header(self, line):
        assert is_item_header(line)

    def test_header_with_prices_is_not_header(self):
        assert not is_item_header("Item Qty 3.99")

    def test_single_line_with_line_amount(self):
        assert parse_item_line("Chicken Sandwich  1  8.50  8.50") == LineItem("Chicken Sandwich", 1, 8.50)

    def test_loose_parse(self):
        assert parse_loose("Coffee 4.50") == ("Coffee", None, 4.50)
        assert parse_item_line("Coffee 4.50") == LineItem("Coffee", None, 4.50)

    def test_quantity_out_of_range_is_dropped(self):
        assert parse_item_line("Milk 0 3.99") == LineItem("Milk", None, 3.99)

    def test_short_name_dropped(self):
        assert parse_item_line("AB 1 2.00") is None

    @pytest.mark.parametrize(
        "line",
        [
            "Cashier 1 5.00",
            "Tel: 555-123-4567",
            "12/03/2024 10.00",
            "-----------------",
            "123 Main Street 4.00",
            "45 Elm St, Springfield 4.00",
            "TIN 123456 1 2.00",
        ],
    )
    def test_non_item_lines(self, line):
        assert parse_item_line(line) is None

    def test_abbreviated_street_suffix_in_item_name(self):
        assert parse_item_line("2 Dr Pepper 1.99") == LineItem("Dr Pepper", 2, 1.99)

    def test_no_header_fallback(self):
        text = "Joe's Diner\n12/03/2024\nBurger 1 9.99\nFries 1 3.49\nTOTAL 13.48\nThank you"
        assert _extract(text).items == [LineItem("Burger", 1, 9.99), LineItem("Fries", 1, 3.49)]

    def test_header_without_items(self):
        assert _extract("Shop\nDescription Qty Price\nTOTAL 0.00").items == []


# =====================================================================
# Layout
# =====================================================================
class TestLayout:
    def test_cluster_lines_orders_words(self):
        words = [_word("Mart", 80, 12), _word("Fresh", 10, 10), _word("Road", 10, 40)]
        lines = cluster_lines(words, tolerance=10)
        assert [line.text for line in lines] == ["Fresh Mart", "Road"]

    def test_top_region_cutoff(self):
        words = [_word("Top", 10, 10), _word("Bottom", 10, 488)]
        lines = top_region_lines(words, ratio=0.2, tolerance=10)
        assert [line.text for line in lines] == ["Top"]

    def test_mean_confidence(self):
        line = cluster_lines([_word("A", 0, 0, 90), _word("B", 10, 0, 70)], tolerance=10)[0]
        assert line.mean_confidence == pytest.approx(80)


# =====================================================================
# Whole-receipt properties
# =====================================================================
FULL_RECEIPT = (
    "TIN: 123-456-789\n"
    "GREEN LEAF GROCERY\n"
    "45 Elm Street\n"
    "Tel: 555-123-4567\n"
    "Date: 12/03/2024 18:05\n"
    "Description   Qty   Price\n"
    "Apples        3     1.20\n"
    "Orange Juice  1     4.50\n"
    "Subtotal            8.10\n"
    "Tax                 0.65\n"
    "TOTAL               8.75\n"
    "Thank you for shopping!\n"
)


class TestExtractReceiptData:
    def test_full_receipt(self):
        data = _extract(FULL_RECEIPT)
        assert data.store_name == "GREEN LEAF GROCERY"
        assert data.purchase_date == date(2024, 3, 12)
        assert data.total_amount == pytest.approx(8.75)
        assert data.items == [LineItem("Apples", 3, 1.20), LineItem("Orange Juice", 1, 4.50)]

    @pytest.mark.parametrize("text", ["", "   \n  ", None])
    def test_empty_input_never_raises(self, text):
        data = _extract(text)
        assert data == ExtractedData()
        assert data.is_empty()

    def test_deterministic(self):
        assert _extract(FULL_RECEIPT) == _extract(FULL_RECEIPT)

    def test_word_dicts_and_bad_words(self):
        words = [
            {"text": "Harbor", "bbox": {"x0": 10, "y0": 10, "x1": 60, "y1": 22}, "confidence": 96},
            {"text": "Books", "left": 70, "top": 11, "width": 50, "height": 12, "conf": 94},
            {"text": "broken"},
            {"text": "TOTAL", "left": 10, "top": 480, "width": 50, "height": 12, "conf": 90},
        ]
        data = _extract("x\nTOTAL 12.00", words)
        assert data.store_name == "Harbor Books"
        assert data.total_amount == pytest.approx(12.00)

    def test_items_absent_is_empty_list(self):
        assert _extract("Corner Market").items == []

    def test_custom_config(self):
        words = [_word("Tiny", 10, 10, confidence=50), _word("Shop", 60, 10, confidence=50)]
        config = ExtractionConfig(top_region_ratio=1.0)
        data = extract_receipt_data("", words, config=config, today=TODAY)
        assert data.store_name == "Tiny Shop"

    def test_raising_strategy_is_skipped(self):
        doc = ReceiptDocument.build("Shop", today=TODAY)

        def broken(doc):
            raise RuntimeError("boom")

        def fallback(doc):
            return "fallback"

        assert resolve_field("store_name", (broken, fallback), doc) == "fallback"
        assert resolve_field("store_name", (broken,), doc) is None

    def test_result_serialisation(self):
        data = _extract(FULL_RECEIPT)
        payload = data.to_dict()
        assert payload["version"] == 1
        assert payload["purchaseDate"] == "2024-03-12"
        assert ExtractedData.from_dict(payload) == data
