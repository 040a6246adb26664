import unittest

from contact_cleaner.config import TableSettings
from contact_cleaner.models import TextToken
from contact_cleaner.reconstruct import (
    assign_columns,
    cluster_columns,
    detect_header_tokens,
    extract_field_value,
    extract_pattern_rows,
    extract_phone_lines,
    group_tokens_by_rows,
    reanalyze_table,
    reconstruct_table,
)


def tok(text, x, y, width=40, height=12):
    return TextToken(text=text, x=x, y=y, width=width, height=height, confidence=90.0)


class TestRowGrouping(unittest.TestCase):
    def test_two_bands(self) -> None:
        tokens = [tok("c", 0, 50), tok("a", 0, 10), tok("d", 0, 52), tok("b", 0, 12)]
        rows = group_tokens_by_rows(tokens, 15)
        self.assertEqual([[t.text for t in row] for row in rows], [["a", "b"], ["c", "d"]])

    def test_rows_follow_the_last_token(self) -> None:
        tokens = [tok(str(y), 0, y) for y in (0, 10, 20, 30)]
        self.assertEqual(len(group_tokens_by_rows(tokens, 15)), 1)

    def test_empty(self) -> None:
        self.assertEqual(group_tokens_by_rows([]), [])


class TestPatternScan(unittest.TestCase):
    TOKENS = [
        tok("Asha", 0, 10), tok("Rao", 50, 10), tok("9876543210", 100, 10), tok("asha@x.com", 250, 10),
        tok("Ravi", 0, 40), tok("8765432109", 100, 40),
        tok("--", 0, 80),
    ]

    def test_field_values(self) -> None:
        text = "Asha Rao 9876543210 asha@x.com"
        self.assertEqual(extract_field_value("phone", text).strip(), "9876543210")
        self.assertEqual(extract_field_value("email", text), "asha@x.com")
        self.assertEqual(extract_field_value("name", text), "Asha Rao")
        self.assertEqual(extract_field_value("pincode", "Pune 411001"), "411001")
        self.assertEqual(extract_field_value("date", "joined 5/8/2023"), "5/8/2023")
        self.assertEqual(extract_field_value("id", "ref AB12345"), "AB12345")
        self.assertEqual(extract_field_value("city", "Pun"), "")
        self.assertEqual(extract_field_value("city", "Pune"), "Pune")
        self.assertEqual(extract_field_value("name", "98765 43210"), "")
        self.assertEqual(extract_field_value("custom", "anything"), "anything")

    def test_rows_without_values_are_dropped(self) -> None:
        rows = extract_pattern_rows(self.TOKENS, ["name", "phone", "email"], include_scattered=False)
        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[0]["name"], "Asha Rao")
        self.assertEqual(rows[0]["email"], "asha@x.com")
        self.assertEqual(rows[1]["name"], "Ravi")
        self.assertEqual(rows[1]["phone"].strip(), "8765432109")
        self.assertEqual(rows[1]["email"], "")

    def test_scattered_hits_supplement_rows(self) -> None:
        rows = extract_pattern_rows(self.TOKENS, ["name", "phone", "email"])
        self.assertEqual(len(rows), 5)
        self.assertIn({"email": "asha@x.com"}, rows[2:])
        self.assertEqual(sum(1 for r in rows[2:] if "phone" in r), 2)

    def test_phone_lines(self) -> None:
        text = "\n".join([
            "Asha Rao: +91 98765 43210",
            "Ravi - 8765432109",
            "noise 12345",
            "+91 98765 43210",
            "5555555555",
            "9988776655",
        ])
        self.assertEqual(extract_phone_lines(text), [
            {"name": "Asha Rao", "phone": "9876543210"},
            {"name": "Ravi", "phone": "8765432109"},
            {"name": "Unknown", "phone": "9988776655"},
        ])


class TestSpatialTable(unittest.TestCase):
    TOKENS = [
        tok("Name", 10, 0), tok("Phone", 200, 0, width=50), tok("City", 400, 0),
        tok("Asha", 10, 50), tok("Rao", 55, 50, width=30), tok("9876543210", 200, 50, width=90), tok("Pune", 400, 50),
        tok("Ravi", 10, 100), tok("8765432109", 200, 100, width=90),
    ]

    def test_cluster_columns(self) -> None:
        self.assertEqual(cluster_columns(self.TOKENS, 20), [(10, 85), (200, 290), (400, 440)])

    def test_header_tokens(self) -> None:
        indexes = detect_header_tokens(self.TOKENS, 30)
        self.assertEqual([self.TOKENS[i].text for i in indexes], ["Name", "Phone", "City"])

    def test_short_keyword_headers(self) -> None:
        tokens = [tok("Pin", 0, 0), tok("No", 100, 0), tok("411001", 0, 50)]
        indexes = detect_header_tokens(tokens, 30)
        self.assertEqual([tokens[i].text for i in indexes], ["Pin"])

    def test_ties_go_to_the_first_column(self) -> None:
        columns = [(0, 10), (20, 30)]
        self.assertEqual(assign_columns([tok("x", 10, 0, width=10)], columns), [0])

    def test_reconstruct(self) -> None:
        self.assertEqual(reconstruct_table(self.TOKENS, TableSettings()), [
            {"Name": "Asha Rao", "Phone": "9876543210", "City": "Pune"},
            {"Name": "Ravi", "Phone": "8765432109", "City": ""},
        ])

    def test_unnamed_columns(self) -> None:
        tokens = [tok("Name", 10, 0), tok("Asha", 10, 50), tok("9876543210", 200, 50, width=90)]
        self.assertEqual(reconstruct_table(tokens), [{"Name": "Asha", "Column 2": "9876543210"}])

    def test_relaxed_reanalysis(self) -> None:
        tokens = [tok("Name", 0, 0, width=30), tok("Asha", 0, 50, width=30), tok("Rao", 55, 50, width=25)]
        self.assertEqual(reconstruct_table(tokens), [{"Name": "Asha", "Column 2": "Rao"}])
        self.assertEqual(reanalyze_table(tokens), [{"Name": "Asha Rao"}])

    def test_relaxed_settings(self) -> None:
        relaxed = TableSettings().relaxed()
        self.assertAlmostEqual(relaxed.column_tolerance, 26.0)
        self.assertAlmostEqual(relaxed.row_tolerance, 18.0)
        self.assertEqual(relaxed.header_band, 30.0)

    def test_empty(self) -> None:
        self.assertEqual(reconstruct_table([]), [])


if __name__ == "__main__":
    unittest.main()
