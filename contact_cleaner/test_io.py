import csv
import json
import re
import tempfile
import unittest
from datetime import datetime
from pathlib import Path

from openpyxl import load_workbook

from contact_cleaner.errors import InputRejectedError, NoDataError, ParseFailureError
from contact_cleaner.models import CleaningStats, DUPLICATE_KEY, PROVENANCE_KEY
from contact_cleaner.readers import read_sheet, unique_headers, validate_files
from contact_cleaner.writer import export_rows, output_path, write_csv, write_json, write_rows, write_xlsx


ROWS = [
    {"Name": "Asha Rao", "Phone": "+919876543210", PROVENANCE_KEY: "a.csv"},
    {"Name": "Ravi", "Phone": "", PROVENANCE_KEY: "b.csv", DUPLICATE_KEY: True},
]


class TempDirTest(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def write(self, name: str, content: str) -> Path:
        path = self.tmp / name
        path.write_text(content, encoding="utf-8")
        return path


class TestValidation(TempDirTest):
    def test_accepts_good_batch(self) -> None:
        a = self.write("a.csv", "Name\nAsha\n")
        b = self.write("b.csv", "Name\nRavi\n")
        self.assertEqual(validate_files([str(a), str(b)], min_files=2), ([a, b], {}))

    def test_bad_file_is_rejected_alone(self) -> None:
        a = self.write("a.csv", "Name\nAsha\n")
        b = self.write("b.csv", "Name\nRavi\n")
        txt = self.write("notes.txt", "hello")
        empty = self.write("empty.csv", "")

        accepted, rejected = validate_files([str(a), str(txt), str(b), str(empty)], min_files=2)

        self.assertEqual(accepted, [a, b])
        self.assertEqual(list(rejected), ["notes.txt", "empty.csv"])
        self.assertIn("Unsupported file type", rejected["notes.txt"])
        self.assertIn("File is empty", rejected["empty.csv"])

    def test_too_few_usable_files(self) -> None:
        a = self.write("a.csv", "Name\nAsha\n")
        txt = self.write("notes.txt", "hello")
        with self.assertRaisesRegex(InputRejectedError, "usable files"):
            validate_files([str(a), str(txt)], min_files=2)

    def test_count_limits(self) -> None:
        a = self.write("a.csv", "Name\nAsha\n")
        with self.assertRaisesRegex(InputRejectedError, "at least 2"):
            validate_files([str(a)], min_files=2)
        with self.assertRaisesRegex(InputRejectedError, "Maximum 5"):
            validate_files([str(a)] * 6, max_files=5)

    def test_rejected_files(self) -> None:
        txt = self.write("notes.txt", "hello")
        empty = self.write("empty.csv", "")
        big = self.write("big.csv", "Name\n" + "x" * 100)

        with self.assertRaisesRegex(InputRejectedError, "Unsupported"):
            validate_files([str(txt)])
        with self.assertRaisesRegex(InputRejectedError, "empty"):
            validate_files([str(empty)])
        with self.assertRaisesRegex(InputRejectedError, "too large"):
            validate_files([str(big)], max_file_bytes=50)
        with self.assertRaisesRegex(InputRejectedError, "not found"):
            validate_files([str(self.tmp / "missing.csv")])


class TestReader(TempDirTest):
    def test_csv_blanks_become_empty_strings(self) -> None:
        path = self.write("contacts.csv", "Name,Phone,City\nAsha,09876543210,\n,,Pune\n")
        sheet = read_sheet(path)

        self.assertEqual(sheet.file_name, "contacts.csv")
        self.assertEqual(sheet.headers, ("Name", "Phone", "City"))
        self.assertEqual(dict(sheet.rows[0]), {"Name": "Asha", "Phone": "09876543210", "City": ""})
        self.assertEqual(dict(sheet.rows[1]), {"Name": "", "Phone": "", "City": "Pune"})

    def test_headers_equal_after_trimming_stay_apart(self) -> None:
        path = self.write("contacts.csv", "Name,Name ,Phone\nAsha,Rao,9876543210\n")
        sheet = read_sheet(path)

        self.assertEqual(sheet.headers, ("Name", "Name 2", "Phone"))
        self.assertEqual(dict(sheet.rows[0]), {"Name": "Asha", "Name 2": "Rao", "Phone": "9876543210"})

    def test_unique_headers(self) -> None:
        self.assertEqual(unique_headers([" A", "A", "A 2", "A"]), ["A", "A 2", "A 2 2", "A 3"])

    def test_xlsx_first_sheet(self) -> None:
        path = Path(write_xlsx([{"Name": "Asha", "Phone": "9876543210"}], str(self.tmp), "in"))
        sheet = read_sheet(path)
        self.assertEqual(sheet.headers, ("Name", "Phone"))
        self.assertEqual(str(sheet.rows[0]["Phone"]), "9876543210")

    def test_corrupt_workbook(self) -> None:
        path = self.tmp / "broken.xlsx"
        path.write_bytes(b"not really a workbook")
        with self.assertRaises(ParseFailureError):
            read_sheet(path)


class TestWriter(TempDirTest):
    def test_export_rows(self) -> None:
        self.assertEqual(export_rows(ROWS), [
            {"Name": "Asha Rao", "Phone": "+919876543210"},
            {"Name": "Ravi", "Phone": ""},
        ])

    def test_empty_export_is_refused(self) -> None:
        with self.assertRaises(NoDataError):
            write_csv([], str(self.tmp))
        self.assertEqual(list(self.tmp.iterdir()), [])

    def test_file_name(self) -> None:
        path = output_path(str(self.tmp), "merged_contacts", "csv", datetime(2024, 3, 9, 14, 5, 7))
        self.assertEqual(path.name, "merged_contacts_2024-03-09_140507.csv")

    def test_csv(self) -> None:
        path = Path(write_csv(ROWS, str(self.tmp), "contacts"))
        self.assertRegex(path.name, r"^contacts_\d{4}-\d{2}-\d{2}_\d{6}\.csv$")

        with open(path, newline="", encoding="utf-8-sig") as f:
            reader = csv.reader(f)
            self.assertEqual(next(reader), ["Name", "Phone"])
            self.assertEqual(next(reader), ["Asha Rao", "+919876543210"])

    def test_xlsx(self) -> None:
        path = write_xlsx(ROWS, str(self.tmp))
        workbook = load_workbook(path)
        self.assertEqual(workbook.sheetnames, ["Merged Data"])
        sheet = workbook["Merged Data"]
        self.assertEqual([c.value for c in sheet[1]], ["Name", "Phone"])
        self.assertEqual(sheet.max_row, 3)

    def test_json(self) -> None:
        stats = CleaningStats(total_rows=3, duplicates_removed=1, final_rows=2)
        path = write_json(ROWS, ["a.csv", "b.csv"], stats, str(self.tmp))

        with open(path, encoding="utf-8") as f:
            data = json.load(f)

        self.assertEqual(data["metadata"]["totalRows"], 2)
        self.assertEqual(data["metadata"]["columns"], ["Name", "Phone"])
        self.assertEqual(data["metadata"]["stats"]["duplicatesRemoved"], 1)
        self.assertTrue(re.match(r"^\d{4}-\d{2}-\d{2}T", data["metadata"]["generatedAt"]))
        self.assertNotIn(PROVENANCE_KEY, data["rows"][0])

    def test_unknown_format(self) -> None:
        with self.assertRaises(ValueError):
            write_rows(ROWS, "pdf", str(self.tmp))


if __name__ == "__main__":
    unittest.main()
