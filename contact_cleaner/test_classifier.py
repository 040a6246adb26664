import unittest

from contact_cleaner.classifier import (
    canonical_name,
    classify_header,
    detect_value_type,
    normalize_key,
)
from contact_cleaner.models import SemanticField
from contact_cleaner.reconciler import (
    auto_select_columns,
    coverage_threshold,
    reconcile_columns,
    select_all_columns,
    select_common_columns,
)


class TestClassifier(unittest.TestCase):
    def test_aliases(self) -> None:
        cases = {
            "Customer Mobile No.": SemanticField.PHONE,
            "WhatsApp": SemanticField.PHONE,
            "Full Name": SemanticField.NAME,
            "Nama": SemanticField.NAME,
            "E-mail": SemanticField.EMAIL,
            "Alamat": SemanticField.ADDRESS,
            "DOB": SemanticField.DATE,
            "District": SemanticField.CITY,
            "Province": SemanticField.STATE,
            "Zip Code": SemanticField.PINCODE,
        }
        for header, expected in cases.items():
            with self.subTest(header=header):
                self.assertIs(classify_header(header)[0], expected)

    def test_first_field_in_table_order_wins(self) -> None:
        # "contact" is a Phone alias and Phone is checked before Name
        self.assertEqual(classify_header("Contact Name"), (SemanticField.PHONE, "phone"))

    def test_unmatched_header_is_other(self) -> None:
        self.assertEqual(classify_header("Notes"), (SemanticField.OTHER, "notes"))
        self.assertEqual(classify_header(" Lead  Source "), (SemanticField.OTHER, "lead_source"))
        self.assertEqual(canonical_name(SemanticField.OTHER, " Lead Source "), "Lead Source")
        self.assertEqual(canonical_name(SemanticField.PHONE, "Mobile No"), "Phone")

    def test_normalize_key(self) -> None:
        self.assertEqual(normalize_key("  Mobile   No "), "mobile_no")

    def test_value_types(self) -> None:
        self.assertEqual(detect_value_type(["1", "2", "3,400"]), "number")
        self.assertEqual(detect_value_type(["₹100", "$5", "Rs. 20"]), "currency")
        self.assertEqual(detect_value_type(["01/02/2023", "2023-01-02"]), "date")
        self.assertEqual(detect_value_type(["true", "FALSE"]), "boolean")
        self.assertEqual(detect_value_type(["Asha", "Ravi", ""]), "text")
        self.assertEqual(detect_value_type(["a", "1", "b", "2"]), "mixed")
        self.assertEqual(detect_value_type(["", None]), "empty")
        self.assertEqual(detect_value_type([]), "empty")


class TestReconciler(unittest.TestCase):
    def test_groups_by_field_and_orders_by_coverage(self) -> None:
        columns = reconcile_columns(
            [
                ["Email", "Name", "Phone"],
                ["Full Name", "Mobile", "City"],
                ["Customer Name", "Contact Number"],
            ],
            ["a.csv", "b.csv", "c.csv"],
        )
        self.assertEqual([c.canonical_name for c in columns], ["Name", "Phone", "Email", "City"])
        self.assertEqual([c.file_count for c in columns], [3, 3, 1, 1])

        phone = columns[1]
        self.assertIs(phone.semantic_field, SemanticField.PHONE)
        self.assertEqual(
            [o.original_name for o in phone.occurrences],
            ["Phone", "Mobile", "Contact Number"],
        )
        self.assertEqual(phone.occurrence_for(1).file_name, "b.csv")

    def test_same_field_twice_in_one_file(self) -> None:
        columns = reconcile_columns([["Phone", "Mobile"], ["Phone"]])
        phone = columns[0]
        self.assertEqual(phone.file_count, 2)
        self.assertEqual(phone.occurrence_for(0).original_name, "Mobile")
        self.assertIsNone(phone.occurrence_for(5))

    def test_other_columns_keep_their_header(self) -> None:
        columns = reconcile_columns([["Lead Source"], ["lead source"]])
        self.assertEqual(len(columns), 1)
        self.assertEqual(columns[0].canonical_name, "Lead Source")
        self.assertIs(columns[0].semantic_field, SemanticField.OTHER)

    def test_coverage_threshold(self) -> None:
        self.assertEqual(coverage_threshold(2), 2)
        self.assertEqual(coverage_threshold(3), 2)
        self.assertEqual(coverage_threshold(5), 3)

    def test_phone_is_always_selected(self) -> None:
        columns = reconcile_columns([
            ["Name", "Phone"],
            ["Name"],
            ["Name", "City"],
            ["Name", "City"],
            ["Name", "City"],
        ])
        self.assertEqual(auto_select_columns(columns, 5), ["name", "city", "phone"])
        self.assertEqual(select_common_columns(columns, 5), ["name", "city"])
        self.assertEqual(select_all_columns(columns), ["name", "city", "phone"])


if __name__ == "__main__":
    unittest.main()
