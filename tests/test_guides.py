#!/usr/bin/env python3
"""
測試指南載入與 GuideStore
"""
import os
import shutil
import tempfile
import unittest

from core.guides import SAMPLE_GUIDE_NUMBERS, build_batch, load_guides_from_file, load_guides_from_rows
from core.models import STATUS_ARRIVED, STATUS_PENDING, ExtractedGuideData, Guide
from core.storage import GuideStore


class TestGuideNumberParsing(unittest.TestCase):
    def test_prefix_and_suffix(self):
        """測試前綴與號碼拆分"""
        guide = Guide.from_number("045-12195385")
        self.assertEqual(guide.guide_number, "045-12195385")
        self.assertEqual(guide.prefix, "045")
        self.assertEqual(guide.suffix, "12195385")
        self.assertEqual(guide.status, STATUS_PENDING)
        self.assertIsNone(guide.arrived_at)
        self.assertEqual(guide.tracking_history, ())

    def test_every_hyphen_removed_from_suffix(self):
        guide = Guide.from_number("071-5719-7840")
        self.assertEqual(guide.suffix, "57197840")

    def test_number_without_hyphen(self):
        guide = Guide.from_number("23512345678")
        self.assertEqual(guide.prefix, "235")
        self.assertEqual(guide.suffix, "12345678")

    def test_surrounding_whitespace_trimmed(self):
        guide = Guide.from_number("  456-98765432 ")
        self.assertEqual(guide.guide_number, "456-98765432")

    def test_blank_number_rejected(self):
        with self.assertRaises(ValueError):
            Guide.from_number("   ")

    def test_invalid_status_rejected(self):
        with self.assertRaises(ValueError):
            Guide("045-1", "045", "1", status="lost")


class TestBuildBatch(unittest.TestCase):
    def test_blank_rows_discarded(self):
        """空白列應被捨棄"""
        guides = build_batch(["045-12195385", "", "   ", None, "071-57197840"])
        self.assertEqual([g.guide_number for g in guides], ["045-12195385", "071-57197840"])

    def test_duplicates_keep_first(self):
        guides = build_batch(["045-12195385", "045-12195385 ", "071-57197840"])
        self.assertEqual(len(guides), 2)

    def test_numeric_values_accepted(self):
        guides = build_batch([23512345678])
        self.assertEqual(guides[0].prefix, "235")

    def test_sample_batch(self):
        guides = build_batch(SAMPLE_GUIDE_NUMBERS)
        self.assertEqual(len(guides), 4)
        self.assertIn("045-12195385", [g.guide_number for g in guides])


class TestLoadGuides(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_rows_with_column_variants(self):
        """測試 GUIA / Guía / Guide 欄位"""
        rows = [
            {"GUIA": "045-12195385", "Descripción": "repuestos"},
            {"Guía": "071-57197840"},
            {"Guide": "235-12345678"},
            {"GUIA": "", "Descripción": "fila vacía"},
            {"Otro": "999-00000000"},
        ]
        guides = load_guides_from_rows(rows)
        self.assertEqual(
            [g.guide_number for g in guides],
            ["045-12195385", "071-57197840", "235-12345678"],
        )

    def test_csv_file(self):
        path = os.path.join(self.temp_dir, "guias.csv")
        with open(path, "w", encoding="utf-8") as f:
            f.write("GUIA,Descripción\n045-12195385,a\n,b\n071-57197840,c\n")
        guides = load_guides_from_file(path)
        self.assertEqual([g.suffix for g in guides], ["12195385", "57197840"])

    def test_text_file(self):
        path = os.path.join(self.temp_dir, "guias.txt")
        with open(path, "w", encoding="utf-8") as f:
            f.write("045-12195385\n\n071-57197840\n")
        guides = load_guides_from_file(path)
        self.assertEqual(len(guides), 2)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            load_guides_from_file(os.path.join(self.temp_dir, "missing.csv"))


class TestGuideStore(unittest.TestCase):
    def setUp(self):
        self.store = GuideStore(build_batch(SAMPLE_GUIDE_NUMBERS))

    def test_snapshot_keeps_load_order(self):
        self.assertEqual([g.guide_number for g in self.store.snapshot()], SAMPLE_GUIDE_NUMBERS)
        self.assertEqual(len(self.store), 4)

    def test_duplicate_batch_rejected(self):
        guide = Guide.from_number("045-12195385")
        with self.assertRaises(ValueError):
            GuideStore([guide, guide])

    def test_update_many(self):
        """測試更新既有指南，忽略批次外的指南"""
        guide = self.store.get("235-12345678")
        arrived = Guide(
            guide_number=guide.guide_number,
            prefix=guide.prefix,
            suffix=guide.suffix,
            status=STATUS_ARRIVED,
            extracted_data=ExtractedGuideData(operacion="Importación"),
        )
        outsider = Guide.from_number("999-00000000")

        updated = self.store.update_many([arrived, outsider])

        self.assertEqual(updated, 1)
        self.assertIsNone(self.store.get("999-00000000"))
        self.assertEqual(self.store.counts(), {"arrived": 1, "pending": 3})
        self.assertEqual([g.guide_number for g in self.store.arrived()], ["235-12345678"])
        self.assertEqual(len(self.store.pending()), 3)


if __name__ == "__main__":
    unittest.main()
