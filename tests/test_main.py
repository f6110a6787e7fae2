import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from catalog.database import RowStore
from catalog.errors import StoreError
from constants import DEFAULT_ATTRIBUTES

import main


class ConsoleHandlerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.store = RowStore(str(Path(self.temp_dir.name) / "erp.db"))
        self.laptops = self.store.create_category("Laptops", ["Processor", "RAM"])
        self.console = main.Console(self.store)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_submit_from_tables(self) -> None:
        session = self.console.on_new(None)[0]

        session, message, items_html = self.console.on_submit(
            session, "XPS 13", "pieces", "", "800", "1200", "4", "1",
            "Compact", [["Processor", "i5"], ["RAM", ""]], [["Color", "Silver"], ["", ""]],
        )

        self.assertTrue(message.startswith("✅"), message)
        self.assertIn("XPS 13", items_html)
        item = self.store.get_item(session.item_id)
        self.assertEqual(
            json.loads(item.specifications),
            {"description": "Compact", "Processor": "i5", "Color": "Silver"},
        )

    def test_load_rejects_non_numeric_id(self) -> None:
        outputs = self.console.on_load(None, "abc")
        self.assertTrue(outputs[1].startswith("❌"))

    def test_attribute_add_keeps_defaults_first(self) -> None:
        text, pending, _ = self.console.on_attribute_add("RAM", "Storage")
        self.assertEqual(text.splitlines(), [*DEFAULT_ATTRIBUTES, "RAM", "Storage"])
        self.assertEqual(pending, "")

        text, pending, msg = self.console.on_attribute_add(text, DEFAULT_ATTRIBUTES[0])
        self.assertEqual(pending, DEFAULT_ATTRIBUTES[0])
        self.assertTrue(msg)

    def test_creating_a_category_keeps_unsubmitted_table_edits(self) -> None:
        self.store.create_category("GPU", ["Memory"])
        self.console.registry.invalidate()
        gpu = self.console.registry.find_by_name("GPU")
        session = self.console.on_new(None)[0]
        session, spec_rows, custom_rows = self.console.on_category_change(
            session, gpu.id, "", [], [["", ""]]
        )
        self.assertEqual(spec_rows, [["Memory", ""]])

        session, message, _, _, spec_rows, custom_rows = self.console.on_category_save(
            session, None, "Tablets", "Screen",
            "Spare card", [["Memory", "16GB"]], [["Color", "Black"]],
        )

        self.assertTrue(message.startswith("✅"), message)
        self.assertEqual(session.category_id, self.console.registry.find_by_name("Tablets").id)
        self.assertEqual(session.specification["description"], "Spare card")
        self.assertEqual(custom_rows, [["Color", "Black"], ["Memory", "16GB"]])
        self.assertEqual([row[0] for row in spec_rows], [*DEFAULT_ATTRIBUTES, "Screen"])

    def test_updating_a_category_keeps_unsubmitted_table_edits(self) -> None:
        session = self.console.on_new(None)[0]
        session, _, _ = self.console.on_category_change(
            session, self.laptops.id, "", [], [["", ""]]
        )

        session, message, _, _, spec_rows, _ = self.console.on_category_save(
            session, self.laptops.id, "Laptops", "Processor\nRAM",
            "", [["Processor", "i7"], ["RAM", "32GB"]], [["", ""]],
        )

        self.assertTrue(message.startswith("✅"), message)
        self.assertEqual(spec_rows, [["Processor", "i7"], ["RAM", "32GB"]])

    def test_category_fetch_failure_is_shown_in_messages(self) -> None:
        self.assertNotIn("类别加载失败", self.console.on_new(None)[1])

        self.console.registry.invalidate()
        with mock.patch.object(
            self.store, "fetch_categories", side_effect=StoreError("database is locked")
        ):
            outputs = self.console.on_new(None)
            delete_message, _ = self.console.on_category_delete(None)

        self.assertIn("类别加载失败：database is locked", outputs[1])
        self.assertIn("类别加载失败", delete_message)


if __name__ == "__main__":
    unittest.main()
