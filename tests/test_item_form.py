import json
import tempfile
import unittest
from pathlib import Path

from catalog.category_registry import CategoryRegistry
from catalog.database import RowStore
from catalog.item_form import ItemFormSession
from catalog.models import CustomField


class ItemFormSessionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.store = RowStore(str(Path(self.temp_dir.name) / "erp.db"))
        self.laptops = self.store.create_category("Laptops", ["Processor", "RAM"])
        self.accessories = self.store.create_category("Accessories", ["Color"])
        self.registry = CategoryRegistry(self.store)
        self.session = ItemFormSession(self.registry, self.store)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def fill_required(self, name: str = "ThinkPad X1") -> None:
        self.session.set_field("name", name)

    def test_new_item_selects_first_category_and_renders_its_attributes(self) -> None:
        self.session.new()
        self.assertEqual(self.session.category_id, self.accessories.id)
        self.assertEqual(self.session.specification, {"Color": ""})

    def test_switching_category_relocates_values(self) -> None:
        self.session.new()
        self.session.change_category(self.laptops.id)
        self.session.set_specification("Processor", "i7")
        self.session.set_specification("RAM", "16GB")
        self.session.add_custom_field("Color", "Black")

        self.session.change_category(self.accessories.id)

        self.assertEqual(self.session.specification, {"Color": "Black"})
        self.assertEqual(
            self.session.custom_fields,
            [CustomField("Processor", "i7"), CustomField("RAM", "16GB")],
        )

    def test_submit_persists_assembled_specifications(self) -> None:
        self.session.new()
        self.session.change_category(self.laptops.id)
        self.fill_required()
        self.session.set_field("sku", "TP-X1")
        self.session.set_specification("description", " Business laptop ")
        self.session.set_specification("Processor", "i7")
        self.session.add_custom_field("Weight", "1.1kg")
        self.session.add_custom_field("", "")

        ok, msg, item = self.session.submit()

        self.assertTrue(ok, msg)
        self.assertEqual(item.category, "Laptops")
        self.assertEqual(item.category_id, self.laptops.id)
        self.assertEqual(item.description, "Business laptop")
        self.assertEqual(
            json.loads(item.specifications),
            {"description": "Business laptop", "Processor": "i7", "Weight": "1.1kg"},
        )
        self.assertTrue(self.session.is_edit_mode)

    def test_load_splits_custom_fields_and_maps_legacy_category_name(self) -> None:
        legacy_spec = json.dumps(
            {"features": [json.dumps({"description": "dropped", "RAM": "8GB", "Dock": "USB-C"})]}
        )
        item = self.store.create_item(
            {"name": "Old Laptop", "category": "Laptops", "description": "Refurbished",
             "specifications": legacy_spec}
        )

        ok, _ = self.session.load(item.id)

        self.assertTrue(ok)
        self.assertEqual(self.session.category_id, self.laptops.id)
        self.assertEqual(self.session.specification, {"RAM": "8GB", "description": "Refurbished"})
        self.assertEqual(self.session.custom_fields, [CustomField("Dock", "USB-C")])

    def test_load_of_corrupt_specifications_shows_no_specifications(self) -> None:
        item = self.store.create_item({"name": "Broken", "specifications": "{oops"})
        ok, _ = self.session.load(item.id)
        self.assertTrue(ok)
        self.assertEqual(self.session.specification, {})
        self.assertEqual(self.session.custom_fields, [])

    def test_load_missing_item(self) -> None:
        ok, _ = self.session.load(404)
        self.assertFalse(ok)

    def test_validation_failures_do_not_reach_the_store(self) -> None:
        self.session.new()
        ok, _, item = self.session.submit()
        self.assertFalse(ok)
        self.assertIsNone(item)

        self.fill_required()
        for field, value in [
            ("purchase_cost", "-1"),
            ("selling_price", "abc"),
            ("current_stock", "nan"),
            ("reorder_level", "-3"),
        ]:
            self.session.set_field(field, value)
            ok, _, _ = self.session.submit()
            self.assertFalse(ok, field)
            self.session.set_field(field, "0")

        self.assertEqual(self.store.list_items(), [])

    def test_duplicate_sku_reports_specific_message_and_keeps_state(self) -> None:
        self.store.create_item({"name": "Existing", "sku": "SKU-1"})
        self.session.new()
        self.fill_required("Another")
        self.session.set_field("sku", "SKU-1")
        self.session.add_custom_field("Material", "Aluminium")

        ok, msg, item = self.session.submit()

        self.assertFalse(ok)
        self.assertIsNone(item)
        self.assertIn("SKU", msg)
        self.assertFalse(self.session.is_edit_mode)
        self.assertEqual(self.session.custom_fields, [CustomField("Material", "Aluminium")])

    def test_duplicate_name_reports_specific_message(self) -> None:
        self.store.create_item({"name": "Existing"})
        self.session.new()
        self.fill_required("Existing")
        ok, msg, _ = self.session.submit()
        self.assertFalse(ok)
        self.assertIn("名称", msg)

    def test_category_created_callback_selects_new_category(self) -> None:
        self.session.new()
        self.session.set_specification("Color", "Red")

        gpu = self.store.create_category("GPU", ["Memory", "Color"])
        self.session.category_created(gpu.id, gpu.name)

        self.assertEqual(self.session.category_id, gpu.id)
        self.assertEqual(self.session.specification, {"Color": "Red", "Memory": ""})

    def test_update_custom_field_and_remove(self) -> None:
        self.session.add_custom_field()
        self.session.update_custom_field(0, "key", "Finish")
        self.session.update_custom_field(0, "value", "Matte")
        self.assertEqual(self.session.custom_fields, [CustomField("Finish", "Matte")])

        with self.assertRaises(ValueError):
            self.session.update_custom_field(0, "label", "x")
        with self.assertRaises(IndexError):
            self.session.update_custom_field(3, "key", "x")

        self.session.remove_custom_field(0)
        self.assertEqual(self.session.custom_fields, [])

    def test_unknown_form_field_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            self.session.set_field("specifications", "{}")


if __name__ == "__main__":
    unittest.main()
