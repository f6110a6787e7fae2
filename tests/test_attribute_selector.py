import unittest

from catalog.attribute_selector import AttributeSelector

DEFAULTS = ["Brand", "Model"]


class AttributeSelectorTests(unittest.TestCase):
    def assert_defaults_first(self, selector: AttributeSelector) -> None:
        self.assertEqual(selector.items[: len(DEFAULTS)], DEFAULTS)

    def test_defaults_are_pinned_even_when_given_out_of_order(self) -> None:
        selector = AttributeSelector(DEFAULTS, ["RAM", "model", "Processor"])
        self.assertEqual(selector.items, ["Brand", "Model", "RAM", "Processor"])

    def test_add_appends_after_defaults_in_insertion_order(self) -> None:
        selector = AttributeSelector(DEFAULTS)
        self.assertTrue(selector.add("RAM")[0])
        self.assertTrue(selector.add(" Storage ")[0])
        self.assertEqual(selector.items, ["Brand", "Model", "RAM", "Storage"])

    def test_adding_a_default_is_rejected(self) -> None:
        selector = AttributeSelector(DEFAULTS, ["RAM"])
        ok, msg = selector.add("BRAND")
        self.assertFalse(ok)
        self.assertIn("BRAND", msg)
        self.assertEqual(selector.items, ["Brand", "Model", "RAM"])

    def test_duplicates_and_blank_values_are_rejected(self) -> None:
        selector = AttributeSelector(DEFAULTS, ["RAM"])
        self.assertFalse(selector.add("RAM")[0])
        self.assertFalse(selector.add("   ")[0])
        self.assertEqual(selector.items, ["Brand", "Model", "RAM"])

    def test_duplicates_allowed_when_configured(self) -> None:
        selector = AttributeSelector(DEFAULTS, ["RAM"], allow_duplicates=True)
        self.assertTrue(selector.add("RAM")[0])
        self.assertEqual(selector.items, ["Brand", "Model", "RAM", "RAM"])

    def test_capacity_limit(self) -> None:
        selector = AttributeSelector(DEFAULTS, ["RAM"], max_items=3)
        ok, _ = selector.add("Storage")
        self.assertFalse(ok)
        self.assertEqual(len(selector.items), 3)

    def test_removing_a_default_is_rejected(self) -> None:
        selector = AttributeSelector(DEFAULTS, ["RAM"])
        ok, msg = selector.remove(1)
        self.assertFalse(ok)
        self.assertIn("Model", msg)
        self.assertEqual(selector.items, ["Brand", "Model", "RAM"])

    def test_remove_out_of_range_is_rejected(self) -> None:
        selector = AttributeSelector(DEFAULTS)
        self.assertFalse(selector.remove(5)[0])
        self.assertFalse(selector.remove(-1)[0])

    def test_remove_last_stops_at_defaults(self) -> None:
        selector = AttributeSelector(DEFAULTS, ["RAM"])
        self.assertTrue(selector.remove_last()[0])
        self.assertFalse(selector.remove_last()[0])
        self.assertEqual(selector.items, DEFAULTS)

    def test_defaults_stay_first_across_mutations(self) -> None:
        selector = AttributeSelector(DEFAULTS)
        for value in ["RAM", "brand", "Storage", "Camera"]:
            selector.add(value)
            self.assert_defaults_first(selector)
        for index in [0, 3, 1, 2]:
            selector.remove(index)
            self.assert_defaults_first(selector)
        self.assertEqual(selector.items, ["Brand", "Model", "Camera"])


if __name__ == "__main__":
    unittest.main()
