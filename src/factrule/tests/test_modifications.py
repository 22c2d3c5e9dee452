import unittest

from factrule.errors import DivisionByZeroError, TypeMismatchError, UnknownFactError
from factrule.expr import parse_expression
from factrule.layered import LayeredFactDatabase
from factrule.modifications import (
    Add,
    Decrement,
    Divide,
    Increment,
    Multiply,
    Remove,
    Set,
    SetIfChanged,
    Subtract,
    Toggle,
    modification_from_dict,
)
from factrule.values import Bool, Float, Int, String


class TestModifications(unittest.TestCase):
    def setUp(self) -> None:
        self.db = LayeredFactDatabase({"hp": 100, "speed": 1.5, "name": "hero"})

    def test_set_constant_and_expression(self) -> None:
        self.assertTrue(Set("hp", 50).apply(self.db))
        self.assertEqual(self.db.get("hp"), Int(50))
        self.assertTrue(Set("hp", parse_expression("hp * 2")).apply(self.db))
        self.assertEqual(self.db.get("hp"), Int(100))
        self.assertFalse(Set("hp", 100).apply(self.db))

    def test_set_rejects_variant_change_but_widens_int_to_float(self) -> None:
        with self.assertRaises(TypeMismatchError):
            Set("hp", "full").apply(self.db)
        Set("speed", 2).apply(self.db)
        self.assertEqual(self.db.get("speed"), Float(2.0))

    def test_set_targets_layer(self) -> None:
        Set("flag", True, layer="global").apply(self.db)
        self.assertEqual(self.db.global_view()["flag"], Bool(True))
        Set("seen", 1).apply(self.db, default_layer="global")
        self.assertTrue(self.db.contains_global("seen"))

    def test_set_if_changed_reports_change_and_outputs(self) -> None:
        mod = SetIfChanged("name", "hero", outputs_on_change=("name_changed",))
        changed = mod.apply(self.db)
        self.assertFalse(changed)
        self.assertEqual(mod.outputs(changed), ())
        mod = SetIfChanged("name", "villain", outputs_on_change=("name_changed",))
        changed = mod.apply(self.db)
        self.assertTrue(changed)
        self.assertEqual(mod.outputs(changed), ("name_changed",))
        self.assertEqual(self.db.get("name"), String("villain"))

    def test_set_if_changed_compares_against_visible_value(self) -> None:
        mod = SetIfChanged("hp", 100, outputs_on_change=("hp_changed",))
        self.assertFalse(mod.apply(self.db))
        self.assertFalse(self.db.contains_local("hp"))
        self.assertFalse(mod.apply(self.db, default_layer="global"))

    def test_increment_and_decrement(self) -> None:
        Increment("kills").apply(self.db)
        Increment("kills", 2).apply(self.db)
        self.assertEqual(self.db.get("kills"), Int(3))
        Decrement("hp", 10).apply(self.db)
        self.assertEqual(self.db.get("hp"), Int(90))
        Decrement("hp", "kills * 10").apply(self.db)
        self.assertEqual(self.db.get("hp"), Int(60))
        Increment("speed", 0.5).apply(self.db)
        self.assertEqual(self.db.get("speed"), Float(2.0))
        with self.assertRaises(TypeMismatchError):
            Increment("name").apply(self.db)

    def test_compound_ops(self) -> None:
        Add("hp", 5).apply(self.db)
        Subtract("hp", "hp / 5").apply(self.db)
        self.assertEqual(self.db.get("hp"), Int(84))
        Multiply("speed", 2).apply(self.db)
        self.assertEqual(self.db.get("speed"), Float(3.0))
        Divide("hp", 4).apply(self.db)
        self.assertEqual(self.db.get("hp"), Int(21))
        with self.assertRaises(DivisionByZeroError):
            Divide("hp", 0).apply(self.db)
        with self.assertRaises(UnknownFactError):
            Add("mana", 1).apply(self.db)

    def test_numeric_ops_keep_int_facts_int(self) -> None:
        with self.assertRaises(TypeMismatchError):
            Increment("hp", 0.5).apply(self.db)
        with self.assertRaises(TypeMismatchError):
            Add("hp", 1.5).apply(self.db)
        with self.assertRaises(TypeMismatchError):
            Decrement("hp", "speed").apply(self.db)
        self.assertEqual(self.db.get("hp"), Int(100))
        Add("speed", 1).apply(self.db)
        self.assertEqual(self.db.get("speed"), Float(2.5))
        Increment("ratio", 0.25).apply(self.db)
        self.assertEqual(self.db.get("ratio"), Float(0.25))

    def test_remove_and_toggle(self) -> None:
        self.db.set("flag", True)
        self.assertTrue(Remove("flag").apply(self.db))
        self.assertFalse(Remove("flag").apply(self.db))
        Toggle("lamp").apply(self.db)
        self.assertEqual(self.db.get("lamp"), Bool(True))
        Toggle("lamp").apply(self.db)
        self.assertEqual(self.db.get("lamp"), Bool(False))
        with self.assertRaises(TypeMismatchError):
            Toggle("hp").apply(self.db)

    def test_expressions_read_through_lookup(self) -> None:
        payload = {"event.damage": Int(7)}

        def lookup(key):
            return payload.get(key) or self.db.get(key)

        Decrement("hp", "event.damage").apply(self.db, lookup)
        self.assertEqual(self.db.get("hp"), Int(93))

    def test_dict_roundtrip(self) -> None:
        mods = [
            Set("a", 1),
            SetIfChanged("b", parse_expression("a + 1"), layer="global", outputs_on_change=("b",)),
            Increment("c", 2),
            Decrement("c", "a"),
            Multiply("d", 3),
            Remove("e"),
            Toggle("f", layer="local"),
        ]
        for mod in mods:
            with self.subTest(mod=mod):
                self.assertEqual(modification_from_dict(mod.to_dict()), mod)


if __name__ == "__main__":
    unittest.main()
