import unittest

from factrule.condition import (
    AllOf,
    Always,
    AnyOf,
    ConditionEvaluator,
    Equals,
    Exists,
    ExprCondition,
    GreaterOrEqual,
    GreaterThan,
    IsFalse,
    IsTrue,
    LessOrEqual,
    LessThan,
    Not,
    NotEquals,
    NotExists,
    as_condition,
    condition_from_dict,
)
from factrule.errors import ExpressionSyntaxError, TypeMismatchError, UnknownFactError
from factrule.layered import LayeredFactDatabase


class TestConditions(unittest.TestCase):
    def setUp(self) -> None:
        self.db = LayeredFactDatabase({"hp": 30, "name": "hero", "door_open": False})
        self.evaluator = ConditionEvaluator()

    def test_key_comparisons(self) -> None:
        self.assertTrue(Equals("name", "hero").check(self.db))
        self.assertTrue(NotEquals("hp", 31).check(self.db))
        self.assertTrue(GreaterThan("hp", 10).check(self.db))
        self.assertFalse(LessThan("hp", 30).check(self.db))
        self.assertTrue(GreaterOrEqual("hp", 30).check(self.db))
        self.assertTrue(LessOrEqual("hp", 30.5).check(self.db))

    def test_missing_fact_never_matches_a_comparison(self) -> None:
        self.assertFalse(Equals("mana", 0).check(self.db))
        self.assertFalse(NotEquals("mana", 0).check(self.db))

    def test_comparison_type_mismatch_raises(self) -> None:
        with self.assertRaises(TypeMismatchError):
            GreaterThan("name", 3).check(self.db)

    def test_existence_and_flags(self) -> None:
        self.assertTrue(Exists("hp").check(self.db))
        self.assertTrue(NotExists("mana").check(self.db))
        self.assertTrue(IsFalse("door_open").check(self.db))
        self.assertFalse(IsTrue("door_open").check(self.db))
        self.assertFalse(IsTrue("missing").check(self.db))
        with self.assertRaises(TypeMismatchError):
            IsTrue("hp").check(self.db)

    def test_logic_gates(self) -> None:
        cond = AllOf((Exists("hp"), AnyOf((Equals("name", "villain"), Not(IsTrue("door_open"))))))
        self.assertTrue(cond.check(self.db))
        self.assertTrue(AllOf().check(self.db))
        self.assertFalse(AnyOf().check(self.db))

    def test_expression_condition(self) -> None:
        self.assertTrue(self.evaluator.evaluate("hp > 0 and name == 'hero'", self.db))
        self.assertTrue(self.evaluator.evaluate(None, self.db))
        self.assertTrue(self.evaluator.evaluate(["hp > 0", "not door_open"], self.db))
        with self.assertRaises(UnknownFactError):
            self.evaluator.evaluate("mana > 0", self.db)

    def test_as_condition(self) -> None:
        self.assertEqual(as_condition(None), Always())
        cond = as_condition("hp > 0")
        self.assertIsInstance(cond, ExprCondition)
        self.assertEqual(cond.source, "hp > 0")
        self.assertIsInstance(as_condition(["a", "b"]), AllOf)
        self.assertIsInstance(as_condition(["a"]), ExprCondition)
        with self.assertRaises(ExpressionSyntaxError):
            as_condition("hp >")

    def test_dict_roundtrip(self) -> None:
        cond = AllOf((Equals("hp", 30), Not(Exists("mana")), as_condition("hp < 100")))
        rebuilt = condition_from_dict(cond.to_dict())
        self.assertEqual(rebuilt, cond)
        self.assertTrue(rebuilt.check(self.db))


if __name__ == "__main__":
    unittest.main()
