import json
import tempfile
import unittest
from pathlib import Path

from factrule.condition import AllOf, AnyOf, Equals, ExprCondition, Not
from factrule.errors import RuleLoadError
from factrule.loader import RuleSet, load_rule_set
from factrule.modifications import Decrement, Set, SetIfChanged, Toggle
from factrule.values import Int, IntList, String


DOCUMENT = {
    "facts": {
        "player_health": 100,
        "inventory": {"kind": "string_list", "value": []},
        "levels": [1, 2],
    },
    "rules": [
        {
            "id": "damage",
            "event": "hit",
            "condition": "player_health > 0",
            "modifications": [
                {"op": "decrement", "key": "player_health", "amount": "event.amount"},
                {"op": "set_if_changed", "key": "status", "value": "hurt", "outputs_on_change": ["status_changed"]},
            ],
            "outputs": ["health_changed"],
        },
        {
            "event": {"action": "Confirm", "kind": "just_pressed"},
            "condition": {
                "kind": "all",
                "conditions": [
                    {"kind": "equals", "key": "menu", "value": "main"},
                    {"kind": "any", "conditions": ["selection == 0", {"kind": "not", "condition": {"kind": "is_true", "key": "locked"}}]},
                ],
            },
            "modifications": [
                {"op": "set", "key": "menu", "expr": "'options'", "layer": "global"},
                {"op": "toggle", "key": "locked"},
            ],
            "actions": ["PlaySound"],
            "consume_event": True,
            "priority": 2,
        },
    ],
}


class TestLoader(unittest.TestCase):
    def test_facts(self) -> None:
        rule_set = load_rule_set(DOCUMENT)
        self.assertEqual(rule_set.facts["player_health"], Int(100))
        self.assertEqual(rule_set.facts["inventory"].kind, "string_list")
        self.assertEqual(rule_set.facts["levels"], IntList([1, 2]))

    def test_rules(self) -> None:
        damage, confirm = load_rule_set(DOCUMENT).rules
        self.assertEqual(damage.id, "damage")
        self.assertIsInstance(damage.condition, ExprCondition)
        self.assertIsInstance(damage.modifications[0], Decrement)
        self.assertIsInstance(damage.modifications[1], SetIfChanged)
        self.assertEqual(damage.modifications[1].outputs_on_change, ("status_changed",))
        self.assertEqual(damage.outputs, ("health_changed",))
        self.assertFalse(damage.consume_event)

        self.assertEqual(confirm.id, "rule_action_Confirm_just_pressed_001")
        self.assertEqual(confirm.event, "action:Confirm:just_pressed")
        self.assertIsInstance(confirm.condition, AllOf)
        first, second = confirm.condition.conditions
        self.assertEqual(first, Equals("menu", String("main")))
        self.assertIsInstance(second, AnyOf)
        self.assertIsInstance(second.conditions[1], Not)
        self.assertIsInstance(confirm.modifications[0], Set)
        self.assertEqual(confirm.modifications[0].layer, "global")
        self.assertIsInstance(confirm.modifications[1], Toggle)
        self.assertEqual(confirm.actions, ("PlaySound",))
        self.assertTrue(confirm.consume_event)
        self.assertEqual(confirm.priority, 2)

    def test_condition_list_means_all(self) -> None:
        rule_set = load_rule_set({"rules": [{"event": "e", "condition": ["a", "b"]}]})
        self.assertIsInstance(rule_set.rules[0].condition, AllOf)
        self.assertEqual(rule_set.rules[0].id, "rule_e_000")

    def test_malformed_expression_fails_the_load(self) -> None:
        document = {"rules": [{"id": "ok", "event": "e"}, {"id": "bad", "event": "e", "condition": "hp >"}]}
        with self.assertRaises(RuleLoadError) as ctx:
            load_rule_set(document)
        self.assertIn("bad", str(ctx.exception))

    def test_trigger_alias_and_conditions_list(self) -> None:
        rule_set = load_rule_set(
            {
                "rules": [
                    {
                        "trigger": {"action": "Up", "kind": "just_pressed"},
                        "conditions": ["$selection > 0"],
                        "condition": {"kind": "equals", "key": "menu", "value": "main"},
                    },
                    {"trigger": "tick", "conditions": ["depth == 0"]},
                ]
            }
        )
        up, tick = rule_set.rules
        self.assertEqual(up.id, "rule_action_Up_just_pressed_000")
        self.assertEqual(up.event, "action:Up:just_pressed")
        self.assertIsInstance(up.condition, AllOf)
        legacy, selection = up.condition.conditions
        self.assertEqual(legacy, Equals("menu", String("main")))
        self.assertIsInstance(selection, ExprCondition)
        self.assertEqual(tick.event, "tick")
        self.assertIsInstance(tick.condition, ExprCondition)
        self.assertTrue(tick.condition.check({"depth": Int(0)}.get))

    def test_schema_errors(self) -> None:
        bad_documents = [
            {"rules": [{"event": "e", "unknown": 1}]},
            {"rules": [{"event": "e", "modifications": [{"op": "explode", "key": "k"}]}]},
            {"rules": [{"event": "e", "modifications": [{"op": "set", "key": "k"}]}]},
            {"rules": [{"event": "e", "modifications": [{"op": "set", "key": "k", "value": 1, "expr": "2"}]}]},
            {"rules": [{"event": {"action": "Up", "kind": "held"}}]},
            {"facts": {"mixed": [1, "a"]}},
            {"rules": [{"event": "e", "modifications": [{"op": "add", "key": "k", "operand": "1 +"}]}]},
            [],
        ]
        for document in bad_documents:
            with self.subTest(document=document):
                with self.assertRaises(RuleLoadError):
                    load_rule_set(document)

    def test_json_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "rules.json"
            path.write_text(json.dumps(DOCUMENT), encoding="utf-8")
            rule_set = RuleSet.from_json_file(path)
            self.assertEqual(len(rule_set.rules), 2)
            with self.assertRaises(RuleLoadError):
                RuleSet.from_json_file(Path(tmp) / "missing.json")
            (Path(tmp) / "broken.json").write_text("{", encoding="utf-8")
            with self.assertRaises(RuleLoadError):
                RuleSet.from_json_file(Path(tmp) / "broken.json")

    def test_to_dict(self) -> None:
        data = load_rule_set(DOCUMENT).to_dict()
        self.assertEqual(data["facts"]["player_health"], {"kind": "int", "value": 100})
        self.assertEqual(data["rules"][0]["id"], "damage")


if __name__ == "__main__":
    unittest.main()
