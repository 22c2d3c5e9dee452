from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from factrule import (
    CollectingSink,
    DivisionByZeroError,
    EngineConfig,
    FactDatabase,
    LayeredFactDatabase,
    RuleEngine,
    RuleSet,
    evaluate,
    parse_expression,
)
from factrule.values import Bool, Float, Int, IntList, String, StringList


@pytest.mark.parametrize(
    "value",
    [Int(-3), Float(2.5), Bool(False), String(""), IntList([1, 2]), StringList(["a"])],
)
def test_set_then_get_returns_the_value(value) -> None:
    db = FactDatabase()
    db.set("k", value)
    assert db.get("k") == value


def test_set_if_changed_only_writes_real_changes() -> None:
    db = FactDatabase({"k": 3})
    assert db.set_if_changed("k", Int(3)) is False
    assert db.get("k") == Int(3)
    assert db.set_if_changed("k", Int(4)) is True
    assert db.get("k") == Int(4)


def test_layered_read_through_and_clear_local() -> None:
    db = LayeredFactDatabase()
    db.set_global("x", 1)
    assert db.get("x") == Int(1)
    db.set("x", 2)
    assert db.get("x") == Int(2)
    db.clear_local()
    assert db.get("x") == Int(1)


def test_expression_examples() -> None:
    assert evaluate(parse_expression("2 + 3 * 4"), {}.get) == Int(14)
    with pytest.raises(DivisionByZeroError):
        evaluate(parse_expression("10 / 0"), {}.get)
    assert evaluate(parse_expression("-(5)"), {}.get) == Int(-5)
    assert evaluate(parse_expression("(1 < 2) and (3 > 4)"), {}.get) == Bool(False)


def test_consume_event_applies_only_the_first_rule() -> None:
    rule_set = RuleSet.from_dict(
        {
            "facts": {"first": 0, "second": 0},
            "rules": [
                {
                    "id": "first",
                    "event": "hit",
                    "consume_event": True,
                    "modifications": [{"op": "increment", "key": "first"}],
                    "outputs": ["after_first"],
                },
                {
                    "id": "second",
                    "event": "hit",
                    "modifications": [{"op": "increment", "key": "second"}],
                    "outputs": ["after_second"],
                },
                {"id": "tail", "event": "after_second", "modifications": [{"op": "set", "key": "tail", "value": True}]},
            ],
        }
    )
    engine = RuleEngine.from_rule_set(rule_set, sink=CollectingSink())
    engine.emit("hit")
    engine.tick()
    assert engine.db.get_int("first") == 1
    assert engine.db.get_int("second") == 0
    assert engine.db.get("tail") is None


def test_self_triggering_rule_terminates_and_reports_once() -> None:
    sink = CollectingSink()
    engine = RuleEngine(config=EngineConfig(max_cascade_depth=5), sink=sink)
    engine.load(
        RuleSet.from_dict(
            {
                "facts": {"n": 0},
                "rules": [
                    {"id": "echo", "event": "echo", "modifications": [{"op": "increment", "key": "n"}], "outputs": ["echo"]}
                ],
            }
        )
    )
    engine.emit("echo")
    report = engine.tick()
    assert report.cascade_exceeded
    assert engine.db.get_int("n") == 6
    assert sink.kinds() == ["cascade_depth_exceeded"]
    engine.tick()
    engine.tick()
    assert engine.db.get_int("n") == 6
    assert sink.kinds() == ["cascade_depth_exceeded"]


SCENARIO = {
    "facts": {"player_health": 100},
    "rules": [
        {
            "id": "damage",
            "event": "hit",
            "condition": "player_health > 0",
            "modifications": [{"op": "decrement", "key": "player_health", "amount": 10}],
            "outputs": ["health_changed"],
        },
        {
            "id": "gameover",
            "event": "health_changed",
            "condition": "player_health <= 0",
            "actions": ["GameOver"],
        },
    ],
}


def test_player_health_scenario_fires_game_over_once() -> None:
    fired: list[tuple[int, str, int]] = []
    engine = RuleEngine.from_rule_set(RuleSet.from_dict(SCENARIO), sink=CollectingSink())
    tick = 0

    def game_over(action_id, rule_id, facts) -> None:
        fired.append((tick, rule_id, facts["player_health"].value))

    engine.register_action("GameOver", game_over)
    for tick in range(1, 11):
        engine.emit("hit")
        engine.tick()
        if tick < 10:
            assert fired == []

    assert engine.db.get_int("player_health") == 0
    assert fired == [(10, "gameover", 0)]

    engine.emit("hit")
    engine.tick()
    assert engine.db.get_int("player_health") == 0
    assert len(fired) == 1


def test_scenario_from_json_file(tmp_path) -> None:
    path = tmp_path / "scenario.json"
    path.write_text(json.dumps(SCENARIO), encoding="utf-8")
    engine = RuleEngine.from_rule_set(RuleSet.from_json_file(path), sink=CollectingSink())
    for _ in range(3):
        engine.emit("hit")
    engine.tick()
    assert engine.db.get_int("player_health") == 70
