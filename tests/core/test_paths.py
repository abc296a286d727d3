import copy

from ufcdata.core.paths import MISSING, get_nested_value, has_value, set_nested_value


def test_reads_nested_dict_and_list_segments() -> None:
    record = {"fighter": {"name": "Jon", "fights": [{"result": "W"}, {"result": "L"}]}}

    assert get_nested_value(record, "fighter.name") == "Jon"
    assert get_nested_value(record, "fighter.fights.1.result") == "L"


def test_missing_intermediate_yields_missing_not_error() -> None:
    record = {"fighter": {"name": "Jon"}, "reach": 84}

    assert get_nested_value(record, "fighter.stats.height") is MISSING
    assert get_nested_value(record, "reach.cm") is MISSING
    assert get_nested_value(record, "fighter.name.0") is MISSING
    assert get_nested_value([1, 2], "5") is MISSING
    assert get_nested_value([1, 2], "x") is MISSING


def test_missing_is_distinct_from_null() -> None:
    record = {"nickname": None}

    assert get_nested_value(record, "nickname") is None
    assert has_value(get_nested_value(record, "nickname"))
    assert not has_value(get_nested_value(record, "alias"))
    assert not MISSING


def test_set_creates_intermediate_dicts() -> None:
    target: dict = {}

    set_nested_value(target, "stats.striking.accuracy", 0.57)
    set_nested_value(target, "name", "Jon")

    assert target == {"stats": {"striking": {"accuracy": 0.57}}, "name": "Jon"}


def test_set_replaces_scalar_intermediate() -> None:
    target = {"stats": 3}

    set_nested_value(target, "stats.wins", 27)

    assert target == {"stats": {"wins": 27}}


def test_missing_survives_copies() -> None:
    assert copy.copy(MISSING) is MISSING
    assert copy.deepcopy({"value": MISSING})["value"] is MISSING
