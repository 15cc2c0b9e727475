import pytest

from ingredient_scan.utils import extract_json, split_ingredients


def test_split_ingredients_keeps_order_and_duplicates():
    assert split_ingredients("Water, Sugar,  Salt ,Water") == ["Water", "Sugar", "Salt", "Water"]


def test_split_ingredients_drops_empty_fragments():
    assert split_ingredients(" , Flour,,  ,Yeast, ") == ["Flour", "Yeast"]
    assert split_ingredients("") == []


def test_extract_json_ignores_surrounding_prose():
    text = 'Sure! {"score":7,"explanation":"ok","pros":["a"],"cons":["b"]} Hope that helps!'
    assert extract_json(text) == {"score": 7, "explanation": "ok", "pros": ["a"], "cons": ["b"]}


def test_extract_json_reads_fenced_block():
    text = 'Here you go:\n```json\n{"score": 4, "nested": {"a": [1, 2]}}\n```\n'
    assert extract_json(text) == {"score": 4, "nested": {"a": [1, 2]}}


def test_extract_json_stops_at_matching_brace():
    text = '{"score": 5} and also {"score": 9}'
    assert extract_json(text) == {"score": 5}


@pytest.mark.parametrize("text", ["", "no json here", "}{", '{"score": 7,'])
def test_extract_json_rejects_missing_or_broken_object(text):
    with pytest.raises(ValueError):
        extract_json(text)


@pytest.mark.parametrize("constant", ["NaN", "Infinity", "-Infinity"])
def test_extract_json_rejects_non_standard_constants(constant):
    with pytest.raises(ValueError):
        extract_json('{"score": %s, "explanation": "x", "pros": [], "cons": []}' % constant)
