import pytest

from ingredient_scan.errors import (
    Internal,
    InvalidArgument,
    InvalidResponse,
    Unauthenticated,
    ValidationError,
)
from ingredient_scan.pipeline import AnalysisEngine, analyze_ingredients
from ingredient_scan.pipeline.analysis import build_analysis_prompt

from .conftest import FakeModel


def test_prompt_embeds_joined_ingredients():
    prompt = build_analysis_prompt(["Oats", "Honey", "Salt"])
    assert "Based on the following ingredients: Oats, Honey, Salt." in prompt
    assert '"score": 7' in prompt


def test_analyze_parses_json_wrapped_in_prose():
    model = FakeModel('Sure! {"score":7,"explanation":"ok","pros":["a"],"cons":["b"]} Hope that helps!')
    result = AnalysisEngine(model).analyze(["Water", "Sugar"])

    assert result.model_dump() == {"score": 7, "explanation": "ok", "pros": ["a"], "cons": ["b"]}
    prompt, image = model.calls[0]
    assert "Water, Sugar" in prompt
    assert image is None


def test_analyze_without_json_object_is_invalid_response():
    engine = AnalysisEngine(FakeModel("I cannot help with that."))
    with pytest.raises(InvalidResponse):
        engine.analyze(["Water"])


def test_analyze_with_unparsable_object_is_invalid_response():
    engine = AnalysisEngine(FakeModel("{score: seven, explanation: 'x'}"))
    with pytest.raises(InvalidResponse):
        engine.analyze(["Water"])


@pytest.mark.parametrize(
    "payload",
    [
        '{"score":"high","explanation":"x","pros":[],"cons":[]}',
        '{"score":true,"explanation":"x","pros":[],"cons":[]}',
        '{"score":5,"explanation":3,"pros":[],"cons":[]}',
        '{"score":5,"explanation":"x","pros":"none","cons":[]}',
        '{"score":5,"explanation":"x","pros":[]}',
    ],
)
def test_analyze_wrong_shape_is_validation_error(payload):
    engine = AnalysisEngine(FakeModel(payload))
    with pytest.raises(ValidationError):
        engine.analyze(["Water"])


def test_analyze_returns_result_unchanged_without_clamping():
    model = FakeModel('{"score": 12.5, "explanation": "x", "pros": ["a", "b", "c", "d"], "cons": []}')
    result = AnalysisEngine(model).analyze(["Water"])

    assert result.score == 12.5
    assert result.pros == ["a", "b", "c", "d"]


def test_analyze_rejects_empty_ingredient_list():
    model = FakeModel()
    with pytest.raises(InvalidArgument):
        AnalysisEngine(model).analyze([])
    assert model.calls == []


def test_analyze_ingredients_requires_caller():
    with pytest.raises(Unauthenticated):
        analyze_ingredients(AnalysisEngine(FakeModel()), None, ["Water"])


@pytest.mark.parametrize("ingredients", [None, [], "Water, Sugar", {"a": 1}, ["Water", 3]])
def test_analyze_ingredients_rejects_malformed_input(ingredients):
    model = FakeModel()
    with pytest.raises(InvalidArgument):
        analyze_ingredients(AnalysisEngine(model), "user-1", ingredients)
    assert model.calls == []


def test_analyze_ingredients_wraps_unexpected_failures():
    engine = AnalysisEngine(FakeModel(TimeoutError("model timed out")))
    with pytest.raises(Internal) as exc_info:
        analyze_ingredients(engine, "user-1", ["Water"])
    assert exc_info.value.message == "Failed to analyze ingredients"
    assert "timed out" in exc_info.value.details


def test_analyze_ingredients_passes_typed_errors_through():
    engine = AnalysisEngine(FakeModel("no json"))
    with pytest.raises(InvalidResponse):
        analyze_ingredients(engine, "user-1", ["Water"])


@pytest.mark.parametrize("score", ["NaN", "Infinity", "-Infinity"])
def test_analyze_non_json_number_constants_are_invalid_response(score):
    engine = AnalysisEngine(FakeModel('{"score": %s, "explanation": "x", "pros": [], "cons": []}' % score))
    with pytest.raises(InvalidResponse):
        engine.analyze(["Water"])


def test_analyze_overflowing_score_is_validation_error():
    # 1e400 decodes to float("inf")
    engine = AnalysisEngine(FakeModel('{"score": 1e400, "explanation": "x", "pros": [], "cons": []}'))
    with pytest.raises(ValidationError):
        engine.analyze(["Water"])
