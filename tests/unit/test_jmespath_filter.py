from __future__ import annotations

import pytest

from fmshape.errors import JMESPathCompilationFailed, JMESPathExecutionFailed
from fmshape.transform.jmespath_filter import JMESPathEvaluator

DATA = {
    "commands": [
        {"c1": "git", "stable": True},
        {"c1": "npm", "stable": False},
        {"c1": "deno", "stable": True},
    ]
}


@pytest.fixture()
def evaluator() -> JMESPathEvaluator:
    return JMESPathEvaluator()


def test_filter_projection(evaluator: JMESPathEvaluator) -> None:
    assert evaluator.search("commands[?stable].c1", DATA) == ["git", "deno"]


def test_compiled_expression_is_reusable(evaluator: JMESPathEvaluator) -> None:
    compiled = evaluator.compile("length(commands)")
    assert evaluator.evaluate(compiled, DATA) == 3
    assert evaluator.evaluate(compiled, {"commands": []}) == 0


def test_missing_path_is_none(evaluator: JMESPathEvaluator) -> None:
    assert evaluator.search("nothing.here", DATA) is None


@pytest.mark.parametrize("expression", ["", "   ", "commands[?", "foo.[bar"])
def test_compile_errors(evaluator: JMESPathEvaluator, expression: str) -> None:
    with pytest.raises(JMESPathCompilationFailed) as excinfo:
        evaluator.compile(expression)
    assert excinfo.value.to_payload()["expression"] == expression


def test_runtime_type_error(evaluator: JMESPathEvaluator) -> None:
    with pytest.raises(JMESPathExecutionFailed) as excinfo:
        evaluator.search("sum(commands[].c1)", DATA)
    assert excinfo.value.expression == "sum(commands[].c1)"
