"""
Condition sandbox tests
=======================

Validation rejects anything outside the expression language; evaluation
follows JavaScript comparison semantics.
"""

import pytest

from services.execution.conditions import (
    UNDEFINED,
    BinaryOp,
    Literal,
    MethodCall,
    UnaryNot,
    VarRef,
    evaluate_condition,
    evaluate_condition_node,
    parse_condition,
    validate_condition,
)
from services.execution.errors import (
    ConditionEvalError,
    ConditionValidationError,
    UnknownNode,
)


# =============================================================================
# Validation: rejected expressions
# =============================================================================

class TestRejected:

    @pytest.mark.parametrize("expr", [
        "",
        "   ",
        "__v0 = 1",
        "__v0 += 1",
        "__v0++",
        "__v0 << 2",
        "__v0, __v1",
        "__v0; __v1",
        "eval('1')",
        "Function('return 1')",
        "import('fs')",
        "require('fs')",
        "new Date()",
        "process",
        "window.location",
        "__v0.constructor",
        "__v0.__proto__",
        "__v0.prototype",
        "while(true)",
        "`${__v0}`",
        "{ a: 1 }",
        "[1, 2, 3]",
        "x[0]",
        "__v0[__v1]",
        "__v0.items[2] === 1",
        "__v0.map(x)",
        "__v0.toLowerCase()).trim(",
        "(__v0 === 1",
        "foo === 1",
        "__v0.length()",
        "__v0.includes()",
        "__v0.trim(1)",
        "1.toString()",
        "'abc'.length",
        "__v0 === + 1",
    ])
    def test_rejected(self, expr):
        with pytest.raises(ConditionValidationError):
            validate_condition(expr)

    def test_forbidden_word_inside_string_is_data(self):
        """String literal contents are masked before the textual passes."""
        validate_condition("__v0 === 'process; eval(x) = 1'")

    def test_error_message_names_method(self):
        with pytest.raises(ConditionValidationError) as exc:
            validate_condition("__v0.replace('a', 'b')")
        assert "replace" in exc.value.message


# =============================================================================
# Validation: accepted expressions
# =============================================================================

class TestAccepted:

    @pytest.mark.parametrize("expr", [
        "__v0 === 'ok'",
        "__v0 !== null && __v1 > -1",
        "!(__v0 == undefined) || __v1 <= 2.5",
        "__v0.length > 0",
        "__v0[0] === 'a'",
        "__v0['key'] === \"value\"",
        "__v0.name.toLowerCase().startsWith('x')",
        "__v0[1][0] === 2",
        "__v0.includes(__v1)",
        "true",
    ])
    def test_accepted(self, expr):
        validate_condition(expr)

    def test_parse_tree_shape(self):
        tree = parse_condition("!__v0 && __v1.trim() === 'a' || false")
        assert isinstance(tree, BinaryOp) and tree.op == "||"
        left = tree.left
        assert left.op == "&&"
        assert left.left == UnaryNot(VarRef("__v0"))
        assert left.right == BinaryOp("===", MethodCall(VarRef("__v1"), "trim", ()), Literal("a"))
        assert tree.right == Literal(False)


# =============================================================================
# Evaluation
# =============================================================================

class TestEvaluate:

    @pytest.mark.parametrize("expr,bindings,expected", [
        ("__v0 === 'ok'", {"__v0": "ok"}, True),
        ("__v0 === 1", {"__v0": "1"}, False),
        ("__v0 == 1", {"__v0": "1"}, True),
        ("__v0 == true", {"__v0": 1}, True),
        ("__v0 == null", {"__v0": UNDEFINED}, True),
        ("__v0 === null", {"__v0": UNDEFINED}, False),
        ("__v0 == 0", {"__v0": ""}, True),
        ("__v0 > 5", {"__v0": "10"}, True),
        ("__v0 > 'b'", {"__v0": "a"}, False),
        ("__v0 < 5", {"__v0": "abc"}, False),
        ("__v0 >= 2", {"__v0": 2.0}, True),
        ("__v0.length === 2", {"__v0": [1, 2]}, True),
        ("__v0.length > 3", {"__v0": "hello"}, True),
        ("__v0.missing === undefined", {"__v0": {"a": 1}}, True),
        ("__v0['a'] === 1", {"__v0": {"a": 1}}, True),
        ("__v0[1] === 'y'", {"__v0": ["x", "y"]}, True),
        ("__v0[5] === undefined", {"__v0": ["x"]}, True),
        ("__v0.includes('b')", {"__v0": ["a", "b"]}, True),
        ("__v0.includes('ell')", {"__v0": "hello"}, True),
        ("__v0.toUpperCase().endsWith('LO')", {"__v0": "hello"}, True),
        ("__v0.trim() === 'x'", {"__v0": "  x "}, True),
        ("__v0.toString() === '1,2'", {"__v0": [1, 2]}, True),
        ("__v0.toString() === '3'", {"__v0": 3.0}, True),
        ("!__v0", {"__v0": 0}, True),
        ("!__v0", {"__v0": []}, False),
        ("__v0 && __v1", {"__v0": "a", "__v1": ""}, False),
        ("__v0 || __v1", {"__v0": 0, "__v1": "fallback"}, True),
        ("__v0 == '1,2'", {"__v0": [1, 2]}, True),
        ("__v0 === __v0", {"__v0": {"a": 1}}, True),
    ])
    def test_js_semantics(self, expr, bindings, expected):
        assert evaluate_condition(expr, bindings) is expected

    def test_short_circuit_skips_failing_operand(self):
        """&& does not evaluate its right side when the left is falsy."""
        assert evaluate_condition("__v0 && __v0.trim()", {"__v0": None}) is False

    def test_method_on_null(self):
        with pytest.raises(ConditionEvalError):
            evaluate_condition("__v0.toLowerCase() === 'a'", {"__v0": None})

    def test_property_of_undefined(self):
        with pytest.raises(ConditionEvalError):
            evaluate_condition("__v0.a.b === 1", {"__v0": {}})

    def test_string_method_on_number(self):
        with pytest.raises(ConditionEvalError):
            evaluate_condition("__v0.startsWith('1')", {"__v0": 12})

    def test_unbound_variable(self):
        with pytest.raises(ConditionEvalError):
            evaluate_condition("__v3 === 1", {})

    @pytest.mark.parametrize("value,expected", [
        ({"count": 3, "name": "xy"}, False),
        ({"count": 4, "name": "xy"}, True),
        ({"count": 4, "name": "abc"}, False),
        ({"count": "4", "name": "x"}, True),
        ({"count": 3.5, "name": ["w", "x"]}, True),
        ({"name": "x"}, False),
        ({"count": None, "name": "x"}, False),
    ])
    def test_count_and_name(self, value, expected):
        expr = "__v0.count > 3 && __v0.name.includes('x')"
        assert evaluate_condition(expr, {"__v0": value}) is expected

    def test_moderate_nesting(self):
        expr = "(" * 10 + "__v0 > 1" + ")" * 10
        assert evaluate_condition(expr, {"__v0": 2}) is True

    @pytest.mark.parametrize("expr", [
        "(" * 2000 + "true" + ")" * 2000,
        "!" * 2000 + "true",
        "__v0.includes(" * 50 + "'x'" + ")" * 50,
    ])
    def test_deep_nesting_is_rejected(self, expr):
        with pytest.raises(ConditionValidationError):
            evaluate_condition(expr, {"__v0": "x"})


# =============================================================================
# Scheduler entry point
# =============================================================================

class TestConditionNode:

    def test_booleans_pass_through(self):
        assert evaluate_condition_node(True, {}) is True
        assert evaluate_condition_node(False, {}) is False

    def test_template_expression(self):
        outputs = {"check": {"status": "ok", "items": [1, 2]}}
        expr = "{{@check:Check.status}} === 'ok' && {{@check:Check.items}}.length === 2"
        assert evaluate_condition_node(expr, outputs) is True

    def test_non_string_values_use_truthiness(self):
        assert evaluate_condition_node(None, {}) is False
        assert evaluate_condition_node(1, {}) is True

    def test_unknown_reference(self):
        with pytest.raises(UnknownNode):
            evaluate_condition_node("{{@missing:M.x}} === 1", {})

    def test_injection_through_template_value_is_inert(self):
        """Resolved values are bound as data, never spliced into the source."""
        outputs = {"n": {"v": "1; process.exit()"}}
        assert evaluate_condition_node("{{@n:N.v}} === '1; process.exit()'", outputs) is True
