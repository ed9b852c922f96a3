"""Sandboxed condition expressions for runtime branching.

A condition node carries a small boolean expression such as

    {{@check:Check.status}} === 'ok' && {{@fetch:Fetch.items}}.length > 0

Template tokens are replaced with safe variables (__v0, __v1, ...) and the
expression is then checked in two stages:

1. Textual passes over the expression (string literal contents masked) that
   reject anything resembling assignment, code execution, control flow, object
   or array literals, unknown methods and bare identifiers.
2. A recursive-descent parse under the restricted grammar below.

The AST is evaluated directly with JavaScript comparison semantics, so conditions
written for the browser editor behave the same on the server. Nothing here hands
text to eval/exec/compile.

Grammar (lowest precedence first):

    or         := and ('||' and)*
    and        := equality ('&&' equality)*
    equality   := relational (('===' | '!==' | '==' | '!=') relational)*
    relational := unary (('<' | '>' | '<=' | '>=') unary)*
    unary      := '!' unary | postfix
    postfix    := variable ('.' name | '.' method '(' args ')' | '[' index ']')*
                | primary
    primary    := number | '-' number | string | true | false | null | undefined
                | '(' or ')'
"""

import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from core.logging import get_logger
from constants import (
    CONDITION_ZERO_ARG_METHODS,
    CONDITION_ONE_ARG_METHODS,
    CONDITION_ALLOWED_METHODS,
    CONDITION_LITERAL_KEYWORDS,
    CONDITION_FORBIDDEN_PROPERTIES,
)
from services.parameter_resolver import ParameterResolver
from .errors import ConditionValidationError, ConditionEvalError

logger = get_logger(__name__)


class _Undefined:
    """JavaScript `undefined`; Python None plays the role of `null`."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "undefined"

    def __bool__(self):
        return False


UNDEFINED = _Undefined()


# =============================================================================
# TEXTUAL VALIDATION
# =============================================================================

DANGEROUS_PATTERNS = [
    # Assignment (= but not ==, ===, !=, !==, <=, >=)
    re.compile(r'(?<![=!<>])=(?!=)'),
    re.compile(r'\+=|-=|\*=|/=|%=|\^=|\|=|&='),
    # Code execution
    re.compile(r'\beval\s*\(', re.IGNORECASE),
    re.compile(r'\bFunction\s*\(', re.IGNORECASE),
    re.compile(r'\bimport\s*\(', re.IGNORECASE),
    re.compile(r'\brequire\s*\(', re.IGNORECASE),
    re.compile(r'\bnew\s+\w', re.IGNORECASE),
    # Globals
    re.compile(r'\bprocess\b', re.IGNORECASE),
    re.compile(r'\bglobal\b', re.IGNORECASE),
    re.compile(r'\bwindow\b', re.IGNORECASE),
    re.compile(r'\bdocument\b', re.IGNORECASE),
    re.compile(r'\bconstructor\b', re.IGNORECASE),
    re.compile(r'\b__proto__\b', re.IGNORECASE),
    re.compile(r'\bprototype\b', re.IGNORECASE),
    # Control flow
    re.compile(r'\bwhile\s*\(', re.IGNORECASE),
    re.compile(r'\bfor\s*\(', re.IGNORECASE),
    re.compile(r'\bdo\s*\{', re.IGNORECASE),
    re.compile(r'\bswitch\s*\(', re.IGNORECASE),
    re.compile(r'\btry\s*\{', re.IGNORECASE),
    re.compile(r'\bcatch\s*\(', re.IGNORECASE),
    re.compile(r'\bfinally\s*\{', re.IGNORECASE),
    re.compile(r'\bthrow\s+', re.IGNORECASE),
    re.compile(r'\breturn\s+', re.IGNORECASE),
    # Template literal interpolation
    re.compile(r'`[^`]*\$\{'),
    # Object literals
    re.compile(r'\{\s*\w+\s*:'),
    # Increment/decrement
    re.compile(r'\+\+|--'),
    # Shifts
    re.compile(r'<<|>>|>>>'),
    # Comma outside call parentheses
    re.compile(r',(?![^(]*\))'),
    # Statement separator
    re.compile(r';'),
]

STRING_LITERAL_PATTERN = re.compile(r"'(?:[^'\\]|\\.)*'|\"(?:[^\"\\]|\\.)*\"")
METHOD_CALL_PATTERN = re.compile(r'\.(\w+)\s*\(')
BRACKET_EXPRESSION_PATTERN = re.compile(r'(\w+)\s*\[([^\]]+)\]')
VALID_BRACKET_TARGET_PATTERN = re.compile(r'^__v\d+$')
VALID_BRACKET_CONTENT_PATTERN = re.compile(r"""^(\d+|'[^']*'|"[^"]*")$""")
STANDALONE_BRACKET_PATTERN = re.compile(r'(?:^|[=!<>&|(\s])\s*\[')

VARIABLE_TOKEN_PATTERN = re.compile(r'^__v\d+')
STRING_TOKEN_PATTERN = re.compile(r"""^['"]""")
NUMBER_TOKEN_PATTERN = re.compile(r'^-?\d')
OPERATOR_TOKEN_PATTERN = re.compile(r'^(===|!==|==|!=|>=|<=|>|<|&&|\|\||!|\(|\))$')
IDENTIFIER_TOKEN_PATTERN = re.compile(r'^[a-zA-Z_]\w*$')


def _mask_string_literals(expression: str) -> str:
    """Blank out string literal contents, keeping quotes and length."""
    def mask(match: re.Match) -> str:
        text = match.group(0)
        return text[0] + "_" * (len(text) - 2) + text[-1]
    return STRING_LITERAL_PATTERN.sub(mask, expression)


def _check_dangerous_patterns(expression: str) -> None:
    for pattern in DANGEROUS_PATTERNS:
        match = pattern.search(expression)
        if match:
            raise ConditionValidationError(
                f'Condition contains disallowed syntax: "{match.group(0)}"'
            )


def _check_bracket_expressions(expression: str) -> None:
    for match in BRACKET_EXPRESSION_PATTERN.finditer(expression):
        target, content = match.group(1), match.group(2).strip()
        if not VALID_BRACKET_TARGET_PATTERN.match(target):
            raise ConditionValidationError(
                f'Bracket notation is only allowed on workflow variables. Found: "{target}[...]"'
            )
        if not VALID_BRACKET_CONTENT_PATTERN.match(content):
            raise ConditionValidationError(
                f'Invalid bracket content: "[{content}]". '
                'Only numeric indices or string literals are allowed.'
            )

    if STANDALONE_BRACKET_PATTERN.search(expression):
        raise ConditionValidationError(
            "Array literals are not allowed in conditions. Use workflow variables instead."
        )


def _check_method_calls(expression: str) -> None:
    for match in METHOD_CALL_PATTERN.finditer(expression):
        method = match.group(1)
        if method not in CONDITION_ALLOWED_METHODS:
            raise ConditionValidationError(
                f'Method "{method}" is not allowed in conditions. '
                f'Allowed methods: {", ".join(sorted(CONDITION_ALLOWED_METHODS))}'
            )


def _check_parentheses(expression: str) -> None:
    depth = 0
    for char in expression:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        if depth < 0:
            break
    if depth != 0:
        raise ConditionValidationError("Unbalanced parentheses in condition")


def _is_known_token(token: str) -> bool:
    return bool(
        VARIABLE_TOKEN_PATTERN.match(token)
        or STRING_TOKEN_PATTERN.match(token)
        or NUMBER_TOKEN_PATTERN.match(token)
        or token in CONDITION_LITERAL_KEYWORDS
        or OPERATOR_TOKEN_PATTERN.match(token)
    )


def _check_identifiers(expression: str) -> None:
    for token in expression.split():
        if _is_known_token(token):
            continue
        if IDENTIFIER_TOKEN_PATTERN.match(token):
            raise ConditionValidationError(
                f'Unknown identifier "{token}" in condition. '
                'Use template variables like {{@nodeId:Label.field}} to reference workflow data.'
            )


def validate_condition(expression: str):
    """Reject anything outside the condition language.

    Args:
        expression: Condition with template tokens already replaced by __vN

    Returns:
        The parsed expression tree

    Raises:
        ConditionValidationError: describing the first offending construct
    """
    if not isinstance(expression, str) or not expression.strip():
        raise ConditionValidationError("Condition expression cannot be empty")

    masked = _mask_string_literals(expression)
    _check_dangerous_patterns(masked)
    _check_bracket_expressions(masked)
    _check_method_calls(masked)
    _check_parentheses(masked)
    _check_identifiers(masked)

    try:
        return parse_condition(expression)
    except RecursionError as e:
        raise ConditionValidationError("Condition is nested too deeply") from e


# =============================================================================
# AST
# =============================================================================

@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class VarRef:
    name: str


@dataclass(frozen=True)
class PropAccess:
    target: Any
    name: str


@dataclass(frozen=True)
class IndexAccess:
    target: Any
    index: Any  # int or str


@dataclass(frozen=True)
class MethodCall:
    target: Any
    method: str
    args: Tuple[Any, ...]


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: Any
    right: Any


@dataclass(frozen=True)
class UnaryNot:
    operand: Any


# =============================================================================
# TOKENIZER / PARSER
# =============================================================================

TOKEN_PATTERN = re.compile(r"""
    (?P<ws>\s+)
  | (?P<number>\d+(?:\.\d+)?(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?)
  | (?P<string>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
  | (?P<name>[A-Za-z_$][\w$]*)
  | (?P<op>===|!==|==|!=|>=|<=|&&|\|\||[<>!()\[\].,\-])
""", re.VERBOSE)

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0"}


def _unquote(literal: str) -> str:
    body = literal[1:-1]
    out = []
    i = 0
    while i < len(body):
        char = body[i]
        if char == "\\" and i + 1 < len(body):
            nxt = body[i + 1]
            out.append(_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        out.append(char)
        i += 1
    return "".join(out)


def _tokenize(expression: str) -> List[Tuple[str, str]]:
    tokens = []
    pos = 0
    while pos < len(expression):
        match = TOKEN_PATTERN.match(expression, pos)
        if not match:
            raise ConditionValidationError(
                f"Unexpected character {expression[pos]!r} at position {pos}"
            )
        kind = match.lastgroup
        if kind != "ws":
            tokens.append((kind, match.group(0)))
        pos = match.end()
    return tokens


class _Parser:
    """Recursive-descent parser for the restricted condition grammar."""

    EQUALITY_OPS = ("===", "!==", "==", "!=")
    RELATIONAL_OPS = ("<", ">", "<=", ">=")
    MAX_DEPTH = 32

    def __init__(self, expression: str):
        self.tokens = _tokenize(expression)
        self.pos = 0
        self.depth = 0

    def peek(self) -> Optional[Tuple[str, str]]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def peek_value(self) -> Optional[str]:
        token = self.peek()
        return token[1] if token else None

    def advance(self) -> Tuple[str, str]:
        token = self.peek()
        if token is None:
            raise ConditionValidationError("Unexpected end of condition")
        self.pos += 1
        return token

    def expect(self, value: str) -> None:
        token = self.advance()
        if token[1] != value:
            raise ConditionValidationError(f"Expected '{value}' but found '{token[1]}'")

    def nested(self, parse):
        """Run a sub-parser one nesting level deeper."""
        self.depth += 1
        if self.depth > self.MAX_DEPTH:
            raise ConditionValidationError("Condition is nested too deeply")
        try:
            return parse()
        finally:
            self.depth -= 1

    def parse(self):
        if not self.tokens:
            raise ConditionValidationError("Condition expression cannot be empty")
        node = self.parse_or()
        if self.peek() is not None:
            raise ConditionValidationError(f"Unexpected token '{self.peek_value()}'")
        return node

    def parse_or(self):
        node = self.parse_and()
        while self.peek_value() == "||":
            self.advance()
            node = BinaryOp("||", node, self.parse_and())
        return node

    def parse_and(self):
        node = self.parse_equality()
        while self.peek_value() == "&&":
            self.advance()
            node = BinaryOp("&&", node, self.parse_equality())
        return node

    def parse_equality(self):
        node = self.parse_relational()
        while self.peek_value() in self.EQUALITY_OPS:
            op = self.advance()[1]
            node = BinaryOp(op, node, self.parse_relational())
        return node

    def parse_relational(self):
        node = self.parse_unary()
        while self.peek_value() in self.RELATIONAL_OPS:
            op = self.advance()[1]
            node = BinaryOp(op, node, self.parse_unary())
        return node

    def parse_unary(self):
        if self.peek_value() == "!":
            self.advance()
            return UnaryNot(self.nested(self.parse_unary))
        return self.parse_postfix()

    def parse_postfix(self):
        token = self.peek()
        if token and token[0] == "name" and token[1] not in CONDITION_LITERAL_KEYWORDS:
            if not VALID_BRACKET_TARGET_PATTERN.match(token[1]):
                raise ConditionValidationError(f'Unknown identifier "{token[1]}" in condition')
            self.advance()
            return self.parse_accessors(VarRef(token[1]))

        node = self.parse_primary()
        if self.peek_value() in (".", "["):
            raise ConditionValidationError(
                "Property access is only allowed on workflow variables"
            )
        return node

    def parse_accessors(self, node):
        while self.peek_value() in (".", "["):
            if self.advance()[1] == ".":
                kind, name = self.advance()
                if kind != "name":
                    raise ConditionValidationError(f"Expected property name after '.', found '{name}'")
                if name in CONDITION_FORBIDDEN_PROPERTIES:
                    raise ConditionValidationError(f'Property "{name}" is not allowed')
                if self.peek_value() == "(":
                    node = self.parse_method_call(node, name)
                else:
                    node = PropAccess(node, name)
            else:
                kind, raw = self.advance()
                if kind == "number" and raw.isdigit():
                    index = int(raw)
                elif kind == "string":
                    index = _unquote(raw)
                    if index in CONDITION_FORBIDDEN_PROPERTIES:
                        raise ConditionValidationError(f'Property "{index}" is not allowed')
                else:
                    raise ConditionValidationError(f"Invalid bracket content: [{raw}]")
                self.expect("]")
                node = IndexAccess(node, index)
        return node

    def parse_method_call(self, target, method: str):
        if method in CONDITION_ZERO_ARG_METHODS:
            arity = 0
        elif method in CONDITION_ONE_ARG_METHODS:
            arity = 1
        elif method == "length":
            raise ConditionValidationError("length is a property, not a method")
        else:
            raise ConditionValidationError(f'Method "{method}" is not allowed in conditions')

        self.expect("(")
        args = []
        while self.peek_value() != ")":
            if args:
                self.expect(",")
            args.append(self.nested(self.parse_or))
        self.expect(")")

        if len(args) != arity:
            raise ConditionValidationError(
                f"{method}() takes {arity} argument{'s' if arity != 1 else ''}, got {len(args)}"
            )
        return MethodCall(target, method, tuple(args))

    def parse_primary(self):
        kind, value = self.advance()

        if kind == "number":
            return Literal(_parse_number(value))
        if kind == "op" and value == "-":
            kind, value = self.advance()
            if kind != "number":
                raise ConditionValidationError("Unary minus is only allowed before a number")
            return Literal(-_parse_number(value))
        if kind == "string":
            return Literal(_unquote(value))
        if kind == "name":
            return Literal({
                "true": True,
                "false": False,
                "null": None,
                "undefined": UNDEFINED,
            }[value])
        if value == "(":
            node = self.nested(self.parse_or)
            self.expect(")")
            return node

        raise ConditionValidationError(f"Unexpected token '{value}'")


def _parse_number(text: str):
    if re.fullmatch(r'\d+', text):
        return int(text)
    return float(text)


def parse_condition(expression: str):
    """Parse an expression into an AST; raises ConditionValidationError."""
    return _Parser(expression).parse()


# =============================================================================
# JAVASCRIPT SEMANTICS
# =============================================================================

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _js_type(value: Any) -> str:
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if _is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    return "object"


def is_truthy(value: Any) -> bool:
    """JavaScript truthiness."""
    if value is None or value is UNDEFINED:
        return False
    if isinstance(value, bool):
        return value
    if _is_number(value):
        return not (value == 0 or math.isnan(value))
    if isinstance(value, str):
        return value != ""
    return True


_NUMERIC_STRING = re.compile(r'[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?')


def _to_number(value: Any) -> float:
    if value is UNDEFINED:
        return math.nan
    if value is None:
        return 0
    if isinstance(value, bool):
        return 1 if value else 0
    if _is_number(value):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        if _NUMERIC_STRING.fullmatch(text):
            return float(text)
        if re.fullmatch(r'0[xX][0-9a-fA-F]+', text):
            return int(text, 16)
        if text in ("Infinity", "+Infinity"):
            return math.inf
        if text == "-Infinity":
            return -math.inf
        return math.nan
    return _to_number(_to_primitive(value))


def _number_to_string(value) -> str:
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
    return str(value)


def _to_string(value: Any) -> str:
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if _is_number(value):
        return _number_to_string(value)
    if isinstance(value, str):
        return value
    return _to_primitive(value)


def _to_primitive(value: Any) -> Any:
    """Objects become strings, as Array.prototype.toString and Object.prototype.toString do."""
    if isinstance(value, (list, tuple)):
        return ",".join(
            "" if item is None or item is UNDEFINED else _to_string(item)
            for item in value
        )
    if isinstance(value, dict):
        return "[object Object]"
    return value


def strict_equals(left: Any, right: Any) -> bool:
    left_type, right_type = _js_type(left), _js_type(right)
    if left_type != right_type:
        return False
    if left_type in ("undefined", "null"):
        return True
    if left_type == "object":
        return left is right
    return left == right


def loose_equals(left: Any, right: Any) -> bool:
    left_type, right_type = _js_type(left), _js_type(right)
    if left_type == right_type:
        return strict_equals(left, right)
    if {left_type, right_type} == {"undefined", "null"}:
        return True
    if left_type in ("undefined", "null") or right_type in ("undefined", "null"):
        return False
    if left_type == "boolean":
        return loose_equals(_to_number(left), right)
    if right_type == "boolean":
        return loose_equals(left, _to_number(right))
    if left_type == "number" and right_type == "string":
        return left == _to_number(right)
    if left_type == "string" and right_type == "number":
        return _to_number(left) == right
    if left_type == "object":
        return loose_equals(_to_primitive(left), right)
    if right_type == "object":
        return loose_equals(left, _to_primitive(right))
    return False


def _compare(op: str, left: Any, right: Any) -> bool:
    left, right = _to_primitive(left), _to_primitive(right)
    if isinstance(left, str) and isinstance(right, str):
        a, b = left, right
    else:
        a, b = _to_number(left), _to_number(right)
        if math.isnan(a) or math.isnan(b):
            return False
    if op == "<":
        return a < b
    if op == ">":
        return a > b
    if op == "<=":
        return a <= b
    return a >= b


def _describe(value: Any) -> str:
    return "undefined" if value is UNDEFINED else "null"


def _get_property(target: Any, name: str) -> Any:
    if target is None or target is UNDEFINED:
        raise ConditionEvalError(
            f"Cannot read properties of {_describe(target)} (reading '{name}')"
        )
    if name in CONDITION_FORBIDDEN_PROPERTIES:
        raise ConditionEvalError(f'Property "{name}" is not allowed')
    if isinstance(target, dict):
        return target.get(name, UNDEFINED)
    if isinstance(target, (list, tuple, str)):
        if name == "length":
            return len(target)
        if name.isdigit():
            index = int(name)
            return target[index] if index < len(target) else UNDEFINED
    return UNDEFINED


def _get_index(target: Any, index: Any) -> Any:
    if isinstance(index, int) and isinstance(target, (list, tuple, str)):
        return target[index] if index < len(target) else UNDEFINED
    return _get_property(target, str(index))


def _call_method(target: Any, method: str, args: List[Any]) -> Any:
    if target is None or target is UNDEFINED:
        raise ConditionEvalError(
            f"Cannot read properties of {_describe(target)} (reading '{method}')"
        )

    if method == "toString":
        return _to_string(target)

    if method == "includes" and isinstance(target, (list, tuple)):
        needle = args[0]
        for item in target:
            if _is_number(item) and _is_number(needle) and math.isnan(item) and math.isnan(needle):
                return True
            if strict_equals(item, needle):
                return True
        return False

    if not isinstance(target, str):
        raise ConditionEvalError(f"{_js_type(target)}.{method} is not a function")

    if method == "toLowerCase":
        return target.lower()
    if method == "toUpperCase":
        return target.upper()
    if method == "trim":
        return target.strip()

    needle = _to_string(args[0])
    if method == "includes":
        return needle in target
    if method == "startsWith":
        return target.startswith(needle)
    if method == "endsWith":
        return target.endswith(needle)

    raise ConditionEvalError(f'Method "{method}" is not allowed in conditions')


def _evaluate(node: Any, bindings: Dict[str, Any]) -> Any:
    if isinstance(node, Literal):
        return node.value

    if isinstance(node, VarRef):
        if node.name not in bindings:
            raise ConditionEvalError(f"Unknown variable {node.name}")
        return bindings[node.name]

    if isinstance(node, PropAccess):
        return _get_property(_evaluate(node.target, bindings), node.name)

    if isinstance(node, IndexAccess):
        return _get_index(_evaluate(node.target, bindings), node.index)

    if isinstance(node, MethodCall):
        target = _evaluate(node.target, bindings)
        args = [_evaluate(arg, bindings) for arg in node.args]
        return _call_method(target, node.method, args)

    if isinstance(node, UnaryNot):
        return not is_truthy(_evaluate(node.operand, bindings))

    if isinstance(node, BinaryOp):
        left = _evaluate(node.left, bindings)
        # && and || return an operand, not a boolean
        if node.op == "&&":
            return _evaluate(node.right, bindings) if is_truthy(left) else left
        if node.op == "||":
            return left if is_truthy(left) else _evaluate(node.right, bindings)

        right = _evaluate(node.right, bindings)
        if node.op == "===":
            return strict_equals(left, right)
        if node.op == "!==":
            return not strict_equals(left, right)
        if node.op == "==":
            return loose_equals(left, right)
        if node.op == "!=":
            return not loose_equals(left, right)
        return _compare(node.op, left, right)

    raise ConditionEvalError(f"Unsupported expression node: {type(node).__name__}")


# =============================================================================
# ENTRY POINTS
# =============================================================================

def evaluate_condition(expression: str, bindings: Dict[str, Any]) -> bool:
    """Validate, parse and evaluate a substituted condition expression.

    Args:
        expression: Expression over __vN variables
        bindings: Variable name -> value

    Returns:
        The JavaScript truthiness of the expression's value

    Raises:
        ConditionValidationError: expression rejected before evaluation
        ConditionEvalError: evaluation failed (null receiver, unbound variable...)
    """
    tree = validate_condition(expression)
    try:
        return is_truthy(_evaluate(tree, bindings))
    except ConditionEvalError:
        raise
    except RecursionError as e:
        raise ConditionEvalError("Condition is nested too deeply") from e


def evaluate_condition_node(condition: Any, outputs: Dict[str, Any],
                            resolver: Optional[ParameterResolver] = None) -> bool:
    """Decide a condition node's branch from its raw condition and upstream outputs.

    Booleans pass through, strings are substituted and evaluated in the sandbox,
    anything else is coerced with JavaScript truthiness.
    """
    if isinstance(condition, bool):
        return condition

    if isinstance(condition, str):
        resolver = resolver or ParameterResolver()
        expression, bindings = resolver.substitute_variables(condition, outputs)
        result = evaluate_condition(expression, bindings)
        logger.debug("Condition evaluated",
                     expression=expression,
                     variables=len(bindings),
                     result=result)
        return result

    return is_truthy(condition)
