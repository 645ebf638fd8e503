"""
Expression Module (Formula Language)
Compiles formula strings from game content into cached closures and evaluates
them against an explicit context object.

Grammar (lowest to highest precedence):
    conditional   : or_expr ('?' conditional ':' conditional)?
    or_expr       : and_expr (('||' | '??') and_expr)*
    and_expr      : equality ('&&' equality)*
    equality      : relational (('==' | '!=' | '===' | '!==') relational)*
    relational    : additive (('<' | '<=' | '>' | '>=') additive)*
    additive      : multiplicative (('+' | '-') multiplicative)*
    multiplicative: unary (('*' | '/' | '%') unary)*
    unary         : ('!' | '-' | '+') unary | postfix
    postfix       : primary ('.' NAME | '[' conditional ']' | '(' args ')')*
    primary       : NUMBER | STRING | NAME | '(' conditional ')'

Values follow the loose semantics game authors expect from the formulas:
missing keys read as null, '&&' / '||' return an operand, '+' joins strings.
"""

import math
import re
from collections import namedtuple
from typing import Any, Callable, Dict, List, Mapping, Optional


class ExpressionError(ValueError):
    """Raised when a formula cannot be parsed or evaluated."""


Token = namedtuple("Token", ["kind", "value", "pos"])

_TOKEN_RE = re.compile(r"""
    (?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
  | (?P<string>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
  | (?P<name>[A-Za-z_$][A-Za-z0-9_$]*)
  | (?P<op>===|!==|==|!=|<=|>=|&&|\|\||\?\?|[-+*/%<>!?:.,()\[\]])
  | (?P<space>\s+)
""", re.VERBOSE)

_KEYWORDS = {"true": True, "false": False, "null": None, "undefined": None}

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", "'": "'", '"': '"'}

Evaluator = Callable[["EvalContext"], Any]


def tokenize(source: str) -> List[Token]:
    """
    Split a formula into tokens.

    Args:
        source: Formula text (e.g. "$stat.hp.cur > 10 ? 1 : 0")

    Returns:
        List[Token]: Tokens terminated by an 'end' token

    Raises:
        ExpressionError: On a character that starts no token
    """
    tokens: List[Token] = []
    pos = 0
    while pos < len(source):
        match = _TOKEN_RE.match(source, pos)
        if not match:
            raise ExpressionError(f"Unexpected character {source[pos]!r} at {pos}")
        kind = match.lastgroup
        text = match.group(kind)
        if kind == "number":
            value = float(text)
            tokens.append(Token("number", int(value) if value.is_integer() else value, pos))
        elif kind == "string":
            tokens.append(Token("string", _unescape(text[1:-1]), pos))
        elif kind != "space":
            tokens.append(Token(kind, text, pos))
        pos = match.end()
    tokens.append(Token("end", None, pos))
    return tokens


def _unescape(body: str) -> str:
    return re.sub(r"\\(.)", lambda m: _ESCAPES.get(m.group(1), m.group(1)), body)


# =============================================================================
# Value semantics
# =============================================================================


def is_truthy(value: Any) -> bool:
    """Loose truthiness: null, false, 0, NaN and '' are falsy, containers are truthy."""
    if value is None or value is False:
        return False
    if isinstance(value, (int, float)):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return value != ""
    return True


def to_number(value: Any) -> float:
    """
    Coerce a formula result to a number.

    Booleans become 0/1, numeric strings are parsed, and anything else
    (null, objects, unparseable text) becomes NaN.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            number = float(text)
        except ValueError:
            return math.nan
        return int(number) if number.is_integer() else number
    return math.nan


def is_finite_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def coalesce(*values: Any) -> Any:
    """First value that is not None (the '??' rule applied to content fields)."""
    for value in values:
        if value is not None:
            return value
    return None


def format_value(value: Any) -> str:
    """Render a value for log text: integral floats drop their '.0'."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
    return str(value)


def _operand(value: Any, op: str) -> float:
    if value is None:
        raise ExpressionError(f"Cannot apply '{op}' to null")
    return to_number(value)


def _add(left: Any, right: Any) -> Any:
    if isinstance(left, str) or isinstance(right, str):
        return format_value(left) + format_value(right)
    return _operand(left, "+") + _operand(right, "+")


def _divide(left: Any, right: Any) -> float:
    a, b = _operand(left, "/"), _operand(right, "/")
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1, b)
    return a / b


def _remainder(left: Any, right: Any) -> float:
    a, b = _operand(left, "%"), _operand(right, "%")
    if b == 0 or math.isinf(a) or math.isnan(a) or math.isnan(b):
        return math.nan
    result = math.fmod(a, b)
    if isinstance(a, int) and isinstance(b, int):
        return int(result)
    return result


def _compare(op: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def compare(left: Any, right: Any) -> bool:
        if left is None or right is None:
            return False
        if isinstance(left, str) and isinstance(right, str):
            return op(left, right)
        return op(to_number(left), to_number(right))
    return compare


_BINARY_OPS: Dict[str, Callable[[Any, Any], Any]] = {
    "+": _add,
    "-": lambda a, b: _operand(a, "-") - _operand(b, "-"),
    "*": lambda a, b: _operand(a, "*") * _operand(b, "*"),
    "/": _divide,
    "%": _remainder,
    "==": lambda a, b: a == b,
    "===": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "!==": lambda a, b: a != b,
    "<": _compare(lambda a, b: a < b),
    "<=": _compare(lambda a, b: a <= b),
    ">": _compare(lambda a, b: a > b),
    ">=": _compare(lambda a, b: a >= b),
}


def get_member(obj: Any, key: Any) -> Any:
    """
    Property access. Reading a missing key yields None; reading any key of
    None is an error (the path does not exist).
    """
    if obj is None:
        raise ExpressionError(f"Cannot read property {format_value(key)!r} of null")
    if isinstance(obj, Mapping):
        return obj.get(key if isinstance(key, str) else format_value(key))
    if isinstance(obj, (list, tuple, str)):
        if key == "length":
            return len(obj)
        if isinstance(key, (int, float)) and not isinstance(key, bool) and float(key).is_integer():
            index = int(key)
            return obj[index] if 0 <= index < len(obj) else None
    return None


# =============================================================================
# Builtin math helpers (state-free; state-bound builtins come from the engine)
# =============================================================================


def _finite_or(value: Any, fn: Callable[[float], Any]) -> Any:
    number = to_number(value)
    if not math.isfinite(number):
        return number
    return fn(number)


def js_round(value: Any) -> Any:
    """Round half up (toward +infinity)."""
    return _finite_or(value, lambda n: math.floor(n + 0.5))


def _min(*args: Any) -> Any:
    numbers = [to_number(a) for a in args]
    if any(math.isnan(n) for n in numbers):
        return math.nan
    return min(numbers) if numbers else math.inf


def _max(*args: Any) -> Any:
    numbers = [to_number(a) for a in args]
    if any(math.isnan(n) for n in numbers):
        return math.nan
    return max(numbers) if numbers else -math.inf


def clamp(value: Any, low: Any, high: Any) -> Any:
    return _min(_max(value, low), high)


MATH_FUNCTIONS: Dict[str, Callable[..., Any]] = {
    "min": _min,
    "max": _max,
    "clamp": clamp,
    "floor": lambda v: _finite_or(v, math.floor),
    "ceil": lambda v: _finite_or(v, math.ceil),
    "abs": lambda v: abs(to_number(v)),
    "round": js_round,
}


# =============================================================================
# Context
# =============================================================================


class EvalContext:
    """
    Explicit evaluation scope: top-level names (``$stat``, ``$roll``...) and
    callable builtins. Rebuilt per evaluation; compiled formulas never keep it.
    """

    def __init__(self, names: Mapping[str, Any], functions: Mapping[str, Callable[..., Any]]):
        self.names = names
        self.functions = functions

    def lookup(self, name: str) -> Any:
        if name in self.names:
            return self.names[name]
        raise ExpressionError(f"{name} is not defined")

    def call(self, name: str, args: List[Any]) -> Any:
        fn = self.functions.get(name)
        if fn is None:
            raise ExpressionError(f"{name} is not a function")
        try:
            return fn(*args)
        except TypeError as e:
            raise ExpressionError(f"Bad arguments for {name}(): {e}") from e


# =============================================================================
# Parser
# =============================================================================


class _Parser:
    """Recursive-descent parser emitting closures of one ``EvalContext`` argument."""

    def __init__(self, source: str):
        self.source = source
        self.tokens = tokenize(source)
        self.index = 0

    def parse(self) -> Evaluator:
        if self._peek().kind == "end":
            raise ExpressionError("Empty expression")
        node = self._conditional()
        token = self._peek()
        if token.kind != "end":
            raise ExpressionError(f"Unexpected {token.value!r} at {token.pos}")
        return node

    # --- token helpers ---

    def _peek(self) -> Token:
        return self.tokens[self.index]

    def _next(self) -> Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def _accept(self, *ops: str) -> Optional[str]:
        token = self._peek()
        if token.kind == "op" and token.value in ops:
            self.index += 1
            return token.value
        return None

    def _expect(self, op: str) -> None:
        if not self._accept(op):
            token = self._peek()
            found = "end of input" if token.kind == "end" else repr(token.value)
            raise ExpressionError(f"Expected {op!r} but found {found} at {token.pos}")

    # --- grammar ---

    def _conditional(self) -> Evaluator:
        test = self._or()
        if not self._accept("?"):
            return test
        when_true = self._conditional()
        self._expect(":")
        when_false = self._conditional()
        return lambda ctx: when_true(ctx) if is_truthy(test(ctx)) else when_false(ctx)

    def _or(self) -> Evaluator:
        node = self._and()
        while True:
            op = self._accept("||", "??")
            if op is None:
                return node
            node = self._logical(op, node, self._and())

    def _and(self) -> Evaluator:
        node = self._equality_level()
        while self._accept("&&"):
            node = self._logical("&&", node, self._equality_level())
        return node

    @staticmethod
    def _logical(op: str, left: Evaluator, right: Evaluator) -> Evaluator:
        if op == "&&":
            def evaluate(ctx):
                value = left(ctx)
                return right(ctx) if is_truthy(value) else value
        elif op == "||":
            def evaluate(ctx):
                value = left(ctx)
                return value if is_truthy(value) else right(ctx)
        else:
            def evaluate(ctx):
                value = left(ctx)
                return right(ctx) if value is None else value
        return evaluate

    def _equality_level(self) -> Evaluator:
        return self._binary_level(self._relational_level, ("==", "!=", "===", "!=="))

    def _relational_level(self) -> Evaluator:
        return self._binary_level(self._additive_level, ("<", "<=", ">", ">="))

    def _additive_level(self) -> Evaluator:
        return self._binary_level(self._multiplicative_level, ("+", "-"))

    def _multiplicative_level(self) -> Evaluator:
        return self._binary_level(self._unary, ("*", "/", "%"))

    def _binary_level(self, operand: Callable[[], Evaluator], ops: tuple) -> Evaluator:
        node = operand()
        while True:
            op = self._accept(*ops)
            if op is None:
                return node
            node = self._binary(_BINARY_OPS[op], node, operand())

    @staticmethod
    def _binary(fn: Callable[[Any, Any], Any], left: Evaluator, right: Evaluator) -> Evaluator:
        return lambda ctx: fn(left(ctx), right(ctx))

    def _unary(self) -> Evaluator:
        op = self._accept("!", "-", "+")
        if op is None:
            return self._postfix()
        operand = self._unary()
        if op == "!":
            return lambda ctx: not is_truthy(operand(ctx))
        if op == "-":
            return lambda ctx: -_operand(operand(ctx), "-")
        return lambda ctx: _operand(operand(ctx), "+")

    def _postfix(self) -> Evaluator:
        node, name = self._primary()
        while True:
            if self._accept("."):
                token = self._next()
                if token.kind != "name":
                    raise ExpressionError(f"Expected property name at {token.pos}")
                node = self._member(node, lambda ctx, key=token.value: key)
            elif self._accept("["):
                key = self._conditional()
                self._expect("]")
                node = self._member(node, key)
            elif self._accept("("):
                if name is None:
                    raise ExpressionError("Only builtin functions can be called")
                node = self._call(name, self._arguments())
            else:
                return node
            name = None

    @staticmethod
    def _member(obj: Evaluator, key: Evaluator) -> Evaluator:
        return lambda ctx: get_member(obj(ctx), key(ctx))

    @staticmethod
    def _call(name: str, args: List[Evaluator]) -> Evaluator:
        return lambda ctx: ctx.call(name, [arg(ctx) for arg in args])

    def _arguments(self) -> List[Evaluator]:
        args: List[Evaluator] = []
        if self._accept(")"):
            return args
        while True:
            args.append(self._conditional())
            if self._accept(")"):
                return args
            self._expect(",")

    def _primary(self):
        token = self._next()
        if token.kind in ("number", "string"):
            value = token.value
            return (lambda ctx: value), None
        if token.kind == "name":
            if token.value in _KEYWORDS:
                value = _KEYWORDS[token.value]
                return (lambda ctx: value), None
            name = token.value
            return (lambda ctx: ctx.lookup(name)), name
        if token.kind == "op" and token.value == "(":
            node = self._conditional()
            self._expect(")")
            return node, None
        found = "end of input" if token.kind == "end" else repr(token.value)
        raise ExpressionError(f"Unexpected {found} at {token.pos}")


# =============================================================================
# Compilation cache
# =============================================================================


class CompiledExpression:
    """A parsed formula; stateless, safe to share between evaluations."""

    __slots__ = ("source", "_fn")

    def __init__(self, source: str, fn: Evaluator):
        self.source = source
        self._fn = fn

    def __call__(self, ctx: EvalContext) -> Any:
        return self._fn(ctx)

    def __repr__(self) -> str:
        return f"CompiledExpression({self.source!r})"


# Keyed by exact (stripped) source text; append-only
_CACHE: Dict[str, CompiledExpression] = {}


def compile_expression(source: str) -> CompiledExpression:
    """
    Compile a formula, reusing the cached closure for identical text.

    Raises:
        ExpressionError: On a syntax error (failures are not cached)
    """
    text = source.strip()
    compiled = _CACHE.get(text)
    if compiled is None:
        compiled = CompiledExpression(text, _Parser(text).parse())
        _CACHE[text] = compiled
    return compiled


def evaluate(expr: Any, ctx: EvalContext) -> Any:
    """
    Evaluate a content value as a formula.

    Numbers and booleans are returned as-is, None and blank strings evaluate
    to 0, other non-string values pass through untouched.

    Raises:
        ExpressionError: On syntax or evaluation failure
    """
    if expr is None:
        return 0
    if isinstance(expr, (bool, int, float)):
        return expr
    if not isinstance(expr, str):
        return expr
    if not expr.strip():
        return 0
    try:
        return compile_expression(expr)(ctx)
    except (ArithmeticError, RecursionError, TypeError) as e:
        raise ExpressionError(str(e)) from e
