"""
Counter Condition Evaluator

Evaluates the `cond` expression of a counter rule against the action being
reacted to. Expressions are handled by a small embedded interpreter: a
tokenizer, a recursive-descent parser and a tree-walking evaluator. Nothing
is ever passed to Python's eval.

Available names:
- act: the action being reacted to
- item: the skill or item that action uses
- a: the action's performer
- b: the combatant that may counter
- elementId: damage element id of the item
- skillID / itemID: id of the item when the action is a skill / an item, else 0
- v(n) / s(n): game variable n / game switch n

Operators: || && ! (or: or, and, not), == === != !== < <= > >=, + - * / %,
member access (a.hp), calls (a.hp_rate()), indexing (x[0]) and parentheses.
Literals: numbers, 'strings', "strings", true, false, null.

Member access only reaches names a host class lists in EXPRESSION_MEMBERS;
keys of plain mappings are also readable. Names starting with "_" are never
reachable.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Sequence, Union
import logging
import operator
import re

from src.counter.interfaces import CounterAction, CounterBattler, ValueStore


logger = logging.getLogger(__name__)


class ExpressionError(ValueError):
    """Base class for expression interpreter failures."""
    pass


class ExpressionSyntaxError(ExpressionError):
    """Raised when an expression cannot be tokenized or parsed."""
    pass


class ExpressionEvaluationError(ExpressionError):
    """Raised when a parsed expression cannot be evaluated."""
    pass


class CounterDeclarationError(ValueError):
    """Raised when a counter rule's condition is malformed or fails."""

    def __init__(self, expression: str, reason: str, tag: str = ""):
        self.expression = expression
        self.reason = reason
        self.tag = tag
        where = f" in <{tag}>" if tag else ""
        super().__init__(f"Invalid counter condition{where}: {expression!r} ({reason})")


# =============================================================================
# TOKENIZER
# =============================================================================


@dataclass(frozen=True)
class Token:
    kind: str  # number, string, name, keyword, op, end
    value: Any
    pos: int


TOKEN_PATTERN = re.compile(
    r"""
    (?P<ws>\s+)
    |(?P<number>\d+\.\d*|\.\d+|\d+)
    |(?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
    |(?P<name>[A-Za-z_][A-Za-z0-9_]*)
    |(?P<op>===|!==|==|!=|<=|>=|&&|\|\||[<>!+\-*/%().,\[\]])
    """,
    re.VERBOSE,
)

KEYWORDS = {"true", "false", "null", "and", "or", "not"}

_ESCAPE_PATTERN = re.compile(r"\\(.)")


def tokenize(expression: str) -> list[Token]:
    """Split an expression into tokens, ending with an end token."""
    tokens = []
    pos = 0
    while pos < len(expression):
        match = TOKEN_PATTERN.match(expression, pos)
        if not match:
            raise ExpressionSyntaxError(
                f"Unexpected character {expression[pos]!r} at position {pos}"
            )
        kind = match.lastgroup
        text = match.group()
        if kind == "number":
            tokens.append(Token("number", float(text) if "." in text else int(text), pos))
        elif kind == "string":
            tokens.append(Token("string", _ESCAPE_PATTERN.sub(r"\1", text[1:-1]), pos))
        elif kind == "name":
            tokens.append(Token("keyword" if text in KEYWORDS else "name", text, pos))
        elif kind == "op":
            tokens.append(Token("op", text, pos))
        pos = match.end()
    tokens.append(Token("end", None, pos))
    return tokens


# =============================================================================
# SYNTAX TREE
# =============================================================================


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class Name:
    name: str


@dataclass(frozen=True)
class Member:
    target: "Node"
    name: str


@dataclass(frozen=True)
class Index:
    target: "Node"
    key: "Node"


@dataclass(frozen=True)
class Call:
    func: "Node"
    args: tuple = ()


@dataclass(frozen=True)
class Unary:
    op: str
    operand: "Node"


@dataclass(frozen=True)
class Binary:
    op: str
    left: "Node"
    right: "Node"


@dataclass(frozen=True)
class Logical:
    op: str  # "and" / "or"
    left: "Node"
    right: "Node"


@dataclass(frozen=True)
class Compare:
    left: "Node"
    ops: tuple
    comparators: tuple


Node = Union[Literal, Name, Member, Index, Call, Unary, Binary, Logical, Compare]


# =============================================================================
# PARSER
# =============================================================================


COMPARE_OPS = {"==", "===", "!=", "!==", "<", "<=", ">", ">="}

MAX_NESTING = 32


class ExpressionParser:
    """Recursive-descent parser producing a Node tree."""

    def __init__(self, expression: str):
        self.expression = expression
        self.tokens = tokenize(expression)
        self.pos = 0
        self.depth = 0

    def parse(self) -> Node:
        if self._peek().kind == "end":
            raise ExpressionSyntaxError("Empty expression")
        node = self._or()
        token = self._peek()
        if token.kind != "end":
            raise ExpressionSyntaxError(
                f"Unexpected {token.value!r} at position {token.pos}"
            )
        return node

    # Token helpers

    def _peek(self) -> Token:
        return self.tokens[self.pos]

    def _advance(self) -> Token:
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def _accept(self, *values: str) -> Optional[Token]:
        token = self._peek()
        if token.kind in ("op", "keyword") and token.value in values:
            return self._advance()
        return None

    def _expect(self, value: str) -> Token:
        token = self._accept(value)
        if token is None:
            found = self._peek()
            found_text = "end of expression" if found.kind == "end" else repr(found.value)
            raise ExpressionSyntaxError(
                f"Expected {value!r} but found {found_text} at position {found.pos}"
            )
        return token

    def _descend(self) -> None:
        self.depth += 1
        if self.depth > MAX_NESTING:
            raise ExpressionSyntaxError("Expression nested too deeply")

    # Grammar

    def _or(self) -> Node:
        self._descend()
        node = self._and()
        while self._accept("||", "or"):
            node = Logical("or", node, self._and())
        self.depth -= 1
        return node

    def _and(self) -> Node:
        node = self._not()
        while self._accept("&&", "and"):
            node = Logical("and", node, self._not())
        return node

    def _not(self) -> Node:
        if self._accept("!", "not"):
            self._descend()
            node = Unary("not", self._not())
            self.depth -= 1
            return node
        return self._comparison()

    def _comparison(self) -> Node:
        left = self._additive()
        ops = []
        comparators = []
        while self._peek().kind == "op" and self._peek().value in COMPARE_OPS:
            ops.append(self._advance().value)
            comparators.append(self._additive())
        if not ops:
            return left
        return Compare(left, tuple(ops), tuple(comparators))

    def _additive(self) -> Node:
        node = self._term()
        while True:
            token = self._accept("+", "-")
            if token is None:
                return node
            node = Binary(token.value, node, self._term())

    def _term(self) -> Node:
        node = self._unary()
        while True:
            token = self._accept("*", "/", "%")
            if token is None:
                return node
            node = Binary(token.value, node, self._unary())

    def _unary(self) -> Node:
        token = self._accept("-", "+")
        if token is not None:
            self._descend()
            node = Unary(token.value, self._unary())
            self.depth -= 1
            return node
        return self._postfix()

    def _postfix(self) -> Node:
        node = self._primary()
        while True:
            if self._accept("."):
                token = self._advance()
                if token.kind not in ("name", "keyword"):
                    raise ExpressionSyntaxError(
                        f"Expected a member name at position {token.pos}"
                    )
                node = Member(node, token.value)
            elif self._accept("("):
                args = []
                if not self._accept(")"):
                    args.append(self._or())
                    while self._accept(","):
                        args.append(self._or())
                    self._expect(")")
                node = Call(node, tuple(args))
            elif self._accept("["):
                key = self._or()
                self._expect("]")
                node = Index(node, key)
            else:
                return node

    def _primary(self) -> Node:
        token = self._advance()
        if token.kind in ("number", "string"):
            return Literal(token.value)
        if token.kind == "keyword":
            if token.value == "true":
                return Literal(True)
            if token.value == "false":
                return Literal(False)
            if token.value == "null":
                return Literal(None)
        if token.kind == "name":
            return Name(token.value)
        if token.kind == "op" and token.value == "(":
            node = self._or()
            self._expect(")")
            return node
        if token.kind == "end":
            raise ExpressionSyntaxError("Unexpected end of expression")
        raise ExpressionSyntaxError(f"Unexpected {token.value!r} at position {token.pos}")


def parse_expression(expression: str) -> Node:
    """Parse expression text into a syntax tree."""
    return ExpressionParser(expression).parse()


# =============================================================================
# EVALUATOR
# =============================================================================


BINARY_OPS: dict[str, Callable[[Any, Any], Any]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
    "%": operator.mod,
}

COMPARE_FUNCS: dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "===": operator.eq,
    "!=": operator.ne,
    "!==": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


@dataclass
class ExpressionScope:
    """Names visible to an expression."""
    bindings: dict[str, Any] = field(default_factory=dict)
    functions: dict[str, Callable[..., Any]] = field(default_factory=dict)


class ExpressionEvaluator:
    """
    Tree-walking evaluator with a per-text cache of parsed trees.

    Only whitelisted members and the scope's functions can be called.
    """

    def __init__(self):
        self._compiled: dict[str, Node] = {}

    def compile(self, expression: str) -> Node:
        node = self._compiled.get(expression)
        if node is None:
            node = parse_expression(expression)
            self._compiled[expression] = node
        return node

    def evaluate(self, expression: str, scope: ExpressionScope) -> Any:
        return self._eval(self.compile(expression), scope)

    def _eval(self, node: Node, scope: ExpressionScope) -> Any:
        if isinstance(node, Literal):
            return node.value

        if isinstance(node, Name):
            if node.name in scope.bindings:
                return scope.bindings[node.name]
            if node.name in scope.functions:
                raise ExpressionEvaluationError(f"Function '{node.name}' must be called")
            raise ExpressionEvaluationError(f"Undefined name '{node.name}'")

        if isinstance(node, Logical):
            left = self._eval(node.left, scope)
            if node.op == "and":
                return self._eval(node.right, scope) if left else left
            return left if left else self._eval(node.right, scope)

        if isinstance(node, Unary):
            operand = self._eval(node.operand, scope)
            if node.op == "not":
                return not operand
            if node.op == "-":
                return self._apply(operator.neg, operand)
            return self._apply(operator.pos, operand)

        if isinstance(node, Compare):
            left = self._eval(node.left, scope)
            for op, comparator in zip(node.ops, node.comparators):
                right = self._eval(comparator, scope)
                if not self._apply(COMPARE_FUNCS[op], left, right):
                    return False
                left = right
            return True

        if isinstance(node, Binary):
            left = self._eval(node.left, scope)
            right = self._eval(node.right, scope)
            return self._apply(BINARY_OPS[node.op], left, right)

        if isinstance(node, Member):
            return self._member(self._eval(node.target, scope), node.name)

        if isinstance(node, Index):
            return self._index(self._eval(node.target, scope), self._eval(node.key, scope))

        if isinstance(node, Call):
            return self._call(node, scope)

        raise ExpressionEvaluationError(f"Unsupported expression node: {type(node).__name__}")

    def _call(self, node: Call, scope: ExpressionScope) -> Any:
        if isinstance(node.func, Name):
            func = scope.functions.get(node.func.name)
            if func is None:
                raise ExpressionEvaluationError(f"Function '{node.func.name}' not allowed")
        elif isinstance(node.func, Member):
            func = self._member(self._eval(node.func.target, scope), node.func.name)
            if not callable(func):
                raise ExpressionEvaluationError(f"Member '{node.func.name}' is not callable")
        else:
            raise ExpressionEvaluationError("Only named functions and members can be called")
        args = [self._eval(arg, scope) for arg in node.args]
        return func(*args)

    @staticmethod
    def _member(target: Any, name: str) -> Any:
        if name.startswith("_"):
            raise ExpressionEvaluationError(f"Member '{name}' is private")
        if isinstance(target, Mapping):
            if name not in target:
                raise ExpressionEvaluationError(f"Undefined key '{name}'")
            return target[name]
        allowed = getattr(type(target), "EXPRESSION_MEMBERS", None)
        if allowed is None or name not in allowed:
            raise ExpressionEvaluationError(
                f"Member '{name}' is not available on {type(target).__name__}"
            )
        return getattr(target, name)

    @staticmethod
    def _index(target: Any, key: Any) -> Any:
        if not isinstance(target, (Mapping, list, tuple, str)):
            raise ExpressionEvaluationError(f"Cannot index {type(target).__name__}")
        try:
            return target[key]
        except (LookupError, TypeError) as e:
            raise ExpressionEvaluationError(f"Bad index {key!r}: {e}") from e

    @staticmethod
    def _apply(func: Callable[..., Any], *args: Any) -> Any:
        try:
            return func(*args)
        except (TypeError, ArithmeticError) as e:
            raise ExpressionEvaluationError(str(e)) from e


# =============================================================================
# COUNTER CONDITIONS
# =============================================================================


class ConditionEvaluator:
    """
    Evaluates counter conditions against the current action.

    Variables and switches are read through the stores given here; the
    rest of the scope is rebuilt from the action for every evaluation.
    """

    def __init__(
        self,
        variables: ValueStore,
        switches: ValueStore,
        expressions: Optional[ExpressionEvaluator] = None,
    ):
        self.variables = variables
        self.switches = switches
        self.expressions = expressions or ExpressionEvaluator()

    def build_scope(self, reactor: CounterBattler, action: CounterAction) -> ExpressionScope:
        """Bindings for one evaluation."""
        item = action.item()
        damage = getattr(item, "damage", None)
        item_id = getattr(item, "item_id", 0)
        return ExpressionScope(
            bindings={
                "act": action,
                "item": item,
                "a": action.subject,
                "b": reactor,
                "elementId": getattr(damage, "element_id", 0),
                "skillID": item_id if action.is_skill() else 0,
                "itemID": item_id if action.is_item() else 0,
            },
            functions={
                "v": lambda n: self.variables.value(int(n)),
                "s": lambda n: self.switches.value(int(n)),
            },
        )

    def evaluate(
        self,
        condition: str,
        reactor: CounterBattler,
        action: CounterAction,
        tag: str = "",
    ) -> bool:
        """
        Evaluate a condition to a boolean.

        Raises:
            CounterDeclarationError: If the condition cannot be parsed or
                evaluated
        """
        try:
            return bool(self.expressions.evaluate(condition, self.build_scope(reactor, action)))
        except (ExpressionError, TypeError, ValueError, ArithmeticError, LookupError, RecursionError) as e:
            logger.error(f"Counter condition failed: {condition!r}: {e}")
            raise CounterDeclarationError(condition, str(e), tag=tag) from e

    def check(self, condition: str) -> Optional[str]:
        """Return a syntax error message for a condition, or None if it parses."""
        try:
            self.expressions.compile(condition)
        except ExpressionSyntaxError as e:
            return str(e)
        return None
