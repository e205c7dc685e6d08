"""
Formula Evaluator - parses and evaluates pricing formulas.

A formula is four-operator arithmetic over decimal literals, parentheses
and the single variable ``cost``:

    cost * 1.2
    (cost + 0.5) * 1.1
    3.0                 # fixed price

Grammar (recursive descent, usual precedence, left associative):

    expr   := term (("+" | "-") term)*
    term   := factor (("*" | "/") factor)*
    factor := ("+" | "-") factor | NUMBER | "cost" | "(" expr ")"

All arithmetic is done with Decimal so stored currency values never pick
up binary float drift.
"""
import re
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from typing import Optional, Union

from .errors import DivisionByZeroError, FormulaSyntaxError, MissingCostError, PricingArithmeticError

Number = Union[int, float, Decimal]

COST_VARIABLE = "cost"

_TOKEN_RE = re.compile(
    r"\s*(?:(?P<number>\d+(?:\.\d*)?|\.\d+)|(?P<name>[A-Za-z_][A-Za-z_0-9]*)|(?P<op>[-+*/()]))"
)


@dataclass(frozen=True)
class Token:
    kind: str  # "number", "name", "op", "invalid" or "end"
    text: str
    position: int


@dataclass(frozen=True)
class Literal:
    value: Decimal


@dataclass(frozen=True)
class CostRef:
    pass


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: "Node"


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: "Node"
    right: "Node"


Node = Union[Literal, CostRef, UnaryOp, BinaryOp]


@dataclass(frozen=True)
class Expression:
    """A parsed formula, reusable across evaluations."""
    source: str
    root: Node
    uses_cost: bool

    def evaluate(self, cost: Optional[Number]) -> Decimal:
        if self.uses_cost and cost is None:
            raise MissingCostError(self.source)
        bound = to_decimal(cost) if cost is not None else None
        try:
            return _eval(self.root, bound, self.source)
        except ArithmeticError as e:
            raise PricingArithmeticError(f"formula '{self.source}'", type(e).__name__) from e


def to_decimal(value: Number) -> Decimal:
    """Convert a number to Decimal, going through str() for floats."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def tokenize(formula: str) -> list[Token]:
    tokens = []
    pos = 0
    length = len(formula)
    while pos < length:
        if formula[pos:].strip() == "":
            break
        match = _TOKEN_RE.match(formula, pos)
        if not match:
            # Left for the parser to report, so errors come out in reading order
            bad = pos
            while formula[bad].isspace():
                bad += 1
            tokens.append(Token(kind="invalid", text=formula[bad], position=bad))
            pos = bad + 1
            continue
        kind = match.lastgroup
        start = match.start(kind)
        tokens.append(Token(kind=kind, text=match.group(kind), position=start))
        pos = match.end()
    tokens.append(Token(kind="end", text="", position=length))
    return tokens


class _Parser:
    """Recursive-descent parser producing an expression tree."""

    def __init__(self, formula: str):
        self.formula = formula
        self.tokens = tokenize(formula)
        self.index = 0
        self.uses_cost = False

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def _advance(self) -> Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def _error(self, reason: str, token: Optional[Token] = None):
        token = token or self.current
        raise FormulaSyntaxError(self.formula, token.position, reason)

    def parse(self) -> Expression:
        if self.current.kind == "end":
            self._error("Empty formula")
        root = self._expr()
        if self.current.kind != "end":
            self._error(f"Unexpected '{self.current.text}'")
        return Expression(source=self.formula, root=root, uses_cost=self.uses_cost)

    def _expr(self) -> Node:
        node = self._term()
        while self.current.kind == "op" and self.current.text in "+-":
            op = self._advance().text
            node = BinaryOp(op, node, self._term())
        return node

    def _term(self) -> Node:
        node = self._factor()
        while self.current.kind == "op" and self.current.text in "*/":
            op = self._advance().text
            node = BinaryOp(op, node, self._factor())
        return node

    def _factor(self) -> Node:
        token = self.current
        if token.kind == "op" and token.text in "+-":
            self._advance()
            return UnaryOp(token.text, self._factor())
        if token.kind == "number":
            self._advance()
            return Literal(Decimal(token.text))
        if token.kind == "name":
            if token.text.lower() != COST_VARIABLE:
                self._error(f"Unknown identifier '{token.text}'")
            self._advance()
            self.uses_cost = True
            return CostRef()
        if token.kind == "op" and token.text == "(":
            self._advance()
            node = self._expr()
            if not (self.current.kind == "op" and self.current.text == ")"):
                self._error("Expected ')'")
            self._advance()
            return node
        if token.kind == "end":
            self._error("Unexpected end of formula")
        self._error(f"Unexpected '{token.text}'")


def _eval(node: Node, cost: Optional[Decimal], source: str) -> Decimal:
    if isinstance(node, Literal):
        return node.value
    if isinstance(node, CostRef):
        return cost
    if isinstance(node, UnaryOp):
        value = _eval(node.operand, cost, source)
        return -value if node.op == "-" else value

    left = _eval(node.left, cost, source)
    right = _eval(node.right, cost, source)
    if node.op == "+":
        return left + right
    if node.op == "-":
        return left - right
    if node.op == "*":
        return left * right
    if right == 0:
        raise DivisionByZeroError(source)
    return left / right


@lru_cache(maxsize=1024)
def parse(formula: str) -> Expression:
    """Parse a formula into a reusable Expression. Results are cached."""
    if formula is None:
        raise FormulaSyntaxError("", 0, "Empty formula")
    return _Parser(formula).parse()


def references_cost(formula: str) -> bool:
    """Return True if the formula depends on the cost variable."""
    return parse(formula).uses_cost


def evaluate(formula: str, cost: Optional[Number]) -> Decimal:
    """
    Evaluate a pricing formula against a base cost.

    Args:
        formula: Formula text, e.g. "cost * 1.2" or "3.0"
        cost: Item base cost, or None when unknown

    Returns:
        Unrounded price as Decimal

    Raises:
        FormulaSyntaxError: formula cannot be parsed
        MissingCostError: formula uses cost and cost is None
        DivisionByZeroError: formula divides by zero
        PricingArithmeticError: result exceeds decimal precision or range
    """
    return parse(formula).evaluate(cost)
