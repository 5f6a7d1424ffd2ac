# src/splitloop/engine/expression_parser.py
"""Safe expression parser for collection selection.

Two expression families are supported, distinguished by syntax:

- Structural queries over XML element trees:
    "xpath:<path>"          -> first matching element (or None)
    "xpath-branch:<path>"   -> list of all matching elements
  Paths use the ElementTree path subset. Absolute paths ("/a/b", "//b") are
  anchored at the document, so the root element itself can match.

- Value expressions in a restricted subset of Python, evaluated against the
  message with two names in scope:
    payload -> message.payload
    vars    -> message.properties

Value expressions use Python's ast module and are NOT eval(). They are
parsed and validated at construction, then evaluated against message data.
"""

from __future__ import annotations

import ast
import operator
import xml.etree.ElementTree as ET
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from splitloop.contracts.message import Message

XPATH_PREFIX = "xpath:"
XPATH_BRANCH_PREFIX = "xpath-branch:"

# Names visible to value expressions
_DATA_NAMES = frozenset({"payload", "vars"})


class ExpressionSecurityError(Exception):
    """Raised when expression contains forbidden constructs."""


class ExpressionSyntaxError(Exception):
    """Raised when expression is not valid syntax."""


class ExpressionEvaluationError(Exception):
    """Raised when expression evaluation fails at runtime.

    Wraps lookup and type errors raised while evaluating a valid expression
    against message data. The original exception is chained via __cause__.
    """


# Selectors navigate data and choose between branches; they do not compute.
_COMPARISONS: dict[type[ast.cmpop], Any] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}

_UNARY: dict[type[ast.unaryop], Any] = {
    ast.Not: operator.not_,
    ast.USub: operator.neg,
}

_ALLOWED_NODES: tuple[type[ast.AST], ...] = (
    ast.Expression,
    ast.Name,
    ast.Load,
    ast.Constant,
    ast.Subscript,
    ast.Attribute,
    ast.Call,
    ast.IfExp,
    ast.BoolOp,
    ast.And,
    ast.Or,
    ast.UnaryOp,
    ast.Compare,
    ast.List,
    ast.Tuple,
    *_COMPARISONS,
    *_UNARY,
)


class CompiledExpression(Protocol):
    """A parsed selection expression ready to evaluate against messages."""

    @property
    def expression(self) -> str: ...

    @property
    def is_structural(self) -> bool: ...

    def evaluate(self, message: Message) -> Any: ...


def _is_data_derived(node: ast.expr) -> bool:
    """payload, vars, or anything reached from them by subscript or .get()."""
    if isinstance(node, ast.Name):
        return node.id in _DATA_NAMES
    if isinstance(node, ast.Subscript):
        return _is_data_derived(node.value)
    return _is_get_call(node)


def _is_get_call(node: ast.expr) -> bool:
    return (
        isinstance(node, ast.Call)
        and isinstance(node.func, ast.Attribute)
        and node.func.attr == "get"
        and _is_data_derived(node.func.value)
    )


def _is_none(node: ast.expr) -> bool:
    return isinstance(node, ast.Constant) and node.value is None


def _validation_errors(tree: ast.Expression) -> list[str]:
    """Every reason tree is not an acceptable selector, in walk order."""
    errors: list[str] = []
    get_funcs = {id(node.func) for node in ast.walk(tree) if isinstance(node, ast.Call) and _is_get_call(node)}

    for node in ast.walk(tree):
        if not isinstance(node, _ALLOWED_NODES):
            errors.append(f"{type(node).__name__} is not allowed in a selection expression")
        elif isinstance(node, ast.Name) and node.id not in _DATA_NAMES:
            errors.append(f"Forbidden name: {node.id!r}")
        elif isinstance(node, ast.Constant) and not isinstance(node.value, str | int | float | bool | None):
            errors.append(f"Forbidden constant type: {type(node.value).__name__}")
        elif isinstance(node, ast.Attribute) and id(node) not in get_funcs:
            if node.attr == "get":
                errors.append("Bare '.get' is forbidden; call it as .get(key)")
            else:
                errors.append(f"Forbidden attribute access: {node.attr!r}")
        elif isinstance(node, ast.Call):
            if not _is_get_call(node):
                errors.append(f"Forbidden function call: {ast.unparse(node.func)}")
            elif node.keywords or not 1 <= len(node.args) <= 2:
                errors.append(".get() takes a key and an optional default")
        elif isinstance(node, ast.Subscript) and not _is_data_derived(node.value):
            errors.append(f"Subscript is only allowed on payload or vars data, not {ast.unparse(node.value)}")
        elif isinstance(node, ast.Compare):
            operands = [node.left, *node.comparators]
            for i, op in enumerate(node.ops):
                if isinstance(op, ast.Is | ast.IsNot) and not (_is_none(operands[i]) or _is_none(operands[i + 1])):
                    errors.append("'is' and 'is not' are only allowed for None checks")
    return errors


class _ExpressionEvaluator(ast.NodeVisitor):
    """Evaluates a validated selector against message data."""

    def __init__(self, names: dict[str, Any]) -> None:
        self._names = names

    def visit_Expression(self, node: ast.Expression) -> Any:
        return self.visit(node.body)

    def visit_Name(self, node: ast.Name) -> Any:
        return self._names[node.id]

    def visit_Constant(self, node: ast.Constant) -> Any:
        return node.value

    def visit_Subscript(self, node: ast.Subscript) -> Any:
        value = self.visit(node.value)
        key = self.visit(node.slice)
        try:
            return value[key]
        except KeyError as e:
            if isinstance(value, dict):
                msg = f"Key {key!r} not found. Available keys: {list(value)}"
            else:
                msg = f"Key {key!r} not found in {type(value).__name__}"
            raise ExpressionEvaluationError(msg) from e
        except IndexError as e:
            raise ExpressionEvaluationError(f"Index {key} out of range for {type(value).__name__} of length {len(value)}") from e
        except TypeError as e:
            raise ExpressionEvaluationError(f"Cannot access {key!r} on {type(value).__name__}: {e}") from e

    def visit_Call(self, node: ast.Call) -> Any:
        assert isinstance(node.func, ast.Attribute)
        owner = self.visit(node.func.value)
        args = [self.visit(arg) for arg in node.args]
        try:
            getter = owner.get
        except AttributeError as e:
            raise ExpressionEvaluationError(f"{type(owner).__name__} has no .get(); it is not a mapping") from e
        try:
            return getter(*args)
        except TypeError as e:
            raise ExpressionEvaluationError(f"invalid argument to .get(): {e}") from e

    def visit_IfExp(self, node: ast.IfExp) -> Any:
        return self.visit(node.body) if self.visit(node.test) else self.visit(node.orelse)

    def visit_BoolOp(self, node: ast.BoolOp) -> Any:
        stop_when = not isinstance(node.op, ast.And)
        for value in node.values:
            result = self.visit(value)
            if bool(result) is stop_when:
                break
        return result

    def visit_UnaryOp(self, node: ast.UnaryOp) -> Any:
        operand = self.visit(node.operand)
        try:
            return _UNARY[type(node.op)](operand)
        except TypeError as e:
            raise ExpressionEvaluationError(f"cannot apply {type(node.op).__name__} to {type(operand).__name__}") from e

    def visit_Compare(self, node: ast.Compare) -> Any:
        left = self.visit(node.left)
        for op, comparator in zip(node.ops, node.comparators, strict=True):
            right = self.visit(comparator)
            try:
                if not _COMPARISONS[type(op)](left, right):
                    return False
            except TypeError as e:
                msg = f"cannot compare {type(left).__name__} and {type(right).__name__} with {type(op).__name__}"
                raise ExpressionEvaluationError(msg) from e
            left = right
        return True

    def visit_List(self, node: ast.List) -> Any:
        return [self.visit(elt) for elt in node.elts]

    def visit_Tuple(self, node: ast.Tuple) -> Any:
        return tuple(self.visit(elt) for elt in node.elts)


class ExpressionParser:
    """Safe parser for value expressions.

    Parses and validates expressions at construction time, then evaluates
    them against messages. A selector may only navigate message data and
    choose between alternatives:

    - Data access: payload['field'], vars['name'][0], payload.get('f', default)
    - Ternary expressions: x if condition else y
    - Conditions: ==, !=, in, not in, is None, and, or, not
    - Literals: strings, numbers, booleans, None, lists and tuples

    Everything else (arithmetic, calls other than .get(), other attribute
    access, comprehensions, slices, other names) is rejected when the
    expression is parsed.

    Example:
        parser = ExpressionParser("payload['orders']")
        orders = parser.evaluate(message)
    """

    is_structural = False

    def __init__(self, expression: str) -> None:
        """Parse and validate expression at construction time.

        Raises:
            ExpressionSecurityError: If expression contains forbidden constructs
            ExpressionSyntaxError: If expression is not valid Python syntax
        """
        self._expression = expression

        try:
            self._ast = ast.parse(expression, mode="eval")
        except SyntaxError as e:
            raise ExpressionSyntaxError(f"Invalid syntax: {e.msg}") from e

        errors = _validation_errors(self._ast)
        if errors:
            raise ExpressionSecurityError("; ".join(errors))

    @property
    def expression(self) -> str:
        """Return the original expression string."""
        return self._expression

    def evaluate(self, message: Message) -> Any:
        """Evaluate expression against the message's payload and properties."""
        evaluator = _ExpressionEvaluator({"payload": message.payload, "vars": message.properties})
        return evaluator.visit(self._ast)

    def __repr__(self) -> str:
        return f"ExpressionParser({self._expression!r})"


class XPathQuery:
    """Structural query over an XML element tree payload.

    In scalar mode evaluate() returns the first matching element (or None);
    in branch mode it returns the list of all matching elements, in document
    order. Returned elements are live nodes of the payload tree, so mutating
    them mutates the document.
    """

    is_structural = True

    def __init__(self, expression: str) -> None:
        """Parse a structural expression.

        Raises:
            ExpressionSyntaxError: If the prefix is unknown or the path is invalid
        """
        if expression.startswith(XPATH_BRANCH_PREFIX):
            self._branch = True
            path = expression[len(XPATH_BRANCH_PREFIX) :]
        elif expression.startswith(XPATH_PREFIX):
            self._branch = False
            path = expression[len(XPATH_PREFIX) :]
        else:
            raise ExpressionSyntaxError(f"Not a structural expression: {expression!r}")

        path = path.strip()
        if not path:
            raise ExpressionSyntaxError(f"Empty path in structural expression {expression!r}")

        self._expression = expression
        self._absolute = path.startswith("/")
        self._path = f".{path}" if self._absolute else path

        # ElementTree compiles paths lazily. Its path compiler reports bad
        # paths as SyntaxError, or as KeyError and TypeError for truncated
        # predicates and bare attribute steps.
        try:
            ET.Element("document").findall(self._path)
        except (SyntaxError, KeyError, TypeError) as e:
            raise ExpressionSyntaxError(f"Invalid path {path!r}: {e}") from e

    @property
    def expression(self) -> str:
        return self._expression

    @property
    def is_branch(self) -> bool:
        return self._branch

    def to_branch(self) -> "XPathQuery":
        """Return the branch-producing variant of this query."""
        if self._branch:
            return self
        return XPathQuery(XPATH_BRANCH_PREFIX + self._expression[len(XPATH_PREFIX) :])

    def evaluate(self, message: Message) -> Any:
        """Run the query against message.payload.

        Raises:
            ExpressionEvaluationError: If the payload is not an element tree
        """
        matches = self._context(message.payload).findall(self._path)
        if self._branch:
            return matches
        return matches[0] if matches else None

    def _context(self, payload: Any) -> ET.Element:
        if isinstance(payload, ET.ElementTree):
            root = payload.getroot()
        elif isinstance(payload, ET.Element):
            root = payload
        else:
            raise ExpressionEvaluationError(
                f"Structural query {self._expression!r} requires an XML document payload, got {type(payload).__name__}"
            )
        if not self._absolute:
            return root
        # Anchor absolute paths above the root element so the root can match.
        # Elements carry no parent pointer, so this leaves the tree untouched.
        document = ET.Element("document")
        document.append(root)
        return document

    def __repr__(self) -> str:
        return f"XPathQuery({self._expression!r})"


def is_structural(expression: str | None) -> bool:
    """True if expression is a structural (xpath) query."""
    return expression is not None and (expression.startswith(XPATH_PREFIX) or expression.startswith(XPATH_BRANCH_PREFIX))


def compile_expression(expression: str) -> CompiledExpression:
    """Parse a selection expression, picking the family from its syntax.

    Raises:
        ExpressionSyntaxError: If the expression cannot be parsed
        ExpressionSecurityError: If a value expression uses forbidden constructs
    """
    if is_structural(expression):
        return XPathQuery(expression)
    return ExpressionParser(expression)
