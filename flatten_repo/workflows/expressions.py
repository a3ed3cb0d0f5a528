"""
A small evaluator for GitHub Actions expressions.

Covers the subset the generated pipelines use: dotted context lookups,
string/number/boolean literals, ==, !=, !, &&, ||, parentheses and the
status functions always(), success(), failure(), cancelled().
String comparison ignores case, as the Actions runner does.
"""

import re
from typing import Any

EXPRESSION_RE = re.compile(r"\$\{\{\s*(.*?)\s*\}\}")

_TOKEN_RE = re.compile(r"""
    \s*(?:
        (?P<string>'(?:[^']|'')*')
      | (?P<number>-?\d+(?:\.\d+)?)
      | (?P<op>==|!=|&&|\|\||!|\(|\)|,)
      | (?P<name>[A-Za-z_][A-Za-z0-9_\-]*(?:\.[A-Za-z_*][A-Za-z0-9_\-]*)*)
    )""", re.VERBOSE)


class ExpressionError(ValueError):
    """The expression could not be parsed."""


def tokenize(expr: str) -> list[tuple[str, str]]:
    tokens = []
    pos = 0
    expr = expr.rstrip()
    while pos < len(expr):
        m = _TOKEN_RE.match(expr, pos)
        if not m or m.end() == pos:
            raise ExpressionError(f"Unexpected input at {pos}: {expr[pos:]!r}")
        kind = m.lastgroup
        tokens.append((kind, m.group(kind)))
        pos = m.end()
    return tokens


def lookup(context: dict, dotted: str) -> Any:
    """Resolve a dotted name against context; missing keys give None."""
    value: Any = context
    for part in dotted.split("."):
        if isinstance(value, dict) and part in value:
            value = value[part]
        else:
            return None
    return value


def _truthy(value: Any) -> bool:
    return value not in (None, False, 0, "")


def _equals(left: Any, right: Any) -> bool:
    if left is None and isinstance(right, str):
        left = ""
    if right is None and isinstance(left, str):
        right = ""
    if isinstance(left, str) and isinstance(right, str):
        return left.casefold() == right.casefold()
    return left == right


def _needs_results(context: dict) -> list[str]:
    needs = context.get("needs") or {}
    return [str((job or {}).get("result", "")) for job in needs.values()]


def _status_function(name: str, context: dict) -> bool:
    results = _needs_results(context)
    if name == "always":
        return True
    if name == "success":
        return all(r == "success" for r in results)
    if name == "failure":
        return any(r == "failure" for r in results)
    if name == "cancelled":
        return bool(context.get("cancelled")) or any(r == "cancelled" for r in results)
    raise ExpressionError(f"Unsupported function: {name}()")


class _Parser:
    def __init__(self, tokens: list[tuple[str, str]], context: dict):
        self.tokens = tokens
        self.pos = 0
        self.context = context

    def peek(self) -> tuple[str, str] | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def take(self, value: str | None = None) -> tuple[str, str]:
        tok = self.peek()
        if tok is None or (value is not None and tok[1] != value):
            raise ExpressionError(f"Expected {value or 'a token'}, got {tok[1] if tok else 'end of input'}")
        self.pos += 1
        return tok

    def parse(self) -> Any:
        value = self.parse_or()
        if self.peek() is not None:
            raise ExpressionError(f"Unexpected token: {self.peek()[1]}")
        return value

    def parse_or(self) -> Any:
        left = self.parse_and()
        while self.peek() == ("op", "||"):
            self.take()
            right = self.parse_and()
            left = left if _truthy(left) else right
        return left

    def parse_and(self) -> Any:
        left = self.parse_compare()
        while self.peek() == ("op", "&&"):
            self.take()
            right = self.parse_compare()
            left = right if _truthy(left) else left
        return left

    def parse_compare(self) -> Any:
        left = self.parse_unary()
        tok = self.peek()
        if tok in (("op", "=="), ("op", "!=")):
            self.take()
            right = self.parse_unary()
            same = _equals(left, right)
            return same if tok[1] == "==" else not same
        return left

    def parse_unary(self) -> Any:
        if self.peek() == ("op", "!"):
            self.take()
            return not _truthy(self.parse_unary())
        return self.parse_primary()

    def parse_primary(self) -> Any:
        kind, value = self.take()
        if kind == "string":
            return value[1:-1].replace("''", "'")
        if kind == "number":
            return float(value) if "." in value else int(value)
        if kind == "op" and value == "(":
            inner = self.parse_or()
            self.take(")")
            return inner
        if kind == "name":
            if value in ("true", "false"):
                return value == "true"
            if value == "null":
                return None
            if self.peek() == ("op", "("):
                self.take("(")
                self.take(")")
                return _status_function(value, self.context)
            return lookup(self.context, value)
        raise ExpressionError(f"Unexpected token: {value}")


def evaluate(expr: str, context: dict) -> Any:
    """Evaluate an expression (with or without the ${{ }} wrapper)."""
    m = EXPRESSION_RE.fullmatch(expr.strip())
    if m:
        expr = m.group(1)
    return _Parser(tokenize(expr), context).parse()


def evaluate_condition(expr: str | bool | None, context: dict) -> bool:
    """
    Evaluate a job-level if: condition.

    A missing condition means success(), matching the runner's default.
    """
    if expr is None:
        return _status_function("success", context)
    if isinstance(expr, bool):
        return expr
    return _truthy(evaluate(str(expr), context))


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def substitute(text: str, context: dict) -> str:
    """Replace every ${{ ... }} in text with its value from context."""
    return EXPRESSION_RE.sub(lambda m: _to_text(evaluate(m.group(1), context)), text)


def branch_context(branch: str, **github) -> dict:
    """Build a minimal github context for a push to branch."""
    ctx = {"ref": f"refs/heads/{branch}", "ref_name": branch}
    ctx.update(github)
    return {"github": ctx}
