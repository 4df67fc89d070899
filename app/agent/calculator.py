# app/agent/calculator.py
"""
Small arithmetic evaluator for the `calculate` command.

Grammar (recursive descent):

    expr   := term (('+' | '-') term)*
    term   := factor (('*' | '/') factor)*
    factor := ('+' | '-') factor | NUMBER | '(' expr ')'

Nothing outside this grammar is accepted, so caller text is never executed.
"""
import math
import re
from typing import List, Union

Number = Union[int, float]

ALLOWED_CHARS = re.compile(r"[^0-9+\-*/().\s]")
_TOKEN = re.compile(r"\s*(?:(\d+\.\d*|\.\d+|\d+)|(.))")


class CalculationError(ValueError):
    pass


def filter_expression(text: str) -> str:
    """Keep only digits, operators, parentheses, dots and whitespace."""
    return ALLOWED_CHARS.sub("", text)


def _tokenize(expression: str) -> List[str]:
    tokens = []
    for number, op in _TOKEN.findall(expression):
        if number:
            tokens.append(number)
        elif op.strip():
            if op not in "+-*/()":
                raise CalculationError(f"unexpected character {op!r}")
            tokens.append(op)
    return tokens


class _Parser:
    def __init__(self, tokens: List[str]):
        self.tokens = tokens
        self.pos = 0

    def peek(self):
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def take(self):
        token = self.peek()
        if token is None:
            raise CalculationError("unexpected end of expression")
        self.pos += 1
        return token

    def parse(self) -> Number:
        value = self.expr()
        if self.peek() is not None:
            raise CalculationError(f"unexpected token {self.peek()!r}")
        return value

    def expr(self) -> Number:
        value = self.term()
        while self.peek() in ("+", "-"):
            if self.take() == "+":
                value = value + self.term()
            else:
                value = value - self.term()
        return value

    def term(self) -> Number:
        value = self.factor()
        while self.peek() in ("*", "/"):
            if self.take() == "*":
                value = value * self.factor()
            else:
                divisor = self.factor()
                if divisor == 0:
                    raise CalculationError("division by zero")
                value = value / divisor
        return value

    def factor(self) -> Number:
        token = self.take()
        if token == "+":
            return self.factor()
        if token == "-":
            return -self.factor()
        if token == "(":
            value = self.expr()
            if self.take() != ")":
                raise CalculationError("missing closing parenthesis")
            return value
        if token in "+-*/)":
            raise CalculationError(f"unexpected token {token!r}")
        try:
            return float(token) if "." in token else int(token)
        except ValueError:
            # e.g. integer literals past the interpreter's digit limit
            raise CalculationError(f"number too large: {token[:20]}...")


def evaluate(expression: str) -> Number:
    """Evaluate an arithmetic expression, raising CalculationError on any problem."""
    tokens = _tokenize(expression)
    if not tokens:
        raise CalculationError("empty expression")

    result = _Parser(tokens).parse()
    if isinstance(result, float):
        if not math.isfinite(result):
            raise CalculationError("result is not finite")
        if result.is_integer():
            return int(result)
    return result
