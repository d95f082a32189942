import logging
import math
from dataclasses import dataclass
from enum import Enum
from string import ascii_letters, digits
from types import MappingProxyType

import numpy as np

logger = logging.getLogger(__name__)


class EvaluationError(ValueError):
    pass

class UndefinedVariable(EvaluationError):
    def __init__(self, name):
        super().__init__(f"Undefined variable: {name}")
        self.name = name

class InsufficientOperands(EvaluationError):
    def __init__(self):
        super().__init__("Insufficient operands")

class InvalidExpression(EvaluationError):
    def __init__(self):
        super().__init__("Invalid expression")

class LexError(EvaluationError):
    def __init__(self, character, position):
        super().__init__(f"Unrecognized character {character!r} at position {position}")
        self.character = character
        self.position = position

class UnbalancedParenError(EvaluationError):
    def __init__(self):
        super().__init__("Unbalanced parentheses")


class associativity(Enum):
    left = "left"
    right = "right"

class operator(Enum):
    # (symbol, precedence, associativity); juxtaposition is lexed as a plain "*"
    add = ("+", 1, associativity.left)
    sub = ("-", 1, associativity.left)
    mul = ("*", 2, associativity.left)
    truediv = ("/", 2, associativity.left)
    pow = ("^", 3, associativity.right)

    def __init__(self, symbol, precedence, assoc):
        self.symbol = symbol
        self.precedence = precedence
        self.assoc = assoc

    def yieldsTo(self, top):
        """Whether ``top`` must leave the operator stack before ``self`` is pushed."""
        if self.assoc is associativity.left:
            return self.precedence <= top.precedence
        return self.precedence < top.precedence

    def __call__(self, a, b):
        with np.errstate(all="ignore"):
            if self is operator.add:
                return np.add(a, b)
            if self is operator.sub:
                return np.subtract(a, b)
            if self is operator.mul:
                return np.multiply(a, b)
            if self is operator.truediv:
                return np.divide(a, b)
            if self is operator.pow:
                return np.power(a, b)
        raise AssertionError(f"unhandled operator {self!r}")

    def __repr__(self):
        return self.symbol

class function(Enum):
    sin = "sin"
    cos = "cos"
    tan = "tan"
    sqrt = "sqrt"
    log = "log"
    abs = "abs"
    exp = "exp"
    ceil = "ceil"
    floor = "floor"
    round = "round"

    def __call__(self, value):
        with np.errstate(all="ignore"):
            if self is function.sin:
                return np.sin(value)
            if self is function.cos:
                return np.cos(value)
            if self is function.tan:
                return np.tan(value)
            if self is function.sqrt:
                return np.sqrt(value)
            if self is function.log:
                return np.log(value)
            if self is function.abs:
                return np.abs(value)
            if self is function.exp:
                return np.exp(value)
            if self is function.ceil:
                return np.ceil(value)
            if self is function.floor:
                return np.floor(value)
            if self is function.round:
                # halves round towards +inf: round(-2.5) == -2, round(0.49999999999999994) == 0
                whole = np.floor(value)
                return whole + (value - whole >= 0.5)
        raise AssertionError(f"unhandled function {self!r}")

    def __repr__(self):
        return self.value


OPERATORS = MappingProxyType({op.symbol: op for op in operator})
FUNCTIONS = MappingProxyType({fn.value: fn for fn in function})
CONSTANTS = MappingProxyType({"pi": math.pi, "e": math.e})


@dataclass(frozen=True)
class number:
    value: float

    def __repr__(self):
        return f"{self.value}"

@dataclass(frozen=True)
class variable:
    name: str

    def __repr__(self):
        return f"{self.name}"


DIGITS = frozenset(digits)
LETTERS = frozenset(ascii_letters)
ALPHANUMERIC = DIGITS | LETTERS
SIGNS = frozenset("+-")
SYMBOLS = frozenset("+-*/^()")


class kind(Enum):
    number = "number"
    variable = "variable"
    constant = "constant"
    function = "function"
    operator = "operator"
    lparen = "("
    rparen = ")"

def classify(lexeme):
    first = lexeme[0]
    if first in DIGITS or first == "." or (len(lexeme) > 1 and first in SIGNS):
        return kind.number
    if first in LETTERS:
        if lexeme in FUNCTIONS:
            return kind.function
        if lexeme in CONSTANTS:
            return kind.constant
        return kind.variable
    if lexeme == "(":
        return kind.lparen
    if lexeme == ")":
        return kind.rparen
    if lexeme in OPERATORS:
        return kind.operator
    raise ValueError(f"not a lexeme: {lexeme!r}")


def scanDigits(string, index):
    while index < len(string) and string[index] in DIGITS:
        index += 1
    return index

def scanNumber(string, start):
    """Return the index just past a number starting at ``start``, or ``start`` if none does."""
    index = start
    if index < len(string) and string[index] in SIGNS:
        index += 1
    integerEnd = scanDigits(string, index)
    if integerEnd + 1 < len(string) and string[integerEnd] == "." and string[integerEnd + 1] in DIGITS:
        index = scanDigits(string, integerEnd + 1)
    elif integerEnd > index:
        index = integerEnd
    else:
        return start
    if index < len(string) and string[index] in "eE":
        exponent = index + 1
        if exponent < len(string) and string[exponent] in SIGNS:
            exponent += 1
        if exponent < len(string) and string[exponent] in DIGITS:
            index = scanDigits(string, exponent)
    return index

def scanIdentifier(string, index):
    index += 1
    while index < len(string) and string[index] in ALPHANUMERIC:
        index += 1
    return index

def acceptsSign(lexemes):
    # a sign only belongs to a number where an operand is expected
    return not lexemes or lexemes[-1] == "(" or lexemes[-1] in OPERATORS or lexemes[-1] in FUNCTIONS

def tokenize(string, strict=False):
    lexemes = []
    index = 0
    while index < len(string):
        char = string[index]
        if char.isspace():
            index += 1
            continue
        end = index
        if char not in SIGNS or acceptsSign(lexemes):
            end = scanNumber(string, index)
        if end == index and char in LETTERS:
            end = scanIdentifier(string, index)
        if end == index and char in SYMBOLS:
            end = index + 1
        if end == index:
            if strict:
                raise LexError(char, index)
            logger.debug("dropping unrecognized character %r at %d", char, index)
            index += 1
            continue
        lexemes.append(string[index:end])
        index = end
    return lexemes


IMPLICIT_PAIRS = frozenset([
    (kind.number, kind.variable),
    (kind.number, kind.function),
    (kind.number, kind.lparen),
    (kind.variable, kind.number),
    (kind.variable, kind.function),
    (kind.variable, kind.lparen),
    (kind.rparen, kind.number),
    (kind.rparen, kind.variable),
    (kind.rparen, kind.function),
    (kind.rparen, kind.lparen),
    ])

def addImplicitMultiplication(lexemes):
    """Insert ``*`` between juxtaposed operands, e.g. ``2x`` or ``(x+1)(y+1)``."""
    result = []
    kinds = [classify(lexeme) for lexeme in lexemes]
    for index, lexeme in enumerate(lexemes):
        result.append(lexeme)
        if index + 1 < len(lexemes) and (kinds[index], kinds[index + 1]) in IMPLICIT_PAIRS:
            result.append(operator.mul.symbol)
    return result


PAREN = "("

def infixToPostfix(lexemes, strict=False):
    stack = []
    operatorStack = []
    for lexeme in lexemes:
        lexemeKind = classify(lexeme)
        if lexemeKind is kind.number:
            stack.append(number(np.float64(float(lexeme))))
        elif lexemeKind is kind.function:
            operatorStack.append(FUNCTIONS[lexeme])
        elif lexemeKind in (kind.variable, kind.constant):
            # constants are resolved at evaluation time, ahead of the scope
            stack.append(variable(lexeme))
        elif lexemeKind is kind.lparen:
            operatorStack.append(PAREN)
        elif lexemeKind is kind.rparen:
            while operatorStack and operatorStack[-1] is not PAREN:
                stack.append(operatorStack.pop())
            if operatorStack:
                operatorStack.pop()
            elif strict:
                raise UnbalancedParenError()
            if operatorStack and isinstance(operatorStack[-1], function):
                stack.append(operatorStack.pop())
        elif lexemeKind is kind.operator:
            incoming = OPERATORS[lexeme]
            while (
                    operatorStack
                    and isinstance(operatorStack[-1], operator)
                    and incoming.yieldsTo(operatorStack[-1])
                    ):
                stack.append(operatorStack.pop())
            operatorStack.append(incoming)
    while operatorStack:
        item = operatorStack.pop()
        if item is PAREN:
            if strict:
                raise UnbalancedParenError()
            continue
        stack.append(item)
    return stack


def popOperands(stack, count):
    if len(stack) < count:
        raise InsufficientOperands()
    return [stack.pop() for _ in range(count)]

def resolve(name, scope):
    if name in CONSTANTS:
        return np.float64(CONSTANTS[name])
    if name in scope:
        return np.float64(scope[name])
    raise UndefinedVariable(name)

def calculatePostfix(postfixList, scope=None):
    """Run an RPN sequence on an operand stack and return the single value left on it.

    Arithmetic follows IEEE doubles: ``1/0`` is ``inf`` and ``sqrt(-1)`` is ``nan``.
    """
    scope = scope or {}
    stack = []
    for item in postfixList:
        if isinstance(item, number):
            stack.append(item.value)
        elif isinstance(item, variable):
            stack.append(resolve(item.name, scope))
        elif isinstance(item, operator):
            b, a = popOperands(stack, 2)
            stack.append(item(a, b))
        elif isinstance(item, function):
            arg, = popOperands(stack, 1)
            stack.append(item(arg))
        else:
            raise TypeError(f"not a postfix token: {item!r}")
    if len(stack) != 1:
        raise InvalidExpression()
    return float(stack[0])


class compiledExpression:
    def __init__(self, source, postfixList):
        self.source = source
        self.postfix = tuple(postfixList)

    @property
    def variables(self):
        # free names in order of first appearance
        names = []
        for item in self.postfix:
            if isinstance(item, variable) and item.name not in CONSTANTS and item.name not in names:
                names.append(item.name)
        return names

    def evaluate(self, scope=None):
        return calculatePostfix(self.postfix, scope)

    def __call__(self, **scope):
        return self.evaluate(scope)

    def __repr__(self):
        return " ".join(repr(item) for item in self.postfix)


class MathParser:
    """Evaluates arithmetic formulas such as ``2x + sin(y)^2`` without ``eval``.

    With ``strict=True`` unrecognized characters raise ``LexError`` and
    unbalanced parentheses raise ``UnbalancedParenError``; otherwise they are
    dropped and tolerated.
    """
    def __init__(self, strict=False):
        self.strict = strict

    def parse(self, expression):
        lexemes = addImplicitMultiplication(tokenize(expression, self.strict))
        postfixList = infixToPostfix(lexemes, self.strict)
        logger.debug("parsed %r -> %s", expression, postfixList)
        return postfixList

    def compile(self, expression):
        return compiledExpression(expression, self.parse(expression))

    def evaluate(self, expression, scope=None):
        return calculatePostfix(self.parse(expression), scope)


defaultParser = MathParser()

def getFunc(string):
    return defaultParser.compile(string)

def calculateStr(string, scope=None):
    return defaultParser.evaluate(string, scope)
