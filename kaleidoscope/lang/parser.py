"""Recursive-descent parser for Kaleidoscope, with precedence climbing for binary expressions. Grammar:

```
<unit>        ::= "def" <prototype> <expression> | "extern" <prototype> | <expression>
<prototype>   ::= <identifier> "(" <identifier>* ")"
<expression>  ::= <primary> <binary_rhs>
<binary_rhs>  ::= (<operator> <primary>)*           ; nested according to the precedence table
<primary>     ::= <identifier> ("(" (<expression> ("," <expression>)*)? ")")?
                | <number>
                | "(" <expression> ")"
                | "if" <expression> "then" <expression> "else" <expression>
                | "for" <identifier> "=" <expression> "," <expression> ("," <expression>)? "in" <expression>
```

Units may be followed by any number of ';' separators.
"""

from kaleidoscope.lang.ast import (BinaryOp, Call, Conditional, FunctionDef, Loop, NumberLiteral, Prototype,
                                   VariableRef)
from kaleidoscope.lang.error import ParseError
from kaleidoscope.lang.lexical import Lexer, TokenKind

DEFAULT_PRECEDENCE = {"<": 10, "+": 20, "-": 20, "*": 40}
SEPARATOR = ";"


class Parser:
    """Produces one unit per parse_unit call from source. precedence maps operator characters to their binding
    strength; operators absent from it (or mapped to a value <= 0) are not binary operators.
    """

    def __init__(self, source, precedence=None):
        self.lexer = Lexer(source)
        self.precedence = DEFAULT_PRECEDENCE if precedence is None else precedence

        self.current = self.lexer.next()
        self._skip_separators()

        self._unit_line = self.current.line  # line the unit being parsed starts on

    def _advance(self):
        """Consumes the current token and returns it."""
        token, self.current = self.current, self.lexer.next()
        return token

    def _skip_separators(self):
        while self.current.is_char(SEPARATOR):
            self._advance()

    def _error(self, msg, *exprs):
        return ParseError(msg, self.current, self.lexer.line_text(self.current.line), exprs=list(exprs))

    def _expect_char(self, char, msg):
        if not self.current.is_char(char):
            raise self._error(msg)
        self._advance()

    def _expect_kind(self, kind, msg):
        if self.current.kind is not kind:
            raise self._error(msg)
        return self._advance()

    def has_next(self):
        return self.current.kind is not TokenKind.EOF

    @property
    def line(self):
        """(line text, line number) of the current token."""
        return self.lexer.line_text(self.current.line), self.current.line

    def parse_unit(self):
        """Parses the next top-level unit: a FunctionDef, a Prototype (extern), or a FunctionDef wrapping an anonymous
        expression. Returns None at end of input.
        """
        if not self.has_next():
            return None

        self._unit_line = self.current.line
        if self.current.kind is TokenKind.DEF:
            unit = self.parse_definition()
        elif self.current.kind is TokenKind.EXTERN:
            unit = self.parse_extern()
        else:
            unit = FunctionDef.anonymous(self.parse_expression())

        self._skip_separators()
        return unit

    def synchronize(self):
        """Skips the rest of a unit that failed to parse, up to and including the next separator. A token on a later
        line than the one the unit starts on ends the unit too, since units in a file are often separated by newlines.
        """
        while self.has_next() and not self.current.is_char(SEPARATOR) and self.current.line <= self._unit_line:
            self._advance()
        self._skip_separators()

    def __iter__(self):
        while self.has_next():
            yield self.parse_unit()

    # definition ::= "def" prototype expression
    def parse_definition(self):
        self._advance()  # eat 'def'
        prototype = self.parse_prototype()
        return FunctionDef(prototype, self.parse_expression())

    # external ::= "extern" prototype
    def parse_extern(self):
        self._advance()  # eat 'extern'
        return self.parse_prototype()

    def parse_prototype(self):
        name = self._expect_kind(TokenKind.IDENTIFIER, "expected function name in prototype").lexeme
        self._expect_char("(", "expected '(' in prototype")

        params = []
        while self.current.kind is TokenKind.IDENTIFIER:
            if self.current.lexeme in params:
                raise self._error("duplicate parameter '{}' in prototype", self.current.lexeme)
            params.append(self._advance().lexeme)

        self._expect_char(")", "expected ')' in prototype")
        return Prototype(name, tuple(params))

    def parse_expression(self):
        return self.parse_binary_rhs(0, self.parse_primary())

    def _token_precedence(self):
        """Precedence of the pending binary operator, or -1 if the current token is not one."""
        if self.current.kind is not TokenKind.OTHER:
            return -1
        precedence = self.precedence.get(self.current.lexeme, -1)
        return precedence if precedence > 0 else -1

    def parse_binary_rhs(self, min_precedence, lhs):
        while True:
            precedence = self._token_precedence()

            # if the pending operator binds less tightly than required, lhs is complete
            if precedence < min_precedence:
                return lhs

            op = self._advance().lexeme
            rhs = self.parse_primary()

            # if the operator after rhs binds tighter, it takes rhs as its lhs
            if precedence < self._token_precedence():
                rhs = self.parse_binary_rhs(precedence + 1, rhs)

            lhs = BinaryOp(op, lhs, rhs)

    def parse_primary(self):
        if self.current.kind is TokenKind.IDENTIFIER:
            return self.parse_identifier()
        if self.current.kind is TokenKind.NUMBER:
            return self.parse_number()
        if self.current.is_char("("):
            return self.parse_paren()
        if self.current.kind is TokenKind.IF:
            return self.parse_conditional()
        if self.current.kind is TokenKind.FOR:
            return self.parse_loop()
        raise self._error("unknown token '{}' when expecting an expression", self.current)

    def parse_number(self):
        lexeme = self.current.lexeme
        try:
            value = float(lexeme)
        except ValueError:
            raise self._error("invalid number literal '{}'", lexeme)
        self._advance()
        return NumberLiteral(value)

    def parse_paren(self):
        self._advance()  # eat '('
        expr = self.parse_expression()
        self._expect_char(")", "expected ')'")
        return expr

    def parse_identifier(self):
        name = self._advance().lexeme

        if not self.current.is_char("("):
            return VariableRef(name)

        self._advance()  # eat '('
        args = []
        if not self.current.is_char(")"):
            while True:
                args.append(self.parse_expression())
                if self.current.is_char(")"):
                    break
                self._expect_char(",", "expected ')' or ',' in argument list")

        self._advance()  # eat ')'
        return Call(name, tuple(args))

    def parse_conditional(self):
        self._advance()  # eat 'if'
        condition = self.parse_expression()

        self._expect_kind(TokenKind.THEN, "expected 'then'")
        then_branch = self.parse_expression()

        self._expect_kind(TokenKind.ELSE, "expected 'else'")
        else_branch = self.parse_expression()

        return Conditional(condition, then_branch, else_branch)

    def parse_loop(self):
        self._advance()  # eat 'for'

        var = self._expect_kind(TokenKind.IDENTIFIER, "expected identifier after for").lexeme
        self._expect_char("=", "expected '=' after for")
        start = self.parse_expression()

        self._expect_char(",", "expected ',' after for start value")
        end = self.parse_expression()

        step = None  # optional
        if self.current.is_char(","):
            self._advance()
            step = self.parse_expression()

        self._expect_kind(TokenKind.IN, "expected 'in' after for")
        body = self.parse_expression()

        return Loop(var, start, end, step, body)
