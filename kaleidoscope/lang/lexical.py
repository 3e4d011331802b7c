"""Lexical analysis for Kaleidoscope. Turns arbitrary source text into a lazy stream of tokens. The lexer never fails:
characters it does not recognize are handed to the parser as single-character OTHER tokens.

Tokens can be loosely defined as follows:

```
<identifier> ::= [A-Za-z][A-Za-z0-9]*   ; keywords (def, extern, if, then, else, for, in) are matched exactly
<number>     ::= [0-9.]+                ; not validated here, see Parser.parse_number
<comment>    ::= "#" <char>*            ; runs to the end of the line and is skipped
<other>      ::= <char>                 ; anything else, e.g. operators, parentheses, ';'
```
"""

import string
from dataclasses import dataclass
from enum import Enum


class TokenKind(Enum):
    EOF = "end of input"

    # commands
    DEF = "def"
    EXTERN = "extern"

    # control flow
    IF = "if"
    THEN = "then"
    ELSE = "else"
    FOR = "for"
    IN = "in"

    # primary
    IDENTIFIER = "identifier"
    NUMBER = "number"

    OTHER = "other"


KEYWORDS = {kind.value: kind for kind in (TokenKind.DEF, TokenKind.EXTERN, TokenKind.IF, TokenKind.THEN,
                                          TokenKind.ELSE, TokenKind.FOR, TokenKind.IN)}


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    lexeme: str
    line: int = 1  # 1-based
    col: int = 0   # 0-based offset into line

    def is_char(self, char):
        """Whether or not this token is the OTHER token char."""
        return self.kind is TokenKind.OTHER and self.lexeme == char

    def __str__(self):
        return self.lexeme if self.kind is not TokenKind.EOF else self.kind.value


class Lexer:
    """Cursor over a source string. next produces one Token at a time."""
    ALPHA = frozenset(string.ascii_letters)
    ALNUM = frozenset(string.ascii_letters + string.digits)
    NUMERIC = frozenset(string.digits + ".")

    def __init__(self, source):
        self.source = source
        self.pos = 0

        self.line = 1
        self._line_start = 0  # index of the first character of the current line

    def _peek(self):
        """Returns the character under the cursor, or '' at end of input."""
        return self.source[self.pos] if self.pos < len(self.source) else ""

    def _advance(self):
        char = self.source[self.pos]
        self.pos += 1
        if char == "\n":
            self.line += 1
            self._line_start = self.pos
        return char

    def _scan(self, chars):
        """Consumes characters while they are in chars and returns them."""
        start = self.pos
        while self._peek() and self._peek() in chars:
            self._advance()
        return self.source[start:self.pos]

    def next(self):
        """Returns the next token in the input. Once input is exhausted, keeps returning an EOF token."""
        while True:
            while self._peek() and self._peek().isspace():
                self._advance()

            if self._peek() != "#":
                break

            while self._peek() and self._peek() not in "\r\n":  # comment runs until end of line
                self._advance()

        line, col = self.line, self.pos - self._line_start
        char = self._peek()

        if not char:
            return Token(TokenKind.EOF, "", line, col)

        if char in Lexer.ALPHA:
            lexeme = self._scan(Lexer.ALNUM)
            return Token(KEYWORDS.get(lexeme, TokenKind.IDENTIFIER), lexeme, line, col)

        if char in Lexer.NUMERIC:
            return Token(TokenKind.NUMBER, self._scan(Lexer.NUMERIC), line, col)

        return Token(TokenKind.OTHER, self._advance(), line, col)

    def line_text(self, line_num):
        """Returns the text of line line_num (1-based) of the source, used for error messages."""
        lines = self.source.splitlines()
        return lines[line_num - 1] if 0 < line_num <= len(lines) else ""

    def __iter__(self):
        """Yields tokens up to and including the EOF token."""
        while True:
            token = self.next()
            yield token
            if token.kind is TokenKind.EOF:
                return
