import unittest

from kaleidoscope.lang.lexical import Lexer, Token, TokenKind


def kinds(source):
    return [token.kind for token in Lexer(source)]


def lexemes(source):
    return [token.lexeme for token in Lexer(source)]


class LexerTestCase(unittest.TestCase):

    def test_keywords(self):
        cases = {
            "def": TokenKind.DEF,
            "extern": TokenKind.EXTERN,
            "if": TokenKind.IF,
            "then": TokenKind.THEN,
            "else": TokenKind.ELSE,
            "for": TokenKind.FOR,
            "in": TokenKind.IN,
        }
        for case, kind in cases.items():
            self.assertEqual([kind, TokenKind.EOF], kinds(case), case)

        should_be_identifiers = ["define", "iff", "In", "x1", "forx", "thenelse"]
        for case in should_be_identifiers:
            self.assertEqual([TokenKind.IDENTIFIER, TokenKind.EOF], kinds(case), case)

    def test_identifier_stops_at_non_alnum(self):
        self.assertEqual(["foo2", "(", "x", ")", ""], lexemes("foo2(x)"))

    def test_numbers(self):
        should_pass = {"1": "1", "4.5": "4.5", ".5": ".5", "1.": "1."}
        for case, lexeme in should_pass.items():
            token = Lexer(case).next()
            self.assertEqual(Token(TokenKind.NUMBER, lexeme), token, case)

        # arrangement of digits and dots is not validated here
        self.assertEqual(Token(TokenKind.NUMBER, "1.2.3"), Lexer("1.2.3").next())

    def test_other(self):
        self.assertEqual(["+", "-", "*", "<", ";", "$", ""], lexemes("+ -*<;$"))
        self.assertTrue(all(kind is TokenKind.OTHER for kind in kinds("+-*<;$")[:-1]))

    def test_comments(self):
        cases = {
            "# only a comment": [TokenKind.EOF],
            "1 # trailing": [TokenKind.NUMBER, TokenKind.EOF],
            "# first\n# second\nx": [TokenKind.IDENTIFIER, TokenKind.EOF],
            "a#b\nc": [TokenKind.IDENTIFIER, TokenKind.IDENTIFIER, TokenKind.EOF],
        }
        for case, expected in cases.items():
            self.assertEqual(expected, kinds(case), case)

    def test_eof_is_idempotent(self):
        lexer = Lexer("x")
        self.assertEqual(TokenKind.IDENTIFIER, lexer.next().kind)
        for __ in range(3):
            self.assertEqual(TokenKind.EOF, lexer.next().kind)

    def test_positions(self):
        tokens = list(Lexer("def f(x)\n  x + 1"))
        positions = [(token.lexeme, token.line, token.col) for token in tokens]
        self.assertEqual([
            ("def", 1, 0), ("f", 1, 4), ("(", 1, 5), ("x", 1, 6), (")", 1, 7),
            ("x", 2, 2), ("+", 2, 4), ("1", 2, 6), ("", 2, 7),
        ], positions)

    def test_line_text(self):
        lexer = Lexer("first\nsecond")
        self.assertEqual("second", lexer.line_text(2))
        self.assertEqual("", lexer.line_text(3))


if __name__ == '__main__':
    unittest.main()
