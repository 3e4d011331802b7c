import unittest

from kaleidoscope.lang.ast import (ANONYMOUS, BinaryOp, Call, Conditional, FunctionDef, Loop, NumberLiteral, Prototype,
                                   VariableRef)
from kaleidoscope.lang.error import ParseError
from kaleidoscope.lang.parser import Parser


def parse(source, precedence=None):
    return list(Parser(source, precedence))


def expr(source):
    unit, = parse(source)
    return unit.body


def num(value):
    return NumberLiteral(value)


def var(name):
    return VariableRef(name)


class ParserTestCase(unittest.TestCase):

    def test_units(self):
        units = parse("def foo(x y) x; extern sin(a); 4")
        self.assertEqual([
            FunctionDef(Prototype("foo", ("x", "y")), var("x")),
            Prototype("sin", ("a",)),
            FunctionDef(Prototype(ANONYMOUS), num(4)),
        ], units)
        self.assertTrue(units[2].is_anonymous)
        self.assertFalse(units[0].is_anonymous)

    def test_separators(self):
        should_pass = ["1", "1;", ";;1;;;", "  ; 1 ; # done"]
        for case in should_pass:
            self.assertEqual([FunctionDef.anonymous(num(1))], parse(case), case)

        self.assertEqual([], parse(";;;"))
        self.assertIsNone(Parser("").parse_unit())

    def test_precedence(self):
        cases = {
            "1+2*3": BinaryOp("+", num(1), BinaryOp("*", num(2), num(3))),
            "1*2+3": BinaryOp("+", BinaryOp("*", num(1), num(2)), num(3)),
            "1-2-3": BinaryOp("-", BinaryOp("-", num(1), num(2)), num(3)),
            "a<b+1": BinaryOp("<", var("a"), BinaryOp("+", var("b"), num(1))),
            "(1+2)*3": BinaryOp("*", BinaryOp("+", num(1), num(2)), num(3)),
            "1+2*3-4": BinaryOp("-", BinaryOp("+", num(1), BinaryOp("*", num(2), num(3))), num(4)),
        }
        for case, tree in cases.items():
            self.assertEqual(tree, expr(case), case)

    def test_precedence_table(self):
        # '+' binding tighter than '*'
        precedence = {"<": 10, "*": 20, "+": 40}
        self.assertEqual(BinaryOp("*", BinaryOp("+", num(1), num(2)), num(3)), parse("1+2*3", precedence)[0].body)

        # '-' missing from the table stops the expression
        with self.assertRaises(ParseError):
            parse("1-2", {"+": 20})

    def test_calls(self):
        cases = {
            "f()": Call("f"),
            "f(1)": Call("f", (num(1),)),
            "f(1, x+2)": Call("f", (num(1), BinaryOp("+", var("x"), num(2)))),
            "f(g(x))": Call("f", (Call("g", (var("x"),)),)),
        }
        for case, tree in cases.items():
            self.assertEqual(tree, expr(case), case)

    def test_conditional(self):
        self.assertEqual(
            Conditional(BinaryOp("<", var("x"), num(3)), num(1), BinaryOp("+", var("x"), num(1))),
            expr("if x < 3 then 1 else x + 1")
        )

    def test_loop(self):
        self.assertEqual(
            Loop("i", num(1), BinaryOp("<", var("i"), var("n")), None, Call("putchard", (num(42),))),
            expr("for i = 1, i < n in putchard(42)")
        )
        self.assertEqual(
            Loop("i", num(0), var("n"), num(2), var("i")),
            expr("for i = 0, n, 2 in i")
        )

    def test_errors(self):
        should_fail = {
            "(1": "expected ')'",
            "f(1 2)": "expected ')' or ',' in argument list",
            "if 1 2": "expected 'then'",
            "if 1 then 2": "expected 'else'",
            "for 1": "expected identifier after for",
            "for i 1": "expected '=' after for",
            "for i = 1 in 2": "expected ',' after for start value",
            "for i = 1, 2 3": "expected 'in' after for",
            "1 + )": "unknown token ')' when expecting an expression",
            "def (x) x": "expected function name in prototype",
            "extern foo": "expected '(' in prototype",
            "def foo(x, y) x": "expected ')' in prototype",
            "def foo(x x) x": "duplicate parameter 'x' in prototype",
            "1.2.3": "invalid number literal '1.2.3'",
            "def": "expected function name in prototype",
        }
        for case, msg in should_fail.items():
            with self.assertRaises(ParseError, msg=case) as context:
                parse(case)
            self.assertEqual(msg, str(context.exception), case)

    def test_error_location(self):
        with self.assertRaises(ParseError) as context:
            parse("1 +\nif x then")
        error = context.exception
        self.assertEqual("if x then", error.source)
        self.assertEqual(2, error.token.line)
        self.assertEqual(9, error.start)  # end of input, just after 'then'

    def test_synchronize(self):
        parser = Parser("1 + ; def f(x) x; 2")
        with self.assertRaises(ParseError):
            parser.parse_unit()

        parser.synchronize()
        self.assertEqual(FunctionDef(Prototype("f", ("x",)), var("x")), parser.parse_unit())
        self.assertEqual(FunctionDef.anonymous(num(2)), parser.parse_unit())
        self.assertFalse(parser.has_next())

        # a unit starting on a new line ends the broken one
        parser = Parser("1 +\ndef f(x) x * 2\nf(3)")
        with self.assertRaises(ParseError):
            parser.parse_unit()

        parser.synchronize()
        self.assertEqual(Prototype("f", ("x",)), parser.parse_unit().prototype)
        self.assertEqual(FunctionDef.anonymous(Call("f", (num(3),))), parser.parse_unit())

        # but the rest of the broken line is skipped
        parser = Parser("1 + ) 2 3\n4")
        with self.assertRaises(ParseError):
            parser.parse_unit()

        parser.synchronize()
        self.assertEqual(FunctionDef.anonymous(num(4)), parser.parse_unit())

    def test_display(self):
        display = expr("f(1, x)").display()
        self.assertEqual("Call(callee='f'\n    NumberLiteral(value=1.0),\n    VariableRef(name='x')\n)", display)
        self.assertEqual("Prototype(name='sin', params=('a',))", parse("extern sin(a)")[0].display())


if __name__ == '__main__':
    unittest.main()
