import contextlib
import io
import unittest

from kaleidoscope.lang.error import ErrorHandler, GenericException, ParseError, UnknownVariable
from kaleidoscope.lang.lexical import Token, TokenKind


class ErrorHandlerTestCase(unittest.TestCase):

    def setUp(self):
        self.error_handler = ErrorHandler()
        self.error_handler.register_file("test.ks")

    def report(self, error):
        """Raises error inside the handler and returns what was printed."""
        output = io.StringIO()
        with contextlib.redirect_stdout(output):
            with self.error_handler:
                raise error
        return output.getvalue()

    def test_message(self):
        error = UnknownVariable("unknown variable '{}'", "y")
        self.assertEqual("unknown variable 'y'", str(error))
        self.assertIn("y", error.msg)
        self.assertFalse(error.diagnosis)

    def test_suppresses_kaleidoscope_errors(self):
        self.error_handler.register_line("test.ks", "def f(x) y", 3)
        output = self.report(UnknownVariable("unknown variable '{}'", "y"))

        self.assertIn("File 'test.ks', line 3:", output)
        self.assertIn("def f(x) y", output)
        self.assertIn("error: ", output)
        self.assertEqual(1, self.error_handler.errors)

        # the line is forgotten once reported
        self.assertEqual((None, None), self.error_handler.traceback["test.ks"])

    def test_diagnosis(self):
        token = Token(TokenKind.OTHER, ")", 1, 4)
        output = self.report(ParseError("unknown token '{}' when expecting an expression", token, "1 + )", [token]))
        caret_line = output.splitlines()[-1]
        self.assertTrue(caret_line.startswith(" " * 6))  # indent plus the 4 characters before ')'
        self.assertNotEqual(" ", caret_line[6])

    def test_special_errors(self):
        cases = {
            KeyboardInterrupt(): "keyboard interrupt",
            RecursionError(): "expression nests too deeply",
        }
        for case, msg in cases.items():
            self.assertIn(msg, self.report(case))
        self.assertEqual(len(cases), self.error_handler.errors)

    def test_propagates_internal_errors(self):
        output = io.StringIO()
        with self.assertRaises(RuntimeError):
            with contextlib.redirect_stdout(output):
                with self.error_handler:
                    raise RuntimeError("bad IR")
        self.assertIn("[internal] ", output.getvalue())
        self.assertIn("bad IR", output.getvalue())

        with self.assertRaises(SystemExit):
            with self.error_handler:
                raise SystemExit(0)

    def test_internal_generic_exception(self):
        output = self.report(GenericException("'{}' is not an expression", "Prototype", internal=True))
        self.assertIn("[internal] ", output)
        self.assertEqual(1, self.error_handler.errors)

    def test_warn(self):
        self.error_handler.register_line("test.ks", "extern foo(x y)", 2)
        output = io.StringIO()
        with contextlib.redirect_stdout(output):
            self.error_handler.warn("'{}' redeclared as '{}'", ["foo(x)", "foo(x y)"])

        self.assertIn("test.ks:2: ", output.getvalue())
        self.assertIn("warning: ", output.getvalue())
        self.assertEqual(0, self.error_handler.errors)


if __name__ == '__main__':
    unittest.main()
