"""Error handling for the Kaleidoscope front end. Only GenericExceptions should be encountered while a session runs: if
another type of error is raised and makes it all the way to ErrorHandler, it is assumed to be an internal issue (the
code generator emitted inconsistent IR, or the backend failed underneath it).
"""

from termcolor import colored


class GenericException(Exception):
    """Templates an error/warning message so that it can be used to throw a Kaleidoscope error/warning. exprs are
    substituted into msg (and bolded when displayed). source is the line the error originated from, with start/end
    marking the offending span in it.
    """

    def __init__(self, msg, exprs=None, source="", start=0, end=-1, diagnosis=True, internal=False):
        """Parses args for GenericException or warning."""
        if exprs is None:
            exprs = []
        if isinstance(exprs, str):
            exprs = [exprs]
        exprs = [str(expr) for expr in exprs]

        super().__init__(msg.format(*exprs))
        self.msg = msg.format(*(colored(expr, attrs=["bold"]) for expr in exprs))  # color expr snippets

        self.source = source
        self.start = start
        self.end = end if end != -1 else len(self.source)  # needed for error display

        self.diagnosis = diagnosis
        self.internal = internal


class ParseError(GenericException):
    """Grammar violation. Aborts the unit being parsed."""

    def __init__(self, msg, token, source, exprs=None):
        self.token = token
        super().__init__(msg, exprs, source=source, start=token.col, end=token.col + max(len(token.lexeme), 1))


class CodegenError(GenericException):
    """Superclass of every error raised while lowering a unit. Aborts that unit."""

    def __init__(self, msg, exprs=None):
        super().__init__(msg, exprs, diagnosis=False)


class UnknownVariable(CodegenError):
    pass


class UnknownFunction(CodegenError):
    pass


class ArityMismatch(CodegenError):
    pass


class InvalidOperator(CodegenError):
    pass


class DuplicateDefinition(CodegenError):
    pass


class FunctionNotFound(CodegenError):
    """The prototype table and the backend disagree about a function, e.g. a declaration with nothing to link against."""


class ErrorHandler:
    """Context manager that will silently suppress Kaleidoscope errors after reporting them. Anything else is reported as
    an internal error and propagated.
    """
    ERROR = "red"
    WARNING = "magenta"

    def __init__(self):
        self.traceback = {}
        self.errors = 0  # number of errors reported so far

    def register_file(self, path):
        """Registers path in traceback."""
        self.traceback[path] = (None, None)

    def register_line(self, path, line, line_num):
        """Registers line in traceback given path. Should be called prior to handling a unit."""
        self.traceback[path] = (line, line_num)

    def remove_line(self, path):
        """Removes line from traceback given path. Should be called after a unit was handled successfully."""
        self.traceback[path] = (None, None)

    @staticmethod
    def diagnose(error, warning=False):
        """Returns offending part of error.source highlighted and bolded, with a caret line underneath."""
        color = ErrorHandler.WARNING if warning else ErrorHandler.ERROR

        diagnosis = "  " + error.source[:error.start]

        end = max(error.end, error.start + 1)
        diagnosis += colored(error.source[error.start:end], color, attrs=["bold"])
        diagnosis += error.source[end:] + "\n"

        diagnosis += "  " + " " * error.start
        diagnosis += colored("^" + "~" * (end - error.start - 1), color, attrs=["bold"])

        return diagnosis

    def _location(self):
        """Returns 'file:line: ' for the first registered line, or just 'file: ' if no line is registered."""
        for file, (line, line_num) in self.traceback.items():
            if line_num is not None:
                return f"{file}:{line_num}: "
            return f"{file}: "
        return ""

    def warn(self, *args, **kwargs):
        """Generates and prints a warning message based on args."""
        error = GenericException(*args, **kwargs)

        warning_msg = colored(self._location(), attrs=["bold"])
        warning_msg += colored("warning: ", ErrorHandler.WARNING, attrs=["bold"]) + error.msg
        print(warning_msg)

        if error.source and error.diagnosis:
            print(ErrorHandler.diagnose(error, warning=True))

    def throw(self, error):
        """Prints error using error and self.traceback. error must be a GenericException, and self.traceback must be a
        dict of file: (line, line_num) representing origination of error.
        """
        self.errors += 1

        error_msg = ""
        for file, (line, line_num) in self.traceback.items():  # assumes dict is insertion-ordered
            if line:
                error_msg += f"  File '{file}', line {line_num}:\n"
                error_msg += f"    {line.strip()}\n"

        if error.internal:
            error_msg += colored("[internal] ", ErrorHandler.ERROR, attrs=["bold"])

        error_msg += colored("error: ", ErrorHandler.ERROR, attrs=["bold"]) + error.msg
        print(error_msg)

        if not error.internal and error.source and error.diagnosis:
            print(ErrorHandler.diagnose(error))

        for file in self.traceback:  # error was handled, so forget where it came from
            self.remove_line(file)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        do_exit = False
        if exc_type is KeyboardInterrupt:
            self.throw(GenericException("keyboard interrupt"))
        elif exc_type is SystemExit:
            do_exit = True
        elif exc_type is RecursionError:
            self.throw(GenericException("expression nests too deeply"))
        elif exc_type is not None and issubclass(exc_type, GenericException):
            self.throw(exc_val)
        elif exc_type is not None:
            self.throw(GenericException(f"unknown error: '{exc_type.__name__}: {exc_val}'", internal=True))
            do_exit = True

        return not do_exit
