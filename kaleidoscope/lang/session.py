"""Session control for Kaleidoscope. Sequences the units of some source text, either from a file or typed into the
shell, and drives the backend: anonymous expressions are loaded, executed and unloaded again, named definitions stay
resident, and externs only update the prototype table.
"""

from kaleidoscope.lang.ast import ANONYMOUS, Prototype
from kaleidoscope.lang.codegen import CodeGenerator
from kaleidoscope.lang.error import GenericException, ParseError
from kaleidoscope.lang.parser import DEFAULT_PRECEDENCE, Parser


class Session:
    """Governs a Kaleidoscope session, with control over the prototype table and resident functions."""
    SH_FILE = "<in>"  # command-line interpreter filename

    def __init__(self, error_handler, backend, path=SH_FILE, precedence=None, cmd_line=True, dump_ir=False,
                 dump_ast=False):
        self.error_handler = error_handler
        self.error_handler.register_file(path)

        self.backend = backend
        self.path = path          # used for error messages
        self.cmd_line = cmd_line  # whether or not in command-line mode
        self.dump_ir = dump_ir    # print the IR of every unit handled
        self.dump_ast = dump_ast  # print the AST of every unit parsed

        self.precedence = dict(DEFAULT_PRECEDENCE if precedence is None else precedence)
        self.codegen = CodeGenerator(backend)
        for name, params in backend.host_functions.items():  # host primitives need no extern
            self.codegen.prototypes[name] = Prototype(name, tuple(params))

        self.unit = backend.create_unit()  # accumulating CompilationUnit
        self.results = []                  # results of executed anonymous expressions
        self.source = ""

        if path != Session.SH_FILE:
            try:
                with open(path, "r") as file:
                    self.source = file.read()
            except OSError:
                raise GenericException("'{}' could not be opened", path, diagnosis=False)

        elif not cmd_line:
            raise GenericException("'<in>' is a reserved filename")

    @property
    def prototypes(self):
        return self.codegen.prototypes

    @staticmethod
    def preprocess_line(line):
        """Preprocesses a line from the command-line. Returns the line and whether or not it needs a continuation,
        which is the case while it has unclosed parentheses.
        """
        code = line.split("#")[0]  # parentheses in comments don't count
        return line.rstrip(), code.count("(") > code.count(")")

    def add(self, source, line_num=1):
        """Parses and handles every unit in source. line_num is the line source starts on, used for errors. Errors in a
        unit are reported and the next unit is handled.
        """
        parser = Parser(source, self.precedence)

        while parser.has_next():
            line, offset = parser.line
            self.error_handler.register_line(self.path, line, line_num + offset - 1)  # in case error is raised

            with self.error_handler:
                try:
                    unit = parser.parse_unit()
                except ParseError:
                    parser.synchronize()
                    raise
                self.handle(unit)

            self.error_handler.remove_line(self.path)

    def run(self):
        """Handles the contents of this session's file."""
        self.add(self.source)

    def handle(self, unit):
        """Handles one parsed unit. Will raise any errors that are encountered."""
        if self.dump_ast:
            print(unit.display())

        if isinstance(unit, Prototype):
            self._handle_extern(unit)
        elif unit.is_anonymous:
            self._handle_expression(unit)
        else:
            self._handle_definition(unit)

    def _handle_extern(self, prototype):
        previous = self.prototypes.get(prototype.name)
        self.codegen.generate(prototype, self.unit)

        if previous is not None and previous.params != prototype.params:
            self.error_handler.warn("'{}' redeclared as '{}'", [previous, prototype])
        if self.dump_ir:
            # a unit of its own: the accumulating unit must not carry an unresolved declaration
            scratch = self.backend.create_unit()
            scratch.declare_function(prototype.name, prototype.params)
            print(scratch)
        print(f"Read extern: {prototype}")

    def _handle_definition(self, function):
        name = function.prototype.name
        previous = self.prototypes.get(name)

        try:
            self.codegen.generate(function, self.unit)
            if self.dump_ir:
                print(self.unit)
            self.backend.load(self.unit)  # stays resident
        except GenericException:
            if name in self.prototypes and self.prototypes[name] is function.prototype:
                self._restore(name, previous)  # never became resident
            raise
        finally:
            self.unit = self.backend.create_unit()

        print(f"Read function definition: {function.prototype}")

    def _handle_expression(self, function):
        try:
            self.codegen.generate(function, self.unit)
            if self.dump_ir:
                print(self.unit)

            self.backend.load(self.unit)
            try:
                result = self.backend.lookup(ANONYMOUS)()
            finally:
                self.backend.unload(self.unit)  # frees the reserved name
        finally:
            self.prototypes.pop(ANONYMOUS, None)
            self.unit = self.backend.create_unit()

        self.results.append(result)
        print(f"Evaluated to {result:f}")

    def _restore(self, name, prototype):
        """Puts prototype back as the prototype of name, or forgets name if prototype is None."""
        if prototype is None:
            self.prototypes.pop(name, None)
        else:
            self.prototypes[name] = prototype

    def pop(self):
        """Removes and returns the result of the most recently executed anonymous expression."""
        return self.results.pop()
