"""Code generation for Kaleidoscope. Walks one unit's AST and lowers it onto a CompilationUnit (see
kaleidoscope/backend/base.py), keeping track of

- scope: dict of variable name: value handle, rebuilt for each function and shadowed/restored by loops, and
- prototypes: dict of function name: latest Prototype seen, kept for the whole session so that functions defined or
  declared by earlier units can be redeclared in later ones.
"""

from kaleidoscope.lang.ast import (BinaryOp, Call, Conditional, FunctionDef, Loop, NumberLiteral, Prototype,
                                   VariableRef)
from kaleidoscope.lang.error import (ArityMismatch, DuplicateDefinition, GenericException, InvalidOperator,
                                     UnknownFunction, UnknownVariable)


class CodeGenerator:
    """Lowers units onto a backend. One CodeGenerator lives as long as its session."""

    def __init__(self, backend, prototypes=None):
        self.backend = backend
        self.prototypes = {} if prototypes is None else prototypes

        self.scope = {}
        self.unit = None      # CompilationUnit being populated
        self.function = None  # function whose body is being lowered

    def generate(self, node, unit):
        """Lowers top-level node (FunctionDef or Prototype) into unit. Returns the backend function for a FunctionDef,
        and node itself for a Prototype, since externs never reach the backend until something calls them.
        """
        self.unit = unit

        if isinstance(node, FunctionDef):
            return self._function(node)
        if isinstance(node, Prototype):
            self._check_extern(node)
            self.prototypes[node.name] = node
            return node
        raise GenericException("'{}' is not a top-level unit", type(node).__name__, internal=True)

    def _check_extern(self, prototype):
        """A bare prototype may replace another bare prototype, but not change the arity of something defined."""
        existing = self.prototypes.get(prototype.name)
        defined = self.backend.is_resident(prototype.name) or prototype.name in self.backend.host_functions

        if defined and existing is not None and existing.arity != prototype.arity:
            raise ArityMismatch("extern '{}' conflicts with the definition of '{}'", [prototype, existing])

    def _declared(self, name):
        """Returns the function name in the current unit, redeclaring it from its prototype if needed, or None."""
        function = self.unit.get_function(name)
        if function is None and name in self.prototypes:
            function = self.unit.declare_function(name, self.prototypes[name].params)
        return function

    def _function(self, node):
        prototype = node.prototype
        name = prototype.name

        function = self.unit.get_function(name)
        if self.backend.is_resident(name) or (function is not None and self.unit.has_body(function)):
            raise DuplicateDefinition("function '{}' cannot be redefined", name)

        shadowed = self.prototypes.get(name)
        self.prototypes[name] = prototype

        if function is not None and self.unit.arity(function) != prototype.arity:
            self.unit.delete_function(function)  # stale declaration from an older prototype
            function = None
        if function is None:
            function = self.unit.declare_function(name, prototype.params)

        self.function = function
        self.scope = dict(zip(prototype.params, self.unit.params(function)))
        self.unit.position_at_end(self.unit.append_block(function, "entry"))

        try:
            self.unit.ret(self._expr(node.body))
        except Exception:
            # leave no half-built function behind
            self.unit.delete_function(function)
            if shadowed is None:
                del self.prototypes[name]
            else:
                self.prototypes[name] = shadowed
            raise

        self.unit.verify(function)
        self.unit.optimize(function)
        return function

    def _expr(self, node):
        if isinstance(node, NumberLiteral):
            return self.unit.constant(node.value)
        if isinstance(node, VariableRef):
            return self._variable(node)
        if isinstance(node, BinaryOp):
            return self._binary(node)
        if isinstance(node, Call):
            return self._call(node)
        if isinstance(node, Conditional):
            return self._conditional(node)
        if isinstance(node, Loop):
            return self._loop(node)
        raise GenericException("'{}' is not an expression", type(node).__name__, internal=True)

    def _variable(self, node):
        if node.name not in self.scope:
            raise UnknownVariable("unknown variable '{}'", node.name)
        return self.scope[node.name]

    def _binary(self, node):
        lhs = self._expr(node.lhs)
        rhs = self._expr(node.rhs)

        if node.op == "+":
            return self.unit.add(lhs, rhs)
        if node.op == "-":
            return self.unit.sub(lhs, rhs)
        if node.op == "*":
            return self.unit.mul(lhs, rhs)
        if node.op == "<":
            return self.unit.to_number(self.unit.less_than(lhs, rhs))  # 0.0 or 1.0
        raise InvalidOperator("invalid binary operator '{}'", node.op)

    def _call(self, node):
        function = self._declared(node.callee)
        if function is None:
            raise UnknownFunction("unknown function '{}'", node.callee)

        arity = self.unit.arity(function)
        if arity != len(node.args):
            raise ArityMismatch("'{}' takes {} argument(s) but {} were given", [node.callee, arity, len(node.args)])

        return self.unit.call(function, [self._expr(arg) for arg in node.args])

    def _conditional(self, node):
        condition = self.unit.not_zero(self._expr(node.condition), "ifcond")

        then_block = self.unit.append_block(self.function, "then")
        else_block = self.unit.append_block(self.function, "else")
        merge_block = self.unit.append_block(self.function, "ifcont")
        self.unit.cond_branch(condition, then_block, else_block)

        # lowering a branch may create blocks of its own, so the merge value is keyed on the block each branch ends in
        self.unit.position_at_end(then_block)
        then_value = self._expr(node.then_branch)
        then_end = self.unit.current_block
        self.unit.branch(merge_block)

        self.unit.position_at_end(else_block)
        else_value = self._expr(node.else_branch)
        else_end = self.unit.current_block
        self.unit.branch(merge_block)

        self.unit.position_at_end(merge_block)
        phi = self.unit.phi("iftmp")
        self.unit.add_incoming(phi, then_value, then_end)
        self.unit.add_incoming(phi, else_value, else_end)
        return phi

    def _loop(self, node):
        start = self._expr(node.start)
        preheader = self.unit.current_block

        header = self.unit.append_block(self.function, "loop")
        self.unit.branch(header)
        self.unit.position_at_end(header)

        variable = self.unit.phi(node.var)
        self.unit.add_incoming(variable, start, preheader)

        shadows = node.var in self.scope
        shadowed = self.scope.get(node.var)
        self.scope[node.var] = variable

        try:
            self._expr(node.body)  # value is discarded

            step = self.unit.constant(1.0) if node.step is None else self._expr(node.step)
            next_value = self.unit.add(variable, step)

            # the end condition decides whether the next iteration runs, so it sees the next value
            self.scope[node.var] = next_value
            end = self.unit.not_zero(self._expr(node.end), "loopcond")
            loop_end = self.unit.current_block

            after = self.unit.append_block(self.function, "afterloop")
            self.unit.cond_branch(end, header, after)
            self.unit.position_at_end(after)

            self.unit.add_incoming(variable, next_value, loop_end)
        finally:
            if shadows:
                self.scope[node.var] = shadowed
            else:
                del self.scope[node.var]

        return self.unit.constant(0.0)
