"""LLVM backend built on llvmlite. Units are built as llvmlite.ir modules; loading one parses it into the binding layer
and hands it to a single MCJIT execution engine, which links it against the units loaded before it and against the
host primitives. Unloading removes the module from the engine again, so its names can be defined anew.
"""

from ctypes import CFUNCTYPE, c_double, c_void_p, cast

from llvmlite import binding as llvm
from llvmlite import ir

from kaleidoscope.backend.base import Backend, CompilationUnit
from kaleidoscope.backend.host import PRIMITIVES
from kaleidoscope.lang.error import FunctionNotFound

llvm.initialize_native_target()
llvm.initialize_native_asmprinter()

DOUBLE = ir.DoubleType()


def release_name(module, name):
    """Lets name be used again in module once the global holding it is gone. ir.Module offers no public way to do
    this, so it reaches into the module's name scope.
    """
    module.scope._useset.discard(name)


class LLVMUnit(CompilationUnit):
    """CompilationUnit backed by an llvmlite.ir.Module."""

    def __init__(self, name):
        super().__init__(name)
        self.module = ir.Module(name=name)
        self.builder = ir.IRBuilder()

        self.to_optimize = []  # names of functions to optimize on load
        self.handle = None     # llvmlite.binding.ModuleRef while loaded

    def get_function(self, name):
        value = self.module.globals.get(name)
        return value if isinstance(value, ir.Function) else None

    def declare_function(self, name, params):
        function = ir.Function(self.module, ir.FunctionType(DOUBLE, [DOUBLE] * len(params)), name=name)
        for arg, param in zip(function.args, params):
            arg.name = param
        return function

    def delete_function(self, function):
        del self.module.globals[function.name]
        release_name(self.module, function.name)
        if function.name in self.to_optimize:
            self.to_optimize.remove(function.name)

    def has_body(self, function):
        return not function.is_declaration

    def arity(self, function):
        return len(function.args)

    def params(self, function):
        return list(function.args)

    def append_block(self, function, name):
        return function.append_basic_block(name)

    def position_at_end(self, block):
        self.builder.position_at_end(block)

    @property
    def current_block(self):
        return self.builder.block

    def constant(self, value):
        return ir.Constant(DOUBLE, float(value))

    def add(self, lhs, rhs):
        return self.builder.fadd(lhs, rhs, "addtmp")

    def sub(self, lhs, rhs):
        return self.builder.fsub(lhs, rhs, "subtmp")

    def mul(self, lhs, rhs):
        return self.builder.fmul(lhs, rhs, "multmp")

    def less_than(self, lhs, rhs):
        return self.builder.fcmp_unordered("<", lhs, rhs, "cmptmp")

    def not_zero(self, value, name):
        return self.builder.fcmp_ordered("!=", value, self.constant(0.0), name)

    def to_number(self, boolean):
        return self.builder.uitofp(boolean, DOUBLE, "booltmp")

    def call(self, function, args):
        return self.builder.call(function, args, "calltmp")

    def branch(self, block):
        self.builder.branch(block)

    def cond_branch(self, condition, then_block, else_block):
        self.builder.cbranch(condition, then_block, else_block)

    def phi(self, name):
        return self.builder.phi(DOUBLE, name)

    def add_incoming(self, phi, value, block):
        phi.add_incoming(value, block)

    def ret(self, value):
        self.builder.ret(value)

    def verify(self, function):
        """Verifies the whole module function lives in. Raises RuntimeError if the IR is inconsistent."""
        llvm.parse_assembly(str(self.module)).verify()

    def optimize(self, function):
        """Optimization runs on the binding module, so it is deferred to LLVMBackend.load."""
        self.to_optimize.append(function.name)

    def __str__(self):
        return str(self.module)


class LLVMBackend(Backend):
    """MCJIT-backed Backend. If optimize, functions marked by LLVMUnit.optimize go through instruction combining,
    reassociation, GVN and CFG simplification before being loaded.
    """

    def __init__(self, optimize=False):
        self.target_machine = llvm.Target.from_default_triple().create_target_machine()
        self.engine = llvm.create_mcjit_compiler(llvm.parse_assembly(""), self.target_machine)

        self.optimize = optimize
        if optimize:
            tuning = llvm.create_pipeline_tuning_options(speed_level=2)
            self.pass_builder = llvm.create_pass_builder(self.target_machine, tuning)

        self.units = 0       # number of units created, used for naming
        self.resident = {}   # dict of function name: loaded LLVMUnit that defines it

        self._host = {}       # dict of name: params of host functions
        self._callbacks = {}  # ctypes callbacks must outlive every unit that calls them

        for name, (func, params) in PRIMITIVES.items():
            self.register_host_function(name, func, params)

    @property
    def host_functions(self):
        return dict(self._host)

    def register_host_function(self, name, func, params):
        """Makes Python callable func, taking len(params) floats and returning a float, callable as name."""
        callback = CFUNCTYPE(c_double, *[c_double] * len(params))(func)
        llvm.add_symbol(name, cast(callback, c_void_p).value)

        self._callbacks[name] = callback
        self._host[name] = tuple(params)

    def create_unit(self):
        self.units += 1
        return LLVMUnit(f"unit{self.units}")

    def _resolves(self, name):
        return name in self.resident or llvm.address_of_symbol(name) is not None

    def _run_passes(self, handle, names):
        manager = llvm.create_new_function_pass_manager()
        manager.add_instruction_combine_pass()
        manager.add_reassociate_pass()
        manager.add_new_gvn_pass()
        manager.add_simplify_cfg_pass()

        for name in names:
            manager.run(handle.get_function(name), self.pass_builder)

    def load(self, unit):
        # MCJIT aborts the process on unresolved symbols, so check every declaration up front
        for function in unit.module.functions:
            if function.is_declaration and not self._resolves(function.name):
                raise FunctionNotFound("'{}' is declared but never defined", function.name)

        handle = llvm.parse_assembly(str(unit))
        handle.triple = self.target_machine.triple
        handle.data_layout = str(self.target_machine.target_data)
        handle.verify()

        if self.optimize and unit.to_optimize:
            self._run_passes(handle, unit.to_optimize)

        self.engine.add_module(handle)
        self.engine.finalize_object()

        unit.handle = handle
        unit.state = CompilationUnit.LOADED

        for function in unit.module.functions:
            if not function.is_declaration:
                self.resident[function.name] = unit

    def unload(self, unit):
        self.engine.remove_module(unit.handle)

        for name in [name for name, owner in self.resident.items() if owner is unit]:
            del self.resident[name]

        unit.handle = None
        unit.state = CompilationUnit.UNLOADED

    def lookup(self, name, arity=0):
        address = self.engine.get_function_address(name)
        if not address:
            raise RuntimeError(f"'{name}' is not resident after loading")
        return CFUNCTYPE(c_double, *[c_double] * arity)(address)

    def is_resident(self, name):
        return name in self.resident
