"""Backend capability interface. The code generator only ever talks to a Backend and the CompilationUnits it creates,
so that the machine-code backend stays swappable.

Every value handle is opaque to the code generator: a unit hands them out and takes them back, nothing else. All
values are double-precision floats, and every function takes and returns doubles.

A CompilationUnit has a simple lifecycle:

```
created --(populated by the code generator)--> Backend.load --> loaded --> Backend.unload --> unloaded
```
"""

from abc import ABC, abstractmethod


class CompilationUnit(ABC):
    """One backend-loadable package of declarations and definitions."""
    CREATED = "created"
    LOADED = "loaded"
    UNLOADED = "unloaded"

    def __init__(self, name):
        self.name = name
        self.state = CompilationUnit.CREATED

    # functions

    @abstractmethod
    def get_function(self, name):
        """Returns the function named name declared in this unit, or None."""

    @abstractmethod
    def declare_function(self, name, params):
        """Declares (without a body) a function taking len(params) doubles, and returns it."""

    @abstractmethod
    def delete_function(self, function):
        """Removes function, along with any body built so far, from this unit."""

    @abstractmethod
    def has_body(self, function):
        """Whether or not function has been defined in this unit."""

    @abstractmethod
    def arity(self, function):
        """Number of parameters function takes."""

    @abstractmethod
    def params(self, function):
        """Parameter value handles of function, in order."""

    # blocks

    @abstractmethod
    def append_block(self, function, name):
        """Creates a new basic block at the end of function."""

    @abstractmethod
    def position_at_end(self, block):
        """Sets the insertion point to the end of block."""

    @property
    @abstractmethod
    def current_block(self):
        """Block instructions are currently inserted into."""

    # values

    @abstractmethod
    def constant(self, value):
        ...

    @abstractmethod
    def add(self, lhs, rhs):
        ...

    @abstractmethod
    def sub(self, lhs, rhs):
        ...

    @abstractmethod
    def mul(self, lhs, rhs):
        ...

    @abstractmethod
    def less_than(self, lhs, rhs):
        """Unsigned (unordered) less-than comparison. Returns a boolean."""

    @abstractmethod
    def not_zero(self, value, name):
        """Ordered not-equal comparison of value against 0.0. Returns a boolean."""

    @abstractmethod
    def to_number(self, boolean):
        """Casts a boolean to 0.0/1.0."""

    @abstractmethod
    def call(self, function, args):
        ...

    # control flow

    @abstractmethod
    def branch(self, block):
        ...

    @abstractmethod
    def cond_branch(self, condition, then_block, else_block):
        ...

    @abstractmethod
    def phi(self, name):
        """Creates an empty merge value at the insertion point. Incoming edges are added with add_incoming."""

    @abstractmethod
    def add_incoming(self, phi, value, block):
        """phi takes value when control arrives from block."""

    @abstractmethod
    def ret(self, value):
        ...

    # finishing

    @abstractmethod
    def verify(self, function):
        """Checks that function is structurally valid. Failure is an internal error, not a user-facing one."""

    @abstractmethod
    def optimize(self, function):
        """Runs (or schedules, for backends that optimize at load time) the optimization pipeline on function."""


class Backend(ABC):
    """Creates, loads and unloads CompilationUnits, and resolves the symbols of loaded units."""

    @property
    @abstractmethod
    def host_functions(self):
        """Dict of name: parameter names of the host primitives callable without a prior declaration."""

    @abstractmethod
    def create_unit(self):
        """Returns a fresh, empty CompilationUnit."""

    @abstractmethod
    def load(self, unit):
        """Makes the definitions of unit resident and callable."""

    @abstractmethod
    def unload(self, unit):
        """Removes a loaded unit entirely, so that the names it defined can be reused."""

    @abstractmethod
    def lookup(self, name, arity=0):
        """Returns a Python callable taking arity floats for the resident function name."""

    @abstractmethod
    def is_resident(self, name):
        """Whether or not a loaded unit defines name."""
