"""Kaleidoscope abstract syntax tree. Every node is an immutable dataclass that exclusively owns its children, so a tree
is never shared or cyclic. Grammar of the units the parser produces:

```
<unit>       ::= "def" <prototype> <expression>   ; FunctionDef
               | "extern" <prototype>              ; Prototype
               | <expression>                      ; FunctionDef named ANONYMOUS, with no parameters
<prototype>  ::= <identifier> "(" <identifier>* ")"
```
"""

from dataclasses import dataclass
from typing import Optional, Tuple

ANONYMOUS = "__anon_expr"  # reserved name that wraps top-level expressions


class Node:
    """Superclass of every AST node."""

    def display(self, indents=0):
        """Recursively displays the tree with a readable format.

        Format:
        <Node>(<field>=<value>, ...,
            <child Node>(...),
            ...
        )
        """
        fields, children = [], []
        for name, value in vars(self).items():
            if isinstance(value, Node):
                children.append(value)
            elif isinstance(value, tuple) and value and all(isinstance(item, Node) for item in value):
                children.extend(value)
            else:
                fields.append(f"{name}={value!r}")

        result = f"{'    ' * indents}{type(self).__name__}({', '.join(fields)}"
        if children:
            result += "".join("\n" + child.display(indents + 1) + "," for child in children)
            result = result[:-1] + f"\n{'    ' * indents}"
        return result + ")"


class Expr(Node):
    """Superclass of nodes that produce a value."""


@dataclass(frozen=True)
class NumberLiteral(Expr):
    value: float


@dataclass(frozen=True)
class VariableRef(Expr):
    name: str


@dataclass(frozen=True)
class BinaryOp(Expr):
    op: str
    lhs: Expr
    rhs: Expr


@dataclass(frozen=True)
class Call(Expr):
    callee: str
    args: Tuple[Expr, ...] = ()


@dataclass(frozen=True)
class Conditional(Expr):
    condition: Expr
    then_branch: Expr
    else_branch: Expr


@dataclass(frozen=True)
class Loop(Expr):
    """for var = start, end, step in body. step defaults to 1.0 when None."""
    var: str
    start: Expr
    end: Expr
    step: Optional[Expr]
    body: Expr


@dataclass(frozen=True)
class Prototype(Node):
    """A function's name and parameter names, whether or not a body exists."""
    name: str
    params: Tuple[str, ...] = ()

    @property
    def arity(self):
        return len(self.params)

    def __str__(self):
        return f"{self.name}({' '.join(self.params)})"


@dataclass(frozen=True)
class FunctionDef(Node):
    prototype: Prototype
    body: Expr

    @property
    def is_anonymous(self):
        return self.prototype.name == ANONYMOUS

    @classmethod
    def anonymous(cls, body):
        """Wraps top-level expression body in a zero-parameter function with the reserved name."""
        return cls(Prototype(ANONYMOUS), body)
