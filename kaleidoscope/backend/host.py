"""Host primitives: functions written in Python that compiled Kaleidoscope code can call without declaring them first.
Each one takes and returns doubles.
"""


def putchard(x):
    """Prints x as a character code."""
    print(chr(int(x)))
    return 0.0


def printd(x):
    """Prints x as a number."""
    print(f"{x:f}")
    return 0.0


PRIMITIVES = {
    "putchard": (putchard, ("x",)),
    "printd": (printd, ("x",)),
}
