"""Runs the Kaleidoscope front end on a .ks file, or in command-line mode. Also uses the error handling context manager.
Called from the kaleidoscope executable script.
"""

import argparse
import sys

from kaleidoscope.backend.llvm import LLVMBackend
from kaleidoscope.lang.error import ErrorHandler
from kaleidoscope.lang.session import Session
from kaleidoscope.lang.shell import Shell


def main(argv=None):
    """Runs the Kaleidoscope front end. Returns the exit status."""
    with ErrorHandler() as error_handler:
        parser = argparse.ArgumentParser(prog="kaleidoscope")
        parser.add_argument("file", help="file to interpret and run (if empty, goes to command-line mode)", nargs="?")
        parser.add_argument("-O", "--optimize", help="optimize every function before loading it", action="store_true")
        parser.add_argument("--dump-ir", help="print the IR of every unit", action="store_true")
        parser.add_argument("--dump-ast", help="print the syntax tree of every unit", action="store_true")
        args = parser.parse_args(argv)

        backend = LLVMBackend(optimize=args.optimize)
        options = dict(dump_ir=args.dump_ir, dump_ast=args.dump_ast)

        if args.file is not None:
            sess = Session(error_handler, backend, args.file, cmd_line=False, **options)
            sess.run()
            return 1 if error_handler.errors else 0

        Shell(Session(error_handler, backend, Session.SH_FILE, cmd_line=True, **options)).cmdloop()
        return 0

    return 1  # error_handler suppressed an error


if __name__ == "__main__":
    sys.exit(main())
