"""Handles interactive/command-line mode for the Kaleidoscope front end. Uses cmd as backend."""

import cmd


class Shell(cmd.Cmd):
    """Kaleidoscope shell."""
    intro = "Kaleidoscope :: LLVM backend\nType 'help' for more information, 'exit' to leave."
    prompt = "ready> "
    secondary_prompt = "   ... "  # used for line continuations
    _tmp_prompt = "ready> "       # also used for prompt swapping in line continuations

    def __init__(self, sess, *args, **kwargs):
        super().__init__(*args, **kwargs)

        self.sess = sess

        self._tmp_line = ""
        self.line_num = 0

    def default(self, line):
        """Handles arbitrary Kaleidoscope input."""
        self.line_num += 1
        line, add_to_prev = self.sess.preprocess_line(f"{self._tmp_line}\n{line}" if self._tmp_line else line)

        if add_to_prev:
            self._tmp_line = line
            self.prompt = self.secondary_prompt
        else:
            self._tmp_line = ""
            self.prompt = self._tmp_prompt

            first_line = self.line_num - line.count("\n")
            self.sess.add(line, first_line)

    def do_help(self, arg):
        """Doesnt return docs, but rather a short intro. 'help' followed by anything else is Kaleidoscope input."""
        if arg.strip():
            self.default(f"help {arg}")
            return
        print("Welcome to Kaleidoscope!\n\n"
              "Kaleidoscope is a tiny language with a single type, the double. Every line you \n"
              "enter is compiled to machine code and run right away.\n\n"
              "Try defining a function with 'def add(x y) x + y', then call it with 'add(1, 2)'.\n"
              "Functions from the host are declared with 'extern', e.g. 'extern sin(x)'. Also \n"
              "try 'if x < 3 then 1 else 2' and 'for i = 1, i < 10 in printd(i)'; 'putchard' and \n"
              "'printd' can be called without declaring them.")

    def emptyline(self):
        """Do not repeat previous command on empty line."""
        return ""

    def do_EOF(self, arg):
        """Exits interpreter. A line starting with 'EOF' is Kaleidoscope input."""
        if arg.strip():
            self.default(f"EOF {arg}")
            return False
        print()
        return True

    def do_exit(self, arg):
        """Exits interpreter. 'exit()' is accepted as well."""
        if arg.strip() not in ("", "()"):
            self.default(f"exit {arg}")
            return False
        return True
