import io
import subprocess
import sys
import unittest

from bfast import C_TARGET, PYTHON_TARGET, Printer, Transpiler, parse, to_source, transpile
from bfast.printer import source_spans
from bfast.transpiler import get_target

SAMPLES = [
    "",
    "+++",
    "+ + -- a comment >>.<",
    "++++++++[>++++++++<-]>.",
    "[-][+]+[[-]>[+++]<-]",
    "[]>[[]]",
    ",[.,]",
    "+[->+<[>>+<<-]]",
    "[+ +]",
    "[- -]",
    "+[- comment -]>[+\n+]",
]


class PrinterTests(unittest.TestCase):
    def test_prints_commands_and_loops(self) -> None:
        self.assertEqual(to_source(parse("+++[->+<]")), "+++[->+<]\n")

    def test_zero_loops_print_as_decrement_loop(self) -> None:
        self.assertEqual(to_source(parse("[+]>[-]")), "[-]>[-]\n")

    def test_comments_are_dropped(self) -> None:
        self.assertEqual(to_source(parse("add + and + then .")), "++.\n")

    def test_empty_program_prints_newline(self) -> None:
        self.assertEqual(to_source(parse("")), "\n")

    def test_printing_is_idempotent_after_normalization(self) -> None:
        for sample in SAMPLES:
            with self.subTest(sample=sample):
                first = to_source(parse(sample))
                second = to_source(parse(first))
                self.assertEqual(first, second)

    def test_writes_to_stream(self) -> None:
        stream = io.StringIO()
        Printer(stream).visit(parse(">>,"))
        self.assertEqual(stream.getvalue(), ">>,\n")

    def test_source_spans(self) -> None:
        code, spans = source_spans(parse("+ [ - > ]"))
        self.assertEqual(code, "+[->]")
        self.assertEqual(spans, [(0, 1), (1, 5), (2, 3), (3, 4)])


class TranspilerTests(unittest.TestCase):
    def test_c_program_structure(self) -> None:
        code = transpile(parse("+++[-.]>[-]"))
        self.assertIn("#include <stdio.h>", code)
        self.assertIn("static unsigned char tape[30000];", code)
        self.assertIn("int main(void)", code)
        self.assertIn("tape[ptr] += 3;", code)
        self.assertIn("while (tape[ptr] != 0) {", code)
        self.assertIn("tape[ptr] = 0;", code)
        self.assertEqual(code.count("{"), code.count("}"))
        self.assertTrue(code.rstrip().endswith("}"))

    def test_c_loop_body_is_indented(self) -> None:
        lines = transpile(parse("+[>]")).splitlines()
        self.assertIn("    tape[ptr] += 1;", lines)
        self.assertIn("    while (tape[ptr] != 0) {", lines)
        self.assertIn("        ptr += 1;", lines)
        self.assertIn("    }", lines)

    def test_io_is_emitted_per_repetition(self) -> None:
        code = transpile(parse("...,,"))
        self.assertEqual(code.count("putchar(tape[ptr]);"), 3)
        self.assertEqual(code.count("getchar()"), 2)

    def test_python_target_compiles(self) -> None:
        for sample in SAMPLES:
            with self.subTest(sample=sample):
                code = transpile(parse(sample), target="python")
                compile(code, "<generated>", "exec")

    def test_python_empty_loop_uses_pass(self) -> None:
        lines = Transpiler(PYTHON_TARGET).transpile(parse("[]")).splitlines()
        index = lines.index("while tape[ptr] != 0:")
        self.assertEqual(lines[index + 1], "    pass")

    def test_python_output_matches_interpreter(self) -> None:
        code = transpile(parse("++++++++[>++++++++<-]>."), target="python")
        result = subprocess.run(
            [sys.executable, "-c", code],
            input=b"",
            capture_output=True,
            check=True,
            timeout=60,
        )
        self.assertEqual(result.stdout, b"@")

    def test_python_echo_with_eof_zero(self) -> None:
        code = transpile(parse(",.,."), target="python")
        result = subprocess.run(
            [sys.executable, "-c", code],
            input=b"A",
            capture_output=True,
            check=True,
            timeout=60,
        )
        self.assertEqual(result.stdout, b"A\x00")

    def test_custom_tape_length(self) -> None:
        code = Transpiler(C_TARGET, tape_length=64).transpile(parse("+"))
        self.assertIn("static unsigned char tape[64];", code)

    def test_target_lookup(self) -> None:
        self.assertIs(get_target("C"), C_TARGET)
        self.assertIs(get_target("python"), PYTHON_TARGET)
        with self.assertRaises(ValueError):
            get_target("cobol")

    def test_transpiler_is_reusable(self) -> None:
        transpiler = Transpiler("c")
        first = transpiler.transpile(parse("+"))
        second = transpiler.transpile(parse("+"))
        self.assertEqual(first, second)


if __name__ == "__main__":
    unittest.main()
