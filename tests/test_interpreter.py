import io
import unittest

from bfast import Command, Interpreter, Leaf, Loop, Program, StepLimitExceeded, TapeBoundsExceeded, parse
from bfast.interpreter import TAPE_LENGTH, run


class InterpreterSemanticsTests(unittest.TestCase):
    def setUp(self) -> None:
        self.interpreter = Interpreter()

    def test_simple_output(self) -> None:
        output = self.interpreter.run(parse("+" * 65 + "."), max_steps=1000)
        self.assertEqual(output, "A")

    def test_increment_wraps_to_zero(self) -> None:
        self.interpreter.run(parse("+" * 256))
        self.assertEqual(self.interpreter.tape[0], 0)

    def test_increment_from_255_wraps(self) -> None:
        self.interpreter.run(parse("-+"))
        self.assertEqual(self.interpreter.tape[0], 0)

    def test_decrement_wraps_to_255(self) -> None:
        output = self.interpreter.run(parse("-."))
        self.assertEqual(output, chr(255))
        self.assertEqual(self.interpreter.tape[0], 255)

    def test_loop_clears_cell_without_moving_pointer(self) -> None:
        # built by hand so the loop is not folded into a ZeroSet leaf
        program = Program(
            (
                Leaf(Command.INCREMENT, 5),
                Loop((Leaf(Command.DECREMENT, 1),)),
            )
        )
        self.interpreter.run(program)
        self.assertEqual(self.interpreter.tape[0], 0)
        self.assertEqual(self.interpreter.pointer, 0)
        # one leaf, six condition tests, five loop-body leaves
        self.assertEqual(self.interpreter.steps, 12)

    def test_zero_set_leaf_clears_cell(self) -> None:
        self.interpreter.run(parse("+++++[-]"))
        self.assertEqual(self.interpreter.tape[0], 0)
        self.assertEqual(self.interpreter.pointer, 0)

    def test_repeated_zero_set_is_idempotent(self) -> None:
        self.interpreter.run(Program((Leaf(Command.INCREMENT, 9), Leaf(Command.ZERO_SET, 3))))
        self.assertEqual(self.interpreter.tape[0], 0)

    def test_loop_skipped_when_cell_is_zero(self) -> None:
        output = self.interpreter.run(parse("[.+]"))
        self.assertEqual(output, "")
        self.assertEqual(self.interpreter.steps, 1)

    def test_multiplication_scenario(self) -> None:
        output = self.interpreter.run(parse("++++++++[>++++++++<-]>."))
        self.assertEqual(output, chr(64))

    def test_echo_scenario(self) -> None:
        output = self.interpreter.run(parse(",."), input_data=[65])
        self.assertEqual(output, "A")

    def test_empty_program(self) -> None:
        output = self.interpreter.run(parse(""))
        self.assertEqual(output, "")
        self.assertEqual(self.interpreter.tape, bytearray(TAPE_LENGTH))
        self.assertEqual(self.interpreter.pointer, 0)

    def test_comments_do_not_change_behavior(self) -> None:
        noisy = "set up ++ four ++ then [ loop > add + < back - ] print > ."
        clean = "++++[>+<-]>."
        self.assertEqual(run(parse(noisy)), run(parse(clean)))

    def test_comments_inside_zero_loop_do_not_change_behavior(self) -> None:
        # an odd cell never reaches zero under a literal "[++]"
        noisy = "+++ clear [+ twice +] then print ."
        clean = "+++[++]."
        noisy_interpreter = Interpreter()
        clean_interpreter = Interpreter()
        self.assertEqual(
            noisy_interpreter.run(parse(noisy), max_steps=1000),
            clean_interpreter.run(parse(clean), max_steps=1000),
        )
        self.assertEqual(noisy_interpreter.tape[0], 0)
        self.assertEqual(noisy_interpreter.steps, clean_interpreter.steps)

    def test_repeated_output_leaf(self) -> None:
        self.assertEqual(run(parse("+" * 66 + "...")), "BBB")

    def test_repeated_input_leaf_keeps_last_byte(self) -> None:
        self.assertEqual(run(parse(",,,."), input_data=[1, 2, 67]), "C")

    def test_input_at_end_stores_zero(self) -> None:
        output = self.interpreter.run(parse("+++,."), input_data=[])
        self.assertEqual(output, "\x00")

    def test_input_is_reduced_to_a_byte(self) -> None:
        self.interpreter.run(parse(","), input_data=[0x141])
        self.assertEqual(self.interpreter.tape[0], 0x41)

    def test_tape_is_reset_for_each_program(self) -> None:
        self.interpreter.run(parse("+++>+"))
        output = self.interpreter.run(parse("."))
        self.assertEqual(output, "\x00")
        self.assertEqual(self.interpreter.pointer, 0)

    def test_writes_bytes_to_stdout_stream(self) -> None:
        stream = io.BytesIO()
        interpreter = Interpreter(stdout=stream)
        output = interpreter.run(parse("-.+."))
        self.assertEqual(stream.getvalue(), b"\xff\x00")
        self.assertEqual(output, "\xff\x00")


class InterpreterErrorTests(unittest.TestCase):
    def test_shift_left_of_origin(self) -> None:
        with self.assertRaises(TapeBoundsExceeded):
            run(parse("<"))

    def test_shift_past_tape_end(self) -> None:
        interpreter = Interpreter(tape_length=3)
        interpreter.run(parse(">>"))
        self.assertEqual(interpreter.pointer, 2)
        with self.assertRaises(TapeBoundsExceeded):
            interpreter.run(parse(">>>"))

    def test_bounds_error_is_an_index_error(self) -> None:
        self.assertTrue(issubclass(TapeBoundsExceeded, IndexError))

    def test_step_limit_exceeded(self) -> None:
        with self.assertRaises(StepLimitExceeded):
            Interpreter().run(parse("+[]"), max_steps=10)

    def test_step_limit_allows_exact_budget(self) -> None:
        interpreter = Interpreter()
        interpreter.run(parse("+>+"), max_steps=3)
        self.assertEqual(interpreter.steps, 3)


class InterpreterStepTests(unittest.TestCase):
    def test_step_sequence_produces_states(self) -> None:
        interpreter = Interpreter()
        states = list(interpreter.step(parse("+++."), tape_window=2))
        commands = [state.command for state in states[:-1]]
        self.assertEqual(commands, ["+", "."])
        self.assertEqual([state.node for state in states], [0, 1, None])
        self.assertEqual(states[0].count, 3)
        self.assertEqual(states[-1].output, "\x03")
        self.assertEqual(states[-1].output, states[-2].output)
        self.assertEqual(states[-1].node_count, 2)

    def test_loop_tests_are_steps(self) -> None:
        interpreter = Interpreter()
        program = Program((Leaf(Command.INCREMENT, 2), Loop((Leaf(Command.DECREMENT, 1),))))
        states = list(interpreter.step(program))
        commands = [state.command for state in states]
        self.assertEqual(commands, ["+", "[", "-", "[", "-", "[", None])
        self.assertEqual(states[1].node, 1)
        self.assertEqual(states[2].node, 2)

    def test_tape_window(self) -> None:
        interpreter = Interpreter()
        states = list(interpreter.step(parse(">>>>+"), tape_window=2))
        final = states[-1]
        self.assertEqual(final.pointer, 4)
        self.assertEqual(final.tape_start, 2)
        self.assertEqual(final.tape, [0, 0, 1, 0, 0])

    def test_step_limit(self) -> None:
        interpreter = Interpreter()
        stepper = interpreter.step(parse("+[]"), max_steps=4)
        with self.assertRaises(StepLimitExceeded):
            while True:
                next(stepper)


if __name__ == "__main__":
    unittest.main()
