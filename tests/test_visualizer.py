import io
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest.mock import patch

from bft import ExecutionState, TapeUnderflow, UnmatchedOpenBracket, VisualizerSession
from bft.vm import StepLimitExceeded
from bft.visualizer import _format_code_window, _to_input_bytes, format_state
from bft.visualizer import main as visualizer_main


class VisualizerSessionTests(unittest.TestCase):
    def test_basic_stepping(self) -> None:
        session = VisualizerSession("+++.", input_template=b"", tape_window=2, max_steps=100)
        initial = session.current_state()
        self.assertIsNone(initial.instruction)
        self.assertEqual(initial.step, 0)
        states = session.step_forward(2)
        self.assertEqual(len(states), 2)
        self.assertEqual(states[-1].step, 2)
        self.assertFalse(session.is_finished())

    def test_breakpoint(self) -> None:
        session = VisualizerSession("+++.", input_template=b"", tape_window=2, max_steps=100)
        session.add_breakpoint(2)
        session.run_until_break()
        self.assertEqual(session.hit_breakpoint, 2)
        self.assertEqual(session.current_state().ip, 2)

    def test_restart(self) -> None:
        session = VisualizerSession("+.", input_template=b"", tape_window=2, max_steps=100)
        session.step_forward(3)
        self.assertTrue(session.is_finished())
        self.assertEqual(session.output, b"\x01")
        session.restart()
        self.assertFalse(session.is_finished())
        self.assertEqual(session.current_state().step, 0)
        self.assertEqual(session.output, b"")

    def test_states_carry_output_and_input(self) -> None:
        session = VisualizerSession(",.,.", input_template=b"ok")
        session.run_until_break()
        self.assertTrue(session.is_finished())
        self.assertEqual(session.current_state().output, b"ok")

    def test_comments_are_stripped_from_instruction_code(self) -> None:
        session = VisualizerSession("add one: +\nprint: .", input_template=b"")
        self.assertEqual(session.instruction_code, "+.")
        states = session.step_forward(1)
        self.assertEqual((states[0].line, states[0].column), (1, 10))

    def test_invalid_program_is_rejected(self) -> None:
        with self.assertRaises(UnmatchedOpenBracket):
            VisualizerSession("[", input_template=b"")


class VisualizerSessionAdvancedTests(unittest.TestCase):
    def test_step_forward_zero_count_keeps_state(self) -> None:
        session = VisualizerSession("++", input_template=b"", history_limit=5)
        initial_state = session.current_state()
        states = session.step_forward(0)
        self.assertEqual(states, [])
        self.assertIs(session.current_state(), initial_state)
        self.assertFalse(session.is_finished())
        self.assertIsNone(session.hit_breakpoint)

    def test_step_forward_stops_on_breakpoint(self) -> None:
        session = VisualizerSession("+++.>", input_template=b"", max_steps=100)
        session.add_breakpoint(2)
        states = session.step_forward(10)
        self.assertTrue(states)
        self.assertEqual(session.hit_breakpoint, 2)
        self.assertEqual(states[-1].ip, 2)
        self.assertFalse(session.is_finished())

    def test_run_until_break_limit(self) -> None:
        session = VisualizerSession("+++++.", input_template=b"", max_steps=100)
        session.add_breakpoint(5)
        states = session.run_until_break(limit=2)
        self.assertEqual(len(states), 2)
        self.assertIsNone(session.hit_breakpoint)
        self.assertEqual(session.current_state(), states[-1])
        self.assertFalse(session.is_finished())

    def test_run_until_break_propagates_step_limit(self) -> None:
        session = VisualizerSession("+[]", input_template=b"", max_steps=2)
        with self.assertRaises(StepLimitExceeded):
            session.run_until_break()
        self.assertTrue(session.is_finished())

    def test_runtime_error_finishes_session(self) -> None:
        session = VisualizerSession("+<", input_template=b"")
        with self.assertRaises(TapeUnderflow):
            session.run_until_break()
        self.assertTrue(session.is_finished())
        self.assertIsInstance(session.error, TapeUnderflow)
        self.assertEqual(session.current_state().step, 1)
        self.assertEqual(session.step_forward(1), [])

    def test_history_limit_discards_old_entries(self) -> None:
        session = VisualizerSession("+++++.", input_template=b"", history_limit=3, max_steps=100)
        session.step_forward(5)
        self.assertEqual(len(session.history), 3)
        self.assertGreater(session.history[0].step, 0)
        self.assertEqual(session.history[-1], session.current_state())

    def test_breakpoint_management_helpers(self) -> None:
        session = VisualizerSession("+++.", input_template=b"")
        session.add_breakpoint(3)
        session.add_breakpoint(1)
        self.assertEqual(session.list_breakpoints(), [1, 3])
        self.assertTrue(session.remove_breakpoint(1))
        self.assertFalse(session.remove_breakpoint(99))
        session.clear_breakpoints()
        self.assertEqual(session.list_breakpoints(), [])


class VisualizerUtilityTests(unittest.TestCase):
    def test_to_input_bytes(self) -> None:
        self.assertEqual(_to_input_bytes("Az0"), b"Az0")

    def test_format_code_window_marks_end(self) -> None:
        self.assertEqual(_format_code_window("+", 5), "+[END]")
        self.assertEqual(_format_code_window("", 0), "(empty)")

    def test_format_state_renders_core_sections(self) -> None:
        state = ExecutionState(
            step=3,
            ip=1,
            instruction="+",
            line=1,
            column=1,
            head=1,
            tape_start=0,
            tape=[1, 2, 3],
            code_length=3,
            output=b"A",
        )
        rendered = format_state(state, "++.")
        self.assertIn("step=3 ip=1/3 instruction='+' at 1:1 head=1", rendered)
        self.assertIn("output='A'", rendered)
        self.assertIn("[1:002]", rendered)
        self.assertIn("code=+[+].", rendered)


class VisualizerMainTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmpdir.cleanup)
        self.tmp_path = Path(self._tmpdir.name)

    def invoke(self, argv, commands=()):
        stdout = io.StringIO()
        stderr = io.StringIO()
        with patch("builtins.input", side_effect=[*commands, EOFError()]):
            with redirect_stdout(stdout), redirect_stderr(stderr):
                status = visualizer_main(argv)
        return status, stdout.getvalue(), stderr.getvalue()

    def test_non_utf8_source_is_accepted(self) -> None:
        path = self.tmp_path / "prog.bf"
        path.write_bytes(b"\xff+.")
        status, output, errors = self.invoke([str(path)], ["run"])
        self.assertEqual(status, 0, errors)
        self.assertIn("ip=2/2", output)
        self.assertIn("output='\\x01'", output)

    def test_extensible_flag_before_source(self) -> None:
        path = self.tmp_path / "prog.bf"
        path.write_text(">>+", encoding="utf-8")
        status, output, errors = self.invoke(["-c", "1", "-e", str(path)], ["run"])
        self.assertEqual(status, 0, errors)
        self.assertEqual(errors, "")
        self.assertIn("head=2", output)

    def test_missing_file(self) -> None:
        status, _, errors = self.invoke([str(self.tmp_path / "missing.bf")])
        self.assertEqual(status, 1)
        self.assertIn("Cannot open file", errors)

    def test_invalid_program(self) -> None:
        path = self.tmp_path / "prog.bf"
        path.write_text("[", encoding="utf-8")
        status, _, errors = self.invoke([str(path)])
        self.assertEqual(status, 1)
        self.assertIn("Invalid program", errors)


if __name__ == "__main__":
    unittest.main()
