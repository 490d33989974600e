import io
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path

from bft.cli import main as cli_main


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmpdir.cleanup)
        self.tmp_path = Path(self._tmpdir.name)

    def write_program(self, source: str, name: str = "prog.bf") -> str:
        path = self.tmp_path / name
        path.write_text(source, encoding="utf-8")
        return str(path)

    def invoke(self, argv, data: bytes = b""):
        stdout = io.BytesIO()
        stderr = io.StringIO()
        with redirect_stderr(stderr):
            status = cli_main(argv, stdin=io.BytesIO(data), stdout=stdout)
        return status, stdout.getvalue(), stderr.getvalue()

    def test_runs_program(self) -> None:
        path = self.write_program("+" * 65 + ".")
        status, output, errors = self.invoke([path])
        self.assertEqual(status, 0)
        self.assertEqual(output, b"A")
        self.assertEqual(errors, "")

    def test_reads_input(self) -> None:
        path = self.write_program(",+.")
        status, output, _ = self.invoke([path], b"a")
        self.assertEqual(status, 0)
        self.assertEqual(output, b"b")

    def test_missing_file(self) -> None:
        status, _, errors = self.invoke([str(self.tmp_path / "missing.bf")])
        self.assertEqual(status, 1)
        self.assertIn("bft: error:", errors)

    def test_unbalanced_brackets(self) -> None:
        path = self.write_program("+[")
        status, output, errors = self.invoke([path])
        self.assertEqual(status, 1)
        self.assertEqual(output, b"")
        self.assertIn(f"{path}:1:2: UnmatchedOpenBracket", errors)

    def test_tape_overflow_with_small_tape(self) -> None:
        path = self.write_program(">>")
        status, _, errors = self.invoke(["--cells", "2", path])
        self.assertEqual(status, 1)
        self.assertIn(f"{path}:1:2: TapeOverflow", errors)

    def test_extensible_tape(self) -> None:
        path = self.write_program(">>+.")
        status, output, _ = self.invoke([path, "-c", "1", "--extensible"])
        self.assertEqual(status, 0)
        self.assertEqual(output, b"\x01")

        status, _, _ = self.invoke([path, "-c", "1", "--no-extensible"])
        self.assertEqual(status, 1)

    def test_extensible_flag_before_program(self) -> None:
        path = self.write_program(">>+.")
        status, output, errors = self.invoke(["-c", "1", "-e", path])
        self.assertEqual(status, 0, errors)
        self.assertEqual(output, b"\x01")

        status, output, _ = self.invoke(["--extensible", "-c", "1", path])
        self.assertEqual(status, 0)
        self.assertEqual(output, b"\x01")

    def test_eof_is_an_error(self) -> None:
        path = self.write_program(",")
        status, _, errors = self.invoke([path])
        self.assertEqual(status, 1)
        self.assertIn("IOError", errors)

    def test_step_limit(self) -> None:
        path = self.write_program("+[]")
        status, _, errors = self.invoke(["--max-steps", "50", path])
        self.assertEqual(status, 1)
        self.assertIn("step budget", errors)

    def test_listing(self) -> None:
        path = self.write_program("+\n[-]")
        listing = io.StringIO()
        with redirect_stdout(listing):
            status, output, _ = self.invoke(["--listing", path])
        self.assertEqual(status, 0)
        self.assertEqual(output, b"")
        self.assertEqual(
            listing.getvalue().splitlines(),
            [
                f"[{path}:1:1] Increment byte",
                f"[{path}:2:1] Zero jump",
                f"[{path}:2:2] Decrement byte",
                f"[{path}:2:3] Non zero jump",
            ],
        )

    def test_rejects_non_positive_cells(self) -> None:
        path = self.write_program("+")
        with redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit) as ctx:
                cli_main(["--cells", "0", path])
        self.assertEqual(ctx.exception.code, 2)


if __name__ == "__main__":
    unittest.main()
