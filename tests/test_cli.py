from __future__ import annotations

import io
import json
import unittest
from contextlib import redirect_stderr, redirect_stdout

from memwalk.cli import build_parser, main
from memwalk.config import load_layout

from synthetic import build_world


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self.layout = load_layout("rayman2")
        self.world = build_world(
            self.layout,
            level="ly_10",
            families=("Family_Rayman",),
            ai_models=("Model_Rayman",),
            super_objects=("Rayman", "GRP_TimerCourse_I3"),
            chain=[(0, 0), (1, 0)],
        )

    def run_cli(self, *argv: str) -> tuple[int, str, str]:
        out = io.StringIO()
        err = io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            code = main(["--pid", "4242", *argv], backend=self.world.image)
        return code, out.getvalue(), err.getvalue()

    def test_names_as_json(self) -> None:
        code, out, _ = self.run_cli("--format", "json", "names")
        self.assertEqual(code, 0)
        self.assertEqual(
            json.loads(out),
            {
                "families": ["Family_Rayman"],
                "ai_models": ["Model_Rayman"],
                "super_objects": ["Rayman", "GRP_TimerCourse_I3"],
            },
        )

    def test_walk_table_lists_every_active_object(self) -> None:
        code, out, _ = self.run_cli("walk")
        self.assertEqual(code, 0)
        self.assertIn("Rayman", out)
        self.assertIn("GRP_TimerCourse_I3", out)
        self.assertIn("0x00700100", out)
        self.assertNotIn("partial", out)

    def test_walk_ai_models_as_json(self) -> None:
        code, out, _ = self.run_cli("--format", "json", "walk", "--ai-models")
        self.assertEqual(code, 0)
        payload = json.loads(out)
        self.assertEqual(payload["status"], "complete")
        self.assertEqual(payload["registry"], {"Model_Rayman": self.world.nodes})

    def test_read_text_and_resolve(self) -> None:
        code, out, _ = self.run_cli("text", hex(self.layout.level_name))
        self.assertEqual((code, out.strip()), (0, "ly_10"))

        root = self.layout.hierarchy.root
        code, out, _ = self.run_cli("resolve", hex(root.base), *(hex(offset) for offset in root.offsets))
        self.assertEqual((code, out.strip()), (0, "0x00700000"))

        code, out, _ = self.run_cli("read", hex(root.base))
        self.assertEqual((code, out.strip()), (0, str(0x600000)))

    def test_watch_polls_a_fixed_number_of_cycles(self) -> None:
        timer = self.world.nodes[1]
        self.world.image.put(self.world.dsg[timer] + 84, "float32", 42.0)

        code, out, _ = self.run_cli(
            "--format", "json", "watch", "GRP_TimerCourse_I3:84:float32", "--cycles", "2", "--interval", "0"
        )

        self.assertEqual(code, 0)
        lines = [json.loads(line) for line in out.splitlines()]
        self.assertEqual([line["cycle"] for line in lines], [1, 2])
        self.assertEqual(lines[0]["values"], {"GRP_TimerCourse_I3+0x54": 42.0})

    def test_watch_stops_when_level_changes(self) -> None:
        code, out, _ = self.run_cli("watch", "Rayman:0", "--level", "ly_20", "--cycles", "5")
        self.assertEqual(code, 0)
        self.assertIn("Level is now 'ly_10'", out)

    def test_memory_errors_exit_with_status_one(self) -> None:
        code, out, err = self.run_cli("read", "0x10")
        self.assertEqual(code, 1)
        self.assertEqual(out, "")
        self.assertTrue(err.startswith("memwalk: "))

    def test_bad_watch_spec_exits_with_status_one(self) -> None:
        code, _, err = self.run_cli("watch", "Rayman", "--cycles", "1")
        self.assertEqual(code, 1)
        self.assertIn("NAME:OFFSET", err)

    def test_unknown_layout_is_a_usage_error(self) -> None:
        with redirect_stderr(io.StringIO()), self.assertRaises(SystemExit) as ctx:
            main(["--pid", "4242", "--layout", "nonexistent", "names"], backend=self.world.image)
        self.assertEqual(ctx.exception.code, 2)

    def test_pid_and_process_are_exclusive(self) -> None:
        with redirect_stderr(io.StringIO()), self.assertRaises(SystemExit):
            build_parser().parse_args(["--pid", "1", "--process", "x", "names"])


if __name__ == "__main__":
    unittest.main()
