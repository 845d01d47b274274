from __future__ import annotations

import json
import os
import tempfile
import unittest
from pathlib import Path

from memwalk.config import ConfigError, builtin_layouts, layout_from_payload, load_layout
from memwalk.remote import NodePath, PointerPath


class BuiltinLayoutTests(unittest.TestCase):
    def test_rayman2_is_bundled(self) -> None:
        self.assertIn("rayman2", builtin_layouts())

    def test_rayman2_addresses(self) -> None:
        layout = load_layout("rayman2")

        self.assertEqual(layout.id, "rayman2")
        self.assertEqual(layout.process_name, "Rayman2.exe")
        self.assertEqual(layout.pointer_size, 4)
        self.assertEqual(layout.level_name, 0x50039F)
        self.assertEqual(layout.hierarchy.root, PointerPath(0x500FD0, (0x8,)))
        self.assertEqual(layout.hierarchy.super_object_name_index, NodePath(0x4, (0x4, 0x8)))
        self.assertEqual(layout.hierarchy.next_sibling, NodePath(0x14))
        self.assertEqual(layout.object_types.headers, 0x5013E0)
        self.assertEqual(layout.family.mesh_vertex_count, 0x2C)
        self.assertEqual(layout.super_object.dsg_memory, NodePath(0xC, (0x8,)))

    def test_unknown_builtin_lists_available_layouts(self) -> None:
        with self.assertRaisesRegex(ConfigError, "rayman2"):
            load_layout("rayman3")


class LayoutFileTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.root = Path(self._tmp.name)

    def test_yaml_layout_overrides_defaults(self) -> None:
        path = self.root / "custom.yaml"
        path.write_text(
            "\n".join(
                [
                    "id: custom",
                    "pointer_size: 8",
                    "level_name: 0x1000",
                    "hierarchy:",
                    "  root: {base: '0x2000', offsets: ['0x10']}",
                    "  next_sibling: {displacement: '0x30'}",
                    "object_types:",
                    "  headers: '0x3000'",
                    "  header_stride: 24",
                ]
            ),
            encoding="utf-8",
        )

        layout = load_layout(path)

        self.assertEqual(layout.id, "custom")
        self.assertEqual(layout.pointer_size, 8)
        self.assertEqual(layout.level_name, 0x1000)
        self.assertEqual(layout.hierarchy.root, PointerPath(0x2000, (0x10,)))
        self.assertEqual(layout.hierarchy.next_sibling, NodePath(0x30))
        self.assertEqual(layout.hierarchy.ai_model_name_index, NodePath(0x4, (0x4, 0x4)))
        self.assertEqual(layout.object_types.header_stride, 24)
        self.assertEqual(layout.family.entry_stride, 0x14)

    def test_json_layout_from_string_path(self) -> None:
        path = self.root / "tiny.json"
        path.write_text(json.dumps({"id": "tiny", "level_name": 16}), encoding="utf-8")

        layout = load_layout(str(path))
        self.assertEqual(layout.id, "tiny")
        self.assertIsNone(layout.hierarchy.root)

    def test_missing_file(self) -> None:
        with self.assertRaisesRegex(ConfigError, "not found"):
            load_layout(self.root / "absent.json")

    def test_unparsable_file(self) -> None:
        path = self.root / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with self.assertRaisesRegex(ConfigError, "Cannot parse"):
            load_layout(path)

    def test_bare_name_ignores_same_named_file_in_working_directory(self) -> None:
        (self.root / "rayman2").write_text("not a layout", encoding="utf-8")
        self.addCleanup(os.chdir, os.getcwd())
        os.chdir(self.root)

        self.assertEqual(load_layout("rayman2").id, "rayman2")

    def test_unsupported_suffix(self) -> None:
        path = self.root / "layout.toml"
        path.write_text("id = 'x'", encoding="utf-8")
        with self.assertRaisesRegex(ConfigError, "Unsupported"):
            load_layout(path)


class LayoutPayloadTests(unittest.TestCase):
    def test_invalid_payloads_are_config_errors(self) -> None:
        cases = [
            [],
            {},
            {"id": "x", "pointer_size": 2},
            {"id": "x", "level_name": "0xZZ"},
            {"id": "x", "level_name": True},
            {"id": "x", "hierarchy": {"root": {"offsets": [4]}}},
            {"id": "x", "hierarchy": {"next_sibling": {"displacement": 4, "offsets": 8}}},
            {"id": "x", "family": []},
        ]
        for payload in cases:
            with self.subTest(payload=payload):
                with self.assertRaises(ConfigError):
                    layout_from_payload(payload)


if __name__ == "__main__":
    unittest.main()
