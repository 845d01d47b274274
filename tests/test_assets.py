from __future__ import annotations

import unittest

from memwalk.config import load_layout
from memwalk.remote import (
    LayoutViolationError,
    MemoryImageBackend,
    RemoteProcess,
    default_objects_table,
    family_mesh_vertices,
)

FAMILY = 0x900000
TABLE = 0x910000
ENTRIES = 0x920000
VISUAL_LINKS = 0x930000
VISUAL_SETS = 0x940000
MESH_LINKS = 0x950000
MESHES = 0x960000
VERTICES = 0x970000
SLOT = 0x100


class FamilyImage:
    """A family whose default objects each carry one visual set and one mesh."""

    def __init__(self, layout, entry_count: int):
        self.layout = layout.family
        self.image = MemoryImageBackend(pid=9)
        self.process = RemoteProcess(pid=9, backend=self.image)
        self.image.map(FAMILY, 0x40)
        self.image.map(TABLE, 0x20)
        self.image.map(ENTRIES, self.layout.entry_stride * max(entry_count, 1))
        self.image.put_u32(FAMILY + self.layout.default_objects_table, TABLE)
        last = ENTRIES + self.layout.entry_stride * max(entry_count - 1, 0)
        self.image.put_u32(TABLE + self.layout.table_header, ENTRIES, last, entry_count)

    def entry(self, index: int) -> int:
        return ENTRIES + index * self.layout.entry_stride

    def add_object(
        self,
        index: int,
        vertices: list[float] | None = None,
        *,
        buffer: int | None = None,
        vertex_count: int | None = None,
        lod_count: int = 1,
        visual_type: int = 0,
    ) -> int:
        link = VISUAL_LINKS + index * SLOT
        visual_set = VISUAL_SETS + index * SLOT
        mesh_link = MESH_LINKS + index * SLOT
        mesh = MESHES + index * SLOT
        buffer = VERTICES + index * SLOT if buffer is None else buffer
        vertices = vertices if vertices is not None else [float(index), 0.0, 1.0]

        for region in (link, visual_set, mesh_link, mesh):
            self.image.map(region, 0x40)
        if self.image.region_size(buffer) == 0:
            self.image.map(buffer, max(4 * len(vertices), 4))
            self.image.put_floats(buffer, vertices)

        self.image.put_u32(self.entry(index) + 4, link)
        self.image.put_u32(link, visual_set)
        self.image.put(visual_set + self.layout.visual_set_lod_info, "int16", lod_count, visual_type)
        self.image.put_u32(visual_set + 0xC, mesh_link)
        self.image.put_u32(mesh_link, mesh)
        self.image.put_u32(mesh, buffer)
        count = len(vertices) // 3 if vertex_count is None else vertex_count
        self.image.put(mesh + self.layout.mesh_vertex_count, "int16", count)
        return buffer


class DefaultObjectsTableTests(unittest.TestCase):
    def test_reads_first_entry_and_count(self) -> None:
        family = FamilyImage(load_layout("rayman2"), 3)
        self.assertEqual(default_objects_table(family.process, FAMILY, family.layout), (ENTRIES, 3))

    def test_missing_table_is_a_layout_violation(self) -> None:
        family = FamilyImage(load_layout("rayman2"), 3)
        with self.assertRaisesRegex(LayoutViolationError, "default object table"):
            family_mesh_vertices(family.process, FAMILY + 0x100000, family.layout)

    def test_unreadable_header_is_a_layout_violation(self) -> None:
        family = FamilyImage(load_layout("rayman2"), 3)
        family.image.put_u32(FAMILY + family.layout.default_objects_table, 0xA00000)
        with self.assertRaisesRegex(LayoutViolationError, "number of entries"):
            family_mesh_vertices(family.process, FAMILY, family.layout)


class FamilyMeshVerticesTests(unittest.TestCase):
    def setUp(self) -> None:
        self.family = FamilyImage(load_layout("rayman2"), 3)
        self.buffers = [
            self.family.add_object(0, [0.0, 0.0, 0.0, 1.0, 0.0, 0.0]),
            self.family.add_object(1, [2.0, 2.0, 2.0]),
            self.family.add_object(2, [3.0, 3.0, 3.0, 4.0, 4.0, 4.0]),
        ]
        self.process = self.family.process
        self.layout = self.family.layout

    def test_reads_every_default_object_mesh(self) -> None:
        meshes = family_mesh_vertices(self.process, FAMILY, self.layout)

        self.assertEqual(set(meshes), set(self.buffers))
        self.assertEqual(meshes[self.buffers[0]], [0.0, 0.0, 0.0, 1.0, 0.0, 0.0])
        self.assertEqual(meshes[self.buffers[1]], [2.0, 2.0, 2.0])
        for coords in meshes.values():
            self.assertEqual(len(coords) % 3, 0)

    def test_indices_are_skipped_by_default(self) -> None:
        meshes = family_mesh_vertices(self.process, FAMILY, self.layout, indices=[1])
        self.assertEqual(set(meshes), {self.buffers[0], self.buffers[2]})

    def test_keep_instead_reads_only_listed_indices(self) -> None:
        meshes = family_mesh_vertices(self.process, FAMILY, self.layout, keep_instead=True, indices=[1])
        self.assertEqual(meshes, {self.buffers[1]: [2.0, 2.0, 2.0]})

    def test_keep_instead_without_indices_reads_nothing(self) -> None:
        self.assertEqual(family_mesh_vertices(self.process, FAMILY, self.layout, keep_instead=True), {})

    def test_shared_vertex_buffer_appears_once(self) -> None:
        family = FamilyImage(load_layout("rayman2"), 2)
        shared = family.add_object(0, [5.0, 6.0, 7.0])
        family.add_object(1, [5.0, 6.0, 7.0], buffer=shared)

        meshes = family_mesh_vertices(family.process, FAMILY, family.layout)
        self.assertEqual(meshes, {shared: [5.0, 6.0, 7.0]})

    def test_default_layout_is_used_when_none_given(self) -> None:
        meshes = family_mesh_vertices(self.process, FAMILY)
        self.assertEqual(len(meshes), 3)


class FamilyMeshRecordSkipTests(unittest.TestCase):
    def setUp(self) -> None:
        self.family = FamilyImage(load_layout("rayman2"), 4)
        self.good = self.family.add_object(3, [1.0, 2.0, 3.0])

    def test_unreadable_visual_set_skips_the_record(self) -> None:
        self.family.image.put_u32(self.family.entry(0) + 4, 0xBAD000)
        meshes = family_mesh_vertices(self.family.process, FAMILY, self.family.layout)
        self.assertEqual(meshes, {self.good: [1.0, 2.0, 3.0]})

    def test_no_level_of_detail_skips_the_record(self) -> None:
        self.family.add_object(0, lod_count=0)
        meshes = family_mesh_vertices(self.family.process, FAMILY, self.family.layout)
        self.assertEqual(list(meshes), [self.good])

    def test_non_mesh_visual_type_skips_the_record(self) -> None:
        self.family.add_object(1, visual_type=1)
        meshes = family_mesh_vertices(self.family.process, FAMILY, self.family.layout)
        self.assertEqual(list(meshes), [self.good])

    def test_unreadable_mesh_pointer_skips_the_record(self) -> None:
        self.family.add_object(2)
        self.family.image.put_u32(VISUAL_SETS + 2 * SLOT + 0xC, 0xBAD000)
        meshes = family_mesh_vertices(self.family.process, FAMILY, self.family.layout)
        self.assertEqual(list(meshes), [self.good])


class WideTargetMeshTests(unittest.TestCase):
    def test_torn_visual_set_link_skips_the_record(self) -> None:
        image = MemoryImageBackend()
        image.map(0x1000, 0x40)
        image.map(0x2000, 0x40)
        image.map(0x3000, 0x30)
        image.put(0x101C, "uint64", 0x2000)
        image.put(0x2004, "uint64", 0x3000, 0x3014, 2)
        image.put(0x3004, "uint64", 0xFFFFFFFFFFFFFFFC)
        process = RemoteProcess(pid=image.pid, backend=image, pointer_size=8)

        self.assertEqual(family_mesh_vertices(process, 0x1000), {})
        self.assertEqual(family_mesh_vertices(process, 0x1000, keep_instead=True, indices=[0]), {})


class FamilyMeshHardFailureTests(unittest.TestCase):
    def setUp(self) -> None:
        self.family = FamilyImage(load_layout("rayman2"), 1)

    def test_short_vertex_buffer_is_a_layout_violation(self) -> None:
        self.family.add_object(0, [1.0, 2.0, 3.0], vertex_count=2)
        with self.assertRaisesRegex(LayoutViolationError, "vertex positions"):
            family_mesh_vertices(self.family.process, FAMILY, self.family.layout)

    def test_unmapped_vertex_buffer_is_a_layout_violation(self) -> None:
        self.family.add_object(0, [1.0, 2.0, 3.0])
        self.family.image.put_u32(MESHES, 0xBAD000)
        with self.assertRaisesRegex(LayoutViolationError, "vertex positions"):
            family_mesh_vertices(self.family.process, FAMILY, self.family.layout)

    def test_negative_vertex_count_is_a_layout_violation(self) -> None:
        self.family.add_object(0, [1.0, 2.0, 3.0], vertex_count=-1)
        with self.assertRaisesRegex(LayoutViolationError, "number of vertices"):
            family_mesh_vertices(self.family.process, FAMILY, self.family.layout)

    def test_zero_vertices_yield_an_empty_mesh(self) -> None:
        buffer = self.family.add_object(0, [], vertex_count=0)
        meshes = family_mesh_vertices(self.family.process, FAMILY, self.family.layout)
        self.assertEqual(meshes, {buffer: []})


if __name__ == "__main__":
    unittest.main()
