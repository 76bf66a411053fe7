import unittest

from core.events import EventRecorder
from core.fov_axis import (
    FovAxis,
    GlobalPoint,
    TileOverlap,
    tile_origins_extended_from,
    tile_origins_subdivided_from,
    validate_pixel_overlap,
)
from core.scale import Scale2D


class TestFovAxis(unittest.TestCase):
    def test_layout_and_index_mapping(self):
        fov = FovAxis(3, 2)
        self.assertEqual(fov.count, 6)
        self.assertEqual(fov.name, "FOV")
        self.assertTrue(fov.is_index_based)
        self.assertEqual(fov.tile_layout, (3, 2, 1))
        self.assertEqual(fov.get_index(2, 1), 5)
        self.assertEqual(fov.tile_position(4), (1, 1))
        self.assertEqual(fov[0], GlobalPoint(0.0, 0.0, 0.0))

    def test_current_tile_follows_index(self):
        fov = FovAxis(3, 2)
        fov.current_tile = (2, 1)
        self.assertEqual(fov.index, 5)
        fov.index = 1
        self.assertEqual(fov.current_tile, (1, 0))

    def test_origin_assignment_fires_once(self):
        fov = FovAxis(3, 2)
        rec = EventRecorder()
        fov.origin_changed.subscribe(rec)
        fov[1, 1] = GlobalPoint(1.0, 2.0)
        fov[4] = GlobalPoint(1.0, 2.0)
        self.assertEqual(fov[4], GlobalPoint(1.0, 2.0, 0.0))
        self.assertEqual(len(rec.events), 1)
        self.assertEqual(rec.events[0].detail, 4)

    def test_invalid_layouts_and_lookups(self):
        with self.assertRaises(ValueError):
            FovAxis(2, 2, 2)
        with self.assertRaises(ValueError):
            FovAxis(2, 2, origins=[GlobalPoint()] * 3)
        fov = FovAxis(2, 2)
        with self.assertRaises(IndexError):
            fov.get_index(2, 0)
        with self.assertRaises(IndexError):
            fov[4]

    def test_clone_preserves_type_and_origins(self):
        fov = FovAxis(2, 1, origins=[GlobalPoint(0.0, 0.0), GlobalPoint(5.0, 0.0)])
        fov.unit = "um"
        copy = fov.clone()
        self.assertIsInstance(copy, FovAxis)
        self.assertEqual(copy.tile_layout, (2, 1, 1))
        self.assertEqual(copy.origins, fov.origins)
        self.assertEqual(copy.unit, "um")
        copy[1] = GlobalPoint(9.0, 0.0)
        self.assertEqual(fov[1], GlobalPoint(5.0, 0.0))


class TestTileOrigins(unittest.TestCase):
    def test_extended_from_base_tile(self):
        tile = Scale2D(5, 0.0, 4.0, 3, 10.0, 12.0)
        origins, width, height = tile_origins_extended_from(tile, 2, 2, pixel_overlap=1, base_tile_index=3)
        self.assertEqual(
            [(p.x, p.y) for p in origins],
            [(-4.0, 8.0), (0.0, 8.0), (-4.0, 10.0), (0.0, 10.0)],
        )
        self.assertEqual((width, height), (4.0, 2.0))

    def test_subdivided_spans_the_region(self):
        total = Scale2D(5, 0.0, 12.0, 3, 0.0, 4.0)
        origins, width, height = tile_origins_subdivided_from(total, 3, 1, pixel_overlap=1)
        self.assertEqual([(p.x, p.y) for p in origins], [(0.0, 0.0), (4.0, 0.0), (8.0, 0.0)])
        self.assertEqual((width, height), (4.0, 4.0))
        self.assertAlmostEqual(origins[-1].x + width, 12.0)

    def test_validate_pixel_overlap(self):
        tile = Scale2D(5, 0.0, 4.0, 3, 0.0, 4.0)
        origins, _, _ = tile_origins_subdivided_from(Scale2D(5, 0.0, 12.0, 3, 0.0, 4.0), 3, 1)
        fov = FovAxis(3, 1, origins=origins)

        results = validate_pixel_overlap(fov, tile)
        self.assertEqual(results[0], TileOverlap(0, 0, 0, 1.0, None))
        self.assertIsNone(results[2].overlap_x)
        self.assertTrue(all(r.is_whole_pixel() for r in results))

        fov[1] = GlobalPoint(4.5, 0.0)
        with self.assertLogs("core.fov_axis", level="WARNING"):
            results = validate_pixel_overlap(fov, tile)
        self.assertAlmostEqual(results[0].overlap_x, 0.5)
        self.assertFalse(results[0].is_whole_pixel())


if __name__ == '__main__':
    unittest.main()
