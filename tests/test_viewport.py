import random
import unittest

from s4.viewport import (
    adjust_scroll,
    clamp_cursor,
    clamp_preview_scroll,
    half_page,
    max_preview_scroll,
    visible_rows,
    visible_window,
)


class TestViewport(unittest.TestCase):
    def test_visible_rows_has_a_floor(self) -> None:
        self.assertEqual(visible_rows(24), 16)
        self.assertEqual(visible_rows(10), 5)
        self.assertEqual(visible_rows(0), 5)

    def test_half_page(self) -> None:
        self.assertEqual(half_page(24), 8)
        self.assertEqual(half_page(3), 2)

    def test_clamp_cursor(self) -> None:
        self.assertEqual(clamp_cursor(5, 0), 0)
        self.assertEqual(clamp_cursor(-1, 3), 0)
        self.assertEqual(clamp_cursor(7, 3), 2)

    def test_scroll_keeps_margin_from_bottom(self) -> None:
        self.assertEqual(adjust_scroll(13, 0, 40, 16), 0)
        self.assertEqual(adjust_scroll(14, 0, 40, 16), 1)

    def test_scroll_keeps_margin_from_top(self) -> None:
        self.assertEqual(adjust_scroll(11, 10, 40, 16), 9)
        self.assertEqual(adjust_scroll(0, 10, 40, 16), 0)

    def test_scroll_never_passes_the_end(self) -> None:
        self.assertEqual(adjust_scroll(39, 0, 40, 16), 24)
        self.assertEqual(adjust_scroll(3, 0, 4, 16), 0)

    def test_cursor_always_visible(self) -> None:
        rng = random.Random(7)
        for count in range(0, 60):
            for visible in (5, 6, 9, 16):
                cursor = 0
                offset = 0
                for _ in range(40):
                    cursor = clamp_cursor(cursor + rng.randint(-12, 12), count)
                    offset = adjust_scroll(cursor, offset, count, visible)
                    self.assertGreaterEqual(offset, 0)
                    self.assertLessEqual(offset, max(0, count - visible))
                    if count:
                        self.assertLessEqual(offset, cursor)
                        self.assertLess(cursor, offset + visible)

    def test_preview_scroll_bounds(self) -> None:
        self.assertEqual(max_preview_scroll(100, 16), 84)
        self.assertEqual(max_preview_scroll(3, 16), 0)
        self.assertEqual(clamp_preview_scroll(200, 100, 16), 84)
        self.assertEqual(clamp_preview_scroll(-5, 100, 16), 0)

    def test_visible_window(self) -> None:
        self.assertEqual(visible_window(3, 40, 16), (3, 19))
        self.assertEqual(visible_window(0, 4, 16), (0, 4))


if __name__ == "__main__":
    unittest.main()
