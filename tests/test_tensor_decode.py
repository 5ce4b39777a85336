import unittest

import numpy as np

from yolo_det.errors import PostProcessingError
from yolo_det.tensor import decode_output, transpose_rows


class TestDecodeOutput(unittest.TestCase):
    def test_attribute_major_to_rows(self) -> None:
        # 3 objects, 2 classes -> 6 attributes, stored attribute by attribute.
        attrs = np.array(
            [
                [10, 11, 12],  # cx
                [20, 21, 22],  # cy
                [30, 31, 32],  # w
                [40, 41, 42],  # h
                [0.1, 0.2, 0.3],  # class 0
                [0.9, 0.8, 0.7],  # class 1
            ],
            dtype=np.float32,
        )
        rows = decode_output(attrs.reshape(-1), object_count=3, class_count=2)
        self.assertEqual(rows.shape, (3, 6))
        self.assertTrue(np.allclose(rows[1], [11, 21, 31, 41, 0.2, 0.8]))

    def test_accepts_engine_shaped_output(self) -> None:
        out = np.arange(84 * 8400, dtype=np.float32).reshape(1, 84, 8400)
        rows = decode_output(out)
        self.assertEqual(rows.shape, (8400, 84))
        self.assertEqual(rows[5, 0], 5.0)
        self.assertEqual(rows[5, 1], 8400.0 + 5.0)

    def test_wrong_size_raises(self) -> None:
        with self.assertRaises(PostProcessingError):
            decode_output(np.zeros(84 * 8399, dtype=np.float32))


class TestTransposeRows(unittest.TestCase):
    def test_twice_is_identity(self) -> None:
        rows = np.random.default_rng(0).random((7, 3)).astype(np.float32)
        back = transpose_rows(transpose_rows(rows))
        self.assertEqual(back.shape, rows.shape)
        self.assertTrue(np.array_equal(back, rows))

    def test_rejects_non_2d(self) -> None:
        with self.assertRaises(PostProcessingError):
            transpose_rows(np.zeros(5))


if __name__ == "__main__":
    unittest.main()
