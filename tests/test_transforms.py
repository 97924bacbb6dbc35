"""Tests for rigid transformation utilities."""

from __future__ import annotations

import pytest
import numpy as np
from numpy.testing import assert_array_almost_equal
from scipy.spatial.transform import Rotation

from instrument_nav.common.errors import InvalidTransform, NavigationError
from instrument_nav.common.transforms import (
    RigidTransform,
    make_transform,
    rotation_matrix_to_euler,
    quaternion_to_rotation_matrix,
    is_valid_rotation_matrix,
    to_rotation_matrix,
)


ROT_Z_90 = np.array([
    [0, -1, 0],
    [1, 0, 0],
    [0, 0, 1],
], dtype=np.float64)


class TestRigidTransformBuild:
    """Tests for validated construction."""

    def test_build_valid(self):
        """A proper rotation and finite translation build fine."""
        T = RigidTransform.build(ROT_Z_90, [1, 2, 3])

        assert_array_almost_equal(T.rotation, ROT_Z_90)
        assert_array_almost_equal(T.translation, [1, 2, 3])

    def test_build_rejects_scaled_rotation(self):
        """A scaled matrix is not orthonormal."""
        with pytest.raises(InvalidTransform):
            RigidTransform.build(np.eye(3) * 1.1, [0, 0, 0])

    def test_build_rejects_reflection(self):
        """Reflections have det = -1."""
        with pytest.raises(InvalidTransform):
            RigidTransform.build(np.diag([1.0, 1.0, -1.0]), [0, 0, 0])

    def test_build_rejects_nan(self):
        """NaN anywhere is invalid."""
        with pytest.raises(InvalidTransform):
            RigidTransform.build(np.eye(3), [0, np.nan, 0])

    def test_build_rejects_wrong_shape(self):
        """Rotation must be 3x3."""
        with pytest.raises(InvalidTransform):
            RigidTransform.build(np.eye(4), [0, 0, 0])

    def test_invalid_transform_is_value_error(self):
        """Callers guarding with ValueError still catch transform errors."""
        assert issubclass(InvalidTransform, NavigationError)
        assert issubclass(InvalidTransform, ValueError)

    def test_arrays_are_read_only(self):
        """Transforms are replaced, never mutated."""
        T = RigidTransform.build(np.eye(3), [1, 2, 3])

        with pytest.raises(ValueError):
            T.translation[0] = 5.0


class TestRigidTransformMatrix:
    """Tests for 4x4 matrix conversion."""

    def test_from_nested_matrix(self):
        """Nested 4x4 matrices are accepted."""
        M = make_transform(ROT_Z_90, [10, -20, 5])

        T = RigidTransform.from_matrix(M.tolist())

        assert_array_almost_equal(T.to_matrix(), M)

    def test_from_flat_matrix(self):
        """Flat 16-element row-major matrices are accepted."""
        M = make_transform(ROT_Z_90, [10, -20, 5])

        T = RigidTransform.from_matrix(M.flatten().tolist())

        assert_array_almost_equal(T.translation, [10, -20, 5])

    def test_invalid_bottom_row(self):
        """The homogeneous row must be [0, 0, 0, 1]."""
        M = np.eye(4)
        M[3, 0] = 1.0

        with pytest.raises(InvalidTransform):
            RigidTransform.from_matrix(M)

    def test_invalid_size(self):
        """A 12-element list is not a transform."""
        with pytest.raises(InvalidTransform):
            RigidTransform.from_matrix(list(range(12)))

    def test_from_dict_rotation_translation(self):
        """Dictionaries with rotation + translation are accepted."""
        T = RigidTransform.from_dict({"rotation": ROT_Z_90.tolist(), "translation": [1, 2, 3]})

        assert_array_almost_equal(T.rotation, ROT_Z_90)

    def test_from_dict_missing_keys(self):
        """Dictionaries without a transform fail."""
        with pytest.raises(InvalidTransform):
            RigidTransform.from_dict({"scale": 1.0})

    def test_dict_matches_constructor(self):
        """to_dict feeds back into from_dict."""
        T = RigidTransform.build(ROT_Z_90, [4, 5, 6])

        restored = RigidTransform.from_dict(T.to_dict())

        assert_array_almost_equal(restored.to_matrix(), T.to_matrix())


class TestRigidTransformOps:
    """Tests for apply / invert / compose."""

    def test_apply_single_point(self):
        """A 3-vector maps to a 3-vector."""
        T = RigidTransform.build(ROT_Z_90, [10, 0, 0])

        result = T.apply([1, 0, 0])

        assert result.shape == (3,)
        assert_array_almost_equal(result, [10, 1, 0])

    def test_apply_points(self):
        """Nx3 inputs keep their shape."""
        T = RigidTransform.build(np.eye(3), [1, 2, 3])
        points = np.array([[0, 0, 0], [1, 1, 1]], dtype=np.float64)

        result = T.apply(points)

        assert_array_almost_equal(result, [[1, 2, 3], [2, 3, 4]])

    def test_apply_bad_shape(self):
        """Inputs that aren't 3-vectors fail."""
        with pytest.raises(ValueError):
            RigidTransform.identity().apply([1, 2])

    def test_invert_compose_is_identity(self, sample_transform):
        """T composed with its inverse is the identity."""
        result = sample_transform.compose(sample_transform.invert())

        assert result.is_identity(tol=1e-9)

    def test_compose_order(self):
        """compose applies the argument first."""
        shift = RigidTransform.build(np.eye(3), [1, 0, 0])
        turn = RigidTransform.build(ROT_Z_90, [0, 0, 0])

        result = turn.compose(shift).apply([0, 0, 0])

        assert_array_almost_equal(result, [0, 1, 0])

    def test_identity(self, identity_transform):
        """The identity leaves points unchanged."""
        assert identity_transform.is_identity()
        assert_array_almost_equal(identity_transform.apply([3, 4, 5]), [3, 4, 5])


class TestRotationConversions:
    """Tests for rotation helpers."""

    def test_identity_euler(self):
        """Identity rotation gives zero angles."""
        angles = rotation_matrix_to_euler(np.eye(3))

        assert_array_almost_equal(angles, [0, 0, 0], decimal=10)

    def test_euler_degrees(self):
        """A 90° turn about Z reads back in degrees."""
        angles = rotation_matrix_to_euler(ROT_Z_90, degrees=True)

        assert_array_almost_equal(angles, [0, 0, 90])

    def test_quaternion_is_scalar_first(self):
        """Quaternions are [w, x, y, z]."""
        s = np.sqrt(0.5)

        R = quaternion_to_rotation_matrix([s, 0, 0, s])

        assert_array_almost_equal(R, ROT_Z_90)

    def test_quaternion_wrong_size(self):
        """Quaternions need 4 elements."""
        with pytest.raises(ValueError):
            quaternion_to_rotation_matrix([1, 0, 0])

    def test_valid_rotation(self):
        """scipy rotations are valid."""
        R = Rotation.from_euler('xyz', [0.1, 0.2, 0.3]).as_matrix()

        assert is_valid_rotation_matrix(R) is True

    def test_invalid_rotation_determinant(self):
        """Reflection matrices fail validation."""
        assert is_valid_rotation_matrix(np.diag([1, 1, -1])) is False


class TestToRotationMatrix:
    """Tests for canonicalizing tracker orientation payloads."""

    def test_3x3(self):
        """3x3 matrices pass through."""
        assert_array_almost_equal(to_rotation_matrix(ROT_Z_90.tolist()), ROT_Z_90)

    def test_nested_4x4(self):
        """Nested 4x4 matrices use the upper-left block."""
        M = make_transform(ROT_Z_90, [7, 8, 9])

        assert_array_almost_equal(to_rotation_matrix(M.tolist()), ROT_Z_90)

    def test_flat_16(self):
        """Flat row-major 4x4 matrices use the upper-left block."""
        M = make_transform(ROT_Z_90, [7, 8, 9])

        assert_array_almost_equal(to_rotation_matrix(M.flatten().tolist()), ROT_Z_90)

    def test_flat_9(self):
        """Flat 9-element lists are row-major 3x3."""
        assert_array_almost_equal(to_rotation_matrix(ROT_Z_90.flatten().tolist()), ROT_Z_90)

    def test_quaternion(self):
        """4-element inputs are quaternions."""
        assert_array_almost_equal(to_rotation_matrix([1, 0, 0, 0]), np.eye(3))

    def test_garbled_matrix_kept(self):
        """No orthonormality check: degenerate matrices are passed on."""
        R = np.zeros((3, 3))

        assert_array_almost_equal(to_rotation_matrix(R), R)

    def test_unrecognized_shape(self):
        """Other shapes fail."""
        with pytest.raises(ValueError):
            to_rotation_matrix([1, 2, 3, 4, 5])
