"""
Tests for skeleton / target loading and animation export.
"""

import json

import numpy as np
import pytest
from numpy.testing import assert_allclose

from ccdik_solver.data_io import (
    export_animation,
    extract_pose_state,
    interpolate_target_position,
    load_skeleton,
    load_targets
)


def write_json(path, data):
    path.write_text(json.dumps(data), encoding='utf-8')
    return str(path)


SKELETON = {
    "root_name": "base",
    "joints": [
        {"name": "tip", "parent": "elbow", "offset": [1.0, 0.0, 0.0]},
        {"name": "base", "parent": None, "offset": [0.0, 0.0, 0.0]},
        {"name": "elbow", "parent": "shoulder", "offset": [1.0, 0.0, 0.0], "rotation_limit": 0.5},
        {"name": "shoulder", "parent": "base", "offset": [0.0, 0.0, 1.0],
         "quaternion": [0.7071067811865476, 0.0, 0.0, 0.7071067811865476]},
    ]
}


class TestLoadSkeleton:
    """Test skeleton parsing."""

    def test_orders_parents_first(self, tmp_path):
        pose, limits = load_skeleton(write_json(tmp_path / "skeleton.json", SKELETON))

        assert pose.names == ['base', 'shoulder', 'elbow', 'tip']
        assert pose.parents == [-1, 0, 1, 2]
        assert limits == {'elbow': 0.5}

    def test_offsets_and_rotation(self, tmp_path):
        pose, _ = load_skeleton(write_json(tmp_path / "skeleton.json", SKELETON))
        components = pose.component_transforms()

        # the shoulder is turned 90 degrees about Z
        assert_allclose(components[2].translation, [0.0, 1.0, 1.0], atol=1e-12)
        assert_allclose(components[3].translation, [0.0, 2.0, 1.0], atol=1e-12)

    def test_unknown_parent(self, tmp_path):
        data = {"root_name": "a", "joints": [
            {"name": "a", "parent": None, "offset": [0, 0, 0]},
            {"name": "b", "parent": "ghost", "offset": [1, 0, 0]},
        ]}
        with pytest.raises(ValueError, match="ghost"):
            load_skeleton(write_json(tmp_path / "s.json", data))

    def test_missing_root(self, tmp_path):
        data = {"root_name": "root", "joints": [{"name": "a", "parent": None, "offset": [0, 0, 0]}]}
        with pytest.raises(ValueError):
            load_skeleton(write_json(tmp_path / "s.json", data))

    def test_duplicate_joint(self, tmp_path):
        data = {"root_name": "a", "joints": [
            {"name": "a", "parent": None, "offset": [0, 0, 0]},
            {"name": "a", "parent": None, "offset": [0, 0, 0]},
        ]}
        with pytest.raises(ValueError, match="Duplicate"):
            load_skeleton(write_json(tmp_path / "s.json", data))

    @pytest.mark.parametrize("limit", [-1.0, "nan"])
    def test_invalid_rotation_limit(self, tmp_path, limit):
        data = {"root_name": "a", "joints": [
            {"name": "a", "parent": None, "offset": [0, 0, 0]},
            {"name": "b", "parent": "a", "offset": [1, 0, 0], "rotation_limit": limit},
        ]}
        with pytest.raises(ValueError, match="joint 'b'"):
            load_skeleton(write_json(tmp_path / "s.json", data))

    def test_unlimited_rotation_limit_is_kept(self, tmp_path):
        data = {"root_name": "a", "joints": [
            {"name": "a", "parent": None, "offset": [0, 0, 0], "rotation_limit": "inf"},
        ]}
        _, limits = load_skeleton(write_json(tmp_path / "s.json", data))
        assert limits == {'a': float('inf')}

    def test_detached_joint(self, tmp_path):
        data = {"root_name": "a", "joints": [
            {"name": "a", "parent": None, "offset": [0, 0, 0]},
            {"name": "b", "parent": None, "offset": [1, 0, 0]},
        ]}
        with pytest.raises(ValueError, match="not connected"):
            load_skeleton(write_json(tmp_path / "s.json", data))


class TestTargets:
    """Test keyframe loading and interpolation."""

    def test_sorted_by_frame(self, tmp_path):
        keyframes = load_targets(write_json(tmp_path / "t.json", [
            {"frame": 10, "pos": [1.0, 0.0, 0.0]},
            {"frame": 0, "pos": [0.0, 0.0, 0.0]},
        ]))
        assert [kf['frame'] for kf in keyframes] == [0, 10]

    def test_empty_targets(self, tmp_path):
        with pytest.raises(ValueError):
            load_targets(write_json(tmp_path / "t.json", []))

    def test_bad_position(self, tmp_path):
        with pytest.raises(ValueError):
            load_targets(write_json(tmp_path / "t.json", [{"frame": 0, "pos": [1.0, 2.0]}]))

    def test_interpolation(self):
        keyframes = [
            {'frame': 0, 'pos': np.array([0.0, 0.0, 0.0])},
            {'frame': 10, 'pos': np.array([1.0, 2.0, 0.0])},
            {'frame': 20, 'pos': np.array([1.0, 2.0, 4.0])},
        ]
        assert_allclose(interpolate_target_position(keyframes, -5), [0.0, 0.0, 0.0])
        assert_allclose(interpolate_target_position(keyframes, 5), [0.5, 1.0, 0.0])
        assert_allclose(interpolate_target_position(keyframes, 15), [1.0, 2.0, 2.0])
        assert_allclose(interpolate_target_position(keyframes, 25), [1.0, 2.0, 4.0])

    def test_interpolation_needs_keyframes(self):
        with pytest.raises(ValueError):
            interpolate_target_position([], 0)


class TestExport:
    """Test animation export."""

    def test_writes_frames(self, tmp_path):
        pose, _ = load_skeleton(write_json(tmp_path / "skeleton.json", SKELETON))
        frames = [extract_pose_state(0, pose, True), extract_pose_state(1, pose, False)]
        output_path = tmp_path / "nested" / "animation.json"

        export_animation(frames, str(output_path))

        data = json.loads(output_path.read_text(encoding='utf-8'))
        assert [f['frame'] for f in data['frames']] == [0, 1]
        assert [f['converged'] for f in data['frames']] == [True, False]
        assert set(data['frames'][0]['joints']) == {'base', 'shoulder', 'elbow', 'tip'}
        assert_allclose(data['frames'][0]['joints']['tip']['position'], [0.0, 2.0, 1.0], atol=1e-12)
        assert len(data['frames'][0]['joints']['tip']['quaternion']) == 4
