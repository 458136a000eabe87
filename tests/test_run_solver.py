"""
End-to-end tests for the headless runner.
"""

import json

import numpy as np
import pytest

from ccdik_solver.model import Pose
from ccdik_solver.run_solver import find_tip, main, run_solver
from ccdik_solver.utils import Transform


SKELETON = {
    "root_name": "base",
    "joints": [
        {"name": "base", "parent": None, "offset": [0.0, 0.0, 0.0]},
        {"name": "j1", "parent": "base", "offset": [0.0, 0.0, 0.0]},
        {"name": "j2", "parent": "j1", "offset": [1.0, 0.0, 0.0]},
        {"name": "j3", "parent": "j2", "offset": [1.0, 0.0, 0.0]},
        {"name": "tip", "parent": "j3", "offset": [1.0, 0.0, 0.0]},
    ]
}

TARGETS = [
    {"frame": 0, "pos": [2.0, 1.0, 0.0]},
    {"frame": 4, "pos": [1.5, 1.5, 0.5]},
]


def write_project(tmp_path, **overrides):
    (tmp_path / "skeleton.json").write_text(json.dumps(SKELETON), encoding='utf-8')
    (tmp_path / "targets.json").write_text(json.dumps(TARGETS), encoding='utf-8')
    config = {
        "skeleton_path": "skeleton.json",
        "targets_path": "targets.json",
        "output_path": "out/animation.json",
        "root_name": "j1",
        "precision": 1e-3,
        "max_iterations": 200,
    }
    config.update(overrides)
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps(config), encoding='utf-8')
    return str(config_path)


class TestRunSolver:
    """Test the config-driven solve and export."""

    @pytest.mark.parametrize("warm_start", [True, False])
    def test_solves_every_frame(self, tmp_path, warm_start):
        config_path = write_project(tmp_path, warm_start=warm_start)

        assert run_solver(config_path) == 0

        data = json.loads((tmp_path / "out" / "animation.json").read_text(encoding='utf-8'))
        frames = data['frames']
        assert [f['frame'] for f in frames] == [0, 1, 2, 3, 4]
        assert all(f['converged'] for f in frames)
        tip = np.array(frames[-1]['joints']['tip']['position'])
        assert np.linalg.norm(tip - np.array([1.5, 1.5, 0.5])) <= 1e-3
        # the joint above the chain root never moves
        assert frames[-1]['joints']['base']['position'] == [0.0, 0.0, 0.0]

    def test_missing_config(self, tmp_path):
        assert run_solver(str(tmp_path / "nope.json")) == 1

    def test_bad_skeleton(self, tmp_path):
        config_path = write_project(tmp_path, skeleton_path="missing.json")
        assert run_solver(config_path) == 1

    def test_negative_rotation_limit_is_reported(self, tmp_path):
        config_path = write_project(tmp_path, enable_rotation_limit=True)
        skeleton = json.loads(json.dumps(SKELETON))
        skeleton["joints"][2]["rotation_limit"] = -1.0
        (tmp_path / "skeleton.json").write_text(json.dumps(skeleton), encoding='utf-8')

        assert run_solver(config_path) == 1
        assert not (tmp_path / "out" / "animation.json").exists()

    def test_bad_chain(self, tmp_path):
        config_path = write_project(tmp_path, root_name="tip", tip_name="j1")
        assert run_solver(config_path) == 1

    def test_main_exit_code(self, tmp_path):
        config_path = write_project(tmp_path)
        with pytest.raises(SystemExit) as excinfo:
            main([config_path])
        assert excinfo.value.code == 0


class TestFindTip:
    """Test automatic end-effector lookup."""

    def test_follows_first_child(self):
        pose = Pose(['a', 'b', 'c', 'd'], [-1, 0, 1, 0], [Transform() for _ in range(4)])
        assert find_tip(pose, 'a') == 'c'
        assert find_tip(pose, 'd') == 'd'
