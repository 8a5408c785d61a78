"""Tests for arm forward/inverse kinematics"""

import math

import numpy as np
import pytest

from robot_sandbox.kinematics import (
    JOINT_LIMITS,
    TOTAL_REACH,
    ArmKinematics,
    clamp_joints,
    clamp_to_reach,
    elbow_angle,
    forward_kinematics,
    planar_tip,
    sweep_hand_angle,
    within_limits,
)


@pytest.fixture
def kinematics(config):
    return ArmKinematics(config)


class TestForwardKinematics:

    def test_home_points_straight_up(self):
        np.testing.assert_allclose(forward_kinematics([0, 0, 0, 0, 0]), [0.0, 0.15 + TOTAL_REACH, 0.0],
                                   atol=1e-9)

    def test_shoulder_horizontal(self):
        np.testing.assert_allclose(forward_kinematics([0, 90, 0, 0, 0]), [TOTAL_REACH, 0.15, 0.0],
                                   atol=1e-9)

    def test_base_turns_about_vertical(self):
        np.testing.assert_allclose(forward_kinematics([90, 90, 0, 0, 0]), [0.0, 0.15, -TOTAL_REACH],
                                   atol=1e-9)

    def test_gripper_rotation_does_not_move_tip(self):
        np.testing.assert_allclose(forward_kinematics([20, 30, 40, 10, 0]),
                                   forward_kinematics([20, 30, 40, 10, 120]), atol=1e-9)

    def test_wrong_joint_count(self):
        with pytest.raises(ValueError):
            forward_kinematics([0, 0, 0])


class TestInverseKinematics:

    @pytest.mark.parametrize("joints", [
        [30, 20, 40, 30, 0],
        [-60, 10, 50, -20, 15],
        [90, -30, 60, 45, 0],
    ])
    def test_reaches_forward_kinematics_target(self, kinematics, joints):
        target = forward_kinematics(joints)
        solution = kinematics.inverse_kinematics(target, [0, 0, 0, 0, joints[4]])
        assert within_limits(solution)
        assert np.linalg.norm(forward_kinematics(solution) - target) < 0.01

    @pytest.mark.parametrize("target", [[3.0, 3.0, 1.0], [0.0, 10.0, 0.0], [-2.0, 4.0, 2.0]])
    def test_far_target_pulled_onto_reach_sphere(self, kinematics, target):
        solution = kinematics.inverse_kinematics(target)
        tip = forward_kinematics(solution)

        direction = np.array(target) / np.linalg.norm(target)
        assert np.linalg.norm(tip - direction * TOTAL_REACH) < 0.01
        assert np.linalg.norm(tip) == pytest.approx(TOTAL_REACH, abs=0.01)

    def test_random_configurations_round_trip(self, kinematics):
        rng = np.random.default_rng(7)
        lower, upper = JOINT_LIMITS[:, 0], JOINT_LIMITS[:, 1]
        checked = 0
        for joints in rng.uniform(lower, upper, size=(300, 5)):
            target = forward_kinematics(joints)
            if np.linalg.norm(target) > TOTAL_REACH:
                continue
            for start in (None, rng.uniform(lower, upper)):
                solution = kinematics.inverse_kinematics(target, start)
                miss = np.linalg.norm(forward_kinematics(solution) - target)
                assert miss < 0.01, f"{np.round(joints, 1)} missed by {miss:.3f}m"
            checked += 1
        assert checked > 200

    def test_folded_elbow_needs_bent_wrist(self, kinematics):
        for joints in ([-67.3, 13.8, 141.5, 49.4, 104.8],
                       [128.2, -12.1, -148.9, -51.8, 93.6],
                       [176.4, 69.4, 149.8, 81.7, 60.3]):
            target = forward_kinematics(joints)
            solution = kinematics.inverse_kinematics(target)
            assert np.linalg.norm(forward_kinematics(solution) - target) < 0.01

    def test_keeps_gripper_rotation(self, kinematics):
        solution = kinematics.inverse_kinematics([0.8, 0.9, 0.3], [10, 0, 0, 0, 35])
        assert solution[4] == pytest.approx(35.0)

    def test_degenerate_target_does_not_fail(self, kinematics):
        solution = kinematics.inverse_kinematics([0.0, 0.0, 0.0])
        assert solution.shape == (5,)
        assert within_limits(solution)

    def test_any_target_within_limits(self, kinematics):
        rng = np.random.default_rng(0)
        for target in rng.uniform(-3.0, 3.0, size=(20, 3)):
            assert within_limits(kinematics.inverse_kinematics(target))

    def test_workspace_bounds(self, kinematics):
        bounds = kinematics.get_workspace_bounds()
        assert bounds['max_reach'] == pytest.approx(1.95)
        assert bounds['max_y'] == pytest.approx(TOTAL_REACH)
        assert bounds['min_y'] == pytest.approx(-TOTAL_REACH)


class TestHelpers:

    def test_elbow_angle_clamped(self):
        assert elbow_angle(10.0, 0.8, 0.7) == 0.0
        assert elbow_angle(0.0, 0.8, 0.7) == pytest.approx(math.pi)

    def test_elbow_angle_right_angle(self):
        assert elbow_angle(math.hypot(0.8, 0.7), 0.8, 0.7) == pytest.approx(math.pi / 2)

    def test_clamp_to_reach(self):
        np.testing.assert_allclose(clamp_to_reach([10.0, 0.0, 0.0]), [TOTAL_REACH, 0.0, 0.0])
        np.testing.assert_allclose(clamp_to_reach([0.0, -4.0, 3.0]), [0.0, -1.56, 1.17])
        np.testing.assert_allclose(clamp_to_reach([0.5, 0.5, 0.5]), [0.5, 0.5, 0.5])

    def test_clamp_joints(self):
        clamped = clamp_joints([200, -100, 160, 95, -190])
        np.testing.assert_allclose(clamped, [180, -90, 150, 90, -180])
        np.testing.assert_allclose(JOINT_LIMITS[:, 1], [180, 90, 150, 90, 180])

    def test_planar_tip_matches_forward_kinematics(self):
        joints = [0, 25, 70, -40, 0]
        reach, height = planar_tip(*joints[1:4])
        np.testing.assert_allclose(forward_kinematics(joints), [reach, height + 0.15, 0.0], atol=1e-9)

    def test_sweep_hits_exact_hand_angle(self):
        reach, height = planar_tip(30.0, 120.0, -60.0)
        planar, miss = sweep_hand_angle(reach, height, np.radians([0.0, 90.0]), 1.0)
        assert planar.shape == (2, 3)
        np.testing.assert_allclose(planar[1], [30.0, 120.0, -60.0], atol=1e-6)
        assert miss[1] == pytest.approx(0.0, abs=1e-9)
