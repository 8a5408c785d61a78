"""
Arm Kinematics - Forward and Inverse Kinematics
5-DOF arm: base (Y axis), shoulder, elbow, wrist (Z axis) and gripper rotation
"""

import logging
import math

import numpy as np
from spatialmath import SE3

from .config import load_config

logger = logging.getLogger(__name__)

# Link lengths (in meters)
BASE_HEIGHT = 0.3
SHOULDER_LINK = 0.8
ELBOW_LINK = 0.7
WRIST_LINK = 0.3
GRIPPER_OFFSET = 0.15

SHOULDER_HEIGHT = BASE_HEIGHT / 2
HAND_LENGTH = WRIST_LINK + GRIPPER_OFFSET
TOTAL_REACH = SHOULDER_LINK + ELBOW_LINK + WRIST_LINK + GRIPPER_OFFSET

NUM_JOINTS = 5
BASE, SHOULDER, ELBOW, WRIST, GRIPPER_ROTATION = range(NUM_JOINTS)

# Joint limits in degrees: [lower, upper] per joint
JOINT_LIMITS = np.array([
    [-180.0, 180.0],  # Base
    [-90.0, 90.0],    # Shoulder
    [-150.0, 150.0],  # Elbow
    [-90.0, 90.0],    # Wrist
    [-180.0, 180.0],  # Gripper rotation
])


def as_joint_array(joint_angles):
    """Validate and copy a 5-joint configuration (degrees)"""
    joints = np.array(joint_angles, dtype=float)
    if joints.shape != (NUM_JOINTS,):
        raise ValueError(f"Expected {NUM_JOINTS} joint angles, got shape {joints.shape}")
    return joints


def clamp_joints(joint_angles):
    """Clamp every joint to its range"""
    return np.clip(as_joint_array(joint_angles), JOINT_LIMITS[:, 0], JOINT_LIMITS[:, 1])


def within_limits(joint_angles):
    joints = np.asarray(joint_angles, dtype=float)
    return bool(np.all(joints >= JOINT_LIMITS[:, 0]) and np.all(joints <= JOINT_LIMITS[:, 1]))


def forward_kinematics(joint_angles):
    """
    Compute end effector position from joint angles

    Link angles are measured from vertical and tilt the arm toward its reach
    direction; the base turns that vertical plane about the world Y axis.

    Args:
        joint_angles: 5 joint angles in degrees

    Returns:
        np.ndarray: [x, y, z] end effector position
    """
    base, shoulder, elbow, wrist, gripper_rot = np.radians(as_joint_array(joint_angles))

    T = (SE3.Ry(base) * SE3.Ty(SHOULDER_HEIGHT)
         * SE3.Rz(-shoulder) * SE3.Ty(SHOULDER_LINK)
         * SE3.Rz(-elbow) * SE3.Ty(ELBOW_LINK)
         * SE3.Rz(-wrist) * SE3.Ty(HAND_LENGTH)
         * SE3.Ry(gripper_rot))
    return np.array(T.t)


def elbow_angle(distance, l1, l2):
    """
    Interior bend of a 2-link chain spanning `distance` (law of cosines)

    The cosine argument is clamped to [-1, 1], so unreachable distances give
    a fully stretched (0) or fully folded (pi) elbow instead of failing.

    Returns:
        float: elbow angle in radians, 0 = straight
    """
    cos_elbow = (distance * distance - l1 * l1 - l2 * l2) / (2 * l1 * l2)
    return math.acos(max(-1.0, min(1.0, cos_elbow)))


def clamp_to_reach(target):
    """Scale a target radially about the world origin so it lies within total reach"""
    target = np.array(target, dtype=float)
    distance = np.linalg.norm(target)
    if distance > TOTAL_REACH:
        return target * (TOTAL_REACH / distance)
    return target


def planar_tip(shoulder, elbow, wrist):
    """
    End effector (reach, height) relative to the shoulder pivot

    Works element-wise, so numpy arrays of candidate angles (degrees) are fine.
    """
    s = np.radians(shoulder)
    se = s + np.radians(elbow)
    sew = se + np.radians(wrist)
    reach = SHOULDER_LINK * np.sin(s) + ELBOW_LINK * np.sin(se) + HAND_LENGTH * np.sin(sew)
    height = SHOULDER_LINK * np.cos(s) + ELBOW_LINK * np.cos(se) + HAND_LENGTH * np.cos(sew)
    return reach, height


def sweep_hand_angle(reach, height, hand_angles, elbow_sign):
    """
    Shoulder/elbow/wrist candidates for a set of hand directions

    For each hand angle (radians from vertical) the wrist point is fixed, the
    2-link sub-chain is solved on one elbow branch with the cosine clamped,
    and the joints are wrapped and clamped to their limits.

    Returns:
        (planar, miss): (n, 3) joint angles in degrees and the (n,) distance
        between each candidate's tip and (reach, height)
    """
    wrist_reach = reach - HAND_LENGTH * np.sin(hand_angles)
    wrist_height = height - HAND_LENGTH * np.cos(hand_angles)
    distance = np.hypot(wrist_reach, wrist_height)
    cos_elbow = ((distance * distance - SHOULDER_LINK ** 2 - ELBOW_LINK ** 2)
                 / (2 * SHOULDER_LINK * ELBOW_LINK))
    elbow = elbow_sign * np.arccos(np.clip(cos_elbow, -1.0, 1.0))
    shoulder = np.arctan2(wrist_reach, wrist_height) - np.arctan2(
        ELBOW_LINK * np.sin(elbow), SHOULDER_LINK + ELBOW_LINK * np.cos(elbow))
    wrist = hand_angles - shoulder - elbow

    planar = np.degrees(np.column_stack((shoulder, elbow, wrist)))
    planar = (planar + 180.0) % 360.0 - 180.0
    planar = np.clip(planar, JOINT_LIMITS[SHOULDER:WRIST + 1, 0], JOINT_LIMITS[SHOULDER:WRIST + 1, 1])

    tip_reach, tip_height = planar_tip(planar[:, 0], planar[:, 1], planar[:, 2])
    return planar, np.hypot(tip_reach - reach, tip_height - height)


class ArmKinematics:
    """Inverse kinematics solver for the 5-DOF arm"""

    def __init__(self, config=None):
        """
        Initialize solver

        Args:
            config: Loaded configuration dict (default: bundled config.yaml)
        """
        if config is None:
            config = load_config()
        self.config = config
        self.max_iterations = config['ik']['max_iterations']
        self.tolerance = config['ik']['tolerance']

    def inverse_kinematics(self, target_position, current_angles=None,
                           max_iterations=None, tolerance=None):
        """
        Compute joint angles that put the end effector at target_position

        Targets beyond reach are pulled in toward the origin; the result is always
        clamped to joint limits. Gripper rotation is kept from current_angles.

        Args:
            target_position: [x, y, z] target coordinates
            current_angles: starting configuration in degrees (default: zeros)
            max_iterations: refinement limit (default from config)
            tolerance: convergence distance in meters (default from config)

        Returns:
            np.ndarray: 5 joint angles in degrees
        """
        if max_iterations is None:
            max_iterations = self.max_iterations
        if tolerance is None:
            tolerance = self.tolerance

        target = clamp_to_reach(target_position)
        if current_angles is None:
            angles = np.zeros(NUM_JOINTS)
        else:
            angles = clamp_joints(current_angles)
        gripper_rot = angles[GRIPPER_ROTATION]

        aim = target.copy()
        best_angles = angles
        best_error = np.inf

        for iteration in range(max_iterations):
            error = target - forward_kinematics(angles)
            error_norm = np.linalg.norm(error)
            if error_norm < best_error:
                best_angles, best_error = angles, error_norm
            if error_norm < tolerance:
                break

            # Chase the residual left by joint limits on later passes
            if iteration > 0:
                aim = aim + error

            angles = self._solve(aim, angles, tolerance)
            angles[GRIPPER_ROTATION] = gripper_rot
        else:
            error_norm = np.linalg.norm(target - forward_kinematics(angles))
            if error_norm < best_error:
                best_angles, best_error = angles, error_norm
            logger.debug("IK stopped after %d iterations, error %.4fm", max_iterations, best_error)

        return clamp_joints(best_angles)

    def _solve(self, aim, previous, tolerance):
        """One analytic pass: base bearing, planar shoulder/elbow, level wrist"""
        x, y, z = aim
        angles = previous.copy()

        if math.hypot(x, z) > 1e-9:
            angles[BASE] = math.degrees(math.atan2(-z, x))
        base = math.radians(angles[BASE])

        # Target in the arm plane, relative to the shoulder pivot
        reach = x * math.cos(base) - z * math.sin(base)
        height = y - SHOULDER_HEIGHT

        planar = self._solve_level(reach, height)
        if planar is None:
            planar = np.clip(self._solve_stretched(reach, height),
                             JOINT_LIMITS[SHOULDER:WRIST + 1, 0], JOINT_LIMITS[SHOULDER:WRIST + 1, 1])
            tip_reach, tip_height = planar_tip(*planar)
            if math.hypot(tip_reach - reach, tip_height - height) > tolerance:
                # Joint limits cut the stretched arm short; let the wrist bend
                planar = self._solve_swept(reach, height)

        angles[SHOULDER:WRIST + 1] = planar
        return clamp_joints(angles)

    def _solve_level(self, reach, height):
        """Shoulder/elbow with the hand held horizontal, or None if not possible"""
        wrist_reach = reach - HAND_LENGTH
        distance = math.hypot(wrist_reach, height)
        cos_elbow = ((distance * distance - SHOULDER_LINK ** 2 - ELBOW_LINK ** 2)
                     / (2 * SHOULDER_LINK * ELBOW_LINK))
        if abs(cos_elbow) > 1.0:
            return None

        bearing = math.atan2(wrist_reach, height)
        for sign in (1.0, -1.0):
            elbow = sign * math.acos(cos_elbow)
            shoulder = bearing - math.atan2(ELBOW_LINK * math.sin(elbow),
                                            SHOULDER_LINK + ELBOW_LINK * math.cos(elbow))
            wrist = math.pi / 2 - shoulder - elbow
            planar = np.degrees([shoulder, elbow, wrist])
            if within_limits(np.concatenate(([0.0], planar, [0.0]))):
                return planar
        return None

    def _solve_stretched(self, reach, height):
        """Shoulder/elbow with the wrist locked straight, maximising reach"""
        forearm = ELBOW_LINK + HAND_LENGTH
        distance = math.hypot(reach, height)
        elbow = elbow_angle(distance, SHOULDER_LINK, forearm)
        shoulder = math.atan2(reach, height) - math.atan2(forearm * math.sin(elbow),
                                                          SHOULDER_LINK + forearm * math.cos(elbow))
        return np.degrees([shoulder, elbow, 0.0])

    def _solve_swept(self, reach, height):
        """Best clamped shoulder/elbow/wrist over all hand directions, coarse then fine"""
        best_planar, best_miss, best_hand = None, np.inf, 0.0
        for span, step in ((180.0, 0.1), (0.1, 0.002)):
            hand_deg = np.arange(best_hand - span, best_hand + span + step / 2, step)
            for sign in (1.0, -1.0):
                planar, miss = sweep_hand_angle(reach, height, np.radians(hand_deg), sign)
                i = int(np.argmin(miss))
                if miss[i] < best_miss:
                    best_planar, best_miss = planar[i], miss[i]
                    best_hand = hand_deg[i]
        return best_planar

    def get_workspace_bounds(self):
        """Calculate workspace bounds (reach sphere about the world origin)"""
        return {
            'max_reach': TOTAL_REACH,
            'min_y': -TOTAL_REACH,
            'max_y': TOTAL_REACH,
        }
