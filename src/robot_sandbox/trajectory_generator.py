"""
Trajectory Generator - Joint Space Paths
Creates eased waypoints between two arm configurations
"""

import numpy as np

from .kinematics import as_joint_array, forward_kinematics


def ease_in_out(t):
    """
    Quadratic ease-in-out on [0, 1]

    Args:
        t: interpolation parameter

    Returns:
        float: eased parameter, 0 -> 0, 0.5 -> 0.5, 1 -> 1
    """
    if t < 0.5:
        return 2 * t * t
    return 1 - 2 * (1 - t) ** 2


class TrajectoryGenerator:
    """Generate joint trajectories for the arm"""

    def __init__(self, config):
        """
        Initialize trajectory generator

        Args:
            config: Robot configuration dictionary
        """
        self.config = config
        self.num_steps = config['arm']['trajectory_steps']

    def generate_trajectory(self, start_angles, target_angles, num_steps=None):
        """
        Interpolate from start to target configuration

        The eased parameter is shared by all joints, so every joint starts
        and finishes together.

        Args:
            start_angles: 5 joint angles (degrees)
            target_angles: 5 joint angles (degrees)
            num_steps: number of segments (default from config)

        Returns:
            np.ndarray: (num_steps + 1, 5) waypoints including both ends
        """
        if num_steps is None:
            num_steps = self.num_steps
        if num_steps < 1:
            raise ValueError(f"num_steps must be at least 1, got {num_steps}")
        start = as_joint_array(start_angles)
        target = as_joint_array(target_angles)

        waypoints = []
        for i in range(num_steps + 1):
            eased = ease_in_out(i / num_steps)
            waypoints.append(start + (target - start) * eased)

        return np.array(waypoints)

    def end_effector_path(self, trajectory):
        """
        End effector position at each waypoint

        Args:
            trajectory: Output from generate_trajectory()

        Returns:
            np.ndarray: (n, 3) positions
        """
        return np.array([forward_kinematics(joints) for joints in trajectory])
