"""
Simulation State - Shared robot state container
The executor, physics and sensing code read and write robots only through this object
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import numpy as np

from .commands import RobotType
from .kinematics import JOINT_LIMITS, NUM_JOINTS, clamp_joints

logger = logging.getLogger(__name__)


class GripperMode(Enum):
    CLOSED = 0
    OPEN = 1


@dataclass
class ArmState:
    joint_angles: np.ndarray = field(default_factory=lambda: np.zeros(NUM_JOINTS))  # deg
    joint_velocities: np.ndarray = field(default_factory=lambda: np.zeros(NUM_JOINTS))  # deg/s
    trajectory_preview: Optional[np.ndarray] = None  # (n, 3) end effector path


@dataclass
class GripperState:
    mode: GripperMode = GripperMode.CLOSED
    opening: float = 0.0       # 0 = fully closed, 1 = fully open
    effort: float = 0.0        # 0-1, derived from closing rate
    max_effort: float = 0.8


@dataclass
class RoverState:
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    heading: float = 0.0       # rad about Y
    vx: float = 0.0            # m/s
    wz: float = 0.0            # rad/s
    last_command_time: Optional[float] = None
    led_color: str = '#ffffff'
    distance: float = 5.0      # m, last distance sensor reading
    lidar_scan: list = field(default_factory=list)
    velocity_history: deque = field(default_factory=deque)  # (t, vx, wz)


class SimulationState:
    """Mutable state of both robots for one session"""

    def __init__(self, config):
        """
        Initialize state

        Args:
            config: Loaded configuration dict
        """
        self.config = config
        self.robot_type = RobotType(config['simulation']['default_robot'])
        self.arm = ArmState()
        self.gripper = GripperState()
        self.rover = RoverState()
        self.occupancy_grid = None
        self.reset_arm()
        self.reset_rover()

    # ---------- Robot selection / reset ----------

    def set_robot_type(self, robot_type):
        self.robot_type = RobotType(robot_type)

    def reset_arm(self):
        """Return the arm to its home configuration"""
        self.arm = ArmState()
        self.gripper = GripperState(max_effort=self.config['gripper']['default_max_effort'])

    def reset_rover(self):
        """Return the rover to the origin, stopped, with an empty map"""
        rover_cfg = self.config['rover']
        self.rover = RoverState(
            position=np.array([0.0, rover_cfg['ground_offset'], 0.0]),
            led_color=rover_cfg['default_led_color'],
            distance=self.config['sensors']['distance_range'],
        )
        self.occupancy_grid = None

    def reset_active(self):
        if self.robot_type == RobotType.ARM:
            self.reset_arm()
        else:
            self.reset_rover()
        logger.info("Reset %s to initial state", self.robot_type.value)

    # ---------- Arm ----------

    @property
    def joint_angles(self):
        return self.arm.joint_angles.copy()

    def set_joint_angle(self, joint_index, angle):
        lower, upper = JOINT_LIMITS[joint_index]
        self.arm.joint_angles[joint_index] = min(max(angle, lower), upper)

    def set_joint_angles(self, angles):
        self.arm.joint_angles = clamp_joints(angles)

    def set_gripper_state(self, mode, max_effort=None):
        """
        Set the gripper target

        Args:
            mode: GripperMode.OPEN or GripperMode.CLOSED
            max_effort: optional new effort threshold (0-1)
        """
        self.gripper.mode = GripperMode(mode)
        if max_effort is not None:
            self.gripper.max_effort = min(max(float(max_effort), 0.0), 1.0)

    def set_trajectory_preview(self, path):
        self.arm.trajectory_preview = None if path is None else np.asarray(path, dtype=float)

    # ---------- Rover ----------

    def set_velocity(self, vx, wz, timestamp=None):
        """
        Set rover velocity, limited to the configured maxima

        Args:
            vx: linear velocity (m/s)
            wz: angular velocity (rad/s)
            timestamp: command time; refreshes the watchdog when given
        """
        rover_cfg = self.config['rover']
        max_v = rover_cfg['max_linear_velocity']
        max_w = rover_cfg['max_angular_velocity']
        self.rover.vx = min(max(float(vx), -max_v), max_v)
        self.rover.wz = min(max(float(wz), -max_w), max_w)
        if timestamp is not None:
            self.rover.last_command_time = timestamp

    def set_position(self, x, y, z):
        self.rover.position = np.array([x, y, z], dtype=float)

    def set_heading(self, heading):
        self.rover.heading = float(heading)

    def set_led_color(self, color):
        self.rover.led_color = color

    def set_distance(self, distance):
        self.rover.distance = float(distance)

    def get_distance(self):
        return self.rover.distance

    def record_velocity(self, now, window):
        """Append a telemetry sample and drop samples older than window seconds"""
        history = self.rover.velocity_history
        history.append((now, self.rover.vx, self.rover.wz))
        while history and history[0][0] < now - window:
            history.popleft()
