"""
Physics - Per-tick robot state updates
Rover velocity integration with friction and watchdog, arm joint/gripper feedback
"""

import logging
import math

from .commands import RobotType
from .state import GripperMode

logger = logging.getLogger(__name__)


class RoverPhysics:
    """Integrates rover velocity commands into pose once per tick"""

    def __init__(self, config):
        """
        Initialize rover physics

        Args:
            config: Loaded configuration dict
        """
        rover_cfg = config['rover']
        self.friction = rover_cfg['friction_coefficient']
        self.reference_rate = rover_cfg['reference_rate']
        self.velocity_floor = rover_cfg['velocity_floor']
        self.watchdog_timeout = rover_cfg['watchdog_timeout']
        self.history_window = rover_cfg['velocity_history_window']

    def update(self, state, dt, now):
        """
        Advance the rover by dt seconds

        Order: watchdog, friction, heading, position. Pose is only written
        when the matching velocity component is non-zero.

        Args:
            state: SimulationState
            dt: elapsed time in seconds
            now: current clock time in seconds (watchdog reference)
        """
        if state.robot_type != RobotType.ROVER:
            return

        rover = state.rover
        vx, wz = rover.vx, rover.wz

        # Watchdog: stop if the last move command is stale
        last = rover.last_command_time
        if last is not None and now - last > self.watchdog_timeout:
            if vx != 0 or wz != 0:
                logger.debug("Watchdog: no move command for %.3fs, stopping", now - last)
            vx = wz = 0.0
            state.set_velocity(0.0, 0.0)

        # Friction (per-frame decay normalised to the reference rate)
        if vx != 0 or wz != 0:
            decay = self.friction ** (dt * self.reference_rate)
            vx *= decay
            wz *= decay
            if abs(vx) < self.velocity_floor:
                vx = 0.0
            if abs(wz) < self.velocity_floor:
                wz = 0.0
            state.set_velocity(vx, wz)

        heading = rover.heading
        if wz != 0:
            state.set_heading(heading + wz * dt)

        if vx != 0:
            x, y, z = rover.position
            state.set_position(x + vx * math.sin(heading) * dt, y, z + vx * math.cos(heading) * dt)

        state.record_velocity(now, self.history_window)


class ArmDynamics:
    """Joint velocity estimate and gripper finger motion for the arm"""

    def __init__(self, config):
        self.travel_time = config['gripper']['travel_time']
        self._arm = None
        self._previous_angles = None

    def update(self, state, dt):
        """
        Advance arm feedback by dt seconds

        Gripper effort follows the closing rate: full-speed closing maps to
        effort 1.0, capped at the gripper's max_effort threshold.

        Args:
            state: SimulationState
            dt: elapsed time in seconds
        """
        if state.robot_type != RobotType.ARM or dt <= 0:
            return

        arm = state.arm
        angles = arm.joint_angles.copy()
        if arm is not self._arm:
            # Fresh state after a reset
            self._arm = arm
            self._previous_angles = angles
        arm.joint_velocities = (angles - self._previous_angles) / dt
        self._previous_angles = angles

        gripper = state.gripper
        target = 1.0 if gripper.mode == GripperMode.OPEN else 0.0
        step = dt / self.travel_time
        previous = gripper.opening
        if previous < target:
            gripper.opening = min(previous + step, target)
        else:
            gripper.opening = max(previous - step, target)

        closing_rate = (previous - gripper.opening) / dt
        gripper.effort = min(max(closing_rate * self.travel_time, 0.0), gripper.max_effort)
