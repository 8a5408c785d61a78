"""
Command Executor - Runs parsed commands against the active robot
Strictly sequential; each command suspends on the scheduler until it is complete
"""

import logging

from .commands import (
    CloseGripper,
    MoveJoint,
    MoveToPose,
    OpenGripper,
    ReadDistance,
    SetLight,
    SetVelocity,
)
from .state import GripperMode
from .trajectory_generator import ease_in_out

logger = logging.getLogger(__name__)


class CommandExecutor:
    """Drains a command list, one command at a time"""

    def __init__(self, state, kinematics, trajectory_generator, scheduler, config):
        """
        Initialize executor

        Args:
            state: SimulationState to mutate
            kinematics: ArmKinematics used by moveToPose
            trajectory_generator: TrajectoryGenerator used by moveToPose
            scheduler: FrameScheduler providing sleep() / next_frame()
            config: Loaded configuration dict
        """
        self.state = state
        self.kinematics = kinematics
        self.traj_gen = trajectory_generator
        self.scheduler = scheduler

        arm_cfg = config['arm']
        self.move_joint_duration = arm_cfg['move_joint_duration']
        self.move_to_pose_duration = arm_cfg['move_to_pose_duration']
        self.trajectory_clear_delay = arm_cfg['trajectory_clear_delay']
        self.delays = config['executor']
        self.default_max_effort = config['gripper']['default_max_effort']

        self._handlers = {
            MoveJoint: self._move_joint,
            OpenGripper: self._open_gripper,
            CloseGripper: self._close_gripper,
            MoveToPose: self._move_to_pose,
            SetVelocity: self._set_velocity,
            ReadDistance: self._read_distance,
            SetLight: self._set_light,
        }

    def handles(self, command_type):
        return command_type in self._handlers

    async def execute(self, commands):
        """
        Reset the active robot, then run commands in order

        Commands tagged for the other robot are skipped.

        Args:
            commands: list of Command

        Returns:
            list of float: distance readings taken by getDistance commands
        """
        robot_type = self.state.robot_type
        self.state.reset_active()
        await self.scheduler.sleep(self.delays['reset_settle'])

        logger.info("Executing %d commands on %s", len(commands), robot_type.value)
        readings = []
        for command in commands:
            if command.robot_type != robot_type:
                logger.debug("Skipping %s (not a %s command)", command, robot_type.value)
                continue

            handler = self._handlers.get(type(command))
            if handler is None:
                raise TypeError(f"No handler for command type {type(command).__name__}")

            logger.debug("Running %s", command)
            reading = await handler(command)
            if reading is not None:
                readings.append(reading)

        logger.info("Program finished")
        return readings

    # ========== ARM ROBOT COMMANDS ==========

    async def _move_joint(self, command):
        await self.animate_joint(command.joint_index, command.angle, self.move_joint_duration)

    async def animate_joint(self, joint_index, target_angle, duration):
        """
        Ease one joint to target_angle over duration seconds, one step per frame

        Args:
            joint_index: joint 0-4
            target_angle: degrees (clamped to the joint range by the state)
            duration: seconds
        """
        start_angle = self.state.joint_angles[joint_index]
        start_time = self.scheduler.now()

        while True:
            elapsed = self.scheduler.now() - start_time
            progress = min(elapsed / duration, 1.0) if duration > 0 else 1.0
            eased = ease_in_out(progress)
            self.state.set_joint_angle(joint_index, start_angle + (target_angle - start_angle) * eased)
            if progress >= 1.0:
                break
            await self.scheduler.next_frame()

    async def _open_gripper(self, command):
        self.state.set_gripper_state(GripperMode.OPEN)
        await self.scheduler.sleep(self.delays['gripper_settle'])

    async def _close_gripper(self, command):
        max_effort = command.max_effort
        if max_effort is None:
            max_effort = self.default_max_effort
        self.state.set_gripper_state(GripperMode.CLOSED, max_effort)
        await self.scheduler.sleep(self.delays['gripper_settle'])

    async def _move_to_pose(self, command):
        target = [command.x, command.y, command.z]
        current = self.state.joint_angles
        target_angles = self.kinematics.inverse_kinematics(target, current)
        trajectory = self.traj_gen.generate_trajectory(current, target_angles)

        self.state.set_trajectory_preview(self.traj_gen.end_effector_path(trajectory))
        segment_time = self.move_to_pose_duration / (len(trajectory) - 1)
        for waypoint in trajectory[1:]:
            self.state.set_joint_angles(waypoint)
            await self.scheduler.sleep(segment_time)

        await self.scheduler.sleep(self.trajectory_clear_delay)
        self.state.set_trajectory_preview(None)

    # ========== ROVER ROBOT COMMANDS ==========

    async def _set_velocity(self, command):
        self.state.set_velocity(command.vx, command.wz, timestamp=self.scheduler.now())
        await self.scheduler.sleep(self.delays['velocity_settle'])

    async def _read_distance(self, command):
        distance = self.state.get_distance()
        logger.info("Distance sensor reading: %.2fm", distance)
        await self.scheduler.sleep(self.delays['distance_settle'])
        return distance

    async def _set_light(self, command):
        self.state.set_led_color(command.color)
        await self.scheduler.sleep(self.delays['light_settle'])
