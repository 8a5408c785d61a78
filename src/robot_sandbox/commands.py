"""
Robot Commands - Typed command records
One dataclass per command the parser recognises, tagged with the robot it drives
"""

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Optional


class RobotType(str, Enum):
    """Robots available in the sandbox"""
    ARM = 'arm'
    ROVER = 'rover'


@dataclass(frozen=True)
class Command:
    """Base class for all robot commands"""
    robot_type: ClassVar[RobotType]


# ========== ARM ROBOT COMMANDS ==========

@dataclass(frozen=True)
class MoveJoint(Command):
    """Rotate one joint (0-4) to an absolute angle in degrees"""
    robot_type: ClassVar[RobotType] = RobotType.ARM
    joint_index: int
    angle: float


@dataclass(frozen=True)
class OpenGripper(Command):
    robot_type: ClassVar[RobotType] = RobotType.ARM


@dataclass(frozen=True)
class CloseGripper(Command):
    """Close the gripper; max_effort None means the configured default (0.8)"""
    robot_type: ClassVar[RobotType] = RobotType.ARM
    max_effort: Optional[float] = None


@dataclass(frozen=True)
class MoveToPose(Command):
    """Move the end effector to (x, y, z) using inverse kinematics"""
    robot_type: ClassVar[RobotType] = RobotType.ARM
    x: float
    y: float
    z: float


# ========== ROVER ROBOT COMMANDS ==========

@dataclass(frozen=True)
class SetVelocity(Command):
    """cmd_vel equivalent: linear vx (m/s) and angular wz (rad/s)"""
    robot_type: ClassVar[RobotType] = RobotType.ROVER
    vx: float
    wz: float


@dataclass(frozen=True)
class ReadDistance(Command):
    robot_type: ClassVar[RobotType] = RobotType.ROVER


@dataclass(frozen=True)
class SetLight(Command):
    """Set the LED to a named color or #rrggbb string"""
    robot_type: ClassVar[RobotType] = RobotType.ROVER
    color: str


COMMAND_TYPES = (
    MoveJoint,
    OpenGripper,
    CloseGripper,
    MoveToPose,
    SetVelocity,
    ReadDistance,
    SetLight,
)
