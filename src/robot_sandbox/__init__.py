"""
Robot Sandbox
Parse C++-like robot programs and run them on a simulated 5-DOF arm or 4-wheel rover
"""

from .commands import (
    COMMAND_TYPES,
    CloseGripper,
    Command,
    MoveJoint,
    MoveToPose,
    OpenGripper,
    ReadDistance,
    RobotType,
    SetLight,
    SetVelocity,
)
from .config import load_config
from .executor import CommandExecutor
from .kinematics import ArmKinematics, forward_kinematics
from .parser import RobotCommandParser
from .simulator import RobotSimulator

__version__ = '0.1.0'
