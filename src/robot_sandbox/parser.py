"""
Command Parser - C++-like source to robot commands
Extracts robot.xxx(...) calls for both the arm and the rover
"""

import logging
import math
import re

from .commands import (
    CloseGripper,
    MoveJoint,
    MoveToPose,
    OpenGripper,
    ReadDistance,
    SetLight,
    SetVelocity,
)

logger = logging.getLogger(__name__)

NUMBER = r'(-?\d+(?:\.\d+)?)'
NUM_JOINTS = 5

LINE_COMMENT_RE = re.compile(r'//.*$', re.MULTILINE)
BLOCK_COMMENT_RE = re.compile(r'/\*[\s\S]*?\*/')

MOVE_JOINT_RE = re.compile(r'robot\.moveJoint\s*\(\s*(-?\d+)\s*,\s*' + NUMBER + r'\s*\)')
CLOSE_GRIPPER_RE = re.compile(r'robot\.closeGripper\s*\(\s*' + NUMBER + r'?\s*\)')
OPEN_GRIPPER_RE = re.compile(r'robot\.openGripper\s*\(\s*\)')
MOVE_TO_POSE_RE = re.compile(
    r'robot\.moveToPose\s*\(\s*' + NUMBER + r'\s*,\s*' + NUMBER + r'\s*,\s*' + NUMBER + r'\s*\)'
)
MOVE_RE = re.compile(r'robot\.move\s*\(\s*' + NUMBER + r'\s*,\s*' + NUMBER + r'\s*\)')
GET_DISTANCE_RE = re.compile(r'robot\.getDistance\s*\(\s*\)')
SET_LIGHT_RE = re.compile(r'robot\.setLight\s*\(\s*(["\']?)([^"\',)]+)\1\s*\)')


def strip_comments(code):
    """Remove // line comments and /* */ block comments"""
    code = LINE_COMMENT_RE.sub('', code)
    return BLOCK_COMMENT_RE.sub('', code)


def parse_light_color(token):
    """
    Normalise a setLight argument

    Numbers become #rrggbb strings (truncated to an integer and clamped to
    24 bits); anything else (named colors, hex strings) is passed through.

    Args:
        token: raw argument text without quotes

    Returns:
        str: color string
    """
    color = token.strip()
    try:
        value = float(color)
    except ValueError:
        return color

    if not math.isfinite(value):
        return color

    value = min(max(int(value), 0), 0xFFFFFF)
    return '#{:06x}'.format(value)


class RobotCommandParser:
    """Parse robot commands out of free-form source text"""

    def __init__(self, source_order=False):
        """
        Initialize parser

        Args:
            source_order: Re-sort commands by their position in the source.
                By default every call of one kind is emitted before the next
                kind is scanned.
        """
        self.source_order = source_order
        self.commands = []

    def parse(self, code):
        """
        Extract all well-formed robot commands

        Unrecognised calls and malformed argument lists are skipped, so this
        never fails; an empty list is a valid result.

        Args:
            code: program text

        Returns:
            list of Command
        """
        code = strip_comments(code)
        found = []

        # ========== ARM ROBOT COMMANDS ==========
        for match in MOVE_JOINT_RE.finditer(code):
            joint_index = int(match.group(1))
            if 0 <= joint_index < NUM_JOINTS:
                found.append((match.start(), MoveJoint(joint_index, float(match.group(2)))))
            else:
                logger.debug("Dropping moveJoint with invalid joint index %d", joint_index)

        for match in CLOSE_GRIPPER_RE.finditer(code):
            effort = match.group(1)
            found.append((match.start(), CloseGripper(float(effort) if effort else None)))

        for match in OPEN_GRIPPER_RE.finditer(code):
            found.append((match.start(), OpenGripper()))

        for match in MOVE_TO_POSE_RE.finditer(code):
            x, y, z = (float(g) for g in match.groups())
            found.append((match.start(), MoveToPose(x, y, z)))

        # ========== ROVER ROBOT COMMANDS ==========
        for match in MOVE_RE.finditer(code):
            found.append((match.start(), SetVelocity(float(match.group(1)), float(match.group(2)))))

        for match in GET_DISTANCE_RE.finditer(code):
            found.append((match.start(), ReadDistance()))

        for match in SET_LIGHT_RE.finditer(code):
            found.append((match.start(), SetLight(parse_light_color(match.group(2)))))

        if self.source_order:
            found.sort(key=lambda item: item[0])

        self.commands = [command for _, command in found]
        logger.debug("Parsed %d commands", len(self.commands))
        return self.commands

    def get_commands(self):
        return self.commands
