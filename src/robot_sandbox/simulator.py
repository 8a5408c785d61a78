"""
Simulator - Main simulation loop
Combines parser, executor, physics and sensors around one shared state
"""

import argparse
import asyncio
import logging
import sys

import numpy as np
import yaml

from .commands import RobotType
from .config import load_config
from .executor import CommandExecutor
from .kinematics import ArmKinematics, forward_kinematics
from .parser import RobotCommandParser
from .physics import ArmDynamics, RoverPhysics
from .scheduler import FrameScheduler
from .sensing import CellState, ObstacleWorld, RoverSensors, load_obstacles
from .state import SimulationState
from .trajectory_generator import TrajectoryGenerator

logger = logging.getLogger(__name__)


class RobotSimulator:
    """Main simulator class"""

    def __init__(self, config_path=None, world=None):
        """
        Initialize simulator

        Args:
            config_path: Optional YAML file overriding config.yaml
            world: World intersection provider for the rover sensors
                (default: empty ObstacleWorld)
        """
        self.config = load_config(config_path)
        self.state = SimulationState(self.config)
        self.world = world if world is not None else ObstacleWorld()

        self.scheduler = FrameScheduler()
        self.kinematics = ArmKinematics(self.config)
        self.traj_gen = TrajectoryGenerator(self.config)
        self.parser = RobotCommandParser()
        self.executor = CommandExecutor(self.state, self.kinematics, self.traj_gen,
                                        self.scheduler, self.config)

        self.rover_physics = RoverPhysics(self.config)
        self.arm_dynamics = ArmDynamics(self.config)
        self.sensors = RoverSensors(self.config)

        self.frame_dt = 1.0 / self.config['simulation']['frame_rate']
        self._task = None

    @property
    def is_running(self):
        return self._task is not None and not self._task.done()

    def set_robot_type(self, robot_type):
        """Switch the active robot; not allowed while a program runs"""
        if self.is_running:
            raise RuntimeError("Cannot switch robot while a program is running")
        self.state.set_robot_type(robot_type)

    # ---------- Programs ----------

    def start(self, commands):
        """
        Launch the executor on a command list (needs a running event loop)

        Returns:
            asyncio.Task resolving to the distance readings
        """
        if self.is_running:
            raise RuntimeError("A program is already running; reset first")
        self._task = asyncio.get_running_loop().create_task(self.executor.execute(list(commands)))
        return self._task

    async def run_program(self, code):
        """
        Parse source text and start executing it

        An empty parse is reported and nothing is reset or started.

        Returns:
            list of Command that were started
        """
        commands = self.parser.parse(code)
        if not commands:
            logger.warning("No valid robot commands found. Use robot.moveJoint(jointIndex, angle), "
                           "robot.openGripper(), robot.closeGripper(), robot.move(vx, wz) ...")
            return []
        self.start(commands)
        return commands

    async def run_until_idle(self, dt=None, timeout=None, realtime=False):
        """
        Tick the simulation until the running program completes

        Args:
            dt: frame time (default 1 / frame_rate)
            timeout: optional limit in simulation seconds
            realtime: pace ticks against the wall clock

        Returns:
            list of float distance readings (empty if nothing was running)
        """
        if dt is None:
            dt = self.frame_dt
        task = self._task
        if task is None:
            return []

        start = self.scheduler.now()
        while not task.done():
            if timeout is not None and self.scheduler.now() - start >= timeout:
                raise TimeoutError(f"Program still running after {timeout:.1f}s")
            await self.tick(dt)
            if realtime:
                await asyncio.sleep(dt)

        if task.cancelled():
            return []
        return task.result()

    async def run_for(self, seconds, dt=None, realtime=False):
        """Tick for a fixed stretch of simulation time (lets the rover coast)"""
        if dt is None:
            dt = self.frame_dt
        end = self.scheduler.now() + seconds
        while self.scheduler.now() < end - 1e-9:
            await self.tick(dt)
            if realtime:
                await asyncio.sleep(dt)

    # ---------- Tick ----------

    async def tick(self, dt=None):
        """
        One simulation frame: physics, then sensing, then the executor step

        Args:
            dt: frame time in seconds (default 1 / frame_rate)
        """
        if dt is None:
            dt = self.frame_dt
        self.scheduler.advance(dt)
        now = self.scheduler.now()

        self.arm_dynamics.update(self.state, dt)
        self.rover_physics.update(self.state, dt, now)
        self.sensors.update(self.state, self.world, now)

        # Let the executor run until it suspends again
        await asyncio.sleep(0)
        while self.scheduler.release_due():
            await asyncio.sleep(0)

    async def reset(self):
        """
        Stop any running program and fully re-initialise the active robot

        Safe at any suspension point of the executor.
        """
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
                logger.info("Program cancelled by reset")

        self.scheduler.cancel_all()
        self.state.reset_active()
        self.sensors.reset()

    # ---------- Report ----------

    def generate_report(self, readings=()):
        """Print a text report of the current robot state"""
        state = self.state
        print("\n" + "=" * 60)
        print("ROBOT SANDBOX REPORT")
        print("=" * 60)
        print(f"\nRobot: {state.robot_type.value}")
        print(f"Simulation time: {self.scheduler.now():.2f}s")

        if state.robot_type == RobotType.ARM:
            print("\n--- Joints ---")
            for name, angle in zip(self.config['arm']['joint_names'], state.joint_angles):
                print(f"  {name}: {angle:.2f} deg")
            ee_pos = forward_kinematics(state.joint_angles)
            print(f"\nEnd effector: [{ee_pos[0]:.3f}, {ee_pos[1]:.3f}, {ee_pos[2]:.3f}]")
            print(f"Gripper: {state.gripper.mode.name} (max effort {state.gripper.max_effort:.2f})")
        else:
            rover = state.rover
            x, y, z = rover.position
            print(f"\nPosition: [{x:.3f}, {y:.3f}, {z:.3f}]")
            print(f"Heading: {np.degrees(rover.heading):.1f} deg")
            print(f"Velocity: vx={rover.vx:.3f} m/s, wz={rover.wz:.3f} rad/s")
            print(f"LED: {rover.led_color}")
            print(f"Distance sensor: {rover.distance:.2f}m")
            for i, reading in enumerate(readings):
                print(f"  getDistance #{i}: {reading:.2f}m")
            if state.occupancy_grid is not None:
                counts = state.occupancy_grid.counts()
                print(f"Map: {counts[CellState.FREE]} free, {counts[CellState.OCCUPIED]} occupied, "
                      f"{counts[CellState.UNKNOWN]} unknown cells")

        print("\n" + "=" * 60)


def load_world(path):
    """Build an ObstacleWorld from a YAML file with an `obstacles` list"""
    with open(path, 'r', encoding='utf-8') as f:
        world_cfg = yaml.safe_load(f) or {}
    return ObstacleWorld(load_obstacles(world_cfg.get('obstacles', [])))


async def _run_cli(args):
    if args.program == '-':
        code = sys.stdin.read()
    else:
        with open(args.program, 'r', encoding='utf-8') as f:
            code = f.read()

    world = load_world(args.world) if args.world else None
    sim = RobotSimulator(config_path=args.config, world=world)
    if args.robot:
        sim.set_robot_type(args.robot)

    commands = await sim.run_program(code)
    if not commands:
        return 1

    timeout = sim.config['simulation']['max_program_time']
    readings = await sim.run_until_idle(timeout=timeout, realtime=args.realtime)
    if args.coast > 0:
        await sim.run_for(args.coast, realtime=args.realtime)
    sim.generate_report(readings)
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(description="Run a robot program in the sandbox simulator")
    parser.add_argument('program', help="program file ('-' reads stdin)")
    parser.add_argument('--robot', choices=[t.value for t in RobotType], help="active robot")
    parser.add_argument('--config', help="YAML file overriding config.yaml")
    parser.add_argument('--world', help="YAML world file with an obstacles list")
    parser.add_argument('--coast', type=float, default=0.0,
                        help="seconds to keep simulating after the program ends")
    parser.add_argument('--realtime', action='store_true', help="pace the simulation in real time")
    parser.add_argument('-v', '--verbose', action='store_true', help="debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(asctime)s %(name)s %(levelname)s: %(message)s')

    try:
        return asyncio.run(_run_cli(args))
    except KeyboardInterrupt:
        print("\n\nSimulation interrupted by user (Ctrl+C)")
        return 130


if __name__ == '__main__':
    sys.exit(main())
