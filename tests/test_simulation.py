"""Test the simulation loop, reset and CLI without a GUI"""

import asyncio

import numpy as np
import pytest

from robot_sandbox.commands import MoveJoint, RobotType, SetLight, SetVelocity
from robot_sandbox.config import load_config
from robot_sandbox.sensing import BoxObstacle, ObstacleWorld
from robot_sandbox.simulator import RobotSimulator, load_world, main


def test_empty_program_changes_nothing(caplog):
    async def scenario():
        sim = RobotSimulator()
        sim.state.set_joint_angle(0, 25.0)
        commands = await sim.run_program("// nothing to do\nint x = 0;")
        readings = await sim.run_until_idle()
        return sim, commands, readings

    sim, commands, readings = asyncio.run(scenario())
    assert commands == []
    assert readings == []
    assert not sim.is_running
    assert sim.state.joint_angles[0] == 25.0
    assert "No valid robot commands" in caplog.text


def test_run_program_rover():
    async def scenario():
        sim = RobotSimulator()
        sim.set_robot_type(RobotType.ROVER)
        commands = await sim.run_program('robot.move(1.0, 0.0); robot.setLight("#00ff00");')
        await sim.run_until_idle(timeout=10.0)
        return sim, commands

    sim, commands = asyncio.run(scenario())
    assert commands == [SetVelocity(1.0, 0.0), SetLight("#00ff00")]
    assert sim.state.rover.led_color == "#00ff00"


def test_reset_mid_program():
    async def scenario():
        sim = RobotSimulator()
        sim.start([MoveJoint(0, 90), MoveJoint(1, 45)])
        await sim.run_for(1.0)
        moved = sim.state.joint_angles[0]

        await sim.reset()
        after_reset = sim.state.joint_angles
        await sim.run_for(2.0)
        return sim, moved, after_reset

    sim, moved, after_reset = asyncio.run(scenario())
    assert 0.0 < moved < 90.0
    np.testing.assert_allclose(after_reset, 0.0)
    np.testing.assert_allclose(sim.state.joint_angles, 0.0)
    assert not sim.is_running
    assert sim.scheduler.pending() == 0


def test_reset_when_idle():
    async def scenario():
        sim = RobotSimulator()
        sim.set_robot_type(RobotType.ROVER)
        sim.state.set_led_color("red")
        await sim.reset()
        return sim

    sim = asyncio.run(scenario())
    assert sim.state.rover.led_color == "#ffffff"


def test_single_program_at_a_time():
    async def scenario():
        sim = RobotSimulator()
        sim.start([MoveJoint(0, 10)])
        with pytest.raises(RuntimeError):
            sim.start([MoveJoint(0, 20)])
        with pytest.raises(RuntimeError):
            sim.set_robot_type(RobotType.ROVER)
        await sim.reset()
        sim.set_robot_type(RobotType.ROVER)
        return sim

    sim = asyncio.run(scenario())
    assert sim.state.robot_type == RobotType.ROVER


def test_timeout():
    async def scenario():
        sim = RobotSimulator()
        sim.start([MoveJoint(0, 10), MoveJoint(1, 10)])
        with pytest.raises(TimeoutError):
            await sim.run_until_idle(timeout=1.0)
        await sim.reset()

    asyncio.run(scenario())


def test_sensing_sees_pose_after_physics():
    world = ObstacleWorld([BoxObstacle(-1.0, 1.0, 2.0, 3.0)])

    async def scenario():
        sim = RobotSimulator(world=world)
        sim.set_robot_type(RobotType.ROVER)
        sim.state.set_velocity(2.0, 0.0, timestamp=0.0)
        await sim.tick(0.1)
        return sim

    sim = asyncio.run(scenario())
    z = sim.state.rover.position[2]
    assert z > 0.0
    assert sim.state.get_distance() == pytest.approx(2.0 - z)


def test_rover_coasts_then_watchdog_stops_it():
    async def scenario():
        sim = RobotSimulator()
        sim.set_robot_type(RobotType.ROVER)
        sim.start([SetVelocity(1.0, 0.0)])
        await sim.run_until_idle()
        z_done = sim.state.rover.position[2]
        await sim.run_for(0.2)
        z_coast = sim.state.rover.position[2]
        await sim.run_for(1.0)
        return sim, z_done, z_coast

    sim, z_done, z_coast = asyncio.run(scenario())
    assert z_coast > z_done
    assert sim.state.rover.vx == 0.0


def test_config_override(tmp_path):
    override = tmp_path / "fast.yaml"
    override.write_text("executor:\n  reset_settle: 0.1\n")

    config = load_config(str(override))
    assert config['executor']['reset_settle'] == 0.1
    assert config['executor']['gripper_settle'] == 0.3
    assert config['simulation']['frame_rate'] == 60


def test_load_world(tmp_path):
    world_file = tmp_path / "world.yaml"
    world_file.write_text(
        "obstacles:\n"
        "  - {shape: box, x_min: -1, x_max: 1, z_min: 2, z_max: 3}\n"
        "  - {shape: circle, x: 2, z: 0, radius: 0.5, tag: decor}\n"
    )
    world = load_world(str(world_file))
    assert len(world.obstacles) == 2
    assert world.intersect([0, 0.1, 0], [0, 0, 1], 5.0) == pytest.approx(2.0)


def test_cli_report(tmp_path, capsys):
    program = tmp_path / "arm.cpp"
    program.write_text("void setup() {\n  robot.moveJoint(0, 30);\n  robot.openGripper();\n}\n")

    assert main([str(program), "--robot", "arm"]) == 0
    out = capsys.readouterr().out
    assert "ROBOT SANDBOX REPORT" in out
    assert "Gripper: OPEN" in out


def test_cli_empty_program(tmp_path):
    program = tmp_path / "empty.cpp"
    program.write_text("int main() { return 0; }\n")
    assert main([str(program)]) == 1
