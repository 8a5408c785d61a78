"""
Sensing - Distance sensor, 360 degree scan and occupancy mapping
Rays are cast against a host-supplied world; only obstacle-tagged shapes can be hit
"""

import logging
import math
from collections import namedtuple
from dataclasses import dataclass
from enum import IntEnum

import numpy as np

from .commands import RobotType

logger = logging.getLogger(__name__)

OBSTACLE_TAG = 'obstacle'

ScanPoint = namedtuple('ScanPoint', ['angle', 'distance'])


class CellState(IntEnum):
    UNKNOWN = 0
    FREE = 1
    OCCUPIED = 2


# ========== WORLD ==========

@dataclass
class BoxObstacle:
    """Axis-aligned box on the ground plane (x, z extents)"""
    x_min: float
    x_max: float
    z_min: float
    z_max: float
    tag: str = OBSTACLE_TAG

    def intersect(self, ox, oz, dx, dz):
        """Ray parameter of the first hit (slab test), or None"""
        t_near, t_far = 0.0, math.inf
        for origin, direction, lower, upper in ((ox, dx, self.x_min, self.x_max),
                                                (oz, dz, self.z_min, self.z_max)):
            if abs(direction) < 1e-12:
                if origin < lower or origin > upper:
                    return None
                continue
            t1 = (lower - origin) / direction
            t2 = (upper - origin) / direction
            if t1 > t2:
                t1, t2 = t2, t1
            t_near = max(t_near, t1)
            t_far = min(t_far, t2)
            if t_near > t_far:
                return None
        return t_near


@dataclass
class CircleObstacle:
    """Vertical cylinder on the ground plane"""
    x: float
    z: float
    radius: float
    tag: str = OBSTACLE_TAG

    def intersect(self, ox, oz, dx, dz):
        fx, fz = ox - self.x, oz - self.z
        a = dx * dx + dz * dz
        b = 2 * (fx * dx + fz * dz)
        c = fx * fx + fz * fz - self.radius ** 2
        discriminant = b * b - 4 * a * c
        if a == 0 or discriminant < 0:
            return None
        root = math.sqrt(discriminant)
        t_exit = (-b + root) / (2 * a)
        if t_exit < 0:
            return None
        return max((-b - root) / (2 * a), 0.0)


class ObstacleWorld:
    """
    Minimal world-intersection provider

    Shapes extend vertically without limit, so only the horizontal part of a
    ray matters. Shapes whose tag is not 'obstacle' (robot body, helpers,
    ground markings) are never reported as hits.
    """

    def __init__(self, obstacles=None):
        self.obstacles = list(obstacles or [])

    def add(self, obstacle):
        self.obstacles.append(obstacle)
        return obstacle

    def intersect(self, origin, direction, max_range):
        """
        Nearest obstacle hit along a ray

        Args:
            origin: [x, y, z] ray start
            direction: [x, y, z] unit direction
            max_range: ignore hits farther than this

        Returns:
            float distance, or None if nothing is hit within max_range
        """
        ox, _, oz = origin
        dx, _, dz = direction
        nearest = None
        for obstacle in self.obstacles:
            if obstacle.tag != OBSTACLE_TAG:
                continue
            hit = obstacle.intersect(ox, oz, dx, dz)
            if hit is not None and hit <= max_range and (nearest is None or hit < nearest):
                nearest = hit
        return nearest


def load_obstacles(obstacle_list):
    """
    Build obstacles from plain dicts, e.g. the `obstacles` list of a YAML world file

    Args:
        obstacle_list: dicts with 'shape' ('box' or 'circle'), its dimensions
            and an optional 'tag'

    Returns:
        list of BoxObstacle / CircleObstacle
    """
    obstacles = []
    for obs in obstacle_list:
        shape = obs.get('shape', 'box')
        tag = obs.get('tag', OBSTACLE_TAG)
        if shape == 'box':
            obstacles.append(BoxObstacle(obs['x_min'], obs['x_max'], obs['z_min'], obs['z_max'], tag))
        elif shape == 'circle':
            obstacles.append(CircleObstacle(obs['x'], obs['z'], obs['radius'], tag))
        else:
            raise ValueError(f"Unknown obstacle shape '{shape}'")
    return obstacles


def cast_ray(world, origin, direction, max_range):
    """Distance along a ray clamped to [0, max_range]; max_range when nothing is hit"""
    hit = world.intersect(origin, direction, max_range)
    if hit is None:
        return max_range
    return min(max(hit, 0.0), max_range)


def heading_direction(angle):
    """Unit ground-plane direction for an angle about Y (0 = +z)"""
    return np.array([math.sin(angle), 0.0, math.cos(angle)])


def lidar_scan(world, origin, num_rays=36, max_range=5.0):
    """
    360 degree scan with rays evenly spaced and anchored to world axes

    Returns:
        list of ScanPoint(angle, distance), one per ray
    """
    if num_rays < 1:
        raise ValueError(f"num_rays must be at least 1, got {num_rays}")
    step = 2 * math.pi / num_rays
    scan = []
    for i in range(num_rays):
        angle = i * step
        scan.append(ScanPoint(angle, cast_ray(world, origin, heading_direction(angle), max_range)))
    return scan


# ========== MAPPING ==========

class OccupancyGrid:
    """Square grid centred on the world origin, indexed [z_cell, x_cell]"""

    def __init__(self, map_size=10, resolution=5):
        """
        Initialize an all-unknown grid

        Args:
            map_size: side length in meters
            resolution: cells per meter
        """
        if map_size <= 0 or resolution <= 0 or round(map_size * resolution) < 1:
            raise ValueError(f"map of {map_size}m at {resolution} cells/m has no cells")
        self.map_size = map_size
        self.resolution = resolution
        self.grid_size = int(round(map_size * resolution))
        self.cell_size = map_size / self.grid_size
        self.cells = np.full((self.grid_size, self.grid_size), CellState.UNKNOWN, dtype=np.int8)

    def world_to_cell(self, x, z):
        center = self.grid_size / 2
        return (math.floor(center + x / self.cell_size),
                math.floor(center + z / self.cell_size))

    def in_bounds(self, gx, gz):
        return 0 <= gx < self.grid_size and 0 <= gz < self.grid_size

    def cell_at(self, x, z):
        """CellState at a world position, None outside the map"""
        gx, gz = self.world_to_cell(x, z)
        if not self.in_bounds(gx, gz):
            return None
        return CellState(self.cells[gz, gx])

    def mark_free(self, gx, gz):
        # Occupied cells are never downgraded
        if self.in_bounds(gx, gz) and self.cells[gz, gx] != CellState.OCCUPIED:
            self.cells[gz, gx] = CellState.FREE

    def mark_occupied(self, gx, gz):
        if self.in_bounds(gx, gz):
            self.cells[gz, gx] = CellState.OCCUPIED

    def fuse_scan(self, scan, origin, max_range, occupied_ratio=0.95):
        """
        Update cells from one scan taken at origin

        Cells along each ray are marked free up to the hit; the hit cell is
        marked occupied unless the reading is close to max range (a miss).

        Args:
            scan: list of ScanPoint
            origin: [x, y, z] sensor position
            max_range: sensor range used for the miss threshold
            occupied_ratio: fraction of max_range below which a hit counts
        """
        ox, _, oz = origin
        for angle, distance in scan:
            sin_a, cos_a = math.sin(angle), math.cos(angle)

            steps = math.floor(distance / self.cell_size)
            for step in range(steps):
                along = step * self.cell_size
                self.mark_free(*self.world_to_cell(ox + sin_a * along, oz + cos_a * along))

            if distance < max_range * occupied_ratio:
                self.mark_occupied(*self.world_to_cell(ox + sin_a * distance, oz + cos_a * distance))

    def counts(self):
        """Number of cells in each state"""
        return {state: int(np.count_nonzero(self.cells == state)) for state in CellState}


def update_occupancy_map(state, scan, origin, map_size=10, resolution=5,
                         max_range=5.0, occupied_ratio=0.95):
    """
    Fuse a scan into the state's grid, (re)allocating it when absent or mis-sized

    Returns:
        OccupancyGrid: the updated grid
    """
    grid = state.occupancy_grid
    expected = int(round(map_size * resolution))
    if grid is None or grid.cells.shape != (expected, expected):
        grid = OccupancyGrid(map_size, resolution)
        state.occupancy_grid = grid
    grid.fuse_scan(scan, origin, max_range, occupied_ratio)
    return grid


# ========== ROVER SENSORS ==========

class DistanceSensor:
    """Single frontal ray sensor, updated at a fixed rate"""

    def __init__(self, max_range=5.0, update_rate=10):
        if update_rate <= 0:
            raise ValueError(f"update_rate must be positive, got {update_rate}")
        self.max_range = max_range
        self.update_interval = 1.0 / update_rate
        self.last_update = None

    def update(self, state, world, now):
        """
        Refresh state.rover.distance if the rate gate allows

        Returns:
            float: the current reading (cached between updates)
        """
        if self.last_update is not None and now - self.last_update < self.update_interval:
            return state.get_distance()
        self.last_update = now

        rover = state.rover
        distance = cast_ray(world, rover.position, heading_direction(rover.heading), self.max_range)
        state.set_distance(distance)
        return distance


class RoverSensors:
    """Distance sensor, lidar scan and map fusion driven from the simulation tick"""

    def __init__(self, config):
        """
        Initialize sensors

        Args:
            config: Loaded configuration dict
        """
        sensor_cfg = config['sensors']
        map_cfg = config['mapping']
        self.max_range = sensor_cfg['distance_range']
        self.num_rays = sensor_cfg['lidar_rays']
        self.lidar_interval = sensor_cfg['lidar_update_interval']
        self.map_size = map_cfg['map_size']
        self.resolution = map_cfg['resolution']
        self.occupied_ratio = map_cfg['occupied_range_ratio']
        if self.num_rays < 1:
            raise ValueError(f"sensors.lidar_rays must be at least 1, got {self.num_rays}")
        if self.map_size <= 0 or self.resolution <= 0 or round(self.map_size * self.resolution) < 1:
            raise ValueError("mapping.map_size and mapping.resolution must give at least one cell")
        self.distance_sensor = DistanceSensor(self.max_range, sensor_cfg['distance_update_rate'])
        self.last_scan = None

    def reset(self):
        self.distance_sensor.last_update = None
        self.last_scan = None

    def update(self, state, world, now):
        """Run whichever sensors are due this tick (rover only)"""
        if state.robot_type != RobotType.ROVER:
            return

        self.distance_sensor.update(state, world, now)

        if self.last_scan is not None and now - self.last_scan < self.lidar_interval:
            return
        self.last_scan = now

        origin = state.rover.position.copy()
        scan = lidar_scan(world, origin, self.num_rays, self.max_range)
        state.rover.lidar_scan = scan
        update_occupancy_map(state, scan, origin, self.map_size, self.resolution,
                             self.max_range, self.occupied_ratio)
