"""
Robot topology: joint names, types and limits.

Joints come from the inline `robot.joints` config section or from a URDF
parsed with yourdfpy.
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional

import yourdfpy

from ..core.config import RobotConfig
from ..core.errors import ConfigurationError

logger = logging.getLogger(__name__)


class JointType(Enum):
    REVOLUTE = "revolute"
    PRISMATIC = "prismatic"
    CONTINUOUS = "continuous"
    FIXED = "fixed"
    FLOATING = "floating"
    PLANAR = "planar"

    @property
    def bounded(self) -> bool:
        """Whether the joint has a finite travel a servo can cover."""
        return self in (JointType.REVOLUTE, JointType.PRISMATIC)


@dataclass(frozen=True)
class JointLimits:
    lower: float
    upper: float
    velocity: Optional[float] = None
    effort: Optional[float] = None


@dataclass(frozen=True)
class Joint:
    name: str
    type: JointType
    limits: Optional[JointLimits] = None


class RobotModel:
    """Lookup table of the robot's joints."""

    def __init__(self, name: str, joints: Iterable[Joint]):
        self.name = name
        self._joints: Dict[str, Joint] = {j.name: j for j in joints}

    @property
    def joint_names(self) -> List[str]:
        return list(self._joints)

    def get_joint(self, name: str) -> Optional[Joint]:
        return self._joints.get(name)

    @classmethod
    def from_config(cls, config: RobotConfig) -> "RobotModel":
        """Build the model from config, loading the URDF when one is given."""
        if config.urdf:
            return cls.from_urdf(config.urdf, name=config.name)

        joints = []
        for j in config.joints:
            limits = None
            if j.lower is not None and j.upper is not None:
                limits = JointLimits(j.lower, j.upper, j.velocity, j.effort)
            joints.append(Joint(j.name, _joint_type(j.type, j.name), limits))
        return cls(config.name, joints)

    @classmethod
    def from_urdf(cls, urdf_path: str, name: Optional[str] = None) -> "RobotModel":
        if not os.path.exists(urdf_path):
            raise ConfigurationError(f"URDF not found: {urdf_path}")

        urdf = yourdfpy.URDF.load(urdf_path, build_scene_graph=False, load_meshes=False)
        joints = []
        for j in urdf.robot.joints:
            limits = None
            if j.limit is not None and j.limit.lower is not None and j.limit.upper is not None:
                limits = JointLimits(j.limit.lower, j.limit.upper, j.limit.velocity, j.limit.effort)
            joints.append(Joint(j.name, _joint_type(j.type, j.name), limits))

        logger.info("[RobotModel] Loaded %d joints from %s", len(joints), urdf_path)
        return cls(name or urdf.robot.name, joints)


def _joint_type(value: str, joint_name: str) -> JointType:
    try:
        return JointType(value)
    except ValueError:
        raise ConfigurationError(f"Joint {joint_name!r} has unknown type {value!r}") from None
