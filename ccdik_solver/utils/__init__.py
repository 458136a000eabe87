"""
工具层 (Utils Layer)
空间变换与四元数运算
"""

from .quaternion_utils import (
    quaternion_to_rotation,
    rotation_to_quaternion,
    shortest_arc
)
from .transform import Transform

__all__ = [
    'quaternion_to_rotation',
    'rotation_to_quaternion',
    'shortest_arc',
    'Transform'
]
