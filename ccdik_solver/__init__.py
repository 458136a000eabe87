"""
CCD-IK 求解器
循环坐标下降逆运动学：逐个旋转关节，使骨骼链末端逼近目标位置
"""

from .model import ChainLink, Pose, find_zero_length_children
from .solver import solve_ccd_ik
from .utils import Transform

__all__ = [
    'ChainLink',
    'Pose',
    'find_zero_length_children',
    'solve_ccd_ik',
    'Transform'
]
