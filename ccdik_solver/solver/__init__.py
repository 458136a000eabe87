"""
求解层 (Solver Layer)
纯数学计算，负责单关节 CCD 更新、变换向下传播、零长度子节点同步及迭代求解
"""

from .ccd_core import (
    ANGLE_EPSILON,
    BEND_ANGLE,
    bend_chain_link,
    build_host_map,
    distance_to_target,
    propagate_from,
    reconcile_zero_length_children,
    update_chain_link,
    validate_chain_inputs
)
from .solve_ccd import solve_ccd_ik

__all__ = [
    'ANGLE_EPSILON',
    'BEND_ANGLE',
    'bend_chain_link',
    'build_host_map',
    'distance_to_target',
    'propagate_from',
    'reconcile_zero_length_children',
    'update_chain_link',
    'validate_chain_inputs',
    'solve_ccd_ik'
]
