"""
CCD-IK 求解器实现
循环坐标下降 (Cyclic Coordinate Descent)：每次只旋转一个关节，使末端逼近目标
"""
import logging
from typing import List, Optional, Sequence

from ..model.chain_link import ChainLink
from .ccd_core import (
    bend_chain_link,
    build_host_map,
    distance_to_target,
    reconcile_zero_length_children,
    resolve_rotation_limits,
    update_chain_link,
    validate_chain_inputs
)

logger = logging.getLogger(__name__)

# 两次停滞之间距离至少缩短该值，才继续弯曲链条
STALL_DISTANCE_EPSILON = 1e-9


def solve_ccd_ik(
    chain: List[ChainLink],
    target_position,
    precision: float = 1e-3,
    max_iterations: int = 50,
    start_from_tail: bool = True,
    enable_rotation_limit: bool = False,
    rotation_limits_per_joint: Optional[Sequence[Optional[float]]] = None
) -> bool:
    """
    使用 CCD 求解位置 IK，原地修改链上所有节点的 component / local 变换

    :param chain: IK 链（root -> tip），至少包含一个节点
    :param target_position: component 空间中的目标位置 (Vec3)
    :param precision: 收敛距离阈值，末端到目标距离 <= precision 即视为收敛
    :param max_iterations: 最大迭代轮数，<= 0 时不迭代（仅同步零长度子节点）
    :param start_from_tail: True 表示从 tip 向 root 遍历（经典 CCD），False 表示从 root 向 tip 遍历
    :param enable_rotation_limit: 是否启用每个关节的累计旋转限制
    :param rotation_limits_per_joint: 每个关节的旋转上限（弧度，与链按索引对齐）；缺失或为 None 的节点不受限制
    :return: True 表示在迭代预算内收敛；False 表示未收敛，但链上仍是尽力求得的姿态
    """
    target = validate_chain_inputs(chain, target_position, precision,
                                   enable_rotation_limit, rotation_limits_per_joint)
    hosts = build_host_map(chain)
    limits = resolve_rotation_limits(len(chain), enable_rotation_limit, rotation_limits_per_joint)

    # root 在链外的父级变换，整个求解过程中保持不变
    root = chain[0]
    external_parent = root.component_transform.parent_from(root.local_transform)

    reconcile_zero_length_children(chain, hosts)
    for link in chain:
        link.accumulated_angle_delta = 0.0

    # tip 自身的旋转不会移动末端位置；零长度子节点不独立旋转
    tip_index = len(chain) - 1
    order = range(tip_index - 1, -1, -1) if start_from_tail else range(0, tip_index)
    candidates = [i for i in order if i not in hosts]

    distance = distance_to_target(chain, target)
    stall_distance = None
    iteration = 0
    while distance > precision and iteration < max_iterations:
        iteration += 1

        updated = False
        for link_index in candidates:
            updated |= update_chain_link(chain, link_index, target, hosts,
                                         external_parent, limits[link_index])

        distance = distance_to_target(chain, target)
        logger.debug("CCD iteration %d: distance %.6g", iteration, distance)

        if updated or distance <= precision:
            continue

        # 本轮没有任何关节旋转：链条与目标共线。上次弯曲后距离没有缩短，或已无迭代预算时结束
        if iteration >= max_iterations or (
                stall_distance is not None and distance >= stall_distance - STALL_DISTANCE_EPSILON):
            logger.debug("CCD stalled after %d iterations", iteration)
            break
        stall_distance = distance

        if not _bend_chain(chain, candidates, hosts, external_parent, limits):
            logger.debug("CCD stalled after %d iterations, no link can bend", iteration)
            break
        distance = distance_to_target(chain, target)
        logger.debug("CCD bent chain out of a colinear pose at iteration %d", iteration)

    return distance <= precision


def _bend_chain(chain: List[ChainLink], candidates: List[int], hosts, external_parent,
                limits: List[Optional[float]]) -> bool:
    """
    弯曲除 root 外的所有候选节点；root 的旋转只会整体转动链条，仅在没有其他节点可弯曲时使用
    """
    bent = False
    for link_index in candidates:
        if link_index == 0:
            continue
        bent |= bend_chain_link(chain, link_index, hosts, external_parent, limits[link_index])
    if not bent and 0 in candidates:
        bent = bend_chain_link(chain, 0, hosts, external_parent, limits[0])
    return bent
