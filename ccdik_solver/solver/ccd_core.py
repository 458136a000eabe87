"""
CCD-IK 核心算法实现
单个节点的旋转更新、变换向下传播、零长度子节点同步与输入校验
"""
import logging
import math
import numpy as np
from scipy.spatial.transform import Rotation as R
from typing import Dict, List, Optional, Sequence

from ..model.chain_link import ChainLink
from ..utils.quaternion_utils import LENGTH_EPSILON, shortest_arc
from ..utils.transform import Transform

logger = logging.getLogger(__name__)

# 小于该角度（弧度）的旋转视为无更新
ANGLE_EPSILON = 1e-6
# 停滞时用于打破共线的微小弯曲角（弧度）
BEND_ANGLE = 1e-2


def validate_chain_inputs(chain: Sequence[ChainLink],
                          target_position,
                          precision: float,
                          enable_rotation_limit: bool,
                          rotation_limits_per_joint: Optional[Sequence[Optional[float]]]) -> np.ndarray:
    """
    校验求解输入，非法输入直接抛出 ValueError

    :return: 目标位置 (Vec3, float64)
    """
    if len(chain) == 0:
        raise ValueError("IK chain must contain at least one link")

    target = np.asarray(target_position, dtype=np.float64)
    if target.shape != (3,):
        raise ValueError(f"Target position must be a 3-element vector, got shape {target.shape}")
    if not np.all(np.isfinite(target)):
        raise ValueError(f"Target position must be finite, got {target}")

    if not precision > 0.0:
        raise ValueError(f"Precision must be positive, got {precision}")

    if enable_rotation_limit and rotation_limits_per_joint is not None:
        if len(rotation_limits_per_joint) > len(chain):
            raise ValueError(
                f"Got {len(rotation_limits_per_joint)} rotation limits for a chain of {len(chain)} links"
            )
        for i, limit in enumerate(rotation_limits_per_joint):
            if limit is None:
                continue
            if math.isnan(limit) or limit < 0.0:
                raise ValueError(f"Rotation limit of link {i} must be non-negative, got {limit}")

    return target


def build_host_map(chain: Sequence[ChainLink]) -> Dict[int, int]:
    """
    由各节点的 zero_length_children 构建 {子节点索引: host 索引} 映射

    子节点索引必须位于 host 之后且在链内，且每个子节点只能有一个 host。
    """
    hosts: Dict[int, int] = {}
    for host, link in enumerate(chain):
        for child in link.zero_length_children:
            if child <= host or child >= len(chain):
                raise ValueError(
                    f"Zero-length child index {child} of link {host} must point forward inside the chain"
                )
            if child in hosts:
                raise ValueError(f"Link {child} is listed as a zero-length child of both {hosts[child]} and {host}")
            hosts[child] = host
    return hosts


def resolve_rotation_limits(chain_length: int,
                            enable_rotation_limit: bool,
                            rotation_limits_per_joint: Optional[Sequence[Optional[float]]]) -> List[Optional[float]]:
    """
    将旋转限制展开为与链等长的列表，None 表示该节点不受限制
    """
    limits: List[Optional[float]] = [None] * chain_length
    if not enable_rotation_limit or rotation_limits_per_joint is None:
        return limits

    for i, limit in enumerate(rotation_limits_per_joint):
        if limit is not None and not math.isinf(limit):
            limits[i] = float(limit)
    return limits


def refresh_local_transforms(chain: Sequence[ChainLink]) -> None:
    """根据 component 变换重新推导除 root 外所有节点的局部变换"""
    for i in range(1, len(chain)):
        chain[i].local_transform = chain[i].component_transform.relative_to(chain[i - 1].component_transform)


def reconcile_zero_length_children(chain: Sequence[ChainLink], hosts: Dict[int, int]) -> None:
    """
    将所有零长度子节点的 component 变换强制设为其 host 的变换，再刷新局部变换
    其他节点的 component 变换保持不变
    """
    if not hosts:
        return
    for child in sorted(hosts):
        chain[child].component_transform = chain[hosts[child]].component_transform.copy()
    refresh_local_transforms(chain)
    logger.debug("Reconciled %d zero-length children", len(hosts))


def propagate_from(chain: Sequence[ChainLink], link_index: int, hosts: Dict[int, int]) -> None:
    """
    从 link_index 向 tip 方向重新计算所有后代的 component 变换

    普通节点：component = parent.compose(local)
    零长度子节点：直接复制 host 的 component 变换，并重新推导局部变换
    """
    for i in range(link_index + 1, len(chain)):
        link = chain[i]
        parent_transform = chain[i - 1].component_transform
        host = hosts.get(i)
        if host is None:
            link.component_transform = parent_transform.compose(link.local_transform)
        else:
            link.component_transform = chain[host].component_transform.copy()
            link.local_transform = link.component_transform.relative_to(parent_transform)


def update_chain_link(chain: Sequence[ChainLink],
                      link_index: int,
                      target: np.ndarray,
                      hosts: Dict[int, int],
                      external_parent: Transform,
                      rotation_limit: Optional[float] = None) -> bool:
    """
    对单个节点执行一次 CCD 更新

    1. 计算支点到末端、支点到目标的向量
    2. 求两向量间的最短弧旋转（退化时跳过）
    3. 若有旋转限制，按剩余额度等比例缩小旋转角
    4. 旋转本节点并向 tip 方向传播

    :param chain: IK 链
    :param link_index: 要旋转的节点索引
    :param target: 目标位置 (Vec3)
    :param hosts: {零长度子节点: host} 映射
    :param external_parent: root 节点在链外的父级变换，用于推导 root 的局部变换
    :param rotation_limit: 本节点累计旋转上限（弧度），None 表示不限制
    :return: 本节点是否发生了旋转
    """
    link = chain[link_index]
    pivot = link.location
    tip_position = chain[-1].location

    arc = shortest_arc(tip_position - pivot, target - pivot)
    if arc is None:
        return False
    axis, angle = arc
    if angle <= ANGLE_EPSILON:
        return False

    angle = _clamp_to_limit(link, angle, rotation_limit)
    if angle is None:
        return False

    _rotate_chain_link(chain, link_index, axis, angle, hosts, external_parent)
    return True


def bend_chain_link(chain: Sequence[ChainLink],
                    link_index: int,
                    hosts: Dict[int, int],
                    external_parent: Transform,
                    rotation_limit: Optional[float] = None,
                    angle: float = BEND_ANGLE) -> bool:
    """
    绕垂直于 支点->末端 的轴把节点弯曲一个小角度

    链条伸直且目标落在同一直线上时，所有节点的最短弧都退化为单位旋转，
    CCD 无法继续；弯曲后链条脱离共线状态，下一轮即可正常更新。

    :param angle: 弯曲角（弧度），受旋转限制剩余额度约束
    :return: 本节点是否发生了旋转；支点与末端重合或额度用尽时返回 False
    """
    link = chain[link_index]
    direction = chain[-1].location - link.location
    length = np.linalg.norm(direction)
    if length < LENGTH_EPSILON:
        return False
    direction = direction / length

    # 与 direction 夹角最大的坐标轴作参考，叉积即为垂直轴
    reference = np.eye(3)[np.argmin(np.abs(direction))]
    axis = np.cross(direction, reference)
    axis = axis / np.linalg.norm(axis)

    angle = _clamp_to_limit(link, angle, rotation_limit)
    if angle is None:
        return False

    _rotate_chain_link(chain, link_index, axis, angle, hosts, external_parent)
    return True


def _clamp_to_limit(link: ChainLink, angle: float, rotation_limit: Optional[float]) -> Optional[float]:
    """按剩余额度缩小旋转角并计入累计量；额度用尽时返回 None"""
    if rotation_limit is None:
        return angle
    remaining = rotation_limit - link.accumulated_angle_delta
    if remaining <= ANGLE_EPSILON:
        return None
    angle = min(angle, remaining)
    link.accumulated_angle_delta += angle
    return angle


def _rotate_chain_link(chain: Sequence[ChainLink],
                       link_index: int,
                       axis: np.ndarray,
                       angle: float,
                       hosts: Dict[int, int],
                       external_parent: Transform) -> None:
    link = chain[link_index]

    # 在 component 空间中绕支点旋转
    delta_rotation = R.from_rotvec(axis * angle)
    link.component_transform.rotation = delta_rotation * link.component_transform.rotation

    parent_transform = chain[link_index - 1].component_transform if link_index > 0 else external_parent
    link.local_transform = link.component_transform.relative_to(parent_transform)

    propagate_from(chain, link_index, hosts)


def distance_to_target(chain: Sequence[ChainLink], target: np.ndarray) -> float:
    """末端执行器（tip 节点）到目标的距离"""
    return float(np.linalg.norm(target - chain[-1].location))
