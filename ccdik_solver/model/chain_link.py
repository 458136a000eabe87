"""
CCD-IK 链节点
每次求解前由调用方重新构建，求解后即可丢弃
"""
import numpy as np
from typing import List, Optional

from ..utils.transform import Transform


class ChainLink:
    """
    IK 链中的一个关节（链按 root -> tip 排列，第 i 个节点的父级为第 i-1 个）

    :ivar component_transform: 关节在公共（component）空间中的变换，每轮迭代都会被修改
    :ivar local_transform: 关节相对父级节点的变换，随 component_transform 一起更新
    :ivar transform_index: 调用方的关节索引，求解器只负责透传
    :ivar zero_length_children: 与本节点位置重合的后续节点在链中的索引，它们直接继承本节点的变换
    :ivar accumulated_angle_delta: 本次求解中累计施加的旋转角度（弧度），仅在启用旋转限制时使用
    """

    def __init__(self,
                 component_transform: Transform,
                 local_transform: Transform,
                 transform_index: int = -1,
                 zero_length_children: Optional[List[int]] = None):
        self.component_transform = component_transform
        self.local_transform = local_transform
        self.transform_index = transform_index
        self.zero_length_children: List[int] = list(zero_length_children or [])
        self.accumulated_angle_delta: float = 0.0

    @property
    def location(self) -> np.ndarray:
        """component 空间中的关节位置（即旋转支点）"""
        return self.component_transform.translation

    def __repr__(self):
        return f"<ChainLink: index={self.transform_index} at {np.round(self.location, 6).tolist()}>"


def find_zero_length_children(chain: List[ChainLink], tolerance: float = 1e-6) -> None:
    """
    预计算每个节点的 zero_length_children（原地填充）

    连续多个位置重合的节点，统一挂在这一段的第一个节点（host）下。

    :param chain: IK 链（root -> tip）
    :param tolerance: 判定位置重合的距离阈值
    """
    for link in chain:
        link.zero_length_children = []

    host = 0
    for i in range(1, len(chain)):
        offset = np.linalg.norm(chain[i].location - chain[i - 1].location)
        if offset <= tolerance:
            chain[host].zero_length_children.append(i)
        else:
            host = i
