"""
模型层 (Model Layer)
IK 链数据结构与骨骼姿态

- ChainLink: IK 链中的单个关节，求解器原地修改其变换
- find_zero_length_children: 预计算位置重合的子节点分组
- Pose: 骨骼姿态，负责构建 IK 链并回写求解结果
"""

from .chain_link import ChainLink, find_zero_length_children
from .pose import Pose

__all__ = [
    'ChainLink',
    'find_zero_length_children',
    'Pose'
]
