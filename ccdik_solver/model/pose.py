"""
骨骼姿态：为求解器提供 IK 链，并接收求解结果
"""
from __future__ import annotations

from typing import List, Sequence

from ..utils.transform import Transform
from .chain_link import ChainLink, find_zero_length_children


class Pose:
    """
    扁平存储的骨骼层级与局部变换

    父级索引必须小于子级索引（父级在前），根节点的父级索引为 -1。
    """

    def __init__(self, names: Sequence[str], parents: Sequence[int], local_transforms: Sequence[Transform]):
        """
        :param names: 关节名称列表
        :param parents: 每个关节的父级索引，-1 表示根节点
        :param local_transforms: 每个关节相对父级的局部变换
        """
        if not (len(names) == len(parents) == len(local_transforms)):
            raise ValueError(
                f"Pose arrays must have the same length, got {len(names)} names, "
                f"{len(parents)} parents and {len(local_transforms)} transforms"
            )

        self.names: List[str] = list(names)
        self.parents: List[int] = [int(p) for p in parents]
        self.local_transforms: List[Transform] = [t.copy() for t in local_transforms]
        self._name_to_index = {}

        for index, name in enumerate(self.names):
            if name in self._name_to_index:
                raise ValueError(f"Joint '{name}' already exists in the pose")
            self._name_to_index[name] = index
            parent = self.parents[index]
            if parent < -1 or parent >= index:
                raise ValueError(f"Parent of joint '{name}' must precede it, got parent index {parent}")

    def __len__(self):
        return len(self.names)

    def index_of(self, name: str) -> int:
        index = self._name_to_index.get(name)
        if index is None:
            raise KeyError(f"Joint '{name}' not found in pose")
        return index

    def children_of(self, index: int) -> List[int]:
        return [i for i, parent in enumerate(self.parents) if parent == index]

    def copy(self) -> Pose:
        return Pose(self.names, self.parents, self.local_transforms)

    def component_transforms(self) -> List[Transform]:
        """按父级在前的顺序逐级组合，得到所有关节的 component 空间变换"""
        result: List[Transform] = []
        for index, local in enumerate(self.local_transforms):
            parent = self.parents[index]
            if parent < 0:
                result.append(local.copy())
            else:
                result.append(result[parent].compose(local))
        return result

    def build_chain(self, root_name: str, tip_name: str, zero_length_tolerance: float = 1e-6) -> List[ChainLink]:
        """
        构建从 root 到 tip 的 IK 链

        :param root_name: 链的根关节，不一定是骨骼的根节点
        :param tip_name: 链的末端（末端执行器）
        :param zero_length_tolerance: 判定零长度子节点的距离阈值
        :return: ChainLink 列表（root -> tip），transform_index 为关节在本姿态中的索引
        """
        root = self.index_of(root_name)
        tip = self.index_of(tip_name)

        # 从 tip 开始向上遍历 parent，直到找到 root
        path: List[int] = []
        current = tip
        while current >= 0:
            path.append(current)
            if current == root:
                break
            current = self.parents[current]

        if path[-1] != root:
            raise ValueError(f"Cannot find path from {root_name} to {tip_name}")
        path.reverse()

        components = self.component_transforms()
        chain = [
            ChainLink(components[index].copy(), self.local_transforms[index].copy(), index)
            for index in path
        ]
        find_zero_length_children(chain, zero_length_tolerance)
        return chain

    def apply_chain(self, chain: Sequence[ChainLink]) -> None:
        """
        按 transform_index 写回求解结果

        写回的关节重新推导局部变换；链外的关节保留局部变换，因此跟随父级移动。
        """
        components = self.component_transforms()
        for link in chain:
            components[link.transform_index] = link.component_transform.copy()

        for index in sorted(link.transform_index for link in chain):
            parent = self.parents[index]
            parent_transform = components[parent] if parent >= 0 else Transform()
            self.local_transforms[index] = components[index].relative_to(parent_transform)
