"""
空间变换：平移 + 旋转 + 逐轴缩放
组合约定与骨骼动画一致：component = parent.compose(local)
"""
from __future__ import annotations

import numpy as np
from scipy.spatial.transform import Rotation as R
from typing import Any, Dict, Optional

from .quaternion_utils import quaternion_to_rotation, rotation_to_quaternion


def _safe_divide(numerator: np.ndarray, denominator: np.ndarray) -> np.ndarray:
    """逐元素相除；分母近似为零的分量结果置零"""
    result = np.zeros(3, dtype=np.float64)
    mask = np.abs(denominator) > 1e-8
    result[mask] = numerator[mask] / denominator[mask]
    return result


class Transform:
    """
    刚体变换（含缩放）

    :ivar translation: 平移 (Vec3)
    :ivar rotation: 旋转 (scipy Rotation，不可变对象，可在副本间共享)
    :ivar scale: 逐轴缩放 (Vec3)
    """

    def __init__(self,
                 translation: Optional[np.ndarray] = None,
                 rotation: Optional[R] = None,
                 scale: Optional[np.ndarray] = None):
        if translation is None:
            translation = np.zeros(3)
        if scale is None:
            scale = np.ones(3)
        self.translation: np.ndarray = np.array(translation, dtype=np.float64).reshape(3)
        self.rotation: R = R.identity() if rotation is None else rotation
        self.scale: np.ndarray = np.array(scale, dtype=np.float64).reshape(3)

    @classmethod
    def from_offset(cls, offset, quaternion=None, scale=None) -> Transform:
        """
        由偏移量和 [w, x, y, z] 四元数构造变换

        :param offset: 平移 (Vec3)
        :param quaternion: 旋转四元数 [w, x, y, z]，None 表示无旋转
        :param scale: 逐轴缩放，None 表示 [1, 1, 1]
        """
        rotation = None if quaternion is None else quaternion_to_rotation(quaternion)
        return cls(offset, rotation, scale)

    @property
    def location(self) -> np.ndarray:
        return self.translation

    @property
    def quaternion(self) -> np.ndarray:
        """旋转的 [w, x, y, z] 四元数"""
        return rotation_to_quaternion(self.rotation)

    def copy(self) -> Transform:
        return Transform(self.translation.copy(), self.rotation, self.scale.copy())

    def compose(self, local: Transform) -> Transform:
        """
        以 self 为父级，计算子级 local 变换在同一空间下的结果

        :param local: 子级相对 self 的局部变换
        :return: 子级在 self 所在空间中的变换
        """
        translation = self.translation + self.rotation.apply(self.scale * local.translation)
        rotation = self.rotation * local.rotation
        scale = self.scale * local.scale
        return Transform(translation, rotation, scale)

    def relative_to(self, parent: Transform) -> Transform:
        """
        compose 的逆运算：求 self 相对 parent 的局部变换，使 parent.compose(result) == self
        """
        inv_rotation = parent.rotation.inv()
        translation = _safe_divide(inv_rotation.apply(self.translation - parent.translation), parent.scale)
        rotation = inv_rotation * self.rotation
        scale = _safe_divide(self.scale, parent.scale)
        return Transform(translation, rotation, scale)

    def parent_from(self, local: Transform) -> Transform:
        """
        已知子级的 component 变换 (self) 与局部变换 local，反推父级变换 P，使 P.compose(local) == self
        """
        rotation = self.rotation * local.rotation.inv()
        scale = _safe_divide(self.scale, local.scale)
        translation = self.translation - rotation.apply(scale * local.translation)
        return Transform(translation, rotation, scale)

    def to_matrix(self) -> np.ndarray:
        """4x4 齐次变换矩阵（旋转 · 缩放，再平移）"""
        matrix = np.identity(4, dtype=np.float64)
        matrix[:3, :3] = self.rotation.as_matrix() @ np.diag(self.scale)
        matrix[:3, 3] = self.translation
        return matrix

    def to_dict(self) -> Dict[str, Any]:
        return {
            'position': [float(v) for v in self.translation],
            'quaternion': [float(v) for v in self.quaternion],
            'scale': [float(v) for v in self.scale],
        }

    def __repr__(self):
        return (f"<Transform: t={np.round(self.translation, 6).tolist()} "
                f"q={np.round(self.quaternion, 6).tolist()}>")
