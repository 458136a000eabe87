"""
四元数与旋转工具函数
四元数统一使用 [w, x, y, z] 格式；scipy 内部使用 [x, y, z, w]，在此处完成转换
"""
import numpy as np
from scipy.spatial.transform import Rotation as R
from typing import Optional, Tuple, Union


# 向量长度低于该值视为零向量
LENGTH_EPSILON = 1e-8
# 叉积模长低于该值视为共线
COLINEAR_EPSILON = 1e-9


def quaternion_to_rotation(quaternion: Union[np.ndarray, list, tuple]) -> R:
    """
    将四元数转换为 scipy Rotation

    :param quaternion: 四元数，格式为 [w, x, y, z] 或 (w, x, y, z)
    :return: scipy Rotation 对象
    """
    quaternion = np.asarray(quaternion, dtype=np.float64)

    if quaternion.shape != (4,):
        raise ValueError(f"Quaternion must be a 4-element array, got shape {quaternion.shape}")

    norm = np.linalg.norm(quaternion)
    if norm < 1e-10:
        raise ValueError(f"Quaternion norm too small: {norm}, cannot normalize")
    quaternion = quaternion / norm

    w, x, y, z = quaternion[0], quaternion[1], quaternion[2], quaternion[3]
    return R.from_quat([x, y, z, w])


def rotation_to_quaternion(rotation: R) -> np.ndarray:
    """
    将 scipy Rotation 转换为 [w, x, y, z] 四元数
    """
    x, y, z, w = rotation.as_quat()
    return np.array([w, x, y, z], dtype=np.float64)


def shortest_arc(from_vec: np.ndarray, to_vec: np.ndarray) -> Optional[Tuple[np.ndarray, float]]:
    """
    计算把 from_vec 方向对齐到 to_vec 方向的最短弧旋转

    角度用 atan2(|a x b|, a·b) 计算，避免 acos 在接近 ±1 时的精度损失。

    :param from_vec: 起始向量 (Vec3)
    :param to_vec: 目标向量 (Vec3)
    :return: (单位旋转轴, 角度[弧度])；任一向量近似为零或两向量共线时返回 None（即单位旋转）
    """
    from_vec = np.asarray(from_vec, dtype=np.float64)
    to_vec = np.asarray(to_vec, dtype=np.float64)

    from_norm = np.linalg.norm(from_vec)
    to_norm = np.linalg.norm(to_vec)
    if from_norm < LENGTH_EPSILON or to_norm < LENGTH_EPSILON:
        return None

    a = from_vec / from_norm
    b = to_vec / to_norm

    axis = np.cross(a, b)
    sin_angle = np.linalg.norm(axis)
    if sin_angle < COLINEAR_EPSILON:
        # 同向或反向：轴不确定
        return None

    cos_angle = float(np.dot(a, b))
    angle = float(np.arctan2(sin_angle, cos_angle))
    return axis / sin_angle, angle
