"""
数据交换功能实现
"""
import json
import os
import numpy as np
from typing import Dict, List, Tuple

from .model.pose import Pose
from .utils.transform import Transform


def load_skeleton(json_path: str) -> Tuple[Pose, Dict[str, float]]:
    """
    从skeleton.json加载骨骼定义，构建姿态

    每个关节: {"name", "parent", "offset": [x,y,z], "quaternion": [w,x,y,z](可选),
              "scale": [x,y,z](可选), "rotation_limit": 弧度(可选)}

    :param json_path: skeleton.json文件路径
    :return: (Pose, 关节名称到旋转上限的映射)
    """
    with open(json_path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    root_name = data['root_name']
    joints_data = data['joints']

    joint_map: Dict[str, Dict] = {}
    children: Dict[str, List[str]] = {}
    for joint_data in joints_data:
        name = joint_data['name']
        if name in joint_map:
            raise ValueError(f"Duplicate joint '{name}'")
        joint_map[name] = joint_data
        children[name] = []

    # 建立父子关系
    for joint_data in joints_data:
        name = joint_data['name']
        parent_name = joint_data.get('parent')
        # 根节点的 parent 字段被忽略
        if parent_name is None or name == root_name:
            continue
        if parent_name not in joint_map:
            raise ValueError(f"Parent '{parent_name}' not found for joint '{name}'")
        children[parent_name].append(name)

    if root_name not in joint_map:
        raise ValueError(f"Root node '{root_name}' not found")

    # 深度优先排序，保证父级在前
    ordered: List[str] = []
    stack = [root_name]
    while stack:
        name = stack.pop()
        ordered.append(name)
        stack.extend(reversed(children[name]))

    if len(ordered) != len(joint_map):
        detached = sorted(set(joint_map) - set(ordered))
        raise ValueError(f"Joints not connected to root '{root_name}': {detached}")

    index_of = {name: i for i, name in enumerate(ordered)}
    parents: List[int] = []
    local_transforms: List[Transform] = []
    rotation_limits: Dict[str, float] = {}

    for name in ordered:
        joint_data = joint_map[name]
        parent_name = joint_data.get('parent') if name != root_name else None
        parents.append(-1 if parent_name is None else index_of[parent_name])

        local_transforms.append(Transform.from_offset(
            joint_data.get('offset', [0.0, 0.0, 0.0]),
            joint_data.get('quaternion'),
            joint_data.get('scale'),
        ))

        if joint_data.get('rotation_limit') is not None:
            limit = float(joint_data['rotation_limit'])
            if np.isnan(limit) or limit < 0.0:
                raise ValueError(f"Rotation limit of joint '{name}' must be non-negative, got {limit}")
            rotation_limits[name] = limit

    return Pose(ordered, parents, local_transforms), rotation_limits


def load_targets(json_path: str) -> List[Dict]:
    """
    从targets.json加载目标轨迹

    :param json_path: targets.json文件路径
    :return: 关键帧列表，每个元素为 {"frame": int, "pos": [x,y,z]}，按帧号排序
    """
    with open(json_path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    keyframes = []
    for item in data:
        keyframe = {
            'frame': int(item['frame']),
            'pos': np.array(item['pos'], dtype=np.float64),
        }
        if keyframe['pos'].shape != (3,):
            raise ValueError(f"Target of frame {keyframe['frame']} must be a 3-element position")
        keyframes.append(keyframe)

    if not keyframes:
        raise ValueError(f"No target keyframes in {json_path}")

    keyframes.sort(key=lambda kf: kf['frame'])

    return keyframes


def interpolate_target_position(keyframes: List[Dict], frame: int) -> np.ndarray:
    """
    在关键帧之间对目标位置进行线性插值（两端夹紧）

    :param keyframes: 关键帧列表（已排序）
    :param frame: 当前帧号
    :return: 目标位置 (Vec3)
    """
    if not keyframes:
        raise ValueError("Cannot interpolate without keyframes")

    if frame <= keyframes[0]['frame']:
        return keyframes[0]['pos'].copy()

    if frame >= keyframes[-1]['frame']:
        return keyframes[-1]['pos'].copy()

    start_kf = keyframes[0]
    end_kf = keyframes[-1]
    for i in range(len(keyframes) - 1):
        if keyframes[i]['frame'] <= frame < keyframes[i + 1]['frame']:
            start_kf = keyframes[i]
            end_kf = keyframes[i + 1]
            break

    start_frame = start_kf['frame']
    end_frame = end_kf['frame']
    if end_frame == start_frame:
        alpha = 0.0
    else:
        alpha = (frame - start_frame) / (end_frame - start_frame)

    return (1.0 - alpha) * start_kf['pos'] + alpha * end_kf['pos']


def extract_pose_state(frame_idx: int, pose: Pose, converged: bool) -> Dict:
    """提取当前所有关节的 component 空间位置与朝向，存为字典"""
    frame_data = {
        'frame': frame_idx,
        'converged': bool(converged),
        'joints': {}
    }
    for name, transform in zip(pose.names, pose.component_transforms()):
        state = transform.to_dict()
        frame_data['joints'][name] = {
            'position': state['position'],
            'quaternion': state['quaternion'],
        }
    return frame_data


def export_animation(solved_frames: List[Dict], output_path: str):
    """
    导出动画数据到animation.json

    :param solved_frames: extract_pose_state 生成的逐帧数据
    :param output_path: 输出文件路径
    """
    # 确保输出目录存在
    os.makedirs(os.path.dirname(os.path.abspath(output_path)), exist_ok=True)

    output = {'frames': solved_frames}
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(output, f, indent=2, ensure_ascii=False)
