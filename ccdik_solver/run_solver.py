import json
import os
import sys
import time
from typing import Dict, List, Optional

from .data_io import (
    export_animation,
    extract_pose_state,
    interpolate_target_position,
    load_skeleton,
    load_targets
)
from .model.pose import Pose
from .solver.solve_ccd import solve_ccd_ik


def find_tip(pose: Pose, root_name: str) -> str:
    """
    自动查找末端执行器：root 下深度优先遇到的第一个叶子节点
    """
    index = pose.index_of(root_name)
    while True:
        children = pose.children_of(index)
        if not children:
            return pose.names[index]
        index = children[0]


def _resolve_path(config_dir: str, path: Optional[str]) -> Optional[str]:
    """配置中的相对路径以配置文件所在目录为基准"""
    if path is None:
        return None
    return os.path.join(config_dir, path)


def run_solver(config_path="config.json") -> int:
    """
    读取配置，逐帧求解并导出动画

    :param config_path: JSON 配置文件路径
    :return: 退出码，0 表示成功
    """
    # 1. 加载配置
    if not os.path.exists(config_path):
        print(f"❌ 找不到配置文件: {config_path}")
        return 1

    with open(config_path, 'r', encoding='utf-8') as f:
        config = json.load(f)

    print("----------- CCD-IK Solver Headless -----------")
    print(f"配置加载: {config_path}")

    config_dir = os.path.dirname(os.path.abspath(config_path))
    skeleton_path = _resolve_path(config_dir, config.get('skeleton_path'))
    targets_path = _resolve_path(config_dir, config.get('targets_path'))
    output_path = _resolve_path(config_dir, config.get('output_path', 'animation.json'))
    warm_start = config.get('warm_start', True)

    # 求解参数
    params = {
        'precision': config.get('precision', 1e-3),
        'max_iterations': config.get('max_iterations', 50),
        'start_from_tail': config.get('start_from_tail', True),
        'enable_rotation_limit': config.get('enable_rotation_limit', False),
    }

    # 2. 加载骨骼
    print(f"正在加载骨骼: {skeleton_path} ...")
    try:
        initial_pose, rotation_limits = load_skeleton(skeleton_path)
    except (OSError, KeyError, TypeError, ValueError) as e:
        print(f"❌ 骨骼加载失败: {e}")
        return 1

    # 3. 确定 IK 链的两端并试构建一次
    root_name = config.get('root_name', initial_pose.names[0])
    tip_name = config.get('tip_name')
    try:
        if tip_name is None:
            tip_name = find_tip(initial_pose, root_name)
        chain = initial_pose.build_chain(root_name, tip_name)
        print(f"IK 链构建成功: {root_name} -> {tip_name}，包含 {len(chain)} 个关节")
    except (KeyError, ValueError) as e:
        print(f"❌ IK 链构建失败: {e}")
        return 1

    # 4. 加载目标轨迹
    print(f"正在加载目标轨迹: {targets_path} ...")
    try:
        keyframes = load_targets(targets_path)
        total_frames = keyframes[-1]['frame']
        print(f"轨迹加载成功，共 {len(keyframes)} 个关键帧，总长 {total_frames} 帧")
    except (OSError, KeyError, TypeError, ValueError) as e:
        print(f"❌ 目标轨迹加载失败: {e}")
        return 1

    # 5. 开始求解
    start_time = time.time()
    solved_frames = solve_frames(initial_pose, root_name, tip_name, keyframes, total_frames,
                                 rotation_limits, params, warm_start)
    duration = time.time() - start_time

    converged_count = sum(1 for frame in solved_frames if frame['converged'])
    print(f"求解完成，耗时: {duration:.2f} 秒，收敛 {converged_count}/{len(solved_frames)} 帧")

    # 6. 导出结果
    print(f"正在导出到: {output_path} ...")
    export_animation(solved_frames, output_path)
    print("✅ 任务完成！")
    return 0


def solve_frames(initial_pose: Pose, root_name: str, tip_name: str, keyframes: List[Dict],
                 total_frames: int, rotation_limits: Dict[str, float], params: Dict,
                 warm_start: bool = True) -> List[Dict]:
    """
    逐帧求解：插值目标 -> 构建 IK 链 -> 求解 -> 写回姿态

    warm_start 为 True 时以上一帧的结果作为初值，否则每帧都从初始姿态开始
    """
    solved_frames = []
    pose = initial_pose.copy()

    for frame in range(total_frames + 1):
        if frame % 10 == 0:
            sys.stdout.write(f"\r进度: {frame}/{total_frames}")
            sys.stdout.flush()

        if not warm_start:
            pose = initial_pose.copy()

        target = interpolate_target_position(keyframes, frame)
        chain = pose.build_chain(root_name, tip_name)
        limits = [rotation_limits.get(pose.names[link.transform_index]) for link in chain]

        converged = solve_ccd_ik(chain, target, rotation_limits_per_joint=limits, **params)
        pose.apply_chain(chain)

        solved_frames.append(extract_pose_state(frame, pose, converged))

    print()  # 换行
    return solved_frames


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) > 0:
        sys.exit(run_solver(argv[0]))
    else:
        sys.exit(run_solver())


if __name__ == "__main__":
    main()
