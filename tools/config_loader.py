import os
from typing import Any

import yaml


def resolve_config_path(file_path: str) -> str:
    """
    解析配置文件路径：
      - 绝对路径原样返回
      - 相对路径优先相对当前工作目录，其次相对项目根目录
    """
    if os.path.isabs(file_path):
        return file_path
    if os.path.exists(file_path):
        return os.path.abspath(file_path)
    project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    return os.path.join(project_root, file_path)


def load_config(section: str | None = None, file_path: str = os.path.join("config", "binlog.yaml")) -> Any:
    """
    加载 YAML 配置文件，并返回指定部分配置
    :param section: 配置块名称，例如 'binlog'
    :param file_path: 配置文件路径（相对路径按 resolve_config_path 规则查找）
    """
    config_file = resolve_config_path(file_path)
    with open(config_file, 'r', encoding='utf-8') as f:
        config = yaml.safe_load(f) or {}
    if section:
        if section not in config:
            raise KeyError(f"配置文件 {config_file} 中缺少配置块: {section}")
        return config[section] or {}
    return config
