# -*- coding: utf-8 -*-
"""
BaseDataClass
-------------
为 dataclass 子类提供统一的构造/清洗/校验与序列化能力。
流程：字段映射 -> 默认值合并 -> 字段转换 -> 构造实例（__post_init__ 中行级校验）-> 序列化。

使用建议：
- 子类必须使用 @dataclass 装饰；配置类建议 frozen=True。
- FIELD_MAPPING 用于兼容外部命名（如 camelCase 配置键）。
- CONVERTERS 建议为纯函数。
- VALIDATORS 只抛错不改值。
"""
from __future__ import annotations

import copy
import dataclasses
import json
import logging
from typing import (
    Any,
    Callable,
    ClassVar,
    Dict,
    List,
    Mapping,
    Type,
    TypeVar,
)

from commons.base_logger import BaseLogger

_DEFAULT_LOGGER = BaseLogger(name="BaseDataClass").logger

T = TypeVar("T", bound="BaseDataClass")
Converter = Callable[[Any], Any]
RowValidator = Callable[[Dict[str, Any]], None]


class BaseDataClass:
    """dataclass 子类的通用基类：构造、清洗、校验、序列化。

    子类可配置以下类变量：
    - DEFAULTS: 字段默认值；callable 在每次构造时调用，其余 deepcopy。
    - FIELD_MAPPING: 外部字段名 -> 内部字段名。
    - CONVERTERS: 字段级转换器，在默认值合并后、校验前执行。
    - VALIDATORS: 行级校验器，由 validate() 以 to_dict() 结果调用，抛异常即失败。
    - LOGGER: 日志器。
    """

    DEFAULTS: ClassVar[Dict[str, Any]] = {}
    FIELD_MAPPING: ClassVar[Dict[str, str]] = {}
    CONVERTERS: ClassVar[Dict[str, Converter]] = {}
    VALIDATORS: ClassVar[List[RowValidator]] = []

    LOGGER: ClassVar[logging.Logger] = _DEFAULT_LOGGER

    @classmethod
    def _logger(cls) -> logging.Logger:
        return getattr(cls, "LOGGER", _DEFAULT_LOGGER) or _DEFAULT_LOGGER

    @classmethod
    def field_names(cls) -> set[str]:
        try:
            return {f.name for f in dataclasses.fields(cls)}
        except TypeError:
            raise TypeError(f"{cls.__name__} 必须使用 @dataclass 装饰")

    @classmethod
    def from_dict(
        cls: Type[T],
        data: Mapping[str, Any],
        *,
        strict: bool = True,
    ) -> T:
        """从单个字典构造实例：映射 -> 默认 -> 转换 -> 构造。

        strict=True（默认）时未知键、转换失败、校验失败都直接抛出；
        strict=False 时未知键与转换失败只记录警告；校验失败总是抛出。
        """
        logger = cls._logger()

        if not isinstance(data, Mapping):
            raise TypeError(f"from_dict 需要 Mapping，实际得到: {type(data).__name__}")

        dc_names = cls.field_names()

        # 1) 字段映射（外键 -> 内部字段名），检测冲突与未知键
        mapped: Dict[str, Any] = {}
        seen_src: Dict[str, str] = {}
        unknown: List[str] = []
        for ext_key, val in data.items():
            internal = cls.FIELD_MAPPING.get(ext_key, ext_key)
            if internal not in dc_names:
                unknown.append(ext_key)
                continue
            if internal in mapped:
                logger.warning(
                    "字段映射冲突: %r 与 %r 都映射到 %r，后者覆盖前者",
                    seen_src[internal], ext_key, internal,
                )
            mapped[internal] = val
            seen_src[internal] = ext_key

        if unknown:
            if strict:
                raise TypeError(f"{cls.__name__} 不认识的字段: {unknown}")
            logger.warning("%s 忽略未知字段: %r", cls.__name__, unknown)

        # 2) 默认值展开
        defaults_expanded: Dict[str, Any] = {}
        for k, v in cls.DEFAULTS.items():
            defaults_expanded[k] = v() if callable(v) else copy.deepcopy(v)

        combined: Dict[str, Any] = {**defaults_expanded, **mapped}

        # 3) 字段级转换
        for key, fn in cls.CONVERTERS.items():
            if key in combined:
                try:
                    combined[key] = fn(combined[key])
                except Exception as e:
                    if strict:
                        raise
                    logger.warning(
                        "字段转换失败 %s (%s): %s; 值片段=%r",
                        key, type(e).__name__, e, str(combined.get(key))[:120],
                    )

        # 4) 构造；行级校验由子类在 __post_init__ 中调用 validate()
        return cls(**{k: v for k, v in combined.items() if k in dc_names})  # type: ignore[arg-type]

    def validate(self) -> None:
        """逐个执行 VALIDATORS（接收 to_dict() 结果，抛异常即失败）"""
        row = self.to_dict()
        for validator in type(self).VALIDATORS:
            validator(row)

    def to_dict(self, *, drop_none: bool = False) -> Dict[str, Any]:
        """导出为 dict；drop_none=True 时剔除值为 None 的字段"""
        if not dataclasses.is_dataclass(self):
            raise TypeError(f"{type(self).__name__} 不是 dataclass，无法 asdict")
        d = dataclasses.asdict(self)
        if drop_none:
            return {k: v for k, v in d.items() if v is not None}
        return d

    def to_json(self, *, drop_none: bool = False) -> str:
        return json.dumps(self.to_dict(drop_none=drop_none), ensure_ascii=False, default=str)
