"""配置管理模块。

支持从 .env、config.yaml 以及环境变量加载配置。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Tuple

import yaml
from pydantic import Field, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("VISION_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
        Path(__file__).resolve().parents[1] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class YamlConfigSource(PydanticBaseSettingsSource):
    """把 config.yaml 作为优先级低于环境变量的配置来源。"""

    def get_field_value(self, field: FieldInfo, field_name: str) -> Tuple[Any, str, bool]:
        return None, field_name, False

    def __call__(self) -> Dict[str, Any]:
        data = _load_config_from_yaml()
        return {k: v for k, v in data.items() if k in self.settings_cls.model_fields}


class VisionSettings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- Provider 相关配置 ----
    default_provider: str = Field(default="gemini", description="默认使用的 Provider 名称")
    gemini_api_key: Optional[str] = Field(default=None, description="Gemini API 密钥（由外部注入）")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini API 基础URL",
    )
    http_timeout: float = Field(default=60.0, ge=1.0, description="HTTP 超时时间（秒）")

    # ---- 重试 ----
    retry_max_attempts: int = Field(default=3, ge=1, le=10, description="单次能力调用的最大尝试次数")
    retry_base_delay_ms: int = Field(default=1000, ge=0, description="指数退避的基础延迟（毫秒）")

    # ---- 语音 ----
    speech_enabled: bool = Field(default=True, description="是否为每条回复合成语音")
    tts_voice: str = Field(default="Kore", description="预置语音名称")
    audio_output: Literal["sounddevice", "file", "none"] = Field(
        default="sounddevice",
        description="播放方式：本地声卡、写入 WAV 文件或静音",
    )
    audio_output_dir: str = Field(default="audio_out", description="audio_output=file 时的输出目录")

    # ---- 助手 ----
    assistant_name: str = Field(default="VISION", description="助手名称（摘要转写时使用）")
    persona_locale: str = Field(default="en", description="persona 提示词语言目录")
    image_prompt_trigger: str = Field(
        default="generate an image of",
        description="触发文生图的前缀（大小写不敏感）",
    )

    # ---- 日志 ----
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("gemini_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @field_validator("image_prompt_trigger")
    @classmethod
    def normalize_trigger(cls, v: str) -> str:
        trigger = v.strip().lower()
        if not trigger:
            raise ValueError("image_prompt_trigger must not be empty")
        return trigger

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSource(settings_cls),
            file_secret_settings,
        )


settings = VisionSettings()

# 类型别名，让外部代码可以使用 Settings 类型
Settings = VisionSettings
