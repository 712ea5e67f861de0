"""
Per-directory configuration model.

A directory config applies to its directory and every descendant unless a
deeper directory overrides an option. Layers are merged key by key.
"""

from typing import Any, Dict, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _stringify(value: Any) -> Dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError("must be a mapping")
    return {str(k): "" if v is None else str(v) for k, v in value.items()}


class ResolutionInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    index: Optional[str] = None

    @field_validator("index")
    @classmethod
    def index_is_a_filename(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and (not v or "/" in v or v in (".", "..")):
            raise ValueError("index must be a plain filename")
        return v


class ExecutionInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    timeout: Optional[float] = Field(default=None, gt=0)


class DirectoryConfig(BaseModel):
    """
    Options read from a directory's config file.

    Example (.wwebs.yml):
        resolution:
          index: main.gmi
        env:
          SITE_NAME: example
        mime:
          .gmi: text/gemini
        execution:
          timeout: 5
    """

    model_config = ConfigDict(extra="ignore")

    resolution: ResolutionInfo = Field(default_factory=ResolutionInfo)
    env: Dict[str, str] = Field(default_factory=dict)
    mime: Dict[str, str] = Field(default_factory=dict)
    execution: ExecutionInfo = Field(default_factory=ExecutionInfo)

    @field_validator("env", mode="before")
    @classmethod
    def coerce_env(cls, v: Any) -> Dict[str, str]:
        return _stringify(v)

    @field_validator("mime", mode="before")
    @classmethod
    def normalize_mime(cls, v: Any) -> Dict[str, str]:
        mapping = _stringify(v)
        return {
            (ext if ext.startswith(".") else f".{ext}").lower(): ctype
            for ext, ctype in mapping.items()
        }

    def overlay(self, deeper: "DirectoryConfig") -> "DirectoryConfig":
        """
        Return a new config with `deeper` layered on top of this one.

        Options left unset in `deeper` keep this config's value.
        """
        return DirectoryConfig(
            resolution=ResolutionInfo(
                index=deeper.resolution.index
                if deeper.resolution.index is not None
                else self.resolution.index
            ),
            env={**self.env, **deeper.env},
            mime={**self.mime, **deeper.mime},
            execution=ExecutionInfo(
                timeout=deeper.execution.timeout
                if deeper.execution.timeout is not None
                else self.execution.timeout
            ),
        )

    @classmethod
    def layered(cls, layers: Iterable["DirectoryConfig"]) -> "DirectoryConfig":
        """Merge layers ordered shallowest first."""
        merged = cls()
        for layer in layers:
            merged = merged.overlay(layer)
        return merged

    def index_name(self, default: str) -> str:
        return self.resolution.index or default

    def timeout(self, default: float) -> float:
        return self.execution.timeout or default
