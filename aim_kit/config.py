from __future__ import annotations

import json
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from .decode import CandidateLayout
from .nms import NMSConfig


@dataclass(frozen=True)
class PipelineConfig:
    """
    Per-process detection settings; read-only while a cycle runs.

    `score_threshold` is required and must be > 0: malformed candidates decode
    with score 0 and must never pass the threshold.
    """

    score_threshold: float
    iou_threshold: float = 0.45
    model_input_size: int = 640
    max_outputs: int = 100
    layout: CandidateLayout = CandidateLayout.AUTO
    channels_first: bool = False
    class_agnostic: bool = True

    def __post_init__(self) -> None:
        if isinstance(self.score_threshold, bool) or not isinstance(self.score_threshold, (int, float)):
            raise ValueError("score_threshold must be a number")
        if not math.isfinite(self.score_threshold) or not 0.0 < self.score_threshold <= 1.0:
            raise ValueError("score_threshold must be within (0, 1]")
        if not math.isfinite(self.iou_threshold) or not 0.0 <= self.iou_threshold <= 1.0:
            raise ValueError("iou_threshold must be within [0, 1]")
        if isinstance(self.model_input_size, bool) or int(self.model_input_size) != self.model_input_size:
            raise ValueError("model_input_size must be an integer")
        if self.model_input_size < 32:
            raise ValueError("model_input_size must be >= 32")
        if isinstance(self.max_outputs, bool) or int(self.max_outputs) != self.max_outputs or self.max_outputs < 1:
            raise ValueError("max_outputs must be an integer >= 1")
        object.__setattr__(self, "layout", CandidateLayout(self.layout))

    def nms_config(self) -> NMSConfig:
        return NMSConfig(
            score_threshold=float(self.score_threshold),
            iou_threshold=float(self.iou_threshold),
            max_outputs=int(self.max_outputs),
        )


def _require_number(payload: Dict[str, Any], key: str) -> float:
    if key not in payload:
        raise ValueError(f"Missing required key: {key}")
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _optional_int(payload: Dict[str, Any], key: str, default: int) -> int:
    value = payload.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be an integer")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"{key} must be an integer")
    return int(value)


def _optional_bool(payload: Dict[str, Any], key: str, default: bool) -> bool:
    value = payload.get(key, default)
    if not isinstance(value, bool):
        raise ValueError(f"{key} must be a boolean")
    return value


def pipeline_config_from_dict(payload: Dict[str, Any]) -> PipelineConfig:
    allowed = {
        "schema_version",
        "score_threshold",
        "iou_threshold",
        "model_input_size",
        "max_outputs",
        "layout",
        "channels_first",
        "class_agnostic",
        "notes",
    }
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown pipeline config keys: {unknown}")

    schema_version = payload.get("schema_version", 1)
    if isinstance(schema_version, bool) or schema_version != 1:
        raise ValueError("pipeline config schema_version must be 1")

    score_threshold = _require_number(payload, "score_threshold")
    iou_threshold = _require_number(payload, "iou_threshold") if "iou_threshold" in payload else 0.45

    layout = payload.get("layout", CandidateLayout.AUTO.value)
    try:
        layout = CandidateLayout(layout)
    except ValueError as exc:
        choices = [m.value for m in CandidateLayout]
        raise ValueError(f"layout must be one of {choices}") from exc

    notes = payload.get("notes")
    if notes is not None and not isinstance(notes, str):
        raise ValueError("notes must be a string if provided")

    return PipelineConfig(
        score_threshold=score_threshold,
        iou_threshold=iou_threshold,
        model_input_size=_optional_int(payload, "model_input_size", 640),
        max_outputs=_optional_int(payload, "max_outputs", 100),
        layout=layout,
        channels_first=_optional_bool(payload, "channels_first", False),
        class_agnostic=_optional_bool(payload, "class_agnostic", True),
    )


def load_pipeline_config(path: Path) -> PipelineConfig:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Pipeline config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid pipeline config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Pipeline config must be a JSON object")
    return pipeline_config_from_dict(payload)
