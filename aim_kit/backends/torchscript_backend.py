from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

import numpy as np

from . import candidate_output


PathLike = Union[str, Path]


@dataclass(frozen=True)
class TorchScriptBackendConfig:
    """
    - device: "cpu" or "cuda"
    - half: run the model in float16
    - output_index: which output holds the candidates when the model returns several
    """

    device: str = "cpu"
    half: bool = False
    output_index: int = 0


class TorchScriptBackend:
    """
    Scripted or traced detector saved with `torch.jit.save`.

    `infer` returns the raw candidate tensor as float32 NumPy on the host and
    raises `InferenceFailureError` when the module returns nothing usable.
    """

    def __init__(self, model_path: PathLike, cfg: TorchScriptBackendConfig = TorchScriptBackendConfig()):
        try:
            import torch  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError("torch is required for the TorchScript backend. Install with `pip install torch`.") from e

        self._torch = torch
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))
        if cfg.output_index < 0:
            raise ValueError(f"output_index must be >= 0 (got {cfg.output_index})")

        self.cfg = cfg
        self.device = torch.device(cfg.device)
        model = torch.jit.load(str(self.model_path), map_location=self.device)
        model.eval()
        self.model = model.half() if cfg.half else model

    def _host(self, value: Any) -> Any:
        if isinstance(value, self._torch.Tensor):
            return value.detach().float().cpu().numpy()
        if isinstance(value, (tuple, list)):
            return [self._host(v) for v in value]
        return value

    def infer(self, blob: np.ndarray) -> np.ndarray:
        torch = self._torch
        x = torch.as_tensor(np.ascontiguousarray(blob), device=self.device)
        x = x.half() if self.cfg.half else x.float()

        with torch.inference_mode():
            y = self.model(x)
        return candidate_output(self._host(y), self.cfg.output_index).astype(np.float32, copy=False)
