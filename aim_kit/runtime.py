from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

import numpy as np


PathLike = Union[str, Path]
InferFn = Callable[[np.ndarray], np.ndarray]

logger = logging.getLogger(__name__)

_BACKEND_BY_SUFFIX = {
    ".onnx": "onnxruntime",
    ".torchscript": "torchscript",
    ".ts": "torchscript",
    ".pt": "torchscript",
}


def find_project_root(
    start: Optional[PathLike] = None,
    markers: Sequence[str] = ("pyproject.toml", ".git"),
) -> Path:
    """
    Nearest ancestor of `start` (default: cwd) holding one of `markers`;
    falls back to `start` itself.
    """

    p = Path(start) if start is not None else Path.cwd()
    p = p.resolve()
    if p.is_file():
        p = p.parent

    for parent in (p, *p.parents):
        if any((parent / m).exists() for m in markers):
            return parent
    return p


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    p = Path(path)
    if p.is_absolute():
        return p
    base = find_project_root() if root in ("auto", None) else Path(root).resolve()
    return (base / p).resolve()


def infer_backend_name(model_path: PathLike) -> str:
    suffix = Path(model_path).suffix.lower()
    try:
        return _BACKEND_BY_SUFFIX[suffix]
    except KeyError:
        raise ValueError(f"Could not infer backend from extension '{suffix}'. Pass backend=... explicitly.") from None


def check_input_size(model_size: Optional[int], expected: Optional[int], model_path: PathLike) -> None:
    if model_size is None or expected is None:
        logger.debug("Model input size not checked (model=%s, expected=%s)", model_size, expected)
        return
    if int(model_size) != int(expected):
        raise ValueError(
            f"{model_path} expects {model_size}x{model_size} input but model_input_size is {expected}."
        )


def load_infer_fn(
    model_path: PathLike,
    *,
    backend: Optional[str] = None,
    root: Optional[PathLike] = "auto",
    onnx_providers: Optional[Sequence[str]] = None,
    torch_device: str = "cpu",
    torch_half: bool = False,
    torch_output_index: int = 0,
    expected_input_size: Optional[int] = None,
) -> InferFn:
    """
    Load a detector from disk and return its blob -> raw output callable.

    Relative paths resolve against the project root unless `root` is given.
    The backend is picked from the file extension when not forced. When
    `expected_input_size` is given and the model declares a fixed square
    input, the two must agree.
    """

    resolved = resolve_path(model_path, root=root)
    chosen = (backend or infer_backend_name(resolved)).lower()
    logger.info("Loading %s model from %s", chosen, resolved)

    if chosen == "onnxruntime":
        from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

        ort_backend = OnnxRuntimeBackend(resolved, OnnxRuntimeBackendConfig(providers=onnx_providers))
        logger.info("ONNX Runtime providers in use: %s", ", ".join(ort_backend.providers_in_use))
        check_input_size(ort_backend.input_size, expected_input_size, resolved)
        return ort_backend.infer

    if chosen == "torchscript":
        from .backends.torchscript_backend import TorchScriptBackend, TorchScriptBackendConfig

        ts_backend = TorchScriptBackend(
            resolved,
            TorchScriptBackendConfig(device=torch_device, half=torch_half, output_index=torch_output_index),
        )
        return ts_backend.infer

    raise ValueError(f"Unsupported backend: {backend!r}")
