"""
streamgen :: Weight Loader

Load checkpoint weights resolved by a Repo into a model.

Handles:
  - .safetensors (single file or deduplicated shards)
  - PyTorch files (.bin / .pt / .pth), unwrapping nested state dicts
  - dtype conversion and device placement
  - pth -> safetensors conversion

INL - 2025
"""

import torch
import torch.nn as nn
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional, Union
from huggingface_hub.errors import EntryNotFoundError

from streamgen.core.errors import StreamGenError, WeightLoadError
from streamgen.core.logging import get_logger
from streamgen.core.repo import Repo

logger = get_logger("streamgen.loader")

PathLike = Union[str, Path]


# =========================================================================
# Multi-format state_dict loading (safetensors + PyTorch)
# =========================================================================

def _load_safetensors_file(filepath: PathLike) -> Dict[str, torch.Tensor]:
    """Load a single .safetensors file."""
    from safetensors.torch import load_file
    return load_file(str(filepath))


def _load_pytorch_file(filepath: PathLike) -> Dict[str, torch.Tensor]:
    """Load a PyTorch checkpoint file and unwrap nested state dicts."""
    state_dict = torch.load(str(filepath), map_location="cpu", weights_only=True)
    if isinstance(state_dict, dict):
        if "model" in state_dict and isinstance(state_dict["model"], dict):
            state_dict = state_dict["model"]
        if "state_dict" in state_dict and isinstance(state_dict["state_dict"], dict):
            state_dict = state_dict["state_dict"]
    return state_dict


def load_state_dict(files: Iterable[PathLike]) -> Dict[str, torch.Tensor]:
    """
    Merge the tensors of several weight files into one state dict.

    .safetensors files go through safetensors, anything else through
    torch.load.
    """
    state_dict: Dict[str, torch.Tensor] = {}
    for f in files:
        path = Path(f)
        if not path.exists():
            raise WeightLoadError(f"Shard not found: {path}")
        if path.suffix == ".safetensors":
            state_dict.update(_load_safetensors_file(path))
        else:
            state_dict.update(_load_pytorch_file(path))
    return state_dict


def _resolve_weight_files(repo: Repo):
    try:
        return repo.safetensors_files()
    except StreamGenError as e:
        try:
            pytorch_file = Path(repo.pytorch_model_file())
        except EntryNotFoundError:
            pytorch_file = None
        if pytorch_file is None or not pytorch_file.exists():
            raise WeightLoadError(f"no weights found for {repo.model_id}") from e
        logger.debug(f"{repo.model_id}: no safetensors ({e}), using {pytorch_file}")
        return [pytorch_file]


def load_model(
    repo: Repo,
    build: Callable[..., nn.Module],
    dtype: torch.dtype = torch.float32,
    device: Union[str, torch.device] = "cpu",
    config_cls: Optional[type] = None,
    strict: bool = True,
) -> nn.Module:
    """
    Build a model from its repository.

    Args:
        repo: where config.json and the weights live
        build: model factory, called with the parsed config
        dtype: weight dtype
        device: target device
        config_cls: optional config class with from_json(path)
        strict: require the checkpoint keys to match the model exactly

    Returns:
        the model, weights loaded, in eval mode on `device`
    """
    config = repo.config(config_cls)
    model = build(config)

    files = _resolve_weight_files(repo)
    state_dict = load_state_dict(files)
    missing, unexpected = model.load_state_dict(state_dict, strict=strict)
    logger.debug(
        f"{repo.model_id}: loaded {len(state_dict)} tensors from {len(files)} files",
        extra={"extra_data": {"missing": len(missing), "unexpected": len(unexpected)}},
    )

    return model.to(dtype=dtype, device=device).eval()


def convert_pth_to_safetensors(src: PathLike, dest: PathLike) -> int:
    """
    Rewrite a PyTorch checkpoint as a .safetensors file.

    Returns the number of tensors written.
    """
    from safetensors.torch import save_file

    state_dict = _load_pytorch_file(src)
    tensors = {name: t.detach().clone().contiguous() for name, t in state_dict.items() if isinstance(t, torch.Tensor)}
    save_file(tensors, str(dest))
    return len(tensors)
