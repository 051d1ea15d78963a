"""
streamgen :: Device Selection

Pick the torch device a model runs on: CUDA, then Apple MPS, then CPU.

INL - 2025
"""

import torch


def select_device(cpu: bool = False, index: int = 0) -> torch.device:
    """
    Best available device.

    Args:
        cpu: force CPU
        index: accelerator index (CUDA only)
    """
    if cpu:
        return torch.device("cpu")
    if torch.cuda.is_available():
        return torch.device("cuda", index)
    if torch.backends.mps.is_available():
        return torch.device("mps")
    return torch.device("cpu")


def cpu() -> torch.device:
    return select_device(cpu=True)


def gpu(index: int = 0) -> torch.device:
    """Accelerator if there is one, CPU otherwise."""
    return select_device(cpu=False, index=index)
