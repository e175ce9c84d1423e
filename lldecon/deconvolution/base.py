"""Base types for deconvolution algorithms."""

from dataclasses import dataclass, field
from typing import List

import torch

__all__ = ["DeconvolutionResult"]


@dataclass
class DeconvolutionResult:
    """Result from an iterative deconvolution algorithm.

    Attributes:
        restored: The restored volume tensor.
        iterations: Number of iterations performed.
        loss_history: Relative change of the estimate at each iteration.
        metadata: Optional algorithm-specific metadata.
    """

    restored: torch.Tensor
    iterations: int
    loss_history: List[float] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)
