"""Box-car sample-rate conversion for mono float audio."""

from __future__ import annotations

import numpy as np


def resample(samples: np.ndarray, input_rate: int, output_rate: int) -> np.ndarray:
    """Convert `samples` from `input_rate` to `output_rate` by block averaging.

    Output length is ``round(len(samples) * output_rate / input_rate)``. Each
    output sample is the mean of the input samples whose index range maps onto
    it; an empty range yields 0. No anti-alias filtering is applied, which is
    adequate for speech.

    Equal rates return the input unchanged.
    """
    if input_rate <= 0 or output_rate <= 0:
        raise ValueError(f"Sample rates must be positive, got {input_rate} -> {output_rate}")
    if input_rate == output_rate:
        return samples

    data = np.asarray(samples, dtype=np.float32)
    ratio = input_rate / output_rate
    out_len = int(np.floor(len(data) / ratio + 0.5))
    if out_len == 0:
        return np.zeros(0, dtype=np.float32)

    # Block edges round half up, so neighbouring blocks share a boundary.
    edges = np.floor(np.arange(out_len + 1) * ratio + 0.5).astype(np.int64)
    edges = np.clip(edges, 0, len(data))
    starts = edges[:-1]
    ends = edges[1:]
    counts = ends - starts

    cumsum = np.concatenate(([0.0], np.cumsum(data, dtype=np.float64)))
    sums = cumsum[ends] - cumsum[starts]

    out = np.zeros(out_len, dtype=np.float32)
    nonempty = counts > 0
    out[nonempty] = (sums[nonempty] / counts[nonempty]).astype(np.float32)
    return out
