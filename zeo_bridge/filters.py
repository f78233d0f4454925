"""60 Hz noise filter for waveform samples."""

import numpy as np

# Sinc low pass, cutoff 50 Hz at 128 Hz sampling
FILTER_60HZ = np.array(
    [
        0.0056, 0.0190, 0.0113, -0.0106, 0.0029, 0.0041, -0.0082, 0.0089,
        -0.0062, 0.0006, 0.0066, -0.0129, 0.0157, -0.0127, 0.0035, 0.0102,
        -0.0244, 0.0336, -0.0323, 0.0168, 0.0136, -0.0555, 0.1020, -0.1446,
        0.1743, 0.8150, 0.1743, -0.1446, 0.1020, -0.0555, 0.0136, 0.0168,
        -0.0323, 0.0336, -0.0244, 0.0102, 0.0035, -0.0127, 0.0157, -0.0129,
        0.0066, 0.0006, -0.0062, 0.0089, -0.0082, 0.0041, 0.0029, -0.0106,
        0.0113, 0.0190, 0.0056,
    ]
)


def filter_60hz(samples) -> np.ndarray:
    """Filter 60 Hz mains noise out of a waveform.

    Args:
        samples: 1D sequence of samples.

    Returns:
        Full convolution with the filter kernel, ``len(samples) + 50``
        values long (empty for empty input).
    """
    signal = np.asarray(samples, dtype=np.float64)
    if signal.size == 0:
        return np.empty(0)
    return np.convolve(signal, FILTER_60HZ, mode="full")
