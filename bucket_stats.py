from dataclasses import dataclass
import numpy as np
from typing import Iterable


@dataclass(frozen=True)
class StatsResult:
    """Uniformity diagnostics for one histogram."""
    sample_count: int = 0
    bucket_count: int = 0
    mean: float = 0.0
    stddev: float = 0.0
    chi2: float = 0.0
    uniformity: float = 0.0  # percent, 0-100


def uniformity_percent(counts: np.ndarray, mean: float) -> float:
    """Flatness heuristic: 100% when the extreme buckets sit on the mean,
    falling linearly to 0% once the worst deviation reaches the mean.

    This is not a statistical test and has no relation to a p-value. It is
    bounded and monotonic in the worst-case deviation, nothing more.
    """
    max_dev = max(abs(float(counts.max()) - mean), abs(float(counts.min()) - mean))
    fraction = 1.0
    if mean > 0.0:
        fraction = 1.0 - max_dev / mean
    return float(np.clip(fraction, 0.0, 1.0)) * 100.0


def compute_stats(histogram: Iterable[int]) -> StatsResult:
    """Compute mean, population stddev, Pearson chi-square and uniformity.

    An empty histogram or one with no samples is a defined degenerate case:
    the counts are reported and every derived metric stays at zero.

    Args:
        histogram: Per-bucket counts, e.g. from BucketEngine.distribution.

    Returns:
        A StatsResult with sample_count == sum(histogram) and
        bucket_count == len(histogram).
    """
    counts = np.asarray(
        histogram if isinstance(histogram, np.ndarray) else list(histogram),
        dtype=np.int64,
    ).reshape(-1)
    bucket_count = int(counts.shape[0])
    sample_count = int(counts.sum())

    if bucket_count == 0 or sample_count == 0:
        return StatsResult(sample_count=sample_count, bucket_count=bucket_count)

    mean = sample_count / bucket_count

    # Squared deviations are summed in extended precision to limit
    # cancellation over many buckets.
    dev = counts.astype(np.longdouble) - np.longdouble(mean)
    sq = dev * dev
    variance = np.sum(sq) / np.longdouble(bucket_count)
    stddev = float(np.sqrt(variance))

    # Pearson chi-square against a uniform expected count of `mean` per bucket.
    chi2 = float(np.sum(sq / np.longdouble(mean)))

    return StatsResult(
        sample_count=sample_count,
        bucket_count=bucket_count,
        mean=mean,
        stddev=stddev,
        chi2=chi2,
        uniformity=uniformity_percent(counts, mean),
    )
