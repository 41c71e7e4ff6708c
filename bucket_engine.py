from dataclasses import dataclass
import logging
import numpy as np
import numpy.typing as npt
from typing import Dict, Iterable, Optional, Tuple, TypeAlias, Union

logger = logging.getLogger(__name__)

# A 1D array of per-bucket counts. Index i holds the number of addresses that
# landed in bucket i; the length is always the engine's bucket_count.
Histogram: TypeAlias = npt.NDArray[np.int64]
Addresses: TypeAlias = npt.NDArray[np.uint32]  # 1D array of IPv4 addresses
BucketIndices: TypeAlias = npt.NDArray[np.uint32]

NBITS = 32
MASK32 = (1 << NBITS) - 1

# Number of addresses materialized at once when histogramming a range.
RANGE_CHUNK = 1 << 20

# Named (multiplier, offset) pairs.
PRESETS: Dict[str, Tuple[int, int]] = {
    "default": (0x9E3779B1, 0x85EBCA77),
    "wang": (0x27D4EB2D, 0x165667B1),
}

DEFAULT_K = 12


@dataclass(frozen=True)
class Config:
    """Parameters of the affine bucket map y = (multiplier * x + offset) mod 2**32.

    The multiplier should be odd for the map to be a permutation of the 32-bit
    space. That is left to the caller.
    """
    multiplier: int = PRESETS["default"][0]
    offset: int = PRESETS["default"][1]
    k: int = DEFAULT_K

    def __post_init__(self) -> None:
        if not 0 <= self.multiplier <= MASK32:
            raise ValueError(f"multiplier must fit in 32 bits, got {self.multiplier:#x}")
        if not 0 <= self.offset <= MASK32:
            raise ValueError(f"offset must fit in 32 bits, got {self.offset:#x}")
        if self.k < 0:
            raise ValueError(f"k must be non-negative, got {self.k}")

    @property
    def bucket_count(self) -> int:
        """2**k, clamped to 2**32 once k reaches the address width."""
        return 1 << min(self.k, NBITS)

    @classmethod
    def from_preset(cls, name: str, k: int = DEFAULT_K) -> "Config":
        try:
            multiplier, offset = PRESETS[name]
        except KeyError:
            raise ValueError(f"Unknown preset: '{name}'") from None
        return cls(multiplier=multiplier, offset=offset, k=k)


def _top_bits(y: npt.NDArray[np.uint32], k: int) -> BucketIndices:
    """Keep the top k bits of each 32-bit value."""
    if k == 0:
        return np.zeros_like(y)
    if k >= NBITS:
        return y
    return y >> np.uint32(NBITS - k)


def merge_histograms(*histograms: Iterable[int]) -> Histogram:
    """Element-wise sum of histograms built over disjoint inputs.

    The sum is commutative and associative, so a large range can be split
    into shards, histogrammed separately and merged in any order.

    Raises:
        ValueError: if no histograms are given or their lengths differ.
    """
    if not histograms:
        raise ValueError("merge_histograms requires at least one histogram")
    arrays = [
        np.asarray(h if isinstance(h, np.ndarray) else list(h), dtype=np.int64)
        for h in histograms
    ]
    length = arrays[0].shape[0]
    for arr in arrays[1:]:
        if arr.shape[0] != length:
            raise ValueError(
                f"histogram length mismatch: expected {length}, got {arr.shape[0]}"
            )
    merged = np.zeros(length, dtype=np.int64)
    for arr in arrays:
        merged += arr
    return merged


class BucketEngine:
    """Maps IPv4 addresses to buckets using the top k bits of an affine hash.

    The engine is a pure function of its Config. It keeps no state besides
    the config, so one instance can be shared freely.
    """

    def __init__(self, config: Config) -> None:
        self._config = config
        # numpy scalars so array arithmetic stays in uint32 and wraps mod 2**32
        self._multiplier = np.uint32(config.multiplier)
        self._offset = np.uint32(config.offset)

    @property
    def config(self) -> Config:
        return self._config

    @property
    def bucket_count(self) -> int:
        return self._config.bucket_count

    def bucket_index(self, address: int) -> int:
        """Return the bucket of a single address.

        Overflow in the multiply-add is intentional: the mask reduces the
        result modulo 2**32, which is what defines the permutation.
        """
        cfg = self._config
        y = (cfg.multiplier * (int(address) & MASK32) + cfg.offset) & MASK32
        if cfg.k == 0:
            return 0
        if cfg.k >= NBITS:
            return y
        return y >> (NBITS - cfg.k)

    def _hash(self, addresses: Addresses) -> BucketIndices:
        y = addresses * self._multiplier + self._offset
        return _top_bits(y, self._config.k)

    def bucketize(self, addresses: Iterable[int]) -> BucketIndices:
        """Bucket every address, preserving input order and length."""
        if not isinstance(addresses, np.ndarray):
            addresses = list(addresses)
        arr = np.asarray(addresses, dtype=np.uint32).reshape(-1)
        return self._hash(arr)

    def _accumulate(self, counts: Histogram, indices: BucketIndices) -> None:
        idx = indices.astype(np.int64)
        # An index past the end of the histogram is dropped rather than
        # written. Only the k >= 32 path could produce one.
        in_range = idx < counts.shape[0]
        if not np.all(in_range):
            logger.debug("dropping %d out-of-range bucket indices", int(np.count_nonzero(~in_range)))
            idx = idx[in_range]
        # bincount sized by the largest index seen, not the whole histogram
        found = np.bincount(idx)
        counts[: found.size] += found

    def distribution(
        self,
        addresses: Union[Iterable[int], int],
        end: Optional[int] = None,
    ) -> Histogram:
        """Histogram of bucket counts.

        Called with a dataset, counts every address in it. Called as
        ``distribution(start, end)``, counts every address in the half-open
        range [start, end) (see distribution_range).
        """
        if end is not None:
            return self.distribution_range(int(addresses), end)  # type: ignore[arg-type]

        counts = np.zeros(self.bucket_count, dtype=np.int64)
        indices = self.bucketize(addresses)  # type: ignore[arg-type]
        if indices.size:
            self._accumulate(counts, indices)
        return counts

    def distribution_range(self, start: int, end: int) -> Histogram:
        """Histogram over every address in [start, end).

        The bounds are plain Python integers, so ``end`` may be 2**32 to
        include the last address. An empty range (end <= start) yields an
        all-zero histogram. The range does not wrap around 2**32.

        Args:
            start: First address in the range.
            end: One past the last address; at most 2**32.

        Returns:
            An int64 array of length bucket_count.
        """
        counts = np.zeros(self.bucket_count, dtype=np.int64)
        if end <= start:
            return counts
        if start < 0 or end > MASK32 + 1:
            raise ValueError(f"range [{start}, {end}) is outside the 32-bit address space")

        chunks = 0
        for lo in range(start, end, RANGE_CHUNK):
            hi = min(lo + RANGE_CHUNK, end)
            block = np.arange(lo, hi, dtype=np.uint64).astype(np.uint32)
            self._accumulate(counts, self._hash(block))
            chunks += 1
        logger.debug("histogrammed [%d, %d) in %d chunks", start, end, chunks)
        return counts
