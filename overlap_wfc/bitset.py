import operator

import numpy as np


def word_count(size):
    """Number of uint64 words needed to hold `size` bits."""
    return -(-size // BitSet.STRIDE)


def popcount_rows(words):
    """
    Count the bits turned on in every row of a 2-D uint64 word array.
    Returns:
        int array with one count per row
    """
    raw = np.ascontiguousarray(words, dtype='<u8').view(np.uint8)
    return np.unpackbits(raw, axis=1).sum(axis=1, dtype=np.int64)


class BitSet:
    """
    Fixed-size set of small integers (tile ids) packed into uint64 words.
    Bits beyond `size` are always kept at zero, so word-wise counts and
    comparisons never see stray bits.
    """
    STRIDE = 64

    def __init__(self, size, on=False):
        """
        Args:
            size: number of significant bits
            on: initial value of every bit
        """
        if size < 0:
            raise ValueError("BitSet size must be non-negative, got {}".format(size))
        self.size = int(size)
        self._words = np.zeros(word_count(self.size), dtype=np.uint64)
        if on:
            self.reset(True)

    @classmethod
    def wrap(cls, size, words):
        """
        BitSet backed by an existing word buffer, without copying.
        Writes through the BitSet land in `words`.
        """
        if words.dtype != np.uint64 or words.shape != (word_count(size),):
            raise ValueError("expected {} uint64 words for {} bits".format(word_count(size), size))
        bits = cls.__new__(cls)
        bits.size = int(size)
        bits._words = words
        return bits

    @classmethod
    def from_indices(cls, size, indices):
        """Build a BitSet of `size` bits with the given indices turned on."""
        bits = cls(size)
        for i in indices:
            bits.set(i, True)
        return bits

    @property
    def words(self):
        """Read-only view of the underlying words."""
        view = self._words.view()
        view.flags.writeable = False
        return view

    def _check_index(self, index):
        index = operator.index(index)
        if not 0 <= index < self.size:
            raise IndexError("BitSet index {} out of range [0, {})".format(index, self.size))
        return index

    def _check_other(self, other):
        if other.size != self.size:
            raise ValueError("BitSet size mismatch: {} != {}".format(self.size, other.size))

    def get(self, index):
        index = self._check_index(index)
        return bool((int(self._words[index // self.STRIDE]) >> (index % self.STRIDE)) & 1)

    __getitem__ = get

    def set(self, index, on=True):
        index = self._check_index(index)
        mask = np.uint64(1 << (index % self.STRIDE))
        if on:
            self._words[index // self.STRIDE] |= mask
        else:
            self._words[index // self.STRIDE] &= ~mask

    def reset(self, on=False):
        """Set every bit to `on`."""
        if not on:
            self._words[:] = 0
            return
        self._words[:] = np.iinfo(np.uint64).max
        tail = self.size % self.STRIDE
        if tail and len(self._words):
            self._words[-1] = np.uint64((1 << tail) - 1)

    def intersect(self, other):
        """Keep only the bits that are also on in `other`."""
        self._check_other(other)
        np.bitwise_and(self._words, other._words, out=self._words)

    def union_with(self, other):
        """Turn on every bit that is on in `other`."""
        self._check_other(other)
        np.bitwise_or(self._words, other._words, out=self._words)

    def assign(self, other):
        """Copy the contents of `other` into this set."""
        self._check_other(other)
        self._words[:] = other._words

    def assign_words(self, words):
        """Overwrite the set with raw words laid out like `words`."""
        if np.shape(words) != self._words.shape:
            raise ValueError("expected {} words, got {}".format(len(self._words), np.shape(words)))
        self._words[:] = words
        tail = self.size % self.STRIDE
        if tail and len(self._words):
            self._words[-1] &= np.uint64((1 << tail) - 1)

    def _bits(self):
        # bit i of the set lands at position i regardless of host byte order
        raw = self._words.astype('<u8').view(np.uint8)
        return np.unpackbits(raw, bitorder='little')[:self.size]

    def is_empty(self):
        return not self._words.any()

    def count(self):
        return int(np.count_nonzero(self._bits()))

    def is_single(self):
        nonzero = np.flatnonzero(self._words)
        if len(nonzero) != 1:
            return False
        word = int(self._words[nonzero[0]])
        return word & (word - 1) == 0

    def first(self):
        """Lowest index turned on, or `size` when the set is empty."""
        nonzero = np.flatnonzero(self._words)
        if len(nonzero) == 0:
            return self.size
        word = int(self._words[nonzero[0]])
        return int(nonzero[0]) * self.STRIDE + (word & -word).bit_length() - 1

    def indices(self):
        """Array of the indices turned on, ascending."""
        return np.flatnonzero(self._bits())

    def __iter__(self):
        return iter(self.indices().tolist())

    def copy(self):
        other = BitSet(self.size)
        other._words[:] = self._words
        return other

    def __eq__(self, other):
        if not isinstance(other, BitSet):
            return NotImplemented
        return self.size == other.size and np.array_equal(self._words, other._words)

    def __repr__(self):
        return "BitSet({}, {})".format(self.size, self.indices().tolist())
