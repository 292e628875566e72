import numpy as np


class RandomSource:
    """
    Seedable Mersenne Twister used for collapse point tie-breaking
    and weighted tile picks. The same seed replays the same draws.
    """

    def __init__(self, seed=0):
        """
        Args:
            seed: non-negative integer, 0 picks a nondeterministic seed
        """
        if seed < 0:
            raise ValueError("random seed must be non-negative, got {}".format(seed))
        if not seed:
            seed = int(np.random.default_rng().integers(1, 2**63))
        self.seed = int(seed)
        self._generator = np.random.Generator(np.random.MT19937(self.seed))

    def below(self, n):
        """Uniform integer in [0, n)."""
        if n <= 0:
            raise ValueError("cannot draw below {}".format(n))
        return int(self._generator.integers(0, n))

    def weighted_index(self, weights):
        """
        Draw an index from the multiset where index i appears weights[i] times.
        Zero-weight indices are never returned.
        """
        cumulative = np.cumsum(weights)
        if len(cumulative) == 0 or cumulative[-1] <= 0:
            raise ValueError("weights must have a positive total")
        r = self.below(int(cumulative[-1]))
        return int(np.searchsorted(cumulative, r, side='right'))
