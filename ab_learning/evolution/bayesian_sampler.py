"""
Bayesian Sampler
Gamma, normal and Beta draws from an injectable random source
"""

import math
import logging
from typing import Optional

import numpy as np

from ..core.exceptions import InvalidArgument, StatisticalUndefined

logger = logging.getLogger(__name__)

_SMALLEST = np.nextafter(0.0, 1.0)
_LARGEST_BELOW_ONE = np.nextafter(1.0, 0.0)


class BayesianSampler:
    """
    Random-variate generator for Beta posteriors

    All randomness comes from one numpy Generator, so a seeded sampler
    reproduces the exact same sequence of draws.
    """

    def __init__(self, rng: Optional[np.random.Generator] = None, seed: Optional[int] = None):
        """
        Initialize sampler

        Args:
            rng: Random generator to draw from (takes precedence over seed)
            seed: Seed for a fresh generator when rng is not given
        """
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    def uniform(self) -> float:
        """Uniform draw in the open interval (0, 1)"""
        u = self.rng.random()
        while u <= 0.0:
            u = self.rng.random()
        return float(u)

    def randint(self, n: int) -> int:
        """Uniform integer in [0, n)"""
        if n <= 0:
            raise InvalidArgument(f"randint needs a positive bound, got {n}")
        return int(self.rng.integers(0, n))

    def sample_normal(self) -> float:
        """Standard normal via Box-Muller"""
        u1 = self.uniform()
        u2 = self.uniform()
        return math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)

    def sample_gamma(self, shape: float, scale: float = 1.0) -> float:
        """
        Gamma(shape, scale) via Marsaglia & Tsang

        Shapes below 1 use the boost identity
        Gamma(a) = Gamma(a + 1) * U^(1/a).
        """
        self._check_gamma_args(shape, scale)

        if shape < 1.0:
            return math.exp(self._log_gamma(shape)) * scale
        return self._marsaglia_tsang(shape) * scale

    def _check_gamma_args(self, shape: float, scale: float):
        if not (shape > 0 and math.isfinite(shape)):
            raise InvalidArgument(f"Gamma shape must be positive and finite, got {shape}")
        if not (scale > 0 and math.isfinite(scale)):
            raise InvalidArgument(f"Gamma scale must be positive and finite, got {scale}")

    def _marsaglia_tsang(self, shape: float) -> float:
        """Unit-scale Gamma draw for shape >= 1"""
        d = shape - 1.0 / 3.0
        c = 1.0 / math.sqrt(9.0 * d)

        while True:
            x = self.sample_normal()
            v = 1.0 + c * x
            while v <= 0.0:
                x = self.sample_normal()
                v = 1.0 + c * x

            v = v * v * v
            u = self.uniform()
            x2 = x * x

            # Squeeze
            if u < 1.0 - 0.0331 * x2 * x2:
                return d * v
            if math.log(u) < 0.5 * x2 + d * (1.0 - v + math.log(v)):
                return d * v

    def _log_gamma(self, shape: float) -> float:
        """
        Log of a unit-scale Gamma draw

        The boost for shape < 1 stays in log space, where U^(1/a)
        cannot underflow for tiny shapes.
        """
        if shape < 1.0:
            return math.log(self._marsaglia_tsang(shape + 1.0)) + math.log(self.uniform()) / shape
        return math.log(self._marsaglia_tsang(shape))

    def sample_beta(self, alpha: float, beta: float) -> float:
        """
        Beta(alpha, beta) as X / (X + Y) with X ~ Gamma(alpha), Y ~ Gamma(beta)

        The ratio is formed from log X and log Y, so draws with tiny shapes
        never divide zero by zero.

        Returns:
            A value strictly inside (0, 1)

        Raises:
            InvalidArgument: alpha or beta is not a positive finite number
        """
        if not (alpha > 0 and math.isfinite(alpha)) or not (beta > 0 and math.isfinite(beta)):
            raise InvalidArgument(f"Beta parameters must be positive, got alpha={alpha}, beta={beta}")

        log_x = self._log_gamma(alpha)
        log_y = self._log_gamma(beta)

        # X / (X + Y) == 1 / (1 + exp(log_y - log_x))
        diff = log_y - log_x
        if math.isnan(diff):
            raise StatisticalUndefined(f"Beta({alpha}, {beta}) produced NaN")
        if diff > 0:
            e = math.exp(-diff)
            sample = e / (1.0 + e)
        else:
            sample = 1.0 / (1.0 + math.exp(diff))

        # Extreme log ratios land exactly on a boundary
        if sample <= 0.0:
            return float(_SMALLEST)
        if sample >= 1.0:
            return float(_LARGEST_BELOW_ONE)
        return sample
