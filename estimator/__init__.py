"""
Estimate Pipeline
=================
Flat-rate matching, normalization of model-generated estimates, and pricing.
The HTTP orchestration lives in `estimator.pipeline`.
"""

from .flat_rate import FLAT_RATE_TABLE, FlatRateEntry, FlatRateMatch, HoursRange, match
from .models import NormalizedEstimate, Part, PricedEstimate
from .normalizer import normalize
from .pricing import price

__all__ = [
    'FLAT_RATE_TABLE', 'FlatRateEntry', 'FlatRateMatch', 'HoursRange', 'match',
    'NormalizedEstimate', 'Part', 'PricedEstimate', 'normalize', 'price',
]
