"""
Psychometric Core Library
=========================

Reliability, validity and factor-analytic evaluation of multi-item rating
scales from a raw response matrix (subjects x items).

Modules:
    config       - Thresholds and iteration defaults
    data         - Response-matrix validation and item ids
    matrix       - Correlation matrices, power iteration, varimax
    efa          - Factor extraction, parallel analysis, factorability
    stats        - Item descriptives and item-total correlations
    reliability  - Alpha, omega, split-half, lambda-6, item analysis
    validity     - AVE, CR, HTMT, Fornell-Larcker, model fit grading
    engine       - Comprehensive report and recommendations
"""

import logging

from . import config
from . import data
from . import matrix
from . import efa
from . import stats
from . import reliability
from . import validity
from . import engine

from .engine import generate_report, print_report, PsychometricReport

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = '1.0.0'

__all__ = [
    'config',
    'data',
    'matrix',
    'efa',
    'stats',
    'reliability',
    'validity',
    'engine',
    'generate_report',
    'print_report',
    'PsychometricReport',
]
