"""
Global Configuration for Psychometric Analysis
==============================================

Central location for default parameters used across all analysis modules.
Functions accept None for these values and fall back to the defaults here.
"""

# =============================================================================
# NUMERICAL CONFIGURATION
# =============================================================================
POWER_ITERATION_MAX_ITER = 1000
POWER_ITERATION_TOL = 1e-10

# Eigenvalues below this magnitude end the deflation loop
EIGENVALUE_FLOOR = 1e-10

VARIMAX_MAX_ITER = 100
VARIMAX_TOL = 1e-6

# =============================================================================
# FACTOR ANALYSIS CONFIGURATION
# =============================================================================
DEFAULT_ROTATION = 'varimax'
SUPPORTED_ROTATIONS = ('varimax', 'none')

PARALLEL_ANALYSIS_ITERATIONS = 100
REPORT_PARALLEL_ITERATIONS = 50
PARALLEL_ANALYSIS_PERCENTILE = 0.95

KAISER_EIGENVALUE = 1.0
KMO_MINIMUM = 0.60  # Below this the data are poorly suited to factoring
BARTLETT_ALPHA = 0.05
LOADING_THRESHOLD = 0.40  # Primary loadings below this are flagged

# =============================================================================
# RELIABILITY THRESHOLDS
# =============================================================================
ALPHA_THRESHOLDS = {
    'excellent': 0.90,
    'good': 0.80,
    'acceptable': 0.70,
    'questionable': 0.60,
}
ALPHA_TOO_HIGH = 0.95  # May indicate redundant items

# Removing an item must raise alpha by more than this to suggest deletion
ALPHA_IF_DELETED_MARGIN = 0.02

ITEM_TOTAL_THRESHOLDS = {
    'good': 0.50,
    'acceptable': 0.30,
    'poor': 0.20,
}

# Mean inter-item correlation should fall in this range
INTER_ITEM_RANGE = (0.15, 0.50)

# Item distribution limits for pilot-study review
MAX_ABS_SKEWNESS = 2.0
MAX_ABS_KURTOSIS = 7.0

# =============================================================================
# VALIDITY THRESHOLDS
# =============================================================================
AVE_THRESHOLD = 0.50
CR_THRESHOLD = 0.70
HTMT_THRESHOLD = 0.85

# =============================================================================
# MODEL FIT THRESHOLDS (caller-supplied CFA/SEM indices)
# =============================================================================
MODEL_FIT_THRESHOLDS = {
    'cfi': {'excellent': 0.95, 'acceptable': 0.90},
    'tli': {'excellent': 0.95, 'acceptable': 0.90},
    'rmsea': {'excellent': 0.05, 'acceptable': 0.08},
    'srmr': {'excellent': 0.05, 'acceptable': 0.08},
    'chisq_df_ratio': {'excellent': 2.0, 'acceptable': 3.0},
}

# Indices where smaller is better
LOWER_IS_BETTER = ('rmsea', 'srmr', 'chisq_df_ratio')

# =============================================================================
# SAMPLE SIZE GUIDELINES
# =============================================================================
EFA_MIN_SUBJECTS = 100
EFA_SUBJECTS_PER_ITEM = 5

# =============================================================================
# SAMPLING ADEQUACY (KMO) LABELS
# =============================================================================
# Kaiser (1974) bands, lowest cut-off of each band
KMO_THRESHOLDS = {
    'marvelous': 0.90,
    'meritorious': 0.80,
    'middling': 0.70,
    'mediocre': 0.60,
    'miserable': 0.50,
}
KMO_NOT_COMPUTED = 'not computed'


def _band(value: float, thresholds: dict, fallback: str) -> str:
    """Label of the highest band whose cut-off value reaches."""
    for label, threshold in sorted(thresholds.items(), key=lambda kv: kv[1], reverse=True):
        if value >= threshold:
            return label
    return fallback


def get_kmo_label(kmo_value: float) -> str:
    """Kaiser's adequacy band for a KMO value; NaN means the test could not run."""
    if kmo_value != kmo_value:
        return KMO_NOT_COMPUTED
    return _band(kmo_value, KMO_THRESHOLDS, 'unacceptable')


def get_reliability_label(alpha: float) -> str:
    """Return qualitative label for a reliability coefficient."""
    return _band(alpha, ALPHA_THRESHOLDS, 'unacceptable')


def get_item_total_flag(correlation: float) -> str:
    """Return flag for a corrected item-total correlation."""
    return _band(correlation, ITEM_TOTAL_THRESHOLDS, 'problematic')
