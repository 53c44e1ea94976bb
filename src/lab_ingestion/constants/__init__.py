"""
Static tables: parameter definitions and ancillary report patterns.
"""

from .parameter_specs import PARAMETER_DEFINITIONS, get_definition
from .report_patterns import UNKNOWN_PATIENT, DEFAULT_REPORT_TYPE
