# ============================================================================
# src/lab_ingestion/config/__init__.py
# ============================================================================
"""
Convenient imports for all settings
"""

from .base_config import base_settings
from .ocr_config import ocr_settings
from .clinical_config import clinical_settings
from .hardware_config import hardware_settings
from .logging_config import logging_settings
