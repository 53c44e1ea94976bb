# ============================================================================
# src/lab_ingestion/constants/parameter_specs.py
# ============================================================================
"""
Parameter Definitions
- One entry per recognized blood parameter
- Patterns are tried in order against the whole text; first numeric match wins
- Exactly one canonical unit and reference range per parameter
- Cell counts are normalized to thousands per microliter
"""

from typing import Dict

from ..config.clinical_config import clinical_settings
from ..core.models.parameter import (
    CriticalPolicy,
    ParameterDefinition,
    StatusGuidance,
    compile_patterns,
)
from ..processors.status_classifier import DEFAULT_CRITICAL_POLICY

# Number with optional thousands separators ("250,000") or decimals ("13.2")
VALUE = r"(\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)"

# Label/value separator as it appears in OCR output ("Hb: 13.2", "Hb = 13.2", "Hb 13.2")
SEP = r"(?:\s*\([^)\n]{0,20}\))?[:=\s]+"

# Rejects a glucose value reported in mmol/L, including backtracked decimals ("5.5 mmol/L")
NOT_MMOL = r"(?![\d.,]*\s*mmol)"

# Open-ended ranges carry no critical tier
NO_CRITICAL_POLICY = CriticalPolicy(low_factor=None, high_factor=None)

PARAMETER_DEFINITIONS: Dict[str, ParameterDefinition] = {
    "hemoglobin": ParameterDefinition(
        name="hemoglobin",
        label="Hemoglobin",
        patterns=compile_patterns(
            rf"ha?emoglobin{SEP}{VALUE}\s*g/?dl",
            rf"\bhgb{SEP}{VALUE}\s*g/?dl",
            rf"\bhb{SEP}{VALUE}\s*g/?dl",
            rf"ha?emoglobin{SEP}{VALUE}",
            rf"\bhgb{SEP}{VALUE}",
        ),
        unit="g/dL",
        reference_range="12.0-15.5",
        critical_policy=DEFAULT_CRITICAL_POLICY,
        guidance={
            "low": StatusGuidance(
                insight="Hemoglobin is below the reference range, which can indicate anemia.",
                recommendation="Include iron-rich foods such as spinach, lentils and red meat, "
                               "and take vitamin C with meals; consult your doctor before supplements.",
            ),
            "high": StatusGuidance(
                insight="Hemoglobin is above the reference range.",
                recommendation="Reduce iron supplements if taking any, stay hydrated and "
                               "check for underlying conditions with your doctor.",
            ),
        },
    ),
    "wbc": ParameterDefinition(
        name="wbc",
        label="White Blood Cells",
        patterns=compile_patterns(
            rf"white\s+blood\s+cells?(?:\s+count)?{SEP}{VALUE}",
            rf"\bwbc(?:\s+count)?{SEP}{VALUE}",
            rf"\btlc{SEP}{VALUE}",
            rf"leu[ck]ocytes?(?:\s+count)?{SEP}{VALUE}",
        ),
        unit="K/µL",
        reference_range="4.5-11.0",
        critical_policy=DEFAULT_CRITICAL_POLICY,
        count_scale_threshold=1000,
        guidance={
            "low": StatusGuidance(
                insight="White blood cell count is low, which can weaken immune defence.",
                recommendation="Prioritize sleep, manage stress and avoid exposure to infections "
                               "where possible.",
            ),
            "high": StatusGuidance(
                insight="White blood cell count is high, often a sign of infection or inflammation.",
                recommendation="Follow up with your doctor and monitor for fever or fatigue.",
            ),
        },
    ),
    "platelets": ParameterDefinition(
        name="platelets",
        label="Platelets",
        patterns=compile_patterns(
            rf"platelets?(?:\s+count)?{SEP}{VALUE}",
            rf"\bplt{SEP}{VALUE}",
            rf"thrombocytes?{SEP}{VALUE}",
        ),
        unit="K/µL",
        reference_range="150-450",
        critical_policy=DEFAULT_CRITICAL_POLICY,
        count_scale_threshold=1000,
        guidance={
            "low": StatusGuidance(
                insight="Platelet count is low, which can increase bleeding risk.",
                recommendation="Avoid blood-thinning medication unless prescribed and discuss "
                               "the result with your doctor.",
            ),
            "high": StatusGuidance(
                insight="Platelet count is high.",
                recommendation="Repeat the test and check for inflammation or iron deficiency "
                               "with your doctor.",
            ),
        },
    ),
    "glucose": ParameterDefinition(
        name="glucose",
        label="Glucose",
        patterns=compile_patterns(
            rf"(?:fasting\s+|random\s+|blood\s+)?(?:plasma\s+)?glucose{SEP}{VALUE}\s*mg/?dl",
            rf"\bfbs{SEP}{VALUE}{NOT_MMOL}",
            rf"(?:fasting\s+|random\s+|blood\s+)?(?:plasma\s+)?glucose{SEP}{VALUE}{NOT_MMOL}",
        ),
        unit="mg/dL",
        reference_range="70-100",
        critical_policy=DEFAULT_CRITICAL_POLICY,
        guidance={
            "low": StatusGuidance(
                insight="Blood glucose is below the reference range.",
                recommendation="Eat regular, balanced meals with complex carbohydrates and avoid "
                               "skipping meals.",
            ),
            "high": StatusGuidance(
                insight="Blood glucose is above the reference range.",
                recommendation="Reduce refined carbs and sugary foods, increase fibre, exercise "
                               "daily and check HbA1c with your doctor.",
            ),
        },
    ),
    "cholesterol": ParameterDefinition(
        name="cholesterol",
        label="Total Cholesterol",
        patterns=compile_patterns(
            rf"total\s+cholesterol{SEP}{VALUE}",
            rf"cholesterol,?\s*total{SEP}{VALUE}",
            rf"(?<![hl]dl[\s-])\bcholesterol{SEP}{VALUE}",
            rf"(?<![hl]dl[\s-])\bchol{SEP}{VALUE}",
        ),
        unit="mg/dL",
        reference_range="<200",
        critical_policy=NO_CRITICAL_POLICY,
        guidance={
            "high": StatusGuidance(
                insight="Total cholesterol is above the desirable level.",
                recommendation="Adopt a heart-healthy diet, add omega-3 sources and aim for "
                               "150 minutes of cardio per week.",
            ),
        },
    ),
    "triglycerides": ParameterDefinition(
        name="triglycerides",
        label="Triglycerides",
        patterns=compile_patterns(
            rf"triglycerides?{SEP}{VALUE}",
            rf"\btrigs?{SEP}{VALUE}",
            rf"\btg{SEP}{VALUE}",
        ),
        unit="mg/dL",
        reference_range="<150",
        critical_policy=NO_CRITICAL_POLICY,
        guidance={
            "high": StatusGuidance(
                insight="Triglycerides are above the desirable level.",
                recommendation="Reduce simple carbohydrates and alcohol and increase physical "
                               "activity.",
            ),
        },
    ),
    "hdl": ParameterDefinition(
        name="hdl",
        label="HDL Cholesterol",
        patterns=compile_patterns(
            rf"\bhdl(?:[\s-]*cholesterol|[\s-]*chol)?{SEP}{VALUE}",
        ),
        unit="mg/dL",
        reference_range=">40",
        critical_policy=NO_CRITICAL_POLICY,
        guidance={
            "low": StatusGuidance(
                insight="HDL (protective) cholesterol is low.",
                recommendation="Regular aerobic exercise and healthy fats such as olive oil and "
                               "nuts help raise HDL.",
            ),
        },
    ),
    "ldl": ParameterDefinition(
        name="ldl",
        label="LDL Cholesterol",
        patterns=compile_patterns(
            rf"\bldl(?:[\s-]*cholesterol|[\s-]*chol)?{SEP}{VALUE}",
        ),
        unit="mg/dL",
        reference_range="<100",
        critical_policy=NO_CRITICAL_POLICY,
        guidance={
            "high": StatusGuidance(
                insight="LDL cholesterol is above the optimal level.",
                recommendation="Limit saturated and trans fats and discuss lipid-lowering "
                               "therapy with your doctor.",
            ),
        },
    ),
    "creatinine": ParameterDefinition(
        name="creatinine",
        label="Creatinine",
        patterns=compile_patterns(
            rf"(?:serum\s+)?creatinine{SEP}{VALUE}",
            rf"\bcreat{SEP}{VALUE}",
        ),
        unit="mg/dL",
        reference_range="0.6-1.2",
        # Low creatinine is not treated as critical
        critical_policy=CriticalPolicy(
            low_factor=None,
            high_factor=clinical_settings.CRITICAL_HIGH_FACTOR,
        ),
        guidance={
            "high": StatusGuidance(
                insight="Creatinine is elevated, which can point to reduced kidney function.",
                recommendation="Stay hydrated, avoid NSAIDs and have kidney function reviewed.",
            ),
        },
    ),
    "bun": ParameterDefinition(
        name="bun",
        label="Blood Urea Nitrogen",
        patterns=compile_patterns(
            rf"blood\s+urea\s+nitrogen{SEP}{VALUE}",
            rf"\bbun{SEP}{VALUE}",
            rf"\burea{SEP}{VALUE}",
        ),
        unit="mg/dL",
        reference_range="7-20",
        critical_policy=DEFAULT_CRITICAL_POLICY,
        guidance={
            "high": StatusGuidance(
                insight="Blood urea nitrogen is elevated.",
                recommendation="Check hydration and protein intake and review kidney function "
                               "with your doctor.",
            ),
        },
    ),
}


def get_definition(name: str) -> ParameterDefinition:
    """Look up a parameter definition by name (KeyError if unknown)."""
    return PARAMETER_DEFINITIONS[name]
