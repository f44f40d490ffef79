"""
Waste material catalogue and conversion constants.

NZ waste stream defaults used for tonnage and diversion calculations.
Keys must match the exact stream labels used across plans, forecast
items and facility accepted_streams.
"""

# =============================================================================
# UNITS
# =============================================================================

UNIT_TONNE = "t"
UNIT_KG = "kg"
UNIT_M3 = "m3"
UNIT_M2 = "m2"
UNIT_LITRE = "L"
UNIT_METRE = "m"

# Accepted spellings -> canonical unit
UNIT_ALIASES = {
    "t": UNIT_TONNE,
    "tonne": UNIT_TONNE,
    "tonnes": UNIT_TONNE,
    "ton": UNIT_TONNE,
    "kg": UNIT_KG,
    "kgs": UNIT_KG,
    "m3": UNIT_M3,
    "m³": UNIT_M3,
    "cubic metres": UNIT_M3,
    "m2": UNIT_M2,
    "m²": UNIT_M2,
    "square metres": UNIT_M2,
    "l": UNIT_LITRE,
    "litre": UNIT_LITRE,
    "litres": UNIT_LITRE,
    "liter": UNIT_LITRE,
    "liters": UNIT_LITRE,
    "m": UNIT_METRE,
    "metre": UNIT_METRE,
    "metres": UNIT_METRE,
}

# Used when neither the plan/item nor the catalogue knows the density.
# Thickness has no global fallback.
DEFAULT_DENSITY_KG_M3 = 1000.0


# =============================================================================
# STREAM DEFAULTS
# =============================================================================
# (density kg/m³, default unit, default thickness m for area units)

STREAM_DEFAULTS = {
    "Mixed C&D": (1200, UNIT_M3, None),
    "Timber (treated)": (178, UNIT_M3, None),
    "Metals": (63, UNIT_M3, None),
    "Cardboard": (38, UNIT_M3, None),
    "Hard plastics": (72, UNIT_M3, None),
    "E-waste (cables/lighting/appliances)": (300, UNIT_M3, None),
    "Ceiling tiles": (150, UNIT_M2, 0.015),
    "Insulation": (100, UNIT_M3, None),
    "Asphalt / roading material": (1500, UNIT_M3, None),
    "Concrete (unreinforced)": (900, UNIT_M3, None),
    "Roofing materials": (120, UNIT_M2, 0.01),
    "Hazardous waste (general)": (225, UNIT_M3, None),
    "Cleanfill soil": (1500, UNIT_M3, None),
    "PVC pipes / services": (140, UNIT_M3, None),
    "Timber (untreated)": (178, UNIT_M3, None),
    "Plasterboard / GIB": (238, UNIT_M3, None),
    "Concrete / masonry": (1048, UNIT_M3, None),
    "Soft plastics (wrap/strapping)": (72, UNIT_M3, None),
    "Glass": (411, UNIT_M3, None),
    "Paints/adhesives/chemicals": (1000, UNIT_LITRE, None),
    "Carpet / carpet tiles": (200, UNIT_M2, 0.01),
    "Soil / spoil (cleanfill if verified)": (1500, UNIT_M3, None),
    "Concrete (reinforced)": (1048, UNIT_M3, None),
    "Masonry / bricks": (1500, UNIT_M3, None),
    "Green waste / vegetation": (225, UNIT_M3, None),
    "Contaminated soil": (1500, UNIT_M3, None),
    "Packaging (mixed)": (38, UNIT_M3, None),
    "HDPE pipes / services": (100, UNIT_M3, None),
}

MIXED_CD_KEY = "Mixed C&D"


# =============================================================================
# MATERIAL TYPE -> STREAM ALLOCATION
# =============================================================================
# Material classification of a purchased item -> preferred streams, in order.
# First one that exists in the project wins.

MATERIAL_TYPE_TO_STREAM_KEYS = {
    "Mixed C&D": [MIXED_CD_KEY],
    "Timber": ["Timber (untreated)", "Timber (treated)"],
    "Concrete / masonry": [
        "Concrete / masonry",
        "Concrete (reinforced)",
        "Concrete (unreinforced)",
        "Masonry / bricks",
    ],
    "Metals": ["Metals"],
    "Plasterboard / GIB": ["Plasterboard / GIB"],
    "Cardboard": ["Cardboard"],
    "Plastics": [
        "Soft plastics (wrap/strapping)",
        "Hard plastics",
        "Packaging (mixed)",
        "PVC pipes / services",
        "HDPE pipes / services",
    ],
    "Glass": ["Glass"],
    "Green waste": ["Green waste / vegetation"],
    "Soil / spoil": [
        "Soil / spoil (cleanfill if verified)",
        "Cleanfill soil",
        "Contaminated soil",
    ],
    "Hazardous": ["Hazardous waste (general)", "Paints/adhesives/chemicals"],
    "Other": [MIXED_CD_KEY],
}


# =============================================================================
# INTENDED OUTCOMES
# =============================================================================

OUTCOME_REDUCE = "Reduce"
OUTCOME_REUSE = "Reuse"
OUTCOME_RECYCLE = "Recycle"
OUTCOME_RECOVER = "Recover"
OUTCOME_CLEANFILL = "Cleanfill"
OUTCOME_LANDFILL = "Landfill"

INTENDED_OUTCOMES = (
    OUTCOME_REDUCE,
    OUTCOME_REUSE,
    OUTCOME_RECYCLE,
    OUTCOME_RECOVER,
    OUTCOME_CLEANFILL,
    OUTCOME_LANDFILL,
)

# Older outcome names -> current vocabulary
LEGACY_OUTCOMES = {
    "Dispose": OUTCOME_LANDFILL,
    "Clean fill": OUTCOME_CLEANFILL,
}

# Outcomes counted as diversion (first intended outcome only)
DIVERSION_OUTCOMES = frozenset({OUTCOME_REUSE, OUTCOME_RECYCLE})

# Diversion plus inert fill
LANDFILL_AVOIDANCE_OUTCOMES = frozenset({OUTCOME_REUSE, OUTCOME_RECYCLE, OUTCOME_CLEANFILL})

# Keyword rules for a new stream's default outcomes, checked in order
# against the lowercased label. Falls through to Recycle.
DEFAULT_OUTCOME_RULES = [
    (("metal",), [OUTCOME_RECYCLE]),
    (("cardboard",), [OUTCOME_RECYCLE]),
    (("timber", "untreated"), [OUTCOME_REUSE, OUTCOME_RECYCLE]),
    (("timber", "treated"), [OUTCOME_RECOVER]),
    (("concrete",), [OUTCOME_RECYCLE, OUTCOME_RECOVER]),
    (("masonry",), [OUTCOME_RECYCLE, OUTCOME_RECOVER]),
    (("brick",), [OUTCOME_RECYCLE, OUTCOME_RECOVER]),
    (("asphalt",), [OUTCOME_RECYCLE, OUTCOME_RECOVER]),
    (("roading",), [OUTCOME_RECYCLE, OUTCOME_RECOVER]),
    (("soil",), [OUTCOME_CLEANFILL]),
    (("cleanfill",), [OUTCOME_CLEANFILL]),
    (("soft plastic",), [OUTCOME_RECYCLE]),
    (("wrap",), [OUTCOME_RECYCLE]),
    (("strapping",), [OUTCOME_RECYCLE]),
    (("mixed c&d",), [OUTCOME_RECOVER, OUTCOME_LANDFILL]),
    (("mixed c & d",), [OUTCOME_RECOVER, OUTCOME_LANDFILL]),
]

DEFAULT_OUTCOMES = [OUTCOME_RECYCLE]
