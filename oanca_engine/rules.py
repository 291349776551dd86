"""
Business-rule tables for the OANCA engine.

Everything here is static data loaded once at import: trim classification and
ladders, the known hard-work list, the American truck escalation list and the
heavy-duty floors.  Tables are read-only (``MappingProxyType`` over tuples).
"""
from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Tuple


# ---------------------------------------------------------------------------
# Platforms: (MAKE, MODEL) spellings -> ladder key
# ---------------------------------------------------------------------------
PLATFORMS: Mapping[Tuple[str, str], str] = MappingProxyType({
    ("TOYOTA", "LANDCRUISER"):             "TOYOTA:LANDCRUISER",
    ("TOYOTA", "LAND CRUISER"):            "TOYOTA:LANDCRUISER",
    ("TOYOTA", "LANDCRUISER 200"):         "TOYOTA:LANDCRUISER 200",
    ("TOYOTA", "LAND CRUISER 200"):        "TOYOTA:LANDCRUISER 200",
    ("TOYOTA", "LANDCRUISER 300"):         "TOYOTA:LANDCRUISER 300",
    ("TOYOTA", "LAND CRUISER 300"):        "TOYOTA:LANDCRUISER 300",
    ("TOYOTA", "PRADO"):                   "TOYOTA:PRADO",
    ("TOYOTA", "LANDCRUISER PRADO"):       "TOYOTA:PRADO",
    ("TOYOTA", "LAND CRUISER PRADO"):      "TOYOTA:PRADO",
    ("TOYOTA", "HILUX"):                   "TOYOTA:HILUX",
    ("TOYOTA", "HIACE"):                   "TOYOTA:HIACE",
    ("FORD", "RANGER"):                    "FORD:RANGER",
    ("FORD", "EVEREST"):                   "FORD:EVEREST",
    ("ISUZU", "D-MAX"):                    "ISUZU:D-MAX",
    ("ISUZU", "DMAX"):                     "ISUZU:D-MAX",
    ("ISUZU", "MU-X"):                     "ISUZU:MU-X",
    ("ISUZU", "MUX"):                      "ISUZU:MU-X",
    ("MITSUBISHI", "TRITON"):              "MITSUBISHI:TRITON",
    ("NISSAN", "NAVARA"):                  "NISSAN:NAVARA",
    ("NISSAN", "PATROL"):                  "NISSAN:PATROL",
})


# ---------------------------------------------------------------------------
# Trim classification: ordered (badge substrings, trim code) per platform.
# Order matters: "GXL" must be tested before "GX", "SR5" before "SR".
# ---------------------------------------------------------------------------
TRIM_CLASS_RULES: Mapping[str, Tuple[Tuple[Tuple[str, ...], str], ...]] = MappingProxyType({
    "TOYOTA:LANDCRUISER": (
        (("WORKMATE",), "LC70_BASE"),
        (("GXL",), "LC70_GXL"),
        (("GX",), "LC70_GX"),
        (("VX",), "LC70_VX"),
        (("SAHARA",), "LC70_SAHARA"),
        (("70TH",), "LC70_SPECIAL"),
    ),
    "TOYOTA:LANDCRUISER 200": (
        (("GXL",), "LC200_GXL"),
        (("GX",), "LC200_GX"),
        (("VX",), "LC200_VX"),
        (("SAHARA",), "LC200_SAHARA"),
    ),
    "TOYOTA:LANDCRUISER 300": (
        (("GXL",), "LC300_GXL"),
        (("GX",), "LC300_GX"),
        (("VX",), "LC300_VX"),
        (("SAHARA",), "LC300_SAHARA"),
    ),
    "TOYOTA:PRADO": (
        (("GXL",), "PRADO_GXL"),
        (("GX",), "PRADO_GX"),
        (("VX",), "PRADO_VX"),
        (("KAKADU",), "PRADO_KAKADU"),
    ),
    "TOYOTA:HILUX": (
        (("SR5",), "HILUX_SR5"),
        (("SR",), "HILUX_SR"),
        (("ROGUE",), "HILUX_ROGUE"),
        (("RUGGED",), "HILUX_RUGGED"),
        (("WORKMATE",), "HILUX_BASE"),
    ),
    "TOYOTA:HIACE": (
        (("COMMUTER",), "HIACE_COMMUTER"),
        (("SLWB",), "HIACE_SLWB"),
        (("LWB",), "HIACE_LWB"),
    ),
    "FORD:RANGER": (
        (("RAPTOR",), "RANGER_RAPTOR"),
        (("WILDTRAK",), "RANGER_WILDTRAK"),
        (("XLT",), "RANGER_XLT"),
        (("XLS",), "RANGER_XLS"),
        (("XL",), "RANGER_XL"),
    ),
    "FORD:EVEREST": (
        (("TITANIUM",), "EVEREST_TITANIUM"),
        (("TREND",), "EVEREST_TREND"),
        (("AMBIENTE",), "EVEREST_AMBIENTE"),
    ),
    "ISUZU:D-MAX": (
        (("X-TERRAIN", "XTERRAIN"), "DMAX_XTERRAIN"),
        (("LS-U", "LSU"), "DMAX_LSU"),
        (("LS-M", "LSM"), "DMAX_LSM"),
        (("SX",), "DMAX_SX"),
    ),
    "ISUZU:MU-X": (
        (("LS-T", "LST"), "MUX_LST"),
        (("LS-U", "LSU"), "MUX_LSU"),
        (("LS-M", "LSM"), "MUX_LSM"),
    ),
    "MITSUBISHI:TRITON": (
        (("GLS",), "TRITON_GLS"),
        (("GLX+", "GLX PLUS"), "TRITON_GLXPLUS"),
        (("GLX",), "TRITON_GLX"),
    ),
    "NISSAN:NAVARA": (
        (("PRO-4X", "PRO4X"), "NAVARA_PRO4X"),
        (("ST-X", "STX"), "NAVARA_STX"),
        (("ST-L", "STL"), "NAVARA_STL"),
        (("ST",), "NAVARA_ST"),
        (("SL",), "NAVARA_SL"),
    ),
    "NISSAN:PATROL": (
        (("TI-L", "TIL"), "PATROL_TIL"),
        (("TI",), "PATROL_TI"),
    ),
})


# ---------------------------------------------------------------------------
# Trim ladder: rank 1 is the base trim.
# ---------------------------------------------------------------------------
def _ladder(*codes: str) -> Mapping[str, int]:
    return MappingProxyType({code: rank for rank, code in enumerate(codes, 1)})


TRIM_LADDER: Mapping[str, Mapping[str, int]] = MappingProxyType({
    "TOYOTA:LANDCRUISER": _ladder(
        "LC70_BASE", "LC70_GX", "LC70_GXL", "LC70_VX", "LC70_SAHARA", "LC70_SPECIAL",
    ),
    "TOYOTA:LANDCRUISER 200": _ladder("LC200_GX", "LC200_GXL", "LC200_VX", "LC200_SAHARA"),
    "TOYOTA:LANDCRUISER 300": _ladder("LC300_GX", "LC300_GXL", "LC300_VX", "LC300_SAHARA"),
    "TOYOTA:PRADO": _ladder("PRADO_GX", "PRADO_GXL", "PRADO_VX", "PRADO_KAKADU"),
    "TOYOTA:HILUX": _ladder(
        "HILUX_BASE", "HILUX_SR", "HILUX_SR5", "HILUX_ROGUE", "HILUX_RUGGED",
    ),
    "TOYOTA:HIACE": _ladder("HIACE_LWB", "HIACE_SLWB", "HIACE_COMMUTER"),
    "FORD:RANGER": _ladder(
        "RANGER_XL", "RANGER_XLS", "RANGER_XLT", "RANGER_WILDTRAK", "RANGER_RAPTOR",
    ),
    "FORD:EVEREST": _ladder("EVEREST_AMBIENTE", "EVEREST_TREND", "EVEREST_TITANIUM"),
    "ISUZU:D-MAX": _ladder("DMAX_SX", "DMAX_LSM", "DMAX_LSU", "DMAX_XTERRAIN"),
    "ISUZU:MU-X": _ladder("MUX_LSM", "MUX_LSU", "MUX_LST"),
    "MITSUBISHI:TRITON": _ladder("TRITON_GLX", "TRITON_GLXPLUS", "TRITON_GLS"),
    "NISSAN:NAVARA": _ladder(
        "NAVARA_SL", "NAVARA_ST", "NAVARA_STL", "NAVARA_STX", "NAVARA_PRO4X",
    ),
    "NISSAN:PATROL": _ladder("PATROL_TI", "PATROL_TIL"),
})


# ---------------------------------------------------------------------------
# Known hard-work vehicles.  Forces fast/average demand down to hard_work.
# ---------------------------------------------------------------------------
KNOWN_HARD_WORK: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "holden": ("cruze", "captiva"),
    "peugeot": ("208", "308", "3008", "2008", "508", "5008"),
    "citroen": ("c3", "c4", "c5", "ds3", "ds4", "ds5"),
    "renault": ("megane", "clio", "captur", "koleos", "scenic"),
    "fiat": ("500", "punto", "tipo", "500x"),
    "alfa romeo": ("giulietta", "mito", "159", "giulia"),
    "volkswagen": ("golf", "polo", "jetta", "beetle"),
    "audi": ("a1", "a3"),
    "bmw": ("1 series", "118i", "120i", "125i", "3 series", "318i", "320i"),
    "mercedes": ("a-class", "a180", "a200", "a250", "b-class", "cla"),
    "mini": ("cooper", "one", "countryman", "clubman"),
})


# ---------------------------------------------------------------------------
# High-value American trucks: thin data on late models forces escalation.
# ---------------------------------------------------------------------------
HIGH_VALUE_TRUCKS: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "chevrolet": ("silverado",),
    "gmc": ("sierra",),
    "ram": ("1500", "2500", "3500", "trx"),
    "dodge": ("ram",),
    "ford": ("f-150", "f150", "f-250", "f250", "f-350", "f350"),
    "toyota": ("tundra",),
})

FORCED_ESCALATION_MIN_YEAR: int = 2018
FORCED_ESCALATION_MIN_COMPS: int = 3


# ---------------------------------------------------------------------------
# Heavy-duty floors (AUD).  A computed buy_high under the floor is not real
# money for these trucks and is escalated instead of quoted.
# Model keys are compared with punctuation and spaces stripped.
# ---------------------------------------------------------------------------
HEAVY_DUTY_FLOORS: Tuple[Tuple[str, str, int], ...] = (
    ("chevrolet", "silverado2500", 90000),
    ("chevrolet", "silverado3500", 100000),
    ("gmc", "sierra2500", 90000),
    ("gmc", "sierra3500", 100000),
    ("ram", "2500", 85000),
    ("ram", "3500", 95000),
    ("dodge", "ram2500", 85000),
    ("dodge", "ram3500", 95000),
    ("ford", "f250", 85000),
    ("ford", "f350", 95000),
)
HEAVY_DUTY_MIN_YEAR: int = 2018


# ---------------------------------------------------------------------------
# Variant families (deterministic badge extraction, no fuzzy matching)
# ---------------------------------------------------------------------------
VARIANT_FAMILIES: Mapping[str, Mapping[str, Tuple[str, ...]]] = MappingProxyType({
    "toyota": MappingProxyType({
        "landcruiser": ("GX", "GXL", "VX", "SAHARA", "KAKADU"),
        "prado": ("GX", "GXL", "VX", "KAKADU", "ALTITUDE", "INVINCIBLE"),
        "hilux": ("WORKMATE", "SR", "SR5", "ROGUE", "RUGGED", "RUGGED X", "RUGGED-X"),
        "corolla": ("ASCENT", "ASCENT SPORT", "SX", "ZR", "HYBRID", "GR", "CROSS"),
        "camry": ("ASCENT", "ASCENT SPORT", "SX", "SL", "HYBRID", "ATARA"),
        "rav4": ("GX", "GXL", "CRUISER", "EDGE", "HYBRID"),
        "kluger": ("GX", "GXL", "GRANDE", "HYBRID"),
    }),
    "ford": MappingProxyType({
        "ranger": ("XL", "XLS", "XLT", "WILDTRAK", "RAPTOR", "SPORT", "FX4"),
        "everest": ("AMBIENTE", "TREND", "SPORT", "TITANIUM", "PLATINUM", "WILDTRAK"),
        "falcon": ("XT", "XR6", "XR8", "G6", "G6E", "FPV"),
    }),
    "isuzu": MappingProxyType({
        "d-max": ("SX", "LS-M", "LS-U", "X-TERRAIN", "LS", "EX"),
        "mu-x": ("LS-M", "LS-U", "LS-T", "LS"),
    }),
    "mitsubishi": MappingProxyType({
        "triton": ("GLX", "GLX+", "GLS", "GSR", "EXCEED", "BLACKLINE"),
        "outlander": ("ES", "LS", "EXCEED", "ASPIRE", "GSR", "PHEV"),
    }),
    "nissan": MappingProxyType({
        "navara": ("SL", "ST", "ST-X", "PRO-4X", "N-TREK", "WARRIOR"),
        "patrol": ("TI", "TI-L", "WARRIOR"),
        "x-trail": ("ST", "ST-L", "TI", "TI-L", "N-TREK"),
    }),
    "holden": MappingProxyType({
        "colorado": ("LS", "LT", "LTZ", "Z71", "STORM"),
        "commodore": ("EVOKE", "SV6", "SS", "SSV", "VXR", "CALAIS"),
        "cruze": ("CD", "CDX", "EQUIPE", "SRI", "SRI-V", "Z-SERIES"),
    }),
    "chevrolet": MappingProxyType({
        "silverado": ("LT", "LTZ", "TRAIL BOSS", "HIGH COUNTRY", "CUSTOM"),
    }),
    "ram": MappingProxyType({
        "1500": ("EXPRESS", "WARLOCK", "LARAMIE", "REBEL", "LIMITED", "TRX"),
        "2500": ("LARAMIE", "POWER WAGON", "LIMITED"),
        "3500": ("LARAMIE", "LIMITED"),
    }),
})

GENERIC_VARIANT_FAMILIES: Tuple[str, ...] = (
    "ASCENT SPORT", "RUGGED X", "RUGGED-X",
    "SR5", "GXL", "GX", "VX", "SAHARA", "KAKADU", "ROGUE", "RUGGED", "WORKMATE",
    "WILDTRAK", "RAPTOR", "XLT", "XLS", "XL", "TITANIUM", "PLATINUM", "AMBIENTE", "TREND",
    "X-TERRAIN", "LS-U", "LS-M", "LS-T",
    "LTZ", "LT", "Z71", "ZR2", "STORM",
    "ST-X", "PRO-4X", "N-TREK", "WARRIOR", "ST-L", "TI-L",
    "HIGHLANDER", "GT-LINE", "N-LINE", "ELITE", "ACTIVE",
    "LARAMIE", "HIGH COUNTRY",
    "GT", "GR", "RS", "SS", "SSV", "SV6", "XR6", "XR8",
    "SPORT", "PREMIUM", "LUXURY", "EXECUTIVE",
)
