"""
Registry of the concrete risk modules.

Design intent:
- One RiskModule per module type tag; the tag set is fixed.
- Look modules up by tag; unknown tags raise KeyError for the caller to map.
"""

from healthrisk.modules import cancer, crc, demport, framingham, rais
from healthrisk.risk.pipeline import RiskModule

MODULES: dict[str, RiskModule] = {
    module.MODULE.module_type: module.MODULE for module in (framingham, demport, cancer, crc, rais)
}


def get_module(module_type: str) -> RiskModule:
    try:
        return MODULES[module_type]
    except KeyError:
        raise KeyError(f"Unknown module_type: {module_type}") from None


def list_modules() -> list[RiskModule]:
    return list(MODULES.values())


__all__ = ["MODULES", "get_module", "list_modules"]
