"""
Threshold resolution with per-contract overrides.

Every configurable threshold is a ThresholdConfig: a default plus optional
overrides keyed by contract type. Contract strings are normalized first so the
fleet is always split into OO and LOO; any other raw value (MCLOO, CPM, blank)
is treated as LOO.

Resolution never raises: a missing override falls back to the default.
"""

from typing import Optional, Union

from fleethealth.models.enums import ContractType
from fleethealth.models.schemas import ThresholdConfig


def normalize_contract(raw: Union[str, ContractType, None]) -> ContractType:
    """
    Normalize a raw contract type string.

    Args:
        raw: Contract type as found on a stub, load or roster row

    Returns:
        ContractType.OO for "OO" (case-insensitive), ContractType.LOO otherwise
    """
    if isinstance(raw, ContractType):
        return raw
    if raw is not None and str(raw).strip().upper() == ContractType.OO.value:
        return ContractType.OO
    return ContractType.LOO


def resolve_threshold(
    config: Optional[ThresholdConfig],
    contract_type: Union[str, ContractType, None],
) -> float:
    """
    Effective threshold for a contract type.

    Args:
        config: Threshold config; None resolves to 0.0
        contract_type: Raw or normalized contract type

    Returns:
        by_contract[normalized contract] when present, else default
    """
    if config is None:
        return 0.0
    contract = normalize_contract(contract_type)
    override = config.by_contract.get(contract.value)
    if override is not None:
        return override
    return config.default


__all__ = [
    'normalize_contract',
    'resolve_threshold',
]
