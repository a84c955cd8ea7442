"""Tasks run by :class:`~nsxt_infra.ensurer.NSXTInfraEnsurer`."""

from typing import List

from .advanced import (  # noqa: F401
    AdvancedDHCPIPPoolTask,
    AdvancedDHCPPortTask,
    AdvancedDHCPProfileTask,
    AdvancedDHCPServerTask,
)
from .base import (  # noqa: F401
    Action,
    CommonTagRecovery,
    PolicyTagRecovery,
    RecoveryStrategy,
    Task,
)
from .lookup import (  # noqa: F401
    AdvancedLookupLogicalSwitchTask,
    LookupEdgeClusterTask,
    LookupSNATIPPoolTask,
    LookupTier0GatewayTask,
    LookupTransportZoneTask,
)
from .policy import (  # noqa: F401
    SegmentTask,
    SNATIPAddressAllocationTask,
    SNATIPAddressRealizationTask,
    SNATRuleTask,
    Tier1GatewayLocaleServiceTask,
    Tier1GatewayTask,
)


def default_tasks() -> List[Task]:
    """Return the task list in creation order.

    Every task may only depend on references recorded by tasks before it.
    """

    return [
        LookupTier0GatewayTask(),
        LookupTransportZoneTask(),
        LookupEdgeClusterTask(),
        LookupSNATIPPoolTask(),
        Tier1GatewayTask(),
        Tier1GatewayLocaleServiceTask(),
        SegmentTask(),
        SNATIPAddressAllocationTask(),
        SNATIPAddressRealizationTask(),
        SNATRuleTask(),
        AdvancedLookupLogicalSwitchTask(),
        AdvancedDHCPProfileTask(),
        AdvancedDHCPServerTask(),
        AdvancedDHCPPortTask(),
        AdvancedDHCPIPPoolTask(),
    ]


__all__ = [
    "Action",
    "CommonTagRecovery",
    "PolicyTagRecovery",
    "RecoveryStrategy",
    "Task",
    "default_tasks",
]
