"""
lifecycle-spine - policy-driven lifecycle orchestration for partitioned data.

Operators declare policies (compress after 90 days, archive cold partitions,
drop after seven years); the evaluation engine records one explained decision
per (policy, target) pair in the action queue, and the execution engine
drains eligible entries inside a schedule window through a storage driver.

Quick start::

    from lifecycle_spine import LifecycleService, LifecycleSettings
    from lifecycle_spine.core.connection import create_connection

    service = LifecycleService(create_connection("lifecycle.db"), LifecycleSettings())
    service.evaluate()
    service.execute(max_operations=10)
"""

from lifecycle_spine.core.errors import LifecycleError, ValidationError, ValidationErrorKind
from lifecycle_spine.core.settings import LifecycleSettings
from lifecycle_spine.policy.models import ActionParameters, ActionType, ConditionSet, Policy, PolicyCategory
from lifecycle_spine.service import LifecycleService
from lifecycle_spine.targets.models import TargetObject

__version__ = "0.1.0"

__all__ = [
    "ActionParameters",
    "ActionType",
    "ConditionSet",
    "LifecycleError",
    "LifecycleService",
    "LifecycleSettings",
    "Policy",
    "PolicyCategory",
    "TargetObject",
    "ValidationError",
    "ValidationErrorKind",
    "__version__",
]
