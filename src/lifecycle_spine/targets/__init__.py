"""Target objects and the catalog that holds their current state."""

from lifecycle_spine.targets.catalog import TargetCatalog
from lifecycle_spine.targets.models import TargetObject, make_target_id, split_target_id

__all__ = ["TargetCatalog", "TargetObject", "make_target_id", "split_target_id"]
