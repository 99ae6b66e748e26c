"""Pydantic models for lifecycle policy YAML files.

Policy files let operators keep rule definitions under version control and
register them through the CLI. Documents are validated for shape here; the
structural rules (category/action, required parameters, selector, priority)
are enforced by the registry when the resulting :class:`Policy` is registered.

Usage::

    from lifecycle_spine.policy.loader import load_policy_file

    for policy in load_policy_file("policies/sales.yaml"):
        registry.register(policy, actor="ops")

Example YAML::

    apiVersion: lifecycle.spine.io/v1
    kind: LifecyclePolicy
    metadata:
      name: compress-90d
      description: Compress sales partitions after one quarter
    spec:
      selector: dw.sales
      category: COMPRESSION
      action: COMPRESS
      priority: 100
      conditions:
        age_days: 90
      parameters:
        compression_profile: HIGH
        refresh_statistics: true

A file may hold several documents separated by ``---``.

Tags:
    policy, yaml, declarative, pydantic, lifecycle-spine
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from lifecycle_spine.core.errors import PolicyFileError
from lifecycle_spine.policy.models import (
    ActionParameters,
    ActionType,
    ConditionSet,
    Policy,
    PolicyCategory,
)
from lifecycle_spine.tracking.models import Temperature


class PolicyMetadataSpec(BaseModel):
    """Metadata section of a policy document."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, description="Unique policy name")
    description: str | None = Field(default=None, description="Human-readable description")


class ConditionSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    age_days: int | None = None
    age_months: int | None = None
    size_threshold_mb: float | None = None
    temperature: Temperature | None = None
    predicate: dict[str, Any] | None = Field(default=None, description="Constrained predicate tree")


class ParameterSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    compression_profile: str | None = None
    destination_tier: str | None = None
    parallel_degree: int | None = None
    rebuild_secondary_structures: bool = False
    refresh_statistics: bool = False
    custom_action: str | None = None


class PolicySpecSection(BaseModel):
    """The ``spec`` section of a policy document."""

    model_config = ConfigDict(extra="forbid")

    selector: str = Field(..., min_length=1, description="Target selector (glob, re:, tag:)")
    category: PolicyCategory
    action: ActionType
    priority: int = Field(default=100, description="Lower runs first")
    enabled: bool = True
    threshold_profile: str | None = None
    conditions: ConditionSpec = Field(default_factory=ConditionSpec)
    parameters: ParameterSpec = Field(default_factory=ParameterSpec)


class PolicyDocument(BaseModel):
    """Root model of a lifecycle policy document."""

    model_config = ConfigDict(extra="forbid")

    apiVersion: Literal["lifecycle.spine.io/v1"] = "lifecycle.spine.io/v1"
    kind: Literal["LifecyclePolicy"] = "LifecyclePolicy"
    metadata: PolicyMetadataSpec
    spec: PolicySpecSection

    def to_policy(self) -> Policy:
        """Convert the validated document to a :class:`Policy`."""
        return Policy(
            name=self.metadata.name,
            description=self.metadata.description,
            selector=self.spec.selector,
            category=self.spec.category,
            action_type=self.spec.action,
            priority=self.spec.priority,
            enabled=self.spec.enabled,
            threshold_profile=self.spec.threshold_profile,
            conditions=ConditionSet(**self.spec.conditions.model_dump()),
            parameters=ActionParameters(**self.spec.parameters.model_dump()),
        )

    @classmethod
    def from_policy(cls, policy: Policy) -> PolicyDocument:
        return cls(
            metadata=PolicyMetadataSpec(name=policy.name, description=policy.description),
            spec=PolicySpecSection(
                selector=policy.selector,
                category=policy.category,
                action=policy.action_type,
                priority=policy.priority,
                enabled=policy.enabled,
                threshold_profile=policy.threshold_profile,
                conditions=ConditionSpec(**policy.conditions.to_dict()),
                parameters=ParameterSpec(**policy.parameters.to_dict()),
            ),
        )

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.model_dump(mode="json", exclude_none=True), sort_keys=False)


def parse_policies(content: str, source: str = "<string>") -> list[Policy]:
    """Parse every policy document in a YAML string.

    Raises:
        PolicyFileError: Invalid YAML, or a document that does not match the schema
    """
    try:
        documents = [d for d in yaml.safe_load_all(content) if d is not None]
    except yaml.YAMLError as e:
        raise PolicyFileError(f"Invalid YAML in {source}: {e}", cause=e) from e

    if not documents:
        raise PolicyFileError(f"No policy documents in {source}")

    policies = []
    for index, data in enumerate(documents):
        try:
            policies.append(PolicyDocument.model_validate(data).to_policy())
        except PydanticValidationError as e:
            raise PolicyFileError(
                f"Document {index} in {source} does not match the policy schema: {e}", cause=e
            ).with_context(document=index, source=source) from e
    return policies


def load_policy_file(path: str | Path) -> list[Policy]:
    """Load and validate a YAML policy file."""
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise PolicyFileError(f"Cannot read policy file {path}: {e}", cause=e) from e
    return parse_policies(content, source=str(path))


__all__ = [
    "PolicyDocument",
    "PolicySpecSection",
    "load_policy_file",
    "parse_policies",
]
