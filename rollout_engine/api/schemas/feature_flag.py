from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from rollout_engine.core.models import FeatureFlag, FlagVariant, TargetingRule


class TargetingRuleModel(BaseModel):
    percentage: Optional[float] = Field(default=None, ge=0, le=100)
    user_ids: List[str] = Field(default_factory=list)
    user_groups: List[str] = Field(default_factory=list)
    countries: List[str] = Field(default_factory=list)
    platforms: List[str] = Field(default_factory=list)

    def to_domain(self) -> TargetingRule:
        return TargetingRule(**self.model_dump())


class FlagVariantModel(BaseModel):
    name: str = Field(..., min_length=1)
    percentage: float = Field(..., ge=0, le=100)
    config: Any = None

    def to_domain(self) -> FlagVariant:
        return FlagVariant(**self.model_dump())


class FeatureFlagCreateRequest(BaseModel):
    """Create feature flag request."""
    key: str = Field(..., min_length=1, max_length=255)
    name: str = ""
    description: str = ""
    enabled: bool = False
    targeting: TargetingRuleModel = Field(default_factory=TargetingRuleModel)
    variants: List[FlagVariantModel] = Field(default_factory=list)
    expires_at: Optional[datetime] = None

    def to_domain(self) -> FeatureFlag:
        return FeatureFlag(
            key=self.key,
            name=self.name or self.key,
            description=self.description,
            enabled=self.enabled,
            targeting=self.targeting.to_domain(),
            variants=[v.to_domain() for v in self.variants],
            expires_at=self.expires_at,
        )


class FeatureFlagUpdateRequest(BaseModel):
    """Partial update; only fields that were sent are applied."""
    key: Optional[str] = Field(default=None, min_length=1, max_length=255)
    name: Optional[str] = None
    description: Optional[str] = None
    enabled: Optional[bool] = None
    targeting: Optional[TargetingRuleModel] = None
    variants: Optional[List[FlagVariantModel]] = None
    expires_at: Optional[datetime] = None

    def to_changes(self) -> Dict[str, Any]:
        changes: Dict[str, Any] = {}
        for name in self.model_fields_set:
            value = getattr(self, name)
            if name == "targeting" and value is not None:
                value = value.to_domain()
            elif name == "variants" and value is not None:
                value = [v.to_domain() for v in value]
            changes[name] = value
        return changes


class ToggleRequest(BaseModel):
    enabled: bool


class EvaluateRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    context: Dict[str, Any] = Field(default_factory=dict)


class EvaluateResponse(BaseModel):
    flag_key: str
    user_id: str
    enabled: bool
    variant: Optional[str] = None


class FeatureFlagResponse(BaseModel):
    """Feature flag response."""
    id: str
    key: str
    name: str
    description: str
    enabled: bool
    targeting: TargetingRuleModel
    variants: List[FlagVariantModel]
    expires_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, flag: FeatureFlag) -> "FeatureFlagResponse":
        t = flag.targeting
        return cls(
            id=flag.id,
            key=flag.key,
            name=flag.name,
            description=flag.description,
            enabled=flag.enabled,
            targeting=TargetingRuleModel(
                percentage=t.percentage,
                user_ids=list(t.user_ids),
                user_groups=list(t.user_groups),
                countries=list(t.countries),
                platforms=list(t.platforms),
            ),
            variants=[
                FlagVariantModel(name=v.name, percentage=v.percentage, config=v.config)
                for v in flag.variants
            ],
            expires_at=flag.expires_at,
            created_at=flag.created_at,
            updated_at=flag.updated_at,
        )
