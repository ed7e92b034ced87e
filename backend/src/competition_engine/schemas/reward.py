"""Typed reward and scoring configuration embedded on a competition.

Stored JSON keeps the compact shape ``{"place": 1, ...}`` /
``{"place": [4, 10], ...}``; in memory a place is either a ``SinglePlace``
or a ``PlaceRange`` and resolves to a concrete range of ranks.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    Field,
    ValidationError,
    field_serializer,
    field_validator,
    model_validator,
)

from competition_engine.core.exceptions import InvalidInputError
from competition_engine.models.reward import RewardType


class SinglePlace(BaseModel):
    """Exactly one final rank."""

    kind: Literal["single"] = "single"
    rank: int = Field(ge=1)

    def ranks(self) -> range:
        return range(self.rank, self.rank + 1)


class PlaceRange(BaseModel):
    """Inclusive range of final ranks."""

    kind: Literal["range"] = "range"
    low: int = Field(ge=1)
    high: int = Field(ge=1)

    @model_validator(mode="after")
    def _check_bounds(self) -> "PlaceRange":
        if self.low > self.high:
            raise ValueError(f"place range [{self.low}, {self.high}] is empty")
        return self

    def ranks(self) -> range:
        return range(self.low, self.high + 1)


Place = Annotated[Union[SinglePlace, PlaceRange], Field(discriminator="kind")]


class RewardDescriptor(BaseModel):
    """Name, type and point value of a reward."""

    reward: str = Field(min_length=1, max_length=255)
    type: RewardType
    value: int = Field(default=0, ge=0)
    description: str | None = None


class RewardTier(RewardDescriptor):
    """Placement reward for one rank or an inclusive rank range."""

    place: Place

    @field_validator("place", mode="before")
    @classmethod
    def _coerce_place(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("place must be a rank or a [low, high] range")
        if isinstance(value, int):
            return {"kind": "single", "rank": value}
        if isinstance(value, (list, tuple)):
            if len(value) == 1:
                return {"kind": "single", "rank": value[0]}
            if len(value) == 2:
                return {"kind": "range", "low": value[0], "high": value[1]}
            raise ValueError("place range must be [low, high]")
        return value

    @field_serializer("place")
    def _serialize_place(self, place: SinglePlace | PlaceRange) -> int | list[int]:
        if isinstance(place, SinglePlace):
            return place.rank
        return [place.low, place.high]


class ParticipationReward(RewardDescriptor):
    """Reward granted to every active participant regardless of rank.

    ``minimum_participation`` is a percentage; active participants count
    as 100.
    """

    minimum_participation: float | None = Field(default=None, ge=0, le=100)


class CategoryReward(RewardDescriptor):
    """Reward for the top performers of one scoring category."""

    category: str = Field(min_length=1, max_length=50)
    top_performers: int = Field(default=1, ge=1)


class RewardsConfig(BaseModel):
    """Placement tiers, an optional participation reward, category rewards."""

    tiers: list[RewardTier] = Field(default_factory=list)
    participation: ParticipationReward | None = None
    categories: list[CategoryReward] = Field(default_factory=list)


class CategoryRule(BaseModel):
    weight: float = Field(ge=0, le=1)
    max_score: float = Field(gt=0)


class ScoringRules(BaseModel):
    categories: dict[str, CategoryRule] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_weights(self) -> "ScoringRules":
        total = sum(rule.weight for rule in self.categories.values())
        if self.categories and total > 1.0001:
            raise ValueError(f"category weights sum to {total:.2f}, expected at most 1")
        return self


def parse_rewards(raw: dict[str, Any] | None) -> RewardsConfig:
    """Load a stored rewards document; an empty document means no rewards.

    Raises:
        InvalidInputError: The document does not describe valid rewards
    """
    if not raw:
        return RewardsConfig()
    try:
        return RewardsConfig.model_validate(raw)
    except ValidationError as e:
        raise InvalidInputError(f"Invalid rewards configuration: {e.error_count()} error(s)") from e
