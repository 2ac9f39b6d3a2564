"""
Pydantic schemas for gamification-service

All schemas use Pydantic v2 syntax with ConfigDict. Field names are camelCase
because the same shapes are stored in DynamoDB and returned to the UI.
"""
import math
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ============= ENUMS AND CONSTANTS =============

class ActionType(str, Enum):
    """Operational events that earn XP"""
    CREATE_INCIDENT = "CREATE_INCIDENT"
    RESOLVE_INCIDENT = "RESOLVE_INCIDENT"
    CREATE_MAINTENANCE = "CREATE_MAINTENANCE"
    COMPLETE_MAINTENANCE = "COMPLETE_MAINTENANCE"
    SUBMIT_QUALITY_SCORE = "SUBMIT_QUALITY_SCORE"
    REGISTER_LOST_ITEM = "REGISTER_LOST_ITEM"
    RETURN_LOST_ITEM = "RETURN_LOST_ITEM"
    CREATE_PROCEDURE = "CREATE_PROCEDURE"
    READ_PROCEDURE = "READ_PROCEDURE"
    VALIDATE_PROCEDURE = "VALIDATE_PROCEDURE"
    LOGIN = "LOGIN"
    HELP_COLLEAGUE = "HELP_COLLEAGUE"
    RECEIVE_THANKS = "RECEIVE_THANKS"
    COMPLETE_WEEKLY_GOAL = "COMPLETE_WEEKLY_GOAL"


# Names accepted from older clients
ACTION_ALIASES = {
    "COMPLETE_QUALITY_CHECK": ActionType.SUBMIT_QUALITY_SCORE.value,
}


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class BadgeCategory(str, Enum):
    INCIDENTS = "incidents"
    MAINTENANCE = "maintenance"
    QUALITY = "quality"
    LOST_FOUND = "lostFound"
    PROCEDURES = "procedures"
    GENERAL = "general"
    SPECIAL = "special"


# Numeric UserStats fields a badge or challenge may reference
STAT_METRICS = {
    'totalXP',
    'incidentsCreated', 'incidentsResolved', 'criticalIncidentsResolved', 'avgResolutionTime',
    'maintenanceCreated', 'maintenanceCompleted', 'quickMaintenanceCompleted',
    'qualitySubmissionCount', 'avgQualityScore', 'highQualityChecks',
    'lostItemsRegistered', 'lostItemsReturned',
    'proceduresCreated', 'proceduresRead', 'proceduresValidated',
    'totalLogins', 'consecutiveLogins', 'earlyLogins', 'lateLogins',
    'weeklyGoalsCompleted', 'thanksReceived', 'helpProvided',
    'currentStreak', 'longestStreak',
}

ALLOWED_OPERATORS = {'>=', '>', '==', '<=', '<'}


# ============= USER STATS =============

class UserStats(BaseModel):
    """
    Cumulative gamification statistics of one staff member.

    Counters and totalXP never decrease; badges only grows.
    """
    userId: str
    totalXP: int = Field(default=0, ge=0)

    # Incidents
    incidentsCreated: int = Field(default=0, ge=0)
    incidentsResolved: int = Field(default=0, ge=0)
    criticalIncidentsResolved: int = Field(default=0, ge=0)
    avgResolutionTime: float = Field(default=0.0, ge=0, description="Hours, running mean")
    resolutionTimeSamples: int = Field(default=0, ge=0)

    # Maintenance
    maintenanceCreated: int = Field(default=0, ge=0)
    maintenanceCompleted: int = Field(default=0, ge=0)
    quickMaintenanceCompleted: int = Field(default=0, ge=0)

    # Quality
    qualitySubmissionCount: int = Field(default=0, ge=0)
    avgQualityScore: float = Field(default=0.0, ge=0, le=100)
    highQualityChecks: int = Field(default=0, ge=0)

    # Lost & found
    lostItemsRegistered: int = Field(default=0, ge=0)
    lostItemsReturned: int = Field(default=0, ge=0)

    # Procedures
    proceduresCreated: int = Field(default=0, ge=0)
    proceduresRead: int = Field(default=0, ge=0)
    proceduresValidated: int = Field(default=0, ge=0)

    # General
    totalLogins: int = Field(default=0, ge=0)
    consecutiveLogins: int = Field(default=0, ge=0, description="Login days in a row")
    lastLoginDate: Optional[str] = Field(None, description="Last counted login day (YYYY-MM-DD)")
    earlyLogins: int = Field(default=0, ge=0)
    lateLogins: int = Field(default=0, ge=0)
    weeklyGoalsCompleted: int = Field(default=0, ge=0)
    thanksReceived: int = Field(default=0, ge=0)
    helpProvided: int = Field(default=0, ge=0)
    contributionsPerModule: Dict[str, int] = Field(default_factory=dict)

    # Streak
    currentStreak: int = Field(default=0, ge=0)
    longestStreak: int = Field(default=0, ge=0)
    lastActivityDate: Optional[str] = Field(None, description="Last qualifying day (YYYY-MM-DD)")

    # Unlocks and bookkeeping
    badges: List[str] = Field(default_factory=list)
    completedChallenges: List[str] = Field(default_factory=list, description="weekKey:challengeId")
    processedActionKeys: List[str] = Field(default_factory=list)
    version: int = Field(default=0, ge=0)
    createdAt: Optional[str] = None
    lastUpdated: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# ============= ACTIONS =============

class GamificationAction(BaseModel):
    """
    A tagged operational event.

    Only the fields relevant to `type` are read:
    - severity / resolutionTime: CREATE_INCIDENT, RESOLVE_INCIDENT
    - beforeSchedule: COMPLETE_MAINTENANCE
    - score: SUBMIT_QUALITY_SCORE (required, 0-100)
    - xpReward: COMPLETE_WEEKLY_GOAL (overrides the base amount)
    - timestamp: when it happened (defaults to now)
    """
    type: ActionType
    severity: Optional[Severity] = None
    resolutionTime: Optional[float] = Field(None, ge=0, description="Hours to resolve")
    beforeSchedule: bool = False
    score: Optional[float] = None
    xpReward: Optional[int] = Field(None, gt=0)
    moduleId: Optional[str] = None
    timestamp: Optional[datetime] = None

    @field_validator('type', mode='before')
    @classmethod
    def resolve_alias(cls, v: Any) -> Any:
        if isinstance(v, str):
            return ACTION_ALIASES.get(v, v)
        return v

    @model_validator(mode='after')
    def validate_score(self):
        """Quality submissions need a finite score in [0, 100]"""
        if self.type == ActionType.SUBMIT_QUALITY_SCORE:
            if self.score is None:
                raise ValueError("score is required for SUBMIT_QUALITY_SCORE")
            if not math.isfinite(self.score) or not 0 <= self.score <= 100:
                raise ValueError(f"score must be between 0 and 100, got: {self.score}")
        return self


class PerformActionRequest(GamificationAction):
    """Body of POST /actions"""
    idempotencyKey: Optional[str] = Field(None, max_length=128)


# ============= BADGES =============

class BadgeCondition(BaseModel):
    """
    Comparator descriptor for a badge.

    Examples:
    - {"metric": "incidentsResolved", "operator": ">=", "value": 25}
    - {"metric": "avgResolutionTime", "operator": "<=", "value": 4}
    """
    metric: str = Field(..., description="UserStats field to compare")
    operator: str = Field(default=">=", description="Comparison operator")
    value: float = Field(..., gt=0, description="Threshold (must be > 0)")

    model_config = ConfigDict(frozen=True)

    @field_validator('metric')
    @classmethod
    def validate_metric(cls, v: str) -> str:
        """Ensure metric is one of the known stats"""
        if v not in STAT_METRICS:
            raise ValueError(f"metric must be one of {sorted(STAT_METRICS)}, got: {v}")
        return v

    @field_validator('operator')
    @classmethod
    def validate_operator(cls, v: str) -> str:
        """Ensure operator is valid"""
        if v not in ALLOWED_OPERATORS:
            raise ValueError(f"operator must be one of {ALLOWED_OPERATORS}, got: {v}")
        return v


class Badge(BaseModel):
    """
    Immutable catalog entry.

    Unlocked when every descriptor in `conditions` holds and, if set,
    `predicate(stats)` returns True. A badge must define at least one of them.
    """
    id: str
    name: str
    description: str
    icon: str
    category: BadgeCategory
    tier: int = Field(..., ge=1, le=3, description="1 Bronze, 2 Silver, 3 Gold")
    hidden: bool = False
    conditions: Tuple[BadgeCondition, ...] = ()
    predicate: Optional[Callable[[UserStats], bool]] = Field(default=None, exclude=True)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode='after')
    def validate_has_rule(self):
        if not self.conditions and self.predicate is None:
            raise ValueError(f"badge {self.id} needs conditions or a predicate")
        return self


class BadgeView(BaseModel):
    """Badge as shown to the UI"""
    id: str
    name: str
    description: str
    icon: str
    category: BadgeCategory
    tier: int
    hidden: bool = False
    earned: bool = False

    @classmethod
    def from_badge(cls, badge: Badge, earned: bool = False) -> "BadgeView":
        return cls(
            id=badge.id,
            name=badge.name,
            description=badge.description,
            icon=badge.icon,
            category=badge.category,
            tier=badge.tier,
            hidden=badge.hidden,
            earned=earned,
        )


class BadgeCollection(BaseModel):
    """Badges of a user plus totals"""
    badges: List[BadgeView]
    totalEarned: int
    totalAvailable: int = Field(..., description="Non-hidden badges in the catalog")
    progressPercentage: float


# ============= CHALLENGES =============

class Challenge(BaseModel):
    """Weekly challenge: reach `target` on the `metric` stat"""
    id: str
    title: str
    description: str
    icon: str
    target: int = Field(..., gt=0)
    xpReward: int = Field(..., gt=0)
    metric: str
    moduleId: Optional[str] = None
    startDate: Optional[date] = None
    endDate: Optional[date] = None

    model_config = ConfigDict(frozen=True)

    @field_validator('metric')
    @classmethod
    def validate_metric(cls, v: str) -> str:
        if v not in STAT_METRICS:
            raise ValueError(f"metric must be one of {sorted(STAT_METRICS)}, got: {v}")
        return v


class ChallengeView(BaseModel):
    id: str
    title: str
    description: str
    icon: str
    target: int
    xpReward: int
    moduleId: Optional[str] = None
    startDate: Optional[date] = None
    endDate: Optional[date] = None
    progress: int = Field(default=0, ge=0, le=100)
    completed: bool = False


class ChallengeOverview(BaseModel):
    """Catalog of the week plus per-challenge progress"""
    weekKey: str
    challenges: List[ChallengeView]
    progress: Dict[str, int]


# ============= LEVELS AND RANKS =============

class LevelInfo(BaseModel):
    level: int = Field(..., ge=1)
    minXP: int = Field(..., ge=0)
    name: str
    badgeGlyph: str
    colorToken: str

    model_config = ConfigDict(frozen=True)


class LevelStatus(BaseModel):
    level: int
    progress: int = Field(..., ge=0, le=100)
    levelInfo: LevelInfo
    xpIntoLevel: int = 0
    xpForNextLevel: Optional[int] = Field(None, description="None at the top level")


class Rank(BaseModel):
    name: str
    minPoints: int = Field(..., ge=0)

    model_config = ConfigDict(frozen=True)


class RankStatus(BaseModel):
    rank: str
    points: int
    nextRank: str
    pointsNeeded: int = Field(..., ge=0)


# ============= RESULTS =============

class ActionResult(BaseModel):
    """Outcome of GamificationFacade.perform_action"""
    updatedStats: UserStats
    xpGained: int = 0
    challengeXp: int = 0
    newBadges: List[Badge] = Field(default_factory=list)
    completedChallenges: List[Challenge] = Field(default_factory=list)
    levelUp: bool = False
    replayed: bool = False


class ActionResponse(BaseModel):
    """Response of POST /actions"""
    stats: UserStats
    xpGained: int
    challengeXp: int
    newBadges: List[BadgeView]
    completedChallenges: List[ChallengeView]
    levelUp: bool
    replayed: bool
    level: LevelStatus
    rank: RankStatus


class ProfileSummary(BaseModel):
    userId: str
    totalXP: int
    level: LevelStatus
    rank: RankStatus
    badgesEarned: int
    badgesAvailable: int
    currentStreak: int
    longestStreak: int


class LeaderboardEntry(BaseModel):
    userId: str
    points: int
    rank: str
    level: int
    badgeCount: int


class LeaderboardResponse(BaseModel):
    entries: List[LeaderboardEntry]
