"""Team snapshot model for challenge analytics."""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class Member:
    """A single participant and the points they contributed."""

    name: str
    points: float = 0.0

    def to_dict(self) -> dict:
        return {"name": self.name, "points": self.points}

    @classmethod
    def from_dict(cls, data: dict) -> "Member":
        return cls(name=str(data.get("name", "")), points=float(data.get("points", 0.0)))


@dataclass
class TeamSnapshot:
    """Raw counters recorded for one team at one point in time."""

    name: str
    steps: int = 0
    activity_km: float = 0.0
    missions: int = 0
    quizzes: int = 0
    photos: int = 0
    team_points: Optional[float] = None
    boost_active_count: Optional[int] = None
    members: List[Member] = field(default_factory=list)

    def __post_init__(self):
        """Validate counter ranges."""
        if not self.name:
            raise ValueError("Team name must be a non-empty string")

        for label in ("steps", "activity_km", "missions", "quizzes", "photos"):
            value = getattr(self, label)
            if value < 0:
                raise ValueError(f"{label} must be >= 0, got {value}")

        if self.team_points is not None and self.team_points < 0:
            raise ValueError(f"team_points must be >= 0, got {self.team_points}")

    @property
    def has_authoritative_points(self) -> bool:
        """Whether the point total was reported rather than estimated."""
        return self.team_points is not None

    @property
    def member_count(self) -> int:
        return len(self.members)

    def to_dict(self) -> dict:
        """Convert team to dictionary using the wire field names."""
        data = {
            "name": self.name,
            "steps": self.steps,
            "activityKm": self.activity_km,
            "missions": self.missions,
            "quizzes": self.quizzes,
            "photos": self.photos,
        }
        if self.team_points is not None:
            data["teamPoints"] = self.team_points
        if self.boost_active_count is not None:
            data["boostActiveCount"] = self.boost_active_count
        if self.members:
            data["members"] = [member.to_dict() for member in self.members]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "TeamSnapshot":
        """
        Create team from dictionary.

        Counters missing from older history payloads default to zero; the
        optional point and boost fields stay ``None`` when absent.
        """
        team_points = data.get("teamPoints")
        boost = data.get("boostActiveCount")
        return cls(
            name=str(data["name"]).strip(),
            steps=int(data.get("steps") or 0),
            activity_km=float(data.get("activityKm") or 0.0),
            missions=int(data.get("missions") or 0),
            quizzes=int(data.get("quizzes") or 0),
            photos=int(data.get("photos") or 0),
            team_points=float(team_points) if team_points is not None else None,
            boost_active_count=int(boost) if boost is not None else None,
            members=[Member.from_dict(m) for m in data.get("members") or []],
        )
