"""
Data structures (dataclasses) for AudioLog.

Documents travel to and from the store as plain dicts with camelCase keys;
the dataclasses here are the materialized, read-only views held in mirrors.
"""

from dataclasses import dataclass, field, fields, replace
from typing import Dict, List, Optional

from audiolog.errors import ProxyFailed, ValidationFailed


# --- AVATAR ---

AVATAR_OPTIONS: Dict[str, List[str]] = {
    "background": [
        "#FF9F85", "#81B29A", "#F2CC8F", "#E07A5F",
        "#3D405B", "#D1495B", "#8D6E63", "#F4F1DE",
    ],
    "eyes": ["dots", "wink", "stars", "glasses"],
    "mouth": ["smile", "oh", "cat", "tongue"],
    "accessory": ["none", "sprout", "headphones", "bow"],
}


@dataclass
class AvatarConfig:
    """Avatar look; every field has a default."""
    background: str = "#FF9F85"
    eyes: str = "dots"
    mouth: str = "smile"
    accessory: str = "none"

    def merged(self, parts: Dict[str, str]) -> "AvatarConfig":
        """
        Return a new config with `parts` merged over this one.
        Unknown fields or options raise ValidationFailed.
        """
        for key, value in parts.items():
            if key not in AVATAR_OPTIONS:
                raise ValidationFailed(f"Unknown avatar field: {key}")
            if value not in AVATAR_OPTIONS[key]:
                raise ValidationFailed(f"Unknown {key} option: {value}")
        return replace(self, **parts)

    def to_doc(self) -> Dict[str, str]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_doc(cls, data: Optional[Dict], base: Optional["AvatarConfig"] = None) -> "AvatarConfig":
        """Materialize a stored avatar over `base`; missing fields keep the base value."""
        base = base or cls()
        if not data:
            return base
        # Older documents used "bg" for the background colour
        if "background" not in data and "bg" in data:
            data = {**data, "background": data["bg"]}
        known = {f.name: data[f.name] for f in fields(cls) if f.name in data}
        return replace(base, **known)


# --- JOURNEY SETTINGS ---

@dataclass
class JourneySettings:
    """Per-user settings singleton, owned by that user."""
    title: str = "My Journey"
    description: str = "Sequential Documenting"
    category: Optional[str] = None
    avatar: AvatarConfig = field(default_factory=AvatarConfig)
    ai_persona: Optional[str] = None

    def to_doc(self) -> Dict:
        return {
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "avatar": self.avatar.to_doc(),
            "aiPersona": self.ai_persona,
        }

    def merged(self, data: Dict) -> "JourneySettings":
        """Merge a stored (possibly partial) settings document over this one."""
        return JourneySettings(
            title=data.get("title", self.title),
            description=data.get("description", self.description),
            category=data.get("category", self.category),
            avatar=AvatarConfig.from_doc(data.get("avatar"), base=self.avatar),
            ai_persona=data.get("aiPersona", self.ai_persona),
        )


# --- CIRCLES ---

@dataclass
class Circle:
    """An interest-based grouping that scopes the shared feed."""
    id: str
    label: str
    members: str


CIRCLES: List[Circle] = [
    Circle(id="code", label="Code & Coffee", members="4.2k"),
    Circle(id="fitness", label="Morning Movers", members="1.8k"),
    Circle(id="language", label="The Polyglot Cafe", members="2.5k"),
    Circle(id="creative", label="Daily Creators", members="900"),
    Circle(id="music", label="Bedroom Musicians", members="1.1k"),
]


def find_circle(circle_id: str) -> Optional[Circle]:
    return next((c for c in CIRCLES if c.id == circle_id), None)


# --- LOGS & COMMENTS ---

@dataclass
class Log:
    """A public voice log, as materialized from the store."""
    id: str
    user_id: str
    user_name: str
    transcript: str
    milestone: bool
    summary: str
    audio_data: str
    day_number: int
    category: Optional[str] = None
    likes: List[str] = field(default_factory=list)
    ai_insight: Optional[str] = None
    created_at: Optional[float] = None  # None until the server confirms the write

    @property
    def like_count(self) -> int:
        return len(self.likes)

    def liked_by(self, user_id: str) -> bool:
        return user_id in self.likes

    @classmethod
    def from_doc(cls, doc_id: str, data: Dict) -> "Log":
        return cls(
            id=doc_id,
            user_id=data.get("userId", ""),
            user_name=data.get("userName", ""),
            transcript=data.get("transcript", ""),
            milestone=bool(data.get("milestone", False)),
            summary=data.get("summary", ""),
            audio_data=data.get("audioData", ""),
            day_number=int(data.get("dayNumber", 0)),
            category=data.get("category"),
            # dict.fromkeys keeps first-seen order and drops repeats
            likes=list(dict.fromkeys(data.get("likes") or [])),
            ai_insight=data.get("aiInsight"),
            created_at=data.get("createdAt"),
        )


@dataclass
class Comment:
    """A comment scoped under its parent log."""
    id: str
    log_id: str
    user_id: str
    user_name: str
    text: str
    timestamp: Optional[float] = None

    @classmethod
    def from_doc(cls, log_id: str, doc_id: str, data: Dict) -> "Comment":
        return cls(
            id=doc_id,
            log_id=log_id,
            user_id=data.get("userId", ""),
            user_name=data.get("userName", ""),
            text=data.get("text", ""),
            timestamp=data.get("timestamp"),
        )


@dataclass
class Analysis:
    """Result of the transcription call."""
    transcript: str
    milestone: bool
    summary: str

    @classmethod
    def from_dict(cls, data) -> "Analysis":
        """Validate a transcription result; anything malformed is a proxy failure."""
        if not isinstance(data, dict):
            raise ProxyFailed("Transcription result is not an object")
        transcript = data.get("transcript")
        summary = data.get("summary")
        milestone = data.get("milestone")
        if not isinstance(transcript, str) or not isinstance(summary, str) or not isinstance(milestone, bool):
            raise ProxyFailed("Transcription result is missing fields")
        return cls(transcript=transcript, milestone=milestone, summary=summary)
