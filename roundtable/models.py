"""Dataclasses for sessions, rounds, responses and consensus. No logic beyond validation."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class SessionStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ERROR = "error"


class RoundStatus(str, Enum):
    COMPLETED = "completed"
    NEEDS_CONTEXT = "needs_context"


class ConsensusLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ContextPriority(str, Enum):
    REQUIRED = "required"
    OPTIONAL = "optional"


@dataclass(frozen=True)
class Citation:
    title: str
    url: str
    snippet: str | None = None


@dataclass(frozen=True)
class ToolCallRecord:
    tool_name: str
    input: dict
    output: dict
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class AgentResponse:
    agent_id: str
    agent_name: str
    position: str
    reasoning: str
    confidence: float
    stance: str | None = None          # "YES", "NO" or "NEUTRAL"
    citations: tuple[Citation, ...] = ()
    tool_calls: tuple[ToolCallRecord, ...] = ()
    round_number: int = 0
    timestamp: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")


@dataclass(frozen=True)
class ContextRequest:
    agent_id: str
    query: str
    reason: str
    priority: ContextPriority = ContextPriority.OPTIONAL
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    @property
    def required(self) -> bool:
        return self.priority is ContextPriority.REQUIRED


@dataclass(frozen=True)
class ContextResult:
    request_id: str
    success: bool
    result: str | None = None
    error: str | None = None


@dataclass
class GroupthinkWarning:
    indicators: list[str]
    recommendation: str


@dataclass
class ConsensusResult:
    agreement_level: float
    common_points: list[str] = field(default_factory=list)
    disagreement_points: list[str] = field(default_factory=list)
    summary: str = ""
    analyzer_id: str | None = None
    level: ConsensusLevel = ConsensusLevel.LOW
    groupthink_warning: GroupthinkWarning | None = None


@dataclass
class RoundResult:
    round_number: int
    responses: list[AgentResponse]
    consensus: ConsensusResult
    status: RoundStatus = RoundStatus.COMPLETED
    context_requests: list[ContextRequest] = field(default_factory=list)

    @property
    def required_requests(self) -> list[ContextRequest]:
        return [r for r in self.context_requests if r.required]


@dataclass
class RoundContext:
    """What a worker gets to see when it is asked for a response."""

    session_id: str
    topic: str
    mode: str
    current_round: int
    total_rounds: int
    previous_responses: list[AgentResponse] = field(default_factory=list)
    focus_question: str | None = None
    mode_instruction: str = ""
    context_results: list[ContextResult] = field(default_factory=list)


@dataclass
class Session:
    topic: str
    mode: str
    agent_ids: list[str]
    total_rounds: int = 3
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: SessionStatus = SessionStatus.ACTIVE
    current_round: int = 0
    responses: list[AgentResponse] = field(default_factory=list)
    consensus: ConsensusResult | None = None
    consecutive_consensus_rounds: int = 0
    pending_context_requests: list[ContextRequest] = field(default_factory=list)
    exit_reason: str | None = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)


@dataclass
class DebateResult:
    session: Session
    rounds: list[RoundResult]
    synthesis: str
    synthesizer: str
    total_duration_sec: float
    synthesizer_is_participant: bool = False
