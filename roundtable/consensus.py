"""Consensus evaluation for a round's responses.

Two strategies share one contract: a deterministic lexical one that needs no
network, and a delegate one that asks a lightweight worker for a semantic
analysis and falls back to the lexical result on any failure.
"""

import logging
import math
import re
from abc import ABC, abstractmethod
from itertools import combinations

from roundtable.errors import ConsensusStrategyError
from roundtable.json_parser import extract_json_object, string_list
from roundtable.models import AgentResponse, ConsensusLevel, ConsensusResult, GroupthinkWarning
from roundtable.workers.base import Worker

logger = logging.getLogger(__name__)

STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "with", "by", "from", "is", "are", "was", "were", "be", "been", "being",
    "have", "has", "had", "do", "does", "did", "will", "would", "should",
    "could", "may", "might", "must", "can", "this", "that", "these", "those",
    "i", "you", "he", "she", "it", "we", "they", "than", "then", "there",
    "their", "them", "what", "when", "which", "while", "into", "also",
    "more", "most", "very", "some", "such",
})

_NON_WORD_RE = re.compile(r"[^\w\s]")

# Positions at least this similar are clustered together
CLUSTER_THRESHOLD = 0.5
# Confidence spread that counts as a disagreement on its own
CONFIDENCE_SPLIT = 0.3
# Variance of confidences at which the confidence score reaches zero
_MAX_VARIANCE = 0.25


def extract_keywords(text: str) -> set[str]:
    words = _NON_WORD_RE.sub(" ", text.lower()).split()
    return {w for w in words if len(w) > 3 and w not in STOP_WORDS}


def jaccard(a: set[str], b: set[str]) -> float:
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def stances_conflict(a: AgentResponse, b: AgentResponse) -> bool:
    """YES against NO conflicts. NEUTRAL or a missing stance conflicts with nothing."""
    return {a.stance, b.stance} == {"YES", "NO"}


def classify_consensus_level(agreement: float, high: float = 0.7, medium: float = 0.4) -> ConsensusLevel:
    if agreement >= high:
        return ConsensusLevel.HIGH
    if agreement >= medium:
        return ConsensusLevel.MEDIUM
    return ConsensusLevel.LOW


def _short(text: str, limit: int = 100) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


class ConsensusStrategy(ABC):
    """Maps two or more responses to a ConsensusResult."""

    analyzer_id = "base"

    @abstractmethod
    async def analyze(self, responses: list[AgentResponse], topic: str) -> ConsensusResult:
        ...


class LexicalConsensusStrategy(ConsensusStrategy):
    """Keyword overlap clustering plus a confidence-variance signal. Fully deterministic."""

    analyzer_id = "lexical"

    def __init__(self, cluster_threshold: float = CLUSTER_THRESHOLD) -> None:
        self.cluster_threshold = cluster_threshold

    async def analyze(self, responses: list[AgentResponse], topic: str) -> ConsensusResult:
        return self.analyze_sync(responses)

    def analyze_sync(self, responses: list[AgentResponse]) -> ConsensusResult:
        keywords = [extract_keywords(r.position) for r in responses]
        similarity = {
            (i, j): jaccard(keywords[i], keywords[j])
            for i, j in combinations(range(len(responses)), 2)
        }
        mean_overlap = sum(similarity.values()) / len(similarity) if similarity else 0.0
        clusters = self._cluster(responses, similarity)

        confidences = [r.confidence for r in responses]
        mean_conf = sum(confidences) / len(confidences)
        variance = sum((c - mean_conf) ** 2 for c in confidences) / len(confidences)
        confidence_score = max(0.0, 1.0 - variance / _MAX_VARIANCE)

        largest = max(len(c) for c in clusters)
        cluster_share = (largest - 1) / (len(responses) - 1)
        position_score = 0.5 * mean_overlap + 0.5 * cluster_share

        agreement = max(0.0, min(1.0, 0.4 * confidence_score + 0.6 * position_score))

        common = self._common_points(responses, keywords)
        disagreements = self._disagreement_points(responses, clusters)
        return ConsensusResult(
            agreement_level=agreement,
            common_points=common,
            disagreement_points=disagreements,
            summary=summarize(responses, agreement, common, disagreements),
            analyzer_id=self.analyzer_id,
            groupthink_warning=detect_groupthink(responses, mean_overlap),
        )

    def _cluster(self, responses: list[AgentResponse], similarity: dict[tuple[int, int], float]) -> list[list[int]]:
        """Single-linkage clustering, most similar pairs first.

        Two clusters are never merged when any pair across them has
        conflicting explicit stances.
        """
        cluster_of = list(range(len(responses)))
        members: dict[int, list[int]] = {i: [i] for i in range(len(responses))}

        for (i, j), score in sorted(similarity.items(), key=lambda kv: (-kv[1], kv[0])):
            if score < self.cluster_threshold:
                break
            a, b = cluster_of[i], cluster_of[j]
            if a == b:
                continue
            if any(stances_conflict(responses[x], responses[y]) for x in members[a] for y in members[b]):
                continue
            for idx in members[b]:
                cluster_of[idx] = a
            members[a] = sorted(members[a] + members.pop(b))

        # Largest first, ties broken by earliest participant
        return sorted(members.values(), key=lambda m: (-len(m), m[0]))

    def _common_points(self, responses: list[AgentResponse], keywords: list[set[str]]) -> list[str]:
        frequency: dict[str, int] = {}
        for words in keywords:
            for word in words:
                frequency[word] = frequency.get(word, 0) + 1

        threshold = math.ceil(len(responses) / 2)
        shared = sorted(
            (w for w, count in frequency.items() if count >= threshold),
            key=lambda w: (-frequency[w], w),
        )[:5]
        if not shared:
            return ["Multiple perspectives on the topic"]

        points = [f"Common themes: {', '.join(shared)}"]
        for r in [r for r in responses if r.confidence >= 0.8][:2]:
            points.append(f"{r.agent_name} ({r.confidence:.0%}): {_short(r.position)}")
        return points

    def _disagreement_points(self, responses: list[AgentResponse], clusters: list[list[int]]) -> list[str]:
        points: list[str] = []
        majority = clusters[0]
        majority_names = ", ".join(responses[i].agent_name for i in majority)
        majority_position = _short(responses[majority[0]].position, 80)

        for cluster in clusters[1:]:
            names = ", ".join(responses[i].agent_name for i in cluster)
            points.append(
                f"{names} vs {majority_names}: "
                f"'{_short(responses[cluster[0]].position, 80)}' against '{majority_position}'"
            )

        most = max(responses, key=lambda r: r.confidence)
        least = min(responses, key=lambda r: r.confidence)
        if most.confidence - least.confidence > CONFIDENCE_SPLIT:
            points.append(
                f"Divergent confidence levels: {most.agent_name} ({most.confidence:.0%}) "
                f"vs {least.agent_name} ({least.confidence:.0%})"
            )
        return points


def summarize(
    responses: list[AgentResponse],
    agreement: float,
    common_points: list[str],
    disagreement_points: list[str],
) -> str:
    names = ", ".join(r.agent_name for r in responses)
    pct = f"{agreement:.0%}"
    summary = f"Analysis of {len(responses)} responses from {names}. "
    if agreement >= 0.8:
        summary += f"Strong consensus ({pct} agreement). "
    elif agreement >= 0.6:
        summary += f"Moderate consensus ({pct} agreement). "
    elif agreement >= 0.4:
        summary += f"Partial agreement ({pct} agreement). "
    else:
        summary += f"Diverse perspectives ({pct} agreement). "
    if common_points:
        summary += "Key common points identified. "
    summary += "Areas of disagreement noted." if disagreement_points else "No major disagreements."
    return summary


def detect_groupthink(responses: list[AgentResponse], mean_overlap: float) -> GroupthinkWarning | None:
    """Warn when at least two conformity signals show up together."""
    indicators: list[str] = []
    confidences = [r.confidence for r in responses]
    if min(confidences) >= 0.8 and sum(confidences) / len(confidences) >= 0.85:
        indicators.append("All agents report very high confidence")

    stances = {r.stance for r in responses}
    if len(stances) == 1 and None not in stances:
        indicators.append(f"All agents take the same stance ({stances.pop()})")

    if mean_overlap >= 0.5:
        indicators.append("Positions are nearly identical in wording")

    if len(indicators) < 2:
        return None
    return GroupthinkWarning(
        indicators=indicators,
        recommendation="Ask one participant to argue the opposing case before accepting this consensus.",
    )


_ANALYSIS_PROMPT = """You are analyzing debate positions from multiple participants.
Judge meaning, not wording: paraphrases are the same position, negations are opposite positions.

Debate topic: {topic}

Positions:
{positions}

Return ONLY a JSON object of this shape:
{{
  "agreementLevel": <number 0-1, 1 = complete agreement>,
  "commonGround": ["<points all participants agree on>"],
  "disagreements": [{{"issue": "<point of disagreement>", "agentIds": ["<ids on different sides>"]}}],
  "groupthink": {{"detected": <bool>, "indicators": ["..."], "recommendation": "..."}},
  "summary": "<two or three sentences>"
}}"""


class DelegateConsensusStrategy(ConsensusStrategy):
    """Asks a lightweight worker for the analysis. Never raises.

    Any delegate failure is logged and replaced by the lexical result.
    """

    analyzer_id = "delegate"

    def __init__(self, delegate: Worker, fallback: LexicalConsensusStrategy | None = None) -> None:
        self.delegate = delegate
        self.fallback = fallback or LexicalConsensusStrategy()

    async def analyze(self, responses: list[AgentResponse], topic: str) -> ConsensusResult:
        try:
            return await self._delegate_analysis(responses, topic)
        except ConsensusStrategyError as exc:
            logger.warning("Consensus delegate failed, using lexical analysis: %s", exc)
            return await self.fallback.analyze(responses, topic)

    async def _delegate_analysis(self, responses: list[AgentResponse], topic: str) -> ConsensusResult:
        positions = "\n".join(
            f"- [{r.agent_id}] {r.agent_name} (confidence {r.confidence:.0%}): {r.position}"
            for r in responses
        )
        prompt = _ANALYSIS_PROMPT.format(topic=topic, positions=positions)
        try:
            raw = await self.delegate.generate_raw_completion(prompt)
        except Exception as exc:
            raise ConsensusStrategyError(f"delegate call failed: {exc}", provider=self.delegate.name()) from exc

        try:
            data = extract_json_object(raw)
        except ValueError as exc:
            raise ConsensusStrategyError(f"no JSON in delegate reply: {exc}", provider=self.delegate.name()) from exc

        try:
            return self._build_result(data, responses)
        except (TypeError, ValueError, KeyError, AttributeError) as exc:
            raise ConsensusStrategyError(
                f"unusable delegate reply: {exc}", provider=self.delegate.name()
            ) from exc

    def _build_result(self, data: dict, responses: list[AgentResponse]) -> ConsensusResult:
        agreement = data.get("agreementLevel")
        if isinstance(agreement, bool) or not isinstance(agreement, (int, float)) or math.isnan(agreement):
            raise ValueError(f"agreementLevel must be a number, got {agreement!r}")
        agreement = max(0.0, min(1.0, float(agreement)))

        raw_disagreements = data.get("disagreements") or []
        if not isinstance(raw_disagreements, list):
            raise TypeError("disagreements must be a list")

        names = {r.agent_id: r.agent_name for r in responses}
        disagreements = []
        for item in raw_disagreements:
            if not isinstance(item, dict):
                continue
            agents = [names[a] for a in item.get("agentIds") or [] if a in names]
            if len(set(agents)) >= 2 and item.get("issue"):
                disagreements.append(f"{', '.join(agents)}: {item['issue']}")

        common = string_list(data.get("commonGround"))

        warning = None
        groupthink = data.get("groupthink")
        if isinstance(groupthink, dict) and groupthink.get("detected"):
            warning = GroupthinkWarning(
                indicators=string_list(groupthink.get("indicators")),
                recommendation=str(groupthink.get("recommendation", "")),
            )

        return ConsensusResult(
            agreement_level=agreement,
            common_points=common,
            disagreement_points=disagreements,
            summary=str(data.get("summary") or summarize(responses, agreement, common, disagreements)),
            analyzer_id=f"{self.analyzer_id}:{self.delegate.name()}",
            groupthink_warning=warning,
        )


class ConsensusEvaluator:
    """Handles the empty and single-response cases, then defers to the strategy."""

    def __init__(
        self,
        strategy: ConsensusStrategy | None = None,
        high_threshold: float = 0.7,
        medium_threshold: float = 0.4,
    ) -> None:
        if not 0.0 <= medium_threshold <= high_threshold <= 1.0:
            raise ValueError("thresholds must satisfy 0 <= medium <= high <= 1")
        self.strategy = strategy or LexicalConsensusStrategy()
        self.high_threshold = high_threshold
        self.medium_threshold = medium_threshold

    async def evaluate(self, responses: list[AgentResponse], topic: str = "") -> ConsensusResult:
        if not responses:
            return ConsensusResult(agreement_level=0.0, summary="No responses to analyze")

        if len(responses) == 1:
            only = responses[0]
            return ConsensusResult(
                agreement_level=1.0,
                common_points=[only.position],
                summary=f"Single response from {only.agent_name}",
                analyzer_id="self",
                level=ConsensusLevel.HIGH,
            )

        result = await self.strategy.analyze(responses, topic)
        result.level = classify_consensus_level(result.agreement_level, self.high_threshold, self.medium_threshold)
        logger.debug(
            "Consensus %.2f (%s) via %s", result.agreement_level, result.level.value, result.analyzer_id
        )
        return result
