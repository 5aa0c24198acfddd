"""Plain-text prompt for a debate turn and parsing of the JSON reply."""

from roundtable.json_parser import clamp_unit, extract_json_object
from roundtable.models import RoundContext

SYSTEM_PROMPT = (
    "You are {name}, one participant in a structured multi-agent debate. "
    "Answer with a single JSON object and nothing else."
)

_REPLY_FORMAT = """Reply with JSON of this shape:
{
  "position": "<one or two sentence stance>",
  "reasoning": "<your argument>",
  "confidence": <number 0-1>,
  "stance": "YES" | "NO" | "NEUTRAL",
  "context_requests": [
    {"query": "<information you need>", "reason": "<why>", "priority": "required" | "optional"}
  ]
}
Only add context_requests when you cannot answer well without outside information."""

_VALID_STANCES = {"YES", "NO", "NEUTRAL"}


def build_prompt(context: RoundContext) -> str:
    """Render the round context into the user prompt for one worker."""
    parts = [
        f"Debate topic: {context.topic}",
        f"Mode: {context.mode}. Round {context.current_round} of {context.total_rounds}.",
    ]
    if context.mode_instruction:
        parts.append(context.mode_instruction)
    if context.focus_question:
        parts.append(f"Focus question for this round: {context.focus_question}")

    if context.previous_responses:
        parts.append("Responses so far:")
        for resp in context.previous_responses:
            parts.append(
                f"--- {resp.agent_name} (round {resp.round_number}, "
                f"confidence {resp.confidence:.0%}) ---\n"
                f"Position: {resp.position}\nReasoning: {resp.reasoning}"
            )

    if context.context_results:
        parts.append("Additional context you asked for:")
        for result in context.context_results:
            body = result.result if result.success else f"(unavailable: {result.error})"
            parts.append(f"[{result.request_id}] {body}")

    parts.append(_REPLY_FORMAT)
    return "\n\n".join(parts)


def parse_reply(raw: str) -> dict:
    """Parse a worker's raw reply into AgentResponse fields plus context requests.

    Falls back to treating the whole text as the position when no JSON is found.
    """
    try:
        data = extract_json_object(raw)
    except ValueError:
        text = raw.strip()
        return {
            "position": text.split("\n", 1)[0][:300],
            "reasoning": text,
            "confidence": 0.5,
            "stance": None,
            "context_requests": [],
        }

    stance = str(data.get("stance", "")).upper() or None
    requests = []
    for item in data.get("context_requests") or []:
        if isinstance(item, dict) and item.get("query"):
            priority = str(item.get("priority", "optional")).lower()
            requests.append({
                "query": str(item["query"]),
                "reason": str(item.get("reason", "")),
                "priority": priority if priority in ("required", "optional") else "optional",
            })

    return {
        "position": str(data.get("position", "")).strip(),
        "reasoning": str(data.get("reasoning", "")).strip(),
        "confidence": clamp_unit(data.get("confidence")),
        "stance": stance if stance in _VALID_STANCES else None,
        "context_requests": requests,
    }
