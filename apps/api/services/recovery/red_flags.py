"""
Red Flag Detector

Stateless lexical scan of the whole intake conversation (both sides) for
safety-relevant language.

Rules are a priority-ordered table per severity tier. Severe rules are
tested first; the first match yields exactly one HIGH flag and the scan
stops. Moderate rules are only consulted when no severe rule matched, so
a pass yields at most one flag, always of the highest severity found.

Matching is lexical and broad. Negations ("no numbness") are not
understood and still match.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from services.recovery.schemas import ConversationMessage, RedFlag, RedFlagSeverity

_CANT = r"(?:can'?t|cannot|can not|unable to)"
_PAIN_LEAD = r"\bpain\s*(?:level|score|rating)?\s*(?:(?:is|of|at|about|around|like|a|an|:|=)\s*){0,3}"
_NOT_A_DURATION = r"(?!\s*(?:\+\s*)?(?:days?|weeks?|months?|years?|mins?|minutes?|hours?|hrs?)\b)"

SEEK_CARE_NOW = (
    "Please stop and get medical help now. Call your local emergency number or go to "
    "urgent care if symptoms are sudden or severe. We can't build a recovery plan for this."
)
SEE_A_PROFESSIONAL = (
    "We recommend consulting a healthcare provider before starting any recovery program. "
    "They can provide personalized guidance based on your specific condition."
)


@dataclass(frozen=True)
class RedFlagRule:
    name: str
    pattern: re.Pattern[str]
    severity: RedFlagSeverity
    reason: str
    recommendation: str

    def matches(self, lower_text: str) -> bool:
        return bool(self.pattern.search(lower_text))

    def to_flag(self) -> RedFlag:
        return RedFlag(severity=self.severity, reason=self.reason, recommendation=self.recommendation)


def _severe(name: str, pattern: str, reason: str) -> RedFlagRule:
    return RedFlagRule(name, re.compile(pattern), RedFlagSeverity.HIGH, reason, SEEK_CARE_NOW)


def _moderate(name: str, pattern: str, reason: str) -> RedFlagRule:
    return RedFlagRule(name, re.compile(pattern), RedFlagSeverity.MODERATE, reason, SEE_A_PROFESSIONAL)


# Order matters: first match wins within a tier.
SEVERE_RULES: Sequence[RedFlagRule] = (
    _severe(
        "severe_pain_score",
        r"\b(?:9|10)\s*(?:/|out of)\s*10\b"
        r"|" + _PAIN_LEAD + r"(?:9|10)\b" + _NOT_A_DURATION,
        "You described pain at the top of the scale.",
    ),
    _severe(
        "unbearable_pain",
        r"unbearable|excruciating|worst pain (?:of my life|ever|imaginable|i'?ve ever)",
        "You described pain that is unbearable.",
    ),
    _severe(
        "numbness",
        r"\bnumb(?:ness)?\b|loss of (?:sensation|feeling)|" + _CANT + r" feel (?:my|anything)",
        "Numbness or loss of sensation can signal nerve involvement.",
    ),
    _severe(
        "bladder_bowel",
        r"bladder|bowel|incontinen|" + _CANT + r" (?:urinate|pee|use the bathroom|use bathroom)",
        "Changes in bladder or bowel control need urgent medical assessment.",
    ),
    _severe(
        "cardiopulmonary",
        r"chest (?:pain|tightness|pressure)|difficulty breathing|short(?:ness)? of breath|"
        + _CANT + r" (?:breathe|catch my breath)",
        "Chest symptoms or trouble breathing need immediate medical attention.",
    ),
    _severe(
        "recent_trauma",
        r"(?:yesterday|today|last night|this morning).{0,30}\b(?:fell|fall|accident|crash|trauma|injur)"
        r"|\b(?:fell|accident|crash|trauma|injured).{0,30}(?:yesterday|today|last night|this morning)"
        r"|just (?:fell|had an accident|got injured|injured)|car accident",
        "A recent fall or accident should be checked for fractures or other injuries first.",
    ),
    _severe(
        "cannot_bear_weight",
        _CANT + r" (?:walk|stand|bear weight|put (?:any )?weight)|" + _CANT + r" move at all|completely unable",
        "Being unable to walk or bear weight needs professional evaluation.",
    ),
    _severe(
        "deformity",
        r"bone sticking out|looks? deformed|visible deformity|out of (?:its|the) socket|popped out of place",
        "A visible deformity or dislocation needs urgent medical care.",
    ),
    _severe(
        "progressive_weakness",
        r"(?:getting|progressively|increasingly) (?:weaker|numb)|(?:weakness|numbness).{0,30}spreading|sudden weakness",
        "Progressive or spreading weakness can signal nerve compression.",
    ),
    _severe(
        "infection_signs",
        r"\bfever\b|\bchills\b|hot,? red,? (?:and )?swollen",
        "Fever or a hot, red joint can signal infection.",
    ),
)

MODERATE_RULES: Sequence[RedFlagRule] = (
    _moderate(
        "radiating_pain",
        r"(?:shooting|radiating|electric|electrical|burning) pain"
        r"|pain (?:that )?(?:shoots|radiates|travels|runs|goes) (?:down|into|up)"
        r"|down (?:my|the) (?:leg|arm)",
        "Pain that travels down a limb can involve an irritated nerve.",
    ),
    _moderate(
        "paresthesia",
        r"tingl|pins and needles|prickling",
        "Tingling can involve an irritated nerve.",
    ),
    _moderate(
        "high_pain_score",
        r"\b[78]\s*(?:/|out of)\s*10\b|\b7\s*-\s*8\b"
        r"|" + _PAIN_LEAD + r"[78]\b" + _NOT_A_DURATION,
        "Your pain level is high for self-guided exercise.",
    ),
    _moderate(
        "swelling",
        r"swell|swollen|bruis",
        "Swelling or bruising is worth having looked at.",
    ),
    _moderate(
        "night_pain",
        r"wakes? me up|keeps me up|(?:pain|hurts?|aches?|worse|throbs?) at night|night pain|" + _CANT + r" sleep",
        "Pain that disturbs sleep is worth having looked at.",
    ),
    _moderate(
        "worsening",
        r"(?:getting|gotten|keeps getting|got) worse|worse (?:every|each) day|worsening",
        "Pain that keeps getting worse is worth having looked at.",
    ),
    _moderate(
        "persistent",
        r"\b(?:\d+|a few|few|several|many) months\b|for (?:a year|years|over a year)|\bchronic\b",
        "Pain lasting months is worth a professional assessment.",
    ),
    _moderate(
        "mechanical_symptoms",
        r"locking|locks up|gives? way|giving way|gave way|buckl|heard a pop",
        "Locking, buckling or a pop at injury can mean structural damage.",
    ),
)


class RedFlagDetector:
    """Tagged-rule engine over the two severity tiers."""

    def __init__(
        self,
        severe_rules: Sequence[RedFlagRule] = SEVERE_RULES,
        moderate_rules: Sequence[RedFlagRule] = MODERATE_RULES,
    ):
        self.severe_rules = tuple(severe_rules)
        self.moderate_rules = tuple(moderate_rules)

    def detect(self, text: str) -> List[RedFlag]:
        """Return [] or a single-element list holding the highest-severity flag."""
        rule = self.matched_rule(text)
        return [rule.to_flag()] if rule else []

    def matched_rule(self, text: str) -> Optional[RedFlagRule]:
        """Same decision as detect(), exposing which rule fired (for logging)."""
        lower = _normalize(text)
        if not lower:
            return None
        return self._first_match(self.severe_rules, lower) or self._first_match(self.moderate_rules, lower)

    @staticmethod
    def _first_match(rules: Iterable[RedFlagRule], lower_text: str) -> Optional[RedFlagRule]:
        for rule in rules:
            if rule.matches(lower_text):
                return rule
        return None


def _normalize(text: Optional[str]) -> str:
    # Curly apostrophes from mobile keyboards
    return (text or "").replace("’", "'").replace("‘", "'").lower()


def conversation_text(history: Sequence[ConversationMessage], utterance: str) -> str:
    """
    Join every turn of the session, assistant turns included, oldest first.

    A bare "Yes" to an assistant question about numbness or bladder control
    only matches when the question is scanned with it.
    """
    parts = [m.text for m in history]
    parts.append(utterance or "")
    return " ".join(p for p in parts if p)


# Singleton instance for easy import
detector = RedFlagDetector()


def detect_red_flags(text: str) -> List[RedFlag]:
    return detector.detect(text)
