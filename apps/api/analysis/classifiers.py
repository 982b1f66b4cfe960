"""
Title classifiers used by gap detection.

The regex classifier is a heuristic stand-in; anything implementing
``TitleClassifier`` (a statistical or learned model) can replace it.
"""

import re
from typing import List, Optional, Pattern, Protocol, Tuple

TITLE_PATTERNS: List[Tuple[str, Pattern[str]]] = [
    ("question", re.compile(r"\?")),
    ("number", re.compile(r"\d+")),
    ("caps_emphasis", re.compile(r"\b[A-Z]{3,}\b")),
    ("brackets", re.compile(r"[\(\[\{]")),
    ("first_person", re.compile(r"\b(I|My|We|Our)\b", re.IGNORECASE)),
    ("negative", re.compile(r"\b(never|stop|avoid|worst|fail|bad|terrible|don't)\b", re.IGNORECASE)),
    ("power_word", re.compile(r"\b(secret|ultimate|best|perfect|complete|easy|simple|amazing)\b", re.IGNORECASE)),
]

CONTENT_FORMATS: List[Tuple[str, Pattern[str]]] = [
    ("tutorial", re.compile(r"\b(tutorial|how to|guide|learn|teach|step by step|tips|tricks)\b", re.IGNORECASE)),
    ("review", re.compile(r"\b(review|reaction|reacts?|responds?|first time|listening to|watching)\b", re.IGNORECASE)),
    ("vlog", re.compile(r"\b(vlog|behind|day in|life|personal|story|journey|update)\b", re.IGNORECASE)),
    ("comparison", re.compile(r"\b(vs\.?|versus|compare|comparison|battle)\b", re.IGNORECASE)),
    ("listicle", re.compile(r"\b(top \d+|best|worst|\d+ (things|ways|tips|reasons))\b", re.IGNORECASE)),
    ("challenge", re.compile(r"\b(challenge|try|attempt|test|experiment)\b", re.IGNORECASE)),
]

PATTERN_LABELS = {
    "question": "Question Hook",
    "number": "Numbers in Title",
    "caps_emphasis": "CAPS Emphasis",
    "brackets": "Brackets/Parentheses",
    "first_person": 'First Person ("I/My")',
    "negative": "Negative Hooks",
    "power_word": "Power Words",
}

FORMAT_LABELS = {
    "tutorial": "Tutorial / How-To",
    "review": "Review / Reaction",
    "vlog": "Vlog / Personal",
    "comparison": "Comparison / VS",
    "listicle": "Listicle / Top N",
    "challenge": "Challenge / Experiment",
}


class TitleClassifier(Protocol):
    def content_format(self, title: str) -> Optional[str]:
        ...

    def title_patterns(self, title: str) -> List[str]:
        ...


class RegexTitleClassifier:
    """First matching content format wins; every matching stylistic marker is kept."""

    def __init__(
        self,
        formats: Optional[List[Tuple[str, Pattern[str]]]] = None,
        patterns: Optional[List[Tuple[str, Pattern[str]]]] = None,
    ):
        self.formats = formats if formats is not None else CONTENT_FORMATS
        self.patterns = patterns if patterns is not None else TITLE_PATTERNS

    def content_format(self, title: str) -> Optional[str]:
        if not title:
            return None
        for name, regex in self.formats:
            if regex.search(title):
                return name
        return None

    def title_patterns(self, title: str) -> List[str]:
        if not title:
            return []
        return [name for name, regex in self.patterns if regex.search(title)]


default_classifier = RegexTitleClassifier()
