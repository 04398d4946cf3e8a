"""
Per-message preference pattern detection.
"""

import re
from typing import Optional, Tuple

from ..models.core import PatternMap, SessionContext

# Per axis, the first value whose keywords appear wins.
TIME_PREFERENCES = (
    ('morning', ('morning', 'am')),
    ('evening', ('evening', 'pm')),
)
INTENSITY_PREFERENCES = (
    ('high', ('hard', 'intense', 'challenging')),
    ('low', ('easy', 'light', 'moderate')),
)
GOAL_FOCUSES = (
    ('muscle_gain', ('muscle', 'strength', 'bulk')),
    ('fat_loss', ('fat', 'lean', 'cut')),
    ('endurance', ('endurance', 'stamina', 'cardio')),
)
COMMUNICATION_STYLES = (
    ('polite', ('please', 'thank you', 'appreciate')),
    ('casual', ('yo', 'hey', "what's up")),
    ('technical', ('explain', 'how does', 'why')),
)


def _keyword_pattern(keyword: str) -> re.Pattern:
    # Whole words only, so 'am' does not fire inside 'program' nor 'yo' inside 'you'
    return re.compile(rf'(?<![\w\']){re.escape(keyword)}(?![\w\'])')


def _compile(axis: Tuple[Tuple[str, Tuple[str, ...]], ...]):
    return tuple((value, tuple(_keyword_pattern(keyword) for keyword in keywords)) for value, keywords in axis)


_TIME = _compile(TIME_PREFERENCES)
_INTENSITY = _compile(INTENSITY_PREFERENCES)
_GOAL = _compile(GOAL_FOCUSES)
_STYLE = _compile(COMMUNICATION_STYLES)


def _first_match(text: str, axis) -> Optional[str]:
    for value, patterns in axis:
        if any(pattern.search(text) for pattern in patterns):
            return value
    return None


def detect_patterns(message: Optional[str], context: Optional[SessionContext] = None) -> PatternMap:
    """Detect time, intensity, goal and communication-style signals in one message.

    Args:
        message: User message (case-insensitive)
        context: Session context, currently unused but accepted so detectors share the classifier signature

    Returns:
        PatternMap with None on every axis that had no signal
    """
    text = (message or '').lower()
    return PatternMap(time_preference=_first_match(text, _TIME),
                      intensity_preference=_first_match(text, _INTENSITY),
                      goal_focus=_first_match(text, _GOAL),
                      communication_style=_first_match(text, _STYLE))
