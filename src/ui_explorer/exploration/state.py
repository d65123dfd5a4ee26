"""
State fingerprinting and deduplication.

A UI state is identified by hashing what the page looks like
structurally: URL path, DOM tag hierarchy, form control state and open
dialogs. Visible text is hashed too but left out of the identity so
that rotating copy, counters and prices do not split one screen into
many states.
"""

import time
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse

from ui_explorer.browser import scripts
from ui_explorer.browser.driver import BrowserDriver
from ui_explorer.utils.hashing import short_hash
from ui_explorer.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class StateFingerprint:
    """
    Identity of a UI state.

    Two fingerprints describe the same state iff their
    ``combined_hash`` values are equal.
    """

    url_hash: str
    dom_structure_hash: str
    visible_text_hash: str
    form_state_hash: str
    dialog_state_hash: str
    combined_hash: str
    auth_state_id: str | None = None
    timestamp: float = field(default_factory=time.time)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StateFingerprint):
            return NotImplemented
        return self.combined_hash == other.combined_hash

    def __hash__(self) -> int:
        return hash(self.combined_hash)


@dataclass(frozen=True)
class StateTransition:
    """An action that moved the page from one state to another."""

    from_state: StateFingerprint
    to_state: StateFingerprint
    action_type: str
    selector: str | None = None
    value: str | None = None
    is_new_state: bool = False
    timestamp: float = field(default_factory=time.time)


@dataclass
class StateHistory:
    """Copy of everything a tracker has recorded."""

    states: dict[str, StateFingerprint]
    transitions: list[StateTransition]
    visit_counts: dict[str, int]


def hash_url(url: str) -> str:
    """Hash path and query of ``url``; the origin is ignored."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return short_hash(url)
    if not parsed.scheme:
        return short_hash(url)
    search = f"?{parsed.query}" if parsed.query else ""
    return short_hash((parsed.path or "/") + search)


def build_fingerprint(
    url: str,
    dom_structure: str,
    visible_text: str,
    form_state: str,
    dialog_state: str,
    auth_state: str = "",
) -> StateFingerprint:
    """Hash raw page extracts into a fingerprint."""
    url_hash = hash_url(url)
    dom_hash = short_hash(dom_structure)
    form_hash = short_hash(form_state)
    dialog_hash = short_hash(dialog_state)

    return StateFingerprint(
        url_hash=url_hash,
        dom_structure_hash=dom_hash,
        visible_text_hash=short_hash(visible_text),
        form_state_hash=form_hash,
        dialog_state_hash=dialog_hash,
        combined_hash=short_hash("|".join([url_hash, dom_hash, form_hash, dialog_hash])),
        auth_state_id=auth_state or None,
    )


async def _eval_or_default(driver: BrowserDriver, script: str, default: str) -> str:
    try:
        return await driver.eval(script)
    except Exception as e:
        logger.debug(f"Fingerprint script failed, using default: {e}")
        return default


async def capture_state_fingerprint(driver: BrowserDriver, url: str) -> StateFingerprint:
    """
    Capture a fingerprint of the current page.

    Each extraction script degrades to an empty value on failure, so
    this never raises for page-level problems.

    Args:
        driver: Browser driver positioned on the page
        url: Current page URL

    Returns:
        Fingerprint of the current state
    """
    dom = await _eval_or_default(driver, scripts.DOM_STRUCTURE_SCRIPT, "")
    text = await _eval_or_default(driver, scripts.VISIBLE_TEXT_SCRIPT, "")
    forms = await _eval_or_default(driver, scripts.FORM_STATE_SCRIPT, "{}")
    dialogs = await _eval_or_default(driver, scripts.DIALOG_STATE_SCRIPT, "[]")
    auth = await _eval_or_default(driver, scripts.AUTH_STATE_SCRIPT, "")
    return build_fingerprint(url, dom, text, forms, dialogs, auth)


def fingerprint_similarity(a: StateFingerprint, b: StateFingerprint) -> float:
    """
    Fraction of identity components (url, dom, form, dialog) that match.

    Returns:
        0.0, 0.25, 0.5, 0.75 or 1.0
    """
    matches = sum(
        [
            a.url_hash == b.url_hash,
            a.dom_structure_hash == b.dom_structure_hash,
            a.form_state_hash == b.form_state_hash,
            a.dialog_state_hash == b.dialog_state_hash,
        ]
    )
    return matches / 4


class StateTracker:
    """
    Records which states have been seen and how often.

    Example:
        >>> tracker = StateTracker()
        >>> fp = await capture_state_fingerprint(driver, url)
        >>> if tracker.record_state(fp):
        ...     print("new state")
    """

    def __init__(self) -> None:
        self._states: dict[str, StateFingerprint] = {}
        self._visit_counts: dict[str, int] = {}
        self._transitions: list[StateTransition] = []

    def record_state(self, fingerprint: StateFingerprint) -> bool:
        """
        Record a visit to a state.

        The visit counter is incremented on every call.

        Returns:
            True if the state had not been seen before
        """
        key = fingerprint.combined_hash
        is_new = key not in self._states

        if is_new:
            self._states[key] = fingerprint
            self._visit_counts[key] = 1
            logger.debug(f"New state recorded: {key}")
        else:
            self._visit_counts[key] += 1

        return is_new

    def record_transition(
        self,
        from_state: StateFingerprint,
        to_state: StateFingerprint,
        action_type: str,
        selector: str | None = None,
        value: str | None = None,
    ) -> StateTransition:
        """
        Record a transition and the visit to its target state.

        ``is_new_state`` reflects novelty before the target is recorded.
        """
        is_new_state = to_state.combined_hash not in self._states
        self.record_state(to_state)

        transition = StateTransition(
            from_state=from_state,
            to_state=to_state,
            action_type=action_type,
            selector=selector,
            value=value,
            is_new_state=is_new_state,
        )
        self._transitions.append(transition)
        return transition

    def is_visited(self, fingerprint: StateFingerprint) -> bool:
        return fingerprint.combined_hash in self._states

    def get_visit_count(self, fingerprint: StateFingerprint) -> int:
        return self._visit_counts.get(fingerprint.combined_hash, 0)

    def get_unique_states(self) -> list[StateFingerprint]:
        return list(self._states.values())

    def get_unique_state_count(self) -> int:
        return len(self._states)

    def get_history(self) -> StateHistory:
        """Return copies of states, transitions and visit counts."""
        return StateHistory(
            states=dict(self._states),
            transitions=list(self._transitions),
            visit_counts=dict(self._visit_counts),
        )

    def get_stats(self) -> dict[str, Any]:
        return {
            "unique_states": len(self._states),
            "total_visits": sum(self._visit_counts.values()),
            "transitions": len(self._transitions),
            "new_state_transitions": sum(1 for t in self._transitions if t.is_new_state),
        }

    def reset(self) -> None:
        self._states.clear()
        self._visit_counts.clear()
        self._transitions.clear()
