"""
Tests for state fingerprinting and the state tracker.
"""

import pytest

from tests.conftest import BASE_URL, FakeBrowser, FakePage
from ui_explorer.browser import scripts
from ui_explorer.core.exceptions import ActionError
from ui_explorer.exploration.state import (
    StateTracker,
    build_fingerprint,
    capture_state_fingerprint,
    fingerprint_similarity,
    hash_url,
)


def fingerprint(url: str = BASE_URL, dom: str = "<div>", text: str = "", forms: str = "{}"):
    return build_fingerprint(url, dom, text, forms, "[]")


class TestFingerprint:
    """Tests for fingerprint identity."""

    def test_visible_text_excluded_from_identity(self):
        """Changing copy alone does not create a new state."""
        a = fingerprint(text="Only 3 left!")
        b = fingerprint(text="Only 2 left!")

        assert a.visible_text_hash != b.visible_text_hash
        assert a == b
        assert a.combined_hash == b.combined_hash

    def test_form_state_part_of_identity(self):
        """Filled form controls are a different state."""
        empty = fingerprint(forms="{}")
        filled = fingerprint(forms='{"#q": "shoes"}')

        assert empty != filled

    def test_url_origin_ignored(self):
        """Only path and query identify the URL component."""
        assert hash_url("https://a.test/cart?x=1") == hash_url("http://b.test/cart?x=1")
        assert hash_url("https://a.test/cart") != hash_url("https://a.test/cart?x=1")

    def test_empty_path_is_root(self):
        """A bare origin hashes like its root path."""
        assert hash_url("https://a.test") == hash_url("https://a.test/")

    def test_auth_state_recorded(self):
        """The auth marker is kept but optional."""
        fp = build_fingerprint(BASE_URL, "d", "", "{}", "[]", auth_state="user-42")
        assert fp.auth_state_id == "user-42"
        assert fingerprint().auth_state_id is None

    def test_similarity(self):
        """Similarity counts matching identity components."""
        a = fingerprint(dom="<div>")
        b = fingerprint(dom="<span>")

        assert fingerprint_similarity(a, a) == 1.0
        assert fingerprint_similarity(a, b) == 0.75

    def test_hashable(self):
        """Equal fingerprints collapse in sets."""
        assert len({fingerprint(text="a"), fingerprint(text="b")}) == 1


class TestCaptureFingerprint:
    """Tests for capturing fingerprints from a driver."""

    @pytest.mark.asyncio
    async def test_capture_from_page(self):
        """Different DOM structures give different states."""
        browser = FakeBrowser(
            [FakePage(url=BASE_URL, dom="<main>"), FakePage(url=BASE_URL + "b", dom="<nav>")],
            start_url=BASE_URL,
        )

        first = await capture_state_fingerprint(browser, BASE_URL)
        browser.current_url = BASE_URL + "b"
        second = await capture_state_fingerprint(browser, BASE_URL + "b")

        assert first != second

    @pytest.mark.asyncio
    async def test_script_failure_uses_defaults(self):
        """Failing extraction scripts degrade to empty values."""
        browser = FakeBrowser([FakePage(url=BASE_URL, dom="<main>")], start_url=BASE_URL)
        browser.eval_failures[scripts.DOM_STRUCTURE_SCRIPT] = ActionError("eval failed")

        fp = await capture_state_fingerprint(browser, BASE_URL)

        assert fp == build_fingerprint(BASE_URL, "", "", "{}", "[]")


class TestStateTracker:
    """Tests for StateTracker."""

    def test_record_state_reports_novelty(self):
        """Only the first visit is new; visits are counted."""
        tracker = StateTracker()
        fp = fingerprint()

        assert tracker.record_state(fp) is True
        assert tracker.record_state(fp) is False
        assert tracker.get_visit_count(fp) == 2
        assert tracker.get_unique_state_count() == 1

    def test_record_transition(self):
        """Transitions record the target state and its novelty."""
        tracker = StateTracker()
        home = fingerprint()
        cart = fingerprint(url=BASE_URL + "cart")
        tracker.record_state(home)

        first = tracker.record_transition(home, cart, "click", selector="#cart")
        second = tracker.record_transition(home, cart, "click", selector="#cart")

        assert first.is_new_state is True
        assert second.is_new_state is False
        assert tracker.is_visited(cart)
        assert tracker.get_visit_count(cart) == 2

    def test_history_is_a_copy(self):
        """Mutating returned history does not affect the tracker."""
        tracker = StateTracker()
        tracker.record_state(fingerprint())

        history = tracker.get_history()
        history.states.clear()
        history.transitions.append(None)

        assert tracker.get_unique_state_count() == 1
        assert tracker.get_history().transitions == []

    def test_stats_and_reset(self):
        """Stats summarize visits; reset clears everything."""
        tracker = StateTracker()
        home = fingerprint()
        tracker.record_state(home)
        tracker.record_transition(home, fingerprint(url=BASE_URL + "x"), "click")

        stats = tracker.get_stats()
        assert stats["unique_states"] == 2
        assert stats["total_visits"] == 2
        assert stats["new_state_transitions"] == 1

        tracker.reset()
        assert tracker.get_unique_state_count() == 0
