"""
Test suite for the Session Store

This module tests the in-memory session store to ensure:
- Sessions are created fully formed with defaults
- Expiry is enforced on read and by the sweep
- Message history keeps only the most recent 20 messages
- Skills are de-duplicated case-insensitively
- Concurrent appends are never lost
- The background sweep task starts and stops cleanly

Run tests with: pytest backend/tests/test_session_store.py -v
"""

import asyncio
import threading

import pytest

from models import Contact, Methodology, ParsedResume, Skill
from services.bullet_scorer import create_scored_bullet
from services.session_store import SessionStore, get_session_store, reset_session_store


@pytest.fixture
def bullet_factory():
    def create_bullet(company="Acme", title="Engineer", text="Did a thing"):
        return create_scored_bullet(company, title, text)

    return create_bullet


class TestSessionLifecycle:
    """Create / get / expiry behaviour."""

    def test_create_initializes_every_field(self, store, fake_clock):
        session = store.create("s1")

        assert session.id == "s1"
        assert session.resume is None
        assert session.messages == []
        assert session.bullets == []
        assert session.skills == []
        assert session.methodology is Methodology.OPEN
        assert session.createdAt == fake_clock.now
        assert session.expiresAt == fake_clock.now + 3600

    def test_create_overwrites_existing(self, store):
        store.append_message("s1", "user", "hello")
        store.create("s1")

        assert store.get_messages("s1") == []

    def test_get_unknown_returns_none(self, store):
        assert store.get("missing") is None

    def test_get_or_create(self, store):
        created = store.get_or_create("s1")
        again = store.get_or_create("s1")

        assert created is again
        assert store.count() == 1

    def test_expired_session_removed_on_get(self, store, fake_clock):
        store.create("s1")
        fake_clock.advance(3601)

        assert store.count() == 1, "Expiry is lazy until read or sweep"
        assert store.get("s1") is None
        assert store.count() == 0

    def test_session_alive_at_exact_ttl(self, store, fake_clock):
        store.create("s1")
        fake_clock.advance(3600)

        assert store.get("s1") is not None

    def test_expired_session_recreated_by_append(self, store, fake_clock):
        store.append_message("s1", "user", "old")
        fake_clock.advance(3601)
        store.append_message("s1", "user", "new")

        assert [m.content for m in store.get_messages("s1")] == ["new"]

    def test_delete(self, store):
        store.create("s1")

        assert store.delete("s1") is True
        assert store.delete("s1") is False


class TestSweep:
    """Tests for sweep()."""

    def test_sweep_removes_only_expired(self, store, fake_clock):
        store.create("a")
        store.create("b")
        fake_clock.advance(1800)
        store.create("c")
        fake_clock.advance(1801)

        assert store.sweep() == 2
        assert store.count() == 1
        assert store.get("c") is not None

    def test_sweep_is_idempotent(self, store, fake_clock):
        store.create("a")
        fake_clock.advance(3601)

        assert store.sweep() == 1
        assert store.sweep() == 0

    @pytest.mark.asyncio
    async def test_background_sweep_runs_and_stops(self, fake_clock):
        store = SessionStore(sweep_interval_seconds=0.01, clock=fake_clock)
        store.create("a")
        fake_clock.advance(7200)

        store.start()
        await asyncio.sleep(0.1)
        await store.stop()

        assert store.count() == 0
        assert store._sweep_task is None

    @pytest.mark.asyncio
    async def test_stop_without_start(self, store):
        await store.stop()


class TestMessages:
    """Tests for append_message() / get_messages()."""

    def test_history_capped_to_last_twenty(self, store):
        for i in range(25):
            store.append_message("s1", "user" if i % 2 == 0 else "assistant", f"msg {i}")

        messages = store.get_messages("s1")

        assert len(messages) == 20
        assert [m.content for m in messages] == [f"msg {i}" for i in range(5, 25)]

    def test_get_messages_unknown_session(self, store):
        assert store.get_messages("missing") == []

    def test_get_messages_returns_copy(self, store):
        store.append_message("s1", "user", "hello")
        store.get_messages("s1").clear()

        assert len(store.get_messages("s1")) == 1


class TestResumeAndMethodology:

    def test_set_resume(self, store):
        resume = ParsedResume(contact=Contact(name="Ada"))
        store.set_resume("s1", resume)

        assert store.get("s1").resume.contact.name == "Ada"

    def test_set_methodology_accepts_aliases(self, store):
        store.set_methodology("s1", "star")
        assert store.get("s1").methodology is Methodology.STAR

        store.set_methodology("s1", "challenge-action-result")
        assert store.get("s1").methodology is Methodology.CAR

    def test_set_methodology_rejects_unknown(self, store):
        with pytest.raises(ValueError):
            store.set_methodology("s1", "haiku")


class TestBulletsAndSkills:

    def test_append_bullet_allows_duplicates(self, store, bullet_factory):
        store.append_bullet("s1", bullet_factory(text="Same"))
        store.append_bullet("s1", bullet_factory(text="Same"))

        assert len(store.get_bullets("s1")) == 2

    def test_remove_bullet_keeps_other_scores(self, store, bullet_factory):
        first = bullet_factory(text="Improved checkout performance by 40%")
        second = bullet_factory(text="Did a thing")
        store.append_bullet("s1", first)
        store.append_bullet("s1", second)

        assert store.remove_bullet("s1", second.id) is True
        assert store.remove_bullet("s1", second.id) is False
        remaining = store.get_bullets("s1")
        assert [b.id for b in remaining] == [first.id]
        assert remaining[0].score == first.score

    def test_update_bullet_text_rescores(self, store, bullet_factory):
        bullet = bullet_factory(text="Did a thing")
        store.append_bullet("s1", bullet)

        edited = store.update_bullet_text("s1", bullet.id, "Improved checkout performance by 40%")

        assert edited.id == bullet.id
        assert edited.score == 4
        assert edited.isStrong is True
        assert store.get_bullets("s1")[0].text == "Improved checkout performance by 40%"

    def test_update_unknown_bullet(self, store):
        assert store.update_bullet_text("s1", "nope", "text") is None

    def test_skill_dedup_case_insensitive(self, store):
        added = [
            store.append_skill("s1", Skill(name="Python")),
            store.append_skill("s1", Skill(name="python")),
            store.append_skill("s1", Skill(name="PYTHON")),
        ]

        assert added == [True, False, False]
        skills = store.get_skills("s1")
        assert len(skills) == 1
        assert skills[0].name == "Python"

    def test_unknown_session_collections_empty(self, store):
        assert store.get_bullets("missing") == []
        assert store.get_skills("missing") == []
        assert store.count() == 0


class TestConcurrency:

    def test_concurrent_appends_are_not_lost(self, store, bullet_factory):
        def worker(n):
            for i in range(50):
                store.append_bullet("shared", bullet_factory(text=f"bullet {n}-{i}"))
                store.append_skill("shared", Skill(name=f"skill-{n}-{i}"))

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(store.get_bullets("shared")) == 400
        assert len(store.get_skills("shared")) == 400

    def test_sweep_racing_appends_does_not_crash(self, store, fake_clock):
        store.create("s1")
        fake_clock.advance(3601)

        def appender():
            for i in range(100):
                store.append_message("s1", "user", f"m{i}")

        def sweeper():
            for _ in range(100):
                store.sweep()

        threads = [threading.Thread(target=appender), threading.Thread(target=sweeper)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(store.get_messages("s1")) == 20


class TestSingleton:

    def test_get_and_reset(self):
        reset_session_store()
        first = get_session_store()

        assert get_session_store() is first
        reset_session_store()
        assert get_session_store() is not first
        reset_session_store()
