"""Tests for the id generator."""
import threading

import pytest

from notesflow.models.identity import IdGenerator, generate_id


class TestIdGenerator:
    """Tests for IdGenerator."""

    def test_format(self):
        """Ids are <prefix>-<millis>-<counter>."""
        gen = IdGenerator("note", clock=lambda: 1718035200000)
        assert gen.next() == "note-1718035200000-000001"
        assert gen.next() == "note-1718035200000-000002"

    def test_same_millisecond_ids_differ(self):
        """A frozen clock still yields distinct ids."""
        gen = IdGenerator(clock=lambda: 42)
        ids = {gen.next() for _ in range(1000)}
        assert len(ids) == 1000

    def test_clock_going_backwards_keeps_ids_unique(self):
        """The counter keeps ids unique when the wall clock steps back."""
        ticks = iter([2000, 1000, 2000])
        gen = IdGenerator(clock=lambda: next(ticks))
        ids = [gen.next() for _ in range(3)]
        assert len(set(ids)) == 3
        assert ids[0] != ids[2]

    def test_prefix(self):
        assert IdGenerator("folder").next().startswith("folder-")
        assert IdGenerator("folder").prefix == "folder"

    @pytest.mark.parametrize("prefix", ["", "   ", "my-note"])
    def test_invalid_prefix_rejected(self, prefix):
        with pytest.raises(ValueError):
            IdGenerator(prefix)

    def test_concurrent_generation_is_unique(self):
        """Threads sharing a generator never receive the same id."""
        gen = IdGenerator(clock=lambda: 0)
        results = []
        lock = threading.Lock()

        def worker():
            local = [gen.next() for _ in range(200)]
            with lock:
                results.extend(local)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(results) == 1600
        assert len(set(results)) == 1600


class TestGenerateId:
    """Tests for the process-wide generate_id()."""

    def test_default_prefix_is_note(self):
        assert generate_id().startswith("note-")

    def test_ids_never_repeat(self):
        ids = [generate_id() for _ in range(500)]
        assert len(set(ids)) == 500

    def test_counter_increases(self):
        first = int(generate_id().rsplit("-", 1)[1])
        second = int(generate_id().rsplit("-", 1)[1])
        assert second > first

    def test_new_prefix_gets_its_own_generator(self):
        assert generate_id("draft").startswith("draft-")

    def test_ids_are_never_empty(self):
        assert generate_id() != ""
