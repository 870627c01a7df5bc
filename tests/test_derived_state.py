import asyncio

from domain.models import Assignment, Shift, ShowInstance
from domain.roster_cache import RosterCache
from services.derived_state import DerivedStateMaintainer

DAY = "2024-01-02"


def _cache_with_shows(*show_ids):
    cache = RosterCache()
    cache.replace_shows(ShowInstance(sid, DAY, "19:00:00", order) for order, sid in enumerate(show_ids, start=1))
    return cache


def _maintainer(cache, writes, max_shows=4):
    def write(work_date, crew_id, start, end, note):
        writes.append((work_date, crew_id, start, end, note))
        return True

    return DerivedStateMaintainer(cache, write, note="Full Day", max_shows=max_shows)


def test_covered_day_gets_note_and_keeps_times():
    cache = _cache_with_shows(1, 2)
    cache.put_assignment(Assignment(DAY, 1, 11, True, 7))
    cache.put_assignment(Assignment(DAY, 2, 11, True, 8))
    cache.put_shift(Shift(DAY, 11, "13:45:00", "21:45:00"))
    writes = []
    maintainer = _maintainer(cache, writes)

    maintainer.touch(DAY, 11)
    assert maintainer.run() == 1
    assert writes == [(DAY, 11, "13:45:00", "21:45:00", "Full Day")]
    assert maintainer.touched == set()


def test_untracked_show_or_no_shows_means_no_write():
    cache = _cache_with_shows(1, 2)
    cache.put_assignment(Assignment(DAY, 1, 11, True, 7))
    cache.put_assignment(Assignment(DAY, 2, 11, True, None))
    writes = []
    maintainer = _maintainer(cache, writes)

    assert maintainer.run([(DAY, 11), ("2024-01-03", 11)]) == 0
    assert writes == []


def test_existing_note_is_not_rewritten():
    cache = _cache_with_shows(1)
    cache.put_assignment(Assignment(DAY, 1, 11, True, 7))
    cache.put_shift(Shift(DAY, 11, None, None, "Full Day"))
    writes = []

    assert _maintainer(cache, writes).run([(DAY, 11)]) == 0
    assert writes == []


def test_only_first_shows_up_to_limit_count():
    cache = _cache_with_shows(1, 2, 3)
    cache.put_assignment(Assignment(DAY, 1, 11, True, 7))
    cache.put_assignment(Assignment(DAY, 2, 11, True, 7))
    writes = []

    assert _maintainer(cache, writes, max_shows=2).run([(DAY, 11)]) == 1


def test_second_pass_through_session_writes_nothing(make_session, gateway):
    gateway.add_show(1, DAY, "14:00:00", sort_order=1)
    gateway.add_show(2, DAY, "19:00:00", sort_order=2)

    async def scenario():
        session = make_session()
        await session.load()
        session.assign_crew_to_track(DAY, 11, 1, 7)
        session.assign_crew_to_track(DAY, 11, 2, 7)
        maintainer = session.maintainer

        assert maintainer.run([(DAY, 11)]) == 1
        pending = len(session.buffer)
        assert maintainer.run([(DAY, 11)]) == 0
        assert len(session.buffer) == pending
        assert session.get_shift(DAY, 11).day_note == "Full Day"

    asyncio.run(scenario())
