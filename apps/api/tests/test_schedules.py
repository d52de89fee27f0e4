from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.future import select

from conftest import ADMIN_HEADER, USER_A, USER_A_HEADER, USER_A_ID, USER_B_HEADER
from models.execution_log import ExecutionLog
from models.schedule import Schedule
from services.schedules import compute_next_run, create_schedule, list_schedules, set_schedule_active


def test_compute_next_run_intervals():
    start = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)
    assert compute_next_run("daily", start) == start + timedelta(days=1)
    assert compute_next_run("WEEKLY", start) == start + timedelta(days=7)
    assert compute_next_run("biweekly", start) == start + timedelta(days=14)
    assert compute_next_run("monthly", start) == datetime(2026, 11, 19, 8, 0, tzinfo=timezone.utc)
    assert compute_next_run("on-demand", start) is None


def test_monthly_clamps_to_last_day_and_rolls_year():
    assert compute_next_run("monthly", datetime(2027, 1, 31, tzinfo=timezone.utc)) == datetime(
        2027, 2, 28, tzinfo=timezone.utc
    )
    assert compute_next_run("monthly", datetime(2026, 12, 15, tzinfo=timezone.utc)) == datetime(
        2027, 1, 15, tzinfo=timezone.utc
    )


@pytest.mark.asyncio
async def test_create_schedule_rejects_on_demand(db_session):
    with pytest.raises(ValueError):
        await create_schedule(
            schedule_id="sched-x",
            user_id=USER_A_ID,
            industry="Retail",
            sub_niche="Grocery",
            frequency="on-demand",
            db=db_session,
        )


@pytest.mark.asyncio
async def test_create_schedule_sets_title_and_next_run(db_session):
    schedule = await create_schedule(
        schedule_id="sched-1",
        user_id=USER_A_ID,
        industry="Retail",
        sub_niche="Grocery",
        frequency="Daily",
        db=db_session,
    )
    assert schedule.title == "Retail - Grocery"
    assert schedule.frequency == "daily"
    assert schedule.geography == "Global"
    assert schedule.execution_count == 0
    assert schedule.next_run is not None

    listed = await list_schedules(USER_A, db_session, active_only=True)
    assert [item["schedule_id"] for item in listed] == ["sched-1"]


async def _seed_schedule(session_maker, schedule_id="sched-a"):
    async with session_maker() as session:
        await create_schedule(
            schedule_id=schedule_id,
            user_id=USER_A_ID,
            industry="Automotive",
            sub_niche="EV charging",
            frequency="weekly",
            db=session,
        )


@pytest.mark.asyncio
async def test_pause_and_resume_schedule(api_client):
    client, session_maker = api_client
    await _seed_schedule(session_maker)

    paused = await client.post("/schedules/sched-a/pause", headers=USER_A_HEADER)
    assert paused.status_code == 200
    assert paused.json()["schedule"]["active"] is False

    active = (await client.get("/schedules/active", headers=USER_A_HEADER)).json()
    assert active["total"] == 0
    everything = (await client.get("/schedules", headers=USER_A_HEADER)).json()
    assert everything["total"] == 1

    resumed = await client.post("/schedules/sched-a/resume", headers=USER_A_HEADER)
    assert resumed.status_code == 200
    assert resumed.json()["schedule"]["active"] is True
    assert resumed.json()["schedule"]["next_run"] is not None


@pytest.mark.asyncio
async def test_schedules_are_scoped_to_owner(api_client):
    client, session_maker = api_client
    await _seed_schedule(session_maker)

    other = await client.post("/schedules/sched-a/pause", headers=USER_B_HEADER)
    assert other.status_code == 404
    assert (await client.get("/schedules", headers=USER_B_HEADER)).json()["total"] == 0
    assert (await client.get("/schedules", headers=ADMIN_HEADER)).json()["total"] == 1


@pytest.mark.asyncio
async def test_deleting_schedule_keeps_reports(api_client):
    client, session_maker = api_client
    await _seed_schedule(session_maker)
    async with session_maker() as session:
        now = datetime.now(timezone.utc)
        session.add(
            ExecutionLog(
                execution_id="exec_1_keep",
                schedule_id="sched-a",
                user_id=USER_A_ID,
                industry="Automotive",
                sub_niche="EV charging",
                frequency="weekly",
                run_at=now,
                is_first_run=True,
                final_report="kept",
                status="success",
                created_at=now,
            )
        )
        await session.commit()

    response = await client.delete("/schedules/sched-a", headers=USER_A_HEADER)
    assert response.status_code == 200

    async with session_maker() as session:
        assert (await session.execute(select(Schedule))).scalars().all() == []
        report = (await session.execute(select(ExecutionLog))).scalar_one()
        assert report.schedule_id == "sched-a"


@pytest.mark.asyncio
async def test_pause_returns_fully_loaded_schedule(db_session):
    created = await create_schedule(
        schedule_id="sched-loaded",
        user_id=USER_A_ID,
        industry="Energy",
        sub_niche="Solar",
        frequency="weekly",
        db=db_session,
    )
    assert created.to_dict()["created_at"] is not None

    paused = await set_schedule_active(USER_A, "sched-loaded", False, db_session)
    assert paused["active"] is False
    assert paused["updated_at"] is not None

    resumed = await set_schedule_active(USER_A, "sched-loaded", True, db_session)
    assert resumed["active"] is True
    assert resumed["next_run"] is not None
