from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.future import select

from conftest import (
    ADMIN,
    ADMIN_HEADER,
    USER_A,
    USER_A_HEADER,
    USER_A_ID,
    USER_B,
    USER_B_HEADER,
    USER_B_ID,
)
from models.execution_log import ExecutionLog
from services.reports_query import (
    delete_report,
    get_report,
    list_reports,
    sort_view_models,
    to_view_model,
)


BASE_TIME = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


def _report(execution_id, user_id, industry, sub_niche, *, hours_ago=0, frequency="on-demand", schedule_id=None):
    run_at = BASE_TIME - timedelta(hours=hours_ago)
    return ExecutionLog(
        execution_id=execution_id,
        schedule_id=schedule_id,
        user_id=user_id,
        industry=industry,
        sub_niche=sub_niche,
        geography="Europe",
        email=f"{user_id}@example.com",
        notes="",
        frequency=frequency,
        run_at=run_at,
        is_first_run=True,
        final_report=f"<p>{industry} web</p>",
        email_report=None,
        status="success",
        created_at=run_at,
    )


async def _seed(session_maker):
    async with session_maker() as session:
        session.add_all(
            [
                _report("ondemand_1_a", USER_A_ID, "Healthcare", "Telemedicine", hours_ago=2),
                _report("exec_2_a", USER_A_ID, "Automotive", "EV charging", frequency="weekly", schedule_id="sched-a"),
                _report("ondemand_3_b", USER_B_ID, "Retail", "Grocery", hours_ago=1),
            ]
        )
        await session.commit()


@pytest.mark.asyncio
async def test_non_admin_sees_only_own_reports(session_maker, db_session):
    await _seed(session_maker)

    a_reports = await list_reports(USER_A, db_session)
    b_reports = await list_reports(USER_B, db_session)
    all_reports = await list_reports(ADMIN, db_session)

    assert [row.execution_id for row in a_reports] == ["exec_2_a", "ondemand_1_a"]
    assert [row.execution_id for row in b_reports] == ["ondemand_3_b"]
    assert [row.execution_id for row in all_reports] == ["exec_2_a", "ondemand_3_b", "ondemand_1_a"]


@pytest.mark.asyncio
async def test_schedule_filter_and_limit(session_maker, db_session):
    await _seed(session_maker)

    scheduled = await list_reports(ADMIN, db_session, schedule_id="sched-a")
    assert [row.execution_id for row in scheduled] == ["exec_2_a"]

    limited = await list_reports(ADMIN, db_session, limit=1)
    assert len(limited) == 1


@pytest.mark.asyncio
async def test_get_and_delete_are_scoped(session_maker, db_session):
    await _seed(session_maker)

    with pytest.raises(LookupError):
        await get_report(USER_A, "ondemand_3_b", db_session)
    with pytest.raises(LookupError):
        await delete_report(USER_A, "ondemand_3_b", db_session)

    await delete_report(ADMIN, "ondemand_3_b", db_session)
    remaining = (await db_session.execute(select(ExecutionLog.execution_id))).scalars().all()
    assert sorted(remaining) == ["exec_2_a", "ondemand_1_a"]


def test_view_model_projection_leaves_record_untouched():
    report = _report("exec_9", USER_A_ID, "Automotive", "EV charging", frequency="monthly", schedule_id="sched-a")
    view = to_view_model(report)

    assert view["id"] == "exec_9"
    assert view["scheduleId"] == "sched-a"
    assert view["title"] == "Automotive - EV charging"
    assert view["category"] == "Automotive"
    assert view["subNiche"] == "EV charging"
    assert view["dateGenerated"] == "October 19, 2026"
    assert view["type"] == "Recurring"
    assert view["webReport"] == "<p>Automotive web</p>"
    assert view["emailReport"] == "<p>Automotive web</p>"
    assert view["runAt"] == "2026-10-19T09:00:00+00:00"
    assert report.email_report is None


def test_sort_view_models_by_title_and_category():
    items = [
        {"title": "Retail - Grocery", "category": "Retail", "runAt": "2026-10-19T08:00:00+00:00"},
        {"title": "Automotive - EV", "category": "Automotive", "runAt": "2026-10-19T09:00:00+00:00"},
        {"title": "healthcare - Telemedicine", "category": "healthcare", "runAt": "2026-10-18T09:00:00+00:00"},
    ]

    by_title = sort_view_models(items, "title", "asc")
    assert [item["category"] for item in by_title] == ["Automotive", "healthcare", "Retail"]

    by_date = sort_view_models(items)
    assert [item["category"] for item in by_date] == ["Automotive", "Retail", "healthcare"]

    by_category_desc = sort_view_models(items, "category", "desc")
    assert [item["category"] for item in by_category_desc] == ["Retail", "healthcare", "Automotive"]
    assert items[0]["category"] == "Retail"


@pytest.mark.asyncio
async def test_reports_endpoint_requires_session(api_client):
    client, _ = api_client
    response = await client.get("/reports")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_reports_endpoint_isolates_users(api_client):
    client, session_maker = api_client
    await _seed(session_maker)

    a_response = await client.get("/reports", headers=USER_A_HEADER)
    assert a_response.status_code == 200
    a_body = a_response.json()
    assert a_body["success"] is True
    assert a_body["total"] == 2
    assert {item["id"] for item in a_body["reports"]} == {"ondemand_1_a", "exec_2_a"}

    b_body = (await client.get("/reports", headers=USER_B_HEADER)).json()
    assert [item["id"] for item in b_body["reports"]] == ["ondemand_3_b"]

    admin_body = (await client.get("/reports?sort=title&direction=asc", headers=ADMIN_HEADER)).json()
    assert [item["title"] for item in admin_body["reports"]] == [
        "Automotive - EV charging",
        "Healthcare - Telemedicine",
        "Retail - Grocery",
    ]


@pytest.mark.asyncio
async def test_report_detail_and_delete_endpoints(api_client):
    client, session_maker = api_client
    await _seed(session_maker)

    hidden = await client.get("/reports/ondemand_3_b", headers=USER_A_HEADER)
    assert hidden.status_code == 404
    assert hidden.json()["detail"]["error"] == "Report not found"

    own = await client.get("/reports/ondemand_1_a", headers=USER_A_HEADER)
    assert own.status_code == 200
    assert own.json()["report"]["type"] == "On-demand"

    deleted = await client.delete("/reports/ondemand_1_a", headers=USER_A_HEADER)
    assert deleted.status_code == 200
    missing = await client.get("/reports/ondemand_1_a", headers=USER_A_HEADER)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_schedule_reports_endpoint_counts_visible_executions(api_client):
    client, session_maker = api_client
    await _seed(session_maker)

    response = await client.get("/reports/schedule/sched-a", headers=USER_A_HEADER)
    assert response.status_code == 200
    body = response.json()
    assert body["total_executions"] == 1
    assert body["executions"][0]["execution_id"] == "exec_2_a"
    assert body["executions"][0]["email_report"] == "<p>Automotive web</p>"

    hidden = (await client.get("/reports/schedule/sched-a", headers=USER_B_HEADER)).json()
    assert hidden["total_executions"] == 0


@pytest.mark.asyncio
async def test_on_demand_save_rejects_cross_user_body(api_client):
    client, _ = api_client
    payload = {
        "user_id": USER_B_ID,
        "industry": "Retail",
        "sub_niche": "Grocery",
        "email": "a@example.com",
        "final_report": "<p>body</p>",
    }
    response = await client.post("/reports/on-demand", json=payload, headers=USER_A_HEADER)
    assert response.status_code == 403

    payload["user_id"] = USER_A_ID
    saved = await client.post("/reports/on-demand", json=payload, headers=USER_A_HEADER)
    assert saved.status_code == 200
    assert saved.json()["execution_id"].startswith("ondemand_")


@pytest.mark.asyncio
async def test_on_demand_save_reports_field_issues(api_client):
    client, _ = api_client
    response = await client.post(
        "/reports/on-demand",
        json={"user_id": USER_A_ID, "industry": "Retail", "sub_niche": 5, "final_report": ""},
        headers=USER_A_HEADER,
    )
    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["error"] == "Validation failed"
    assert [item["field"] for item in detail["validation_errors"]] == ["sub_niche", "email", "final_report"]
    assert detail["details"] == "sub_niche must be a string, email is required, final_report is required"
