from leadflow.models import Lead
from leadflow.tasks import workflow_tasks
from leadflow.tasks.celery_app import celery_app, health_check


def test_sweep_task_reports_counters(monkeypatch, session_factory, make_lead, agent, other_agent):
    # Assigned at a fixed instant in the past, so overdue by the system clock
    lead = make_lead()
    monkeypatch.setattr(workflow_tasks, "get_db_session", session_factory)

    result = workflow_tasks.reassign_overdue_leads()

    assert result["status"] == "success"
    assert result["checked"] == 1
    assert result["reassigned"] == 1
    assert result["lead_ids"] == [str(lead.id)]

    session = session_factory()
    try:
        assert session.get(Lead, lead.id).owner_agent_id == other_agent.id
    finally:
        session.close()


def test_sweep_is_scheduled_on_its_own_queue():
    schedule = celery_app.conf.beat_schedule["sla-sweep"]
    assert schedule["task"] == "leadflow.tasks.workflow_tasks.reassign_overdue_leads"
    route = celery_app.conf.task_routes[schedule["task"]]
    assert route["queue"] == "workflow.sweeps"


def test_worker_health_check():
    assert health_check() == {"status": "healthy", "worker": True}
