"""
Setup Agent Roster
==================
Creates the workflow tables (if missing) and adds agents to the roster the
SLA sweep hands overdue leads to.

Usage:
    python backend/scripts/setup_agents.py --agent "Sara Khan:sara@agency.ae" --agent "Omar Ali:omar@agency.ae"
    python backend/scripts/setup_agents.py --deactivate omar@agency.ae
    python backend/scripts/setup_agents.py --list

Flags:
    --agent       "NAME:EMAIL"  Add (or reactivate) an agent. Repeatable.
    --deactivate  EMAIL         Remove an agent from the SLA rotation. Repeatable.
    --list                      Print the roster with open-lead counts.
    --skip-create               Do not create missing tables.
"""

import argparse
import sys

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from leadflow.core.config import settings
from leadflow.core.database import SessionLocal, init_db
from leadflow.core.transactions import transaction
from leadflow.models.agent import Agent
from leadflow.models.lead import Lead, TERMINAL_STAGES


def parse_agent(value: str) -> tuple:
    """
    Split "NAME:EMAIL" into (name, email).

    Examples:
        "Sara Khan:sara@agency.ae" -> ("Sara Khan", "sara@agency.ae")
        "sara@agency.ae"           -> ("Sara", "sara@agency.ae")
    """
    if ":" in value:
        name, email = value.rsplit(":", 1)
        return name.strip(), email.strip().lower()
    email = value.strip().lower()
    return email.split("@")[0].split(".")[0].capitalize(), email


def print_roster(db) -> None:
    open_leads = (
        db.query(Lead.owner_agent_id, func.count(Lead.id))
        .filter(Lead.stage.not_in(list(TERMINAL_STAGES)))
        .group_by(Lead.owner_agent_id)
        .all()
    )
    counts = {agent_id: count for agent_id, count in open_leads}

    agents = db.query(Agent).order_by(Agent.created_at).all()
    if not agents:
        print("  (no agents)")
        return
    for agent in agents:
        state = "active" if agent.is_active else "inactive"
        print(f"  {agent.id}  {agent.name:<24} {agent.email or '-':<32} {state:<9} open={counts.get(agent.id, 0)}")


def main():
    parser = argparse.ArgumentParser(
        description="Manage the LeadFlow agent roster."
    )
    parser.add_argument(
        "--agent",
        action="append",
        default=[],
        help='Agent to add as "NAME:EMAIL" (repeatable)',
    )
    parser.add_argument(
        "--deactivate",
        action="append",
        default=[],
        help="Email of an agent to take out of the SLA rotation (repeatable)",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="Print the roster",
    )
    parser.add_argument(
        "--skip-create",
        action="store_true",
        help="Do not create missing tables",
    )
    args = parser.parse_args()

    print("=" * 60)
    print("  SETUP AGENT ROSTER")
    print("=" * 60)
    print()

    if not args.skip_create:
        print("1. Creating missing tables...")
        try:
            init_db()
            print("  [OK] Tables ready")
        except SQLAlchemyError as e:
            print(f"  [FAIL] Could not create tables: {e}")
            sys.exit(1)

    db = SessionLocal()
    try:
        if args.agent or args.deactivate:
            print("\n2. Updating roster...")
            with transaction(db):
                for value in args.agent:
                    name, email = parse_agent(value)
                    agent = db.query(Agent).filter(Agent.email == email).first()
                    if agent is None:
                        db.add(Agent(name=name, email=email, is_active=True))
                        print(f"  [OK] Added {name} <{email}>")
                    else:
                        agent.name = name
                        agent.is_active = True
                        print(f"  [OK] Reactivated {name} <{email}>")

                for email in args.deactivate:
                    email = email.strip().lower()
                    agent = db.query(Agent).filter(Agent.email == email).first()
                    if agent is None:
                        print(f"  [SKIP] No agent with email {email}")
                        continue
                    agent.is_active = False
                    print(f"  [OK] Deactivated {agent.name} <{email}>")

        if args.list or not (args.agent or args.deactivate):
            print(f"\nRoster ({settings.environment}):")
            print_roster(db)
    except SQLAlchemyError as e:
        print(f"  [FAIL] Database error: {e}")
        sys.exit(1)
    finally:
        db.close()

    print()
    print("=" * 60)
    print("  DONE")
    print("=" * 60)


if __name__ == "__main__":
    main()
