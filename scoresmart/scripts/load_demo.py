"""
Demo Scenario Loader

Loads pre-configured demo scenarios for consistent presentations.
Usage: python -m scoresmart.scripts.load_demo --scenario weekly_schedule
"""
import asyncio
import argparse
from datetime import datetime, timedelta, timezone
from sqlalchemy import text

from scoresmart.database import AsyncSessionLocal, Base, engine
from scoresmart.models.tutor import Tutor
from scoresmart.services.feature_gate import SqlFeatureStore
from scoresmart.services.session_admin import SessionAdmin, SessionDraft
from scoresmart.services.session_catalog import SqlSessionCatalog
from scoresmart.services.session_types import Caller, CallerRole

DEMO_ADMIN = Caller(id="demo-admin", role=CallerRole.ADMIN)

DEMO_TUTORS = [
    ("tutor-maya", "Maya Chen", "maya.chen@scoresmart.example"),
    ("tutor-omar", "Omar Haddad", "omar.haddad@scoresmart.example"),
    ("tutor-lena", "Lena Fischer", "lena.fischer@scoresmart.example"),
]

DEMO_STUDENTS = {
    "student-ava": ["smart_quad", "masterclass"],
    "student-raj": ["smart_quad"],
    "student-kim": [],
}


async def clear_test_data():
    """Clear all existing data"""
    async with AsyncSessionLocal() as session:
        tables = ["session_enrollments", "sessions", "student_features", "tutors"]
        for table in tables:
            await session.execute(text(f"DELETE FROM {table}"))
        await session.commit()
    print("✓ Cleared existing data")


async def create_tutors():
    async with AsyncSessionLocal() as session:
        for tutor_id, name, email in DEMO_TUTORS:
            session.add(Tutor(id=tutor_id, name=name, email=email))
        await session.commit()
    print(f"  Created {len(DEMO_TUTORS)} tutors")


async def create_student_features():
    store = SqlFeatureStore(AsyncSessionLocal)
    for student_id, features in DEMO_STUDENTS.items():
        for feature_key in features:
            await store.set_feature(student_id, feature_key, True)
    print(f"  Configured feature flags for {len(DEMO_STUDENTS)} students")


async def schedule(admin: SessionAdmin, drafts):
    created = []
    for draft in drafts:
        outcome = await admin.create_session(DEMO_ADMIN, draft)
        if not outcome.ok:
            print(f"  ✗ {draft.title}: {outcome.error.message}")
            continue
        created.append(outcome.value)
    return created


async def load_weekly_schedule_scenario():
    """
    Load Weekly Schedule scenario.

    Scenario: Smart Quads and Masterclasses spread over the next 7 days
    across PTE, IELTS and TOEFL, with one of each session type today.
    """
    print("\nLoading Weekly Schedule scenario...")

    await create_tutors()
    await create_student_features()

    today = datetime.now(timezone.utc).replace(minute=0, second=0, microsecond=0)
    courses = ["PTE", "IELTS", "TOEFL"]
    drafts = []

    for day in range(7):
        for slot, (tutor_id, name, _) in enumerate(DEMO_TUTORS):
            start = today + timedelta(days=day, hours=2 + slot * 3)
            course = courses[(day + slot) % len(courses)]
            drafts.append(SessionDraft(
                title=f"{course} Smart Quad with {name.split()[0]}",
                session_type="SMART_QUAD",
                course_type=course,
                start_time=start,
                end_time=start + timedelta(minutes=90),
                tutor_id=tutor_id,
            ))

        start = today + timedelta(days=day, hours=12)
        course = courses[day % len(courses)]
        drafts.append(SessionDraft(
            title=f"{course} Masterclass: Exam Strategy",
            description="Timing, scoring rubric and common traps",
            session_type="MASTERCLASS",
            course_type=course,
            start_time=start,
            end_time=start + timedelta(hours=2),
            tutor_id=DEMO_TUTORS[day % len(DEMO_TUTORS)][0],
        ))

    start = today + timedelta(hours=3)
    drafts.append(SessionDraft(
        title="One-to-One Speaking Review",
        session_type="ONE_TO_ONE",
        start_time=start,
        end_time=start + timedelta(minutes=45),
        tutor_id="tutor-maya",
    ))

    admin = SessionAdmin(SqlSessionCatalog(AsyncSessionLocal))
    created = await schedule(admin, drafts)
    print(f"  Created {len(created)} sessions over the next 7 days")
    print("  ✓ Weekly Schedule scenario loaded")
    print("  Expected: student-ava sees quads and masterclasses, student-kim gets FeatureDisabled")


async def load_last_seat_scenario():
    """
    Load Last Seat scenario.

    Scenario: One Smart Quad tomorrow with 3 of 4 seats taken, for
    demonstrating SessionFull when two students race for the last seat.
    """
    print("\nLoading Last Seat scenario...")

    await create_tutors()
    await create_student_features()

    start = datetime.now(timezone.utc).replace(minute=0, second=0, microsecond=0) + timedelta(days=1)
    catalog = SqlSessionCatalog(AsyncSessionLocal)
    admin = SessionAdmin(catalog)
    created = await schedule(admin, [SessionDraft(
        title="PTE Smart Quad: Read Aloud",
        session_type="SMART_QUAD",
        course_type="PTE",
        start_time=start,
        end_time=start + timedelta(minutes=60),
        max_participants=4,
        tutor_id="tutor-omar",
    )])

    session_record = created[0]
    for i in range(3):
        await catalog.reserve_seat(
            session_record.id,
            f"student-seed-{i + 1}",
            f"enr_demo{i + 1:08d}",
            datetime.now(timezone.utc),
        )

    print(f"  Created session {session_record.id} with 3/4 seats taken")
    print("  ✓ Last Seat scenario loaded")
    print("  Expected: first join succeeds, second join returns 409 SessionFull")


async def load_scenario(scenario_name: str):
    """
    Load a demo scenario.

    Args:
        scenario_name: Name of scenario to load
    """
    scenarios = {
        "weekly_schedule": load_weekly_schedule_scenario,
        "last_seat": load_last_seat_scenario,
    }

    if scenario_name not in scenarios:
        print(f"ERROR: Unknown scenario '{scenario_name}'")
        print(f"Available scenarios: {', '.join(scenarios.keys())}")
        return

    # Ensure tables exist for a fresh local database
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Clear existing data
    await clear_test_data()

    # Load scenario
    await scenarios[scenario_name]()

    print(f"\n✅ Scenario '{scenario_name}' loaded successfully!")
    print("Demo is ready for presentation")


def main():
    """CLI entry point"""
    parser = argparse.ArgumentParser(description="Load demo scenarios")
    parser.add_argument(
        "--scenario",
        "-s",
        choices=["weekly_schedule", "last_seat"],
        required=True,
        help="Scenario to load"
    )

    args = parser.parse_args()
    asyncio.run(load_scenario(args.scenario))


if __name__ == "__main__":
    main()
