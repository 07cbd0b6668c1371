# scripts/seed_demo.py
import argparse
import sys
from pathlib import Path
# Ensure project root is importable when running from scripts/
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from datetime import date, timedelta

from assistant import analyze_content
from crud import create_child, list_children
from database import db_session, setup_database
from llm_handler import RuleBasedClassifier
from models import Event

CHILDREN = ("Alice", "Bob")


def sample_email(today: date) -> str:
    def d(n): return (today + timedelta(days=n)).strftime("%m/%d/%Y")
    # two lines on the same morning overlap on purpose (conflict demo)
    return "\n".join([
        f"Math homework due {d(1)} at 5:00 PM for Alice",
        f"Science test on {d(3)} at 9:00 AM",
        f"Parent-teacher conference {d(3)} 9:30 AM - 10:30 AM",
        f"Soccer practice {d(4)} at 4:00 PM for Bob",
        f"Field trip {d(8)}",
    ])


def main():
    parser = argparse.ArgumentParser(description="Seed demo children and events for one user.")
    parser.add_argument("--user", type=int, default=1, help="Owner (parent) user id (default 1)")
    parser.add_argument("--reset", action="store_true", help="Delete the user's events first")
    args = parser.parse_args()

    setup_database()
    today = date.today()
    with db_session() as db:
        if args.reset:
            print(f"Clearing events for user {args.user}…")
            db.query(Event).filter(Event.parent_id == args.user).delete(synchronize_session=False)
            db.commit()

        known = {c.name for c in list_children(db, args.user)}
        for name in CHILDREN:
            if name not in known:
                create_child(db, args.user, name)

        result = analyze_content(
            db,
            args.user,
            sample_email(today),
            classifier=RuleBasedClassifier(today=today),
            today=today,
        )
        print(
            f"Seed complete. Created {result.events_created} events, "
            f"skipped {result.skipped} already present."
        )
        for err in result.errors:
            print(f"  ! {err}")


if __name__ == "__main__":
    main()
