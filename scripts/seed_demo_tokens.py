import argparse
from pathlib import Path
import sys

from sqlalchemy import delete, select

if __package__ is None or __package__ == "":
    sys.path.append(str(Path(__file__).resolve().parents[1]))

from app.db.base import Base
from app.db.session import get_engine, get_session_factory
from app.models.device_token import DeviceToken
from app.models.user import ROLE_ADMIN, ROLE_SUPERVISOR, ROLE_TECHNICIAN, User

DEMO_PREFIX = "[DEMO]"

DEMO_USERS = (
    ("Admin", ROLE_ADMIN, "management"),
    ("Line supervisor", ROLE_SUPERVISOR, "production"),
    ("Technician A", ROLE_TECHNICIAN, "maintenance"),
    ("Technician B", ROLE_TECHNICIAN, "maintenance"),
)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create demo users with fake device registrations.")
    parser.add_argument("--create-schema", action="store_true", help="create tables before seeding")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    if args.create_schema:
        Base.metadata.create_all(bind=get_engine())

    session_factory = get_session_factory()
    with session_factory() as db:
        demo_ids = list(db.scalars(select(User.id).where(User.name.like(f"{DEMO_PREFIX}%"))).all())
        if demo_ids:
            db.execute(delete(DeviceToken).where(DeviceToken.user_id.in_(demo_ids)))
            db.execute(delete(User).where(User.id.in_(demo_ids)))

        for index, (name, role, department) in enumerate(DEMO_USERS):
            user = User(name=f"{DEMO_PREFIX} {name}", role=role, department=department)
            db.add(user)
            db.flush()
            for device_type in ("web", "android"):
                db.add(
                    DeviceToken(
                        user_id=user.id,
                        fcm_token=f"demo-{device_type}-token-{index:03d}",
                        device_type=device_type,
                        device_info={"seeded": True},
                    )
                )
        db.commit()
    print(f"Seeded {len(DEMO_USERS)} demo users with device tokens.")


if __name__ == "__main__":
    main()
