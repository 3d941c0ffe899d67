import argparse
import json
import logging
from pathlib import Path
import sys

if __package__ is None or __package__ == "":
    sys.path.append(str(Path(__file__).resolve().parents[1]))

from app.schemas.push import PushNotificationRequest
from app.services.push import PushService
from app.services.push_types import PushDispatchError


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Send a push notification through the dispatch core.")
    parser.add_argument("--title", required=True)
    parser.add_argument("--body", required=True)
    parser.add_argument("--image")
    parser.add_argument("--token", action="append", default=[], help="explicit FCM token, repeatable")
    parser.add_argument("--user-id", action="append", default=[], dest="user_ids")
    parser.add_argument("--role", action="append", default=[], type=int, dest="roles")
    parser.add_argument("--department", action="append", default=[], dest="departments")
    parser.add_argument("--broadcast", action="store_true")
    parser.add_argument("--type", dest="notification_type", default="info")
    parser.add_argument("--url", default="/")
    parser.add_argument("--priority", choices=("high", "normal"), default="high")
    parser.add_argument("--collapse-key")
    parser.add_argument("--ttl", type=int)
    return parser.parse_args()


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    args = parse_args()
    request = PushNotificationRequest(
        tokens=args.token,
        user_ids=args.user_ids,
        roles=args.roles,
        departments=args.departments,
        broadcast=args.broadcast,
        notification={"title": args.title, "body": args.body, "image": args.image},
        data={"type": args.notification_type, "url": args.url},
        options={"priority": args.priority, "ttl": args.ttl, "collapse_key": args.collapse_key},
    )
    try:
        response = PushService().send(request)
    except PushDispatchError as exc:
        print(json.dumps({"success": False, "error": str(exc)}, ensure_ascii=False))
        return 1
    print(json.dumps(response.model_dump(exclude_none=True), ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
