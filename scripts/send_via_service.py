"""Send the fixed test joke directly through the mail service.

Usage:
    python scripts/send_via_service.py [recipient]
"""

import argparse
import asyncio
import os
import sys

from mail_agent.config import settings
from mail_agent.core.logging import setup_logging
from mail_agent.exceptions import EmailSendError
from mail_agent.services.email_service import JOKE_SUBJECT, JOKE_TEXT, create_email_service


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Send a test email through SMTP")
    parser.add_argument("to", nargs="?", default=os.environ.get("SEND_TO"), help="Recipient address")
    return parser.parse_args()


async def main() -> int:
    args = parse_args()
    if not args.to:
        print("send-via-service failed: recipient required (argument or SEND_TO)", file=sys.stderr)
        return 2

    setup_logging()
    service = create_email_service(settings)
    try:
        message_id = await service.send(to=args.to, subject=JOKE_SUBJECT, text=JOKE_TEXT)
    except EmailSendError as e:
        print(f"send-via-service failed: {e.message}", file=sys.stderr)
        return 1
    print(f"Sent ok: {message_id}")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
