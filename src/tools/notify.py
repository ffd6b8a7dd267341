"""
Notification resend tool.

Completion notifications are never retried automatically. This tool runs the
dispatcher again for one record, using the same settings as the server:

    python -m src.tools.notify [IDENTITY]

Without an identity the most recently created record is used.

Exit codes: 0 sent, 1 notification failed, 2 no matching record.
"""

import argparse
import asyncio
import logging
import sys

from src.config.settings import Settings, get_settings
from src.services.bootstrap import build_runtime_container

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_NO_RECORD = 2


async def resend(settings: Settings, identity: str | None = None) -> int:
    container = build_runtime_container(settings)
    await container.ledger.start()
    try:
        if identity is None:
            records = await container.ledger.load_all()
            if not records:
                logger.info("No submissions recorded yet")
                return EXIT_NO_RECORD
            identity = records[-1].identity
        elif await container.ledger.find_by_identity(identity) is None:
            logger.error("No submission for identity %s", identity)
            return EXIT_NO_RECORD

        logger.info("Sending notification for identity %s", identity)
        sent = await container.dispatcher.notify(identity)
    finally:
        await container.ledger.close()

    return EXIT_OK if sent else EXIT_FAILED


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Resend the completion notification for a submission.")
    parser.add_argument("identity", nargs="?", help="Submission identity (default: most recent)")
    args = parser.parse_args(argv)

    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    return asyncio.run(resend(settings, args.identity))


if __name__ == "__main__":
    sys.exit(main())
