"""
Lead Qualification transcript replay CLI.

Usage:
    python -m lead_qualification transcript.txt
    python -m lead_qualification transcript.json --email jo@example.org --summary
    python -m lead_qualification - < transcript.txt

A transcript is either a text file with one user utterance per line
(blank lines and lines starting with '#' are skipped) or a JSON array of
strings or {"role", "content"} messages. Each turn's result is printed as
one JSON line.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List

from config.settings import get_settings

from .engine import QualificationEngine
from .errors import QualificationError
from .rate_limit import SessionRateLimiter

logger = logging.getLogger(__name__)


def load_transcript(source: str) -> List[str]:
    """Read user utterances from a transcript file, or stdin for '-'."""
    text = sys.stdin.read() if source == "-" else Path(source).read_text(encoding="utf-8")

    stripped = text.lstrip()
    if stripped.startswith("["):
        messages = json.loads(stripped)
        utterances = []
        for message in messages:
            if isinstance(message, str):
                utterances.append(message)
            elif isinstance(message, dict) and message.get("role", "user") == "user":
                utterances.append(str(message.get("content", "")))
        return utterances

    return [
        line.strip() for line in text.splitlines()
        if line.strip() and not line.strip().startswith("#")
    ]


def main():
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Replay a transcript through the lead qualification engine")
    parser.add_argument("transcript", help="Transcript file path, or '-' for stdin")
    parser.add_argument("--session-id", default="cli-session", help="Session id used for locking and rate limiting")
    parser.add_argument("--email", help="Seed the lead's email address")
    parser.add_argument("--name", help="Seed the lead's name")
    parser.add_argument("--organization-name", help="Seed the organization name")
    parser.add_argument("--organization-type", help="Seed the organization type")
    parser.add_argument("--summary", action="store_true", help="Print summary data after the last turn")
    parser.add_argument(
        "--log-level",
        default="DEBUG" if settings.debug else settings.log_level.upper(),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        utterances = load_transcript(args.transcript)
    except (OSError, ValueError) as e:
        logger.error(f"Could not read transcript {args.transcript}: {e}")
        sys.exit(1)

    # The whole transcript is replayed inside one rate limit window
    limiter = SessionRateLimiter(
        max_messages=max(len(utterances), 1),
        window_seconds=settings.rate_limit_window_seconds,
    )
    engine = QualificationEngine(settings=settings, rate_limiter=limiter)
    state = engine.start_session({
        "sessionId": args.session_id,
        "email": args.email,
        "name": args.name,
        "organizationName": args.organization_name,
        "organizationType": args.organization_type,
    })

    for utterance in utterances:
        try:
            result = engine.process_turn(args.session_id, state, utterance)
        except QualificationError as e:
            logger.error(f"Turn failed: {e}")
            sys.exit(2)
        state = result.state
        print(json.dumps({"utterance": utterance, **result.to_dict()}))

    if args.summary:
        print(json.dumps({"summary": engine.summary_data(state, message_count=len(utterances))}))

    logger.info(f"Replayed {len(utterances)} turns")


if __name__ == "__main__":
    main()
