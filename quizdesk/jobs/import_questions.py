"""Load the question catalog from a JSON export: ``python -m quizdesk.jobs.import_questions questions.json``."""
import argparse
import json
import logging
import sys

from quizdesk.core.config import settings
from quizdesk.core.database import SessionLocal, init_db
from quizdesk.services.question_store import import_questions


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Import quiz questions into the database")
    parser.add_argument("path", help="JSON file with a list of question records")
    parser.add_argument("--append", action="store_true", help="keep existing questions instead of replacing them")
    args = parser.parse_args(argv)

    with open(args.path, encoding="utf-8") as fh:
        records = json.load(fh)

    init_db()
    with SessionLocal() as db:
        report = import_questions(db, records, replace=not args.append)
    print(f"imported={report.imported} failed={report.failed}")
    return 0 if report.imported else 1


if __name__ == "__main__":
    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL),
                        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    sys.exit(main())
