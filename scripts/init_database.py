import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1] / "src" / "backend"
if str(ROOT_DIR) not in sys.path:
    sys.path.append(str(ROOT_DIR))

from leadms.db.postgres import get_cursor
from leadms.db.schema import init_crm_tables

EXPECTED_TABLES = ("leads", "followup_conversations", "attachments")


def _assert_tables(cur):
    cur.execute(
        """
        SELECT table_name
        FROM information_schema.tables
        WHERE table_schema = 'public' AND table_name = ANY(%s)
        """,
        (list(EXPECTED_TABLES),),
    )
    found = {row["table_name"] for row in cur.fetchall()}
    missing = [name for name in EXPECTED_TABLES if name not in found]
    if missing:
        raise SystemExit(f"Tables missing after initialisation: {', '.join(missing)}")


def main():
    init_crm_tables()
    with get_cursor() as (_, cur):
        _assert_tables(cur)
    print("CRM tables are ready.")


if __name__ == "__main__":
    main()
