"""QuestDB table DDL — creates the recommendation and calibration tables.

Idempotent: uses CREATE TABLE IF NOT EXISTS throughout.
Run directly: python -m pipelines.tradeeval_pipelines.utils.create_tables
"""

import psycopg2

from pipelines.tradeeval_pipelines.resources.questdb import QuestDBResource

# Written by the recommendation generator; read-only here.
TRADE_RECOMMENDATIONS = """
CREATE TABLE IF NOT EXISTS trade_recommendations (
    timestamp TIMESTAMP,
    market SYMBOL,
    price DOUBLE,
    action SYMBOL,
    confidence DOUBLE,
    raw_confidence DOUBLE,
    size_usd DOUBLE,
    timeframe SYMBOL,
    reasoning STRING,
    risk_factors STRING
) TIMESTAMP(timestamp) PARTITION BY MONTH;
"""

# Append-only; calibration_data holds the JSON-encoded curve points.
CONFIDENCE_CALIBRATIONS = """
CREATE TABLE IF NOT EXISTS confidence_calibrations (
    timestamp TIMESTAMP,
    id LONG,
    market SYMBOL,
    window_days INT,
    calibration_data STRING,
    sample_size INT,
    correlation DOUBLE,
    high_conf_win_rate DOUBLE,
    low_conf_win_rate DOUBLE
) TIMESTAMP(timestamp) PARTITION BY YEAR;
"""

ALL_TABLES = [
    TRADE_RECOMMENDATIONS,
    CONFIDENCE_CALIBRATIONS,
]


def table_name(ddl: str) -> str:
    return ddl.split("IF NOT EXISTS")[1].split("(")[0].strip()


def create_all_tables(resource: QuestDBResource | None = None) -> None:
    """Execute all DDL statements against QuestDB via PG wire."""
    if resource is None:
        resource = QuestDBResource()

    conn = psycopg2.connect(
        host=resource.pg_host,
        port=resource.pg_port,
        user=resource.pg_user,
        password=resource.pg_password,
        database=resource.pg_database,
    )
    conn.autocommit = True

    try:
        cur = conn.cursor()
        for ddl in ALL_TABLES:
            print(f"Creating table: {table_name(ddl)}")
            cur.execute(ddl)
        cur.close()
        print(f"\nDone — {len(ALL_TABLES)} tables created.")
    finally:
        conn.close()


if __name__ == "__main__":
    create_all_tables()
