#!/usr/bin/env python3
"""
Export the whole database as SQL INSERT statements
Tables are written parents first so the dump can be replayed in order.

Usage:
    python export_database.py [--output gameon_export.sql]
"""

import sys
import os
import argparse
import logging
from datetime import datetime, date

from dotenv import load_dotenv
load_dotenv()

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from database import Base, engine

logging.basicConfig(level=logging.INFO, format='%(message)s')
logger = logging.getLogger(__name__)


def sql_literal(value) -> str:
    if value is None:
        return 'NULL'
    if isinstance(value, bool):
        return 'TRUE' if value else 'FALSE'
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, (datetime, date)):
        return f"'{value.isoformat()}'"
    text = str(value).replace("'", "''")
    return f"'{text}'"


def table_inserts(connection, table):
    columns = [column.name for column in table.columns]
    column_list = ', '.join(f'"{name}"' for name in columns)
    for row in connection.execute(table.select().order_by(*table.primary_key.columns)).mappings():
        values = ', '.join(sql_literal(row[name]) for name in columns)
        yield f'INSERT INTO "{table.name}" ({column_list}) VALUES ({values});'


def export_database(out):
    """Write INSERT statements for every table to a file object; returns rows written"""
    total = 0
    out.write(f"-- GameOn database export {datetime.now().isoformat()}\n")
    with engine.connect() as connection:
        for table in Base.metadata.sorted_tables:
            out.write(f"\n-- {table.name}\n")
            count = 0
            for statement in table_inserts(connection, table):
                out.write(statement + "\n")
                count += 1
            logger.info(f"  {table.name}: {count} rows")
            total += count
    return total


def main():
    parser = argparse.ArgumentParser(description='Export the GameOn database as SQL')
    parser.add_argument('--output', default=f"gameon_export_{datetime.now():%Y%m%d_%H%M%S}.sql",
                        help='File to write')
    args = parser.parse_args()

    logger.info(f"Exporting database to {args.output}")
    try:
        with open(args.output, 'w', encoding='utf-8') as out:
            total = export_database(out)
        logger.info(f"Export complete: {total} rows")
        return 0
    except Exception as e:
        logger.error(f"Export failed: {e}", exc_info=True)
        return 1


if __name__ == '__main__':
    sys.exit(main())
