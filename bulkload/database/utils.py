import re
from typing import List, Sequence

IDENTIFIER_REGEX = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


def quote_ident(ident: str) -> str:
    if not IDENTIFIER_REGEX.match(ident):
        raise ValueError(f"Invalid identifier: {ident!r}")
    return f'"{ident}"'


def column_list_sql(columns: Sequence[str]) -> str:
    return ', '.join(quote_ident(column) for column in columns)


def insert_sql(table: str, columns: Sequence[str]) -> str:
    """Plain parameterised INSERT; duplicate keys are rejected by the store, not merged."""
    placeholders = ', '.join(f'${i + 1}' for i in range(len(columns)))
    return f'INSERT INTO {quote_ident(table)} ({column_list_sql(columns)}) VALUES ({placeholders})'


def copy_sql(table: str, columns: List[str]) -> str:
    """The COPY command the bulk path issues (asyncpg builds the same statement)."""
    return (
        f'COPY {quote_ident(table)} ({column_list_sql(columns)}) '
        f'FROM STDIN WITH (FORMAT csv, HEADER true)'
    )
