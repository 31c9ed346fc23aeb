from __future__ import annotations

from rich.console import Console

console = Console()


def warn(msg: str) -> None:
    # markup off so the literal "[warn]" prefix survives
    console.print(f'[warn] {msg}', markup=False, highlight=False, style='yellow')


def print_table(df, title: str = '', float_fmt: str = '{:,.3f}') -> None:
    from rich.table import Table

    table = Table(title=title or None)
    for c in df.columns:
        table.add_column(str(c), justify='right' if df[c].dtype.kind in 'fiu' else 'left')
    for row in df.itertuples(index=False):
        table.add_row(*[float_fmt.format(v) if isinstance(v, float) else str(v) for v in row])
    console.print(table)
