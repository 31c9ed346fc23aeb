from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import plotly.graph_objects as go

from .console import warn


def _safe_write_image(fig: go.Figure, path: Path, **kwargs) -> bool:
    try:
        fig.write_image(path, **kwargs)
        return True
    except Exception as e:
        # kaleido missing or no browser for it to drive
        warn(f'Could not write {path.suffix.lstrip(".").upper()} {path.name}: {e}')
        return False


def save_plotly(
    fig: go.Figure,
    out_dir: Path,
    stem: str,
    image_format: Optional[str] = 'png',
    width: int = 1100,
    height: int = 700,
) -> List[Path]:
    """Write ``<stem>.html`` and, best effort, ``<stem>.<image_format>``. Returns the files written."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    written: List[Path] = []

    if image_format:
        img_out = out_dir / f'{stem}.{image_format}'
        if _safe_write_image(fig, img_out, width=width, height=height, scale=2):
            written.append(img_out)

    html_out = out_dir / f'{stem}.html'
    fig.write_html(
        html_out,
        include_plotlyjs='cdn',
        config={'responsive': True, 'displayModeBar': False},
    )
    written.append(html_out)
    return written
