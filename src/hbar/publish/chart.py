"""Embeds the merged price table into the static chart page.

The page template carries a placeholder field

    compressedCsvData: "..."

whose value is replaced by the gzip-compressed, base64-encoded merged CSV.
The page's own script decodes and renders it; nothing else in the template
is touched.
"""

import base64
import gzip
import os
import re
import shutil
import tempfile
from pathlib import Path

from hbar.exceptions import PublishError
from hbar.logging import get_logger

logger = get_logger(__name__)

PLACEHOLDER_FIELD = "compressedCsvData"
_PLACEHOLDER_RE = re.compile(rf'{PLACEHOLDER_FIELD}: "[^"]*"')


def encode_csv(data: bytes) -> str:
    """Gzip and base64-encode CSV bytes on a single line.

    mtime is pinned so identical input produces an identical page.
    """
    return base64.b64encode(gzip.compress(data, mtime=0)).decode("ascii")


def embed_data(template: str, encoded: str) -> str:
    """Replace the placeholder value in template with encoded.

    Raises:
        PublishError: If the template has no placeholder field.
    """
    replacement = f'{PLACEHOLDER_FIELD}: "{encoded}"'
    # A function replacement keeps re from interpreting backslashes in the data
    page, count = _PLACEHOLDER_RE.subn(lambda _: replacement, template)
    if count == 0:
        raise PublishError(f'template has no {PLACEHOLDER_FIELD}: "..." field')
    return page


def _write_text_atomically(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_name, path)
    except Exception:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def copy_assets(template_dir: Path, output_dir: Path, assets: list[str]) -> list[str]:
    """Copy static files and directories next to the template into output_dir.

    Assets that do not exist are skipped. Returns the names copied.
    """
    copied = []
    for name in assets:
        source = template_dir / name
        target = output_dir / name
        if source.is_dir():
            shutil.copytree(source, target, dirs_exist_ok=True)
        elif source.is_file():
            shutil.copy2(source, target)
        else:
            logger.debug("chart_asset_missing", asset=str(source))
            continue
        copied.append(name)
    return copied


def publish_chart(
    csv_path: str | Path,
    template_path: str | Path,
    output_path: str | Path,
    assets: list[str] | None = None,
) -> Path:
    """Write the release page with the merged CSV embedded.

    Args:
        csv_path: Merged CSV produced by the series merge stage.
        template_path: Page template containing the placeholder field.
        output_path: Destination of the generated page.
        assets: Names of static files/directories beside the template to
            copy next to the generated page.

    Returns:
        The path of the generated page.

    Raises:
        PublishError: If the CSV or template is missing, or the template
            has no placeholder.
    """
    csv_path = Path(csv_path)
    template_path = Path(template_path)
    output_path = Path(output_path)

    if not csv_path.is_file():
        raise PublishError(f"CSV file not found: {csv_path}")
    if not template_path.is_file():
        raise PublishError(f"chart template not found: {template_path}")

    encoded = encode_csv(csv_path.read_bytes())
    if not encoded:
        raise PublishError("compression produced no data")

    page = embed_data(template_path.read_text(encoding="utf-8"), encoded)
    _write_text_atomically(output_path, page)

    copied = copy_assets(template_path.parent, output_path.parent, assets or [])
    logger.info(
        "chart_published",
        output=str(output_path),
        encoded_bytes=len(encoded),
        assets=copied,
    )
    return output_path
