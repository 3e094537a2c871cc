"""
Vault Container — Reader for the OPVault directory layout.

    <vault>.opvault/
        default/
            profile.js     var profile={...};
            band_0.js      ld({"<UUID>": {...}, ...});
            ...
            band_F.js

Each file embeds one JSON object in a thin JavaScript envelope; the
reader strips exactly one envelope layer and parses the JSON with orjson.
"""
import re
import logging
from pathlib import Path
from typing import Any, Union

import orjson
from pydantic import ValidationError

from .exceptions import (
    ProfileFormatError,
    VaultNotFoundError,
    WrapperFormatError,
)
from .models import RawItem, VaultProfile

logger = logging.getLogger("navigator.opvault")

PROFILE_DIR = "default"
PROFILE_FILE = "profile.js"
REQUIRED_PROFILE_FIELDS = ("salt", "iterations", "masterKey", "overviewKey")

_BAND_FILE_PATTERN = re.compile(r"^band_[0-9A-F]\.js$", re.IGNORECASE)
# var profile={...};
_ASSIGNMENT_PATTERN = re.compile(r"^var\s+[A-Za-z_$][\w$]*\s*=\s*")
# ld({...});  loadFolders({...});
_CALL_PATTERN = re.compile(r"^[A-Za-z_$][\w$.]*\(")

PathLike = Union[str, Path]


def parse_js_wrapper(content: str) -> Any:
    """Strip one JavaScript envelope and parse the JSON inside it.

    Accepted shapes: ``var name={...};`` and ``fn({...});`` (surrounding
    whitespace and a missing trailing terminator are tolerated).

    Raises:
        WrapperFormatError: Unknown envelope, or the inner JSON is invalid.
    """
    text = content.strip()

    match = _ASSIGNMENT_PATTERN.match(text)
    if match:
        body = text[match.end():]
        if body.endswith(";"):
            body = body[:-1]
    else:
        match = _CALL_PATTERN.match(text)
        if not match:
            raise WrapperFormatError("Unknown JS wrapper format")
        body = text[match.end():]
        if body.endswith(";"):
            body = body[:-1]
        if not body.endswith(")"):
            raise WrapperFormatError("Unterminated JS call wrapper")
        body = body[:-1]

    try:
        return orjson.loads(body)
    except orjson.JSONDecodeError as err:
        raise WrapperFormatError("JS wrapper does not contain valid JSON") from err


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as err:
        raise VaultNotFoundError(f"cannot read {path.name}") from err


def parse_profile(vault_path: PathLike) -> VaultProfile:
    """Read and validate ``default/profile.js``.

    Args:
        vault_path: Path to the ``.opvault`` directory.

    Returns:
        VaultProfile.

    Raises:
        VaultNotFoundError: Profile file missing or unreadable.
        WrapperFormatError: Profile is not wrapped as expected.
        ProfileFormatError: A required field is missing or invalid.
    """
    path = Path(vault_path) / PROFILE_DIR / PROFILE_FILE
    data = parse_js_wrapper(_read_text(path))
    if not isinstance(data, dict):
        raise ProfileFormatError("profile.js does not contain an object")

    for field in REQUIRED_PROFILE_FIELDS:
        if not data.get(field):
            raise ProfileFormatError(f"profile.js missing required field: {field}")

    try:
        profile = VaultProfile.model_validate(data)
    except ValidationError as err:
        raise ProfileFormatError(
            f"profile.js has invalid fields: {[e['loc'] for e in err.errors()]}"
        ) from err
    logger.debug(
        "Parsed vault profile uuid=%s iterations=%d",
        profile.uuid, profile.iterations,
    )
    return profile


def band_files(vault_path: PathLike) -> list[Path]:
    """Band shard files of a vault, sorted by name."""
    directory = Path(vault_path) / PROFILE_DIR
    try:
        entries = list(directory.iterdir())
    except OSError as err:
        raise VaultNotFoundError("cannot list vault directory") from err
    return sorted(
        (p for p in entries if p.is_file() and _BAND_FILE_PATTERN.match(p.name)),
        key=lambda p: p.name.lower(),
    )


def load_band_items(vault_path: PathLike) -> list[RawItem]:
    """Load every raw item from the band shards.

    Band maps are keyed by UUID; the key is copied onto each item.
    Records that are not valid items are logged and skipped.

    Raises:
        VaultNotFoundError: Vault directory or a band file is unreadable.
        WrapperFormatError: A band file is not wrapped as expected.
    """
    items: dict[str, RawItem] = {}
    for path in band_files(vault_path):
        band = parse_js_wrapper(_read_text(path))
        if not isinstance(band, dict):
            raise WrapperFormatError(f"{path.name} does not contain an object")
        for uuid, record in band.items():
            if not isinstance(record, dict):
                logger.warning("Skipping malformed band record in %s", path.name)
                continue
            try:
                items[uuid] = RawItem.model_validate({**record, "uuid": uuid})
            except ValidationError:
                logger.warning("Skipping invalid band record uuid=%s", uuid)
    logger.debug("Loaded %d raw item(s)", len(items))
    return list(items.values())
