from __future__ import annotations

import enum
import re
from typing import Any

from securedb.core.exception import SettingsError


class ClientFlag(enum.IntFlag):
    """MySQL client capability flags (the values libmysqlclient / PyMySQL use)."""

    NONE = 0
    FOUND_ROWS = 2
    COMPRESS = 32
    LOCAL_FILES = 128
    IGNORE_SPACE = 256
    INTERACTIVE = 1024
    SSL = 2048
    MULTI_STATEMENTS = 1 << 16
    MULTI_RESULTS = 1 << 17
    SSL_VERIFY_SERVER_CERT = 1 << 30


_SPLIT_RE = re.compile(r"\s*[|,+]\s*")


def parse_client_flags(raw: Any) -> ClientFlag:
    """Interpret a client-flags setting.

    Accepts an int, a ClientFlag, a numeric string (``"2048"``, ``"0x800"``) or
    flag names joined by ``|``, ``,`` or ``+`` (``"SSL|COMPRESS"``, with or
    without a ``MYSQL_CLIENT_`` / ``CLIENT_`` prefix). Unknown bits in numeric
    values are kept.
    """
    if raw is None or raw == "":
        return ClientFlag.NONE
    if isinstance(raw, bool):
        raise SettingsError(f"client flags must be an int or flag names, got {raw!r}")
    if isinstance(raw, int):
        return ClientFlag(raw)

    text = str(raw).strip()
    try:
        return ClientFlag(int(text, 0))
    except ValueError:
        pass

    out = ClientFlag.NONE
    for part in _SPLIT_RE.split(text):
        if not part:
            continue
        name = part.upper()
        for prefix in ("MYSQLI_CLIENT_", "MYSQL_CLIENT_", "CLIENT_"):
            if name.startswith(prefix):
                name = name[len(prefix):]
                break
        try:
            out |= ClientFlag[name]
        except KeyError:
            known = sorted(m.name for m in ClientFlag if m.name and m.name != "NONE")
            raise SettingsError(f"Unknown client flag: {part}. Known: {known}") from None
    return out


def requests_ssl(flags: int) -> bool:
    return (int(flags) & ClientFlag.SSL) == ClientFlag.SSL
