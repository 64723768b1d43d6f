"""Persistent storage for the backend's session cookies.

The cookies are opaque: they are saved exactly as the backend set them and
sent back unchanged.  They live in ``~/.config/oauthclient/cookies.json``
with permissions restricted to the owner (0o600) so that a session survives
between CLI invocations.
"""

import json
from pathlib import Path

import requests

_CONFIG_DIR = Path.home() / ".config" / "oauthclient"
_COOKIES_FILE = _CONFIG_DIR / "cookies.json"


def save(jar: requests.cookies.RequestsCookieJar) -> None:
    """Persist every cookie in *jar* to the config file.

    Creates the config directory if it does not already exist and restricts
    file permissions to the owner only.

    Args:
        jar: The session cookie jar to store.
    """
    entries = [
        {
            "name": c.name,
            "value": c.value,
            "domain": c.domain,
            "path": c.path,
        }
        for c in jar
    ]
    _CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    _COOKIES_FILE.write_text(json.dumps(entries, indent=2), encoding="utf-8")
    _COOKIES_FILE.chmod(0o600)


def load() -> list[dict[str, str]]:
    """Load stored cookies.

    Returns:
        A list of ``{name, value, domain, path}`` dicts, or an empty list
        if no cookie file exists or it cannot be parsed.
    """
    if not _COOKIES_FILE.exists():
        return []
    try:
        data = json.loads(_COOKIES_FILE.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError):
        return []
    return data if isinstance(data, list) else []


def restore(jar: requests.cookies.RequestsCookieJar) -> int:
    """Copy stored cookies into *jar*.

    Returns:
        The number of cookies restored.
    """
    entries = load()
    for c in entries:
        jar.set(
            c["name"],
            c["value"],
            domain=c.get("domain") or "",
            path=c.get("path") or "/",
        )
    return len(entries)


def clear() -> bool:
    """Remove the cookie file.

    Returns:
        ``True`` if the file was deleted, ``False`` if it did not exist.
    """
    if _COOKIES_FILE.exists():
        _COOKIES_FILE.unlink()
        return True
    return False


def cookies_path() -> Path:
    """Return the path to the cookie file."""
    return _COOKIES_FILE
