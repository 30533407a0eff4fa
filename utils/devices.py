UNKNOWN_DEVICE = "Unknown device"

# Order matters: Edge and Opera user agents also contain "Chrome",
# and Chrome's contains "Safari".
_BROWSERS = (
    ("Edg/", "Edge"),
    ("OPR/", "Opera"),
    ("Firefox/", "Firefox"),
    ("Chrome/", "Chrome"),
    ("Safari/", "Safari"),
)

_PLATFORMS = (
    ("iPhone", "iPhone"),
    ("iPad", "iPad"),
    ("Android", "Android"),
    ("Windows", "Windows"),
    ("Mac OS X", "macOS"),
    ("Linux", "Linux"),
)


def extract_device_name(user_agent: str | None) -> str:
    """
    Best-effort device label from a User-Agent header,
    e.g. "Chrome on Windows". Non-browser clients keep their product token.
    """
    if not user_agent or not user_agent.strip():
        return UNKNOWN_DEVICE

    browser = next((name for marker, name in _BROWSERS if marker in user_agent), None)
    platform = next((name for marker, name in _PLATFORMS if marker in user_agent), None)

    if browser and platform:
        return f"{browser} on {platform}"
    if browser or platform:
        return browser or platform

    # e.g. "okhttp/4.9.0" or "MyApp/2.1 (build 7)"
    return user_agent.split()[0].split("/")[0][:100] or UNKNOWN_DEVICE
