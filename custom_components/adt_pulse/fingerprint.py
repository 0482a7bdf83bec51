"""Synthetic browser identity for the ADT Pulse portal.

The portal asks the sign-in form for a browser fingerprint and keeps a
Dynatrace correlation header on its AJAX calls. Both are generated here so the
session looks like an ordinary desktop browser.
"""

from __future__ import annotations

import base64
import json
import random
import string
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal
from zoneinfo import ZoneInfo

DtpcMode = Literal["default", "force-arm", "keep-alive", "multi-factor"]

MIN_FONTS = 50
CANVAS_RANGE = (1111111111, 9999999999)


@dataclass(frozen=True)
class UserAgentProfile:
    """Pre-parsed user agent, shaped like a ua-parser result."""

    ua: str
    browser_name: str
    browser_version: str
    engine_name: str
    engine_version: str
    os_name: str
    os_version: str
    cpu_architecture: str | None
    platform: str

    @property
    def browser_major(self) -> str:
        """Return the major browser version."""
        return self.browser_version.split(".", 1)[0]


USER_AGENT_PROFILES = (
    UserAgentProfile(
        ua=(
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36"
        ),
        browser_name="Chrome",
        browser_version="126.0.0.0",
        engine_name="Blink",
        engine_version="126.0.0.0",
        os_name="macOS",
        os_version="10.15.7",
        cpu_architecture=None,
        platform="MacIntel",
    ),
    UserAgentProfile(
        ua=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36"
        ),
        browser_name="Chrome",
        browser_version="125.0.0.0",
        engine_name="Blink",
        engine_version="125.0.0.0",
        os_name="Windows",
        os_version="10",
        cpu_architecture="amd64",
        platform="Win32",
    ),
    UserAgentProfile(
        ua=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:127.0) "
            "Gecko/20100101 Firefox/127.0"
        ),
        browser_name="Firefox",
        browser_version="127.0",
        engine_name="Gecko",
        engine_version="127.0",
        os_name="Windows",
        os_version="10",
        cpu_architecture="amd64",
        platform="Win32",
    ),
    UserAgentProfile(
        ua=(
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
            "(KHTML, like Gecko) Version/17.5 Safari/605.1.15"
        ),
        browser_name="Safari",
        browser_version="17.5",
        engine_name="WebKit",
        engine_version="605.1.15",
        os_name="macOS",
        os_version="10.15.7",
        cpu_architecture=None,
        platform="MacIntel",
    ),
    UserAgentProfile(
        ua=(
            "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36"
        ),
        browser_name="Chrome",
        browser_version="126.0.0.0",
        engine_name="Blink",
        engine_version="126.0.0.0",
        os_name="Linux",
        os_version="x86_64",
        cpu_architecture="amd64",
        platform="Linux x86_64",
    ),
    UserAgentProfile(
        ua=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36 Edg/126.0.0.0"
        ),
        browser_name="Edge",
        browser_version="126.0.0.0",
        engine_name="Blink",
        engine_version="126.0.0.0",
        os_name="Windows",
        os_version="10",
        cpu_architecture="amd64",
        platform="Win32",
    ),
)

SCREEN_RESOLUTIONS = (
    (1024, 768),
    (1280, 720),
    (1280, 800),
    (1440, 900),
    (1680, 1050),
    (1920, 1080),
    (1920, 1200),
    (2048, 1536),
    (2560, 1080),
    (2560, 1440),
    (2560, 1600),
    (2732, 2048),
    (3440, 1440),
    (3840, 1600),
    (3840, 2160),
    (5120, 2880),
)

TIMEZONES = (
    "America/Anchorage",
    "America/Chicago",
    "America/Denver",
    "America/Edmonton",
    "America/Halifax",
    "America/Los_Angeles",
    "America/New_York",
    "America/Phoenix",
    "America/Toronto",
    "America/Vancouver",
    "America/Winnipeg",
    "Pacific/Honolulu",
)

PLUGINS = (
    "Adobe Flash Player.application/x-shockwave-flash::swf",
    "Java Runtime Environment.application/x-java-applet::class",
    "Microsoft Silverlight.application/x-silverlight::xap",
    "Portable Document Format.application/pdf::pdf",
    "QuickTime Media Player.video/quicktime::mov",
    "Windows Media Player.application/x-mplayer2::wmv",
)

FONTS = (
    "Academy Engraved LET",
    "American Typewriter",
    "Andale Mono",
    "Apple Chancery",
    "Apple Color Emoji",
    "Apple SD Gothic Neo",
    "Arial",
    "Arial Black",
    "Arial Hebrew",
    "Arial Narrow",
    "Arial Rounded MT Bold",
    "Arial Unicode MS",
    "AVENIR",
    "Baskerville",
    "Batang",
    "Bauhaus 93",
    "Big Caslon",
    "Bodoni 72",
    "Bookshelf Symbol 7",
    "Bradley Hand",
    "Brush Script MT",
    "Calibri",
    "Cambria",
    "Cambria Math",
    "Candara",
    "Chalkboard",
    "Chalkboard SE",
    "Chalkduster",
    "Cochin",
    "Comic Sans MS",
    "Constantia",
    "Copperplate",
    "Corbel",
    "Courier",
    "Courier New",
    "Didot",
    "Ebrima",
    "Euphemia UCAS",
    "Franklin Gothic",
    "Franklin Gothic Medium",
    "Futura",
    "Gabriola",
    "Geeza Pro",
    "Geneva",
    "Georgia",
    "Gill Sans",
    "GOTHAM",
    "Gulim",
    "Heiti SC",
    "Heiti TC",
    "Helvetica",
    "Helvetica Neue",
    "Hiragino Kaku Gothic ProN",
    "Hoefler Text",
    "Impact",
    "Kailasa",
    "Khmer UI",
    "Krungthep",
    "Lao UI",
    "Leelawadee",
    "Lucida Console",
    "LUCIDA GRANDE",
    "Lucida Sans Unicode",
    "Malgun Gothic",
    "Marker Felt",
    "Marlett",
    "Meiryo",
    "Meiryo UI",
    "Microsoft Himalaya",
    "Microsoft JhengHei",
    "Microsoft Sans Serif",
    "Microsoft YaHei",
    "MingLiU",
    "Monaco",
    "MS Gothic",
    "MS Sans Serif",
    "MS Serif",
    "MV Boli",
    "MYRIAD PRO",
    "Noteworthy",
    "OPTIMA",
    "Palatino",
    "Palatino Linotype",
    "Papyrus",
    "Rockwell",
    "Segoe Print",
    "Segoe Script",
    "Segoe UI",
    "Segoe UI Light",
    "Segoe UI Semibold",
    "Segoe UI Symbol",
    "SimHei",
    "SimSun",
    "Skia",
    "Snell Roundhand",
    "Sylfaen",
    "Tahoma",
    "Thonburi",
    "Times",
    "Times New Roman",
    "Trebuchet MS",
    "Verdana",
    "Wingdings",
    "Wingdings 2",
    "Wingdings 3",
    "Zapfino",
)


def _timezone_offset(name: str) -> int:
    offset = datetime.now(ZoneInfo(name)).utcoffset()
    return int(offset.total_seconds() // 60) if offset is not None else 0


def generate_fingerprint_payload(rng: random.Random | None = None) -> dict[str, Any]:
    """Generate the fingerprint object submitted with the sign-in form.

    Args:
        rng: Optional random generator, used to make output reproducible.

    Returns:
        Dictionary with a single "fingerprint" key describing the browser.

    """
    rng = rng or random.Random()
    profile = rng.choice(USER_AGENT_PROFILES)
    width, height = rng.choice(SCREEN_RESOLUTIONS)
    timezone = rng.choice(TIMEZONES)
    plugins = sorted(rng.sample(PLUGINS, rng.randint(1, len(PLUGINS))))
    fonts = sorted(rng.sample(FONTS, rng.randint(MIN_FONTS, len(FONTS))))

    return {
        "fingerprint": {
            "uaBrowser": {
                "name": profile.browser_name,
                "version": profile.browser_version,
                "major": profile.browser_major,
            },
            "uaString": profile.ua,
            "uaDevice": {"model": None, "type": None, "vendor": None},
            "uaEngine": {
                "name": profile.engine_name,
                "version": profile.engine_version,
            },
            "uaOS": {"name": profile.os_name, "version": profile.os_version},
            "uaCPU": {"architecture": profile.cpu_architecture},
            "uaPlatform": profile.platform,
            "language": "en-US",
            "colorDepth": 24,
            "pixelRatio": rng.choice([1, 2, 3, 4]),
            "screenResolution": f"{width}x{height}",
            "availableScreenResolution": f"{width}x{height}",
            "timezone": timezone,
            "timezoneOffset": _timezone_offset(timezone),
            "localStorage": True,
            "sessionStorage": True,
            "indexedDb": True,
            "addBehavior": False,
            "openDatabase": False,
            "cpuClass": None,
            "platform": profile.platform,
            "doNotTrack": rng.choice(["1", "0", None]),
            "plugins": ",".join(plugins),
            "canvas": rng.randint(*CANVAS_RANGE),
            "webGl": rng.randint(*CANVAS_RANGE),
            "adBlock": False,
            "userTamperLanguage": False,
            "userTamperScreenResolution": False,
            "userTamperOS": False,
            "userTamperBrowser": False,
            "touchSupport": {
                "maxTouchPoints": 0,
                "touchEvent": False,
                "touchStart": False,
            },
            "cookieSupport": True,
            "fonts": ",".join(fonts),
        }
    }


def generate_fingerprint(rng: random.Random | None = None) -> str:
    """Generate a base64 encoded fingerprint for the sign-in form.

    Args:
        rng: Optional random generator, used to make output reproducible.

    Returns:
        Base64 encoded JSON fingerprint.

    """
    payload = generate_fingerprint_payload(rng)
    return base64.b64encode(json.dumps(payload).encode()).decode()


def generate_dtpc_header(
    mode: DtpcMode = "default", rng: random.Random | None = None
) -> str:
    """Generate a value for the "x-dtpc" header.

    Args:
        mode: Request the header accompanies. Keep-alive requests carry one
            fewer millisecond digit.
        rng: Optional random generator.

    Returns:
        Header value such as "5$123456789_412h7vABC...-0e0".

    """
    rng = rng or random.Random()
    server_id = rng.choice([1, 3, 5, 6, 7])
    millis = str(int(time.time() * 1000))
    sliced_millis = millis[-8:] if mode == "keep-alive" else millis[-9:]
    letters = "".join(rng.choice(string.ascii_uppercase[:23]) for _ in range(32))
    return (
        f"{server_id}${sliced_millis}_{rng.randint(218, 932)}"
        f"h{rng.randint(1, 29)}v{letters}-0e0"
    )
