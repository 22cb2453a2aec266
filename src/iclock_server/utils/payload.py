"""Command payload text: parsing, device codes, and formatting.

Payloads follow the ADMS push format ``C:<code>:<verb> <fields>`` where
fields are tab separated ``KEY=value`` pairs, e.g.::

    C:X01:DATA UPDATE USERINFO PIN=7\tName=Ann\tPri=0

Everything that inspects payload text lives here so the rest of the server
works with parsed values only.
"""

from __future__ import annotations

import re
import secrets
import string
from enum import Enum
from urllib.parse import parse_qsl

_HEADER_RE = re.compile(r"^C:([^:\s]+):")
_PIN_RE = re.compile(r"(?:^|\s)PIN=([^\s]+)")
_CODE_BODY_ALPHABET = string.ascii_uppercase + string.digits
_CODE_TAIL_ALPHABET = string.ascii_uppercase


class CommandCategory(str, Enum):
    """What a command does to the device's user table."""

    USER_UPSERT = "USER_UPSERT"
    USER_PHOTO = "USER_PHOTO"
    USER_DELETE = "USER_DELETE"
    OTHER = "OTHER"


# Checked in order; photo verbs first so "DATA DELETE USERPIC" is a photo op.
_CATEGORY_MARKERS: tuple[tuple[CommandCategory, tuple[str, ...]], ...] = (
    (CommandCategory.USER_PHOTO, ("USERPIC", "BIOPHOTO")),
    (CommandCategory.USER_DELETE, ("DATA DELETE USERINFO", "DATA DELETE USER")),
    (CommandCategory.USER_UPSERT, ("DATA UPDATE USERINFO", "DATA USER")),
)


class CommandPayload:
    """Static helpers that read routing metadata out of payload text."""

    @staticmethod
    def device_code(payload: str) -> str | None:
        """Return the device-local code from the ``C:<code>:`` header."""
        match = _HEADER_RE.match(payload.strip())
        return match.group(1) if match else None

    @staticmethod
    def target_user(payload: str) -> str | None:
        """Return the ``PIN=`` value, if the payload names one."""
        match = _PIN_RE.search(payload)
        return match.group(1) if match else None

    @staticmethod
    def category(payload: str) -> CommandCategory:
        """Classify by verb. Only the text before the first field is inspected."""
        verb = _verb(payload)
        for category, markers in _CATEGORY_MARKERS:
            if any(marker in verb for marker in markers):
                return category
        return CommandCategory.OTHER

    @staticmethod
    def routing(payload: str) -> tuple[CommandCategory, str | None]:
        """Return ``(category, target_user)`` with the invariant applied.

        A user command without a PIN cannot be routed, so it degrades to
        OTHER; an OTHER command never carries a target user.
        """
        category = CommandPayload.category(payload)
        if category is CommandCategory.OTHER:
            return category, None
        target = CommandPayload.target_user(payload)
        if target is None:
            return CommandCategory.OTHER, None
        return category, target


def _verb(payload: str) -> str:
    """Text between the header and the first ``KEY=`` field."""
    body = _HEADER_RE.sub("", payload.strip(), count=1)
    pin = _PIN_RE.search(body)
    if pin is not None:
        body = body[: pin.start()]
    return body.split("\t", 1)[0].upper()


class DeviceCode:
    """Generation and fuzzy matching of device-local command codes."""

    @staticmethod
    def generate(length: int = 6) -> str:
        """Random code ending in a letter.

        A trailing letter means appending a numeric sequence suffix to one
        generated code can never yield another generated code.
        """
        body = "".join(
            secrets.choice(_CODE_BODY_ALPHABET) for _ in range(length - 1)
        )
        return body + secrets.choice(_CODE_TAIL_ALPHABET)

    @staticmethod
    def sequenced(code: str, index: int) -> str:
        """Code for the ``index``-th command of a batch (``X01`` -> ``X0102``)."""
        return f"{code}{index:02d}"

    @staticmethod
    def matches(stored: str | None, reported: str) -> bool:
        """True if a reported code refers to a stored one.

        Equal codes match. Otherwise the longer code must be the shorter one
        followed by a numeric sequence suffix, in either direction: a device
        may echo ``AB1201`` for stored ``AB12``, or report a batch under its
        umbrella code ``X01`` for stored ``X0101`` and ``X0102``.
        """
        if not stored or not reported:
            return False
        if stored == reported:
            return True
        shorter, longer = sorted((stored, reported), key=len)
        if len(shorter) == len(longer) or not longer.startswith(shorter):
            return False
        return longer[len(shorter):].isdigit()


class DeviceReport:
    """Parse the bodies devices POST back to the server."""

    @staticmethod
    def parse_results(body: str) -> list[dict[str, str]]:
        """Parse ``ID=..&Return=..&CMD=..`` lines into dicts.

        Lines without an ``ID`` or without a ``Return`` are skipped; a
        truncated line must not finalise a command.
        """
        results: list[dict[str, str]] = []
        for line in body.splitlines():
            line = line.strip()
            if not line:
                continue
            fields = dict(parse_qsl(line, keep_blank_values=True))
            code = fields.get("ID", "").strip()
            if not code or "Return" not in fields:
                continue
            results.append({
                "code": code,
                "return_code": fields["Return"].strip(),
                "verb": fields.get("CMD", "").strip(),
            })
        return results

    @staticmethod
    def count_records(body: str) -> int:
        """Number of non-empty lines in an upload body."""
        return sum(1 for line in body.splitlines() if line.strip())


class PayloadBuilder:
    """Format user-directory changes as device payloads."""

    @staticmethod
    def user_info(code: str, pin: str, name: str) -> str:
        """Create or update a user record on the device."""
        fields = "\t".join((
            f"PIN={pin}",
            f"Name={_clean(name)}",
            "Pri=0",
            "Passwd=",
            "Card=",
            "Grp=1",
            "TZ=0000000100000000",
            "Verify=0",
        ))
        return f"C:{code}:DATA UPDATE USERINFO {fields}"

    @staticmethod
    def user_photo(code: str, pin: str, photo_b64: str) -> str:
        """Push a user's face photo as a biophoto template source."""
        fields = "\t".join((
            f"PIN={pin}",
            "Type=9",
            f"Size={len(photo_b64)}",
            f"Content={photo_b64}",
            "Format=0",
            "Url=",
            "PostBackTmpFlag=0",
        ))
        return f"C:{code}:DATA UPDATE BIOPHOTO {fields}"

    @staticmethod
    def delete_user(code: str, pin: str) -> str:
        """Remove a user from the device."""
        return f"C:{code}:DATA DELETE USERINFO PIN={pin}"

    @staticmethod
    def enrollment(pin: str, name: str, photo_b64: str | None) -> list[str]:
        """Info plus optional photo, sharing one umbrella code."""
        code = DeviceCode.generate()
        payloads = [PayloadBuilder.user_info(DeviceCode.sequenced(code, 1), pin, name)]
        if photo_b64:
            payloads.append(
                PayloadBuilder.user_photo(
                    DeviceCode.sequenced(code, 2), pin, photo_b64,
                ),
            )
        return payloads


def _clean(value: str) -> str:
    """Strip characters that would break tab separated fields."""
    return " ".join(value.replace("\t", " ").split())
