"""Encrypted cookies rendered as Set-Cookie headers."""

from __future__ import annotations

import abc
import base64
import re
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from email.utils import format_datetime

_URLSAFE_B64 = re.compile(r"[A-Za-z0-9_-]*={0,2}")


class Cipher(abc.ABC):
    """Encrypts and decrypts cookie values."""

    @abc.abstractmethod
    def encrypt(self, plaintext):
        """Return the ciphertext of ``plaintext`` bytes."""

    @abc.abstractmethod
    def decrypt(self, ciphertext):
        """Return the plaintext of ``ciphertext`` bytes."""


@dataclass
class CookieOption:
    """Cookie attributes; zero values mean "not set"."""

    path: str = ""
    domain: str = ""
    max_age: int = 0
    expires: datetime | None = None
    secure: bool = False
    http_only: bool = False


@dataclass
class _Cookie:
    name: str
    value: str
    opt: CookieOption

    def header(self):
        parts = [f"{self.name}={self.value}"]
        opt = self.opt
        if opt.path:
            parts.append(f"Path={opt.path}")
        if opt.domain:
            parts.append(f"Domain={opt.domain.lstrip('.')}")
        if opt.expires is not None and opt.expires.year >= 1601:
            when = opt.expires
            if when.tzinfo is None:
                when = when.replace(tzinfo=timezone.utc)
            parts.append(f"Expires={format_datetime(when.astimezone(timezone.utc), usegmt=True)}")
        if opt.max_age > 0:
            parts.append(f"Max-Age={opt.max_age}")
        elif opt.max_age < 0:
            parts.append("Max-Age=0")
        if opt.http_only:
            parts.append("HttpOnly")
        if opt.secure:
            parts.append("Secure")
        return "; ".join(parts)


def _parse_cookie_header(cookie_header):
    cookies = {}
    for part in (cookie_header or "").split(";"):
        name, sep, value = part.strip().partition("=")
        if sep and name and name not in cookies:
            value = value.strip()
            if len(value) >= 2 and value[0] == value[-1] == '"':
                value = value[1:-1]
            cookies[name] = value
    return cookies


def _decode(value):
    if len(value) % 4 or not _URLSAFE_B64.fullmatch(value):
        raise ValueError(f"illegal base64 data in cookie value: {value!r}")
    return base64.urlsafe_b64decode(value)


class CookieMan:
    """Builds and reads cookies encrypted with a Cipher."""

    def __init__(self, cipher, default_opt=None):
        self.cipher = cipher
        self.default_opt = default_opt or CookieOption()

    def new_cookie_store(self, name, opt=None):
        """Return a CookieStore for the cookie ``name``."""
        return CookieStore(name, self, opt)

    def set(self, name, value, opt=None):
        """Encrypt ``value`` and return the Set-Cookie header value for it."""
        encrypted = self.cipher.encrypt(value)
        encoded = base64.urlsafe_b64encode(encrypted).decode("ascii")
        return self._cookie(name, encoded, opt).header()

    def get(self, cookie_header, name):
        """Return the decrypted value of ``name`` from a Cookie request header.

        Raises KeyError if the cookie is absent and ValueError if it is not base64.
        """
        cookies = _parse_cookie_header(cookie_header)
        if name not in cookies:
            raise KeyError(f"named cookie not present: {name}")
        return self.cipher.decrypt(_decode(cookies[name]))

    def clear(self, name):
        """Return the Set-Cookie header value that deletes ``name``."""
        return self._cookie(name, "", CookieOption(max_age=-1)).header()

    def _cookie(self, name, value, opt):
        merged = replace(self.default_opt)
        if opt is not None:
            if opt.path:
                merged.path = opt.path
            if opt.domain:
                merged.domain = opt.domain
            if opt.max_age != 0:
                merged.max_age = opt.max_age
            if opt.expires is not None:
                merged.expires = opt.expires
            if opt.secure:
                merged.secure = True
            if opt.http_only:
                merged.http_only = True
        return _Cookie(name, value, merged)


class CookieStore:
    """One named cookie handled by a CookieMan."""

    def __init__(self, name, cookieman, opt=None):
        self.name = name
        self._cookieman = cookieman
        self._opt = opt

    def set(self, value):
        """Return the Set-Cookie header value storing ``value``."""
        return self._cookieman.set(self.name, value, self._opt)

    def get(self, cookie_header):
        """Return the decrypted value of this cookie from a Cookie header."""
        return self._cookieman.get(cookie_header, self.name)

    def clear(self):
        """Return the Set-Cookie header value deleting this cookie."""
        return self._cookieman.clear(self.name)