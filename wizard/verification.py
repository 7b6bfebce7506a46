"""OTP-gated field verification.

A VerificationGate owns the verification lifecycle of one field (email or
phone). The lifecycle is an explicit state machine:

    UNVERIFIED -> SENDING -> OTP_SENT -> VERIFYING -> VERIFIED
                     |                      |
                     +-> (previous state)   +-> OTP_SENT   (on failure)

While a request is in flight the gate rejects further send/verify calls for
the same field, so each field has at most one outstanding network call.
Different fields use different gates and never block each other.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterable, Protocol, runtime_checkable

from core.storage import KeyValueStore
from wizard.constants import (
    DEFAULT_OTP_LENGTH,
    DEFAULT_OTP_STATE_TTL_SEC,
    DEFAULT_RESEND_COOLDOWN_SEC,
    StorageKeys,
)

logger = logging.getLogger(__name__)


class VerificationStatus(str, Enum):
    UNVERIFIED = "unverified"
    SENDING = "sending"
    OTP_SENT = "otp_sent"
    VERIFYING = "verifying"
    VERIFIED = "verified"


@dataclass(frozen=True)
class VerificationState:
    """Read-only view of a gate for rendering."""

    is_verified: bool
    otp_sent: bool
    is_loading: bool
    resend_timer: int
    status: VerificationStatus


@runtime_checkable
class OtpService(Protocol):
    """Sends and checks one-time codes. Transport is up to the implementation."""

    async def send_code(self, destination: str) -> None: ...
    async def verify_code(self, destination: str, code: str) -> bool: ...


def format_timer(seconds: int) -> str:
    """Seconds as mm:ss, e.g. 300 -> '05:00'."""
    seconds = max(int(seconds), 0)
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def validate_otp_code(code: str | None, length: int = DEFAULT_OTP_LENGTH) -> str | None:
    """Return an error message for a malformed code, or None when it can be sent."""
    code = (code or "").strip()
    if not code:
        return "Please enter the OTP code to verify."
    if len(code) != length:
        return f"Please enter a complete {length}-digit OTP code."
    if not code.isdigit():
        return "Please enter a valid numeric OTP code."
    return None


class VerificationGate:
    """Verification lifecycle for a single field."""

    def __init__(
        self,
        field: str,
        service: OtpService,
        *,
        resend_cooldown: int = DEFAULT_RESEND_COOLDOWN_SEC,
        otp_length: int = DEFAULT_OTP_LENGTH,
        tick_interval: float = 1.0,
        verified: bool = False,
        on_verified: Callable[[str], None] | None = None,
        on_sent: Callable[[str], None] | None = None,
    ) -> None:
        self.field = field
        self._service = service
        self._cooldown = resend_cooldown
        self._otp_length = otp_length
        self._tick_interval = tick_interval
        self._on_verified = on_verified
        self._on_sent = on_sent
        self._status = VerificationStatus.VERIFIED if verified else VerificationStatus.UNVERIFIED
        self._resend_timer = 0
        self._destination: str | None = None
        self._countdown: asyncio.Task | None = None
        self.last_error: str | None = None

    @property
    def status(self) -> VerificationStatus:
        return self._status

    @property
    def is_verified(self) -> bool:
        return self._status is VerificationStatus.VERIFIED

    @property
    def otp_sent(self) -> bool:
        return self._status in (VerificationStatus.OTP_SENT, VerificationStatus.VERIFYING)

    @property
    def is_loading(self) -> bool:
        return self._status in (VerificationStatus.SENDING, VerificationStatus.VERIFYING)

    @property
    def resend_timer(self) -> int:
        return self._resend_timer

    @property
    def destination(self) -> str | None:
        return self._destination

    @property
    def can_send(self) -> bool:
        if self._status is VerificationStatus.UNVERIFIED:
            return True
        return self._status is VerificationStatus.OTP_SENT and self._resend_timer == 0

    def snapshot(self) -> VerificationState:
        return VerificationState(
            is_verified=self.is_verified,
            otp_sent=self.otp_sent,
            is_loading=self.is_loading,
            resend_timer=self._resend_timer,
            status=self._status,
        )

    def resend_label(self) -> str:
        if self._resend_timer > 0:
            return f"Resend in {format_timer(self._resend_timer)}"
        return "Resend OTP" if self.otp_sent else "Verify"

    # -- countdown --------------------------------------------------------

    def tick(self) -> None:
        """Advance the resend countdown by one step."""
        if self._resend_timer > 0:
            self._resend_timer -= 1

    def _start_countdown(self) -> None:
        self._stop_countdown()
        self._countdown = asyncio.get_running_loop().create_task(self._run_countdown())

    async def _run_countdown(self) -> None:
        while self._resend_timer > 0:
            await asyncio.sleep(self._tick_interval)
            self.tick()

    def _stop_countdown(self) -> None:
        if self._countdown is not None and not self._countdown.done():
            self._countdown.cancel()
        self._countdown = None

    # -- lifecycle --------------------------------------------------------

    async def handle_send(self, destination: str) -> bool:
        """Request a code. No-op (False) while cooling down, in flight or verified."""
        if not destination or not self.can_send:
            logger.debug(
                "OTP send for %s ignored (status=%s, timer=%s)",
                self.field,
                self._status.value,
                self._resend_timer,
            )
            return False

        previous = self._status
        self._status = VerificationStatus.SENDING
        self.last_error = None
        try:
            await self._service.send_code(destination)
        except Exception as e:
            logger.warning("Failed to send %s OTP: %s", self.field, e)
            self._status = previous
            self.last_error = str(e) or f"Failed to send {self.field} OTP"
            return False

        self._destination = destination
        self._status = VerificationStatus.OTP_SENT
        self._resend_timer = self._cooldown
        self._start_countdown()
        logger.info("OTP sent for %s", self.field)
        if self._on_sent is not None:
            self._on_sent(self.field)
        return True

    async def verify_otp(self, code: str) -> bool:
        """Check a code. Malformed codes are rejected locally without a network call."""
        if self._status is not VerificationStatus.OTP_SENT or self._destination is None:
            return False
        error = validate_otp_code(code, self._otp_length)
        if error:
            self.last_error = error
            return False

        self._status = VerificationStatus.VERIFYING
        self.last_error = None
        try:
            ok = await self._service.verify_code(self._destination, code.strip())
        except Exception as e:
            logger.warning("OTP verification for %s failed: %s", self.field, e)
            self._status = VerificationStatus.OTP_SENT
            self.last_error = str(e) or "Verification failed"
            return False

        if not ok:
            self._status = VerificationStatus.OTP_SENT
            self.last_error = "Invalid OTP code"
            return False

        self._status = VerificationStatus.VERIFIED
        self._resend_timer = 0
        self._stop_countdown()
        logger.info("%s verified", self.field)
        if self._on_verified is not None:
            self._on_verified(self.field)
        return True

    def restore_otp_sent(self, remaining: int, destination: str | None = None) -> None:
        """Resume an OTP_SENT phase (e.g. after reload). Call from a running loop."""
        if self.is_verified:
            return
        self._status = VerificationStatus.OTP_SENT
        self._destination = destination or self._destination
        self._resend_timer = max(int(remaining), 0)
        if self._resend_timer > 0:
            self._start_countdown()

    def dispose(self) -> None:
        self._stop_countdown()

    def reset(self) -> None:
        """Back to UNVERIFIED; only used when the whole form is reset."""
        self._stop_countdown()
        self._status = VerificationStatus.UNVERIFIED
        self._resend_timer = 0
        self._destination = None
        self.last_error = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VerificationStatusStore:
    """Persists verified flags and in-progress OTP state between sessions.

    Verified flags live under one key and survive indefinitely. The OTP state
    record is only honoured while younger than ttl_sec, and is removed once
    every tracked field is verified.
    """

    def __init__(
        self,
        store: KeyValueStore,
        fields: Iterable[str] = ("email", "phone"),
        ttl_sec: int = DEFAULT_OTP_STATE_TTL_SEC,
        verified_key: str = StorageKeys.TENANT_VERIFICATION_DATA,
        otp_key: str = StorageKeys.OTP_STATE,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._fields = tuple(fields)
        self._ttl = ttl_sec
        self._verified_key = verified_key
        self._otp_key = otp_key
        self._now = now

    def _read(self, key: str) -> dict[str, Any] | None:
        try:
            raw = self._store.get_item(key)
        except (OSError, ValueError) as e:
            logger.warning("Failed to read %s: %s", key, e)
            return None
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Stored %s is malformed, ignoring", key)
            return None
        return data if isinstance(data, dict) else None

    def _write(self, key: str, data: dict[str, Any]) -> None:
        try:
            self._store.set_item(key, json.dumps(data))
        except (OSError, ValueError) as e:
            logger.warning("Failed to write %s: %s", key, e)

    def _remove(self, key: str) -> None:
        try:
            self._store.remove_item(key)
        except (OSError, ValueError) as e:
            logger.warning("Failed to remove %s: %s", key, e)

    # -- verified flags ---------------------------------------------------

    def load_verified(self) -> dict[str, Any]:
        """{<field>_verified: bool, <field>_verified_at: iso str | None} for every field."""
        data = self._read(self._verified_key) or {}
        status: dict[str, Any] = {}
        for name in self._fields:
            status[f"{name}_verified"] = bool(data.get(f"{name}_verified"))
            status[f"{name}_verified_at"] = data.get(f"{name}_verified_at") or None
        return status

    def is_verified(self, field: str) -> bool:
        return self.load_verified().get(f"{field}_verified", False)

    def mark_verified(self, field: str) -> None:
        status = self.load_verified()
        status[f"{field}_verified"] = True
        status[f"{field}_verified_at"] = self._now().isoformat()
        self._write(self._verified_key, status)
        if all(status.get(f"{name}_verified") for name in self._fields):
            self.clear_otp_state()

    # -- OTP state --------------------------------------------------------

    def save_otp_state(self, states: dict[str, VerificationState]) -> None:
        record: dict[str, Any] = {}
        for name in self._fields:
            state = states.get(name)
            record[f"{name}_otp_sent"] = bool(state and state.otp_sent)
            record[f"{name}_resend_timer"] = state.resend_timer if state else 0
        record["last_updated"] = self._now().isoformat()
        self._write(self._otp_key, record)

    def load_otp_state(self) -> dict[str, tuple[bool, int]] | None:
        """Per field (otp_sent, remaining_timer), or None when absent or expired."""
        data = self._read(self._otp_key)
        if data is None:
            return None
        try:
            updated = datetime.fromisoformat(str(data.get("last_updated")))
        except ValueError:
            logger.warning("OTP state has no valid timestamp, ignoring")
            return None
        if updated.tzinfo is None:
            updated = updated.replace(tzinfo=timezone.utc)
        elapsed = int((self._now() - updated).total_seconds())
        if elapsed < 0 or elapsed >= self._ttl:
            return None

        restored: dict[str, tuple[bool, int]] = {}
        for name in self._fields:
            sent = bool(data.get(f"{name}_otp_sent"))
            try:
                timer = int(data.get(f"{name}_resend_timer") or 0)
            except (TypeError, ValueError):
                timer = 0
            restored[name] = (sent, max(0, timer - elapsed))
        return restored

    def clear_otp_state(self) -> None:
        self._remove(self._otp_key)

    def clear(self) -> None:
        self._remove(self._verified_key)
        self._remove(self._otp_key)
