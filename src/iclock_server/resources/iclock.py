"""Iclock resource — protocol-agnostic handling of terminal requests."""

from __future__ import annotations

import logging

from iclock_server.services.delivery_service import DeliveryService
from iclock_server.services.device_service import DeviceService
from iclock_server.services.result_service import ResultService
from iclock_server.utils.payload import DeviceReport

logger = logging.getLogger("iclock.protocol")

_TRANS_FLAGS = "TransData AttLog OpLog AttPhoto EnrollUser ChgUser EnrollFP ChgFP UserPic"


class MalformedInputError(Exception):
    """Raised when a request lacks required input, before storage is touched."""


class IclockResource:
    """Check-in, poll, upload, and result handling for terminals.

    Built once at startup with all dependencies pre-wired. Every method
    returns the plain-text body the terminal expects.
    """

    def __init__(
        self,
        *,
        device_service: DeviceService,
        delivery_service: DeliveryService,
        result_service: ResultService,
        ack_text: str = "OK",
        poll_interval: int = 10,
        timezone_offset: int = 0,
    ) -> None:
        self._devices = device_service
        self._delivery = delivery_service
        self._results = result_service
        self._ack = ack_text
        self._poll_interval = poll_interval
        self._timezone_offset = timezone_offset

    @staticmethod
    def require_serial(serial_number: str | None) -> str:
        """Return the stripped serial number.

        Raises:
            MalformedInputError: If it is missing or blank.
        """
        value = (serial_number or "").strip()
        if not value:
            raise MalformedInputError("SN is required")
        return value

    async def check_in(
        self,
        serial_number: str | None,
        push_version: str | None = None,
        ip_address: str | None = None,
    ) -> str:
        """Register contact and return the device option block."""
        sn = IclockResource.require_serial(serial_number)
        await self._devices.seen(
            sn, push_version=push_version, ip_address=ip_address,
        )
        return "\n".join((
            f"GET OPTION FROM:{sn}",
            "ATTLOGStamp=None",
            "OPERLOGStamp=9999",
            "ATTPHOTOStamp=None",
            "ErrorDelay=30",
            f"Delay={self._poll_interval}",
            "TransTimes=00:00;14:05",
            "TransInterval=1",
            f"TransFlag={_TRANS_FLAGS}",
            f"TimeZone={self._timezone_offset}",
            "Realtime=1",
            "Encrypt=0",
        ))

    async def upload(
        self,
        serial_number: str | None,
        table: str | None,
        body: str,
        ip_address: str | None = None,
    ) -> str:
        """Acknowledge an attendance/operation log upload with its count."""
        sn = IclockResource.require_serial(serial_number)
        await self._devices.seen(sn, ip_address=ip_address)
        count = DeviceReport.count_records(body)
        logger.debug("%s uploaded %d %s record(s)", sn, count, table or "unknown")
        return f"{self._ack}: {count}"

    async def get_request(
        self, serial_number: str | None, ip_address: str | None = None,
    ) -> str:
        """Next command payload for the device, or the idle acknowledgement."""
        sn = IclockResource.require_serial(serial_number)
        await self._devices.seen(sn, polled=True, ip_address=ip_address)
        payload, _ = await self._delivery.next_command(sn)
        return payload if payload is not None else self._ack

    async def device_cmd(self, serial_number: str | None, body: str) -> str:
        """Reconcile every result line in the body; always acknowledge."""
        sn = IclockResource.require_serial(serial_number)
        results = DeviceReport.parse_results(body)
        if not results:
            logger.warning("%s posted a result body with no complete result lines", sn)
        for result in results:
            await self._results.report_result(
                sn, result["code"], result["return_code"],
            )
        return self._ack
