"""
Minio implementation of BookingRepository.
"""

import io
import logging
import os
from datetime import datetime, timezone
from typing import Optional

from minio import Minio
from minio.error import S3Error

from loyalty_cancellation.domain import (
    Booking,
    LineItemCancellation,
    LineItemStatus,
)
from loyalty_cancellation.repos.memory.booking import apply_line_item_status
from loyalty_cancellation.repositories import BookingRepository

logger = logging.getLogger(__name__)


class MinioBookingRepository(BookingRepository):
    """
    Minio implementation of BookingRepository.
    Each booking is one JSON object named after the booking id.
    """

    def __init__(
        self,
        endpoint: str,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        bucket_name: str = "bookings",
        client: Optional[Minio] = None,
    ):
        logger.debug(
            "Initializing MinioBookingRepository",
            extra={"minio_endpoint": endpoint, "bucket_name": bucket_name},
        )

        self.client = client or Minio(
            endpoint,
            access_key=access_key
            or os.environ.get("MINIO_ACCESS_KEY", "minioadmin"),
            secret_key=secret_key
            or os.environ.get("MINIO_SECRET_KEY", "minioadmin"),
            secure=False,
        )
        self.bucket_name = bucket_name
        self._ensure_bucket_exists()

    def _ensure_bucket_exists(self):
        try:
            if not self.client.bucket_exists(self.bucket_name):
                logger.info(
                    "Creating bookings bucket",
                    extra={"bucket_name": self.bucket_name},
                )
                self.client.make_bucket(self.bucket_name)
        except S3Error as e:
            logger.error(
                "Failed to create bookings bucket",
                extra={"bucket_name": self.bucket_name, "error": str(e)},
            )
            raise

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        """Retrieve a booking by its ID from Minio."""
        try:
            response = self.client.get_object(
                bucket_name=self.bucket_name, object_name=booking_id
            )
            try:
                data = response.read()
            finally:
                response.close()
                response.release_conn()
        except S3Error as e:
            if getattr(e, "code", None) == "NoSuchKey":
                logger.debug(
                    "MinioBookingRepository: Booking not found (NoSuchKey)",
                    extra={"booking_id": booking_id},
                )
                return None
            logger.error(
                "MinioBookingRepository: Error retrieving booking object",
                extra={
                    "booking_id": booking_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )
            raise

        booking = Booking.model_validate_json(data.decode("utf-8"))
        logger.debug(
            "MinioBookingRepository: Booking retrieved",
            extra={
                "booking_id": booking_id,
                "status": booking.status.value,
                "payload_size_bytes": len(data),
            },
        )
        return booking

    async def save_booking(self, booking: Booking) -> None:
        """Persist the full state of a booking to Minio."""
        booking_json = booking.model_dump_json().encode("utf-8")

        try:
            self.client.put_object(
                bucket_name=self.bucket_name,
                object_name=booking.id,
                data=io.BytesIO(booking_json),
                length=len(booking_json),
                content_type="application/json",
                metadata={
                    "status": booking.status.value,
                    "saved_at": datetime.now(timezone.utc).isoformat(),
                },
            )
        except S3Error as e:
            logger.error(
                "MinioBookingRepository: Failed to persist booking",
                extra={
                    "booking_id": booking.id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )
            raise

        logger.info(
            "MinioBookingRepository: Booking persisted",
            extra={
                "booking_id": booking.id,
                "status": booking.status.value,
                "bucket": self.bucket_name,
            },
        )

    async def update_line_item_status(
        self,
        booking_id: str,
        line_item_id: str,
        status: LineItemStatus,
        details: LineItemCancellation,
    ) -> bool:
        booking = await self.get_booking(booking_id)
        if booking is None:
            logger.warning(
                "MinioBookingRepository: Cannot update line item of missing "
                "booking",
                extra={"booking_id": booking_id, "line_item_id": line_item_id},
            )
            return False

        updated = apply_line_item_status(
            booking, line_item_id, status, details
        )
        if updated is None:
            logger.warning(
                "MinioBookingRepository: Line item not found",
                extra={"booking_id": booking_id, "line_item_id": line_item_id},
            )
            return False

        await self.save_booking(updated)
        return True
