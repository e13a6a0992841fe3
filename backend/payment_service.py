"""
Payment service with mock payment gateways and booking rollback
Simulates card and mobile-wallet checkouts with configurable failure rates
"""
from datetime import datetime
import random
import re
import string
import time
import uuid
from typing import Dict, Optional

from loguru import logger

from database import (
    Booking, BookingStatus, Payment, PaymentMethod, PaymentStatus, ScheduleStatus,
    doc_to_payment, payment_to_doc, PAYMENTS
)
from .booking_service import BookingService
from .config import Settings
from .errors import InvalidTransitionError

WALLET_MOBILE_PATTERN = re.compile(r'^03\d{9}$')


class PaymentGateway:
    """
    Base class for mock payment gateways

    ``charge`` and ``refund`` return result dictionaries with ``success``,
    ``transaction_id`` and, on failure, ``error_code``/``error_message``.
    """

    provider = 'mock'

    def __init__(self, failure_rate: float = 0.1, processing_delay: float = 0.0):
        """
        Initialize mock payment gateway

        Args:
            failure_rate: Probability of payment failure (0.0 - 1.0)
            processing_delay: Seconds to sleep per call
        """
        self.failure_rate = max(0.0, min(1.0, failure_rate))
        self.processing_delay = max(0.0, processing_delay)

    def set_processing_delay(self, delay: float) -> None:
        """Update the artificial processing delay for tests or data seeding."""
        self.processing_delay = max(0.0, delay)

    def _simulate_latency(self) -> None:
        if self.processing_delay:
            time.sleep(self.processing_delay)

    @staticmethod
    def _random_suffix(length: int) -> str:
        return ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))

    def charge(self, amount: float, currency: str, payer: Optional[dict] = None) -> dict:
        raise NotImplementedError

    def refund(self, transaction_id: str, amount: float, currency: str) -> dict:
        """Simulate a refund; mock refunds always succeed"""
        self._simulate_latency()
        return {
            'success': True,
            'refund_transaction_id': 'REFUND' + self._random_suffix(10),
            'original_transaction_id': transaction_id,
            'amount': amount,
            'currency': currency
        }


class MockCardGateway(PaymentGateway):
    """Card processor in the style of Stripe charges"""

    provider = 'stripe'
    DECLINE_CODES = {
        'card_declined': 'Your card was declined',
        'insufficient_funds': 'Your card has insufficient funds',
        'expired_card': 'Your card has expired',
        'processing_error': 'An error occurred while processing your card',
    }

    def charge(self, amount: float, currency: str, payer: Optional[dict] = None) -> dict:
        """
        Simulate a card charge

        Args:
            amount: Amount in major currency units
            currency: ISO currency code
            payer: Cardholder details (name, email); not validated

        Returns:
            Payment result dictionary with status and transaction_id
        """
        self._simulate_latency()
        transaction_id = 'ch_' + uuid.uuid4().hex[:24]

        if amount <= 0:
            return {
                'success': False,
                'transaction_id': transaction_id,
                'error_code': 'amount_too_small',
                'error_message': 'Amount must be greater than zero'
            }

        if random.random() < self.failure_rate:
            code = random.choice(list(self.DECLINE_CODES))
            return {
                'success': False,
                'transaction_id': transaction_id,
                'error_code': code,
                'error_message': self.DECLINE_CODES[code]
            }

        return {
            'success': True,
            'transaction_id': transaction_id,
            'amount': amount,
            'currency': currency.lower()
        }


class MockWalletGateway(PaymentGateway):
    """Mobile wallet in the style of JazzCash; response code 000 means success"""

    provider = 'jazzcash'
    SUCCESS_CODE = '000'
    FAILURE_CODES = {
        '124': 'Insufficient balance in mobile account',
        '157': 'Transaction timed out waiting for customer PIN',
        '199': 'System error, please try again',
    }

    def charge(self, amount: float, currency: str, payer: Optional[dict] = None) -> dict:
        """
        Simulate a mobile wallet debit

        Args:
            amount: Amount in major currency units
            currency: Must be PKR
            payer: Must carry ``mobileNumber`` in 03XXXXXXXXX form
        """
        self._simulate_latency()
        transaction_id = 'T' + datetime.now().strftime('%Y%m%d%H%M%S') + self._random_suffix(6)
        mobile_number = (payer or {}).get('mobileNumber', '')

        if not WALLET_MOBILE_PATTERN.match(mobile_number):
            return {
                'success': False,
                'transaction_id': transaction_id,
                'error_code': '110',
                'error_message': 'Invalid mobile account number'
            }
        if currency != 'PKR':
            return {
                'success': False,
                'transaction_id': transaction_id,
                'error_code': '115',
                'error_message': f'Currency {currency} not supported'
            }

        if random.random() < self.failure_rate:
            code = random.choice(list(self.FAILURE_CODES))
            return {
                'success': False,
                'transaction_id': transaction_id,
                'error_code': code,
                'error_message': self.FAILURE_CODES[code]
            }

        return {
            'success': True,
            'transaction_id': transaction_id,
            'response_code': self.SUCCESS_CODE,
            'amount': amount
        }


class PaymentService:
    """Service for payment processing with automatic booking confirmation/rollback"""

    def __init__(self, store, booking_service: Optional[BookingService] = None,
                 gateways: Optional[Dict[PaymentMethod, PaymentGateway]] = None,
                 settings: Optional[Settings] = None):
        """
        Initialize payment service

        Args:
            store: Document store
            booking_service: Booking service sharing the same store
            gateways: Gateway per payment method (defaults to the mock gateways)
            settings: Failure rates for the default gateways
        """
        self.store = store
        self.settings = settings or Settings()
        self.booking_service = booking_service or BookingService(store, self.settings)
        self.gateways = gateways or {
            PaymentMethod.CARD: MockCardGateway(failure_rate=self.settings.card_failure_rate),
            PaymentMethod.MOBILE_WALLET: MockWalletGateway(failure_rate=self.settings.wallet_failure_rate),
        }

    def _gateway(self, payment_method: PaymentMethod) -> PaymentGateway:
        gateway = self.gateways.get(payment_method)
        if gateway is None:
            raise ValueError(f"No payment gateway configured for {payment_method.value}")
        return gateway

    def _save(self, payment: Payment) -> None:
        self.store.put(PAYMENTS, payment.id, payment_to_doc(payment))

    def process_booking_payment(self, booking_id: str,
                                payment_method: PaymentMethod = PaymentMethod.CARD,
                                payer: Optional[dict] = None):
        """
        Process payment for a booking with automatic confirmation/rollback

        If payment succeeds, the booking is confirmed. If payment fails, the
        booking is cancelled and its seats are released. The gateway is called
        without holding any seat lock.

        Args:
            booking_id: Booking ID
            payment_method: Payment method
            payer: Details passed to the gateway (e.g. mobileNumber for wallets)

        Returns:
            Tuple of (payment, booking) objects

        Raises:
            ValueError: If the booking cannot be paid or payment processing fails
        """
        booking = self.booking_service.get_booking(booking_id)
        if booking is None:
            raise ValueError(f"Booking with ID {booking_id} not found")
        if booking.status != BookingStatus.PENDING:
            raise ValueError(f"Booking {booking_id} is not pending payment")

        schedule = self.booking_service.schedules.get_schedule(booking.schedule_id)
        if schedule is None or schedule.status == ScheduleStatus.CANCELLED:
            raise ValueError(f"Schedule {booking.schedule_id} for booking {booking_id} is no longer running")

        existing = self.get_payment_by_booking(booking_id)
        if existing is not None and existing.status == PaymentStatus.SUCCESS:
            raise ValueError(f"Payment already exists for booking {booking_id}")

        gateway = self._gateway(payment_method)
        result = gateway.charge(booking.total_amount, booking.currency, payer)

        now = datetime.now()
        payment = Payment(
            id=f"pay_{uuid.uuid4().hex[:12]}",
            booking_id=booking_id,
            transaction_id=result['transaction_id'],
            amount=booking.total_amount,
            currency=booking.currency,
            payment_method=payment_method,
            status=PaymentStatus.SUCCESS if result['success'] else PaymentStatus.FAILED,
            payment_date=now,
            updated_at=now
        )
        self._save(payment)

        if result['success']:
            try:
                booking = self.booking_service.confirm_booking(booking_id)
            except InvalidTransitionError:
                # Booking was cancelled or paid elsewhere while the charge was in flight
                self._refund_charge(gateway, payment)
                logger.warning(f"[PAYMENT] {payment.transaction_id} refunded; booking {booking_id} no longer pending")
                raise ValueError(f"Booking {booking_id} was cancelled during payment; charge refunded")
            except ValueError as e:
                # Schedule cancelled, or the confirm kept losing write races
                self._refund_charge(gateway, payment)
                logger.warning(f"[PAYMENT] {payment.transaction_id} refunded; could not confirm {booking_id}: {e}")
                raise ValueError(f"Could not confirm booking {booking_id} ({e}); charge refunded")

            logger.info(
                f"[PAYMENT] {gateway.provider} {payment.transaction_id} captured "
                f"{payment.amount} {payment.currency} for {booking_id}"
            )
            return payment, booking

        error_msg = result.get('error_message', 'Payment processing failed')
        error_code = result.get('error_code', 'UNKNOWN_ERROR')

        # Roll back only an unpaid booking; a concurrent payment may have confirmed it
        current = self.booking_service.cancel_booking(booking_id, only_if=(BookingStatus.PENDING,))
        if current.status == BookingStatus.CANCELLED:
            logger.info(f"[PAYMENT] {gateway.provider} declined {booking_id}: {error_code}; seats released")
        else:
            logger.info(
                f"[PAYMENT] {gateway.provider} declined {booking_id}: {error_code}; "
                f"booking left {current.status.value}"
            )
        raise ValueError(f"Payment failed: {error_msg} (Code: {error_code})")

    def _refund_charge(self, gateway: PaymentGateway, payment: Payment) -> None:
        result = gateway.refund(payment.transaction_id, payment.amount, payment.currency)
        if not result['success']:
            raise ValueError("Refund processing failed")
        payment.status = PaymentStatus.REFUNDED
        payment.updated_at = datetime.now()
        self._save(payment)

    def refund_payment(self, payment_id: str) -> Payment:
        """
        Refund a payment and cancel associated booking

        Args:
            payment_id: Payment ID

        Returns:
            Updated payment object
        """
        payment = self.get_payment(payment_id)
        if payment is None:
            raise ValueError(f"Payment with ID {payment_id} not found")
        if payment.status != PaymentStatus.SUCCESS:
            raise ValueError(f"Cannot refund payment with status {payment.status.value}")

        booking: Optional[Booking] = self.booking_service.get_booking(payment.booking_id)
        if booking is not None and booking.status == BookingStatus.COMPLETED:
            raise ValueError(f"Cannot refund completed booking {booking.id}")

        self._refund_charge(self._gateway(payment.payment_method), payment)

        if booking is not None and booking.status == BookingStatus.CONFIRMED:
            self.booking_service.cancel_booking(booking.id)

        logger.info(f"[PAYMENT] Refunded {payment.transaction_id} for booking {payment.booking_id}")
        return payment

    def get_payment(self, payment_id: str) -> Optional[Payment]:
        """Get payment by ID"""
        return doc_to_payment(self.store.get_by_id(PAYMENTS, payment_id))

    def get_payment_by_booking(self, booking_id: str) -> Optional[Payment]:
        """Get the captured payment for a booking, else its latest attempt"""
        payments = [doc_to_payment(doc) for doc in self.store.query(PAYMENTS, bookingId=booking_id)]
        if not payments:
            return None
        captured = [p for p in payments if p.status == PaymentStatus.SUCCESS]
        return max(captured or payments, key=lambda p: p.payment_date or datetime.min)

    def get_payment_by_transaction(self, transaction_id: str) -> Optional[Payment]:
        """Get payment by gateway transaction ID"""
        docs = self.store.query(PAYMENTS, transactionId=transaction_id)
        return doc_to_payment(docs[0]) if docs else None
