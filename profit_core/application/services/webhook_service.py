"""
Webhook Ingestion Service.

Push entry point. Verifies, deduplicates and routes webhook deliveries
to the same reconcilers bulk sync uses.

Flow:
1. Verify HMAC over the raw body (reject, no side effect)
2. Decode JSON and normalize to an event (reject, no side effect)
3. Derive event id and consult the idempotency ledger (skip duplicates)
4. Resolve store by domain (missing -> marked failed; inactive -> skipped)
5. Reconcile order or refund
6. Mark the outcome in the ledger
"""
import hashlib
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from profit_core.domain.entities import Store
from profit_core.domain.enums import IdempotencyStatus, OrderSource, WebhookTopic
from profit_core.domain.exceptions import MalformedPayloadError, MissingReferenceError

from profit_core.application.dtos.order_event import OrderEvent, RefundEvent, parse_event
from profit_core.application.idempotency import IdempotencyLedger, derive_event_id
from profit_core.application.interfaces import ISignatureVerifier
from profit_core.application.use_cases import (
    OrderReconciler,
    RefundReconciler,
    UnitOfWorkFactory,
)


logger = logging.getLogger(__name__)


# =============================================================================
# REQUEST / RESPONSE
# =============================================================================

@dataclass
class WebhookRequest:
    """Transport-level view of one delivery."""
    topic: str
    shop_domain: str
    raw_body: bytes
    signature: Optional[str] = None
    delivery_id: Optional[str] = None


@dataclass
class WebhookResult:
    """
    Outcome reported to the transport.

    rejected=True means verification failed; the delivery left no trace.
    """
    success: bool
    message: str
    processed: bool = False
    skipped: bool = False
    rejected: bool = False
    event_id: Optional[str] = None
    error_kind: Optional[str] = None  # "signature" | "malformed" | "missing_reference" | "internal"
    data: Dict[str, Any] = field(default_factory=dict)


# =============================================================================
# SERVICE
# =============================================================================

class WebhookIngestionService:
    """
    Service for authenticated, idempotent webhook ingestion.
    """

    def __init__(
        self,
        order_reconciler: OrderReconciler,
        refund_reconciler: RefundReconciler,
        ledger: IdempotencyLedger,
        verifier: ISignatureVerifier,
        uow_factory: UnitOfWorkFactory,
    ):
        self.order_reconciler = order_reconciler
        self.refund_reconciler = refund_reconciler
        self.ledger = ledger
        self.verifier = verifier
        self.uow_factory = uow_factory

    async def handle(self, request: WebhookRequest) -> WebhookResult:
        # =====================================================================
        # STEP 1: Verify signature over the raw bytes
        # =====================================================================
        if not self.verifier.verify(request.raw_body, request.signature):
            logger.warning(
                f"❌ Rejected webhook {request.topic} from {request.shop_domain}: invalid signature"
            )
            return WebhookResult(
                success=False,
                rejected=True,
                error_kind="signature",
                message="Invalid webhook signature",
            )

        # =====================================================================
        # STEP 2: Decode and normalize
        # =====================================================================
        try:
            payload = json.loads(request.raw_body)
        except (ValueError, UnicodeDecodeError) as e:
            logger.warning(f"❌ Rejected webhook {request.topic}: body is not JSON ({e})")
            return WebhookResult(
                success=False, rejected=True, error_kind="malformed", message="Malformed JSON body"
            )

        topic = self._parse_topic(request.topic)
        if topic is None:
            return await self._skip_unknown_topic(request, payload)

        try:
            event = self._normalize(topic, payload)
        except MalformedPayloadError as e:
            logger.warning(f"❌ Rejected webhook {request.topic} from {request.shop_domain}: {e}")
            return WebhookResult(
                success=False, rejected=True, error_kind="malformed", message=str(e)
            )

        # =====================================================================
        # STEP 3: Deduplicate
        # =====================================================================
        # Redeliveries of one webhook share its delivery id; a new delivery is a new event
        payload_id = request.delivery_id or event.payload_id
        event_id = derive_event_id(topic.value, request.shop_domain, payload_id)
        if not await self.ledger.should_process(event_id):
            logger.info(f"Skipping duplicate webhook {topic.value} {payload_id} ({event_id})")
            return WebhookResult(
                success=True, skipped=True, event_id=event_id, message="Event already processed"
            )

        # =====================================================================
        # STEP 4: Resolve store
        # =====================================================================
        store = await self._find_store(request.shop_domain)
        if store is None:
            error = f"Store not found: {request.shop_domain}"
            await self.ledger.mark_processed(
                event_id, IdempotencyStatus.FAILED, topic=topic.value, error=error
            )
            logger.error(f"❌ {error} (event {event_id})")
            return WebhookResult(
                success=False, event_id=event_id, error_kind="missing_reference", message=error
            )
        if not store.is_active:
            await self.ledger.mark_processed(
                event_id, IdempotencyStatus.SKIPPED, topic=topic.value, store_id=store.id
            )
            return WebhookResult(
                success=True, skipped=True, event_id=event_id, message="Store is inactive"
            )

        # =====================================================================
        # STEP 5: Reconcile
        # =====================================================================
        try:
            data = await self._dispatch(topic, event, store)
        except MissingReferenceError as e:
            await self.ledger.mark_processed(
                event_id, IdempotencyStatus.FAILED, topic=topic.value, store_id=store.id, error=str(e)
            )
            logger.error(f"❌ Webhook {event_id} references missing data: {e}")
            return WebhookResult(
                success=False, event_id=event_id, error_kind="missing_reference", message=str(e)
            )
        except Exception as e:
            await self.ledger.mark_processed(
                event_id, IdempotencyStatus.FAILED, topic=topic.value, store_id=store.id, error=str(e)
            )
            logger.error(f"❌ Webhook {event_id} failed: {e}", exc_info=True)
            return WebhookResult(
                success=False, event_id=event_id, error_kind="internal", message=str(e)
            )

        # =====================================================================
        # STEP 6: Mark processed
        # =====================================================================
        await self.ledger.mark_processed(
            event_id, IdempotencyStatus.PROCESSED, topic=topic.value, store_id=store.id
        )
        logger.info(f"✅ Webhook {topic.value} {event.payload_id} processed ({event_id})")
        return WebhookResult(
            success=True,
            processed=True,
            event_id=event_id,
            message=f"Processed {topic.value}",
            data=data,
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _parse_topic(raw_topic: str) -> Optional[WebhookTopic]:
        try:
            return WebhookTopic((raw_topic or "").strip().lower())
        except ValueError:
            return None

    @staticmethod
    def _normalize(topic: WebhookTopic, payload: Any) -> Union[OrderEvent, RefundEvent]:
        if topic.is_order_topic:
            return parse_event(OrderEvent, payload)
        event = parse_event(RefundEvent, payload)
        if not event.external_order_id:
            raise MalformedPayloadError(f"Refund {event.external_refund_id} has no order reference")
        return event

    async def _skip_unknown_topic(self, request: WebhookRequest, payload: Any) -> WebhookResult:
        payload_id = None
        if isinstance(payload, dict) and payload.get("id") is not None:
            payload_id = str(payload["id"])
        if payload_id is None:
            payload_id = request.delivery_id or hashlib.sha256(request.raw_body).hexdigest()[:16]

        event_id = derive_event_id(request.topic, request.shop_domain, payload_id)
        await self.ledger.mark_processed(event_id, IdempotencyStatus.SKIPPED, topic=request.topic)
        logger.info(f"Ignoring unsupported webhook topic {request.topic!r}")
        return WebhookResult(
            success=True,
            skipped=True,
            event_id=event_id,
            message=f"Unsupported topic: {request.topic}",
        )

    async def _find_store(self, shop_domain: str) -> Optional[Store]:
        async with self.uow_factory() as uow:
            return await uow.commerce.find_store_by_domain(shop_domain)

    async def _dispatch(
        self, topic: WebhookTopic, event: Union[OrderEvent, RefundEvent], store: Store
    ) -> Dict[str, Any]:
        if topic.is_order_topic:
            result = await self.order_reconciler.ingest_order(event, store.id, OrderSource.WEBHOOK)
            return {
                "order_id": result.order_id,
                "created": result.created,
                "total_cogs": result.total_cogs,
                "total_payment_fees": result.total_payment_fees,
                "net_profit": result.net_profit,
                "cogs_match_rate": result.cogs_match_rate,
                "warnings": [w.code for w in result.warnings],
            }

        result = await self.refund_reconciler.ingest_refund(event, store.id)
        return {
            "refund_id": result.refund_id,
            "amount": result.amount,
            "cogs_reversed": result.cogs_reversed,
            "cogs_precision": result.cogs_precision.value,
            "warnings": [w.code for w in result.warnings],
        }
