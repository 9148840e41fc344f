"""
Service wiring.

Builds the engine components from settings once per application. Routes
reach the service through ``request.app.state.container``.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from src.config.settings import Settings
from src.engine.base import ComponentWithFallback
from src.engine.classifier import build_response_classifier
from src.engine.debt_parser import build_debt_notice_parser
from src.engine.negotiation import NegotiationService
from src.engine.opt_out import build_opt_out_detector
from src.engine.strategy import build_strategy_generator
from src.llm.factory import LLMProviderWithFallback, build_llm_client
from src.mail import LazyMailer, MailDelivery, PostmarkMailer
from src.store import InMemoryRecordStore, RecordStore

logger = logging.getLogger(__name__)

_UNSET = object()


@dataclass
class Container:
    settings: Settings
    store: RecordStore
    mailer: MailDelivery
    llm_client: Optional[LLMProviderWithFallback]
    service: NegotiationService
    components: Dict[str, ComponentWithFallback] = field(default_factory=dict)

    @property
    def mail_configured(self) -> bool:
        return getattr(self.mailer, "configured", True)

    def component_fallback_counts(self) -> Dict[str, int]:
        return {name: c.fallback_count for name, c in self.components.items()}


def build_container(
    settings: Settings,
    store: Optional[RecordStore] = None,
    mailer: Optional[MailDelivery] = None,
    llm_client=_UNSET,
) -> Container:
    """
    Assemble the service. Pass ``store``, ``mailer`` or ``llm_client`` to
    override the defaults (``llm_client=None`` forces rule-based mode).
    """
    if llm_client is _UNSET:
        llm_client = build_llm_client(settings)

    if mailer is None:
        mailer = LazyMailer(
            lambda: PostmarkMailer(
                settings.postmark_server_token,
                api_url=settings.postmark_api_url,
                timeout=settings.postmark_timeout_seconds,
            )
        )

    components = {
        "response_classifier": build_response_classifier(
            llm_client, review_confidence=settings.review_confidence
        ),
        "opt_out_detector": build_opt_out_detector(
            llm_client, min_confidence=settings.opt_out_confidence
        ),
        "strategy_generator": build_strategy_generator(llm_client),
        "debt_notice_parser": build_debt_notice_parser(llm_client),
    }

    store = store or InMemoryRecordStore()
    service = NegotiationService(
        store=store,
        mailer=mailer,
        classifier=components["response_classifier"],
        opt_out_detector=components["opt_out_detector"],
        strategy_generator=components["strategy_generator"],
        debt_parser=components["debt_notice_parser"],
        auto_counter_confidence=settings.auto_counter_confidence,
        annual_discount_rate=settings.annual_discount_rate,
    )
    logger.info(
        "Container built: llm=%s, store=%s, mailer=%s",
        "enabled" if llm_client is not None else "disabled",
        type(store).__name__,
        type(mailer).__name__,
    )
    return Container(
        settings=settings,
        store=store,
        mailer=mailer,
        llm_client=llm_client,
        service=service,
        components=components,
    )
