"""
Deal discovery: run each active monitoring rule against the offer source,
keep offers that clear the rule's discount threshold, and persist them.
"""
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from dealtracker.config import get_settings
from dealtracker.models import DealRecord, DealType, MonitoringRule
from dealtracker.services.amadeus import AmadeusClient, AmadeusError, calculate_discount

logger = logging.getLogger(__name__)
settings = get_settings()

AMADEUS_PROVIDER = "Amadeus"
AMADEUS_BOOKING_URL = "https://www.amadeus.com/booking?offer={offer_id}"


@dataclass
class FoundDeal:
    rule_id: int
    user_id: int
    type: str
    title: str
    origin: Optional[str]
    destination: Optional[str]
    departure_date: Optional[datetime]
    original_price: Decimal
    current_price: Decimal
    discount_percentage: int
    currency: str
    offer_url: str
    provider: str
    return_date: Optional[datetime] = None
    details: Optional[dict] = None
    record_id: Optional[int] = None  # set once persisted


@dataclass
class RuleProcessingResult:
    rules_processed: int = 0
    deals_found: int = 0
    deals: List[FoundDeal] = field(default_factory=list)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def _type_value(value) -> str:
    return value.value if isinstance(value, DealType) else str(value)


class DealsService:
    def __init__(self, db: Session, client: Optional[AmadeusClient] = None):
        self.db = db
        self.client = client or AmadeusClient()

    async def close(self):
        await self.client.close()

    def offer_to_deal(self, rule: MonitoringRule, offer: dict) -> Optional[FoundDeal]:
        """Convert one Amadeus offer into a deal if it clears the rule's threshold.

        Malformed offers (unparseable prices, null segments) yield None.
        """
        try:
            return self._build_deal(rule, offer)
        except (KeyError, TypeError, AttributeError, ArithmeticError) as e:
            logger.debug(f"Rule {rule.id}: skipping malformed offer {offer.get('id')}: {e!r}")
            return None

    def _build_deal(self, rule: MonitoringRule, offer: dict) -> Optional[FoundDeal]:
        price = offer.get("price") or {}
        current_price = Decimal(str(price["total"]))

        if price.get("base"):
            base_price = Decimal(str(price["base"]))
        else:
            base_price = current_price * Decimal(str(settings.fallback_base_markup))

        discount = calculate_discount(current_price, base_price)
        if discount < rule.min_discount:
            return None

        itineraries = offer.get("itineraries") or []
        segments = itineraries[0].get("segments") if itineraries else None
        if not segments:
            return None
        first_segment, last_segment = segments[0], segments[-1]

        origin = first_segment.get("departure", {}).get("iataCode")
        destination = last_segment.get("arrival", {}).get("iataCode")

        return_date = None
        if len(itineraries) > 1 and itineraries[1].get("segments"):
            return_date = _parse_timestamp(itineraries[1]["segments"][0].get("departure", {}).get("at"))

        return FoundDeal(
            rule_id=rule.id,
            user_id=rule.user_id,
            type=DealType.FLIGHT.value,
            title=f"{origin} → {destination}",
            origin=origin,
            destination=destination,
            departure_date=_parse_timestamp(first_segment.get("departure", {}).get("at")),
            return_date=return_date,
            original_price=base_price.quantize(Decimal("0.01")),
            current_price=current_price,
            discount_percentage=discount,
            currency=price.get("currency", "USD"),
            offer_url=AMADEUS_BOOKING_URL.format(offer_id=offer.get("id")),
            provider=AMADEUS_PROVIDER,
            details=offer,
        )

    async def search_flight_deals(self, rule: MonitoringRule) -> List[FoundDeal]:
        if not rule.origin or not rule.destination or not rule.departure_date:
            logger.info(f"Rule {rule.id} missing required fields for flight search")
            return []

        try:
            offers = await self.client.search_flights(
                origin=rule.origin,
                destination=rule.destination,
                departure_date=rule.departure_date.date(),
                return_date=rule.return_date.date() if rule.return_date else None,
                max_results=settings.amadeus_max_results,
            )
        except AmadeusError as e:
            logger.error(f"Error searching flights for rule {rule.id}: {e}")
            return []

        deals = []
        for offer in offers:
            deal = self.offer_to_deal(rule, offer)
            if deal:
                deals.append(deal)

        logger.info(f"Rule {rule.id}: {len(deals)}/{len(offers)} offers meet {rule.min_discount}% discount")
        return deals

    async def search_cruise_deals(self, rule: MonitoringRule) -> List[FoundDeal]:
        # No cruise offer source is integrated yet
        logger.info(f"Cruise search not yet implemented for rule {rule.id}")
        return []

    def save_deal(self, deal: FoundDeal) -> DealRecord:
        record = DealRecord(
            rule_id=deal.rule_id,
            user_id=deal.user_id,
            type=DealType(deal.type),
            title=deal.title,
            origin=deal.origin,
            destination=deal.destination,
            departure_date=deal.departure_date,
            return_date=deal.return_date,
            original_price=deal.original_price,
            current_price=deal.current_price,
            discount_percentage=deal.discount_percentage,
            currency=deal.currency,
            offer_url=deal.offer_url,
            provider=deal.provider,
            details=deal.details,
            is_valid=True,
            validated_at=datetime.utcnow(),
            notified_at=None,
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        deal.record_id = record.id
        return record

    async def process_all_rules(self) -> RuleProcessingResult:
        """Search every active rule and persist what it finds.

        A failing rule or a deal that cannot be saved is logged and skipped;
        only deals that were saved are returned.
        """
        active_rules = self.db.query(MonitoringRule).filter(
            MonitoringRule.is_active == True
        ).all()

        result = RuleProcessingResult(rules_processed=len(active_rules))

        for rule in active_rules:
            try:
                rule_type = _type_value(rule.type)
                if rule_type == DealType.FLIGHT.value:
                    deals = await self.search_flight_deals(rule)
                elif rule_type == DealType.CRUISE.value:
                    deals = await self.search_cruise_deals(rule)
                else:
                    deals = []

                for deal in deals:
                    try:
                        self.save_deal(deal)
                    except Exception as e:
                        self.db.rollback()
                        logger.error(f"Error saving deal for rule {rule.id}: {e}")
                        continue
                    result.deals.append(deal)
                    result.deals_found += 1

            except Exception as e:
                logger.error(f"Error processing rule {rule.id}: {e}")

        return result


def group_deals_by_user(deals: List[FoundDeal]) -> Dict[int, List[FoundDeal]]:
    grouped: Dict[int, List[FoundDeal]] = OrderedDict()
    for deal in deals:
        grouped.setdefault(deal.user_id, []).append(deal)
    return grouped


def group_deals_by_rule(deals: List[FoundDeal]) -> Dict[int, List[FoundDeal]]:
    grouped: Dict[int, List[FoundDeal]] = OrderedDict()
    for deal in deals:
        grouped.setdefault(deal.rule_id, []).append(deal)
    return grouped
