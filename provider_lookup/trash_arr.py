"""Austin Resource Recovery (trash / recycling / compost).

No spatial source exists for ARR, and ARR serves every address inside the
city, so this always answers: confirmed for City of Austin addresses, likely
(with a "confirm locally" note) everywhere else.
"""

from typing import Optional

from .extractor import LOCAL_CITY
from .models import ActionKind, Confidence, NextAction, ProviderRequest, ProviderResult

SOURCE = "City of Austin"
PROVIDER = "Austin Resource Recovery"

SCHEDULE_URL = "https://www.austintexas.gov/services/view-your-recycling-composting-and-trash-schedule"
BULK_URL = "https://www.austintexas.gov/ondemand"

CITY_NOTE = "Applies to City of Austin addresses."
OUTSIDE_NOTE = "This address may not be served by ARR; confirm locally."


class TrashARRLookup:
    def __init__(self, local_city: str = LOCAL_CITY):
        self.local_city = local_city

    def is_local(self, city: Optional[str]) -> bool:
        return (city or "").strip().lower() == self.local_city.lower()

    def lookup(self, request: ProviderRequest) -> ProviderResult:
        local = self.is_local(request.city)
        return ProviderResult(
            provider=PROVIDER,
            source=SOURCE,
            confidence=Confidence.CONFIRMED if local else Confidence.LIKELY,
            status_text="City address" if local else "Outside City limits; confirm service",
            next_actions=[
                NextAction("Open My Schedule", SCHEDULE_URL, ActionKind.PRIMARY),
                NextAction("Schedule Bulk/Brush or HHW", BULK_URL, ActionKind.SECONDARY),
            ],
            meta={
                "city": request.city,
                "county": request.county,
                "note": CITY_NOTE if local else OUTSIDE_NOTE,
                "schedule_url": SCHEDULE_URL,
                "bulk_url": BULK_URL,
            },
        )
