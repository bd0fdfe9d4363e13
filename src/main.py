"""Entry point wiring together the collection screen and the refresh gesture."""

from __future__ import annotations

import argparse
import asyncio
import logging
import random
from contextlib import ExitStack
from typing import List, Optional, Sequence

from src.app import CollectionScreen, WhiskeyEntry
from src.settings import load_settings, persist_settings, resolve_config

logger = logging.getLogger(__name__)

SAMPLE_COLLECTION: Sequence[WhiskeyEntry] = (
    WhiskeyEntry("Lagavulin 16", "Lagavulin", "Islay", 98000, 8.8),
    WhiskeyEntry("Talisker 10", "Talisker", "Isle of Skye", 72000, 8.1),
    WhiskeyEntry("Glenfarclas 105", "Glenfarclas", "Speyside", 89000, 8.5),
    WhiskeyEntry("Springbank 10", "Springbank", "Campbeltown", 115000, 8.9),
    WhiskeyEntry("Ardbeg Uigeadail", "Ardbeg", "Islay", 125000, 9.0),
    WhiskeyEntry("Buffalo Trace", "Buffalo Trace", "Kentucky", 45000, 7.4),
    WhiskeyEntry("Wild Turkey 101", "Wild Turkey", "Kentucky", 42000, 7.6),
    WhiskeyEntry("Redbreast 12", "Redbreast", "Ireland", 88000, 8.4),
    WhiskeyEntry("Yamazaki 12", "Suntory", "Japan", 280000, 8.7),
    WhiskeyEntry("Hibiki Harmony", "Suntory", "Japan", 190000, 8.0),
    WhiskeyEntry("Glendronach 15", "Glendronach", "Highland", 130000, 8.6),
    WhiskeyEntry("Kilchoman Machir Bay", "Kilchoman", "Islay", 84000, 8.2),
    WhiskeyEntry("Aberlour A'bunadh", "Aberlour", "Speyside", 110000, 8.7),
    WhiskeyEntry("Highland Park 12", "Highland Park", "Orkney", 69000, 7.9),
    WhiskeyEntry("Kavalan Solist", "Kavalan", "Taiwan", 240000, 8.8),
    WhiskeyEntry("Balvenie 14 Caribbean", "Balvenie", "Speyside", 135000, 8.3),
)

SAMPLE_NOTES: Sequence[str] = (
    "Lagavulin 16: peat smoke, iodine, dried fruit.",
    "Springbank 10: brine, vanilla, a little oil.",
    "Ardbeg Uigeadail: sherry sweetness over tar.",
    "Redbreast 12: pot still spice, orchard fruit.",
    "Yamazaki 12: pineapple, coconut, mizunara.",
    "Glendronach 15: raisins, chocolate, long finish.",
    "Aberlour A'bunadh: hot at cask strength, add water.",
    "Kavalan Solist: tropical, thick, very sweet.",
    "Balvenie 14: rum cask honey, soft toffee.",
)


class SampleCollectionLoader:
    """Stand-in for the hosted backend: waits, then returns a reshuffled collection.

    Every ``fail_every``-th call raises instead so the fail-open refresh path
    can be seen in the log and in the header.
    """

    def __init__(self, delay: float = 1.2, fail_every: int = 0, seed: Optional[int] = None) -> None:
        self.delay = max(0.0, delay)
        self.fail_every = max(0, fail_every)
        self.calls = 0
        self._random = random.Random(seed)

    async def __call__(self) -> List[WhiskeyEntry]:
        self.calls += 1
        await asyncio.sleep(self.delay)
        if self.fail_every and self.calls % self.fail_every == 0:
            raise ConnectionError("backend did not respond")

        entries = [
            WhiskeyEntry(e.name, e.brand, e.region, round(e.price * self._random.uniform(0.95, 1.05), -2), e.rating)
            for e in SAMPLE_COLLECTION
        ]
        self._random.shuffle(entries)
        return entries


def main() -> None:
    parser = argparse.ArgumentParser(description="Browse a whiskey collection with pull-to-refresh.")
    parser.add_argument("--threshold", type=float, default=None, help="Damped pull distance (px) that commits a refresh.")
    parser.add_argument(
        "--resistance",
        type=float,
        default=None,
        help="Multiplier applied to the raw drag distance (0-1, lower = stiffer).",
    )
    parser.add_argument("--disabled", action="store_true", default=None, help="Start with the gesture disabled.")
    parser.add_argument(
        "--refresh-delay",
        type=float,
        default=1.2,
        help="Seconds the simulated backend takes to reload the collection.",
    )
    parser.add_argument(
        "--fail-every",
        type=int,
        default=0,
        help="Make every Nth refresh fail (0 = never).",
    )
    parser.add_argument("--save-config", action="store_true", help="Remember the resolved tuning for next time.")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity.",
    )
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    settings = load_settings()
    try:
        config = resolve_config(
            settings.config,
            threshold=args.threshold,
            resistance=args.resistance,
            disabled=args.disabled,
        )
    except ValueError as exc:
        parser.error(str(exc))
    logger.debug("Resolved pull config: %s", config)

    screen = CollectionScreen(
        SampleCollectionLoader(delay=args.refresh_delay, fail_every=args.fail_every),
        config=config,
        entries=SAMPLE_COLLECTION,
        notes=SAMPLE_NOTES,
        settings=settings,
    )

    # ExitStack keeps teardown localized and explicit.
    with ExitStack() as stack:
        if args.save_config:
            stack.callback(lambda: persist_settings(config=config))
        # Persist refresh bookkeeping at shutdown in case the screen updated it.
        stack.callback(
            lambda: persist_settings(
                refresh_count=screen.refresh_count,
                last_refreshed_at=screen.last_refreshed_at,
            )
        )

        asyncio.run(screen.run())


if __name__ == "__main__":
    main()
