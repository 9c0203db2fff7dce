#!/usr/bin/env python3
"""Insert the default medal catalog when the medals table is empty.

Run from the repository root: ``python -m scripts.seed_medals``.
"""

import logging

from app import create_app
from medals import create_medal
from models_medals import Medal

logger = logging.getLogger("seed_medals")

DEFAULT_MEDALS = [
    {
        "id": "first-report",
        "name": "Safety in Focus",
        "description": "Reported a first near-miss.",
        "imageSrc": "/images/medals/safety_focus.png",
        "triggerAction": "itemReported",
        "requiredCount": 1,
    },
    {
        "id": "prevention-total",
        "name": "Total Prevention",
        "description": "Reported ten near-misses, actively preventing accidents.",
        "imageSrc": "/images/medals/prevention.png",
        "triggerAction": "itemReported",
        "requiredCount": 10,
    },
    {
        "id": "safety-viewer",
        "name": "Rules Guardian",
        "description": "Watched five safety videos.",
        "imageSrc": "/images/medals/rules_guardian.png",
        "triggerAction": "itemWatched",
        "triggerCategory": "Safety",
        "requiredCount": 5,
    },
    {
        "id": "quality-master",
        "name": "Quality Master",
        "description": "Completed three quality trainings.",
        "imageSrc": "/images/medals/quality_master.png",
        "triggerAction": "trainingCompleted",
        "triggerCategory": "Quality",
        "requiredCount": 3,
    },
]


def main():
    app = create_app()
    with app.app_context():
        existing = Medal.query.count()
        if existing > 0:
            logger.info(f"{existing} medals already present; skipping seed")
            return 0

        for data in DEFAULT_MEDALS:
            create_medal(data)
        logger.info(f"Inserted {len(DEFAULT_MEDALS)} medals")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
