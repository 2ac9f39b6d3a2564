#!/usr/bin/env python3
"""
Seed demo staff stats through the gamification facade

Each action carries an idempotency key, so running the script twice does not
double count anything.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

from gamification_service.logic.gamification import GamificationFacade
from gamification_service.schemas import GamificationAction

# (userId, [(days ago, action payload), ...])
DEMO_USERS: List[Dict[str, Any]] = [
    {
        "userId": "demo-reception-01",
        "actions": [
            (3, {"type": "LOGIN"}),
            (2, {"type": "LOGIN"}),
            (2, {"type": "REGISTER_LOST_ITEM"}),
            (1, {"type": "LOGIN"}),
            (1, {"type": "RETURN_LOST_ITEM"}),
            (0, {"type": "LOGIN"}),
            (0, {"type": "HELP_COLLEAGUE"}),
        ],
    },
    {
        "userId": "demo-maintenance-01",
        "actions": [
            (2, {"type": "CREATE_MAINTENANCE"}),
            (2, {"type": "COMPLETE_MAINTENANCE", "beforeSchedule": True}),
            (1, {"type": "RESOLVE_INCIDENT", "severity": "critical", "resolutionTime": 2.5}),
            (1, {"type": "COMPLETE_MAINTENANCE"}),
            (0, {"type": "COMPLETE_MAINTENANCE", "beforeSchedule": True}),
        ],
    },
    {
        "userId": "demo-housekeeping-01",
        "actions": [
            (1, {"type": "SUBMIT_QUALITY_SCORE", "score": 94}),
            (1, {"type": "READ_PROCEDURE"}),
            (0, {"type": "SUBMIT_QUALITY_SCORE", "score": 97}),
            (0, {"type": "VALIDATE_PROCEDURE"}),
        ],
    },
]


def seed():
    facade = GamificationFacade()
    now = datetime.now(timezone.utc)

    for user in DEMO_USERS:
        user_id = user["userId"]
        for index, (days_ago, payload) in enumerate(user["actions"]):
            action = GamificationAction(**payload, timestamp=now - timedelta(days=days_ago))
            result = facade.perform_action(user_id, action, idempotency_key=f"seed-{user_id}-{index}")
            status = "skipped" if result.replayed else f"+{result.xpGained} XP"
            print(f"  {user_id}: {payload['type']} {status}")

        stats = facade.get_stats(user_id)
        print(f"✓ {user_id}: {stats.totalXP} XP, {len(stats.badges)} badges")


if __name__ == '__main__':
    print("Seeding demo gamification stats...")
    seed()
    print("Done!")
