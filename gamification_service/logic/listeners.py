"""
Event listeners for operational modules

Each listener turns an operational event into a GamificationAction and runs
it through the facade. Listeners never raise: failures are logged and
reported as {'success': False, 'error': ...} so the emitting module is not
affected.

Common payload:
{
    "userId": "staff-42",
    "timestamp": "2025-03-14T09:30:00Z",
    "eventId": "incident-981-resolved"    # optional, used as idempotency key
}
"""

from typing import Any, Dict, Iterable, Optional
import logging

from pydantic import ValidationError

from gamification_service.logic.gamification import get_facade
from gamification_service.schemas import ActionType, GamificationAction

logger = logging.getLogger(__name__)


# ============================================================================
# Event Payload Validators
# ============================================================================

def validate_base_event(event: Dict[str, Any], extra_required: Iterable[str] = ()) -> Optional[str]:
    """
    Validate common fields in all events.

    Returns error message if invalid, None if valid
    """
    for field in ('userId', 'timestamp', *extra_required):
        if field not in event or event[field] is None:
            return f"Missing required field: {field}"

    if not isinstance(event['userId'], str) or not event['userId'].strip():
        return "userId must be a non-empty string"

    return None


# ============================================================================
# Shared handler
# ============================================================================

def _handle(
    event_name: str,
    event: Dict[str, Any],
    action_type: ActionType,
    fields: Iterable[str] = (),
    required: Iterable[str] = ()
) -> Dict[str, Any]:
    log_context = {
        'event': event_name,
        'event_id': event.get('eventId'),
        'user_id': event.get('userId'),
        'action_type': action_type.value,
    }

    logger.info(f"{event_name} event received", extra=log_context)

    error = validate_base_event(event, required)
    if error:
        logger.error(f"Invalid event payload: {error}", extra=log_context)
        return {'success': False, 'error': error}

    try:
        action = GamificationAction(
            type=action_type,
            timestamp=event['timestamp'],
            **{field: event[field] for field in fields if event.get(field) is not None},
        )
    except ValidationError as e:
        logger.error(f"Invalid event payload: {e}", extra=log_context)
        return {'success': False, 'error': f"Invalid payload: {e.errors()[0]['msg']}"}

    try:
        result = get_facade().perform_action(
            event['userId'],
            action,
            idempotency_key=event.get('eventId'),
        )
    except Exception as e:
        logger.error(f"Error in {event_name}: {str(e)}", extra=log_context, exc_info=True)
        return {'success': False, 'error': str(e)}

    log_context['xp_gained'] = result.xpGained
    log_context['new_badges'] = [badge.id for badge in result.newBadges]

    if result.newBadges:
        logger.info(f"{len(result.newBadges)} new badges earned", extra=log_context)
    else:
        logger.debug("No new badges earned", extra=log_context)

    return {
        'success': True,
        'xpGained': result.xpGained,
        'challengeXp': result.challengeXp,
        'totalXP': result.updatedStats.totalXP,
        'newBadges': [badge.id for badge in result.newBadges],
        'completedChallenges': [challenge.id for challenge in result.completedChallenges],
        'levelUp': result.levelUp,
        'replayed': result.replayed,
    }


# ============================================================================
# Listeners
# ============================================================================

def on_incident_created(event: Dict[str, Any]) -> Dict[str, Any]:
    """Payload adds: severity (optional)"""
    return _handle('on_incident_created', event, ActionType.CREATE_INCIDENT, fields=('severity',))


def on_incident_resolved(event: Dict[str, Any]) -> Dict[str, Any]:
    """Payload adds: severity, resolutionTime in hours (both optional)"""
    return _handle(
        'on_incident_resolved', event, ActionType.RESOLVE_INCIDENT,
        fields=('severity', 'resolutionTime'),
    )


def on_maintenance_created(event: Dict[str, Any]) -> Dict[str, Any]:
    return _handle('on_maintenance_created', event, ActionType.CREATE_MAINTENANCE)


def on_maintenance_completed(event: Dict[str, Any]) -> Dict[str, Any]:
    """Payload adds: beforeSchedule (optional)"""
    return _handle(
        'on_maintenance_completed', event, ActionType.COMPLETE_MAINTENANCE,
        fields=('beforeSchedule',),
    )


def on_quality_visit_logged(event: Dict[str, Any]) -> Dict[str, Any]:
    """Payload adds: score (required, 0-100)"""
    return _handle(
        'on_quality_visit_logged', event, ActionType.SUBMIT_QUALITY_SCORE,
        fields=('score',), required=('score',),
    )


def on_lost_item_registered(event: Dict[str, Any]) -> Dict[str, Any]:
    return _handle('on_lost_item_registered', event, ActionType.REGISTER_LOST_ITEM)


def on_lost_item_returned(event: Dict[str, Any]) -> Dict[str, Any]:
    return _handle('on_lost_item_returned', event, ActionType.RETURN_LOST_ITEM)


def on_user_login(event: Dict[str, Any]) -> Dict[str, Any]:
    return _handle('on_user_login', event, ActionType.LOGIN)
